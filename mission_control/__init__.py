"""Mission Control - campaign progression service."""

__version__ = "0.4.0"
