"""
Append-only progression event log.
"""

from mission_control.kernel.events.event_store import EventStore

__all__ = ["EventStore"]
