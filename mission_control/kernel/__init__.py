"""Kernel - ORM models, event log, persistence."""
