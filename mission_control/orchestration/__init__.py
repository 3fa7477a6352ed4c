"""Orchestration layer - mission status transitions."""

from mission_control.orchestration.state_machine import (
    Actor,
    assert_transition,
    can_transition,
    valid_transitions,
)

__all__ = [
    "Actor",
    "assert_transition",
    "can_transition",
    "valid_transitions",
]
