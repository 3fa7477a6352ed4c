"""
State machine for UserMission status.

Mission status is authoritative for availability, rewards and review.
Valid transitions and who may trigger them are defined here; the evaluator's
LOCKED/AVAILABLE derivation is the SYSTEM actor.
"""

from enum import Enum
from typing import Dict, List, Set, Tuple

from mission_control.engines.progression.errors import InvalidTransitionError
from mission_control.engines.progression.types import MissionStatus


class Actor(str, Enum):
    """Who triggers a transition. The first three match user roles."""
    CADET = "cadet"
    OFFICER = "officer"
    ARCHITECT = "architect"
    SYSTEM = "system"


_S = MissionStatus

# Valid transitions: (from_status, to_status) -> actors that may trigger
_TRANSITIONS: Dict[Tuple[MissionStatus, MissionStatus], Set[Actor]] = {
    # Evaluator unlocks
    (_S.LOCKED, _S.AVAILABLE): {Actor.SYSTEM},
    # Cadet transitions
    (_S.AVAILABLE, _S.IN_PROGRESS): {Actor.CADET},
    (_S.AVAILABLE, _S.COMPLETED): {Actor.CADET, Actor.ARCHITECT},
    (_S.AVAILABLE, _S.PENDING_REVIEW): {Actor.CADET},
    (_S.IN_PROGRESS, _S.COMPLETED): {Actor.CADET, Actor.ARCHITECT},
    (_S.IN_PROGRESS, _S.PENDING_REVIEW): {Actor.CADET},
    # Moderator transitions
    (_S.PENDING_REVIEW, _S.COMPLETED): {Actor.OFFICER, Actor.ARCHITECT},
    (_S.PENDING_REVIEW, _S.AVAILABLE): {Actor.OFFICER},  # rejection, the only backward move
}

# Forward order used to check monotonic progress.
_ORDER: Dict[MissionStatus, int] = {
    _S.LOCKED: 0,
    _S.AVAILABLE: 1,
    _S.IN_PROGRESS: 2,
    _S.PENDING_REVIEW: 3,
    _S.COMPLETED: 4,
}


def valid_transitions(from_status: MissionStatus) -> List[MissionStatus]:
    """Return list of valid target statuses from given status."""
    return sorted(
        {t for (f, t) in _TRANSITIONS if f == from_status},
        key=lambda s: _ORDER[s],
    )


def can_transition(actor: Actor, from_status: MissionStatus, to_status: MissionStatus) -> bool:
    """Check if actor may move a mission from_status -> to_status."""
    return actor in _TRANSITIONS.get((MissionStatus(from_status), MissionStatus(to_status)), set())


def assert_transition(actor: Actor, from_status: MissionStatus, to_status: MissionStatus) -> None:
    """Raise InvalidTransitionError unless ``can_transition``."""
    if not can_transition(actor, from_status, to_status):
        raise InvalidTransitionError(
            MissionStatus(from_status).value,
            MissionStatus(to_status).value,
            Actor(actor).value,
        )


def is_forward(from_status: MissionStatus, to_status: MissionStatus) -> bool:
    return _ORDER[MissionStatus(to_status)] >= _ORDER[MissionStatus(from_status)]


def is_rejection(from_status: MissionStatus, to_status: MissionStatus) -> bool:
    return (MissionStatus(from_status), MissionStatus(to_status)) == (_S.PENDING_REVIEW, _S.AVAILABLE)
