"""
Progression engine exceptions.

Graph and evaluation errors are data-integrity failures: they abort the call that
raised them and must reach the caller. Submission rejections are ordinary outcomes
and are returned as values (see submission.SubmissionRejection), never raised.
"""

import uuid
from typing import List, Optional


class ProgressionError(Exception):
    """Base class for all progression engine errors."""


# --- Graph construction ---


class GraphError(ProgressionError):
    """Raised when a mission graph cannot be built."""


class CycleDetectedError(GraphError):
    """The dependency edges contain a directed cycle."""

    def __init__(self, cycle: List[uuid.UUID]):
        self.cycle = cycle
        path = " -> ".join(str(m) for m in cycle)
        super().__init__(f"Dependency cycle detected: {path}")


class DanglingEdgeError(GraphError):
    """A dependency references a mission that is not part of the campaign."""

    def __init__(self, source_id: uuid.UUID, target_id: uuid.UUID, missing_id: uuid.UUID):
        self.source_id = source_id
        self.target_id = target_id
        self.missing_id = missing_id
        super().__init__(
            f"Dependency {source_id} -> {target_id} references unknown mission {missing_id}"
        )


class DuplicateMissionError(GraphError):
    """Two missions in the same campaign share an id."""

    def __init__(self, mission_id: uuid.UUID):
        self.mission_id = mission_id
        super().__init__(f"Mission {mission_id} appears more than once")


class UnknownMissionError(GraphError):
    """Lookup of a mission id that is not in the graph."""

    def __init__(self, mission_id: uuid.UUID):
        self.mission_id = mission_id
        super().__init__(f"Mission {mission_id} is not part of this graph")


# --- Evaluation ---


class EvaluationError(ProgressionError):
    """Raised when progression cannot be evaluated."""


class UnresolvedCycleError(EvaluationError):
    """Topological ordering could not place every mission."""

    def __init__(self, unresolved: List[uuid.UUID]):
        self.unresolved = unresolved
        super().__init__(
            f"Campaign data is corrupt: {len(unresolved)} mission(s) sit on a dependency cycle"
        )


class CorruptCampaignError(EvaluationError):
    """Stored campaign data failed graph validation while loading progression."""

    def __init__(self, campaign_id: uuid.UUID, reason: str):
        self.campaign_id = campaign_id
        self.reason = reason
        super().__init__(f"Campaign data is corrupt: {reason}")


class UnknownMissionReferenceError(EvaluationError):
    """
    A user mission record points at a mission outside the graph.

    Recovered locally by the evaluator (record ignored and logged); the instance is
    kept on the evaluation report so callers can inspect what was skipped.
    """

    def __init__(self, mission_id: uuid.UUID, user_id: Optional[uuid.UUID] = None):
        self.mission_id = mission_id
        self.user_id = user_id
        super().__init__(f"User mission record references unknown mission {mission_id}")


# --- State transitions ---


class InvalidTransitionError(ProgressionError):
    """A status change that the transition table does not allow."""

    def __init__(self, from_status: str, to_status: str, actor: Optional[str] = None):
        self.from_status = from_status
        self.to_status = to_status
        self.actor = actor
        suffix = f" for {actor}" if actor else ""
        super().__init__(f"Invalid transition: {from_status} -> {to_status}{suffix}")


# --- Test mode ---


class SimulationError(ProgressionError):
    """Raised by the test-mode simulator."""


class SimulationNotInitializedError(SimulationError):
    """An operation was attempted before initialize()."""

    def __init__(self) -> None:
        super().__init__("Test mode not initialized. Start test mode first.")


class MissionLockedError(SimulationError):
    """Quick-complete was requested for a mission whose prerequisites are unmet."""

    def __init__(self, mission_id: uuid.UUID, missing: List[uuid.UUID]):
        self.mission_id = mission_id
        self.missing = missing
        super().__init__(
            f"Mission {mission_id} is locked. Complete prerequisite missions first."
        )
