"""
Progression Evaluator - derives every mission's status for one user.

This is the single source of truth for mission status. The cadet map, the dashboard
and the test-mode panel all render what ``evaluate`` returns; none of them derive
status on their own.
"""

import uuid
from collections import deque
from typing import Dict, Iterable, List, Optional, Tuple

from pydantic import BaseModel

from mission_control.engines.progression.errors import (
    UnknownMissionReferenceError,
    UnresolvedCycleError,
)
from mission_control.engines.progression.graph import MissionGraph
from mission_control.engines.progression.types import (
    ADVANCED_STATUSES,
    MissionStatus,
    UserMissionRecord,
)
from mission_control.logging_config import get_logger

logger = get_logger(__name__)


class ProgressSummary(BaseModel):
    """Status counts for one user and campaign."""

    total: int = 0
    completed: int = 0
    available: int = 0
    locked: int = 0
    in_progress: int = 0
    pending_review: int = 0


class LockReason(BaseModel):
    """Why a mission is LOCKED."""

    mission_id: uuid.UUID
    missing_prerequisites: List[uuid.UUID] = []
    required_rank: Optional[int] = None
    user_rank: int


class EvaluationReport(BaseModel):
    """Statuses plus the records the evaluator had to skip."""

    statuses: Dict[uuid.UUID, MissionStatus]
    ignored_mission_ids: List[uuid.UUID] = []


def topological_order(graph: MissionGraph) -> List[uuid.UUID]:
    """
    Kahn's algorithm: repeatedly take missions whose prerequisites are all placed.

    Ties are broken by the mission's position on the map, then by id, so the order
    is stable across calls.

    Raises:
        UnresolvedCycleError: some missions could never reach in-degree zero
    """
    missions = graph.missions
    indegree = {
        mid: sum(1 for pid in graph.prerequisites_of(mid) if pid in missions)
        for mid in missions
    }

    def sort_key(mid: uuid.UUID):
        m = missions[mid]
        return (m.position_y, m.position_x, str(mid))

    ready = deque(sorted((mid for mid, deg in indegree.items() if deg == 0), key=sort_key))
    order: List[uuid.UUID] = []
    while ready:
        mid = ready.popleft()
        order.append(mid)
        released = []
        for child in graph.dependents_of(mid):
            if child not in indegree:
                continue
            indegree[child] -= 1
            if indegree[child] == 0:
                released.append(child)
        ready.extend(sorted(released, key=sort_key))

    if len(order) != len(missions):
        unresolved = sorted((mid for mid, deg in indegree.items() if deg > 0), key=str)
        logger.error(
            "Dependency cycle reached the evaluator",
            extra={"unresolved": [str(m) for m in unresolved]},
        )
        raise UnresolvedCycleError(unresolved)
    return order


def _index_records(
    graph: MissionGraph,
    records: Iterable[UserMissionRecord],
) -> Tuple[Dict[uuid.UUID, UserMissionRecord], List[uuid.UUID]]:
    by_mission: Dict[uuid.UUID, UserMissionRecord] = {}
    ignored: List[uuid.UUID] = []
    for record in records:
        if record.mission_id not in graph:
            error = UnknownMissionReferenceError(record.mission_id, record.user_id)
            logger.warning(
                "Ignoring user mission record: %s",
                error,
                extra={"mission_id": str(record.mission_id)},
            )
            ignored.append(record.mission_id)
            continue
        by_mission[record.mission_id] = record
    return by_mission, ignored


def evaluate_report(
    graph: MissionGraph,
    records: Iterable[UserMissionRecord],
    user_rank: int,
) -> EvaluationReport:
    """Like ``evaluate`` but also reports which records were ignored."""
    by_mission, ignored = _index_records(graph, records)
    statuses: Dict[uuid.UUID, MissionStatus] = {}

    for mid in topological_order(graph):
        record = by_mission.get(mid)
        if record is not None and record.status in ADVANCED_STATUSES:
            statuses[mid] = record.status
            continue

        mission = graph.mission(mid)
        prerequisites_done = all(
            statuses.get(pid) == MissionStatus.COMPLETED for pid in graph.prerequisites_of(mid)
        )
        if prerequisites_done and user_rank >= mission.min_rank:
            statuses[mid] = MissionStatus.AVAILABLE
        else:
            statuses[mid] = MissionStatus.LOCKED

    return EvaluationReport(statuses=statuses, ignored_mission_ids=ignored)


def evaluate(
    graph: MissionGraph,
    records: Iterable[UserMissionRecord],
    user_rank: int,
) -> Dict[uuid.UUID, MissionStatus]:
    """
    Derive a status for every mission in ``graph``.

    Records already moved to IN_PROGRESS, PENDING_REVIEW or COMPLETED are kept as-is.
    Everything else is AVAILABLE when all prerequisites resolved to COMPLETED and the
    user's rank reaches the mission's ``min_rank``; otherwise LOCKED. Prerequisites
    always resolve first because missions are visited in topological order.
    """
    return evaluate_report(graph, records, user_rank).statuses


def summarize(statuses: Dict[uuid.UUID, MissionStatus]) -> ProgressSummary:
    summary = ProgressSummary(total=len(statuses))
    for status in statuses.values():
        if status == MissionStatus.COMPLETED:
            summary.completed += 1
        elif status == MissionStatus.AVAILABLE:
            summary.available += 1
        elif status == MissionStatus.LOCKED:
            summary.locked += 1
        elif status == MissionStatus.IN_PROGRESS:
            summary.in_progress += 1
        else:
            summary.pending_review += 1
    return summary


def explain_lock(
    graph: MissionGraph,
    statuses: Dict[uuid.UUID, MissionStatus],
    mission_id: uuid.UUID,
    user_rank: int,
) -> Optional[LockReason]:
    """Return why ``mission_id`` is LOCKED, or None if it is not."""
    if statuses.get(mission_id) != MissionStatus.LOCKED:
        return None
    mission = graph.mission(mission_id)
    missing = sorted(
        (pid for pid in graph.prerequisites_of(mission_id)
         if statuses.get(pid) != MissionStatus.COMPLETED),
        key=str,
    )
    return LockReason(
        mission_id=mission_id,
        missing_prerequisites=missing,
        required_rank=mission.min_rank if user_rank < mission.min_rank else None,
        user_rank=user_rank,
    )
