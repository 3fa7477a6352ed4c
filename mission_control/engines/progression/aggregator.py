"""
Reward & Competency Aggregator.

Totals are always recomputed from the full completion history. Running counters
stored on the user row are a cache; ``reconcile`` compares the two.
"""

import uuid
from typing import Dict, Iterable, List, Mapping, Optional, Sequence

from pydantic import BaseModel, Field

from mission_control.engines.progression.types import (
    Mission,
    MissionStatus,
    UserMissionRecord,
)
from mission_control.logging_config import get_logger

logger = get_logger(__name__)

BASE_RANK_LEVEL = 1


class RewardTotals(BaseModel):
    """Aggregated rewards over a user's COMPLETED missions."""

    total_experience: int = 0
    total_mana: int = 0
    competency_totals: Dict[uuid.UUID, int] = {}
    completed_missions: int = 0


class RankThreshold(BaseModel):
    """
    Requirements for one rank level.

    Thresholds are cumulative: reaching level N means every lower level's
    requirements are also met.
    """

    level: int = Field(ge=1)
    name: str
    title: Optional[str] = None
    min_experience: int = Field(default=0, ge=0)
    min_missions: int = Field(default=0, ge=0)
    required_competencies: Dict[uuid.UUID, int] = {}
    rewards: Dict[str, object] = {}


class RankProgress(BaseModel):
    """Where a user stands relative to the next rank."""

    current_level: int
    current_rank: Optional[RankThreshold] = None
    next_rank: Optional[RankThreshold] = None
    is_ready_for_promotion: bool = False
    missing_requirements: List[str] = []
    progress_percentage: float = 100.0


class StoredTotals(BaseModel):
    """Running counters as persisted on the user row."""

    experience: int = 0
    mana: int = 0
    competency_totals: Dict[uuid.UUID, int] = {}


class ReconciliationReport(BaseModel):
    """Result of comparing stored counters with totals re-derived from history."""

    expected: RewardTotals
    stored: StoredTotals
    experience_drift: int = 0  # stored - expected
    mana_drift: int = 0
    competency_drift: Dict[uuid.UUID, int] = {}

    @property
    def is_consistent(self) -> bool:
        return not self.experience_drift and not self.mana_drift and not self.competency_drift


def aggregate(
    records: Iterable[UserMissionRecord],
    missions: Iterable[Mission],
) -> RewardTotals:
    """
    Sum experience, mana and competency points over COMPLETED records.

    Each mission counts at most once no matter how many records reference it, and
    records for missions not in ``missions`` are skipped. The result depends only on
    the set of completed mission ids, so it is order-independent and idempotent.
    """
    by_id: Dict[uuid.UUID, Mission] = {m.id: m for m in missions}
    completed_ids = set()
    for record in records:
        if record.status != MissionStatus.COMPLETED:
            continue
        if record.mission_id not in by_id:
            logger.warning(
                "Skipping completed record for unknown mission",
                extra={"mission_id": str(record.mission_id)},
            )
            continue
        completed_ids.add(record.mission_id)

    experience = 0
    mana = 0
    competencies: Dict[uuid.UUID, int] = {}
    for mission_id in completed_ids:
        mission = by_id[mission_id]
        experience += mission.experience_reward
        mana += mission.mana_reward
        for grant in mission.competencies:
            competencies[grant.competency_id] = competencies.get(grant.competency_id, 0) + grant.points

    return RewardTotals(
        total_experience=experience,
        total_mana=mana,
        competency_totals=competencies,
        completed_missions=len(completed_ids),
    )


def _unmet_requirements(
    totals: RewardTotals,
    threshold: RankThreshold,
    competency_names: Optional[Mapping[uuid.UUID, str]] = None,
) -> List[str]:
    names = competency_names or {}
    missing: List[str] = []
    if totals.total_experience < threshold.min_experience:
        missing.append(
            f"Need {threshold.min_experience - totals.total_experience} more experience"
        )
    if totals.completed_missions < threshold.min_missions:
        missing.append(
            f"Complete {threshold.min_missions - totals.completed_missions} more missions"
        )
    for competency_id, required in threshold.required_competencies.items():
        have = totals.competency_totals.get(competency_id, 0)
        if have < required:
            label = names.get(competency_id, str(competency_id))
            missing.append(f"{label}: {have}/{required} points")
    return missing


def meets_threshold(totals: RewardTotals, threshold: RankThreshold) -> bool:
    return not _unmet_requirements(totals, threshold)


def compute_rank(
    totals: RewardTotals,
    thresholds: Sequence[RankThreshold],
) -> Optional[RankThreshold]:
    """
    Highest rank reached, walking thresholds in ascending level order.

    Stops at the first threshold that fails, so a rank is never granted while a
    lower one is unmet. Returns None when even the lowest threshold fails.
    """
    reached: Optional[RankThreshold] = None
    for threshold in sorted(thresholds, key=lambda t: t.level):
        if not meets_threshold(totals, threshold):
            break
        reached = threshold
    return reached


def rank_level(
    totals: RewardTotals,
    thresholds: Sequence[RankThreshold],
    base: int = BASE_RANK_LEVEL,
) -> int:
    """Numeric rank for availability gating; ``base`` when nothing is reached."""
    reached = compute_rank(totals, thresholds)
    return max(base, reached.level) if reached else base


def rank_progress(
    totals: RewardTotals,
    thresholds: Sequence[RankThreshold],
    competency_names: Optional[Mapping[uuid.UUID, str]] = None,
    base: int = BASE_RANK_LEVEL,
) -> RankProgress:
    ordered = sorted(thresholds, key=lambda t: t.level)
    current = compute_rank(totals, ordered)
    current_level = max(base, current.level) if current else base

    next_rank = next((t for t in ordered if t.level > current_level), None)
    if next_rank is None:
        return RankProgress(current_level=current_level, current_rank=current)

    missing = _unmet_requirements(totals, next_rank, competency_names)
    if next_rank.min_experience > 0:
        percentage = min(100.0, totals.total_experience / next_rank.min_experience * 100)
    else:
        percentage = 100.0
    return RankProgress(
        current_level=current_level,
        current_rank=current,
        next_rank=next_rank,
        is_ready_for_promotion=not missing,
        missing_requirements=missing,
        progress_percentage=round(percentage, 1),
    )


def reconcile(
    stored: StoredTotals,
    records: Iterable[UserMissionRecord],
    missions: Iterable[Mission],
) -> ReconciliationReport:
    """Recompute totals from history and report drift against ``stored``."""
    expected = aggregate(records, missions)

    competency_drift: Dict[uuid.UUID, int] = {}
    for competency_id in set(expected.competency_totals) | set(stored.competency_totals):
        diff = stored.competency_totals.get(competency_id, 0) - expected.competency_totals.get(competency_id, 0)
        if diff:
            competency_drift[competency_id] = diff

    report = ReconciliationReport(
        expected=expected,
        stored=stored,
        experience_drift=stored.experience - expected.total_experience,
        mana_drift=stored.mana - expected.total_mana,
        competency_drift=competency_drift,
    )
    if not report.is_consistent:
        logger.warning(
            "Reward counters drifted from completion history",
            extra={
                "experience_drift": report.experience_drift,
                "mana_drift": report.mana_drift,
                "competencies_drifted": len(competency_drift),
            },
        )
    return report
