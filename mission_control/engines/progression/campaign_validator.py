"""
Campaign Validator - structural health check an architect runs before publishing.
"""

import uuid
from enum import Enum
from typing import Dict, Iterable, List, Optional

from pydantic import BaseModel

from mission_control.engines.progression.graph import MissionGraph
from mission_control.engines.progression.types import Mission, MissionDependency


class IssueKind(str, Enum):
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


class IssueSeverity(str, Enum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


SEVERITY_WEIGHTS: Dict[IssueSeverity, int] = {
    IssueSeverity.CRITICAL: 30,
    IssueSeverity.HIGH: 15,
    IssueSeverity.MEDIUM: 5,
    IssueSeverity.LOW: 2,
}

MANY_ENTRY_POINTS = 5
MANY_DEAD_ENDS = 3


class CampaignIssue(BaseModel):
    kind: IssueKind
    severity: IssueSeverity
    code: str
    message: str
    mission_id: Optional[uuid.UUID] = None
    mission_name: Optional[str] = None
    suggestion: Optional[str] = None


class CampaignHealthSummary(BaseModel):
    total_missions: int = 0
    total_issues: int = 0
    critical: int = 0
    high: int = 0
    medium: int = 0
    low: int = 0
    entry_points: int = 0
    dead_ends: int = 0
    orphaned: int = 0


class CampaignHealthReport(BaseModel):
    is_valid: bool
    health_score: int
    issues: List[CampaignIssue]
    summary: CampaignHealthSummary


def health_score(issues: Iterable[CampaignIssue]) -> int:
    """100 minus weighted issue counts, floored at 0."""
    return max(0, 100 - sum(SEVERITY_WEIGHTS[i.severity] for i in issues))


def _mission_issue(mission: Mission, kind: IssueKind, severity: IssueSeverity, code: str,
                   message: str, suggestion: str) -> CampaignIssue:
    return CampaignIssue(
        kind=kind,
        severity=severity,
        code=code,
        message=message,
        mission_id=mission.id,
        mission_name=mission.name,
        suggestion=suggestion,
    )


def validate_campaign(
    missions: Iterable[Mission],
    dependencies: Iterable[MissionDependency],
) -> CampaignHealthReport:
    """
    Check a campaign's graph without refusing to look at broken data.

    Unlike ``build_graph`` this never raises: cycles and dangling edges are
    reported as critical issues next to the softer content warnings.
    """
    mission_list = list(missions)
    graph = MissionGraph(mission_list, dependencies)
    names = {m.id: m.name for m in mission_list}
    issues: List[CampaignIssue] = []

    if not mission_list:
        issues.append(CampaignIssue(
            kind=IssueKind.WARNING,
            severity=IssueSeverity.HIGH,
            code="empty_campaign",
            message="Campaign has no missions",
            suggestion="Add at least one mission before launching the campaign",
        ))

    dangling = graph.find_dangling_edge()
    if dangling:
        dep, missing = dangling
        issues.append(CampaignIssue(
            kind=IssueKind.ERROR,
            severity=IssueSeverity.CRITICAL,
            code="dangling_dependency",
            message=f"Dependency {dep.source_mission_id} -> {dep.target_mission_id} references unknown mission {missing}",
            suggestion="Remove the dependency or restore the mission",
        ))

    cycle = graph.find_cycle()
    if cycle:
        path = " -> ".join(names.get(mid, str(mid)) for mid in cycle)
        issues.append(CampaignIssue(
            kind=IssueKind.ERROR,
            severity=IssueSeverity.CRITICAL,
            code="cycle",
            message=f"Circular dependency: {path}",
            suggestion="Remove one of the dependencies to break the cycle",
        ))

    orphaned: List[Mission] = []
    if len(mission_list) > 1:
        orphaned = [
            m for m in mission_list
            if not graph.prerequisites_of(m.id) and not graph.dependents_of(m.id)
        ]
    for mission in orphaned:
        issues.append(_mission_issue(
            mission, IssueKind.WARNING, IssueSeverity.MEDIUM, "orphaned_mission",
            f'Mission "{mission.name}" is not connected to any other mission',
            "Add dependencies to place it on a path",
        ))

    for mission in mission_list:
        if mission.experience_reward == 0 and mission.mana_reward == 0:
            issues.append(_mission_issue(
                mission, IssueKind.WARNING, IssueSeverity.LOW, "no_rewards",
                f'Mission "{mission.name}" gives no rewards',
                "Add experience or mana to motivate cadets",
            ))

    entry_points = graph.roots()
    if mission_list and not entry_points:
        issues.append(CampaignIssue(
            kind=IssueKind.ERROR,
            severity=IssueSeverity.HIGH,
            code="no_entry_point",
            message="No starting mission: every mission has prerequisites",
            suggestion="Create at least one mission without incoming dependencies",
        ))
    elif len(entry_points) > MANY_ENTRY_POINTS:
        issues.append(CampaignIssue(
            kind=IssueKind.INFO,
            severity=IssueSeverity.LOW,
            code="many_entry_points",
            message=f"Many starting missions ({len(entry_points)})",
            suggestion="Consider merging some paths",
        ))

    dead_ends = graph.leaves() if len(mission_list) > 1 else []
    if len(dead_ends) > MANY_DEAD_ENDS:
        issues.append(CampaignIssue(
            kind=IssueKind.INFO,
            severity=IssueSeverity.LOW,
            code="many_dead_ends",
            message=f"Many final missions ({len(dead_ends)})",
            suggestion="Consider a single final mission",
        ))

    for mission in mission_list:
        if not (mission.description or "").strip():
            issues.append(_mission_issue(
                mission, IssueKind.WARNING, IssueSeverity.LOW, "missing_description",
                f'Mission "{mission.name}" has no description',
                "Describe what the cadet has to do",
            ))

    counts = {s: sum(1 for i in issues if i.severity == s) for s in IssueSeverity}
    summary = CampaignHealthSummary(
        total_missions=len(mission_list),
        total_issues=len(issues),
        critical=counts[IssueSeverity.CRITICAL],
        high=counts[IssueSeverity.HIGH],
        medium=counts[IssueSeverity.MEDIUM],
        low=counts[IssueSeverity.LOW],
        entry_points=len(entry_points),
        dead_ends=len(dead_ends),
        orphaned=len(orphaned),
    )
    return CampaignHealthReport(
        is_valid=summary.critical == 0 and summary.high == 0,
        health_score=health_score(issues),
        issues=issues,
        summary=summary,
    )
