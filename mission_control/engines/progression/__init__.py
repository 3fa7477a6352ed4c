"""
Progression Engine - mission graph, unlock evaluation, rewards, submissions.

Flow:
- Graph: missions + prerequisite edges, validated acyclic
- Evaluator: per-user status for every mission (LOCKED / AVAILABLE / ...)
- Submission: validates a cadet submission and picks the next status
- Aggregator: experience, mana, competency points and rank from history
- Test mode: sandboxed run of all of the above for architects
"""

from mission_control.engines.progression.aggregator import (
    RankProgress,
    RankThreshold,
    RewardTotals,
    aggregate,
    compute_rank,
    rank_level,
    rank_progress,
    reconcile,
)
from mission_control.engines.progression.campaign_validator import (
    CampaignHealthReport,
    validate_campaign,
)
from mission_control.engines.progression.evaluator import evaluate, explain_lock, summarize
from mission_control.engines.progression.graph import MissionGraph, build_graph
from mission_control.engines.progression.submission import (
    SubmissionErrorCode,
    SubmissionRejection,
    SubmissionResult,
    review,
    start,
    submit,
)
from mission_control.engines.progression.test_mode import SimulationState, TestModeSimulator
from mission_control.engines.progression.types import (
    Mission,
    MissionDependency,
    MissionStatus,
    RewardGrant,
    UserMissionRecord,
)

__all__ = [
    "RankProgress",
    "RankThreshold",
    "RewardTotals",
    "aggregate",
    "compute_rank",
    "rank_level",
    "rank_progress",
    "reconcile",
    "CampaignHealthReport",
    "validate_campaign",
    "evaluate",
    "explain_lock",
    "summarize",
    "MissionGraph",
    "build_graph",
    "SubmissionErrorCode",
    "SubmissionRejection",
    "SubmissionResult",
    "review",
    "start",
    "submit",
    "SimulationState",
    "TestModeSimulator",
    "Mission",
    "MissionDependency",
    "MissionStatus",
    "RewardGrant",
    "UserMissionRecord",
]
