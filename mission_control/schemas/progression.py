"""
Pydantic schemas for the progression API.
"""

import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from mission_control.engines.progression.aggregator import RankProgress, RewardTotals
from mission_control.engines.progression.evaluator import LockReason, ProgressSummary
from mission_control.engines.progression.payloads import ConfirmationType, MissionType
from mission_control.engines.progression.submission import SubmissionRejection
from mission_control.engines.progression.types import MissionStatus
from mission_control.kernel.models.event_log import EventType


class MissionProgress(BaseModel):
    """One node of the cadet map, as the evaluator sees it."""

    mission_id: uuid.UUID
    name: str
    mission_type: MissionType
    confirmation_type: ConfirmationType
    status: MissionStatus
    experience_reward: int
    mana_reward: int
    min_rank: int
    position_x: float
    position_y: float
    attempts: int = 0
    completed_at: Optional[datetime] = None
    lock_reason: Optional[LockReason] = None


class ProgressionResponse(BaseModel):
    campaign_id: uuid.UUID
    user_id: uuid.UUID
    rank_level: int
    missions: List[MissionProgress]
    summary: ProgressSummary
    totals: RewardTotals  # this campaign only
    ignored_mission_ids: List[uuid.UUID] = []


class SubmitRequest(BaseModel):
    """Cadet submission; ``payload`` shape depends on the mission type."""

    payload: Dict[str, Any] = {}


class ReviewRequest(BaseModel):
    user_id: uuid.UUID
    approved: bool
    comment: Optional[str] = Field(default=None, max_length=2000)


class UserMissionResponse(BaseModel):
    mission_id: uuid.UUID
    user_id: Optional[uuid.UUID] = None
    status: MissionStatus
    attempts: int = 0
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    submission: Optional[Dict[str, Any]] = None


class RewardResponse(BaseModel):
    experience: int = 0
    mana: int = 0
    competencies: Dict[uuid.UUID, int] = {}


class SubmissionResponse(BaseModel):
    ok: bool
    status: MissionStatus
    record: UserMissionResponse
    reward: Optional[RewardResponse] = None
    rejection: Optional[SubmissionRejection] = None
    score: Optional[int] = None
    unlocked_mission_ids: List[uuid.UUID] = []
    new_rank_level: Optional[int] = None


class RankProgressResponse(BaseModel):
    user_id: uuid.UUID
    campaign_id: Optional[uuid.UUID] = None
    totals: RewardTotals
    progress: RankProgress


class ReconcileRequest(BaseModel):
    repair: bool = False


class ReconcileResponse(BaseModel):
    user_id: uuid.UUID
    consistent: bool
    repaired: bool = False
    expected_experience: int
    expected_mana: int
    stored_experience: int
    stored_mana: int
    experience_drift: int
    mana_drift: int
    competency_drift: Dict[uuid.UUID, int] = {}


class LeaderboardEntry(BaseModel):
    position: int
    user_id: uuid.UUID
    display_name: str
    experience: int
    mana: int
    rank_level: int
    completed_missions: int


class LeaderboardResponse(BaseModel):
    campaign_id: uuid.UUID
    entries: List[LeaderboardEntry]


class ProgressionEventResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    event_type: EventType
    entity_type: str
    entity_id: uuid.UUID
    campaign_id: Optional[uuid.UUID] = None
    payload: Dict[str, Any] = {}
    created_at: datetime


class UserEventsResponse(BaseModel):
    """A user's activity feed, newest first."""

    user_id: uuid.UUID
    events: List[ProgressionEventResponse]
