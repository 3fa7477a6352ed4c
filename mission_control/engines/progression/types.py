"""
Engine-side data types.

These are plain pydantic records handed to the engine by its callers. They are
independent of the ORM rows in ``mission_control.kernel.models``.
"""

import uuid
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from mission_control.engines.progression.payloads import (
    ConfirmationType,
    MissionPayload,
    MissionType,
    normalize_payload,
)


class MissionStatus(str, Enum):
    """Per-user mission status."""
    LOCKED = "LOCKED"
    AVAILABLE = "AVAILABLE"
    IN_PROGRESS = "IN_PROGRESS"
    PENDING_REVIEW = "PENDING_REVIEW"
    COMPLETED = "COMPLETED"


# Statuses a submission has already moved forward; the evaluator never recomputes them.
ADVANCED_STATUSES = frozenset(
    {MissionStatus.IN_PROGRESS, MissionStatus.PENDING_REVIEW, MissionStatus.COMPLETED}
)


class CompetencyGrant(BaseModel):
    """Competency points awarded when a mission is completed."""

    model_config = ConfigDict(frozen=True)

    competency_id: uuid.UUID
    points: int = Field(gt=0)


class Mission(BaseModel):
    """A mission as seen by the engine."""

    model_config = ConfigDict(frozen=True)

    id: uuid.UUID
    campaign_id: Optional[uuid.UUID] = None
    name: str
    description: Optional[str] = None
    mission_type: MissionType = MissionType.CUSTOM
    payload: Optional[MissionPayload] = Field(default=None, validate_default=True)
    confirmation_type: ConfirmationType = ConfirmationType.AUTO
    experience_reward: int = Field(default=0, ge=0)
    mana_reward: int = Field(default=0, ge=0)
    min_rank: int = Field(default=1, ge=1)
    position_x: float = 0.0
    position_y: float = 0.0
    competencies: List[CompetencyGrant] = []

    @field_validator("payload", mode="before")
    @classmethod
    def _coerce_payload(cls, value: Any, info) -> Any:
        mission_type = info.data.get("mission_type", MissionType.CUSTOM)
        return normalize_payload(mission_type, value)


class MissionDependency(BaseModel):
    """Edge ``source -> target``: source must be COMPLETED before target is reachable."""

    model_config = ConfigDict(frozen=True)

    source_mission_id: uuid.UUID
    target_mission_id: uuid.UUID


class UserMissionRecord(BaseModel):
    """The mutable per-(user, mission) progress record."""

    mission_id: uuid.UUID
    user_id: Optional[uuid.UUID] = None
    status: MissionStatus = MissionStatus.LOCKED
    attempts: int = 0
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    submission: Optional[Dict[str, Any]] = None


class RewardGrant(BaseModel):
    """Rewards to write once when a mission becomes COMPLETED."""

    mission_id: uuid.UUID
    experience: int = 0
    mana: int = 0
    competencies: Dict[uuid.UUID, int] = {}

    @classmethod
    def for_mission(cls, mission: Mission) -> "RewardGrant":
        competencies: Dict[uuid.UUID, int] = {}
        for grant in mission.competencies:
            competencies[grant.competency_id] = competencies.get(grant.competency_id, 0) + grant.points
        return cls(
            mission_id=mission.id,
            experience=mission.experience_reward,
            mana=mission.mana_reward,
            competencies=competencies,
        )
