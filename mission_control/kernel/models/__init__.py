"""
Kernel Data Models

SQLAlchemy models for campaigns, missions, per-user progress and the event log.
"""

from mission_control.kernel.models.base import Base, TimestampMixin, generate_uuid
from mission_control.kernel.models.user import User, UserRole
from mission_control.kernel.models.campaign import (
    Campaign,
    Competency,
    Mission,
    MissionCompetency,
    MissionDependency,
    Rank,
)
from mission_control.kernel.models.progress import UserCompetency, UserMission
from mission_control.kernel.models.event_log import EventType, ProgressionEvent
from mission_control.kernel.models.test_mode_session import TestModeSession

__all__ = [
    # Base
    "Base",
    "TimestampMixin",
    "generate_uuid",
    # User
    "User",
    "UserRole",
    # Campaign content
    "Campaign",
    "Competency",
    "Mission",
    "MissionCompetency",
    "MissionDependency",
    "Rank",
    # Progress
    "UserCompetency",
    "UserMission",
    # Events
    "EventType",
    "ProgressionEvent",
    # Test mode
    "TestModeSession",
]
