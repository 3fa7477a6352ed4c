"""
Pydantic schemas for API request/response validation.
"""

from mission_control.schemas.common import ErrorResponse, HealthResponse, SuccessResponse
from mission_control.schemas.campaign import DependencyCreate, DependencyResponse
from mission_control.schemas.progression import (
    LeaderboardEntry,
    LeaderboardResponse,
    MissionProgress,
    ProgressionEventResponse,
    ProgressionResponse,
    RankProgressResponse,
    ReconcileRequest,
    ReconcileResponse,
    ReviewRequest,
    SubmissionResponse,
    SubmitRequest,
    UserEventsResponse,
    UserMissionResponse,
)
from mission_control.schemas.test_mode import (
    TestModeStartRequest,
    TestModeStateResponse,
    TestModeSubmitRequest,
    TestModeSubmitResponse,
)

__all__ = [
    "ErrorResponse",
    "HealthResponse",
    "SuccessResponse",
    "DependencyCreate",
    "DependencyResponse",
    "LeaderboardEntry",
    "LeaderboardResponse",
    "MissionProgress",
    "ProgressionEventResponse",
    "ProgressionResponse",
    "RankProgressResponse",
    "ReconcileRequest",
    "ReconcileResponse",
    "ReviewRequest",
    "SubmissionResponse",
    "SubmitRequest",
    "UserEventsResponse",
    "UserMissionResponse",
    "TestModeStartRequest",
    "TestModeStateResponse",
    "TestModeSubmitRequest",
    "TestModeSubmitResponse",
]
