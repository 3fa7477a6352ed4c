"""
Progression endpoints - cadet map, enrollment, start, submit, review, ranks.
"""

import uuid
from typing import List, Optional

from fastapi import APIRouter, HTTPException, Query, status
from fastapi.responses import JSONResponse

from mission_control.api.deps import CurrentUser, DbSession, OfficerUser, StaffUser
from mission_control.engines.progression.submission import SubmissionErrorCode, SubmissionResult
from mission_control.engines.progression.types import UserMissionRecord
from mission_control.kernel.models.event_log import EventType
from mission_control.kernel.models.user import UserRole
from mission_control.schemas.progression import (
    LeaderboardResponse,
    ProgressionEventResponse,
    ProgressionResponse,
    RankProgressResponse,
    ReconcileRequest,
    ReconcileResponse,
    ReviewRequest,
    RewardResponse,
    SubmissionResponse,
    SubmitRequest,
    UserEventsResponse,
    UserMissionResponse,
)
from mission_control.services.progression_service import ProgressionService, SubmissionOutcome

router = APIRouter()

# Rejections the cadet can fix by changing the submission
_UNPROCESSABLE = {SubmissionErrorCode.INVALID_PAYLOAD, SubmissionErrorCode.QUIZ_FAILED}


def record_to_schema(record: UserMissionRecord) -> UserMissionResponse:
    return UserMissionResponse(**record.model_dump())


def result_to_schema(
    result: SubmissionResult,
    outcome: Optional[SubmissionOutcome] = None,
) -> SubmissionResponse:
    reward = None
    if result.reward is not None:
        reward = RewardResponse(
            experience=result.reward.experience,
            mana=result.reward.mana,
            competencies=result.reward.competencies,
        )
    return SubmissionResponse(
        ok=result.ok,
        status=result.status,
        record=record_to_schema(result.record),
        reward=reward,
        rejection=result.rejection,
        score=result.score,
        unlocked_mission_ids=outcome.unlocked if outcome else [],
        new_rank_level=outcome.new_rank if outcome else None,
    )


def _require_self_or_staff(user, user_id: uuid.UUID, detail: str) -> None:
    if user.id != user_id and UserRole(user.role) == UserRole.CADET:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=detail)


def submission_response(result: SubmissionResult, outcome: Optional[SubmissionOutcome] = None):
    """200 for accepted submissions; 422 or 409 with the rejection body otherwise."""
    body = result_to_schema(result, outcome)
    if result.rejection is None:
        return body
    code = (
        status.HTTP_422_UNPROCESSABLE_ENTITY
        if result.rejection.code in _UNPROCESSABLE
        else status.HTTP_409_CONFLICT
    )
    return JSONResponse(status_code=code, content=body.model_dump(mode="json"))


@router.get("/campaigns/{campaign_id}/progression", response_model=ProgressionResponse)
async def get_progression(campaign_id: uuid.UUID, user: CurrentUser, db: DbSession):
    """Every mission's status for the current user, with totals and lock reasons."""
    return await ProgressionService(db).get_progression(user, campaign_id)


@router.post("/campaigns/{campaign_id}/enroll", response_model=ProgressionResponse)
async def enroll(campaign_id: uuid.UUID, user: CurrentUser, db: DbSession):
    return await ProgressionService(db).enroll(user, campaign_id)


@router.post("/missions/{mission_id}/start", response_model=UserMissionResponse)
async def start_mission(mission_id: uuid.UUID, user: CurrentUser, db: DbSession):
    record = await ProgressionService(db).start_mission(user, mission_id)
    return record_to_schema(record)


@router.post("/missions/{mission_id}/submit", response_model=SubmissionResponse)
async def submit_mission(
    mission_id: uuid.UUID,
    request: SubmitRequest,
    user: CurrentUser,
    db: DbSession,
):
    """
    Submit mission work.

    Rejections come back with the rejection body: 422 for an invalid payload or a
    failed quiz, 409 when the mission is not available or already completed.
    """
    outcome = await ProgressionService(db).submit(user, mission_id, request.payload)
    return submission_response(outcome.result, outcome)


@router.post("/missions/{mission_id}/review", response_model=SubmissionResponse)
async def review_submission(
    mission_id: uuid.UUID,
    request: ReviewRequest,
    moderator: OfficerUser,
    db: DbSession,
):
    """Approve (COMPLETED) or reject (back to AVAILABLE) a pending submission."""
    outcome = await ProgressionService(db).review(
        moderator, request.user_id, mission_id, request.approved, request.comment,
    )
    return result_to_schema(outcome.result, outcome)


@router.get("/users/{user_id}/rank-progress", response_model=RankProgressResponse)
async def get_rank_progress(
    user_id: uuid.UUID,
    user: CurrentUser,
    db: DbSession,
    campaign_id: Optional[uuid.UUID] = None,
):
    _require_self_or_staff(user, user_id, "Cadets can only view their own rank")
    return await ProgressionService(db).rank_progress(user_id, campaign_id)


@router.get("/users/{user_id}/events", response_model=UserEventsResponse)
async def get_user_events(
    user_id: uuid.UUID,
    user: CurrentUser,
    db: DbSession,
    campaign_id: Optional[uuid.UUID] = None,
    event_type: Optional[List[EventType]] = Query(default=None),
    limit: int = Query(default=50, ge=1, le=200),
):
    """Activity feed: unlocks, completions, reviews and promotions, newest first."""
    _require_self_or_staff(user, user_id, "Cadets can only view their own activity")
    events = await ProgressionService(db).user_events(
        user_id, campaign_id=campaign_id, event_types=event_type, limit=limit,
    )
    return UserEventsResponse(
        user_id=user_id,
        events=[ProgressionEventResponse.model_validate(e) for e in events],
    )


@router.post("/users/{user_id}/reconcile", response_model=ReconcileResponse)
async def reconcile_totals(
    user_id: uuid.UUID,
    request: ReconcileRequest,
    staff: StaffUser,
    db: DbSession,
):
    """Audit running counters against completion history; optionally repair them."""
    report, repaired = await ProgressionService(db).reconcile(user_id, repair=request.repair)
    return ReconcileResponse(
        user_id=user_id,
        consistent=report.is_consistent,
        repaired=repaired,
        expected_experience=report.expected.total_experience,
        expected_mana=report.expected.total_mana,
        stored_experience=report.stored.experience,
        stored_mana=report.stored.mana,
        experience_drift=report.experience_drift,
        mana_drift=report.mana_drift,
        competency_drift=report.competency_drift,
    )


@router.get("/campaigns/{campaign_id}/leaderboard", response_model=LeaderboardResponse)
async def get_leaderboard(
    campaign_id: uuid.UUID,
    user: CurrentUser,
    db: DbSession,
    limit: Optional[int] = Query(default=None, ge=1),
):
    entries = await ProgressionService(db).leaderboard(campaign_id, limit)
    return LeaderboardResponse(campaign_id=campaign_id, entries=entries)
