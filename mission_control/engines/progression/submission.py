"""
Submission Pipeline - validates a cadet submission and decides the next status.

Rejections are returned as values. The pipeline never writes anything; callers
persist ``SubmissionResult.record`` and apply ``SubmissionResult.reward`` once.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel

from mission_control.engines.progression.grader import Grader, QuizGrade
from mission_control.engines.progression.payloads import ConfirmationType, MissionType
from mission_control.engines.progression.types import (
    Mission,
    MissionStatus,
    RewardGrant,
    UserMissionRecord,
)
from mission_control.engines.progression.validators import parse_submission, validate_submission
from mission_control.logging_config import get_logger
from mission_control.orchestration.state_machine import Actor, assert_transition

logger = get_logger(__name__)

SUBMITTABLE_STATUSES = frozenset({MissionStatus.AVAILABLE, MissionStatus.IN_PROGRESS})


class SubmissionErrorCode(str, Enum):
    NOT_AVAILABLE = "NOT_AVAILABLE"
    INVALID_PAYLOAD = "INVALID_PAYLOAD"
    ALREADY_COMPLETED = "ALREADY_COMPLETED"
    QUIZ_FAILED = "QUIZ_FAILED"


class SubmissionRejection(BaseModel):
    """User-facing reason a submission did not go through."""

    code: SubmissionErrorCode
    message: str
    field: Optional[str] = None
    score: Optional[int] = None
    passing_score: Optional[int] = None
    retry_allowed: bool = False
    attempts_remaining: Optional[int] = None  # None = unlimited


class SubmissionResult(BaseModel):
    """
    Outcome of a submit or review.

    ``record`` is what the caller should persist. It differs from the input only when
    something changed (a new status, or a failed quiz attempt being counted).
    """

    ok: bool
    status: MissionStatus
    record: UserMissionRecord
    reward: Optional[RewardGrant] = None
    rejection: Optional[SubmissionRejection] = None
    score: Optional[int] = None


def _now(now: Optional[datetime]) -> datetime:
    return now or datetime.now(timezone.utc)


def _reject(
    record: UserMissionRecord,
    code: SubmissionErrorCode,
    message: str,
    **details: Any,
) -> SubmissionResult:
    return SubmissionResult(
        ok=False,
        status=record.status,
        record=record,
        rejection=SubmissionRejection(code=code, message=message, **details),
        score=details.get("score"),
    )


def target_status(mission: Mission) -> MissionStatus:
    """AUTO confirmation completes immediately; anything else waits for a moderator."""
    if mission.confirmation_type == ConfirmationType.AUTO:
        return MissionStatus.COMPLETED
    return MissionStatus.PENDING_REVIEW


def _check_record(mission: Mission, record: UserMissionRecord) -> None:
    if record.mission_id != mission.id:
        raise ValueError(f"Record for mission {record.mission_id} passed with mission {mission.id}")


def submit(
    mission: Mission,
    record: UserMissionRecord,
    payload: Any,
    now: Optional[datetime] = None,
) -> SubmissionResult:
    """
    Run one cadet submission through the pipeline.

    Steps:
    1. COMPLETED -> ALREADY_COMPLETED; anything but AVAILABLE / IN_PROGRESS -> NOT_AVAILABLE.
    2. Parse and validate ``payload`` for the mission type -> INVALID_PAYLOAD.
    3. Quizzes are graded; a failing score counts an attempt and returns QUIZ_FAILED.
    4. AUTO -> COMPLETED with a reward grant, otherwise PENDING_REVIEW.
    """
    _check_record(mission, record)

    if record.status == MissionStatus.COMPLETED:
        return _reject(record, SubmissionErrorCode.ALREADY_COMPLETED, "Mission already completed")
    if record.status not in SUBMITTABLE_STATUSES:
        return _reject(
            record,
            SubmissionErrorCode.NOT_AVAILABLE,
            f"Mission is {record.status.value.lower().replace('_', ' ')}",
        )

    quiz_payload = mission.payload if mission.mission_type == MissionType.QUIZ else None
    if quiz_payload is not None:
        remaining = Grader.attempts_remaining(quiz_payload, record.attempts)
        if remaining == 0:
            return _reject(
                record,
                SubmissionErrorCode.QUIZ_FAILED,
                "No attempts left for this quiz",
                passing_score=quiz_payload.passing_score,
                retry_allowed=False,
                attempts_remaining=0,
            )

    parsed, invalid = parse_submission(mission, payload)
    if invalid is None:
        invalid = validate_submission(mission, parsed)
    if invalid is not None:
        return _reject(
            record,
            SubmissionErrorCode.INVALID_PAYLOAD,
            invalid.message,
            field=invalid.field,
        )

    submission_data: Dict[str, Any] = parsed.model_dump(mode="json")
    grade: Optional[QuizGrade] = None
    attempts = record.attempts
    if quiz_payload is not None:
        grade = Grader.grade(quiz_payload, parsed)
        attempts += 1
        submission_data["score"] = grade.score
        if not grade.passed:
            remaining = Grader.attempts_remaining(quiz_payload, attempts)
            counted = record.model_copy(update={"attempts": attempts, "submission": submission_data})
            logger.info(
                "Quiz attempt failed",
                extra={"mission_id": str(mission.id), "score": grade.score, "attempts": attempts},
            )
            return _reject(
                counted,
                SubmissionErrorCode.QUIZ_FAILED,
                f"Score {grade.score}% is below the passing score of {grade.passing_score}%",
                score=grade.score,
                passing_score=grade.passing_score,
                retry_allowed=remaining is None or remaining > 0,
                attempts_remaining=remaining,
            )

    new_status = target_status(mission)
    assert_transition(Actor.CADET, record.status, new_status)

    stamp = _now(now)
    updated = record.model_copy(update={
        "status": new_status,
        "attempts": attempts,
        "submission": submission_data,
        "started_at": record.started_at or stamp,
        "completed_at": stamp if new_status == MissionStatus.COMPLETED else None,
    })
    return SubmissionResult(
        ok=True,
        status=new_status,
        record=updated,
        reward=RewardGrant.for_mission(mission) if new_status == MissionStatus.COMPLETED else None,
        score=grade.score if grade else None,
    )


def start(mission: Mission, record: UserMissionRecord, now: Optional[datetime] = None) -> UserMissionRecord:
    """AVAILABLE -> IN_PROGRESS. Raises InvalidTransitionError from any other status."""
    _check_record(mission, record)
    assert_transition(Actor.CADET, record.status, MissionStatus.IN_PROGRESS)
    return record.model_copy(update={
        "status": MissionStatus.IN_PROGRESS,
        "started_at": record.started_at or _now(now),
    })


def review(
    mission: Mission,
    record: UserMissionRecord,
    approved: bool,
    comment: Optional[str] = None,
    now: Optional[datetime] = None,
    actor: Actor = Actor.OFFICER,
) -> SubmissionResult:
    """
    Moderator decision on a PENDING_REVIEW submission.

    Approval completes the mission and grants its reward. Rejection sends it back to
    AVAILABLE so the cadet can resubmit. For quizzes the attempt spent on the rejected
    submission is given back, otherwise a single-attempt quiz could never be resubmitted.
    """
    _check_record(mission, record)
    new_status = MissionStatus.COMPLETED if approved else MissionStatus.AVAILABLE
    assert_transition(actor, record.status, new_status)

    submission = dict(record.submission or {})
    if comment:
        submission["officer_comment"] = comment
    submission["review"] = "approved" if approved else "rejected"

    attempts = record.attempts
    if not approved and mission.mission_type == MissionType.QUIZ:
        attempts = max(0, attempts - 1)

    updated = record.model_copy(update={
        "status": new_status,
        "attempts": attempts,
        "submission": submission,
        "completed_at": _now(now) if approved else None,
    })
    return SubmissionResult(
        ok=True,
        status=new_status,
        record=updated,
        reward=RewardGrant.for_mission(mission) if approved else None,
    )
