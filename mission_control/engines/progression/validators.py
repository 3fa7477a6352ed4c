"""
Submission validators, one per mission type.

Each validator checks a parsed submission against the mission's payload and
returns an InvalidField describing the first problem, or None.
"""

import re
from datetime import date
from typing import Callable, Dict, Optional, Tuple

from pydantic import BaseModel, ValidationError

from mission_control.engines.progression.payloads import (
    SUBMISSION_MODELS,
    ConfirmationType,
    CustomPayload,
    CustomSubmission,
    EventSubmission,
    ExternalActionPayload,
    ExternalActionSubmission,
    FileUploadPayload,
    FileUploadSubmission,
    FormField,
    FormFieldType,
    FormPayload,
    FormSubmission,
    MissionType,
    OfflineEventPayload,
    OnlineEventPayload,
    QuizPayload,
    QuizQuestionType,
    QuizSubmission,
    SubmissionFormat,
    VideoPayload,
    VideoSubmission,
)
from mission_control.engines.progression.types import Mission
from mission_control.logging_config import get_logger

logger = get_logger(__name__)
_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
_URL_RE = re.compile(r"^https?://\S+$", re.IGNORECASE)


class InvalidField(BaseModel):
    """Field-level reason a submission was refused."""

    field: Optional[str] = None
    message: str


Validator = Callable[[Mission, BaseModel, BaseModel], Optional[InvalidField]]


def parse_submission(mission: Mission, raw) -> Tuple[Optional[BaseModel], Optional[InvalidField]]:
    """Parse a raw submission into the model for the mission's type."""
    model_cls = SUBMISSION_MODELS[mission.mission_type]
    if isinstance(raw, model_cls):
        return raw, None
    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        return None, InvalidField(message="Submission must be an object")
    try:
        return model_cls.model_validate(raw), None
    except ValidationError as exc:
        first = exc.errors()[0]
        field = ".".join(str(p) for p in first.get("loc", ())) or None
        return None, InvalidField(field=field, message=first.get("msg", "Invalid value"))


def _validate_quiz(mission: Mission, payload: QuizPayload, submission: QuizSubmission) -> Optional[InvalidField]:
    questions = {q.id: q for q in payload.questions}
    for index, answer in enumerate(submission.answers):
        question = questions.get(answer.question_id)
        if question is None:
            return InvalidField(
                field=f"answers.{index}.question_id",
                message=f"Unknown question {answer.question_id}",
            )
        if question.question_type == QuizQuestionType.TEXT:
            continue
        option_ids = {o.id for o in question.answers}
        unknown = [a for a in answer.answer_ids if option_ids and a not in option_ids]
        if unknown:
            return InvalidField(
                field=f"answers.{index}.answer_ids",
                message=f"Unknown answer option(s): {', '.join(unknown)}",
            )
        if question.question_type == QuizQuestionType.SINGLE and len(answer.answer_ids) > 1:
            return InvalidField(
                field=f"answers.{index}.answer_ids",
                message="Single-choice question accepts one answer",
            )

    answered = {a.question_id: a for a in submission.answers}
    for question in payload.questions:
        if not question.required:
            continue
        answer = answered.get(question.id)
        if question.question_type == QuizQuestionType.TEXT:
            ok = answer is not None and bool((answer.text_answer or "").strip())
        else:
            ok = answer is not None and bool(answer.answer_ids)
        if not ok:
            return InvalidField(field=f"answers.{question.id}", message="Answer required")
    return None


def _validate_video(mission: Mission, payload: VideoPayload, submission: VideoSubmission) -> Optional[InvalidField]:
    if payload.allow_skip:
        return None
    percentage = submission.watch_percentage
    if percentage is None:
        total = submission.total_duration or payload.duration or 0
        if total <= 0:
            return InvalidField(field="total_duration", message="Video duration is unknown")
        percentage = submission.watched_duration / total
    if percentage < payload.watch_threshold:
        return InvalidField(
            field="watch_percentage",
            message=f"Watch at least {round(payload.watch_threshold * 100)}% of the video",
        )
    return None


def _extension(file_name: str) -> str:
    return file_name.rsplit(".", 1)[-1].lower() if "." in file_name else ""


def _validate_file_upload(
    mission: Mission, payload: FileUploadPayload, submission: FileUploadSubmission,
) -> Optional[InvalidField]:
    count = len(submission.files)
    if count < 1:
        return InvalidField(field="files", message="At least one file is required")
    if count != payload.required_files:
        return InvalidField(
            field="files",
            message=f"Exactly {payload.required_files} file(s) required, got {count}",
        )
    allowed = {f.lower().lstrip(".") for f in payload.allowed_formats}
    for index, uploaded in enumerate(submission.files):
        if allowed and _extension(uploaded.file_name) not in allowed:
            return InvalidField(
                field=f"files.{index}.file_name",
                message=f"Allowed formats: {', '.join(sorted(allowed))}",
            )
        if uploaded.file_size > payload.max_file_size:
            return InvalidField(
                field=f"files.{index}.file_size",
                message=f"File exceeds {payload.max_file_size} bytes",
            )
    return None


def _check_form_value(field: FormField, value) -> Optional[str]:
    values = value if isinstance(value, list) else [value]
    if field.field_type == FormFieldType.CHECKBOX:
        if field.options and any(v not in field.options for v in values):
            return "Unknown option"
        return None
    if isinstance(value, list):
        return "Expected a single value"
    if field.field_type in (FormFieldType.SELECT, FormFieldType.RADIO):
        if field.options and value not in field.options:
            return "Unknown option"
    elif field.field_type == FormFieldType.NUMBER:
        try:
            float(value)
        except ValueError:
            return "Expected a number"
    elif field.field_type == FormFieldType.EMAIL:
        if not _EMAIL_RE.match(value):
            return "Invalid email address"
    elif field.field_type == FormFieldType.DATE:
        try:
            date.fromisoformat(value)
        except ValueError:
            return "Expected a date (YYYY-MM-DD)"
    if field.min_length is not None and len(value) < field.min_length:
        return f"Minimum length is {field.min_length}"
    if field.max_length is not None and len(value) > field.max_length:
        return f"Maximum length is {field.max_length}"
    if field.pattern:
        try:
            matched = re.fullmatch(field.pattern, value)
        except re.error:
            logger.warning("Ignoring invalid form pattern", extra={"field_id": field.id})
            return None
        if not matched:
            return "Value does not match the required format"
    return None


def _validate_form(mission: Mission, payload: FormPayload, submission: FormSubmission) -> Optional[InvalidField]:
    fields = {f.id: f for f in payload.fields}
    responses = {}
    for response in submission.responses:
        if response.field_id not in fields:
            return InvalidField(field=f"responses.{response.field_id}", message="Unknown field")
        responses[response.field_id] = response.value

    for field in payload.fields:
        value = responses.get(field.id)
        empty = value is None or value == "" or value == []
        if empty:
            if field.required:
                return InvalidField(field=f"responses.{field.id}", message=f"{field.label or field.id} is required")
            continue
        problem = _check_form_value(field, value)
        if problem:
            return InvalidField(field=f"responses.{field.id}", message=problem)
    return None


def _validate_offline_event(
    mission: Mission, payload: OfflineEventPayload, submission: EventSubmission,
) -> Optional[InvalidField]:
    code = (submission.verification_code or "").strip()
    needs_code = payload.qr_code or mission.confirmation_type == ConfirmationType.QR_SCAN
    if needs_code and not code:
        return InvalidField(field="verification_code", message="Scan the event QR code")
    if payload.qr_code and code != payload.qr_code:
        return InvalidField(field="verification_code", message="QR code does not match this event")
    return None


def _validate_online_event(
    mission: Mission, payload: OnlineEventPayload, submission: EventSubmission,
) -> Optional[InvalidField]:
    if submission.attended_at and payload.start_time and payload.end_time:
        if not payload.start_time <= submission.attended_at <= payload.end_time:
            return InvalidField(field="attended_at", message="Attendance is outside the event window")
    return None


def _validate_external_action(
    mission: Mission, payload: ExternalActionPayload, submission: ExternalActionSubmission,
) -> Optional[InvalidField]:
    if not (submission.evidence_url or "").strip() and not (submission.comment or "").strip():
        return InvalidField(field="evidence_url", message="Provide a link or a comment as evidence")
    return None


def _validate_custom(mission: Mission, payload: CustomPayload, submission: CustomSubmission) -> Optional[InvalidField]:
    fmt = payload.submission_format
    content = submission.content.strip()
    if fmt == SubmissionFormat.TEXT and not content:
        return InvalidField(field="content", message="A text answer is required")
    if fmt == SubmissionFormat.FILE and not submission.attachments:
        return InvalidField(field="attachments", message="Attach at least one file")
    if fmt == SubmissionFormat.LINK and not _URL_RE.match(content):
        return InvalidField(field="content", message="A valid http(s) link is required")
    return None


VALIDATORS: Dict[MissionType, Validator] = {
    MissionType.QUIZ: _validate_quiz,
    MissionType.VIDEO: _validate_video,
    MissionType.FILE_UPLOAD: _validate_file_upload,
    MissionType.FORM: _validate_form,
    MissionType.OFFLINE_EVENT: _validate_offline_event,
    MissionType.ONLINE_EVENT: _validate_online_event,
    MissionType.EXTERNAL_ACTION: _validate_external_action,
    MissionType.CUSTOM: _validate_custom,
}

if set(VALIDATORS) != set(MissionType):
    raise RuntimeError(f"Mission types without validator: {sorted(set(MissionType) - set(VALIDATORS))}")


def validate_submission(mission: Mission, submission: BaseModel) -> Optional[InvalidField]:
    return VALIDATORS[mission.mission_type](mission, mission.payload, submission)
