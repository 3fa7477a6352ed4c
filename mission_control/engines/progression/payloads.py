"""
Mission payloads and cadet submissions.

Every mission carries a payload whose shape is fixed by its mission type. The payload
models form a closed union discriminated on ``type``; ``normalize_payload`` is the one
place where a missing or malformed payload is replaced by a safe default.
"""

from datetime import datetime
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Type, Union

from pydantic import BaseModel, Field, ValidationError, field_validator

from mission_control.logging_config import get_logger

logger = get_logger(__name__)


class MissionType(str, Enum):
    """Kinds of mission content."""
    QUIZ = "QUIZ"
    VIDEO = "VIDEO"
    FILE_UPLOAD = "FILE_UPLOAD"
    FORM = "FORM"
    OFFLINE_EVENT = "OFFLINE_EVENT"
    ONLINE_EVENT = "ONLINE_EVENT"
    EXTERNAL_ACTION = "EXTERNAL_ACTION"
    CUSTOM = "CUSTOM"


class ConfirmationType(str, Enum):
    """How a submission is confirmed."""
    AUTO = "AUTO"
    MANUAL_REVIEW = "MANUAL_REVIEW"
    QR_SCAN = "QR_SCAN"
    FILE_CHECK = "FILE_CHECK"


# --- Quiz ---


class QuizQuestionType(str, Enum):
    SINGLE = "single"
    MULTIPLE = "multiple"
    TEXT = "text"


class QuizAnswerOption(BaseModel):
    id: str
    text: str = ""


class QuizQuestion(BaseModel):
    """One quiz question. ``correct_answer_ids`` is ignored for text questions."""

    id: str
    text: str = ""
    question_type: QuizQuestionType = QuizQuestionType.SINGLE
    answers: List[QuizAnswerOption] = []
    correct_answer_ids: List[str] = []
    required: bool = True


class QuizPayload(BaseModel):
    type: Literal["QUIZ"] = "QUIZ"
    passing_score: int = Field(default=70, ge=0, le=100)  # percent
    time_limit: Optional[int] = None  # minutes
    allow_retries: bool = False
    max_retries: Optional[int] = Field(default=None, ge=0)  # None = unlimited
    questions: List[QuizQuestion] = []


# --- Video ---


class VideoPayload(BaseModel):
    type: Literal["VIDEO"] = "VIDEO"
    video_url: str = ""
    watch_threshold: float = Field(default=0.9, ge=0.0, le=1.0)
    allow_skip: bool = False
    duration: Optional[int] = None  # seconds


# --- File upload ---


class FileUploadPayload(BaseModel):
    type: Literal["FILE_UPLOAD"] = "FILE_UPLOAD"
    template_file_url: Optional[str] = None
    allowed_formats: List[str] = ["pdf", "docx"]
    max_file_size: int = Field(default=10 * 1024 * 1024, gt=0)  # bytes
    required_files: int = Field(default=1, ge=1)
    instructions: Optional[str] = None


# --- Form ---


class FormFieldType(str, Enum):
    TEXT = "text"
    TEXTAREA = "textarea"
    SELECT = "select"
    RADIO = "radio"
    CHECKBOX = "checkbox"
    NUMBER = "number"
    EMAIL = "email"
    DATE = "date"


class FormField(BaseModel):
    id: str
    label: str = ""
    field_type: FormFieldType = FormFieldType.TEXT
    required: bool = False
    options: List[str] = []
    min_length: Optional[int] = None
    max_length: Optional[int] = None
    pattern: Optional[str] = None


class FormPayload(BaseModel):
    type: Literal["FORM"] = "FORM"
    title: str = "New form"
    description: Optional[str] = None
    fields: List[FormField] = []


# --- Events ---


class OfflineEventPayload(BaseModel):
    type: Literal["OFFLINE_EVENT"] = "OFFLINE_EVENT"
    event_name: str = ""
    location: str = ""
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    qr_code: Optional[str] = None
    check_in_window: Optional[int] = None  # minutes around the event


class OnlineEventPayload(BaseModel):
    type: Literal["ONLINE_EVENT"] = "ONLINE_EVENT"
    event_name: str = ""
    meeting_url: str = ""
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    attendance_check_interval: Optional[int] = None


# --- External action / custom ---


class ExternalActionPayload(BaseModel):
    type: Literal["EXTERNAL_ACTION"] = "EXTERNAL_ACTION"
    action_description: str = ""
    external_system_name: str = ""
    verification_url: Optional[str] = None
    instructions: str = ""
    completion_criteria: str = ""


class SubmissionFormat(str, Enum):
    TEXT = "text"
    FILE = "file"
    LINK = "link"
    NONE = "none"


class CustomPayload(BaseModel):
    type: Literal["CUSTOM"] = "CUSTOM"
    description: str = ""
    instructions: str = ""
    requirements: List[str] = []
    submission_format: SubmissionFormat = SubmissionFormat.TEXT


MissionPayload = Annotated[
    Union[
        QuizPayload,
        VideoPayload,
        FileUploadPayload,
        FormPayload,
        OfflineEventPayload,
        OnlineEventPayload,
        ExternalActionPayload,
        CustomPayload,
    ],
    Field(discriminator="type"),
]


PAYLOAD_MODELS: Dict[MissionType, Type[BaseModel]] = {
    MissionType.QUIZ: QuizPayload,
    MissionType.VIDEO: VideoPayload,
    MissionType.FILE_UPLOAD: FileUploadPayload,
    MissionType.FORM: FormPayload,
    MissionType.OFFLINE_EVENT: OfflineEventPayload,
    MissionType.ONLINE_EVENT: OnlineEventPayload,
    MissionType.EXTERNAL_ACTION: ExternalActionPayload,
    MissionType.CUSTOM: CustomPayload,
}


def default_payload(mission_type: MissionType) -> BaseModel:
    """Safe empty payload for a mission type."""
    return PAYLOAD_MODELS[MissionType(mission_type)]()


def normalize_payload(mission_type: MissionType, raw: Any) -> BaseModel:
    """
    Coerce a stored payload into the model for ``mission_type``.

    Absent, malformed, or mismatched payloads never raise: they are logged and
    replaced by ``default_payload(mission_type)``.
    """
    mission_type = MissionType(mission_type)
    model_cls = PAYLOAD_MODELS[mission_type]

    if raw is None:
        return model_cls()
    if isinstance(raw, model_cls):
        return raw
    if isinstance(raw, BaseModel):
        logger.warning(
            "Payload type does not match mission type, using default",
            extra={"mission_type": mission_type.value, "payload_type": type(raw).__name__},
        )
        return model_cls()
    if not isinstance(raw, dict):
        logger.warning(
            "Payload is not an object, using default",
            extra={"mission_type": mission_type.value},
        )
        return model_cls()

    declared = raw.get("type")
    if declared is not None and declared != mission_type.value:
        logger.warning(
            "Payload type does not match mission type, using default",
            extra={"mission_type": mission_type.value, "payload_type": str(declared)},
        )
        return model_cls()

    try:
        return model_cls.model_validate({**raw, "type": mission_type.value})
    except ValidationError as exc:
        logger.warning(
            "Malformed payload, using default",
            extra={"mission_type": mission_type.value, "errors": exc.error_count()},
        )
        return model_cls()


# --- Submissions ---


class QuizAnswer(BaseModel):
    question_id: str
    answer_ids: List[str] = []
    text_answer: Optional[str] = None


class QuizSubmission(BaseModel):
    answers: List[QuizAnswer] = []
    time_spent: int = 0  # seconds


class VideoSubmission(BaseModel):
    watched_duration: float = Field(default=0, ge=0)  # seconds
    total_duration: float = Field(default=0, ge=0)
    watch_percentage: Optional[float] = Field(default=None, ge=0.0, le=1.0)


class UploadedFile(BaseModel):
    file_name: str
    file_url: str = ""
    file_size: int = Field(ge=0)  # bytes


class FileUploadSubmission(BaseModel):
    files: List[UploadedFile] = []


class FormResponse(BaseModel):
    field_id: str
    value: Union[str, List[str]]

    @field_validator("value", mode="before")
    @classmethod
    def numbers_as_text(cls, v: Any) -> Any:
        """JSON numbers (NUMBER fields) are checked as their text form."""
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            return str(v)
        return v


class FormSubmission(BaseModel):
    responses: List[FormResponse] = []


class EventSubmission(BaseModel):
    attended_at: Optional[datetime] = None
    location: Optional[str] = None
    verification_code: Optional[str] = None


class ExternalActionSubmission(BaseModel):
    evidence_url: Optional[str] = None
    comment: Optional[str] = None


class Attachment(BaseModel):
    file_name: str
    file_url: str


class CustomSubmission(BaseModel):
    content: str = ""
    attachments: List[Attachment] = []


SUBMISSION_MODELS: Dict[MissionType, Type[BaseModel]] = {
    MissionType.QUIZ: QuizSubmission,
    MissionType.VIDEO: VideoSubmission,
    MissionType.FILE_UPLOAD: FileUploadSubmission,
    MissionType.FORM: FormSubmission,
    MissionType.OFFLINE_EVENT: EventSubmission,
    MissionType.ONLINE_EVENT: EventSubmission,
    MissionType.EXTERNAL_ACTION: ExternalActionSubmission,
    MissionType.CUSTOM: CustomSubmission,
}

_missing = set(MissionType) - set(PAYLOAD_MODELS) | set(MissionType) - set(SUBMISSION_MODELS)
if _missing:
    raise RuntimeError(f"Mission types without payload/submission models: {sorted(_missing)}")
