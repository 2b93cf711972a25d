"""Pydantic v2 request/response schemas for all endpoints."""

from datetime import datetime, timezone
from typing import Annotated, Literal, Union
from uuid import UUID

from pydantic import (
    AfterValidator,
    BaseModel,
    ConfigDict,
    Field,
    HttpUrl,
    TypeAdapter,
    field_validator,
    model_validator,
)
from pydantic import ValidationError as PydanticValidationError

from halaqa.state_machines.assignment import is_late, validate_due_at
from halaqa.state_machines.homework import homework_status, is_homework
from halaqa.state_machines.target import days_remaining, is_overdue

MAX_TITLE_LENGTH = 200
MAX_ASSIGNMENT_DESCRIPTION_LENGTH = 5000
MAX_SUBMISSION_TEXT_LENGTH = 10000
MAX_ATTACHMENTS = 10
MAX_REASON_LENGTH = 500
MAX_HOMEWORK_NOTE_LENGTH = 2000
MAX_COMPLETION_NOTE_LENGTH = 1000
MAX_AYAH_RANGE = 10
MAX_TARGET_DESCRIPTION_LENGTH = 2000
MAX_MILESTONES = 20

HomeworkType = Literal["memorization", "revision", "tajweed", "recitation", "fluency"]
TargetCategory = Literal[
    "memorization",
    "revision",
    "tajweed",
    "recitation",
    "fluency",
    "quran_completion",
    "surah_mastery",
    "page_count",
    "attendance",
    "behavior",
    "other",
]

AssignmentSortField = Literal["due_at", "created_at", "status"]
SortOrder = Literal["asc", "desc"]

_http_url = TypeAdapter(HttpUrl)


def _check_attachment_url(value: str) -> str:
    try:
        _http_url.validate_python(value)
    except PydanticValidationError as e:
        raise ValueError("Invalid attachment URL") from e
    return value


AttachmentUrl = Annotated[str, AfterValidator(_check_attachment_url)]


# ---------------------------------------------------------------------------
# Assignments
# ---------------------------------------------------------------------------


class AssignmentCreate(BaseModel):
    student_id: UUID
    title: str = Field(..., min_length=1, max_length=MAX_TITLE_LENGTH)
    description: str | None = Field(default=None, max_length=MAX_ASSIGNMENT_DESCRIPTION_LENGTH)
    due_at: datetime
    class_id: UUID | None = None
    teacher_id: UUID | None = Field(
        default=None, description="Creating teacher; required when an owner/admin creates"
    )

    @field_validator("due_at")
    @classmethod
    def _check_due_at(cls, value: datetime) -> datetime:
        return validate_due_at(value)


class AssignmentUpdate(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=MAX_TITLE_LENGTH)
    description: str | None = Field(default=None, max_length=MAX_ASSIGNMENT_DESCRIPTION_LENGTH)
    due_at: datetime | None = None

    @model_validator(mode="after")
    def _at_least_one_field(self) -> "AssignmentUpdate":
        if not self.model_fields_set:
            raise ValueError("At least one of title, description, due_at is required")
        return self

    @field_validator("due_at")
    @classmethod
    def _check_due_at(cls, value: datetime | None) -> datetime | None:
        return validate_due_at(value) if value is not None else None


class SubmitRequest(BaseModel):
    text: str | None = Field(default=None, max_length=MAX_SUBMISSION_TEXT_LENGTH)
    attachments: list[AttachmentUrl] = Field(default_factory=list, max_length=MAX_ATTACHMENTS)

    @property
    def has_content(self) -> bool:
        return bool((self.text or "").strip()) or bool(self.attachments)


class ReopenRequest(BaseModel):
    reason: str = Field(..., max_length=MAX_REASON_LENGTH)


class ViewAction(BaseModel):
    action: Literal["view"]


class SubmitAction(SubmitRequest):
    action: Literal["submit"]


class ReviewAction(BaseModel):
    action: Literal["review"]
    reason: str | None = Field(default=None, max_length=MAX_REASON_LENGTH)


class CompleteAction(BaseModel):
    action: Literal["complete"]
    reason: str | None = Field(default=None, max_length=MAX_REASON_LENGTH)


class ReopenAction(ReopenRequest):
    action: Literal["reopen"]


AssignmentTransitionRequest = Annotated[
    Union[ViewAction, SubmitAction, ReviewAction, CompleteAction, ReopenAction],
    Field(discriminator="action"),
]


class AssignmentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    school_id: UUID
    class_id: UUID | None
    created_by_teacher_id: UUID
    student_id: UUID
    title: str
    description: str | None
    due_at: datetime | None
    status: str
    reopen_count: int
    assigned_at: datetime | None
    viewed_at: datetime | None
    submitted_at: datetime | None
    reviewed_at: datetime | None
    completed_at: datetime | None
    reopened_at: datetime | None
    created_at: datetime | None
    updated_at: datetime | None
    is_late: bool = False

    @model_validator(mode="after")
    def _derive_is_late(self) -> "AssignmentResponse":
        self.is_late = is_late(self.status, self.due_at)
        return self


class SubmissionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    assignment_id: UUID
    student_id: UUID
    text: str | None
    attachments: list[str] = Field(default_factory=list)
    submitted_at: datetime


class AssignmentEventResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    event_type: str
    actor_user_id: UUID | None
    from_status: str | None
    to_status: str | None
    meta: dict = Field(default_factory=dict)
    created_at: datetime


class AssignmentDetailResponse(AssignmentResponse):
    submissions: list[SubmissionResponse] = Field(default_factory=list)
    events: list[AssignmentEventResponse] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Homework
# ---------------------------------------------------------------------------


class HomeworkCreate(BaseModel):
    student_id: UUID
    surah: int = Field(..., ge=1, le=114)
    ayah_start: int = Field(..., ge=1)
    ayah_end: int = Field(..., ge=1)
    page_number: int | None = Field(default=None, ge=1)
    type: HomeworkType = "memorization"
    note: str | None = Field(default=None, max_length=MAX_HOMEWORK_NOTE_LENGTH)

    @model_validator(mode="after")
    def _check_ayah_range(self) -> "HomeworkCreate":
        if self.ayah_end < self.ayah_start:
            raise ValueError("ayah_end must be greater than or equal to ayah_start")
        if self.ayah_end - self.ayah_start + 1 > MAX_AYAH_RANGE:
            raise ValueError(f"Homework can cover maximum {MAX_AYAH_RANGE} ayahs at once")
        return self


class HomeworkCompleteRequest(BaseModel):
    completed_by: UUID | None = None
    completion_note: str | None = Field(default=None, max_length=MAX_COMPLETION_NOTE_LENGTH)


class HomeworkResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    school_id: UUID
    teacher_id: UUID | None
    student_id: UUID
    surah: int
    ayah_start: int
    ayah_end: int
    page_number: int | None
    type: str | None
    note: str | None
    color: str
    status: str | None = None
    previous_color: str | None
    completed_at: datetime | None
    completed_by: UUID | None
    created_at: datetime | None
    updated_at: datetime | None

    @model_validator(mode="after")
    def _derive_status(self) -> "HomeworkResponse":
        if self.status is None and is_homework(self.color):
            self.status = homework_status(self.color).value
        return self


# ---------------------------------------------------------------------------
# Targets
# ---------------------------------------------------------------------------


class MilestoneCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=MAX_TITLE_LENGTH)
    description: str | None = Field(default=None, max_length=MAX_TARGET_DESCRIPTION_LENGTH)
    target_value: int | None = Field(default=None, gt=0)
    order: int | None = Field(default=None, gt=0)


class TargetCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=MAX_TITLE_LENGTH)
    description: str | None = Field(default=None, max_length=MAX_TARGET_DESCRIPTION_LENGTH)
    type: Literal["individual", "class", "school"]
    category: TargetCategory | None = None
    student_id: UUID | None = None
    class_id: UUID | None = None
    start_date: datetime | None = None
    due_date: datetime | None = None
    milestones: list[MilestoneCreate] = Field(default_factory=list, max_length=MAX_MILESTONES)

    @model_validator(mode="after")
    def _check_scope(self) -> "TargetCreate":
        if self.type == "individual" and self.student_id is None:
            raise ValueError("student_id is required for individual targets")
        if self.type == "class" and self.class_id is None:
            raise ValueError("class_id is required for class targets")
        if self.type == "school" and (self.student_id is not None or self.class_id is not None):
            raise ValueError("School targets should not have student_id or class_id")
        if self.start_date and self.due_date and self.start_date >= self.due_date:
            raise ValueError("start_date must be before due_date")
        return self


class SetProgressAction(BaseModel):
    action: Literal["set_progress"]
    progress_percentage: int


class CompleteTargetAction(BaseModel):
    action: Literal["complete"]
    completed_by: UUID | None = None


class CancelTargetAction(BaseModel):
    action: Literal["cancel"]
    reason: str = Field(..., max_length=MAX_REASON_LENGTH)


TargetProgressRequest = Annotated[
    Union[SetProgressAction, CompleteTargetAction, CancelTargetAction],
    Field(discriminator="action"),
]


class MilestoneCompleteRequest(BaseModel):
    completed_by: UUID | None = None
    current_value: int | None = Field(default=None, gt=0)


class MilestoneResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    target_id: UUID
    title: str
    description: str | None
    target_value: int | None
    current_value: int | None
    order_index: int
    completed: bool
    completed_at: datetime | None
    completed_by: UUID | None


class TargetResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    school_id: UUID
    teacher_id: UUID | None
    type: str
    student_id: UUID | None
    class_id: UUID | None
    title: str
    description: str | None
    category: str | None
    status: str
    progress_percentage: int
    start_date: datetime | None
    due_date: datetime | None
    completed_at: datetime | None
    completed_by: UUID | None
    cancelled_at: datetime | None
    cancellation_reason: str | None
    created_at: datetime | None
    updated_at: datetime | None
    is_overdue: bool = False
    days_remaining: int | None = None

    @model_validator(mode="after")
    def _derive_schedule(self) -> "TargetResponse":
        now = datetime.now(timezone.utc)
        self.is_overdue = is_overdue(self.status, self.due_date, now)
        self.days_remaining = days_remaining(self.due_date, now)
        return self


class TargetDetailResponse(TargetResponse):
    milestones: list[MilestoneResponse] = Field(default_factory=list)
    total_milestones: int = 0
    completed_milestones: int = 0

    @model_validator(mode="after")
    def _count_milestones(self) -> "TargetDetailResponse":
        self.total_milestones = len(self.milestones)
        self.completed_milestones = sum(1 for m in self.milestones if m.completed)
        return self


# ---------------------------------------------------------------------------
# Notifications
# ---------------------------------------------------------------------------


class NotificationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: UUID
    channel: str
    type: str
    payload: dict = Field(default_factory=dict)
    sent_at: datetime | None
    read_at: datetime | None
    created_at: datetime | None


class NotificationUnreadCountResponse(BaseModel):
    success: bool = True
    unread_count: int


# ---------------------------------------------------------------------------
# Shared
# ---------------------------------------------------------------------------


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    total_pages: int

    @classmethod
    def build(cls, page: int, limit: int, total: int) -> "Pagination":
        return cls(page=page, limit=limit, total=total, total_pages=(total + limit - 1) // limit)
