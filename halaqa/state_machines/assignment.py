"""Assignment lifecycle state machine.

States: assigned → viewed → submitted → reviewed → completed → reopened
        reopened → submitted (resubmission)
Reopening is bounded by a maximum reopen count.
"""

import enum
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from halaqa.exceptions import InvalidTransitionError, LimitExceededError, ValidationError

DEFAULT_MAX_REOPEN_COUNT = 10
MAX_DUE_DAYS_AHEAD = 365


class AssignmentStatus(str, enum.Enum):
    assigned = "assigned"
    viewed = "viewed"
    submitted = "submitted"
    reviewed = "reviewed"
    completed = "completed"
    reopened = "reopened"


class AssignmentAction(str, enum.Enum):
    view = "view"
    submit = "submit"
    review = "review"
    complete = "complete"
    reopen = "reopen"


@dataclass(frozen=True)
class Edge:
    sources: frozenset[AssignmentStatus]
    target: AssignmentStatus
    timestamp_field: str


EDGES: dict[AssignmentAction, Edge] = {
    AssignmentAction.view: Edge(
        frozenset({AssignmentStatus.assigned}), AssignmentStatus.viewed, "viewed_at"
    ),
    AssignmentAction.submit: Edge(
        frozenset({AssignmentStatus.viewed, AssignmentStatus.reopened}),
        AssignmentStatus.submitted,
        "submitted_at",
    ),
    AssignmentAction.review: Edge(
        frozenset({AssignmentStatus.submitted}), AssignmentStatus.reviewed, "reviewed_at"
    ),
    AssignmentAction.complete: Edge(
        frozenset({AssignmentStatus.reviewed}), AssignmentStatus.completed, "completed_at"
    ),
    AssignmentAction.reopen: Edge(
        frozenset({AssignmentStatus.completed}), AssignmentStatus.reopened, "reopened_at"
    ),
}

# Actions performed by the assigned student; the rest are teacher actions.
STUDENT_ACTIONS = frozenset({AssignmentAction.view, AssignmentAction.submit})
TEACHER_ACTIONS = frozenset(
    {AssignmentAction.review, AssignmentAction.complete, AssignmentAction.reopen}
)

# Statuses in which the student has handed in work.
WORK_STATUSES = frozenset(
    {
        AssignmentStatus.submitted,
        AssignmentStatus.reviewed,
        AssignmentStatus.completed,
        AssignmentStatus.reopened,
    }
)

# Statuses an assignment can be deleted from.
DELETABLE_STATUSES = frozenset(AssignmentStatus) - WORK_STATUSES


@dataclass(frozen=True)
class TransitionContext:
    """Inputs the guards need beyond the current status."""

    has_content: bool = False
    reason: str | None = None
    reopen_count: int = 0
    max_reopen_count: int = DEFAULT_MAX_REOPEN_COUNT


@dataclass(frozen=True)
class AssignmentTransition:
    """Result of a successful transition.

    The caller stamps ``timestamp_field`` with its own notion of "now" and
    writes ``reopen_count`` alongside the new status.
    """

    from_status: AssignmentStatus
    to_status: AssignmentStatus
    timestamp_field: str
    reopen_count: int


def _status(value: "AssignmentStatus | str") -> AssignmentStatus:
    try:
        return AssignmentStatus(value)
    except ValueError as e:
        raise InvalidTransitionError(
            str(value), "transition", message=f"Invalid current status: {value}"
        ) from e


def allowed_actions(current: "AssignmentStatus | str") -> list[AssignmentAction]:
    """Actions that have an edge out of ``current``."""
    status = _status(current)
    return [action for action, edge in EDGES.items() if status in edge.sources]


def can_transition(current: "AssignmentStatus | str", action: "AssignmentAction | str") -> bool:
    """Check whether ``action`` has an edge out of ``current`` (guards not evaluated)."""
    try:
        return AssignmentStatus(current) in EDGES[AssignmentAction(action)].sources
    except ValueError:
        return False


def transition(
    current: "AssignmentStatus | str",
    action: "AssignmentAction | str",
    context: TransitionContext | None = None,
) -> AssignmentTransition:
    """Decide the next status for ``action`` or raise.

    Raises:
        InvalidTransitionError: no edge for ``action`` out of ``current``
        ValidationError: submit without content, reopen without a reason
        LimitExceededError: reopen when the reopen count is at the maximum
    """
    context = context or TransitionContext()
    status = _status(current)
    try:
        action = AssignmentAction(action)
    except ValueError as e:
        raise ValidationError(f"Unknown action: {action}", field="action") from e

    edge = EDGES[action]
    if status not in edge.sources:
        raise InvalidTransitionError(
            status.value,
            action.value,
            allowed=[a.value for a in allowed_actions(status)],
        )

    reopen_count = context.reopen_count
    if action is AssignmentAction.submit and not context.has_content:
        raise ValidationError("Submission must include text or attachments")
    if action is AssignmentAction.reopen:
        if not (context.reason or "").strip():
            raise ValidationError("Reason is required when reopening", field="reason")
        if reopen_count >= context.max_reopen_count:
            raise LimitExceededError("reopen count", context.max_reopen_count)
        reopen_count += 1

    return AssignmentTransition(
        from_status=status,
        to_status=edge.target,
        timestamp_field=edge.timestamp_field,
        reopen_count=reopen_count,
    )


def validate_update(current: "AssignmentStatus | str") -> None:
    """Title, description and due date are editable only before submission."""
    status = _status(current)
    if status in WORK_STATUSES - {AssignmentStatus.reopened}:
        raise InvalidTransitionError(
            status.value, "update", message=f"Cannot update assignment in {status.value} status"
        )


def validate_deletion(current: "AssignmentStatus | str") -> None:
    """An assignment can be deleted only while it carries no student work."""
    status = _status(current)
    if status in WORK_STATUSES:
        raise InvalidTransitionError(
            status.value,
            "delete",
            message=f"Cannot delete assignment in {status.value} status. Assignment has student work.",
        )


def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC."""
    return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)


def validate_due_at(due_at: datetime, now: datetime | None = None) -> datetime:
    """Return ``due_at`` if it is in the future and at most a year away.

    Raises:
        ValueError: the due date is in the past or too far ahead
    """
    now = now or datetime.now(timezone.utc)
    due_at = as_utc(due_at)
    if due_at <= now:
        raise ValueError("Due date must be in the future")
    if due_at > now + timedelta(days=MAX_DUE_DAYS_AHEAD):
        raise ValueError("Due date cannot be more than 1 year in the future")
    return due_at


def is_late(
    current: "AssignmentStatus | str", due_at: datetime | None, now: datetime | None = None
) -> bool:
    """Past due and not yet completed."""
    if due_at is None or _status(current) is AssignmentStatus.completed:
        return False
    return as_utc(due_at) < (now or datetime.now(timezone.utc))
