"""Target progress and status state machine.

States: active → completed | cancelled (both terminal)
Progress is settable only while active and is clamped to [0, 100].
Milestones can be added only while active, up to a fixed cap. Completing a
milestone of an active target resets its progress to the completed share.
"""

import enum
import math
from dataclasses import dataclass
from datetime import datetime, timezone

from halaqa.exceptions import (
    AlreadyCompletedError,
    InvalidTransitionError,
    LimitExceededError,
    ValidationError,
)
from halaqa.state_machines.assignment import as_utc

MAX_MILESTONES = 20
MIN_PROGRESS = 0
MAX_PROGRESS = 100


class TargetStatus(str, enum.Enum):
    active = "active"
    completed = "completed"
    cancelled = "cancelled"


class TargetType(str, enum.Enum):
    individual = "individual"
    class_ = "class"
    school = "school"


class TargetAction(str, enum.Enum):
    set_progress = "set_progress"
    complete = "complete"
    cancel = "cancel"


VALID_TRANSITIONS: dict[TargetStatus, list[TargetStatus]] = {
    TargetStatus.active: [TargetStatus.completed, TargetStatus.cancelled],
    TargetStatus.completed: [],  # terminal
    TargetStatus.cancelled: [],  # terminal
}


@dataclass(frozen=True)
class ProgressRequest:
    action: TargetAction
    progress_percentage: int | None = None
    reason: str | None = None


@dataclass(frozen=True)
class TargetChange:
    """What to write back. ``timestamp_field`` is None for progress updates."""

    from_status: TargetStatus
    to_status: TargetStatus
    progress_percentage: int | None = None
    timestamp_field: str | None = None
    reason: str | None = None


def clamp_progress(value: int) -> int:
    return max(MIN_PROGRESS, min(MAX_PROGRESS, int(value)))


def can_transition(current: "TargetStatus | str", target: "TargetStatus | str") -> bool:
    """Check if a target status transition is valid."""
    try:
        return TargetStatus(target) in VALID_TRANSITIONS.get(TargetStatus(current), [])
    except ValueError:
        return False


def _status(value: "TargetStatus | str") -> TargetStatus:
    try:
        return TargetStatus(value)
    except ValueError as e:
        raise InvalidTransitionError(
            str(value), "transition", message=f"Invalid current status: {value}"
        ) from e


def _require_active(status: TargetStatus, action: str) -> None:
    if status is not TargetStatus.active:
        raise InvalidTransitionError(
            status.value,
            action,
            message=f"Cannot {action} a {status.value} target; only active targets can change",
        )


def update_progress(current: "TargetStatus | str", request: ProgressRequest) -> TargetChange:
    """Apply a progress/status request to a target in status ``current``.

    Reaching 100% does not complete the target; completion is explicit.
    """
    status = _status(current)
    try:
        action = TargetAction(request.action)
    except ValueError as e:
        raise ValidationError(f"Unknown action: {request.action}", field="action") from e

    if action is TargetAction.set_progress:
        _require_active(status, "update progress of")
        if request.progress_percentage is None:
            raise ValidationError("progress_percentage is required", field="progress_percentage")
        return TargetChange(
            from_status=status,
            to_status=status,
            progress_percentage=clamp_progress(request.progress_percentage),
        )

    if action is TargetAction.complete:
        if status is TargetStatus.completed:
            raise AlreadyCompletedError("target")
        _require_active(status, "complete")
        return TargetChange(
            from_status=status,
            to_status=TargetStatus.completed,
            timestamp_field="completed_at",
        )

    _require_active(status, "cancel")
    reason = (request.reason or "").strip()
    if not reason:
        raise ValidationError("Reason is required when cancelling", field="reason")
    return TargetChange(
        from_status=status,
        to_status=TargetStatus.cancelled,
        timestamp_field="cancelled_at",
        reason=reason,
    )


def validate_milestone_addition(
    current: "TargetStatus | str",
    existing_count: int,
    max_milestones: int = MAX_MILESTONES,
) -> None:
    """Raise unless one more milestone may be added."""
    _require_active(_status(current), "add milestones to")
    if existing_count >= max_milestones:
        raise LimitExceededError("milestones per target", max_milestones)


def next_milestone_order(existing_orders: list[int]) -> int:
    """Next order index: one past the highest existing, 1 for the first."""
    return max(existing_orders, default=0) + 1


def validate_milestone_completion(current: "TargetStatus | str", already_completed: bool) -> None:
    _require_active(_status(current), "complete milestones of")
    if already_completed:
        raise AlreadyCompletedError("milestone")


def milestone_progress(total: int, completed: int) -> int:
    """Share of completed milestones as a percentage, rounded half up."""
    if total <= 0:
        return MIN_PROGRESS
    return clamp_progress(math.floor(completed * 100 / total + 0.5))


def is_overdue(
    current: "TargetStatus | str", due_date: datetime | None, now: datetime | None = None
) -> bool:
    if due_date is None or _status(current) is not TargetStatus.active:
        return False
    return as_utc(due_date) < (now or datetime.now(timezone.utc))


def days_remaining(due_date: datetime | None, now: datetime | None = None) -> int | None:
    """Whole days until ``due_date``, rounded up; negative once overdue."""
    if due_date is None:
        return None
    delta = as_utc(due_date) - (now or datetime.now(timezone.utc))
    return math.ceil(delta.total_seconds() / 86400)
