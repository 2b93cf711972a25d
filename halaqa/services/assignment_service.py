"""AssignmentService: every assignment state change goes through here.

Each operation loads the row, checks the caller's capability, asks the
assignment state machine for the next state, writes it with a
compare-and-swap, records an event, commits and only then notifies.
"""

from datetime import datetime, timezone
from uuid import UUID

from halaqa.exceptions import NotFoundError, StaleStateError, ValidationError
from halaqa.logging_config import get_logger
from halaqa.models import Assignment, AssignmentEvent, AssignmentSubmission
from halaqa.permissions import (
    PermissionContext,
    can_create_assignment,
    can_delete_assignment,
    can_transition_assignment,
    can_update_assignment,
    can_view_assignment,
    require,
)
from halaqa.schemas import (
    AssignmentCreate,
    AssignmentUpdate,
    CompleteAction,
    ReopenAction,
    ReviewAction,
    SubmitAction,
    ViewAction,
)
from halaqa.services.notification_service import NotificationType
from halaqa.state_machines import assignment as machine
from halaqa.state_machines.assignment import AssignmentAction, AssignmentStatus

logger = get_logger(__name__)

TransitionRequest = ViewAction | SubmitAction | ReviewAction | CompleteAction | ReopenAction
SORT_FIELDS = ("due_at", "created_at", "status")

# Who hears about each transition, and as what.
_TEACHER_NOTIFICATIONS = {
    AssignmentAction.submit: NotificationType.assignment_submitted,
}
_STUDENT_NOTIFICATIONS = {
    AssignmentAction.review: NotificationType.assignment_reviewed,
    AssignmentAction.complete: NotificationType.assignment_completed,
    AssignmentAction.reopen: NotificationType.assignment_reopened,
}


def transition_event_type(from_status: str, to_status: str) -> str:
    return f"transition_{from_status}_to_{to_status}"


class AssignmentService:
    """Orchestrates assignment creation, edits and lifecycle transitions."""

    def __init__(
        self,
        assignments,
        people,
        notifier,
        max_reopen_count: int = machine.DEFAULT_MAX_REOPEN_COUNT,
    ):
        self.assignments = assignments
        self.people = people
        self.notifier = notifier
        self.max_reopen_count = max_reopen_count

    async def _load(self, ctx: PermissionContext, assignment_id: UUID) -> Assignment:
        assignment = await self.assignments.get_or_raise(assignment_id)
        # Rows from another school are invisible, not forbidden.
        if assignment.school_id != ctx.school_id:
            raise NotFoundError("assignment", assignment_id)
        return assignment

    async def create(self, ctx: PermissionContext, data: AssignmentCreate) -> Assignment:
        require(can_create_assignment(ctx), "create", "assignment")

        teacher_id = ctx.teacher_id if ctx.is_teacher else data.teacher_id
        if teacher_id is None:
            raise ValidationError("teacher_id is required", field="teacher_id")
        if not ctx.is_teacher and not await self.people.teacher_in_school(
            teacher_id, ctx.school_id
        ):
            raise NotFoundError("teacher", teacher_id)
        if not await self.people.student_in_school(data.student_id, ctx.school_id):
            raise NotFoundError("student", data.student_id)
        if data.class_id is not None and not await self.people.class_in_school(
            data.class_id, ctx.school_id
        ):
            raise NotFoundError("class", data.class_id)

        now = datetime.now(timezone.utc)
        assignment = await self.assignments.insert(
            Assignment(
                school_id=ctx.school_id,
                class_id=data.class_id,
                created_by_teacher_id=teacher_id,
                student_id=data.student_id,
                title=data.title,
                description=data.description,
                due_at=data.due_at,
                status=AssignmentStatus.assigned.value,
                reopen_count=0,
                assigned_at=now,
                created_at=now,
                updated_at=now,
            )
        )
        await self.assignments.add_event(
            AssignmentEvent(
                assignment_id=assignment.id,
                event_type="created",
                actor_user_id=ctx.user_id,
                to_status=AssignmentStatus.assigned.value,
                meta={"actor_role": ctx.role.value},
                created_at=now,
            )
        )
        await self.assignments.commit()

        logger.info(
            "assignment_created",
            assignment_id=str(assignment.id),
            student_id=str(data.student_id),
            teacher_id=str(teacher_id),
        )
        await self.notifier.notify_student(
            ctx.school_id,
            assignment.student_id,
            NotificationType.assignment_created,
            {
                "assignment_id": str(assignment.id),
                "assignment_title": assignment.title,
                "due_at": assignment.due_at.isoformat(),
            },
        )
        return assignment

    async def list_visible(
        self,
        ctx: PermissionContext,
        *,
        student_id: UUID | None = None,
        teacher_id: UUID | None = None,
        status: str | None = None,
        late_only: bool = False,
        due_before: datetime | None = None,
        due_after: datetime | None = None,
        sort_by: str = "due_at",
        sort_order: str = "asc",
        limit: int = 20,
        offset: int = 0,
    ) -> tuple[list[Assignment], int]:
        """List the assignments the caller can see.

        Students see their own, parents their children's and teachers the
        ones they created or that belong to a class they teach. ``teacher_id``
        filters by creating teacher within that scope.
        """
        if status is not None and status not in AssignmentStatus.__members__:
            raise ValidationError(f"Unknown status: {status}", field="status")
        if sort_by not in SORT_FIELDS:
            raise ValidationError(f"Unknown sort field: {sort_by}", field="sort_by")
        if sort_order not in ("asc", "desc"):
            raise ValidationError(f"Unknown sort order: {sort_order}", field="sort_order")

        scope: dict = {}
        if ctx.is_teacher:
            scope["teacher_id"] = ctx.teacher_id
            scope["class_ids"] = ctx.class_ids
        elif ctx.is_student:
            scope["student_ids"] = frozenset({ctx.student_id})
        elif ctx.is_parent:
            scope["student_ids"] = ctx.child_student_ids
        elif not ctx.is_admin:
            return [], 0

        return await self.assignments.list_assignments(
            ctx.school_id,
            student_id=student_id,
            status=status,
            created_by=teacher_id,
            late_only=late_only,
            due_before=due_before,
            due_after=due_after,
            sort_by=sort_by,
            sort_order=sort_order,
            limit=limit,
            offset=offset,
            **scope,
        )

    async def get_detail(
        self, ctx: PermissionContext, assignment_id: UUID
    ) -> tuple[Assignment, list[AssignmentSubmission], list[AssignmentEvent]]:
        """Return the assignment with its submissions and events.

        The assigned student opening an ``assigned`` assignment views it.
        """
        assignment = await self._load(ctx, assignment_id)
        require(can_view_assignment(ctx, assignment), "view", "assignment")

        if (
            assignment.status == AssignmentStatus.assigned.value
            and can_transition_assignment(ctx, assignment, AssignmentAction.view)
        ):
            try:
                assignment = await self.transition(
                    ctx, assignment_id, ViewAction(action="view")
                )
            except StaleStateError:
                # Another request viewed it first.
                assignment = await self._load(ctx, assignment_id)

        submissions = await self.assignments.list_submissions(assignment_id)
        events = await self.assignments.list_events(assignment_id)
        return assignment, submissions, events

    async def update(
        self, ctx: PermissionContext, assignment_id: UUID, data: AssignmentUpdate
    ) -> Assignment:
        assignment = await self._load(ctx, assignment_id)
        require(can_update_assignment(ctx, assignment), "update", "assignment")
        machine.validate_update(assignment.status)

        now = datetime.now(timezone.utc)
        values = data.model_dump(exclude_unset=True)
        for field in ("title", "due_at"):
            if values.get(field) is None:
                values.pop(field, None)
        values["updated_at"] = now

        # Guarded on status so a concurrent submission is not edited over.
        updated = await self.assignments.compare_and_swap(
            assignment_id, assignment.status, values
        )
        await self.assignments.add_event(
            AssignmentEvent(
                assignment_id=assignment_id,
                event_type="updated",
                actor_user_id=ctx.user_id,
                from_status=assignment.status,
                to_status=assignment.status,
                meta={
                    "actor_role": ctx.role.value,
                    "fields": sorted(k for k in values if k != "updated_at"),
                },
                created_at=now,
            )
        )
        await self.assignments.commit()
        logger.info("assignment_updated", assignment_id=str(assignment_id))
        return updated

    async def delete(self, ctx: PermissionContext, assignment_id: UUID) -> None:
        assignment = await self._load(ctx, assignment_id)
        require(can_delete_assignment(ctx, assignment), "delete", "assignment")
        machine.validate_deletion(assignment.status)

        # Guarded on status so work submitted since the read is not deleted.
        await self.assignments.delete_if_status(
            assignment_id, sorted(s.value for s in machine.DELETABLE_STATUSES)
        )
        await self.assignments.commit()
        logger.info("assignment_deleted", assignment_id=str(assignment_id))

    async def transition(
        self, ctx: PermissionContext, assignment_id: UUID, request: TransitionRequest
    ) -> Assignment:
        """Apply one lifecycle action.

        Raises:
            NotFoundError: no such assignment in the caller's school
            AuthorizationError: the caller may not perform ``request.action``
            InvalidTransitionError: the action has no edge from the current status
            ValidationError: a guard failed (content, reason)
            LimitExceededError: the reopen cap is reached
            StaleStateError: the status changed between read and write
        """
        action = AssignmentAction(request.action)
        assignment = await self._load(ctx, assignment_id)
        require(
            can_transition_assignment(ctx, assignment, action),
            action.value,
            "assignment",
        )

        reason = getattr(request, "reason", None)
        result = machine.transition(
            assignment.status,
            action,
            machine.TransitionContext(
                has_content=getattr(request, "has_content", False),
                reason=reason,
                reopen_count=assignment.reopen_count,
                max_reopen_count=self.max_reopen_count,
            ),
        )

        now = datetime.now(timezone.utc)
        updated = await self.assignments.compare_and_swap(
            assignment_id,
            result.from_status.value,
            {
                "status": result.to_status.value,
                result.timestamp_field: now,
                "reopen_count": result.reopen_count,
                "updated_at": now,
            },
        )

        if isinstance(request, SubmitAction):
            await self.assignments.add_submission(
                AssignmentSubmission(
                    assignment_id=assignment_id,
                    student_id=assignment.student_id,
                    text=request.text,
                    attachments=list(request.attachments),
                    submitted_at=now,
                )
            )

        meta = {"actor_role": ctx.role.value}
        if reason:
            meta["reason"] = reason.strip()
        await self.assignments.add_event(
            AssignmentEvent(
                assignment_id=assignment_id,
                event_type=transition_event_type(
                    result.from_status.value, result.to_status.value
                ),
                actor_user_id=ctx.user_id,
                from_status=result.from_status.value,
                to_status=result.to_status.value,
                meta=meta,
                created_at=now,
            )
        )
        await self.assignments.commit()

        logger.info(
            "assignment_transitioned",
            assignment_id=str(assignment_id),
            action=action.value,
            from_status=result.from_status.value,
            to_status=result.to_status.value,
            reopen_count=result.reopen_count,
        )

        payload = {
            "assignment_id": str(assignment_id),
            "assignment_title": updated.title,
            "from_status": result.from_status.value,
            "to_status": result.to_status.value,
        }
        if reason:
            payload["reason"] = reason.strip()
        if action in _TEACHER_NOTIFICATIONS:
            await self.notifier.notify_teacher(
                ctx.school_id,
                updated.created_by_teacher_id,
                _TEACHER_NOTIFICATIONS[action],
                payload,
            )
        elif action in _STUDENT_NOTIFICATIONS:
            await self.notifier.notify_student(
                ctx.school_id,
                updated.student_id,
                _STUDENT_NOTIFICATIONS[action],
                payload,
            )
        return updated
