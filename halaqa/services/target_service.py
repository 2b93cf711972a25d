"""TargetService: targets, their progress/status and their milestones."""

from datetime import datetime, timezone
from uuid import UUID

from halaqa.exceptions import (
    AlreadyCompletedError,
    LimitExceededError,
    NotFoundError,
    StaleStateError,
)
from halaqa.logging_config import get_logger
from halaqa.models import Target, TargetMilestone
from halaqa.permissions import (
    PermissionContext,
    can_add_milestone,
    can_complete_milestone,
    can_create_target,
    can_delete_target,
    can_update_target,
    can_view_target,
    require,
)
from halaqa.schemas import (
    CancelTargetAction,
    CompleteTargetAction,
    MilestoneCompleteRequest,
    MilestoneCreate,
    SetProgressAction,
    TargetCreate,
)
from halaqa.services.notification_service import NotificationType
from halaqa.state_machines import target as machine
from halaqa.state_machines.target import ProgressRequest, TargetAction, TargetStatus, TargetType

logger = get_logger(__name__)

ProgressAction = SetProgressAction | CompleteTargetAction | CancelTargetAction


def build_milestones(
    target_id: UUID, requested: list[MilestoneCreate], existing_orders: list[int]
) -> list[TargetMilestone]:
    """Milestone rows in request order; unordered ones go after the highest order so far."""
    orders = list(existing_orders)
    milestones = []
    for item in requested:
        order_index = item.order if item.order is not None else machine.next_milestone_order(orders)
        orders.append(order_index)
        milestones.append(
            TargetMilestone(
                target_id=target_id,
                title=item.title,
                description=item.description,
                target_value=item.target_value,
                current_value=0 if item.target_value is not None else None,
                order_index=order_index,
                completed=False,
            )
        )
    return milestones


class TargetService:
    def __init__(
        self,
        targets,
        milestones,
        people,
        notifier,
        max_milestones: int = machine.MAX_MILESTONES,
    ):
        self.targets = targets
        self.milestones = milestones
        self.people = people
        self.notifier = notifier
        self.max_milestones = max_milestones

    async def _load(self, ctx: PermissionContext, target_id: UUID) -> Target:
        target = await self.targets.get(target_id)
        if target is None or target.school_id != ctx.school_id:
            raise NotFoundError("target", target_id)
        return target

    async def create(
        self, ctx: PermissionContext, data: TargetCreate
    ) -> tuple[Target, list[TargetMilestone]]:
        require(can_create_target(ctx), "create", "target")
        if len(data.milestones) > self.max_milestones:
            raise LimitExceededError("milestones per target", self.max_milestones)
        if data.student_id is not None and not await self.people.student_in_school(
            data.student_id, ctx.school_id
        ):
            raise NotFoundError("student", data.student_id)
        if data.class_id is not None and not await self.people.class_in_school(
            data.class_id, ctx.school_id
        ):
            raise NotFoundError("class", data.class_id)

        now = datetime.now(timezone.utc)
        target = await self.targets.insert(
            Target(
                school_id=ctx.school_id,
                teacher_id=ctx.teacher_id,
                type=data.type,
                student_id=data.student_id,
                class_id=data.class_id,
                title=data.title,
                description=data.description,
                category=data.category,
                status=TargetStatus.active.value,
                progress_percentage=0,
                start_date=data.start_date or now,
                due_date=data.due_date,
                created_at=now,
                updated_at=now,
            )
        )
        milestones = []
        if data.milestones:
            milestones = await self.milestones.add_many(
                build_milestones(target.id, data.milestones, [])
            )
        await self.targets.commit()

        logger.info(
            "target_created",
            target_id=str(target.id),
            target_type=data.type,
            milestones=len(milestones),
        )
        if target.type == TargetType.individual.value:
            await self.notifier.notify_student(
                ctx.school_id,
                target.student_id,
                NotificationType.target_created,
                {"target_id": str(target.id), "target_title": target.title},
            )
        return target, milestones

    async def list_visible(
        self,
        ctx: PermissionContext,
        *,
        status: str | None = None,
        target_type: str | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> tuple[list[Target], int]:
        """Own targets plus, for teachers and students, every class and school target."""
        scope: dict = {}
        if ctx.is_teacher:
            scope = {"teacher_id": ctx.teacher_id, "include_shared": True}
        elif ctx.is_student:
            scope = {"student_ids": frozenset({ctx.student_id}), "include_shared": True}
        elif ctx.is_parent:
            scope = {"student_ids": ctx.child_student_ids}
        elif not ctx.is_admin:
            return [], 0

        return await self.targets.list_targets(
            ctx.school_id,
            status=status,
            target_type=target_type,
            limit=limit,
            offset=offset,
            **scope,
        )

    async def get_detail(
        self, ctx: PermissionContext, target_id: UUID
    ) -> tuple[Target, list[TargetMilestone]]:
        target = await self._load(ctx, target_id)
        require(can_view_target(ctx, target), "view", "target")
        return target, await self.milestones.list_for_target(target_id)

    async def update_progress(
        self, ctx: PermissionContext, target_id: UUID, request: ProgressAction
    ) -> Target:
        """Set progress, complete or cancel a target.

        Raises:
            NotFoundError: no such target in the caller's school
            AuthorizationError: the caller did not create the target
            InvalidTransitionError: the target is no longer active
            AlreadyCompletedError: completing a completed target
            ValidationError: cancelling without a reason
            StaleStateError: the status changed between read and write
        """
        target = await self._load(ctx, target_id)
        require(can_update_target(ctx, target), "update", "target")

        change = machine.update_progress(
            target.status,
            ProgressRequest(
                action=TargetAction(request.action),
                progress_percentage=getattr(request, "progress_percentage", None),
                reason=getattr(request, "reason", None),
            ),
        )

        now = datetime.now(timezone.utc)
        values: dict = {"status": change.to_status.value, "updated_at": now}
        if change.progress_percentage is not None:
            values["progress_percentage"] = change.progress_percentage
        if change.timestamp_field is not None:
            values[change.timestamp_field] = now
        if change.to_status is TargetStatus.completed:
            values["completed_by"] = getattr(request, "completed_by", None) or ctx.user_id
        if change.to_status is TargetStatus.cancelled:
            values["cancellation_reason"] = change.reason

        updated = await self.targets.compare_and_swap(target_id, change.from_status.value, values)
        await self.targets.commit()

        logger.info(
            "target_updated",
            target_id=str(target_id),
            action=request.action,
            from_status=change.from_status.value,
            to_status=change.to_status.value,
            progress_percentage=updated.progress_percentage,
        )
        if (
            change.to_status is TargetStatus.completed
            and updated.type == TargetType.individual.value
        ):
            await self.notifier.notify_student(
                ctx.school_id,
                updated.student_id,
                NotificationType.target_completed,
                {"target_id": str(target_id), "target_title": updated.title},
            )
        return updated

    async def add_milestone(
        self, ctx: PermissionContext, target_id: UUID, data: MilestoneCreate
    ) -> TargetMilestone:
        """Add one milestone under a row lock on the target so the cap holds."""
        target = await self.milestones.lock_target(target_id)
        if target is None or target.school_id != ctx.school_id:
            raise NotFoundError("target", target_id)
        require(can_add_milestone(ctx, target), "add milestones to", "target")

        orders = await self.milestones.order_indexes(target_id)
        machine.validate_milestone_addition(target.status, len(orders), self.max_milestones)

        (milestone,) = await self.milestones.add_many(build_milestones(target_id, [data], orders))
        await self.milestones.commit()

        logger.info(
            "milestone_added",
            target_id=str(target_id),
            milestone_id=str(milestone.id),
            order_index=milestone.order_index,
        )
        return milestone

    async def complete_milestone(
        self,
        ctx: PermissionContext,
        milestone_id: UUID,
        data: MilestoneCompleteRequest | None = None,
    ) -> tuple[TargetMilestone, Target]:
        """Complete a milestone and reset the target's progress to the completed share.

        The target row is locked before the milestones are counted, so
        concurrent completions each see the others' writes.

        Raises:
            AlreadyCompletedError: the milestone is already completed
            InvalidTransitionError: the target is no longer active
            StaleStateError: the target was closed while the milestone was written
        """
        data = data or MilestoneCompleteRequest()
        milestone = await self.milestones.get_or_raise(milestone_id)
        target = await self._load(ctx, milestone.target_id)
        require(can_complete_milestone(ctx, target), "complete milestones of", "target")
        machine.validate_milestone_completion(target.status, milestone.completed)

        now = datetime.now(timezone.utc)
        current_value = data.current_value
        if current_value is None:
            current_value = milestone.target_value
        try:
            updated = await self.milestones.compare_and_swap(
                milestone_id,
                False,
                {
                    "completed": True,
                    "completed_at": now,
                    "completed_by": data.completed_by or ctx.user_id,
                    "current_value": current_value,
                },
            )
        except StaleStateError as e:
            raise AlreadyCompletedError("milestone") from e

        await self.milestones.lock_target(target.id)
        siblings = await self.milestones.list_for_target(target.id)
        progress = machine.milestone_progress(
            len(siblings), sum(1 for m in siblings if m.completed)
        )
        target = await self.targets.compare_and_swap(
            target.id,
            TargetStatus.active.value,
            {"progress_percentage": progress, "updated_at": now},
        )
        await self.milestones.commit()

        logger.info(
            "milestone_completed",
            target_id=str(target.id),
            milestone_id=str(milestone_id),
            progress_percentage=progress,
        )
        if target.type == TargetType.individual.value:
            await self.notifier.notify_student(
                ctx.school_id,
                target.student_id,
                NotificationType.target_milestone_completed,
                {
                    "target_id": str(target.id),
                    "target_title": target.title,
                    "milestone_id": str(milestone_id),
                    "milestone_title": updated.title,
                    "progress_percentage": progress,
                },
            )
        return updated, target

    async def delete(self, ctx: PermissionContext, target_id: UUID) -> None:
        target = await self._load(ctx, target_id)
        require(can_delete_target(ctx, target), "delete", "target")
        await self.targets.delete(target_id)
        await self.targets.commit()
        logger.info("target_deleted", target_id=str(target_id))
