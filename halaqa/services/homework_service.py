"""HomeworkService: create, list and complete homework highlights."""

from datetime import datetime, timezone
from uuid import UUID

from halaqa.exceptions import InvalidTransitionError, NotFoundError
from halaqa.logging_config import get_logger
from halaqa.models import Highlight
from halaqa.permissions import (
    PermissionContext,
    can_complete_homework,
    can_create_homework,
    can_delete_homework,
    can_view_homework,
    require,
)
from halaqa.schemas import HomeworkCompleteRequest, HomeworkCreate
from halaqa.services.notification_service import NotificationType
from halaqa.state_machines import homework as machine
from halaqa.state_machines.homework import HomeworkColor

logger = get_logger(__name__)


def append_completion_note(note: str | None, completion_note: str | None) -> str | None:
    if not completion_note:
        return note
    return f"{note or ''}\n\nCompletion note: {completion_note}".strip()


class HomeworkService:
    def __init__(self, homework, people, notifier):
        self.homework = homework
        self.people = people
        self.notifier = notifier

    async def _load(self, ctx: PermissionContext, homework_id: UUID) -> Highlight:
        row = await self.homework.get(homework_id)
        if row is None or row.school_id != ctx.school_id or not machine.is_homework(row.color):
            raise NotFoundError("homework", homework_id)
        return row

    async def create(self, ctx: PermissionContext, data: HomeworkCreate) -> Highlight:
        require(can_create_homework(ctx), "create", "homework")
        if not await self.people.student_in_school(data.student_id, ctx.school_id):
            raise NotFoundError("student", data.student_id)

        now = datetime.now(timezone.utc)
        row = await self.homework.insert(
            Highlight(
                school_id=ctx.school_id,
                teacher_id=ctx.teacher_id,
                student_id=data.student_id,
                surah=data.surah,
                ayah_start=data.ayah_start,
                ayah_end=data.ayah_end,
                page_number=data.page_number,
                type=data.type,
                note=data.note,
                color=HomeworkColor.green.value,
                created_at=now,
                updated_at=now,
            )
        )
        await self.homework.commit()

        logger.info("homework_created", homework_id=str(row.id), student_id=str(data.student_id))
        await self.notifier.notify_student(
            ctx.school_id,
            row.student_id,
            NotificationType.homework_assigned,
            {
                "homework_id": str(row.id),
                "ayah_reference": f"{row.surah}:{row.ayah_start}-{row.ayah_end}",
            },
        )
        return row

    async def list_visible(
        self,
        ctx: PermissionContext,
        *,
        student_id: UUID | None = None,
        include_completed: bool = False,
        limit: int = 20,
        offset: int = 0,
    ) -> tuple[list[Highlight], int]:
        """Pending homework only, unless ``include_completed``."""
        scope: dict = {}
        if ctx.is_teacher:
            scope["teacher_id"] = ctx.teacher_id
        elif ctx.is_student:
            scope["student_ids"] = frozenset({ctx.student_id})
        elif ctx.is_parent:
            scope["student_ids"] = ctx.child_student_ids
        elif not ctx.is_admin:
            return [], 0

        return await self.homework.list_homework(
            ctx.school_id,
            student_id=student_id,
            include_completed=include_completed,
            limit=limit,
            offset=offset,
            **scope,
        )

    async def get(self, ctx: PermissionContext, homework_id: UUID) -> Highlight:
        row = await self._load(ctx, homework_id)
        require(can_view_homework(ctx, row), "view", "homework")
        return row

    async def complete(
        self,
        ctx: PermissionContext,
        homework_id: UUID,
        data: HomeworkCompleteRequest | None = None,
    ) -> Highlight:
        """Turn pending (green) homework gold.

        Raises:
            NotFoundError: no such homework in the caller's school
            AuthorizationError: the caller is not a teacher of the school
            AlreadyCompletedError: the homework is already gold
            StaleStateError: it was completed concurrently
        """
        data = data or HomeworkCompleteRequest()
        row = await self.homework.get(homework_id)
        if row is None or row.school_id != ctx.school_id:
            raise NotFoundError("homework", homework_id)
        require(can_complete_homework(ctx, row), "complete", "homework")

        new_color = machine.complete(row.color)

        now = datetime.now(timezone.utc)
        completed_by = data.completed_by or ctx.user_id
        updated = await self.homework.compare_and_swap(
            homework_id,
            row.color,
            {
                "color": new_color.value,
                "previous_color": row.color,
                "completed_at": now,
                "completed_by": completed_by,
                "note": append_completion_note(row.note, data.completion_note),
                "updated_at": now,
            },
        )
        await self.homework.commit()

        logger.info(
            "homework_completed",
            homework_id=str(homework_id),
            completed_by=str(completed_by),
        )
        await self.notifier.notify_student(
            ctx.school_id,
            updated.student_id,
            NotificationType.homework_completed,
            {
                "homework_id": str(homework_id),
                "ayah_reference": f"{updated.surah}:{updated.ayah_start}-{updated.ayah_end}",
                "completion_note": data.completion_note,
            },
        )
        return updated

    async def delete(self, ctx: PermissionContext, homework_id: UUID) -> None:
        """Pending homework can be deleted by its teacher; completed homework is kept."""
        row = await self._load(ctx, homework_id)
        require(can_delete_homework(ctx, row), "delete", "homework")
        if row.color == HomeworkColor.gold.value:
            raise InvalidTransitionError(
                machine.homework_status(row.color).value,
                "delete",
                message="Cannot delete completed homework",
            )

        # Guarded on color so homework completed since the read is kept.
        await self.homework.delete_if_status(homework_id, [HomeworkColor.green.value])
        await self.homework.commit()
        logger.info("homework_deleted", homework_id=str(homework_id))
