"""Assignment rows, their submissions and their event trail."""

from datetime import datetime, timezone
from uuid import UUID

from sqlalchemy import func, or_, select

from halaqa.models import Assignment, AssignmentEvent, AssignmentSubmission
from halaqa.repositories.base import SqlStatusRepository


SORT_COLUMNS = {
    "due_at": Assignment.due_at,
    "created_at": Assignment.created_at,
    "status": Assignment.status,
}


class AssignmentRepository(SqlStatusRepository[Assignment]):
    model_class = Assignment
    entity = "assignment"

    async def list_assignments(
        self,
        school_id: UUID,
        *,
        teacher_id: UUID | None = None,
        class_ids: frozenset[UUID] | None = None,
        student_ids: frozenset[UUID] | None = None,
        student_id: UUID | None = None,
        status: str | None = None,
        created_by: UUID | None = None,
        late_only: bool = False,
        due_before: datetime | None = None,
        due_after: datetime | None = None,
        sort_by: str = "due_at",
        sort_order: str = "asc",
        limit: int = 20,
        offset: int = 0,
    ) -> tuple[list[Assignment], int]:
        """Return a page of assignments plus the total matching count.

        ``teacher_id``/``class_ids`` and ``student_ids`` narrow visibility;
        passing none of them lists the whole school. The remaining filters are
        ANDed onto that scope. Late means past due and not completed.
        """
        base = select(Assignment).where(Assignment.school_id == school_id)

        scope = []
        if teacher_id is not None:
            scope.append(Assignment.created_by_teacher_id == teacher_id)
        if class_ids:
            scope.append(Assignment.class_id.in_(class_ids))
        if student_ids is not None:
            scope.append(Assignment.student_id.in_(student_ids))
        if scope:
            base = base.where(or_(*scope))
        if student_id is not None:
            base = base.where(Assignment.student_id == student_id)
        if status is not None:
            base = base.where(Assignment.status == status)
        if created_by is not None:
            base = base.where(Assignment.created_by_teacher_id == created_by)
        if late_only:
            base = base.where(
                Assignment.status != "completed",
                Assignment.due_at < datetime.now(timezone.utc),
            )
        if due_before is not None:
            base = base.where(Assignment.due_at < due_before)
        if due_after is not None:
            base = base.where(Assignment.due_at > due_after)

        total = (
            await self.session.execute(select(func.count()).select_from(base.subquery()))
        ).scalar() or 0

        column = SORT_COLUMNS[sort_by]
        ordering = column.desc() if sort_order == "desc" else column.asc()
        query = base.order_by(ordering, Assignment.id).offset(offset).limit(limit)
        result = await self.session.execute(query)
        return list(result.scalars().all()), total

    async def add_submission(self, submission: AssignmentSubmission) -> AssignmentSubmission:
        self.session.add(submission)
        await self.session.flush()
        return submission

    async def add_event(self, event: AssignmentEvent) -> AssignmentEvent:
        self.session.add(event)
        await self.session.flush()
        return event

    async def list_submissions(self, assignment_id: UUID) -> list[AssignmentSubmission]:
        result = await self.session.execute(
            select(AssignmentSubmission)
            .where(AssignmentSubmission.assignment_id == assignment_id)
            .order_by(AssignmentSubmission.submitted_at.desc())
        )
        return list(result.scalars().all())

    async def list_events(self, assignment_id: UUID) -> list[AssignmentEvent]:
        result = await self.session.execute(
            select(AssignmentEvent)
            .where(AssignmentEvent.assignment_id == assignment_id)
            .order_by(AssignmentEvent.created_at.asc())
        )
        return list(result.scalars().all())
