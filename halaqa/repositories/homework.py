"""Homework rows. Homework is a highlight whose color is green or gold."""

from uuid import UUID

from sqlalchemy import func, or_, select

from halaqa.models import Highlight
from halaqa.repositories.base import SqlStatusRepository
from halaqa.state_machines.homework import HomeworkColor

HOMEWORK_COLORS = [HomeworkColor.green.value, HomeworkColor.gold.value]


class HomeworkRepository(SqlStatusRepository[Highlight]):
    model_class = Highlight
    entity = "homework"
    status_field = "color"

    async def list_homework(
        self,
        school_id: UUID,
        *,
        teacher_id: UUID | None = None,
        student_ids: frozenset[UUID] | None = None,
        student_id: UUID | None = None,
        include_completed: bool = False,
        limit: int = 20,
        offset: int = 0,
    ) -> tuple[list[Highlight], int]:
        colors = HOMEWORK_COLORS if include_completed else [HomeworkColor.green.value]
        base = select(Highlight).where(
            Highlight.school_id == school_id,
            Highlight.color.in_(colors),
        )

        scope = []
        if teacher_id is not None:
            scope.append(Highlight.teacher_id == teacher_id)
        if student_ids is not None:
            scope.append(Highlight.student_id.in_(student_ids))
        if scope:
            base = base.where(or_(*scope))
        if student_id is not None:
            base = base.where(Highlight.student_id == student_id)

        total = (
            await self.session.execute(select(func.count()).select_from(base.subquery()))
        ).scalar() or 0

        query = base.order_by(Highlight.created_at.desc()).offset(offset).limit(limit)
        result = await self.session.execute(query)
        return list(result.scalars().all()), total
