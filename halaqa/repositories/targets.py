"""Target and milestone rows."""

from uuid import UUID

from sqlalchemy import and_, func, or_, select

from halaqa.models import Target, TargetMilestone
from halaqa.repositories.base import SqlStatusRepository
from halaqa.state_machines.target import TargetType


class TargetRepository(SqlStatusRepository[Target]):
    model_class = Target
    entity = "target"

    async def list_targets(
        self,
        school_id: UUID,
        *,
        teacher_id: UUID | None = None,
        student_ids: frozenset[UUID] | None = None,
        include_shared: bool = False,
        status: str | None = None,
        target_type: str | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> tuple[list[Target], int]:
        """Return a page of targets plus the total matching count.

        ``include_shared`` adds every class and school target to the scope.
        """
        base = select(Target).where(Target.school_id == school_id)

        scope = []
        if teacher_id is not None:
            scope.append(Target.teacher_id == teacher_id)
        if student_ids is not None:
            scope.append(
                and_(
                    Target.type == TargetType.individual.value,
                    Target.student_id.in_(student_ids),
                )
            )
        if include_shared:
            scope.append(Target.type != TargetType.individual.value)
        if scope:
            base = base.where(or_(*scope))
        if status is not None:
            base = base.where(Target.status == status)
        if target_type is not None:
            base = base.where(Target.type == target_type)

        total = (
            await self.session.execute(select(func.count()).select_from(base.subquery()))
        ).scalar() or 0

        query = base.order_by(Target.created_at.desc()).offset(offset).limit(limit)
        result = await self.session.execute(query)
        return list(result.scalars().all()), total


class MilestoneRepository(SqlStatusRepository[TargetMilestone]):
    """Milestones move from ``completed=False`` to ``completed=True`` only."""

    model_class = TargetMilestone
    entity = "milestone"
    status_field = "completed"

    async def lock_target(self, target_id: UUID) -> Target | None:
        """Lock the parent target row for the rest of the transaction."""
        result = await self.session.execute(
            select(Target).where(Target.id == target_id).with_for_update()
        )
        return result.scalar_one_or_none()

    async def list_for_target(self, target_id: UUID) -> list[TargetMilestone]:
        result = await self.session.execute(
            select(TargetMilestone)
            .where(TargetMilestone.target_id == target_id)
            .order_by(TargetMilestone.order_index.asc())
        )
        return list(result.scalars().all())

    async def order_indexes(self, target_id: UUID) -> list[int]:
        result = await self.session.execute(
            select(TargetMilestone.order_index).where(TargetMilestone.target_id == target_id)
        )
        return list(result.scalars().all())

    async def add_many(self, milestones: list[TargetMilestone]) -> list[TargetMilestone]:
        self.session.add_all(milestones)
        await self.session.flush()
        return milestones
