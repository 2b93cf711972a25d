"""Base repository classes.

``StatusRepository`` is the persistence contract the services depend on:
read a row, insert a row, delete a row (optionally only while its status
is still deletable), and move a row's status with an optimistic
compare-and-swap. ``SqlStatusRepository`` implements it on an
``AsyncSession``.
"""

from abc import ABC, abstractmethod
from typing import Any, Generic, Iterable, TypeVar
from uuid import UUID

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from halaqa.exceptions import NotFoundError, StaleStateError, ValidationError

T = TypeVar("T")


def validate_pagination(page: int, limit: int, max_limit: int) -> tuple[int, int]:
    """Validate page/limit and return ``(limit, offset)``.

    Raises:
        ValidationError: If page or limit is below 1
    """
    if page < 1:
        raise ValidationError("Page must be at least 1", field="page")
    if limit < 1:
        raise ValidationError("Limit must be at least 1", field="limit")
    limit = min(limit, max_limit)
    return limit, (page - 1) * limit


class StatusRepository(ABC, Generic[T]):
    """Row access plus the conditional status write.

    Type Parameters:
        T: The entity type this repository manages
    """

    #: Human-readable entity name used in error messages.
    entity: str = "resource"
    #: Column holding the lifecycle state.
    status_field: str = "status"

    @abstractmethod
    async def get(self, entity_id: UUID) -> T | None:
        """Return the row or None."""

    @abstractmethod
    async def insert(self, row: T) -> T:
        """Persist a new row and return it with defaults populated."""

    @abstractmethod
    async def delete(self, entity_id: UUID) -> bool:
        """Delete the row; return whether one was removed."""

    @abstractmethod
    async def delete_if_status(self, entity_id: UUID, allowed: Iterable[Any]) -> None:
        """Delete the row only while its status is one of ``allowed``.

        Raises:
            NotFoundError: No row with ``entity_id``
            StaleStateError: The row exists but its status is no longer deletable
        """

    @abstractmethod
    async def compare_and_swap(
        self, entity_id: UUID, expected: Any, values: dict[str, Any]
    ) -> T:
        """Write ``values`` only if the stored status still equals ``expected``.

        Raises:
            NotFoundError: No row with ``entity_id``
            StaleStateError: The row exists but its status moved on
        """

    @abstractmethod
    async def commit(self) -> None:
        """Make the unit of work durable."""

    async def get_or_raise(self, entity_id: UUID) -> T:
        row = await self.get(entity_id)
        if row is None:
            raise NotFoundError(self.entity, entity_id)
        return row


class SqlStatusRepository(StatusRepository[T]):
    """``StatusRepository`` over an async SQLAlchemy session."""

    model_class: type

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get(self, entity_id: UUID) -> T | None:
        query = (
            select(self.model_class)
            .where(self.model_class.id == entity_id)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def insert(self, row: T) -> T:
        self.session.add(row)
        await self.session.flush()
        await self.session.refresh(row)
        return row

    async def delete(self, entity_id: UUID) -> bool:
        result = await self.session.execute(
            delete(self.model_class).where(self.model_class.id == entity_id)
        )
        return result.rowcount > 0

    async def delete_if_status(self, entity_id: UUID, allowed: Iterable[Any]) -> None:
        allowed = list(allowed)
        status_column = getattr(self.model_class, self.status_field)
        stmt = (
            delete(self.model_class)
            .where(self.model_class.id == entity_id, status_column.in_(allowed))
            .returning(self.model_class.id)
        )
        result = await self.session.execute(stmt)
        if result.scalar_one_or_none() is not None:
            return

        current = await self.get(entity_id)
        if current is None:
            raise NotFoundError(self.entity, entity_id)
        raise StaleStateError(
            self.entity,
            "|".join(str(value) for value in allowed),
            str(getattr(current, self.status_field)),
        )

    async def compare_and_swap(
        self, entity_id: UUID, expected: Any, values: dict[str, Any]
    ) -> T:
        status_column = getattr(self.model_class, self.status_field)
        stmt = (
            update(self.model_class)
            .where(self.model_class.id == entity_id, status_column == expected)
            .values(**values)
            .returning(self.model_class)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        row = result.scalar_one_or_none()
        if row is not None:
            return row

        current = await self.get(entity_id)
        if current is None:
            raise NotFoundError(self.entity, entity_id)
        raise StaleStateError(
            self.entity, str(expected), str(getattr(current, self.status_field))
        )

    async def commit(self) -> None:
        await self.session.commit()
