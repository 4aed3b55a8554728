"""
Base repository with common CRUD operations.

Repositories are bound to a session so that a service can read, validate
and write several records inside one transaction.
"""

from typing import Any, Generic, Optional, Sequence, Type, TypeVar

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from devsprint.infrastructure.database import Base

T = TypeVar("T", bound=Base)


class BaseRepository(Generic[T]):
    """Generic async repository for SQLAlchemy models."""

    model: Type[T]

    def __init__(self, session: AsyncSession, model: Optional[Type[T]] = None):
        self.session = session
        if model is not None:
            self.model = model

    def _apply_filters(self, stmt, filters: dict[str, Any] | None):
        if filters:
            for key, value in filters.items():
                if hasattr(self.model, key):
                    stmt = stmt.where(getattr(self.model, key) == value)
        return stmt

    async def get_by_id(self, id: Any) -> Optional[T]:
        """Get a single record by primary key."""
        return await self.session.get(self.model, id)

    async def list(
        self,
        *,
        filters: dict[str, Any] | None = None,
        order_by: str | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> Sequence[T]:
        """List records with optional filters, ordering, and pagination."""
        stmt = self._apply_filters(select(self.model), filters)

        if order_by and hasattr(self.model, order_by.lstrip("-")):
            col = getattr(self.model, order_by.lstrip("-"))
            stmt = stmt.order_by(col.desc() if order_by.startswith("-") else col)

        if offset:
            stmt = stmt.offset(offset)
        if limit:
            stmt = stmt.limit(limit)

        result = await self.session.execute(stmt)
        return result.scalars().all()

    async def count(self, filters: dict[str, Any] | None = None) -> int:
        """Count records matching filters."""
        stmt = self._apply_filters(select(func.count()).select_from(self.model), filters)
        result = await self.session.execute(stmt)
        return result.scalar_one()

    async def create(self, **kwargs: Any) -> T:
        """Create a new record."""
        instance = self.model(**kwargs)
        self.session.add(instance)
        await self.session.flush()
        return instance

    async def delete(self, id: Any) -> bool:
        """Delete a record by primary key. Returns True if deleted."""
        instance = await self.session.get(self.model, id)
        if instance is None:
            return False
        await self.session.delete(instance)
        await self.session.flush()
        return True

    async def delete_many(self, filters: dict[str, Any]) -> int:
        """Bulk delete matching records without loading them."""
        stmt = self._apply_filters(delete(self.model), filters)
        result = await self.session.execute(stmt)
        return result.rowcount or 0

    async def update_many(self, filters: dict[str, Any], **values: Any) -> int:
        """Bulk update matching records without loading them."""
        stmt = self._apply_filters(update(self.model), filters).values(**values)
        result = await self.session.execute(stmt.execution_options(synchronize_session=False))
        return result.rowcount or 0
