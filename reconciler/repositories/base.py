"""
Base repository.

Shared lookups for the reconciler's repositories. Repositories flush but
never commit: the engine, updater and jobs own the unit of work.
"""

from typing import Any, Generic, TypeVar

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from reconciler.models.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseRepository(Generic[ModelType]):
    """
    Generic data access bound to one model and one session.

    Example:
        class UserRepository(BaseRepository[User]):
            def __init__(self, session: AsyncSession):
                super().__init__(User, session)
    """

    def __init__(self, model: type[ModelType], session: AsyncSession) -> None:
        self.model = model
        self.session = session

    async def get_by_id(self, id: int | None) -> ModelType | None:
        """
        Get row by primary key.

        Args:
            id: Primary key; None (unattributed party) yields None

        Returns:
            Row or None
        """
        if id is None:
            return None
        return await self.session.get(self.model, id)

    async def get_by(self, **filters: Any) -> ModelType | None:
        """Single row matching equality filters, or None."""
        result = await self.session.execute(
            select(self.model).filter_by(**filters)
        )
        return result.scalar_one_or_none()

    async def create(self, **data: Any) -> ModelType:
        """
        Insert row and load server-side defaults.

        Raises:
            IntegrityError: On unique constraint violations at flush
        """
        entity = self.model(**data)
        self.session.add(entity)
        await self.session.flush()
        await self.session.refresh(entity)
        return entity

    async def count(self, **filters: Any) -> int:
        """Number of rows matching equality filters."""
        stmt = select(func.count()).select_from(self.model).filter_by(**filters)
        result = await self.session.execute(stmt)
        return result.scalar() or 0
