"""
User repository.

Read access to users for address attribution and notifications.
"""

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from reconciler.models.user import User
from reconciler.repositories.base import BaseRepository


class UserRepository(BaseRepository[User]):
    """Repository for users."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository."""
        super().__init__(User, session)

    async def get_by_wallet_address(self, address: str | None) -> User | None:
        """
        Find user whose primary wallet matches address (case-insensitive).

        Args:
            address: Wallet address in any case

        Returns:
            User or None
        """
        if not address:
            return None

        stmt = (
            select(User)
            .where(func.lower(User.primary_wallet_address) == address.lower())
            .limit(1)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()
