"""
User model.

Internal accounts that transactions are attributed to. The reconciler
only reads users; registration and wallet binding live elsewhere.
"""

from datetime import UTC, datetime

from sqlalchemy import BigInteger, DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from reconciler.models.base import Base
from reconciler.models.types import AddressType


class User(Base):
    """User account with an optional primary wallet."""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )
    username: Mapped[str | None] = mapped_column(
        String(255), nullable=True, index=True
    )

    # Stored lowercase
    primary_wallet_address: Mapped[str | None] = mapped_column(
        AddressType, nullable=True, unique=True, index=True
    )

    # Chat id for completion notifications
    telegram_id: Mapped[int | None] = mapped_column(
        BigInteger, nullable=True, unique=True
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
        nullable=False,
    )

    def __repr__(self) -> str:
        """String representation."""
        return f"<User(id={self.id}, username={self.username})>"
