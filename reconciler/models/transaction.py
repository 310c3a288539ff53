"""
Transaction record model.

One row per submitted blockchain transaction hash. Placeholder rows
(created before the hash is visible on-chain) carry sentinel values in
from_address / to_address / amount until discovery fills them in.
"""

from datetime import UTC, datetime
from typing import Any

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from reconciler.config.constants import (
    DEFAULT_CATEGORY,
    DEFAULT_TRANSACTION_TYPE,
    NATIVE_TOKEN_ADDRESS,
)
from reconciler.models.base import Base
from reconciler.models.enums import TransactionStatus
from reconciler.models.types import (
    AddressType,
    AmountType,
    MetadataType,
    TxHashType,
)


class TransactionRecord(Base):
    """Reconciled blockchain transaction."""

    __tablename__ = "transaction_records"
    __table_args__ = (
        Index("idx_transaction_records_status_created", "status", "created_at"),
        Index("idx_transaction_records_addresses", "from_address", "to_address"),
    )

    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )

    # Unique once known; NULLs do not collide
    tx_hash: Mapped[str | None] = mapped_column(
        TxHashType, nullable=True, unique=True, index=True
    )

    type: Mapped[str] = mapped_column(
        String(32), nullable=False, default=DEFAULT_TRANSACTION_TYPE
    )
    category: Mapped[str] = mapped_column(
        String(64), nullable=False, default=DEFAULT_CATEGORY
    )
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=TransactionStatus.PENDING.value
    )  # pending, completed, failed

    # Attribution to internal accounts
    from_user_id: Mapped[int | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True
    )
    to_user_id: Mapped[int | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True
    )
    # User whose request created the record; drives attribution on discovery
    submitted_by_user_id: Mapped[int | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )

    # Raw chain data
    from_address: Mapped[str] = mapped_column(AddressType, nullable=False)
    to_address: Mapped[str] = mapped_column(AddressType, nullable=False)
    amount: Mapped[str] = mapped_column(AmountType, nullable=False)
    token_address: Mapped[str] = mapped_column(
        AddressType, nullable=False, default=NATIVE_TOKEN_ADDRESS
    )
    source_chain: Mapped[str] = mapped_column(String(32), nullable=False)
    destination_chain: Mapped[str] = mapped_column(String(32), nullable=False)

    # Serialized TransactionMetadata ("metadata" is reserved on declarative classes)
    meta: Mapped[dict[str, Any]] = mapped_column(
        "metadata", MetadataType, nullable=False, default=dict
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
        tx_hash = self.tx_hash[:16] if self.tx_hash else None
        return (
            f"<TransactionRecord(id={self.id}, tx_hash={tx_hash}..., "
            f"status={self.status}, amount={self.amount})>"
        )

    @property
    def is_terminal(self) -> bool:
        """Completed or failed."""
        return TransactionStatus(self.status).is_terminal
