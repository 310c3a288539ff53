"""
Transaction record repository.

Data access layer for reconciled transactions. Status writes go through
update_if_pending, which only touches rows still in a non-terminal state,
so live pollers and sweeps can race without moving a record backwards.
"""

from typing import Any

from sqlalchemy import and_, func, or_, select, true, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql.elements import ColumnElement

from reconciler.config.constants import (
    NATIVE_TOKEN_ADDRESS,
    PENDING_ADDRESS,
    PLACEHOLDER_AMOUNT,
)
from reconciler.models.enums import TransactionStatus
from reconciler.models.transaction import TransactionRecord
from reconciler.repositories.base import BaseRepository
from reconciler.utils.datetime_utils import utc_now


class TransactionRepository(BaseRepository[TransactionRecord]):
    """Repository for transaction records."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository."""
        super().__init__(TransactionRecord, session)

    async def get_by_tx_hash(self, tx_hash: str) -> TransactionRecord | None:
        """
        Get record by transaction hash.

        Args:
            tx_hash: Transaction hash (with or without 0x prefix)

        Returns:
            Record or None
        """
        normalized = tx_hash.lower()
        if not normalized.startswith("0x"):
            normalized = f"0x{normalized}"

        return await self.get_by(tx_hash=normalized)

    async def create_record(self, **data: Any) -> TransactionRecord:
        """
        Create record.

        Raises:
            IntegrityError: On flush if tx_hash is already stored
        """
        if data.get("tx_hash"):
            data["tx_hash"] = data["tx_hash"].lower()
        return await self.create(**data)

    @staticmethod
    def _suspect_condition(include_terminal: bool) -> ColumnElement[bool]:
        """
        Filter for records that may need repair.

        Pending status, the isPending flag, or any placeholder value.
        Terminal records never change, so the sweep excludes them.
        """
        suspect = or_(
            TransactionRecord.status == TransactionStatus.PENDING.value,
            TransactionRecord.meta["isPending"].as_boolean() == true(),
            TransactionRecord.from_address == PENDING_ADDRESS,
            TransactionRecord.to_address == PENDING_ADDRESS,
            TransactionRecord.amount == PLACEHOLDER_AMOUNT,
            TransactionRecord.token_address == NATIVE_TOKEN_ADDRESS,
        )
        if include_terminal:
            return suspect
        return and_(
            suspect,
            TransactionRecord.status == TransactionStatus.PENDING.value,
        )

    async def find_suspect(
        self,
        limit: int | None = None,
        include_terminal: bool = False,
    ) -> list[TransactionRecord]:
        """
        Find suspect records, oldest first.

        Args:
            limit: Max number of records
            include_terminal: Also return completed/failed rows with sentinels

        Returns:
            Records ordered by creation time
        """
        stmt = (
            select(TransactionRecord)
            .where(self._suspect_condition(include_terminal))
            .order_by(TransactionRecord.created_at.asc(), TransactionRecord.id.asc())
        )
        if limit is not None:
            stmt = stmt.limit(limit)

        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def count_suspect(self, include_terminal: bool = True) -> int:
        """
        Count suspect records.

        Args:
            include_terminal: Count terminal rows with sentinel values too

        Returns:
            Number of matching records
        """
        stmt = (
            select(func.count())
            .select_from(TransactionRecord)
            .where(self._suspect_condition(include_terminal))
        )
        result = await self.session.execute(stmt)
        return result.scalar() or 0

    async def update_if_pending(self, record_id: int, **values: Any) -> bool:
        """
        Update record only while it is still pending.

        Compare-and-swap on status: the WHERE clause re-checks status in
        the same statement, so a record completed or failed by another
        worker is left untouched.

        Args:
            record_id: Record ID
            **values: Column values (model attribute names)

        Returns:
            True if the row was updated
        """
        assignments = {
            getattr(TransactionRecord, key): value for key, value in values.items()
        }
        assignments[TransactionRecord.updated_at] = utc_now()

        stmt = (
            update(TransactionRecord)
            .where(
                TransactionRecord.id == record_id,
                TransactionRecord.status == TransactionStatus.PENDING.value,
            )
            .values(assignments)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount > 0
