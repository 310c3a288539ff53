"""
Record updater.

The only writer of status, address fields and blockchain details. Every
write re-reads the record in a fresh unit of work, skips terminal
records, and lands through TransactionRepository.update_if_pending so
that a poller and a sweep racing on the same record cannot undo each
other's terminal transition.
"""

from collections.abc import Callable
from datetime import datetime
from typing import Any

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from reconciler.config.constants import NATIVE_TOKEN_ADDRESS
from reconciler.models.enums import TransactionStatus
from reconciler.models.transaction import TransactionRecord
from reconciler.repositories.transaction_repository import TransactionRepository
from reconciler.repositories.user_repository import UserRepository
from reconciler.schemas.transaction_metadata import (
    AttributionInfo,
    BlockchainDetails,
    TransactionMetadata,
)
from reconciler.services.address_attribution import (
    AddressAttributionResolver,
    Attribution,
)
from reconciler.services.blockchain.ledger_reader import TransactionDetails
from reconciler.services.notification_service import TransactionNotifier
from reconciler.services.reconciliation.state_machine import can_transition
from reconciler.services.transfer_normalization import normalize_transfer
from reconciler.utils.datetime_utils import utc_now
from reconciler.utils.security import mask_tx_hash
from reconciler.utils.validation import addresses_equal

FIXED_BY_POLLER = "poller"
FIXED_BY_SWEEP = "sweep"


def blockchain_details_from(
    details: TransactionDetails, contract_address: str | None
) -> BlockchainDetails:
    """Snapshot of ledger details for metadata.blockchainDetails."""
    return BlockchainDetails(
        gas=details.gas,
        gas_price=details.gas_price,
        nonce=details.nonce,
        block_number=details.block_number,
        confirmations=details.confirmations,
        timestamp=details.timestamp,
        is_erc20_transfer=details.is_erc20_transfer,
        contract_address=contract_address,
        transfer_event_count=details.transfer_event_count,
    )


class RecordUpdater:
    """Conditional writes of reconciliation results."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        notifier: TransactionNotifier,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        """
        Initialize updater.

        Args:
            session_factory: Session factory, one session per write
            notifier: Completion hook
            clock: Source of fixedAt timestamps
        """
        self.session_factory = session_factory
        self.notifier = notifier
        self.clock = clock

    async def is_pending(self, record_id: int) -> bool:
        """Check that record exists and is not terminal."""
        async with self.session_factory() as session:
            record = await TransactionRepository(session).get_by_id(record_id)
            return record is not None and not record.is_terminal

    async def apply_details(
        self,
        record_id: int,
        details: TransactionDetails,
        target_status: TransactionStatus,
        *,
        error: str | None = None,
        attempts: int | None = None,
        fixed_by: str = FIXED_BY_POLLER,
    ) -> TransactionStatus | None:
        """
        Write ledger details and the status they justify.

        Placeholder records get their sentinel addresses/amount replaced
        and users attributed in the same update that clears isPending.
        Users are attributed again whenever the effective recipient
        changes.

        Args:
            record_id: Record ID
            details: Ledger view of the transaction
            target_status: PENDING to refresh, or a terminal status
            error: Diagnostic reason (failures)
            attempts: Poll attempt that produced the result
            fixed_by: "poller" or "sweep"

        Returns:
            Written status, or None if the record was already terminal
        """
        async with self.session_factory() as session:
            repo = TransactionRepository(session)
            record = await repo.get_by_id(record_id)
            if record is None:
                logger.warning(f"Record {record_id} disappeared, skipping update")
                return None

            current = TransactionStatus(record.status)
            if not can_transition(current, target_status):
                logger.info(
                    f"Record {record_id} already {current}, "
                    f"not moving to {target_status}"
                )
                return None

            meta = TransactionMetadata.from_raw(record.meta)
            normalized = normalize_transfer(
                details,
                default_token_address=record.token_address or NATIVE_TOKEN_ADDRESS,
            )

            values: dict[str, Any] = {
                "status": target_status.value,
                "from_address": normalized.from_address or record.from_address,
                "to_address": normalized.to_address or record.to_address,
                "amount": normalized.amount,
                "token_address": normalized.token_address,
            }

            # Token calls seen in the mempool reveal their recipient only
            # once the receipt's Transfer event is decoded
            recipient_changed = (
                normalized.to_address is not None
                and not addresses_equal(record.to_address, normalized.to_address)
            )
            if meta.is_pending or recipient_changed:
                attribution = await self._attribute(
                    session, record, normalized.from_address, normalized.to_address
                )
                if attribution is not None:
                    values["from_user_id"] = attribution.from_user_id
                    values["to_user_id"] = attribution.to_user_id
                    meta.attribution = AttributionInfo(
                        role=attribution.role,
                        external_counterparty=attribution.external_counterparty,
                    )
                meta.is_pending = False

            meta.blockchain_details = blockchain_details_from(
                details, normalized.contract_address
            )
            if target_status.is_terminal:
                meta.diagnostics.error = error
                meta.diagnostics.attempts = attempts
                meta.diagnostics.fixed_at = self.clock()
                meta.diagnostics.fixed_by = fixed_by
            values["meta"] = meta.to_raw()

            updated = await repo.update_if_pending(record_id, **values)
            await session.commit()

            if not updated:
                logger.info(
                    f"Record {record_id} changed concurrently, update skipped"
                )
                return None

            await session.refresh(record)

        self._log_transition(record, target_status, error)
        if target_status is TransactionStatus.COMPLETED:
            await self._notify(record)
        return target_status

    async def mark_failed(
        self,
        record_id: int,
        reason: str,
        *,
        hours_since_creation: float | None = None,
        attempts: int | None = None,
        fixed_by: str = FIXED_BY_POLLER,
    ) -> bool:
        """
        Fail a pending record without ledger details.

        Args:
            record_id: Record ID
            reason: Diagnostic reason
            hours_since_creation: Age at failure (sweep)
            attempts: Attempts spent (pollers)
            fixed_by: "poller" or "sweep"

        Returns:
            True if the record moved to failed
        """
        async with self.session_factory() as session:
            repo = TransactionRepository(session)
            record = await repo.get_by_id(record_id)
            if record is None or record.is_terminal:
                return False

            meta = TransactionMetadata.from_raw(record.meta)
            meta.diagnostics.error = reason
            meta.diagnostics.hours_since_creation = hours_since_creation
            meta.diagnostics.attempts = attempts
            meta.diagnostics.fixed_at = self.clock()
            meta.diagnostics.fixed_by = fixed_by

            updated = await repo.update_if_pending(
                record_id,
                status=TransactionStatus.FAILED.value,
                meta=meta.to_raw(),
            )
            await session.commit()

        if updated:
            logger.warning(
                f"Record {record_id} ({mask_tx_hash(record.tx_hash)}) "
                f"marked failed: {reason}"
            )
        return updated

    async def _attribute(
        self,
        session: AsyncSession,
        record: TransactionRecord,
        tx_from: str | None,
        tx_to: str | None,
    ) -> Attribution | None:
        if record.submitted_by_user_id is None:
            return None

        user_repo = UserRepository(session)
        acting_user = await user_repo.get_by_id(record.submitted_by_user_id)
        wallet = acting_user.primary_wallet_address if acting_user else None

        resolver = AddressAttributionResolver(user_repo)
        return await resolver.classify(
            tx_from, tx_to, record.submitted_by_user_id, wallet
        )

    def _log_transition(
        self,
        record: TransactionRecord,
        status: TransactionStatus,
        error: str | None,
    ) -> None:
        ref = f"Record {record.id} ({mask_tx_hash(record.tx_hash)})"
        if status is TransactionStatus.COMPLETED:
            logger.success(f"{ref} completed")
        elif status is TransactionStatus.FAILED:
            logger.warning(f"{ref} failed: {error}")
        else:
            logger.debug(f"{ref} refreshed, still pending")

    async def _notify(self, record: TransactionRecord) -> None:
        if record.from_user_id is None or record.to_user_id is None:
            logger.debug(
                f"Record {record.id} has an unresolved party, no notification"
            )
            return

        try:
            await self.notifier.notify_completed(record)
        except Exception as e:
            logger.error(
                f"Notification for record {record.id} failed: {e}"
            )
