"""
Background pollers.

DiscoveryPoller looks for a transaction that was not visible at intake;
once found it hands off to ConfirmationPoller in the same task, so
confirmation never starts before discovery finished. Both loops are
bounded by their RetryPolicy and always end with the record either
terminal or untouched because someone else finished it first.
"""

from loguru import logger

from reconciler.models.enums import LedgerStatus, TransactionStatus
from reconciler.services.blockchain.ledger_reader import LedgerReader
from reconciler.services.reconciliation.policy import RetryPolicy
from reconciler.services.reconciliation.record_updater import RecordUpdater
from reconciler.services.reconciliation.state_machine import (
    REVERTED_ON_CHAIN,
    monitoring_failed,
    never_confirmed,
    not_found_after_retries,
    status_for_ledger,
)
from reconciler.utils.exceptions import must_raise
from reconciler.utils.security import mask_tx_hash


class ConfirmationPoller:
    """Waits for a visible transaction to reach the confirmation threshold."""

    def __init__(
        self,
        updater: RecordUpdater,
        ledger_reader: LedgerReader,
        policy: RetryPolicy,
        confirmation_threshold: int = 1,
    ) -> None:
        """
        Initialize poller.

        Args:
            updater: Record writer
            ledger_reader: Ledger Reader
            policy: Attempt count and delay
            confirmation_threshold: Confirmations required for completion
        """
        self.updater = updater
        self.ledger_reader = ledger_reader
        self.policy = policy
        self.confirmation_threshold = confirmation_threshold

    async def run(
        self, record_id: int, tx_hash: str, network_name: str
    ) -> TransactionStatus | None:
        """
        Poll until completed, failed or out of attempts.

        Each iteration re-applies the ERC-20 correction and refreshes
        blockchainDetails, since the effective recipient of a contract
        call is only known after mining.

        Returns:
            Final status written by this poller, None if another writer
            finished the record first
        """
        masked = mask_tx_hash(tx_hash)
        errors = 0
        attempts = 0

        async for attempt in self.policy.attempts():
            attempts = attempt
            try:
                if not await self.updater.is_pending(record_id):
                    logger.info(
                        f"Record {record_id} ({masked}) no longer pending, "
                        f"stopping confirmation polling"
                    )
                    return None

                details = await self.ledger_reader.get_transaction_details(
                    network_name, tx_hash
                )
                if details is None:
                    logger.info(
                        f"Transaction {masked} not visible "
                        f"(check {attempt}/{self.policy.max_attempts})"
                    )
                    continue

                target = status_for_ledger(details, self.confirmation_threshold)
                if target is TransactionStatus.FAILED:
                    return await self.updater.apply_details(
                        record_id,
                        details,
                        TransactionStatus.FAILED,
                        error=REVERTED_ON_CHAIN,
                        attempts=attempt,
                    )
                if target is TransactionStatus.COMPLETED:
                    return await self.updater.apply_details(
                        record_id,
                        details,
                        TransactionStatus.COMPLETED,
                        attempts=attempt,
                    )

                await self.updater.apply_details(
                    record_id, details, TransactionStatus.PENDING
                )
                logger.debug(
                    f"Transaction {masked}: {details.confirmations}/"
                    f"{self.confirmation_threshold} confirmations "
                    f"(check {attempt}/{self.policy.max_attempts})"
                )

            except Exception as e:
                if must_raise(e):
                    logger.exception(
                        f"Confirmation polling aborted for record {record_id} "
                        f"({masked}): {e}"
                    )
                    await self.updater.mark_failed(
                        record_id, monitoring_failed(str(e)), attempts=attempt
                    )
                    return TransactionStatus.FAILED

                errors += 1
                logger.warning(
                    f"Confirmation check {attempt} for record {record_id} "
                    f"({masked}) failed: {e}"
                )

        if errors == attempts:
            reason = monitoring_failed(f"all {attempts} checks raised errors")
        else:
            reason = never_confirmed(attempts)

        if await self.updater.mark_failed(record_id, reason, attempts=attempts):
            return TransactionStatus.FAILED
        return None


class DiscoveryPoller:
    """Looks for a transaction that is not yet visible on-chain."""

    def __init__(
        self,
        updater: RecordUpdater,
        ledger_reader: LedgerReader,
        policy: RetryPolicy,
        confirmation_poller: ConfirmationPoller,
    ) -> None:
        self.updater = updater
        self.ledger_reader = ledger_reader
        self.policy = policy
        self.confirmation_poller = confirmation_poller

    async def run(
        self, record_id: int, tx_hash: str, network_name: str
    ) -> TransactionStatus | None:
        """
        Poll until found, then confirm; fail after max_attempts misses.

        The ledger is queried exactly once per attempt, so a transaction
        that never appears costs policy.max_attempts lookups.

        Returns:
            Final status written by the pollers, None if another writer
            finished the record first
        """
        masked = mask_tx_hash(tx_hash)
        attempts = 0
        logger.info(
            f"Looking for {masked} on {network_name}: up to "
            f"{self.policy.max_attempts} attempts over {self.policy.max_duration:.0f}s"
        )

        async for attempt in self.policy.attempts():
            attempts = attempt
            try:
                if not await self.updater.is_pending(record_id):
                    logger.info(
                        f"Record {record_id} ({masked}) no longer pending, "
                        f"stopping discovery"
                    )
                    return None

                details = await self.ledger_reader.get_transaction_details(
                    network_name, tx_hash
                )
                if details is None:
                    logger.info(
                        f"Transaction {masked} not found yet "
                        f"(attempt {attempt}/{self.policy.max_attempts})"
                    )
                    continue

                logger.info(
                    f"Transaction {masked} found on {network_name} "
                    f"after {attempt} attempt(s)"
                )

                if details.status is LedgerStatus.FAILED:
                    return await self.updater.apply_details(
                        record_id,
                        details,
                        TransactionStatus.FAILED,
                        error=REVERTED_ON_CHAIN,
                        attempts=attempt,
                    )

                written = await self.updater.apply_details(
                    record_id, details, TransactionStatus.PENDING
                )
                if written is None:
                    return None

            except Exception as e:
                if must_raise(e):
                    logger.exception(
                        f"Discovery aborted for record {record_id} ({masked}): {e}"
                    )
                    await self.updater.mark_failed(
                        record_id, monitoring_failed(str(e)), attempts=attempt
                    )
                    return TransactionStatus.FAILED

                logger.warning(
                    f"Discovery attempt {attempt} for record {record_id} "
                    f"({masked}) failed: {e}"
                )
                continue

            return await self.confirmation_poller.run(
                record_id, tx_hash, network_name
            )

        logger.warning(
            f"Transaction {masked} not found after {attempts} attempts, "
            f"failing record {record_id}"
        )
        if await self.updater.mark_failed(
            record_id, not_found_after_retries(attempts), attempts=attempts
        ):
            return TransactionStatus.FAILED
        return None
