"""
Reconciliation engine.

Entry point for callers (HTTP handlers, webhooks, jobs): intake of
submitted hashes, single-shot status checks and the stuck-record sweep.
Intake persists the record, then hands it to a background poller; all
later writes go through RecordUpdater.
"""

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from loguru import logger
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from reconciler.config.constants import (
    DEFAULT_NETWORK_ID,
    NATIVE_TOKEN_ADDRESS,
    PENDING_ADDRESS,
    PLACEHOLDER_AMOUNT,
    RECORD_COLUMN_KEYS,
)
from reconciler.models.enums import LedgerStatus, TransactionStatus
from reconciler.models.transaction import TransactionRecord
from reconciler.repositories.transaction_repository import TransactionRepository
from reconciler.repositories.user_repository import UserRepository
from reconciler.schemas.transaction_metadata import (
    AttributionInfo,
    TransactionMetadata,
)
from reconciler.services.address_attribution import AddressAttributionResolver
from reconciler.services.blockchain.ledger_reader import (
    LedgerReader,
    TransactionDetails,
)
from reconciler.services.blockchain.network_registry import NetworkRegistry
from reconciler.services.notification_service import (
    NullNotifier,
    TransactionNotifier,
)
from reconciler.services.reconciliation.policy import ReconciliationPolicy
from reconciler.services.reconciliation.pollers import (
    ConfirmationPoller,
    DiscoveryPoller,
)
from reconciler.services.reconciliation.record_updater import (
    RecordUpdater,
    blockchain_details_from,
)
from reconciler.services.reconciliation.reports import SweepResult
from reconciler.services.reconciliation.state_machine import (
    REVERTED_ON_CHAIN,
    status_for_ledger,
)
from reconciler.services.reconciliation.sweep import StuckTransactionSweeper
from reconciler.services.reconciliation.task_runner import BackgroundTaskRunner
from reconciler.services.transfer_normalization import normalize_transfer
from reconciler.utils.datetime_utils import utc_now
from reconciler.utils.exceptions import (
    InvalidTransactionDataError,
    ReconciliationError,
    UserNotFoundError,
    WalletAddressMissingError,
    must_log,
)
from reconciler.utils.security import mask_tx_hash
from reconciler.utils.validation import normalize_tx_hash, validate_address

STATUS_NOT_FOUND_ERROR = "Transaction not found"
STATUS_CHECK_FAILED_ERROR = "Failed to check status"


@dataclass(frozen=True)
class SubmissionResult:
    """Outcome of intake."""

    record_id: int
    immediately_found: bool
    # False when the hash was already tracked
    created: bool = True


@dataclass(frozen=True)
class StatusCheckResult:
    """Single-shot ledger status."""

    is_confirmed: bool
    status: TransactionStatus
    confirmations: int = 0
    block_number: int | None = None
    error: str | None = None


class ReconciliationEngine:
    """
    Tracks submitted transactions until completed or failed.

    Collaborators are injected; the engine holds no global state and
    never reads settings directly.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        ledger_reader: LedgerReader,
        policy: ReconciliationPolicy,
        registry: NetworkRegistry | None = None,
        notifier: TransactionNotifier | None = None,
        task_runner: BackgroundTaskRunner | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        """
        Initialize engine.

        Args:
            session_factory: Session factory of the record store
            ledger_reader: Ledger Reader
            policy: Retry limits, confirmation threshold, staleness
            registry: Network registry (default networks if omitted)
            notifier: Completion hook (logs only if omitted)
            task_runner: Runner for background pollers
            clock: Time source
        """
        self.session_factory = session_factory
        self.ledger_reader = ledger_reader
        self.policy = policy
        self.registry = registry or NetworkRegistry()
        self.notifier = notifier or NullNotifier()
        self.task_runner = task_runner or BackgroundTaskRunner()
        self.clock = clock

        self.updater = RecordUpdater(session_factory, self.notifier, clock=clock)
        self.confirmation_poller = ConfirmationPoller(
            self.updater,
            ledger_reader,
            policy.confirmation,
            policy.confirmation_threshold,
        )
        self.discovery_poller = DiscoveryPoller(
            self.updater,
            ledger_reader,
            policy.discovery,
            self.confirmation_poller,
        )
        self.sweeper = StuckTransactionSweeper(
            session_factory,
            ledger_reader,
            self.registry,
            self.updater,
            policy,
            clock=clock,
        )

    # ------------------------------------------------------------------
    # Intake
    # ------------------------------------------------------------------

    async def submit(
        self,
        user_id: int,
        tx_hash: str,
        network_id: int = DEFAULT_NETWORK_ID,
        metadata: dict[str, Any] | None = None,
    ) -> SubmissionResult:
        """
        Start tracking a transaction hash.

        Idempotent per hash: a known hash returns the existing record.

        Args:
            user_id: Acting user
            tx_hash: Transaction hash
            network_id: Chain id
            metadata: Caller metadata (type, category, tokenAddress, ...)

        Returns:
            SubmissionResult

        Raises:
            UnsupportedNetworkError: Unknown network id
            InvalidTransactionHashError: Malformed hash
            UserNotFoundError: Unknown user
            WalletAddressMissingError: Found transaction, user has no wallet
            InvalidTransactionDataError: Ledger returned no sender/recipient
        """
        network_name = self.registry.resolve_network_name(network_id)
        tx_hash = normalize_tx_hash(tx_hash)
        masked = mask_tx_hash(tx_hash)

        existing = await self._get_existing(tx_hash)
        if existing is not None:
            logger.info(
                f"Transaction {masked} already tracked as record {existing.id}"
            )
            return self._existing_result(existing)

        details = await self._immediate_lookup(network_name, tx_hash)

        async with self.session_factory() as session:
            user = await UserRepository(session).get_by_id(user_id)
            if user is None:
                raise UserNotFoundError(user_id)

            if details is None:
                values = self._placeholder_values(
                    user_id, tx_hash, network_id, network_name, metadata
                )
            else:
                if not user.primary_wallet_address:
                    raise WalletAddressMissingError(user_id)
                values = await self._found_values(
                    session,
                    user_id,
                    user.primary_wallet_address,
                    tx_hash,
                    network_id,
                    network_name,
                    details,
                    metadata,
                )

            repo = TransactionRepository(session)
            try:
                record = await repo.create_record(**values)
                await session.commit()
            except IntegrityError:
                # Concurrent submission of the same hash won the insert
                await session.rollback()
                existing = await repo.get_by_tx_hash(tx_hash)
                if existing is None:
                    raise
                logger.info(
                    f"Transaction {masked} inserted concurrently as record {existing.id}"
                )
                return self._existing_result(existing)

        if details is None:
            logger.info(
                f"Transaction {masked} not yet on {network_name}, "
                f"placeholder record {record.id} created"
            )
            self.task_runner.spawn(
                self.discovery_poller.run(record.id, tx_hash, network_name),
                name=f"discovery-{record.id}",
            )
        else:
            logger.info(
                f"Transaction {masked} found on {network_name}, "
                f"record {record.id} created with status {record.status}"
            )
            if record.status == TransactionStatus.PENDING.value:
                self.task_runner.spawn(
                    self.confirmation_poller.run(record.id, tx_hash, network_name),
                    name=f"confirmation-{record.id}",
                )

        return SubmissionResult(
            record_id=record.id, immediately_found=details is not None
        )

    async def _get_existing(self, tx_hash: str) -> TransactionRecord | None:
        async with self.session_factory() as session:
            return await TransactionRepository(session).get_by_tx_hash(tx_hash)

    @staticmethod
    def _existing_result(record: TransactionRecord) -> SubmissionResult:
        meta = TransactionMetadata.from_raw(record.meta)
        return SubmissionResult(
            record_id=record.id,
            immediately_found=not meta.is_pending,
            created=False,
        )

    async def _immediate_lookup(
        self, network_name: str, tx_hash: str
    ) -> TransactionDetails | None:
        """Single lookup at intake; transient errors count as not found."""
        try:
            return await self.ledger_reader.get_transaction_details(
                network_name, tx_hash
            )
        except Exception as e:
            if not must_log(e):
                raise
            logger.warning(
                f"Immediate lookup of {mask_tx_hash(tx_hash)} failed, "
                f"falling back to discovery polling: {e}"
            )
            return None

    @staticmethod
    def _split_metadata(
        metadata: dict[str, Any] | None,
    ) -> tuple[dict[str, Any], str, dict[str, Any]]:
        """Split caller metadata into record columns, token hint, extensions."""
        extensions = dict(metadata or {})
        columns = {
            key: extensions.pop(key) for key in RECORD_COLUMN_KEYS if key in extensions
        }
        token_address = extensions.pop("tokenAddress", None) or NATIVE_TOKEN_ADDRESS
        return columns, token_address, extensions

    def _placeholder_values(
        self,
        user_id: int,
        tx_hash: str,
        network_id: int,
        network_name: str,
        metadata: dict[str, Any] | None,
    ) -> dict[str, Any]:
        columns, token_address, extensions = self._split_metadata(metadata)
        meta = TransactionMetadata(
            is_pending=True,
            network_id=network_id,
            network_name=network_name,
            extensions=extensions,
        )
        return {
            **columns,
            "tx_hash": tx_hash,
            "status": TransactionStatus.PENDING.value,
            # Re-attributed on discovery
            "from_user_id": user_id,
            "to_user_id": user_id,
            "submitted_by_user_id": user_id,
            "from_address": PENDING_ADDRESS,
            "to_address": PENDING_ADDRESS,
            "amount": PLACEHOLDER_AMOUNT,
            "token_address": token_address,
            "source_chain": network_name,
            "destination_chain": network_name,
            "meta": meta.to_raw(),
        }

    async def _found_values(
        self,
        session: AsyncSession,
        user_id: int,
        user_wallet: str,
        tx_hash: str,
        network_id: int,
        network_name: str,
        details: TransactionDetails,
        metadata: dict[str, Any] | None,
    ) -> dict[str, Any]:
        if not validate_address(details.from_address) or not validate_address(
            details.to_address
        ):
            raise InvalidTransactionDataError(
                f"Transaction {tx_hash} has no valid sender or recipient"
            )

        columns, token_address, extensions = self._split_metadata(metadata)
        normalized = normalize_transfer(details, default_token_address=token_address)

        resolver = AddressAttributionResolver(UserRepository(session))
        attribution = await resolver.classify(
            normalized.from_address, normalized.to_address, user_id, user_wallet
        )

        meta = TransactionMetadata(
            is_pending=False,
            network_id=network_id,
            network_name=network_name,
            blockchain_details=blockchain_details_from(
                details, normalized.contract_address
            ),
            attribution=AttributionInfo(
                role=attribution.role,
                external_counterparty=attribution.external_counterparty,
            ),
            extensions=extensions,
        )

        status = TransactionStatus.PENDING
        if details.status is LedgerStatus.FAILED:
            status = TransactionStatus.FAILED
            meta.diagnostics.error = REVERTED_ON_CHAIN
            meta.diagnostics.fixed_at = self.clock()

        return {
            **columns,
            "tx_hash": tx_hash,
            "status": status.value,
            "from_user_id": attribution.from_user_id,
            "to_user_id": attribution.to_user_id,
            "submitted_by_user_id": user_id,
            "from_address": normalized.from_address,
            "to_address": normalized.to_address,
            "amount": normalized.amount,
            "token_address": normalized.token_address,
            "source_chain": network_name,
            "destination_chain": network_name,
            "meta": meta.to_raw(),
        }

    # ------------------------------------------------------------------
    # Status checks
    # ------------------------------------------------------------------

    async def check_status(
        self, tx_hash: str, network_id: int = DEFAULT_NETWORK_ID
    ) -> StatusCheckResult:
        """
        Check ledger status once, without touching the store.

        Raises:
            UnsupportedNetworkError: Unknown network id
            InvalidTransactionHashError: Malformed hash
        """
        network_name = self.registry.resolve_network_name(network_id)
        tx_hash = normalize_tx_hash(tx_hash)

        try:
            details = await self.ledger_reader.get_transaction_details(
                network_name, tx_hash
            )
        except ReconciliationError:
            raise
        except Exception as e:
            logger.error(
                f"Error checking status of {mask_tx_hash(tx_hash)} "
                f"on {network_name}: {e}"
            )
            return StatusCheckResult(
                is_confirmed=False,
                status=TransactionStatus.PENDING,
                error=STATUS_CHECK_FAILED_ERROR,
            )

        if details is None:
            return StatusCheckResult(
                is_confirmed=False,
                status=TransactionStatus.PENDING,
                error=STATUS_NOT_FOUND_ERROR,
            )

        status = status_for_ledger(details, self.policy.confirmation_threshold)
        return StatusCheckResult(
            is_confirmed=status is TransactionStatus.COMPLETED,
            status=status,
            confirmations=details.confirmations,
            block_number=details.block_number,
        )

    async def get_status_with_retry(
        self,
        tx_hash: str,
        network_id: int = DEFAULT_NETWORK_ID,
        max_attempts: int | None = None,
    ) -> StatusCheckResult:
        """
        Repeat check_status until confirmed or failed.

        Args:
            tx_hash: Transaction hash
            network_id: Chain id
            max_attempts: Checks before the final one (policy default)

        Returns:
            First conclusive result, else a final check
        """
        attempts = max_attempts or self.policy.status_retry_attempts
        retry = self.policy.confirmation

        for attempt in range(1, attempts + 1):
            result = await self.check_status(tx_hash, network_id)
            if result.is_confirmed or result.status is TransactionStatus.FAILED:
                return result
            if attempt < attempts:
                await retry.sleep(retry.delay)

        return await self.check_status(tx_hash, network_id)

    def supported_networks(self) -> list[str]:
        """Names of registered networks."""
        return self.registry.supported_names()

    async def close(self) -> None:
        """
        Stop background pollers and release the notifier.

        Pollers still running are cancelled; their records stay pending
        and are picked up by the next sweep.
        """
        active = self.task_runner.active_count
        if active:
            logger.warning(
                f"Closing engine with {active} poller(s) running, "
                f"records left for the sweep"
            )
        await self.task_runner.shutdown()
        await self.notifier.close()

    # ------------------------------------------------------------------
    # Sweep
    # ------------------------------------------------------------------

    async def sweep_stuck_transactions(
        self, dry_run: bool = False, max_records: int | None = None
    ) -> SweepResult:
        """Run the stuck-record sweep once."""
        return await self.sweeper.sweep(dry_run=dry_run, max_records=max_records)
