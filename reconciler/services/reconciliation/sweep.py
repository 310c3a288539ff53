"""
Stuck transaction sweep.

Recovery path for records whose background poller was lost (restart,
crash). Processes a snapshot of suspect records oldest first, one ledger
lookup per record, and writes through the same RecordUpdater as the
live pollers, so it is safe to run repeatedly and alongside them.
"""

from collections.abc import Callable
from datetime import datetime
from enum import StrEnum

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from reconciler.models.enums import TransactionStatus
from reconciler.models.transaction import TransactionRecord
from reconciler.repositories.transaction_repository import TransactionRepository
from reconciler.schemas.transaction_metadata import TransactionMetadata
from reconciler.services.blockchain.ledger_reader import LedgerReader
from reconciler.services.blockchain.network_registry import NetworkRegistry
from reconciler.services.reconciliation.policy import ReconciliationPolicy
from reconciler.services.reconciliation.record_updater import (
    FIXED_BY_SWEEP,
    RecordUpdater,
)
from reconciler.services.reconciliation.reports import (
    SkippedRecord,
    SweepError,
    SweepReport,
    SweepResult,
)
from reconciler.services.reconciliation.state_machine import (
    REVERTED_ON_CHAIN,
    Phase,
    phase_of,
    stale_during_sweep,
    status_for_ledger,
)
from reconciler.utils.datetime_utils import ensure_utc, hours_between, utc_now
from reconciler.utils.security import mask_tx_hash


class SweepOutcome(StrEnum):
    FIXED = "fixed"
    FAILED = "failed"
    SKIPPED = "skipped"


class StuckTransactionSweeper:
    """
    Batch repair of pending and placeholder records.

    For each record: resolve the network (metadata first, chain-name
    heuristics second), look the hash up once, then complete, fail or
    leave it pending. Records not found and older than the staleness
    threshold are failed.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        ledger_reader: LedgerReader,
        registry: NetworkRegistry,
        updater: RecordUpdater,
        policy: ReconciliationPolicy,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.session_factory = session_factory
        self.ledger_reader = ledger_reader
        self.registry = registry
        self.updater = updater
        self.policy = policy
        self.clock = clock

    async def sweep(
        self, dry_run: bool = False, max_records: int | None = None
    ) -> SweepResult:
        """
        Run one sweep.

        Args:
            dry_run: Report only; no ledger calls and no writes
            max_records: Cap on records processed

        Returns:
            SweepResult with totals and the report
        """
        report = SweepReport(started_at=self.clock(), dry_run=dry_run)

        async with self.session_factory() as session:
            records = await TransactionRepository(session).find_suspect(
                limit=max_records
            )
        report.total = len(records)

        logger.info(
            f"Sweep started: {len(records)} suspect record(s), "
            f"dry_run={dry_run}, max_records={max_records}"
        )

        totals = {outcome: 0 for outcome in SweepOutcome}
        error_count = 0

        for record in records:
            network_name: str | None = None
            try:
                network_name = self.resolve_network_name(record)
                outcome, reason = await self._process(record, network_name, dry_run)
            except Exception as e:
                error_count += 1
                report.stats_for(network_name).total += 1
                report.stats_for(network_name).errors += 1
                report.errors.append(
                    SweepError(record_id=record.id, tx_hash=record.tx_hash, error=str(e))
                )
                logger.exception(
                    f"Sweep failed for record {record.id} "
                    f"({mask_tx_hash(record.tx_hash)}): {e}"
                )
                continue

            stats = report.stats_for(network_name)
            stats.total += 1
            totals[outcome] += 1
            if outcome is SweepOutcome.FIXED:
                stats.fixed += 1
            elif outcome is SweepOutcome.FAILED:
                stats.failed += 1
            else:
                stats.skipped += 1
                report.skipped_records.append(
                    SkippedRecord(
                        record_id=record.id, tx_hash=record.tx_hash, reason=reason
                    )
                )

        report.finished_at = self.clock()
        result = SweepResult(
            fixed=totals[SweepOutcome.FIXED],
            errors=error_count,
            skipped=totals[SweepOutcome.SKIPPED],
            failed=totals[SweepOutcome.FAILED],
            report=report,
        )
        logger.info(
            f"Sweep finished in {report.duration_ms}ms: fixed={result.fixed}, "
            f"failed={result.failed}, skipped={result.skipped}, errors={result.errors}"
        )
        return result

    def resolve_network_name(self, record: TransactionRecord) -> str | None:
        """
        Network of a record.

        metadata.networkId wins; older records without it fall back to
        source_chain / destination_chain names.
        """
        meta = TransactionMetadata.from_raw(record.meta)
        if self.registry.is_supported(meta.network_id):
            return self.registry.resolve_network_name(meta.network_id)

        for chain in (record.source_chain, record.destination_chain):
            network_id = self.registry.network_id_for_chain(chain)
            if network_id is not None:
                return self.registry.resolve_network_name(network_id)
        return None

    async def _process(
        self,
        record: TransactionRecord,
        network_name: str | None,
        dry_run: bool,
    ) -> tuple[SweepOutcome, str]:
        phase = phase_of(record)
        if phase in (Phase.COMPLETED, Phase.FAILED):
            return SweepOutcome.SKIPPED, f"already {phase}"
        if network_name is None:
            logger.warning(
                f"Cannot resolve network of record {record.id} "
                f"(source_chain={record.source_chain}), skipping"
            )
            return SweepOutcome.SKIPPED, "unresolvable network"
        if not record.tx_hash:
            return SweepOutcome.SKIPPED, "missing transaction hash"
        if dry_run:
            return SweepOutcome.SKIPPED, "dry run"

        details = await self.ledger_reader.get_transaction_details(
            network_name, record.tx_hash
        )

        if details is None:
            now = self.clock()
            age = ensure_utc(now) - ensure_utc(record.created_at)
            if age <= self.policy.stale_after:
                return SweepOutcome.SKIPPED, "not found, within staleness window"

            hours = hours_between(record.created_at, now)
            failed = await self.updater.mark_failed(
                record.id,
                stale_during_sweep(hours),
                hours_since_creation=round(hours, 2),
                fixed_by=FIXED_BY_SWEEP,
            )
            if failed:
                return SweepOutcome.FAILED, ""
            return SweepOutcome.SKIPPED, "changed concurrently"

        target = status_for_ledger(details, self.policy.confirmation_threshold)
        if target is TransactionStatus.PENDING:
            written = await self.updater.apply_details(
                record.id, details, TransactionStatus.PENDING, fixed_by=FIXED_BY_SWEEP
            )
            reason = "found, awaiting confirmation" if written else "changed concurrently"
            return SweepOutcome.SKIPPED, reason

        written = await self.updater.apply_details(
            record.id,
            details,
            target,
            error=REVERTED_ON_CHAIN if target is TransactionStatus.FAILED else None,
            fixed_by=FIXED_BY_SWEEP,
        )
        if written is None:
            return SweepOutcome.SKIPPED, "changed concurrently"
        if written is TransactionStatus.COMPLETED:
            return SweepOutcome.FIXED, ""
        return SweepOutcome.FAILED, ""
