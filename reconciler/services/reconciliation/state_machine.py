"""
Transaction state machine.

Persisted status is pending | completed | failed. Pending is split into
two phases that are derived from the record rather than stored:
awaiting discovery (placeholder, metadata.isPending) and awaiting
confirmation (visible on-chain, below the confirmation threshold).
"""

from enum import StrEnum

from reconciler.models.enums import LedgerStatus, TransactionStatus
from reconciler.models.transaction import TransactionRecord
from reconciler.schemas.transaction_metadata import TransactionMetadata
from reconciler.services.blockchain.ledger_reader import TransactionDetails

# Failure reasons stored in metadata.diagnostics.error
NOT_FOUND_AFTER_RETRIES = "Transaction not found on blockchain after {attempts} retries"
NEVER_CONFIRMED = "Transaction found but not confirmed after {attempts} checks"
STALE_DURING_SWEEP = (
    "Transaction not found on blockchain after {hours:.1f} hours (stale)"
)
REVERTED_ON_CHAIN = "Transaction reverted on chain"
MONITORING_FAILED = "Transaction monitoring failed: {detail}"


class Phase(StrEnum):
    """Lifecycle phase of a record."""

    AWAITING_DISCOVERY = "awaiting_discovery"
    AWAITING_CONFIRMATION = "awaiting_confirmation"
    COMPLETED = "completed"
    FAILED = "failed"


def phase_of(record: TransactionRecord) -> Phase:
    """Derive the lifecycle phase of a record."""
    status = TransactionStatus(record.status)
    if status is TransactionStatus.COMPLETED:
        return Phase.COMPLETED
    if status is TransactionStatus.FAILED:
        return Phase.FAILED
    if TransactionMetadata.from_raw(record.meta).is_pending:
        return Phase.AWAITING_DISCOVERY
    return Phase.AWAITING_CONFIRMATION


def can_transition(current: TransactionStatus, target: TransactionStatus) -> bool:
    """
    Check status transition.

    Only pending moves; completed and failed are final. A pending ->
    pending write is a refresh of on-chain details.
    """
    return current is TransactionStatus.PENDING


def status_for_ledger(
    details: TransactionDetails, confirmation_threshold: int
) -> TransactionStatus:
    """
    Map a ledger view to the record status it justifies.

    Args:
        details: Ledger view of the transaction
        confirmation_threshold: Confirmations required for completion

    Returns:
        FAILED for reverted, COMPLETED once deep enough, else PENDING
    """
    if details.status is LedgerStatus.FAILED:
        return TransactionStatus.FAILED
    if (
        details.status is LedgerStatus.CONFIRMED
        and details.confirmations >= confirmation_threshold
    ):
        return TransactionStatus.COMPLETED
    return TransactionStatus.PENDING


def not_found_after_retries(attempts: int) -> str:
    return NOT_FOUND_AFTER_RETRIES.format(attempts=attempts)


def never_confirmed(attempts: int) -> str:
    return NEVER_CONFIRMED.format(attempts=attempts)


def stale_during_sweep(hours: float) -> str:
    return STALE_DURING_SWEEP.format(hours=hours)


def monitoring_failed(detail: str) -> str:
    return MONITORING_FAILED.format(detail=detail)
