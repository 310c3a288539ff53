"""
Enums shared by models and services.
"""

from enum import StrEnum


class TransactionStatus(StrEnum):
    """Persisted status of a transaction record."""

    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        """Completed and failed are final."""
        return self is not TransactionStatus.PENDING


class LedgerStatus(StrEnum):
    """Status reported by the ledger for a visible transaction."""

    PENDING = "pending"      # in mempool, no receipt yet
    CONFIRMED = "confirmed"  # mined, receipt status 1
    FAILED = "failed"        # mined, reverted
