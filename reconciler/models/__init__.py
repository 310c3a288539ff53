"""
Database models.

Exports all SQLAlchemy models for easy imports.
"""

from reconciler.models.base import Base
from reconciler.models.enums import LedgerStatus, TransactionStatus
from reconciler.models.transaction import TransactionRecord
from reconciler.models.user import User

__all__ = [
    "Base",
    "LedgerStatus",
    "TransactionRecord",
    "TransactionStatus",
    "User",
]
