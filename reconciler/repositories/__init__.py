"""Repositories."""

from reconciler.repositories.base import BaseRepository
from reconciler.repositories.transaction_repository import TransactionRepository
from reconciler.repositories.user_repository import UserRepository

__all__ = ["BaseRepository", "TransactionRepository", "UserRepository"]
