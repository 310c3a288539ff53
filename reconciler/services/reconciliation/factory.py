"""
Engine wiring from application settings.

Used by workers and scripts; tests construct the engine directly.
"""

from aiogram import Bot
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from reconciler.config.settings import Settings
from reconciler.services.blockchain.network_registry import NetworkRegistry
from reconciler.services.blockchain.web3_ledger_reader import Web3LedgerReader
from reconciler.services.notification_service import (
    NullNotifier,
    TelegramNotifier,
    TransactionNotifier,
)
from reconciler.services.reconciliation.engine import ReconciliationEngine
from reconciler.services.reconciliation.policy import ReconciliationPolicy


def create_notifier(
    settings: Settings,
    session_factory: async_sessionmaker[AsyncSession],
) -> TransactionNotifier:
    """Telegram notifier if a bot token is configured, else log-only."""
    if settings.telegram_bot_token:
        return TelegramNotifier(Bot(token=settings.telegram_bot_token), session_factory)
    return NullNotifier()


def create_engine_from_settings(
    settings: Settings,
    session_factory: async_sessionmaker[AsyncSession],
    notifier: TransactionNotifier | None = None,
) -> ReconciliationEngine:
    """
    Build a ReconciliationEngine with production collaborators.

    Args:
        settings: Application settings
        session_factory: Session factory of the record store
        notifier: Override notifier (default from settings)

    Returns:
        Configured engine
    """
    return ReconciliationEngine(
        session_factory=session_factory,
        ledger_reader=Web3LedgerReader.from_rpc_urls(settings.rpc_urls),
        policy=ReconciliationPolicy.from_settings(settings),
        registry=NetworkRegistry(),
        notifier=notifier or create_notifier(settings, session_factory),
    )
