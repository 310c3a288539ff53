"""
Completion notifications.

The engine calls `notify_completed` once a record reaches `completed`
with both parties attributed. Delivery is best effort: failures are
logged here or by the engine and never touch the record.
"""

import asyncio
from typing import Protocol

from aiogram import Bot
from aiogram.exceptions import TelegramAPIError
from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from reconciler.config.constants import TELEGRAM_TIMEOUT
from reconciler.models.transaction import TransactionRecord
from reconciler.models.user import User
from reconciler.repositories.user_repository import UserRepository
from reconciler.utils.security import mask_address, mask_tx_hash
from reconciler.utils.validation import is_native_token


class TransactionNotifier(Protocol):
    """Receives completion events."""

    async def notify_completed(self, record: TransactionRecord) -> None:
        ...

    async def close(self) -> None:
        ...


class NullNotifier:
    """Notifier that only logs; used when no delivery channel is configured."""

    async def notify_completed(self, record: TransactionRecord) -> None:
        logger.info(
            f"Transaction {mask_tx_hash(record.tx_hash)} completed "
            f"(record_id={record.id}), no notifier configured"
        )

    async def close(self) -> None:
        return None


def _display_name(user: User) -> str:
    if user.username:
        return f"@{user.username}"
    return mask_address(user.primary_wallet_address)


def _asset(record: TransactionRecord) -> str:
    if is_native_token(record.token_address):
        return record.source_chain
    return f"token {mask_address(record.token_address)}"


class TelegramNotifier:
    """
    Sends completion messages to both parties over Telegram.

    Users without a telegram_id are skipped.
    """

    def __init__(
        self,
        bot: Bot,
        session_factory: async_sessionmaker[AsyncSession],
    ) -> None:
        """
        Initialize notifier.

        Args:
            bot: aiogram Bot instance
            session_factory: Session factory for user lookups
        """
        self.bot = bot
        self.session_factory = session_factory

    async def notify_completed(self, record: TransactionRecord) -> None:
        """
        Notify sender and recipient about a completed transfer.

        Args:
            record: Completed transaction record
        """
        async with self.session_factory() as session:
            user_repo = UserRepository(session)
            sender = await user_repo.get_by_id(record.from_user_id)
            recipient = await user_repo.get_by_id(record.to_user_id)

        if sender is None:
            logger.warning(
                f"Sender {record.from_user_id} of record {record.id} not found, "
                f"skipping notification"
            )
            return

        amount = f"{record.amount} ({_asset(record)})"
        tx_ref = mask_tx_hash(record.tx_hash)

        if recipient is not None and recipient.id != sender.id:
            await self._send(
                sender,
                f"Payment Sent\n\nSuccessfully sent {amount} "
                f"to {_display_name(recipient)}\nTx: {tx_ref}",
            )
            await self._send(
                recipient,
                f"Payment Received\n\nReceived {amount} "
                f"from {_display_name(sender)}\nTx: {tx_ref}",
            )
            return

        await self._send(
            sender,
            f"Wallet Transfer Completed\n\nSuccessfully transferred {amount} "
            f"from {mask_address(record.from_address)} "
            f"to {mask_address(record.to_address)}\nTx: {tx_ref}",
        )

    async def _send(self, user: User, text: str) -> bool:
        if not user.telegram_id:
            logger.debug(f"User {user.id} has no telegram_id, skipping")
            return False

        try:
            await asyncio.wait_for(
                self.bot.send_message(chat_id=user.telegram_id, text=text),
                timeout=TELEGRAM_TIMEOUT,
            )
        except (TelegramAPIError, TimeoutError) as e:
            logger.warning(f"Failed to notify user {user.id}: {e}")
            return False

        logger.info(f"Completion notification sent to user {user.id}")
        return True

    async def close(self) -> None:
        """Close the bot HTTP session."""
        await self.bot.session.close()
