"""Unit tests for completion notifications."""

import pytest
from aiogram.exceptions import TelegramNetworkError

from reconciler.models import TransactionRecord
from reconciler.services.notification_service import NullNotifier, TelegramNotifier

WALLET_U = "0x1111111111111111111111111111111111111111"
WALLET_V = "0x2222222222222222222222222222222222222222"


def _completed(from_user_id, to_user_id, **overrides):
    values = {
        "id": 1,
        "tx_hash": "0x" + "ab" * 32,
        "status": "completed",
        "from_user_id": from_user_id,
        "to_user_id": to_user_id,
        "from_address": WALLET_U,
        "to_address": WALLET_V,
        "amount": "1000",
        "token_address": "0x0",
        "source_chain": "ethereum",
        "destination_chain": "ethereum",
        "meta": {},
    }
    values.update(overrides)
    return TransactionRecord(**values)


@pytest.fixture
def notifier(mock_bot, session_factory):
    return TelegramNotifier(mock_bot, session_factory)


class TestTelegramNotifier:
    """Tests for TelegramNotifier."""

    async def test_payment_between_users(self, notifier, mock_bot, users):
        alice, bob = users["alice"], users["bob"]

        await notifier.notify_completed(_completed(alice.id, bob.id))

        assert mock_bot.send_message.await_count == 2
        sent = [call.kwargs for call in mock_bot.send_message.await_args_list]
        assert sent[0]["chat_id"] == 1001
        assert sent[0]["text"].startswith("Payment Sent")
        assert "@bob" in sent[0]["text"]
        assert sent[1]["chat_id"] == 1002
        assert sent[1]["text"].startswith("Payment Received")
        assert "@alice" in sent[1]["text"]

    async def test_self_transfer(self, notifier, mock_bot, users):
        alice = users["alice"]

        await notifier.notify_completed(_completed(alice.id, alice.id))

        mock_bot.send_message.assert_awaited_once()
        text = mock_bot.send_message.await_args.kwargs["text"]
        assert text.startswith("Wallet Transfer Completed")
        assert "0x1111...1111" in text

    async def test_token_transfer_names_token(self, notifier, mock_bot, users):
        alice, bob = users["alice"], users["bob"]
        token = "0x4444444444444444444444444444444444444444"

        await notifier.notify_completed(
            _completed(alice.id, bob.id, token_address=token)
        )

        text = mock_bot.send_message.await_args_list[0].kwargs["text"]
        assert "token 0x4444...4444" in text

    async def test_user_without_telegram_skipped(self, notifier, mock_bot, users):
        alice, carol = users["alice"], users["carol"]

        await notifier.notify_completed(_completed(alice.id, carol.id))

        mock_bot.send_message.assert_awaited_once()
        assert mock_bot.send_message.await_args.kwargs["chat_id"] == 1001

    async def test_missing_sender(self, notifier, mock_bot, users):
        await notifier.notify_completed(_completed(999, users["bob"].id))

        mock_bot.send_message.assert_not_awaited()

    async def test_delivery_failure_swallowed(self, notifier, mock_bot, users):
        """A failed send to one party does not stop the other."""
        alice, bob = users["alice"], users["bob"]
        mock_bot.send_message.side_effect = [
            TelegramNetworkError(method=None, message="network down"),
            None,
        ]

        await notifier.notify_completed(_completed(alice.id, bob.id))

        assert mock_bot.send_message.await_count == 2

    async def test_close(self, notifier, mock_bot):
        await notifier.close()
        mock_bot.session.close.assert_awaited_once()


class TestNullNotifier:
    """Tests for NullNotifier."""

    async def test_notify_and_close(self):
        notifier = NullNotifier()

        await notifier.notify_completed(_completed(1, 2))
        assert await notifier.close() is None
