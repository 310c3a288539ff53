"""Pytest configuration and shared fixtures for all tests."""

import os
import sys
from pathlib import Path

# Minimal environment for Settings; tests never reach these services
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./reconciler-test.db")
os.environ.setdefault("REDIS_HOST", "localhost")
os.environ.setdefault("ETHEREUM_RPC_URL", "http://localhost:8545")
os.environ.setdefault("LOG_LEVEL", "DEBUG")

# Add project root to PYTHONPATH
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from datetime import timedelta  # noqa: E402
from unittest.mock import AsyncMock, MagicMock  # noqa: E402

import pytest  # noqa: E402

from reconciler.config.database import (  # noqa: E402
    create_engine,
    create_session_factory,
)
from reconciler.models import Base, LedgerStatus, User  # noqa: E402
from reconciler.services.blockchain.ledger_reader import (  # noqa: E402
    TransactionDetails,
)
from reconciler.services.blockchain.network_registry import (  # noqa: E402
    NetworkRegistry,
)
from reconciler.services.reconciliation.engine import (  # noqa: E402
    ReconciliationEngine,
)
from reconciler.services.reconciliation.policy import (  # noqa: E402
    ReconciliationPolicy,
    RetryPolicy,
)

# Digit-only addresses are their own checksum form
WALLET_U = "0x1111111111111111111111111111111111111111"
WALLET_V = "0x2222222222222222222222222222222222222222"
WALLET_W = "0x3333333333333333333333333333333333333333"
TOKEN_CONTRACT = "0x4444444444444444444444444444444444444444"
SAMPLE_TX_HASH = "0x" + "ab" * 32


class ScriptedLedgerReader:
    """
    Ledger Reader fake.

    Returns queued responses in order, then `default` forever. Exceptions
    in the queue are raised.
    """

    def __init__(self) -> None:
        self.responses: list = []
        self.default: TransactionDetails | None = None
        self.calls: list[tuple[str, str]] = []

    async def get_transaction_details(
        self, network_name: str, tx_hash: str
    ) -> TransactionDetails | None:
        self.calls.append((network_name, tx_hash))
        response = self.responses.pop(0) if self.responses else self.default
        if isinstance(response, Exception):
            raise response
        return response


class RecordingSleep:
    """Sleep replacement that returns immediately and records delays."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.fixture
def sample_transaction_hash():
    """Valid transaction hash."""
    return SAMPLE_TX_HASH


@pytest.fixture
def ledger_reader():
    """Scripted Ledger Reader, NotFound until told otherwise."""
    return ScriptedLedgerReader()


@pytest.fixture
def no_sleep():
    """Instant sleep recording requested delays."""
    return RecordingSleep()


@pytest.fixture
def policy(no_sleep):
    """Small retry limits with instant sleeps."""
    return ReconciliationPolicy(
        discovery=RetryPolicy(max_attempts=5, delay=2.0, sleep=no_sleep),
        confirmation=RetryPolicy(max_attempts=3, delay=2.0, sleep=no_sleep),
        confirmation_threshold=1,
        stale_after=timedelta(hours=2),
        status_retry_attempts=3,
    )


@pytest.fixture
def make_details():
    """Factory of TransactionDetails for a mined native transfer."""

    def _make(**overrides) -> TransactionDetails:
        values = {
            "hash": SAMPLE_TX_HASH,
            "from_address": WALLET_U,
            "to_address": WALLET_V,
            "value": "1000000000000000000",
            "status": LedgerStatus.CONFIRMED,
            "gas": "21000",
            "gas_price": "1000000000",
            "nonce": 7,
            "block_number": 100,
            "confirmations": 3,
            "timestamp": 1700000000,
        }
        values.update(overrides)
        return TransactionDetails(**values)

    return _make


@pytest.fixture
async def db_engine(tmp_path):
    """SQLite database file per test with all tables created."""
    engine = create_engine(f"sqlite+aiosqlite:///{tmp_path / 'reconciler.db'}")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    """Session factory bound to the test database."""
    return create_session_factory(db_engine)


@pytest.fixture
async def users(session_factory):
    """
    Users: alice owns WALLET_U, bob owns WALLET_V, carol has no wallet.

    Returns:
        Dict of username -> User
    """
    async with session_factory() as session:
        created = {
            "alice": User(
                username="alice", primary_wallet_address=WALLET_U, telegram_id=1001
            ),
            "bob": User(
                username="bob", primary_wallet_address=WALLET_V, telegram_id=1002
            ),
            "carol": User(username="carol", primary_wallet_address=None),
        }
        session.add_all(created.values())
        await session.commit()
        return created


@pytest.fixture
def mock_notifier():
    """Notifier mock."""
    notifier = AsyncMock()
    notifier.notify_completed = AsyncMock()
    notifier.close = AsyncMock()
    return notifier


@pytest.fixture
def engine(session_factory, ledger_reader, policy, mock_notifier):
    """Reconciliation engine wired to the test database and fakes."""
    return ReconciliationEngine(
        session_factory=session_factory,
        ledger_reader=ledger_reader,
        policy=policy,
        registry=NetworkRegistry(),
        notifier=mock_notifier,
    )


@pytest.fixture
def mock_bot():
    """Mock Telegram Bot."""
    bot = AsyncMock()
    bot.send_message = AsyncMock()
    bot.session = MagicMock()
    bot.session.close = AsyncMock()
    return bot
