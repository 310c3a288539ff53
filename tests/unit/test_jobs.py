"""Unit tests for the sweep and health jobs."""

from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest
from aiohttp import test_utils
from redis.exceptions import LockError

from jobs.health import create_health_app
from jobs.tasks.stuck_transaction_sweep import (
    SWEEP_LOCK_NAME,
    count_pending_transactions,
    run_locked_sweep,
)
from reconciler.models import TransactionRecord
from reconciler.utils.datetime_utils import utc_now


def _record(n: int, status: str, token_address: str = "0x0") -> TransactionRecord:
    return TransactionRecord(
        tx_hash="0x" + f"{n:064x}",
        status=status,
        from_address="0x1111111111111111111111111111111111111111",
        to_address="0x2222222222222222222222222222222222222222",
        amount="100",
        token_address=token_address,
        source_chain="ethereum",
        destination_chain="ethereum",
        meta={"networkId": 1},
        created_at=utc_now() - timedelta(minutes=n),
    )


@pytest.fixture
def redis_client():
    """Redis client double whose lock is free."""
    lock = MagicMock()
    lock.acquire = AsyncMock(return_value=True)
    lock.release = AsyncMock()
    client = MagicMock()
    client.lock.return_value = lock
    return client


class TestRunLockedSweep:
    """Tests for the locked sweep runner."""

    async def test_runs_sweep_under_lock(self, engine, redis_client):
        summary = await run_locked_sweep(
            engine, redis_client, dry_run=True, max_records=10, lock_timeout=600
        )

        redis_client.lock.assert_called_once_with(SWEEP_LOCK_NAME, timeout=600)
        lock = redis_client.lock.return_value
        lock.acquire.assert_awaited_once_with(blocking=False)
        lock.release.assert_awaited_once()
        assert summary["fixed"] == 0
        assert summary["report"]["dry_run"] is True

    async def test_skips_when_locked(self, engine, redis_client, ledger_reader):
        redis_client.lock.return_value.acquire.return_value = False

        summary = await run_locked_sweep(
            engine, redis_client, dry_run=False, max_records=10, lock_timeout=600
        )

        assert summary == {"locked": True}
        redis_client.lock.return_value.release.assert_not_awaited()
        assert ledger_reader.calls == []

    async def test_expired_lock_release_tolerated(self, engine, redis_client):
        redis_client.lock.return_value.release.side_effect = LockError("expired")

        summary = await run_locked_sweep(
            engine, redis_client, dry_run=True, max_records=10, lock_timeout=1
        )

        assert "report" in summary


class TestCountPendingTransactions:
    """Tests for the pending-records health count."""

    async def test_counts(self, session_factory):
        async with session_factory() as session:
            session.add_all(
                [
                    _record(1, "pending", token_address="0x" + "4" * 40),
                    _record(2, "completed"),
                    _record(3, "completed", token_address="0x" + "4" * 40),
                ]
            )
            await session.commit()

        counts = await count_pending_transactions(session_factory)

        assert counts["pending"] == 1
        # Completed native transfer matches the broad filter
        assert counts["suspect"] == 2
        assert counts["checked_at"]


class TestHealthApp:
    """Tests for the scheduler health endpoints."""

    @pytest.fixture
    def scheduler(self):
        scheduler = MagicMock()
        scheduler.running = True
        job = MagicMock()
        job.id = "sweep_stuck_transactions"
        job.next_run_time = None
        scheduler.get_jobs.return_value = [job]
        return scheduler

    async def test_health(self, scheduler, session_factory):
        app = create_health_app(scheduler, session_factory)

        async with test_utils.TestClient(test_utils.TestServer(app)) as client:
            resp = await client.get("/health")
            body = await resp.json()

        assert resp.status == 200
        assert body["status"] == "healthy"
        assert body["jobs"] == [{"id": "sweep_stuck_transactions", "next_run_time": None}]

    async def test_health_stopped(self, scheduler, session_factory):
        scheduler.running = False
        app = create_health_app(scheduler, session_factory)

        async with test_utils.TestClient(test_utils.TestServer(app)) as client:
            resp = await client.get("/health")

        assert resp.status == 503

    async def test_pending(self, scheduler, session_factory):
        app = create_health_app(scheduler, session_factory)

        async with test_utils.TestClient(test_utils.TestServer(app)) as client:
            resp = await client.get("/pending")
            body = await resp.json()

        assert resp.status == 200
        assert body["status"] == "ok"
        assert body["pending"] == 0
