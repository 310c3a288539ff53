"""
Stuck transaction sweep tasks.

Scheduled every few minutes by jobs.scheduler. The sweep runs under a
non-blocking Redis lock so overlapping schedules never process the same
snapshot twice; a skipped run is picked up by the next schedule.
"""

from typing import Any

import dramatiq
import redis.asyncio as redis
from loguru import logger
from redis.exceptions import LockError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from jobs.async_runner import run_async
from jobs.broker import broker  # noqa: F401  (registers the Redis broker)
from jobs.utils.database import task_session_maker
from reconciler.config.settings import get_settings
from reconciler.models.enums import TransactionStatus
from reconciler.repositories.transaction_repository import TransactionRepository
from reconciler.services.reconciliation.engine import ReconciliationEngine
from reconciler.services.reconciliation.factory import create_engine_from_settings
from reconciler.utils.datetime_utils import utc_now

SWEEP_LOCK_NAME = "reconciler:stuck_transaction_sweep"


@dramatiq.actor(max_retries=0, time_limit=600_000)  # 10 min timeout
def sweep_stuck_transactions(
    dry_run: bool = False, max_records: int | None = None
) -> dict[str, Any]:
    """
    Sweep stuck transaction records.

    Args:
        dry_run: Report only
        max_records: Cap (settings.sweep_max_records if omitted)

    Returns:
        Dict with fixed, failed, skipped, errors counts and the report
    """
    logger.info("Starting stuck transaction sweep...")

    try:
        result = run_async(_sweep_stuck_transactions_async(dry_run, max_records))
    except Exception as e:
        logger.exception(f"Stuck transaction sweep failed: {e}")
        return {"fixed": 0, "failed": 0, "skipped": 0, "errors": 0, "error": str(e)}

    if result.get("locked"):
        return result

    logger.info(
        f"Stuck transaction sweep complete: "
        f"{result['fixed']} fixed, {result['failed']} failed, "
        f"{result['skipped']} skipped, {result['errors']} errors"
    )
    return result


async def _sweep_stuck_transactions_async(
    dry_run: bool, max_records: int | None
) -> dict[str, Any]:
    """Async implementation of the sweep task."""
    settings = get_settings()
    redis_client = redis.Redis(
        host=settings.redis_host,
        port=settings.redis_port,
        password=settings.redis_password,
        db=settings.redis_db,
        decode_responses=True,
    )
    engine = create_engine_from_settings(settings, task_session_maker)

    try:
        return await run_locked_sweep(
            engine,
            redis_client,
            dry_run=dry_run,
            max_records=max_records or settings.sweep_max_records,
            lock_timeout=settings.sweep_lock_timeout,
        )
    finally:
        await engine.close()
        await redis_client.aclose()


async def run_locked_sweep(
    engine: ReconciliationEngine,
    redis_client: redis.Redis,
    *,
    dry_run: bool,
    max_records: int,
    lock_timeout: int,
) -> dict[str, Any]:
    """
    Run one sweep while holding the sweep lock.

    Args:
        engine: Reconciliation engine
        redis_client: Redis client for the lock
        dry_run: Report only
        max_records: Cap on records processed
        lock_timeout: Seconds after which the lock expires

    Returns:
        Sweep summary, or {"locked": True} if another sweep is running
    """
    lock = redis_client.lock(SWEEP_LOCK_NAME, timeout=lock_timeout)
    if not await lock.acquire(blocking=False):
        logger.info("Another stuck transaction sweep is running, skipping")
        return {"locked": True}

    try:
        result = await engine.sweep_stuck_transactions(
            dry_run=dry_run, max_records=max_records
        )
        return result.to_dict()
    finally:
        try:
            await lock.release()
        except LockError as e:
            # Lock expired while sweeping
            logger.warning(f"Failed to release sweep lock: {e}")


@dramatiq.actor(max_retries=1, time_limit=60_000)  # 1 min timeout
def pending_transactions_health() -> dict[str, Any]:
    """
    Report how many records are pending or carry placeholder values.

    Returns:
        Dict with suspect and pending counts
    """
    try:
        return run_async(count_pending_transactions(task_session_maker))
    except Exception as e:
        logger.exception(f"Pending transactions health check failed: {e}")
        return {"suspect": None, "pending": None, "error": str(e)}


async def count_pending_transactions(
    session_factory: async_sessionmaker[AsyncSession],
) -> dict[str, Any]:
    """
    Count suspect records.

    `suspect` uses the broad filter (any placeholder value or pending
    flag, terminal rows included); `pending` counts pending status only.
    """
    async with session_factory() as session:
        repo = TransactionRepository(session)
        suspect = await repo.count_suspect()
        pending = await repo.count(status=TransactionStatus.PENDING.value)

    logger.info(f"Pending transactions health: {pending} pending, {suspect} suspect")
    return {
        "suspect": suspect,
        "pending": pending,
        "checked_at": utc_now().isoformat(),
    }
