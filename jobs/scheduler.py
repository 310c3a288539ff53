"""
Scheduler process.

Enqueues the periodic reconciliation tasks for dramatiq workers and
serves the health endpoints. Run with `python -m jobs.scheduler`.
"""

import asyncio
import signal

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from loguru import logger

from jobs.health import create_health_app, start_health_server, stop_health_server
from jobs.tasks.stuck_transaction_sweep import (
    pending_transactions_health,
    sweep_stuck_transactions,
)
from jobs.utils.database import task_session_maker
from reconciler.config.logging import setup_logging
from reconciler.config.settings import Settings, get_settings


def create_scheduler(settings: Settings) -> AsyncIOScheduler:
    """
    Register periodic jobs.

    Jobs only enqueue messages; the work happens in dramatiq workers.
    """
    scheduler = AsyncIOScheduler(timezone="UTC")
    scheduler.add_job(
        sweep_stuck_transactions.send,
        "interval",
        minutes=settings.sweep_interval_minutes,
        id="sweep_stuck_transactions",
        coalesce=True,
        max_instances=1,
    )
    scheduler.add_job(
        pending_transactions_health.send,
        "interval",
        minutes=settings.health_check_interval_minutes,
        id="pending_transactions_health",
        coalesce=True,
        max_instances=1,
    )
    return scheduler


async def main() -> None:
    """Run scheduler until SIGINT/SIGTERM."""
    settings = get_settings()
    setup_logging(settings.log_level, settings.log_file)

    scheduler = create_scheduler(settings)
    scheduler.start()
    logger.info(
        f"Scheduler started: sweep every {settings.sweep_interval_minutes} min, "
        f"health every {settings.health_check_interval_minutes} min"
    )

    runner = await start_health_server(
        create_health_app(scheduler, task_session_maker),
        host=settings.health_host,
        port=settings.health_port,
    )

    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop_event.set)

    try:
        await stop_event.wait()
    finally:
        logger.info("Shutting down scheduler...")
        scheduler.shutdown(wait=False)
        await stop_health_server(runner)


if __name__ == "__main__":
    asyncio.run(main())
