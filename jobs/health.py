"""
Health check server for the scheduler process.

Exposes scheduler state and the pending-record counts over HTTP.
"""

import asyncio

from aiohttp import web
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from loguru import logger
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from jobs.tasks.stuck_transaction_sweep import count_pending_transactions

SCHEDULER_KEY = web.AppKey("scheduler", AsyncIOScheduler)
SESSION_FACTORY_KEY = web.AppKey("session_factory", async_sessionmaker)


async def health_handler(request: web.Request) -> web.Response:
    """
    Scheduler status and registered jobs.

    Returns:
        200 while the scheduler runs, 503 otherwise
    """
    scheduler = request.app[SCHEDULER_KEY]
    jobs = [
        {
            "id": job.id,
            "next_run_time": (
                job.next_run_time.isoformat() if job.next_run_time else None
            ),
        }
        for job in scheduler.get_jobs()
    ]
    body = {
        "status": "healthy" if scheduler.running else "stopped",
        "scheduler_running": scheduler.running,
        "jobs_count": len(jobs),
        "jobs": jobs,
    }
    return web.json_response(body, status=200 if scheduler.running else 503)


async def pending_handler(request: web.Request) -> web.Response:
    """Pending and suspect record counts."""
    try:
        counts = await count_pending_transactions(request.app[SESSION_FACTORY_KEY])
    except SQLAlchemyError as e:
        logger.error(f"Pending count failed: {e}")
        return web.json_response(
            {"status": "unhealthy", "error": str(e)}, status=503
        )
    return web.json_response({"status": "ok", **counts})


async def liveness_handler(request: web.Request) -> web.Response:
    """Process is alive."""
    return web.json_response({"status": "alive", "alive": True})


def create_health_app(
    scheduler: AsyncIOScheduler,
    session_factory: async_sessionmaker[AsyncSession],
) -> web.Application:
    """Build the health application."""
    app = web.Application()
    app[SCHEDULER_KEY] = scheduler
    app[SESSION_FACTORY_KEY] = session_factory
    app.router.add_get("/health", health_handler)
    app.router.add_get("/pending", pending_handler)
    app.router.add_get("/liveness", liveness_handler)
    return app


async def start_health_server(
    app: web.Application,
    host: str = "0.0.0.0",
    port: int = 8081,
) -> web.AppRunner:
    """
    Start health check server.

    Returns:
        AppRunner for cleanup
    """
    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, host, port)
    await site.start()

    logger.info(f"Health check server started on {host}:{port}")
    return runner


async def stop_health_server(runner: web.AppRunner, timeout: int = 5) -> None:
    """Stop health check server gracefully."""
    logger.info("Stopping health check server...")
    try:
        await asyncio.wait_for(runner.cleanup(), timeout=timeout)
    except TimeoutError:
        logger.warning(f"Health check server cleanup timed out after {timeout}s")
