"""
Background task runner.

Pollers run as asyncio tasks on the current loop, one per transaction.
The runner holds references so tasks are not garbage collected and logs
anything that escapes them.
"""

import asyncio
from collections.abc import Coroutine
from typing import Any

from loguru import logger


class BackgroundTaskRunner:
    """Spawns and tracks fire-and-forget tasks."""

    def __init__(self) -> None:
        self._tasks: set[asyncio.Task[Any]] = set()

    @property
    def active_count(self) -> int:
        """Number of unfinished tasks."""
        return len(self._tasks)

    def spawn(
        self, coro: Coroutine[Any, Any, Any], name: str | None = None
    ) -> asyncio.Task[Any]:
        """
        Schedule coroutine as a background task.

        Args:
            coro: Coroutine to run
            name: Task name for logs

        Returns:
            Created task
        """
        task = asyncio.create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        logger.debug(f"Spawned background task {task.get_name()}")
        return task

    def _on_done(self, task: asyncio.Task[Any]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            logger.warning(f"Background task {task.get_name()} was cancelled")
            return

        exc = task.exception()
        if exc is not None:
            logger.opt(exception=exc).error(
                f"Background task {task.get_name()} failed: {exc}"
            )

    async def drain(self, timeout: float | None = None) -> None:
        """
        Wait for all tracked tasks, including ones spawned meanwhile.

        Args:
            timeout: Give up after this many seconds
        """
        loop = asyncio.get_running_loop()
        deadline = None if timeout is None else loop.time() + timeout

        while self._tasks:
            remaining = None if deadline is None else deadline - loop.time()
            if remaining is not None and remaining <= 0:
                logger.warning(
                    f"Drain timed out with {len(self._tasks)} task(s) running"
                )
                return
            await asyncio.wait(set(self._tasks), timeout=remaining)

    async def shutdown(self) -> None:
        """Cancel all tracked tasks and wait for them to finish."""
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
            logger.info(f"Cancelled {len(tasks)} background task(s)")
