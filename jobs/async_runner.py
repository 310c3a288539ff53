"""
Event loop bridge for dramatiq actors.

Actors are plain functions executed on worker threads. Each thread keeps
one loop for its whole life, so engines and Redis clients created while
handling one message are never awaited from a foreign loop later.
"""

import asyncio
import threading
from collections.abc import Coroutine
from typing import Any, TypeVar

from loguru import logger

T = TypeVar("T")

_loops = threading.local()


def get_event_loop() -> asyncio.AbstractEventLoop:
    """Loop owned by the current worker thread, created on first use."""
    loop: asyncio.AbstractEventLoop | None = getattr(_loops, "loop", None)
    if loop is not None and not loop.is_closed():
        return loop

    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    _loops.loop = loop
    logger.debug(f"Worker thread {threading.current_thread().name} got a new event loop")
    return loop


def run_async(coro: Coroutine[Any, Any, T]) -> T:
    """
    Run coroutine to completion on the thread's loop.

    Exceptions are logged with traceback and re-raised so dramatiq's
    Retries middleware sees them.
    """
    try:
        return get_event_loop().run_until_complete(coro)
    except Exception as e:
        logger.exception(f"Actor coroutine failed: {e}")
        raise
