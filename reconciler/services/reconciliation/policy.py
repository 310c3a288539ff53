"""
Retry policy.

Attempt counts and delays are plain values handed to the pollers, and
the sleep function is injectable so tests can run polling instantly.
"""

import asyncio
from collections.abc import AsyncIterator, Awaitable, Callable
from dataclasses import dataclass, field
from datetime import timedelta

from reconciler.config.settings import Settings

SleepFunc = Callable[[float], Awaitable[None]]


@dataclass(frozen=True)
class RetryPolicy:
    """
    Bounded fixed-delay retry loop.

    Attributes:
        max_attempts: Number of attempts, at least 1
        delay: Seconds slept before every attempt
        sleep: Awaitable sleep (asyncio.sleep in production)
    """

    max_attempts: int
    delay: float
    sleep: SleepFunc = field(default=asyncio.sleep, compare=False, repr=False)

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {self.max_attempts}")
        if self.delay < 0:
            raise ValueError(f"delay must be >= 0, got {self.delay}")

    async def attempts(self) -> AsyncIterator[int]:
        """
        Yield attempt numbers 1..max_attempts, sleeping before each.

        Every loop using this policy follows an immediate check made by
        its caller, so the first attempt is delayed too.
        """
        for attempt in range(1, self.max_attempts + 1):
            await self.sleep(self.delay)
            yield attempt

    @property
    def max_duration(self) -> float:
        """Upper bound of time spent sleeping, in seconds."""
        return self.max_attempts * self.delay


@dataclass(frozen=True)
class ReconciliationPolicy:
    """All tunables of the reconciliation engine."""

    discovery: RetryPolicy
    confirmation: RetryPolicy
    confirmation_threshold: int = 1
    stale_after: timedelta = timedelta(hours=2)
    status_retry_attempts: int = 5

    @classmethod
    def from_settings(
        cls, settings: Settings, sleep: SleepFunc = asyncio.sleep
    ) -> "ReconciliationPolicy":
        """Build policy from application settings."""
        return cls(
            discovery=RetryPolicy(
                max_attempts=settings.discovery_max_attempts,
                delay=settings.discovery_retry_delay,
                sleep=sleep,
            ),
            confirmation=RetryPolicy(
                max_attempts=settings.confirmation_max_attempts,
                delay=settings.confirmation_retry_delay,
                sleep=sleep,
            ),
            confirmation_threshold=settings.confirmation_threshold,
            stale_after=timedelta(hours=settings.stale_after_hours),
            status_retry_attempts=settings.status_retry_attempts,
        )
