"""Minimum-interval rate limiter shared by all acquisition calls."""

import asyncio
import logging
import time
from typing import Awaitable, Callable, Optional

logger = logging.getLogger(__name__)


class RateLimiter:
    """
    Serialize callers so that granted calls are at least ``min_interval`` apart.

    A single lock guards the last-granted timestamp. A caller that arrives
    too early sleeps for the remaining gap while holding the lock, so the
    next caller always sees the updated timestamp.

    The clock and sleep functions are injectable so tests can run against a
    simulated clock without real waiting.
    """

    def __init__(
        self,
        min_interval: float,
        clock: Optional[Callable[[], float]] = None,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
    ):
        """
        Initialize the rate limiter.

        Args:
            min_interval: Minimum seconds between two granted calls
            clock: Monotonic clock returning seconds (default: time.monotonic)
            sleep: Async sleep function (default: asyncio.sleep)
        """
        if min_interval < 0:
            raise ValueError("min_interval must be >= 0")

        self.min_interval = min_interval
        self._clock = clock or time.monotonic
        self._sleep = sleep or asyncio.sleep
        self._lock = asyncio.Lock()
        self._last_granted: Optional[float] = None

    async def acquire(self) -> None:
        """Wait until the caller is allowed to issue the next call."""
        async with self._lock:
            now = self._clock()
            if self._last_granted is not None:
                earliest = self._last_granted + self.min_interval
                if now < earliest:
                    wait = earliest - now
                    logger.debug(f"Rate limit: waiting {wait:.2f}s")
                    await self._sleep(wait)
                    now = self._clock()
            self._last_granted = now

    async def __aenter__(self) -> "RateLimiter":
        await self.acquire()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        return None
