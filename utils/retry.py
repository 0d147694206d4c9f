"""Bounded exponential backoff for transient acquisition failures."""

import asyncio
import logging
from typing import Awaitable, Callable, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

MAX_RETRIES = 3
BACKOFF_BASE_SECONDS = 2.0


def is_transient(exc: BaseException) -> bool:
    """Errors flagged ``transient`` (429/5xx, timeouts, connection drops) are retried."""
    return bool(getattr(exc, "transient", False))


def backoff_delay(attempt: int, base: float = BACKOFF_BASE_SECONDS) -> float:
    """
    Delay before retry number ``attempt`` (1-indexed).

    Args:
        attempt: Retry number starting at 1
        base: Base delay in seconds

    Returns:
        Seconds to wait (2s, 4s, 8s with the default base)
    """
    return base * (2 ** (attempt - 1))


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    description: str,
    max_retries: int = MAX_RETRIES,
    base_delay: float = BACKOFF_BASE_SECONDS,
    sleep: Optional[Callable[[float], Awaitable[None]]] = None,
    retryable: Callable[[BaseException], bool] = is_transient,
) -> T:
    """
    Run ``operation`` and retry transient failures with exponential backoff.

    Non-transient errors propagate immediately. After ``max_retries`` failed
    retries the last transient error is raised.

    Args:
        operation: Zero-argument coroutine factory
        description: Label used in log messages
        max_retries: Number of retries after the first attempt
        base_delay: First backoff delay in seconds
        sleep: Async sleep function (injectable for tests)
        retryable: Predicate deciding whether an exception is retried

    Returns:
        Result of the first successful attempt
    """
    sleep = sleep or asyncio.sleep
    attempt = 0
    while True:
        try:
            return await operation()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            if not retryable(e) or attempt >= max_retries:
                raise
            attempt += 1
            delay = backoff_delay(attempt, base_delay)
            logger.warning(
                f"{description} failed (retry {attempt}/{max_retries} in {delay:.0f}s): {e}"
            )
            await sleep(delay)
