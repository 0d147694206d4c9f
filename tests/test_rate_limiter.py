"""Unit tests for the rate limiter, retry helper and TTL cache."""

import sys
from pathlib import Path

# Add parent directory to path to import project modules
sys.path.insert(0, str(Path(__file__).parent.parent))

import asyncio

import pytest

from portals.base import TransportError
from utils.rate_limiter import RateLimiter
from utils.retry import backoff_delay, with_retry
from utils.ttl_cache import TtlCache


class FakeClock:
    """Simulated monotonic clock; sleeping advances time."""

    def __init__(self, start: float = 100.0):
        self.now = start
        self.sleeps = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class TestRateLimiter:
    """Test minimum-interval enforcement."""

    def test_first_call_is_not_delayed(self):
        """Test that the first acquire returns immediately."""
        clock = FakeClock()
        limiter = RateLimiter(1.0, clock=clock, sleep=clock.sleep)

        asyncio.run(limiter.acquire())

        assert clock.sleeps == []

    def test_back_to_back_calls_are_spaced(self):
        """Test that consecutive calls wait for the remaining interval."""
        clock = FakeClock()
        limiter = RateLimiter(1.0, clock=clock, sleep=clock.sleep)

        async def run():
            await limiter.acquire()
            clock.now += 0.25
            await limiter.acquire()

        asyncio.run(run())

        assert clock.sleeps == [pytest.approx(0.75)]

    def test_concurrent_callers_are_serialized(self):
        """Test that N concurrent callers span at least (N-1) intervals."""
        clock = FakeClock()
        limiter = RateLimiter(0.5, clock=clock, sleep=clock.sleep)
        granted = []

        async def worker():
            await limiter.acquire()
            granted.append(clock.now)

        async def run():
            await asyncio.gather(*(worker() for _ in range(5)))

        asyncio.run(run())

        assert len(granted) == 5
        gaps = [b - a for a, b in zip(granted, granted[1:])]
        assert all(gap >= 0.5 - 1e-9 for gap in gaps)
        assert granted[-1] - granted[0] >= 2.0 - 1e-9

    def test_no_delay_after_idle_period(self):
        """Test that a caller arriving after the interval is not delayed."""
        clock = FakeClock()
        limiter = RateLimiter(1.0, clock=clock, sleep=clock.sleep)

        async def run():
            await limiter.acquire()
            clock.now += 5.0
            await limiter.acquire()

        asyncio.run(run())

        assert clock.sleeps == []

    def test_context_manager_acquires(self):
        """Test the async context manager form."""
        clock = FakeClock()
        limiter = RateLimiter(2.0, clock=clock, sleep=clock.sleep)

        async def run():
            async with limiter:
                pass
            async with limiter:
                pass

        asyncio.run(run())

        assert clock.sleeps == [pytest.approx(2.0)]

    def test_negative_interval_rejected(self):
        """Test that a negative interval is a configuration error."""
        with pytest.raises(ValueError):
            RateLimiter(-1)


class TestRetry:
    """Test bounded exponential backoff."""

    def test_backoff_delays(self):
        """Test the 2s, 4s, 8s schedule."""
        assert [backoff_delay(n) for n in (1, 2, 3)] == [2.0, 4.0, 8.0]

    def test_transient_errors_are_retried(self):
        """Test that transient failures are retried until success."""
        clock = FakeClock()
        attempts = []

        async def operation():
            attempts.append(1)
            if len(attempts) < 3:
                raise TransportError("busy", status_code=503)
            return "ok"

        result = asyncio.run(with_retry(operation, "test", sleep=clock.sleep))

        assert result == "ok"
        assert len(attempts) == 3
        assert clock.sleeps == [2.0, 4.0]

    def test_retries_are_bounded(self):
        """Test that the last transient error surfaces after max retries."""
        clock = FakeClock()
        attempts = []

        async def operation():
            attempts.append(1)
            raise TransportError("rate limited", status_code=429)

        with pytest.raises(TransportError):
            asyncio.run(with_retry(operation, "test", max_retries=3, sleep=clock.sleep))

        assert len(attempts) == 4
        assert clock.sleeps == [2.0, 4.0, 8.0]

    def test_non_transient_errors_propagate_immediately(self):
        """Test that a 404 is not retried."""
        clock = FakeClock()
        attempts = []

        async def operation():
            attempts.append(1)
            raise TransportError("missing", status_code=404)

        with pytest.raises(TransportError):
            asyncio.run(with_retry(operation, "test", sleep=clock.sleep))

        assert len(attempts) == 1
        assert clock.sleeps == []


class TestTtlCache:
    """Test expiring cache entries."""

    def test_entries_expire(self):
        """Test that an entry is gone once its TTL elapsed."""
        clock = FakeClock()
        cache = TtlCache(clock=clock)
        cache.set("key", "value", 10)

        assert cache.get("key") == "value"
        clock.now += 10
        assert cache.lookup("key") == (False, None)

    def test_none_is_cached(self):
        """Test that negative results are distinguishable from misses."""
        cache = TtlCache(clock=FakeClock())
        cache.set("negative", None, 60)

        assert cache.lookup("negative") == (True, None)
        assert cache.lookup("unknown") == (False, None)
        assert "negative" in cache

    def test_zero_ttl_is_not_stored(self):
        """Test that a non-positive TTL skips caching."""
        cache = TtlCache(clock=FakeClock())
        cache.set("key", "value", 0)

        assert len(cache) == 0

    def test_oldest_entry_evicted_at_capacity(self):
        """Test that a full cache drops its oldest entry to make room."""
        clock = FakeClock()
        cache = TtlCache(maxsize=2, clock=clock)
        cache.set("first", 1, 60)
        clock.now += 1
        cache.set("second", 2, 60)
        clock.now += 1
        cache.set("first", 10, 60)
        cache.set("third", 3, 60)

        assert "second" not in cache
        assert cache.get("first") == 10
        assert cache.get("third") == 3
        assert cache.stats() == {"size": 2, "maxsize": 2}


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
