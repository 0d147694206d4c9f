"""In-process TTL cache with negative-result caching."""

import time
from typing import Any, Callable, Dict, Optional, Tuple


class TtlCache:
    """
    Small key/value cache where every entry expires after its own TTL.

    ``None`` is a legitimate cached value: it records a negative lookup so
    known-bad inputs are not fetched again until the entry expires. Use
    ``lookup`` to distinguish "cached None" from "not cached". When the cache
    is full the oldest stored entry is evicted.
    """

    def __init__(self, maxsize: int = 500, clock: Optional[Callable[[], float]] = None):
        self._maxsize = maxsize
        self._clock = clock or time.monotonic
        # key -> (stored_at, expires_at, value)
        self._entries: Dict[str, Tuple[float, float, Any]] = {}

    def lookup(self, key: str) -> Tuple[bool, Any]:
        """
        Look up a key.

        Args:
            key: Cache key

        Returns:
            Tuple of (hit, value); value may be None for a cached negative result
        """
        entry = self._entries.get(key)
        if entry is None:
            return False, None

        _, expires_at, value = entry
        if self._clock() >= expires_at:
            del self._entries[key]
            return False, None
        return True, value

    def get(self, key: str, default: Any = None) -> Any:
        hit, value = self.lookup(key)
        return value if hit else default

    def set(self, key: str, value: Any, ttl_seconds: float) -> None:
        """Store a value (including None) for ``ttl_seconds``."""
        if ttl_seconds <= 0:
            return
        now = self._clock()
        if key not in self._entries and len(self._entries) >= self._maxsize:
            oldest_key = min(self._entries, key=lambda k: self._entries[k][0])
            del self._entries[oldest_key]
        self._entries[key] = (now, now + ttl_seconds, value)

    def __contains__(self, key: str) -> bool:
        return self.lookup(key)[0]

    def __len__(self) -> int:
        return len(self._entries)

    def clear(self) -> None:
        self._entries.clear()

    def stats(self) -> Dict[str, Any]:
        return {"size": len(self._entries), "maxsize": self._maxsize}
