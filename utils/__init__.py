"""Utility modules for rate limiting, caching, persistence and address handling."""

from .address_normalizer import AddressNormalizer
from .notifier import LoggingNotifier, ScrapeNotifier
from .rate_limiter import RateLimiter
from .retry import with_retry
from .storage import InMemoryListingStore, ListingStore, YamlListingStore
from .ttl_cache import TtlCache

__all__ = [
    "AddressNormalizer",
    "RateLimiter",
    "with_retry",
    "TtlCache",
    "ListingStore",
    "InMemoryListingStore",
    "YamlListingStore",
    "ScrapeNotifier",
    "LoggingNotifier",
]
