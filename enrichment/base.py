"""Shared plumbing for the public-data enrichment clients."""

import logging
from typing import Any, Dict, List, Optional

import httpx

from models.location import ResolvedLocation
from utils.ttl_cache import TtlCache

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = "funda-crawl/1.0"

# CBS region codes are fixed-width, right-padded with spaces
CBS_CODE_WIDTH = 10


class EnrichmentClient:
    """
    Base class holding the HTTP client, the TTL cache and config lookups.

    A single ``httpx.AsyncClient`` and ``TtlCache`` can be shared by all
    clients of one report service; tests inject a client built on
    ``httpx.MockTransport``.
    """

    SOURCE_NAME = "enrichment"
    DEFAULT_TIMEOUT = 20.0

    def __init__(
        self,
        config: Dict[str, Any],
        http_client: Optional[httpx.AsyncClient] = None,
        cache: Optional[TtlCache] = None,
    ):
        """
        Initialize the client.

        Args:
            config: Full configuration dictionary from config.json
            http_client: Shared async HTTP client (created when omitted)
            cache: Shared TTL cache (created when omitted)
        """
        self.config = config
        self.enrichment_config = config.get("enrichment", {})
        self.timeout = self.enrichment_config.get("timeout", self.DEFAULT_TIMEOUT)
        self._owns_client = http_client is None
        self.http = http_client or httpx.AsyncClient(
            timeout=httpx.Timeout(self.timeout, connect=10.0),
            headers={"User-Agent": DEFAULT_USER_AGENT},
            follow_redirects=True,
        )
        self.cache = cache if cache is not None else TtlCache()

    def base_url(self, key: str, default: str) -> str:
        return self.enrichment_config.get(key, default).rstrip("/")

    def ttl_minutes(self, key: str, default: float) -> float:
        """Cache TTL in seconds for a configured minutes value."""
        return float(self.enrichment_config.get(key, default)) * 60

    async def close(self) -> None:
        if self._owns_client and not self.http.is_closed:
            await self.http.aclose()


def candidate_region_codes(location: ResolvedLocation) -> List[str]:
    """
    Region codes to try, most specific first: neighborhood, district, municipality.

    Each code is stripped and padded to the CBS code width; blanks are skipped.
    """
    candidates = []
    for code in (location.neighborhood_code, location.district_code, location.municipality_code):
        if code and code.strip():
            padded = code.strip().ljust(CBS_CODE_WIDTH)
            if padded not in candidates:
                candidates.append(padded)
    return candidates


def get_str(row: Dict[str, Any], key: str) -> Optional[str]:
    value = row.get(key)
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def get_float(row: Dict[str, Any], key: str) -> Optional[float]:
    """Numeric field that may arrive as a number or a numeric string."""
    value = row.get(key)
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip().replace(",", "."))
        except ValueError:
            return None
    return None


def get_int(row: Dict[str, Any], key: str) -> Optional[int]:
    value = get_float(row, key)
    return int(round(value)) if value is not None else None
