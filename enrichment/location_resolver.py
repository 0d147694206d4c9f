"""Resolve free text to a Dutch address via the PDOK Locatieserver."""

import asyncio
import logging
from typing import Any, Dict, Optional
from urllib.parse import quote_plus

from enrichment.base import EnrichmentClient, get_str
from models.location import ResolvedLocation
from utils.address_normalizer import AddressNormalizer
from utils.geo import parse_wkt_point

logger = logging.getLogger(__name__)


class PdokLocationResolver(EnrichmentClient):
    """
    Geocode user input (address text or listing URL).

    Input is normalized first, then sent to the Locatieserver "free" endpoint
    restricted to address documents. Both positive and negative results are
    cached under the normalized input for the resolver TTL.
    """

    SOURCE_NAME = "PDOK Locatieserver"
    DEFAULT_BASE_URL = "https://api.pdok.nl"

    async def resolve(self, text: Optional[str]) -> Optional[ResolvedLocation]:
        """
        Resolve ``text`` to a location.

        Args:
            text: Raw user input

        Returns:
            ResolvedLocation, or None when nothing matched or the lookup failed
        """
        if not text or not text.strip():
            return None

        normalized = AddressNormalizer.normalize(text)
        cache_key = f"pdok-resolve:{normalized}"
        hit, cached = self.cache.lookup(cache_key)
        if hit:
            return cached.with_query(text) if cached else None

        ttl = self.ttl_minutes("resolver_cache_minutes", 1440)
        base = self.base_url("pdok_base_url", self.DEFAULT_BASE_URL)
        url = (
            f"{base}/bzk/locatieserver/search/v3_1/free"
            f"?q={quote_plus(normalized)}&fq=type:adres&rows=1"
        )

        try:
            response = await self.http.get(url)
            if not response.is_success:
                logger.warning(f"PDOK resolve failed with status {response.status_code} for '{normalized}'")
                return None

            data = response.json()
            docs = (data.get("response") or {}).get("docs") if isinstance(data, dict) else None
            if not isinstance(docs, list) or not docs:
                self.cache.set(cache_key, None, ttl)
                logger.info(f"No address found for '{normalized}'")
                return None

            location = self._parse_doc(docs[0], text, normalized)
            if location is None:
                logger.warning("PDOK response did not include valid coordinates")
                return None

            self.cache.set(cache_key, location, ttl)
            return location

        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"PDOK resolve failed for '{normalized}': {e}")
            return None

    @classmethod
    def _parse_doc(cls, doc: Dict[str, Any], query: str, normalized: str) -> Optional[ResolvedLocation]:
        point_ll = parse_wkt_point(get_str(doc, "centroide_ll"))
        if point_ll is None:
            return None
        point_rd = parse_wkt_point(get_str(doc, "centroide_rd"))

        return ResolvedLocation(
            query=query,
            display_address=get_str(doc, "weergavenaam") or normalized,
            latitude=point_ll[1],
            longitude=point_ll[0],
            rd_x=point_rd[0] if point_rd else None,
            rd_y=point_rd[1] if point_rd else None,
            municipality_code=cls._prefix_code(get_str(doc, "gemeentecode"), "GM"),
            municipality_name=get_str(doc, "gemeentenaam"),
            district_code=get_str(doc, "wijkcode"),
            district_name=get_str(doc, "wijknaam"),
            neighborhood_code=get_str(doc, "buurtcode"),
            neighborhood_name=get_str(doc, "buurtnaam"),
            postal_code=get_str(doc, "postcode"),
        )

    @staticmethod
    def _prefix_code(code: Optional[str], prefix: str) -> Optional[str]:
        if not code:
            return None
        if code.upper().startswith(prefix):
            return code.upper()
        return f"{prefix}{code}"
