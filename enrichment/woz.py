"""WOZ (municipal property tax) valuation lookup via the WOZ-waardeloket."""

import asyncio
import logging
from datetime import datetime
from typing import Optional
from urllib.parse import quote

from enrichment.base import EnrichmentClient
from models.stats import WozValuation

logger = logging.getLogger(__name__)

WOZ_HOME_URL = "https://www.wozwaardeloket.nl/"
WOZ_API_URL = "https://api.kadaster.nl/lvwoz/wozwaardeloket-api/v1"

WOZ_HEADERS = {
    "Origin": "https://www.wozwaardeloket.nl",
    "Referer": "https://www.wozwaardeloket.nl/",
    "Accept": "application/json, text/plain, */*",
    "User-Agent": (
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    ),
}


class WozValuationClient(EnrichmentClient):
    """
    Scrape the latest WOZ value for an address.

    The waardeloket only answers API calls carrying the session cookie set
    by its home page, so every lookup opens the home page first. The
    address is matched through the suggest endpoint unless a BAG
    nummeraanduiding id is already known.
    """

    SOURCE_NAME = "WOZ-waardeloket"

    async def fetch(
        self,
        street: str,
        number: int,
        suffix: Optional[str],
        city: str,
        nummeraanduiding_id: Optional[str] = None,
    ) -> Optional[WozValuation]:
        """
        Look up the most recent WOZ valuation.

        Args:
            street: Street name
            number: House number
            suffix: House number addition (e.g. "A"), if any
            city: City name
            nummeraanduiding_id: BAG address id, skips the suggest call when numeric

        Returns:
            WozValuation, or None when no object or valuation was found
        """
        suffix = suffix or ""
        cache_key = f"woz:{city}:{street}:{number}{suffix}"
        hit, cached = self.cache.lookup(cache_key)
        if hit and cached is not None:
            return cached

        try:
            home = await self.http.get(WOZ_HOME_URL, headers=WOZ_HEADERS)
            if not home.is_success:
                logger.warning(f"Failed to initialize WOZ session, status {home.status_code}")

            target_id = None
            if nummeraanduiding_id and nummeraanduiding_id.isdigit():
                target_id = int(nummeraanduiding_id)
            else:
                query = f"{city} {street} {number}{suffix}".strip()
                suggest = await self.http.get(
                    f"{WOZ_API_URL}/suggest?q={quote(query, safe='')}", headers=WOZ_HEADERS
                )
                suggest.raise_for_status()
                docs = suggest.json().get("docs") or []
                if docs and docs[0].get("adresseerbaarObjectId") is not None:
                    target_id = docs[0]["adresseerbaarObjectId"]

            if target_id is None:
                logger.warning(f"No WOZ object id found for {cache_key}")
                return None

            details = await self.http.get(
                f"{WOZ_API_URL}/wozwaarde/nummeraanduiding/{target_id}", headers=WOZ_HEADERS
            )
            details.raise_for_status()
            valuations = details.json().get("wozWaarden") or []

            latest = None
            for valuation in valuations:
                reference_date = datetime.fromisoformat(str(valuation["peildatum"]))
                if latest is None or reference_date > latest[0]:
                    latest = (reference_date, int(valuation["vastgesteldeWaarde"]))

            if latest is None:
                logger.warning(f"No valuation found for WOZ object {target_id}")
                return None

            result = WozValuation(value=latest[1], reference_date=latest[0])
            self.cache.set(cache_key, result, self.ttl_minutes("cbs_cache_minutes", 1440))
            return result

        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Failed to fetch WOZ value for {cache_key}: {e}")
            return None
