"""Direct HTTP client for Funda's internal JSON endpoints."""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional

import httpx

from models.funda import (
    ContactDetails,
    FiberAvailability,
    ListingSummary,
    RichListingPayload,
    SummaryDetails,
)
from portals.base import AcquisitionClient, TransportError
from portals.funda.constants import (
    API_HEADERS,
    CONTACTS_API_URL,
    FIBER_API_URL,
    PAGE_HEADERS,
    SEARCH_API_URL,
    SEARCH_OFFERING_TYPES,
    SUMMARY_API_URL,
)
from portals.funda.hydration import HydrationExtractor
from portals.funda.url_parser import FundaUrlParser
from utils.rate_limiter import RateLimiter
from utils.retry import with_retry

logger = logging.getLogger(__name__)


class FundaApiClient(AcquisitionClient):
    """
    Direct strategy: plain HTTPS requests against Funda's JSON APIs.

    Every request passes through the shared rate limiter. Non-success
    statuses and malformed bodies raise TransportError; transient ones are
    retried with exponential backoff before surfacing.
    """

    DEFAULT_TIMEOUT = 30.0
    MAX_RETRIES = 3

    def __init__(
        self,
        config: Dict[str, Any],
        rate_limiter: Optional[RateLimiter] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
    ):
        """
        Initialize the direct client.

        Args:
            config: Full configuration dictionary from config.json
            rate_limiter: Shared limiter for all acquisition calls
            http_client: Pre-built client (tests pass one with a MockTransport)
            sleep: Async sleep used for backoff and page gaps
        """
        super().__init__(config)
        self.timeout = self.acquisition_config.get("timeout", self.DEFAULT_TIMEOUT)
        self.max_retries = self.acquisition_config.get("max_retries", self.MAX_RETRIES)
        self.backoff_base = self.acquisition_config.get("backoff_base_seconds", 2.0)
        self.rate_limiter = rate_limiter
        self._sleep = sleep or asyncio.sleep
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(
            timeout=httpx.Timeout(self.timeout, connect=10.0),
            follow_redirects=True,
        )
        self.hydration = HydrationExtractor()

    def get_strategy_name(self) -> str:
        return "direct"

    async def search_listings(
        self,
        region: str,
        offering_type: str = "buy",
        page: int = 1,
        min_price: Optional[int] = None,
        max_price: Optional[int] = None,
    ) -> List[ListingSummary]:
        body = {
            "aggregationType": ["listing", "project"],
            "cultureInfo": "nl",
            "geoInformation": region.lower(),
            "offeringType": SEARCH_OFFERING_TYPES.get(offering_type, offering_type),
            "page": page,
            "price": {
                "lowerBound": min_price or 0,
                "priceRangeType": "SalePrice",
                "upperBound": max_price,
            },
            "zoning": ["residential"],
        }

        data = await self._request_json("POST", SEARCH_API_URL, json=body)
        listings = []
        for item in data.get("listings") or []:
            if not isinstance(item, dict):
                continue
            summary = ListingSummary.from_dict(item)
            if summary:
                listings.append(summary)

        logger.debug(f"Search {region} page {page}: {len(listings)} listings")
        return listings

    async def fetch_listing_details(self, url: str) -> Optional[RichListingPayload]:
        absolute = FundaUrlParser.ensure_absolute_url(url)
        if not absolute:
            logger.warning(f"Refusing to fetch non-Funda URL: {url}")
            return None

        response = await self._request("GET", absolute, headers=PAGE_HEADERS)
        return self.hydration.extract(response.text)

    async def fetch_listing_summary(self, global_id: str) -> Optional[SummaryDetails]:
        data = await self._request_json("GET", SUMMARY_API_URL.format(global_id=global_id))
        return SummaryDetails.from_dict(data) if data else None

    async def fetch_contact_details(self, global_id: str) -> Optional[ContactDetails]:
        data = await self._request_json("GET", CONTACTS_API_URL.format(global_id=global_id))
        return ContactDetails.from_dict(data) if data else None

    async def fetch_fiber_availability(self, postal_code: str) -> Optional[FiberAvailability]:
        normalized = (postal_code or "").replace(" ", "").upper()
        if len(normalized) < 6:
            return None

        data = await self._request_json("GET", FIBER_API_URL.format(postal_code=normalized))
        return FiberAvailability.from_dict(data) if data else None

    async def close(self) -> None:
        if self._owns_client and not self._client.is_closed:
            await self._client.aclose()

    async def _request_json(self, method: str, url: str, **kwargs) -> Dict[str, Any]:
        response = await self._request(method, url, **kwargs)
        try:
            data = response.json()
        except ValueError as e:
            raise TransportError(f"Malformed JSON from {url}: {e}", response.status_code) from e

        if not isinstance(data, dict):
            raise TransportError(f"Unexpected JSON shape from {url}", response.status_code)
        return data

    async def _request(self, method: str, url: str, **kwargs) -> httpx.Response:
        headers = dict(API_HEADERS)
        headers.update(kwargs.pop("headers", {}) or {})

        async def send() -> httpx.Response:
            if self.rate_limiter:
                await self.rate_limiter.acquire()
            try:
                response = await self._client.request(method, url, headers=headers, **kwargs)
            except httpx.TimeoutException as e:
                raise TransportError(f"Timeout calling {url}: {e}", transient=True) from e
            except httpx.TransportError as e:
                raise TransportError(f"Connection error calling {url}: {e}", transient=True) from e

            if not response.is_success:
                raise TransportError(
                    f"{method} {url} returned {response.status_code}",
                    status_code=response.status_code,
                )
            return response

        return await with_retry(
            send,
            f"{method} {url}",
            max_retries=self.max_retries,
            base_delay=self.backoff_base,
            sleep=self._sleep,
        )
