"""Direct-first acquisition with browser fallback."""

import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, TypeVar

from models.funda import (
    ContactDetails,
    FiberAvailability,
    ListingSummary,
    RichListingPayload,
    SummaryDetails,
)
from portals.base import AcquisitionClient, TransportError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class FallbackAcquisitionClient(AcquisitionClient):
    """
    Try the direct strategy first and repeat the call on the browser
    strategy when it fails with a TransportError (blocked, challenged or
    unreachable).
    """

    def __init__(
        self,
        config: Dict[str, Any],
        primary: AcquisitionClient,
        fallback: AcquisitionClient,
    ):
        super().__init__(config)
        self.primary = primary
        self.fallback = fallback

    def get_strategy_name(self) -> str:
        return f"{self.primary.get_strategy_name()}+{self.fallback.get_strategy_name()}"

    async def search_listings(
        self,
        region: str,
        offering_type: str = "buy",
        page: int = 1,
        min_price: Optional[int] = None,
        max_price: Optional[int] = None,
    ) -> List[ListingSummary]:
        return await self._call(
            f"search {region} page {page}",
            lambda client: client.search_listings(region, offering_type, page, min_price, max_price),
        )

    async def fetch_listing_details(self, url: str) -> Optional[RichListingPayload]:
        return await self._call(f"details {url}", lambda client: client.fetch_listing_details(url))

    async def fetch_listing_summary(self, global_id: str) -> Optional[SummaryDetails]:
        return await self._call(
            f"summary {global_id}", lambda client: client.fetch_listing_summary(global_id)
        )

    async def fetch_contact_details(self, global_id: str) -> Optional[ContactDetails]:
        return await self._call(
            f"contacts {global_id}", lambda client: client.fetch_contact_details(global_id)
        )

    async def fetch_fiber_availability(self, postal_code: str) -> Optional[FiberAvailability]:
        return await self._call(
            f"fiber {postal_code}", lambda client: client.fetch_fiber_availability(postal_code)
        )

    async def close(self) -> None:
        await self.primary.close()
        await self.fallback.close()

    async def _call(
        self, description: str, operation: Callable[[AcquisitionClient], Awaitable[T]]
    ) -> T:
        try:
            return await operation(self.primary)
        except TransportError as e:
            logger.warning(
                f"{self.primary.get_strategy_name()} strategy failed for {description} ({e}); "
                f"retrying with {self.fallback.get_strategy_name()}"
            )
            return await operation(self.fallback)
