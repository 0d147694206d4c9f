"""Abstract base class for listing acquisition strategies."""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from models.funda import (
    ContactDetails,
    FiberAvailability,
    ListingSummary,
    RichListingPayload,
    SummaryDetails,
)

TRANSIENT_STATUS_CODES = {408, 425, 429, 500, 502, 503, 504}


class TransportError(Exception):
    """
    Acquisition call failed at the transport level.

    Raised for non-success HTTP status codes, malformed JSON bodies,
    timeouts and connection failures. ``transient`` marks failures worth
    retrying with backoff (429, 5xx, timeouts, dropped connections).
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        transient: Optional[bool] = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        if transient is None:
            transient = status_code in TRANSIENT_STATUS_CODES if status_code else False
        self.transient = transient


class ChallengeError(TransportError):
    """The bot challenge did not clear within the wait ceiling; the page yielded no data."""

    def __init__(self, message: str):
        super().__init__(message, transient=False)


class BrowserLaunchError(Exception):
    """Neither the system browser nor the bundled browser could be started."""


class AcquisitionClient(ABC):
    """
    Uniform contract for fetching Funda data.

    Two implementations exist: a direct HTTP client against Funda's internal
    JSON endpoints and a browser-automation client for pages behind the
    bot challenge. The crawler only depends on this interface.
    """

    def __init__(self, config: Dict[str, Any]):
        """
        Initialize client with configuration.

        Args:
            config: Full configuration dictionary from config.json
        """
        self.config = config
        self.acquisition_config = config.get("acquisition", {})

    @abstractmethod
    def get_strategy_name(self) -> str:
        """
        Return strategy identifier.

        Returns:
            Strategy name (e.g., "direct", "browser")
        """
        pass

    @abstractmethod
    async def search_listings(
        self,
        region: str,
        offering_type: str = "buy",
        page: int = 1,
        min_price: Optional[int] = None,
        max_price: Optional[int] = None,
    ) -> List[ListingSummary]:
        """
        Fetch one page of search results.

        Args:
            region: Region slug (e.g., "amsterdam")
            offering_type: "buy" or "rent"
            page: Page number (1-indexed)
            min_price: Optional lower price bound
            max_price: Optional upper price bound

        Returns:
            Listing summaries on that page (empty when the page has none)
        """
        pass

    @abstractmethod
    async def fetch_listing_details(self, url: str) -> Optional[RichListingPayload]:
        """
        Fetch a listing detail page and extract its rich payload.

        Args:
            url: Absolute or site-relative listing URL

        Returns:
            Rich payload, or None when the page carries none
        """
        pass

    @abstractmethod
    async def fetch_listing_summary(self, global_id: str) -> Optional[SummaryDetails]:
        pass

    @abstractmethod
    async def fetch_contact_details(self, global_id: str) -> Optional[ContactDetails]:
        pass

    @abstractmethod
    async def fetch_fiber_availability(self, postal_code: str) -> Optional[FiberAvailability]:
        pass

    async def close(self) -> None:
        """Release network or browser resources. Safe to call more than once."""
        return None

    async def __aenter__(self) -> "AcquisitionClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()
