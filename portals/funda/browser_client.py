"""Browser-automation client for Funda pages behind the bot challenge."""

import asyncio
import itertools
import logging
import time
from typing import Any, Awaitable, Callable, Dict, List, Optional

from crawl4ai import AsyncWebCrawler, BrowserConfig, CacheMode, CrawlerRunConfig

from models.funda import (
    ContactDetails,
    FiberAvailability,
    ListingSummary,
    RichListingPayload,
    SummaryDetails,
)
from portals.base import AcquisitionClient, BrowserLaunchError, ChallengeError, TransportError
from portals.funda.api_client import FundaApiClient
from portals.funda.constants import USER_AGENT
from portals.funda.html_parser import FundaPageParser
from portals.funda.hydration import HydrationExtractor
from portals.funda.url_parser import FundaUrlParser
from portals.funda.value_parser import FundaValueParser
from utils.rate_limiter import RateLimiter
from utils.retry import with_retry

logger = logging.getLogger(__name__)

TRANSIENT_ERROR_MARKERS = ("timeout", "net::err", "connection", "econnreset")


class FundaBrowserClient(AcquisitionClient):
    """
    Browser strategy built on crawl4ai.

    One browser process is started lazily behind a lock and shared by all
    callers; each navigation runs in its own crawl session. When a page
    comes back as the challenge interstitial, the session is re-read at a
    fixed interval until the challenge clears or listing markers appear.
    If neither happens within the wait ceiling the fetch raises
    ChallengeError, so callers can tell a blocked page from an empty one.

    Listing summary, contact and fiber lookups are plain JSON endpoints
    without the challenge and are delegated to the direct client.
    """

    DEFAULT_POLL_INTERVAL = 1.0
    DEFAULT_MAX_WAIT = 30.0
    DEFAULT_PAGE_TIMEOUT_MS = 30000

    def __init__(
        self,
        config: Dict[str, Any],
        rate_limiter: Optional[RateLimiter] = None,
        api_client: Optional[FundaApiClient] = None,
        crawler_factory: Optional[Callable[[BrowserConfig], Any]] = None,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
        clock: Optional[Callable[[], float]] = None,
    ):
        """
        Initialize the browser client.

        Args:
            config: Full configuration dictionary from config.json
            rate_limiter: Shared limiter for all acquisition calls
            api_client: Direct client used for the JSON endpoints
            crawler_factory: Builds a crawler from a BrowserConfig (default: AsyncWebCrawler)
            sleep: Async sleep used for challenge polling and backoff
            clock: Monotonic clock used to bound challenge polling
        """
        super().__init__(config)
        browser_config = self.acquisition_config.get("browser", {})
        self.headless = browser_config.get("headless", True)
        self.user_agent = browser_config.get("user_agent", USER_AGENT)
        self.viewport_width = browser_config.get("viewport_width", 1920)
        self.viewport_height = browser_config.get("viewport_height", 1080)
        self.locale = browser_config.get("locale", "nl-NL")
        self.timezone_id = browser_config.get("timezone_id", "Europe/Amsterdam")
        self.browser_channel = browser_config.get("browser_channel", "chrome")
        self.poll_interval = browser_config.get("challenge_poll_interval", self.DEFAULT_POLL_INTERVAL)
        self.max_wait = browser_config.get("challenge_max_wait", self.DEFAULT_MAX_WAIT)
        self.page_timeout_ms = browser_config.get("page_timeout_ms", self.DEFAULT_PAGE_TIMEOUT_MS)
        self.max_retries = self.acquisition_config.get("max_retries", 3)
        self.backoff_base = self.acquisition_config.get("backoff_base_seconds", 2.0)

        self.rate_limiter = rate_limiter
        self._owns_api_client = api_client is None
        self.api_client = api_client or FundaApiClient(config, rate_limiter=rate_limiter, sleep=sleep)
        self._crawler_factory = crawler_factory or (lambda cfg: AsyncWebCrawler(config=cfg))
        self._sleep = sleep or asyncio.sleep
        self._clock = clock or time.monotonic

        self._crawler: Optional[Any] = None
        self._crawler_lock = asyncio.Lock()
        self._session_ids = itertools.count(1)
        self._closed = False

        self.parser = FundaPageParser()
        self.hydration = HydrationExtractor()

    def get_strategy_name(self) -> str:
        return "browser"

    async def search_listings(
        self,
        region: str,
        offering_type: str = "buy",
        page: int = 1,
        min_price: Optional[int] = None,
        max_price: Optional[int] = None,
    ) -> List[ListingSummary]:
        url = FundaUrlParser.build_search_page_url(region, offering_type, page, min_price, max_price)
        logger.info(f"Browser search: {url}")

        html = await self._fetch_page(url)
        listings = self.parser.parse_search_results(html)
        return [
            listing for listing in listings
            if self._within_price_range(listing.price, min_price, max_price)
        ]

    async def fetch_listing_details(self, url: str) -> Optional[RichListingPayload]:
        absolute = FundaUrlParser.ensure_absolute_url(url)
        if not absolute:
            logger.warning(f"Refusing to fetch non-Funda URL: {url}")
            return None

        html = await self._fetch_page(absolute)
        if not html:
            return None

        payload = self.hydration.extract(html)
        if payload is not None:
            return payload
        return self.parser.parse_detail_page(html)

    async def fetch_listing_summary(self, global_id: str) -> Optional[SummaryDetails]:
        return await self.api_client.fetch_listing_summary(global_id)

    async def fetch_contact_details(self, global_id: str) -> Optional[ContactDetails]:
        return await self.api_client.fetch_contact_details(global_id)

    async def fetch_fiber_availability(self, postal_code: str) -> Optional[FiberAvailability]:
        return await self.api_client.fetch_fiber_availability(postal_code)

    async def close(self) -> None:
        """Shut the browser down. Idempotent."""
        if self._closed:
            return
        self._closed = True

        async with self._crawler_lock:
            crawler, self._crawler = self._crawler, None
        if crawler is not None:
            try:
                await crawler.close()
            except Exception as e:
                logger.warning(f"Error closing browser: {e}")

        if self._owns_api_client:
            await self.api_client.close()

    @staticmethod
    def _within_price_range(
        price_text: Optional[str], min_price: Optional[int], max_price: Optional[int]
    ) -> bool:
        price = FundaValueParser.parse_price(price_text)
        if price is None:
            return True
        if min_price is not None and price < min_price:
            return False
        if max_price is not None and price > max_price:
            return False
        return True

    async def _get_crawler(self) -> Any:
        """Start the shared browser on first use (system browser first, bundled second)."""
        async with self._crawler_lock:
            if self._closed:
                raise BrowserLaunchError("Browser client is closed")
            if self._crawler is not None:
                return self._crawler

            errors = []
            for channel in (self.browser_channel, None):
                browser_config = self._browser_config(channel)
                crawler = self._crawler_factory(browser_config)
                try:
                    await crawler.start()
                except Exception as e:
                    label = channel or "bundled chromium"
                    logger.warning(f"Could not launch browser ({label}): {e}")
                    errors.append(f"{label}: {e}")
                    continue

                logger.info(f"Browser started ({channel or 'bundled chromium'})")
                self._crawler = crawler
                return crawler

            raise BrowserLaunchError("No browser could be launched: " + "; ".join(errors))

    def _browser_config(self, channel: Optional[str]) -> BrowserConfig:
        options = dict(
            browser_type="chromium",
            headless=self.headless,
            user_agent=self.user_agent,
            viewport_width=self.viewport_width,
            viewport_height=self.viewport_height,
            extra_args=["--disable-blink-features=AutomationControlled", "--no-sandbox"],
            verbose=False,
        )
        if channel:
            options["chrome_channel"] = channel
            options["channel"] = channel
        return BrowserConfig(**options)

    def _run_config(self, session_id: str, js_only: bool = False) -> CrawlerRunConfig:
        options = dict(
            session_id=session_id,
            cache_mode=CacheMode.BYPASS,
            page_timeout=self.page_timeout_ms,
            locale=self.locale,
            timezone_id=self.timezone_id,
            verbose=False,
        )
        if js_only:
            options.update(js_only=True, js_code="void 0;")
        else:
            options.update(wait_until="networkidle", delay_before_return_html=1.0)
        return CrawlerRunConfig(**options)

    async def _fetch_page(self, url: str) -> str:
        """
        Navigate to ``url`` and return the page HTML once past any challenge.

        Returns:
            Page HTML

        Raises:
            ChallengeError: The challenge did not clear in time
        """
        crawler = await self._get_crawler()
        session_id = f"funda-{next(self._session_ids)}"

        async def navigate() -> Any:
            if self.rate_limiter:
                await self.rate_limiter.acquire()
            result = await crawler.arun(url=url, config=self._run_config(session_id))
            if not result.success:
                message = result.error_message or "navigation failed"
                status = getattr(result, "status_code", None)
                transient = any(marker in message.lower() for marker in TRANSIENT_ERROR_MARKERS)
                raise TransportError(
                    f"Browser navigation to {url} failed: {message}",
                    status_code=status,
                    transient=transient or None,
                )
            return result

        try:
            result = await with_retry(
                navigate,
                f"Browser navigation {url}",
                max_retries=self.max_retries,
                base_delay=self.backoff_base,
                sleep=self._sleep,
            )
            html = result.html or ""
            if self.parser.is_challenge_title(self.parser.page_title(html)):
                logger.info(f"Challenge page detected for {url}, waiting for it to clear")
                return await self._wait_for_challenge(crawler, url, session_id)
            return html
        finally:
            await self._kill_session(crawler, session_id)

    async def _wait_for_challenge(self, crawler: Any, url: str, session_id: str) -> str:
        started = self._clock()
        while self._clock() - started < self.max_wait:
            await self._sleep(self.poll_interval)

            result = await crawler.arun(url=url, config=self._run_config(session_id, js_only=True))
            if not result.success:
                logger.debug(f"Challenge poll failed for {url}: {result.error_message}")
                continue

            html = result.html or ""
            if not self.parser.is_challenge_title(self.parser.page_title(html)):
                logger.info(f"Challenge cleared for {url}")
                return html
            if self.parser.has_listing_markers(html):
                logger.info(f"Listing markers present for {url}")
                return html

        logger.warning(f"Challenge did not clear within {self.max_wait:.0f}s for {url}")
        raise ChallengeError(f"Challenge not cleared for {url} within {self.max_wait:.0f}s")

    @staticmethod
    async def _kill_session(crawler: Any, session_id: str) -> None:
        strategy = getattr(crawler, "crawler_strategy", None)
        if strategy is None or not hasattr(strategy, "kill_session"):
            return
        try:
            await strategy.kill_session(session_id)
        except Exception as e:
            logger.debug(f"Could not close session {session_id}: {e}")
