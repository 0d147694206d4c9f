"""Funda crawler with public-data neighborhood reports."""

import argparse
import asyncio
import json
import logging
import math
from dataclasses import asdict
from datetime import datetime
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

import yaml

from enrichment.report import ContextReportService, ReportValidationError
from enrichment.woz import WozValuationClient
from models.constants import ListingStatus
from models.funda import ListingSummary
from models.listing import ListingRecord, PriceHistoryEntry
from models.report import DEFAULT_RADIUS_METERS, ContextReportRequest
from portals import get_client
from portals.base import AcquisitionClient, BrowserLaunchError
from portals.funda.mapper import FundaMapper
from portals.funda.url_parser import FundaUrlParser
from utils.notifier import LoggingNotifier, ScrapeNotifier
from utils.rate_limiter import RateLimiter
from utils.storage import ListingStore, YamlListingStore

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# Request-level logs from httpx are too noisy at INFO
logging.getLogger("httpx").setLevel(logging.WARNING)

# Fiber lookups need a full postcode ("1012AB")
MIN_FIBER_POSTCODE_LENGTH = 6


class FundaCrawler:
    """
    Budgeted, cursor-driven crawl of the configured Funda regions.

    A full run makes two passes. The recent pass re-reads the first pages
    of every region to pick up new listings; the backfill pass then walks
    deeper pages, continuing from each region's persisted cursor. Every
    acquisition call (search page or per-listing lookup) spends one unit
    of the run budget, and both passes stop as soon as it is used up.
    """

    def __init__(
        self,
        config: Dict[str, Any],
        client: AcquisitionClient,
        store: ListingStore,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
    ):
        """
        Initialize the crawler with configuration.

        Args:
            config: Configuration dictionary from config.json
            client: Acquisition strategy (direct, browser or fallback)
            store: Listing, price-history and cursor persistence
            sleep: Async sleep used for politeness delays (default: asyncio.sleep)
        """
        self.config = config
        self.client = client
        self.store = store
        self._sleep = sleep or asyncio.sleep

        crawl_config = config.get("crawl", {})
        self.call_budget = crawl_config.get("call_budget", 200)
        self.recent_pages = crawl_config.get("recent_pages", 2)
        self.backfill_pages = crawl_config.get("backfill_pages", 3)
        self.results_per_page = crawl_config.get("results_per_page", 15)
        self.offering_type = crawl_config.get("offering_type", "buy")
        self.price_min = crawl_config.get("price_min")
        self.price_max = crawl_config.get("price_max")
        self.limited_max_pages = crawl_config.get("limited_max_pages", 10)

        # Rate limiting
        rate_config = config.get("rate_limiting", {})
        self.delay_listing = rate_config.get("delay_listing", 0.5)
        self.delay_page = rate_config.get("delay_page", 1.0)

    def regions(self) -> List[str]:
        """Distinct regions of the configured search URLs, in config order."""
        regions = []
        for url in self.config.get("search_urls", []):
            region = FundaUrlParser.extract_region(url)
            if not region:
                logger.warning(f"Could not extract region from URL: {url}")
                continue
            if region not in regions:
                regions.append(region)
        return regions

    async def run_full_scrape(self, budget: Optional[int] = None) -> int:
        """
        Run the recent pass and then the backfill pass over all regions.

        Args:
            budget: Acquisition calls allowed for this run (default: crawl.call_budget)

        Returns:
            Remaining budget
        """
        budget = self.call_budget if budget is None else budget
        regions = self.regions()
        logger.info(f"Starting full scrape of {len(regions)} regions (budget: {budget} calls)")

        for region in regions:
            if budget <= 0:
                break
            budget = await self._recent_pass(region, budget)

        for region in regions:
            if budget <= 0:
                break
            budget = await self._backfill_pass(region, budget)

        if budget <= 0:
            logger.info("Call budget exhausted")
        logger.info(f"Full scrape complete ({len(self.store.all())} listings stored, {budget} calls left)")
        return budget

    async def _recent_pass(self, region: str, budget: int) -> int:
        cursor = self.store.get_cursor(region)
        logger.info(f"Recent pass for {region} ({self.recent_pages} pages)")

        for page in range(1, self.recent_pages + 1):
            if budget <= 0:
                break
            summaries, budget = await self._search(region, page, budget)
            if not summaries:
                break
            budget = await self._process_page(summaries, budget)
            await self._sleep(self.delay_page)

        cursor.last_recent_scrape = datetime.now()
        self.store.save_cursor(cursor)
        self.store.flush()
        return budget

    async def _backfill_pass(self, region: str, budget: int) -> int:
        cursor = self.store.get_cursor(region)
        logger.info(f"Backfill pass for {region} from page {cursor.next_backfill_page}")

        for _ in range(self.backfill_pages):
            if budget <= 0:
                break
            page = cursor.next_backfill_page
            summaries, budget = await self._search(region, page, budget)
            if summaries is None:
                # Failed page: keep the cursor where it is and retry next run
                break

            cursor.advance_backfill(len(summaries))
            if not summaries:
                logger.info(f"Backfill for {region} exhausted at page {page}, cursor reset")
                break
            budget = await self._process_page(summaries, budget)
            await self._sleep(self.delay_page)

        cursor.last_backfill_scrape = datetime.now()
        self.store.save_cursor(cursor)
        self.store.flush()
        return budget

    async def _search(
        self, region: str, page: int, budget: Optional[int]
    ) -> Tuple[Optional[List[ListingSummary]], Optional[int]]:
        """
        Fetch one search page.

        Returns:
            (summaries or None on failure, remaining budget)
        """
        budget = self._spend(budget)
        try:
            summaries = await self.client.search_listings(
                region,
                offering_type=self.offering_type,
                page=page,
                min_price=self.price_min,
                max_price=self.price_max,
            )
        except (asyncio.CancelledError, BrowserLaunchError):
            raise
        except Exception as e:
            logger.error(f"Search failed for {region} page {page}: {e}")
            return None, budget

        logger.info(f"Page {page} of {region}: {len(summaries)} listings")
        return summaries, budget

    async def _process_page(self, summaries: List[ListingSummary], budget: int) -> int:
        total = len(summaries)
        for i, summary in enumerate(summaries, 1):
            logger.info(f"  [{i}/{total}] Processing listing {summary.global_id}")
            try:
                _, budget = await self.process_listing(summary, budget)
            except (asyncio.CancelledError, BrowserLaunchError):
                raise
            except Exception as e:
                logger.error(f"Failed to process listing {summary.global_id}: {e}")

            await self._sleep(self.delay_listing)
        return budget

    async def process_listing(
        self,
        summary: ListingSummary,
        budget: Optional[int] = None,
        notifier: Optional[ScrapeNotifier] = None,
    ) -> Tuple[ListingRecord, Optional[int]]:
        """
        Enrich one search hit and store it.

        New listings default to Available and get an initial price-history
        entry. Known listings get a history entry only when the price
        changed; every other field is merged without clearing known data.

        Args:
            summary: Search hit
            budget: Remaining call budget (None = unlimited)
            notifier: Receives a listing_found event, if given

        Returns:
            (stored record, remaining budget)
        """
        existing = self.store.get(summary.global_id)
        record = FundaMapper.map_summary_to_listing(summary)
        record, budget = await self._enrich(record, budget)

        if existing is None:
            if record.status == ListingStatus.UNKNOWN:
                record.status = ListingStatus.AVAILABLE
            self.store.add(record)
            if record.price is not None:
                self.store.add_price_history(PriceHistoryEntry(record.global_id, record.price))
            logger.info(f"Added new listing: {record.global_id} - {record.address}")
            await self._notify(notifier, "listing_found", record.address)
            return record, budget

        if record.price is not None and record.price != existing.price:
            logger.info(f"Price changed for {record.global_id}: {existing.price} -> {record.price}")
            self.store.add_price_history(PriceHistoryEntry(existing.global_id, record.price))

        existing.merge_from(record)
        self.store.update(existing)
        logger.debug(f"Updated listing: {existing.global_id}")
        await self._notify(notifier, "listing_found", f"{existing.address} (Updated)")
        return existing, budget

    async def _enrich(self, record: ListingRecord, budget: Optional[int]) -> Tuple[ListingRecord, Optional[int]]:
        """Summary, detail page, contacts and fiber lookups; each one is optional."""
        global_id = record.global_id

        if self._exhausted(budget):
            return record, budget
        budget = self._spend(budget)
        summary = await self._optional(f"summary for {global_id}", self.client.fetch_listing_summary(global_id))
        if summary is not None:
            FundaMapper.merge_summary(record, summary)

        if record.url:
            if self._exhausted(budget):
                return record, budget
            budget = self._spend(budget)
            payload = await self._optional(f"details for {global_id}", self.client.fetch_listing_details(record.url))
            if payload is not None:
                FundaMapper.merge_rich_payload(record, payload)

        if self._exhausted(budget):
            return record, budget
        budget = self._spend(budget)
        contacts = await self._optional(f"contacts for {global_id}", self.client.fetch_contact_details(global_id))
        if contacts is not None:
            FundaMapper.merge_contact_details(record, contacts)

        postal_code = (record.postal_code or "").replace(" ", "")
        if len(postal_code) >= MIN_FIBER_POSTCODE_LENGTH:
            if self._exhausted(budget):
                return record, budget
            budget = self._spend(budget)
            fiber = await self._optional(
                f"fiber for {global_id}", self.client.fetch_fiber_availability(record.postal_code)
            )
            if fiber is not None:
                FundaMapper.merge_fiber_availability(record, fiber)

        return record, budget

    async def scrape_limited(
        self, region: str, limit: int, notifier: Optional[ScrapeNotifier] = None
    ) -> List[ListingRecord]:
        """
        On-demand scrape of up to ``limit`` listings for one region.

        Searches ``ceil(limit / results_per_page)`` pages (capped), reports
        progress through ``notifier`` and leaves the region cursor untouched.

        Args:
            region: Region slug (e.g. "amsterdam")
            limit: Maximum number of listings to process
            notifier: Progress receiver (default: LoggingNotifier)

        Returns:
            Records stored or updated by this scrape
        """
        notifier = notifier or LoggingNotifier()
        logger.info(f"Starting limited scrape for region: {region}")
        await self._notify(notifier, "progress", f"Starting search for {region}...")

        try:
            max_pages = min(max(1, math.ceil(limit / self.results_per_page)), self.limited_max_pages)
            await self._notify(notifier, "progress", "Fetching search results...")

            summaries: List[ListingSummary] = []
            for page in range(1, max_pages + 1):
                page_summaries = await self.client.search_listings(
                    region,
                    offering_type=self.offering_type,
                    page=page,
                    min_price=self.price_min,
                    max_price=self.price_max,
                )
                if not page_summaries:
                    break
                summaries.extend(page_summaries)
                if len(summaries) >= limit:
                    break
            summaries = summaries[:limit]

            if not summaries:
                logger.warning(f"No listings found for: {region}")
                await self._notify(notifier, "error", "No results found.")
                return []

            await self._notify(notifier, "progress", f"Found {len(summaries)} listings. Processing...")

            records = []
            for summary in summaries:
                try:
                    record, _ = await self.process_listing(summary, None, notifier)
                    records.append(record)
                except (asyncio.CancelledError, BrowserLaunchError):
                    raise
                except Exception as e:
                    logger.error(f"Failed to process listing {summary.global_id}: {e}")
                await self._sleep(self.delay_listing)

            self.store.flush()
            await self._notify(notifier, "complete")
            return records

        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Failed limited scrape for region {region}: {e}")
            await self._notify(notifier, "error", str(e))
            raise

    @staticmethod
    def _exhausted(budget: Optional[int]) -> bool:
        return budget is not None and budget <= 0

    @staticmethod
    def _spend(budget: Optional[int]) -> Optional[int]:
        return None if budget is None else budget - 1

    @staticmethod
    async def _optional(description: str, call: Awaitable[Any]) -> Any:
        """Await a per-listing lookup; failures are logged and yield None."""
        try:
            return await call
        except (asyncio.CancelledError, BrowserLaunchError):
            raise
        except Exception as e:
            logger.warning(f"Failed to fetch {description}: {e}")
            return None

    @staticmethod
    async def _notify(notifier: Optional[ScrapeNotifier], event: str, *args: Any) -> None:
        if notifier is None:
            return
        try:
            await getattr(notifier, event)(*args)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.warning(f"Failed to send {event} notification: {e}")


async def load_config(config_path: Optional[Path] = None) -> Dict[str, Any]:
    """Load configuration from config.json"""
    config_path = config_path or Path(__file__).parent / "config.json"
    with open(config_path, "r", encoding="utf-8") as f:
        config = json.load(f)

    # Validate required fields
    if not config.get("search_urls"):
        raise ValueError("Missing required field 'search_urls' in config.json")

    return config


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Funda crawler and neighborhood context reports")
    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("crawl", help="Budgeted crawl of all configured regions")

    limited = subparsers.add_parser("limited", help="Scrape up to N listings of one region")
    limited.add_argument("region", help="Region slug, e.g. amsterdam")
    limited.add_argument("limit", type=int, help="Maximum number of listings")

    report = subparsers.add_parser("report", help="Print the context report for an address or listing URL")
    report.add_argument("address", help="Address text or listing URL")
    report.add_argument("--radius", type=int, default=None, help="Amenity radius in meters")
    report.add_argument("--extras", action="store_true", help="Add foundation risk and solar potential")

    woz = subparsers.add_parser("woz", help="Look up the latest WOZ value of an address")
    woz.add_argument("street")
    woz.add_argument("number", type=int)
    woz.add_argument("city")
    woz.add_argument("--suffix", default=None, help="House number addition")

    args = parser.parse_args(argv)
    if args.command is None:
        args.command = "crawl"
    return args


def _print_yaml(data: Dict[str, Any]) -> None:
    print(yaml.dump(data, allow_unicode=True, sort_keys=False, default_flow_style=False))


async def run_crawl(config: Dict[str, Any], args: argparse.Namespace) -> None:
    acquisition = config.get("acquisition", {})
    rate_limiter = RateLimiter(acquisition.get("min_interval_seconds", 1.0))
    store = YamlListingStore(config.get("storage", {}).get("folder", "data"))

    async with get_client(config, rate_limiter) as client:
        crawler = FundaCrawler(config, client, store)
        if args.command == "limited":
            records = await crawler.scrape_limited(args.region, args.limit)
            logger.info(f"Limited scrape complete! Processed {len(records)} listings.")
        else:
            remaining = await crawler.run_full_scrape()
            logger.info(f"Scraping complete! {remaining} calls of the budget left.")


async def run_report(config: Dict[str, Any], args: argparse.Namespace) -> None:
    radius = args.radius or config.get("enrichment", {}).get("default_radius_meters", DEFAULT_RADIUS_METERS)
    async with ContextReportService(config) as service:
        try:
            report = await service.build(ContextReportRequest(args.address, radius))
        except ReportValidationError as e:
            for error in e.errors:
                logger.error(error)
            return

        data = report.to_dict()
        if args.extras:
            extras = await service.build_property_extras(report.location)
            data["extras"] = {key: asdict(value) if value else None for key, value in extras.items()}
        _print_yaml(data)


async def run_woz(config: Dict[str, Any], args: argparse.Namespace) -> None:
    client = WozValuationClient(config)
    try:
        valuation = await client.fetch(args.street, args.number, args.suffix, args.city)
    finally:
        await client.close()

    if valuation is None:
        logger.warning("No WOZ valuation found")
        return
    _print_yaml(asdict(valuation))


async def main(argv: Optional[List[str]] = None):
    """Main entry point for the crawler CLI."""
    try:
        args = parse_args(argv)
        config = await load_config()

        if args.command in ("crawl", "limited"):
            await run_crawl(config, args)
        elif args.command == "report":
            await run_report(config, args)
        elif args.command == "woz":
            await run_woz(config, args)

    except FileNotFoundError:
        logger.error("config.json not found")
    except BrowserLaunchError as e:
        logger.error(f"Browser could not be started: {e}")
    except Exception as e:
        logger.error(f"Unexpected error: {e}")
        import traceback

        traceback.print_exc()


def cli():
    """Console script entry point."""
    asyncio.run(main())


if __name__ == "__main__":
    asyncio.run(main())
