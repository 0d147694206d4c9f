"""Tests for the budgeted crawler orchestration in main.py."""

import sys
from pathlib import Path

# Add parent directory to path to import project modules
sys.path.insert(0, str(Path(__file__).parent.parent))

import asyncio
import json
from types import SimpleNamespace
from typing import Dict, List, Optional

import pytest

from main import FundaCrawler, load_config, parse_args
from models.constants import ListingStatus
from models.funda import ContactBlock, ContactDetails, FiberAvailability, ListingSummary, SummaryDetails
from models.listing import ListingRecord
from portals.base import AcquisitionClient, BrowserLaunchError, TransportError
from portals.funda.browser_client import FundaBrowserClient
from utils.notifier import ScrapeNotifier
from utils.storage import InMemoryListingStore

AMSTERDAM_PAGE = [
    ListingSummary(global_id="1", price="€ 500.000", listing_url="/detail/koop/amsterdam/huis-1/1000001/",
                   address="Damrak 1", city="Amsterdam"),
    ListingSummary(global_id="2", price="€ 600.000", listing_url="/detail/koop/amsterdam/huis-2/1000002/",
                   address="Rokin 2", city="Amsterdam"),
]


class FakeClient(AcquisitionClient):
    """Acquisition client serving canned pages per (region, page)."""

    def __init__(self, pages: Dict[tuple, List[ListingSummary]], errors: Optional[Dict[tuple, Exception]] = None):
        super().__init__({})
        self.pages = pages
        self.errors = errors or {}
        self.search_calls = []
        self.summary_calls = []
        self.detail_calls = []
        self.contact_calls = []
        self.fiber_calls = []
        self.summary_error: Optional[Exception] = None
        self.postal_code: Optional[str] = None

    def get_strategy_name(self) -> str:
        return "fake"

    async def search_listings(self, region, offering_type="buy", page=1, min_price=None, max_price=None):
        self.search_calls.append((region, page))
        if (region, page) in self.errors:
            raise self.errors[(region, page)]
        return list(self.pages.get((region, page), []))

    async def fetch_listing_details(self, url):
        self.detail_calls.append(url)
        return None

    async def fetch_listing_summary(self, global_id):
        self.summary_calls.append(global_id)
        if self.summary_error:
            raise self.summary_error
        if self.postal_code:
            return SummaryDetails(global_id=global_id, postal_code=self.postal_code)
        return None

    async def fetch_contact_details(self, global_id):
        self.contact_calls.append(global_id)
        return ContactDetails(blocks=[ContactBlock(display_name="Broker BV")])

    async def fetch_fiber_availability(self, postal_code):
        self.fiber_calls.append(postal_code)
        return FiberAvailability(postal_code=postal_code, availability=True)

    @property
    def total_calls(self) -> int:
        return (
            len(self.search_calls) + len(self.summary_calls) + len(self.detail_calls)
            + len(self.contact_calls) + len(self.fiber_calls)
        )


class RecordingNotifier(ScrapeNotifier):
    def __init__(self):
        self.events = []

    async def progress(self, message):
        self.events.append(("progress", message))

    async def listing_found(self, address):
        self.events.append(("listing_found", address))

    async def error(self, message):
        self.events.append(("error", message))

    async def complete(self):
        self.events.append(("complete",))


class BrokenNotifier(RecordingNotifier):
    async def progress(self, message):
        raise RuntimeError("socket closed")


CHALLENGE_PAGE = "<html><head><title>Je bent bijna op de pagina die je zoekt</title></head><body></body></html>"


class ChallengeCrawler:
    """Browser stand-in whose every page stays on the bot challenge."""

    def __init__(self):
        self.sessions = []
        self.crawler_strategy = SimpleNamespace(kill_session=self.kill_session)

    async def start(self):
        return None

    async def arun(self, url, config):
        if config.session_id not in self.sessions:
            self.sessions.append(config.session_id)
        return SimpleNamespace(success=True, html=CHALLENGE_PAGE, error_message=None, status_code=200)

    async def kill_session(self, session_id):
        return None

    async def close(self):
        return None


def make_challenged_client(crawler: ChallengeCrawler) -> FundaBrowserClient:
    elapsed = [0.0]

    async def fake_sleep(seconds: float) -> None:
        elapsed[0] += seconds

    return FundaBrowserClient(
        {"acquisition": {"browser": {"challenge_max_wait": 3.0, "challenge_poll_interval": 1.0}}},
        api_client=SimpleNamespace(),
        crawler_factory=lambda cfg: crawler,
        sleep=fake_sleep,
        clock=lambda: elapsed[0],
    )


async def no_sleep(seconds: float) -> None:
    return None


def make_crawler(client, store=None, **crawl) -> FundaCrawler:
    config = {
        "search_urls": ["https://www.funda.nl/koop/amsterdam/"],
        "crawl": dict({"recent_pages": 2, "backfill_pages": 3}, **crawl),
    }
    return FundaCrawler(config, client, store or InMemoryListingStore(), sleep=no_sleep)


class TestRegions:
    """Test region derivation from configured URLs."""

    def test_distinct_regions_in_order(self):
        """Test that duplicates and URLs without a region are dropped."""
        crawler = FundaCrawler(
            {"search_urls": [
                "https://www.funda.nl/koop/amsterdam/",
                "https://www.funda.nl/koop/amsterdam/p2/",
                "https://www.funda.nl/",
                'https://www.funda.nl/zoeken/koop?selected_area=["utrecht"]',
            ]},
            FakeClient({}),
            InMemoryListingStore(),
        )

        assert crawler.regions() == ["amsterdam", "utrecht"]


class TestFullScrape:
    """Test recent and backfill passes."""

    def test_new_listings_are_stored_with_history(self):
        """Test the end-to-end flow for two new listings."""
        client = FakeClient({("amsterdam", 1): AMSTERDAM_PAGE})
        store = InMemoryListingStore()
        crawler = make_crawler(client, store)

        asyncio.run(crawler.run_full_scrape())

        first, second = store.get("1"), store.get("2")
        assert first.price == 500000.0
        assert second.price == 600000.0
        assert first.status == ListingStatus.AVAILABLE
        assert first.agent_name == "Broker BV"
        assert len(store.price_history("1")) == 1
        assert len(store.price_history("2")) == 1

    def test_price_change_adds_history(self):
        """Test that an existing listing gets a history entry only on a price change."""
        store = InMemoryListingStore()
        store.add(ListingRecord(global_id="1", address="Damrak 1", price=450000.0, status=ListingStatus.UNDER_OFFER,
                                energy_label="C"))
        client = FakeClient({("amsterdam", 1): AMSTERDAM_PAGE})
        crawler = make_crawler(client, store, backfill_pages=0)

        asyncio.run(crawler.run_full_scrape())

        record = store.get("1")
        assert record.price == 500000.0
        assert record.status == ListingStatus.UNDER_OFFER
        assert record.energy_label == "C"
        assert [entry.price for entry in store.price_history("1")] == [500000.0]

    def test_unchanged_price_adds_no_history(self):
        """Test that re-seeing a listing at the same price records nothing."""
        store = InMemoryListingStore()
        client = FakeClient({("amsterdam", 1): AMSTERDAM_PAGE})
        crawler = make_crawler(client, store, backfill_pages=0)

        async def run():
            await crawler.run_full_scrape()
            await crawler.run_full_scrape()

        asyncio.run(run())

        assert len(store.price_history("1")) == 1

    def test_recent_pass_stops_at_empty_page(self):
        """Test that the recent pass does not request pages beyond an empty one."""
        client = FakeClient({("amsterdam", 1): []})
        crawler = make_crawler(client, recent_pages=5, backfill_pages=0)

        asyncio.run(crawler.run_full_scrape())

        assert client.search_calls == [("amsterdam", 1)]

    def test_backfill_continues_from_cursor_and_resets(self):
        """Test that backfill starts at the saved page and resets on an empty page."""
        store = InMemoryListingStore()
        cursor = store.get_cursor("amsterdam")
        cursor.next_backfill_page = 3
        store.save_cursor(cursor)
        client = FakeClient({("amsterdam", 3): AMSTERDAM_PAGE})
        crawler = make_crawler(client, store, recent_pages=0)

        asyncio.run(crawler.run_full_scrape())

        assert client.search_calls == [("amsterdam", 3), ("amsterdam", 4)]
        saved = store.get_cursor("amsterdam")
        assert saved.next_backfill_page == 1
        assert saved.last_backfill_scrape is not None

    def test_backfill_advances(self):
        """Test that full backfill pages move the cursor forward."""
        store = InMemoryListingStore()
        client = FakeClient({("amsterdam", 1): AMSTERDAM_PAGE, ("amsterdam", 2): AMSTERDAM_PAGE})
        crawler = make_crawler(client, store, recent_pages=0, backfill_pages=2)

        asyncio.run(crawler.run_full_scrape())

        assert store.get_cursor("amsterdam").next_backfill_page == 3

    def test_backfill_error_keeps_cursor(self):
        """Test that a failed backfill page leaves the cursor where it was."""
        store = InMemoryListingStore()
        cursor = store.get_cursor("amsterdam")
        cursor.next_backfill_page = 2
        store.save_cursor(cursor)
        client = FakeClient({}, errors={("amsterdam", 2): TransportError("blocked", status_code=403)})
        crawler = make_crawler(client, store, recent_pages=0)

        asyncio.run(crawler.run_full_scrape())

        assert store.get_cursor("amsterdam").next_backfill_page == 2
        assert client.search_calls == [("amsterdam", 2)]

    def test_budget_counts_every_call(self):
        """Test that the run never exceeds its call budget."""
        client = FakeClient({("amsterdam", 1): AMSTERDAM_PAGE, ("amsterdam", 2): AMSTERDAM_PAGE})
        crawler = make_crawler(client)

        remaining = asyncio.run(crawler.run_full_scrape(budget=5))

        assert remaining <= 0
        assert client.total_calls == 5

    def test_exhausted_budget_stores_baseline(self):
        """Test that listings seen after the budget ran out are stored without enrichment."""
        store = InMemoryListingStore()
        client = FakeClient({("amsterdam", 1): AMSTERDAM_PAGE})
        crawler = make_crawler(client, store)

        asyncio.run(crawler.run_full_scrape(budget=1))

        assert client.search_calls == [("amsterdam", 1)]
        assert client.summary_calls == []
        assert store.get("1").price == 500000.0
        assert store.get("2") is not None
        assert store.get_cursor("amsterdam").last_recent_scrape is not None

    def test_enrichment_failure_is_isolated(self):
        """Test that a failing per-listing lookup does not lose the listing."""
        client = FakeClient({("amsterdam", 1): AMSTERDAM_PAGE})
        client.summary_error = TransportError("boom", status_code=500)
        store = InMemoryListingStore()
        crawler = make_crawler(client, store, backfill_pages=0)

        asyncio.run(crawler.run_full_scrape())

        assert store.get("1") is not None
        assert store.get("1").agent_name == "Broker BV"

    def test_fiber_only_with_full_postcode(self):
        """Test that fiber lookups need a six-character postcode."""
        client = FakeClient({("amsterdam", 1): AMSTERDAM_PAGE[:1]})
        client.postal_code = "1012 AB"
        crawler = make_crawler(client, backfill_pages=0)
        asyncio.run(crawler.run_full_scrape())

        short = FakeClient({("amsterdam", 1): AMSTERDAM_PAGE[:1]})
        short.postal_code = "1012"
        asyncio.run(make_crawler(short, backfill_pages=0).run_full_scrape())

        assert client.fiber_calls == ["1012 AB"]
        assert short.fiber_calls == []

    def test_challenge_timeout_keeps_backfill_cursor(self):
        """Test that a page stuck on the bot challenge is not mistaken for an exhausted region."""
        store = InMemoryListingStore()
        cursor = store.get_cursor("amsterdam")
        cursor.next_backfill_page = 5
        store.save_cursor(cursor)
        browser = ChallengeCrawler()
        crawler = make_crawler(make_challenged_client(browser), store, recent_pages=0, backfill_pages=3)

        asyncio.run(crawler.run_full_scrape())

        assert store.get_cursor("amsterdam").next_backfill_page == 5
        assert len(browser.sessions) == 1

    def test_challenge_timeout_stops_recent_pass(self):
        """Test that the recent pass stops at a challenged page without storing anything."""
        store = InMemoryListingStore()
        browser = ChallengeCrawler()
        crawler = make_crawler(make_challenged_client(browser), store, recent_pages=3, backfill_pages=0)

        asyncio.run(crawler.run_full_scrape())

        assert len(browser.sessions) == 1
        assert store.get_cursor("amsterdam").last_recent_scrape is not None

    def test_browser_launch_error_aborts(self):
        """Test that a browser that cannot start stops the run."""
        client = FakeClient({}, errors={("amsterdam", 1): BrowserLaunchError("no browser")})
        crawler = make_crawler(client)

        with pytest.raises(BrowserLaunchError):
            asyncio.run(crawler.run_full_scrape())


class TestLimitedScrape:
    """Test the on-demand scrape with progress notifications."""

    def test_notifications_in_order(self):
        """Test the progress events and that the cursor is untouched."""
        client = FakeClient({("amsterdam", 1): AMSTERDAM_PAGE})
        store = InMemoryListingStore()
        notifier = RecordingNotifier()
        crawler = make_crawler(client, store)

        records = asyncio.run(crawler.scrape_limited("amsterdam", 1, notifier))

        assert [record.global_id for record in records] == ["1"]
        assert notifier.events == [
            ("progress", "Starting search for amsterdam..."),
            ("progress", "Fetching search results..."),
            ("progress", "Found 1 listings. Processing..."),
            ("listing_found", "Damrak 1"),
            ("complete",),
        ]
        assert store.cursors == {}

    def test_updated_listing_notification(self):
        """Test that known listings are reported as updated."""
        store = InMemoryListingStore()
        store.add(ListingRecord(global_id="1", address="Damrak 1", price=500000.0))
        notifier = RecordingNotifier()
        crawler = make_crawler(FakeClient({("amsterdam", 1): AMSTERDAM_PAGE}), store)

        asyncio.run(crawler.scrape_limited("amsterdam", 1, notifier))

        assert ("listing_found", "Damrak 1 (Updated)") in notifier.events

    def test_page_count_from_limit(self):
        """Test that ceil(limit / results_per_page) pages are searched."""
        pages = {("amsterdam", page): AMSTERDAM_PAGE for page in range(1, 10)}
        client = FakeClient(pages)
        crawler = make_crawler(client, results_per_page=2)

        records = asyncio.run(crawler.scrape_limited("amsterdam", 5, RecordingNotifier()))

        assert client.search_calls == [("amsterdam", 1), ("amsterdam", 2), ("amsterdam", 3)]
        assert len(records) == 5

    def test_no_results(self):
        """Test the error notification when nothing is found."""
        notifier = RecordingNotifier()
        crawler = make_crawler(FakeClient({}))

        records = asyncio.run(crawler.scrape_limited("nowhere", 10, notifier))

        assert records == []
        assert notifier.events[-1] == ("error", "No results found.")

    def test_search_failure_is_reported_and_raised(self):
        """Test that a failed search notifies and re-raises."""
        notifier = RecordingNotifier()
        client = FakeClient({}, errors={("amsterdam", 1): TransportError("blocked", status_code=403)})
        crawler = make_crawler(client)

        with pytest.raises(TransportError):
            asyncio.run(crawler.scrape_limited("amsterdam", 3, notifier))

        assert notifier.events[-1] == ("error", "blocked")

    def test_notifier_failures_do_not_abort(self):
        """Test that a broken notifier never stops the scrape."""
        notifier = BrokenNotifier()
        crawler = make_crawler(FakeClient({("amsterdam", 1): AMSTERDAM_PAGE}))

        records = asyncio.run(crawler.scrape_limited("amsterdam", 2, notifier))

        assert len(records) == 2
        assert notifier.events[-1] == ("complete",)


class TestConfigAndCli:
    """Test configuration loading and argument parsing."""

    def test_load_config(self, tmp_path):
        """Test that a valid config is returned as-is."""
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"search_urls": ["https://www.funda.nl/koop/amsterdam/"]}), encoding="utf-8")

        config = asyncio.run(load_config(path))

        assert config["search_urls"] == ["https://www.funda.nl/koop/amsterdam/"]

    def test_missing_search_urls(self, tmp_path):
        """Test that a config without search URLs is rejected."""
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"search_urls": []}), encoding="utf-8")

        with pytest.raises(ValueError, match="search_urls"):
            asyncio.run(load_config(path))

    def test_default_command(self):
        """Test that no subcommand means a full crawl."""
        assert parse_args([]).command == "crawl"

    def test_report_arguments(self):
        """Test report subcommand parsing."""
        args = parse_args(["report", "Damrak 1 Amsterdam", "--radius", "500", "--extras"])

        assert args.command == "report"
        assert args.address == "Damrak 1 Amsterdam"
        assert args.radius == 500
        assert args.extras is True


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
