"""Unit tests for the browser acquisition client with a fake crawler."""

import sys
from pathlib import Path

# Add parent directory to path to import project modules
sys.path.insert(0, str(Path(__file__).parent.parent))

import asyncio
from types import SimpleNamespace

import pytest

from portals.base import BrowserLaunchError, ChallengeError, TransportError
from portals.funda.browser_client import FundaBrowserClient

CHALLENGE_PAGE = "<html><head><title>Je bent bijna op de pagina die je zoekt</title></head><body></body></html>"

SEARCH_PAGE = """
<html><head><title>Koopwoningen Amsterdam</title></head><body>
<div><div><a data-testid="listingDetailsAddress" href="/detail/koop/amsterdam/appartement-damrak-1/43117443/">Damrak 1</a></div>
<div class="truncate">€ 500.000 k.k.</div></div>
<div><div><a data-testid="listingDetailsAddress" href="/detail/koop/amsterdam/huis-rokin-2/43117444/">Rokin 2</a></div>
<div class="truncate">€ 900.000 k.k.</div></div>
<div><div><a data-testid="listingDetailsAddress" href="/detail/koop/amsterdam/huis-spui-3/43117445/">Spui 3</a></div>
<div class="truncate">Prijs op aanvraag</div></div>
</body></html>
"""


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.now += seconds


class FakeStrategy:
    def __init__(self):
        self.killed = []

    async def kill_session(self, session_id: str) -> None:
        self.killed.append(session_id)


class FakeCrawler:
    """Replays scripted HTML pages; js_only re-reads continue the script."""

    def __init__(self, pages, fail_start: bool = False):
        self.pages = list(pages)
        self.fail_start = fail_start
        self.started = False
        self.closed = False
        self.runs = []
        self.crawler_strategy = FakeStrategy()

    async def start(self):
        if self.fail_start:
            raise RuntimeError("executable not found")
        self.started = True

    async def arun(self, url, config):
        self.runs.append((url, config.session_id, bool(getattr(config, "js_only", False))))
        html = self.pages.pop(0) if len(self.pages) > 1 else self.pages[0]
        return SimpleNamespace(success=True, html=html, error_message=None, status_code=200)

    async def close(self):
        self.closed = True


class StubApiClient:
    def __init__(self):
        self.summary_calls = []

    async def fetch_listing_summary(self, global_id):
        self.summary_calls.append(global_id)
        return "summary"

    async def close(self):
        pass


def make_client(crawlers, config=None, api_client=None, clock=None):
    clock = clock or FakeClock()
    queue = list(crawlers)
    return FundaBrowserClient(
        config or {"acquisition": {"browser": {"challenge_max_wait": 5.0, "challenge_poll_interval": 1.0}}},
        api_client=api_client or StubApiClient(),
        crawler_factory=lambda cfg: queue.pop(0),
        sleep=clock.sleep,
        clock=clock,
    )


class TestFundaBrowserClient:
    """Test navigation, challenge polling and browser launch."""

    def test_search_with_price_filter(self):
        """Test that listings above the max price are dropped and unpriced ones kept."""
        crawler = FakeCrawler([SEARCH_PAGE])
        client = make_client([crawler])

        async def run():
            try:
                return await client.search_listings("amsterdam", max_price=600000)
            finally:
                await client.close()

        listings = asyncio.run(run())

        assert [listing.global_id for listing in listings] == ["43117443", "43117445"]
        assert crawler.runs[0][0] == "https://www.funda.nl/koop/amsterdam/?price=\"0-600000\""
        assert crawler.crawler_strategy.killed == [crawler.runs[0][1]]
        assert crawler.closed

    def test_challenge_clears(self):
        """Test that the session is re-read until the challenge title disappears."""
        crawler = FakeCrawler([CHALLENGE_PAGE, CHALLENGE_PAGE, SEARCH_PAGE])
        client = make_client([crawler])

        listings = asyncio.run(client.search_listings("amsterdam"))

        assert len(listings) == 3
        assert [run[2] for run in crawler.runs] == [False, True, True]
        assert len({run[1] for run in crawler.runs}) == 1

    def test_challenge_timeout_raises(self):
        """Test that an unresolved challenge raises ChallengeError instead of returning no listings."""
        crawler = FakeCrawler([CHALLENGE_PAGE])
        clock = FakeClock()
        client = make_client([crawler], clock=clock)

        with pytest.raises(ChallengeError) as exc_info:
            asyncio.run(client.search_listings("amsterdam"))

        assert not exc_info.value.transient
        assert isinstance(exc_info.value, TransportError)
        assert clock.now >= 5.0
        assert len(crawler.crawler_strategy.killed) == 1

    def test_challenge_timeout_on_detail_page_raises(self):
        """Test that a blocked detail page is reported as a challenge, not as a missing payload."""
        client = make_client([FakeCrawler([CHALLENGE_PAGE])])

        with pytest.raises(ChallengeError):
            asyncio.run(client.fetch_listing_details("/detail/koop/amsterdam/appartement-damrak-1/43117443/"))

    def test_falls_back_to_bundled_browser(self):
        """Test that a failing system browser launch tries the bundled one."""
        system = FakeCrawler([SEARCH_PAGE], fail_start=True)
        bundled = FakeCrawler([SEARCH_PAGE])
        client = make_client([system, bundled])

        listings = asyncio.run(client.search_listings("amsterdam"))

        assert len(listings) == 3
        assert bundled.started

    def test_launch_failure_is_hard_error(self):
        """Test that no launchable browser raises BrowserLaunchError."""
        client = make_client([FakeCrawler([SEARCH_PAGE], fail_start=True), FakeCrawler([SEARCH_PAGE], fail_start=True)])

        with pytest.raises(BrowserLaunchError):
            asyncio.run(client.search_listings("amsterdam"))

    def test_browser_is_started_once(self):
        """Test that concurrent callers share one browser."""
        crawler = FakeCrawler([SEARCH_PAGE])
        client = make_client([crawler])

        async def run():
            return await asyncio.gather(
                client.search_listings("amsterdam", page=1),
                client.search_listings("amsterdam", page=2),
            )

        first, second = asyncio.run(run())

        assert len(first) == len(second) == 3
        assert len(crawler.runs) == 2

    def test_json_endpoints_delegate(self):
        """Test that summary lookups go to the direct client."""
        api = StubApiClient()
        client = make_client([], api_client=api)

        assert asyncio.run(client.fetch_listing_summary("43117443")) == "summary"
        assert api.summary_calls == ["43117443"]

    def test_close_is_idempotent(self):
        """Test that closing twice is safe and blocks further use."""
        client = make_client([FakeCrawler([SEARCH_PAGE])])

        async def run():
            await client.close()
            await client.close()
            await client.search_listings("amsterdam")

        with pytest.raises(BrowserLaunchError):
            asyncio.run(run())


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
