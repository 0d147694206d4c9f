"""HTML parsing for Funda search and detail pages rendered in a browser."""

import json
import logging
import re
from collections import deque
from typing import Any, Dict, List, Optional

from bs4 import BeautifulSoup, Tag

from models.funda import ListingSummary, RichListingPayload
from portals.funda.constants import CHALLENGE_TITLE_MARKERS, LISTING_ADDRESS_SELECTOR
from portals.funda.url_parser import FundaUrlParser

logger = logging.getLogger(__name__)


class FundaPageParser:
    """Extract listings and characteristics from rendered Funda pages."""

    PRICE_PATTERN = re.compile(r"€\s*[\d.,]+(?:\s*(?:k\.k\.|v\.o\.n\.))?")
    PHOTO_ID_PATTERN = re.compile(r'"(\d{3}/\d{3}/\d{3})"')

    # Levels to climb from the address anchor when looking for the price
    PRICE_SEARCH_DEPTH = 6

    MAX_JSON_NODES = 10000

    # Keyword buckets for dt/dd characteristics, checked in order
    FEATURE_BUCKETS = (
        ("indeling", ("kamer", "badkamer", "verdiep", "garage", "balkon", "tuin")),
        ("afmetingen", ("wonen", "perceel", "inhoud", "m²")),
        ("energie", ("energie", "isolatie", "verwarming", "cv")),
    )

    @staticmethod
    def is_challenge_title(title: Optional[str]) -> bool:
        """True when the page title belongs to the bot-challenge interstitial."""
        if not title:
            return False
        lowered = title.lower()
        return any(marker in lowered for marker in CHALLENGE_TITLE_MARKERS)

    @staticmethod
    def page_title(html: str) -> str:
        soup = BeautifulSoup(html or "", "html.parser")
        return soup.title.get_text(strip=True) if soup.title else ""

    @staticmethod
    def has_listing_markers(html: str) -> bool:
        soup = BeautifulSoup(html or "", "html.parser")
        return soup.select_one(LISTING_ADDRESS_SELECTOR) is not None

    def parse_search_results(self, html: str) -> List[ListingSummary]:
        """
        Extract listing summaries from a search results page.

        DOM selectors are tried first; inlined JSON is the fallback.

        Args:
            html: Rendered search page HTML

        Returns:
            List of summaries (empty when the page has none)
        """
        if not html:
            return []

        soup = BeautifulSoup(html, "html.parser")
        listings = self._listings_from_dom(soup)
        if listings:
            logger.debug(f"DOM extraction found {len(listings)} listings")
            return listings

        listings = self._listings_from_json(soup)
        if listings:
            logger.debug(f"JSON fallback found {len(listings)} listings")
        return listings

    def _listings_from_dom(self, soup: BeautifulSoup) -> List[ListingSummary]:
        listings = []
        for anchor in soup.select(LISTING_ADDRESS_SELECTOR):
            href = anchor.get("href")
            if not href:
                continue

            global_id = FundaUrlParser.extract_global_id(href)
            if not global_id:
                logger.debug(f"Skipping listing without id: {href}")
                continue

            address = anchor.get_text(" ", strip=True) or None
            listings.append(
                ListingSummary(
                    global_id=global_id,
                    price=self._price_near(anchor),
                    listing_url=href,
                    address=address,
                )
            )
        return listings

    def _price_near(self, anchor: Tag) -> Optional[str]:
        container = anchor
        for _ in range(self.PRICE_SEARCH_DEPTH):
            if container is None:
                break
            for candidate in container.select("div.truncate"):
                text = candidate.get_text(" ", strip=True)
                if "€" in text:
                    return text
            container = container.parent

        container = anchor
        for _ in range(self.PRICE_SEARCH_DEPTH):
            if container is None:
                break
            match = self.PRICE_PATTERN.search(container.get_text(" ", strip=True))
            if match:
                return match.group(0)
            container = container.parent
        return None

    def _listings_from_json(self, soup: BeautifulSoup) -> List[ListingSummary]:
        for script in soup.find_all("script", attrs={"type": "application/json"}):
            text = script.string or script.get_text()
            if not text or ("searchResults" not in text and "listings" not in text):
                continue
            try:
                data = json.loads(text)
            except ValueError:
                continue

            items = self.find_listings_array(data)
            if not items:
                continue

            listings = []
            for item in items:
                if not isinstance(item, dict):
                    continue
                summary = ListingSummary.from_dict(item)
                if summary:
                    listings.append(summary)
            if listings:
                return listings
        return []

    def find_listings_array(self, data: Any) -> Optional[List[Any]]:
        """
        Locate the listings array in an inlined JSON document.

        Tries ``searchResults.listings``, then ``listings``, then the first
        array whose property name contains "listing".
        """
        if isinstance(data, dict):
            search_results = data.get("searchResults")
            if isinstance(search_results, dict) and isinstance(search_results.get("listings"), list):
                return search_results["listings"]
            if isinstance(data.get("listings"), list):
                return data["listings"]

        queue = deque([data])
        visited = 0
        while queue and visited < self.MAX_JSON_NODES:
            node = queue.popleft()
            visited += 1
            if isinstance(node, dict):
                for key, value in node.items():
                    if isinstance(value, list) and "listing" in key.lower():
                        return value
                    if isinstance(value, (dict, list)):
                        queue.append(value)
            elif isinstance(node, list):
                queue.extend(child for child in node if isinstance(child, (dict, list)))
        return None

    def parse_detail_page(self, html: str) -> Optional[RichListingPayload]:
        """
        Build a rich payload from a rendered detail page's markup.

        Used when the page carries no hydration payload.

        Returns:
            RichListingPayload, or None when nothing useful was found
        """
        if not html:
            return None

        soup = BeautifulSoup(html, "html.parser")
        characteristics = self.extract_characteristics(soup)
        description = self._description(soup)
        photos = self._photo_urls(soup)

        if not characteristics and not description and not photos:
            return None

        grouped: Dict[str, List[Dict[str, Any]]] = {"indeling": [], "afmetingen": [], "energie": [], "bouw": []}
        for label, value in characteristics.items():
            grouped[self._bucket_for(label)].append({"Label": label, "Value": value})

        payload = {
            "features": {
                key: {"Title": key.capitalize(), "KenmerkenList": items}
                for key, items in grouped.items()
                if items
            },
            "media": {"items": [{"id": url, "type": 1} for url in photos]},
            "description": {"content": description} if description else None,
        }
        return RichListingPayload.from_dict(payload)

    def extract_characteristics(self, soup: BeautifulSoup) -> Dict[str, str]:
        """dt/dd pairs, category sections first; the first occurrence of a label wins."""
        result: Dict[str, str] = {}
        for category in soup.select("[data-testid^='category-']"):
            self._collect_pairs(category.find_all("dt"), result)
        self._collect_pairs(soup.select("dl dt"), result)
        return result

    @staticmethod
    def _collect_pairs(dts: List[Tag], result: Dict[str, str]) -> None:
        for dt in dts:
            dd = dt.find_next_sibling()
            if dd is None or dd.name != "dd":
                continue
            key = dt.get_text(" ", strip=True)
            value = dd.get_text(" ", strip=True)
            if key and value and key not in result:
                result[key] = value

    def _bucket_for(self, label: str) -> str:
        lowered = label.lower()
        for bucket, keywords in self.FEATURE_BUCKETS:
            if any(keyword in lowered for keyword in keywords):
                return bucket
        return "bouw"

    @staticmethod
    def _description(soup: BeautifulSoup) -> Optional[str]:
        for heading in soup.find_all("h2"):
            if "Omschrijving" not in heading.get_text():
                continue
            parent = heading.parent
            container = parent.find("div") if parent else None
            if container:
                text = container.get_text(" ", strip=True)
                return text or None
        return None

    def _photo_urls(self, soup: BeautifulSoup) -> List[str]:
        nuxt = soup.find("script", attrs={"id": "__NUXT_DATA__"})
        if nuxt:
            ids = list(dict.fromkeys(self.PHOTO_ID_PATTERN.findall(nuxt.get_text())))
            if ids:
                return [
                    f"https://cloud.funda.nl/valentina_media/{photo_id}.jpg?options=width=1440"
                    for photo_id in ids
                ]

        urls = []
        for img in soup.select('img[src*="cloud.funda"]'):
            src = img.get("src")
            if src and "120x" not in src and "80x" not in src:
                urls.append(src)
        return list(dict.fromkeys(urls))
