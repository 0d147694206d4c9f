"""Funda URL parsing utilities."""

import re
from typing import Optional
from urllib.parse import unquote, urlsplit

from models.constants import FUNDA_BASE_URL, FUNDA_HOSTS, OFFERING_PATH_SEGMENTS


class FundaUrlParser:
    """Extract regions and listing ids from Funda URLs."""

    # https://www.funda.nl/koop/amsterdam/ -> amsterdam
    REGION_PATTERN = re.compile(r"funda\.nl/(?:koop|huur)/([^/?#]+)", re.IGNORECASE)

    # /zoeken/koop?selected_area=["amsterdam"] -> amsterdam
    SELECTED_AREA_PATTERN = re.compile(r'selected_area=.*?"([^"]+)"', re.IGNORECASE)

    # /koop/amsterdam/huis-43117443-straat-1/ -> 43117443
    GLOBAL_ID_PATTERN = re.compile(r"[/-](\d{6,})")

    @classmethod
    def extract_region(cls, url: str) -> Optional[str]:
        """
        Extract the search region from a Funda search URL.

        Args:
            url: Search URL (e.g., https://www.funda.nl/koop/amsterdam/)

        Returns:
            Lower-cased region slug, or None if the URL names no region
        """
        if not url:
            return None

        decoded = unquote(url)
        match = cls.REGION_PATTERN.search(decoded)
        if match:
            return match.group(1).lower()

        match = cls.SELECTED_AREA_PATTERN.search(decoded)
        if match:
            return match.group(1).lower()

        return None

    @classmethod
    def extract_global_id(cls, url: str) -> Optional[str]:
        """
        Extract the listing's global id (last 6+ digit run after '/' or '-').

        Args:
            url: Listing URL

        Returns:
            Global id as string, or None
        """
        if not url:
            return None
        matches = cls.GLOBAL_ID_PATTERN.findall(url)
        return matches[-1] if matches else None

    @staticmethod
    def ensure_absolute_url(url: Optional[str]) -> str:
        """
        Make a listing URL absolute on www.funda.nl.

        Absolute URLs pointing at any other host are rejected.

        Returns:
            Absolute URL, or "" when the input is empty or off-site
        """
        if not url or not url.strip():
            return ""

        url = url.strip()
        parts = urlsplit(url)
        if parts.scheme and parts.netloc:
            host = (parts.hostname or "").lower()
            return url if host in FUNDA_HOSTS else ""

        return f"{FUNDA_BASE_URL}/{url.lstrip('/')}"

    @staticmethod
    def build_search_page_url(
        region: str,
        offering_type: str = "buy",
        page: int = 1,
        min_price: Optional[int] = None,
        max_price: Optional[int] = None,
    ) -> str:
        """
        Build the public search page URL used by the browser strategy.

        Example:
            https://www.funda.nl/koop/amsterdam/p2/?price="300000-500000"
        """
        segment = OFFERING_PATH_SEGMENTS.get(offering_type, offering_type)
        url = f"{FUNDA_BASE_URL}/{segment}/{region}/"
        if page > 1:
            url += f"p{page}/"
        if min_price is not None or max_price is not None:
            low = min_price if min_price is not None else 0
            high = max_price if max_price is not None else ""
            url += f'?price="{low}-{high}"'
        return url
