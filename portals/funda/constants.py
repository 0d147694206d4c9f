"""Funda-specific endpoints, headers and selectors."""

from typing import Dict

SEARCH_API_URL = "https://search-topposition.funda.io/v2.0/search"
SUMMARY_API_URL = "https://listing-detail-summary.funda.io/api/v1/listing/nl/{global_id}"
CONTACTS_API_URL = (
    "https://contacts-bff.funda.io/api/v3/listings/{global_id}/contact-details?website=1"
)
FIBER_API_URL = "https://kpnopticfiber.funda.io/api/v1/{postal_code}"

USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)

API_HEADERS: Dict[str, str] = {
    "User-Agent": USER_AGENT,
    "Accept": "application/json",
    "Accept-Language": "nl-NL,nl;q=0.9,en;q=0.8",
    "Origin": "https://www.funda.nl",
    "Referer": "https://www.funda.nl/",
}

PAGE_HEADERS: Dict[str, str] = {
    "User-Agent": USER_AGENT,
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "nl-NL,nl;q=0.9,en;q=0.8",
}

# Search API offering and aggregation tokens
SEARCH_OFFERING_TYPES: Dict[str, str] = {
    "buy": "buy",
    "koop": "buy",
    "rent": "rent",
    "huur": "rent",
}

# Challenge interstitial detection
CHALLENGE_TITLE_MARKERS = ("bijna op de pagina", "challenge")
LISTING_ADDRESS_SELECTOR = "[data-testid='listingDetailsAddress']"
