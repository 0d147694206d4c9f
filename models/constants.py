"""Funda listing constants and enums."""

from enum import Enum
from typing import Dict, Optional

FUNDA_BASE_URL = "https://www.funda.nl"
FUNDA_HOSTS = ("funda.nl", "www.funda.nl")

# Media CDN pattern for hydration media ids
FUNDA_IMAGE_URL_TEMPLATE = "https://cloud.funda.nl/valentina_media/{media_id}_720.jpg"

DEFAULT_PROPERTY_TYPE = "Woonhuis"
PROJECT_PROPERTY_TYPE = "Nieuwbouwproject"
UNKNOWN_ADDRESS = "Unknown Address"

# Search path segment per offering type
OFFERING_PATH_SEGMENTS: Dict[str, str] = {
    "buy": "koop",
    "rent": "huur",
    "project": "nieuwbouw",
}


class ListingStatus(str, Enum):
    """Closed set of listing statuses."""

    AVAILABLE = "Available"
    UNDER_OFFER = "UnderOffer"
    UNDER_OPTION = "UnderOption"
    SOLD = "Sold"
    RENTED = "Rented"
    UNKNOWN = "Unknown"

    @classmethod
    def from_token(cls, token: Optional[str]) -> "ListingStatus":
        """
        Map a source status token (Dutch or English) to a status.

        Args:
            token: Raw status text, e.g. "Onder bod"

        Returns:
            Matching status, UNKNOWN when the token is empty or unrecognized
        """
        if not token:
            return cls.UNKNOWN
        return STATUS_TOKENS.get(token.strip().lower(), cls.UNKNOWN)


STATUS_TOKENS: Dict[str, ListingStatus] = {
    "beschikbaar": ListingStatus.AVAILABLE,
    "available": ListingStatus.AVAILABLE,
    "onder bod": ListingStatus.UNDER_OFFER,
    "under offer": ListingStatus.UNDER_OFFER,
    "onder optie": ListingStatus.UNDER_OPTION,
    "under option": ListingStatus.UNDER_OPTION,
    "verkocht": ListingStatus.SOLD,
    "sold": ListingStatus.SOLD,
    "verhuurd": ListingStatus.RENTED,
    "rented": ListingStatus.RENTED,
}
