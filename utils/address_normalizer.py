"""Turn free text or pasted URLs into a searchable Dutch address query."""

import re
from typing import Optional
from urllib.parse import parse_qsl, unquote, urlsplit


class AddressNormalizer:
    """
    Best-effort normalization of user input for the geocoder.

    Examples:
        "https://www.funda.nl/koop/amsterdam/huis-424242-prinsengracht-1/"
            -> "huis 424242 prinsengracht 1"
        "https://maps.example.com/search?address=Kerkstraat+5"
            -> "Kerkstraat 5"
        "  Damrak 1 Amsterdam  " -> "Damrak 1 Amsterdam"
    """

    # Query parameters that commonly carry an address
    ADDRESS_QUERY_KEYS = {"q", "query", "address", "location", "loc"}

    SOURCE_HOST = "funda.nl"

    SEPARATOR_PATTERN = re.compile(r"[-_]")

    @classmethod
    def normalize(cls, text: str) -> str:
        """
        Normalize raw input into a search query.

        Args:
            text: Plain address text or an absolute URL

        Returns:
            Query string (never None; may be empty for empty input)
        """
        if text is None:
            return ""

        parts = cls._parse_absolute_url(text)
        if parts is not None:
            query_hint = cls._address_from_query(parts.query)
            if query_hint:
                return query_hint

            segment = cls._last_path_segment(parts.path)
            if segment:
                slug = cls.SEPARATOR_PATTERN.sub(" ", unquote(segment)).strip()
                if cls.SOURCE_HOST in (parts.hostname or "").lower():
                    return slug
                if any(ch.isalpha() for ch in slug):
                    return slug

        return text.strip()

    @staticmethod
    def _parse_absolute_url(text: str):
        candidate = text.strip()
        if not candidate or any(ch.isspace() for ch in candidate):
            return None
        try:
            parts = urlsplit(candidate)
        except ValueError:
            return None
        if not parts.scheme or not parts.netloc:
            return None
        return parts

    @classmethod
    def _address_from_query(cls, query: str) -> Optional[str]:
        if not query:
            return None

        for key, value in parse_qsl(query):
            if key.lower() not in cls.ADDRESS_QUERY_KEYS:
                continue
            decoded = value.strip()
            if any(ch.isalnum() for ch in decoded):
                return decoded
        return None

    @staticmethod
    def _last_path_segment(path: str) -> Optional[str]:
        segments = [s for s in path.split("/") if s.strip()]
        return segments[-1] if segments else None

