"""Parsers for Dutch-formatted listing values."""

import re
from typing import Optional, Tuple


class FundaValueParser:
    """Parse prices, counts and composite strings as Funda renders them."""

    NON_PRICE_CHARS = re.compile(r"[^\d.,]")
    FIRST_NUMBER = re.compile(r"\d+")
    BEDROOMS = re.compile(r"(\d+)\s*slaapkamer", re.IGNORECASE)
    BOILER = re.compile(r"(.+?)\s*\((\d{4})\)")

    @classmethod
    def parse_price(cls, text: Optional[str]) -> Optional[float]:
        """
        Parse a Dutch price string.

        Dots are thousands separators and a comma is the decimal mark.

        Args:
            text: e.g. "€ 500.000 k.k." or "€ 1.250,50 /maand"

        Returns:
            Price as float (500000.0, 1250.5), or None if not a positive amount
        """
        if text is None:
            return None

        cleaned = cls.NON_PRICE_CHARS.sub("", str(text))
        if not cleaned:
            return None

        cleaned = cleaned.replace(".", "").replace(",", ".")
        try:
            value = float(cleaned)
        except ValueError:
            return None

        return value if value > 0 else None

    @classmethod
    def parse_int(cls, text: Optional[str]) -> Optional[int]:
        """First run of digits, e.g. "120 m²" -> 120."""
        if not text:
            return None
        match = cls.FIRST_NUMBER.search(str(text))
        return int(match.group(0)) if match else None

    @classmethod
    def parse_bedrooms(cls, text: Optional[str]) -> Optional[int]:
        """
        Bedroom count from strings like "5 kamers (3 slaapkamers)".

        Falls back to the first number when no 'slaapkamer' count is present.
        """
        if not text:
            return None
        match = cls.BEDROOMS.search(text)
        if match:
            return int(match.group(1))
        return cls.parse_int(text)

    @classmethod
    def parse_boiler(cls, text: Optional[str]) -> Tuple[Optional[str], Optional[int]]:
        """
        Split "Intergas HRE (2019)" into ("Intergas HRE", 2019).

        Returns:
            (brand, year); year is None when no "(YYYY)" suffix exists
        """
        if not text or not text.strip():
            return None, None
        match = cls.BOILER.search(text)
        if match:
            return match.group(1).strip(), int(match.group(2))
        return text.strip(), None
