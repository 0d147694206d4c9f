"""Per-region crawl progress."""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional


@dataclass
class RegionCursor:
    """
    Crawl progress for one search region.

    ``next_backfill_page`` only grows, except that it resets to 1 once a
    backfill page comes back empty (the region has been walked completely).
    """

    region: str
    next_backfill_page: int = 1
    last_recent_scrape: Optional[datetime] = None
    last_backfill_scrape: Optional[datetime] = None

    def advance_backfill(self, listings_found: int) -> None:
        """
        Move the backfill position after one backfill page.

        Args:
            listings_found: Number of listings the page returned
        """
        if listings_found == 0:
            self.next_backfill_page = 1
        else:
            self.next_backfill_page += 1

    def to_dict(self) -> Dict[str, Any]:
        return {
            "region": self.region,
            "next_backfill_page": self.next_backfill_page,
            "last_recent_scrape": (
                self.last_recent_scrape.isoformat() if self.last_recent_scrape else None
            ),
            "last_backfill_scrape": (
                self.last_backfill_scrape.isoformat() if self.last_backfill_scrape else None
            ),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RegionCursor":
        def _parse(value: Any) -> Optional[datetime]:
            if isinstance(value, str):
                return datetime.fromisoformat(value)
            return value

        return cls(
            region=data["region"],
            next_backfill_page=int(data.get("next_backfill_page") or 1),
            last_recent_scrape=_parse(data.get("last_recent_scrape")),
            last_backfill_scrape=_parse(data.get("last_backfill_scrape")),
        )
