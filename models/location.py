"""Resolved location data model."""

from dataclasses import asdict, dataclass, replace
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class ResolvedLocation:
    """A free-text input resolved to one Dutch address with its administrative hierarchy."""

    query: str
    display_address: str
    latitude: float
    longitude: float
    rd_x: Optional[float] = None
    rd_y: Optional[float] = None
    municipality_code: Optional[str] = None
    municipality_name: Optional[str] = None
    district_code: Optional[str] = None
    district_name: Optional[str] = None
    neighborhood_code: Optional[str] = None
    neighborhood_name: Optional[str] = None
    postal_code: Optional[str] = None

    def with_query(self, query: str) -> "ResolvedLocation":
        """Copy carrying the caller's original input."""
        return replace(self, query=query)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
