"""Listing record data model."""

from dataclasses import dataclass, field, fields
from datetime import datetime
from typing import Any, Dict, List, Optional

from .constants import ListingStatus

_DATETIME_FIELDS = {"publication_date", "sold_date", "last_fetched_at", "created_at"}


def _is_empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str) and not value.strip():
        return True
    if isinstance(value, (list, dict)) and not value:
        return True
    return False


@dataclass
class ListingRecord:
    """One Funda listing as persisted by the crawler."""

    # Identity
    global_id: str
    url: Optional[str] = None

    # Address
    address: Optional[str] = None
    city: Optional[str] = None
    postal_code: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None

    # Price and status
    price: Optional[float] = None
    status: ListingStatus = ListingStatus.UNKNOWN
    is_sold_or_rented: Optional[bool] = None
    property_type: Optional[str] = None

    # Sizes
    bedrooms: Optional[int] = None
    bathrooms: Optional[int] = None
    living_area_m2: Optional[int] = None
    plot_area_m2: Optional[int] = None
    garden_m2: Optional[int] = None
    balcony_m2: Optional[int] = None
    storage_m2: Optional[int] = None
    volume_m3: Optional[int] = None

    # Building and energy
    description: Optional[str] = None
    energy_label: Optional[str] = None
    insulation_type: Optional[str] = None
    heating_type: Optional[str] = None
    year_built: Optional[int] = None
    construction_period: Optional[str] = None
    ownership_type: Optional[str] = None
    vve_contribution: Optional[float] = None
    roof_type: Optional[str] = None
    number_of_floors: Optional[int] = None
    cv_boiler_brand: Optional[str] = None
    cv_boiler_year: Optional[int] = None
    garden_orientation: Optional[str] = None
    has_garage: Optional[bool] = None
    parking_type: Optional[str] = None
    cadastral_designation: Optional[str] = None
    fiber_available: Optional[bool] = None

    # Broker
    agent_name: Optional[str] = None
    broker_phone: Optional[str] = None
    broker_logo_url: Optional[str] = None
    broker_association_code: Optional[str] = None

    # Media
    image_url: Optional[str] = None
    image_urls: List[str] = field(default_factory=list)
    floor_plan_urls: List[str] = field(default_factory=list)
    video_url: Optional[str] = None
    virtual_tour_url: Optional[str] = None
    brochure_url: Optional[str] = None

    # Insights
    view_count: Optional[int] = None
    save_count: Optional[int] = None
    neighborhood_population: Optional[int] = None
    neighborhood_avg_price_m2: Optional[float] = None

    # Free text
    features: Dict[str, str] = field(default_factory=dict)
    labels: List[str] = field(default_factory=list)
    open_house_dates: List[str] = field(default_factory=list)

    # Timestamps
    publication_date: Optional[datetime] = None
    sold_date: Optional[datetime] = None
    last_fetched_at: Optional[datetime] = None
    created_at: datetime = field(default_factory=datetime.now)

    def merge_from(self, other: "ListingRecord") -> "ListingRecord":
        """
        Non-destructive merge: copy every non-empty field of ``other``.

        Fields that are empty in ``other`` (None, blank strings, empty
        collections) never clear data already present here. An UNKNOWN status
        never replaces a known one. Feature maps are combined key by key.

        Args:
            other: Newer, possibly partial, record for the same listing

        Returns:
            self, for chaining
        """
        for f in fields(self):
            name = f.name
            if name in ("global_id", "created_at"):
                continue

            new_value = getattr(other, name)
            if _is_empty(new_value):
                continue

            if name == "status" and new_value == ListingStatus.UNKNOWN:
                continue

            if name == "features":
                merged = dict(self.features)
                merged.update({k: v for k, v in new_value.items() if not _is_empty(v)})
                self.features = merged
                continue

            setattr(self, name, new_value)
        return self

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization (empty fields omitted)."""
        result: Dict[str, Any] = {}
        for key, value in self.__dict__.items():
            if _is_empty(value):
                continue
            if isinstance(value, datetime):
                result[key] = value.isoformat()
            elif isinstance(value, ListingStatus):
                result[key] = value.value
            else:
                result[key] = value
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ListingRecord":
        """Create instance from dictionary."""
        data = dict(data)
        for key in _DATETIME_FIELDS:
            if isinstance(data.get(key), str):
                data[key] = datetime.fromisoformat(data[key])

        if isinstance(data.get("status"), str):
            try:
                data["status"] = ListingStatus(data["status"])
            except ValueError:
                data["status"] = ListingStatus.from_token(data["status"])

        valid_fields = {f.name for f in cls.__dataclass_fields__.values()}
        filtered_data = {k: v for k, v in data.items() if k in valid_fields}
        return cls(**filtered_data)


@dataclass
class PriceHistoryEntry:
    """A price observation for one listing."""

    global_id: str
    price: float
    recorded_at: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "global_id": self.global_id,
            "price": self.price,
            "recorded_at": self.recorded_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PriceHistoryEntry":
        recorded_at = data.get("recorded_at")
        if isinstance(recorded_at, str):
            recorded_at = datetime.fromisoformat(recorded_at)
        return cls(
            global_id=str(data["global_id"]),
            price=float(data["price"]),
            recorded_at=recorded_at or datetime.now(),
        )
