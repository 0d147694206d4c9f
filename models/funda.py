"""Payload shapes returned by the Funda acquisition clients."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

# Feature categories inside the hydration payload, in flattening order
FEATURE_CATEGORIES = ("indeling", "afmetingen", "energie", "bouw")


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_list(value: Any) -> List[Any]:
    return value if isinstance(value, list) else []


def _as_str(value: Any) -> Optional[str]:
    if value is None or isinstance(value, (dict, list)):
        return None
    if isinstance(value, bool):
        return str(value).lower()
    return str(value)


def _as_int(value: Any) -> Optional[int]:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        return int(value)
    if isinstance(value, str):
        try:
            return int(float(value.strip()))
        except ValueError:
            return None
    return None


def _as_float(value: Any) -> Optional[float]:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            return None
    return None


def _as_bool(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.lower() in ("true", "false"):
        return value.lower() == "true"
    return None


@dataclass
class ListingSummary:
    """One search hit, identical in shape for both acquisition strategies."""

    global_id: str
    price: Optional[str] = None
    listing_url: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    image_url: Optional[str] = None
    agent_name: Optional[str] = None
    labels: List[str] = field(default_factory=list)
    is_project: bool = False

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Optional["ListingSummary"]:
        """
        Build from a search API item.

        Accepts both the API shape (``globalId``, ``listingUrl``,
        ``address.listingAddress``) and the looser shape found in inlined page
        JSON (``id``, ``url``, ``address.street``).

        Returns:
            ListingSummary, or None when the item carries no id
        """
        global_id = _as_str(data.get("globalId")) or _as_str(data.get("id"))
        if not global_id:
            return None

        address = _as_dict(data.get("address"))
        image = _as_dict(data.get("image"))
        labels = []
        for label in _as_list(data.get("labels")):
            text = label.get("text") if isinstance(label, dict) else label
            if isinstance(text, str) and text.strip():
                labels.append(text.strip())

        return cls(
            global_id=global_id,
            price=_as_str(data.get("price")),
            listing_url=_as_str(data.get("listingUrl")) or _as_str(data.get("url")),
            address=_as_str(address.get("listingAddress")) or _as_str(address.get("street")),
            city=_as_str(address.get("city")),
            image_url=_as_str(image.get("default")),
            agent_name=_as_str(data.get("agentName")),
            labels=labels,
            is_project=bool(data.get("isProject")),
        )


@dataclass
class SummaryDetails:
    """Listing summary endpoint response."""

    global_id: Optional[str] = None
    tiny_id: Optional[str] = None
    selling_price: Optional[str] = None
    address_title: Optional[str] = None
    address_subtitle: Optional[str] = None
    city: Optional[str] = None
    postal_code: Optional[str] = None
    living_area: Optional[str] = None
    bedrooms: Optional[int] = None
    energy_label: Optional[str] = None
    broker_name: Optional[str] = None
    publication_date: Optional[str] = None
    is_sold_or_rented: Optional[bool] = None
    labels: List[str] = field(default_factory=list)
    tracking_status: Optional[str] = None
    tracking_asking_price: Optional[str] = None
    tracking_type: Optional[str] = None
    tracking_postal_code: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SummaryDetails":
        identifiers = _as_dict(data.get("identifiers"))
        price = _as_dict(data.get("price"))
        address = _as_dict(data.get("address"))
        fast_view = _as_dict(data.get("fastView"))
        tracking = _as_dict(_as_dict(data.get("tracking")).get("values"))
        brokers = _as_list(data.get("brokers"))
        broker_name = None
        if brokers and isinstance(brokers[0], dict):
            broker_name = _as_str(brokers[0].get("name"))

        labels = []
        for label in _as_list(data.get("labels")):
            if isinstance(label, dict):
                text = _as_str(label.get("text"))
                if text and text.strip():
                    labels.append(text.strip())

        return cls(
            global_id=_as_str(identifiers.get("globalId")),
            tiny_id=_as_str(identifiers.get("tinyId")),
            selling_price=_as_str(price.get("sellingPrice")),
            address_title=_as_str(address.get("title")),
            address_subtitle=_as_str(address.get("subTitle")),
            city=_as_str(address.get("city")),
            postal_code=_as_str(address.get("postCode")),
            living_area=_as_str(fast_view.get("livingArea")),
            bedrooms=_as_int(fast_view.get("numberOfBedrooms")),
            energy_label=_as_str(fast_view.get("energyLabel")),
            broker_name=broker_name,
            publication_date=_as_str(data.get("publicationDate")),
            is_sold_or_rented=_as_bool(data.get("isSoldOrRented")),
            labels=labels,
            tracking_status=_as_str(tracking.get("listing_status")),
            tracking_asking_price=_as_str(tracking.get("listing_askingprice")),
            tracking_type=_as_str(tracking.get("listing_type")),
            tracking_postal_code=_as_str(tracking.get("listing_postal_code")),
        )


@dataclass
class ContactBlock:
    id: Optional[str] = None
    display_name: Optional[str] = None
    logo_url: Optional[str] = None
    phone_number: Optional[str] = None
    association_code: Optional[str] = None


@dataclass
class ContactDetails:
    """Broker contact blocks; the first block is the primary broker."""

    blocks: List[ContactBlock] = field(default_factory=list)

    @property
    def primary(self) -> Optional[ContactBlock]:
        return self.blocks[0] if self.blocks else None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ContactDetails":
        blocks = []
        for item in _as_list(data.get("contactBlockDetails")):
            if not isinstance(item, dict):
                continue
            blocks.append(
                ContactBlock(
                    id=_as_str(item.get("id")),
                    display_name=_as_str(item.get("displayName")),
                    logo_url=_as_str(item.get("logoUrl")),
                    phone_number=_as_str(item.get("phoneNumber")),
                    association_code=_as_str(item.get("associationCode")),
                )
            )
        return cls(blocks=blocks)


@dataclass
class FiberAvailability:
    postal_code: Optional[str] = None
    availability: Optional[bool] = None
    message: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FiberAvailability":
        return cls(
            postal_code=_as_str(data.get("postalCode")),
            availability=_as_bool(data.get("availability")),
            message=_as_str(data.get("message")),
        )


@dataclass
class FeatureItem:
    """Label/value node of the feature tree; a node without value groups its children."""

    label: Optional[str] = None
    value: Optional[str] = None
    children: List["FeatureItem"] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FeatureItem":
        return cls(
            label=_as_str(data.get("Label")),
            value=_as_str(data.get("Value")),
            children=[
                cls.from_dict(child)
                for child in _as_list(data.get("KenmerkenList"))
                if isinstance(child, dict)
            ],
        )


@dataclass
class FeatureSection:
    title: Optional[str] = None
    items: List[FeatureItem] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FeatureSection":
        return cls(
            title=_as_str(data.get("Title")),
            items=[
                FeatureItem.from_dict(item)
                for item in _as_list(data.get("KenmerkenList"))
                if isinstance(item, dict)
            ],
        )


@dataclass
class RichListingPayload:
    """Rich listing data found in the detail page's hydration state."""

    features: Dict[str, FeatureSection] = field(default_factory=dict)
    media_ids: List[str] = field(default_factory=list)
    description: Optional[str] = None
    living_area_m2: Optional[int] = None
    plot_area_m2: Optional[int] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    inhabitants: Optional[int] = None
    avg_price_per_m2: Optional[float] = None
    views: Optional[int] = None
    saves: Optional[int] = None
    video_urls: List[str] = field(default_factory=list)
    virtual_tour_urls: List[str] = field(default_factory=list)
    floor_plans: List[Dict[str, Optional[str]]] = field(default_factory=list)
    brochure_url: Optional[str] = None
    open_house_dates: List[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RichListingPayload":
        """Build from the hydration object that carries features/media/description."""
        features_raw = _as_dict(data.get("features"))
        features = {
            key: FeatureSection.from_dict(features_raw[key])
            for key in FEATURE_CATEGORIES
            if isinstance(features_raw.get(key), dict)
        }

        media_ids = []
        for item in _as_list(_as_dict(data.get("media")).get("items")):
            if isinstance(item, dict):
                media_id = _as_str(item.get("id"))
                if media_id:
                    media_ids.append(media_id)

        description = data.get("description")
        if isinstance(description, dict):
            description = _as_str(description.get("content"))
        else:
            description = _as_str(description)

        property_spec = _as_dict(_as_dict(data.get("objectType")).get("propertyspecification"))
        coordinates = _as_dict(data.get("coordinates"))
        local = _as_dict(data.get("localInsights"))
        insights = _as_dict(data.get("objectInsights"))

        floor_plans = [
            {"id": _as_str(item.get("id")), "url": _as_str(item.get("url"))}
            for item in _as_list(data.get("floorPlan"))
            if isinstance(item, dict)
        ]
        open_house = [
            _as_str(item.get("date"))
            for item in _as_list(data.get("openHouseDates"))
            if isinstance(item, dict) and item.get("date")
        ]

        return cls(
            features=features,
            media_ids=media_ids,
            description=description,
            living_area_m2=_as_int(property_spec.get("selectedArea")),
            plot_area_m2=_as_int(property_spec.get("selectedPlotArea")),
            latitude=_as_float(coordinates.get("lat")),
            longitude=_as_float(coordinates.get("lng")),
            inhabitants=_as_int(local.get("inhabitants")),
            avg_price_per_m2=_as_float(local.get("avgPricePerM2")),
            views=_as_int(insights.get("views")),
            saves=_as_int(insights.get("saves")),
            video_urls=[
                url for url in (
                    _as_str(v.get("url")) for v in _as_list(data.get("videos")) if isinstance(v, dict)
                ) if url
            ],
            virtual_tour_urls=[
                url for url in (
                    _as_str(p.get("url")) for p in _as_list(data.get("photos360")) if isinstance(p, dict)
                ) if url
            ],
            floor_plans=floor_plans,
            brochure_url=_as_str(data.get("brochure")),
            open_house_dates=open_house,
        )
