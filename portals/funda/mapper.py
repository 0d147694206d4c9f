"""Map Funda payloads onto ListingRecord with non-destructive merges."""

import logging
from datetime import datetime
from typing import Dict, Iterable, List, Optional

from models.constants import (
    DEFAULT_PROPERTY_TYPE,
    FUNDA_BASE_URL,
    FUNDA_IMAGE_URL_TEMPLATE,
    PROJECT_PROPERTY_TYPE,
    UNKNOWN_ADDRESS,
    ListingStatus,
)
from models.funda import (
    FEATURE_CATEGORIES,
    ContactDetails,
    FeatureItem,
    FiberAvailability,
    ListingSummary,
    RichListingPayload,
    SummaryDetails,
)
from models.listing import ListingRecord
from portals.funda.value_parser import FundaValueParser

logger = logging.getLogger(__name__)


class FeatureMap(dict):
    """Label -> value mapping with case-insensitive lookups."""

    def __init__(self):
        super().__init__()
        self._keys: Dict[str, str] = {}

    def try_add(self, label: str, value: str) -> None:
        """Add a pair unless the label (ignoring case) is already present."""
        lowered = label.lower()
        if lowered in self._keys:
            return
        self._keys[lowered] = label
        self[label] = value

    def lookup(self, label: str) -> Optional[str]:
        key = self._keys.get(label.lower())
        return self[key] if key is not None else None

    def has(self, label: str) -> bool:
        return label.lower() in self._keys


def flatten_features(items: Iterable[FeatureItem], target: Optional[FeatureMap] = None) -> FeatureMap:
    """
    Flatten a feature tree into one label -> value map.

    Every node is visited. A labelled node with a value is recorded (the
    first occurrence of a label wins); children are walked whether or not
    the parent had a value, so pure grouping nodes never hide their leaves.

    Args:
        items: Feature nodes of one category
        target: Map to extend (a new one is created when omitted)

    Returns:
        The filled map
    """
    feature_map = target if target is not None else FeatureMap()
    for item in items:
        label = (item.label or "").strip()
        value = (item.value or "").strip()
        if label and value:
            feature_map.try_add(label, value)
        if item.children:
            flatten_features(item.children, feature_map)
    return feature_map


class FundaMapper:
    """Build and enrich listing records from the acquisition payloads."""

    @staticmethod
    def map_summary_to_listing(summary: ListingSummary) -> ListingRecord:
        """
        Build a baseline record from a search hit.

        Args:
            summary: Listing summary from either acquisition strategy

        Returns:
            New ListingRecord (status left UNKNOWN for the caller to default)
        """
        url = summary.listing_url
        if url and not url.startswith("http"):
            url = f"{FUNDA_BASE_URL}/{url.lstrip('/')}"

        return ListingRecord(
            global_id=summary.global_id,
            url=url,
            address=summary.address or summary.city or UNKNOWN_ADDRESS,
            city=summary.city,
            price=FundaValueParser.parse_price(summary.price),
            image_url=summary.image_url,
            agent_name=summary.agent_name,
            property_type=PROJECT_PROPERTY_TYPE if summary.is_project else DEFAULT_PROPERTY_TYPE,
            labels=list(summary.labels),
            last_fetched_at=datetime.now(),
        )

    @classmethod
    def merge_summary(cls, record: ListingRecord, details: SummaryDetails) -> ListingRecord:
        """Merge the listing summary endpoint into ``record``."""
        update = ListingRecord(global_id=record.global_id)
        update.address = details.address_title
        update.city = details.city
        update.postal_code = details.postal_code
        update.price = FundaValueParser.parse_price(details.selling_price)
        update.living_area_m2 = FundaValueParser.parse_int(details.living_area)
        update.bedrooms = details.bedrooms
        update.energy_label = details.energy_label
        update.agent_name = details.broker_name
        update.publication_date = cls._parse_datetime(details.publication_date)
        update.is_sold_or_rented = details.is_sold_or_rented
        update.labels = list(details.labels)
        update.status = cls.map_status(
            details.tracking_status, details.is_sold_or_rented, record.url
        )
        update.last_fetched_at = datetime.now()
        return record.merge_from(update)

    @classmethod
    def merge_rich_payload(cls, record: ListingRecord, payload: RichListingPayload) -> ListingRecord:
        """Merge the hydration payload (features, media, insights) into ``record``."""
        update = ListingRecord(global_id=record.global_id)
        update.description = payload.description
        update.living_area_m2 = payload.living_area_m2 or None
        update.plot_area_m2 = payload.plot_area_m2 or None

        feature_map = FeatureMap()
        for category in FEATURE_CATEGORIES:
            section = payload.features.get(category)
            if section:
                flatten_features(section.items, feature_map)

        if feature_map:
            update.features = dict(feature_map)
            cls._apply_feature_fields(update, feature_map)

        update.image_urls = cls._image_urls(payload.media_ids)
        if update.image_urls:
            update.image_url = update.image_urls[0]

        update.latitude = payload.latitude
        update.longitude = payload.longitude
        update.video_url = payload.video_urls[0] if payload.video_urls else None
        update.virtual_tour_url = payload.virtual_tour_urls[0] if payload.virtual_tour_urls else None
        update.floor_plan_urls = [
            plan["url"] or FUNDA_IMAGE_URL_TEMPLATE.format(media_id=plan["id"])
            for plan in payload.floor_plans
            if plan.get("url") or plan.get("id")
        ]
        update.brochure_url = payload.brochure_url
        update.view_count = payload.views
        update.save_count = payload.saves
        update.neighborhood_population = payload.inhabitants
        update.neighborhood_avg_price_m2 = payload.avg_price_per_m2
        update.open_house_dates = list(payload.open_house_dates)
        return record.merge_from(update)

    @staticmethod
    def merge_contact_details(record: ListingRecord, contacts: ContactDetails) -> ListingRecord:
        """Merge the primary broker block; its display name overrides agent_name."""
        primary = contacts.primary
        if primary is None:
            return record

        update = ListingRecord(global_id=record.global_id)
        update.agent_name = primary.display_name
        update.broker_phone = primary.phone_number
        update.broker_logo_url = primary.logo_url
        update.broker_association_code = primary.association_code
        return record.merge_from(update)

    @staticmethod
    def merge_fiber_availability(record: ListingRecord, fiber: FiberAvailability) -> ListingRecord:
        update = ListingRecord(global_id=record.global_id)
        update.fiber_available = fiber.availability
        return record.merge_from(update)

    @staticmethod
    def map_status(
        token: Optional[str], is_sold_or_rented: Optional[bool], url: Optional[str] = None
    ) -> ListingStatus:
        """
        Normalize the source status.

        A recognized status token wins. Without one, the sold-or-rented flag
        maps to RENTED for rental URLs and SOLD otherwise.
        """
        status = ListingStatus.from_token(token)
        if status != ListingStatus.UNKNOWN:
            return status
        if is_sold_or_rented:
            if url and "/huur/" in url.lower():
                return ListingStatus.RENTED
            return ListingStatus.SOLD
        return ListingStatus.UNKNOWN

    @staticmethod
    def _apply_feature_fields(update: ListingRecord, features: FeatureMap) -> None:
        parse_int = FundaValueParser.parse_int

        if update.living_area_m2 is None:
            update.living_area_m2 = parse_int(features.lookup("Wonen"))
        if update.plot_area_m2 is None:
            update.plot_area_m2 = parse_int(features.lookup("Perceel"))

        update.balcony_m2 = parse_int(features.lookup("Gebouwgebonden buitenruimte"))
        update.storage_m2 = parse_int(features.lookup("Externe bergruimte"))
        update.volume_m3 = parse_int(features.lookup("Inhoud"))

        garden_sizes = [
            parse_int(value)
            for label, value in features.items()
            if "tuin" in label.lower() and "m²" in value
        ]
        garden_sizes = [size for size in garden_sizes if size]
        if garden_sizes:
            update.garden_m2 = max(garden_sizes)

        update.bedrooms = FundaValueParser.parse_bedrooms(features.lookup("Aantal kamers"))
        update.bathrooms = parse_int(features.lookup("Aantal badkamers"))

        energy_label = features.lookup("Energielabel")
        update.energy_label = energy_label.strip() if energy_label else None
        update.insulation_type = features.lookup("Isolatie")
        update.heating_type = features.lookup("Verwarming")
        update.year_built = parse_int(features.lookup("Bouwjaar"))
        update.ownership_type = features.lookup("Eigendomssituatie")
        update.vve_contribution = FundaValueParser.parse_price(features.lookup("Bijdrage VvE"))

        for label, value in features.items():
            lowered = label.lower()
            if ("tuin" in lowered or "buitenruimte" in lowered) and value.strip():
                update.garden_orientation = value
            if lowered == "ligging" and features.has("Tuin"):
                update.garden_orientation = value
            if "garage" in lowered:
                update.has_garage = True
            if "parkeerfaciliteiten" in lowered:
                update.parking_type = value

        update.cadastral_designation = FundaMapper._cadastral_designation(features)

        update.roof_type = features.lookup("Daktype") or features.lookup("Dak")
        update.number_of_floors = parse_int(features.lookup("Aantal woonlagen"))
        update.construction_period = features.lookup("Bouwperiode")
        brand, year = FundaValueParser.parse_boiler(features.lookup("CV-ketel"))
        update.cv_boiler_brand = brand
        update.cv_boiler_year = year

    @staticmethod
    def _cadastral_designation(features: FeatureMap) -> Optional[str]:
        # Cadastral parcels show up as a label like "AMSTERDAM K 1234" with a placeholder value
        for label, value in features.items():
            if (
                any(ch.isupper() for ch in label)
                and any(ch.isdigit() for ch in label)
                and len(label) > 5
                and "kamers" not in label
                and "bouw" not in label
                and (not value or value == "Title")
            ):
                return label
        return None

    @staticmethod
    def _image_urls(media_ids: List[str]) -> List[str]:
        urls = []
        for media_id in media_ids:
            if media_id.startswith("http"):
                urls.append(media_id)
            else:
                urls.append(FUNDA_IMAGE_URL_TEMPLATE.format(media_id=media_id))
        return urls

    @staticmethod
    def _parse_datetime(value: Optional[str]) -> Optional[datetime]:
        if not value:
            return None
        try:
            return datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            logger.debug(f"Unparseable date: {value}")
            return None
