"""Count OpenStreetMap amenities around a location through the Overpass API."""

import logging
from typing import Any, Dict, Optional, Tuple

from enrichment.base import EnrichmentClient
from models.location import ResolvedLocation
from models.stats import AmenityStats
from utils.geo import haversine_meters

logger = logging.getLogger(__name__)

AMENITY_BUCKETS = 6

# Overpass QL filters, one per tag rule
AMENITY_FILTERS = (
    "[amenity=school]",
    "[shop=supermarket]",
    "[leisure=park]",
    '[amenity~"hospital|clinic|doctors|pharmacy"]',
    "[highway=bus_stop]",
    "[railway=station]",
    "[amenity=charging_station]",
)

HEALTHCARE_AMENITIES = {"hospital", "clinic", "doctors", "pharmacy"}


def build_overpass_query(latitude: float, longitude: float, radius_meters: int) -> str:
    around = f"(around:{radius_meters},{latitude},{longitude})"
    parts = "".join(f"nwr{around}{tag_filter};" for tag_filter in AMENITY_FILTERS)
    return f"[out:json][timeout:25];({parts});out center tags;"


def categorize(tags: Dict[str, Any]) -> Optional[str]:
    """Map an element's tags to one of the amenity buckets, or None."""
    amenity = tags.get("amenity")
    if amenity == "school":
        return "school"
    if amenity in HEALTHCARE_AMENITIES:
        return "healthcare"
    if amenity == "charging_station":
        return "charging_station"
    if tags.get("shop") == "supermarket":
        return "supermarket"
    if tags.get("leisure") == "park":
        return "park"
    if tags.get("highway") == "bus_stop" or tags.get("railway") == "station":
        return "transit"
    return None


def element_coordinates(element: Dict[str, Any]) -> Optional[Tuple[float, float]]:
    """Nodes carry lat/lon directly; ways and relations carry a center."""
    lat, lon = element.get("lat"), element.get("lon")
    if lat is None or lon is None:
        center = element.get("center") or {}
        lat, lon = center.get("lat"), center.get("lon")
    if lat is None or lon is None:
        return None
    try:
        return float(lat), float(lon)
    except (TypeError, ValueError):
        return None


class OverpassAmenityClient(EnrichmentClient):
    """Amenity counts, nearest distance and diversity inside a radius."""

    SOURCE_NAME = "OpenStreetMap"
    DEFAULT_BASE_URL = "https://overpass-api.de"

    async def fetch(self, location: ResolvedLocation, radius_meters: int) -> Optional[AmenityStats]:
        """
        Query Overpass for amenities around ``location``.

        Args:
            location: Resolved location (WGS84 coordinates are used)
            radius_meters: Search radius

        Returns:
            AmenityStats, or None when the response had no element list

        Raises:
            httpx.HTTPStatusError: When Overpass answers with a non-success status
        """
        cache_key = f"overpass:{location.latitude:.5f}:{location.longitude:.5f}:{radius_meters}"
        hit, cached = self.cache.lookup(cache_key)
        if hit and cached is not None:
            return cached

        base = self.base_url("overpass_base_url", self.DEFAULT_BASE_URL)
        query = build_overpass_query(location.latitude, location.longitude, radius_meters)
        response = await self.http.post(f"{base}/api/interpreter", data={"data": query})
        response.raise_for_status()

        data = response.json()
        elements = data.get("elements") if isinstance(data, dict) else None
        if not isinstance(elements, list):
            logger.warning("Overpass response did not contain an element list")
            return None

        stats = self._summarize(elements, location)
        self.cache.set(cache_key, stats, self.ttl_minutes("amenities_cache_minutes", 60))
        logger.debug(f"Overpass returned {len(elements)} elements, {stats.total_count} categorized")
        return stats

    @staticmethod
    def _summarize(elements, location: ResolvedLocation) -> AmenityStats:
        counts = {
            "school": 0,
            "supermarket": 0,
            "park": 0,
            "healthcare": 0,
            "transit": 0,
            "charging_station": 0,
        }
        nearest = None

        for element in elements:
            if not isinstance(element, dict):
                continue
            bucket = categorize(element.get("tags") or {})
            if bucket is None:
                continue
            counts[bucket] += 1

            coordinates = element_coordinates(element)
            if coordinates is not None:
                distance = haversine_meters(
                    location.latitude, location.longitude, coordinates[0], coordinates[1]
                )
                if nearest is None or distance < nearest:
                    nearest = distance

        populated = sum(1 for count in counts.values() if count > 0)
        return AmenityStats(
            school_count=counts["school"],
            supermarket_count=counts["supermarket"],
            park_count=counts["park"],
            healthcare_count=counts["healthcare"],
            transit_stop_count=counts["transit"],
            charging_station_count=counts["charging_station"],
            nearest_amenity_distance_meters=nearest,
            diversity_score=populated / AMENITY_BUCKETS * 100,
        )
