"""PDOK WFS point lookups: soil classification and building footprint."""

import asyncio
import logging
from typing import Any, Dict, Optional, Tuple

from enrichment.base import EnrichmentClient, get_float, get_int, get_str
from models.location import ResolvedLocation
from models.stats import FoundationRisk, SolarPotential

logger = logging.getLogger(__name__)

WFS_CACHE_TTL_SECONDS = 24 * 3600

SOIL_WFS_URL = (
    "https://service.pdok.nl/bzk/bro-bodemkaart/wfs/v1_0"
    "?service=WFS&version=2.0.0&request=GetFeature&typeName=bodemkaart"
    "&outputFormat=application/json&cql_filter=INTERSECTS(geometrie,POINT({x}%20{y}))"
)
BUILDING_WFS_URL = (
    "https://service.pdok.nl/lv/bag/wfs/v2_0"
    "?service=WFS&version=2.0.0&request=GetFeature&typeName=bag:pand"
    "&outputFormat=application/json&cql_filter=INTERSECTS(geometrie,POINT({x}%20{y}))"
)

SOIL_RISKS = {
    "veen": ("High", "Peat soil carries a high risk of subsidence and foundation issues."),
    "klei": ("Medium", "Clay soil can be stable but may compress over time."),
    "zand": ("Low", "Sand is generally stable and good for foundations."),
    "leem": ("Low", "Loam is generally stable."),
}

# Solar heuristic
USABLE_ROOF_FRACTION = 0.4
M2_PER_PANEL = 2.0
KWH_PER_PANEL = 300.0
HIGH_POTENTIAL_KWH = 3500
MEDIUM_POTENTIAL_KWH = 2000
OLD_BUILDING_YEAR = 1930

# Marks "no feature at this point" apart from a failed request
NO_FEATURE: Dict[str, Any] = {}


class _WfsPointClient(EnrichmentClient):
    """Fetch the first WFS feature intersecting the location's RD point."""

    SOURCE_NAME = "PDOK"
    DESCRIPTION = "PDOK lookup"

    async def _first_feature(self, url_template: str, location: ResolvedLocation) -> Optional[Dict[str, Any]]:
        """
        Run the intersect query.

        Returns:
            Properties of the first feature, ``NO_FEATURE`` when nothing
            intersects, or None when the request failed
        """
        response = await self.http.get(url_template.format(x=location.rd_x, y=location.rd_y))
        if not response.is_success:
            logger.warning(f"{self.DESCRIPTION} failed with status {response.status_code}")
            return None

        data = response.json()
        features = data.get("features") if isinstance(data, dict) else None
        if not isinstance(features, list) or not features:
            return NO_FEATURE

        first = features[0] if isinstance(features[0], dict) else {}
        return first.get("properties") or {}


class PdokSoilClient(_WfsPointClient):
    """Foundation risk from the BRO soil map main group."""

    DESCRIPTION = "PDOK soil lookup"

    async def fetch(self, location: ResolvedLocation) -> Optional[FoundationRisk]:
        if location.rd_x is None or location.rd_y is None:
            return None

        cache_key = f"soil:{location.rd_x}:{location.rd_y}"
        hit, cached = self.cache.lookup(cache_key)
        if hit:
            return cached

        try:
            properties = await self._first_feature(SOIL_WFS_URL, location)
            if properties is None:
                return None
            if properties is NO_FEATURE:
                self.cache.set(cache_key, None, WFS_CACHE_TTL_SECONDS)
                return None

            soil_group = get_str(properties, "bodemhoofdgroep")
            if not soil_group:
                return None

            risk, description = map_soil_to_risk(soil_group)
            result = FoundationRisk(risk_level=risk, soil_type=soil_group, description=description)
            self.cache.set(cache_key, result, WFS_CACHE_TTL_SECONDS)
            return result

        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Error fetching soil data from PDOK: {e}")
            return None


def map_soil_to_risk(soil_group: str) -> Tuple[str, str]:
    """Map a soil main group to (risk level, description)."""
    return SOIL_RISKS.get(soil_group.lower(), ("Unknown", f"Soil type: {soil_group}"))


class PdokBuildingClient(_WfsPointClient):
    """Rooftop solar estimate from the BAG building footprint."""

    DESCRIPTION = "PDOK building lookup"

    async def fetch(self, location: ResolvedLocation) -> Optional[SolarPotential]:
        if location.rd_x is None or location.rd_y is None:
            return None

        cache_key = f"building:{location.rd_x}:{location.rd_y}"
        hit, cached = self.cache.lookup(cache_key)
        if hit:
            return cached

        try:
            properties = await self._first_feature(BUILDING_WFS_URL, location)
            if properties is None:
                return None
            if properties is NO_FEATURE:
                self.cache.set(cache_key, None, WFS_CACHE_TTL_SECONDS)
                return None

            result = estimate_solar_potential(
                get_float(properties, "oppervlakte"), get_int(properties, "bouwjaar")
            )
            if result is not None:
                self.cache.set(cache_key, result, WFS_CACHE_TTL_SECONDS)
            return result

        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Error fetching building data from PDOK: {e}")
            return None


def estimate_solar_potential(area_m2: Optional[float], year_built: Optional[int]) -> Optional[SolarPotential]:
    """
    Deterministic rooftop solar heuristic.

    40% of the footprint is usable roof, one panel per 2 m² and 300 kWh
    per panel per year. Above 3500 kWh is High, above 2000 kWh Medium,
    otherwise Low. High is downgraded to Medium for buildings from before
    1930.

    Args:
        area_m2: Building footprint area
        year_built: Construction year, if known

    Returns:
        SolarPotential, or None when the area is missing or not positive
    """
    if area_m2 is None or area_m2 <= 0:
        return None

    usable_area = area_m2 * USABLE_ROOF_FRACTION
    panels = int(usable_area / M2_PER_PANEL)
    kwh = panels * KWH_PER_PANEL

    if kwh > HIGH_POTENTIAL_KWH:
        potential = "High"
    elif kwh > MEDIUM_POTENTIAL_KWH:
        potential = "Medium"
    else:
        potential = "Low"

    if year_built is not None and year_built < OLD_BUILDING_YEAR and potential == "High":
        potential = "Medium"

    return SolarPotential(
        potential=potential,
        roof_area_m2=area_m2,
        installable_panels=panels,
        estimated_generation_kwh=round(kwh),
    )
