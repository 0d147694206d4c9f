"""Context report aggregation: resolve, fan out to all sources, score."""

import asyncio
import logging
from typing import Any, Awaitable, Dict, List, Optional

import httpx

from enrichment.air_quality import LuchtmeetnetAirQualityClient
from enrichment.amenities import OverpassAmenityClient
from enrichment.base import DEFAULT_USER_AGENT, EnrichmentClient
from enrichment.cbs import CbsCrimeStatsClient, CbsDemographicsClient, CbsNeighborhoodStatsClient
from enrichment.location_resolver import PdokLocationResolver
from enrichment.pdok import PdokBuildingClient, PdokSoilClient
from enrichment.scoring import (
    CATEGORY_AMENITIES,
    CATEGORY_DEMOGRAPHICS,
    CATEGORY_ENVIRONMENT,
    CATEGORY_HOUSING,
    CATEGORY_SAFETY,
    CATEGORY_SOCIAL,
    build_amenity_metrics,
    build_crime_metrics,
    build_demographics_metrics,
    build_environment_metrics,
    build_housing_metrics,
    build_social_metrics,
    compute_category_scores,
    compute_composite_score,
)
from models.location import ResolvedLocation
from models.report import ContextReport, ContextReportRequest, SourceAttribution
from utils.address_normalizer import AddressNormalizer
from utils.ttl_cache import TtlCache

logger = logging.getLogger(__name__)

MIN_RADIUS_METERS = 200
MAX_RADIUS_METERS = 5000


class ReportValidationError(ValueError):
    """User-facing validation failure while building a report."""

    def __init__(self, errors: List[str]):
        super().__init__("; ".join(errors))
        self.errors = errors


class ContextReportService:
    """
    Build neighborhood context reports for an address or listing URL.

    All sources share one HTTP client and one TTL cache. Sources are
    queried concurrently and each one may fail on its own: a failed or
    empty source leaves its category empty and adds a warning, it never
    fails the report.
    """

    def __init__(
        self,
        config: Dict[str, Any],
        http_client: Optional[httpx.AsyncClient] = None,
        cache: Optional[TtlCache] = None,
    ):
        """
        Initialize the service and its source clients.

        Args:
            config: Full configuration dictionary from config.json
            http_client: Shared async HTTP client (created when omitted)
            cache: Shared TTL cache (created when omitted)
        """
        self.config = config
        self.enrichment_config = config.get("enrichment", {})
        self._owns_client = http_client is None
        self.http = http_client or httpx.AsyncClient(
            timeout=httpx.Timeout(self.enrichment_config.get("timeout", EnrichmentClient.DEFAULT_TIMEOUT), connect=10.0),
            headers={"User-Agent": DEFAULT_USER_AGENT},
            follow_redirects=True,
        )
        self.cache = cache if cache is not None else TtlCache()

        self.resolver = PdokLocationResolver(config, self.http, self.cache)
        self.cbs_client = CbsNeighborhoodStatsClient(config, self.http, self.cache)
        self.crime_client = CbsCrimeStatsClient(config, self.http, self.cache)
        self.demographics_client = CbsDemographicsClient(config, self.http, self.cache)
        self.amenity_client = OverpassAmenityClient(config, self.http, self.cache)
        self.air_quality_client = LuchtmeetnetAirQualityClient(config, self.http, self.cache)
        self.soil_client = PdokSoilClient(config, self.http, self.cache)
        self.building_client = PdokBuildingClient(config, self.http, self.cache)

    async def close(self) -> None:
        if self._owns_client and not self.http.is_closed:
            await self.http.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    async def resolve_location(self, text: str) -> Optional[ResolvedLocation]:
        return await self.resolver.resolve(text)

    async def build(self, request: ContextReportRequest) -> ContextReport:
        """
        Build the context report for one request.

        Args:
            request: Input text (address or listing URL) and radius

        Returns:
            ContextReport with metrics, category scores and composite score

        Raises:
            ReportValidationError: Empty input or an input that does not resolve
        """
        if not request.input or not request.input.strip():
            raise ReportValidationError(["Input is required."])

        radius = max(MIN_RADIUS_METERS, min(MAX_RADIUS_METERS, request.radius_meters))
        extra_warnings = []
        if radius != request.radius_meters:
            extra_warnings.append(
                f"Radius clamped from {request.radius_meters}m to {radius}m to respect system limits."
            )

        normalized = AddressNormalizer.normalize(request.input).lower()
        cache_key = f"context-report:{normalized}:{radius}"
        hit, cached = self.cache.lookup(cache_key)
        if hit and cached is not None:
            logger.debug(f"Report cache hit for '{normalized}' ({radius}m)")
            return cached.copy_for_request(request.input, extra_warnings)

        location = await self.resolver.resolve(request.input)
        if location is None:
            raise ReportValidationError(["Could not resolve input to a Dutch address."])

        logger.info(f"Building context report for {location.display_address} ({radius}m)")
        cbs, crime, demographics, amenities, air = await asyncio.gather(
            self._try_source("CBS", self.cbs_client.fetch(location)),
            self._try_source("CBS Crime", self.crime_client.fetch(location)),
            self._try_source("CBS Demographics", self.demographics_client.fetch(location)),
            self._try_source("Overpass", self.amenity_client.fetch(location, radius)),
            self._try_source("Luchtmeetnet", self.air_quality_client.fetch(location)),
        )

        warnings: List[str] = []
        report = ContextReport(
            location=location,
            social_metrics=build_social_metrics(cbs, warnings),
            crime_metrics=build_crime_metrics(crime, warnings),
            demographics_metrics=build_demographics_metrics(demographics, warnings),
            housing_metrics=build_housing_metrics(cbs),
            amenity_metrics=build_amenity_metrics(amenities, warnings),
            environment_metrics=build_environment_metrics(air, warnings),
            warnings=warnings,
        )
        report.category_scores = compute_category_scores({
            CATEGORY_SOCIAL: report.social_metrics,
            CATEGORY_SAFETY: report.crime_metrics,
            CATEGORY_DEMOGRAPHICS: report.demographics_metrics,
            CATEGORY_HOUSING: report.housing_metrics,
            CATEGORY_AMENITIES: report.amenity_metrics,
            CATEGORY_ENVIRONMENT: report.environment_metrics,
        })
        report.composite_score = compute_composite_score(report.category_scores)
        report.sources = self._build_sources(
            cbs_present=any(item is not None for item in (cbs, crime, demographics)),
            amenities_present=amenities is not None,
            air_present=air is not None,
        )

        self.cache.set(
            cache_key, report, float(self.enrichment_config.get("report_cache_minutes", 60)) * 60
        )
        return report.copy_for_request(request.input, extra_warnings)

    async def build_property_extras(self, location: ResolvedLocation) -> Dict[str, Any]:
        """
        Fetch the per-building extras (foundation risk, solar potential).

        Both lookups need the national-grid point; failures yield None.
        """
        foundation, solar = await asyncio.gather(
            self._try_source("PDOK Soil", self.soil_client.fetch(location)),
            self._try_source("PDOK Building", self.building_client.fetch(location)),
        )
        return {"foundation_risk": foundation, "solar_potential": solar}

    @staticmethod
    async def _try_source(name: str, call: Awaitable[Any]) -> Any:
        try:
            return await call
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Context source {name} failed; report will continue with partial data: {e}")
            return None

    @staticmethod
    def _build_sources(cbs_present: bool, amenities_present: bool, air_present: bool) -> List[SourceAttribution]:
        sources = [SourceAttribution("PDOK Locatieserver", "https://api.pdok.nl", "Publiek")]
        if cbs_present:
            sources.append(SourceAttribution("CBS StatLine", "https://opendata.cbs.nl", "CC BY 4.0"))
        if amenities_present:
            sources.append(SourceAttribution("OpenStreetMap Overpass", "https://www.openstreetmap.org", "ODbL"))
        if air_present:
            sources.append(SourceAttribution("Luchtmeetnet", "https://www.luchtmeetnet.nl", "Open Data"))
        return sources
