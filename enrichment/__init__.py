"""
Public-data enrichment: location resolution, per-source clients and the context report.
"""

from .air_quality import LuchtmeetnetAirQualityClient
from .amenities import OverpassAmenityClient
from .base import EnrichmentClient, candidate_region_codes
from .cbs import CbsCrimeStatsClient, CbsDemographicsClient, CbsNeighborhoodStatsClient
from .location_resolver import PdokLocationResolver
from .pdok import PdokBuildingClient, PdokSoilClient
from .report import ContextReportService, ReportValidationError
from .woz import WozValuationClient

__all__ = [
    "EnrichmentClient",
    "candidate_region_codes",
    "PdokLocationResolver",
    "CbsNeighborhoodStatsClient",
    "CbsCrimeStatsClient",
    "CbsDemographicsClient",
    "OverpassAmenityClient",
    "LuchtmeetnetAirQualityClient",
    "PdokSoilClient",
    "PdokBuildingClient",
    "WozValuationClient",
    "ContextReportService",
    "ReportValidationError",
]
