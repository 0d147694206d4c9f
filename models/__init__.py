"""Data models for Funda listings and location context reports."""

from .constants import ListingStatus
from .cursor import RegionCursor
from .funda import (
    ContactBlock,
    ContactDetails,
    FeatureItem,
    FeatureSection,
    FiberAvailability,
    ListingSummary,
    RichListingPayload,
    SummaryDetails,
)
from .listing import ListingRecord, PriceHistoryEntry
from .location import ResolvedLocation
from .report import ContextMetric, ContextReport, ContextReportRequest, SourceAttribution
from .stats import (
    AirQualitySnapshot,
    AmenityStats,
    CrimeStats,
    Demographics,
    FoundationRisk,
    NeighborhoodStats,
    SolarPotential,
    WozValuation,
)

__all__ = [
    "ListingStatus",
    "RegionCursor",
    "ListingSummary",
    "SummaryDetails",
    "ContactBlock",
    "ContactDetails",
    "FiberAvailability",
    "FeatureItem",
    "FeatureSection",
    "RichListingPayload",
    "ListingRecord",
    "PriceHistoryEntry",
    "ResolvedLocation",
    "ContextMetric",
    "ContextReport",
    "ContextReportRequest",
    "SourceAttribution",
    "NeighborhoodStats",
    "CrimeStats",
    "Demographics",
    "AmenityStats",
    "AirQualitySnapshot",
    "FoundationRisk",
    "SolarPotential",
    "WozValuation",
]
