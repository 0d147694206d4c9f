"""Context report data model."""

from dataclasses import asdict, dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from .location import ResolvedLocation

DEFAULT_RADIUS_METERS = 1000


@dataclass(frozen=True)
class ContextReportRequest:
    input: str
    radius_meters: int = DEFAULT_RADIUS_METERS


@dataclass(frozen=True)
class ContextMetric:
    """One indicator with its raw value and optional 0-100 score."""

    key: str
    label: str
    value: Optional[float]
    unit: Optional[str]
    score: Optional[float]
    source: str
    note: Optional[str] = None


@dataclass(frozen=True)
class SourceAttribution:
    source: str
    url: str
    license: str
    retrieved_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass
class ContextReport:
    """Per-location aggregate of all enrichment sources."""

    location: ResolvedLocation
    social_metrics: List[ContextMetric] = field(default_factory=list)
    crime_metrics: List[ContextMetric] = field(default_factory=list)
    demographics_metrics: List[ContextMetric] = field(default_factory=list)
    housing_metrics: List[ContextMetric] = field(default_factory=list)
    amenity_metrics: List[ContextMetric] = field(default_factory=list)
    environment_metrics: List[ContextMetric] = field(default_factory=list)
    composite_score: float = 0.0
    category_scores: Dict[str, float] = field(default_factory=dict)
    sources: List[SourceAttribution] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def safety_metrics(self) -> List[ContextMetric]:
        return self.crime_metrics

    def copy_for_request(self, query: str, extra_warnings: List[str]) -> "ContextReport":
        """
        Copy with the caller's input and request-specific warnings appended.

        Containers are copied so callers can modify the result without
        touching the cached report. Metrics and sources are frozen and shared.
        """
        return replace(
            self,
            location=self.location.with_query(query),
            social_metrics=list(self.social_metrics),
            crime_metrics=list(self.crime_metrics),
            demographics_metrics=list(self.demographics_metrics),
            housing_metrics=list(self.housing_metrics),
            amenity_metrics=list(self.amenity_metrics),
            environment_metrics=list(self.environment_metrics),
            category_scores=dict(self.category_scores),
            sources=list(self.sources),
            warnings=list(self.warnings) + list(extra_warnings),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a plain dictionary (datetimes as ISO strings)."""
        data = asdict(self)
        for source in data["sources"]:
            source["retrieved_at"] = source["retrieved_at"].isoformat()
        return data
