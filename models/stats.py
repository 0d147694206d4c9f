"""Results returned by the per-source enrichment clients."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class NeighborhoodStats:
    """CBS 'Kerncijfers wijken en buurten' indicators for one region code."""

    region_code: str
    region_type: str
    residents: Optional[int] = None
    population_density: Optional[int] = None
    average_woz_value_keur: Optional[float] = None
    low_income_households_percent: Optional[float] = None
    men: Optional[int] = None
    women: Optional[int] = None
    age_0_to_15: Optional[int] = None
    age_15_to_25: Optional[int] = None
    age_25_to_45: Optional[int] = None
    age_45_to_65: Optional[int] = None
    age_65_plus: Optional[int] = None
    single_households: Optional[int] = None
    households_without_children: Optional[int] = None
    households_with_children: Optional[int] = None
    average_household_size: Optional[float] = None
    urbanity: Optional[str] = None
    average_income_per_recipient: Optional[float] = None
    average_income_per_inhabitant: Optional[float] = None
    education_low: Optional[int] = None
    education_medium: Optional[int] = None
    education_high: Optional[int] = None
    percentage_owner_occupied: Optional[int] = None
    percentage_rental: Optional[int] = None
    percentage_social_housing: Optional[int] = None
    percentage_private_rental: Optional[int] = None
    percentage_pre_2000: Optional[int] = None
    percentage_post_2000: Optional[int] = None
    percentage_multi_family: Optional[int] = None
    cars_per_household: Optional[float] = None
    car_density: Optional[int] = None
    total_cars: Optional[int] = None
    distance_to_gp: Optional[float] = None
    distance_to_supermarket: Optional[float] = None
    distance_to_daycare: Optional[float] = None
    distance_to_school: Optional[float] = None
    schools_within_3km: Optional[float] = None
    retrieved_at: datetime = field(default_factory=_utcnow)


@dataclass
class CrimeStats:
    """Registered crime per 1000 residents."""

    total_crimes_per_1000: Optional[int] = None
    burglary_per_1000: Optional[int] = None
    violent_crime_per_1000: Optional[int] = None
    theft_per_1000: Optional[int] = None
    vandalism_per_1000: Optional[int] = None
    retrieved_at: datetime = field(default_factory=_utcnow)


@dataclass
class Demographics:
    percent_age_0_to_14: Optional[int] = None
    percent_age_15_to_24: Optional[int] = None
    percent_age_25_to_44: Optional[int] = None
    percent_age_45_to_64: Optional[int] = None
    percent_age_65_plus: Optional[int] = None
    average_household_size: Optional[float] = None
    percent_owner_occupied: Optional[int] = None
    percent_single_households: Optional[int] = None
    percent_family_households: Optional[int] = None
    retrieved_at: datetime = field(default_factory=_utcnow)


@dataclass
class AmenityStats:
    """OSM amenity counts inside a radius."""

    school_count: int = 0
    supermarket_count: int = 0
    park_count: int = 0
    healthcare_count: int = 0
    transit_stop_count: int = 0
    charging_station_count: int = 0
    nearest_amenity_distance_meters: Optional[float] = None
    diversity_score: float = 0.0
    retrieved_at: datetime = field(default_factory=_utcnow)

    @property
    def total_count(self) -> int:
        return (
            self.school_count
            + self.supermarket_count
            + self.park_count
            + self.healthcare_count
            + self.transit_stop_count
            + self.charging_station_count
        )


@dataclass
class AirQualitySnapshot:
    """Latest readings of the nearest Luchtmeetnet station."""

    station_id: str
    station_name: str
    station_distance_meters: float
    pm25: Optional[float] = None
    pm10: Optional[float] = None
    no2: Optional[float] = None
    o3: Optional[float] = None
    measured_at: Optional[datetime] = None
    retrieved_at: datetime = field(default_factory=_utcnow)


@dataclass
class FoundationRisk:
    risk_level: str
    soil_type: str
    description: Optional[str] = None
    retrieved_at: datetime = field(default_factory=_utcnow)


@dataclass
class SolarPotential:
    potential: str
    roof_area_m2: Optional[float] = None
    installable_panels: Optional[int] = None
    estimated_generation_kwh: Optional[float] = None
    retrieved_at: datetime = field(default_factory=_utcnow)


@dataclass
class WozValuation:
    value: int
    reference_date: datetime
    source: str = "WOZ-waardeloket"
