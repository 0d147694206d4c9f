"""
Metric builders and scoring for the context report.

Every score is a deterministic stepped lookup or a clamped linear
transform on a 0-100 scale. Category scores are the plain mean of the
scored metrics in a category; the composite is a weighted mean over the
categories that produced a score.
"""

from typing import Dict, List, Optional, Sequence, Tuple

from models.report import ContextMetric
from models.stats import AirQualitySnapshot, AmenityStats, CrimeStats, Demographics, NeighborhoodStats

CBS_SOURCE = "CBS StatLine"
OSM_SOURCE = "OpenStreetMap"
AIR_SOURCE = "Luchtmeetnet Open API"
COMPOSITE_SOURCE = "Composite"

CATEGORY_SOCIAL = "Social"
CATEGORY_SAFETY = "Safety"
CATEGORY_DEMOGRAPHICS = "Demographics"
CATEGORY_HOUSING = "Housing"
CATEGORY_AMENITIES = "Amenities"
CATEGORY_ENVIRONMENT = "Environment"

# Only these categories feed the composite
COMPOSITE_WEIGHTS = {
    CATEGORY_SOCIAL: 0.45,
    CATEGORY_AMENITIES: 0.35,
    CATEGORY_ENVIRONMENT: 0.20,
}

# (inclusive upper bound, score); a None bound matches everything
Steps = Sequence[Tuple[Optional[float], float]]

DENSITY_STEPS = ((500, 65), (1500, 85), (3500, 100), (7000, 70), (None, 50))
TOTAL_CRIME_STEPS = ((20, 100), (35, 85), (50, 70), (75, 50), (100, 30), (None, 15))
BURGLARY_STEPS = ((2, 100), (5, 80), (10, 60), (15, 40), (None, 20))
VIOLENT_CRIME_STEPS = ((2, 100), (5, 75), (10, 50), (None, 25))
PRIVATE_RENTAL_STEPS = ((10, 70), (20, 85), (35, 100), (50, 80), (None, 60))
PROXIMITY_STEPS = ((250, 100), (500, 85), (1000, 70), (1500, 55), (2000, 40), (None, 25))
PM25_STEPS = ((5, 100), (10, 85), (15, 70), (25, 50), (35, 25), (None, 10))
PM10_STEPS = ((15, 100), (25, 85), (35, 70), (45, 50), (60, 30), (None, 15))
NO2_STEPS = ((20, 100), (30, 85), (40, 70), (60, 50), (80, 30), (None, 15))
O3_STEPS = ((60, 100), (90, 85), (120, 70), (150, 50), (180, 30), (None, 15))


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def stepped(value: Optional[float], steps: Steps) -> Optional[float]:
    """Score ``value`` with a stepped table; None stays None."""
    if value is None:
        return None
    for upper, score in steps:
        if upper is None or value <= upper:
            return float(score)
    return float(steps[-1][1])


# Individual scores

def score_density(density: Optional[int]) -> Optional[float]:
    return stepped(density, DENSITY_STEPS)


def score_low_income(percent: Optional[float]) -> Optional[float]:
    """0% low-income households scores 100, 12.5% or more scores 0."""
    if percent is None:
        return None
    return clamp(100 - percent * 8, 0, 100)


def score_woz(woz_keur: Optional[float]) -> Optional[float]:
    """150k€ scores 0, 450k€ or more scores 100."""
    if woz_keur is None:
        return None
    return clamp((woz_keur - 150) / 3, 0, 100)


def score_total_crime(per_1000: Optional[int]) -> Optional[float]:
    return stepped(per_1000, TOTAL_CRIME_STEPS)


def score_burglary(per_1000: Optional[int]) -> Optional[float]:
    return stepped(per_1000, BURGLARY_STEPS)


def score_violent_crime(per_1000: Optional[int]) -> Optional[float]:
    return stepped(per_1000, VIOLENT_CRIME_STEPS)


def score_family_friendly(demographics: Demographics) -> Optional[float]:
    """
    Family friendliness from family households, children and household size.

    Starts at 50 and moves with each available input; None when all
    three inputs are missing.
    """
    family = demographics.percent_family_households
    children = demographics.percent_age_0_to_14
    household_size = demographics.average_household_size
    if family is None and children is None and household_size is None:
        return None

    score = 50.0
    if family is not None:
        score += (family - 20) * 1.5
    if children is not None:
        score += (children - 15) * 2
    if household_size is not None:
        score += (household_size - 2) * 15
    return clamp(score, 0, 100)


def score_owner_occupied(percent: Optional[int]) -> Optional[float]:
    if percent is None:
        return None
    return clamp(percent * 1.25, 0, 100)


def score_private_rental(percent: Optional[int]) -> Optional[float]:
    return stepped(percent, PRIVATE_RENTAL_STEPS)


def score_build_mix(pre_2000: Optional[int], post_2000: Optional[int]) -> Optional[float]:
    """Balanced construction periods score high; 70 when only one side is known."""
    if pre_2000 is None and post_2000 is None:
        return None
    if pre_2000 is None or post_2000 is None:
        return 70.0
    return clamp(100 - abs(pre_2000 - post_2000) * 1.2, 40, 100)


def score_amenity_proximity(distance_meters: Optional[float]) -> Optional[float]:
    return stepped(distance_meters, PROXIMITY_STEPS)


def score_amenity_count(amenities: AmenityStats) -> float:
    return clamp(amenities.total_count * 4, 0, 100)


# Metric builders

def build_social_metrics(cbs: Optional[NeighborhoodStats], warnings: List[str]) -> List[ContextMetric]:
    if cbs is None:
        warnings.append("CBS neighborhood indicators were unavailable; social score is partial.")
        return []

    return [
        ContextMetric("residents", "Residents", cbs.residents, "people", None, CBS_SOURCE),
        ContextMetric(
            "population_density", "Population Density", cbs.population_density, "people/km²",
            score_density(cbs.population_density), CBS_SOURCE,
        ),
        ContextMetric(
            "low_income_households", "Low Income Households", cbs.low_income_households_percent, "%",
            score_low_income(cbs.low_income_households_percent), CBS_SOURCE,
        ),
        ContextMetric(
            "average_woz", "Average WOZ Value", cbs.average_woz_value_keur, "k€",
            score_woz(cbs.average_woz_value_keur), CBS_SOURCE,
        ),
    ]


def build_crime_metrics(crime: Optional[CrimeStats], warnings: List[str]) -> List[ContextMetric]:
    if crime is None:
        warnings.append("CBS crime statistics were unavailable; safety score is partial.")
        return []

    unit = "per 1000"
    return [
        ContextMetric(
            "total_crimes", "Total Crimes", crime.total_crimes_per_1000, unit,
            score_total_crime(crime.total_crimes_per_1000), CBS_SOURCE,
        ),
        ContextMetric(
            "burglary", "Burglary Rate", crime.burglary_per_1000, unit,
            score_burglary(crime.burglary_per_1000), CBS_SOURCE,
        ),
        ContextMetric(
            "violent_crime", "Violent Crime", crime.violent_crime_per_1000, unit,
            score_violent_crime(crime.violent_crime_per_1000), CBS_SOURCE,
        ),
        ContextMetric("theft", "Theft Rate", crime.theft_per_1000, unit, None, CBS_SOURCE),
        ContextMetric("vandalism", "Vandalism Rate", crime.vandalism_per_1000, unit, None, CBS_SOURCE),
    ]


def build_demographics_metrics(demographics: Optional[Demographics], warnings: List[str]) -> List[ContextMetric]:
    if demographics is None:
        warnings.append("CBS demographics were unavailable; demographics score is partial.")
        return []

    family_score = score_family_friendly(demographics)
    return [
        ContextMetric("age_0_14", "Age 0-14", demographics.percent_age_0_to_14, "%", None, CBS_SOURCE),
        ContextMetric("age_15_24", "Age 15-24", demographics.percent_age_15_to_24, "%", None, CBS_SOURCE),
        ContextMetric("age_25_44", "Age 25-44", demographics.percent_age_25_to_44, "%", None, CBS_SOURCE),
        ContextMetric("age_45_64", "Age 45-64", demographics.percent_age_45_to_64, "%", None, CBS_SOURCE),
        ContextMetric("age_65_plus", "Age 65+", demographics.percent_age_65_plus, "%", None, CBS_SOURCE),
        ContextMetric(
            "avg_household_size", "Avg Household Size", demographics.average_household_size, "people",
            None, CBS_SOURCE,
        ),
        ContextMetric("owner_occupied", "Owner-Occupied", demographics.percent_owner_occupied, "%", None, CBS_SOURCE),
        ContextMetric(
            "single_households", "Single Households", demographics.percent_single_households, "%",
            None, CBS_SOURCE,
        ),
        ContextMetric(
            "family_friendly", "Family-Friendly Score", family_score, "score", family_score, COMPOSITE_SOURCE
        ),
    ]


def build_housing_metrics(cbs: Optional[NeighborhoodStats]) -> List[ContextMetric]:
    # Missing CBS data is already reported by the social builder
    if cbs is None:
        return []

    return [
        ContextMetric(
            "housing_owner", "Owner-Occupied", cbs.percentage_owner_occupied, "%",
            score_owner_occupied(cbs.percentage_owner_occupied), CBS_SOURCE,
        ),
        ContextMetric("housing_rental", "Rental Properties", cbs.percentage_rental, "%", None, CBS_SOURCE),
        ContextMetric("housing_social", "Social Housing", cbs.percentage_social_housing, "%", None, CBS_SOURCE),
        ContextMetric(
            "housing_private_rental", "Private Rental", cbs.percentage_private_rental, "%",
            score_private_rental(cbs.percentage_private_rental), CBS_SOURCE,
        ),
        ContextMetric("housing_pre2000", "Built Pre-2000", cbs.percentage_pre_2000, "%", None, CBS_SOURCE),
        ContextMetric("housing_post2000", "Built Post-2000", cbs.percentage_post_2000, "%", None, CBS_SOURCE),
        ContextMetric(
            "housing_build_mix", "Build-Year Mix", cbs.percentage_post_2000, "%",
            score_build_mix(cbs.percentage_pre_2000, cbs.percentage_post_2000), COMPOSITE_SOURCE,
        ),
        ContextMetric(
            "housing_multifamily", "Multi-Family Homes", cbs.percentage_multi_family, "%", None, CBS_SOURCE
        ),
    ]


def build_amenity_metrics(amenities: Optional[AmenityStats], warnings: List[str]) -> List[ContextMetric]:
    if amenities is None:
        warnings.append("OSM amenities were unavailable; amenity score is partial.")
        return []

    count_score = score_amenity_count(amenities)
    return [
        ContextMetric("schools", "Schools in Radius", amenities.school_count, "count", None, OSM_SOURCE),
        ContextMetric("supermarkets", "Supermarkets in Radius", amenities.supermarket_count, "count", None, OSM_SOURCE),
        ContextMetric("parks", "Parks in Radius", amenities.park_count, "count", None, OSM_SOURCE),
        ContextMetric("healthcare", "Healthcare in Radius", amenities.healthcare_count, "count", None, OSM_SOURCE),
        ContextMetric(
            "transit_stops", "Transit Stops in Radius", amenities.transit_stop_count, "count", None, OSM_SOURCE
        ),
        ContextMetric(
            "charging_stations", "Charging Stations in Radius", amenities.charging_station_count, "count",
            None, OSM_SOURCE,
        ),
        ContextMetric(
            "amenity_diversity", "Amenity Diversity", amenities.diversity_score, "score",
            amenities.diversity_score, OSM_SOURCE,
        ),
        ContextMetric(
            "amenity_proximity", "Nearest Amenity Distance", amenities.nearest_amenity_distance_meters, "m",
            score_amenity_proximity(amenities.nearest_amenity_distance_meters), OSM_SOURCE,
        ),
        ContextMetric(
            "amenity_count_score", "Amenity Volume Score", count_score, "score", count_score, OSM_SOURCE
        ),
    ]


def build_environment_metrics(air: Optional[AirQualitySnapshot], warnings: List[str]) -> List[ContextMetric]:
    if air is None:
        warnings.append("Air quality source was unavailable; environment score is partial.")
        return []

    unit = "µg/m³"
    return [
        ContextMetric("pm25", "PM2.5", air.pm25, unit, stepped(air.pm25, PM25_STEPS), AIR_SOURCE),
        ContextMetric("pm10", "PM10", air.pm10, unit, stepped(air.pm10, PM10_STEPS), AIR_SOURCE),
        ContextMetric("no2", "NO2", air.no2, unit, stepped(air.no2, NO2_STEPS), AIR_SOURCE),
        ContextMetric("o3", "O3", air.o3, unit, stepped(air.o3, O3_STEPS), AIR_SOURCE),
        ContextMetric("air_station", "Nearest Station", None, None, None, AIR_SOURCE, note=air.station_name),
        ContextMetric(
            "air_station_distance", "Distance to Station", air.station_distance_meters, "m", None, AIR_SOURCE
        ),
    ]


# Aggregation

def average_score(metrics: List[ContextMetric]) -> Optional[float]:
    """Mean of the scored metrics; unscored metrics are left out, not counted as zero."""
    scores = [metric.score for metric in metrics if metric.score is not None]
    if not scores:
        return None
    return sum(scores) / len(scores)


def compute_category_scores(categories: Dict[str, List[ContextMetric]]) -> Dict[str, float]:
    """
    Score each category that has at least one scored metric.

    Args:
        categories: Category name -> metric list

    Returns:
        Category name -> mean score rounded to one decimal
    """
    scores = {}
    for name, metrics in categories.items():
        average = average_score(metrics)
        if average is not None:
            scores[name] = round(average, 1)
    return scores


def compute_composite_score(category_scores: Dict[str, float]) -> float:
    """
    Weighted mean of the weighted categories that are present.

    Weights renormalize over the present categories; 0 when none of them
    produced a score.
    """
    weighted_sum = 0.0
    total_weight = 0.0
    for name, weight in COMPOSITE_WEIGHTS.items():
        if name in category_scores:
            weighted_sum += category_scores[name] * weight
            total_weight += weight
    if total_weight <= 0:
        return 0.0
    return round(weighted_sum / total_weight, 1)
