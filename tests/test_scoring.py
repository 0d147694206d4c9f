"""Unit tests for metric scoring and aggregation."""

import sys
from pathlib import Path

# Add parent directory to path to import project modules
sys.path.insert(0, str(Path(__file__).parent.parent))

import pytest

from enrichment.scoring import (
    CATEGORY_AMENITIES,
    CATEGORY_ENVIRONMENT,
    CATEGORY_HOUSING,
    CATEGORY_SAFETY,
    CATEGORY_SOCIAL,
    average_score,
    build_amenity_metrics,
    build_crime_metrics,
    build_environment_metrics,
    build_social_metrics,
    compute_category_scores,
    compute_composite_score,
    score_build_mix,
    score_density,
    score_family_friendly,
    score_low_income,
    score_total_crime,
    score_woz,
)
from models.report import ContextMetric
from models.stats import AirQualitySnapshot, AmenityStats, CrimeStats, Demographics, NeighborhoodStats


def metric(score):
    return ContextMetric("k", "K", None, None, score, "test")


class TestScores:
    """Test individual score functions."""

    def test_density_steps(self):
        """Test the stepped density table including its open end."""
        assert score_density(400) == 65
        assert score_density(1500) == 85
        assert score_density(3000) == 100
        assert score_density(20000) == 50
        assert score_density(None) is None

    def test_linear_scores_are_clamped(self):
        """Test clamping of the linear transforms."""
        assert score_low_income(0) == 100
        assert score_low_income(20) == 0
        assert score_woz(150) == 0
        assert score_woz(300) == pytest.approx(50)
        assert score_woz(900) == 100

    def test_crime_steps(self):
        """Test total crime steps."""
        assert score_total_crime(10) == 100
        assert score_total_crime(60) == 50
        assert score_total_crime(500) == 15

    def test_family_friendly(self):
        """Test the family score and its missing-data case."""
        assert score_family_friendly(Demographics()) is None
        assert score_family_friendly(Demographics(percent_family_households=20)) == 50
        assert score_family_friendly(
            Demographics(percent_family_households=40, percent_age_0_to_14=25, average_household_size=3.0)
        ) == 100

    def test_build_mix(self):
        """Test balanced, one-sided and missing build periods."""
        assert score_build_mix(50, 50) == 100
        assert score_build_mix(95, 5) == 40
        assert score_build_mix(80, None) == 70
        assert score_build_mix(None, None) is None


class TestMetricBuilders:
    """Test metric lists and warnings."""

    def test_missing_sources_add_warnings(self):
        """Test that every absent source leaves an empty list and a warning."""
        warnings = []

        assert build_social_metrics(None, warnings) == []
        assert build_crime_metrics(None, warnings) == []
        assert build_amenity_metrics(None, warnings) == []
        assert build_environment_metrics(None, warnings) == []
        assert len(warnings) == 4
        assert "OSM amenities were unavailable; amenity score is partial." in warnings

    def test_social_metrics(self):
        """Test the social metric keys and scores."""
        stats = NeighborhoodStats(
            region_code="BU03630000", region_type="Buurt", residents=5000,
            population_density=3000, low_income_households_percent=5.0, average_woz_value_keur=450,
        )
        metrics = build_social_metrics(stats, [])

        assert [m.key for m in metrics] == ["residents", "population_density", "low_income_households", "average_woz"]
        assert metrics[0].score is None
        assert [m.score for m in metrics[1:]] == [100, 60, 100]

    def test_crime_metrics(self):
        """Test that theft and vandalism are informational only."""
        metrics = build_crime_metrics(
            CrimeStats(total_crimes_per_1000=30, burglary_per_1000=3, violent_crime_per_1000=1,
                       theft_per_1000=3, vandalism_per_1000=2), []
        )
        scores = {m.key: m.score for m in metrics}

        assert scores == {"total_crimes": 85, "burglary": 80, "violent_crime": 100, "theft": None, "vandalism": None}

    def test_amenity_metrics(self):
        """Test amenity metric scores."""
        stats = AmenityStats(school_count=5, supermarket_count=10, park_count=5,
                             nearest_amenity_distance_meters=120.0, diversity_score=50.0)
        scores = {m.key: m.score for m in build_amenity_metrics(stats, [])}

        assert scores["amenity_count_score"] == 80
        assert scores["amenity_proximity"] == 100
        assert scores["amenity_diversity"] == 50

    def test_environment_metrics(self):
        """Test air quality scoring and the station note."""
        air = AirQualitySnapshot("NL49014", "Vondelpark", 3100.0, pm25=7.1, no2=21.5)
        metrics = {m.key: m for m in build_environment_metrics(air, [])}

        assert metrics["pm25"].score == 85
        assert metrics["no2"].score == 85
        assert metrics["pm10"].score is None
        assert metrics["air_station"].note == "Vondelpark"


class TestAggregation:
    """Test category and composite scores."""

    def test_average_ignores_unscored(self):
        """Test that unscored metrics do not count as zero."""
        assert average_score([metric(80), metric(None), metric(60)]) == 70
        assert average_score([metric(None)]) is None

    def test_category_scores_skip_empty(self):
        """Test that categories without scored metrics are left out."""
        scores = compute_category_scores({
            CATEGORY_SOCIAL: [metric(70), metric(75)],
            CATEGORY_SAFETY: [],
            CATEGORY_HOUSING: [metric(None)],
        })

        assert scores == {CATEGORY_SOCIAL: 72.5}

    def test_composite_weights(self):
        """Test the weighted mean over the three weighted categories."""
        composite = compute_composite_score({
            CATEGORY_SOCIAL: 80.0, CATEGORY_AMENITIES: 60.0, CATEGORY_ENVIRONMENT: 40.0,
            CATEGORY_SAFETY: 0.0,
        })

        assert composite == pytest.approx(65.0)

    def test_composite_renormalizes(self):
        """Test that weights renormalize over the present categories."""
        composite = compute_composite_score({CATEGORY_SOCIAL: 80.0, CATEGORY_ENVIRONMENT: 50.0})

        assert composite == pytest.approx(round((80 * 0.45 + 50 * 0.20) / 0.65, 1))

    def test_composite_empty(self):
        """Test that no weighted category yields 0."""
        assert compute_composite_score({}) == 0
        assert compute_composite_score({CATEGORY_SAFETY: 90.0}) == 0

    def test_composite_in_range(self):
        """Test the composite stays within 0-100."""
        for value in (0.0, 33.3, 100.0):
            composite = compute_composite_score({CATEGORY_SOCIAL: value, CATEGORY_AMENITIES: 100.0 - value})
            assert 0 <= composite <= 100


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
