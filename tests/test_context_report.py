"""Tests for the context report service with all sources behind a mock transport."""

import sys
from pathlib import Path

# Add parent directory to path to import project modules
sys.path.insert(0, str(Path(__file__).parent.parent))

import asyncio
from urllib.parse import unquote

import httpx
import pytest

from enrichment.report import ContextReportService, ReportValidationError
from enrichment.scoring import CATEGORY_AMENITIES, CATEGORY_ENVIRONMENT, CATEGORY_SOCIAL
from models.report import ContextReportRequest

PDOK_DOC = {
    "weergavenaam": "Damrak 1, 1012LG Amsterdam",
    "centroide_ll": "POINT(4.8978 52.3765)",
    "centroide_rd": "POINT(121722 487668)",
    "gemeentecode": "0363",
    "gemeentenaam": "Amsterdam",
    "wijkcode": "WK036300",
    "buurtcode": "BU03630000",
    "postcode": "1012LG",
}

NEIGHBORHOOD_ROW = {
    "WijkenEnBuurten": "BU03630000",
    "SoortRegio_2": "Buurt     ",
    "AantalInwoners_5": 4000,
    "Bevolkingsdichtheid_34": 3000,
    "GemiddeldeWOZWaardeVanWoningen_36": 450,
    "HuishoudensMetEenLaagInkomen_73": 5.0,
    "BouwjaarVoor2000_46": 80,
    "BouwjaarVanaf2000_47": 20,
}

DISTRICT_ROW = {
    "WijkenEnBuurten": "BU03630000",
    "AantalInwoners_5": 4000,
    "TotaalDiefstalUitWoningSchuurED_106": 30,
    "VernielingMisdrijfTegenOpenbareOrde_107": 10,
    "GeweldsEnSeksueleMisdrijven_108": 6,
    "k_0Tot15Jaar_8": 12,
    "GemiddeldeHuishoudensgrootte_32": 1.6,
    "HuishoudensMetKinderen_31": 20,
}


class Router:
    """Route mock requests by host; individual sources can be switched off."""

    def __init__(self, failing=()):
        self.failing = set(failing)
        self.calls = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        url = unquote(str(request.url))
        host = request.url.host
        path = request.url.path
        self.calls.append(url)

        if host == "api.pdok.nl":
            if "nergens" in url.lower():
                return httpx.Response(200, json={"response": {"docs": []}})
            return httpx.Response(200, json={"response": {"docs": [PDOK_DOC]}})

        if host == "opendata.cbs.nl":
            if "85618NED" in url:
                return httpx.Response(200, json={"value": [NEIGHBORHOOD_ROW]})
            if "TotaalDiefstal" in url and "crime" in self.failing:
                return httpx.Response(500)
            return httpx.Response(200, json={"value": [DISTRICT_ROW]})

        if host == "overpass-api.de":
            return httpx.Response(500)

        if host == "api.luchtmeetnet.nl":
            if path == "/open_api/stations":
                page = int(request.url.params.get("page"))
                data = [{"number": "NL49014"}] if page == 1 else []
                return httpx.Response(200, json={"pagination": {"last_page": 1}, "data": data})
            if path == "/open_api/stations/NL49014":
                return httpx.Response(200, json={"data": {
                    "location": "Amsterdam-Vondelpark", "geometry": {"coordinates": [4.8608, 52.3597]}
                }})
            if path == "/open_api/stations/NL49014/measurements":
                return httpx.Response(200, json={"data": [
                    {"formula": "NO2", "value": 21.5, "timestamp_measured": "2024-05-01T10:00:00+00:00"},
                    {"formula": "PM25", "value": 7.1, "timestamp_measured": "2024-05-01T10:00:00+00:00"},
                ]})

        if host == "service.pdok.nl":
            if "bodemkaart" in url:
                return httpx.Response(200, json={"features": [{"properties": {"bodemhoofdgroep": "Veen"}}]})
            if "bag:pand" in url:
                return httpx.Response(200, json={"features": [{"properties": {"oppervlakte": 50, "bouwjaar": 1995}}]})

        return httpx.Response(404)


def make_service(router: Router) -> ContextReportService:
    http = httpx.AsyncClient(transport=httpx.MockTransport(router))
    return ContextReportService({}, http_client=http)


class TestContextReport:
    """Test report aggregation, partial failures and caching."""

    def test_report_without_amenities(self):
        """Test a full report where only the amenity source fails."""
        router = Router()
        service = make_service(router)

        report = asyncio.run(service.build(ContextReportRequest("Damrak 1, Amsterdam", 1000)))

        assert report.location.display_address == "Damrak 1, 1012LG Amsterdam"
        assert report.location.query == "Damrak 1, Amsterdam"
        assert report.amenity_metrics == []
        assert report.warnings == ["OSM amenities were unavailable; amenity score is partial."]
        assert CATEGORY_AMENITIES not in report.category_scores
        assert CATEGORY_SOCIAL in report.category_scores
        assert CATEGORY_ENVIRONMENT in report.category_scores

        social = report.category_scores[CATEGORY_SOCIAL]
        environment = report.category_scores[CATEGORY_ENVIRONMENT]
        assert report.composite_score == pytest.approx(round((social * 0.45 + environment * 0.20) / 0.65, 1))
        assert 0 <= report.composite_score <= 100

    def test_sources_follow_available_data(self):
        """Test that attribution lists only sources that returned data."""
        report = asyncio.run(make_service(Router()).build(ContextReportRequest("Damrak 1 Amsterdam")))

        assert [source.source for source in report.sources] == [
            "PDOK Locatieserver",
            "CBS StatLine",
            "Luchtmeetnet",
        ]

    def test_crime_failure_is_partial(self):
        """Test that a failing crime table only empties the safety metrics."""
        report = asyncio.run(
            make_service(Router(failing={"crime"})).build(ContextReportRequest("Damrak 1 Amsterdam"))
        )

        assert report.crime_metrics == []
        assert report.demographics_metrics
        assert "CBS crime statistics were unavailable; safety score is partial." in report.warnings

    def test_crime_metrics_are_rates(self):
        """Test that crime counts are reported per 1000 residents."""
        report = asyncio.run(make_service(Router()).build(ContextReportRequest("Damrak 1 Amsterdam")))
        values = {metric.key: metric.value for metric in report.crime_metrics}

        assert values["burglary"] == 8
        assert values["violent_crime"] == 2

    def test_empty_input(self):
        """Test the required-input validation."""
        service = make_service(Router())

        with pytest.raises(ReportValidationError) as exc_info:
            asyncio.run(service.build(ContextReportRequest("   ")))

        assert exc_info.value.errors == ["Input is required."]

    def test_unresolved_input(self):
        """Test the validation error for inputs PDOK cannot resolve."""
        service = make_service(Router())

        with pytest.raises(ReportValidationError) as exc_info:
            asyncio.run(service.build(ContextReportRequest("Nergens 999")))

        assert exc_info.value.errors == ["Could not resolve input to a Dutch address."]

    def test_radius_is_clamped(self):
        """Test that out-of-range radii are clamped with a warning."""
        service = make_service(Router())

        async def run():
            small = await service.build(ContextReportRequest("Damrak 1 Amsterdam", 50))
            large = await service.build(ContextReportRequest("Damrak 1 Amsterdam", 9000))
            return small, large

        small, large = asyncio.run(run())

        assert "Radius clamped from 50m to 200m to respect system limits." in small.warnings
        assert "Radius clamped from 9000m to 5000m to respect system limits." in large.warnings

    def test_repeat_request_is_cached(self):
        """Test that a repeated request makes no further network calls."""
        router = Router()
        service = make_service(router)

        async def run():
            first = await service.build(ContextReportRequest("Damrak 1 Amsterdam"))
            calls = len(router.calls)
            second = await service.build(ContextReportRequest("Damrak 1 Amsterdam"))
            return first, second, calls

        first, second, calls_after_first = asyncio.run(run())

        assert len(router.calls) == calls_after_first
        assert second.composite_score == first.composite_score
        assert second.warnings == first.warnings

    def test_cached_report_keeps_request_warnings_separate(self):
        """Test that the clamp warning is not stored in the cached report."""
        service = make_service(Router())

        async def run():
            clamped = await service.build(ContextReportRequest("Damrak 1 Amsterdam", 100))
            plain = await service.build(ContextReportRequest("Damrak 1 Amsterdam", 200))
            return clamped, plain

        clamped, plain = asyncio.run(run())

        assert any(w.startswith("Radius clamped") for w in clamped.warnings)
        assert not any(w.startswith("Radius clamped") for w in plain.warnings)

    def test_returned_report_does_not_share_cached_containers(self):
        """Test that changing a returned report leaves later cached results intact."""
        service = make_service(Router())

        async def run():
            first = await service.build(ContextReportRequest("Damrak 1 Amsterdam"))
            first.crime_metrics.clear()
            first.sources.clear()
            first.warnings.append("edited by caller")
            first.category_scores[CATEGORY_SOCIAL] = -1.0
            second = await service.build(ContextReportRequest("Damrak 1 Amsterdam"))
            return second

        second = asyncio.run(run())

        assert second.crime_metrics
        assert second.sources
        assert "edited by caller" not in second.warnings
        assert second.category_scores[CATEGORY_SOCIAL] >= 0

    def test_to_dict(self):
        """Test serialization of the report."""
        report = asyncio.run(make_service(Router()).build(ContextReportRequest("Damrak 1 Amsterdam")))
        data = report.to_dict()

        assert data["location"]["postal_code"] == "1012LG"
        assert isinstance(data["sources"][0]["retrieved_at"], str)


class TestPropertyExtras:
    """Test foundation risk and solar potential lookups."""

    def test_extras(self):
        """Test both per-building lookups for a resolved location."""
        service = make_service(Router())

        async def run():
            location = await service.resolve_location("Damrak 1 Amsterdam")
            return await service.build_property_extras(location)

        extras = asyncio.run(run())

        assert extras["foundation_risk"].risk_level == "High"
        assert extras["solar_potential"].installable_panels == 10


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
