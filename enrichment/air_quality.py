"""Nearest-station air quality from the Luchtmeetnet open API."""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import quote

from enrichment.base import EnrichmentClient
from models.location import ResolvedLocation
from models.stats import AirQualitySnapshot
from utils.geo import haversine_meters

logger = logging.getLogger(__name__)

MAX_STATION_PAGES = 15
STATION_LIST_CACHE_KEY = "lucht:all-stations-metadata"
STATION_LIST_TTL_SECONDS = 24 * 3600
STATION_DETAIL_TTL_SECONDS = 48 * 3600
DETAIL_CONCURRENCY = 5

SUPPORTED_FORMULAS = ("PM25", "PM10", "NO2", "O3")

# (station id, name, latitude, longitude)
Station = Tuple[str, str, float, float]


class LuchtmeetnetAirQualityClient(EnrichmentClient):
    """
    Latest PM2.5/PM10/NO2/O3 readings of the station nearest to a location.

    The full station list (ids plus coordinates) is discovered once by
    paging through the station index and fetching each station's detail;
    it is cached for a day so regular lookups cost a single measurement
    request.
    """

    SOURCE_NAME = "Luchtmeetnet Open API"
    DEFAULT_BASE_URL = "https://api.luchtmeetnet.nl"

    async def fetch(self, location: ResolvedLocation) -> Optional[AirQualitySnapshot]:
        """
        Fetch the air quality snapshot for ``location``.

        Args:
            location: Resolved location

        Returns:
            AirQualitySnapshot, or None when no station or no supported reading was found
        """
        cache_key = f"lucht:{location.latitude:.4f}:{location.longitude:.4f}"
        hit, cached = self.cache.lookup(cache_key)
        if hit and cached is not None:
            return cached

        nearest = await self.find_nearest_station(location)
        if nearest is None:
            return None
        station, distance = nearest
        station_id, station_name = station[0], station[1]

        measurements = await self._latest_measurements(station_id)
        readings: Dict[str, Dict[str, Any]] = {}
        for measurement in measurements:
            formula = measurement.get("formula")
            if formula in SUPPORTED_FORMULAS and formula not in readings:
                readings[formula] = measurement

        if not readings:
            logger.warning(f"Luchtmeetnet measurements for station {station_id} had no supported formulas")
            return None

        latest = next(readings[formula] for formula in SUPPORTED_FORMULAS if formula in readings)
        snapshot = AirQualitySnapshot(
            station_id=station_id,
            station_name=station_name,
            station_distance_meters=distance,
            pm25=self._value(readings.get("PM25")),
            pm10=self._value(readings.get("PM10")),
            no2=self._value(readings.get("NO2")),
            o3=self._value(readings.get("O3")),
            measured_at=self._parse_timestamp(latest.get("timestamp_measured")),
        )
        self.cache.set(cache_key, snapshot, self.ttl_minutes("air_quality_cache_minutes", 30))
        return snapshot

    async def find_nearest_station(
        self, location: ResolvedLocation
    ) -> Optional[Tuple[Station, float]]:
        """Return the nearest station and its great-circle distance in meters."""
        stations = await self.get_stations()
        nearest = None
        min_distance = None
        for station in stations:
            distance = haversine_meters(location.latitude, location.longitude, station[2], station[3])
            if min_distance is None or distance < min_distance:
                min_distance = distance
                nearest = station
        if nearest is None:
            return None
        return nearest, min_distance

    async def get_stations(self) -> List[Station]:
        hit, cached = self.cache.lookup(STATION_LIST_CACHE_KEY)
        if hit and cached:
            return cached

        logger.info("Starting Luchtmeetnet station discovery...")
        station_ids = await self._fetch_station_ids()

        semaphore = asyncio.Semaphore(DETAIL_CONCURRENCY)

        async def detail(station_id: str) -> Optional[Station]:
            async with semaphore:
                return await self._station_detail(station_id)

        details = await asyncio.gather(*(detail(station_id) for station_id in station_ids))
        stations = [station for station in details if station is not None]
        logger.info(f"Discovered {len(stations)} Luchtmeetnet stations with coordinates")

        if stations:
            self.cache.set(STATION_LIST_CACHE_KEY, stations, STATION_LIST_TTL_SECONDS)
        return stations

    async def _fetch_station_ids(self) -> List[str]:
        base = self.base_url("luchtmeetnet_base_url", self.DEFAULT_BASE_URL)
        station_ids: List[str] = []

        for page in range(1, MAX_STATION_PAGES + 1):
            try:
                response = await self.http.get(f"{base}/open_api/stations?page={page}")
                response.raise_for_status()
                data = response.json()
            except Exception as e:
                logger.warning(f"Luchtmeetnet station list lookup failed for page {page}: {e}")
                continue

            items = data.get("data") if isinstance(data, dict) else None
            for item in items or []:
                station_id = str(item.get("number") or "").strip() if isinstance(item, dict) else ""
                if station_id and station_id not in station_ids:
                    station_ids.append(station_id)

            pagination = data.get("pagination") if isinstance(data, dict) else None
            last_page = pagination.get("last_page") if isinstance(pagination, dict) else None
            if isinstance(last_page, int) and page >= last_page:
                break
            if not items:
                break

        return station_ids

    async def _station_detail(self, station_id: str) -> Optional[Station]:
        cache_key = f"lucht:station-detail:{station_id}"
        hit, cached = self.cache.lookup(cache_key)
        if hit and cached is not None:
            return cached

        base = self.base_url("luchtmeetnet_base_url", self.DEFAULT_BASE_URL)
        try:
            response = await self.http.get(f"{base}/open_api/stations/{quote(station_id, safe='')}")
            response.raise_for_status()
            data = (response.json() or {}).get("data") or {}
        except Exception as e:
            logger.warning(f"Failed to fetch details for station {station_id}: {e}")
            return None

        coordinates = (data.get("geometry") or {}).get("coordinates")
        if not isinstance(coordinates, list) or len(coordinates) < 2:
            return None

        name = (data.get("location") or "").strip() or station_id
        station = (station_id, name, float(coordinates[1]), float(coordinates[0]))
        self.cache.set(cache_key, station, STATION_DETAIL_TTL_SECONDS)
        return station

    async def _latest_measurements(self, station_id: str) -> List[Dict[str, Any]]:
        base = self.base_url("luchtmeetnet_base_url", self.DEFAULT_BASE_URL)
        url = (
            f"{base}/open_api/stations/{quote(station_id, safe='')}/measurements"
            "?order_by=timestamp_measured&order_direction=desc&page=1"
        )
        try:
            response = await self.http.get(url)
            response.raise_for_status()
            data = response.json()
        except Exception as e:
            logger.debug(f"Luchtmeetnet measurements lookup failed for station {station_id}: {e}")
            return []

        items = data.get("data") if isinstance(data, dict) else None
        return [item for item in items or [] if isinstance(item, dict)]

    @staticmethod
    def _value(measurement: Optional[Dict[str, Any]]) -> Optional[float]:
        if not measurement:
            return None
        value = measurement.get("value")
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return None
        return float(value)

    @staticmethod
    def _parse_timestamp(value: Optional[str]) -> Optional[datetime]:
        if not value:
            return None
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed
