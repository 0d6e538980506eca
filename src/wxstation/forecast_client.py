"""HTTP client for the forecast service whose daily forecasts get scored."""

from __future__ import annotations

import logging
from typing import Iterable, Mapping

import requests

from wxstation.errors import WxStationError
from wxstation.pipeline.forecast import ForecastRecord, daily_from_hourly
from wxstation.rows import to_number

LOGGER = logging.getLogger("wxstation.forecast_client")

# Sources the service only offers hourly; keyed to the action name it expects.
HOURLY_ACTIONS = {"geosphere": "forecast"}

_FIELD_KEYS = {
    "temp_min": ("temp_min", "tempMin"),
    "temp_max": ("temp_max", "tempMax"),
    "precipitation": ("precipitation",),
    "wind_speed": ("wind_speed", "windSpeed"),
    "wind_gust": ("wind_gust", "windGust"),
}


class ForecastFetchError(WxStationError):
    """Raised when the forecast service cannot be reached or returns bad data."""


def _first(item: Mapping[str, object], keys: Iterable[str]) -> float | None:
    for key in keys:
        if key in item:
            return to_number(item.get(key))
    return None


def parse_daily(items: Iterable[Mapping[str, object]], source: str) -> list[ForecastRecord]:
    records: list[ForecastRecord] = []
    for item in items:
        day = str(item.get("date") or item.get("forecast_date") or "")[:10]
        if not day:
            continue
        values = {name: _first(item, keys) for name, keys in _FIELD_KEYS.items()}
        records.append(ForecastRecord(forecast_date=day, source=source, **values))
    return records


class ForecastClient:
    """Fetch per-source daily forecasts for a station."""

    def __init__(self, base_url: str, timeout: float = 30.0) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    def _get(self, action: str, station_id: str) -> dict:
        url = f"{self.base_url}/api/forecast"
        try:
            resp = requests.get(
                url,
                params={"action": action, "stationId": station_id},
                timeout=self.timeout,
            )
            resp.raise_for_status()
            payload = resp.json()
        except requests.RequestException as exc:
            raise ForecastFetchError(f"Failed to fetch {action} forecast: {exc}") from exc
        except ValueError as exc:
            raise ForecastFetchError(f"Invalid JSON from {action} forecast: {exc}") from exc
        if not isinstance(payload, dict):
            raise ForecastFetchError(f"Unexpected payload for {action} forecast")
        return payload

    def fetch_daily(self, station_id: str, source: str) -> list[ForecastRecord]:
        action = HOURLY_ACTIONS.get(source, source)
        items = self._get(action, station_id).get("forecast") or []
        if source in HOURLY_ACTIONS:
            return daily_from_hourly(items, source)
        return parse_daily(items, source)

    def fetch_all(self, station_id: str, sources: Iterable[str]) -> list[ForecastRecord]:
        """Fetch every source; a failing source is logged and left out."""

        records: list[ForecastRecord] = []
        for source in sources:
            try:
                records.extend(self.fetch_daily(station_id, source))
            except ForecastFetchError as exc:
                LOGGER.warning("Forecast source %s skipped: %s", source, exc)
        return records
