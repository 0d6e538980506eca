"""Shared configuration helpers for wxstation."""

from __future__ import annotations

import os
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[2]

DEFAULT_FORECAST_SOURCES = ("geosphere", "openweather", "meteoblue", "openmeteo")


def _resolve_path_from_env(name: str, default: Path) -> Path:
    value = os.environ.get(name)
    if not value:
        return default
    candidate = Path(value).expanduser()
    if not candidate.is_absolute():
        candidate = (REPO_ROOT / candidate).resolve()
    return candidate


def get_data_dir() -> Path:
    """Return the directory holding the raw ``YYYYMM*.CSV`` exports."""

    return _resolve_path_from_env("WXSTATION_DATA_DIR", REPO_ROOT / "DNT")


def get_cache_dir() -> Path:
    """Return where materialized Parquet files are written."""

    return _resolve_path_from_env("WXSTATION_CACHE_DIR", REPO_ROOT / "data" / "parquet")


def get_stats_path() -> Path:
    return _resolve_path_from_env("WXSTATION_STATS_PATH", REPO_ROOT / "data" / "statistics.json")


def ensure_dir(path: Path) -> Path:
    """Ensure a directory exists."""

    path.mkdir(parents=True, exist_ok=True)
    return path


def get_forecast_url() -> str | None:
    value = os.environ.get("WXSTATION_FORECAST_URL", "").strip()
    return value.rstrip("/") or None


def get_station_id() -> str | None:
    return os.environ.get("WXSTATION_STATION_ID", "").strip() or None


def get_forecast_sources() -> list[str]:
    """Return forecast sources to score, from WXSTATION_FORECAST_SOURCES or the defaults."""

    raw = os.environ.get("WXSTATION_FORECAST_SOURCES", "").strip()
    if not raw:
        return list(DEFAULT_FORECAST_SOURCES)
    return [item.strip().lower() for item in raw.split(",") if item.strip()]


def get_stats_max_age_hours() -> float:
    """Return how old the statistics snapshot may get before it is recomputed."""

    raw = os.environ.get("WXSTATION_STATS_MAX_AGE_HOURS", "24")
    try:
        return max(0.0, float(raw))
    except ValueError:
        return 24.0
