"""Statistics snapshot persistence for wxstation."""

from __future__ import annotations

import json
import logging
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import TYPE_CHECKING

from wxstation.config import ensure_dir
from wxstation.pipeline.statistics import StatisticsPayload

if TYPE_CHECKING:
    from wxstation.coordinator import IngestionCoordinator

LOGGER = logging.getLogger("wxstation.storage")


def write_statistics(path: Path, payload: StatisticsPayload | dict) -> Path:
    """Write a statistics payload as pretty-printed JSON, replacing the old file."""

    data = payload.to_dict() if isinstance(payload, StatisticsPayload) else payload
    path = Path(path)
    ensure_dir(path.parent)
    tmp_path = path.with_suffix(path.suffix + ".tmp")
    with tmp_path.open("w", encoding="utf-8") as handle:
        json.dump(data, handle, indent=2, sort_keys=True)
    tmp_path.replace(path)
    return path


def read_statistics(path: Path) -> dict | None:
    """Return the stored snapshot, or ``None`` when it is missing or unreadable."""

    path = Path(path)
    if not path.exists():
        return None
    try:
        with path.open("r", encoding="utf-8") as handle:
            return json.load(handle)
    except (OSError, json.JSONDecodeError) as exc:
        LOGGER.warning("Statistics snapshot %s could not be read: %s", path, exc)
        return None


def _snapshot_age(data: dict, now: datetime) -> timedelta | None:
    stamp = data.get("updated_at")
    if not stamp:
        return None
    try:
        updated = datetime.fromisoformat(str(stamp))
    except ValueError:
        return None
    if updated.tzinfo is None:
        updated = updated.replace(tzinfo=timezone.utc)
    return now - updated


def update_statistics_if_needed(
    coordinator: "IngestionCoordinator",
    path: Path,
    max_age: timedelta = timedelta(hours=24),
    *,
    now: datetime | None = None,
) -> dict:
    """
    Return the stored snapshot while it is younger than ``max_age``.

    Otherwise recompute the statistics through ``coordinator`` and store them.
    """

    now = now or datetime.now(timezone.utc)
    existing = read_statistics(path)
    if existing is not None:
        age = _snapshot_age(existing, now)
        if age is not None and age < max_age:
            return existing
    payload = coordinator.statistics()
    data = payload.to_dict()
    write_statistics(path, data)
    LOGGER.info("Statistics snapshot refreshed at %s", path)
    return data
