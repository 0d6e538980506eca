"""Timestamp parsing and time-bucket helpers.

Vendor exports write timestamps as ``2025/8/1 0:03`` (no zero padding), the
cache and query layer use ``2025-08-01T00:03`` or ``2025-08-01 00:03``. All
values are treated as local wall-clock time without a zone or DST rules.
"""

from __future__ import annotations

import calendar
import re
from datetime import datetime
from enum import Enum

from wxstation.errors import WxStationError

_SPLIT_RE = re.compile(r"[\sT]+")
_DATE_SEP_RE = re.compile(r"[/\-]")
_MONTH_RE = re.compile(r"^\d{6}$")


class InvalidTimestamp(WxStationError, ValueError):
    """Raised when a timestamp string has no parseable date component."""


class Resolution(str, Enum):
    """Supported bucket widths."""

    MINUTE = "minute"
    HOUR = "hour"
    DAY = "day"


def parse_timestamp(text: str) -> datetime:
    """
    Parse a vendor or ISO-like timestamp into a naive ``datetime``.

    The time of day is optional and defaults to midnight.
    """

    if text is None:
        raise InvalidTimestamp("empty timestamp")
    parts = _SPLIT_RE.split(str(text).strip(), maxsplit=1)
    date_part = parts[0] if parts else ""
    fields = _DATE_SEP_RE.split(date_part) if date_part else []
    if len(fields) != 3:
        raise InvalidTimestamp(f"unparseable date in {text!r}")
    try:
        year, month, day = (int(value) for value in fields)
    except ValueError as exc:
        raise InvalidTimestamp(f"unparseable date in {text!r}") from exc

    hour = minute = second = 0
    if len(parts) > 1 and parts[1]:
        clock = parts[1].split(":")
        try:
            hour = int(clock[0] or 0)
            minute = int(clock[1]) if len(clock) > 1 and clock[1] else 0
            second = int(float(clock[2])) if len(clock) > 2 and clock[2] else 0
        except ValueError as exc:
            raise InvalidTimestamp(f"unparseable time in {text!r}") from exc
    try:
        return datetime(year, month, day, hour, minute, second)
    except ValueError as exc:
        raise InvalidTimestamp(f"out of range timestamp {text!r}") from exc


def try_parse_timestamp(text: str | None) -> datetime | None:
    """Return the parsed timestamp or ``None`` instead of raising."""

    if not text:
        return None
    try:
        return parse_timestamp(text)
    except InvalidTimestamp:
        return None


def floor_to_resolution(dt: datetime, resolution: Resolution | str) -> datetime:
    """Truncate a timestamp to the start of its bucket."""

    resolution = Resolution(resolution)
    if resolution is Resolution.DAY:
        return dt.replace(hour=0, minute=0, second=0, microsecond=0)
    if resolution is Resolution.HOUR:
        return dt.replace(minute=0, second=0, microsecond=0)
    return dt.replace(second=0, microsecond=0)


def key_for_resolution(dt: datetime, resolution: Resolution | str) -> str:
    """Return the zero-padded bucket label; lexical order is chronological."""

    resolution = Resolution(resolution)
    if resolution is Resolution.DAY:
        return f"{dt:%Y-%m-%d}"
    if resolution is Resolution.HOUR:
        return f"{dt:%Y-%m-%d %H}:00"
    return f"{dt:%Y-%m-%d %H:%M}"


def bucket_key(dt: datetime, resolution: Resolution | str) -> str:
    return key_for_resolution(floor_to_resolution(dt, resolution), resolution)


def parse_month(month: str) -> tuple[int, int]:
    """Validate a ``YYYYMM`` string and return ``(year, month)``."""

    if not month or not _MONTH_RE.match(month):
        raise ValueError(f"Invalid month {month!r}, expected YYYYMM")
    year, mon = int(month[:4]), int(month[4:])
    if not 1 <= mon <= 12:
        raise ValueError(f"Invalid month {month!r}, expected YYYYMM")
    return year, mon


def month_bounds(month: str) -> tuple[datetime, datetime]:
    """Return the first and last second of a ``YYYYMM`` month."""

    year, mon = parse_month(month)
    last_day = calendar.monthrange(year, mon)[1]
    return datetime(year, mon, 1), datetime(year, mon, last_day, 23, 59, 59)
