"""Score stored daily forecasts against observed daily aggregates."""

from __future__ import annotations

import re
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Iterable, Mapping, Sequence

import numpy as np

from wxstation.pipeline.daily import DailyAggregateRow
from wxstation.rows import to_number
from wxstation.timeparse import try_parse_timestamp
from wxstation.units import fahrenheit_to_celsius, inch_to_mm, mph_to_kmh

_DATE_PART_RE = re.compile(r"[\sT]")

FIELDS = ("temp_min", "temp_max", "precipitation", "wind_speed", "wind_gust")


@dataclass(frozen=True)
class ForecastRecord:
    """One source's forecast for one day, in degC, mm and km/h."""

    forecast_date: str
    source: str
    temp_min: float | None = None
    temp_max: float | None = None
    precipitation: float | None = None
    wind_speed: float | None = None
    wind_gust: float | None = None


@dataclass(frozen=True)
class ActualRecord:
    """Observed daily values converted to forecast units."""

    date: str
    temp_min: float | None = None
    temp_max: float | None = None
    precipitation: float | None = None
    wind_speed: float | None = None
    wind_gust: float | None = None


@dataclass(frozen=True)
class ErrorRecord:
    date: str
    source: str
    errors: dict[str, float | None]
    differences: dict[str, float | None]


@dataclass(frozen=True)
class FieldAccuracy:
    sample_size: int
    mae: float | None
    rmse: float | None


@dataclass
class SourceAccuracy:
    source: str
    sample_size: int = 0
    fields: dict[str, FieldAccuracy] = field(default_factory=dict)


def actual_from_imperial(
    date: str,
    temp_min_f: float | None,
    temp_max_f: float | None,
    precipitation_in: float | None,
    wind_speed_mph: float | None,
    wind_gust_mph: float | None = None,
) -> ActualRecord:
    """Build an :class:`ActualRecord` from Fahrenheit, inch and mph readings."""

    return ActualRecord(
        date=date,
        temp_min=fahrenheit_to_celsius(temp_min_f),
        temp_max=fahrenheit_to_celsius(temp_max_f),
        precipitation=inch_to_mm(precipitation_in),
        wind_speed=mph_to_kmh(wind_speed_mph),
        wind_gust=mph_to_kmh(wind_gust_mph),
    )


def actual_from_daily(row: DailyAggregateRow) -> ActualRecord:
    """Station daily rows are already metric; wind speed is the daily mean."""

    return ActualRecord(
        date=row.day,
        temp_min=row.tmin,
        temp_max=row.tmax,
        precipitation=row.rain_day,
        wind_speed=row.wind_avg,
        wind_gust=row.gust_max,
    )


def compare(actual: ActualRecord, forecast: ForecastRecord) -> ErrorRecord:
    """Per-field absolute and signed (actual minus forecast) errors."""

    differences: dict[str, float | None] = {}
    for name in FIELDS:
        observed = getattr(actual, name)
        predicted = getattr(forecast, name)
        differences[name] = None if observed is None or predicted is None else observed - predicted
    errors = {name: None if diff is None else abs(diff) for name, diff in differences.items()}
    return ErrorRecord(
        date=actual.date,
        source=forecast.source,
        errors=errors,
        differences=differences,
    )


def join_records(
    actuals: Iterable[ActualRecord],
    forecasts: Iterable[ForecastRecord],
) -> list[tuple[ActualRecord, ForecastRecord]]:
    """
    Pair actuals and forecasts on ``(date, source)``.

    A later record for the same date (or date and source) replaces an
    earlier one. Pairs come back ordered by date, then source.
    """

    by_date = {actual.date: actual for actual in actuals}
    latest: dict[tuple[str, str], ForecastRecord] = {}
    for forecast in forecasts:
        latest[(forecast.forecast_date, forecast.source)] = forecast
    pairs = [
        (by_date[day], forecast)
        for (day, _source), forecast in latest.items()
        if day in by_date
    ]
    pairs.sort(key=lambda pair: (pair[0].date, pair[1].source))
    return pairs


def field_accuracy(differences: Sequence[float]) -> FieldAccuracy:
    """MAE and RMSE from signed differences; both ``None`` for no samples."""

    if not differences:
        return FieldAccuracy(sample_size=0, mae=None, rmse=None)
    values = np.asarray(differences, dtype=float)
    return FieldAccuracy(
        sample_size=len(values),
        mae=float(np.mean(np.abs(values))),
        rmse=float(np.sqrt(np.mean(values**2))),
    )


def score_sources(errors: Iterable[ErrorRecord]) -> dict[str, SourceAccuracy]:
    """Aggregate error records per source; fields without samples are omitted."""

    grouped: dict[str, list[ErrorRecord]] = defaultdict(list)
    for record in errors:
        grouped[record.source].append(record)

    results: dict[str, SourceAccuracy] = {}
    for source in sorted(grouped):
        records = grouped[source]
        accuracy = SourceAccuracy(source=source, sample_size=len(records))
        for name in FIELDS:
            diffs = [r.differences[name] for r in records if r.differences.get(name) is not None]
            if diffs:
                accuracy.fields[name] = field_accuracy(diffs)
        results[source] = accuracy
    return results


def daily_from_hourly(items: Iterable[Mapping[str, object]], source: str) -> list[ForecastRecord]:
    """
    Reduce an hourly forecast to daily records.

    Temperature gives min and max, precipitation is summed (0 when the day
    has no amounts) and wind speed is averaged.
    """

    by_day: dict[str, list[Mapping[str, object]]] = defaultdict(list)
    for item in items:
        # zone suffixes are ignored; the date part decides the day
        text = str(item.get("time") or "").strip()
        stamp = try_parse_timestamp(_DATE_PART_RE.split(text, maxsplit=1)[0])
        if stamp is None:
            continue
        by_day[f"{stamp:%Y-%m-%d}"].append(item)

    records: list[ForecastRecord] = []
    for day in sorted(by_day):
        hours = by_day[day]
        temps = _numbers(hours, "temperature")
        rain = _numbers(hours, "precipitation")
        wind = _numbers(hours, "wind_speed", "windSpeed")
        records.append(
            ForecastRecord(
                forecast_date=day,
                source=source,
                temp_min=min(temps) if temps else None,
                temp_max=max(temps) if temps else None,
                precipitation=sum(rain) if rain else 0.0,
                wind_speed=sum(wind) / len(wind) if wind else None,
            )
        )
    return records


def _numbers(items: Sequence[Mapping[str, object]], *names: str) -> list[float]:
    values: list[float] = []
    for item in items:
        for name in names:
            number = to_number(item.get(name))
            if number is not None:
                values.append(number)
                break
    return values
