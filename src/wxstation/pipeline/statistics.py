"""Extremes, averages and threshold day lists over daily aggregates."""

from __future__ import annotations

import operator
from collections import defaultdict
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Callable, Literal, Sequence

from wxstation.pipeline.daily import DailyAggregateRow

ThresholdOrder = Literal["date", "value_desc", "value_asc"]


@dataclass(frozen=True)
class ThresholdItem:
    date: str
    value: float


@dataclass
class ThresholdList:
    count: int = 0
    items: list[ThresholdItem] = field(default_factory=list)


@dataclass
class TemperatureStats:
    max: float | None = None
    max_date: str | None = None
    min: float | None = None
    min_date: str | None = None
    avg: float | None = None
    over30: ThresholdList = field(default_factory=ThresholdList)
    over25: ThresholdList = field(default_factory=ThresholdList)
    over20: ThresholdList = field(default_factory=ThresholdList)
    under0: ThresholdList = field(default_factory=ThresholdList)
    under10: ThresholdList = field(default_factory=ThresholdList)


@dataclass
class PrecipitationStats:
    total: float | None = None
    max_day: float | None = None
    max_day_date: str | None = None
    min_day: float | None = None
    min_day_date: str | None = None
    over20mm: ThresholdList = field(default_factory=ThresholdList)
    over30mm: ThresholdList = field(default_factory=ThresholdList)
    rain_days: int = 0


@dataclass
class WindStats:
    max: float | None = None
    max_date: str | None = None
    gust_max: float | None = None
    gust_max_date: str | None = None
    avg: float | None = None


@dataclass
class FeelsLikeStats:
    max: float | None = None
    max_date: str | None = None
    min: float | None = None
    min_date: str | None = None


@dataclass
class PeriodStats:
    temperature: TemperatureStats
    precipitation: PrecipitationStats
    wind: WindStats
    feels_like: FeelsLikeStats | None = None


@dataclass
class MonthStats:
    year: int
    month: int
    stats: PeriodStats


@dataclass
class YearStats:
    year: int
    stats: PeriodStats
    months: list[MonthStats] = field(default_factory=list)


@dataclass
class StatisticsPayload:
    updated_at: str
    years: list[YearStats] = field(default_factory=list)

    def to_dict(self) -> dict[str, object]:
        return asdict(self)


def threshold_list(
    rows: Sequence[DailyAggregateRow],
    field_name: str,
    predicate: Callable[[float], bool],
    order: ThresholdOrder = "date",
) -> ThresholdList:
    """
    Collect the days whose ``field_name`` satisfies ``predicate``.

    Items keep the row order (chronological for sorted input) unless a value
    order is requested.
    """

    items: list[ThresholdItem] = []
    for row in rows:
        value = getattr(row, field_name)
        if value is not None and predicate(value):
            items.append(ThresholdItem(date=row.day, value=value))
    if order == "value_desc":
        items.sort(key=lambda item: item.value, reverse=True)
    elif order == "value_asc":
        items.sort(key=lambda item: item.value)
    elif order != "date":
        raise ValueError(f"Unknown threshold order {order!r}")
    return ThresholdList(count=len(items), items=items)


def _extreme(
    rows: Sequence[DailyAggregateRow],
    field_name: str,
    better: Callable[[float, float], bool],
) -> tuple[float | None, str | None]:
    best: float | None = None
    best_date: str | None = None
    for row in rows:
        value = getattr(row, field_name)
        if value is None:
            continue
        # strict comparison keeps the earliest day on ties
        if best is None or better(value, best):
            best, best_date = value, row.day
    return best, best_date


def _mean(rows: Sequence[DailyAggregateRow], field_name: str) -> float | None:
    values = [getattr(row, field_name) for row in rows if getattr(row, field_name) is not None]
    if not values:
        return None
    return sum(values) / len(values)


def compute_period_stats(
    rows: Sequence[DailyAggregateRow],
    order: ThresholdOrder = "date",
) -> PeriodStats:
    """Compute temperature, precipitation, wind and feels-like statistics."""

    rows = sorted(rows, key=lambda row: row.day)
    t_max, t_max_date = _extreme(rows, "tmax", operator.gt)
    t_min, t_min_date = _extreme(rows, "tmin", operator.lt)
    temperature = TemperatureStats(
        max=t_max,
        max_date=t_max_date,
        min=t_min,
        min_date=t_min_date,
        avg=_mean(rows, "tavg"),
        over30=threshold_list(rows, "tmax", lambda v: v > 30, order),
        over25=threshold_list(rows, "tmax", lambda v: v > 25, order),
        over20=threshold_list(rows, "tmax", lambda v: v > 20, order),
        under0=threshold_list(rows, "tmin", lambda v: v < 0, order),
        under10=threshold_list(rows, "tmin", lambda v: v <= -10, order),
    )

    rain_values = [row.rain_day for row in rows if row.rain_day is not None]
    r_max, r_max_date = _extreme(rows, "rain_day", operator.gt)
    r_min, r_min_date = _extreme(rows, "rain_day", operator.lt)
    precipitation = PrecipitationStats(
        total=sum(rain_values) if rain_values else None,
        max_day=r_max,
        max_day_date=r_max_date,
        min_day=r_min,
        min_day_date=r_min_date,
        over20mm=threshold_list(rows, "rain_day", lambda v: v >= 20, order),
        over30mm=threshold_list(rows, "rain_day", lambda v: v >= 30, order),
        rain_days=sum(1 for value in rain_values if value > 0),
    )

    w_max, w_max_date = _extreme(rows, "wind_max", operator.gt)
    g_max, g_max_date = _extreme(rows, "gust_max", operator.gt)
    wind = WindStats(
        max=w_max,
        max_date=w_max_date,
        gust_max=g_max,
        gust_max_date=g_max_date,
        avg=_mean(rows, "wind_avg"),
    )

    f_max, f_max_date = _extreme(rows, "tfmax", operator.gt)
    f_min, f_min_date = _extreme(rows, "tfmin", operator.lt)
    feels_like = None
    if f_max is not None or f_min is not None:
        feels_like = FeelsLikeStats(max=f_max, max_date=f_max_date, min=f_min, min_date=f_min_date)

    return PeriodStats(
        temperature=temperature,
        precipitation=precipitation,
        wind=wind,
        feels_like=feels_like,
    )


def build_year_stats(
    rows: Sequence[DailyAggregateRow],
    order: ThresholdOrder = "date",
) -> list[YearStats]:
    """Group rows by year (newest first) and month (ascending) and compute each."""

    by_year: dict[int, list[DailyAggregateRow]] = defaultdict(list)
    for row in rows:
        if len(row.day) < 10:
            continue
        by_year[row.year].append(row)

    years: list[YearStats] = []
    for year in sorted(by_year, reverse=True):
        year_rows = by_year[year]
        by_month: dict[int, list[DailyAggregateRow]] = defaultdict(list)
        for row in year_rows:
            by_month[row.month].append(row)
        months = [
            MonthStats(year=year, month=month, stats=compute_period_stats(by_month[month], order))
            for month in sorted(by_month)
        ]
        years.append(YearStats(year=year, stats=compute_period_stats(year_rows, order), months=months))
    return years


def build_statistics(
    rows: Sequence[DailyAggregateRow],
    order: ThresholdOrder = "date",
    now: datetime | None = None,
) -> StatisticsPayload:
    now = now or datetime.now(timezone.utc)
    return StatisticsPayload(updated_at=now.isoformat(), years=build_year_stats(rows, order))
