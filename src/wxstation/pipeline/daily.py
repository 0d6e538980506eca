"""Daily aggregate rows built from discovered station or channel columns."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Iterable, Mapping

from wxstation.columns import (
    FEELS_LIKE,
    GUST,
    RAIN_DAILY,
    RAIN_GENERIC,
    RAIN_HOURLY,
    TEMPERATURE,
    WIND,
    ColumnHints,
)
from wxstation.measures import Aggregation, Measure

RAIN_FAMILIES = ("rain_daily", "rain_hourly", "rain_generic")


@dataclass(frozen=True)
class DailyAggregateRow:
    """One calendar day of station aggregates; any field may be missing."""

    day: str
    tmax: float | None = None
    tmin: float | None = None
    tavg: float | None = None
    rain_day: float | None = None
    wind_max: float | None = None
    gust_max: float | None = None
    wind_avg: float | None = None
    tfmax: float | None = None
    tfmin: float | None = None

    @property
    def year(self) -> int:
        return int(self.day[:4])

    @property
    def month(self) -> int:
        return int(self.day[5:7])

    def to_dict(self) -> dict[str, object]:
        return asdict(self)


def _temperature_measures(hints: ColumnHints) -> list[Measure]:
    temp = tuple(hints.specs(TEMPERATURE))
    feels = tuple(hints.specs(FEELS_LIKE))
    return [
        Measure("tmax", temp, Aggregation.MAX),
        Measure("tmin", temp, Aggregation.MIN),
        Measure("tavg", temp, Aggregation.MEAN),
        Measure("tfmax", feels, Aggregation.MAX),
        Measure("tfmin", feels, Aggregation.MIN),
    ]


def daily_measures(hints: ColumnHints) -> list[Measure]:
    """
    Measures behind :class:`DailyAggregateRow` for the main station export.

    A daily rain counter is cumulative, so its daily value is the maximum;
    hourly and generic amounts are summed.
    """

    wind = tuple(hints.specs(WIND))
    return _temperature_measures(hints) + [
        Measure("rain_daily", tuple(hints.specs(RAIN_DAILY)), Aggregation.MAX),
        Measure("rain_hourly", tuple(hints.specs(RAIN_HOURLY)), Aggregation.SUM),
        Measure("rain_generic", tuple(hints.specs(RAIN_GENERIC)), Aggregation.SUM),
        Measure("wind_max", wind, Aggregation.MAX),
        Measure("gust_max", tuple(hints.specs(GUST)), Aggregation.MAX),
        Measure("wind_avg", wind, Aggregation.MEAN),
    ]


def channel_daily_measures(hints: ColumnHints) -> list[Measure]:
    """Temperature and feels-like measures for one auxiliary channel."""

    return _temperature_measures(hints)


def _number(row: Mapping[str, object], name: str) -> float | None:
    value = row.get(name)
    return float(value) if isinstance(value, (int, float)) else None


def to_daily_rows(rows: Iterable[Mapping[str, object]]) -> list[DailyAggregateRow]:
    """Turn day-bucket rows into :class:`DailyAggregateRow` objects."""

    result: list[DailyAggregateRow] = []
    for row in rows:
        rain = next(
            (_number(row, name) for name in RAIN_FAMILIES if _number(row, name) is not None),
            None,
        )
        result.append(
            DailyAggregateRow(
                day=str(row["key"]),
                tmax=_number(row, "tmax"),
                tmin=_number(row, "tmin"),
                tavg=_number(row, "tavg"),
                rain_day=rain,
                wind_max=_number(row, "wind_max"),
                gust_max=_number(row, "gust_max"),
                wind_avg=_number(row, "wind_avg"),
                tfmax=_number(row, "tfmax"),
                tfmin=_number(row, "tfmin"),
            )
        )
    return result
