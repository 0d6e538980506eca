"""In-process time bucketing for parsed readings."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable, Sequence

from wxstation.measures import Aggregation, Measure, mean_measures
from wxstation.rows import Reading, to_number
from wxstation.timeparse import Resolution, bucket_key, try_parse_timestamp
from wxstation.units import ColumnSpec


@dataclass
class Accumulator:
    """Running sum, count and extremes for one column in one bucket."""

    total: float = 0.0
    count: int = 0
    high: float | None = None
    low: float | None = None

    def add(self, value: float) -> None:
        self.total += value
        self.count += 1
        if self.high is None or value > self.high:
            self.high = value
        if self.low is None or value < self.low:
            self.low = value

    def result(self, how: Aggregation) -> float | None:
        if self.count == 0:
            return None
        if how is Aggregation.MEAN:
            return self.total / self.count
        if how is Aggregation.MAX:
            return self.high
        if how is Aggregation.MIN:
            return self.low
        return self.total


@dataclass
class Bucket:
    key: str
    columns: dict[str, Accumulator] = field(default_factory=dict)

    def add(self, column: str, value: float) -> None:
        self.columns.setdefault(column, Accumulator()).add(value)

    def finalize(self, measures: Sequence[Measure]) -> dict[str, object]:
        row: dict[str, object] = {"key": self.key, "time": self.key}
        for measure in measures:
            acc = self.columns.get(measure.alias)
            value = acc.result(measure.how) if acc else None
            if value is not None:
                row[measure.alias] = value
        return row


def _in_bounds(dt: datetime, start: datetime | None, end: datetime | None) -> bool:
    if start is not None and dt < start:
        return False
    if end is not None and dt > end:
        return False
    return True


def aggregate_measures(
    readings: Iterable[Reading],
    resolution: Resolution | str,
    measures: Sequence[Measure],
    start: datetime | None = None,
    end: datetime | None = None,
) -> list[dict[str, object]]:
    """
    Evaluate ``measures`` over readings grouped into resolution buckets.

    Readings outside ``[start, end]`` or with unparseable timestamps are
    dropped. Rows come back in ascending key order; a measure with no value
    in a bucket is left out of that row.
    """

    resolution = Resolution(resolution)
    buckets: dict[str, Bucket] = {}
    for reading in readings:
        dt = try_parse_timestamp(reading.time)
        if dt is None or not _in_bounds(dt, start, end):
            continue
        key = bucket_key(dt, resolution)
        bucket = buckets.get(key)
        if bucket is None:
            bucket = buckets[key] = Bucket(key=key)
        for measure in measures:
            value = measure.pick(reading.values)
            if value is not None:
                bucket.add(measure.alias, value)
    return [buckets[key].finalize(measures) for key in sorted(buckets)]


def aggregate_readings(
    readings: Iterable[Reading],
    resolution: Resolution | str,
    start: datetime | None = None,
    end: datetime | None = None,
    specs: Sequence[ColumnSpec] | None = None,
) -> list[dict[str, object]]:
    """
    Average every numeric column per bucket.

    Without ``specs`` every column holding a number is averaged as-is;
    with ``specs`` only those columns are used, converted to their target unit.
    """

    readings = list(readings)
    if specs is None:
        names: list[str] = []
        for reading in readings:
            for name, value in reading.values.items():
                if name not in names and to_number(value) is not None:
                    names.append(name)
        specs = [ColumnSpec(name) for name in names]
    return aggregate_measures(readings, resolution, mean_measures(specs), start, end)
