"""Route queries through the columnar cache and fall back to the raw exports."""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Callable, Generic, Sequence, TypeVar

from wxstation.backends.base import BackendUnavailable, CacheService
from wxstation.columns import (
    TEMPERATURE,
    ColumnHints,
    ColumnNotFound,
    discover_channel_columns,
    discover_station_columns,
    numeric_column_names,
    order_columns,
)
from wxstation.errors import WxStationError
from wxstation.files import DataKind, RawFileStore
from wxstation.measures import Measure, mean_measures
from wxstation.pipeline.buckets import aggregate_measures
from wxstation.pipeline.daily import (
    DailyAggregateRow,
    channel_daily_measures,
    daily_measures,
    to_daily_rows,
)
from wxstation.pipeline.statistics import (
    PeriodStats,
    StatisticsPayload,
    ThresholdOrder,
    build_statistics,
    compute_period_stats,
)
from wxstation.rows import Reading, numeric_columns
from wxstation.timeparse import Resolution, month_bounds, parse_month
from wxstation.units import ColumnSpec

LOGGER = logging.getLogger("wxstation.coordinator")

T = TypeVar("T")

TIME_HEADER = "time"


class NoMatchingFiles(WxStationError):
    """Raised when a scope resolves to zero files."""


class DataUnavailable(WxStationError):
    """Raised when both the cache and the raw exports failed for one query."""

    def __init__(
        self,
        message: str,
        *,
        fast_error: BaseException | None = None,
        fallback_error: BaseException | None = None,
    ) -> None:
        super().__init__(message)
        self.fast_error = fast_error
        self.fallback_error = fallback_error


# Failures of the cache path that the raw exports can still answer.
RecoverableError = (BackendUnavailable, NoMatchingFiles, ColumnNotFound)

_FALLBACK_ERRORS = (WxStationError, OSError, ValueError)


@dataclass
class AggregateResult:
    """Bucketed rows for one scope; ``source`` is ``cache``, ``raw`` or ``none``."""

    file: str
    header: list[str]
    rows: list[dict[str, object]]
    source: str
    no_data: bool = False

    def to_dict(self) -> dict[str, object]:
        return asdict(self)


@dataclass
class FastPathOutcome(Generic[T]):
    result: T | None = None
    error: BaseException | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class RawScope:
    """Readings of every export that could be read for one scope."""

    files: list[Path] = field(default_factory=list)
    header: list[str] = field(default_factory=list)
    readings: list[Reading] = field(default_factory=list)

    @property
    def label(self) -> str:
        return ",".join(path.name for path in self.files)


def _check_scope(month: str | None, start: datetime | None, end: datetime | None) -> None:
    if month is not None and (start is not None or end is not None):
        raise ValueError("Pass either a month or a start/end range, not both")
    if month is not None:
        parse_month(month)


def _average_measures(hints: ColumnHints | None, names: Sequence[str]) -> list[Measure]:
    speed = hints.speed_specs() if hints is not None else {}
    return mean_measures(speed.get(name, ColumnSpec(name)) for name in names)


def _header(measures: Sequence[Measure]) -> list[str]:
    return [TIME_HEADER, *(measure.alias for measure in measures)]


class IngestionCoordinator:
    """
    Answer month or range queries from the cache, or from raw CSV exports.

    Every query runs in two phases: the cache path returns a
    :class:`FastPathOutcome`, and only a recoverable error sends the same
    query to the raw files. Both paths share column discovery, header
    ordering and measure definitions, so they produce the same rows.
    """

    def __init__(self, raw_store: RawFileStore, cache: CacheService | None = None) -> None:
        self.raw_store = raw_store
        self.cache = cache

    def __enter__(self) -> "IngestionCoordinator":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def close(self) -> None:
        if self.cache is not None:
            self.cache.close()

    # -- handle resolution -------------------------------------------------

    def resolve_for_month(self, kind: DataKind, month: str) -> Path | None:
        parse_month(month)
        if self.cache is None:
            raise BackendUnavailable("No cache backend configured")
        return self.cache.ensure_cache_for_month(kind, month)

    def resolve_for_range(
        self,
        kind: DataKind,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[Path]:
        if self.cache is None:
            raise BackendUnavailable("No cache backend configured")
        handles = self.cache.ensure_cache_for_range(kind, start, end)
        return list(dict.fromkeys(handles))

    def _handles(
        self,
        kind: DataKind,
        month: str | None,
        start: datetime | None,
        end: datetime | None,
    ) -> list[Path]:
        if month is not None:
            handle = self.resolve_for_month(kind, month)
            handles = [handle] if handle is not None else []
        else:
            handles = self.resolve_for_range(kind, start, end)
        if not handles:
            raise NoMatchingFiles(f"No {kind.value} files for {month or 'range'}")
        return handles

    # -- two-phase execution -----------------------------------------------

    def _try_cache(self, query: Callable[[], T]) -> FastPathOutcome[T]:
        if self.cache is None:
            return FastPathOutcome(error=BackendUnavailable("No cache backend configured"))
        try:
            return FastPathOutcome(result=query())
        except RecoverableError as exc:
            return FastPathOutcome(error=exc)

    def _run(self, what: str, fast: Callable[[], T], fallback: Callable[[], T]) -> T:
        outcome = self._try_cache(fast)
        if outcome.ok:
            return outcome.result
        if self.cache is None:
            LOGGER.debug("No cache configured, reading raw exports for %s", what)
        elif isinstance(outcome.error, BackendUnavailable):
            LOGGER.warning("Cache path failed for %s, reading raw exports: %s", what, outcome.error)
        else:
            LOGGER.info("Cache path could not answer %s, reading raw exports: %s", what, outcome.error)
        try:
            return fallback()
        except ColumnNotFound:
            raise
        except _FALLBACK_ERRORS as exc:
            raise DataUnavailable(
                f"No data source could answer {what}: cache: {outcome.error}; raw: {exc}",
                fast_error=outcome.error,
                fallback_error=exc,
            ) from exc

    def load_raw(
        self,
        kind: DataKind,
        month: str | None = None,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> RawScope:
        """Parse the raw exports for a scope, skipping files that cannot be read."""

        if month is not None:
            path = self.raw_store.file_for_month(kind, month)
            paths = [path] if path is not None else []
        else:
            paths = self.raw_store.files_in_range(kind, start, end)

        scope = RawScope()
        last_error: Exception | None = None
        for path in paths:
            try:
                parsed = self.raw_store.read(path)
            except (OSError, ValueError) as exc:
                LOGGER.warning("Skipping unreadable export %s: %s", path.name, exc)
                last_error = exc
                continue
            scope.files.append(path)
            if not parsed.header:
                continue
            if not scope.header:
                scope.header.append(parsed.header[0])
            for name in parsed.header[1:]:
                if name not in scope.header:
                    scope.header.append(name)
            scope.readings.extend(parsed.readings)
        if paths and not scope.files and last_error is not None:
            raise last_error
        return scope

    # -- queries -----------------------------------------------------------

    def _hints_for(self, kind: DataKind, names: Sequence[str]) -> ColumnHints | None:
        if kind is DataKind.MAIN:
            return discover_station_columns(names)
        return None

    def aggregate(
        self,
        kind: DataKind,
        resolution: Resolution | str,
        month: str | None = None,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> AggregateResult:
        """Average every numeric column per time bucket for a month or a range."""

        _check_scope(month, start, end)
        resolution = Resolution(resolution)
        cache = self.cache

        def fast() -> AggregateResult:
            handles = self._handles(kind, month, start, end)
            columns = cache.describe_columns(handles)
            names = [column.name for column in columns]
            hints = self._hints_for(kind, names)
            numeric = numeric_column_names((c.name, c.inferred_type) for c in columns)
            ordered = order_columns(hints, names, numeric)
            measures = _average_measures(hints, ordered)
            rows = cache.query_grouped(handles, resolution, measures, start, end)
            return AggregateResult(
                file=cache.label(handles),
                header=_header(measures),
                rows=rows,
                source="cache",
            )

        def fallback() -> AggregateResult:
            scope = self.load_raw(kind, month, start, end)
            if not scope.files:
                return AggregateResult(file="", header=[], rows=[], source="none", no_data=True)
            hints = self._hints_for(kind, scope.header)
            numeric = numeric_columns(scope.header, scope.readings)
            ordered = order_columns(hints, scope.header, numeric)
            measures = _average_measures(hints, ordered)
            rows = aggregate_measures(scope.readings, resolution, measures, start, end)
            return AggregateResult(
                file=scope.label,
                header=_header(measures),
                rows=rows,
                source="raw",
            )

        return self._run(f"{kind.value} {month or 'range'} aggregate", fast, fallback)

    def _daily(
        self,
        kind: DataKind,
        discover: Callable[[Sequence[str]], ColumnHints],
        build_measures: Callable[[ColumnHints], list[Measure]],
        start: datetime | None,
        end: datetime | None,
        what: str,
    ) -> list[DailyAggregateRow]:
        cache = self.cache

        def fast() -> list[DailyAggregateRow]:
            handles = self._handles(kind, None, start, end)
            names = [column.name for column in cache.describe_columns(handles)]
            hints = discover(names)
            hints.require(TEMPERATURE)
            rows = cache.query_grouped(handles, Resolution.DAY, build_measures(hints), start, end)
            return to_daily_rows(rows)

        def fallback() -> list[DailyAggregateRow]:
            scope = self.load_raw(kind, None, start, end)
            if not scope.files:
                return []
            hints = discover(scope.header)
            hints.require(TEMPERATURE)
            rows = aggregate_measures(
                scope.readings, Resolution.DAY, build_measures(hints), start, end
            )
            return to_daily_rows(rows)

        return self._run(what, fast, fallback)

    def daily_aggregates(
        self,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[DailyAggregateRow]:
        """Daily station aggregates; an empty list means no exports in range."""

        return self._daily(
            DataKind.MAIN,
            discover_station_columns,
            daily_measures,
            start,
            end,
            "daily aggregates",
        )

    def channel_daily(
        self,
        channel: str | int,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[DailyAggregateRow]:
        """Daily temperature and feels-like aggregates for one auxiliary channel."""

        return self._daily(
            DataKind.ALLSENSORS,
            lambda names: discover_channel_columns(names, channel),
            channel_daily_measures,
            start,
            end,
            f"channel {channel} daily aggregates",
        )

    def statistics(self, order: ThresholdOrder = "date") -> StatisticsPayload:
        """Year and month statistics over every main export."""

        return build_statistics(self.daily_aggregates(), order)

    def range_statistics(
        self,
        start: datetime | None = None,
        end: datetime | None = None,
        order: ThresholdOrder = "date",
    ) -> PeriodStats:
        return compute_period_stats(self.daily_aggregates(start, end), order)

    def channel_statistics(
        self,
        channel: str | int,
        month: str | None = None,
        start: datetime | None = None,
        end: datetime | None = None,
        order: ThresholdOrder = "date",
    ) -> PeriodStats:
        _check_scope(month, start, end)
        if month is not None:
            start, end = month_bounds(month)
        return compute_period_stats(self.channel_daily(channel, start, end), order)

    def months(self, kind: DataKind = DataKind.MAIN) -> list[str]:
        return self.raw_store.months_available(kind)
