"""Parquet-backed implementation of :class:`CacheService`."""

from __future__ import annotations

import logging
import os
import tempfile
from datetime import datetime
from pathlib import Path
from typing import Sequence

import numpy as np
import pandas as pd
import pyarrow as pa
import pyarrow.parquet as pq

from wxstation.backends.base import BackendUnavailable, CacheService, ColumnInfo, Row
from wxstation.config import ensure_dir
from wxstation.files import DataKind, RawFileStore
from wxstation.measures import Aggregation, Measure
from wxstation.rows import ParsedCsv, numeric_columns, to_number
from wxstation.timeparse import Resolution, try_parse_timestamp

LOGGER = logging.getLogger("wxstation.backends")

TS_COLUMN = "ts"

_KEY_FORMATS = {
    Resolution.DAY: "%Y-%m-%d",
    Resolution.HOUR: "%Y-%m-%d %H:00",
    Resolution.MINUTE: "%Y-%m-%d %H:%M",
}

_CACHE_ERRORS = (OSError, ValueError, KeyError, pa.ArrowException)


def _type_name(arrow_type: pa.DataType) -> str:
    if pa.types.is_timestamp(arrow_type) or pa.types.is_date(arrow_type):
        return "TIMESTAMP"
    if pa.types.is_boolean(arrow_type):
        return "BOOLEAN"
    if pa.types.is_integer(arrow_type):
        return "BIGINT"
    if pa.types.is_floating(arrow_type):
        return "DOUBLE"
    if pa.types.is_null(arrow_type):
        return "DOUBLE"
    return "VARCHAR"


def parsed_to_frame(parsed: ParsedCsv) -> pd.DataFrame:
    """
    Convert a parsed export to a typed frame with a ``ts`` timestamp column.

    Columns whose cells are all numeric (or empty) become float64; anything
    else is stored as text so mixed columns survive the round trip.
    """

    if not parsed.header:
        return pd.DataFrame({TS_COLUMN: pd.Series([], dtype="datetime64[ns]")})
    time_col = parsed.header[0]
    numeric = set(numeric_columns(parsed.header, parsed.readings))
    data: dict[str, object] = {
        time_col: pd.Series([r.time for r in parsed.readings], dtype=object),
    }
    for col in parsed.header[1:]:
        if col == TS_COLUMN or col in data:
            continue
        cells = [r.values.get(col) for r in parsed.readings]
        if col in numeric:
            data[col] = pd.Series(
                [np.nan if cell is None else cell for cell in cells],
                dtype="float64",
            )
        else:
            data[col] = pd.Series(
                [None if cell is None else str(cell) for cell in cells],
                dtype=object,
            )
    stamps = [try_parse_timestamp(r.time) for r in parsed.readings]
    data[TS_COLUMN] = pd.to_datetime(pd.Series(stamps, dtype=object))
    return pd.DataFrame(data)


class ParquetCache(CacheService):
    """Materialize monthly CSV exports as Parquet files and query them with pandas."""

    def __init__(self, raw_store: RawFileStore, cache_dir: Path | str) -> None:
        self.raw_store = raw_store
        self.cache_dir = Path(cache_dir)

    def _cache_path(self, kind: DataKind, month: str) -> Path:
        return self.cache_dir / kind.value / f"{month}.parquet"

    def _needs_build(self, csv_path: Path, pq_path: Path) -> bool:
        if not pq_path.exists():
            return True
        return pq_path.stat().st_mtime < csv_path.stat().st_mtime

    def _materialize(self, csv_path: Path, pq_path: Path) -> None:
        frame = parsed_to_frame(self.raw_store.read(csv_path))
        ensure_dir(pq_path.parent)
        # one temp file per writer; concurrent builds of a month each publish a whole file
        fd, tmp_name = tempfile.mkstemp(dir=pq_path.parent, prefix=f".{pq_path.stem}.", suffix=".parquet.tmp")
        os.close(fd)
        tmp_path = Path(tmp_name)
        try:
            frame.to_parquet(tmp_path, engine="pyarrow", index=False)
            os.replace(tmp_path, pq_path)
        finally:
            if tmp_path.exists():
                tmp_path.unlink()
        LOGGER.info("Materialized %s -> %s (%d rows)", csv_path.name, pq_path, len(frame))

    def ensure_cache_for_month(self, kind: DataKind, month: str) -> Path | None:
        csv_path = self.raw_store.file_for_month(kind, month)
        if csv_path is None:
            return None
        pq_path = self._cache_path(kind, month)
        try:
            if self._needs_build(csv_path, pq_path):
                self._materialize(csv_path, pq_path)
        except _CACHE_ERRORS as exc:
            raise BackendUnavailable(f"Could not materialize {csv_path.name}: {exc}") from exc
        return pq_path

    def ensure_cache_for_range(
        self,
        kind: DataKind,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[Path]:
        handles: list[Path] = []
        for csv_path in self.raw_store.files_in_range(kind, start, end):
            month = self.raw_store.month_of(csv_path)
            if month is None:
                continue
            handle = self.ensure_cache_for_month(kind, month)
            if handle is not None and handle not in handles:
                handles.append(handle)
        return handles

    def describe_columns(self, handles: Sequence[Path]) -> list[ColumnInfo]:
        types: dict[str, str] = {}
        try:
            for handle in handles:
                schema = pq.read_schema(handle)
                for arrow_field in schema:
                    kind = _type_name(arrow_field.type)
                    if types.get(arrow_field.name) == "VARCHAR":
                        continue
                    if arrow_field.name in types and kind == "DOUBLE":
                        continue
                    types[arrow_field.name] = kind
        except _CACHE_ERRORS as exc:
            raise BackendUnavailable(f"Could not read Parquet schema: {exc}") from exc
        return [ColumnInfo(name=name, inferred_type=kind) for name, kind in types.items()]

    def _load(self, handles: Sequence[Path]) -> pd.DataFrame:
        frames = [pd.read_parquet(handle, engine="pyarrow") for handle in handles]
        if not frames:
            return pd.DataFrame({TS_COLUMN: pd.Series([], dtype="datetime64[ns]")})
        return pd.concat(frames, ignore_index=True, sort=False)

    def query_grouped(
        self,
        handles: Sequence[Path],
        resolution: Resolution,
        measures: Sequence[Measure],
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[Row]:
        resolution = Resolution(resolution)
        try:
            frame = self._load(handles)
        except _CACHE_ERRORS as exc:
            raise BackendUnavailable(f"Could not read Parquet cache: {exc}") from exc

        frame = frame[frame[TS_COLUMN].notna()]
        if start is not None:
            frame = frame[frame[TS_COLUMN] >= pd.Timestamp(start)]
        if end is not None:
            frame = frame[frame[TS_COLUMN] <= pd.Timestamp(end)]
        if frame.empty:
            return []

        keys = frame[TS_COLUMN].dt.strftime(_KEY_FORMATS[resolution])
        values = pd.DataFrame({"key": keys})
        for measure in measures:
            values[measure.alias] = _measure_series(frame, measure)

        grouped = values.groupby("key", sort=True)
        results: dict[str, pd.Series] = {}
        for measure in measures:
            column = grouped[measure.alias]
            if measure.how is Aggregation.MEAN:
                results[measure.alias] = column.mean()
            elif measure.how is Aggregation.MAX:
                results[measure.alias] = column.max()
            elif measure.how is Aggregation.MIN:
                results[measure.alias] = column.min()
            else:
                results[measure.alias] = column.sum(min_count=1)

        rows: list[Row] = []
        for key in grouped.size().index:
            row: Row = {"key": key, "time": key}
            for alias, series in results.items():
                value = series.get(key)
                if value is not None and not pd.isna(value):
                    row[alias] = float(value)
            rows.append(row)
        return rows


def _measure_series(frame: pd.DataFrame, measure: Measure) -> pd.Series:
    combined = pd.Series(np.nan, index=frame.index, dtype="float64")
    for spec in measure.sources:
        if spec.name not in frame.columns:
            continue
        column = frame[spec.name]
        if column.dtype == object:
            column = column.map(to_number)
        column = pd.to_numeric(column, errors="coerce").astype("float64")
        if spec.needs_conversion:
            column = column.map(spec.convert).astype("float64")
        combined = combined.fillna(column)
    return combined
