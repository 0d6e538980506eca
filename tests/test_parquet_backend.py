import os
from datetime import datetime

import pytest

from wxstation.backends import BackendUnavailable, ParquetCache
from wxstation.files import DataKind, RawFileStore
from wxstation.measures import Aggregation, Measure
from wxstation.units import ColumnSpec


@pytest.fixture
def cache(data_dir, tmp_path):
    return ParquetCache(RawFileStore(data_dir), tmp_path / "parquet")


def test_materializes_month_once(cache, monkeypatch):
    calls = []
    original = cache._materialize

    def counting(csv_path, pq_path):
        calls.append(csv_path.name)
        original(csv_path, pq_path)

    monkeypatch.setattr(cache, "_materialize", counting)

    handle = cache.ensure_cache_for_month(DataKind.MAIN, "202507")
    assert handle.exists()
    assert handle.name == "202507.parquet"
    cache.ensure_cache_for_month(DataKind.MAIN, "202507")
    assert calls == ["202507A.CSV"]

    csv_path = cache.raw_store.file_for_month(DataKind.MAIN, "202507")
    future = handle.stat().st_mtime + 60
    os.utime(csv_path, (future, future))
    cache.ensure_cache_for_month(DataKind.MAIN, "202507")
    assert calls == ["202507A.CSV", "202507A.CSV"]


def test_missing_month_has_no_handle(cache):
    assert cache.ensure_cache_for_month(DataKind.MAIN, "202401") is None
    assert cache.ensure_cache_for_range(DataKind.MAIN, datetime(2024, 1, 1), datetime(2024, 2, 1)) == []


def test_describe_columns_unions_schemas(cache):
    handles = cache.ensure_cache_for_range(DataKind.MAIN)
    assert [h.name for h in handles] == ["202507.parquet", "202508.parquet"]
    types = {c.name: c.inferred_type for c in cache.describe_columns(handles)}
    assert types["Zeit"] == "VARCHAR"
    assert types["Temperatur Aussen(℃)"] == "DOUBLE"
    assert types["Richtung"] == "VARCHAR"
    assert types["Luftdruck(hPa)"] == "DOUBLE"
    assert types["ts"] == "TIMESTAMP"


def test_query_grouped_average_by_hour(cache):
    handle = cache.ensure_cache_for_month(DataKind.MAIN, "202508")
    rows = cache.query_grouped_average(
        [handle],
        "hour",
        [ColumnSpec("Temperatur Aussen(℃)"), ColumnSpec("Luftdruck(hPa)")],
    )
    assert rows == [
        {
            "key": "2025-08-01 00:00",
            "time": "2025-08-01 00:00",
            "Temperatur Aussen(℃)": pytest.approx(21.0),
            "Luftdruck(hPa)": pytest.approx(1012.25),
        }
    ]


def test_query_grouped_measures_and_bounds(cache):
    handle = cache.ensure_cache_for_month(DataKind.MAIN, "202507")
    temp = (ColumnSpec("Temperatur Aussen(℃)"),)
    rows = cache.query_grouped(
        [handle],
        "day",
        [
            Measure("tmax", temp, Aggregation.MAX),
            Measure("rain", (ColumnSpec("Regen/Tag(mm)"),), Aggregation.MAX),
            Measure("gust", (ColumnSpec("Böe(km/h)"),), Aggregation.MAX),
        ],
        start=datetime(2025, 7, 2),
    )
    assert rows == [{"key": "2025-07-02", "time": "2025-07-02", "tmax": 28.0, "rain": 0.0, "gust": 12.0}]


def test_unreadable_cache_file_is_unavailable(cache, tmp_path):
    broken = tmp_path / "broken.parquet"
    broken.write_bytes(b"not parquet")
    with pytest.raises(BackendUnavailable):
        cache.describe_columns([broken])
    with pytest.raises(BackendUnavailable):
        cache.query_grouped_average([broken], "day", [ColumnSpec("x")])
