import logging
import random
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta
from pathlib import Path

import pytest

from wxstation.backends import BackendUnavailable, CacheService, ParquetCache
from wxstation.columns import ColumnNotFound
from wxstation.coordinator import DataUnavailable, IngestionCoordinator
from wxstation.files import DataKind, RawFileStore


class FailingCache(CacheService):
    def __init__(self, error: Exception):
        self.error = error
        self.closed = False

    def ensure_cache_for_month(self, kind, month):
        raise self.error

    def ensure_cache_for_range(self, kind, start=None, end=None):
        raise self.error

    def describe_columns(self, handles):
        raise self.error

    def query_grouped(self, handles, resolution, measures, start=None, end=None):
        raise self.error

    def close(self):
        self.closed = True


class BrokenStore(RawFileStore):
    def __init__(self, root, broken_months):
        super().__init__(root)
        self.broken_months = set(broken_months)

    def read(self, path: Path):
        if self.month_of(path) in self.broken_months:
            raise OSError(f"cannot read {path.name}")
        return super().read(path)


def _coordinators(data_dir, tmp_path):
    store = RawFileStore(data_dir)
    fast = IngestionCoordinator(store, ParquetCache(store, tmp_path / "parquet"))
    raw = IngestionCoordinator(store, None)
    return fast, raw


def _assert_rows_match(fast_rows, raw_rows):
    assert [row["key"] for row in fast_rows] == [row["key"] for row in raw_rows]
    for fast_row, raw_row in zip(fast_rows, raw_rows):
        assert set(fast_row) == set(raw_row)
        for name, value in raw_row.items():
            if isinstance(value, float):
                assert fast_row[name] == pytest.approx(value, abs=1e-9)
            else:
                assert fast_row[name] == value


@pytest.mark.parametrize("resolution", ["minute", "hour", "day"])
def test_cache_and_raw_paths_agree_for_month(data_dir, tmp_path, resolution):
    fast, raw = _coordinators(data_dir, tmp_path)
    cached = fast.aggregate(DataKind.MAIN, resolution, month="202507")
    direct = raw.aggregate(DataKind.MAIN, resolution, month="202507")
    assert cached.source == "cache"
    assert direct.source == "raw"
    assert cached.header == direct.header
    assert cached.header[:2] == ["time", "Temperatur Aussen(℃)"]
    assert "Richtung" not in cached.header
    _assert_rows_match(cached.rows, direct.rows)


def test_cache_and_raw_paths_agree_for_range(data_dir, tmp_path):
    fast, raw = _coordinators(data_dir, tmp_path)
    start, end = datetime(2025, 7, 1, 12), datetime(2025, 8, 31)
    cached = fast.aggregate(DataKind.MAIN, "hour", start=start, end=end)
    direct = raw.aggregate(DataKind.MAIN, "hour", start=start, end=end)
    assert cached.header == direct.header
    assert cached.header[-1] == "Luftdruck(hPa)"
    assert cached.file == "202507.parquet,202508.parquet"
    assert direct.file == "202507A.CSV,202508A.CSV"
    _assert_rows_match(cached.rows, direct.rows)
    assert cached.rows[0]["key"] == "2025-07-01 12:00"


def test_hour_average_scenario(data_dir, tmp_path):
    fast, _ = _coordinators(data_dir, tmp_path)
    result = fast.aggregate(DataKind.MAIN, "hour", month="202508")
    (row,) = result.rows
    assert row["time"] == "2025-08-01 00:00"
    assert row["Temperatur Aussen(℃)"] == pytest.approx(21.0)


def test_month_without_export_reports_no_data(data_dir, tmp_path):
    fast, _ = _coordinators(data_dir, tmp_path)
    result = fast.aggregate(DataKind.MAIN, "day", month="202401")
    assert result.no_data
    assert result.source == "none"
    assert result.rows == []
    assert fast.daily_aggregates(datetime(2024, 1, 1), datetime(2024, 1, 31)) == []


def test_month_and_range_are_exclusive(data_dir, tmp_path):
    fast, _ = _coordinators(data_dir, tmp_path)
    with pytest.raises(ValueError):
        fast.aggregate(DataKind.MAIN, "day", month="202507", start=datetime(2025, 7, 1))
    with pytest.raises(ValueError):
        fast.aggregate(DataKind.MAIN, "week", month="202507")


def test_backend_failure_falls_back_to_raw(data_dir):
    cache = FailingCache(BackendUnavailable("engine missing"))
    with IngestionCoordinator(RawFileStore(data_dir), cache) as coordinator:
        result = coordinator.aggregate(DataKind.MAIN, "day", month="202507")
    assert result.source == "raw"
    assert [row["key"] for row in result.rows] == ["2025-07-01", "2025-07-02"]
    assert cache.closed


def test_unexpected_cache_error_propagates(data_dir):
    coordinator = IngestionCoordinator(RawFileStore(data_dir), FailingCache(RuntimeError("bug")))
    with pytest.raises(RuntimeError):
        coordinator.aggregate(DataKind.MAIN, "day", month="202507")


def test_both_paths_failing_raises_data_unavailable(data_dir):
    store = BrokenStore(data_dir, ["202507"])
    coordinator = IngestionCoordinator(store, FailingCache(BackendUnavailable("engine missing")))
    with pytest.raises(DataUnavailable) as info:
        coordinator.aggregate(DataKind.MAIN, "day", month="202507")
    assert isinstance(info.value.fast_error, BackendUnavailable)
    assert isinstance(info.value.fallback_error, OSError)


def test_unreadable_file_is_skipped_in_range(data_dir):
    coordinator = IngestionCoordinator(BrokenStore(data_dir, ["202507"]), None)
    result = coordinator.aggregate(DataKind.MAIN, "day")
    assert result.file == "202508A.CSV"
    assert [row["key"] for row in result.rows] == ["2025-08-01"]


def test_daily_aggregates_agree(data_dir, tmp_path):
    fast, raw = _coordinators(data_dir, tmp_path)
    cached = fast.daily_aggregates()
    direct = raw.daily_aggregates()
    assert [r.to_dict() for r in cached] == [pytest.approx(r.to_dict()) for r in direct]
    first = cached[0]
    assert first.day == "2025-07-01"
    assert first.tmax == 31.0
    assert first.tmin == 18.0
    assert first.rain_day == 6.0
    assert first.gust_max == 30.0
    assert first.tfmax == 32.0
    assert first.wind_avg == pytest.approx(37.0 / 4)


def test_daily_aggregates_convert_mph(tmp_path, export_writer):
    directory = tmp_path / "imperial"
    export_writer(
        directory,
        "202501A.CSV",
        [
            "Time,Outdoor Temperature(℃),Wind Speed(mph),Gust(mph),Daily Rain(mm)",
            "2025/1/5 10:00,1.5,10,20,0.4",
            "2025/1/5 11:00,2.5,20,30,1.2",
        ],
    )
    store = RawFileStore(directory)
    cached = IngestionCoordinator(store, ParquetCache(store, tmp_path / "parquet")).daily_aggregates()
    direct = IngestionCoordinator(store, None).daily_aggregates()
    assert cached[0].wind_max == pytest.approx(32.1868)
    assert cached[0].gust_max == pytest.approx(48.2802)
    assert cached[0].rain_day == pytest.approx(1.2)
    assert cached[0].to_dict() == pytest.approx(direct[0].to_dict())


def test_missing_temperature_raises_column_not_found(tmp_path, export_writer):
    directory = tmp_path / "windonly"
    export_writer(directory, "202501A.CSV", ["Time,Wind(km/h)", "2025/1/5 10:00,3"])
    store = RawFileStore(directory)
    with pytest.raises(ColumnNotFound):
        IngestionCoordinator(store, ParquetCache(store, tmp_path / "parquet")).daily_aggregates()
    with pytest.raises(ColumnNotFound):
        IngestionCoordinator(store, None).daily_aggregates()


def test_channel_statistics(data_dir, tmp_path):
    fast, raw = _coordinators(data_dir, tmp_path)
    stats = fast.channel_statistics("ch2", month="202507")
    assert stats.temperature.max == 30.5
    assert stats.temperature.max_date == "2025-07-01"
    assert stats.temperature.over30.count == 1
    assert stats.feels_like is None
    assert raw.channel_statistics(2, month="202507") == stats


def test_statistics_payload(data_dir, tmp_path):
    fast, _ = _coordinators(data_dir, tmp_path)
    payload = fast.statistics()
    (year,) = payload.years
    assert year.year == 2025
    assert [m.month for m in year.months] == [7, 8]
    assert year.stats.temperature.max == 31.0
    assert year.stats.temperature.over30.items[0].date == "2025-07-01"
    assert fast.months() == ["202507", "202508"]
    assert fast.months(DataKind.ALLSENSORS) == ["202507"]


def test_concurrent_month_builds_all_use_cache(data_dir, tmp_path):
    fast, _ = _coordinators(data_dir, tmp_path)
    with ThreadPoolExecutor(max_workers=6) as pool:
        futures = [pool.submit(fast.aggregate, DataKind.MAIN, "day", month="202507") for _ in range(6)]
        results = [future.result() for future in futures]
    assert [result.source for result in results] == ["cache"] * 6
    assert all(result.rows == results[0].rows for result in results)
    assert list((tmp_path / "parquet").rglob("*.tmp")) == []


def test_converted_speed_columns_name_target_unit(tmp_path, export_writer):
    directory = tmp_path / "imperial"
    export_writer(
        directory,
        "202501A.CSV",
        [
            "Time,Outdoor Temperature(℃),Wind Speed(mph),Gust(mph)",
            "2025/1/5 10:00,1.5,10,20",
            "2025/1/5 10:20,2.5,--,30",
        ],
    )
    store = RawFileStore(directory)
    cached = IngestionCoordinator(store, ParquetCache(store, tmp_path / "parquet")).aggregate(
        DataKind.MAIN, "hour", month="202501"
    )
    direct = IngestionCoordinator(store, None).aggregate(DataKind.MAIN, "hour", month="202501")
    expected = ["time", "Outdoor Temperature(℃)", "Wind Speed(km/h)", "Gust(km/h)"]
    assert cached.header == expected
    assert direct.header == expected
    (row,) = cached.rows
    assert "Wind Speed(mph)" not in row
    assert row["Wind Speed(km/h)"] == pytest.approx(16.0934)
    assert row["Gust(km/h)"] == pytest.approx(25 * 1.60934)
    _assert_rows_match(cached.rows, direct.rows)


def test_raw_only_coordinator_does_not_warn(data_dir, caplog):
    coordinator = IngestionCoordinator(RawFileStore(data_dir), None)
    with caplog.at_level(logging.DEBUG, logger="wxstation.coordinator"):
        result = coordinator.aggregate(DataKind.MAIN, "day", month="202507")
    assert result.source == "raw"
    assert not [record for record in caplog.records if record.levelno >= logging.WARNING]


RANDOM_HEADER = (
    "Time,Outdoor Temperature(℃),Wind Speed(mph),Gust(mph),Daily Rain(mm),"
    "Humidity(%),Direction,Note,Spare"
)


def _random_cell(rng, low, high):
    roll = rng.random()
    if roll < 0.15:
        return "--"
    if roll < 0.2:
        return ""
    return f"{rng.uniform(low, high):.1f}"


def _random_export(rng, year, month):
    lines = [RANDOM_HEADER]
    stamp = datetime(year, month, 1)
    for _ in range(rng.randint(40, 120)):
        stamp += timedelta(minutes=rng.choice([0, 1, 7, 29, 61, 300]))
        time_text = "garbage" if rng.random() < 0.03 else f"{stamp.year}/{stamp.month}/{stamp.day} {stamp.hour}:{stamp:%M}"
        note = rng.choice(["ok", "3.5", "--", "check"])
        lines.append(
            ",".join(
                [
                    time_text,
                    _random_cell(rng, -15, 35),
                    _random_cell(rng, 0, 40),
                    _random_cell(rng, 0, 70),
                    _random_cell(rng, 0, 30),
                    _random_cell(rng, 10, 100),
                    rng.choice(["N", "NE", "SW", "--"]),
                    note,
                    "--",
                ]
            )
        )
    return lines


@pytest.mark.parametrize("seed", [1, 7, 42, 2025])
def test_cache_and_raw_agree_on_generated_exports(tmp_path, export_writer, seed):
    rng = random.Random(seed)
    directory = tmp_path / "generated"
    export_writer(directory, "202501A.CSV", _random_export(rng, 2025, 1))
    export_writer(directory, "202502A.CSV", _random_export(rng, 2025, 2))
    store = RawFileStore(directory)
    fast = IngestionCoordinator(store, ParquetCache(store, tmp_path / "parquet"))
    raw = IngestionCoordinator(store, None)

    start, end = datetime(2025, 1, 3), datetime(2025, 2, 20, 12)
    for resolution in ("minute", "hour", "day"):
        cached = fast.aggregate(DataKind.MAIN, resolution, start=start, end=end)
        direct = raw.aggregate(DataKind.MAIN, resolution, start=start, end=end)
        assert cached.source == "cache"
        assert cached.header == direct.header
        assert "Wind Speed(km/h)" in cached.header
        assert "Note" not in cached.header
        assert "Spare" in cached.header
        _assert_rows_match(cached.rows, direct.rows)

    cached_days = fast.daily_aggregates(start, end)
    direct_days = raw.daily_aggregates(start, end)
    assert [r.to_dict() for r in cached_days] == [pytest.approx(r.to_dict()) for r in direct_days]
