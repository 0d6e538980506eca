from datetime import datetime

import pytest

from wxstation.files import DataKind, RawFileStore


def test_months_available_per_kind(data_dir):
    store = RawFileStore(data_dir)
    assert store.months_available(DataKind.MAIN) == ["202507", "202508"]
    assert store.months_available(DataKind.ALLSENSORS) == ["202507"]


def test_file_for_month_and_latest(data_dir):
    store = RawFileStore(data_dir)
    assert store.file_for_month(DataKind.MAIN, "202507").name == "202507A.CSV"
    assert store.file_for_month(DataKind.MAIN, "202401") is None
    assert store.latest_file(DataKind.MAIN).name == "202508A.CSV"
    assert store.month_of(data_dir / "202507Allsensors_A.CSV") == "202507"
    with pytest.raises(ValueError):
        store.file_for_month(DataKind.MAIN, "2025-07")


def test_files_in_range_intersects_months(data_dir):
    store = RawFileStore(data_dir)
    names = [p.name for p in store.files_in_range(DataKind.MAIN, datetime(2025, 7, 31, 12), datetime(2025, 8, 1))]
    assert names == ["202507A.CSV", "202508A.CSV"]
    only_august = store.files_in_range(DataKind.MAIN, start=datetime(2025, 8, 1))
    assert [p.name for p in only_august] == ["202508A.CSV"]
    assert store.files_in_range(DataKind.MAIN, datetime(2025, 9, 1), datetime(2025, 7, 1)) == []


def test_missing_directory_is_empty(tmp_path):
    store = RawFileStore(tmp_path / "absent")
    assert store.months_available(DataKind.MAIN) == []
    assert store.latest_file(DataKind.MAIN) is None
