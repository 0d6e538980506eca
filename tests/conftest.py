from pathlib import Path

import pytest

MAIN_HEADER = "Zeit,Temperatur Aussen(℃),Gefühlte Temperatur(℃),Wind(km/h),Böe(km/h),Regen/Tag(mm),Richtung"

JULY_ROWS = [
    "2025/7/1 0:00,18.0,17.5,5.0,9.0,0.0,N",
    "2025/7/1 0:30,19.0,18.5,7.0,11.0,0.0,N",
    "2025/7/1 12:00,31.0,32.0,15.0,30.0,4.2,NW",
    "2025/7/1 18:00,25.0,--,10.0,20.0,6.0,W",
    "2025/7/2 6:00,16.0,15.0,--,--,0.0,S",
    "2025/7/2 14:00,28.0,29.0,7.5,12.0,0.0,S",
]

AUGUST_ROWS = [
    "2025/8/1 0:03,20.0,19.0,3.6,7.2,0.0,N,1012.5",
    "2025/8/1 0:31,22.0,21.0,4.0,8.0,1.5,NE,1012.0",
]

ALLSENSORS_ROWS = [
    "Zeit,CH1 Temperatur(℃),CH1 Luftfeuchtigkeit(%),CH2 Temperatur(℃)",
    "2025/7/1 0:00,21.0,50,12.0",
    "2025/7/1 12:00,23.5,48,30.5",
    "2025/7/2 0:00,22.0,--,14.0",
]


def write_export(directory: Path, name: str, lines: list[str]) -> Path:
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / name
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return path


@pytest.fixture
def data_dir(tmp_path) -> Path:
    directory = tmp_path / "DNT"
    write_export(directory, "202507A.CSV", [MAIN_HEADER, *JULY_ROWS])
    write_export(directory, "202508A.CSV", [MAIN_HEADER + ",Luftdruck(hPa)", *AUGUST_ROWS])
    write_export(directory, "202507Allsensors_A.CSV", ALLSENSORS_ROWS)
    (directory / "notes.txt").write_text("not an export", encoding="utf-8")
    return directory


@pytest.fixture
def export_writer():
    return write_export
