"""Parse raw station CSV exports into typed readings."""

from __future__ import annotations

import io
import logging
import math
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Iterable, Mapping, Sequence

import pandas as pd

LOGGER = logging.getLogger("wxstation.rows")

NULL_TOKENS = frozenset({"--", "-", "n/a", "", "null", "nan", "none"})
TIME_COLUMNS = ("Time", "Zeit", "time", "ts")

Value = float | str | None


def coerce_value(raw: object) -> Value:
    """
    Turn a raw cell into a float, ``None`` for sentinels, or the original text.

    Never raises: anything that is not a number passes through as a string.
    """

    if raw is None:
        return None
    if isinstance(raw, bool):
        return float(raw)
    if isinstance(raw, (int, float)):
        value = float(raw)
        return value if math.isfinite(value) else None
    text = str(raw).strip()
    if text.lower() in NULL_TOKENS:
        return None
    cleaned = text.replace("−", "-")
    try:
        value = float(cleaned)
    except ValueError:
        if cleaned.count(",") != 1:
            return text
        try:
            value = float(cleaned.replace(",", "."))
        except ValueError:
            return text
    return value if math.isfinite(value) else None


def to_number(raw: object) -> float | None:
    """Coerce and keep only numeric results."""

    value = coerce_value(raw)
    return value if isinstance(value, float) else None


@dataclass(frozen=True)
class Reading:
    """One timestamped observation; the value mapping is read-only."""

    time: str
    values: Mapping[str, Value] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "values", MappingProxyType(dict(self.values)))

    def get(self, column: str) -> Value:
        return self.values.get(column)


@dataclass
class ParsedCsv:
    header: list[str]
    readings: list[Reading]

    @property
    def empty(self) -> bool:
        return not self.readings


def parse_csv(content: str) -> ParsedCsv:
    """
    Parse CSV text whose first column holds the timestamp.

    Rows without a timestamp are skipped; ``--`` and empty cells become ``None``.
    """

    if not content or not content.strip():
        return ParsedCsv(header=[], readings=[])
    try:
        frame = pd.read_csv(
            io.StringIO(content),
            dtype=str,
            keep_default_na=False,
            skip_blank_lines=True,
            skipinitialspace=True,
            index_col=False,
            on_bad_lines="skip",
        )
    except pd.errors.EmptyDataError:
        return ParsedCsv(header=[], readings=[])
    header = [str(name).strip() for name in frame.columns]
    frame.columns = header
    if not header:
        return ParsedCsv(header=[], readings=[])

    time_col = header[0]
    value_cols = header[1:]
    readings: list[Reading] = []
    for record in frame.to_dict("records"):
        stamp = (record.get(time_col) or "").strip()
        if not stamp:
            continue
        values = {col: coerce_value(record.get(col)) for col in value_cols}
        readings.append(Reading(time=stamp, values=values))
    return ParsedCsv(header=header, readings=readings)


def read_csv_file(path: Path) -> str:
    """Read an export, trying UTF-8 first and Latin-1 for older firmware files."""

    path = Path(path)
    with path.open("rb") as handle:
        payload = handle.read()
    try:
        return payload.decode("utf-8-sig")
    except UnicodeDecodeError:
        LOGGER.info("%s is not UTF-8, decoding as latin-1", path.name)
        return payload.decode("latin-1")


def load_csv(path: Path) -> ParsedCsv:
    return parse_csv(read_csv_file(path))


def numeric_columns(header: Sequence[str], readings: Iterable[Reading]) -> list[str]:
    """
    Return value columns whose non-null cells are all numeric, in header order.
    """

    value_cols = [col for col in header[1:] if col not in TIME_COLUMNS]
    textual: set[str] = set()
    for reading in readings:
        for col in value_cols:
            if col in textual:
                continue
            value = reading.values.get(col)
            if value is not None and not isinstance(value, float):
                textual.add(col)
    return [col for col in value_cols if col not in textual]
