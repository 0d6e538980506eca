"""Unit-tagged column descriptors and the conversions they apply."""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum


class Unit(str, Enum):
    """Units that appear in vendor headers or forecast payloads."""

    CELSIUS = "degC"
    FAHRENHEIT = "degF"
    MILLIMETER = "mm"
    INCH = "in"
    KMH = "km/h"
    MPS = "m/s"
    MPH = "mph"
    KNOT = "kn"
    NONE = ""


MPH_TO_KMH = 1.60934
MPS_TO_KMH = 3.6
KNOT_TO_KMH = 1.852
INCH_TO_MM = 25.4

_SPEED_TO_KMH = {
    Unit.KMH: 1.0,
    Unit.MPS: MPS_TO_KMH,
    Unit.MPH: MPH_TO_KMH,
    Unit.KNOT: KNOT_TO_KMH,
}

_MPS_RE = re.compile(r"m\s*/\s*s\b|\(\s*ms\s*\)|\bm s-1\b", re.IGNORECASE)
_MPH_RE = re.compile(r"mph", re.IGNORECASE)
_KNOT_RE = re.compile(r"\(\s*(kn|kt|kts|knots?)\s*\)|\bknots?\b", re.IGNORECASE)
_UNIT_SUFFIX_RE = re.compile(r"\(([^()]*)\)\s*$")


def fahrenheit_to_celsius(value: float | None) -> float | None:
    if value is None:
        return None
    return (value - 32.0) * 5.0 / 9.0


def inch_to_mm(value: float | None) -> float | None:
    if value is None:
        return None
    return value * INCH_TO_MM


def mph_to_kmh(value: float | None) -> float | None:
    if value is None:
        return None
    return value * MPH_TO_KMH


def convert(value: float | None, source: Unit, target: Unit) -> float | None:
    """
    Convert ``value`` between two units of the same quantity.

    Identical units and untagged values pass through unchanged.
    """

    if value is None or source == target or Unit.NONE in (source, target):
        return value
    if source in _SPEED_TO_KMH and target in _SPEED_TO_KMH:
        return value * _SPEED_TO_KMH[source] / _SPEED_TO_KMH[target]
    if source is Unit.FAHRENHEIT and target is Unit.CELSIUS:
        return fahrenheit_to_celsius(value)
    if source is Unit.CELSIUS and target is Unit.FAHRENHEIT:
        return value * 9.0 / 5.0 + 32.0
    if source is Unit.INCH and target is Unit.MILLIMETER:
        return inch_to_mm(value)
    if source is Unit.MILLIMETER and target is Unit.INCH:
        return value / INCH_TO_MM
    raise ValueError(f"Cannot convert {source.value!r} to {target.value!r}")


def speed_unit_for(name: str) -> Unit:
    """Detect the speed unit written into a wind or gust header."""

    if "km/h" in name.lower() or "kmh" in name.lower():
        return Unit.KMH
    if _MPH_RE.search(name):
        return Unit.MPH
    if _KNOT_RE.search(name):
        return Unit.KNOT
    if _MPS_RE.search(name):
        return Unit.MPS
    return Unit.KMH


@dataclass(frozen=True)
class ColumnSpec:
    """A physical column plus the unit conversion applied before aggregation."""

    name: str
    unit: Unit = Unit.NONE
    target: Unit = Unit.NONE

    @property
    def needs_conversion(self) -> bool:
        return self.unit != self.target and Unit.NONE not in (self.unit, self.target)

    @property
    def label(self) -> str:
        """Output name; a converted column names its target unit instead of the source unit."""

        if not self.needs_conversion:
            return self.name
        unit = f"({self.target.value})"
        if _UNIT_SUFFIX_RE.search(self.name):
            return _UNIT_SUFFIX_RE.sub(unit, self.name)
        return f"{self.name} {unit}"

    def convert(self, value: float | None) -> float | None:
        return convert(value, self.unit, self.target)

    @classmethod
    def speed(cls, name: str) -> "ColumnSpec":
        return cls(name=name, unit=speed_unit_for(name), target=Unit.KMH)
