"""Declarative aggregation descriptors shared by the cache and in-process paths."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Mapping

from wxstation.rows import Value, to_number
from wxstation.units import ColumnSpec


class Aggregation(str, Enum):
    MEAN = "mean"
    MAX = "max"
    MIN = "min"
    SUM = "sum"


@dataclass(frozen=True)
class Measure:
    """
    One output column of a grouped query.

    ``sources`` are coalesced per reading: the first one holding a number
    (after its unit conversion) supplies the value.
    """

    alias: str
    sources: tuple[ColumnSpec, ...]
    how: Aggregation = Aggregation.MEAN

    def __post_init__(self) -> None:
        object.__setattr__(self, "sources", tuple(self.sources))
        object.__setattr__(self, "how", Aggregation(self.how))

    @property
    def source_names(self) -> list[str]:
        return [spec.name for spec in self.sources]

    def pick(self, values: Mapping[str, Value]) -> float | None:
        for spec in self.sources:
            number = to_number(values.get(spec.name))
            if number is not None:
                return spec.convert(number)
        return None


def mean_measures(specs: Iterable[ColumnSpec]) -> list[Measure]:
    """
    One averaging measure per column, named by :attr:`ColumnSpec.label`.

    A converted label that clashes with another column keeps the source name
    with the target unit appended.
    """

    specs = list(specs)
    taken = {spec.name for spec in specs}
    measures: list[Measure] = []
    for spec in specs:
        alias = spec.label
        if alias != spec.name and alias in taken:
            alias = f"{spec.name} ({spec.target.value})"
        taken.add(alias)
        measures.append(Measure(alias=alias, sources=(spec,)))
    return measures
