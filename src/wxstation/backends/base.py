"""Core interface for columnar cache backends."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Sequence

from wxstation.errors import WxStationError
from wxstation.files import DataKind
from wxstation.measures import Measure, mean_measures
from wxstation.timeparse import Resolution
from wxstation.units import ColumnSpec

Row = dict[str, object]


class BackendUnavailable(WxStationError):
    """Raised when a cache backend cannot materialize or query its files."""


@dataclass(frozen=True)
class ColumnInfo:
    name: str
    inferred_type: str


class CacheService(ABC):
    """Abstract base class for queryable columnar caches of the raw exports."""

    @abstractmethod
    def ensure_cache_for_month(self, kind: DataKind, month: str) -> Path | None:
        """Materialize the cache file for ``month``; ``None`` when no export exists."""

    @abstractmethod
    def ensure_cache_for_range(
        self,
        kind: DataKind,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[Path]:
        """Materialize every cache file whose month intersects the range, in month order."""

    @abstractmethod
    def describe_columns(self, handles: Sequence[Path]) -> list[ColumnInfo]:
        """Return the union of columns over ``handles`` with an inferred type name."""

    @abstractmethod
    def query_grouped(
        self,
        handles: Sequence[Path],
        resolution: Resolution,
        measures: Sequence[Measure],
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[Row]:
        """
        Bucket readings by ``resolution`` and evaluate ``measures`` per bucket.

        Rows carry ``key`` and ``time`` (the bucket label) and one entry per
        measure that saw at least one value, ordered by key.
        """

    def query_grouped_average(
        self,
        handles: Sequence[Path],
        resolution: Resolution,
        specs: Sequence[ColumnSpec],
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[Row]:
        return self.query_grouped(handles, resolution, mean_measures(specs), start, end)

    def label(self, handles: Sequence[Path]) -> str:
        return ",".join(Path(handle).name for handle in handles)

    def close(self) -> None:
        """Release connections or open readers held by the backend."""
