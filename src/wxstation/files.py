"""Locate monthly station exports on disk."""

from __future__ import annotations

import logging
import re
from datetime import datetime
from enum import Enum
from pathlib import Path

from wxstation.rows import ParsedCsv, load_csv
from wxstation.timeparse import month_bounds, parse_month

LOGGER = logging.getLogger("wxstation.files")


class DataKind(str, Enum):
    """Export families written by the station console."""

    MAIN = "main"
    ALLSENSORS = "allsensors"

    @property
    def suffix(self) -> str:
        return "A" if self is DataKind.MAIN else "Allsensors_A"

    @property
    def pattern(self) -> re.Pattern[str]:
        return re.compile(rf"^(\d{{6}}){re.escape(self.suffix)}\.CSV$", re.IGNORECASE)

    def filename(self, month: str) -> str:
        parse_month(month)
        return f"{month}{self.suffix}.CSV"


class RawFileStore:
    """Read-only view over the directory holding ``YYYYMM<suffix>.CSV`` files."""

    def __init__(self, root: Path | str) -> None:
        self.root = Path(root)

    def _scan(self, kind: DataKind) -> dict[str, Path]:
        if not self.root.is_dir():
            LOGGER.warning("Data directory %s does not exist", self.root)
            return {}
        found: dict[str, Path] = {}
        for path in sorted(self.root.iterdir()):
            match = kind.pattern.match(path.name)
            if match and path.is_file():
                found.setdefault(match.group(1), path)
        return dict(sorted(found.items()))

    def months_available(self, kind: DataKind) -> list[str]:
        """Return every ``YYYYMM`` with an export of ``kind``, ascending."""

        return list(self._scan(kind))

    def file_for_month(self, kind: DataKind, month: str) -> Path | None:
        """Return the export for exactly ``month`` or ``None``."""

        path = self.root / kind.filename(month)
        if path.is_file():
            return path
        return self._scan(kind).get(month)

    def latest_file(self, kind: DataKind) -> Path | None:
        files = self._scan(kind)
        if not files:
            return None
        return files[max(files)]

    def files_in_range(
        self,
        kind: DataKind,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[Path]:
        """
        Return exports whose month intersects ``[start, end]``.

        A missing bound leaves that side open. The result is sorted by month
        and contains each file once.
        """

        if start is not None and end is not None and start > end:
            return []
        selected: list[Path] = []
        for month, path in self._scan(kind).items():
            first, last = month_bounds(month)
            if start is not None and last < start:
                continue
            if end is not None and first > end:
                continue
            if path not in selected:
                selected.append(path)
        return selected

    def month_of(self, path: Path) -> str | None:
        for kind in DataKind:
            match = kind.pattern.match(Path(path).name)
            if match:
                return match.group(1)
        return None

    def read(self, path: Path) -> ParsedCsv:
        return load_csv(path)
