"""Cache backends for wxstation."""

from __future__ import annotations

from .base import BackendUnavailable, CacheService, ColumnInfo
from .parquet_backend import ParquetCache

__all__ = [
    "BackendUnavailable",
    "CacheService",
    "ColumnInfo",
    "ParquetCache",
]
