"""Pipeline helpers for bucketing readings and deriving statistics and scores."""

from __future__ import annotations

from .buckets import aggregate_measures, aggregate_readings
from .daily import DailyAggregateRow, channel_daily_measures, daily_measures, to_daily_rows
from .forecast import (
    actual_from_daily,
    actual_from_imperial,
    compare,
    daily_from_hourly,
    join_records,
    score_sources,
)
from .statistics import (
    StatisticsPayload,
    build_statistics,
    build_year_stats,
    compute_period_stats,
    threshold_list,
)

__all__ = [
    "DailyAggregateRow",
    "StatisticsPayload",
    "actual_from_daily",
    "actual_from_imperial",
    "aggregate_measures",
    "aggregate_readings",
    "build_statistics",
    "build_year_stats",
    "channel_daily_measures",
    "compare",
    "compute_period_stats",
    "daily_from_hourly",
    "daily_measures",
    "join_records",
    "score_sources",
    "threshold_list",
    "to_daily_rows",
]
