"""Command-line entry point for wxstation."""

from __future__ import annotations

import json
import logging
from dataclasses import asdict
from datetime import datetime, timedelta
from pathlib import Path

import click

from wxstation.backends.parquet_backend import ParquetCache
from wxstation.config import (
    get_cache_dir,
    get_data_dir,
    get_forecast_sources,
    get_forecast_url,
    get_station_id,
    get_stats_max_age_hours,
    get_stats_path,
)
from wxstation.coordinator import IngestionCoordinator
from wxstation.files import DataKind, RawFileStore
from wxstation.forecast_client import ForecastClient, parse_daily
from wxstation.pipeline.forecast import actual_from_daily, compare, join_records, score_sources
from wxstation.storage import update_statistics_if_needed
from wxstation.timeparse import InvalidTimestamp, Resolution, parse_timestamp


def _timestamp(ctx, param, value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        return parse_timestamp(value)
    except InvalidTimestamp as exc:
        raise click.BadParameter(str(exc)) from exc


def _echo(data: object) -> None:
    click.echo(json.dumps(data, indent=2, default=str))


@click.group()
@click.option("--data-dir", type=click.Path(path_type=Path), default=None, help="Raw CSV export directory.")
@click.option("--cache-dir", type=click.Path(path_type=Path), default=None, help="Parquet cache directory.")
@click.option("--no-cache", is_flag=True, help="Read the raw exports only.")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging.")
@click.pass_context
def main(ctx, data_dir: Path | None, cache_dir: Path | None, no_cache: bool, verbose: bool) -> None:
    """
    Aggregate weather station exports and score forecasts.
    """

    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    store = RawFileStore(data_dir or get_data_dir())
    cache = None if no_cache else ParquetCache(store, cache_dir or get_cache_dir())
    ctx.obj = ctx.with_resource(IngestionCoordinator(store, cache))


@main.command()
@click.option("--kind", type=click.Choice([k.value for k in DataKind]), default=DataKind.MAIN.value)
@click.option("--resolution", type=click.Choice([r.value for r in Resolution]), default=Resolution.MINUTE.value)
@click.option("--month", default=None, help="Month as YYYYMM.")
@click.option("--start", callback=_timestamp, default=None, help="Inclusive range start.")
@click.option("--end", callback=_timestamp, default=None, help="Inclusive range end.")
@click.pass_obj
def aggregate(coordinator: IngestionCoordinator, kind: str, resolution: str, month, start, end) -> None:
    """Print time-bucketed averages as JSON."""

    if month and (start or end):
        raise click.UsageError("Use --month or --start/--end, not both.")
    result = coordinator.aggregate(DataKind(kind), resolution, month=month, start=start, end=end)
    _echo(result.to_dict())


@main.command()
@click.option("--stats-path", type=click.Path(path_type=Path), default=None)
@click.option("--force", is_flag=True, help="Recompute even if the snapshot is fresh.")
@click.pass_obj
def stats(coordinator: IngestionCoordinator, stats_path: Path | None, force: bool) -> None:
    """Print yearly and monthly statistics, refreshing the snapshot when stale."""

    max_age = timedelta(0) if force else timedelta(hours=get_stats_max_age_hours())
    _echo(update_statistics_if_needed(coordinator, stats_path or get_stats_path(), max_age))


@main.command("range-stats")
@click.option("--start", callback=_timestamp, default=None)
@click.option("--end", callback=_timestamp, default=None)
@click.option("--order", type=click.Choice(["date", "value_desc", "value_asc"]), default="date")
@click.pass_obj
def range_stats(coordinator: IngestionCoordinator, start, end, order: str) -> None:
    """Print statistics for an arbitrary range."""

    _echo(asdict(coordinator.range_statistics(start, end, order)))


@main.command("channel-stats")
@click.argument("channel")
@click.option("--month", default=None)
@click.option("--start", callback=_timestamp, default=None)
@click.option("--end", callback=_timestamp, default=None)
@click.pass_obj
def channel_stats(coordinator: IngestionCoordinator, channel: str, month, start, end) -> None:
    """Print temperature statistics for one auxiliary channel (e.g. ch3)."""

    try:
        result = coordinator.channel_statistics(channel, month=month, start=start, end=end)
    except ValueError as exc:
        raise click.UsageError(str(exc)) from exc
    _echo(asdict(result))


@main.command()
@click.option("--start", callback=_timestamp, default=None)
@click.option("--end", callback=_timestamp, default=None)
@click.option("--station", default=None, help="Forecast station id.")
@click.option(
    "--forecasts",
    "forecasts_path",
    type=click.Path(exists=True, path_type=Path),
    default=None,
    help="JSON file of stored daily forecasts instead of the forecast service.",
)
@click.pass_obj
def accuracy(coordinator: IngestionCoordinator, start, end, station, forecasts_path) -> None:
    """Score forecast sources against observed daily aggregates (MAE/RMSE)."""

    if forecasts_path is not None:
        with forecasts_path.open("r", encoding="utf-8") as handle:
            items = json.load(handle)
        forecasts = []
        for source in sorted({str(item.get("source", "")) for item in items}):
            forecasts.extend(parse_daily([i for i in items if i.get("source") == source], source))
    else:
        base_url = get_forecast_url()
        station_id = station or get_station_id()
        if not base_url or not station_id:
            raise click.UsageError(
                "Set WXSTATION_FORECAST_URL and a station id, or pass --forecasts."
            )
        forecasts = ForecastClient(base_url).fetch_all(station_id, get_forecast_sources())

    actuals = [actual_from_daily(row) for row in coordinator.daily_aggregates(start, end)]
    errors = [compare(actual, forecast) for actual, forecast in join_records(actuals, forecasts)]
    _echo({source: asdict(score) for source, score in score_sources(errors).items()})


@main.command()
@click.option("--kind", type=click.Choice([k.value for k in DataKind]), default=DataKind.MAIN.value)
@click.pass_obj
def months(coordinator: IngestionCoordinator, kind: str) -> None:
    """List months with a raw export."""

    _echo(coordinator.months(DataKind(kind)))


if __name__ == "__main__":
    main()
