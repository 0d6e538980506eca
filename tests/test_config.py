from pathlib import Path

from wxstation import config


def test_defaults_under_repo_root(monkeypatch):
    for name in ("WXSTATION_DATA_DIR", "WXSTATION_CACHE_DIR", "WXSTATION_STATS_PATH", "WXSTATION_FORECAST_SOURCES"):
        monkeypatch.delenv(name, raising=False)
    assert config.get_data_dir() == config.REPO_ROOT / "DNT"
    assert config.get_cache_dir() == config.REPO_ROOT / "data" / "parquet"
    assert config.get_forecast_sources() == ["geosphere", "openweather", "meteoblue", "openmeteo"]


def test_env_overrides(monkeypatch, tmp_path):
    monkeypatch.setenv("WXSTATION_DATA_DIR", str(tmp_path / "exports"))
    monkeypatch.setenv("WXSTATION_STATS_PATH", "out/stats.json")
    monkeypatch.setenv("WXSTATION_FORECAST_URL", "https://forecast.test/")
    monkeypatch.setenv("WXSTATION_FORECAST_SOURCES", "OpenMeteo, geosphere,")
    monkeypatch.setenv("WXSTATION_STATS_MAX_AGE_HOURS", "not a number")

    assert config.get_data_dir() == tmp_path / "exports"
    assert config.get_stats_path() == (config.REPO_ROOT / "out" / "stats.json").resolve()
    assert config.get_forecast_url() == "https://forecast.test"
    assert config.get_forecast_sources() == ["openmeteo", "geosphere"]
    assert config.get_stats_max_age_hours() == 24.0


def test_ensure_dir(tmp_path):
    target = config.ensure_dir(Path(tmp_path) / "a" / "b")
    assert target.is_dir()
