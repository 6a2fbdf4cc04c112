"""Tests for application settings loading."""

import json
from pathlib import Path

from sportsday.config import AppConfig


def test_defaults_without_file(tmp_path: Path) -> None:
    config = AppConfig(str(tmp_path / "missing.json"))

    assert config.get("server", "port") == 8080
    assert config.get("schedule", "configure_on_start") is False
    assert config.is_feature_enabled("live_updates")
    assert config.get("no", "such", "key") is None
    assert not (tmp_path / "missing.json").exists()


def test_file_is_merged_over_defaults(tmp_path: Path) -> None:
    path = tmp_path / "settings.json"
    path.write_text(
        json.dumps({"event_name": "Summer Games", "server": {"port": 9000}}),
        encoding="utf-8",
    )

    config = AppConfig(str(path))

    assert config.get("event_name") == "Summer Games"
    assert config.get("server", "port") == 9000
    assert config.get("server", "host") == "0.0.0.0"
    # defaults are not mutated by loading
    assert AppConfig.DEFAULT_CONFIG["server"]["port"] == 8080


def test_broken_file_falls_back_to_defaults(tmp_path: Path) -> None:
    path = tmp_path / "settings.json"
    path.write_text("{not json", encoding="utf-8")

    assert AppConfig(str(path)).get("event_name") == "Sports Day"


def test_environment_overrides(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.setenv("SPORTSDAY_PORT", "9100")
    monkeypatch.setenv("SPORTSDAY_LIVE_UPDATES", "false")
    monkeypatch.setenv("SPORTSDAY_LOGIN_SECRET", "1234")
    monkeypatch.setenv("SPORTSDAY_LOG_LEVEL", "debug")

    config = AppConfig(str(tmp_path / "missing.json"))

    assert config.get("server", "port") == 9100
    assert not config.is_feature_enabled("live_updates")
    assert config.get("auth", "login_secret") == "1234"
    assert config.get("logging", "level") == "DEBUG"


def test_invalid_values_are_replaced(tmp_path: Path) -> None:
    path = tmp_path / "settings.json"
    path.write_text(
        json.dumps({"server": {"port": 70000}, "logging": {"level": "LOUD", "max_entries": 0}}),
        encoding="utf-8",
    )

    config = AppConfig(str(path))

    assert config.get("server", "port") == 8080
    assert config.get("logging", "level") == "INFO"
    assert config.get("logging", "max_entries") == 500
