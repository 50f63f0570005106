from __future__ import annotations

from pathlib import Path

import pytest

from balancelog.config import DEFAULT_IDLE_THRESHOLD_SECONDS, ConfigurationInvalid, build_settings

ENV_KEYS = [
    "AUTO_DETECT_WORK",
    "IDLE_THRESHOLD_SECONDS",
    "WORKING_APPS",
    "TICK_SECONDS",
    "FLUSH_INTERVAL_SECONDS",
    "RESUME_FROM_IDLE",
    "FOCUS_MODE_INTEGRATION",
    "FOCUS_POLL_SECONDS",
    "WORK_HOURS",
    "TIMEZONE",
    "DATA_DIR",
    "DB_PATH",
    "LOG_DIR",
    "LOG_LEVEL",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for key in ENV_KEYS:
        monkeypatch.delenv(key, raising=False)


def test_defaults():
    settings = build_settings()
    tracking = settings.tracking
    assert tracking.auto_detect_work is True
    assert tracking.idle_threshold_seconds == 300
    assert tracking.work_app_names == ("Xcode", "Visual Studio Code", "Terminal")
    assert tracking.tick_seconds == 1
    assert tracking.flush_interval_seconds == 60
    assert tracking.resume_from_idle is False
    assert settings.focus.enabled is False
    assert settings.storage.db_path.name == "balancelog.db"
    assert settings.problems == ()


def test_environment_overrides(monkeypatch, tmp_path):
    monkeypatch.setenv("AUTO_DETECT_WORK", "off")
    monkeypatch.setenv("IDLE_THRESHOLD_SECONDS", "120")
    monkeypatch.setenv("WORKING_APPS", "Editor , Terminal,")
    monkeypatch.setenv("TIMEZONE", "Europe/Berlin")
    monkeypatch.setenv("DB_PATH", str(tmp_path / "custom.db"))
    monkeypatch.setenv("WORK_HOURS", "8-16")

    settings = build_settings()

    assert settings.tracking.auto_detect_work is False
    assert settings.tracking.idle_threshold_seconds == 120
    assert settings.tracking.work_app_names == ("Editor", "Terminal")
    assert str(settings.timezone) == "Europe/Berlin"
    assert settings.storage.db_path == Path(tmp_path / "custom.db").resolve()
    assert (settings.focus.work_start_hour, settings.focus.work_end_hour) == (8, 16)


@pytest.mark.parametrize("raw", ["-5", "soon"])
def test_invalid_threshold_is_clamped_to_default(monkeypatch, raw):
    monkeypatch.setenv("IDLE_THRESHOLD_SECONDS", raw)
    settings = build_settings()
    assert settings.tracking.idle_threshold_seconds == DEFAULT_IDLE_THRESHOLD_SECONDS
    assert len(settings.problems) == 1
    assert isinstance(settings.problems[0], ConfigurationInvalid)
    assert "IDLE_THRESHOLD_SECONDS" in str(settings.problems[0])


def test_zero_flush_interval_is_rejected(monkeypatch):
    monkeypatch.setenv("FLUSH_INTERVAL_SECONDS", "0")
    settings = build_settings()
    assert settings.tracking.flush_interval_seconds == 60
    assert settings.problems


def test_bad_work_hours_fall_back(monkeypatch):
    monkeypatch.setenv("WORK_HOURS", "17-9")
    settings = build_settings()
    assert (settings.focus.work_start_hour, settings.focus.work_end_hour) == (9, 17)
    assert settings.problems
