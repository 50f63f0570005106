from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from balancelog.config import AppSettings, FocusSettings, LoggingSettings, StorageSettings, TrackingSettings
from balancelog.models import ActivitySample, MonitorStatus

UTC = timezone.utc


class FakeSampler:
    def __init__(self, idle_seconds: float = 0.0, foreground_app: str | None = None, work_focus_active: bool = False):
        self.idle_seconds = idle_seconds
        self.foreground_app = foreground_app
        self.work_focus_active = work_focus_active
        self.status = MonitorStatus.STOPPED
        self.started = False
        self.stopped = False

    def start(self) -> MonitorStatus:
        self.started = True
        self.status = MonitorStatus.OK
        return self.status

    def stop(self) -> None:
        self.stopped = True

    def sample(self) -> ActivitySample:
        return ActivitySample(
            idle_seconds=self.idle_seconds,
            foreground_app=self.foreground_app,
            work_focus_active=self.work_focus_active,
        )


class FakeClock:
    def __init__(self, start: datetime):
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, seconds: float = 1) -> datetime:
        self.current += timedelta(seconds=seconds)
        return self.current


@pytest.fixture
def log() -> logging.Logger:
    return logging.getLogger("balancelog.tests")


@pytest.fixture
def settings(tmp_path: Path) -> AppSettings:
    return AppSettings(
        timezone=UTC,
        tracking=TrackingSettings(
            auto_detect_work=True,
            idle_threshold_seconds=300,
            work_app_names=("Editor",),
        ),
        focus=FocusSettings(enabled=False),
        storage=StorageSettings(data_dir=tmp_path, db_path=tmp_path / "balancelog.db"),
        logging=LoggingSettings(directory=tmp_path / "logs"),
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2026, 3, 4, 10, 0, 0, tzinfo=UTC))


def with_tracking(settings: AppSettings, **changes) -> AppSettings:
    return replace(settings, tracking=replace(settings.tracking, **changes))
