from __future__ import annotations

import os
from dataclasses import dataclass, field
from datetime import datetime, tzinfo
from functools import lru_cache
from pathlib import Path
from typing import List, Tuple
from zoneinfo import ZoneInfo

from dotenv import load_dotenv

from .classifier import parse_work_apps

DEFAULT_IDLE_THRESHOLD_SECONDS = 300
DEFAULT_WORKING_APPS = "Xcode, Visual Studio Code, Terminal"


class ConfigurationInvalid(ValueError):
    pass


@dataclass(frozen=True)
class TrackingSettings:
    auto_detect_work: bool
    idle_threshold_seconds: int
    work_app_names: Tuple[str, ...]
    tick_seconds: int = 1
    flush_interval_seconds: int = 60
    resume_from_idle: bool = False


@dataclass(frozen=True)
class FocusSettings:
    enabled: bool
    poll_seconds: int = 30
    work_start_hour: int = 9
    work_end_hour: int = 17


@dataclass(frozen=True)
class StorageSettings:
    data_dir: Path
    db_path: Path


@dataclass(frozen=True)
class LoggingSettings:
    directory: Path
    level: str = "INFO"


@dataclass(frozen=True)
class AppSettings:
    timezone: tzinfo
    tracking: TrackingSettings
    focus: FocusSettings
    storage: StorageSettings
    logging: LoggingSettings
    problems: Tuple[ConfigurationInvalid, ...] = field(default_factory=tuple)


@lru_cache(maxsize=1)
def get_settings() -> AppSettings:
    dotenv_path = Path(__file__).resolve().parents[1] / ".env"
    load_dotenv(dotenv_path=dotenv_path, override=False, encoding="utf-8-sig")
    return build_settings()


def build_settings() -> AppSettings:
    """Read the current environment into settings without touching .env."""
    problems: List[ConfigurationInvalid] = []

    tz_name = os.getenv("TIMEZONE", "").strip()
    timezone = ZoneInfo(tz_name) if tz_name else _local_timezone()

    tracking = TrackingSettings(
        auto_detect_work=_as_bool(os.getenv("AUTO_DETECT_WORK"), default=True),
        idle_threshold_seconds=_as_int("IDLE_THRESHOLD_SECONDS", DEFAULT_IDLE_THRESHOLD_SECONDS, 0, problems),
        work_app_names=parse_work_apps(os.getenv("WORKING_APPS", DEFAULT_WORKING_APPS)),
        tick_seconds=_as_int("TICK_SECONDS", 1, 1, problems),
        flush_interval_seconds=_as_int("FLUSH_INTERVAL_SECONDS", 60, 1, problems),
        resume_from_idle=_as_bool(os.getenv("RESUME_FROM_IDLE"), default=False),
    )

    start_hour, end_hour = _parse_hours(os.getenv("WORK_HOURS", "9-17"), problems)
    focus = FocusSettings(
        enabled=_as_bool(os.getenv("FOCUS_MODE_INTEGRATION"), default=False),
        poll_seconds=_as_int("FOCUS_POLL_SECONDS", 30, 1, problems),
        work_start_hour=start_hour,
        work_end_hour=end_hour,
    )

    data_dir = Path(os.getenv("DATA_DIR", "data")).resolve()
    db_raw = os.getenv("DB_PATH")
    storage = StorageSettings(
        data_dir=data_dir,
        db_path=Path(db_raw).resolve() if db_raw else data_dir / "balancelog.db",
    )

    logging_settings = LoggingSettings(
        directory=Path(os.getenv("LOG_DIR", "logs")).resolve(),
        level=os.getenv("LOG_LEVEL", "INFO").upper(),
    )

    return AppSettings(
        timezone=timezone,
        tracking=tracking,
        focus=focus,
        storage=storage,
        logging=logging_settings,
        problems=tuple(problems),
    )


def _local_timezone() -> tzinfo:
    return datetime.now().astimezone().tzinfo


def _as_int(key: str, default: int, minimum: int, problems: List[ConfigurationInvalid]) -> int:
    raw = os.getenv(key)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw.strip())
    except ValueError:
        problems.append(ConfigurationInvalid(f"{key}={raw!r} is not an integer; using {default}"))
        return default
    if value < minimum:
        problems.append(ConfigurationInvalid(f"{key}={value} is below {minimum}; using {default}"))
        return default
    return value


def _parse_hours(raw: str, problems: List[ConfigurationInvalid]) -> Tuple[int, int]:
    try:
        start_text, end_text = raw.split("-", 1)
        start, end = int(start_text), int(end_text)
    except ValueError:
        problems.append(ConfigurationInvalid(f"WORK_HOURS={raw!r} is not of the form START-END; using 9-17"))
        return 9, 17
    if not (0 <= start < end <= 24):
        problems.append(ConfigurationInvalid(f"WORK_HOURS={raw!r} is out of range; using 9-17"))
        return 9, 17
    return start, end


def _as_bool(raw: str | None, default: bool | None = None) -> bool:
    if raw is None or not raw.strip():
        if default is None:
            return False
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}
