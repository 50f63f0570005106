from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from pathlib import Path
from typing import Optional


class WorkState(str, Enum):
    WORKING = "working"
    RESTING = "resting"
    IDLE = "idle"

    @property
    def label(self) -> str:
        return self.value.capitalize()

    @classmethod
    def from_label(cls, raw: str) -> "WorkState":
        return cls(raw.strip().lower())


class MonitorStatus(str, Enum):
    OK = "ok"
    PERMISSION_DENIED = "permission_denied"
    UNAVAILABLE = "unavailable"
    STOPPED = "stopped"


@dataclass(frozen=True)
class AccrualTotals:
    work: int = 0
    rest: int = 0
    idle: int = 0

    @property
    def total(self) -> int:
        return self.work + self.rest + self.idle

    @property
    def productivity(self) -> float:
        if self.total <= 0:
            return 0.0
        return self.work / self.total * 100.0

    def plus(self, other: "AccrualTotals") -> "AccrualTotals":
        return AccrualTotals(
            work=self.work + other.work,
            rest=self.rest + other.rest,
            idle=self.idle + other.idle,
        )


@dataclass(frozen=True)
class ActivitySample:
    idle_seconds: float
    foreground_app: Optional[str]
    work_focus_active: bool = False
    sampled_at: Optional[datetime] = None


@dataclass(frozen=True)
class Snapshot:
    recorded_at: datetime
    state: WorkState
    totals: AccrualTotals
    id: Optional[int] = None


@dataclass(frozen=True)
class StateChange:
    previous: WorkState
    current: WorkState
    changed_at: datetime
    previous_duration: float = 0.0
    manual: bool = False


@dataclass
class DayStatistics:
    day: date
    totals: AccrualTotals = field(default_factory=AccrualTotals)
    entries: int = 0

    def summary(self) -> str:
        work = format_duration(self.totals.work)
        rest = format_duration(self.totals.rest)
        idle = format_duration(self.totals.idle)
        return f"Work: {work}, Rest: {rest}, Idle: {idle} | Productivity: {self.totals.productivity:.1f}%"


@dataclass(frozen=True)
class DatabaseInfo:
    path: Path
    total_entries: int
    oldest_entry: Optional[datetime]
    newest_entry: Optional[datetime]
    size_bytes: int


def format_duration(seconds: float) -> str:
    minutes = int(seconds) // 60
    hours, minutes = divmod(minutes, 60)
    if hours:
        return f"{hours}h {minutes}m"
    return f"{minutes}m"
