from __future__ import annotations

import subprocess
import sys
import time
from datetime import datetime
from enum import Enum
from typing import Callable, Optional

from .config import FocusSettings


class FocusMode(str, Enum):
    WORK = "work"
    DO_NOT_DISTURB = "do-not-disturb"
    SLEEP = "sleep"
    INACTIVE = "inactive"

    @property
    def work_related(self) -> bool:
        return self is FocusMode.WORK


class FocusModeProbe:
    """Best-effort detection of a work focus mode.

    macOS exposes no public API for the active Focus, so detection falls back on the
    Do Not Disturb default and then on work-hour and sleep-hour heuristics. Results
    are cached for ``poll_seconds``.
    """

    def __init__(
        self,
        settings: FocusSettings,
        log,
        now: Callable[[], datetime] = datetime.now,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._settings = settings
        self._logger = log
        self._now = now
        self._clock = clock
        self._mode = FocusMode.INACTIVE
        self._checked_at: Optional[float] = None

    @property
    def enabled(self) -> bool:
        return self._settings.enabled

    def is_work_focus_active(self) -> bool:
        return self.current_mode().work_related

    def current_mode(self) -> FocusMode:
        if not self._settings.enabled:
            return FocusMode.INACTIVE
        now = self._clock()
        if self._checked_at is None or now - self._checked_at >= self._settings.poll_seconds:
            self._checked_at = now
            self._update(self._detect())
        return self._mode

    def _update(self, mode: FocusMode) -> None:
        if mode is not self._mode:
            self._logger.info("Focus mode changed: %s -> %s", self._mode.value, mode.value)
            self._mode = mode

    def _detect(self) -> FocusMode:
        if self._do_not_disturb_enabled():
            return FocusMode.DO_NOT_DISTURB
        moment = self._now()
        if self._is_work_hours(moment):
            return FocusMode.WORK
        if moment.hour >= 22 or moment.hour <= 7:
            return FocusMode.SLEEP
        return FocusMode.INACTIVE

    def _is_work_hours(self, moment: datetime) -> bool:
        is_weekday = moment.weekday() < 5
        return is_weekday and self._settings.work_start_hour <= moment.hour < self._settings.work_end_hour

    def _do_not_disturb_enabled(self) -> bool:
        if sys.platform != "darwin":
            return False
        try:
            output = subprocess.check_output(
                ["defaults", "-currentHost", "read", "com.apple.notificationcenterui", "doNotDisturb"],
                text=True,
                stderr=subprocess.DEVNULL,
                timeout=2,
            )
        except (subprocess.CalledProcessError, subprocess.TimeoutExpired, OSError):
            # The key is absent unless DND was toggled at least once.
            return False
        return output.strip() == "1"
