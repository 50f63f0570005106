from __future__ import annotations

import threading
import time
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from .focus import FocusModeProbe
from .models import ActivitySample, MonitorStatus
from .utils import get_foreground_app_name


class PermissionDenied(RuntimeError):
    pass


class InputActivityMonitor:
    """Tracks the time of the last mouse or keyboard event through global pynput listeners.

    When the listeners cannot be installed the monitor keeps running in a degraded
    mode where the user is never considered idle.
    """

    def __init__(self, log, clock: Callable[[], float] = time.monotonic):
        self._logger = log
        self._clock = clock
        self._last_activity_at = clock()
        self._last_activity_wall = datetime.now(timezone.utc)
        self._lock = threading.Lock()
        self._mouse_listener: Optional[Any] = None
        self._keyboard_listener: Optional[Any] = None
        self._status = MonitorStatus.STOPPED

    @property
    def status(self) -> MonitorStatus:
        if self._status is MonitorStatus.OK and not self._listeners_alive():
            self._logger.warning("Input listeners stopped unexpectedly; idle detection unavailable")
            self._status = MonitorStatus.PERMISSION_DENIED
        return self._status

    @property
    def degraded(self) -> bool:
        return self.status is not MonitorStatus.OK

    def start(self) -> MonitorStatus:
        if self._mouse_listener or self._keyboard_listener:
            return self.status

        try:
            from pynput import keyboard, mouse
        except Exception as exc:
            # pynput raises at import time when no input backend is usable (e.g. no display).
            self._logger.warning("Idle detection unavailable, no input backend: %s", exc)
            self._status = MonitorStatus.UNAVAILABLE
            return self._status

        try:
            self._start_listeners(mouse, keyboard)
        except PermissionDenied as exc:
            self._logger.warning("Idle detection disabled: %s", exc)
            self.stop()
            self._status = MonitorStatus.PERMISSION_DENIED
            return self._status

        self._status = MonitorStatus.OK
        self._logger.debug("Activity monitor listeners started")
        return self._status

    def _start_listeners(self, mouse, keyboard) -> None:
        self._mouse_listener = mouse.Listener(on_move=self._on_mouse, on_click=self._on_mouse, on_scroll=self._on_mouse)
        self._keyboard_listener = keyboard.Listener(on_press=self._on_keyboard)
        try:
            for listener in (self._mouse_listener, self._keyboard_listener):
                listener.start()
                listener.wait()
        except Exception as exc:
            raise PermissionDenied(f"input listeners failed to start: {exc}") from exc

        for listener in (self._mouse_listener, self._keyboard_listener):
            # macOS listeners report whether the process is trusted for accessibility.
            if not getattr(listener, "IS_TRUSTED", True):
                raise PermissionDenied("process is not trusted to observe input events")
        if not self._listeners_alive():
            raise PermissionDenied("input listeners exited right after starting")

    def stop(self) -> None:
        if self._mouse_listener:
            self._mouse_listener.stop()
            self._mouse_listener = None
        if self._keyboard_listener:
            self._keyboard_listener.stop()
            self._keyboard_listener = None
        if self._status is MonitorStatus.OK:
            self._status = MonitorStatus.STOPPED

    def _listeners_alive(self) -> bool:
        listeners = [l for l in (self._mouse_listener, self._keyboard_listener) if l is not None]
        return bool(listeners) and all(l.is_alive() for l in listeners)

    def _on_mouse(self, *args, **kwargs):
        self.record_activity()

    def _on_keyboard(self, key):
        self.record_activity()

    def record_activity(self) -> None:
        with self._lock:
            self._last_activity_at = self._clock()
            self._last_activity_wall = datetime.now(timezone.utc)

    def idle_seconds(self) -> float:
        if self.degraded:
            return 0.0
        with self._lock:
            last = self._last_activity_at
        return max(0.0, self._clock() - last)

    def last_activity(self) -> datetime:
        with self._lock:
            return self._last_activity_wall


class ActivitySampler:
    """Combines idle time, the foreground app and the focus override into one sample per tick."""

    def __init__(
        self,
        monitor: InputActivityMonitor,
        focus: FocusModeProbe,
        log,
        app_lookup: Callable[[], Optional[str]] = get_foreground_app_name,
    ):
        self._monitor = monitor
        self._focus = focus
        self._logger = log
        self._app_lookup = app_lookup
        self._lookup_failed = False

    @property
    def status(self) -> MonitorStatus:
        return self._monitor.status

    def start(self) -> MonitorStatus:
        return self._monitor.start()

    def stop(self) -> None:
        self._monitor.stop()

    def sample(self) -> ActivitySample:
        return ActivitySample(
            idle_seconds=self._monitor.idle_seconds(),
            foreground_app=self._foreground_app(),
            work_focus_active=self._focus.is_work_focus_active(),
            sampled_at=datetime.now(timezone.utc),
        )

    def _foreground_app(self) -> Optional[str]:
        try:
            name = self._app_lookup()
        except Exception as exc:
            if not self._lookup_failed:
                self._logger.warning("Foreground application lookup failed: %s", exc)
                self._lookup_failed = True
            return None
        self._lookup_failed = False
        return name
