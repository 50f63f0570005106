from __future__ import annotations

from typing import TYPE_CHECKING, Iterable, Tuple

from .models import ActivitySample, WorkState

if TYPE_CHECKING:
    from .config import TrackingSettings


def parse_work_apps(raw: str | Iterable[str] | None) -> Tuple[str, ...]:
    """Split a comma-separated app list into trimmed, non-empty, de-duplicated names."""
    if raw is None:
        return ()
    parts = raw.split(",") if isinstance(raw, str) else list(raw)
    names: list[str] = []
    for part in parts:
        name = part.strip()
        if name and name not in names:
            names.append(name)
    return tuple(names)


def is_work_app(app_name: str | None, work_apps: Iterable[str]) -> bool:
    # Case-sensitive, whole-name comparison against each configured entry.
    if not app_name:
        return False
    return app_name in tuple(work_apps)


def classify_state(sample: ActivitySample, current: WorkState, settings: "TrackingSettings") -> WorkState:
    """Pick the state for this tick. Rules are checked in order; the first match wins.

    1. idle longer than the threshold -> IDLE
    2. a work focus mode is active -> WORKING
    3. auto-detect on and the foreground app is a work app -> WORKING
    4. auto-detect on and we were WORKING -> RESTING
    5. otherwise the current state is kept
    """
    if sample.idle_seconds > settings.idle_threshold_seconds:
        return WorkState.IDLE

    if sample.work_focus_active:
        return WorkState.WORKING

    if settings.auto_detect_work:
        if is_work_app(sample.foreground_app, settings.work_app_names):
            return WorkState.WORKING
        if current is WorkState.WORKING:
            return WorkState.RESTING

    return current
