from __future__ import annotations

import ctypes
import os
import subprocess
import sys
from datetime import datetime, tzinfo
from pathlib import Path
from typing import Optional


def ensure_directory(path: Path) -> Path:
    path.mkdir(parents=True, exist_ok=True)
    return path


def day_key(moment: datetime, timezone: tzinfo) -> str:
    """Calendar day of ``moment`` in ``timezone`` as YYYY-MM-DD."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone)
    return moment.astimezone(timezone).date().isoformat()


def get_foreground_app_name() -> Optional[str]:
    if sys.platform == "darwin":
        return _macos_frontmost_app()
    if os.name == "nt":
        return _windows_foreground_app()
    return None


def _macos_frontmost_app() -> Optional[str]:
    from AppKit import NSWorkspace

    app = NSWorkspace.sharedWorkspace().frontmostApplication()
    if app is None:
        return None
    name = app.localizedName()
    return str(name) if name else None


def _windows_foreground_app() -> Optional[str]:
    from ctypes import wintypes

    import psutil

    user32 = ctypes.windll.user32
    hwnd = user32.GetForegroundWindow()
    if not hwnd:
        return None

    pid = wintypes.DWORD()
    user32.GetWindowThreadProcessId(hwnd, ctypes.byref(pid))
    if not pid.value:
        return None
    try:
        name = psutil.Process(pid.value).name()
    except (psutil.NoSuchProcess, psutil.AccessDenied):
        return None
    # "Code.exe" -> "Code" so names line up with the configured display names.
    return name[:-4] if name.lower().endswith(".exe") else name


def open_in_file_manager(path: Path) -> None:
    ensure_directory(path)
    if sys.platform == "darwin":
        subprocess.Popen(["open", str(path)])
    elif os.name == "nt":
        os.startfile(path)  # type: ignore[attr-defined]
    else:
        subprocess.Popen(["xdg-open", str(path)])
