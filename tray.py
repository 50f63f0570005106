from __future__ import annotations

import sys
import threading
from typing import Any, Optional

import pystray
from PIL import Image, ImageDraw

from balancelog.config import AppSettings, get_settings
from balancelog.ledger import LedgerEvent
from balancelog.logging_utils import logger_for
from balancelog.models import StateChange, WorkState, format_duration
from balancelog.tracker import ActivityTracker, build_tracker
from balancelog.utils import open_in_file_manager

STATE_COLORS = {
    WorkState.WORKING: (52, 199, 89),
    WorkState.RESTING: (0, 122, 255),
    WorkState.IDLE: (142, 142, 147),
}


class TrayController:
    def __init__(self, settings: Optional[AppSettings] = None, tracker: Optional[ActivityTracker] = None) -> None:
        self.settings = settings or get_settings()
        self.logger = logger_for("tray", self.settings)
        self.tracker = tracker or build_tracker(self.settings, self.logger)
        self._stop_event = threading.Event()
        self._unsubscribe = self.tracker.ledger.subscribe(self._on_ledger_event)
        state = self.tracker.ledger.current_state
        self.icon = pystray.Icon(
            "Balance-Log",
            _create_icon(state),
            _title(state),
            self._build_menu(),
        )

    def run(self) -> None:
        if sys.platform == "darwin":
            # The AppKit run loop must own the main thread; Quit ends it via icon.stop().
            try:
                self.icon.run(setup=self._setup)
            except KeyboardInterrupt:
                self.logger.info("KeyboardInterrupt received; stopping tray icon")
                self._shutdown()
            return

        self.tracker.start()
        self.icon.run_detached()
        try:
            self._stop_event.wait()
        except KeyboardInterrupt:
            self.logger.info("KeyboardInterrupt received; stopping tray icon")
            self._shutdown()

    def _setup(self, icon: Any) -> None:
        icon.visible = True
        self.tracker.start()

    def _build_menu(self) -> pystray.Menu:
        return pystray.Menu(
            pystray.MenuItem(lambda _: self._state_text(), None, enabled=False),
            pystray.MenuItem(lambda _: self._totals_text(), None, enabled=False),
            pystray.MenuItem(
                "Idle detection unavailable",
                None,
                enabled=False,
                visible=lambda _: not self.tracker.status().idle_detection_available,
            ),
            pystray.MenuItem(
                "Storage unavailable",
                None,
                enabled=False,
                visible=lambda _: not self.tracker.status().storage_ok,
            ),
            pystray.Menu.SEPARATOR,
            pystray.MenuItem(
                "Start Work",
                lambda *_: self.tracker.start_work(),
                checked=lambda _: self.tracker.ledger.current_state is WorkState.WORKING,
            ),
            pystray.MenuItem(
                "Start Rest",
                lambda *_: self.tracker.start_rest(),
                checked=lambda _: self.tracker.ledger.current_state is WorkState.RESTING,
            ),
            pystray.Menu.SEPARATOR,
            pystray.MenuItem("Open Data Folder", lambda *_: self._open_dir(self.settings.storage.data_dir)),
            pystray.MenuItem("Open Log Folder", lambda *_: self._open_dir(self.settings.logging.directory)),
            pystray.Menu.SEPARATOR,
            pystray.MenuItem("Quit", self._quit),
        )

    def _on_ledger_event(self, event: LedgerEvent) -> None:
        if not isinstance(event, StateChange):
            return
        self.icon.icon = _create_icon(event.current)
        self.icon.title = _title(event.current)
        self._refresh_menu()

    def _state_text(self) -> str:
        return f"State: {self.tracker.ledger.current_state.label}"

    def _totals_text(self) -> str:
        totals = self.tracker.ledger.totals()
        return (
            f"Work {format_duration(totals.work)} · Rest {format_duration(totals.rest)} · "
            f"Idle {format_duration(totals.idle)} ({totals.productivity:.0f}%)"
        )

    def _open_dir(self, path) -> None:
        try:
            open_in_file_manager(path)
        except OSError as exc:
            self.logger.warning("Failed to open %s: %s", path, exc)

    def _quit(self, icon: Any, _: Any) -> None:
        self._shutdown()

    def _shutdown(self) -> None:
        self._unsubscribe()
        self.tracker.stop(timeout=10)
        try:
            self.icon.stop()
        finally:
            self._stop_event.set()

    def _refresh_menu(self) -> None:
        try:
            self.icon.update_menu()
        except Exception as exc:
            self.logger.debug("Menu refresh failed: %s", exc)


def _title(state: WorkState) -> str:
    return f"Balance-Log: {state.label}"


def _create_icon(state: WorkState) -> Image.Image:
    size = 64
    image = Image.new("RGBA", (size, size), (0, 0, 0, 0))
    draw = ImageDraw.Draw(image)
    draw.ellipse((6, 6, size - 6, size - 6), fill=STATE_COLORS[state])
    draw.ellipse((22, 22, size - 22, size - 22), fill=(255, 255, 255))
    return image


def main() -> None:
    tray = TrayController()
    tray.run()


if __name__ == "__main__":
    main()
