from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from .activity import ActivitySampler, InputActivityMonitor
from .classifier import classify_state, is_work_app
from .config import AppSettings
from .flusher import SnapshotFlusher
from .focus import FocusModeProbe
from .ledger import TimeLedger
from .models import AccrualTotals, ActivitySample, MonitorStatus, Snapshot, StateChange, WorkState
from .storage import SnapshotRepository, StorageUnavailable


def build_tracker(settings: AppSettings, log) -> "ActivityTracker":
    repository = SnapshotRepository(settings.storage.db_path, settings.timezone)
    sampler = ActivitySampler(InputActivityMonitor(log), FocusModeProbe(settings.focus, log), log)
    return ActivityTracker(settings, sampler, repository, log)


@dataclass(frozen=True)
class TrackerStatus:
    state: WorkState
    totals: AccrualTotals
    idle_detection: MonitorStatus
    storage_ok: bool
    baseline_loaded: bool
    last_flush_at: Optional[datetime] = None

    @property
    def idle_detection_available(self) -> bool:
        return self.idle_detection is MonitorStatus.OK


class ActivityTracker:
    """Runs the sample -> classify -> accrue -> flush cycle once per tick."""

    def __init__(
        self,
        settings: AppSettings,
        sampler: ActivitySampler,
        repository: SnapshotRepository,
        log,
        now: Optional[Callable[[], datetime]] = None,
        flusher: Optional[SnapshotFlusher] = None,
    ):
        self._settings = settings
        self._tracking = settings.tracking
        self._sampler = sampler
        self._repository = repository
        self._logger = log
        self._now = now or (lambda: datetime.now(tz=settings.timezone))
        self._flusher = flusher or SnapshotFlusher(repository, log)
        self.ledger = TimeLedger(log, now=self._now())

        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._shutdown_lock = threading.Lock()
        self._prepared = False
        self._shut_down = False
        self._baseline_loaded = False
        self._ticks = 0
        self._was_idle = False
        self._was_focused = False

    # lifecycle

    def prepare(self) -> None:
        if self._prepared:
            return
        self._prepared = True
        self.load_baseline()
        status = self._sampler.start()
        if status is not MonitorStatus.OK:
            self._logger.warning("Idle detection unavailable (%s); the user will never be considered idle", status.value)
        self._logger.info(
            "Tracker started: tick=%ss flush=%ss idle_threshold=%ss auto_detect=%s work_apps=%s",
            self._tracking.tick_seconds,
            self._tracking.flush_interval_seconds,
            self._tracking.idle_threshold_seconds,
            self._tracking.auto_detect_work,
            ", ".join(self._tracking.work_app_names) or "-",
        )

    def start(self) -> threading.Thread:
        """Run the loop on a background thread (used by the tray)."""
        self.prepare()
        if self._thread is None:
            self._thread = threading.Thread(target=self.run_forever, name="balancelog-tracker", daemon=True)
            self._thread.start()
        return self._thread

    def run(self) -> None:
        """Run the loop on the calling thread until stop() is requested."""
        self.prepare()
        self.run_forever()

    def run_forever(self) -> None:
        interval = self._tracking.tick_seconds
        deadline = time.monotonic() + interval
        try:
            while not self._stop_event.wait(max(0.0, deadline - time.monotonic())):
                try:
                    self.tick()
                except Exception:
                    self._logger.exception("Tick failed")
                deadline += interval
                now = time.monotonic()
                if deadline < now - interval:
                    # Fell far behind (e.g. the machine slept); schedule from now instead of bursting.
                    deadline = now + interval
        finally:
            self.shutdown()

    def request_stop(self) -> None:
        self._stop_event.set()

    def stop(self, timeout: Optional[float] = None) -> None:
        self.request_stop()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)
        self.shutdown()

    def shutdown(self) -> None:
        with self._shutdown_lock:
            if self._shut_down:
                return
            self._shut_down = True
        self._sampler.stop()
        if not self._baseline_loaded and not self.load_baseline():
            # Today's latest row would shrink to what this run accrued.
            self._flusher.close(None)
            self._logger.error("Final snapshot skipped: today's baseline is still unavailable")
            return
        final = self._snapshot(self._now())
        if self._flusher.close(final):
            self._logger.info(
                "Final snapshot saved: work=%ss rest=%ss idle=%ss",
                final.totals.work,
                final.totals.rest,
                final.totals.idle,
            )
        else:
            self._logger.error("Final snapshot could not be saved")

    # one cycle

    def tick(self, now: Optional[datetime] = None) -> AccrualTotals:
        now = now or self._now()
        sample = self._sampler.sample()
        is_idle = sample.idle_seconds > self._tracking.idle_threshold_seconds

        current = self.ledger.current_state
        state = classify_state(sample, current, self._tracking)
        if self._tracking.resume_from_idle and self._was_idle and not is_idle and state is WorkState.IDLE:
            state = WorkState.RESTING
        if self._focus_ended(sample) and state is WorkState.WORKING and not is_idle:
            state = WorkState.RESTING
        self._was_idle = is_idle
        self._was_focused = sample.work_focus_active
        self.ledger.apply(state, now)

        before = self.ledger.totals().total
        totals = self.ledger.tick(self._tracking.tick_seconds)
        self._ticks += 1

        interval = self._tracking.flush_interval_seconds
        if totals.total // interval != before // interval:
            self._flush(now)
        return totals

    def _focus_ended(self, sample: ActivitySample) -> bool:
        if not self._was_focused or sample.work_focus_active:
            return False
        # A work app in front keeps the user working when auto-detect is on.
        return not (
            self._tracking.auto_detect_work and is_work_app(sample.foreground_app, self._tracking.work_app_names)
        )

    def _flush(self, now: datetime) -> None:
        if not self._baseline_loaded and not self.load_baseline():
            self._logger.warning("Skipping snapshot: today's baseline is still unavailable")
            return
        self._flusher.submit(self._snapshot(now))

    def _snapshot(self, now: datetime) -> Snapshot:
        return Snapshot(recorded_at=now, state=self.ledger.current_state, totals=self.ledger.totals())

    def load_baseline(self) -> bool:
        try:
            baseline = self._repository.load_latest_snapshot_for_today(self._now())
        except StorageUnavailable as exc:
            self._logger.error("Failed to load today's totals: %s", exc)
            return False

        baseline = baseline or AccrualTotals()
        if self._ticks:
            totals = self.ledger.rebase(baseline)
            self._logger.info("Late baseline applied: work=%ss rest=%ss idle=%ss", totals.work, totals.rest, totals.idle)
        else:
            self.ledger.seed(baseline)
            self._logger.info(
                "Today's totals loaded: work=%ss rest=%ss idle=%ss", baseline.work, baseline.rest, baseline.idle
            )
        self._baseline_loaded = True
        return True

    # UI-facing

    def start_work(self) -> Optional[StateChange]:
        return self.ledger.start_work(self._now())

    def start_rest(self) -> Optional[StateChange]:
        return self.ledger.start_rest(self._now())

    def status(self) -> TrackerStatus:
        return TrackerStatus(
            state=self.ledger.current_state,
            totals=self.ledger.totals(),
            idle_detection=self._sampler.status,
            storage_ok=self._baseline_loaded and self._flusher.healthy,
            baseline_loaded=self._baseline_loaded,
            last_flush_at=self._flusher.last_flush_at,
        )
