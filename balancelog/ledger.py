from __future__ import annotations

import threading
from datetime import datetime, timezone
from typing import Callable, List, Optional, Union

from .models import AccrualTotals, StateChange, WorkState

LedgerEvent = Union[StateChange, AccrualTotals]
Listener = Callable[[LedgerEvent], None]


class TimeLedger:
    """Current work state plus the three running second counters.

    Only the tracker's tick thread mutates the ledger; readers such as the tray
    go through the same lock. Subscribers receive events outside the lock, in the
    order the ticks produced them, and in subscription order.
    """

    def __init__(self, log, initial_state: WorkState = WorkState.IDLE, now: Optional[datetime] = None):
        self._logger = log
        self._lock = threading.Lock()
        self._state = initial_state
        self._last_change = now or datetime.now(timezone.utc)
        self._work = 0
        self._rest = 0
        self._idle = 0
        self._listeners: List[Listener] = []

    @property
    def current_state(self) -> WorkState:
        with self._lock:
            return self._state

    @property
    def last_change(self) -> datetime:
        with self._lock:
            return self._last_change

    def totals(self) -> AccrualTotals:
        with self._lock:
            return self._totals_locked()

    def _totals_locked(self) -> AccrualTotals:
        return AccrualTotals(work=self._work, rest=self._rest, idle=self._idle)

    def seed(self, totals: AccrualTotals) -> None:
        with self._lock:
            self._work, self._rest, self._idle = totals.work, totals.rest, totals.idle
        self._logger.debug("Ledger seeded: work=%ss rest=%ss idle=%ss", totals.work, totals.rest, totals.idle)

    def rebase(self, baseline: AccrualTotals) -> AccrualTotals:
        """Add a baseline that became available after counting already started."""
        with self._lock:
            self._work += baseline.work
            self._rest += baseline.rest
            self._idle += baseline.idle
            return self._totals_locked()

    def apply(self, state: WorkState, now: Optional[datetime] = None, manual: bool = False) -> Optional[StateChange]:
        now = now or datetime.now(timezone.utc)
        with self._lock:
            if state is self._state:
                return None
            change = StateChange(
                previous=self._state,
                current=state,
                changed_at=now,
                previous_duration=max(0.0, (now - self._last_change).total_seconds()),
                manual=manual,
            )
            self._state = state
            self._last_change = now
        self._logger.info(
            "State changed: %s -> %s (after %.0fs)", change.previous.label, change.current.label, change.previous_duration
        )
        self._publish(change)
        return change

    def start_work(self, now: Optional[datetime] = None) -> Optional[StateChange]:
        return self.apply(WorkState.WORKING, now, manual=True)

    def start_rest(self, now: Optional[datetime] = None) -> Optional[StateChange]:
        return self.apply(WorkState.RESTING, now, manual=True)

    def tick(self, seconds: int = 1) -> AccrualTotals:
        with self._lock:
            if self._state is WorkState.WORKING:
                self._work += seconds
            elif self._state is WorkState.RESTING:
                self._rest += seconds
            else:
                self._idle += seconds
            totals = self._totals_locked()
        self._publish(totals)
        return totals

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def _publish(self, event: LedgerEvent) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(event)
            except Exception:
                self._logger.exception("Ledger listener %r failed", listener)
