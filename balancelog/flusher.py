from __future__ import annotations

import threading
from concurrent.futures import Future, ThreadPoolExecutor
from datetime import datetime
from typing import Optional

from .models import Snapshot
from .storage import SnapshotRepository, StorageUnavailable


class SnapshotFlusher:
    """Writes snapshots on a single background worker so ticks never wait on SQLite.

    Writes keep their submission order. A failed write is logged and dropped; the
    next successful one carries the larger cumulative totals anyway.
    """

    def __init__(self, repository: SnapshotRepository, log):
        self._repository = repository
        self._logger = log
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="balancelog-flush")
        self._lock = threading.Lock()
        self._closed = False
        self._healthy = True
        self._last_flush_at: Optional[datetime] = None

    @property
    def healthy(self) -> bool:
        with self._lock:
            return self._healthy

    @property
    def last_flush_at(self) -> Optional[datetime]:
        with self._lock:
            return self._last_flush_at

    def submit(self, snapshot: Snapshot) -> Optional[Future]:
        if self._closed:
            self._logger.warning("Flusher closed; dropping snapshot at %s", snapshot.recorded_at.isoformat())
            return None
        return self._executor.submit(self.flush_now, snapshot)

    def flush_now(self, snapshot: Snapshot) -> bool:
        try:
            row_id = self._repository.append_snapshot(snapshot)
        except StorageUnavailable as exc:
            self._logger.error("Snapshot write failed, will retry on the next cycle: %s", exc)
            with self._lock:
                self._healthy = False
            return False
        with self._lock:
            self._healthy = True
            self._last_flush_at = snapshot.recorded_at
        totals = snapshot.totals
        self._logger.debug(
            "Snapshot %s saved: state=%s work=%ss rest=%ss idle=%ss",
            row_id,
            snapshot.state.label,
            totals.work,
            totals.rest,
            totals.idle,
        )
        return True

    def close(self, final_snapshot: Optional[Snapshot] = None) -> bool:
        """Drain queued writes, then write ``final_snapshot`` unconditionally."""
        if self._closed:
            return False
        self._closed = True
        self._executor.shutdown(wait=True)
        if final_snapshot is None:
            return True
        return self.flush_now(final_snapshot)
