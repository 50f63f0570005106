from __future__ import annotations

import sqlite3
from datetime import date, datetime, tzinfo
from pathlib import Path
from typing import Dict, List, Optional

from .models import AccrualTotals, DatabaseInfo, DayStatistics, Snapshot, WorkState
from .utils import day_key, ensure_directory


class StorageUnavailable(RuntimeError):
    pass


class SnapshotRepository:
    """Append-only log of cumulative work/rest/idle totals in SQLite."""

    def __init__(self, db_path: Path, timezone: tzinfo):
        self.db_path = db_path
        self.timezone = timezone
        ensure_directory(db_path.parent)
        self._initialize()

    def _connect(self) -> sqlite3.Connection:
        try:
            return sqlite3.connect(self.db_path, timeout=5)
        except sqlite3.Error as exc:
            raise StorageUnavailable(f"cannot open {self.db_path}: {exc}") from exc

    def _initialize(self) -> None:
        try:
            with self._connect() as conn:
                conn.execute(
                    """
                    CREATE TABLE IF NOT EXISTS time_entries (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        recorded_at TEXT NOT NULL,
                        day TEXT NOT NULL,
                        state TEXT NOT NULL,
                        work_time INTEGER NOT NULL,
                        rest_time INTEGER NOT NULL,
                        idle_time INTEGER NOT NULL
                    )
                    """
                )
                conn.execute("CREATE INDEX IF NOT EXISTS idx_time_entries_day ON time_entries (day, id)")
                conn.commit()
        except sqlite3.Error as exc:
            raise StorageUnavailable(f"cannot initialize {self.db_path}: {exc}") from exc

    def append_snapshot(self, snapshot: Snapshot) -> int:
        try:
            with self._connect() as conn:
                cursor = conn.execute(
                    """
                    INSERT INTO time_entries (recorded_at, day, state, work_time, rest_time, idle_time)
                    VALUES (?, ?, ?, ?, ?, ?)
                    """,
                    (
                        snapshot.recorded_at.isoformat(),
                        day_key(snapshot.recorded_at, self.timezone),
                        snapshot.state.label,
                        snapshot.totals.work,
                        snapshot.totals.rest,
                        snapshot.totals.idle,
                    ),
                )
                conn.commit()
                return int(cursor.lastrowid)
        except sqlite3.Error as exc:
            raise StorageUnavailable(f"failed to append snapshot: {exc}") from exc

    def load_latest_snapshot_for_today(self, now: Optional[datetime] = None) -> Optional[AccrualTotals]:
        now = now or datetime.now(tz=self.timezone)
        return self.load_latest_snapshot_for_day(day_key(now, self.timezone))

    def load_latest_snapshot_for_day(self, day: str) -> Optional[AccrualTotals]:
        try:
            with self._connect() as conn:
                row = conn.execute(
                    """
                    SELECT work_time, rest_time, idle_time
                    FROM time_entries
                    WHERE day = ?
                    ORDER BY id DESC
                    LIMIT 1
                    """,
                    (day,),
                ).fetchone()
        except sqlite3.Error as exc:
            raise StorageUnavailable(f"failed to load snapshot for {day}: {exc}") from exc
        if row is None:
            return None
        return AccrualTotals(work=int(row[0]), rest=int(row[1]), idle=int(row[2]))

    def entries_between(self, start_day: date, end_day: date) -> List[Snapshot]:
        try:
            with self._connect() as conn:
                rows = conn.execute(
                    """
                    SELECT id, recorded_at, state, work_time, rest_time, idle_time
                    FROM time_entries
                    WHERE day BETWEEN ? AND ?
                    ORDER BY id ASC
                    """,
                    (start_day.isoformat(), end_day.isoformat()),
                ).fetchall()
        except sqlite3.Error as exc:
            raise StorageUnavailable(f"failed to read entries: {exc}") from exc

        return [
            Snapshot(
                id=row[0],
                recorded_at=datetime.fromisoformat(row[1]),
                state=WorkState.from_label(row[2]),
                totals=AccrualTotals(work=int(row[3]), rest=int(row[4]), idle=int(row[5])),
            )
            for row in rows
        ]

    def daily_statistics(self, start_day: date, end_day: date) -> List[DayStatistics]:
        # Rows carry cumulative totals, so a day's figure is the maximum of each field.
        stats: Dict[str, DayStatistics] = {}
        for entry in self.entries_between(start_day, end_day):
            key = day_key(entry.recorded_at, self.timezone)
            current = stats.get(key)
            if current is None:
                stats[key] = DayStatistics(day=date.fromisoformat(key), totals=entry.totals, entries=1)
                continue
            current.totals = AccrualTotals(
                work=max(current.totals.work, entry.totals.work),
                rest=max(current.totals.rest, entry.totals.rest),
                idle=max(current.totals.idle, entry.totals.idle),
            )
            current.entries += 1
        return [stats[key] for key in sorted(stats)]

    def database_info(self) -> DatabaseInfo:
        try:
            with self._connect() as conn:
                count, oldest, newest = conn.execute(
                    "SELECT COUNT(*), MIN(recorded_at), MAX(recorded_at) FROM time_entries"
                ).fetchone()
        except sqlite3.Error as exc:
            raise StorageUnavailable(f"failed to read database info: {exc}") from exc
        return DatabaseInfo(
            path=self.db_path,
            total_entries=int(count or 0),
            oldest_entry=datetime.fromisoformat(oldest) if oldest else None,
            newest_entry=datetime.fromisoformat(newest) if newest else None,
            size_bytes=self.db_path.stat().st_size if self.db_path.exists() else 0,
        )

    def backup_to(self, target: Path) -> Path:
        ensure_directory(target.parent)
        try:
            with self._connect() as source, sqlite3.connect(target) as destination:
                source.backup(destination)
        except sqlite3.Error as exc:
            raise StorageUnavailable(f"backup to {target} failed: {exc}") from exc
        return target

    def restore_from(self, source: Path) -> Path:
        """Replace the live database with the contents of a backup file."""
        if not source.is_file():
            raise StorageUnavailable(f"backup {source} does not exist")
        try:
            with sqlite3.connect(f"{source.resolve().as_uri()}?mode=ro", uri=True) as backup:
                found = backup.execute(
                    "SELECT name FROM sqlite_master WHERE type = 'table' AND name = 'time_entries'"
                ).fetchone()
                if found is None:
                    raise StorageUnavailable(f"{source} is not a Balance-Log database")
                with self._connect() as destination:
                    backup.backup(destination)
        except sqlite3.Error as exc:
            raise StorageUnavailable(f"restore from {source} failed: {exc}") from exc
        return self.db_path
