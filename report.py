from __future__ import annotations

import argparse
from datetime import date, datetime
from pathlib import Path

from balancelog.config import get_settings
from balancelog.logging_utils import logger_for
from balancelog.models import AccrualTotals, DayStatistics, format_duration
from balancelog.storage import SnapshotRepository, StorageUnavailable


def main() -> None:
    parser = argparse.ArgumentParser(description="Print Balance-Log daily totals")
    parser.add_argument("--from", dest="start", help="First day YYYY-MM-DD (defaults to today)")
    parser.add_argument("--to", dest="end", help="Last day YYYY-MM-DD (defaults to --from)")
    parser.add_argument("--info", action="store_true", help="Show database information instead of totals")
    parser.add_argument("--backup", type=Path, default=None, help="Copy the database to this path")
    parser.add_argument("--restore", type=Path, default=None, help="Replace the database with this backup")
    args = parser.parse_args()

    settings = get_settings()
    logger = logger_for("report", settings)
    today = datetime.now(tz=settings.timezone).date()
    start = date.fromisoformat(args.start) if args.start else today
    end = date.fromisoformat(args.end) if args.end else start

    try:
        repo = SnapshotRepository(settings.storage.db_path, settings.timezone)
        if args.backup:
            target = repo.backup_to(args.backup.resolve())
            logger.info("Database backed up to %s", target)
            return
        if args.restore:
            repo.restore_from(args.restore.resolve())
            logger.info("Database restored from %s", args.restore)
            return
        if args.info:
            print(render_info(repo))
            return
        print(render_days(repo.daily_statistics(start, end)))
    except StorageUnavailable as exc:
        logger.error("Report failed: %s", exc)
        raise SystemExit(1)


def render_days(days: list[DayStatistics]) -> str:
    if not days:
        return "No data for the selected range."
    lines = [f"{stats.day.isoformat()}  {stats.summary()}" for stats in days]
    if len(days) > 1:
        total = AccrualTotals()
        for stats in days:
            total = total.plus(stats.totals)
        average = sum(stats.totals.productivity for stats in days) / len(days)
        best = max(days, key=lambda stats: stats.totals.productivity)
        lines.append("")
        lines.append(
            f"{len(days)} days  Work: {format_duration(total.work)}, Rest: {format_duration(total.rest)}, "
            f"Idle: {format_duration(total.idle)} | Average productivity: {average:.1f}%"
        )
        lines.append(f"Most productive day: {best.day.isoformat()} ({best.totals.productivity:.1f}%)")
    return "\n".join(lines)


def render_info(repo: SnapshotRepository) -> str:
    info = repo.database_info()
    oldest = info.oldest_entry.isoformat() if info.oldest_entry else "-"
    newest = info.newest_entry.isoformat() if info.newest_entry else "-"
    return "\n".join(
        [
            f"Database: {info.path}",
            f"Entries: {info.total_entries}",
            f"Oldest: {oldest}",
            f"Newest: {newest}",
            f"Size: {info.size_bytes / 1024:.1f} KiB",
        ]
    )


if __name__ == "__main__":
    main()
