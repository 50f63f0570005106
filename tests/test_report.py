from __future__ import annotations

from datetime import date, datetime, timezone

from balancelog.models import AccrualTotals, DayStatistics, Snapshot, WorkState
from balancelog.storage import SnapshotRepository
from report import render_days, render_info


def test_day_summary_line():
    stats = DayStatistics(day=date(2026, 3, 4), totals=AccrualTotals(work=3900, rest=600, idle=1500))
    assert stats.summary() == "Work: 1h 5m, Rest: 10m, Idle: 25m | Productivity: 65.0%"


def test_render_days_adds_range_footer():
    days = [
        DayStatistics(day=date(2026, 3, 4), totals=AccrualTotals(3600, 0, 0)),
        DayStatistics(day=date(2026, 3, 5), totals=AccrualTotals(1800, 1800, 0)),
    ]
    text = render_days(days)
    assert text.splitlines()[0].startswith("2026-03-04  Work: 1h 0m")
    assert "2 days  Work: 1h 30m, Rest: 30m, Idle: 0m | Average productivity: 75.0%" in text
    assert "Most productive day: 2026-03-04 (100.0%)" in text


def test_render_days_without_data():
    assert render_days([]) == "No data for the selected range."


def test_render_info(tmp_path):
    repo = SnapshotRepository(tmp_path / "balancelog.db", timezone.utc)
    repo.append_snapshot(
        Snapshot(datetime(2026, 3, 4, 9, tzinfo=timezone.utc), WorkState.WORKING, AccrualTotals(60, 0, 0))
    )
    text = render_info(repo)
    assert "Entries: 1" in text
    assert "Oldest: 2026-03-04T09:00:00+00:00" in text
