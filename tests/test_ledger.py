from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from balancelog.ledger import TimeLedger
from balancelog.models import AccrualTotals, StateChange, WorkState

T0 = datetime(2026, 3, 4, 9, 0, tzinfo=timezone.utc)


@pytest.fixture
def ledger(log) -> TimeLedger:
    return TimeLedger(log, now=T0)


def test_starts_idle_with_zero_totals(ledger):
    assert ledger.current_state is WorkState.IDLE
    assert ledger.totals() == AccrualTotals(0, 0, 0)


@pytest.mark.parametrize(
    "state, expected",
    [
        (WorkState.WORKING, AccrualTotals(6, 5, 7)),
        (WorkState.RESTING, AccrualTotals(5, 6, 7)),
        (WorkState.IDLE, AccrualTotals(5, 5, 8)),
    ],
)
def test_tick_advances_only_the_current_counter(ledger, state, expected):
    ledger.seed(AccrualTotals(5, 5, 7))
    ledger.apply(state, T0)
    assert ledger.tick() == expected


def test_tick_uses_the_tick_duration(ledger):
    ledger.apply(WorkState.RESTING, T0)
    ledger.tick(5)
    assert ledger.totals() == AccrualTotals(0, 5, 0)


def test_apply_records_transition_and_previous_duration(ledger):
    ledger.apply(WorkState.WORKING, T0)
    change = ledger.apply(WorkState.RESTING, T0 + timedelta(seconds=90))
    assert change == StateChange(
        previous=WorkState.WORKING,
        current=WorkState.RESTING,
        changed_at=T0 + timedelta(seconds=90),
        previous_duration=90.0,
    )
    assert ledger.last_change == T0 + timedelta(seconds=90)


def test_apply_same_state_is_not_a_change(ledger):
    assert ledger.apply(WorkState.IDLE, T0 + timedelta(seconds=5)) is None
    assert ledger.last_change == T0


def test_manual_overrides_are_flagged(ledger):
    change = ledger.start_work(T0)
    assert change.manual
    assert ledger.start_rest(T0).current is WorkState.RESTING


def test_rebase_adds_late_baseline(ledger):
    ledger.apply(WorkState.WORKING, T0)
    ledger.tick()
    ledger.tick()
    assert ledger.rebase(AccrualTotals(100, 20, 3)) == AccrualTotals(102, 20, 3)


def test_subscribers_receive_events_in_order(ledger):
    first, second = [], []
    ledger.subscribe(first.append)
    ledger.subscribe(second.append)

    ledger.apply(WorkState.WORKING, T0)
    ledger.tick()

    assert first == second
    assert isinstance(first[0], StateChange)
    assert first[1] == AccrualTotals(1, 0, 0)


def test_failing_subscriber_does_not_block_others(ledger):
    received = []

    def broken(event):
        raise RuntimeError("boom")

    ledger.subscribe(broken)
    ledger.subscribe(received.append)
    ledger.tick()

    assert received == [AccrualTotals(0, 0, 1)]


def test_unsubscribe_stops_delivery(ledger):
    received = []
    unsubscribe = ledger.subscribe(received.append)
    unsubscribe()
    ledger.tick()
    assert received == []


def test_subscriber_can_read_totals_without_deadlock(ledger):
    seen = []
    ledger.subscribe(lambda event: seen.append(ledger.totals()))
    ledger.tick()
    assert seen == [AccrualTotals(0, 0, 1)]
