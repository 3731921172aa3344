from datetime import date

import pytest

from app.fieldledger.services.guard import (
    MIN_DEBOUNCE_SECONDS,
    Debouncer,
    GuardRegistry,
    SaveGuard,
    content_hash,
    parent_key,
    report_key,
)
from app.fieldledger.services.rows import OrderRow, ReportRows, StaffRow
from tests.helpers import FakeTimerFactory

DAY = date(2024, 3, 18)


def test_guard_is_non_blocking():
    guard = SaveGuard(report_key(DAY, "user-1", "daily_report"))

    assert guard.try_acquire() is True
    assert guard.try_acquire() is False
    with guard.hold() as acquired:
        assert acquired is False
    guard.release()

    with guard.hold() as acquired:
        assert acquired is True
        assert guard.locked
    assert not guard.locked


def test_content_hash_ignores_row_order_padding_and_whitespace():
    first = ReportRows(
        [OrderRow(order_id="A1", team_name="North"), OrderRow(order_id="A2")],
        [StaffRow(staff_name="Ana")],
    )
    second = ReportRows(
        [OrderRow(order_id="A2 "), OrderRow(order_id="A1", team_name=" North")],
        [StaffRow(staff_name="Ana  ")],
    )

    assert content_hash(DAY, "daily_report", first) == content_hash(DAY, "daily_report", second)


def test_content_hash_tracks_content_notes_and_scope():
    rows = ReportRows([OrderRow(order_id="A1")])
    changed = ReportRows([OrderRow(order_id="A1", notes="call first")])
    digest = content_hash(DAY, "daily_report", rows)

    assert digest != content_hash(DAY, "daily_report", changed)
    assert digest != content_hash(DAY, "daily_report", rows, notes="gate code 42")
    assert digest != content_hash(DAY, "field_team", rows)
    assert digest != content_hash(date(2024, 3, 19), "daily_report", rows)


def test_registry_invalidate_keeps_other_dates_and_the_saver():
    registry = GuardRegistry()
    saver = registry.get(parent_key(DAY, "daily_report"))
    author = registry.get(report_key(DAY, "user-1", "daily_report"))
    other_module = registry.get(report_key(DAY, "user-1", "field_team"))
    other_day = registry.get(report_key(date(2024, 3, 19), "user-1", "daily_report"))
    for guard in (saver, author, other_module, other_day):
        guard.mark_saved("digest")

    registry.invalidate(DAY, "daily_report", keep=saver.key)

    assert saver.last_saved_hash == "digest"
    assert author.last_saved_hash is None
    assert other_module.last_saved_hash == "digest"
    assert other_day.last_saved_hash == "digest"
    assert registry.get(saver.key) is saver


def test_debouncer_collapses_triggers():
    calls = []
    timers = FakeTimerFactory()
    debouncer = Debouncer(MIN_DEBOUNCE_SECONDS, lambda: calls.append("saved"), timer_factory=timers)

    debouncer.trigger()
    debouncer.trigger()
    debouncer.trigger()

    assert debouncer.pending
    assert len(timers.live) == 1
    for timer in timers.timers:
        timer.fire()

    assert calls == ["saved"]
    assert debouncer.fired == 1
    assert not debouncer.pending


def test_debouncer_delay_has_a_floor():
    timers = FakeTimerFactory()
    debouncer = Debouncer(0.1, lambda: None, timer_factory=timers)

    debouncer.trigger()

    assert debouncer.delay == MIN_DEBOUNCE_SECONDS
    assert timers.timers[0].interval == MIN_DEBOUNCE_SECONDS
    assert timers.timers[0].daemon is True


def test_debouncer_flush_and_cancel():
    calls = []
    timers = FakeTimerFactory()
    debouncer = Debouncer(3, lambda: calls.append(1), timer_factory=timers)

    assert debouncer.flush() is False
    debouncer.trigger()
    assert debouncer.flush() is True
    assert calls == [1]
    assert timers.live == []

    debouncer.trigger()
    debouncer.cancel()
    timers.timers[-1].fire()
    assert calls == [1]


def test_timer_callback_errors_are_logged_not_raised(caplog):
    def boom():
        raise RuntimeError("boom")

    timers = FakeTimerFactory()
    debouncer = Debouncer(2, boom, name="autosave", timer_factory=timers)
    debouncer.trigger()

    timers.timers[0].fire()

    assert "Debounced callback failed" in caplog.text

    debouncer.trigger()
    with pytest.raises(RuntimeError):
        debouncer.flush()
