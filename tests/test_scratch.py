import uuid
from datetime import datetime, timedelta
from decimal import Decimal

from app.fieldledger.services.rows import OrderRow, ReportRows, StaffRow
from app.fieldledger.services.scratch import LocalScratchStore, ScratchEntry, should_restore
from tests.helpers import REPORT_DATE

NOW = datetime(2024, 3, 18, 12, 0, 0)


def _entry(*order_ids, age_seconds=5) -> ScratchEntry:
    return ScratchEntry(
        saved_at=NOW - timedelta(seconds=age_seconds),
        rows=ReportRows([OrderRow(order_id=order_id) for order_id in order_ids]),
    )


def test_write_read_and_clear(scratch_dir):
    store = LocalScratchStore(scratch_dir)
    card_id = uuid.uuid4()
    rows = ReportRows(
        [OrderRow(order_id="A1", row_color="cyan")],
        [StaffRow.cash_box(card_id), StaffRow(staff_name="Ana", amount_received=Decimal("12.50"))],
    )

    path = store.write("user/1", REPORT_DATE, "daily_report", rows, notes="draft")
    entry = store.read("user/1", REPORT_DATE, "daily_report")

    assert path.parent.parent == scratch_dir
    assert entry.notes == "draft"
    assert entry.rows.orders[0].row_color == "cyan"
    assert entry.rows.staff[1].bank_card_id == card_id
    assert entry.rows.staff[2].amount_received == Decimal("12.50")

    store.clear("user/1", REPORT_DATE, "daily_report")
    assert store.read("user/1", REPORT_DATE, "daily_report") is None
    store.clear("user/1", REPORT_DATE, "daily_report")


def test_unreadable_backup_is_ignored(scratch_dir):
    store = LocalScratchStore(scratch_dir)
    path = store.path_for("user-1", REPORT_DATE, "daily_report")
    path.parent.mkdir(parents=True)
    path.write_text("{not json", encoding="utf-8")

    assert store.read("user-1", REPORT_DATE, "daily_report") is None


def test_backup_wins_when_remote_missing():
    assert should_restore(_entry("A1"), remote_rows=None, remote_exists=False, now=NOW)
    assert should_restore(_entry(), remote_rows=ReportRows(), remote_exists=False, now=NOW)
    assert not should_restore(None, remote_rows=None, remote_exists=False, now=NOW)


def test_recent_backup_with_more_orders_wins():
    remote = ReportRows([OrderRow(order_id="A1")])

    assert should_restore(_entry("A1", "A2"), remote_rows=remote, remote_exists=True, now=NOW, window_seconds=60)
    assert not should_restore(_entry("A1"), remote_rows=remote, remote_exists=True, now=NOW, window_seconds=60)
    assert not should_restore(
        _entry("A1", "A2", age_seconds=120), remote_rows=remote, remote_exists=True, now=NOW, window_seconds=60
    )


def test_view_modes_keep_separate_backups(scratch_dir):
    store = LocalScratchStore(scratch_dir)
    store.write("user-1", REPORT_DATE, "daily_report", ReportRows([OrderRow(order_id="P1")]), mode="parent")

    assert store.read("user-1", REPORT_DATE, "daily_report") is None
    assert store.read("user-1", REPORT_DATE, "daily_report", mode="parent").rows.orders[0].order_id == "P1"

    store.clear("user-1", REPORT_DATE, "daily_report")
    assert store.path_for("user-1", REPORT_DATE, "daily_report", mode="parent").exists()
