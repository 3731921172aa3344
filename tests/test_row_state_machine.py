import uuid
from dataclasses import replace
from decimal import Decimal

import pytest

from app.fieldledger.core.error_catalog import AppError
from app.fieldledger.services.rows import (
    ABSENT,
    ROW_COLORS,
    WORKED,
    OrderRow,
    ReportRows,
    StaffRow,
    normalize_work_status,
)


def test_new_rows_have_one_trailing_empty_row_each():
    rows = ReportRows()

    assert len(rows.orders) == 1
    assert rows.orders[0].is_empty()
    assert [row.is_company_expense for row in rows.staff] == [True, False]
    assert rows.staff[1].is_empty()


def test_filling_last_order_appends_padding_and_clearing_removes_it():
    rows = ReportRows()

    rows.update_order(0, "order_id", "A1")
    assert len(rows.orders) == 2
    assert rows.orders[1].is_empty()
    assert rows.orders[1].row_color == ROW_COLORS[1]

    rows.update_order(0, "order_id", "")
    assert len(rows.orders) == 1


def test_deleting_filled_order_keeps_single_padding_row():
    rows = ReportRows([OrderRow(order_id="A1")])
    assert len(rows.orders) == 2

    rows.delete_order(0)

    assert len(rows.orders) == 1
    assert rows.orders[0].is_empty()


def test_staff_padding_follows_ordinary_rows():
    rows = ReportRows()

    rows.update_staff(1, "staff_name", "Ana")

    assert [row.staff_name for row in rows.staff] == ["Company expense", "Ana", ""]


def test_staff_order_is_company_then_cash_box_then_ordinary():
    card_id = uuid.uuid4()
    rows = ReportRows(
        [],
        [
            StaffRow(staff_name="Ana"),
            StaffRow.cash_box(card_id),
            StaffRow.company_expense(),
            StaffRow.company_expense(),
        ],
    )

    kinds = ["company" if r.is_company_expense else "cash" if r.is_cash_box else "staff" for r in rows.staff]
    assert kinds == ["company", "cash", "staff", "staff"]
    assert rows.staff[2].staff_name == "Ana"


def test_company_expense_row_synthesized_when_missing():
    rows = ReportRows([], [StaffRow(staff_name="Ana")])

    assert rows.staff[0].is_company_expense


def test_last_cash_box_row_cannot_be_deleted():
    rows = ReportRows()
    rows.add_cash_box_row(uuid.uuid4())
    cash_index = next(index for index, row in enumerate(rows.staff) if row.is_cash_box)

    with pytest.raises(AppError) as exc:
        rows.delete_staff(cash_index)

    assert exc.value.error.code == "CASH_BOX_FLOOR"
    assert sum(1 for row in rows.staff if row.is_cash_box) == 1


def test_extra_cash_box_row_can_be_deleted():
    rows = ReportRows()
    rows.add_cash_box_row(uuid.uuid4())
    rows.add_cash_box_row(uuid.uuid4())

    rows.delete_staff(1)

    assert sum(1 for row in rows.staff if row.is_cash_box) == 1


def test_company_expense_row_cannot_be_deleted():
    rows = ReportRows()

    with pytest.raises(AppError) as exc:
        rows.delete_staff(0)

    assert exc.value.error.code == "VALIDATION_ERROR"


@pytest.mark.parametrize(
    ("field_name", "value"),
    [
        ("overtime_hours", "25"),
        ("overtime_hours", "-1"),
        ("amount_received", "-10"),
        ("amount_spent", "abc"),
        ("unknown_field", "x"),
    ],
)
def test_invalid_staff_edits_are_rejected(field_name, value):
    rows = ReportRows()

    with pytest.raises(AppError) as exc:
        rows.update_staff(1, field_name, value)

    assert exc.value.error.code == "VALIDATION_ERROR"
    assert rows.staff[1].is_empty()


def test_bank_card_only_on_cash_box_rows():
    rows = ReportRows()

    with pytest.raises(AppError):
        rows.update_staff(1, "bank_card_id", str(uuid.uuid4()))


def test_unknown_row_color_rejected():
    rows = ReportRows()

    with pytest.raises(AppError):
        rows.update_order(0, "row_color", "pink")


def test_out_of_range_index_rejected():
    rows = ReportRows()

    with pytest.raises(AppError):
        rows.update_order(5, "order_id", "A1")


def test_persistable_rows_skip_padding():
    rows = ReportRows([OrderRow(order_id="A1"), OrderRow(notes="no id yet")], [StaffRow(staff_name="Ana")])

    assert [row.order_id for row in rows.persistable_orders()] == ["A1"]
    persisted = rows.persistable_staff()
    assert persisted[0].is_company_expense
    assert [row.staff_name for row in persisted[1:]] == ["Ana"]


def test_totals():
    rows = ReportRows(
        [],
        [
            StaffRow(staff_name="Ana", work_status=WORKED, overtime_hours=Decimal("2"), amount_received=Decimal("100")),
            StaffRow(staff_name="Bo", work_status=ABSENT, amount_spent=Decimal("20")),
            replace(StaffRow.cash_box(), amount_spent=Decimal("30")),
        ],
    )

    totals = rows.totals()

    assert totals.present_count == 1
    assert totals.total_overtime == Decimal("2")
    assert totals.total_received == Decimal("100")
    assert totals.total_spent == Decimal("50")
    assert totals.cash_box_spent == Decimal("30")
    assert totals.staff_received == Decimal("100")


def test_work_status_normalization():
    assert normalize_work_status("present") == WORKED
    assert normalize_work_status(" Worked ") == WORKED
    assert normalize_work_status(None) == ABSENT
    assert normalize_work_status("sick") == ABSENT
