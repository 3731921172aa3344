import uuid
from decimal import Decimal

import pytest

from app.fieldledger.core.error_catalog import AppError
from app.fieldledger.services.aggregation import merge_notes, merge_staff_rows, partition_by_origin
from app.fieldledger.services.rows import ABSENT, WORKED, OrderRow, StaffRow


def test_same_staff_amounts_are_summed_with_both_labels():
    merged = merge_staff_rows(
        [
            (StaffRow(staff_name="Ana", work_status=WORKED, amount_received=Decimal("100")), "daily_report/a"),
            (StaffRow(staff_name=" Ana ", work_status=WORKED, amount_received=Decimal("50")), "daily_report/b"),
        ]
    )

    ana = [row for row in merged if row.staff_name == "Ana"]
    assert len(ana) == 1
    assert ana[0].amount_received == Decimal("150")
    assert ana[0].source_labels == ["daily_report/a", "daily_report/b"]


def test_staff_user_id_takes_precedence_over_name():
    merged = merge_staff_rows(
        [
            (StaffRow(staff_user_id="u-1", staff_name="Ana", overtime_hours=Decimal("1")), "a"),
            (StaffRow(staff_user_id="u-1", staff_name="Ana M.", overtime_hours=Decimal("2")), "b"),
            (StaffRow(staff_name="Ana", overtime_hours=Decimal("4")), "c"),
        ]
    )

    ordinary = [row for row in merged if row.is_ordinary]
    assert [row.overtime_hours for row in ordinary] == [Decimal("3"), Decimal("4")]


def test_worked_wins_over_absent():
    merged = merge_staff_rows(
        [
            (StaffRow(staff_name="Bo", work_status=ABSENT, notes="late"), "a"),
            (StaffRow(staff_name="Bo", work_status=WORKED), "b"),
        ]
    )

    assert merged[-1].work_status == WORKED


def test_empty_ordinary_rows_are_ignored():
    merged = merge_staff_rows([(StaffRow(), "a"), (StaffRow(staff_name="  "), "b")])

    assert len(merged) == 1
    assert merged[0].is_company_expense


def test_output_order_and_cash_box_merge_by_card():
    card_a, card_b = uuid.uuid4(), uuid.uuid4()
    merged = merge_staff_rows(
        [
            (StaffRow(staff_name="Ana"), "a"),
            (StaffRow.cash_box(card_a), "a"),
            (StaffRow.company_expense(), "a"),
            (StaffRow.cash_box(card_b), "b"),
            (StaffRow.cash_box(card_a), "b"),
            (StaffRow.company_expense(), "b"),
        ]
    )

    assert merged[0].is_company_expense
    assert [row.bank_card_id for row in merged[1:3]] == [card_a, card_b]
    assert merged[1].source_labels == ["a", "b"]
    assert merged[3].staff_name == "Ana"
    assert all(row.origin is None for row in merged)


def test_merge_notes_deduplicates_trimmed_values():
    assert merge_notes("late", " late ", " | ") == "late"
    assert merge_notes("late", "early", " | ") == "late | early"
    assert merge_notes("late | early", "early", " | ") == "late | early"
    assert merge_notes("", "  ", " | ") == ""
    assert merge_notes("", " early", " | ") == "early"


def test_merge_notes_keeps_distinct_note_when_base_contains_bare_pipe():
    assert merge_notes("a|b", "b", " | ") == "a|b | b"
    assert merge_notes("a|b | b", "b", " | ") == "a|b | b"


def test_partition_routes_rows_to_their_origin():
    report_a, report_b = uuid.uuid4(), uuid.uuid4()
    partitions = partition_by_origin(
        [OrderRow(order_id="A1", origin=report_a), OrderRow(order_id="N1")],
        [StaffRow(staff_name="Ana", origin=report_a)],
        default_origin=report_b,
        known_origins=[report_a, report_b],
    )

    assert [row.order_id for row in partitions[report_a][0]] == ["A1"]
    assert [row.order_id for row in partitions[report_b][0]] == ["N1"]
    assert [row.staff_name for row in partitions[report_a][1]] == ["Ana"]


def test_partition_keeps_emptied_origins():
    report_a, report_b = uuid.uuid4(), uuid.uuid4()
    partitions = partition_by_origin(
        [OrderRow(order_id="A1", origin=report_a)],
        [],
        default_origin=report_a,
        known_origins=[report_a, report_b],
    )

    assert partitions[report_b] == ([], [])


def test_partition_rejects_unknown_origin():
    with pytest.raises(AppError) as exc:
        partition_by_origin(
            [OrderRow(order_id="X", origin=uuid.uuid4())],
            [],
            default_origin=uuid.uuid4(),
            known_origins=[],
        )

    assert exc.value.error.code == "VALIDATION_ERROR"
