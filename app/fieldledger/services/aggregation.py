from __future__ import annotations

from dataclasses import replace
from typing import Iterable

from app.fieldledger.core.config import settings
from app.fieldledger.core.error_catalog import AppError, ErrorCatalog
from app.fieldledger.services.rows import WORKED, OrderRow, StaffRow

MERGED_NOTE_FIELDS = ("receiving_notes", "spending_notes", "notes")


def report_label(report) -> str:
    return f"{report.module_key}/{report.created_by}"


def merge_notes(base: str, incoming: str, separator: str | None = None) -> str:
    """First non-empty note wins; later distinct notes are appended.

    Notes are compared after trimming, so whitespace-only differences count
    as duplicates.
    """
    separator = settings.NOTE_SEPARATOR if separator is None else separator
    addition = (incoming or "").strip()
    current = (base or "").strip()
    if not addition:
        return current
    if not current:
        return addition
    parts = [part.strip() for part in current.split(separator)] if separator else [current]
    if addition in parts:
        return current
    return f"{current}{separator}{addition}"


def _add_label(labels: list[str], label: str | None) -> None:
    if label and label not in labels:
        labels.append(label)


def _staff_merge_key(row: StaffRow):
    if row.is_company_expense:
        return ("company_expense",)
    if row.is_cash_box:
        return ("cash_box", str(row.bank_card_id) if row.bank_card_id else None)
    if row.staff_user_id:
        return ("user", row.staff_user_id)
    return ("name", row.staff_name.strip())


def _absorb(target: StaffRow, row: StaffRow, separator: str) -> None:
    target.overtime_hours += row.overtime_hours
    target.amount_received += row.amount_received
    target.amount_spent += row.amount_spent
    if row.work_status == WORKED:
        target.work_status = WORKED
    if not target.staff_name.strip() and row.staff_name.strip():
        target.staff_name = row.staff_name.strip()
    for name in MERGED_NOTE_FIELDS:
        setattr(target, name, merge_notes(getattr(target, name), getattr(row, name), separator))
    for label in row.source_labels:
        _add_label(target.source_labels, label)


def merge_staff_rows(rows: Iterable[tuple[StaffRow, str | None]], *, separator: str | None = None) -> list[StaffRow]:
    """Merges staff rows of several reports into one read-only list.

    Cash-box rows merge by card, ordinary rows by user id (or trimmed name),
    and all company-expense rows collapse into one. Output order is company
    expense, cash box, ordinary, each in first-seen order.
    """
    separator = settings.NOTE_SEPARATOR if separator is None else separator
    merged: dict[tuple, StaffRow] = {}
    for row, label in rows:
        if row.is_ordinary and not row.has_content():
            continue
        key = _staff_merge_key(row)
        target = merged.get(key)
        if target is None:
            target = replace(
                row,
                origin=None,
                source_labels=[],
                staff_name=row.staff_name.strip(),
                receiving_notes=row.receiving_notes.strip(),
                spending_notes=row.spending_notes.strip(),
                notes=row.notes.strip(),
            )
            merged[key] = target
            for existing in row.source_labels:
                _add_label(target.source_labels, existing)
            _add_label(target.source_labels, label)
            continue
        _absorb(target, row, separator)
        _add_label(target.source_labels, label)

    company = [row for row in merged.values() if row.is_company_expense]
    if not company:
        company = [StaffRow.company_expense()]
    cash_box = [row for row in merged.values() if row.is_cash_box]
    ordinary = [row for row in merged.values() if row.is_ordinary]
    return company + cash_box + ordinary


def partition_by_origin(
    orders: Iterable[OrderRow],
    staff: Iterable[StaffRow],
    *,
    default_origin,
    known_origins: Iterable,
) -> dict:
    """Routes rows of a multi-author view back to their source reports.

    Every known origin gets an entry even when no rows remain for it, so a
    report whose rows were all deleted is rewritten as empty.
    """
    partitions: dict = {origin: ([], []) for origin in known_origins}
    partitions.setdefault(default_origin, ([], []))
    for collection_index, rows in enumerate((orders, staff)):
        for row in rows:
            origin = row.origin if row.origin is not None else default_origin
            if origin not in partitions:
                raise AppError(
                    ErrorCatalog.VALIDATION_ERROR,
                    details={"message": "row origin is not a report of this date", "origin": str(origin)},
                )
            partitions[origin][collection_index].append(row)
    return partitions
