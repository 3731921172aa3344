from __future__ import annotations

import uuid
from dataclasses import dataclass, field, fields, replace
from decimal import Decimal, InvalidOperation
from typing import Iterable

from app.fieldledger.core.error_catalog import AppError, ErrorCatalog
from app.fieldledger.db.models import OrderActivityRow, StaffActivityRow

WORKED = "worked"
ABSENT = "absent"
WORK_STATUSES = (WORKED, ABSENT)

ROW_COLORS = ("yellow", "gold", "cyan", "purple", "peach", "brown", "olive", "green")

CASH_BOX_NAME = "Cash box"
COMPANY_EXPENSE_NAME = "Company expense"

MAX_OVERTIME_HOURS = Decimal("24")
ZERO = Decimal("0")

ORDER_FIELDS = ("order_id", "activity_description", "service_details", "team_name", "notes", "row_color")
ORDER_CONTENT_FIELDS = ("order_id", "activity_description", "service_details", "team_name", "notes")

STAFF_TEXT_FIELDS = ("staff_name", "receiving_notes", "spending_notes", "notes")
STAFF_AMOUNT_FIELDS = ("overtime_hours", "amount_received", "amount_spent")
STAFF_FIELDS = (
    "staff_user_id",
    "staff_name",
    "work_status",
    "overtime_hours",
    "amount_received",
    "receiving_notes",
    "amount_spent",
    "spending_notes",
    "notes",
    "bank_card_id",
)


def _invalid(message: str, **details) -> AppError:
    return AppError(ErrorCatalog.VALIDATION_ERROR, details={"message": message, **details})


def to_decimal(value, field_name: str) -> Decimal:
    if value is None or value == "":
        return ZERO
    if isinstance(value, bool):
        raise _invalid(f"{field_name} must be a number", field=field_name)
    try:
        number = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError) as exc:
        raise _invalid(f"{field_name} must be a number", field=field_name) from exc
    if not number.is_finite():
        raise _invalid(f"{field_name} must be a number", field=field_name)
    return number


def to_uuid(value, field_name: str) -> uuid.UUID | None:
    if value in (None, ""):
        return None
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except ValueError as exc:
        raise _invalid(f"{field_name} must be a UUID", field=field_name) from exc


def normalize_work_status(value) -> str:
    """Maps stored or legacy values onto worked/absent."""
    if isinstance(value, str) and value.strip().lower() in (WORKED, "present"):
        return WORKED
    return ABSENT


@dataclass
class OrderRow:
    order_id: str = ""
    activity_description: str = ""
    service_details: str = ""
    team_name: str = ""
    notes: str = ""
    row_color: str = ROW_COLORS[0]
    origin: uuid.UUID | None = None
    source_label: str | None = None

    def is_empty(self) -> bool:
        return not any((getattr(self, name) or "").strip() for name in ORDER_CONTENT_FIELDS)

    def is_persistable(self) -> bool:
        return bool(self.order_id.strip())

    @classmethod
    def from_model(cls, row: OrderActivityRow, *, origin=None, source_label: str | None = None) -> "OrderRow":
        return cls(
            order_id=row.order_id or "",
            activity_description=row.activity_description or "",
            service_details=row.service_details or "",
            team_name=row.team_name or "",
            notes=row.notes or "",
            row_color=row.row_color or ROW_COLORS[0],
            origin=origin,
            source_label=source_label,
        )

    def to_model(self, report_id, position: int) -> OrderActivityRow:
        return OrderActivityRow(
            daily_report_id=report_id,
            position=position,
            order_id=self.order_id.strip(),
            activity_description=self.activity_description,
            service_details=self.service_details,
            team_name=self.team_name,
            notes=self.notes,
            row_color=self.row_color or ROW_COLORS[0],
        )


@dataclass
class StaffRow:
    staff_user_id: str | None = None
    staff_name: str = ""
    work_status: str = ABSENT
    overtime_hours: Decimal = ZERO
    amount_received: Decimal = ZERO
    receiving_notes: str = ""
    amount_spent: Decimal = ZERO
    spending_notes: str = ""
    notes: str = ""
    is_cash_box: bool = False
    is_company_expense: bool = False
    bank_card_id: uuid.UUID | None = None
    origin: uuid.UUID | None = None
    source_labels: list[str] = field(default_factory=list)

    @property
    def is_ordinary(self) -> bool:
        return not self.is_cash_box and not self.is_company_expense

    def has_content(self) -> bool:
        return bool(
            self.staff_user_id
            or self.staff_name.strip()
            or self.overtime_hours > 0
            or self.amount_received > 0
            or self.amount_spent > 0
            or self.receiving_notes.strip()
            or self.spending_notes.strip()
            or self.notes.strip()
        )

    def is_empty(self) -> bool:
        return self.is_ordinary and not self.has_content()

    def is_blank_company_expense(self) -> bool:
        return self.is_company_expense and not (
            self.overtime_hours > 0
            or self.amount_received > 0
            or self.amount_spent > 0
            or self.receiving_notes.strip()
            or self.spending_notes.strip()
            or self.notes.strip()
        )

    @classmethod
    def cash_box(cls, bank_card_id=None, *, origin=None) -> "StaffRow":
        return cls(staff_name=CASH_BOX_NAME, work_status=WORKED, is_cash_box=True, bank_card_id=bank_card_id, origin=origin)

    @classmethod
    def company_expense(cls, *, origin=None) -> "StaffRow":
        return cls(staff_name=COMPANY_EXPENSE_NAME, work_status=WORKED, is_company_expense=True, origin=origin)

    @classmethod
    def from_model(cls, row: StaffActivityRow, *, origin=None, source_label: str | None = None) -> "StaffRow":
        return cls(
            staff_user_id=row.staff_user_id,
            staff_name=row.staff_name or "",
            work_status=normalize_work_status(row.work_status),
            overtime_hours=to_decimal(row.overtime_hours, "overtime_hours"),
            amount_received=to_decimal(row.amount_received, "amount_received"),
            receiving_notes=row.receiving_notes or "",
            amount_spent=to_decimal(row.amount_spent, "amount_spent"),
            spending_notes=row.spending_notes or "",
            notes=row.notes or "",
            is_cash_box=bool(row.is_cash_box) and not bool(row.is_company_expense),
            is_company_expense=bool(row.is_company_expense),
            bank_card_id=row.bank_card_id,
            origin=origin,
            source_labels=[source_label] if source_label else [],
        )

    def to_model(self, report_id, position: int) -> StaffActivityRow:
        return StaffActivityRow(
            daily_report_id=report_id,
            position=position,
            staff_user_id=self.staff_user_id or None,
            staff_name=self.staff_name.strip(),
            work_status=self.work_status,
            overtime_hours=self.overtime_hours,
            amount_received=self.amount_received,
            receiving_notes=self.receiving_notes,
            amount_spent=self.amount_spent,
            spending_notes=self.spending_notes,
            notes=self.notes,
            is_cash_box=self.is_cash_box,
            is_company_expense=self.is_company_expense,
            bank_card_id=self.bank_card_id if self.is_cash_box else None,
        )


def validate_staff_row(row: StaffRow, *, index: int | None = None) -> None:
    where = {"index": index} if index is not None else {}
    if row.work_status not in WORK_STATUSES:
        raise _invalid("unknown work_status", field="work_status", **where)
    for name in STAFF_AMOUNT_FIELDS:
        if getattr(row, name) < 0:
            raise _invalid(f"{name} must not be negative", field=name, **where)
    if row.overtime_hours > MAX_OVERTIME_HOURS:
        raise _invalid("overtime_hours must not exceed 24", field="overtime_hours", **where)
    if row.is_cash_box and row.is_company_expense:
        raise _invalid("row cannot be both cash box and company expense", **where)


def validate_order_row(row: OrderRow, *, index: int | None = None) -> None:
    if row.row_color not in ROW_COLORS:
        where = {"index": index} if index is not None else {}
        raise _invalid("unknown row_color", field="row_color", **where)


@dataclass
class ReportTotals:
    present_count: int = 0
    total_overtime: Decimal = ZERO
    total_received: Decimal = ZERO
    total_spent: Decimal = ZERO
    cash_box_spent: Decimal = ZERO
    staff_received: Decimal = ZERO


def compute_totals(staff: Iterable[StaffRow]) -> ReportTotals:
    totals = ReportTotals()
    for row in staff:
        if row.is_ordinary and row.work_status == WORKED:
            totals.present_count += 1
        totals.total_overtime += row.overtime_hours
        totals.total_received += row.amount_received
        totals.total_spent += row.amount_spent
        if row.is_cash_box:
            totals.cash_box_spent += row.amount_spent
        else:
            totals.staff_received += row.amount_received
    return totals


class ReportRows:
    """Editable row collections of one report view.

    Every mutation ends with ``normalize()`` so the collections always keep
    exactly one trailing empty order row and one trailing empty ordinary staff
    row, a single company-expense row per origin, and the staff order company
    expense, cash box, ordinary.
    """

    def __init__(
        self,
        orders: Iterable[OrderRow] = (),
        staff: Iterable[StaffRow] = (),
        *,
        normalize: bool = True,
    ):
        self.orders: list[OrderRow] = list(orders)
        self.staff: list[StaffRow] = list(staff)
        if normalize:
            self.normalize()

    def copy(self) -> "ReportRows":
        return ReportRows(
            [replace(row) for row in self.orders],
            [replace(row, source_labels=list(row.source_labels)) for row in self.staff],
            normalize=False,
        )

    def normalize(self) -> None:
        self._pad_orders()
        self._normalize_staff()

    def _pad_orders(self) -> None:
        trailing = 0
        for row in reversed(self.orders):
            if not row.is_empty():
                break
            trailing += 1
        if trailing == 0:
            self.orders.append(OrderRow(row_color=ROW_COLORS[len(self.orders) % len(ROW_COLORS)]))
        elif trailing > 1:
            del self.orders[len(self.orders) - (trailing - 1) :]

    def _normalize_staff(self) -> None:
        company: list[StaffRow] = []
        seen_origins = set()
        for row in self.staff:
            if row.is_company_expense and row.origin not in seen_origins:
                seen_origins.add(row.origin)
                company.append(row)
        if not company:
            company.append(StaffRow.company_expense())
        cash_box = [row for row in self.staff if row.is_cash_box]
        ordinary = [row for row in self.staff if row.is_ordinary]

        trailing = 0
        for row in reversed(ordinary):
            if not row.is_empty():
                break
            trailing += 1
        if trailing == 0:
            ordinary.append(StaffRow())
        elif trailing > 1:
            del ordinary[len(ordinary) - (trailing - 1) :]

        self.staff = company + cash_box + ordinary

    def _check_index(self, rows: list, index: int, collection: str) -> None:
        if not isinstance(index, int) or isinstance(index, bool) or index < 0 or index >= len(rows):
            raise _invalid("row index out of range", collection=collection, index=index)

    def update_order(self, index: int, field_name: str, value) -> OrderRow:
        self._check_index(self.orders, index, "orders")
        if field_name not in ORDER_FIELDS:
            raise _invalid("unknown order field", field=field_name)
        text = "" if value is None else str(value)
        updated = replace(self.orders[index], **{field_name: text})
        validate_order_row(updated, index=index)
        self.orders[index] = updated
        self.normalize()
        return updated

    def delete_order(self, index: int) -> None:
        self._check_index(self.orders, index, "orders")
        del self.orders[index]
        self.normalize()

    def update_staff(self, index: int, field_name: str, value) -> StaffRow:
        self._check_index(self.staff, index, "staff")
        if field_name not in STAFF_FIELDS:
            raise _invalid("unknown staff field", field=field_name)
        current = self.staff[index]
        if field_name in STAFF_AMOUNT_FIELDS:
            coerced = to_decimal(value, field_name)
        elif field_name == "bank_card_id":
            if not current.is_cash_box:
                raise _invalid("bank_card_id is only allowed on cash-box rows", field=field_name, index=index)
            coerced = to_uuid(value, field_name)
        elif field_name == "staff_user_id":
            coerced = str(value).strip() if value not in (None, "") else None
        else:
            coerced = "" if value is None else str(value)
        updated = replace(current, **{field_name: coerced}, source_labels=list(current.source_labels))
        validate_staff_row(updated, index=index)
        self.staff[index] = updated
        self.normalize()
        return updated

    def delete_staff(self, index: int) -> None:
        self._check_index(self.staff, index, "staff")
        row = self.staff[index]
        if row.is_company_expense:
            raise _invalid("company expense row cannot be deleted", index=index)
        if row.is_cash_box and sum(1 for item in self.staff if item.is_cash_box) <= 1:
            raise AppError(ErrorCatalog.CASH_BOX_FLOOR, details={"index": index})
        del self.staff[index]
        self.normalize()

    def add_cash_box_row(self, bank_card_id=None, *, origin=None) -> StaffRow:
        row = StaffRow.cash_box(to_uuid(bank_card_id, "bank_card_id"), origin=origin)
        self.staff.append(row)
        self.normalize()
        return row

    def validate(self) -> None:
        for index, row in enumerate(self.orders):
            validate_order_row(row, index=index)
        for index, row in enumerate(self.staff):
            validate_staff_row(row, index=index)

    def persistable_orders(self) -> list[OrderRow]:
        return [row for row in self.orders if row.is_persistable()]

    def persistable_staff(self) -> list[StaffRow]:
        kept = []
        company_origins = set()
        for row in self.staff:
            if row.is_company_expense:
                if row.origin in company_origins:
                    continue
                company_origins.add(row.origin)
                kept.append(row)
            elif row.is_cash_box or row.has_content():
                kept.append(row)
        return kept

    def filled_order_count(self) -> int:
        return len(self.persistable_orders())

    def totals(self) -> ReportTotals:
        return compute_totals(self.staff)


def row_snapshot(row: OrderRow | StaffRow) -> dict:
    """Whitespace-trimmed, JSON-friendly view of a row (origin included)."""
    snapshot = {}
    for item in fields(row):
        if item.name == "source_labels" or item.name == "source_label":
            continue
        value = getattr(row, item.name)
        if isinstance(value, str):
            value = value.strip()
        elif isinstance(value, Decimal):
            value = format(value.normalize(), "f") if value else "0"
        elif isinstance(value, uuid.UUID):
            value = str(value)
        snapshot[item.name] = value
    return snapshot
