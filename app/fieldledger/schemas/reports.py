from datetime import date, datetime
from decimal import Decimal
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from app.fieldledger.core.config import settings
from app.fieldledger.schemas.common import BalanceValue, HoursValue, MoneyValue
from app.fieldledger.services.rows import OrderRow, ReportRows, StaffRow

RowColor = Literal["yellow", "gold", "cyan", "purple", "peach", "brown", "olive", "green"]


class OrderRowPayload(BaseModel):
    model_config = ConfigDict(extra="forbid")

    order_id: str = ""
    activity_description: str = ""
    service_details: str = ""
    team_name: str = ""
    notes: str = ""
    row_color: RowColor = "yellow"
    origin: UUID | None = None

    def to_row(self) -> OrderRow:
        return OrderRow(**self.model_dump())

    @classmethod
    def from_row(cls, row: OrderRow) -> "OrderRowPayload":
        return cls(
            order_id=row.order_id,
            activity_description=row.activity_description,
            service_details=row.service_details,
            team_name=row.team_name,
            notes=row.notes,
            row_color=row.row_color,
            origin=row.origin,
        )


class StaffRowPayload(BaseModel):
    model_config = ConfigDict(extra="forbid")

    staff_user_id: str | None = None
    staff_name: str = ""
    work_status: Literal["worked", "absent"] = "absent"
    overtime_hours: HoursValue = Field(default=Decimal("0"))
    amount_received: MoneyValue = Field(default=Decimal("0"), examples=["150.00"])
    receiving_notes: str = ""
    amount_spent: MoneyValue = Field(default=Decimal("0"), examples=["0.00"])
    spending_notes: str = ""
    notes: str = ""
    is_cash_box: bool = False
    is_company_expense: bool = False
    bank_card_id: UUID | None = None
    origin: UUID | None = None

    def to_row(self) -> StaffRow:
        return StaffRow(**self.model_dump())

    @classmethod
    def from_row(cls, row: StaffRow) -> "StaffRowPayload":
        return cls(
            staff_user_id=row.staff_user_id,
            staff_name=row.staff_name,
            work_status=row.work_status,
            overtime_hours=row.overtime_hours,
            amount_received=row.amount_received,
            receiving_notes=row.receiving_notes,
            amount_spent=row.amount_spent,
            spending_notes=row.spending_notes,
            notes=row.notes,
            is_cash_box=row.is_cash_box,
            is_company_expense=row.is_company_expense,
            bank_card_id=row.bank_card_id,
            origin=row.origin,
        )


def rows_from_payload(orders: list[OrderRowPayload], staff: list[StaffRowPayload]) -> ReportRows:
    return ReportRows([item.to_row() for item in orders], [item.to_row() for item in staff])


class ReportSaveRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    module_key: str = Field(default_factory=lambda: settings.DEFAULT_MODULE_KEY, min_length=1, max_length=128)
    notes: str | None = None
    autosave: bool = False
    orders: list[OrderRowPayload] = Field(default_factory=list)
    staff: list[StaffRowPayload] = Field(default_factory=list)

    def to_rows(self) -> ReportRows:
        return rows_from_payload(self.orders, self.staff)


class ParentSaveRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    module_key: str = Field(default_factory=lambda: settings.DEFAULT_MODULE_KEY, min_length=1, max_length=128)
    autosave: bool = False
    orders: list[OrderRowPayload] = Field(default_factory=list)
    staff: list[StaffRowPayload] = Field(default_factory=list)

    def to_rows(self) -> ReportRows:
        return rows_from_payload(self.orders, self.staff)


class OrderRowResponse(BaseModel):
    order_id: str
    activity_description: str
    service_details: str
    team_name: str
    notes: str
    row_color: str
    origin: str | None = None
    source_label: str | None = None


class StaffRowResponse(BaseModel):
    staff_user_id: str | None
    staff_name: str
    work_status: str
    overtime_hours: BalanceValue
    amount_received: BalanceValue
    receiving_notes: str
    amount_spent: BalanceValue
    spending_notes: str
    notes: str
    is_cash_box: bool
    is_company_expense: bool
    bank_card_id: str | None
    origin: str | None = None
    source_labels: list[str] = Field(default_factory=list)


class ReportTotalsResponse(BaseModel):
    present_count: int
    total_overtime: BalanceValue
    total_received: BalanceValue
    total_spent: BalanceValue
    cash_box_spent: BalanceValue
    staff_received: BalanceValue


class ReportSummary(BaseModel):
    id: str
    report_date: date
    created_by: str
    module_key: str
    notes: str | None
    created_at: datetime
    updated_at: datetime


class ReportViewResponse(BaseModel):
    mode: Literal["own", "parent", "aggregate"]
    report_date: date
    module_key: str | None
    report_id: str | None
    notes: str | None
    read_only: bool
    content_hash: str | None
    orders: list[OrderRowResponse]
    staff: list[StaffRowResponse]
    totals: ReportTotalsResponse
    reports: list[ReportSummary]


class ReportSaveResponse(BaseModel):
    status: Literal["saved", "unchanged", "busy"]
    content_hash: str | None
    report_ids: list[str]
    balances: dict[str, BalanceValue]
    message: str | None = None


class SavedReportItem(ReportSummary):
    orders_count: int
    staff_count: int


class SavedReportListResponse(BaseModel):
    rows: list[SavedReportItem]
    total: int


class ReportDeleteResponse(BaseModel):
    report_id: str
    balances: dict[str, BalanceValue]


class ApprovalCodeResponse(BaseModel):
    sent: bool


class DedupeResponse(BaseModel):
    removed_orders: int
    removed_staff: int
    report_ids: list[str]
    balances: dict[str, BalanceValue]
