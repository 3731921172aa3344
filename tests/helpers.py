from datetime import date, datetime
from decimal import Decimal

from app.fieldledger.core.security import create_access_token
from app.fieldledger.db.models import BankCard, BankCardTransaction, DailyReport
from app.fieldledger.services.rows import WORKED, OrderRow, StaffRow

REPORT_DATE = date(2024, 3, 18)


def auth_headers(user_id: str, role: str = "USER") -> dict:
    token = create_access_token({"sub": user_id, "role": role, "username": user_id})
    return {"Authorization": f"Bearer {token}"}


def manager_headers(user_id: str = "manager-1") -> dict:
    return auth_headers(user_id, role="GENERAL_MANAGER")


def create_card(db, *, name: str = "Main card", initial_balance: str = "1000.00", is_active: bool = True) -> BankCard:
    now = datetime.utcnow()
    card = BankCard(
        card_name=name,
        bank_name="Field Bank",
        initial_balance=Decimal(initial_balance),
        current_balance=Decimal(initial_balance),
        registration_date=date(2024, 1, 1),
        is_active=is_active,
        created_by="manager-1",
        created_at=now,
        updated_at=now,
    )
    db.add(card)
    db.commit()
    db.refresh(card)
    return card


def add_manual_transaction(db, card, *, transaction_type: str, amount: str, reference_type: str | None = None):
    txn = BankCardTransaction(
        bank_card_id=card.id,
        transaction_type=transaction_type,
        amount=Decimal(amount),
        balance_after=Decimal("0"),
        reference_type=reference_type,
        created_at=datetime.utcnow(),
    )
    db.add(txn)
    db.commit()
    return txn


def create_report(
    db,
    *,
    created_by: str,
    report_date: date = REPORT_DATE,
    module_key: str = "daily_report",
    orders: list[OrderRow] | None = None,
    staff: list[StaffRow] | None = None,
) -> DailyReport:
    now = datetime.utcnow()
    report = DailyReport(
        report_date=report_date,
        created_by=created_by,
        module_key=module_key,
        created_at=now,
        updated_at=now,
    )
    db.add(report)
    db.flush()
    for position, row in enumerate(orders or []):
        db.add(row.to_model(report.id, position))
    for position, row in enumerate(staff or []):
        db.add(row.to_model(report.id, position))
    db.commit()
    db.refresh(report)
    return report


def order(order_id: str, **fields) -> OrderRow:
    return OrderRow(order_id=order_id, **fields)


def worker(name: str, **fields) -> StaffRow:
    fields.setdefault("work_status", WORKED)
    for key in ("overtime_hours", "amount_received", "amount_spent"):
        if key in fields:
            fields[key] = Decimal(str(fields[key]))
    return StaffRow(staff_name=name, **fields)


def cash_box(card_id, *, received="0", spent="0", notes: str = "", origin=None) -> StaffRow:
    row = StaffRow.cash_box(card_id, origin=origin)
    row.amount_received = Decimal(received)
    row.amount_spent = Decimal(spent)
    row.notes = notes
    return row


class FakeTimer:
    def __init__(self, interval, function):
        self.interval = interval
        self.function = function
        self.daemon = False
        self.started = False
        self.cancelled = False

    def start(self):
        self.started = True

    def cancel(self):
        self.cancelled = True

    def fire(self):
        if not self.cancelled:
            self.function()


class FakeTimerFactory:
    """Records timers instead of starting threads so debounce tests never sleep."""

    def __init__(self):
        self.timers: list[FakeTimer] = []

    def __call__(self, interval, function):
        timer = FakeTimer(interval, function)
        self.timers.append(timer)
        return timer

    @property
    def live(self) -> list[FakeTimer]:
        return [timer for timer in self.timers if not timer.cancelled]
