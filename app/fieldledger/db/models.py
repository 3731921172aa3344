import uuid
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import Boolean, Date, DateTime, ForeignKey, Index, Numeric, String, Text, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship
from sqlalchemy.types import CHAR, TypeDecorator

MONEY = Numeric(14, 2)

REPORT_REFERENCE_TYPE = "daily_report_staff"
TRANSFER_REFERENCE_TYPE = "card_transfer"


class GUID(TypeDecorator):
    impl = CHAR
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == "postgresql":
            from sqlalchemy.dialects.postgresql import UUID

            return dialect.type_descriptor(UUID(as_uuid=True))
        return dialect.type_descriptor(CHAR(36))

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if isinstance(value, uuid.UUID):
            return str(value)
        return str(uuid.UUID(str(value)))

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        if isinstance(value, uuid.UUID):
            return value
        return uuid.UUID(value)


class Base(DeclarativeBase):
    pass


class DailyReport(Base):
    __tablename__ = "daily_reports"

    id: Mapped[uuid.UUID] = mapped_column(GUID(), primary_key=True, default=uuid.uuid4)
    report_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    created_by: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    module_key: Mapped[str] = mapped_column(String(128), nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)

    orders = relationship(
        "OrderActivityRow",
        back_populates="report",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    staff = relationship(
        "StaffActivityRow",
        back_populates="report",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (
        UniqueConstraint("report_date", "created_by", "module_key", name="uq_daily_report_owner"),
    )


class OrderActivityRow(Base):
    __tablename__ = "daily_report_orders"

    id: Mapped[uuid.UUID] = mapped_column(GUID(), primary_key=True, default=uuid.uuid4)
    daily_report_id: Mapped[uuid.UUID] = mapped_column(
        GUID(), ForeignKey("daily_reports.id", ondelete="CASCADE"), index=True, nullable=False
    )
    position: Mapped[int] = mapped_column(default=0, nullable=False)
    order_id: Mapped[str] = mapped_column(String(64), nullable=False)
    activity_description: Mapped[str] = mapped_column(Text, default="", nullable=False)
    service_details: Mapped[str] = mapped_column(Text, default="", nullable=False)
    team_name: Mapped[str] = mapped_column(String(255), default="", nullable=False)
    notes: Mapped[str] = mapped_column(Text, default="", nullable=False)
    row_color: Mapped[str] = mapped_column(String(32), default="yellow", nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)

    report = relationship("DailyReport", back_populates="orders")


class StaffActivityRow(Base):
    __tablename__ = "daily_report_staff"

    id: Mapped[uuid.UUID] = mapped_column(GUID(), primary_key=True, default=uuid.uuid4)
    daily_report_id: Mapped[uuid.UUID] = mapped_column(
        GUID(), ForeignKey("daily_reports.id", ondelete="CASCADE"), index=True, nullable=False
    )
    position: Mapped[int] = mapped_column(default=0, nullable=False)
    staff_user_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    staff_name: Mapped[str] = mapped_column(String(255), default="", nullable=False)
    work_status: Mapped[str] = mapped_column(String(16), default="absent", nullable=False)
    overtime_hours: Mapped[Decimal] = mapped_column(Numeric(6, 2), default=0, nullable=False)
    amount_received: Mapped[Decimal] = mapped_column(MONEY, default=0, nullable=False)
    receiving_notes: Mapped[str] = mapped_column(Text, default="", nullable=False)
    amount_spent: Mapped[Decimal] = mapped_column(MONEY, default=0, nullable=False)
    spending_notes: Mapped[str] = mapped_column(Text, default="", nullable=False)
    notes: Mapped[str] = mapped_column(Text, default="", nullable=False)
    is_cash_box: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_company_expense: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    bank_card_id: Mapped[uuid.UUID | None] = mapped_column(
        GUID(), ForeignKey("bank_cards.id", ondelete="SET NULL"), index=True, nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)

    report = relationship("DailyReport", back_populates="staff")


class BankCard(Base):
    __tablename__ = "bank_cards"

    id: Mapped[uuid.UUID] = mapped_column(GUID(), primary_key=True, default=uuid.uuid4)
    card_name: Mapped[str] = mapped_column(String(255), nullable=False)
    bank_name: Mapped[str] = mapped_column(String(255), nullable=False)
    card_number: Mapped[str | None] = mapped_column(String(32), nullable=True)
    initial_balance: Mapped[Decimal] = mapped_column(MONEY, default=0, nullable=False)
    current_balance: Mapped[Decimal] = mapped_column(MONEY, default=0, nullable=False)
    registration_date: Mapped[date] = mapped_column(Date, nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_by: Mapped[str] = mapped_column(String(64), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)


class BankCardTransaction(Base):
    __tablename__ = "bank_card_transactions"

    id: Mapped[uuid.UUID] = mapped_column(GUID(), primary_key=True, default=uuid.uuid4)
    bank_card_id: Mapped[uuid.UUID] = mapped_column(
        GUID(), ForeignKey("bank_cards.id", ondelete="CASCADE"), index=True, nullable=False
    )
    transaction_type: Mapped[str] = mapped_column(String(16), nullable=False)
    amount: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    balance_after: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    reference_type: Mapped[str | None] = mapped_column(String(64), nullable=True)
    reference_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    created_by: Mapped[str | None] = mapped_column(String(64), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)


class DailyReportDateLock(Base):
    __tablename__ = "daily_report_date_locks"

    id: Mapped[uuid.UUID] = mapped_column(GUID(), primary_key=True, default=uuid.uuid4)
    report_date: Mapped[date] = mapped_column(Date, nullable=False, unique=True)
    locked_by: Mapped[str] = mapped_column(String(64), nullable=False)
    locked_by_module_key: Mapped[str | None] = mapped_column(String(128), nullable=True)
    locked_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)


Index("ix_daily_reports_date_module", DailyReport.report_date, DailyReport.module_key)
Index("ix_daily_report_staff_card_cash_box", StaffActivityRow.bank_card_id, StaffActivityRow.is_cash_box)
Index(
    "ix_bank_card_transactions_reference",
    BankCardTransaction.reference_type,
    BankCardTransaction.reference_id,
)
