"""initial daily reports and bank card ledger

Revision ID: 0001_initial
Revises:
Create Date: 2026-09-01 00:00:00.000000
"""

from alembic import op
import sqlalchemy as sa


revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None


class GUID(sa.TypeDecorator):
    impl = sa.CHAR
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == "postgresql":
            from sqlalchemy.dialects.postgresql import UUID

            return dialect.type_descriptor(UUID(as_uuid=True))
        return dialect.type_descriptor(sa.CHAR(36))


def upgrade() -> None:
    op.create_table(
        "bank_cards",
        sa.Column("id", GUID(), primary_key=True),
        sa.Column("card_name", sa.String(length=255), nullable=False),
        sa.Column("bank_name", sa.String(length=255), nullable=False),
        sa.Column("card_number", sa.String(length=32), nullable=True),
        sa.Column("initial_balance", sa.Numeric(14, 2), nullable=False),
        sa.Column("current_balance", sa.Numeric(14, 2), nullable=False),
        sa.Column("registration_date", sa.Date(), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("created_by", sa.String(length=64), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )

    op.create_table(
        "daily_reports",
        sa.Column("id", GUID(), primary_key=True),
        sa.Column("report_date", sa.Date(), nullable=False),
        sa.Column("created_by", sa.String(length=64), nullable=False),
        sa.Column("module_key", sa.String(length=128), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("report_date", "created_by", "module_key", name="uq_daily_report_owner"),
    )
    op.create_index("ix_daily_reports_report_date", "daily_reports", ["report_date"])
    op.create_index("ix_daily_reports_created_by", "daily_reports", ["created_by"])
    op.create_index("ix_daily_reports_date_module", "daily_reports", ["report_date", "module_key"])

    op.create_table(
        "daily_report_orders",
        sa.Column("id", GUID(), primary_key=True),
        sa.Column(
            "daily_report_id",
            GUID(),
            sa.ForeignKey("daily_reports.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("order_id", sa.String(length=64), nullable=False),
        sa.Column("activity_description", sa.Text(), nullable=False),
        sa.Column("service_details", sa.Text(), nullable=False),
        sa.Column("team_name", sa.String(length=255), nullable=False),
        sa.Column("notes", sa.Text(), nullable=False),
        sa.Column("row_color", sa.String(length=32), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_daily_report_orders_daily_report_id", "daily_report_orders", ["daily_report_id"])

    op.create_table(
        "daily_report_staff",
        sa.Column("id", GUID(), primary_key=True),
        sa.Column(
            "daily_report_id",
            GUID(),
            sa.ForeignKey("daily_reports.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("staff_user_id", sa.String(length=64), nullable=True),
        sa.Column("staff_name", sa.String(length=255), nullable=False),
        sa.Column("work_status", sa.String(length=16), nullable=False),
        sa.Column("overtime_hours", sa.Numeric(6, 2), nullable=False),
        sa.Column("amount_received", sa.Numeric(14, 2), nullable=False),
        sa.Column("receiving_notes", sa.Text(), nullable=False),
        sa.Column("amount_spent", sa.Numeric(14, 2), nullable=False),
        sa.Column("spending_notes", sa.Text(), nullable=False),
        sa.Column("notes", sa.Text(), nullable=False),
        sa.Column("is_cash_box", sa.Boolean(), nullable=False),
        sa.Column("is_company_expense", sa.Boolean(), nullable=False),
        sa.Column(
            "bank_card_id",
            GUID(),
            sa.ForeignKey("bank_cards.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_daily_report_staff_daily_report_id", "daily_report_staff", ["daily_report_id"])
    op.create_index("ix_daily_report_staff_bank_card_id", "daily_report_staff", ["bank_card_id"])
    op.create_index(
        "ix_daily_report_staff_card_cash_box",
        "daily_report_staff",
        ["bank_card_id", "is_cash_box"],
    )

    op.create_table(
        "bank_card_transactions",
        sa.Column("id", GUID(), primary_key=True),
        sa.Column(
            "bank_card_id",
            GUID(),
            sa.ForeignKey("bank_cards.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("transaction_type", sa.String(length=16), nullable=False),
        sa.Column("amount", sa.Numeric(14, 2), nullable=False),
        sa.Column("balance_after", sa.Numeric(14, 2), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("reference_type", sa.String(length=64), nullable=True),
        sa.Column("reference_id", sa.String(length=64), nullable=True),
        sa.Column("created_by", sa.String(length=64), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_bank_card_transactions_bank_card_id", "bank_card_transactions", ["bank_card_id"])
    op.create_index(
        "ix_bank_card_transactions_reference",
        "bank_card_transactions",
        ["reference_type", "reference_id"],
    )


def downgrade() -> None:
    op.drop_index("ix_bank_card_transactions_reference", table_name="bank_card_transactions")
    op.drop_index("ix_bank_card_transactions_bank_card_id", table_name="bank_card_transactions")
    op.drop_table("bank_card_transactions")
    op.drop_index("ix_daily_report_staff_card_cash_box", table_name="daily_report_staff")
    op.drop_index("ix_daily_report_staff_bank_card_id", table_name="daily_report_staff")
    op.drop_index("ix_daily_report_staff_daily_report_id", table_name="daily_report_staff")
    op.drop_table("daily_report_staff")
    op.drop_index("ix_daily_report_orders_daily_report_id", table_name="daily_report_orders")
    op.drop_table("daily_report_orders")
    op.drop_index("ix_daily_reports_date_module", table_name="daily_reports")
    op.drop_index("ix_daily_reports_created_by", table_name="daily_reports")
    op.drop_index("ix_daily_reports_report_date", table_name="daily_reports")
    op.drop_table("daily_reports")
    op.drop_table("bank_cards")
