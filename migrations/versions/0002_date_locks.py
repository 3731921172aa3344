"""daily report date finalization locks

Revision ID: 0002_date_locks
Revises: 0001_initial
Create Date: 2026-09-15 00:00:00.000000
"""

from alembic import op
import sqlalchemy as sa


revision = "0002_date_locks"
down_revision = "0001_initial"
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
        "daily_report_date_locks",
        sa.Column("id", GUID(), primary_key=True),
        sa.Column("report_date", sa.Date(), nullable=False),
        sa.Column("locked_by", sa.String(length=64), nullable=False),
        sa.Column("locked_by_module_key", sa.String(length=128), nullable=True),
        sa.Column("locked_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("report_date", name="uq_daily_report_date_locks_report_date"),
    )


def downgrade() -> None:
    op.drop_table("daily_report_date_locks")
