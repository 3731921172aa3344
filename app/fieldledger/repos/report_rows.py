from sqlalchemy import delete, select

from app.fieldledger.db.models import OrderActivityRow, StaffActivityRow


class ReportRowRepository:
    """Child rows of daily reports. Callers own the transaction."""

    def __init__(self, db):
        self.db = db

    def list_orders(self, report_ids: list):
        if not report_ids:
            return []
        stmt = (
            select(OrderActivityRow)
            .where(OrderActivityRow.daily_report_id.in_(report_ids))
            .order_by(OrderActivityRow.position.asc(), OrderActivityRow.created_at.asc())
        )
        return self.db.execute(stmt).scalars().all()

    def list_staff(self, report_ids: list):
        if not report_ids:
            return []
        stmt = (
            select(StaffActivityRow)
            .where(StaffActivityRow.daily_report_id.in_(report_ids))
            .order_by(StaffActivityRow.position.asc(), StaffActivityRow.created_at.asc())
        )
        return self.db.execute(stmt).scalars().all()

    def list_cash_box_rows_for_card(self, bank_card_id):
        stmt = select(StaffActivityRow).where(
            StaffActivityRow.bank_card_id == bank_card_id,
            StaffActivityRow.is_cash_box.is_(True),
        )
        return self.db.execute(stmt).scalars().all()

    def cash_box_card_ids(self, report_ids: list) -> set:
        if not report_ids:
            return set()
        stmt = select(StaffActivityRow.bank_card_id).where(
            StaffActivityRow.daily_report_id.in_(report_ids),
            StaffActivityRow.is_cash_box.is_(True),
            StaffActivityRow.bank_card_id.is_not(None),
        )
        return set(self.db.execute(stmt).scalars().all())

    def delete_for_report(self, report_id) -> None:
        self.db.execute(delete(OrderActivityRow).where(OrderActivityRow.daily_report_id == report_id))
        self.db.execute(delete(StaffActivityRow).where(StaffActivityRow.daily_report_id == report_id))

    def delete_by_ids(self, model, row_ids: list, *, batch_size: int = 100) -> int:
        deleted = 0
        for start in range(0, len(row_ids), batch_size):
            batch = row_ids[start : start + batch_size]
            result = self.db.execute(delete(model).where(model.id.in_(batch)))
            deleted += result.rowcount or 0
        return deleted

    def add_all(self, rows: list) -> None:
        if rows:
            self.db.add_all(rows)
