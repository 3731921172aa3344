from datetime import date

from sqlalchemy import delete, func, select

from app.fieldledger.db.models import DailyReport, OrderActivityRow, StaffActivityRow


class DailyReportRepository:
    def __init__(self, db):
        self.db = db

    def get_by_id(self, report_id):
        return self.db.get(DailyReport, report_id)

    def get_by_owner(self, *, report_date: date, created_by: str, module_key: str):
        stmt = select(DailyReport).where(
            DailyReport.report_date == report_date,
            DailyReport.created_by == created_by,
            DailyReport.module_key == module_key,
        )
        return self.db.execute(stmt).scalars().first()

    def list_by_date(self, report_date: date, *, module_key: str | None = None):
        stmt = select(DailyReport).where(DailyReport.report_date == report_date)
        if module_key:
            stmt = stmt.where(DailyReport.module_key == module_key)
        stmt = stmt.order_by(DailyReport.created_at.asc(), DailyReport.id.asc())
        return self.db.execute(stmt).scalars().all()

    def list_by_owner(
        self,
        created_by: str,
        *,
        module_key: str | None = None,
        limit: int | None = None,
        offset: int | None = None,
    ):
        stmt = select(DailyReport).where(DailyReport.created_by == created_by)
        count_stmt = select(func.count()).select_from(DailyReport).where(DailyReport.created_by == created_by)
        if module_key:
            stmt = stmt.where(DailyReport.module_key == module_key)
            count_stmt = count_stmt.where(DailyReport.module_key == module_key)
        stmt = stmt.order_by(DailyReport.report_date.desc(), DailyReport.created_at.desc())
        if offset:
            stmt = stmt.offset(offset)
        if limit:
            stmt = stmt.limit(limit)
        rows = self.db.execute(stmt).scalars().all()
        total = self.db.execute(count_stmt).scalar_one()
        return rows, total

    def child_counts(self, report_ids: list) -> dict:
        if not report_ids:
            return {}
        counts = {report_id: {"orders": 0, "staff": 0} for report_id in report_ids}
        order_stmt = (
            select(OrderActivityRow.daily_report_id, func.count())
            .where(OrderActivityRow.daily_report_id.in_(report_ids))
            .group_by(OrderActivityRow.daily_report_id)
        )
        staff_stmt = (
            select(StaffActivityRow.daily_report_id, func.count())
            .where(StaffActivityRow.daily_report_id.in_(report_ids))
            .group_by(StaffActivityRow.daily_report_id)
        )
        for report_id, total in self.db.execute(order_stmt).all():
            counts[report_id]["orders"] = total
        for report_id, total in self.db.execute(staff_stmt).all():
            counts[report_id]["staff"] = total
        return counts

    def create(self, report: DailyReport) -> DailyReport:
        self.db.add(report)
        self.db.commit()
        self.db.refresh(report)
        return report

    def delete_many(self, report_ids: list) -> int:
        if not report_ids:
            return 0
        self.db.execute(delete(OrderActivityRow).where(OrderActivityRow.daily_report_id.in_(report_ids)))
        self.db.execute(delete(StaffActivityRow).where(StaffActivityRow.daily_report_id.in_(report_ids)))
        result = self.db.execute(delete(DailyReport).where(DailyReport.id.in_(report_ids)))
        return result.rowcount or 0
