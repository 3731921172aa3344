from datetime import date

from sqlalchemy import delete, select

from app.fieldledger.db.models import DailyReportDateLock


class DateLockRepository:
    def __init__(self, db):
        self.db = db

    def get_by_date(self, report_date: date):
        stmt = select(DailyReportDateLock).where(DailyReportDateLock.report_date == report_date)
        return self.db.execute(stmt).scalars().first()

    def create(self, lock: DailyReportDateLock) -> DailyReportDateLock:
        self.db.add(lock)
        self.db.commit()
        self.db.refresh(lock)
        return lock

    def delete_by_date(self, report_date: date) -> int:
        result = self.db.execute(delete(DailyReportDateLock).where(DailyReportDateLock.report_date == report_date))
        self.db.commit()
        return result.rowcount or 0
