from datetime import date, datetime

from sqlalchemy.exc import IntegrityError

from app.fieldledger.core.error_catalog import AppError, ErrorCatalog
from app.fieldledger.db.models import DailyReportDateLock
from app.fieldledger.repos.date_locks import DateLockRepository


class DateLockService:
    def __init__(self, db):
        self.db = db
        self.repo = DateLockRepository(db)

    def get(self, report_date: date) -> DailyReportDateLock | None:
        return self.repo.get_by_date(report_date)

    def ensure_unlocked(self, report_date: date) -> None:
        lock = self.repo.get_by_date(report_date)
        if lock is not None:
            raise AppError(
                ErrorCatalog.DATE_LOCKED,
                details={
                    "report_date": report_date.isoformat(),
                    "locked_by": lock.locked_by,
                    "locked_by_module_key": lock.locked_by_module_key,
                },
            )

    def lock(self, report_date: date, *, actor_id: str, module_key: str | None) -> DailyReportDateLock:
        existing = self.repo.get_by_date(report_date)
        if existing is not None:
            return existing
        try:
            return self.repo.create(
                DailyReportDateLock(
                    report_date=report_date,
                    locked_by=actor_id,
                    locked_by_module_key=module_key,
                    locked_at=datetime.utcnow(),
                )
            )
        except IntegrityError:
            self.db.rollback()
            existing = self.repo.get_by_date(report_date)
            if existing is None:
                raise
            return existing

    def unlock(self, report_date: date) -> bool:
        return self.repo.delete_by_date(report_date) > 0
