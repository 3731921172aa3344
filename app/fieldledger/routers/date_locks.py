from datetime import date

from fastapi import APIRouter, Depends

from app.fieldledger.core.config import settings
from app.fieldledger.core.context import RequestContext
from app.fieldledger.core.deps import get_save_guards, require_manager, require_request_context
from app.fieldledger.db.session import get_db
from app.fieldledger.schemas.date_locks import DateLockRequest, DateLockResponse
from app.fieldledger.services.date_locks import DateLockService

router = APIRouter()


def _lock_response(report_date: date, lock) -> DateLockResponse:
    if lock is None:
        return DateLockResponse(report_date=report_date, locked=False)
    return DateLockResponse(
        report_date=lock.report_date,
        locked=True,
        locked_by=lock.locked_by,
        locked_by_module_key=lock.locked_by_module_key,
        locked_at=lock.locked_at,
    )


@router.get("/fieldledger/date-locks/{report_date}", response_model=DateLockResponse)
def get_date_lock(
    report_date: date,
    _context: RequestContext = Depends(require_request_context),
    db=Depends(get_db),
):
    return _lock_response(report_date, DateLockService(db).get(report_date))


@router.post("/fieldledger/date-locks/{report_date}", response_model=DateLockResponse)
def lock_date(
    report_date: date,
    payload: DateLockRequest | None = None,
    context: RequestContext = Depends(require_manager),
    guards=Depends(get_save_guards),
    db=Depends(get_db),
):
    module_key = (payload.module_key if payload else None) or settings.AGGREGATE_MODULE_KEY
    lock = DateLockService(db).lock(report_date, actor_id=context.user_id, module_key=module_key)
    guards.invalidate(report_date)
    return _lock_response(report_date, lock)


@router.delete("/fieldledger/date-locks/{report_date}", response_model=DateLockResponse)
def unlock_date(
    report_date: date,
    _context: RequestContext = Depends(require_manager),
    db=Depends(get_db),
):
    DateLockService(db).unlock(report_date)
    return _lock_response(report_date, None)
