from datetime import date
from uuid import UUID

from fastapi import APIRouter, Depends, Query

from app.fieldledger.core.config import settings
from app.fieldledger.core.context import RequestContext
from app.fieldledger.core.deps import (
    get_approval_gate,
    get_notifier,
    get_save_guards,
    require_manager,
    require_request_context,
)
from app.fieldledger.core.error_catalog import AppError, ErrorCatalog
from app.fieldledger.db.session import get_db
from app.fieldledger.schemas.reports import (
    ApprovalCodeResponse,
    DedupeResponse,
    OrderRowResponse,
    ParentSaveRequest,
    ReportDeleteResponse,
    ReportSaveRequest,
    ReportSaveResponse,
    ReportSummary,
    ReportTotalsResponse,
    ReportViewResponse,
    SavedReportItem,
    SavedReportListResponse,
    StaffRowResponse,
)
from app.fieldledger.services.guard import SaveResult
from app.fieldledger.services.reports import DailyReportService, ReportView

router = APIRouter()


def _str_or_none(value) -> str | None:
    return str(value) if value is not None else None


def _report_summary(report) -> ReportSummary:
    return ReportSummary(
        id=str(report.id),
        report_date=report.report_date,
        created_by=report.created_by,
        module_key=report.module_key,
        notes=report.notes,
        created_at=report.created_at,
        updated_at=report.updated_at,
    )


def _view_response(view: ReportView) -> ReportViewResponse:
    totals = view.totals
    return ReportViewResponse(
        mode=view.mode,
        report_date=view.report_date,
        module_key=view.module_key,
        report_id=_str_or_none(view.report_id),
        notes=view.notes,
        read_only=view.read_only,
        content_hash=view.content_hash,
        orders=[
            OrderRowResponse(
                order_id=row.order_id,
                activity_description=row.activity_description,
                service_details=row.service_details,
                team_name=row.team_name,
                notes=row.notes,
                row_color=row.row_color,
                origin=_str_or_none(row.origin),
                source_label=row.source_label,
            )
            for row in view.rows.orders
        ],
        staff=[
            StaffRowResponse(
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
                bank_card_id=_str_or_none(row.bank_card_id),
                origin=_str_or_none(row.origin),
                source_labels=list(row.source_labels),
            )
            for row in view.rows.staff
        ],
        totals=ReportTotalsResponse(
            present_count=totals.present_count,
            total_overtime=totals.total_overtime,
            total_received=totals.total_received,
            total_spent=totals.total_spent,
            cash_box_spent=totals.cash_box_spent,
            staff_received=totals.staff_received,
        ),
        reports=[_report_summary(report) for report in view.reports],
    )


def _save_response(result: SaveResult) -> ReportSaveResponse:
    return ReportSaveResponse(
        status=result.status,
        content_hash=result.content_hash,
        report_ids=[str(report_id) for report_id in result.report_ids],
        balances={str(card_id): balance for card_id, balance in result.balances.items()},
        message=result.message,
    )


@router.get("/fieldledger/reports", response_model=SavedReportListResponse)
def list_saved_reports(
    module_key: str | None = None,
    limit: int = Query(default=50, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    context: RequestContext = Depends(require_request_context),
    db=Depends(get_db),
):
    summaries, total = DailyReportService(db).list_saved(
        actor_id=context.user_id,
        module_key=module_key,
        limit=limit,
        offset=offset,
    )
    rows = [
        SavedReportItem(
            **_report_summary(item.report).model_dump(),
            orders_count=item.orders_count,
            staff_count=item.staff_count,
        )
        for item in summaries
    ]
    return SavedReportListResponse(rows=rows, total=total)


@router.delete("/fieldledger/reports/by-id/{report_id}", response_model=ReportDeleteResponse)
def delete_report(
    report_id: UUID,
    approval_code: str | None = None,
    context: RequestContext = Depends(require_request_context),
    guards=Depends(get_save_guards),
    gate=Depends(get_approval_gate),
    db=Depends(get_db),
):
    outcome = DailyReportService(db, guards=guards).delete_report(
        report_id,
        actor_id=context.user_id,
        role=context.role,
        approval_code=approval_code,
        gate=gate,
    )
    return ReportDeleteResponse(
        report_id=str(outcome["report_id"]),
        balances={str(card_id): balance for card_id, balance in outcome["balances"].items()},
    )


@router.post("/fieldledger/reports/by-id/{report_id}/approval-code", response_model=ApprovalCodeResponse)
def request_delete_code(
    report_id: UUID,
    context: RequestContext = Depends(require_request_context),
    gate=Depends(get_approval_gate),
    db=Depends(get_db),
):
    service = DailyReportService(db)
    report = service.get_report(report_id)
    if report.created_by != context.user_id and not context.is_manager:
        raise AppError(ErrorCatalog.PERMISSION_DENIED)
    return ApprovalCodeResponse(sent=service.request_delete_code(report_id, gate=gate))


@router.get("/fieldledger/reports/{report_date}", response_model=ReportViewResponse)
def get_own_report(
    report_date: date,
    module_key: str | None = None,
    context: RequestContext = Depends(require_request_context),
    db=Depends(get_db),
):
    module_key = module_key or settings.DEFAULT_MODULE_KEY
    service = DailyReportService(db)
    if module_key == settings.AGGREGATE_MODULE_KEY:
        if not context.is_manager:
            raise AppError(ErrorCatalog.PERMISSION_DENIED)
        return _view_response(service.load_aggregate(report_date=report_date))
    view = service.load_own(actor_id=context.user_id, report_date=report_date, module_key=module_key)
    return _view_response(view)


@router.put("/fieldledger/reports/{report_date}", response_model=ReportSaveResponse)
def save_own_report(
    report_date: date,
    payload: ReportSaveRequest,
    context: RequestContext = Depends(require_request_context),
    guards=Depends(get_save_guards),
    notifier=Depends(get_notifier),
    db=Depends(get_db),
):
    service = DailyReportService(db, guards=guards, notifier=notifier)
    result = service.save_own(
        actor_id=context.user_id,
        report_date=report_date,
        module_key=payload.module_key,
        rows=payload.to_rows(),
        notes=payload.notes,
        autosave=payload.autosave,
    )
    return _save_response(result)


@router.get("/fieldledger/reports/{report_date}/parent", response_model=ReportViewResponse)
def get_parent_view(
    report_date: date,
    module_key: str | None = None,
    _context: RequestContext = Depends(require_manager),
    db=Depends(get_db),
):
    view = DailyReportService(db).load_parent(
        report_date=report_date,
        module_key=module_key or settings.DEFAULT_MODULE_KEY,
    )
    return _view_response(view)


@router.put("/fieldledger/reports/{report_date}/parent", response_model=ReportSaveResponse)
def save_parent_view(
    report_date: date,
    payload: ParentSaveRequest,
    context: RequestContext = Depends(require_manager),
    guards=Depends(get_save_guards),
    notifier=Depends(get_notifier),
    db=Depends(get_db),
):
    service = DailyReportService(db, guards=guards, notifier=notifier)
    result = service.save_parent(
        actor_id=context.user_id,
        report_date=report_date,
        module_key=payload.module_key,
        rows=payload.to_rows(),
        autosave=payload.autosave,
    )
    return _save_response(result)


@router.get("/fieldledger/reports/{report_date}/aggregate", response_model=ReportViewResponse)
def get_aggregate_view(
    report_date: date,
    _context: RequestContext = Depends(require_manager),
    db=Depends(get_db),
):
    return _view_response(DailyReportService(db).load_aggregate(report_date=report_date))


@router.put("/fieldledger/reports/{report_date}/aggregate")
def save_aggregate_view(
    report_date: date,
    _context: RequestContext = Depends(require_manager),
):
    raise AppError(ErrorCatalog.READ_ONLY_VIEW, details={"report_date": report_date.isoformat()})


@router.post("/fieldledger/reports/{report_date}/dedupe", response_model=DedupeResponse)
def dedupe_reports(
    report_date: date,
    module_key: str | None = None,
    context: RequestContext = Depends(require_manager),
    guards=Depends(get_save_guards),
    db=Depends(get_db),
):
    result = DailyReportService(db, guards=guards).dedupe(
        report_date=report_date,
        module_key=module_key or settings.DEFAULT_MODULE_KEY,
        actor_id=context.user_id,
    )
    return DedupeResponse(
        removed_orders=result.removed_orders,
        removed_staff=result.removed_staff,
        report_ids=[str(report_id) for report_id in result.report_ids],
        balances={str(card_id): balance for card_id, balance in result.balances.items()},
    )
