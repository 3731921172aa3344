from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from datetime import date, datetime
from typing import Callable

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from app.fieldledger.core.config import settings
from app.fieldledger.core.error_catalog import AppError, ErrorCatalog
from app.fieldledger.core.metrics import metrics
from app.fieldledger.core.security import is_manager
from app.fieldledger.db.models import DailyReport, OrderActivityRow, StaffActivityRow
from app.fieldledger.repos.bank_cards import BankCardRepository
from app.fieldledger.repos.report_rows import ReportRowRepository
from app.fieldledger.repos.reports import DailyReportRepository
from app.fieldledger.services.aggregation import merge_staff_rows, partition_by_origin, report_label
from app.fieldledger.services.date_locks import DateLockService
from app.fieldledger.services.external import ApprovalGate, Notifier, notify_safely
from app.fieldledger.services.guard import (
    BUSY,
    FAILED,
    SAVED,
    UNCHANGED,
    GuardRegistry,
    SaveResult,
    content_hash,
    fingerprint,
    parent_key,
    report_key,
)
from app.fieldledger.services.ledger import LedgerService
from app.fieldledger.services.rows import OrderRow, ReportRows, ReportTotals, StaffRow, row_snapshot

logger = logging.getLogger(__name__)

OWN_VIEW = "own"
PARENT_VIEW = "parent"
AGGREGATE_VIEW = "aggregate"


@dataclass
class ReportView:
    mode: str
    report_date: date
    module_key: str | None
    rows: ReportRows
    reports: list = field(default_factory=list)
    report_id: object | None = None
    notes: str | None = None
    content_hash: str | None = None

    @property
    def read_only(self) -> bool:
        return self.mode == AGGREGATE_VIEW

    @property
    def totals(self) -> ReportTotals:
        return self.rows.totals()


@dataclass
class SavedReportSummary:
    report: DailyReport
    orders_count: int
    staff_count: int


@dataclass
class DedupeResult:
    removed_orders: int = 0
    removed_staff: int = 0
    report_ids: list = field(default_factory=list)
    balances: dict = field(default_factory=dict)


def _order_dedupe_key(row: OrderActivityRow) -> tuple:
    return (
        (row.order_id or "").strip(),
        (row.activity_description or "").strip(),
        (row.service_details or "").strip(),
        (row.team_name or "").strip(),
        (row.notes or "").strip(),
    )


def _staff_dedupe_key(row: StaffActivityRow) -> tuple:
    snapshot = row_snapshot(StaffRow.from_model(row))
    return tuple(sorted((key, str(value)) for key, value in snapshot.items()))


def _drop_blank_company_expense(orders: list, staff: list) -> tuple[list, list]:
    """A partition left with only an untouched company-expense row is stored as empty."""
    if not orders and all(row.is_blank_company_expense() for row in staff):
        return orders, []
    return orders, staff


class DailyReportService:
    def __init__(
        self,
        db,
        *,
        guards: GuardRegistry | None = None,
        notifier: Notifier | None = None,
    ):
        self.db = db
        self.reports = DailyReportRepository(db)
        self.rows = ReportRowRepository(db)
        self.cards = BankCardRepository(db)
        self.ledger = LedgerService(db)
        self.locks = DateLockService(db)
        self.guards = guards if guards is not None else GuardRegistry()
        self.notifier = notifier

    def get_report(self, report_id) -> DailyReport:
        report = self.reports.get_by_id(report_id)
        if report is None:
            raise AppError(ErrorCatalog.REPORT_NOT_FOUND, details={"report_id": str(report_id)})
        return report

    def _rows_by_report(self, reports: list[DailyReport], *, tag: bool) -> tuple[list[OrderRow], list[StaffRow]]:
        report_ids = [report.id for report in reports]
        orders_by_report: dict = {report_id: [] for report_id in report_ids}
        staff_by_report: dict = {report_id: [] for report_id in report_ids}
        for row in self.rows.list_orders(report_ids):
            orders_by_report[row.daily_report_id].append(row)
        for row in self.rows.list_staff(report_ids):
            staff_by_report[row.daily_report_id].append(row)

        orders: list[OrderRow] = []
        staff: list[StaffRow] = []
        for report in reports:
            origin = report.id if tag else None
            label = report_label(report) if tag else None
            orders.extend(
                OrderRow.from_model(row, origin=origin, source_label=label) for row in orders_by_report[report.id]
            )
            staff.extend(
                StaffRow.from_model(row, origin=origin, source_label=label) for row in staff_by_report[report.id]
            )
        return orders, staff

    def load_own(self, *, actor_id: str, report_date: date, module_key: str) -> ReportView:
        report = self.reports.get_by_owner(report_date=report_date, created_by=actor_id, module_key=module_key)
        if report is None:
            rows = ReportRows()
            return ReportView(
                mode=OWN_VIEW,
                report_date=report_date,
                module_key=module_key,
                rows=rows,
                content_hash=content_hash(report_date, module_key, rows),
            )
        orders, staff = self._rows_by_report([report], tag=False)
        rows = ReportRows(orders, staff)
        return ReportView(
            mode=OWN_VIEW,
            report_date=report_date,
            module_key=module_key,
            rows=rows,
            reports=[report],
            report_id=report.id,
            notes=report.notes,
            content_hash=content_hash(report_date, module_key, rows, notes=report.notes),
        )

    def load_parent(self, *, report_date: date, module_key: str) -> ReportView:
        reports = self.reports.list_by_date(report_date, module_key=module_key)
        orders, staff = self._rows_by_report(reports, tag=True)
        rows = ReportRows(orders, staff)
        return ReportView(
            mode=PARENT_VIEW,
            report_date=report_date,
            module_key=module_key,
            rows=rows,
            reports=reports,
            content_hash=content_hash(report_date, module_key, rows),
        )

    def load_aggregate(self, *, report_date: date) -> ReportView:
        reports = self.reports.list_by_date(report_date)
        orders, staff = self._rows_by_report(reports, tag=True)
        merged = merge_staff_rows((row, None) for row in staff)
        return ReportView(
            mode=AGGREGATE_VIEW,
            report_date=report_date,
            module_key=settings.AGGREGATE_MODULE_KEY,
            rows=ReportRows(orders, merged, normalize=False),
            reports=reports,
        )

    def ensure_report(self, *, actor_id: str, report_date: date, module_key: str) -> DailyReport:
        report = self.reports.get_by_owner(report_date=report_date, created_by=actor_id, module_key=module_key)
        if report is not None:
            return report
        now = datetime.utcnow()
        try:
            return self.reports.create(
                DailyReport(
                    report_date=report_date,
                    created_by=actor_id,
                    module_key=module_key,
                    created_at=now,
                    updated_at=now,
                )
            )
        except IntegrityError:
            self.db.rollback()
            logger.info(
                "Daily report created concurrently; reusing existing row",
                extra={"report_date": report_date.isoformat(), "module_key": module_key},
            )
        report = self.reports.get_by_owner(report_date=report_date, created_by=actor_id, module_key=module_key)
        if report is None:
            raise AppError(
                ErrorCatalog.REPORT_TARGET_UNRESOLVED,
                details={"report_date": report_date.isoformat(), "module_key": module_key},
            )
        return report

    def _ensure_writable(self, report_date: date, module_key: str) -> None:
        if not module_key or not module_key.strip():
            raise AppError(ErrorCatalog.VALIDATION_ERROR, details={"message": "module_key is required"})
        if module_key == settings.AGGREGATE_MODULE_KEY:
            raise AppError(ErrorCatalog.READ_ONLY_VIEW)
        self.locks.ensure_unlocked(report_date)

    def _check_cards(self, staff: list[StaffRow]) -> None:
        for row in staff:
            if row.is_cash_box and row.bank_card_id is not None and self.cards.get_by_id(row.bank_card_id) is None:
                raise AppError(
                    ErrorCatalog.VALIDATION_ERROR,
                    details={"message": "unknown bank card", "bank_card_id": str(row.bank_card_id)},
                )

    def _check_own_origins(self, rows: ReportRows, *, actor_id: str, report_date: date, module_key: str) -> None:
        origins = {row.origin for row in [*rows.orders, *rows.staff] if row.origin is not None}
        if not origins:
            return
        report = self.reports.get_by_owner(report_date=report_date, created_by=actor_id, module_key=module_key)
        foreign = origins - ({report.id} if report is not None else set())
        if foreign:
            raise AppError(
                ErrorCatalog.VALIDATION_ERROR,
                details={
                    "message": "rows belong to another report",
                    "origins": sorted(str(origin) for origin in foreign),
                },
            )

    def _guarded_save(
        self,
        *,
        key: tuple,
        digest: str,
        autosave: bool,
        mode: str,
        persist: Callable[[], SaveResult],
    ) -> SaveResult:
        guard = self.guards.get(key)
        if not guard.try_acquire():
            metrics.record_report_save(mode=mode, result=BUSY)
            if autosave:
                return SaveResult(status=BUSY, message=ErrorCatalog.SAVE_IN_PROGRESS.message)
            raise AppError(ErrorCatalog.SAVE_IN_PROGRESS)
        try:
            if guard.is_unchanged(digest):
                metrics.record_report_save(mode=mode, result=UNCHANGED)
                return SaveResult(status=UNCHANGED, content_hash=digest)
            try:
                result = persist()
            except AppError:
                self.db.rollback()
                raise
            except SQLAlchemyError as exc:
                self.db.rollback()
                metrics.record_report_save(mode=mode, result=FAILED)
                logger.exception("Daily report save failed", extra={"report_key": str(key)})
                raise AppError(ErrorCatalog.SAVE_FAILED, details={"type": exc.__class__.__name__}) from exc
            guard.mark_saved(digest)
            report_date, _, module_key = key
            self.guards.invalidate(report_date, module_key, keep=key)
            result.content_hash = digest
            metrics.record_report_save(mode=mode, result=SAVED)
            return result
        finally:
            guard.release()

    def _rewrite(self, report: DailyReport, orders: list[OrderRow], staff: list[StaffRow], notes: str | None) -> set:
        previous_cards = self.rows.cash_box_card_ids([report.id])
        self.rows.delete_for_report(report.id)

        kept_staff = []
        has_company_expense = False
        for row in staff:
            if row.is_company_expense:
                if has_company_expense:
                    continue
                has_company_expense = True
            kept_staff.append(row)

        models = [row.to_model(report.id, position) for position, row in enumerate(orders)]
        models.extend(row.to_model(report.id, position) for position, row in enumerate(kept_staff))
        self.rows.add_all(models)
        if notes is not None:
            report.notes = notes
        report.updated_at = datetime.utcnow()
        current_cards = {row.bank_card_id for row in kept_staff if row.is_cash_box and row.bank_card_id}
        return previous_cards | current_cards

    def save_own(
        self,
        *,
        actor_id: str,
        report_date: date,
        module_key: str,
        rows: ReportRows,
        notes: str | None = None,
        autosave: bool = False,
    ) -> SaveResult:
        self._ensure_writable(report_date, module_key)
        rows.validate()
        self._check_own_origins(rows, actor_id=actor_id, report_date=report_date, module_key=module_key)
        digest = content_hash(report_date, module_key, rows, notes=notes)

        def persist() -> SaveResult:
            staff = rows.persistable_staff()
            self._check_cards(staff)
            report = self.ensure_report(actor_id=actor_id, report_date=report_date, module_key=module_key)
            touched = self._rewrite(report, rows.persistable_orders(), staff, notes)
            self.db.commit()
            balances = self.ledger.recompute_many(touched, report_id=report.id, actor_id=actor_id)
            return SaveResult(status=SAVED, report_ids=[report.id], balances=balances)

        return self._guarded_save(
            key=report_key(report_date, actor_id, module_key),
            digest=digest,
            autosave=autosave,
            mode=OWN_VIEW,
            persist=persist,
        )

    def save_parent(
        self,
        *,
        actor_id: str,
        report_date: date,
        module_key: str,
        rows: ReportRows,
        autosave: bool = False,
    ) -> SaveResult:
        self._ensure_writable(report_date, module_key)
        rows.validate()
        digest = content_hash(report_date, module_key, rows)

        def persist() -> SaveResult:
            staff_rows = rows.persistable_staff()
            self._check_cards(staff_rows)
            own = self.ensure_report(actor_id=actor_id, report_date=report_date, module_key=module_key)
            reports = {report.id: report for report in self.reports.list_by_date(report_date, module_key=module_key)}
            reports.setdefault(own.id, own)
            partitions = partition_by_origin(
                rows.persistable_orders(),
                staff_rows,
                default_origin=own.id,
                known_origins=list(reports),
            )
            before = self._partition_fingerprints(list(reports.values()))

            # Every origin is compared; emptied partitions differ from their stored rows and get rewritten.
            touched: list[tuple] = []
            for origin, pair in partitions.items():
                orders, staff = _drop_blank_company_expense(*pair)
                if before.get(origin) == self._rows_fingerprint(orders, staff):
                    continue
                touched.append((origin, self._rewrite(reports[origin], orders, staff, None)))
            self.db.commit()

            balances = {}
            for origin, card_ids in touched:
                balances.update(self.ledger.recompute_many(card_ids, report_id=origin, actor_id=actor_id))

            for origin, _card_ids in touched:
                report = reports[origin]
                if report.created_by == actor_id:
                    continue
                notify_safely(
                    self.notifier,
                    user_id=report.created_by,
                    title="Daily report updated",
                    body=f"Your {report.module_key} report for {report_date.isoformat()} was edited by {actor_id}",
                    link=f"/fieldledger/reports/{report_date.isoformat()}?module_key={report.module_key}",
                )
            report_ids = [own.id] + [origin for origin in partitions if origin != own.id]
            return SaveResult(status=SAVED, report_ids=report_ids, balances=balances)

        return self._guarded_save(
            key=parent_key(report_date, module_key),
            digest=digest,
            autosave=autosave,
            mode=PARENT_VIEW,
            persist=persist,
        )

    @staticmethod
    def _rows_fingerprint(orders, staff) -> str:
        return fingerprint(
            {
                "orders": sorted(fingerprint(row_snapshot(replace(row, origin=None))) for row in orders),
                "staff": sorted(
                    fingerprint(row_snapshot(replace(row, origin=None, source_labels=[]))) for row in staff
                ),
            }
        )

    def _partition_fingerprints(self, reports: list[DailyReport]) -> dict:
        orders, staff = self._rows_by_report(reports, tag=True)
        grouped = {report.id: ([], []) for report in reports}
        for row in orders:
            grouped[row.origin][0].append(row)
        for row in staff:
            grouped[row.origin][1].append(row)
        return {
            origin: self._rows_fingerprint(*_drop_blank_company_expense(*pair)) for origin, pair in grouped.items()
        }

    def request_delete_code(self, report_id, *, gate: ApprovalGate | None) -> bool:
        report = self.get_report(report_id)
        if gate is None:
            raise AppError(ErrorCatalog.APPROVAL_REQUIRED, details={"message": "approval gate not configured"})
        return bool(gate.send_code(f"delete_report:{report.id}"))

    def delete_report(
        self,
        report_id,
        *,
        actor_id: str,
        role: str | None,
        approval_code: str | None = None,
        gate: ApprovalGate | None = None,
    ) -> dict:
        report = self.get_report(report_id)
        if report.created_by != actor_id and not is_manager(role):
            raise AppError(ErrorCatalog.PERMISSION_DENIED)
        self.locks.ensure_unlocked(report.report_date)
        if settings.REPORT_DELETE_REQUIRES_APPROVAL:
            if gate is None or not approval_code or not gate.verify_code(approval_code):
                raise AppError(ErrorCatalog.APPROVAL_REQUIRED)

        deleted_id = report.id
        report_date, module_key = report.report_date, report.module_key
        card_ids = self.rows.cash_box_card_ids([deleted_id])
        self.reports.delete_many([deleted_id])
        self.db.commit()
        balances = self.ledger.recompute_many(card_ids, report_id=deleted_id, actor_id=actor_id)
        self.guards.invalidate(report_date, module_key)
        logger.info("Deleted daily report", extra={"report_id": str(deleted_id), "actor_id": actor_id})
        return {"report_id": deleted_id, "balances": balances}

    def dedupe(self, *, report_date: date, module_key: str, actor_id: str | None = None) -> DedupeResult:
        self.locks.ensure_unlocked(report_date)
        reports = self.reports.list_by_date(report_date, module_key=module_key)
        keys = [parent_key(report_date, module_key)]
        keys.extend(report_key(report_date, report.created_by, module_key) for report in reports)
        held = []
        try:
            for key in keys:
                guard = self.guards.get(key)
                if not guard.try_acquire():
                    raise AppError(ErrorCatalog.SAVE_IN_PROGRESS, details={"report_key": str(key)})
                held.append(guard)
            return self._dedupe(reports, report_date=report_date, module_key=module_key, actor_id=actor_id)
        finally:
            for guard in held:
                guard.release()

    def _dedupe(self, reports: list[DailyReport], *, report_date: date, module_key: str, actor_id) -> DedupeResult:
        result = DedupeResult()
        touched: dict = {}
        for report in reports:
            seen_orders, seen_staff = set(), set()
            duplicate_orders, duplicate_staff = [], []
            for row in self.rows.list_orders([report.id]):
                key = _order_dedupe_key(row)
                if key in seen_orders:
                    duplicate_orders.append(row.id)
                else:
                    seen_orders.add(key)
            for row in self.rows.list_staff([report.id]):
                key = _staff_dedupe_key(row)
                if key in seen_staff:
                    duplicate_staff.append(row.id)
                    if row.is_cash_box and row.bank_card_id:
                        touched.setdefault(report.id, set()).add(row.bank_card_id)
                else:
                    seen_staff.add(key)
            if duplicate_orders or duplicate_staff:
                result.removed_orders += self.rows.delete_by_ids(OrderActivityRow, duplicate_orders)
                result.removed_staff += self.rows.delete_by_ids(StaffActivityRow, duplicate_staff)
                result.report_ids.append(report.id)
        self.db.commit()
        for report_id, card_ids in touched.items():
            result.balances.update(self.ledger.recompute_many(card_ids, report_id=report_id, actor_id=actor_id))
        if result.report_ids:
            self.guards.invalidate(report_date, module_key)
        return result

    def list_saved(
        self,
        *,
        actor_id: str,
        module_key: str | None = None,
        limit: int | None = None,
        offset: int | None = None,
    ) -> tuple[list[SavedReportSummary], int]:
        reports, total = self.reports.list_by_owner(actor_id, module_key=module_key, limit=limit, offset=offset)
        counts = self.reports.child_counts([report.id for report in reports])
        summaries = [
            SavedReportSummary(
                report=report,
                orders_count=counts.get(report.id, {}).get("orders", 0),
                staff_count=counts.get(report.id, {}).get("staff", 0),
            )
            for report in reports
        ]
        return summaries, total
