from __future__ import annotations

import logging
import threading
from datetime import date
from typing import Callable

from sqlalchemy.exc import SQLAlchemyError

from app.fieldledger.core.config import settings
from app.fieldledger.core.error_catalog import AppError, ErrorCatalog
from app.fieldledger.services.external import Notifier
from app.fieldledger.services.guard import (
    FAILED,
    SUPPRESSED,
    Debouncer,
    GuardRegistry,
    SaveResult,
    parent_key,
    report_key,
)
from app.fieldledger.services.reports import AGGREGATE_VIEW, OWN_VIEW, PARENT_VIEW, DailyReportService, ReportView
from app.fieldledger.services.rows import ReportRows
from app.fieldledger.services.scratch import LocalScratchStore, should_restore

logger = logging.getLogger(__name__)


class ReportEditingSession:
    """In-process editing session for one report view.

    Edits mutate the in-memory rows, are mirrored to the local scratch store,
    and schedule a debounced autosave. Autosave is suppressed while the view
    is the read-only aggregate, while loading, and while a row deletion is
    being finalized. Manual saves surface ``SAVE_IN_PROGRESS`` and
    ``SAVE_FAILED``; in both cases the in-memory rows and the scratch backup
    stay intact.
    """

    def __init__(
        self,
        session_factory: Callable,
        *,
        actor_id: str,
        report_date: date,
        module_key: str | None = None,
        mode: str = OWN_VIEW,
        guards: GuardRegistry | None = None,
        scratch: LocalScratchStore | None = None,
        notifier: Notifier | None = None,
        autosave_delay: float | None = None,
        refetch_delay: float | None = None,
        timer_factory: Callable[..., threading.Timer] = threading.Timer,
    ):
        if mode not in (OWN_VIEW, PARENT_VIEW, AGGREGATE_VIEW):
            raise AppError(ErrorCatalog.VALIDATION_ERROR, details={"message": "unknown view mode", "mode": mode})
        self._session_factory = session_factory
        self.actor_id = actor_id
        self.report_date = report_date
        self.mode = mode
        self.module_key = settings.AGGREGATE_MODULE_KEY if mode == AGGREGATE_VIEW else (
            module_key or settings.DEFAULT_MODULE_KEY
        )
        self.guards = guards if guards is not None else GuardRegistry()
        self.scratch = scratch
        self.notifier = notifier
        self.rows = ReportRows()
        self.notes: str | None = None
        self.view: ReportView | None = None
        self.restored_from_scratch = False
        self.last_result: SaveResult | None = None
        self._loading = False
        self._finalizing_delete = False
        self._state_lock = threading.RLock()
        self.autosaver = Debouncer(
            settings.AUTOSAVE_DEBOUNCE_SECONDS if autosave_delay is None else autosave_delay,
            self.autosave,
            name="autosave",
            timer_factory=timer_factory,
        )
        self.refetcher = Debouncer(
            settings.REFETCH_DEBOUNCE_SECONDS if refetch_delay is None else refetch_delay,
            self.refresh,
            name="refetch",
            timer_factory=timer_factory,
        )

    @property
    def read_only(self) -> bool:
        return self.mode == AGGREGATE_VIEW

    @property
    def autosave_suppressed(self) -> bool:
        return self.read_only or self._loading or self._finalizing_delete

    def _service(self, db) -> DailyReportService:
        return DailyReportService(db, guards=self.guards, notifier=self.notifier)

    def _fetch(self) -> ReportView:
        db = self._session_factory()
        try:
            service = self._service(db)
            if self.mode == AGGREGATE_VIEW:
                return service.load_aggregate(report_date=self.report_date)
            if self.mode == PARENT_VIEW:
                return service.load_parent(report_date=self.report_date, module_key=self.module_key)
            return service.load_own(actor_id=self.actor_id, report_date=self.report_date, module_key=self.module_key)
        finally:
            db.close()

    def load(self) -> ReportView | None:
        with self._state_lock:
            self._loading = True
            self.autosaver.cancel()
            try:
                return self._load()
            finally:
                self._loading = False

    def _load(self) -> ReportView | None:
        backup = None
        if self.scratch is not None and not self.read_only:
            backup = self.scratch.read(self.actor_id, self.report_date, self.module_key, mode=self.mode)
        try:
            view = self._fetch()
        except SQLAlchemyError as exc:
            logger.exception("Daily report load failed", extra={"report_date": self.report_date.isoformat()})
            if backup is None:
                raise AppError(ErrorCatalog.DB_UNAVAILABLE) from exc
            self._apply_backup(backup)
            return None

        self.view = view
        remote_exists = bool(view.reports)
        if not self.read_only and should_restore(backup, remote_rows=view.rows, remote_exists=remote_exists):
            self._apply_backup(backup)
            return view
        self.rows = view.rows
        self.notes = view.notes
        self.restored_from_scratch = False
        self._remember_loaded(view)
        return view

    def _guard_key(self) -> tuple:
        if self.mode == PARENT_VIEW:
            return parent_key(self.report_date, self.module_key)
        return report_key(self.report_date, self.actor_id, self.module_key)

    def _remember_loaded(self, view: ReportView) -> None:
        if self.read_only or view.content_hash is None:
            return
        guard = self.guards.get(self._guard_key())
        with guard.hold() as acquired:
            if acquired:
                guard.mark_saved(view.content_hash)

    def _apply_backup(self, backup) -> None:
        logger.info(
            "Restoring daily report from local backup",
            extra={"report_date": self.report_date.isoformat(), "module_key": self.module_key},
        )
        self.rows = backup.rows
        self.notes = backup.notes
        self.restored_from_scratch = True

    def refresh(self) -> ReportView | None:
        """Reloads after an external change unless local edits are pending."""
        if self.autosaver.pending:
            logger.info("Skipping refetch while local edits are pending")
            return None
        with self._state_lock:
            self._loading = True
            try:
                view = self._fetch()
                self.view = view
                self.rows = view.rows
                self.notes = view.notes
                self._remember_loaded(view)
                return view
            finally:
                self._loading = False

    def on_external_change(self) -> None:
        self.refetcher.trigger()

    def _ensure_editable(self) -> None:
        if self.read_only:
            raise AppError(ErrorCatalog.READ_ONLY_VIEW)

    def _write_scratch(self) -> None:
        self.scratch.write(
            self.actor_id, self.report_date, self.module_key, self.rows, notes=self.notes, mode=self.mode
        )

    def _after_edit(self) -> None:
        if self.scratch is not None:
            self._write_scratch()
        if not self.autosave_suppressed:
            self.autosaver.trigger()

    def update_order(self, index: int, field_name: str, value) -> None:
        self._ensure_editable()
        with self._state_lock:
            self.rows.update_order(index, field_name, value)
        self._after_edit()

    def update_staff(self, index: int, field_name: str, value) -> None:
        self._ensure_editable()
        with self._state_lock:
            self.rows.update_staff(index, field_name, value)
        self._after_edit()

    def set_notes(self, notes: str | None) -> None:
        self._ensure_editable()
        with self._state_lock:
            self.notes = notes
        self._after_edit()

    def add_cash_box_row(self, bank_card_id=None) -> None:
        self._ensure_editable()
        with self._state_lock:
            self.rows.add_cash_box_row(bank_card_id)
        self._after_edit()

    def delete_order(self, index: int) -> SaveResult:
        return self._finalize_delete(lambda: self.rows.delete_order(index))

    def delete_staff(self, index: int) -> SaveResult:
        return self._finalize_delete(lambda: self.rows.delete_staff(index))

    def _finalize_delete(self, mutation: Callable[[], None]) -> SaveResult:
        self._ensure_editable()
        with self._state_lock:
            self._finalizing_delete = True
            self.autosaver.cancel()
            try:
                mutation()
                if self.scratch is not None:
                    self._write_scratch()
                return self._save(autosave=False)
            finally:
                self._finalizing_delete = False

    def autosave(self) -> SaveResult:
        if self.autosave_suppressed:
            return SaveResult(status=SUPPRESSED)
        try:
            return self._save(autosave=True)
        except AppError as exc:
            logger.warning(
                "Autosave failed",
                extra={"code": exc.error.code, "report_date": self.report_date.isoformat()},
            )
            return SaveResult(status=FAILED, message=exc.error.message)

    def save(self) -> SaveResult:
        self._ensure_editable()
        self.autosaver.cancel()
        return self._save(autosave=False)

    def _save(self, *, autosave: bool) -> SaveResult:
        with self._state_lock:
            rows = self.rows.copy()
            notes = self.notes
        db = self._session_factory()
        try:
            service = self._service(db)
            if self.mode == PARENT_VIEW:
                result = service.save_parent(
                    actor_id=self.actor_id,
                    report_date=self.report_date,
                    module_key=self.module_key,
                    rows=rows,
                    autosave=autosave,
                )
            else:
                result = service.save_own(
                    actor_id=self.actor_id,
                    report_date=self.report_date,
                    module_key=self.module_key,
                    rows=rows,
                    notes=notes,
                    autosave=autosave,
                )
        finally:
            db.close()
        self.last_result = result
        if result.persisted:
            if self.scratch is not None:
                self.scratch.clear(self.actor_id, self.report_date, self.module_key, mode=self.mode)
            self.restored_from_scratch = False
        return result

    def close(self) -> None:
        self.autosaver.cancel()
        self.refetcher.cancel()
