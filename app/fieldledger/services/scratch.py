from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError

from app.fieldledger.core.config import settings
from app.fieldledger.schemas.reports import OrderRowPayload, StaffRowPayload, rows_from_payload
from app.fieldledger.services.rows import ReportRows

logger = logging.getLogger(__name__)

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9_.-]")
DEFAULT_MODE = "own"


class ScratchSnapshot(BaseModel):
    saved_at: datetime
    report_date: date
    module_key: str
    notes: str | None = None
    orders: list[OrderRowPayload] = Field(default_factory=list)
    staff: list[StaffRowPayload] = Field(default_factory=list)


@dataclass
class ScratchEntry:
    saved_at: datetime
    rows: ReportRows
    notes: str | None = None


def _safe(part: str) -> str:
    return _UNSAFE_CHARS.sub("_", part) or "_"


class LocalScratchStore:
    """Write-through local backup of in-progress edits, one JSON file per (user, date, module, view mode)."""

    def __init__(self, base_path: str | Path | None = None):
        self.base_path = Path(base_path or settings.SCRATCH_STORAGE_PATH)

    def path_for(self, user_id: str, report_date: date, module_key: str, *, mode: str = DEFAULT_MODE) -> Path:
        name = f"{report_date.isoformat()}__{_safe(module_key)}__{_safe(mode)}.json"
        return self.base_path / _safe(user_id) / name

    def write(
        self,
        user_id: str,
        report_date: date,
        module_key: str,
        rows: ReportRows,
        *,
        notes: str | None = None,
        mode: str = DEFAULT_MODE,
        now: datetime | None = None,
    ) -> Path:
        snapshot = ScratchSnapshot(
            saved_at=now or datetime.utcnow(),
            report_date=report_date,
            module_key=module_key,
            notes=notes,
            orders=[OrderRowPayload.from_row(row) for row in rows.orders],
            staff=[StaffRowPayload.from_row(row) for row in rows.staff],
        )
        path = self.path_for(user_id, report_date, module_key, mode=mode)
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = path.with_suffix(".tmp")
        tmp_path.write_text(snapshot.model_dump_json(), encoding="utf-8")
        tmp_path.replace(path)
        return path

    def read(
        self, user_id: str, report_date: date, module_key: str, *, mode: str = DEFAULT_MODE
    ) -> ScratchEntry | None:
        path = self.path_for(user_id, report_date, module_key, mode=mode)
        if not path.exists():
            return None
        try:
            snapshot = ScratchSnapshot.model_validate(json.loads(path.read_text(encoding="utf-8")))
        except (OSError, ValueError, ValidationError):
            logger.warning("Ignoring unreadable scratch backup", extra={"path": str(path)})
            return None
        return ScratchEntry(
            saved_at=snapshot.saved_at,
            rows=rows_from_payload(snapshot.orders, snapshot.staff),
            notes=snapshot.notes,
        )

    def clear(self, user_id: str, report_date: date, module_key: str, *, mode: str = DEFAULT_MODE) -> None:
        path = self.path_for(user_id, report_date, module_key, mode=mode)
        path.unlink(missing_ok=True)


def should_restore(
    entry: ScratchEntry | None,
    *,
    remote_rows: ReportRows | None,
    remote_exists: bool,
    now: datetime | None = None,
    window_seconds: int | None = None,
) -> bool:
    """Backup wins when the remote has nothing, or when it is recent and holds more filled orders."""
    if entry is None:
        return False
    if remote_rows is None or not remote_exists:
        return True
    window = settings.SCRATCH_RESTORE_WINDOW_SECONDS if window_seconds is None else window_seconds
    age = (now or datetime.utcnow()) - entry.saved_at
    if age > timedelta(seconds=window):
        return False
    return entry.rows.filled_order_count() > remote_rows.filled_order_count()
