from __future__ import annotations

import hashlib
import json
import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import date
from typing import Callable

from app.fieldledger.services.rows import ReportRows, row_snapshot

logger = logging.getLogger(__name__)

PARENT_SCOPE = "parent"
MIN_DEBOUNCE_SECONDS = 2.0

SAVED = "saved"
UNCHANGED = "unchanged"
BUSY = "busy"
SUPPRESSED = "suppressed"
FAILED = "failed"


def report_key(report_date: date, creator: str, module_key: str) -> tuple[date, str, str]:
    return (report_date, creator, module_key)


def parent_key(report_date: date, module_key: str) -> tuple[date, str, str]:
    return (report_date, PARENT_SCOPE, module_key)


def fingerprint(payload: object) -> str:
    payload_bytes = json.dumps(payload, sort_keys=True, default=str).encode("utf-8")
    return hashlib.sha256(payload_bytes).hexdigest()


def _sorted_snapshots(rows) -> list[dict]:
    snapshots = [row_snapshot(row) for row in rows]
    return sorted(snapshots, key=lambda item: json.dumps(item, sort_keys=True, default=str))


def content_hash(report_date: date, module_key: str, rows: ReportRows, *, notes: str | None = None) -> str:
    payload = {
        "report_date": report_date.isoformat(),
        "module_key": module_key,
        "orders": _sorted_snapshots(rows.persistable_orders()),
        "staff": _sorted_snapshots(rows.persistable_staff()),
    }
    if notes is not None:
        payload["notes"] = notes.strip()
    return fingerprint(payload)


@dataclass
class SaveResult:
    status: str
    content_hash: str | None = None
    report_ids: list = field(default_factory=list)
    balances: dict = field(default_factory=dict)
    message: str | None = None

    @property
    def persisted(self) -> bool:
        return self.status == SAVED


class SaveGuard:
    """Non-blocking save mutex plus the last persisted content hash for one report key."""

    def __init__(self, key: tuple):
        self.key = key
        self._lock = threading.Lock()
        self._state_lock = threading.Lock()
        self._last_saved_hash: str | None = None

    @property
    def locked(self) -> bool:
        return self._lock.locked()

    @property
    def last_saved_hash(self) -> str | None:
        with self._state_lock:
            return self._last_saved_hash

    def try_acquire(self) -> bool:
        return self._lock.acquire(blocking=False)

    def release(self) -> None:
        self._lock.release()

    @contextmanager
    def hold(self):
        acquired = self.try_acquire()
        try:
            yield acquired
        finally:
            if acquired:
                self.release()

    def is_unchanged(self, digest: str) -> bool:
        with self._state_lock:
            return self._last_saved_hash is not None and self._last_saved_hash == digest

    def mark_saved(self, digest: str | None) -> None:
        with self._state_lock:
            self._last_saved_hash = digest

    def forget(self) -> None:
        self.mark_saved(None)


class GuardRegistry:
    def __init__(self):
        self._guards: dict[tuple, SaveGuard] = {}
        self._lock = threading.Lock()

    def get(self, key: tuple) -> SaveGuard:
        with self._lock:
            guard = self._guards.get(key)
            if guard is None:
                guard = SaveGuard(key)
                self._guards[key] = guard
            return guard

    def invalidate(self, report_date: date, module_key: str | None = None, *, keep: tuple | None = None) -> None:
        """Drops remembered hashes of every guard whose report shares the date (and module)."""
        with self._lock:
            guards = list(self._guards.values())
        for guard in guards:
            guard_date, _, guard_module = guard.key
            if guard_date != report_date or guard.key == keep:
                continue
            if module_key is None or guard_module == module_key:
                guard.forget()

    def clear(self) -> None:
        with self._lock:
            self._guards.clear()


class Debouncer:
    """Collapses rapid triggers into one call after ``delay`` seconds of quiet."""

    def __init__(
        self,
        delay: float,
        callback: Callable[[], object],
        *,
        name: str = "debouncer",
        timer_factory: Callable[..., threading.Timer] = threading.Timer,
    ):
        self.delay = max(float(delay), MIN_DEBOUNCE_SECONDS)
        self.name = name
        self._callback = callback
        self._timer_factory = timer_factory
        self._timer: threading.Timer | None = None
        self._pending = False
        self._lock = threading.Lock()
        self.fired = 0

    @property
    def pending(self) -> bool:
        with self._lock:
            return self._pending

    def trigger(self) -> None:
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            self._pending = True
            self._timer = self._timer_factory(self.delay, self._fire)
            self._timer.daemon = True
            self._timer.start()

    def _take_pending(self) -> bool:
        with self._lock:
            pending = self._pending
            self._pending = False
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
            return pending

    def _fire(self) -> None:
        if not self._take_pending():
            return
        self.fired += 1
        try:
            self._callback()
        except Exception:
            logger.exception("Debounced callback failed", extra={"debouncer": self.name})

    def flush(self) -> bool:
        if not self._take_pending():
            return False
        self.fired += 1
        self._callback()
        return True

    def cancel(self) -> None:
        self._take_pending()
