from __future__ import annotations

from contextvars import ContextVar
from dataclasses import dataclass

_WRITE_VERBS = ("INSERT", "UPDATE", "DELETE")


@dataclass
class DbUsage:
    time_ms: float = 0.0
    statements: int = 0
    writes: int = 0


_db_usage: ContextVar[DbUsage | None] = ContextVar("db_usage", default=None)


def start_db_timer() -> object:
    return _db_usage.set(DbUsage())


def stop_db_timer(token: object) -> None:
    _db_usage.reset(token)


def record_statement(statement: str, delta_ms: float) -> None:
    usage = _db_usage.get()
    if usage is None:
        return
    usage.time_ms += delta_ms
    usage.statements += 1
    if statement.lstrip().upper().startswith(_WRITE_VERBS):
        usage.writes += 1


def current_db_usage() -> DbUsage | None:
    return _db_usage.get()


def get_db_time_ms() -> float | None:
    usage = _db_usage.get()
    return usage.time_ms if usage is not None else None
