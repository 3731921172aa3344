from __future__ import annotations

import uuid
from collections.abc import Callable

from sqlalchemy import create_engine, text
from sqlalchemy.engine import make_url


def create_postgres_test_database(base_url: str) -> tuple[str, Callable[[], None]]:
    """Creates a throwaway database next to ``base_url`` and returns its url plus a dropper."""
    url = make_url(base_url)
    db_name = f"fieldledger_test_{uuid.uuid4().hex[:12]}"
    admin_engine = create_engine(url.set(database="postgres"), isolation_level="AUTOCOMMIT", future=True)
    with admin_engine.connect() as conn:
        conn.execute(text(f'CREATE DATABASE "{db_name}"'))

    def cleanup() -> None:
        with admin_engine.connect() as conn:
            conn.execute(
                text("SELECT pg_terminate_backend(pid) FROM pg_stat_activity WHERE datname = :db_name"),
                {"db_name": db_name},
            )
            conn.execute(text(f'DROP DATABASE IF EXISTS "{db_name}"'))
        admin_engine.dispose()

    return url.set(database=db_name).render_as_string(hide_password=False), cleanup
