"""DB helpers for tests: bootstrap a temporary SQLite DB and seed ledgers."""

from __future__ import annotations

import os
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Any

from db.client import create_schema, get_engine
from sqlalchemy import event


def bootstrap_sqlite_db(db_file: Path, *, set_default_env: bool = False) -> str:
    """Create a SQLite database file, initialize schema, and return the URL.

    Using a file-backed SQLite DB ensures multiple SQLAlchemy connections share
    the same state (in-memory DBs are per-connection by default).
    """

    url = f"sqlite+pysqlite:///{db_file}"
    db_file.parent.mkdir(parents=True, exist_ok=True)
    engine = get_engine(database_url=url)

    # Enforce FKs so membership cascades behave as on Postgres
    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_conn, _):  # pragma: no cover - tiny bridge
        dbapi_conn.execute("PRAGMA foreign_keys = ON")

    create_schema(database_url=url)

    if set_default_env:
        os.environ.setdefault("DATABASE_URL", url)
    return url


def seed_records(store: Any, ledger_id: str, rows: Iterable[Mapping[str, Any]]) -> list[int]:
    """Append ``rows`` to ``ledger_id`` in order and return the new ids."""

    return [store.append(ledger_id, dict(row)) for row in rows]
