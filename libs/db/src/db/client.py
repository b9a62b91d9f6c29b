"""Centralized SQLAlchemy engine/session helpers for the workspace.

Usage
-----
from db.client import get_engine, session_scope

with session_scope() as s:
    s.execute(...)

Engines are cached per database URL so a process (or a test session) can talk
to more than one database without rebuilding connection pools.
"""

from __future__ import annotations

import os
import threading
from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from .models.ledger import Base

_ENGINES: dict[str, Engine] = {}
_SESSION_MAKERS: dict[str, sessionmaker[Session]] = {}
_LOCK = threading.Lock()


class DatabaseNotConfiguredError(RuntimeError):
    """No database URL was passed and ``DATABASE_URL`` is unset."""


def _database_url(override: str | None = None) -> str:
    url = override or os.getenv("DATABASE_URL")
    if not url:
        raise DatabaseNotConfiguredError(
            "DATABASE_URL is not set; cannot initialize database client"
        )
    return url


def get_engine(*, database_url: str | None = None) -> Engine:
    """Return the shared SQLAlchemy engine for a URL, creating it on first use."""

    url = _database_url(database_url)
    with _LOCK:
        engine = _ENGINES.get(url)
        if engine is None:
            # Default isolation level is fine; echo disabled.
            engine = create_engine(url, pool_pre_ping=True)
            _SESSION_MAKERS[url] = sessionmaker(
                bind=engine, expire_on_commit=False, class_=Session
            )
            _ENGINES[url] = engine
        return engine


def get_session(*, database_url: str | None = None) -> Session:
    """Return a new SQLAlchemy session bound to the shared engine."""

    url = _database_url(database_url)
    get_engine(database_url=url)
    return _SESSION_MAKERS[url]()


@contextmanager
def session_scope(*, database_url: str | None = None) -> Iterator[Session]:
    """Provide a transactional scope around a series of operations."""

    session = get_session(database_url=database_url)
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def create_schema(*, database_url: str | None = None) -> None:
    """Create all ledger tables that do not exist yet.

    Production databases are migrated with Alembic; this helper serves local
    SQLite files and tests.
    """

    Base.metadata.create_all(bind=get_engine(database_url=database_url))


def dispose_engine(*, database_url: str | None = None) -> None:
    """Dispose and forget the engine for ``database_url`` (if any)."""

    url = _database_url(database_url)
    with _LOCK:
        engine = _ENGINES.pop(url, None)
        _SESSION_MAKERS.pop(url, None)
    if engine is not None:
        engine.dispose()


__all__ = [
    "DatabaseNotConfiguredError",
    "create_schema",
    "dispose_engine",
    "get_engine",
    "get_session",
    "session_scope",
]
