# ruff: noqa: I001
"""Durable change cursors for the sheet watcher.

One cursor per ``(ledger_id, source_ref)`` pair records the SHA-256 of the
last export that was imported and when. Cursors live in the ``sync_cursors``
table so they survive process restarts.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime

from sqlalchemy.exc import SQLAlchemyError

from db.client import session_scope
from db.models.ledger import SyncCursorRow

from .errors import StoreUnavailableError


@dataclass(frozen=True, slots=True)
class SyncCursor:
    ledger_id: str
    source_ref: str
    content_hash: str
    synced_at: datetime


class SyncCursorStore:
    def __init__(self, *, database_url: str | None = None) -> None:
        self._database_url = database_url

    def get(self, ledger_id: str, source_ref: str) -> SyncCursor | None:
        try:
            with session_scope(database_url=self._database_url) as session:
                row = session.get(SyncCursorRow, (ledger_id, source_ref))
                if row is None:
                    return None
                synced_at = row.synced_at
                if synced_at.tzinfo is None:
                    synced_at = synced_at.replace(tzinfo=UTC)
                return SyncCursor(
                    ledger_id=row.ledger_id,
                    source_ref=row.source_ref,
                    content_hash=row.content_hash,
                    synced_at=synced_at,
                )
        except SQLAlchemyError as e:
            raise StoreUnavailableError(f"cursor lookup failed: {e}") from e

    def put(self, ledger_id: str, source_ref: str, content_hash: str) -> SyncCursor:
        """Insert or overwrite the cursor; returns what was stored."""

        now = datetime.now(UTC)
        try:
            with session_scope(database_url=self._database_url) as session:
                row = session.get(SyncCursorRow, (ledger_id, source_ref))
                if row is None:
                    session.add(
                        SyncCursorRow(
                            ledger_id=ledger_id,
                            source_ref=source_ref,
                            content_hash=content_hash,
                            synced_at=now,
                        )
                    )
                else:
                    row.content_hash = content_hash
                    row.synced_at = now
        except SQLAlchemyError as e:
            raise StoreUnavailableError(f"cursor write failed: {e}") from e
        return SyncCursor(ledger_id, source_ref, content_hash, now)


__all__ = ["SyncCursor", "SyncCursorStore"]
