"""db: the workspace database library.

Holds the SQLAlchemy models for the ledger (records, shared ledgers and their
members, watcher sync cursors) and the engine/session helpers in
``db.client``. Alembic migrations under ``libs/db/alembic`` target
:data:`metadata`.
"""

from __future__ import annotations

from .models.ledger import Base, LedgerRecord, SharedLedger, SharedLedgerMember, SyncCursorRow

metadata = Base.metadata

__all__ = [
    "Base",
    "LedgerRecord",
    "SharedLedger",
    "SharedLedgerMember",
    "SyncCursorRow",
    "metadata",
]
