"""Shared SQLAlchemy models registry for the workspace database.

Currently includes the ledger domain models used by ``ledger_sync``.
"""

from .ledger import Base, LedgerRecord, SharedLedger, SharedLedgerMember, SyncCursorRow

__all__ = [
    "Base",
    "LedgerRecord",
    "SharedLedger",
    "SharedLedgerMember",
    "SyncCursorRow",
]
