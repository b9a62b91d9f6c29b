"""Public interface for the ``ledger_sync`` package.

This module exposes the package's entry points and public models/types as the
stable import surface. There is no runtime logic here, only symbol re-exports.
"""

from .api import (
    import_from_spreadsheet,
    import_spreadsheet_for_user,
    ledger_id_for,
    view_for_user,
)
from .errors import (
    ImportCancelled,
    InvalidSourceError,
    LedgerSyncError,
    MembershipError,
    RecordNotFoundError,
    RecordValidationError,
    StoreUnavailableError,
    TransportError,
)
from .importer import CancelToken, ImportReport, import_csv_text
from .ledger import LedgerEntry, LedgerView, derive_view
from .models import RecordInput, RecordPatch, SheetRef, TransactionRecord
from .outbound import OutboundSyncClient, SyncResult
from .parsing import parse_amount, parse_date
from .resolver import LedgerResolver
from .store import LedgerStore, LedgerUpdate
from .tabular import parse_table
from .watcher import SheetWatcher

__all__ = [
    # API
    "import_from_spreadsheet",
    "import_spreadsheet_for_user",
    "import_csv_text",
    "ledger_id_for",
    "view_for_user",
    "derive_view",
    "parse_amount",
    "parse_date",
    "parse_table",
    # Components
    "CancelToken",
    "LedgerResolver",
    "LedgerStore",
    "OutboundSyncClient",
    "SheetWatcher",
    # Models / types
    "ImportReport",
    "LedgerEntry",
    "LedgerUpdate",
    "LedgerView",
    "RecordInput",
    "RecordPatch",
    "SheetRef",
    "SyncResult",
    "TransactionRecord",
    # Errors
    "ImportCancelled",
    "InvalidSourceError",
    "LedgerSyncError",
    "MembershipError",
    "RecordNotFoundError",
    "RecordValidationError",
    "StoreUnavailableError",
    "TransportError",
]
