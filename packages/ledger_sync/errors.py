"""Exception taxonomy for ``ledger_sync``.

Every failure the package raises derives from :class:`LedgerSyncError` except
:class:`ImportCancelled`: a user cancelling an import is an outcome, not a
failure, and must stay distinguishable from one.

Parse anomalies (unreadable dates or amounts) never surface here; the tolerant
parser resolves them to sentinel values and logs them instead.
"""

from __future__ import annotations


class LedgerSyncError(Exception):
    """Base class for all ``ledger_sync`` failures."""


class RecordValidationError(LedgerSyncError, ValueError):
    """A record was rejected at the store boundary and nothing was written."""


class RecordNotFoundError(LedgerSyncError, LookupError):
    """No record with the given id exists in the given ledger."""

    def __init__(self, ledger_id: str, record_id: int) -> None:
        super().__init__(f"record {record_id} not found in ledger {ledger_id!r}")
        self.ledger_id = ledger_id
        self.record_id = record_id


class StoreUnavailableError(LedgerSyncError):
    """The backing database could not be reached or failed mid-operation.

    Distinct from an empty ledger: subscribers receive this as an explicit
    error state instead of a view with zero entries.
    """


class TransportError(LedgerSyncError):
    """An HTTP fetch or post failed (network error, timeout, or non-2xx)."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class InvalidSourceError(LedgerSyncError, ValueError):
    """A spreadsheet reference could not be turned into an export URL."""


class MembershipError(LedgerSyncError, ValueError):
    """A shared-ledger membership change was not allowed."""


class ImportCancelled(Exception):  # noqa: N818 - an outcome, not an error
    """An import stopped because its cancellation token was set.

    Rows written before the cancellation was observed remain in the ledger.
    """

    def __init__(self, *, imported: int, total: int) -> None:
        super().__init__(f"import cancelled after {imported} of {total} rows")
        self.imported = imported
        self.total = total


__all__ = [
    "ImportCancelled",
    "InvalidSourceError",
    "LedgerSyncError",
    "MembershipError",
    "RecordNotFoundError",
    "RecordValidationError",
    "StoreUnavailableError",
    "TransportError",
]
