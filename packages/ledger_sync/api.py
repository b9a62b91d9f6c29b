"""Public entry points for hosts (CLI, UI) of the ``ledger_sync`` package.

Hosts think in users, the store thinks in ledger ids. The helpers here bridge
the two through :class:`~ledger_sync.resolver.LedgerResolver` so that a user
who joined a shared ledger reads, writes and imports into that ledger without
the host knowing about membership.
"""

from __future__ import annotations

from .importer import CancelToken, Fetcher, ProgressCallback, import_from_spreadsheet
from .ledger import LedgerView
from .resolver import LedgerResolver
from .sheets import fetch_export
from .store import LedgerStore


def ledger_id_for(user_id: str, *, database_url: str | None = None) -> str:
    """Ledger id that ``user_id``'s operations target."""

    return LedgerResolver(database_url=database_url).resolve(user_id)


def view_for_user(user_id: str, *, database_url: str | None = None) -> LedgerView:
    ledger_id = ledger_id_for(user_id, database_url=database_url)
    return LedgerStore(database_url=database_url).view(ledger_id)


def import_spreadsheet_for_user(
    reference: str,
    user_id: str,
    *,
    database_url: str | None = None,
    store: LedgerStore | None = None,
    on_progress: ProgressCallback | None = None,
    cancel_token: CancelToken | None = None,
    fetch: Fetcher = fetch_export,
) -> int:
    """Import the sheet at ``reference`` into ``user_id``'s resolved ledger.

    Returns the imported count. Raises
    :class:`~ledger_sync.errors.ImportCancelled` when ``cancel_token`` is set
    mid-import, and :class:`~ledger_sync.errors.TransportError` /
    :class:`~ledger_sync.errors.InvalidSourceError` when the sheet cannot be
    fetched.
    """

    store = store or LedgerStore(database_url=database_url)
    ledger_id = ledger_id_for(user_id, database_url=store.database_url)
    return import_from_spreadsheet(
        reference,
        ledger_id,
        store=store,
        on_progress=on_progress,
        cancel_token=cancel_token,
        fetch=fetch,
    )


__all__ = [
    "import_from_spreadsheet",
    "import_spreadsheet_for_user",
    "ledger_id_for",
    "view_for_user",
]
