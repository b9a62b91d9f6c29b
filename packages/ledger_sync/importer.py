"""Import orchestration: spreadsheet export -> ledger records.

The pipeline is fetch -> :func:`~ledger_sync.tabular.parse_table` ->
:func:`row_to_record` -> :meth:`LedgerStore.append`, one row at a time in file
order. Rows are independent: a row whose amounts are both zero, or that the
store rejects, is counted as skipped and the import moves on.

Cancellation is cooperative. A :class:`CancelToken` is checked before every
row; once set, the import raises :class:`~ledger_sync.errors.ImportCancelled`
and rows already written stay in the ledger.
"""

from __future__ import annotations

import threading
from collections.abc import Callable, Iterable, Mapping
from typing import TypeAlias
from dataclasses import dataclass
from decimal import Decimal

from .errors import ImportCancelled, RecordValidationError
from .logging_setup import get_logger
from .models import DEFAULT_CATEGORY, RecordInput
from .parsing import parse_amount, parse_date
from .sheets import fetch_export
from .store import LedgerStore
from .tabular import parse_table

DEFAULT_DESCRIPTION = "Imported expense"

ProgressCallback: TypeAlias = Callable[[int, int], None]
Fetcher: TypeAlias = Callable[[str], str]

_logger = get_logger("ledger_sync.importer")

# Recognized header spellings per field, compared case-insensitively.
_COLUMN_SYNONYMS: dict[str, tuple[str, ...]] = {
    "date": ("date",),
    "description": ("description", "desc"),
    "category": ("category", "cat"),
    "amount_in": ("in", "income"),
    "amount_out": ("out", "expense"),
}


class CancelToken:
    """Thread-safe cancellation flag shared between a caller and an import."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    def reset(self) -> None:
        self._event.clear()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


@dataclass(frozen=True, slots=True)
class ImportReport:
    imported: int
    skipped: int
    total: int


def _column(row: Mapping[str, str], field: str) -> str:
    lowered = {k.strip().lower(): v for k, v in row.items()}
    for name in _COLUMN_SYNONYMS[field]:
        value = lowered.get(name)
        if value is not None:
            return value
    return ""


def row_to_record(row: Mapping[str, str]) -> RecordInput:
    """Map one parsed sheet row to a record candidate.

    Raises :class:`~ledger_sync.errors.RecordValidationError` when the row
    cannot form a valid record (for example a negative amount).
    """

    values = {
        "occurred_on": parse_date(_column(row, "date")),
        "description": _column(row, "description").strip() or DEFAULT_DESCRIPTION,
        "category": _column(row, "category").strip() or DEFAULT_CATEGORY,
        "amount_in": parse_amount(_column(row, "amount_in")),
        "amount_out": parse_amount(_column(row, "amount_out")),
    }
    try:
        return RecordInput.model_validate(values)
    except ValueError as e:
        raise RecordValidationError(str(e)) from e


def import_rows(
    rows: Iterable[Mapping[str, str]],
    ledger_id: str,
    *,
    store: LedgerStore,
    on_progress: ProgressCallback | None = None,
    cancel_token: CancelToken | None = None,
) -> ImportReport:
    """Write ``rows`` into ``ledger_id``; see the module docstring for semantics."""

    pending = list(rows)
    total = len(pending)
    imported = 0
    skipped = 0

    for index, row in enumerate(pending, start=1):
        if cancel_token is not None and cancel_token.cancelled:
            _logger.info(
                "import:cancelled ledger_id=%s imported=%d total=%d", ledger_id, imported, total
            )
            raise ImportCancelled(imported=imported, total=total)

        try:
            record = row_to_record(row)
        except RecordValidationError as e:
            skipped += 1
            _logger.warning("import:row_invalid row=%d error=%s", index, e)
            continue

        if record.amount_in == Decimal(0) and record.amount_out == Decimal(0):
            skipped += 1
            _logger.debug("import:row_zero_amounts row=%d", index)
            continue

        try:
            store.append(ledger_id, record)
        except RecordValidationError as e:
            skipped += 1
            _logger.warning("import:row_rejected row=%d error=%s", index, e)
            continue

        imported += 1
        if on_progress is not None:
            on_progress(imported, total)

    _logger.info(
        "import:done ledger_id=%s imported=%d skipped=%d total=%d",
        ledger_id,
        imported,
        skipped,
        total,
    )
    return ImportReport(imported=imported, skipped=skipped, total=total)


def import_csv_text(
    text: str,
    ledger_id: str,
    *,
    store: LedgerStore,
    on_progress: ProgressCallback | None = None,
    cancel_token: CancelToken | None = None,
) -> ImportReport:
    """Parse exported CSV ``text`` and import its rows."""

    rows = parse_table(text)
    if not rows:
        _logger.warning("import:no_rows ledger_id=%s", ledger_id)
    return import_rows(
        rows, ledger_id, store=store, on_progress=on_progress, cancel_token=cancel_token
    )


def import_from_spreadsheet(
    source_ref: str,
    ledger_id: str,
    *,
    store: LedgerStore,
    on_progress: ProgressCallback | None = None,
    cancel_token: CancelToken | None = None,
    fetch: Fetcher = fetch_export,
) -> int:
    """Fetch the sheet at ``source_ref`` and import it; return the imported count.

    :class:`~ledger_sync.errors.InvalidSourceError` and
    :class:`~ledger_sync.errors.TransportError` propagate unchanged, as does
    :class:`~ledger_sync.errors.ImportCancelled`.
    """

    _logger.info("import:start ledger_id=%s source=%s", ledger_id, source_ref)
    text = fetch(source_ref)
    report = import_csv_text(
        text, ledger_id, store=store, on_progress=on_progress, cancel_token=cancel_token
    )
    return report.imported


__all__ = [
    "DEFAULT_DESCRIPTION",
    "CancelToken",
    "ImportReport",
    "ProgressCallback",
    "import_csv_text",
    "import_from_spreadsheet",
    "import_rows",
    "row_to_record",
]
