"""Delimited-text reader for spreadsheet exports.

Parsing follows RFC 4180 rules via the stdlib :mod:`csv` module: quoted
fields may contain commas, newlines and doubled quotes. On top of that the
reader is lenient in the ways spreadsheet exports need:

- a leading UTF-8 BOM is ignored;
- blank lines (and rows whose cells are all blank) are dropped;
- header names and cell values are trimmed;
- a row whose field count differs from the header is dropped silently.
"""

from __future__ import annotations

import csv
from io import StringIO

from .logging_setup import get_logger

_logger = get_logger("ledger_sync.tabular")


def _is_blank(row: list[str]) -> bool:
    return not any(cell.strip() for cell in row)


def parse_table(text: str) -> list[dict[str, str]]:
    """Parse comma-separated ``text`` into one dict per data row.

    The first non-blank row is the header; keys of the returned dicts are the
    trimmed header texts. Returns an empty list for empty input or a header
    without data rows.
    """

    if not text:
        return []
    text = text.removeprefix("\ufeff")

    rows: list[list[str]] = []
    with StringIO(text, newline="") as f:
        reader = csv.reader(f)
        try:
            for row in reader:
                if not _is_blank(row):
                    rows.append(row)
        except csv.Error as e:
            # Keep what was readable; a truncated export still yields its head.
            _logger.warning("parse_table:truncated line=%d error=%s", reader.line_num, e)
    if not rows:
        return []

    header = [h.strip() for h in rows[0]]
    out: list[dict[str, str]] = []
    dropped = 0
    for row in rows[1:]:
        if len(row) != len(header):
            dropped += 1
            continue
        out.append({name: cell.strip() for name, cell in zip(header, row, strict=True)})

    if dropped:
        _logger.debug("parse_table:rows_dropped count=%d columns=%d", dropped, len(header))
    return out


__all__ = ["parse_table"]
