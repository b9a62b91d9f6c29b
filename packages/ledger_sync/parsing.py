"""Tolerant date and amount parsing for spreadsheet exports.

Spreadsheet exports mix every date convention in use: serial day numbers,
US and European slash dates, ISO dates, dotted dates and free-form text.
:func:`parse_date` tries a fixed sequence of strategies and always returns a
``date``; input it cannot read resolves to :data:`SENTINEL_DATE` and is
logged. :func:`parse_amount` likewise never raises and resolves unreadable
input to zero.

Strategy order for dates (first success wins):

1. Numeric serial day count (day 0 = 1899-12-30), years 1900–2099 only.
2. Slash triple: month/day/year, then day/month/year, then year/month/day.
3. Dash triple: ISO ``yyyy-mm-dd`` first, otherwise the 4-digit field marks
   the year.
4. Dotted ``dd.mm.yyyy``.
5. Generic parse (``dateutil``).
6. :data:`SENTINEL_DATE`.

Two-digit years map ``< 50`` to the 2000s and everything else to the 1900s.
Candidates that would roll over (month 13, February 30) are rejected rather
than wrapped.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Sequence
from datetime import date, timedelta
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, TypeAlias

from dateutil import parser as date_parser

from .logging_setup import get_logger

SENTINEL_DATE = date(1970, 1, 1)

SERIAL_EPOCH = date(1899, 12, 30)
_SERIAL_MAX = 100_000
_MIN_YEAR = 1900
_MAX_YEAR = 2100  # exclusive

_ZERO = Decimal("0.00")
_CENT = Decimal("0.01")

_NUMERIC_RE = re.compile(r"^[+-]?(\d+(\.\d*)?|\.\d+)$")
_UNSIGNED_RE = re.compile(r"^(\d+(\.\d*)?|\.\d+)$")
_ISO_PREFIX_RE = re.compile(r"^(\d{4})-(\d{1,2})-(\d{1,2})(?:[T ].*)?$")
_DIGITS_RE = re.compile(r"^\d+$")
# Everything that is not part of a plain signed decimal number.
_AMOUNT_JUNK_RE = re.compile(r"[^\d.()\-]")

_logger = get_logger("ledger_sync.parsing")

# A field order for a date triple, e.g. ("m", "d", "y").
_Order: TypeAlias = tuple[str, str, str]

_SLASH_ORDERS: tuple[_Order, ...] = (("m", "d", "y"), ("d", "m", "y"), ("y", "m", "d"))


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _expand_year(token: str) -> int:
    year = int(token)
    if len(token) <= 2:
        return 2000 + year if year < 50 else 1900 + year
    return year


def _build(year: int, month: int, day: int) -> date | None:
    # ``date`` rejects out-of-range components instead of rolling them over.
    try:
        return date(year, month, day)
    except ValueError:
        return None


def _from_parts(parts: Sequence[str], order: _Order) -> date | None:
    if len(parts) != 3 or not all(_DIGITS_RE.match(p) for p in parts):
        return None
    fields = dict(zip(order, parts, strict=True))
    # A year written with 3+ digits only belongs in the year slot, and the
    # year slot only accepts 1-2 or 4 digit tokens.
    if len(fields["y"]) not in (1, 2, 4):
        return None
    if len(fields["m"]) > 2 or len(fields["d"]) > 2:
        return None
    return _build(_expand_year(fields["y"]), int(fields["m"]), int(fields["d"]))


def _first_match(parts: Sequence[str], orders: Sequence[_Order]) -> date | None:
    for order in orders:
        parsed = _from_parts(parts, order)
        if parsed is not None:
            return parsed
    return None


# ---------------------------------------------------------------------------
# Strategies
# ---------------------------------------------------------------------------


def _from_serial(s: str) -> date | None:
    if not _NUMERIC_RE.match(s):
        return None
    value = float(s)
    if not 0 < value < _SERIAL_MAX:
        return None
    parsed = SERIAL_EPOCH + timedelta(days=int(value))
    if not _MIN_YEAR <= parsed.year < _MAX_YEAR:
        return None
    return parsed


def _from_slashes(s: str) -> date | None:
    if "/" not in s:
        return None
    # Tolerate a trailing time component ("01/02/2024 13:45").
    parts = [p.strip() for p in s.split()[0].split("/")]
    return _first_match(parts, _SLASH_ORDERS)


def _from_dashes(s: str) -> date | None:
    if "-" not in s:
        return None
    iso = _ISO_PREFIX_RE.match(s)
    if iso:
        parsed = _build(int(iso.group(1)), int(iso.group(2)), int(iso.group(3)))
        if parsed is not None:
            return parsed
    parts = [p.strip() for p in s.split()[0].split("-")]
    if len(parts) != 3:
        return None
    if len(parts[0]) == 4:
        orders: tuple[_Order, ...] = (("y", "m", "d"), ("y", "d", "m"))
    elif len(parts[2]) == 4:
        orders = (("m", "d", "y"), ("d", "m", "y"))
    else:
        return None
    return _first_match(parts, orders)


def _from_dots(s: str) -> date | None:
    if "." not in s:
        return None
    parts = [p.strip() for p in s.split()[0].split(".")]
    return _first_match(parts, (("d", "m", "y"),))


def _from_generic(s: str) -> date | None:
    if not s:
        return None
    try:
        return date_parser.parse(s).date()
    except (ValueError, OverflowError, TypeError):
        return None


_STRATEGIES: tuple[Callable[[str], date | None], ...] = (
    _from_serial,
    _from_slashes,
    _from_dashes,
    _from_dots,
    _from_generic,
)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def parse_date(raw: Any) -> date:
    """Return the date encoded by ``raw``; never raises.

    ``raw`` is normally a string cell value. ``date`` instances pass through
    unchanged and any other value is parsed from its ``str()`` form. Input no
    strategy understands resolves to :data:`SENTINEL_DATE`.
    """

    if isinstance(raw, date):
        return raw
    s = "" if raw is None else str(raw).strip()
    for strategy in _STRATEGIES:
        try:
            parsed = strategy(s)
        except Exception:  # noqa: BLE001 - parsing must never fail the caller
            parsed = None
        if parsed is not None:
            return parsed
    _logger.warning("parse_date:unparsed raw=%r fallback=%s", raw, SENTINEL_DATE.isoformat())
    return SENTINEL_DATE


def parse_amount(raw: Any) -> Decimal:
    """Return ``raw`` as a 2-decimal ``Decimal``; never raises.

    Currency symbols, letters, spaces and thousands separators are stripped.
    A leading minus sign or surrounding parentheses mark a negative amount.
    Empty or unreadable input yields ``Decimal("0.00")``.
    """

    if raw is None:
        return _ZERO
    if isinstance(raw, Decimal):
        return raw.quantize(_CENT, rounding=ROUND_HALF_UP) if raw.is_finite() else _ZERO
    s = _AMOUNT_JUNK_RE.sub("", str(raw))
    if not s:
        return _ZERO

    negative = False
    if s.startswith("(") and s.endswith(")"):
        negative = True
        s = s[1:-1]
    if s.startswith("-"):
        negative = True
        s = s[1:]

    if not _UNSIGNED_RE.match(s):
        _logger.debug("parse_amount:unparsed raw=%r", raw)
        return _ZERO
    try:
        value = Decimal(s).quantize(_CENT, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        _logger.debug("parse_amount:unparsed raw=%r", raw)
        return _ZERO
    return -value if negative else value


__all__ = ["SENTINEL_DATE", "SERIAL_EPOCH", "parse_amount", "parse_date"]
