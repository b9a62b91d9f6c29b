"""Spreadsheet references, CSV export fetching and content hashing.

A user supplies a share link to a Google spreadsheet such as::

    https://docs.google.com/spreadsheets/d/<id>/edit#gid=<gid>

which maps to the CSV export endpoint::

    https://docs.google.com/spreadsheets/d/<id>/export?format=csv&gid=<gid>

The sheet must be readable by anyone with the link. Fetches use ``requests``
with a bounded timeout; every failure mode (network error, timeout, non-2xx)
surfaces as :class:`~ledger_sync.errors.TransportError`.
"""

from __future__ import annotations

import hashlib
import re

import requests

from .errors import InvalidSourceError, TransportError
from .logging_setup import get_logger
from .models import SheetRef

HTTP_TIMEOUT_SECONDS = 10.0

_SHEET_HOST_MARKER = "docs.google.com/spreadsheets"
_ID_RE = re.compile(r"/spreadsheets/d/([a-zA-Z0-9_-]+)")
_GID_RE = re.compile(r"[#&?]gid=([0-9]+)")
EXPORT_URL_TEMPLATE = "https://docs.google.com/spreadsheets/d/{id}/export?format=csv&gid={gid}"

_logger = get_logger("ledger_sync.sheets")


def is_spreadsheet_url(url: str | None) -> bool:
    """True when ``url`` points at a spreadsheet (as opposed to a push webhook)."""

    return bool(url) and _SHEET_HOST_MARKER in url  # type: ignore[operator]


def parse_sheet_url(url: str) -> SheetRef:
    """Extract the spreadsheet id and sheet ``gid`` (default ``"0"``)."""

    match = _ID_RE.search(url or "")
    if not match:
        raise InvalidSourceError(f"not a spreadsheet URL: {url!r}")
    gid = _GID_RE.search(url)
    return SheetRef(spreadsheet_id=match.group(1), gid=gid.group(1) if gid else "0")


def export_url(ref: SheetRef | str) -> str:
    """Return the CSV export URL for a :class:`SheetRef` or a share link."""

    if isinstance(ref, str):
        ref = parse_sheet_url(ref)
    return EXPORT_URL_TEMPLATE.format(id=ref.spreadsheet_id, gid=ref.gid)


def fetch_export(
    url: str,
    *,
    timeout: float = HTTP_TIMEOUT_SECONDS,
    session: requests.Session | None = None,
) -> str:
    """GET the CSV export for ``url`` (a share link or export URL) and return its text."""

    target = export_url(url)
    http = session or requests
    try:
        response = http.get(target, timeout=timeout)
    except requests.RequestException as e:
        raise TransportError(f"failed to fetch spreadsheet export: {e}") from e

    if not 200 <= response.status_code < 300:
        raise TransportError(
            f"spreadsheet export returned HTTP {response.status_code}; make sure the "
            "sheet is shared with 'Anyone with the link can view'",
            status_code=response.status_code,
        )
    # Google serves the export as UTF-8 but does not always say so.
    if not response.encoding or response.encoding.lower() == "iso-8859-1":
        response.encoding = "utf-8"
    _logger.debug("sheets:fetched url=%s bytes=%d", target, len(response.content))
    return response.text


def content_hash(text: str) -> str:
    """SHA-256 hex digest of the export text, used as the change cursor."""

    return hashlib.sha256(text.encode("utf-8")).hexdigest()


__all__ = [
    "EXPORT_URL_TEMPLATE",
    "HTTP_TIMEOUT_SECONDS",
    "content_hash",
    "export_url",
    "fetch_export",
    "is_spreadsheet_url",
    "parse_sheet_url",
]
