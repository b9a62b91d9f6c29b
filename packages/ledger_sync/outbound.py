# ruff: noqa: I001
"""Outbound sync: push the full ledger to a webhook after local changes.

The receiving endpoint (typically an Apps Script web app bound to a sheet)
replaces its content with the batch it is sent, so every push carries the
whole ledger view. Pushes are best-effort: failures come back as a
:class:`SyncResult` and are logged, never raised to the writer that caused
them.
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass

import requests
from pydantic import ValidationError

from db.client import DatabaseNotConfiguredError

from .errors import LedgerSyncError
from .ledger import LedgerView
from .logging_setup import get_logger
from .models import WebhookPayload, WebhookResponse, WebhookRow
from .settings import SettingsStore
from .sheets import HTTP_TIMEOUT_SECONDS, is_spreadsheet_url
from .store import LedgerStore, LedgerUpdate

_logger = get_logger("ledger_sync.outbound")


@dataclass(frozen=True, slots=True)
class SyncResult:
    success: bool
    skipped: bool = False
    count: int = 0
    error: str | None = None


def build_payload(view: LedgerView) -> WebhookPayload:
    """Format ``view`` as a ``batch`` payload in ascending ref order."""

    rows = [
        WebhookRow(
            ref=entry.ref,
            date=entry.record.occurred_on.strftime("%m/%d/%Y"),
            description=entry.record.description,
            category=entry.record.category,
            amount_in=float(entry.record.amount_in),
            amount_out=float(entry.record.amount_out),
            balance=float(entry.balance),
        )
        for entry in view.entries
    ]
    return WebhookPayload(action="batch", expenses=rows)


class OutboundSyncClient:
    """Push ledger views to the configured webhook.

    ``url`` pins the endpoint; otherwise it is read from ``settings`` on each
    push. A spreadsheet link is not a push endpoint and counts as unset.
    """

    def __init__(
        self,
        *,
        store: LedgerStore,
        url: str | None = None,
        settings: SettingsStore | None = None,
        session: requests.Session | None = None,
        timeout: float = HTTP_TIMEOUT_SECONDS,
    ) -> None:
        self._store = store
        self._url = url
        self._settings = settings or SettingsStore()
        self._session = session
        self._timeout = timeout
        self._executor: ThreadPoolExecutor | None = None
        self._queued: dict[str, Future[SyncResult]] = {}
        self._queue_lock = threading.Lock()

    def endpoint(self) -> str | None:
        url = self._url if self._url is not None else self._settings.load().sync_url
        if not url or is_spreadsheet_url(url):
            return None
        return url

    def push(self, ledger_id: str) -> SyncResult:
        """POST the current view of ``ledger_id``; never raises."""

        url = self.endpoint()
        if url is None:
            _logger.debug("outbound:skipped ledger_id=%s reason=no_endpoint", ledger_id)
            return SyncResult(success=True, skipped=True)

        try:
            view = self._store.view(ledger_id)
        except (LedgerSyncError, DatabaseNotConfiguredError) as e:
            return self._failed(ledger_id, f"could not read ledger: {e}")

        body = build_payload(view).to_json_body()
        http = self._session or requests
        try:
            response = http.post(url, json=body, timeout=self._timeout)
        except requests.RequestException as e:
            return self._failed(ledger_id, f"request failed: {e}")

        if not 200 <= response.status_code < 300:
            return self._failed(ledger_id, f"webhook returned HTTP {response.status_code}")
        try:
            ack = WebhookResponse.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            return self._failed(ledger_id, f"malformed webhook response: {e}")
        if not ack.success:
            return self._failed(ledger_id, ack.message or "webhook reported failure")

        count = ack.count if ack.count is not None else len(view)
        _logger.info("outbound:pushed ledger_id=%s rows=%d", ledger_id, count)
        return SyncResult(success=True, count=count)

    @staticmethod
    def _failed(ledger_id: str, error: str) -> SyncResult:
        _logger.warning("outbound:push_failed ledger_id=%s error=%s", ledger_id, error)
        return SyncResult(success=False, error=error)

    # ------------------------------------------------------------------
    # Fire-and-forget
    # ------------------------------------------------------------------

    def push_async(self, ledger_id: str) -> Future[SyncResult]:
        """Schedule :meth:`push` on the client's worker thread.

        Callers are not expected to wait on the returned future; outcomes are
        drained into the log.

        Requests coalesce per ledger: while a push for ``ledger_id`` is queued
        and not yet started, further calls return that same future. Each push
        reads the view when it runs, so the queued one already carries every
        change made before it starts.
        """

        with self._queue_lock:
            pending = self._queued.get(ledger_id)
            if pending is not None:
                return pending
            if self._executor is None:
                self._executor = ThreadPoolExecutor(
                    max_workers=1, thread_name_prefix="ledger-sync-push"
                )
            future = self._executor.submit(self._run_queued, ledger_id)
            self._queued[ledger_id] = future
        future.add_done_callback(_drain)
        return future

    def _run_queued(self, ledger_id: str) -> SyncResult:
        with self._queue_lock:
            self._queued.pop(ledger_id, None)
        return self.push(ledger_id)

    def attach(self, ledger_id: str) -> Callable[[], None]:
        """Push ``ledger_id`` after every successful local mutation.

        Returns the store's unsubscribe hook.
        """

        def _on_change(update: LedgerUpdate) -> None:
            if update.ok:
                self.push_async(update.ledger_id)

        return self._store.subscribe(ledger_id, _on_change, emit_initial=False)

    def close(self, *, wait: bool = True) -> None:
        with self._queue_lock:
            executor, self._executor = self._executor, None
        if executor is not None:
            executor.shutdown(wait=wait)


def _drain(future: Future[SyncResult]) -> None:
    exc = future.exception()
    if exc is not None:
        _logger.error("outbound:push_crashed error=%s", exc, exc_info=exc)


__all__ = ["OutboundSyncClient", "SyncResult", "build_payload"]
