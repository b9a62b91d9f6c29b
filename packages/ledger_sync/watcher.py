"""Background change-watcher for a linked spreadsheet.

:class:`SheetWatcher` polls the configured spreadsheet export on a fixed
interval, hashes the text and imports it only when the hash differs from the
stored :class:`~ledger_sync.cursors.SyncCursor` for the resolved ledger.

Behavior
--------
- The enabled flag and sync URL come from :class:`~ledger_sync.settings.SettingsStore`
  and are re-read on every tick, so ``set-url`` or ``watch-disable`` from
  another process take effect on the next tick.
- A URL that is not a spreadsheet link (a push webhook) is ignored here.
- At most one tick per ledger is in flight; an overlapping tick returns
  immediately instead of queuing.
- Every failure is logged and swallowed; the loop keeps running.
- :meth:`SheetWatcher.stop` cancels an import that is in progress at its next
  row boundary.
"""

from __future__ import annotations

import os
import threading

from .cursors import SyncCursorStore
from .errors import ImportCancelled, LedgerSyncError
from .importer import CancelToken, Fetcher, import_csv_text
from .logging_setup import get_logger
from .resolver import LedgerResolver
from .settings import SettingsStore
from .sheets import content_hash, fetch_export, is_spreadsheet_url
from .store import LedgerStore

DEFAULT_POLL_INTERVAL_SECONDS = 60.0

_logger = get_logger("ledger_sync.watcher")


def poll_interval_from_env() -> float:
    raw = os.getenv("LEDGER_SYNC_POLL_INTERVAL")
    if not raw or not raw.strip():
        return DEFAULT_POLL_INTERVAL_SECONDS
    try:
        value = float(raw)
    except ValueError:
        _logger.warning("watcher:bad_interval value=%r; using default", raw)
        return DEFAULT_POLL_INTERVAL_SECONDS
    if value <= 0:
        _logger.warning("watcher:bad_interval value=%r; using default", raw)
        return DEFAULT_POLL_INTERVAL_SECONDS
    return value


class SheetWatcher:
    """Poll one user's linked spreadsheet and import changes.

    Parameters
    ----------
    user_id:
        Identity whose ledger receives the imports (resolved on every tick).
    store, resolver, cursors, settings:
        Collaborators; ``cursors`` and ``settings`` default to stores bound to
        the same database URL as ``store`` and to the state directory.
    interval:
        Seconds between ticks. Defaults to ``LEDGER_SYNC_POLL_INTERVAL`` or 60.
    fetch:
        Callable returning the export text for a sheet URL.
    """

    def __init__(
        self,
        user_id: str,
        *,
        store: LedgerStore,
        resolver: LedgerResolver,
        cursors: SyncCursorStore | None = None,
        settings: SettingsStore | None = None,
        interval: float | None = None,
        fetch: Fetcher = fetch_export,
    ) -> None:
        self._user_id = user_id
        self._store = store
        self._resolver = resolver
        self._cursors = cursors or SyncCursorStore(database_url=store.database_url)
        self._settings = settings or SettingsStore()
        self._interval = interval if interval is not None else poll_interval_from_env()
        self._fetch = fetch

        self._cancel = CancelToken()
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None
        self._lifecycle_lock = threading.Lock()
        self._in_flight: set[str] = set()
        self._in_flight_lock = threading.Lock()

    @property
    def interval(self) -> float:
        return self._interval

    @property
    def running(self) -> bool:
        thread = self._thread
        return thread is not None and thread.is_alive() and not self._stop.is_set()

    @property
    def enabled(self) -> bool:
        return self._settings.load().watcher_enabled

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Start a polling loop unless one is already running.

        Every loop owns its stop event and cancel token, so a loop that
        outlived a timed-out :meth:`stop` still winds down on its own.
        """

        with self._lifecycle_lock:
            if self.running:
                return
            self._stop = threading.Event()
            self._cancel = CancelToken()
            self._thread = threading.Thread(
                target=self._run,
                args=(self._stop, self._cancel),
                name="ledger-sync-watcher",
                daemon=True,
            )
            self._thread.start()
        _logger.info("watcher:started user_id=%s interval=%s", self._user_id, self._interval)

    def stop(self, *, timeout: float | None = None) -> None:
        with self._lifecycle_lock:
            thread = self._thread
            self._stop.set()
            self._cancel.cancel()
        if thread is None:
            return
        thread.join(timeout)
        if thread.is_alive():
            _logger.warning("watcher:stop_timeout user_id=%s", self._user_id)
            return
        with self._lifecycle_lock:
            if self._thread is thread:
                self._thread = None
        _logger.info("watcher:stopped user_id=%s", self._user_id)

    def enable(self) -> None:
        """Persist the enabled flag and start polling."""

        self._settings.update(watcher_enabled=True)
        self.start()

    def disable(self) -> None:
        """Persist the disabled flag and stop polling."""

        self._settings.update(watcher_enabled=False)
        self.stop()

    def wait(self, timeout: float | None = None) -> bool:
        """Block until :meth:`stop` is called; ``True`` once stopped."""

        return self._stop.wait(timeout)

    def _run(self, stop: threading.Event, cancel: CancelToken) -> None:
        while not stop.is_set():
            try:
                self._tick(cancel)
            except Exception:  # noqa: BLE001 - the loop must survive any tick
                _logger.exception("watcher:tick_crashed user_id=%s", self._user_id)
            if stop.wait(self._interval):
                break

    # ------------------------------------------------------------------
    # One poll
    # ------------------------------------------------------------------

    def tick(self) -> bool:
        """Run one poll; return ``True`` when an import was performed."""

        return self._tick(self._cancel)

    def _tick(self, cancel: CancelToken) -> bool:
        settings = self._settings.load()
        url = settings.sync_url
        if not settings.watcher_enabled or not url or not is_spreadsheet_url(url):
            return False

        try:
            ledger_id = self._resolver.resolve(self._user_id)
        except LedgerSyncError as e:
            _logger.warning("watcher:resolve_failed user_id=%s error=%s", self._user_id, e)
            return False

        with self._in_flight_lock:
            if ledger_id in self._in_flight:
                _logger.debug("watcher:tick_suppressed ledger_id=%s", ledger_id)
                return False
            self._in_flight.add(ledger_id)

        try:
            return self._sync(ledger_id, url, cancel)
        finally:
            with self._in_flight_lock:
                self._in_flight.discard(ledger_id)

    def _sync(self, ledger_id: str, url: str, cancel: CancelToken) -> bool:
        try:
            text = self._fetch(url)
            digest = content_hash(text)
            cursor = self._cursors.get(ledger_id, url)
            if cursor is not None and cursor.content_hash == digest:
                _logger.debug("watcher:unchanged ledger_id=%s", ledger_id)
                return False

            report = import_csv_text(
                text, ledger_id, store=self._store, cancel_token=cancel
            )
            self._cursors.put(ledger_id, url, digest)
        except ImportCancelled as e:
            _logger.info("watcher:import_cancelled ledger_id=%s imported=%d", ledger_id, e.imported)
            return False
        except LedgerSyncError as e:
            _logger.warning("watcher:sync_failed ledger_id=%s error=%s", ledger_id, e)
            return False

        _logger.info(
            "watcher:imported ledger_id=%s imported=%d skipped=%d",
            ledger_id,
            report.imported,
            report.skipped,
        )
        return True


__all__ = ["DEFAULT_POLL_INTERVAL_SECONDS", "SheetWatcher", "poll_interval_from_env"]
