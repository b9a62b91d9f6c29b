# ruff: noqa: I001
"""Ledger store: the authoritative record set per ledger id.

Records live in the shared database owned by ``libs/db`` (table
``ledger_records``) and are read and written through ``db.client`` sessions.
The store validates writes at its boundary, assigns ids and creation
timestamps, and hands out derived :class:`~ledger_sync.ledger.LedgerView`
objects that are recomputed on every read.

Subscribers registered with :meth:`LedgerStore.subscribe` receive a
:class:`LedgerUpdate` after every committed mutation of their ledger. An
unreachable database is delivered as ``LedgerUpdate(error=...)`` so that a
ledger that cannot be read is never presented as a ledger with no records.
"""

from __future__ import annotations

import threading
from collections import defaultdict
from collections.abc import Callable, Iterator, Mapping
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from decimal import Decimal
from typing import Any, TypeAlias

from pydantic import ValidationError
from sqlalchemy import delete, select
from sqlalchemy.exc import DataError, IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from db.client import session_scope
from db.models.ledger import LedgerRecord

from .errors import RecordNotFoundError, RecordValidationError, StoreUnavailableError
from .ledger import LedgerView, derive_view
from .logging_setup import get_logger
from .models import RecordInput, RecordPatch, TransactionRecord

_logger = get_logger("ledger_sync.store")


@dataclass(frozen=True, slots=True)
class LedgerUpdate:
    """What a subscriber receives: a fresh view, or the reason there is none."""

    ledger_id: str
    view: LedgerView | None = None
    error: StoreUnavailableError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


ChangeCallback: TypeAlias = Callable[[LedgerUpdate], None]


class _CreationClock:
    """Strictly increasing UTC timestamps within one process."""

    def __init__(self) -> None:
        self._last: datetime | None = None
        self._lock = threading.Lock()

    def now(self) -> datetime:
        with self._lock:
            current = datetime.now(UTC)
            if self._last is not None and current <= self._last:
                current = self._last + timedelta(microseconds=1)
            self._last = current
            return current


_CLOCK = _CreationClock()


def _as_utc(dt: datetime) -> datetime:
    # SQLite hands timestamps back naive; they were written as UTC.
    return dt.replace(tzinfo=UTC) if dt.tzinfo is None else dt


def _to_record(row: LedgerRecord) -> TransactionRecord:
    return TransactionRecord(
        id=row.id,
        ledger_id=row.ledger_id,
        occurred_on=row.occurred_on,
        description=row.description,
        category=row.category,
        amount_in=Decimal(row.amount_in),
        amount_out=Decimal(row.amount_out),
        created_at=_as_utc(row.created_at),
    )


def _validation_message(err: ValidationError) -> str:
    parts = []
    for item in err.errors():
        loc = ".".join(str(p) for p in item.get("loc", ()))
        parts.append(f"{loc}: {item.get('msg')}" if loc else str(item.get("msg")))
    return "; ".join(parts) or str(err)


def _coerce_input(record: RecordInput | Mapping[str, Any]) -> RecordInput:
    if isinstance(record, RecordInput):
        return record
    try:
        return RecordInput.model_validate(dict(record))
    except ValidationError as e:
        raise RecordValidationError(_validation_message(e)) from e


def _coerce_patch(patch: RecordPatch | RecordInput | Mapping[str, Any]) -> RecordPatch:
    if isinstance(patch, RecordPatch):
        return patch
    if isinstance(patch, RecordInput):
        return RecordPatch.model_validate(patch.model_dump())
    try:
        return RecordPatch.model_validate(dict(patch))
    except ValidationError as e:
        raise RecordValidationError(_validation_message(e)) from e


def _check_ledger_id(ledger_id: str) -> str:
    if not isinstance(ledger_id, str) or not ledger_id.strip():
        raise RecordValidationError("ledger_id must be a non-empty string")
    return ledger_id


class LedgerStore:
    """SQLAlchemy-backed record store with change subscriptions.

    Parameters
    ----------
    database_url:
        Optional DB URL override. Falls back to ``DATABASE_URL`` when ``None``.
    """

    def __init__(self, *, database_url: str | None = None) -> None:
        self._database_url = database_url
        self._subscribers: dict[str, list[ChangeCallback]] = defaultdict(list)
        self._lock = threading.Lock()

    @property
    def database_url(self) -> str | None:
        return self._database_url

    @contextmanager
    def _session(self) -> Iterator[Session]:
        try:
            with session_scope(database_url=self._database_url) as session:
                yield session
        except (IntegrityError, DataError) as e:
            raise RecordValidationError(f"record rejected by the database: {e.orig}") from e
        except SQLAlchemyError as e:
            raise StoreUnavailableError(f"ledger store unavailable: {e}") from e

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def append(self, ledger_id: str, record: RecordInput | Mapping[str, Any]) -> int:
        """Validate and insert ``record``; return the new record id."""

        _check_ledger_id(ledger_id)
        data = _coerce_input(record)
        now = _CLOCK.now()
        try:
            with self._session() as session:
                row = LedgerRecord(
                    ledger_id=ledger_id,
                    occurred_on=data.occurred_on,
                    description=data.description,
                    category=data.category,
                    amount_in=data.amount_in,
                    amount_out=data.amount_out,
                    created_at=now,
                    updated_at=now,
                )
                session.add(row)
                session.flush()
                record_id = row.id
        except StoreUnavailableError as e:
            self._broadcast(ledger_id, LedgerUpdate(ledger_id=ledger_id, error=e))
            raise

        _logger.debug("store:append ledger_id=%s id=%d", ledger_id, record_id)
        self._notify(ledger_id)
        return record_id

    def update(
        self,
        ledger_id: str,
        record_id: int,
        patch: RecordPatch | RecordInput | Mapping[str, Any],
    ) -> TransactionRecord:
        """Apply ``patch`` to one record and return the updated record.

        The merged record goes through the same validation as :meth:`append`;
        a rejected patch leaves the stored record untouched.
        """

        _check_ledger_id(ledger_id)
        changes = _coerce_patch(patch)
        try:
            with self._session() as session:
                row = self._get_row(session, ledger_id, record_id)
                try:
                    merged = changes.apply_to(_to_record(row))
                except ValidationError as e:
                    raise RecordValidationError(_validation_message(e)) from e
                row.occurred_on = merged.occurred_on
                row.description = merged.description
                row.category = merged.category
                row.amount_in = merged.amount_in
                row.amount_out = merged.amount_out
                row.updated_at = datetime.now(UTC)
                session.flush()
                updated = _to_record(row)
        except StoreUnavailableError as e:
            self._broadcast(ledger_id, LedgerUpdate(ledger_id=ledger_id, error=e))
            raise

        self._notify(ledger_id)
        return updated

    def remove(self, ledger_id: str, record_id: int) -> None:
        """Hard-delete one record."""

        _check_ledger_id(ledger_id)
        try:
            with self._session() as session:
                row = self._get_row(session, ledger_id, record_id)
                session.delete(row)
        except StoreUnavailableError as e:
            self._broadcast(ledger_id, LedgerUpdate(ledger_id=ledger_id, error=e))
            raise

        _logger.debug("store:remove ledger_id=%s id=%d", ledger_id, record_id)
        self._notify(ledger_id)

    def clear(self, ledger_id: str) -> int:
        """Delete every record of ``ledger_id``; return how many were removed."""

        _check_ledger_id(ledger_id)
        try:
            with self._session() as session:
                result = session.execute(
                    delete(LedgerRecord).where(LedgerRecord.ledger_id == ledger_id)
                )
                removed = int(result.rowcount or 0)
        except StoreUnavailableError as e:
            self._broadcast(ledger_id, LedgerUpdate(ledger_id=ledger_id, error=e))
            raise

        _logger.info("store:clear ledger_id=%s removed=%d", ledger_id, removed)
        self._notify(ledger_id)
        return removed

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @staticmethod
    def _get_row(session: Session, ledger_id: str, record_id: int) -> LedgerRecord:
        row = session.get(LedgerRecord, record_id)
        if row is None or row.ledger_id != ledger_id:
            raise RecordNotFoundError(ledger_id, record_id)
        return row

    def get(self, ledger_id: str, record_id: int) -> TransactionRecord:
        with self._session() as session:
            return _to_record(self._get_row(session, ledger_id, record_id))

    def records(self, ledger_id: str) -> list[TransactionRecord]:
        """All records of ``ledger_id`` in insertion order."""

        with self._session() as session:
            rows = session.scalars(
                select(LedgerRecord)
                .where(LedgerRecord.ledger_id == ledger_id)
                .order_by(LedgerRecord.id)
            ).all()
            return [_to_record(r) for r in rows]

    def view(self, ledger_id: str) -> LedgerView:
        """Derive the ordered view of ``ledger_id`` from its current records."""

        return derive_view(ledger_id, self.records(ledger_id))

    # ------------------------------------------------------------------
    # Subscriptions
    # ------------------------------------------------------------------

    def subscribe(
        self,
        ledger_id: str,
        on_change: ChangeCallback,
        *,
        emit_initial: bool = True,
    ) -> Callable[[], None]:
        """Register ``on_change`` for ``ledger_id`` and return an unsubscribe hook.

        With ``emit_initial`` the callback immediately receives the current
        state of the ledger, like any later change.
        """

        with self._lock:
            self._subscribers[ledger_id].append(on_change)

        def _unsubscribe() -> None:
            with self._lock:
                callbacks = self._subscribers.get(ledger_id)
                if callbacks and on_change in callbacks:
                    callbacks.remove(on_change)
                if not callbacks:
                    self._subscribers.pop(ledger_id, None)

        if emit_initial:
            self._deliver(self._read_update(ledger_id), [on_change])
        return _unsubscribe

    def refresh(self, ledger_id: str) -> LedgerUpdate:
        """Re-read ``ledger_id`` and push the result to its subscribers."""

        update = self._read_update(ledger_id)
        self._broadcast(ledger_id, update)
        return update

    def _read_update(self, ledger_id: str) -> LedgerUpdate:
        try:
            return LedgerUpdate(ledger_id=ledger_id, view=self.view(ledger_id))
        except StoreUnavailableError as e:
            _logger.warning("store:read_failed ledger_id=%s error=%s", ledger_id, e)
            return LedgerUpdate(ledger_id=ledger_id, error=e)

    def _notify(self, ledger_id: str) -> None:
        with self._lock:
            if not self._subscribers.get(ledger_id):
                return
        self._broadcast(ledger_id, self._read_update(ledger_id))

    def _broadcast(self, ledger_id: str, update: LedgerUpdate) -> None:
        with self._lock:
            callbacks = list(self._subscribers.get(ledger_id, ()))
        self._deliver(update, callbacks)

    @staticmethod
    def _deliver(update: LedgerUpdate, callbacks: list[ChangeCallback]) -> None:
        # Every subscriber gets the same object, hence the same ordering.
        for callback in callbacks:
            try:
                callback(update)
            except Exception:  # noqa: BLE001 - a subscriber must not fail the write
                _logger.exception("store:subscriber_failed ledger_id=%s", update.ledger_id)


__all__ = ["ChangeCallback", "LedgerStore", "LedgerUpdate"]
