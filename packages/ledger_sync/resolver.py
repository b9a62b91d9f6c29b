# ruff: noqa: I001
"""Map a user identity to the ledger id their operations target.

A user works in their own ledger (keyed by their user id) unless they belong
to exactly one shared ledger, in which case that ledger wins. The resolver is
a pure read of current membership state; creating shared ledgers and changing
membership live in :mod:`ledger_sync.sharing`.
"""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from db.client import session_scope
from db.models.ledger import SharedLedgerMember

from .errors import StoreUnavailableError
from .logging_setup import get_logger

_logger = get_logger("ledger_sync.resolver")


class LedgerResolver:
    """Resolve ``user_id -> ledger_id`` from shared-ledger membership."""

    def __init__(self, *, database_url: str | None = None) -> None:
        self._database_url = database_url

    def shared_ledgers_of(self, user_id: str) -> list[str]:
        """Ids of every shared ledger ``user_id`` is a member of."""

        try:
            with session_scope(database_url=self._database_url) as session:
                rows = session.scalars(
                    select(SharedLedgerMember.ledger_id)
                    .where(SharedLedgerMember.user_id == user_id)
                    .order_by(SharedLedgerMember.ledger_id)
                ).all()
        except SQLAlchemyError as e:
            raise StoreUnavailableError(f"membership lookup failed: {e}") from e
        return list(rows)

    def resolve(self, user_id: str) -> str:
        """Return the shared ledger id when exactly one applies, else ``user_id``."""

        ledgers = self.shared_ledgers_of(user_id)
        if len(ledgers) == 1:
            return ledgers[0]
        if len(ledgers) > 1:
            _logger.warning(
                "resolver:ambiguous_membership user_id=%s ledgers=%s; using own ledger",
                user_id,
                ",".join(ledgers),
            )
        return user_id


__all__ = ["LedgerResolver"]
