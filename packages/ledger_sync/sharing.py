# ruff: noqa: I001
"""Shared-ledger membership operations.

A shared ledger groups several users under one ledger id. The owner's user id
is the ledger id, so the owner's existing personal records become the shared
ledger's records. Membership is a flat set: any member may add members or
remove non-owner members. These operations write membership state; reading
it for routing is :class:`ledger_sync.resolver.LedgerResolver`'s job.
"""

from __future__ import annotations

from datetime import UTC, datetime

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError

from db.client import session_scope
from db.models.ledger import SharedLedger, SharedLedgerMember

from .errors import MembershipError, StoreUnavailableError
from .logging_setup import get_logger

_logger = get_logger("ledger_sync.sharing")


def create_shared_ledger(owner_id: str, *, database_url: str | None = None) -> str:
    """Create (or return) the shared ledger owned by ``owner_id``.

    Idempotent: calling it again for the same owner returns the same id and
    leaves membership unchanged.
    """

    if not owner_id.strip():
        raise MembershipError("owner_id must be non-empty")
    now = datetime.now(UTC)
    try:
        with session_scope(database_url=database_url) as session:
            existing = session.get(SharedLedger, owner_id)
            if existing is not None:
                return existing.id
            session.add(SharedLedger(id=owner_id, owner_id=owner_id, created_at=now, updated_at=now))
            session.flush()
            session.add(SharedLedgerMember(ledger_id=owner_id, user_id=owner_id, joined_at=now))
    except SQLAlchemyError as e:
        raise StoreUnavailableError(f"could not create shared ledger: {e}") from e

    _logger.info("sharing:created ledger_id=%s", owner_id)
    return owner_id


def add_member(ledger_id: str, user_id: str, *, database_url: str | None = None) -> bool:
    """Add ``user_id`` to ``ledger_id``; return ``False`` if already a member."""

    if not user_id.strip():
        raise MembershipError("user_id must be non-empty")
    now = datetime.now(UTC)
    try:
        with session_scope(database_url=database_url) as session:
            ledger = session.get(SharedLedger, ledger_id)
            if ledger is None:
                raise MembershipError(f"shared ledger {ledger_id!r} does not exist")
            if session.get(SharedLedgerMember, (ledger_id, user_id)) is not None:
                return False
            session.add(SharedLedgerMember(ledger_id=ledger_id, user_id=user_id, joined_at=now))
            ledger.updated_at = now
    except SQLAlchemyError as e:
        raise StoreUnavailableError(f"could not add member: {e}") from e

    _logger.info("sharing:member_added ledger_id=%s user_id=%s", ledger_id, user_id)
    return True


def remove_member(ledger_id: str, user_id: str, *, database_url: str | None = None) -> bool:
    """Remove ``user_id`` from ``ledger_id``; return ``False`` if not a member.

    The owner cannot be removed. A member leaving is the same operation with
    their own user id.
    """

    try:
        with session_scope(database_url=database_url) as session:
            ledger = session.get(SharedLedger, ledger_id)
            if ledger is None:
                raise MembershipError(f"shared ledger {ledger_id!r} does not exist")
            if user_id == ledger.owner_id:
                raise MembershipError("the owner cannot be removed from a shared ledger")
            result = session.execute(
                delete(SharedLedgerMember).where(
                    (SharedLedgerMember.ledger_id == ledger_id)
                    & (SharedLedgerMember.user_id == user_id)
                )
            )
            removed = bool(result.rowcount)
            if removed:
                ledger.updated_at = datetime.now(UTC)
    except SQLAlchemyError as e:
        raise StoreUnavailableError(f"could not remove member: {e}") from e

    if removed:
        _logger.info("sharing:member_removed ledger_id=%s user_id=%s", ledger_id, user_id)
    return removed


def list_members(ledger_id: str, *, database_url: str | None = None) -> list[str]:
    """Member user ids of ``ledger_id`` (owner first); empty if not shared."""

    try:
        with session_scope(database_url=database_url) as session:
            ledger = session.get(SharedLedger, ledger_id)
            if ledger is None:
                return []
            members = session.scalars(
                select(SharedLedgerMember.user_id)
                .where(SharedLedgerMember.ledger_id == ledger_id)
                .order_by(SharedLedgerMember.joined_at, SharedLedgerMember.user_id)
            ).all()
            owner = ledger.owner_id
    except SQLAlchemyError as e:
        raise StoreUnavailableError(f"could not list members: {e}") from e
    return [owner] + [m for m in members if m != owner]


__all__ = ["add_member", "create_shared_ledger", "list_members", "remove_member"]
