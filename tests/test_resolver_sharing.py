from datetime import date
from decimal import Decimal

import pytest

from ledger_sync.errors import MembershipError
from ledger_sync.resolver import LedgerResolver
from ledger_sync.sharing import add_member, create_shared_ledger, list_members, remove_member
from ledger_sync.store import LedgerStore


def test_user_without_memberships_uses_own_ledger(db_url: str):
    assert LedgerResolver(database_url=db_url).resolve("alice") == "alice"


def test_single_shared_ledger_wins(db_url: str):
    resolver = LedgerResolver(database_url=db_url)
    assert create_shared_ledger("alice", database_url=db_url) == "alice"
    assert add_member("alice", "bob", database_url=db_url) is True

    assert resolver.resolve("bob") == "alice"
    assert resolver.resolve("alice") == "alice"


def test_ambiguous_membership_falls_back_to_own_ledger(db_url: str):
    create_shared_ledger("alice", database_url=db_url)
    create_shared_ledger("carol", database_url=db_url)
    add_member("alice", "bob", database_url=db_url)
    add_member("carol", "bob", database_url=db_url)

    resolver = LedgerResolver(database_url=db_url)
    assert resolver.shared_ledgers_of("bob") == ["alice", "carol"]
    assert resolver.resolve("bob") == "bob"


def test_members_write_into_the_shared_ledger(db_url: str, store: LedgerStore):
    create_shared_ledger("alice", database_url=db_url)
    add_member("alice", "bob", database_url=db_url)
    resolver = LedgerResolver(database_url=db_url)

    store.append(
        resolver.resolve("bob"),
        {"occurred_on": date(2024, 1, 1), "description": "Groceries", "amount_out": Decimal("20")},
    )

    assert [e.record.description for e in store.view(resolver.resolve("alice"))] == ["Groceries"]


def test_membership_changes(db_url: str):
    create_shared_ledger("alice", database_url=db_url)
    assert create_shared_ledger("alice", database_url=db_url) == "alice"
    assert add_member("alice", "bob", database_url=db_url) is True
    assert add_member("alice", "bob", database_url=db_url) is False

    assert list_members("alice", database_url=db_url) == ["alice", "bob"]

    with pytest.raises(MembershipError):
        remove_member("alice", "alice", database_url=db_url)
    assert remove_member("alice", "bob", database_url=db_url) is True
    assert remove_member("alice", "bob", database_url=db_url) is False
    assert list_members("alice", database_url=db_url) == ["alice"]


def test_unknown_shared_ledger(db_url: str):
    with pytest.raises(MembershipError):
        add_member("nobody", "bob", database_url=db_url)
    with pytest.raises(MembershipError):
        remove_member("nobody", "bob", database_url=db_url)
    assert list_members("nobody", database_url=db_url) == []
