"""Pure derivation of the ordered ledger view from a set of records.

A ledger's reference numbers and running balances are never stored. They are
a function of the record *set* alone:

- entries sort ascending by ``(occurred_on, created_at, id)``;
- ``ref`` numbers the sorted entries 1..N;
- ``balance`` at ref *k* is the sum of ``amount_in - amount_out`` over refs
  1..k.

Because the input order is irrelevant, two writers racing on the same ledger
converge on the same view once their writes have landed. Callers must
recompute the view after every mutation instead of caching it: an edit can
reorder records without changing their count.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from decimal import Decimal

from .models import TransactionRecord


@dataclass(frozen=True, slots=True)
class LedgerEntry:
    """A record annotated with its derived position and running balance."""

    ref: int
    record: TransactionRecord
    balance: Decimal


@dataclass(frozen=True, slots=True)
class LedgerView:
    """The ordered projection of one ledger, earliest entry first."""

    ledger_id: str
    entries: tuple[LedgerEntry, ...] = ()

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self) -> Iterator[LedgerEntry]:
        return iter(self.entries)

    @property
    def balance(self) -> Decimal:
        """Closing balance (zero for an empty ledger)."""
        return self.entries[-1].balance if self.entries else Decimal("0.00")

    def newest_first(self) -> tuple[LedgerEntry, ...]:
        """Entries in display order (most recent first)."""
        return tuple(reversed(self.entries))

    def by_ref(self, ref: int) -> LedgerEntry:
        if not 1 <= ref <= len(self.entries):
            raise IndexError(f"ref {ref} out of range 1..{len(self.entries)}")
        return self.entries[ref - 1]


def sort_key(record: TransactionRecord) -> tuple:
    return (record.occurred_on, record.created_at, record.id)


def derive_view(ledger_id: str, records: Iterable[TransactionRecord]) -> LedgerView:
    """Compute ``ref`` and ``balance`` for ``records`` from scratch."""

    ordered = sorted(records, key=sort_key)
    entries: list[LedgerEntry] = []
    balance = Decimal("0.00")
    for ref, record in enumerate(ordered, start=1):
        balance += record.amount_in - record.amount_out
        entries.append(LedgerEntry(ref=ref, record=record, balance=balance))
    return LedgerView(ledger_id=ledger_id, entries=tuple(entries))


__all__ = ["LedgerEntry", "LedgerView", "derive_view", "sort_key"]
