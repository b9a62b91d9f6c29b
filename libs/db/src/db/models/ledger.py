from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import (
    CHAR,
    BigInteger,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

# SQLite only autoincrements ``INTEGER PRIMARY KEY`` columns.
_PK_BIGINT = BigInteger().with_variant(Integer, "sqlite")


class Base(DeclarativeBase):
    pass


# ---------------------------
# Core: ledger_records
# ---------------------------


class LedgerRecord(Base):
    __tablename__ = "ledger_records"

    id: Mapped[int] = mapped_column(_PK_BIGINT, primary_key=True, autoincrement=True)
    # A user id or a shared ledger id; there is no FK because personal
    # ledgers have no row of their own.
    ledger_id: Mapped[str] = mapped_column(String, nullable=False)
    occurred_on: Mapped[date] = mapped_column(Date, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    category: Mapped[str] = mapped_column(
        String, nullable=False, server_default=text("'Other'")
    )
    amount_in: Mapped[Decimal] = mapped_column(
        Numeric(18, 2), nullable=False, server_default=text("0")
    )
    amount_out: Mapped[Decimal] = mapped_column(
        Numeric(18, 2), nullable=False, server_default=text("0")
    )
    # Assigned by the store from a per-process monotonic clock; only used as
    # an ordering tie-breaker for records sharing ``occurred_on``.
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        CheckConstraint("amount_in >= 0", name="ck_ledger_records_amount_in"),
        CheckConstraint("amount_out >= 0", name="ck_ledger_records_amount_out"),
        CheckConstraint("length(trim(description)) > 0", name="ck_ledger_records_description"),
        Index("ix_ledger_records_ledger_order", "ledger_id", "occurred_on", "created_at"),
    )


# ---------------------------
# Sharing: shared_ledgers / shared_ledger_members
# ---------------------------


class SharedLedger(Base):
    __tablename__ = "shared_ledgers"

    # The owner's user id doubles as the shared ledger id.
    id: Mapped[str] = mapped_column(String, primary_key=True)
    owner_id: Mapped[str] = mapped_column(String, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class SharedLedgerMember(Base):
    __tablename__ = "shared_ledger_members"

    ledger_id: Mapped[str] = mapped_column(
        String,
        ForeignKey("shared_ledgers.id", ondelete="CASCADE"),
        primary_key=True,
    )
    user_id: Mapped[str] = mapped_column(String, primary_key=True)
    joined_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (Index("ix_shared_ledger_members_user", "user_id"),)


# ---------------------------
# Sync state: sync_cursors
# ---------------------------


class SyncCursorRow(Base):
    __tablename__ = "sync_cursors"

    ledger_id: Mapped[str] = mapped_column(String, primary_key=True)
    source_ref: Mapped[str] = mapped_column(Text, primary_key=True)
    content_hash: Mapped[str] = mapped_column(CHAR(64), nullable=False)
    synced_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


__all__ = [
    "Base",
    "LedgerRecord",
    "SharedLedger",
    "SharedLedgerMember",
    "SyncCursorRow",
]
