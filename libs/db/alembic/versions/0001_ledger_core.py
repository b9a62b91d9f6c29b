# ruff: noqa: I001
"""Ledger core tables: records, shared ledgers, memberships, sync cursors.

Revision ID: 0001_ledger_core
Revises: None
Create Date: 2026-10-19
"""

from __future__ import annotations

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op


# revision identifiers, used by Alembic.
revision: str = "0001_ledger_core"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "ledger_records",
        sa.Column(
            "id",
            sa.BigInteger().with_variant(sa.Integer(), "sqlite"),
            primary_key=True,
            autoincrement=True,
        ),
        sa.Column("ledger_id", sa.String(), nullable=False),
        sa.Column("occurred_on", sa.Date(), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("category", sa.String(), nullable=False, server_default=sa.text("'Other'")),
        sa.Column("amount_in", sa.Numeric(18, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("amount_out", sa.Numeric(18, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("amount_in >= 0", name="ck_ledger_records_amount_in"),
        sa.CheckConstraint("amount_out >= 0", name="ck_ledger_records_amount_out"),
        sa.CheckConstraint(
            "length(trim(description)) > 0", name="ck_ledger_records_description"
        ),
    )
    op.create_index(
        "ix_ledger_records_ledger_order",
        "ledger_records",
        ["ledger_id", "occurred_on", "created_at"],
    )

    op.create_table(
        "shared_ledgers",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("owner_id", sa.String(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )

    op.create_table(
        "shared_ledger_members",
        sa.Column(
            "ledger_id",
            sa.String(),
            sa.ForeignKey("shared_ledgers.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column("user_id", sa.String(), primary_key=True),
        sa.Column("joined_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_shared_ledger_members_user", "shared_ledger_members", ["user_id"])

    op.create_table(
        "sync_cursors",
        sa.Column("ledger_id", sa.String(), primary_key=True),
        sa.Column("source_ref", sa.Text(), primary_key=True),
        sa.Column("content_hash", sa.CHAR(64), nullable=False),
        sa.Column("synced_at", sa.DateTime(timezone=True), nullable=False),
    )


def downgrade() -> None:
    op.drop_table("sync_cursors")
    op.drop_index("ix_shared_ledger_members_user", table_name="shared_ledger_members")
    op.drop_table("shared_ledger_members")
    op.drop_table("shared_ledgers")
    op.drop_index("ix_ledger_records_ledger_order", table_name="ledger_records")
    op.drop_table("ledger_records")
