"""Create transactions and transaction_events.

Revision ID: 0001
Revises:
Create Date: 2026-10-19
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision: str = "0001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

_PENDING_ONLY = "status = 'pending'"
_ACTIVE_SUBJECT = "subject_id IS NOT NULL AND status IN ('pending', 'confirmed')"


def upgrade() -> None:
    op.create_table(
        "transactions",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("conversation_id", sa.String(64), nullable=False),
        sa.Column("subject_id", sa.String(64), nullable=True),
        sa.Column("initiated_by", sa.String(64), nullable=False),
        sa.Column("counterparty_id", sa.String(64), nullable=False),
        sa.Column("initiator_confirmed", sa.Boolean(), nullable=False),
        sa.Column("counterparty_confirmed", sa.Boolean(), nullable=False),
        sa.Column("initiator_confirmed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("counterparty_confirmed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("auto_resolve_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint(
            "status IN ('pending', 'confirmed', 'disputed', 'cancelled')",
            name="ck_transaction_valid_status",
        ),
        sa.CheckConstraint(
            "status <> 'confirmed' OR (initiator_confirmed AND counterparty_confirmed)",
            name="ck_transaction_confirmed_by_both",
        ),
    )
    op.create_index(
        "uq_transaction_pending_conversation",
        "transactions",
        ["conversation_id"],
        unique=True,
        postgresql_where=sa.text(_PENDING_ONLY),
        sqlite_where=sa.text(_PENDING_ONLY),
    )
    op.create_index(
        "uq_transaction_active_subject",
        "transactions",
        ["subject_id"],
        unique=True,
        postgresql_where=sa.text(_ACTIVE_SUBJECT),
        sqlite_where=sa.text(_ACTIVE_SUBJECT),
    )
    op.create_index("idx_transaction_conversation", "transactions", ["conversation_id"])
    op.create_index("idx_transaction_initiated_by", "transactions", ["initiated_by"])
    op.create_index("idx_transaction_counterparty", "transactions", ["counterparty_id"])
    op.create_index(
        "idx_transaction_status_auto_resolve",
        "transactions",
        ["status", "auto_resolve_at"],
    )

    op.create_table(
        "transaction_events",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "transaction_id",
            sa.Uuid(),
            sa.ForeignKey("transactions.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column("event_type", sa.String(40), nullable=False),
        sa.Column("old_status", sa.String(20), nullable=True),
        sa.Column("new_status", sa.String(20), nullable=False),
        sa.Column("actor", sa.String(64), nullable=False),
        sa.Column(
            "metadata",
            sa.JSON().with_variant(postgresql.JSONB(), "postgresql"),
            nullable=True,
        ),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("idx_event_transaction", "transaction_events", ["transaction_id"])
    op.create_index("idx_event_type", "transaction_events", ["event_type"])
    op.create_index("idx_event_created_at", "transaction_events", ["created_at"])


def downgrade() -> None:
    op.drop_table("transaction_events")
    op.drop_table("transactions")
