"""SQLAlchemy 2.0 ORM models for the deal confirmation engine.

Two tables:
    1. transactions        — Confirmation agreements between two conversation parties.
    2. transaction_events  — Append-only audit log of every state transition.

Design decisions:
    - UUIDs as primary keys; user, conversation and subject ids are opaque strings.
    - Partial unique indexes enforce "one pending per conversation" and
      "one pending-or-confirmed per subject" at the database level, so the
      invariants hold across processes without application locks.
    - CHECK constraints on status values and on "confirmed implies both flags".
    - Timestamps are stored and returned as timezone-aware UTC.
    - transaction_events is append-only: no UPDATE or DELETE at the application level.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    String,
    TypeDecorator,
    Uuid,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from deal_confirmation.domain.enums import TransactionStatus
from deal_confirmation.domain.models import TransactionEventRecord, TransactionRecord

_PENDING_ONLY = "status = 'pending'"
_ACTIVE_SUBJECT = "subject_id IS NOT NULL AND status IN ('pending', 'confirmed')"


class UTCDateTime(TypeDecorator):
    """DateTime that always comes back timezone-aware (SQLite drops tzinfo)."""

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):  # noqa: ANN001, ANN201
        if value is not None and value.tzinfo is not None:
            value = value.astimezone(UTC)
        return value

    def process_result_value(self, value, dialect):  # noqa: ANN001, ANN201
        if value is not None and value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


def _utcnow() -> datetime:
    return datetime.now(UTC)


# ---------------------------------------------------------------------------
# 1. transactions
# ---------------------------------------------------------------------------
class ConfirmationTransaction(Base):
    """A two-party confirmation that unlocks reviews once resolved."""

    __tablename__ = "transactions"

    # --- Primary Key ---
    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )

    # --- Context (immutable) ---
    conversation_id: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        comment="Owning two-party conversation",
    )
    subject_id: Mapped[str | None] = mapped_column(
        String(64),
        nullable=True,
        default=None,
        comment="Listing/item under discussion, if any",
    )

    # --- Participants (immutable) ---
    initiated_by: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        comment="User who opened the transaction",
    )
    counterparty_id: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        comment="The other conversation participant, captured at open",
    )

    # --- Confirmation state ---
    initiator_confirmed: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )
    counterparty_confirmed: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )
    initiator_confirmed_at: Mapped[datetime | None] = mapped_column(
        UTCDateTime, nullable=True, default=None
    )
    counterparty_confirmed_at: Mapped[datetime | None] = mapped_column(
        UTCDateTime, nullable=True, default=None
    )

    # --- Status (Enum-guarded) ---
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=TransactionStatus.PENDING.value,
        comment="Current lifecycle state (guarded by TransactionStateMachine)",
    )

    # --- Timestamps ---
    auto_resolve_at: Mapped[datetime] = mapped_column(
        UTCDateTime,
        nullable=False,
        comment="When a still-pending transaction is force-confirmed",
    )
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime,
        nullable=False,
        default=_utcnow,
    )
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime,
        nullable=False,
        default=_utcnow,
    )

    # --- Relationships ---
    events: Mapped[list[TransactionEvent]] = relationship(
        "TransactionEvent",
        back_populates="transaction",
        order_by="TransactionEvent.created_at.asc()",
        lazy="raise",
    )

    # --- Table Constraints & Indexes ---
    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'confirmed', 'disputed', 'cancelled')",
            name="ck_transaction_valid_status",
        ),
        CheckConstraint(
            "status <> 'confirmed' OR (initiator_confirmed AND counterparty_confirmed)",
            name="ck_transaction_confirmed_by_both",
        ),
        Index(
            "uq_transaction_pending_conversation",
            "conversation_id",
            unique=True,
            postgresql_where=text(_PENDING_ONLY),
            sqlite_where=text(_PENDING_ONLY),
        ),
        Index(
            "uq_transaction_active_subject",
            "subject_id",
            unique=True,
            postgresql_where=text(_ACTIVE_SUBJECT),
            sqlite_where=text(_ACTIVE_SUBJECT),
        ),
        Index("idx_transaction_conversation", "conversation_id"),
        Index("idx_transaction_initiated_by", "initiated_by"),
        Index("idx_transaction_counterparty", "counterparty_id"),
        Index("idx_transaction_status_auto_resolve", "status", "auto_resolve_at"),
    )

    def to_record(self) -> TransactionRecord:
        return TransactionRecord(
            id=self.id,
            conversation_id=self.conversation_id,
            subject_id=self.subject_id,
            initiated_by=self.initiated_by,
            counterparty_id=self.counterparty_id,
            initiator_confirmed=self.initiator_confirmed,
            counterparty_confirmed=self.counterparty_confirmed,
            initiator_confirmed_at=self.initiator_confirmed_at,
            counterparty_confirmed_at=self.counterparty_confirmed_at,
            status=TransactionStatus(self.status),
            auto_resolve_at=self.auto_resolve_at,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )

    def __repr__(self) -> str:
        return (
            f"<ConfirmationTransaction id={self.id} status={self.status} "
            f"conversation={self.conversation_id}>"
        )


# ---------------------------------------------------------------------------
# 2. transaction_events (Append-Only Audit Log)
# ---------------------------------------------------------------------------
class TransactionEvent(Base):
    """Immutable audit record of a transaction's lifecycle.

    This table is APPEND-ONLY. Review-creation and dispute-handling services
    read it; nothing at the application level updates or deletes it.
    """

    __tablename__ = "transaction_events"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )
    transaction_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("transactions.id", ondelete="RESTRICT"),
        nullable=False,
    )
    event_type: Mapped[str] = mapped_column(
        String(40),
        nullable=False,
        comment="EventType enum value",
    )
    old_status: Mapped[str | None] = mapped_column(
        String(20),
        nullable=True,
        comment="Status before this event (null for creation)",
    )
    new_status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        comment="Status after this event",
    )
    actor: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        default="SYSTEM",
        comment="User id, or SYSTEM for the auto-resolve sweeper",
    )
    metadata_json: Mapped[dict | None] = mapped_column(
        "metadata",
        JSON().with_variant(JSONB(), "postgresql"),
        nullable=True,
        default=None,
    )
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime,
        nullable=False,
        default=_utcnow,
    )

    transaction: Mapped[ConfirmationTransaction] = relationship(
        "ConfirmationTransaction",
        back_populates="events",
        lazy="raise",
    )

    __table_args__ = (
        Index("idx_event_transaction", "transaction_id"),
        Index("idx_event_type", "event_type"),
        Index("idx_event_created_at", "created_at"),
    )

    def to_record(self) -> TransactionEventRecord:
        return TransactionEventRecord(
            id=self.id,
            transaction_id=self.transaction_id,
            event_type=self.event_type,
            old_status=self.old_status,
            new_status=self.new_status,
            actor=self.actor,
            metadata=dict(self.metadata_json or {}),
            created_at=self.created_at,
        )

    def __repr__(self) -> str:
        return (
            f"<TransactionEvent id={self.id} type={self.event_type} "
            f"{self.old_status}->{self.new_status}>"
        )
