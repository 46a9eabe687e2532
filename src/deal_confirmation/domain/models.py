"""Immutable snapshots handed out by the transaction store.

The store never returns live ORM objects: callers get a frozen copy of the
row as it was when the guarded update committed, so nothing outside the
store can mutate persisted state by accident.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime

from deal_confirmation.domain.enums import PartyRole, TransactionStatus


@dataclass(frozen=True)
class TransactionRecord:
    """Snapshot of a confirmation transaction.

    Attributes:
        id: Transaction UUID.
        conversation_id: The two-party conversation that owns the transaction.
        subject_id: Optional listing/item the deal is about.
        initiated_by: User who opened the transaction.
        counterparty_id: The other participant of the conversation.
        initiator_confirmed / counterparty_confirmed: Per-side confirmation flags.
        initiator_confirmed_at / counterparty_confirmed_at: When each side confirmed.
        status: Current TransactionStatus value.
        auto_resolve_at: When the sweeper force-confirms a still-pending deal.
    """

    id: uuid.UUID
    conversation_id: str
    subject_id: str | None
    initiated_by: str
    counterparty_id: str
    initiator_confirmed: bool
    counterparty_confirmed: bool
    initiator_confirmed_at: datetime | None
    counterparty_confirmed_at: datetime | None
    status: TransactionStatus
    auto_resolve_at: datetime
    created_at: datetime
    updated_at: datetime

    @property
    def participants(self) -> tuple[str, str]:
        return (self.initiated_by, self.counterparty_id)

    def is_confirmed_by(self, role: PartyRole) -> bool:
        """Whether the given side has already confirmed."""
        if role is PartyRole.INITIATOR:
            return self.initiator_confirmed
        if role is PartyRole.COUNTERPARTY:
            return self.counterparty_confirmed
        return False

    def other_party(self, user_id: str) -> str:
        """Return the participant who is not ``user_id``."""
        return self.counterparty_id if user_id == self.initiated_by else self.initiated_by

    def to_dict(self) -> dict:
        """Serialize for notification payloads and audit metadata."""
        return {
            "transaction_id": str(self.id),
            "conversation_id": self.conversation_id,
            "subject_id": self.subject_id,
            "status": self.status.value,
            "auto_resolve_at": self.auto_resolve_at.isoformat(),
        }


@dataclass(frozen=True)
class TransactionEventRecord:
    """Snapshot of one append-only audit event."""

    id: uuid.UUID
    transaction_id: uuid.UUID
    event_type: str
    old_status: str | None
    new_status: str
    actor: str
    metadata: dict = field(default_factory=dict)
    created_at: datetime | None = None
