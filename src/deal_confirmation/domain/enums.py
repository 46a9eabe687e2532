"""Domain enumerations for the deal confirmation engine.

These enums define the canonical states and types used throughout the system.
They are framework-agnostic (no SQLAlchemy, no FastAPI imports).
"""

import enum


class TransactionStatus(enum.StrEnum):
    """Lifecycle states of a confirmation transaction.

    State transitions are enforced by the TransactionStateMachine guard.
    See domain/state_machine.py for the transition table.
    """

    PENDING = "pending"
    CONFIRMED = "confirmed"
    DISPUTED = "disputed"
    CANCELLED = "cancelled"


class PartyRole(enum.StrEnum):
    """How a user stands relative to a conversation's transaction."""

    INITIATOR = "initiator"
    COUNTERPARTY = "counterparty"
    NONE = "none"


class EventType(enum.StrEnum):
    """Types of audit events recorded in the transaction_events table.

    Every state transition produces exactly one event. Advisory actions
    (deny, dispute ticket cross-reference) are recorded without a
    status change.
    """

    # Lifecycle events
    TRANSACTION_OPENED = "TRANSACTION_OPENED"
    PARTY_CONFIRMED = "PARTY_CONFIRMED"
    TRANSACTION_CONFIRMED = "TRANSACTION_CONFIRMED"
    TRANSACTION_AUTO_CONFIRMED = "TRANSACTION_AUTO_CONFIRMED"
    TRANSACTION_CANCELLED = "TRANSACTION_CANCELLED"

    # Contest events
    TRANSACTION_DENIED = "TRANSACTION_DENIED"
    TRANSACTION_DISPUTED = "TRANSACTION_DISPUTED"
    DISPUTE_TICKET_OPENED = "DISPUTE_TICKET_OPENED"


class NotificationType(enum.StrEnum):
    """Notification event types handed to the notification collaborator."""

    TRANSACTION_INITIATED = "transaction_initiated"
    TRANSACTION_CONFIRMED = "transaction_confirmed"
    TRANSACTION_DENIED = "transaction_denied"
    TRANSACTION_DISPUTED = "transaction_disputed"
    TRANSACTION_CANCELLED = "transaction_cancelled"
    TRANSACTION_AUTO_CONFIRMED = "transaction_auto_confirmed"
