"""Domain layer — pure business logic with zero framework dependencies."""

from deal_confirmation.domain.enums import (
    EventType,
    NotificationType,
    PartyRole,
    TransactionStatus,
)
from deal_confirmation.domain.exceptions import (
    AlreadyConfirmedError,
    ConfirmationError,
    ConversationNotFoundError,
    DependencyFailureError,
    DisputeValidationError,
    DuplicateActiveTransactionError,
    ForbiddenActionError,
    InvalidStateError,
    NotFoundError,
    TransactionNotFoundError,
    TransitionConflictError,
)
from deal_confirmation.domain.models import TransactionEventRecord, TransactionRecord
from deal_confirmation.domain.role_resolver import RoleResolver
from deal_confirmation.domain.state_machine import (
    TransactionStateMachine,
    guard_transition,
    validate_transition,
)

__all__ = [
    "EventType",
    "NotificationType",
    "PartyRole",
    "TransactionStatus",
    "AlreadyConfirmedError",
    "ConfirmationError",
    "ConversationNotFoundError",
    "DependencyFailureError",
    "DisputeValidationError",
    "DuplicateActiveTransactionError",
    "ForbiddenActionError",
    "InvalidStateError",
    "NotFoundError",
    "TransactionNotFoundError",
    "TransitionConflictError",
    "TransactionEventRecord",
    "TransactionRecord",
    "RoleResolver",
    "TransactionStateMachine",
    "guard_transition",
    "validate_transition",
]
