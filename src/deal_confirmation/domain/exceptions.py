"""Domain exceptions for the deal confirmation engine.

These exceptions are framework-agnostic and represent business rule violations.
They are caught and translated to HTTP responses by the API layer's middleware.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from deal_confirmation.domain.models import TransactionRecord


class ConfirmationError(Exception):
    """Base exception for all domain errors."""

    def __init__(self, message: str, code: str = "CONFIRMATION_ERROR") -> None:
        self.message = message
        self.code = code
        super().__init__(self.message)


# --- Lookup Errors ---


class NotFoundError(ConfirmationError):
    """Base for a referenced transaction or conversation that does not exist."""

    def __init__(self, message: str) -> None:
        super().__init__(message=message, code="NOT_FOUND")


class TransactionNotFoundError(NotFoundError):
    """Raised when a transaction ID does not exist."""

    def __init__(self, transaction_id: str) -> None:
        super().__init__(f"Transaction not found: {transaction_id}")
        self.transaction_id = transaction_id


class ConversationNotFoundError(NotFoundError):
    """Raised when the conversation directory has no such conversation."""

    def __init__(self, conversation_id: str) -> None:
        super().__init__(f"Conversation not found: {conversation_id}")
        self.conversation_id = conversation_id


# --- Authorization Errors ---


class ForbiddenActionError(ConfirmationError):
    """Raised when the actor is not a participant, or acts for the wrong role.

    Example: the initiator calling deny, or the counterparty calling cancel.
    """

    def __init__(self, message: str) -> None:
        super().__init__(message=message, code="FORBIDDEN")


# --- State Errors ---


class InvalidStateError(ConfirmationError):
    """Raised when the transaction's status makes the operation meaningless."""

    def __init__(self, transaction_id: str, status: str, operation: str) -> None:
        super().__init__(
            message=f"Cannot {operation} transaction {transaction_id} in status '{status}'",
            code="INVALID_STATUS",
        )
        self.transaction_id = transaction_id
        self.status = status
        self.operation = operation


class AlreadyConfirmedError(InvalidStateError):
    """Raised when a party confirms a side it already confirmed.

    Distinct from the idempotent case where the whole transaction is already
    confirmed, which is reported as success.
    """

    def __init__(self, transaction_id: str) -> None:
        super().__init__(transaction_id, "pending", "confirm")
        self.message = f"You have already confirmed transaction {transaction_id}"
        self.code = "ALREADY_CONFIRMED"
        self.args = (self.message,)


class DuplicateActiveTransactionError(ConfirmationError):
    """Raised when open would create a second active transaction."""

    def __init__(self, message: str) -> None:
        super().__init__(message=message, code="ALREADY_EXISTS")


class TransitionConflictError(ConfirmationError):
    """Raised by the store when a guarded update finds an unexpected status.

    Carries the freshly read record so the caller can decide how to react.
    """

    def __init__(self, expected_status: str, current: TransactionRecord) -> None:
        super().__init__(
            message=(
                f"Transaction {current.id} is '{current.status}', "
                f"expected '{expected_status}'"
            ),
            code="TRANSITION_CONFLICT",
        )
        self.expected_status = expected_status
        self.current = current


# --- Input Errors ---


class DisputeValidationError(ConfirmationError):
    """Raised when a dispute is missing its reason or description."""

    def __init__(self, missing_fields: list[str]) -> None:
        super().__init__(
            message=f"Missing required fields: {', '.join(missing_fields)}",
            code="MISSING_FIELDS",
        )
        self.missing_fields = missing_fields


# --- Infrastructure Errors ---


class DependencyFailureError(ConfirmationError):
    """Raised when the transaction store (or conversation lookup) fails."""

    def __init__(self, operation: str, reason: str) -> None:
        super().__init__(
            message=f"Dependency failure during {operation}: {reason}",
            code="DEPENDENCY_FAILURE",
        )
        self.operation = operation
