"""Collaborator Protocols.

Defines the interfaces of the marketplace services this engine consumes but
does not own: the conversation directory, the system settings store,
notification delivery and support tickets. These are Protocols (structural
subtyping) so adapters and test fakes only need to match the shape.

The domain layer has ZERO imports from httpx, Redis, or any transport.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class ConversationDirectory(Protocol):
    """Source of truth for who takes part in a conversation.

    Concrete implementation: infrastructure/collaborators.py (HTTP).
    """

    async def get_participants(self, conversation_id: str) -> tuple[str, str] | None:
        """Return the two participants, or None if the conversation does not exist.

        The pair must be stable: the same conversation always yields the
        same two user ids, regardless of who is asking.
        """
        ...


@runtime_checkable
class SettingsProvider(Protocol):
    """Process-wide system settings."""

    async def get_auto_resolve_waiting_period_days(self) -> int:
        """Days a pending transaction waits before auto-resolving (default 7)."""
        ...


@runtime_checkable
class NotificationSender(Protocol):
    """Fire-and-forget notification delivery."""

    async def notify(self, user_id: str, event_type: str, payload: dict) -> None:
        ...


@runtime_checkable
class SupportTicketGateway(Protocol):
    """Creates support tickets for disputed transactions."""

    async def open_dispute_ticket(
        self,
        user_id: str,
        subject: str,
        description: str,
        related_transaction_id: str,
    ) -> str | None:
        """Open a dispute ticket and return its id for cross-referencing."""
        ...
