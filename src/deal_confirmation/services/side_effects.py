"""Side-Effect Dispatcher — best-effort notifications and dispute tickets.

State transitions are committed before any side effect runs. A failing
notification or ticket call is logged and swallowed here, so it can never
roll back or block a transition that is already durable.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from deal_confirmation.logging_config import get_logger

if TYPE_CHECKING:
    from deal_confirmation.domain.collaborators import (
        NotificationSender,
        SupportTicketGateway,
    )
    from deal_confirmation.domain.enums import NotificationType

logger = get_logger(__name__)


class SideEffectDispatcher:
    """Fire-and-forget facade over the notification and ticket collaborators."""

    def __init__(
        self,
        notifications: NotificationSender,
        tickets: SupportTicketGateway,
    ) -> None:
        self._notifications = notifications
        self._tickets = tickets

    async def notify(
        self,
        user_id: str | None,
        event_type: NotificationType,
        payload: dict,
    ) -> bool:
        """Send one notification. Returns False if it was skipped or failed."""
        if not user_id:
            return False
        try:
            await self._notifications.notify(user_id, event_type.value, payload)
        except Exception as exc:
            logger.warning(
                "notification.dispatch_failed",
                user_id=user_id,
                type=event_type.value,
                error=str(exc),
            )
            return False
        logger.debug("notification.dispatched", user_id=user_id, type=event_type.value)
        return True

    async def open_dispute_ticket(
        self,
        user_id: str,
        subject: str,
        description: str,
        related_transaction_id: str,
    ) -> str | None:
        """Open a support ticket; returns its id, or None if the call failed."""
        try:
            ticket_id = await self._tickets.open_dispute_ticket(
                user_id, subject, description, related_transaction_id
            )
        except Exception as exc:
            logger.warning(
                "support_ticket.open_failed",
                user_id=user_id,
                transaction_id=related_transaction_id,
                error=str(exc),
            )
            return None
        logger.info(
            "support_ticket.opened",
            ticket_id=ticket_id,
            transaction_id=related_transaction_id,
        )
        return ticket_id
