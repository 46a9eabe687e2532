"""Adapters for the marketplace services the engine depends on.

    - HttpConversationDirectory   GET  {base}/internal/conversations/{id}
    - HttpNotificationSender      POST {base}/internal/notifications
    - HttpSupportTicketGateway    POST {base}/internal/support-tickets
    - LoggingNotificationSender   used when no marketplace URL is configured
    - RedisSettingsProvider       auto_confirm_days from the settings store

The HTTP adapters raise on transport errors; the side-effect dispatcher is
what makes notification and ticket calls best-effort.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import httpx
from redis.exceptions import RedisError

from deal_confirmation.domain.exceptions import DependencyFailureError
from deal_confirmation.logging_config import get_logger

if TYPE_CHECKING:
    import redis.asyncio as aioredis

logger = get_logger(__name__)

AUTO_CONFIRM_DAYS_KEY = "auto_confirm_days"


def build_marketplace_client(
    base_url: str, token: str = "", timeout: float = 5.0
) -> httpx.AsyncClient:
    """Shared AsyncClient for all marketplace adapters."""
    headers = {"Accept": "application/json"}
    if token:
        headers["Authorization"] = f"Bearer {token}"
    return httpx.AsyncClient(base_url=base_url, headers=headers, timeout=timeout)


class HttpConversationDirectory:
    """Looks up conversation participants in the marketplace backend."""

    def __init__(self, client: httpx.AsyncClient) -> None:
        self._client = client

    async def get_participants(self, conversation_id: str) -> tuple[str, str] | None:
        try:
            response = await self._client.get(f"/internal/conversations/{conversation_id}")
            if response.status_code == 404:
                return None
            response.raise_for_status()
            body = response.json()
            # Conversations store their two users as user1/user2; sort them so
            # the pair is the same no matter how the conversation was started.
            first, second = sorted((str(body["user1_id"]), str(body["user2_id"])))
        except (httpx.HTTPError, ValueError, KeyError, TypeError) as exc:
            logger.error(
                "conversations.lookup_failed",
                conversation_id=conversation_id,
                error=str(exc),
            )
            raise DependencyFailureError("conversation_lookup", str(exc)) from exc
        return first, second


class HttpNotificationSender:
    """Creates in-app notifications through the marketplace backend."""

    def __init__(self, client: httpx.AsyncClient) -> None:
        self._client = client

    async def notify(self, user_id: str, event_type: str, payload: dict) -> None:
        response = await self._client.post(
            "/internal/notifications",
            json={"user_id": user_id, "type": event_type, "data": payload},
        )
        response.raise_for_status()


class HttpSupportTicketGateway:
    """Opens dispute tickets in the marketplace support desk."""

    def __init__(self, client: httpx.AsyncClient) -> None:
        self._client = client

    async def open_dispute_ticket(
        self,
        user_id: str,
        subject: str,
        description: str,
        related_transaction_id: str,
    ) -> str | None:
        response = await self._client.post(
            "/internal/support-tickets",
            json={
                "user_id": user_id,
                "type": "dispute",
                "subject": subject,
                "description": description,
                "related_id": related_transaction_id,
                "related_type": "transaction",
            },
        )
        response.raise_for_status()
        ticket_id = response.json().get("id")
        return str(ticket_id) if ticket_id is not None else None


class LoggingNotificationSender:
    """Notification sender for local runs: writes the notification to the log."""

    async def notify(self, user_id: str, event_type: str, payload: dict) -> None:
        logger.info("notification.logged", user_id=user_id, type=event_type, payload=payload)


class LoggingSupportTicketGateway:
    """Ticket gateway for local runs: logs the dispute, returns no ticket id."""

    async def open_dispute_ticket(
        self,
        user_id: str,
        subject: str,
        description: str,
        related_transaction_id: str,
    ) -> str | None:
        logger.info(
            "support_ticket.logged",
            user_id=user_id,
            subject=subject,
            transaction_id=related_transaction_id,
        )
        return None


class RedisSettingsProvider:
    """Reads the auto-resolve waiting period from the shared settings store.

    Falls back to ``default_days`` when Redis is not connected, the key is
    unset, or the stored value is not a positive integer.
    """

    def __init__(
        self,
        redis: aioredis.Redis | None,
        default_days: int = 7,
        prefix: str = "settings:",
    ) -> None:
        self._redis = redis
        self._default_days = default_days
        self._key = f"{prefix}{AUTO_CONFIRM_DAYS_KEY}"

    async def get_auto_resolve_waiting_period_days(self) -> int:
        if self._redis is None:
            return self._default_days
        try:
            raw = await self._redis.get(self._key)
        except RedisError as exc:
            logger.warning("settings.redis_unavailable", key=self._key, error=str(exc))
            return self._default_days
        if raw is None:
            return self._default_days
        try:
            days = int(raw)
        except (TypeError, ValueError):
            logger.warning("settings.invalid_value", key=self._key, value=raw)
            return self._default_days
        if days < 1:
            logger.warning("settings.invalid_value", key=self._key, value=raw)
            return self._default_days
        return days
