"""Shared test fixtures for the deal confirmation test suite.

Provides:
    - A SQLite (aiosqlite) file database per test, with the schema created
    - In-memory fakes for the conversation, settings, notification and
      support-ticket collaborators
    - A controllable clock and wired store / service / sweeper fixtures
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest
from sqlalchemy.ext.asyncio import create_async_engine

from deal_confirmation.domain.exceptions import DependencyFailureError
from deal_confirmation.domain.role_resolver import RoleResolver
from deal_confirmation.infrastructure.database.engine import create_session_factory
from deal_confirmation.infrastructure.database.orm_models import Base
from deal_confirmation.infrastructure.database.repositories import TransactionStore
from deal_confirmation.services.auto_resolve_sweeper import AutoResolveSweeper
from deal_confirmation.services.confirmation_service import ConfirmationService
from deal_confirmation.services.side_effects import SideEffectDispatcher

ALICE = "user-alice"
BOB = "user-bob"
CAROL = "user-carol"
MALLORY = "user-mallory"

CONVERSATION = "conv-1"
OTHER_CONVERSATION = "conv-2"


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2026, 3, 2, 9, 30, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


class FakeDirectory:
    """Conversation directory backed by a dict."""

    def __init__(self) -> None:
        self.conversations: dict[str, tuple[str, str]] = {}
        self.fail = False

    def add(self, conversation_id: str, user_a: str, user_b: str) -> None:
        self.conversations[conversation_id] = (user_a, user_b)

    async def get_participants(self, conversation_id: str) -> tuple[str, str] | None:
        if self.fail:
            raise DependencyFailureError("conversation_lookup", "directory unavailable")
        return self.conversations.get(conversation_id)


class FakeSettings:
    def __init__(self, days: int = 7) -> None:
        self.days = days

    async def get_auto_resolve_waiting_period_days(self) -> int:
        return self.days


class RecordingNotifier:
    """Notification sender that keeps what it was asked to send."""

    def __init__(self) -> None:
        self.sent: list[tuple[str, str, dict]] = []
        self.fail = False

    async def notify(self, user_id: str, event_type: str, payload: dict) -> None:
        if self.fail:
            raise RuntimeError("notification service down")
        self.sent.append((user_id, event_type, payload))

    def types_for(self, user_id: str) -> list[str]:
        return [event_type for uid, event_type, _ in self.sent if uid == user_id]


class FakeTicketGateway:
    def __init__(self, ticket_id: str | None = "TICKET-1") -> None:
        self.ticket_id = ticket_id
        self.opened: list[dict] = []
        self.fail = False

    async def open_dispute_ticket(
        self,
        user_id: str,
        subject: str,
        description: str,
        related_transaction_id: str,
    ) -> str | None:
        if self.fail:
            raise RuntimeError("support desk down")
        self.opened.append(
            {
                "user_id": user_id,
                "subject": subject,
                "description": description,
                "related_transaction_id": related_transaction_id,
            }
        )
        return self.ticket_id


# ---------------------------------------------------------------------------
# Database Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
async def engine(tmp_path):
    """A fresh SQLite file database with all tables created."""
    db_engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'confirmations.db'}")
    async with db_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield db_engine
    await db_engine.dispose()


@pytest.fixture
def store(engine) -> TransactionStore:
    return TransactionStore(create_session_factory(engine))


# ---------------------------------------------------------------------------
# Collaborator Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def directory() -> FakeDirectory:
    fake = FakeDirectory()
    fake.add(CONVERSATION, ALICE, BOB)
    fake.add(OTHER_CONVERSATION, ALICE, CAROL)
    return fake


@pytest.fixture
def waiting_period() -> FakeSettings:
    return FakeSettings(days=7)


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def tickets() -> FakeTicketGateway:
    return FakeTicketGateway()


# ---------------------------------------------------------------------------
# Service Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def service(store, directory, waiting_period, notifier, tickets, clock) -> ConfirmationService:
    return ConfirmationService(
        store=store,
        roles=RoleResolver(directory),
        settings=waiting_period,
        dispatcher=SideEffectDispatcher(notifier, tickets),
        clock=clock,
    )


@pytest.fixture
def sweeper(service, store, clock) -> AutoResolveSweeper:
    return AutoResolveSweeper(service, store, batch_size=50, clock=clock)
