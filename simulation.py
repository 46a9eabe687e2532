#!/usr/bin/env python3
"""Deal Confirmation Engine — End-to-End Simulation.

Walks a seller and a buyer through the confirmation protocol:

    Scenario 1: Mutual confirmation
        - Seller opens a transaction on the conversation -> pending
        - Buyer confirms -> confirmed, both sides review-eligible

    Scenario 2: Denied, then auto-resolved
        - Seller opens, buyer denies (advisory) -> still pending
        - The waiting period elapses, the sweeper runs -> confirmed

    Scenario 3: Dispute blocks auto-resolution
        - Seller opens, then disputes ("quality", "item damaged") -> disputed
        - A sweep after the deadline leaves it disputed

    Scenario 4: Cancellation rules
        - Buyer tries to cancel -> Forbidden
        - Seller cancels -> cancelled

Usage:
    # Option A: Against the configured PostgreSQL (DATABASE_URL):
    python simulation.py

    # Option B: Without a database server (SQLite file in a temp dir):
    python simulation.py --sqlite

    # Run a specific scenario:
    python simulation.py --sqlite --scenario 2
"""

from __future__ import annotations

import argparse
import asyncio
import tempfile
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from pathlib import Path

# ---------------------------------------------------------------------------
# Configure structured logging BEFORE importing app modules
# ---------------------------------------------------------------------------
from deal_confirmation.logging_config import get_logger, setup_logging

setup_logging(log_level="INFO", json_logs=False)
logger = get_logger("simulation")

SELLER = "seller-17"
BUYER = "buyer-42"

# Module-level state
_sqlite_engine = None
_tmpdir: tempfile.TemporaryDirectory | None = None


class SimulatedClock:
    """Wall clock that scenarios can fast-forward past the waiting period."""

    def __init__(self) -> None:
        self.offset = timedelta(0)

    def __call__(self) -> datetime:
        return datetime.now(UTC) + self.offset

    def fast_forward(self, **kwargs: float) -> None:
        self.offset += timedelta(**kwargs)


class InMemoryConversations:
    """Conversation directory for the simulation: one conversation per scenario."""

    def __init__(self) -> None:
        self._conversations: dict[str, tuple[str, str]] = {}

    def start(self, conversation_id: str) -> str:
        self._conversations[conversation_id] = (SELLER, BUYER)
        return conversation_id

    async def get_participants(self, conversation_id: str) -> tuple[str, str] | None:
        return self._conversations.get(conversation_id)


class FixedWaitingPeriod:
    async def get_auto_resolve_waiting_period_days(self) -> int:
        return 7


@dataclass
class World:
    """Everything a scenario needs, wired like the app's lifespan wires it."""

    service: object
    sweeper: object
    conversations: InMemoryConversations
    clock: SimulatedClock


# ---------------------------------------------------------------------------
# Database lifecycle helpers
# ---------------------------------------------------------------------------
async def init_database(use_sqlite: bool = False):
    """Initialize the database and return a session factory."""
    global _sqlite_engine, _tmpdir

    if use_sqlite:
        from sqlalchemy.ext.asyncio import create_async_engine

        from deal_confirmation.infrastructure.database.engine import create_session_factory
        from deal_confirmation.infrastructure.database.orm_models import Base

        _tmpdir = tempfile.TemporaryDirectory()
        db_path = Path(_tmpdir.name) / "simulation.db"
        _sqlite_engine = create_async_engine(f"sqlite+aiosqlite:///{db_path}", echo=False)
        async with _sqlite_engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("database.sqlite_initialized", path=str(db_path))
        return create_session_factory(_sqlite_engine)

    from deal_confirmation.infrastructure.database.engine import get_session_factory, init_db

    await init_db()
    return get_session_factory()


async def shutdown_database():
    """Close database connections."""
    global _sqlite_engine, _tmpdir

    if _sqlite_engine is not None:
        await _sqlite_engine.dispose()
        _sqlite_engine = None
        _tmpdir.cleanup()
        _tmpdir = None
    else:
        from deal_confirmation.infrastructure.database.engine import close_db

        await close_db()


def build_world(session_factory) -> World:
    from deal_confirmation.domain.role_resolver import RoleResolver
    from deal_confirmation.infrastructure.collaborators import (
        LoggingNotificationSender,
        LoggingSupportTicketGateway,
    )
    from deal_confirmation.infrastructure.database.repositories import TransactionStore
    from deal_confirmation.services.auto_resolve_sweeper import AutoResolveSweeper
    from deal_confirmation.services.confirmation_service import ConfirmationService
    from deal_confirmation.services.side_effects import SideEffectDispatcher

    clock = SimulatedClock()
    conversations = InMemoryConversations()
    store = TransactionStore(session_factory)
    service = ConfirmationService(
        store=store,
        roles=RoleResolver(conversations),
        settings=FixedWaitingPeriod(),
        dispatcher=SideEffectDispatcher(
            LoggingNotificationSender(), LoggingSupportTicketGateway()
        ),
        clock=clock,
    )
    sweeper = AutoResolveSweeper(service, store, clock=clock)
    return World(service=service, sweeper=sweeper, conversations=conversations, clock=clock)


# ---------------------------------------------------------------------------
# Print helpers
# ---------------------------------------------------------------------------
def banner(text: str) -> None:
    """Print a prominent banner."""
    width = 70
    print("\n" + "=" * width)
    print(f"  {text}")
    print("=" * width + "\n")


def section(text: str) -> None:
    """Print a section header."""
    print(f"\n--- {text} ---\n")


def print_transaction(record) -> None:
    print(f"  Status: {record.status}")
    print(
        f"  Confirmed: initiator={record.initiator_confirmed} "
        f"counterparty={record.counterparty_confirmed}"
    )
    print(f"  Auto-resolves at: {record.auto_resolve_at.isoformat()}")


async def print_audit_trail(world: World, transaction_id, actor: str) -> None:
    """Print the full audit trail for a transaction."""
    events = await world.service.get_events(transaction_id, actor)
    print("\n  Audit Trail:")
    for i, evt in enumerate(events, 1):
        old = evt.old_status or "-"
        print(f"    {i}. [{evt.event_type}] {old} -> {evt.new_status} (by {evt.actor})")
    print()


# ===========================================================================
# Scenarios
# ===========================================================================
async def scenario_1_mutual_confirmation(world: World) -> None:
    banner("SCENARIO 1: Mutual confirmation")
    conversation = world.conversations.start("conv-mutual")

    section("Step 1: Seller opens a transaction")
    record = await world.service.open_transaction(conversation, SELLER, subject_id="bike-1")
    print_transaction(record)

    section("Step 2: Buyer confirms")
    record = await world.service.confirm(record.id, BUYER)
    print_transaction(record)

    await print_audit_trail(world, record.id, SELLER)


async def scenario_2_deny_then_auto_resolve(world: World) -> None:
    banner("SCENARIO 2: Denied, then auto-resolved")
    conversation = world.conversations.start("conv-deny")

    section("Step 1: Seller opens, buyer denies")
    record = await world.service.open_transaction(conversation, SELLER)
    record = await world.service.deny(record.id, BUYER)
    print_transaction(record)

    section("Step 2: Eight days later, the sweeper runs")
    world.clock.fast_forward(days=8)
    report = await world.sweeper.run_once()
    print(f"  Sweep: due={report.due} confirmed={report.confirmed} skipped={report.skipped}")
    record = await world.service.get_transaction(record.id, BUYER)
    print_transaction(record)

    await print_audit_trail(world, record.id, BUYER)


async def scenario_3_dispute(world: World) -> None:
    banner("SCENARIO 3: Dispute blocks auto-resolution")
    conversation = world.conversations.start("conv-dispute")

    section("Step 1: Seller opens, then disputes")
    record = await world.service.open_transaction(conversation, SELLER)
    record = await world.service.dispute(record.id, SELLER, "quality", "item damaged")
    print_transaction(record)

    section("Step 2: The deadline passes, the sweeper runs")
    world.clock.fast_forward(days=8)
    await world.sweeper.run_once()
    record = await world.service.get_transaction(record.id, SELLER)
    print_transaction(record)

    await print_audit_trail(world, record.id, SELLER)


async def scenario_4_cancel(world: World) -> None:
    from deal_confirmation.domain.exceptions import ForbiddenActionError

    banner("SCENARIO 4: Cancellation rules")
    conversation = world.conversations.start("conv-cancel")
    record = await world.service.open_transaction(conversation, SELLER)

    section("Step 1: Buyer tries to cancel")
    try:
        await world.service.cancel(record.id, BUYER)
    except ForbiddenActionError as exc:
        print(f"  Rejected: {exc.code} ({exc.message})")

    section("Step 2: Seller cancels")
    record = await world.service.cancel(record.id, SELLER)
    print_transaction(record)

    await print_audit_trail(world, record.id, SELLER)


SCENARIOS = {
    1: scenario_1_mutual_confirmation,
    2: scenario_2_deny_then_auto_resolve,
    3: scenario_3_dispute,
    4: scenario_4_cancel,
}


# ===========================================================================
# Main
# ===========================================================================
async def run(scenario: int = 0, use_sqlite: bool = False) -> None:
    """Run one scenario, or all of them sequentially."""
    if scenario and scenario not in SCENARIOS:
        print(f"Unknown scenario {scenario}. Available: {', '.join(map(str, SCENARIOS))}")
        return

    session_factory = await init_database(use_sqlite=use_sqlite)
    try:
        print("\n  DEAL CONFIRMATION ENGINE — SIMULATION")
        print(f"  Database: {'SQLite (temp file)' if use_sqlite else 'PostgreSQL'}\n")

        selected = [SCENARIOS[scenario]] if scenario else list(SCENARIOS.values())
        for run_scenario in selected:
            # Fresh world per scenario so fast-forwarding does not leak
            await run_scenario(build_world(session_factory))

        print("\n" + "=" * 70)
        print("  ALL SCENARIOS COMPLETED")
        print("=" * 70 + "\n")
    finally:
        await shutdown_database()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Deal Confirmation Engine Simulation")
    parser.add_argument(
        "--scenario",
        type=int,
        default=0,
        help="Run a specific scenario (1-4). Default: run all.",
    )
    parser.add_argument(
        "--sqlite",
        action="store_true",
        help="Use a temporary SQLite file instead of PostgreSQL.",
    )
    args = parser.parse_args()

    asyncio.run(run(scenario=args.scenario, use_sqlite=args.sqlite))
