"""Confirmation Service — the two-party confirmation state machine.

This is the application layer that coordinates between:
    - Role resolver (who may do what)
    - Domain state machine (transition guard)
    - Transaction store (guarded, atomic persistence + audit trail)
    - Side-effect dispatcher (best-effort notifications and tickets)

Both the REST routes and the auto-resolve sweeper call into this service,
so party-initiated confirms and forced confirms share one transition path.

No in-process lock is held anywhere: every status change is a
compare-and-transition on the store, and a lost race is resolved by looking
at the winner's result.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

from deal_confirmation.domain.enums import (
    EventType,
    NotificationType,
    PartyRole,
    TransactionStatus,
)
from deal_confirmation.domain.exceptions import (
    AlreadyConfirmedError,
    DependencyFailureError,
    DisputeValidationError,
    DuplicateActiveTransactionError,
    ForbiddenActionError,
    InvalidStateError,
    TransactionNotFoundError,
    TransitionConflictError,
)
from deal_confirmation.domain.role_resolver import other_in, role_in
from deal_confirmation.domain.state_machine import guard_transition
from deal_confirmation.logging_config import get_logger

if TYPE_CHECKING:
    import uuid
    from collections.abc import Callable

    from deal_confirmation.domain.collaborators import SettingsProvider
    from deal_confirmation.domain.models import TransactionEventRecord, TransactionRecord
    from deal_confirmation.domain.role_resolver import RoleResolver
    from deal_confirmation.infrastructure.database.repositories import TransactionStore
    from deal_confirmation.services.side_effects import SideEffectDispatcher

logger = get_logger(__name__)

SYSTEM_ACTOR = "SYSTEM"


class ConfirmationService:
    """Open, confirm, deny, dispute, cancel and auto-resolve transactions."""

    def __init__(
        self,
        store: TransactionStore,
        roles: RoleResolver,
        settings: SettingsProvider,
        dispatcher: SideEffectDispatcher,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._store = store
        self._roles = roles
        self._settings = settings
        self._dispatcher = dispatcher
        self._clock = clock or (lambda: datetime.now(UTC))

    # ------------------------------------------------------------------
    # Open
    # ------------------------------------------------------------------

    async def open_transaction(
        self,
        conversation_id: str,
        actor: str,
        subject_id: str | None = None,
    ) -> TransactionRecord:
        """Open a pending transaction with the opener's side pre-confirmed."""
        participants = await self._roles.participants(conversation_id)
        if role_in(participants, actor) is PartyRole.NONE:
            raise ForbiddenActionError("You are not part of this conversation")
        counterparty = other_in(participants, actor)

        if await self._store.find_pending_for_conversation(conversation_id) is not None:
            raise DuplicateActiveTransactionError(
                "A pending transaction already exists for this conversation"
            )
        if subject_id and await self._store.find_active_for_subject(subject_id) is not None:
            raise DuplicateActiveTransactionError(
                "A transaction already exists for this subject"
            )

        waiting_days = await self._settings.get_auto_resolve_waiting_period_days()
        now = self._clock()
        record = await self._store.create_pending(
            conversation_id=conversation_id,
            subject_id=subject_id,
            initiator=actor,
            counterparty=counterparty,
            opener_confirmed_at=now,
            auto_resolve_at=now + timedelta(days=waiting_days),
        )

        logger.info(
            "transaction.opened",
            transaction_id=str(record.id),
            conversation_id=conversation_id,
            subject_id=subject_id,
            auto_resolve_at=record.auto_resolve_at.isoformat(),
        )
        await self._dispatcher.notify(
            counterparty,
            NotificationType.TRANSACTION_INITIATED,
            {**record.to_dict(), "initiated_by": actor},
        )
        return record

    # ------------------------------------------------------------------
    # Confirm
    # ------------------------------------------------------------------

    async def confirm(self, transaction_id: uuid.UUID, actor: str) -> TransactionRecord:
        """Confirm the actor's side; completes the deal once both sides agree.

        Confirming a transaction that is already ``confirmed`` (typically by
        the sweeper) succeeds and returns the current snapshot.
        """
        record, role = await self._load_for_actor(transaction_id, actor)

        if record.status is TransactionStatus.CONFIRMED:
            logger.info("transaction.confirm_idempotent", transaction_id=str(record.id))
            return record
        if record.status is not TransactionStatus.PENDING:
            raise InvalidStateError(str(record.id), record.status.value, "confirm")
        if record.is_confirmed_by(role):
            raise AlreadyConfirmedError(str(record.id))

        now = self._clock()
        side = "initiator" if role is PartyRole.INITIATOR else "counterparty"
        mutation: dict = {f"{side}_confirmed": True, f"{side}_confirmed_at": now}

        completes = (record.initiator_confirmed or role is PartyRole.INITIATOR) and (
            record.counterparty_confirmed or role is PartyRole.COUNTERPARTY
        )
        event_type = EventType.PARTY_CONFIRMED
        if completes:
            mutation["status"] = guard_transition(
                str(record.id), record.status.value, "both_confirmed", "confirm"
            )
            event_type = EventType.TRANSACTION_CONFIRMED

        try:
            updated = await self._store.compare_and_transition(
                record.id,
                TransactionStatus.PENDING,
                mutation,
                event_type=event_type,
                actor=actor,
                metadata={"role": role.value},
            )
        except TransitionConflictError as conflict:
            if conflict.current.status is TransactionStatus.CONFIRMED:
                # Lost the race to the sweeper (or a duplicate request); the
                # party's intent is already satisfied.
                logger.info("transaction.confirm_race_resolved", transaction_id=str(record.id))
                return conflict.current
            raise InvalidStateError(
                str(record.id), conflict.current.status.value, "confirm"
            ) from conflict

        completed = updated.status is TransactionStatus.CONFIRMED
        logger.info(
            "transaction.party_confirmed",
            transaction_id=str(updated.id),
            role=role.value,
            completed=completed,
        )
        await self._dispatcher.notify(
            updated.other_party(actor),
            NotificationType.TRANSACTION_CONFIRMED,
            {**updated.to_dict(), "confirmed_by": actor, "review_eligible": completed},
        )
        return updated

    # ------------------------------------------------------------------
    # Deny
    # ------------------------------------------------------------------

    async def deny(self, transaction_id: uuid.UUID, actor: str) -> TransactionRecord:
        """Record the counterparty's objection without changing the status.

        Denial is advisory: the transaction still auto-resolves at
        ``auto_resolve_at`` unless it is disputed or cancelled first.
        """
        record, role = await self._load_for_actor(transaction_id, actor)
        if role is PartyRole.INITIATOR:
            raise ForbiddenActionError("You cannot deny your own transaction")
        if record.status is not TransactionStatus.PENDING:
            raise InvalidStateError(str(record.id), record.status.value, "deny")

        await self._store.record_event(
            record.id,
            EventType.TRANSACTION_DENIED,
            record.status,
            actor,
            metadata={"auto_resolve_at": record.auto_resolve_at.isoformat()},
        )
        logger.info("transaction.denied", transaction_id=str(record.id), by=actor)
        await self._dispatcher.notify(
            record.initiated_by,
            NotificationType.TRANSACTION_DENIED,
            record.to_dict(),
        )
        return record

    # ------------------------------------------------------------------
    # Dispute
    # ------------------------------------------------------------------

    async def dispute(
        self,
        transaction_id: uuid.UUID,
        actor: str,
        reason: str,
        description: str,
    ) -> TransactionRecord:
        """Escalate to a dispute and open a support ticket. Terminal."""
        missing = [
            name
            for name, value in (("reason", reason), ("description", description))
            if not value or not value.strip()
        ]
        if missing:
            raise DisputeValidationError(missing)

        record, _role = await self._load_for_actor(transaction_id, actor)
        new_status = guard_transition(
            str(record.id), record.status.value, "party_disputes", "dispute"
        )

        try:
            updated = await self._store.compare_and_transition(
                record.id,
                TransactionStatus.PENDING,
                {"status": new_status},
                event_type=EventType.TRANSACTION_DISPUTED,
                actor=actor,
                metadata={"reason": reason},
            )
        except TransitionConflictError as conflict:
            raise InvalidStateError(
                str(record.id), conflict.current.status.value, "dispute"
            ) from conflict

        logger.info("transaction.disputed", transaction_id=str(updated.id), by=actor)

        ticket_id = await self._dispatcher.open_dispute_ticket(
            actor, reason, description, str(updated.id)
        )
        if ticket_id is not None:
            try:
                await self._store.record_event(
                    updated.id,
                    EventType.DISPUTE_TICKET_OPENED,
                    updated.status,
                    actor,
                    metadata={"ticket_id": ticket_id},
                )
            except DependencyFailureError as exc:
                logger.warning(
                    "transaction.ticket_reference_not_recorded",
                    transaction_id=str(updated.id),
                    ticket_id=ticket_id,
                    error=exc.message,
                )

        await self._dispatcher.notify(
            updated.other_party(actor),
            NotificationType.TRANSACTION_DISPUTED,
            {**updated.to_dict(), "ticket_id": ticket_id},
        )
        return updated

    # ------------------------------------------------------------------
    # Cancel
    # ------------------------------------------------------------------

    async def cancel(self, transaction_id: uuid.UUID, actor: str) -> TransactionRecord:
        """Withdraw a pending transaction. Initiator only."""
        record, role = await self._load_for_actor(transaction_id, actor)
        if role is not PartyRole.INITIATOR:
            raise ForbiddenActionError("Only the initiator can cancel a transaction")
        new_status = guard_transition(
            str(record.id), record.status.value, "initiator_cancels", "cancel"
        )

        try:
            updated = await self._store.compare_and_transition(
                record.id,
                TransactionStatus.PENDING,
                {"status": new_status},
                event_type=EventType.TRANSACTION_CANCELLED,
                actor=actor,
            )
        except TransitionConflictError as conflict:
            raise InvalidStateError(
                str(record.id), conflict.current.status.value, "cancel"
            ) from conflict

        logger.info("transaction.cancelled", transaction_id=str(updated.id))
        await self._dispatcher.notify(
            updated.counterparty_id,
            NotificationType.TRANSACTION_CANCELLED,
            updated.to_dict(),
        )
        return updated

    # ------------------------------------------------------------------
    # Auto-resolve (called by the sweeper)
    # ------------------------------------------------------------------

    async def auto_resolve(
        self, record: TransactionRecord, now: datetime
    ) -> TransactionRecord | None:
        """Force-confirm a due transaction.

        Returns the confirmed snapshot, or None if the transaction left
        ``pending`` before the guarded update (confirmed, disputed or
        cancelled in the meantime).
        """
        mutation = {
            "status": guard_transition(
                str(record.id), record.status.value, "auto_resolved", "auto-resolve"
            ),
            "initiator_confirmed": True,
            "counterparty_confirmed": True,
            "initiator_confirmed_at": record.initiator_confirmed_at or now,
            "counterparty_confirmed_at": record.counterparty_confirmed_at or now,
        }
        try:
            updated = await self._store.compare_and_transition(
                record.id,
                TransactionStatus.PENDING,
                mutation,
                event_type=EventType.TRANSACTION_AUTO_CONFIRMED,
                actor=SYSTEM_ACTOR,
                metadata={"auto_resolve_at": record.auto_resolve_at.isoformat()},
            )
        except TransitionConflictError as conflict:
            logger.info(
                "transaction.auto_resolve_skipped",
                transaction_id=str(record.id),
                current_status=conflict.current.status.value,
            )
            return None

        logger.info("transaction.auto_confirmed", transaction_id=str(updated.id))
        for party in updated.participants:
            await self._dispatcher.notify(
                party,
                NotificationType.TRANSACTION_AUTO_CONFIRMED,
                {**updated.to_dict(), "review_eligible": True},
            )
        return updated

    # ------------------------------------------------------------------
    # Read helpers
    # ------------------------------------------------------------------

    async def get_transaction(self, transaction_id: uuid.UUID, actor: str) -> TransactionRecord:
        """Get a transaction the actor takes part in."""
        record, _role = await self._load_for_actor(transaction_id, actor)
        return record

    async def list_for_user(
        self,
        user_id: str,
        status: TransactionStatus | None = None,
        page: int = 1,
        limit: int = 20,
    ) -> tuple[list[TransactionRecord], int]:
        """The user's transactions (either side), newest first, plus the total."""
        offset = (max(page, 1) - 1) * limit
        return await self._store.list_for_user(user_id, status, limit=limit, offset=offset)

    async def get_events(
        self, transaction_id: uuid.UUID, actor: str
    ) -> list[TransactionEventRecord]:
        """Audit trail of a transaction the actor takes part in."""
        record, _role = await self._load_for_actor(transaction_id, actor)
        return await self._store.list_events(record.id)

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    async def _load_for_actor(
        self, transaction_id: uuid.UUID, actor: str
    ) -> tuple[TransactionRecord, PartyRole]:
        record = await self._store.get(transaction_id)
        if record is None:
            raise TransactionNotFoundError(str(transaction_id))
        role = await self._roles.resolve_role(
            record.conversation_id, actor, initiated_by=record.initiated_by
        )
        if role is PartyRole.NONE:
            raise ForbiddenActionError("You are not a party to this transaction")
        return record, role
