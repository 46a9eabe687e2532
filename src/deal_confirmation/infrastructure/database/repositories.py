"""Transaction store — the only component that touches the transactions table.

Every public method is one atomic unit of work in its own database
transaction. There is deliberately no "load, mutate, save" path: status
changes go through ``compare_and_transition``, a single conditional UPDATE
that only applies while the row still has the expected status. Concurrent
writers (a party confirming, the sweeper auto-resolving, another process)
therefore never lose updates; the loser gets a TransitionConflictError
carrying the winner's result.

Any SQLAlchemy or connection failure surfaces as DependencyFailureError.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import func, or_, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from deal_confirmation.domain.enums import EventType, TransactionStatus
from deal_confirmation.domain.exceptions import (
    ConfirmationError,
    DependencyFailureError,
    DuplicateActiveTransactionError,
    TransactionNotFoundError,
    TransitionConflictError,
)
from deal_confirmation.infrastructure.database.orm_models import (
    ConfirmationTransaction,
    TransactionEvent,
)
from deal_confirmation.logging_config import get_logger

if TYPE_CHECKING:
    import uuid
    from collections.abc import AsyncIterator, Callable

    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from deal_confirmation.domain.models import TransactionEventRecord, TransactionRecord

logger = get_logger(__name__)


class TransactionStore:
    """Atomic, guarded data access for confirmation transactions."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._clock = clock or (lambda: datetime.now(UTC))

    @asynccontextmanager
    async def _unit_of_work(self, operation: str) -> AsyncIterator[AsyncSession]:
        """Open a session and commit on success, translating store failures."""
        try:
            async with self._session_factory() as session, session.begin():
                yield session
        except ConfirmationError:
            raise
        except (SQLAlchemyError, OSError) as exc:
            logger.error("store.operation_failed", operation=operation, error=str(exc))
            raise DependencyFailureError(operation, str(exc)) from exc

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def create_pending(
        self,
        conversation_id: str,
        subject_id: str | None,
        initiator: str,
        counterparty: str,
        opener_confirmed_at: datetime,
        auto_resolve_at: datetime,
    ) -> TransactionRecord:
        """Insert a pending transaction with the opener's side pre-confirmed.

        Raises:
            DuplicateActiveTransactionError: If the conversation already has a
                pending transaction, or the subject an active one.
        """
        now = self._clock()
        row = ConfirmationTransaction(
            conversation_id=conversation_id,
            subject_id=subject_id,
            initiated_by=initiator,
            counterparty_id=counterparty,
            initiator_confirmed=True,
            initiator_confirmed_at=opener_confirmed_at,
            counterparty_confirmed=False,
            status=TransactionStatus.PENDING.value,
            auto_resolve_at=auto_resolve_at,
            created_at=now,
            updated_at=now,
        )
        async with self._unit_of_work("create_pending") as session:
            session.add(row)
            try:
                await session.flush()
            except IntegrityError as exc:
                raise DuplicateActiveTransactionError(
                    "An active transaction already exists for this conversation or subject"
                ) from exc
            session.add(
                TransactionEvent(
                    transaction_id=row.id,
                    event_type=EventType.TRANSACTION_OPENED.value,
                    old_status=None,
                    new_status=TransactionStatus.PENDING.value,
                    actor=initiator,
                    metadata_json={"subject_id": subject_id},
                    created_at=now,
                )
            )
            return row.to_record()

    async def compare_and_transition(
        self,
        transaction_id: uuid.UUID,
        expected_status: TransactionStatus,
        mutation: dict[str, Any],
        *,
        event_type: EventType,
        actor: str,
        metadata: dict | None = None,
    ) -> TransactionRecord:
        """Apply ``mutation`` only if the row's status is still ``expected_status``.

        The update and its audit event commit together.

        Raises:
            TransactionNotFoundError: If the id does not exist.
            TransitionConflictError: If the status changed underneath the
                caller; ``exc.current`` holds the fresh snapshot.
        """
        now = self._clock()
        values = {**mutation, "updated_at": now}
        async with self._unit_of_work("compare_and_transition") as session:
            result = await session.execute(
                update(ConfirmationTransaction)
                .where(
                    ConfirmationTransaction.id == transaction_id,
                    ConfirmationTransaction.status == expected_status.value,
                )
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            row = await session.get(
                ConfirmationTransaction, transaction_id, populate_existing=True
            )
            if row is None:
                raise TransactionNotFoundError(str(transaction_id))
            if result.rowcount != 1:
                raise TransitionConflictError(expected_status.value, row.to_record())

            session.add(
                TransactionEvent(
                    transaction_id=transaction_id,
                    event_type=event_type.value,
                    old_status=expected_status.value,
                    new_status=row.status,
                    actor=actor,
                    metadata_json=metadata,
                    created_at=now,
                )
            )
            return row.to_record()

    async def record_event(
        self,
        transaction_id: uuid.UUID,
        event_type: EventType,
        status: TransactionStatus,
        actor: str,
        metadata: dict | None = None,
    ) -> None:
        """Append an audit event that does not change the transaction's status."""
        async with self._unit_of_work("record_event") as session:
            session.add(
                TransactionEvent(
                    transaction_id=transaction_id,
                    event_type=event_type.value,
                    old_status=status.value,
                    new_status=status.value,
                    actor=actor,
                    metadata_json=metadata,
                    created_at=self._clock(),
                )
            )

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get(self, transaction_id: uuid.UUID) -> TransactionRecord | None:
        """Fetch a transaction by its UUID."""
        async with self._unit_of_work("get") as session:
            row = await session.get(ConfirmationTransaction, transaction_id)
            return row.to_record() if row is not None else None

    async def find_pending_for_conversation(
        self, conversation_id: str
    ) -> TransactionRecord | None:
        """Return the conversation's pending transaction, if any."""
        async with self._unit_of_work("find_pending_for_conversation") as session:
            result = await session.execute(
                select(ConfirmationTransaction).where(
                    ConfirmationTransaction.conversation_id == conversation_id,
                    ConfirmationTransaction.status == TransactionStatus.PENDING.value,
                )
            )
            row = result.scalars().first()
            return row.to_record() if row is not None else None

    async def find_active_for_subject(self, subject_id: str) -> TransactionRecord | None:
        """Return a pending or confirmed transaction referencing ``subject_id``."""
        async with self._unit_of_work("find_active_for_subject") as session:
            result = await session.execute(
                select(ConfirmationTransaction).where(
                    ConfirmationTransaction.subject_id == subject_id,
                    ConfirmationTransaction.status.in_(
                        [TransactionStatus.PENDING.value, TransactionStatus.CONFIRMED.value]
                    ),
                )
            )
            row = result.scalars().first()
            return row.to_record() if row is not None else None

    async def find_due_for_auto_resolve(
        self, now: datetime, limit: int = 500
    ) -> list[TransactionRecord]:
        """Pending transactions whose auto_resolve_at has passed, oldest first."""
        async with self._unit_of_work("find_due_for_auto_resolve") as session:
            result = await session.execute(
                select(ConfirmationTransaction)
                .where(
                    ConfirmationTransaction.status == TransactionStatus.PENDING.value,
                    ConfirmationTransaction.auto_resolve_at <= now,
                )
                .order_by(ConfirmationTransaction.auto_resolve_at.asc())
                .limit(limit)
            )
            return [row.to_record() for row in result.scalars().all()]

    async def list_for_user(
        self,
        user_id: str,
        status: TransactionStatus | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> tuple[list[TransactionRecord], int]:
        """Transactions where the user is either party, newest first, with total count."""
        conditions = [
            or_(
                ConfirmationTransaction.initiated_by == user_id,
                ConfirmationTransaction.counterparty_id == user_id,
            )
        ]
        if status is not None:
            conditions.append(ConfirmationTransaction.status == status.value)

        async with self._unit_of_work("list_for_user") as session:
            total = await session.scalar(
                select(func.count()).select_from(ConfirmationTransaction).where(*conditions)
            )
            result = await session.execute(
                select(ConfirmationTransaction)
                .where(*conditions)
                .order_by(ConfirmationTransaction.created_at.desc())
                .limit(limit)
                .offset(offset)
            )
            return [row.to_record() for row in result.scalars().all()], int(total or 0)

    async def list_events(self, transaction_id: uuid.UUID) -> list[TransactionEventRecord]:
        """Fetch the audit trail of a transaction in chronological order."""
        async with self._unit_of_work("list_events") as session:
            result = await session.execute(
                select(TransactionEvent)
                .where(TransactionEvent.transaction_id == transaction_id)
                .order_by(TransactionEvent.created_at.asc())
            )
            return [evt.to_record() for evt in result.scalars().all()]
