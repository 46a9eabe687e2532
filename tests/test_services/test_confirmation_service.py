"""Tests for ConfirmationService: the two-party confirmation protocol.

Covers the opening rules, the confirm/deny/dispute/cancel paths, role
checks, best-effort side effects and the read helpers.
"""

from __future__ import annotations

import uuid
from datetime import timedelta

import pytest
from conftest import ALICE, BOB, CAROL, CONVERSATION, MALLORY, OTHER_CONVERSATION

from deal_confirmation.domain.enums import EventType, TransactionStatus
from deal_confirmation.domain.exceptions import (
    AlreadyConfirmedError,
    ConversationNotFoundError,
    DependencyFailureError,
    DisputeValidationError,
    DuplicateActiveTransactionError,
    ForbiddenActionError,
    InvalidStateError,
    TransactionNotFoundError,
)


async def _event_types(store, transaction_id) -> list[str]:
    return [e.event_type for e in await store.list_events(transaction_id)]


# ---------------------------------------------------------------------------
# Open
# ---------------------------------------------------------------------------


class TestOpen:
    async def test_open_creates_pending_with_opener_confirmed(self, service, clock) -> None:
        record = await service.open_transaction(CONVERSATION, ALICE)

        assert record.status is TransactionStatus.PENDING
        assert record.initiated_by == ALICE
        assert record.counterparty_id == BOB
        assert record.initiator_confirmed is True
        assert record.initiator_confirmed_at == clock.now
        assert record.counterparty_confirmed is False
        assert record.auto_resolve_at == clock.now + timedelta(days=7)

    async def test_waiting_period_comes_from_settings(
        self, service, waiting_period, clock
    ) -> None:
        waiting_period.days = 3
        record = await service.open_transaction(CONVERSATION, BOB)
        assert record.auto_resolve_at == clock.now + timedelta(days=3)
        assert record.initiated_by == BOB
        assert record.counterparty_id == ALICE

    async def test_counterparty_is_notified(self, service, notifier) -> None:
        record = await service.open_transaction(CONVERSATION, ALICE, subject_id="listing-9")
        assert notifier.types_for(BOB) == ["transaction_initiated"]
        _, _, payload = notifier.sent[0]
        assert payload["transaction_id"] == str(record.id)
        assert payload["initiated_by"] == ALICE
        assert payload["subject_id"] == "listing-9"

    async def test_outsider_cannot_open(self, service, store) -> None:
        with pytest.raises(ForbiddenActionError):
            await service.open_transaction(CONVERSATION, MALLORY)
        assert await store.find_pending_for_conversation(CONVERSATION) is None

    async def test_unknown_conversation(self, service) -> None:
        with pytest.raises(ConversationNotFoundError):
            await service.open_transaction("conv-missing", ALICE)

    async def test_second_pending_in_conversation_rejected(self, service) -> None:
        await service.open_transaction(CONVERSATION, ALICE)
        with pytest.raises(DuplicateActiveTransactionError):
            await service.open_transaction(CONVERSATION, BOB)

    async def test_subject_with_active_transaction_rejected(self, service) -> None:
        first = await service.open_transaction(CONVERSATION, ALICE, subject_id="listing-9")
        await service.confirm(first.id, BOB)

        with pytest.raises(DuplicateActiveTransactionError):
            await service.open_transaction(OTHER_CONVERSATION, CAROL, subject_id="listing-9")

    async def test_reopen_after_cancel(self, service) -> None:
        first = await service.open_transaction(CONVERSATION, ALICE, subject_id="listing-9")
        await service.cancel(first.id, ALICE)
        second = await service.open_transaction(CONVERSATION, BOB, subject_id="listing-9")
        assert second.status is TransactionStatus.PENDING

    async def test_directory_failure_propagates(self, service, directory) -> None:
        directory.fail = True
        with pytest.raises(DependencyFailureError):
            await service.open_transaction(CONVERSATION, ALICE)


# ---------------------------------------------------------------------------
# Confirm
# ---------------------------------------------------------------------------


class TestConfirm:
    async def test_counterparty_confirm_completes(self, service, store, clock) -> None:
        record = await service.open_transaction(CONVERSATION, ALICE)
        clock.advance(hours=5)

        confirmed = await service.confirm(record.id, BOB)

        assert confirmed.status is TransactionStatus.CONFIRMED
        assert confirmed.initiator_confirmed and confirmed.counterparty_confirmed
        assert confirmed.counterparty_confirmed_at == clock.now
        assert await _event_types(store, record.id) == [
            EventType.TRANSACTION_OPENED.value,
            EventType.TRANSACTION_CONFIRMED.value,
        ]

    async def test_confirm_notifies_other_party_as_review_eligible(
        self, service, notifier
    ) -> None:
        record = await service.open_transaction(CONVERSATION, ALICE)
        await service.confirm(record.id, BOB)

        user_id, event_type, payload = notifier.sent[-1]
        assert (user_id, event_type) == (ALICE, "transaction_confirmed")
        assert payload["review_eligible"] is True
        assert payload["confirmed_by"] == BOB

    async def test_initiator_confirming_again_is_already_confirmed(self, service) -> None:
        record = await service.open_transaction(CONVERSATION, ALICE)
        with pytest.raises(AlreadyConfirmedError) as exc_info:
            await service.confirm(record.id, ALICE)
        assert exc_info.value.code == "ALREADY_CONFIRMED"
        assert isinstance(exc_info.value, InvalidStateError)

    async def test_confirm_is_idempotent_once_confirmed(self, service, store) -> None:
        record = await service.open_transaction(CONVERSATION, ALICE)
        first = await service.confirm(record.id, BOB)

        again = await service.confirm(record.id, BOB)
        by_initiator = await service.confirm(record.id, ALICE)

        assert again == first
        assert by_initiator.status is TransactionStatus.CONFIRMED
        # No extra audit events for the idempotent calls
        assert len(await store.list_events(record.id)) == 2

    async def test_confirm_after_dispute_rejected(self, service) -> None:
        record = await service.open_transaction(CONVERSATION, ALICE)
        await service.dispute(record.id, BOB, "quality", "item damaged")
        with pytest.raises(InvalidStateError) as exc_info:
            await service.confirm(record.id, BOB)
        assert exc_info.value.code == "INVALID_STATUS"

    async def test_confirm_after_cancel_rejected(self, service) -> None:
        record = await service.open_transaction(CONVERSATION, ALICE)
        await service.cancel(record.id, ALICE)
        with pytest.raises(InvalidStateError):
            await service.confirm(record.id, BOB)

    async def test_outsider_cannot_confirm(self, service, store) -> None:
        record = await service.open_transaction(CONVERSATION, ALICE)
        with pytest.raises(ForbiddenActionError):
            await service.confirm(record.id, MALLORY)
        assert (await store.get(record.id)).counterparty_confirmed is False

    async def test_unknown_transaction(self, service) -> None:
        with pytest.raises(TransactionNotFoundError):
            await service.confirm(uuid.uuid4(), BOB)

    async def test_notification_failure_does_not_undo_confirm(
        self, service, store, notifier
    ) -> None:
        record = await service.open_transaction(CONVERSATION, ALICE)
        notifier.fail = True

        confirmed = await service.confirm(record.id, BOB)

        assert confirmed.status is TransactionStatus.CONFIRMED
        assert (await store.get(record.id)).status is TransactionStatus.CONFIRMED


# ---------------------------------------------------------------------------
# Deny
# ---------------------------------------------------------------------------


class TestDeny:
    async def test_deny_keeps_pending_and_deadline(self, service, store, notifier) -> None:
        record = await service.open_transaction(CONVERSATION, ALICE)

        denied = await service.deny(record.id, BOB)

        stored = await store.get(record.id)
        assert denied.status is TransactionStatus.PENDING
        assert stored.status is TransactionStatus.PENDING
        assert stored.auto_resolve_at == record.auto_resolve_at
        assert EventType.TRANSACTION_DENIED.value in await _event_types(store, record.id)
        assert notifier.types_for(ALICE) == ["transaction_denied"]

    async def test_initiator_cannot_deny(self, service) -> None:
        record = await service.open_transaction(CONVERSATION, ALICE)
        with pytest.raises(ForbiddenActionError):
            await service.deny(record.id, ALICE)

    async def test_outsider_cannot_deny(self, service) -> None:
        record = await service.open_transaction(CONVERSATION, ALICE)
        with pytest.raises(ForbiddenActionError):
            await service.deny(record.id, MALLORY)

    async def test_deny_after_confirm_rejected(self, service) -> None:
        record = await service.open_transaction(CONVERSATION, ALICE)
        await service.confirm(record.id, BOB)
        with pytest.raises(InvalidStateError):
            await service.deny(record.id, BOB)


# ---------------------------------------------------------------------------
# Dispute
# ---------------------------------------------------------------------------


class TestDispute:
    async def test_dispute_opens_ticket_and_records_it(
        self, service, store, tickets, notifier
    ) -> None:
        record = await service.open_transaction(CONVERSATION, ALICE)

        disputed = await service.dispute(record.id, ALICE, "quality", "item damaged")

        assert disputed.status is TransactionStatus.DISPUTED
        assert tickets.opened == [
            {
                "user_id": ALICE,
                "subject": "quality",
                "description": "item damaged",
                "related_transaction_id": str(record.id),
            }
        ]
        events = await store.list_events(record.id)
        assert [e.event_type for e in events][-2:] == [
            EventType.TRANSACTION_DISPUTED.value,
            EventType.DISPUTE_TICKET_OPENED.value,
        ]
        assert events[-1].metadata == {"ticket_id": "TICKET-1"}

        user_id, event_type, payload = notifier.sent[-1]
        assert (user_id, event_type) == (BOB, "transaction_disputed")
        assert payload["ticket_id"] == "TICKET-1"

    async def test_dispute_ignores_confirmation_flags(self, service) -> None:
        record = await service.open_transaction(CONVERSATION, ALICE)
        disputed = await service.dispute(record.id, BOB, "no-show", "buyer never came")
        assert disputed.status is TransactionStatus.DISPUTED
        assert disputed.initiator_confirmed is True

    @pytest.mark.parametrize(
        ("reason", "description", "missing"),
        [
            ("", "item damaged", ["reason"]),
            ("quality", "   ", ["description"]),
            ("", "", ["reason", "description"]),
        ],
    )
    async def test_blank_fields_rejected_before_any_write(
        self, service, store, reason, description, missing
    ) -> None:
        record = await service.open_transaction(CONVERSATION, ALICE)
        with pytest.raises(DisputeValidationError) as exc_info:
            await service.dispute(record.id, ALICE, reason, description)
        assert exc_info.value.missing_fields == missing
        assert exc_info.value.code == "MISSING_FIELDS"
        assert (await store.get(record.id)).status is TransactionStatus.PENDING

    async def test_validation_runs_before_lookup(self, service) -> None:
        with pytest.raises(DisputeValidationError):
            await service.dispute(uuid.uuid4(), ALICE, "", "")

    async def test_ticket_failure_is_not_fatal(self, service, store, tickets) -> None:
        tickets.fail = True
        record = await service.open_transaction(CONVERSATION, ALICE)

        disputed = await service.dispute(record.id, BOB, "quality", "item damaged")

        assert disputed.status is TransactionStatus.DISPUTED
        types = await _event_types(store, record.id)
        assert EventType.DISPUTE_TICKET_OPENED.value not in types

    async def test_dispute_is_terminal(self, service) -> None:
        record = await service.open_transaction(CONVERSATION, ALICE)
        await service.dispute(record.id, BOB, "quality", "item damaged")
        with pytest.raises(InvalidStateError):
            await service.dispute(record.id, ALICE, "quality", "again")
        with pytest.raises(InvalidStateError):
            await service.cancel(record.id, ALICE)

    async def test_outsider_cannot_dispute(self, service) -> None:
        record = await service.open_transaction(CONVERSATION, ALICE)
        with pytest.raises(ForbiddenActionError):
            await service.dispute(record.id, MALLORY, "quality", "item damaged")


# ---------------------------------------------------------------------------
# Cancel
# ---------------------------------------------------------------------------


class TestCancel:
    async def test_only_initiator_can_cancel(self, service, notifier) -> None:
        record = await service.open_transaction(CONVERSATION, ALICE)

        with pytest.raises(ForbiddenActionError):
            await service.cancel(record.id, BOB)

        cancelled = await service.cancel(record.id, ALICE)
        assert cancelled.status is TransactionStatus.CANCELLED
        assert notifier.types_for(BOB)[-1] == "transaction_cancelled"

    async def test_cancel_after_confirm_rejected(self, service) -> None:
        record = await service.open_transaction(CONVERSATION, ALICE)
        await service.confirm(record.id, BOB)
        with pytest.raises(InvalidStateError):
            await service.cancel(record.id, ALICE)


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------


class TestReads:
    async def test_get_for_participants_only(self, service) -> None:
        record = await service.open_transaction(CONVERSATION, ALICE)
        assert (await service.get_transaction(record.id, BOB)).id == record.id
        with pytest.raises(ForbiddenActionError):
            await service.get_transaction(record.id, MALLORY)

    async def test_get_unknown(self, service) -> None:
        with pytest.raises(TransactionNotFoundError):
            await service.get_transaction(uuid.uuid4(), ALICE)

    async def test_list_for_user_paginates_and_filters(self, service) -> None:
        with_bob = await service.open_transaction(CONVERSATION, ALICE)
        with_carol = await service.open_transaction(OTHER_CONVERSATION, CAROL)
        await service.cancel(with_carol.id, CAROL)

        records, total = await service.list_for_user(ALICE)
        assert total == 2

        records, total = await service.list_for_user(ALICE, page=2, limit=1)
        assert total == 2
        assert [r.id for r in records] == [with_bob.id]

        records, total = await service.list_for_user(ALICE, TransactionStatus.CANCELLED)
        assert (total, [r.id for r in records]) == (1, [with_carol.id])

        records, total = await service.list_for_user(BOB, TransactionStatus.CANCELLED)
        assert (records, total) == ([], 0)

    async def test_events_for_participants_only(self, service) -> None:
        record = await service.open_transaction(CONVERSATION, ALICE)
        await service.deny(record.id, BOB)

        events = await service.get_events(record.id, ALICE)
        assert [e.event_type for e in events] == [
            EventType.TRANSACTION_OPENED.value,
            EventType.TRANSACTION_DENIED.value,
        ]
        assert events[1].actor == BOB
        with pytest.raises(ForbiddenActionError):
            await service.get_events(record.id, MALLORY)


# ---------------------------------------------------------------------------
# End-to-end scenarios
# ---------------------------------------------------------------------------


class TestScenarios:
    async def test_open_then_counterparty_confirms(self, service) -> None:
        record = await service.open_transaction(CONVERSATION, ALICE)
        assert record.status is TransactionStatus.PENDING

        confirmed = await service.confirm(record.id, BOB)
        assert confirmed.status is TransactionStatus.CONFIRMED
        assert confirmed.initiator_confirmed and confirmed.counterparty_confirmed

    async def test_deny_then_sweep_auto_confirms(self, service, sweeper, store) -> None:
        record = await service.open_transaction(CONVERSATION, ALICE)
        await service.deny(record.id, BOB)

        report = await sweeper.run_once(now=record.auto_resolve_at)

        stored = await store.get(record.id)
        assert report.confirmed == 1
        assert stored.status is TransactionStatus.CONFIRMED
        assert stored.initiator_confirmed and stored.counterparty_confirmed

    async def test_disputed_survives_sweep(self, service, sweeper, store) -> None:
        record = await service.open_transaction(CONVERSATION, ALICE)
        await service.dispute(record.id, ALICE, "quality", "item damaged")

        await sweeper.run_once(now=record.auto_resolve_at + timedelta(days=1))

        assert (await store.get(record.id)).status is TransactionStatus.DISPUTED

    async def test_cancel_by_counterparty_then_initiator(self, service) -> None:
        record = await service.open_transaction(CONVERSATION, ALICE)
        with pytest.raises(ForbiddenActionError):
            await service.cancel(record.id, BOB)
        assert (await service.cancel(record.id, ALICE)).status is TransactionStatus.CANCELLED
