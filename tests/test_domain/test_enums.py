"""Tests for domain enumerations."""

from __future__ import annotations

from deal_confirmation.domain.enums import (
    EventType,
    NotificationType,
    PartyRole,
    TransactionStatus,
)


class TestTransactionStatus:
    def test_all_statuses_exist(self) -> None:
        expected = {"pending", "confirmed", "disputed", "cancelled"}
        actual = {s.value for s in TransactionStatus}
        assert actual == expected

    def test_status_is_str_enum(self) -> None:
        assert isinstance(TransactionStatus.PENDING, str)
        assert TransactionStatus.CONFIRMED == "confirmed"


class TestPartyRole:
    def test_roles(self) -> None:
        assert PartyRole.INITIATOR == "initiator"
        assert PartyRole.COUNTERPARTY == "counterparty"
        assert PartyRole.NONE == "none"


class TestEventType:
    def test_all_event_types_exist(self) -> None:
        # 5 lifecycle + 3 contest
        assert len(EventType) == 8

    def test_event_type_is_str_enum(self) -> None:
        assert isinstance(EventType.TRANSACTION_OPENED, str)


class TestNotificationType:
    def test_values_are_snake_case(self) -> None:
        assert NotificationType.TRANSACTION_INITIATED == "transaction_initiated"
        assert NotificationType.TRANSACTION_AUTO_CONFIRMED == "transaction_auto_confirmed"
