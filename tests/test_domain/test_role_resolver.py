"""Tests for the Role Resolver."""

from __future__ import annotations

import pytest
from conftest import ALICE, BOB, CONVERSATION, MALLORY

from deal_confirmation.domain.enums import PartyRole
from deal_confirmation.domain.exceptions import ConversationNotFoundError
from deal_confirmation.domain.role_resolver import RoleResolver, other_in, role_in

PAIR = (ALICE, BOB)


class TestRoleIn:
    def test_outsider_is_none(self) -> None:
        assert role_in(PAIR, MALLORY) is PartyRole.NONE
        assert role_in(PAIR, MALLORY, initiated_by=ALICE) is PartyRole.NONE

    def test_participant_without_transaction_is_prospective_initiator(self) -> None:
        assert role_in(PAIR, ALICE) is PartyRole.INITIATOR
        assert role_in(PAIR, BOB) is PartyRole.INITIATOR

    def test_roles_follow_initiated_by(self) -> None:
        assert role_in(PAIR, BOB, initiated_by=BOB) is PartyRole.INITIATOR
        assert role_in(PAIR, ALICE, initiated_by=BOB) is PartyRole.COUNTERPARTY

    def test_other_in(self) -> None:
        assert other_in(PAIR, ALICE) == BOB
        assert other_in(PAIR, BOB) == ALICE
        assert other_in(PAIR, MALLORY) is None


class TestRoleResolver:
    async def test_resolve_role(self, directory) -> None:
        resolver = RoleResolver(directory)
        assert await resolver.resolve_role(CONVERSATION, ALICE) is PartyRole.INITIATOR
        assert (
            await resolver.resolve_role(CONVERSATION, BOB, initiated_by=ALICE)
            is PartyRole.COUNTERPARTY
        )
        assert await resolver.resolve_role(CONVERSATION, MALLORY) is PartyRole.NONE

    async def test_other_party(self, directory) -> None:
        resolver = RoleResolver(directory)
        assert await resolver.other_party(CONVERSATION, BOB) == ALICE

    async def test_unknown_conversation(self, directory) -> None:
        resolver = RoleResolver(directory)
        with pytest.raises(ConversationNotFoundError) as exc_info:
            await resolver.resolve_role("conv-missing", ALICE)
        assert exc_info.value.code == "NOT_FOUND"
