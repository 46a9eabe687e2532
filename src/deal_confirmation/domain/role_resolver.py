"""Role Resolver — who is the initiator, who is the counterparty.

Conversations may be started from a listing (seller is the listing owner) or
directly between two users. Both cases reduce to the same question for the
confirmation engine: is this user one of the two participants, and if a
transaction exists, did they open it? The answer is derived only from the
conversation directory and the transaction's ``initiated_by``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from deal_confirmation.domain.enums import PartyRole
from deal_confirmation.domain.exceptions import ConversationNotFoundError

if TYPE_CHECKING:
    from deal_confirmation.domain.collaborators import ConversationDirectory


def role_in(
    participants: tuple[str, str],
    user_id: str,
    initiated_by: str | None = None,
) -> PartyRole:
    """Pure role rule over an already fetched participant pair."""
    if user_id not in participants:
        return PartyRole.NONE
    if initiated_by is None or initiated_by == user_id:
        return PartyRole.INITIATOR
    return PartyRole.COUNTERPARTY


def other_in(participants: tuple[str, str], user_id: str) -> str | None:
    """The participant who is not ``user_id`` (None for outsiders)."""
    first, second = participants
    if user_id == first:
        return second
    if user_id == second:
        return first
    return None


class RoleResolver:
    """Read-only role lookup over the conversation directory."""

    def __init__(self, directory: ConversationDirectory) -> None:
        self._directory = directory

    async def participants(self, conversation_id: str) -> tuple[str, str]:
        """Return the conversation's two participants or raise."""
        pair = await self._directory.get_participants(conversation_id)
        if pair is None:
            raise ConversationNotFoundError(conversation_id)
        return pair

    async def resolve_role(
        self,
        conversation_id: str,
        user_id: str,
        initiated_by: str | None = None,
    ) -> PartyRole:
        """Resolve ``user_id``'s role in ``conversation_id``.

        Args:
            conversation_id: The conversation to look up.
            user_id: The acting user.
            initiated_by: Opener of the existing transaction, or None when
                no transaction exists yet (the actor would be opening one).

        Returns:
            PartyRole.NONE for non-participants, otherwise INITIATOR or
            COUNTERPARTY.

        Raises:
            ConversationNotFoundError: If the directory does not know the
                conversation.
        """
        return role_in(await self.participants(conversation_id), user_id, initiated_by)

    async def other_party(self, conversation_id: str, user_id: str) -> str | None:
        """Return the participant who is not ``user_id`` (None if not a participant)."""
        return other_in(await self.participants(conversation_id), user_id)
