"""Transaction State Machine Guard.

Uses python-statemachine to enforce legal state transitions at the domain
level. The confirmation service validates every transition here before it
issues the guarded store update, so a bug in the service cannot move a
transaction out of a terminal state.

Transition table:
    pending -> confirmed   (both_confirmed)      both parties confirmed
    pending -> confirmed   (auto_resolved)       waiting period elapsed
    pending -> disputed    (party_disputes)      either party
    pending -> cancelled   (initiator_cancels)   initiator only
"""

from __future__ import annotations

from statemachine import State, StateMachine
from statemachine.exceptions import TransitionNotAllowed

from deal_confirmation.domain.exceptions import InvalidStateError


class TransactionStateMachine(StateMachine):
    """State machine that guards the confirmation transaction lifecycle.

    Usage:
        sm = TransactionStateMachine(current_status="pending")
        sm.both_confirmed()  # transitions to confirmed
        sm.status            # "confirmed"
    """

    # --- States ---
    pending = State("pending", value="pending", initial=True)
    confirmed = State("confirmed", value="confirmed", final=True)
    disputed = State("disputed", value="disputed", final=True)
    cancelled = State("cancelled", value="cancelled", final=True)

    # --- Events / Transitions ---
    both_confirmed = pending.to(confirmed)
    auto_resolved = pending.to(confirmed)
    party_disputes = pending.to(disputed)
    initiator_cancels = pending.to(cancelled)

    def __init__(self, current_status: str = "pending") -> None:
        valid_values = {s.value for s in self.states}
        if current_status not in valid_values:
            valid = ", ".join(sorted(valid_values))
            raise ValueError(
                f"Unknown status '{current_status}'. Valid states: {valid}"
            )
        super().__init__(start_value=current_status)

    @property
    def status(self) -> str:
        """Return the current state value as a string (matches TransactionStatus)."""
        return str(self.current_state.value)

    def get_allowed_events(self) -> list[str]:
        """Return a list of event names that can fire from the current state."""
        return [event.id for event in self.allowed_events]


def validate_transition(current_status: str, event_name: str) -> str:
    """Validate a state transition and return the new status.

    Raises:
        TransitionNotAllowed: If the transition is illegal.
        ValueError: If the status or event name is invalid.
    """
    sm = TransactionStateMachine(current_status=current_status)

    event_method = getattr(sm, event_name, None)
    if event_method is None or not callable(event_method):
        raise ValueError(
            f"Unknown event '{event_name}'. "
            f"Allowed events from {current_status}: {sm.get_allowed_events()}"
        )

    event_method()
    return sm.status


def guard_transition(
    transaction_id: str,
    current_status: str,
    event_name: str,
    operation: str | None = None,
) -> str:
    """Like validate_transition, but raises the domain InvalidStateError."""
    try:
        return validate_transition(current_status, event_name)
    except TransitionNotAllowed as err:
        raise InvalidStateError(
            transaction_id, current_status, operation or event_name
        ) from err
