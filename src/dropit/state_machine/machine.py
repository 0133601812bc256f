"""NegotiationStateMachine class with trigger, history, and can_trigger."""

from __future__ import annotations

from dropit.domain.errors import InvalidTransitionError
from dropit.domain.types import NegotiationStatus
from dropit.state_machine.transitions import TERMINAL_STATES, TRANSITIONS


class NegotiationStateMachine:
    """Finite state machine governing the negotiation lifecycle.

    Tracks the current status, validates transitions against the transition
    map, and records a full history of all status changes.

    Usage::

        sm = NegotiationStateMachine()
        sm.trigger("call_placed")   # -> IN_PROGRESS
        sm.trigger("call_ended")    # -> COMPLETED (terminal)
    """

    def __init__(
        self,
        initial_state: NegotiationStatus = NegotiationStatus.STARTING,
    ) -> None:
        self._state: NegotiationStatus = initial_state
        self._history: list[tuple[NegotiationStatus, str, NegotiationStatus]] = []

    @property
    def state(self) -> NegotiationStatus:
        """Return the current negotiation status."""
        return self._state

    @property
    def is_terminal(self) -> bool:
        """Return True if the machine is in a terminal status (COMPLETED or FAILED)."""
        return self._state in TERMINAL_STATES

    @property
    def history(self) -> list[tuple[NegotiationStatus, str, NegotiationStatus]]:
        """Return a copy of the transition history.

        Each entry is a ``(from_status, event, to_status)`` tuple recorded in
        chronological order.
        """
        return list(self._history)

    def trigger(self, event: str) -> NegotiationStatus:
        """Apply an event to the current status and transition.

        Args:
            event: The event string (e.g. ``"call_placed"``).

        Returns:
            The new status after the transition.

        Raises:
            InvalidTransitionError: If the transition is not allowed from
                the current status, or if the machine is in a terminal status.
        """
        if self.is_terminal:
            raise InvalidTransitionError(self._state, event)

        key = (self._state, event)
        if key not in TRANSITIONS:
            raise InvalidTransitionError(self._state, event)

        old_state = self._state
        new_state = TRANSITIONS[key]
        self._history.append((old_state, event, new_state))
        self._state = new_state
        return new_state

    def can_trigger(self, event: str) -> bool:
        """Return True if *event* is valid from the current status."""
        return not self.is_terminal and (self._state, event) in TRANSITIONS
