"""Transition map defining all valid (status, event) -> status mappings."""

from enum import StrEnum

from dropit.domain.types import TERMINAL_STATUSES, NegotiationStatus


class NegotiationEvent(StrEnum):
    """Events that can trigger status transitions in a negotiation."""

    CALL_PLACED = "call_placed"
    PLACEMENT_FAILED = "placement_failed"
    CALL_ENDED = "call_ended"
    CALL_FAILED = "call_failed"
    RESULT_LOGGED = "result_logged"


# All valid (current_status, event_string) -> next_status mappings.
# Any pair not in this dict is an invalid transition.
TRANSITIONS: dict[tuple[NegotiationStatus, str], NegotiationStatus] = {
    # From STARTING
    (NegotiationStatus.STARTING, NegotiationEvent.CALL_PLACED): NegotiationStatus.IN_PROGRESS,
    (NegotiationStatus.STARTING, NegotiationEvent.PLACEMENT_FAILED): NegotiationStatus.FAILED,
    # Provider webhook can beat the placement response back to us
    (NegotiationStatus.STARTING, NegotiationEvent.RESULT_LOGGED): NegotiationStatus.COMPLETED,
    # From IN_PROGRESS
    (NegotiationStatus.IN_PROGRESS, NegotiationEvent.CALL_ENDED): NegotiationStatus.COMPLETED,
    (NegotiationStatus.IN_PROGRESS, NegotiationEvent.CALL_FAILED): NegotiationStatus.FAILED,
    (NegotiationStatus.IN_PROGRESS, NegotiationEvent.RESULT_LOGGED): NegotiationStatus.COMPLETED,
}

# Statuses that reject all events -- no outgoing transitions allowed.
TERMINAL_STATES: frozenset[NegotiationStatus] = TERMINAL_STATUSES
