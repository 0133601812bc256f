"""Negotiation status machine and phase inference."""

from dropit.state_machine.machine import NegotiationStateMachine
from dropit.state_machine.phases import (
    CONNECTED_THRESHOLD_SECONDS,
    PHASE_ORDER,
    advance_phase,
    infer_phase,
    phase_for_status,
)
from dropit.state_machine.transitions import (
    TERMINAL_STATES,
    TRANSITIONS,
    NegotiationEvent,
)

__all__ = [
    "CONNECTED_THRESHOLD_SECONDS",
    "PHASE_ORDER",
    "TERMINAL_STATES",
    "TRANSITIONS",
    "NegotiationEvent",
    "NegotiationStateMachine",
    "advance_phase",
    "infer_phase",
    "phase_for_status",
]
