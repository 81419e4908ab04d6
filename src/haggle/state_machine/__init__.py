"""Negotiation run state machine with transition validation."""

from haggle.state_machine.machine import NegotiationStateMachine
from haggle.state_machine.transitions import (
    PHASE_OUTCOMES,
    TERMINAL_PHASES,
    TRANSITIONS,
    NegotiationEvent,
    NegotiationPhase,
)

__all__ = [
    "PHASE_OUTCOMES",
    "TERMINAL_PHASES",
    "TRANSITIONS",
    "NegotiationEvent",
    "NegotiationPhase",
    "NegotiationStateMachine",
]
