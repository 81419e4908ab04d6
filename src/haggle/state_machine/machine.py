"""NegotiationStateMachine class with trigger, history, and valid_events."""

from __future__ import annotations

from haggle.domain.errors import PhaseTransitionError
from haggle.domain.types import Outcome
from haggle.state_machine.transitions import (
    PHASE_OUTCOMES,
    TERMINAL_PHASES,
    TRANSITIONS,
    NegotiationPhase,
)


class NegotiationStateMachine:
    """Finite state machine governing one negotiation run.

    Tracks the current phase, validates transitions against the transition
    map, and records every phase change for the run's audit trail.

    Usage::

        sm = NegotiationStateMachine()
        sm.trigger("preconditions_met")  # -> OPENING_BID
        sm.trigger("bid_placed")         # -> SELLER_TURN
        sm.trigger("seller_accept")      # -> AGREED (terminal)
    """

    def __init__(
        self,
        initial_phase: NegotiationPhase = NegotiationPhase.START,
    ) -> None:
        self._phase: NegotiationPhase = initial_phase
        self._history: list[tuple[NegotiationPhase, str, NegotiationPhase]] = []

    @property
    def phase(self) -> NegotiationPhase:
        """Return the current phase."""
        return self._phase

    @property
    def is_terminal(self) -> bool:
        """Return True if the run has finished."""
        return self._phase in TERMINAL_PHASES

    @property
    def outcome(self) -> Outcome | None:
        """Return the caller-facing outcome, or ``None`` while the run is live."""
        return PHASE_OUTCOMES.get(self._phase)

    @property
    def history(self) -> list[tuple[NegotiationPhase, str, NegotiationPhase]]:
        """Return a copy of the transition history.

        Each entry is a ``(from_phase, event, to_phase)`` tuple recorded in
        chronological order.
        """
        return list(self._history)

    def trigger(self, event: str) -> NegotiationPhase:
        """Apply an event to the current phase and transition.

        Args:
            event: The event string (e.g. ``"bid_placed"``).

        Returns:
            The new phase after the transition.

        Raises:
            PhaseTransitionError: If the transition is not allowed from the
                current phase, or if the run has already finished.
        """
        key = (self._phase, event)
        if self.is_terminal or key not in TRANSITIONS:
            raise PhaseTransitionError(self._phase, event)

        old_phase = self._phase
        new_phase = TRANSITIONS[key]
        self._history.append((old_phase, event, new_phase))
        self._phase = new_phase
        return new_phase

    def get_valid_events(self) -> list[str]:
        """Return a sorted list of events valid from the current phase."""
        if self.is_terminal:
            return []
        return sorted(event for phase, event in TRANSITIONS if phase == self._phase)
