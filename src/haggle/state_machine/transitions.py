"""Transition map defining all valid (phase, event) -> phase mappings for a run."""

from enum import StrEnum

from haggle.domain.types import Outcome


class NegotiationPhase(StrEnum):
    """Where a single negotiation run currently stands."""

    START = "start"
    OPENING_BID = "opening_bid"
    SELLER_TURN = "seller_turn"
    BUYER_TURN = "buyer_turn"
    AGREED = "agreed"
    REJECTED = "rejected"
    SKIPPED = "skipped"
    NO_DEAL = "no_deal"
    FAILED = "failed"
    PRECONDITION_FAILED = "precondition_failed"


class NegotiationEvent(StrEnum):
    """Events that move a run between phases."""

    PRECONDITIONS_MET = "preconditions_met"
    PRECONDITIONS_FAILED = "preconditions_failed"
    BID_PLACED = "bid_placed"
    NOT_INTERESTED = "not_interested"
    SELLER_ACCEPT = "seller_accept"
    SELLER_REJECT = "seller_reject"
    SELLER_COUNTER = "seller_counter"
    BUYER_ACCEPT = "buyer_accept"
    BUYER_REJECT = "buyer_reject"
    BUYER_COUNTER = "buyer_counter"
    ROUND_LIMIT = "round_limit"
    ORACLE_FAILED = "oracle_failed"


# All valid (current_phase, event) -> next_phase mappings.
# Any pair not in this dict is an invalid transition.
TRANSITIONS: dict[tuple[NegotiationPhase, str], NegotiationPhase] = {
    # From START
    (NegotiationPhase.START, NegotiationEvent.PRECONDITIONS_MET): NegotiationPhase.OPENING_BID,
    (NegotiationPhase.START, NegotiationEvent.PRECONDITIONS_FAILED): (
        NegotiationPhase.PRECONDITION_FAILED
    ),
    # From OPENING_BID
    (NegotiationPhase.OPENING_BID, NegotiationEvent.BID_PLACED): NegotiationPhase.SELLER_TURN,
    (NegotiationPhase.OPENING_BID, NegotiationEvent.NOT_INTERESTED): NegotiationPhase.SKIPPED,
    (NegotiationPhase.OPENING_BID, NegotiationEvent.ORACLE_FAILED): NegotiationPhase.FAILED,
    # From SELLER_TURN
    (NegotiationPhase.SELLER_TURN, NegotiationEvent.SELLER_ACCEPT): NegotiationPhase.AGREED,
    (NegotiationPhase.SELLER_TURN, NegotiationEvent.SELLER_REJECT): NegotiationPhase.REJECTED,
    (NegotiationPhase.SELLER_TURN, NegotiationEvent.SELLER_COUNTER): NegotiationPhase.BUYER_TURN,
    (NegotiationPhase.SELLER_TURN, NegotiationEvent.ROUND_LIMIT): NegotiationPhase.NO_DEAL,
    (NegotiationPhase.SELLER_TURN, NegotiationEvent.ORACLE_FAILED): NegotiationPhase.FAILED,
    # From BUYER_TURN
    (NegotiationPhase.BUYER_TURN, NegotiationEvent.BUYER_ACCEPT): NegotiationPhase.AGREED,
    (NegotiationPhase.BUYER_TURN, NegotiationEvent.BUYER_REJECT): NegotiationPhase.REJECTED,
    (NegotiationPhase.BUYER_TURN, NegotiationEvent.BUYER_COUNTER): NegotiationPhase.SELLER_TURN,
    (NegotiationPhase.BUYER_TURN, NegotiationEvent.ORACLE_FAILED): NegotiationPhase.FAILED,
}

# Phases that reject all events -- no outgoing transitions allowed.
TERMINAL_PHASES: frozenset[NegotiationPhase] = frozenset(
    {
        NegotiationPhase.AGREED,
        NegotiationPhase.REJECTED,
        NegotiationPhase.SKIPPED,
        NegotiationPhase.NO_DEAL,
        NegotiationPhase.FAILED,
        NegotiationPhase.PRECONDITION_FAILED,
    }
)

# Outcome reported to the caller for each terminal phase.
PHASE_OUTCOMES: dict[NegotiationPhase, Outcome] = {
    NegotiationPhase.AGREED: Outcome.PENDING_CONFIRMATION,
    NegotiationPhase.REJECTED: Outcome.REJECTED,
    NegotiationPhase.SKIPPED: Outcome.SKIPPED,
    NegotiationPhase.NO_DEAL: Outcome.NO_DEAL,
    NegotiationPhase.FAILED: Outcome.ERROR,
    NegotiationPhase.PRECONDITION_FAILED: Outcome.REJECTED_PRECONDITION,
}
