"""Multi-round negotiation between a buyer agent and a seller agent.

Drives one run for one (product, buyer) pair: check preconditions, ask the
buyer agent for an opening bid, then alternate seller and buyer decisions
until a terminal outcome or the round limit.  Every price that is put on
the table is written to the offer ledger as it happens, so a run that
fails halfway leaves its earlier offers in place.

A deal reached here is never final: the agreed offer is parked in
``pending_confirmation`` for the humans on both sides.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from decimal import Decimal

import structlog

from haggle.domain.errors import OracleError
from haggle.domain.models import (
    Identity,
    NegotiationLogEntry,
    NegotiationResult,
    NewOffer,
    Offer,
    OfferPatch,
    Product,
)
from haggle.domain.types import Decision, OfferStatus, Outcome, ProductStatus, Role
from haggle.ledger.store import OfferLedger
from haggle.observability.metrics import NEGOTIATIONS
from haggle.oracle.protocol import DecisionOracle
from haggle.state_machine import NegotiationEvent, NegotiationStateMachine

logger = structlog.get_logger()

DIRECT_MAX_ROUNDS = 5
SCAN_MAX_ROUNDS = 3

PRODUCT_UNAVAILABLE = "product not found or inactive"
OWN_LISTING = "cannot negotiate own listing"
SELLER_OFFLINE = "seller agent offline"
BUYER_OFFLINE = "buyer agent offline"
NOT_INTERESTED = "not interested"

# Log actions for the buyer's opening move.
ACTION_BID = "bid"
ACTION_SKIP = "skip"

_SELLER_EVENTS = {
    Decision.ACCEPT: NegotiationEvent.SELLER_ACCEPT,
    Decision.REJECT: NegotiationEvent.SELLER_REJECT,
    Decision.COUNTER: NegotiationEvent.SELLER_COUNTER,
}

_BUYER_EVENTS = {
    Decision.ACCEPT: NegotiationEvent.BUYER_ACCEPT,
    Decision.REJECT: NegotiationEvent.BUYER_REJECT,
    Decision.COUNTER: NegotiationEvent.BUYER_COUNTER,
}


def check_preconditions(
    buyer: Identity,
    seller: Identity | None,
    product: Product | None,
) -> str | None:
    """Return why a run may not start, or ``None`` if it may.

    Checks, in order: the product exists and is active, the buyer is not
    the seller, and both agents hold an unexpired credential.
    """
    if product is None or product.status != ProductStatus.ACTIVE:
        return PRODUCT_UNAVAILABLE
    if buyer.id == product.seller_id:
        return OWN_LISTING
    if seller is None or seller.is_expired():
        return SELLER_OFFLINE
    if buyer.is_expired():
        return BUYER_OFFLINE
    return None


@dataclass
class _Session:
    """Mutable bookkeeping for one run."""

    buyer: Identity
    max_rounds: int
    product: Product | None = None
    seller: Identity | None = None
    machine: NegotiationStateMachine = field(default_factory=NegotiationStateMachine)
    logs: list[NegotiationLogEntry] = field(default_factory=list)
    round: int = 0
    offer: Offer | None = None

    def log(
        self,
        role: Role,
        action: str,
        price: Decimal | None = None,
        reason: str | None = None,
    ) -> None:
        self.logs.append(
            NegotiationLogEntry(role=role, action=action, price=price, reason=reason or None)
        )


class NegotiationOrchestrator:
    """Run buyer/seller negotiations against a decision oracle.

    Args:
        oracle: Supplies every buyer and seller decision.
        ledger: Receives every offer the run puts on the table.
    """

    def __init__(self, oracle: DecisionOracle, ledger: OfferLedger) -> None:
        self._oracle = oracle
        self._ledger = ledger

    async def run(
        self,
        buyer: Identity,
        seller: Identity | None,
        product: Product | None,
        max_rounds: int = DIRECT_MAX_ROUNDS,
    ) -> NegotiationResult:
        """Negotiate *product* on behalf of *buyer* until a terminal outcome.

        Args:
            buyer: The buyer agent's credential.
            seller: The seller agent's credential, or ``None`` if unknown.
            product: The listing, or ``None`` if it was not found.
            max_rounds: Number of seller turns before the run gives up.

        Returns:
            The terminal ``NegotiationResult``.  Precondition failures and
            oracle failures are reported as outcomes, not raised.

        Raises:
            LedgerValidationError: If the ledger refuses a write.
            InvalidTransitionError: If the ledger refuses a status change.
        """
        session = _Session(buyer=buyer, max_rounds=max_rounds, product=product, seller=seller)
        started = time.monotonic()

        refusal = check_preconditions(buyer, seller, product)
        if refusal is not None:
            session.machine.trigger(NegotiationEvent.PRECONDITIONS_FAILED)
            return self._finish(session, started, reason=refusal)
        session.machine.trigger(NegotiationEvent.PRECONDITIONS_MET)

        try:
            return await self._negotiate(session, product, seller, started)
        except OracleError as exc:
            session.machine.trigger(NegotiationEvent.ORACLE_FAILED)
            logger.warning(
                "negotiation_oracle_failed",
                product_id=product.id if product else None,
                buyer_id=buyer.id,
                operation=exc.operation,
                round=session.round,
                error=str(exc),
            )
            return self._finish(
                session,
                started,
                offer_id=session.offer.id if session.offer else None,
                reason=str(exc),
            )

    # ------------------------------------------------------------------
    # Phases
    # ------------------------------------------------------------------

    async def _negotiate(
        self,
        session: _Session,
        product: Product,
        seller: Identity,
        started: float,
    ) -> NegotiationResult:
        opening = await self._oracle.decide_buyer_open(
            session.buyer.access_token,
            product.title,
            product.list_price,
            product.min_price,
        )
        if not opening.interested:
            reason = opening.reason or NOT_INTERESTED
            session.log(Role.BUYER, ACTION_SKIP, reason=reason)
            session.machine.trigger(NegotiationEvent.NOT_INTERESTED)
            return self._finish(session, started, reason=reason)

        session.offer = self._ledger.create(
            NewOffer(
                product_id=product.id,
                buyer_id=session.buyer.id,
                price=opening.suggested_price,
                message=opening.reason or None,
                status=OfferStatus.PENDING,
            )
        )
        session.log(Role.BUYER, ACTION_BID, opening.suggested_price, opening.reason)
        session.machine.trigger(NegotiationEvent.BID_PLACED)

        for round_no in range(1, session.max_rounds + 1):
            session.round = round_no
            offer = session.offer

            # Seller's turn
            answer = await self._oracle.decide_seller(
                seller.access_token,
                product.title,
                product.list_price,
                product.min_price,
                offer.price,
            )
            session.log(Role.SELLER, answer.decision.value, answer.counter_price, answer.reason)
            session.machine.trigger(_SELLER_EVENTS[answer.decision])

            if answer.decision == Decision.ACCEPT:
                session.offer = self._ledger.update(
                    offer.id,
                    OfferPatch(
                        status=OfferStatus.PENDING_CONFIRMATION,
                        seller_decision=Decision.ACCEPT,
                    ),
                )
                return self._finish(
                    session, started, final_price=offer.price, offer_id=offer.id
                )

            if answer.decision == Decision.REJECT:
                session.offer = self._ledger.update(
                    offer.id,
                    OfferPatch(status=OfferStatus.REJECTED, seller_decision=Decision.REJECT),
                )
                return self._finish(
                    session, started, offer_id=offer.id, reason=answer.reason or None
                )

            counter_price = answer.counter_price
            if counter_price is None:
                logger.warning(
                    "seller_counter_without_price",
                    product_id=product.id,
                    offer_id=offer.id,
                    fallback_price=str(offer.price),
                )
                counter_price = offer.price
            self._ledger.update(
                offer.id,
                OfferPatch(seller_decision=Decision.COUNTER, counter_price=counter_price),
            )

            # Buyer's turn
            reply = await self._oracle.decide_buyer_counter(
                session.buyer.access_token,
                product.title,
                product.list_price,
                counter_price,
            )
            session.log(Role.BUYER, reply.decision.value, reply.counter_price, reply.reason)
            session.machine.trigger(_BUYER_EVENTS[reply.decision])

            if reply.decision == Decision.ACCEPT:
                session.offer = self._ledger.create(
                    NewOffer(
                        product_id=product.id,
                        buyer_id=session.buyer.id,
                        price=counter_price,
                        message=reply.reason or None,
                        status=OfferStatus.PENDING_CONFIRMATION,
                        seller_decision=Decision.ACCEPT,
                        in_reply_to_id=offer.id,
                    )
                )
                return self._finish(
                    session,
                    started,
                    final_price=counter_price,
                    offer_id=session.offer.id,
                )

            if reply.decision == Decision.REJECT:
                return self._finish(
                    session, started, offer_id=offer.id, reason=reply.reason or None
                )

            session.offer = self._ledger.create(
                NewOffer(
                    product_id=product.id,
                    buyer_id=session.buyer.id,
                    price=reply.counter_price or counter_price,
                    message=reply.reason or None,
                    status=OfferStatus.PENDING,
                    in_reply_to_id=offer.id,
                )
            )

        session.machine.trigger(NegotiationEvent.ROUND_LIMIT)
        return self._finish(
            session,
            started,
            offer_id=session.offer.id,
            reason=f"no agreement after {session.max_rounds} rounds",
        )

    # ------------------------------------------------------------------
    # Result
    # ------------------------------------------------------------------

    def _finish(
        self,
        session: _Session,
        started: float,
        *,
        final_price: Decimal | None = None,
        offer_id: str | None = None,
        reason: str | None = None,
    ) -> NegotiationResult:
        outcome = session.machine.outcome
        if outcome is None:
            raise RuntimeError(f"run finished in non-terminal phase {session.machine.phase}")

        result = NegotiationResult(
            outcome=outcome,
            rounds=session.round,
            final_price=final_price,
            offer_id=offer_id,
            reason=reason,
            logs=session.logs,
        )
        NEGOTIATIONS.labels(outcome=outcome.value).inc()

        log = logger.warning if outcome == Outcome.ERROR else logger.info
        log(
            "negotiation_finished",
            product_id=session.product.id if session.product else None,
            buyer_id=session.buyer.id,
            outcome=outcome.value,
            rounds=result.rounds,
            final_price=str(final_price) if final_price is not None else None,
            offer_id=offer_id,
            duration_ms=round((time.monotonic() - started) * 1000),
        )
        return result
