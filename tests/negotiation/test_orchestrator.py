"""Tests for the buyer/seller negotiation orchestrator with a scripted oracle."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from decimal import Decimal

import pytest
from prometheus_client import REGISTRY

from haggle.domain.errors import (
    LedgerValidationError,
    OracleMalformedResponseError,
    OracleUnavailableError,
)
from haggle.domain.models import Identity, Product, User
from haggle.domain.types import Decision, OfferStatus, Outcome, ProductStatus, Role
from haggle.ledger.store import OfferLedger
from haggle.negotiation.orchestrator import (
    BUYER_OFFLINE,
    DIRECT_MAX_ROUNDS,
    OWN_LISTING,
    PRODUCT_UNAVAILABLE,
    SELLER_OFFLINE,
    NegotiationOrchestrator,
    _Session,
    check_preconditions,
)
from haggle.oracle.models import BuyerOpening, OracleDecision


def bid(price: str | None, reason: str = "") -> BuyerOpening:
    return BuyerOpening(suggested_price=Decimal(price) if price else None, reason=reason)


def accept(reason: str = "") -> OracleDecision:
    return OracleDecision(decision=Decision.ACCEPT, reason=reason)


def reject(reason: str = "") -> OracleDecision:
    return OracleDecision(decision=Decision.REJECT, reason=reason)


def counter(price: str | None, reason: str = "") -> OracleDecision:
    return OracleDecision(
        decision=Decision.COUNTER,
        counter_price=Decimal(price) if price else None,
        reason=reason,
    )


def _negotiations(outcome: Outcome) -> float:
    value = REGISTRY.get_sample_value("haggle_negotiations_total", {"outcome": outcome.value})
    return value or 0.0


@pytest.fixture
def buyer(buyer_user: User) -> Identity:
    return buyer_user.identity()


@pytest.fixture
def seller(seller_user: User) -> Identity:
    return seller_user.identity()


# ---------------------------------------------------------------------------
# Preconditions
# ---------------------------------------------------------------------------


class TestPreconditions:
    def test_all_met(self, buyer: Identity, seller: Identity, product: Product) -> None:
        assert check_preconditions(buyer, seller, product) is None

    def test_missing_product(self, buyer: Identity, seller: Identity) -> None:
        assert check_preconditions(buyer, seller, None) == PRODUCT_UNAVAILABLE

    def test_sold_product(self, buyer: Identity, seller: Identity, product: Product) -> None:
        sold = product.model_copy(update={"status": ProductStatus.SOLD})
        assert check_preconditions(buyer, seller, sold) == PRODUCT_UNAVAILABLE

    def test_own_listing(self, seller: Identity, product: Product) -> None:
        assert check_preconditions(seller, seller, product) == OWN_LISTING

    def test_seller_expired(self, buyer: Identity, seller: Identity, product: Product) -> None:
        expired = seller.model_copy(
            update={"token_expires_at": datetime.now(tz=UTC) - timedelta(seconds=1)}
        )
        assert check_preconditions(buyer, expired, product) == SELLER_OFFLINE
        assert check_preconditions(buyer, None, product) == SELLER_OFFLINE

    def test_buyer_expired(self, buyer: Identity, seller: Identity, product: Product) -> None:
        expired = buyer.model_copy(
            update={"token_expires_at": datetime.now(tz=UTC) - timedelta(seconds=1)}
        )
        assert check_preconditions(expired, seller, product) == BUYER_OFFLINE

    @pytest.mark.anyio()
    async def test_self_negotiation_touches_nothing(
        self,
        offer_ledger: OfferLedger,
        seller: Identity,
        product: Product,
        scripted_oracle,
    ) -> None:
        oracle = scripted_oracle()
        before = _negotiations(Outcome.REJECTED_PRECONDITION)

        result = await NegotiationOrchestrator(oracle, offer_ledger).run(seller, seller, product)

        assert result.outcome == Outcome.REJECTED_PRECONDITION
        assert result.reason == OWN_LISTING
        assert result.rounds == 0
        assert result.logs == []
        assert oracle.calls == []
        assert offer_ledger.list_by_product(product.id) == []
        assert _negotiations(Outcome.REJECTED_PRECONDITION) == before + 1


# ---------------------------------------------------------------------------
# Terminal outcomes
# ---------------------------------------------------------------------------


class TestOutcomes:
    @pytest.mark.anyio()
    async def test_skipped_when_buyer_not_interested(
        self, offer_ledger, buyer, seller, product, scripted_oracle
    ) -> None:
        oracle = scripted_oracle(openings=[bid(None, "already have one")])

        result = await NegotiationOrchestrator(oracle, offer_ledger).run(buyer, seller, product)

        assert result.outcome == Outcome.SKIPPED
        assert result.rounds == 0
        assert result.reason == "already have one"
        assert [(log.role, log.action) for log in result.logs] == [(Role.BUYER, "skip")]
        assert oracle.operations() == ["decide_buyer_open"]
        assert offer_ledger.list_by_product(product.id) == []

    @pytest.mark.anyio()
    async def test_skip_without_reason_gets_default(
        self, offer_ledger, buyer, seller, product, scripted_oracle
    ) -> None:
        oracle = scripted_oracle(openings=[bid(None)])
        result = await NegotiationOrchestrator(oracle, offer_ledger).run(buyer, seller, product)
        assert result.reason == "not interested"

    @pytest.mark.anyio()
    async def test_immediate_seller_accept(
        self, offer_ledger, buyer, seller, product, scripted_oracle
    ) -> None:
        oracle = scripted_oracle(openings=[bid("80", "fair")], seller=[accept("ok")])

        result = await NegotiationOrchestrator(oracle, offer_ledger).run(buyer, seller, product)

        assert result.outcome == Outcome.PENDING_CONFIRMATION
        assert result.final_price == Decimal("80")
        assert result.rounds == 1
        offers = offer_ledger.list_by_product(product.id)
        assert len(offers) == 1
        assert offers[0].id == result.offer_id
        assert offers[0].status == OfferStatus.PENDING_CONFIRMATION
        assert offers[0].seller_decision == Decision.ACCEPT
        assert offers[0].message == "fair"
        assert [(log.role, log.action) for log in result.logs] == [
            (Role.BUYER, "bid"),
            (Role.SELLER, "accept"),
        ]

    @pytest.mark.anyio()
    async def test_seller_sees_floor_and_buyer_token_stays_with_buyer(
        self, offer_ledger, buyer, seller, product, scripted_oracle
    ) -> None:
        oracle = scripted_oracle(openings=[bid("80")], seller=[accept()])

        await NegotiationOrchestrator(oracle, offer_ledger).run(buyer, seller, product)

        (_, open_args), (_, seller_args) = oracle.calls
        assert open_args["token"] == "buyer-token"
        assert seller_args["token"] == "seller-token"
        assert seller_args["min_price"] == Decimal("70")
        assert seller_args["offer_price"] == Decimal("80")

    @pytest.mark.anyio()
    async def test_counter_then_buyer_accepts(
        self, offer_ledger, buyer, seller, product, scripted_oracle
    ) -> None:
        oracle = scripted_oracle(
            openings=[bid("80")],
            seller=[counter("90", "can do 90")],
            buyer=[accept("deal")],
        )

        result = await NegotiationOrchestrator(oracle, offer_ledger).run(buyer, seller, product)

        assert result.outcome == Outcome.PENDING_CONFIRMATION
        assert result.final_price == Decimal("90")
        assert result.rounds == 1
        latest, opening = offer_ledger.list_by_product(product.id)
        assert opening.price == Decimal("80")
        assert opening.status == OfferStatus.PENDING
        assert opening.seller_decision == Decision.COUNTER
        assert opening.counter_price == Decimal("90")
        assert latest.id == result.offer_id
        assert latest.price == Decimal("90")
        assert latest.status == OfferStatus.PENDING_CONFIRMATION
        assert latest.seller_decision == Decision.ACCEPT
        assert latest.in_reply_to_id == opening.id
        assert [(log.role, log.action, log.price) for log in result.logs] == [
            (Role.BUYER, "bid", Decimal("80")),
            (Role.SELLER, "counter", Decimal("90")),
            (Role.BUYER, "accept", None),
        ]

    @pytest.mark.anyio()
    async def test_seller_reject(
        self, offer_ledger, buyer, seller, product, scripted_oracle
    ) -> None:
        oracle = scripted_oracle(openings=[bid("40")], seller=[reject("too low")])

        result = await NegotiationOrchestrator(oracle, offer_ledger).run(buyer, seller, product)

        assert result.outcome == Outcome.REJECTED
        assert result.rounds == 1
        assert result.final_price is None
        (offer,) = offer_ledger.list_by_product(product.id)
        assert offer.id == result.offer_id
        assert offer.status == OfferStatus.REJECTED
        assert offer.seller_decision == Decision.REJECT

    @pytest.mark.anyio()
    async def test_buyer_walks_away_without_write(
        self, offer_ledger, buyer, seller, product, scripted_oracle
    ) -> None:
        oracle = scripted_oracle(
            openings=[bid("80")], seller=[counter("99")], buyer=[reject("too much")]
        )

        result = await NegotiationOrchestrator(oracle, offer_ledger).run(buyer, seller, product)

        assert result.outcome == Outcome.REJECTED
        assert result.reason == "too much"
        (offer,) = offer_ledger.list_by_product(product.id)
        assert offer.id == result.offer_id
        assert offer.status == OfferStatus.PENDING
        assert offer.counter_price == Decimal("99")

    @pytest.mark.anyio()
    async def test_no_deal_after_round_limit(
        self, offer_ledger, buyer, seller, product, scripted_oracle
    ) -> None:
        oracle = scripted_oracle(
            openings=[bid("80")],
            seller=[counter("95"), counter("93"), counter("91")],
            buyer=[counter("85"), counter("88"), counter("89")],
        )
        before = _negotiations(Outcome.NO_DEAL)

        result = await NegotiationOrchestrator(oracle, offer_ledger).run(
            buyer, seller, product, max_rounds=3
        )

        assert result.outcome == Outcome.NO_DEAL
        assert result.rounds == 3
        assert _negotiations(Outcome.NO_DEAL) == before + 1

        offers = offer_ledger.list_by_product(product.id)
        assert len(offers) == 4
        assert [o.price for o in offers] == [
            Decimal("89"),
            Decimal("88"),
            Decimal("85"),
            Decimal("80"),
        ]
        assert offers[0].id == result.offer_id
        assert all(o.status == OfferStatus.PENDING for o in offers)

        # Following in_reply_to_id from the newest offer visits every offer once.
        by_id = {o.id: o for o in offers}
        seen: list[str] = []
        cursor = offers[0]
        while cursor is not None:
            assert cursor.id not in seen
            seen.append(cursor.id)
            cursor = by_id.get(cursor.in_reply_to_id) if cursor.in_reply_to_id else None
        assert seen == [o.id for o in offers]

        assert len(result.logs) == 1 + 2 * 3

    @pytest.mark.anyio()
    async def test_direct_default_is_five_rounds(
        self, offer_ledger, buyer, seller, product, scripted_oracle
    ) -> None:
        oracle = scripted_oracle(
            openings=[bid("60")],
            seller=[counter("99")] * 5,
            buyer=[counter("61")] * 5,
        )

        result = await NegotiationOrchestrator(oracle, offer_ledger).run(buyer, seller, product)

        assert result.outcome == Outcome.NO_DEAL
        assert result.rounds == 5
        assert len(offer_ledger.list_by_product(product.id)) == 6


# ---------------------------------------------------------------------------
# Missing counter prices
# ---------------------------------------------------------------------------


class TestCounterFallbacks:
    @pytest.mark.anyio()
    async def test_seller_counter_without_price_uses_offer_price(
        self, offer_ledger, buyer, seller, product, scripted_oracle
    ) -> None:
        oracle = scripted_oracle(openings=[bid("80")], seller=[counter(None)], buyer=[accept()])

        result = await NegotiationOrchestrator(oracle, offer_ledger).run(buyer, seller, product)

        _, buyer_args = oracle.calls[2]
        assert buyer_args["seller_counter_price"] == Decimal("80")
        assert result.final_price == Decimal("80")

    @pytest.mark.anyio()
    async def test_buyer_counter_without_price_repeats_seller_price(
        self, offer_ledger, buyer, seller, product, scripted_oracle
    ) -> None:
        oracle = scripted_oracle(
            openings=[bid("80")],
            seller=[counter("92"), accept()],
            buyer=[counter(None)],
        )

        result = await NegotiationOrchestrator(oracle, offer_ledger).run(buyer, seller, product)

        assert result.outcome == Outcome.PENDING_CONFIRMATION
        assert result.rounds == 2
        assert result.final_price == Decimal("92")


# ---------------------------------------------------------------------------
# Failures
# ---------------------------------------------------------------------------


class TestFailures:
    @pytest.mark.anyio()
    async def test_oracle_unavailable_mid_run_keeps_earlier_offers(
        self, offer_ledger, buyer, seller, product, scripted_oracle
    ) -> None:
        oracle = scripted_oracle(
            openings=[bid("80")],
            seller=[OracleUnavailableError("Act API error: 503", "decide_seller")],
        )
        before = _negotiations(Outcome.ERROR)

        result = await NegotiationOrchestrator(oracle, offer_ledger).run(buyer, seller, product)

        assert result.outcome == Outcome.ERROR
        assert result.reason == "Act API error: 503"
        assert result.rounds == 1
        (offer,) = offer_ledger.list_by_product(product.id)
        assert result.offer_id == offer.id
        assert offer.status == OfferStatus.PENDING
        assert _negotiations(Outcome.ERROR) == before + 1

    @pytest.mark.anyio()
    async def test_malformed_opening_is_error_without_writes(
        self, offer_ledger, buyer, seller, product, scripted_oracle
    ) -> None:
        oracle = scripted_oracle(
            openings=[OracleMalformedResponseError("no JSON", "decide_buyer_open")]
        )

        result = await NegotiationOrchestrator(oracle, offer_ledger).run(buyer, seller, product)

        assert result.outcome == Outcome.ERROR
        assert result.rounds == 0
        assert result.offer_id is None
        assert offer_ledger.list_by_product(product.id) == []

    @pytest.mark.anyio()
    async def test_ledger_errors_propagate(
        self, buyer, seller, product, scripted_oracle
    ) -> None:
        class RefusingLedger:
            def create(self, offer):
                raise LedgerValidationError("refused")

        oracle = scripted_oracle(openings=[bid("80")])
        orchestrator = NegotiationOrchestrator(oracle, RefusingLedger())  # type: ignore[arg-type]

        with pytest.raises(LedgerValidationError):
            await orchestrator.run(buyer, seller, product)

    def test_finishing_a_run_that_never_ended_is_refused(
        self, offer_ledger, buyer, scripted_oracle
    ) -> None:
        orchestrator = NegotiationOrchestrator(scripted_oracle(), offer_ledger)
        session = _Session(buyer=buyer, max_rounds=DIRECT_MAX_ROUNDS)

        with pytest.raises(RuntimeError, match="non-terminal phase"):
            orchestrator._finish(session, started=0.0)
