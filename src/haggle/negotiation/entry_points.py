"""Ways a buyer starts negotiating: one listing, or a scan of the market."""

from __future__ import annotations

import structlog

from haggle.domain.models import (
    Identity,
    NegotiationResult,
    Product,
    ScanItemResult,
    ScanResult,
)
from haggle.domain.types import Outcome
from haggle.ledger.market import MARKET_SCAN_LIMIT, MarketStore
from haggle.negotiation.orchestrator import (
    DIRECT_MAX_ROUNDS,
    SCAN_MAX_ROUNDS,
    NegotiationOrchestrator,
)
from haggle.observability.metrics import NEGOTIATIONS
from haggle.oracle.models import MarketCandidate
from haggle.oracle.protocol import DecisionOracle

logger = structlog.get_logger()

SCAN_PICK_LIMIT = 5

EMPTY_MARKET = "no listings from other sellers right now"
NOTHING_PICKED = "looked around the market, nothing caught the buyer agent's interest"
SELLER_EXPIRED = "seller login expired"


def _seller_identity(store: MarketStore, product: Product | None) -> Identity | None:
    if product is None:
        return None
    seller = store.get_user(product.seller_id)
    return seller.identity() if seller else None


async def negotiate_product(
    product_id: str,
    buyer: Identity,
    *,
    store: MarketStore,
    orchestrator: NegotiationOrchestrator,
) -> NegotiationResult:
    """Run one negotiation on *product_id* for *buyer* with the direct round limit."""
    product = store.get_product(product_id)
    seller = _seller_identity(store, product)
    logger.info("negotiation_requested", product_id=product_id, buyer_id=buyer.id)
    return await orchestrator.run(buyer, seller, product, max_rounds=DIRECT_MAX_ROUNDS)


async def scan_market(
    buyer: Identity,
    *,
    store: MarketStore,
    orchestrator: NegotiationOrchestrator,
    oracle: DecisionOracle,
) -> ScanResult:
    """Let the buyer agent pick listings from the market and negotiate each.

    Shows the buyer agent up to ``MARKET_SCAN_LIMIT`` active listings from
    other sellers, then negotiates the first ``SCAN_PICK_LIMIT`` picks one
    after another with the scan round limit.  Picks naming a listing that
    was not shown are ignored.

    Args:
        buyer: The buyer agent's credential.
        store: Source of listings and seller credentials.
        orchestrator: Runs each negotiation.
        oracle: Chooses which listings to negotiate.

    Returns:
        One ``ScanItemResult`` per negotiated pick, in pick order.

    Raises:
        OracleError: If the buyer agent cannot make its picks.
    """
    products = store.list_active_products(exclude_seller_id=buyer.id, limit=MARKET_SCAN_LIMIT)
    if not products:
        return ScanResult(results=[], message=EMPTY_MARKET)

    candidates = [
        MarketCandidate(
            id=product.id,
            title=product.title,
            price=product.list_price,
            category=product.category,
            condition=product.condition,
        )
        for product in products
    ]
    picks = await oracle.pick_interesting(buyer.access_token, candidates)
    logger.info(
        "market_scan_picked",
        buyer_id=buyer.id,
        candidates=len(candidates),
        picks=len(picks),
    )
    if not picks:
        return ScanResult(results=[], message=NOTHING_PICKED)

    by_id = {product.id: product for product in products}
    results: list[ScanItemResult] = []
    seen: set[str] = set()

    for pick in picks[:SCAN_PICK_LIMIT]:
        if pick.id in seen:
            logger.debug("market_scan_repeated_pick", buyer_id=buyer.id, product_id=pick.id)
            continue
        seen.add(pick.id)
        product = by_id.get(pick.id)
        if product is None:
            logger.debug("market_scan_unknown_pick", buyer_id=buyer.id, product_id=pick.id)
            continue

        seller = _seller_identity(store, product)
        if seller is not None and seller.is_expired():
            NEGOTIATIONS.labels(outcome=Outcome.SKIPPED.value).inc()
            results.append(
                ScanItemResult(
                    product_id=product.id,
                    product_title=product.title,
                    outcome=Outcome.SKIPPED,
                    reason=SELLER_EXPIRED,
                )
            )
            continue

        try:
            result = await orchestrator.run(buyer, seller, product, max_rounds=SCAN_MAX_ROUNDS)
        except Exception as exc:
            # One broken listing must not end the scan.
            logger.exception("market_scan_item_failed", buyer_id=buyer.id, product_id=product.id)
            NEGOTIATIONS.labels(outcome=Outcome.ERROR.value).inc()
            results.append(
                ScanItemResult(
                    product_id=product.id,
                    product_title=product.title,
                    outcome=Outcome.ERROR,
                    reason=str(exc) or type(exc).__name__,
                )
            )
            continue
        results.append(ScanItemResult.from_result(product, result))

    return ScanResult(results=results)
