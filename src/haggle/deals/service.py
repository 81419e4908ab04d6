"""The human gate: list, confirm, or decline deals the agents agreed on.

Automated negotiation stops at ``pending_confirmation``.  Only a call here,
made on behalf of the buyer or the seller, turns such an offer into a sale.
"""

from __future__ import annotations

import structlog

from haggle.domain.errors import (
    InvalidTransitionError,
    OfferNotFoundError,
    PermissionDeniedError,
)
from haggle.domain.models import Identity, Offer, OfferPatch, PendingDeal, Product
from haggle.domain.types import OfferStatus, ProductStatus, Role
from haggle.ledger.market import MarketStore
from haggle.ledger.store import OfferLedger
from haggle.observability.metrics import DEALS_CONFIRMED

logger = structlog.get_logger()

# Shown to a buyer in place of the seller's name.
SELLER_COUNTERPART = "seller"


def list_pending_deals(
    user: Identity,
    *,
    store: MarketStore,
    ledger: OfferLedger,
) -> list[PendingDeal]:
    """Return the deals awaiting *user*'s confirmation, newest first."""
    deals: list[PendingDeal] = []
    for offer in ledger.list_pending_confirmation_for(user.id):
        product = store.get_product(offer.product_id)
        if product is None:
            continue
        if offer.buyer_id == user.id:
            role = Role.BUYER
            counterpart = SELLER_COUNTERPART
        else:
            role = Role.SELLER
            buyer = store.get_user(offer.buyer_id)
            counterpart = buyer.nickname if buyer else ""
        deals.append(
            PendingDeal(
                offer_id=offer.id,
                role=role,
                negotiated_price=offer.price,
                list_price=product.list_price,
                product_id=product.id,
                product_title=product.title,
                counterpart=counterpart,
                created_at=offer.created_at,
            )
        )
    return deals


def _load_for_decision(
    offer_id: str,
    user: Identity,
    store: MarketStore,
    ledger: OfferLedger,
    target: OfferStatus,
) -> tuple[Offer, Product]:
    """Fetch an offer a user wants to settle, enforcing the gate's checks.

    Raises:
        OfferNotFoundError: If the offer (or its product) does not exist.
        InvalidTransitionError: If the offer is not awaiting confirmation.
        PermissionDeniedError: If *user* is neither the buyer nor the seller.
    """
    offer = ledger.get(offer_id)
    if offer is None:
        raise OfferNotFoundError(offer_id)
    product = store.get_product(offer.product_id)
    if product is None:
        raise OfferNotFoundError(offer_id)
    if offer.status != OfferStatus.PENDING_CONFIRMATION:
        raise InvalidTransitionError(offer.status, target)
    if user.id not in (offer.buyer_id, product.seller_id):
        raise PermissionDeniedError(f"User '{user.id}' is not a party to offer '{offer_id}'")
    return offer, product


def confirm_deal(
    offer_id: str,
    user: Identity,
    *,
    store: MarketStore,
    ledger: OfferLedger,
) -> Offer:
    """Accept an agreed offer and mark its product sold."""
    offer, product = _load_for_decision(offer_id, user, store, ledger, OfferStatus.ACCEPTED)
    if product.status != ProductStatus.ACTIVE:
        raise InvalidTransitionError(
            offer.status, OfferStatus.ACCEPTED, f"product '{product.id}' is {product.status}"
        )
    accepted = ledger.update(offer.id, OfferPatch(status=OfferStatus.ACCEPTED))
    store.mark_product_sold(product.id)
    DEALS_CONFIRMED.inc()
    logger.info(
        "deal_confirmed",
        offer_id=offer.id,
        product_id=product.id,
        confirmed_by=user.id,
        price=str(offer.price),
    )
    return accepted


def decline_deal(
    offer_id: str,
    user: Identity,
    *,
    store: MarketStore,
    ledger: OfferLedger,
) -> Offer:
    """Turn down an agreed offer.  The product stays on the market."""
    offer, product = _load_for_decision(offer_id, user, store, ledger, OfferStatus.REJECTED)
    rejected = ledger.update(offer.id, OfferPatch(status=OfferStatus.REJECTED))
    logger.info(
        "deal_declined",
        offer_id=offer.id,
        product_id=product.id,
        declined_by=user.id,
    )
    return rejected
