"""HTTP routes for agent negotiation and human deal confirmation.

All routes require a bearer token (see ``haggle.auth``).  Services are read
from ``request.app.state.services``, populated by ``initialize_services``.
Responses use camelCase keys.
"""

from __future__ import annotations

from typing import Any

import structlog
from fastapi import APIRouter, Depends, FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse

from haggle.auth.identity import current_user
from haggle.deals.service import confirm_deal, decline_deal, list_pending_deals
from haggle.domain.errors import (
    InvalidTransitionError,
    OfferNotFoundError,
    OracleError,
    PermissionDeniedError,
)
from haggle.domain.models import User
from haggle.domain.types import Outcome
from haggle.negotiation.entry_points import negotiate_product, scan_market
from haggle.negotiation.orchestrator import PRODUCT_UNAVAILABLE

logger = structlog.get_logger()

router = APIRouter()


def _services(request: Request) -> dict[str, Any]:
    return request.app.state.services


def _negotiation_services(request: Request) -> dict[str, Any]:
    """Return the services, refusing with 503 when no oracle is configured."""
    services = _services(request)
    if services.get("orchestrator") is None or services.get("oracle") is None:
        raise HTTPException(status_code=503, detail="Decision oracle not configured")
    return services


@router.post("/api/agent/products/{product_id}/negotiate")
async def negotiate(
    product_id: str,
    request: Request,
    user: User = Depends(current_user),
) -> JSONResponse:
    """Let the caller's buyer agent negotiate one listing with its seller's agent.

    Returns:
        The run result.  Precondition failures carry status 404 (product)
        or 400 (anything else) with the same structured body.
    """
    services = _negotiation_services(request)
    result = await negotiate_product(
        product_id,
        user.identity(),
        store=services["market_store"],
        orchestrator=services["orchestrator"],
    )

    status_code = 200
    if result.outcome == Outcome.REJECTED_PRECONDITION:
        status_code = 404 if result.reason == PRODUCT_UNAVAILABLE else 400
    return JSONResponse(content=result.to_payload(), status_code=status_code)


@router.post("/api/ai/auto-browse")
async def auto_browse(request: Request, user: User = Depends(current_user)) -> JSONResponse:
    """Let the caller's buyer agent scan the market and negotiate its picks.

    Raises:
        HTTPException: 502 if the buyer agent cannot make its picks.
    """
    services = _negotiation_services(request)
    try:
        result = await scan_market(
            user.identity(),
            store=services["market_store"],
            orchestrator=services["orchestrator"],
            oracle=services["oracle"],
        )
    except OracleError as exc:
        logger.error("market_scan_failed", buyer_id=user.id, error=str(exc))
        raise HTTPException(status_code=502, detail=f"Market scan failed: {exc}") from exc
    return JSONResponse(content=result.to_payload())


@router.get("/api/agent/my/pending-deals")
async def pending_deals(request: Request, user: User = Depends(current_user)) -> JSONResponse:
    """List the caller's deals awaiting human confirmation, newest first."""
    services = _services(request)
    deals = list_pending_deals(
        user.identity(),
        store=services["market_store"],
        ledger=services["offer_ledger"],
    )
    return JSONResponse(content=[deal.to_payload() for deal in deals])


@router.post("/api/offers/{offer_id}/confirm")
async def confirm_offer(
    offer_id: str,
    request: Request,
    user: User = Depends(current_user),
) -> dict[str, str]:
    """Confirm an agreed deal as its buyer or seller; the product is sold."""
    services = _services(request)
    offer = confirm_deal(
        offer_id,
        user.identity(),
        store=services["market_store"],
        ledger=services["offer_ledger"],
    )
    return {"offerId": offer.id, "status": offer.status.value}


@router.post("/api/offers/{offer_id}/reject")
async def reject_offer(
    offer_id: str,
    request: Request,
    user: User = Depends(current_user),
) -> dict[str, str]:
    """Decline an agreed deal as its buyer or seller."""
    services = _services(request)
    offer = decline_deal(
        offer_id,
        user.identity(),
        store=services["market_store"],
        ledger=services["offer_ledger"],
    )
    return {"offerId": offer.id, "status": offer.status.value}


# ---------------------------------------------------------------------------
# Error mapping
# ---------------------------------------------------------------------------


def register_error_handlers(app: FastAPI) -> None:
    """Map ledger errors raised by the deal routes onto HTTP statuses."""

    @app.exception_handler(OfferNotFoundError)
    async def offer_not_found(request: Request, exc: OfferNotFoundError) -> JSONResponse:
        return JSONResponse(status_code=404, content={"detail": str(exc)})

    @app.exception_handler(InvalidTransitionError)
    async def invalid_transition(request: Request, exc: InvalidTransitionError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    @app.exception_handler(PermissionDeniedError)
    async def permission_denied(request: Request, exc: PermissionDeniedError) -> JSONResponse:
        return JSONResponse(status_code=403, content={"detail": str(exc)})
