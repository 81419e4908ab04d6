"""Pydantic models and normalizers for Decision Oracle replies.

The oracle is a free-form language model asked to answer in JSON, so every
reply goes through a deterministic normalizer before the orchestrator sees
it:

- an unknown ``decision`` becomes ``reject`` (never ``accept``/``counter``);
- ``counterPrice`` is kept only on ``counter`` decisions, and only if it is a
  positive number;
- an opening bid that is missing, null or non-positive means "not interested".

Replies that cannot be normalized raise ``OracleMalformedResponseError``.
"""

from __future__ import annotations

import math
from decimal import Decimal, InvalidOperation
from typing import Any

import structlog
from pydantic import BaseModel, Field

from haggle.domain.errors import OracleMalformedResponseError
from haggle.domain.types import Decision, Price

logger = structlog.get_logger()


class BuyerOpening(BaseModel):
    """The buyer agent's first look at a listing."""

    suggested_price: Price | None = Field(
        default=None,
        description="Opening bid; None when the buyer is not interested",
    )
    reason: str = Field(default="", description="Short justification from the buyer agent")

    @property
    def interested(self) -> bool:
        """Return True if the buyer wants to open with a bid."""
        return self.suggested_price is not None and self.suggested_price > 0


class OracleDecision(BaseModel):
    """A seller or buyer answer to the price on the table."""

    decision: Decision
    counter_price: Price | None = Field(
        default=None,
        description="Proposed price; only ever set when decision is counter",
    )
    reason: str = ""


class MarketCandidate(BaseModel):
    """A listing summary shown to the buyer agent during a market scan."""

    id: str
    title: str
    price: Price
    category: str = ""
    condition: str = ""


class Pick(BaseModel):
    """A listing the buyer agent wants to negotiate on."""

    id: str
    reason: str = ""


def coerce_price(value: Any) -> Decimal | None:
    """Convert a JSON number (or numeric string) into a Decimal price.

    Returns ``None`` for null, booleans, non-numeric values, NaN and infinity.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, float) and not math.isfinite(value):
        return None
    if not isinstance(value, (int, float, str, Decimal)):
        return None
    try:
        price = Decimal(str(value).strip())
    except InvalidOperation:
        return None
    if not price.is_finite():
        return None
    return price


def _reason(raw: dict[str, Any]) -> str:
    reason = raw.get("reason")
    return "" if reason is None else str(reason)


def normalize_opening(raw: Any, list_price: Decimal, operation: str) -> BuyerOpening:
    """Normalize a ``{"suggestedPrice", "reason"}`` reply.

    Args:
        raw: The parsed JSON value.
        list_price: The listing's asking price; a bid must be below it.
        operation: Operation name for error reporting.

    Raises:
        OracleMalformedResponseError: If the reply is not an object, the
            price is not numeric, or the bid is not below the list price.
    """
    if not isinstance(raw, dict):
        raise OracleMalformedResponseError(
            f"expected a JSON object, got {type(raw).__name__}", operation
        )
    reason = _reason(raw)
    value = raw.get("suggestedPrice")
    if value is None:
        return BuyerOpening(suggested_price=None, reason=reason)

    price = coerce_price(value)
    if price is None:
        raise OracleMalformedResponseError(f"suggestedPrice is not a number: {value!r}", operation)
    if price <= 0:
        return BuyerOpening(suggested_price=None, reason=reason)
    if price >= list_price:
        raise OracleMalformedResponseError(
            f"opening bid {price} is not below list price {list_price}", operation
        )
    return BuyerOpening(suggested_price=price, reason=reason)


def normalize_decision(raw: Any, operation: str) -> OracleDecision:
    """Normalize a ``{"decision", "counterPrice", "reason"}`` reply.

    Raises:
        OracleMalformedResponseError: If the reply is not a JSON object.
    """
    if not isinstance(raw, dict):
        raise OracleMalformedResponseError(
            f"expected a JSON object, got {type(raw).__name__}", operation
        )
    reason = _reason(raw)
    label = str(raw.get("decision") or "").strip().lower()
    try:
        decision = Decision(label)
    except ValueError:
        logger.warning("oracle_decision_unknown", operation=operation, decision=label)
        decision = Decision.REJECT

    counter_price: Decimal | None = None
    if decision == Decision.COUNTER:
        counter_price = coerce_price(raw.get("counterPrice"))
        if counter_price is not None and counter_price <= 0:
            counter_price = None
    return OracleDecision(decision=decision, counter_price=counter_price, reason=reason)


def normalize_picks(raw: Any, operation: str) -> list[Pick]:
    """Normalize a ``{"picks": [{"id", "reason"}]}`` reply.

    A bare JSON array of picks is accepted too.  Entries without an id are
    dropped.

    Raises:
        OracleMalformedResponseError: If no list of picks can be found.
    """
    items = raw.get("picks") if isinstance(raw, dict) else raw
    if not isinstance(items, list):
        raise OracleMalformedResponseError("reply has no list of picks", operation)

    picks: list[Pick] = []
    for item in items:
        if not isinstance(item, dict) or item.get("id") in (None, ""):
            continue
        picks.append(Pick(id=str(item["id"]), reason=_reason(item)))
    return picks
