"""The Decision Oracle capability the orchestrator depends on.

``OracleClient`` implements it over HTTP; tests substitute a scripted fake.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Protocol, runtime_checkable

from haggle.oracle.models import BuyerOpening, MarketCandidate, OracleDecision, Pick


@runtime_checkable
class DecisionOracle(Protocol):
    """Buyer and seller decisions for one negotiation, one call per step."""

    async def decide_buyer_open(
        self,
        token: str,
        title: str,
        list_price: Decimal,
        min_price: Decimal | None = None,
    ) -> BuyerOpening: ...

    async def decide_seller(
        self,
        token: str,
        title: str,
        list_price: Decimal,
        min_price: Decimal | None,
        offer_price: Decimal,
    ) -> OracleDecision: ...

    async def decide_buyer_counter(
        self,
        token: str,
        title: str,
        list_price: Decimal,
        seller_counter_price: Decimal,
    ) -> OracleDecision: ...

    async def pick_interesting(
        self,
        token: str,
        candidates: list[MarketCandidate],
    ) -> list[Pick]: ...
