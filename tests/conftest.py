"""Shared pytest fixtures for the marketplace test suite."""

from __future__ import annotations

import sqlite3
from collections.abc import Iterator
from datetime import UTC, datetime, timedelta
from decimal import Decimal
from typing import Any

import pytest

from haggle.domain.models import Product, User
from haggle.ledger.market import MarketStore
from haggle.ledger.schema import init_market_db
from haggle.ledger.store import OfferLedger
from haggle.oracle.models import BuyerOpening, MarketCandidate, OracleDecision, Pick


@pytest.fixture
def anyio_backend() -> str:
    """Run anyio-marked tests on asyncio, the only backend the code targets."""
    return "asyncio"


class ScriptedOracle:
    """Decision oracle fake that replays queued answers and records calls.

    Each queue entry is returned in order; an entry that is an exception
    instance is raised instead.
    """

    def __init__(
        self,
        *,
        openings: list[Any] | None = None,
        seller: list[Any] | None = None,
        buyer: list[Any] | None = None,
        picks: list[Any] | None = None,
    ) -> None:
        self.openings = list(openings or [])
        self.seller = list(seller or [])
        self.buyer = list(buyer or [])
        self.picks = list(picks or [])
        self.calls: list[tuple[str, dict[str, Any]]] = []

    @staticmethod
    def _next(queue: list[Any], operation: str) -> Any:
        if not queue:
            raise AssertionError(f"unexpected oracle call: {operation}")
        item = queue.pop(0)
        if isinstance(item, BaseException):
            raise item
        return item

    def operations(self) -> list[str]:
        return [name for name, _ in self.calls]

    async def decide_buyer_open(
        self,
        token: str,
        title: str,
        list_price: Decimal,
        min_price: Decimal | None = None,
    ) -> BuyerOpening:
        self.calls.append(
            ("decide_buyer_open", {"token": token, "title": title, "list_price": list_price})
        )
        return self._next(self.openings, "decide_buyer_open")

    async def decide_seller(
        self,
        token: str,
        title: str,
        list_price: Decimal,
        min_price: Decimal | None,
        offer_price: Decimal,
    ) -> OracleDecision:
        self.calls.append(
            (
                "decide_seller",
                {"token": token, "min_price": min_price, "offer_price": offer_price},
            )
        )
        return self._next(self.seller, "decide_seller")

    async def decide_buyer_counter(
        self,
        token: str,
        title: str,
        list_price: Decimal,
        seller_counter_price: Decimal,
    ) -> OracleDecision:
        self.calls.append(
            (
                "decide_buyer_counter",
                {"token": token, "seller_counter_price": seller_counter_price},
            )
        )
        return self._next(self.buyer, "decide_buyer_counter")

    async def pick_interesting(
        self,
        token: str,
        candidates: list[MarketCandidate],
    ) -> list[Pick]:
        self.calls.append(
            ("pick_interesting", {"token": token, "ids": [c.id for c in candidates]})
        )
        return self._next(self.picks, "pick_interesting")


# ---------------------------------------------------------------------------
# Database and stores
# ---------------------------------------------------------------------------


@pytest.fixture
def db_conn() -> Iterator[sqlite3.Connection]:
    """An in-memory market database with the schema applied."""
    conn = init_market_db(":memory:")
    yield conn
    conn.close()


@pytest.fixture
def market_store(db_conn: sqlite3.Connection) -> MarketStore:
    return MarketStore(db_conn)


@pytest.fixture
def offer_ledger(db_conn: sqlite3.Connection) -> OfferLedger:
    return OfferLedger(db_conn)


# ---------------------------------------------------------------------------
# Users and listings
# ---------------------------------------------------------------------------


def _in(hours: float) -> datetime:
    return datetime.now(tz=UTC) + timedelta(hours=hours)


@pytest.fixture
def seller_user(market_store: MarketStore) -> User:
    """A seller whose agent token is valid for another hour."""
    return market_store.upsert_user(
        User(
            id="seller-1",
            nickname="Alice",
            access_token="seller-token",
            token_expires_at=_in(1),
        )
    )


@pytest.fixture
def buyer_user(market_store: MarketStore) -> User:
    """A buyer whose agent token is valid for another hour."""
    return market_store.upsert_user(
        User(
            id="buyer-1",
            nickname="Bob",
            access_token="buyer-token",
            token_expires_at=_in(1),
        )
    )


@pytest.fixture
def product(market_store: MarketStore, seller_user: User) -> Product:
    """An active 100.00 listing by ``seller_user`` with a 70.00 floor."""
    return market_store.create_product(
        seller_user.id,
        "Vintage film camera",
        Decimal("100"),
        min_price=Decimal("70"),
        description="Works, light wear",
        category="electronics",
        condition="good",
    )


@pytest.fixture
def scripted_oracle() -> type[ScriptedOracle]:
    """The ``ScriptedOracle`` class, for tests to build with their own script."""
    return ScriptedOracle
