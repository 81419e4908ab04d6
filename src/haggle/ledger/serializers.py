"""Row <-> model conversion for the SQLite market store.

Prices are stored as TEXT so no precision is lost on the Decimal round-trip;
timestamps are ISO 8601 strings in UTC with microseconds.
"""

from __future__ import annotations

import sqlite3
from datetime import UTC, datetime
from decimal import Decimal

from haggle.domain.models import Offer, Product, User
from haggle.domain.types import Decision, OfferStatus, ProductStatus


def encode_price(value: Decimal | None) -> str | None:
    return None if value is None else str(value)


def decode_price(value: str | None) -> Decimal | None:
    return None if value is None else Decimal(value)


def encode_time(value: datetime) -> str:
    """Render *value* as a UTC ISO 8601 string (naive values are taken as UTC)."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).isoformat(timespec="microseconds")


def decode_time(value: str) -> datetime:
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def now_utc() -> datetime:
    return datetime.now(tz=UTC)


def row_to_user(row: sqlite3.Row) -> User:
    return User(
        id=row["id"],
        nickname=row["nickname"],
        access_token=row["access_token"],
        refresh_token=row["refresh_token"],
        token_expires_at=decode_time(row["token_expires_at"]),
    )


def row_to_product(row: sqlite3.Row) -> Product:
    return Product(
        id=row["id"],
        seller_id=row["seller_id"],
        title=row["title"],
        description=row["description"],
        list_price=Decimal(row["list_price"]),
        min_price=decode_price(row["min_price"]),
        category=row["category"],
        condition=row["condition"],
        status=ProductStatus(row["status"]),
        created_at=decode_time(row["created_at"]),
    )


def row_to_offer(row: sqlite3.Row) -> Offer:
    seller_decision = row["seller_decision"]
    return Offer(
        id=row["id"],
        product_id=row["product_id"],
        buyer_id=row["buyer_id"],
        price=Decimal(row["price"]),
        message=row["message"],
        status=OfferStatus(row["status"]),
        seller_decision=Decision(seller_decision) if seller_decision else None,
        counter_price=decode_price(row["counter_price"]),
        in_reply_to_id=row["in_reply_to_id"],
        created_at=decode_time(row["created_at"]),
    )
