"""SQLite-backed store for users and products.

The negotiation core only reads from here (product, seller credential,
market listing); writes exist for sign-in, listing, and the human-confirmed
sale.
"""

from __future__ import annotations

import sqlite3
import uuid
from datetime import datetime
from decimal import Decimal

from haggle.domain.models import Product, User
from haggle.domain.types import ProductStatus
from haggle.ledger.serializers import (
    encode_price,
    encode_time,
    now_utc,
    row_to_product,
    row_to_user,
)

MARKET_SCAN_LIMIT = 20


class MarketStore:
    """Persist and query users and product listings.

    Args:
        conn: An open sqlite3.Connection whose database already has the
              ``users`` and ``products`` tables.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    def upsert_user(self, user: User) -> User:
        """Insert or replace a user (e.g. after a token refresh)."""
        self._conn.execute(
            """
            INSERT INTO users (id, nickname, access_token, refresh_token, token_expires_at)
            VALUES (?, ?, ?, ?, ?)
            ON CONFLICT (id) DO UPDATE SET
                nickname = excluded.nickname,
                access_token = excluded.access_token,
                refresh_token = excluded.refresh_token,
                token_expires_at = excluded.token_expires_at
            """,
            (
                user.id,
                user.nickname,
                user.access_token,
                user.refresh_token,
                encode_time(user.token_expires_at),
            ),
        )
        self._conn.commit()
        return user

    def get_user(self, user_id: str) -> User | None:
        row = self._conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
        return row_to_user(row) if row else None

    def get_user_by_token(self, access_token: str, now: datetime | None = None) -> User | None:
        """Return the user holding *access_token*, if the token has not expired."""
        row = self._conn.execute(
            "SELECT * FROM users WHERE access_token = ? AND token_expires_at > ?",
            (access_token, encode_time(now or now_utc())),
        ).fetchone()
        return row_to_user(row) if row else None

    # ------------------------------------------------------------------
    # Products
    # ------------------------------------------------------------------

    def create_product(
        self,
        seller_id: str,
        title: str,
        list_price: Decimal,
        *,
        min_price: Decimal | None = None,
        description: str = "",
        category: str = "",
        condition: str = "",
        product_id: str | None = None,
    ) -> Product:
        """List a new active product for *seller_id*."""
        product = Product(
            id=product_id or uuid.uuid4().hex,
            seller_id=seller_id,
            title=title,
            description=description,
            list_price=list_price,
            min_price=min_price,
            category=category,
            condition=condition,
            created_at=now_utc(),
        )
        self._conn.execute(
            """
            INSERT INTO products (
                id, seller_id, title, description, list_price, min_price,
                category, condition, status, created_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                product.id,
                product.seller_id,
                product.title,
                product.description,
                encode_price(product.list_price),
                encode_price(product.min_price),
                product.category,
                product.condition,
                product.status.value,
                encode_time(product.created_at),
            ),
        )
        self._conn.commit()
        return product

    def get_product(self, product_id: str) -> Product | None:
        row = self._conn.execute("SELECT * FROM products WHERE id = ?", (product_id,)).fetchone()
        return row_to_product(row) if row else None

    def list_active_products(
        self,
        exclude_seller_id: str,
        limit: int = MARKET_SCAN_LIMIT,
    ) -> list[Product]:
        """Return active listings not owned by *exclude_seller_id*, newest first."""
        rows = self._conn.execute(
            """
            SELECT * FROM products
            WHERE status = ? AND seller_id != ?
            ORDER BY created_at DESC, rowid DESC
            LIMIT ?
            """,
            (ProductStatus.ACTIVE.value, exclude_seller_id, limit),
        ).fetchall()
        return [row_to_product(row) for row in rows]

    def mark_product_sold(self, product_id: str) -> None:
        """Flag a listing as sold.  Only the human deal confirmation calls this."""
        self._conn.execute(
            "UPDATE products SET status = ? WHERE id = ?",
            (ProductStatus.SOLD.value, product_id),
        )
        self._conn.commit()
