"""SQLite-backed offer ledger.

Accepts a sqlite3.Connection, uses parameterized queries exclusively, and
commits synchronously after every write.  The ledger enforces the offer
invariants itself so that a misbehaving caller fails loudly instead of
corrupting a negotiation thread:

- ``price`` (and ``counter_price`` when present) must be positive;
- a new offer starts as ``pending`` or ``pending_confirmation``;
- ``in_reply_to_id`` must name an existing offer of the same product and
  buyer, which keeps every chain acyclic;
- status changes follow ``OFFER_TRANSITIONS`` only.
"""

from __future__ import annotations

import sqlite3
import uuid

import structlog

from haggle.domain.errors import (
    InvalidTransitionError,
    LedgerValidationError,
    OfferNotFoundError,
)
from haggle.domain.models import NewOffer, Offer, OfferPatch
from haggle.domain.types import INITIAL_OFFER_STATUSES, OfferStatus, can_transition
from haggle.ledger.serializers import encode_price, encode_time, now_utc, row_to_offer

logger = structlog.get_logger()


class OfferLedger:
    """Create, update and query offers.

    Args:
        conn: An open sqlite3.Connection whose database already has the
              ``offers`` table (see ``init_market_tables``).
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    # ------------------------------------------------------------------
    # Write operations
    # ------------------------------------------------------------------

    def create(self, offer: NewOffer) -> Offer:
        """Persist a new offer, assigning its id and timestamp.

        Args:
            offer: The caller-supplied offer fields.

        Returns:
            The stored ``Offer``.

        Raises:
            LedgerValidationError: If an invariant listed in the module
                docstring is violated.
        """
        if offer.price <= 0:
            raise LedgerValidationError(f"Offer price must be positive, got {offer.price}")
        if offer.counter_price is not None and offer.counter_price <= 0:
            raise LedgerValidationError(
                f"Counter price must be positive, got {offer.counter_price}"
            )
        if offer.status not in INITIAL_OFFER_STATUSES:
            raise LedgerValidationError(f"An offer cannot be created as '{offer.status}'")
        if offer.in_reply_to_id is not None:
            parent = self.get(offer.in_reply_to_id)
            if parent is None:
                raise LedgerValidationError(
                    f"in_reply_to_id '{offer.in_reply_to_id}' does not exist"
                )
            if parent.product_id != offer.product_id or parent.buyer_id != offer.buyer_id:
                raise LedgerValidationError(
                    f"in_reply_to_id '{offer.in_reply_to_id}' belongs to another thread"
                )

        offer_id = uuid.uuid4().hex
        self._conn.execute(
            """
            INSERT INTO offers (
                id, product_id, buyer_id, price, message, status,
                seller_decision, counter_price, in_reply_to_id, created_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                offer_id,
                offer.product_id,
                offer.buyer_id,
                encode_price(offer.price),
                offer.message,
                offer.status.value,
                offer.seller_decision.value if offer.seller_decision else None,
                encode_price(offer.counter_price),
                offer.in_reply_to_id,
                encode_time(now_utc()),
            ),
        )
        self._conn.commit()

        stored = self.get(offer_id)
        if stored is None:  # pragma: no cover - the row was just inserted
            raise OfferNotFoundError(offer_id)
        logger.debug(
            "offer_created",
            offer_id=offer_id,
            product_id=offer.product_id,
            status=offer.status.value,
            in_reply_to_id=offer.in_reply_to_id,
        )
        return stored

    def update(self, offer_id: str, patch: OfferPatch) -> Offer:
        """Apply *patch* to an existing offer.

        Args:
            offer_id: The offer to change.
            patch: Fields to change; ``None`` fields are left alone.

        Returns:
            The updated ``Offer``.

        Raises:
            OfferNotFoundError: If no offer has *offer_id*.
            InvalidTransitionError: If the status change is not allowed.
            LedgerValidationError: If ``counter_price`` is not positive.
        """
        current = self.get(offer_id)
        if current is None:
            raise OfferNotFoundError(offer_id)

        assignments: list[str] = []
        params: list[str | None] = []

        if patch.status is not None:
            if not can_transition(current.status, patch.status):
                raise InvalidTransitionError(current.status, patch.status)
            assignments.append("status = ?")
            params.append(patch.status.value)

        if patch.seller_decision is not None:
            assignments.append("seller_decision = ?")
            params.append(patch.seller_decision.value)

        if patch.counter_price is not None:
            if patch.counter_price <= 0:
                raise LedgerValidationError(
                    f"Counter price must be positive, got {patch.counter_price}"
                )
            assignments.append("counter_price = ?")
            params.append(encode_price(patch.counter_price))

        if not assignments:
            return current

        params.append(offer_id)
        self._conn.execute(
            f"UPDATE offers SET {', '.join(assignments)} WHERE id = ?",
            params,
        )
        self._conn.commit()

        updated = self.get(offer_id)
        if updated is None:  # pragma: no cover - the row exists
            raise OfferNotFoundError(offer_id)
        return updated

    # ------------------------------------------------------------------
    # Read operations
    # ------------------------------------------------------------------

    def get(self, offer_id: str) -> Offer | None:
        """Return the offer with *offer_id*, or ``None``."""
        row = self._conn.execute("SELECT * FROM offers WHERE id = ?", (offer_id,)).fetchone()
        return row_to_offer(row) if row else None

    def list_by_product(self, product_id: str) -> list[Offer]:
        """Return every offer on *product_id*, newest first."""
        rows = self._conn.execute(
            "SELECT * FROM offers WHERE product_id = ? ORDER BY rowid DESC",
            (product_id,),
        ).fetchall()
        return [row_to_offer(row) for row in rows]

    def list_pending_confirmation_for(self, user_id: str) -> list[Offer]:
        """Return offers awaiting human confirmation where *user_id* is a party.

        A user is a party when they are the offer's buyer or the product's
        seller.  Newest first.
        """
        rows = self._conn.execute(
            """
            SELECT offers.* FROM offers
            JOIN products ON products.id = offers.product_id
            WHERE offers.status = ?
              AND (offers.buyer_id = ? OR products.seller_id = ?)
            ORDER BY offers.rowid DESC
            """,
            (OfferStatus.PENDING_CONFIRMATION.value, user_id, user_id),
        ).fetchall()
        return [row_to_offer(row) for row in rows]
