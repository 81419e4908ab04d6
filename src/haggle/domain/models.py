"""Pydantic v2 models for domain data structures in the marketplace.

Persisted entities (``User``, ``Product``, ``Offer``) use snake_case field
names.  Models returned to API callers inherit from ``OutboundModel`` and
serialize with camelCase aliases.
"""

from datetime import UTC, datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from haggle.domain.types import (
    Decision,
    OfferStatus,
    Outcome,
    Price,
    ProductStatus,
    Role,
)


class Identity(BaseModel):
    """A resolved bearer credential for one user's agent.

    Owned by the identity provider; the core only checks its expiry.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    access_token: str
    token_expires_at: datetime

    def is_expired(self, now: datetime | None = None) -> bool:
        """Return True if the token expiry instant is in the past."""
        now = now or datetime.now(tz=UTC)
        return self.token_expires_at <= now


class User(BaseModel):
    """A marketplace user as stored in the persistent store."""

    id: str
    nickname: str = ""
    access_token: str
    refresh_token: str | None = None
    token_expires_at: datetime

    def identity(self) -> Identity:
        """Project the stored user onto the credential the core works with."""
        return Identity(
            id=self.id,
            access_token=self.access_token,
            token_expires_at=self.token_expires_at,
        )


class Product(BaseModel):
    """A secondhand listing.

    ``min_price`` is the seller's undisclosed floor.  It may be shown to the
    oracle acting as seller and must never reach a buyer prompt.
    """

    id: str
    seller_id: str
    title: str
    description: str = ""
    list_price: Price
    min_price: Price | None = None
    category: str = ""
    condition: str = ""
    status: ProductStatus = ProductStatus.ACTIVE
    created_at: datetime = Field(default_factory=lambda: datetime.now(tz=UTC))

    @field_validator("list_price")
    @classmethod
    def list_price_must_be_positive(cls, v: Price) -> Price:
        """Ensure the asking price is positive."""
        if v <= 0:
            raise ValueError("list_price must be positive")
        return v


class Offer(BaseModel):
    """One proposed price in a negotiation thread.

    ``in_reply_to_id`` points at the offer this one supersedes.
    """

    id: str
    product_id: str
    buyer_id: str
    price: Price
    message: str | None = None
    status: OfferStatus = OfferStatus.PENDING
    seller_decision: Decision | None = None
    counter_price: Price | None = None
    in_reply_to_id: str | None = None
    created_at: datetime


class NewOffer(BaseModel):
    """The caller-supplied part of an offer; the ledger assigns id and timestamp."""

    product_id: str
    buyer_id: str
    price: Price
    message: str | None = None
    status: OfferStatus = OfferStatus.PENDING
    seller_decision: Decision | None = None
    counter_price: Price | None = None
    in_reply_to_id: str | None = None


class OfferPatch(BaseModel):
    """Fields that may be changed on an existing offer.  ``None`` means unchanged."""

    status: OfferStatus | None = None
    seller_decision: Decision | None = None
    counter_price: Price | None = None


class OutboundModel(BaseModel):
    """Base for models serialized to API callers with camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_payload(self) -> dict[str, object]:
        """Dump as a JSON-ready dict with camelCase keys and unset optionals dropped."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class NegotiationLogEntry(OutboundModel):
    """One step of a negotiation run, kept in memory for the caller's audit."""

    role: Role
    action: str
    price: Price | None = None
    reason: str | None = None


class NegotiationResult(OutboundModel):
    """Terminal outcome of one orchestration run."""

    outcome: Outcome
    rounds: int = 0
    final_price: Price | None = None
    offer_id: str | None = None
    reason: str | None = None
    logs: list[NegotiationLogEntry] = Field(default_factory=list)


class ScanItemResult(OutboundModel):
    """Per-product result of a bulk market scan."""

    product_id: str
    product_title: str
    outcome: Outcome
    final_price: Price | None = None
    offer_id: str | None = None
    reason: str | None = None
    logs: list[NegotiationLogEntry] = Field(default_factory=list)

    @classmethod
    def from_result(cls, product: Product, result: NegotiationResult) -> "ScanItemResult":
        """Attach product identity to an orchestration result."""
        return cls(
            product_id=product.id,
            product_title=product.title,
            outcome=result.outcome,
            final_price=result.final_price,
            offer_id=result.offer_id,
            reason=result.reason,
            logs=result.logs,
        )


class ScanResult(OutboundModel):
    """Result of a bulk market scan."""

    results: list[ScanItemResult] = Field(default_factory=list)
    message: str | None = None


class PendingDeal(OutboundModel):
    """Read model of an offer awaiting human confirmation."""

    offer_id: str
    role: Role
    negotiated_price: Price
    list_price: Price
    product_id: str
    product_title: str
    counterpart: str
    created_at: datetime
