"""Domain enumerations and shared field types for the marketplace."""

from decimal import Decimal
from enum import StrEnum
from typing import Annotated

from pydantic import PlainSerializer

# Prices are Decimal internally and render as JSON numbers on the way out.
Price = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]


class ProductStatus(StrEnum):
    """Listing lifecycle of a product."""

    ACTIVE = "active"
    SOLD = "sold"


class OfferStatus(StrEnum):
    """Lifecycle of a single offer in a negotiation thread."""

    PENDING = "pending"
    PENDING_CONFIRMATION = "pending_confirmation"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class Decision(StrEnum):
    """A party's answer to the price currently on the table."""

    ACCEPT = "accept"
    COUNTER = "counter"
    REJECT = "reject"


class Role(StrEnum):
    """Which side of the trade a negotiation log entry belongs to."""

    BUYER = "buyer"
    SELLER = "seller"


class Outcome(StrEnum):
    """Terminal classification of a negotiation run."""

    PENDING_CONFIRMATION = "pending_confirmation"
    REJECTED = "rejected"
    SKIPPED = "skipped"
    NO_DEAL = "no_deal"
    ERROR = "error"
    REJECTED_PRECONDITION = "rejected_precondition"


# Offer status changes allowed after creation. Anything else is refused.
OFFER_TRANSITIONS: dict[OfferStatus, frozenset[OfferStatus]] = {
    OfferStatus.PENDING: frozenset(
        {OfferStatus.PENDING_CONFIRMATION, OfferStatus.REJECTED}
    ),
    OfferStatus.PENDING_CONFIRMATION: frozenset(
        {OfferStatus.ACCEPTED, OfferStatus.REJECTED}
    ),
    OfferStatus.ACCEPTED: frozenset(),
    OfferStatus.REJECTED: frozenset(),
}

# Statuses an offer may be born with.
INITIAL_OFFER_STATUSES: frozenset[OfferStatus] = frozenset(
    {OfferStatus.PENDING, OfferStatus.PENDING_CONFIRMATION}
)


def can_transition(current: OfferStatus, target: OfferStatus) -> bool:
    """Return True if an offer may move from *current* to *target*.

    Re-applying the current status is treated as a no-op and allowed.
    """
    if current == target:
        return True
    return target in OFFER_TRANSITIONS[current]
