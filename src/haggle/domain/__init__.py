"""Domain types, models, and errors for the marketplace."""

from haggle.domain.errors import (
    InvalidTransitionError,
    LedgerValidationError,
    MarketError,
    OfferNotFoundError,
    OracleError,
    OracleMalformedResponseError,
    OracleUnavailableError,
    PermissionDeniedError,
    PhaseTransitionError,
    PreconditionFailedError,
)
from haggle.domain.models import (
    Identity,
    NegotiationLogEntry,
    NegotiationResult,
    NewOffer,
    Offer,
    OfferPatch,
    PendingDeal,
    Product,
    ScanItemResult,
    ScanResult,
    User,
)
from haggle.domain.types import (
    OFFER_TRANSITIONS,
    Decision,
    OfferStatus,
    Outcome,
    Price,
    ProductStatus,
    Role,
    can_transition,
)

__all__ = [
    "OFFER_TRANSITIONS",
    "Decision",
    "Identity",
    "InvalidTransitionError",
    "LedgerValidationError",
    "MarketError",
    "NegotiationLogEntry",
    "NegotiationResult",
    "NewOffer",
    "Offer",
    "OfferNotFoundError",
    "OfferPatch",
    "OfferStatus",
    "OracleError",
    "OracleMalformedResponseError",
    "OracleUnavailableError",
    "Outcome",
    "PendingDeal",
    "PermissionDeniedError",
    "PhaseTransitionError",
    "PreconditionFailedError",
    "Price",
    "Product",
    "ProductStatus",
    "Role",
    "ScanItemResult",
    "ScanResult",
    "User",
    "can_transition",
]
