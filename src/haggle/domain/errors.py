"""Domain-specific exception classes for the marketplace."""

from haggle.domain.types import OfferStatus


class MarketError(Exception):
    """Base class for all domain errors in the marketplace."""


class PreconditionFailedError(MarketError):
    """Raised when a negotiation cannot start (inactive product, own listing, offline agent)."""


class OracleError(MarketError):
    """Base class for Decision Oracle failures.

    Attributes:
        operation: The oracle operation that failed (e.g. ``"decide_seller"``).
    """

    def __init__(self, message: str, operation: str = "unknown") -> None:
        self.operation = operation
        super().__init__(message)


class OracleUnavailableError(OracleError):
    """Raised on transport errors, timeouts, or non-success status from the oracle."""


class OracleMalformedResponseError(OracleError):
    """Raised when the oracle reply cannot be parsed or normalized into its schema."""


class LedgerValidationError(MarketError):
    """Raised when an offer violates a ledger invariant (e.g. non-positive price)."""


class OfferNotFoundError(MarketError):
    """Raised when an offer id does not exist in the ledger."""

    def __init__(self, offer_id: str) -> None:
        self.offer_id = offer_id
        super().__init__(f"Offer '{offer_id}' not found")


class InvalidTransitionError(MarketError):
    """Raised when a requested offer status change is not allowed.

    Attributes:
        current: The status the offer was in.
        target: The status that was requested.
    """

    def __init__(
        self, current: OfferStatus, target: OfferStatus, detail: str | None = None
    ) -> None:
        self.current = current
        self.target = target
        message = f"Cannot move offer from '{current}' to '{target}'"
        super().__init__(f"{message}: {detail}" if detail else message)


class PermissionDeniedError(MarketError):
    """Raised when a user acts on an offer they are not a party to."""


class PhaseTransitionError(MarketError):
    """Raised when the negotiation run state machine receives an event it cannot apply.

    Attributes:
        phase: The phase the run was in.
        event: The event that was rejected.
    """

    def __init__(self, phase: str, event: str) -> None:
        self.phase = phase
        self.event = event
        super().__init__(f"Cannot apply event '{event}' in phase '{phase}'")
