"""Buyer/seller agent negotiation: the orchestrator and its entry points."""

from haggle.negotiation.entry_points import SCAN_PICK_LIMIT, negotiate_product, scan_market
from haggle.negotiation.orchestrator import (
    DIRECT_MAX_ROUNDS,
    SCAN_MAX_ROUNDS,
    NegotiationOrchestrator,
    check_preconditions,
)

__all__ = [
    "DIRECT_MAX_ROUNDS",
    "SCAN_MAX_ROUNDS",
    "SCAN_PICK_LIMIT",
    "NegotiationOrchestrator",
    "check_preconditions",
    "negotiate_product",
    "scan_market",
]
