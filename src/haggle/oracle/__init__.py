"""Decision Oracle integration.

Provides the HTTP client for the streaming act endpoint, the capability
protocol the orchestrator depends on, prompt templates, stream reassembly,
and reply normalization.
"""

from haggle.oracle.client import ACT_STREAM_PATH, OracleClient
from haggle.oracle.models import (
    BuyerOpening,
    MarketCandidate,
    OracleDecision,
    Pick,
    coerce_price,
    normalize_decision,
    normalize_opening,
    normalize_picks,
)
from haggle.oracle.protocol import DecisionOracle
from haggle.oracle.stream import assemble_lines, assemble_stream, find_balanced, parse_payload

__all__ = [
    "ACT_STREAM_PATH",
    "BuyerOpening",
    "DecisionOracle",
    "MarketCandidate",
    "OracleClient",
    "OracleDecision",
    "Pick",
    "assemble_lines",
    "assemble_stream",
    "coerce_price",
    "find_balanced",
    "normalize_decision",
    "normalize_opening",
    "normalize_picks",
    "parse_payload",
]
