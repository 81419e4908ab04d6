"""Resilience infrastructure for outbound API calls."""

from haggle.resilience.retry import resilient_api_call

__all__ = [
    "resilient_api_call",
]
