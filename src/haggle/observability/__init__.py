"""Logging, metrics, error reporting, and request tracing."""

from haggle.observability.metrics import (
    DEALS_CONFIRMED,
    NEGOTIATIONS,
    ORACLE_CALLS,
    setup_metrics,
)
from haggle.observability.middleware import RequestIdMiddleware
from haggle.observability.sentry import get_sentry_processor, init_sentry

__all__ = [
    "DEALS_CONFIRMED",
    "NEGOTIATIONS",
    "ORACLE_CALLS",
    "RequestIdMiddleware",
    "get_sentry_processor",
    "init_sentry",
    "setup_metrics",
]
