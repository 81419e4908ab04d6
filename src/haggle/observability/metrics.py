"""Prometheus metrics instrumentation for the marketplace service.

Provides:
- ``setup_metrics(app)``: Attach prometheus-fastapi-instrumentator to a FastAPI app,
  exposing ``/metrics`` with HTTP request duration/count plus the business counters.
- ``NEGOTIATIONS``: Counter of negotiation runs by terminal outcome.
- ``ORACLE_CALLS``: Counter of Decision Oracle calls by operation and result.
- ``DEALS_CONFIRMED``: Counter of deals a human confirmed.

Business metrics are updated where the event happens, not by polling the database.
"""

from __future__ import annotations

from fastapi import FastAPI
from prometheus_client import Counter
from prometheus_fastapi_instrumentator import Instrumentator

NEGOTIATIONS: Counter = Counter(
    "haggle_negotiations_total",
    "Negotiation runs by terminal outcome",
    ["outcome"],
)

ORACLE_CALLS: Counter = Counter(
    "haggle_oracle_calls_total",
    "Decision Oracle calls by operation and result",
    ["operation", "result"],
)

DEALS_CONFIRMED: Counter = Counter(
    "haggle_deals_confirmed_total",
    "Deals confirmed by a human after automated negotiation",
)


def setup_metrics(app: FastAPI) -> None:
    """Instrument *app* with Prometheus HTTP metrics and expose ``/metrics``.

    Excludes health/ready/metrics endpoints from instrumentation.

    Args:
        app: The FastAPI application to instrument.
    """
    Instrumentator(
        should_group_status_codes=True,
        should_ignore_untemplated=True,
        excluded_handlers=["/health", "/ready", "/metrics"],
    ).instrument(app).expose(app, include_in_schema=False, should_gzip=True)
