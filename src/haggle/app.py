"""Application entry point for the marketplace negotiation service.

Configures:
- **structlog** with JSON rendering (production) or colored console (development)
- **Sentry** error reporting via structlog-sentry when a DSN is configured
- **SQLite** market database shared by the stores
- **Decision oracle** HTTP client with retry on transport failures
- **FastAPI** routes, request IDs, health probes and Prometheus metrics
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

import structlog
import uvicorn
from fastapi import FastAPI

from haggle.api.routes import register_error_handlers, router
from haggle.config import Settings, get_settings, validate_settings
from haggle.health import register_health_routes
from haggle.ledger.market import MarketStore
from haggle.ledger.schema import close_market_db, init_market_db
from haggle.ledger.store import OfferLedger
from haggle.negotiation.orchestrator import NegotiationOrchestrator
from haggle.observability.metrics import setup_metrics
from haggle.observability.middleware import SERVICE_NAME, RequestIdMiddleware
from haggle.observability.sentry import get_sentry_processor, init_sentry
from haggle.oracle.client import OracleClient

logger = structlog.get_logger()


def configure_logging(production: bool = False, sentry_enabled: bool = False) -> None:
    """Configure structlog for production (JSON) or development (console).

    Production mode (*production=True*): JSON rendering at INFO level.
    Development mode: colored console rendering at DEBUG level.

    Args:
        production: Enable production mode if ``True``.
        sentry_enabled: Forward ERROR events to Sentry if ``True``.
    """
    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]
    if sentry_enabled:
        shared_processors.append(get_sentry_processor())

    if production:
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer()
        log_level = logging.INFO
    else:
        renderer = structlog.dev.ConsoleRenderer()
        log_level = logging.DEBUG

    structlog.configure(
        processors=[*shared_processors, renderer],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    structlog.contextvars.bind_contextvars(service=SERVICE_NAME)


def initialize_services(settings: Settings | None = None) -> dict[str, Any]:
    """Set up all shared services for the application.

    Opens the market database and its stores, and creates the decision
    oracle client and the negotiation orchestrator when an oracle endpoint
    is configured.

    Args:
        settings: Application settings.  If ``None``, ``get_settings()`` is used.

    Returns:
        A dict of initialized service instances keyed by name.
    """
    if settings is None:
        settings = get_settings()

    services: dict[str, Any] = {"_settings": settings}

    # a. Market database and stores
    db_path = settings.db_path
    if str(db_path) != ":memory:":
        db_path.parent.mkdir(parents=True, exist_ok=True)
    db_conn = init_market_db(db_path)
    services["db_conn"] = db_conn
    services["market_store"] = MarketStore(db_conn)
    offer_ledger = OfferLedger(db_conn)
    services["offer_ledger"] = offer_ledger

    # b. Decision oracle and orchestrator
    oracle: OracleClient | None = None
    orchestrator: NegotiationOrchestrator | None = None
    if settings.oracle_base_url:
        oracle = OracleClient(
            settings.oracle_base_url,
            timeout=settings.oracle_timeout_seconds,
            connect_timeout=settings.oracle_connect_timeout_seconds,
            max_attempts=settings.oracle_max_attempts,
        )
        orchestrator = NegotiationOrchestrator(oracle, offer_ledger)
        logger.info("oracle_client_initialized", base_url=settings.oracle_base_url)
    else:
        logger.warning("oracle_client_not_configured")
    services["oracle"] = oracle
    services["orchestrator"] = orchestrator

    return services


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
    """Lifespan context manager for FastAPI startup and shutdown.

    On shutdown: closes the oracle HTTP client and the market database.

    Args:
        app: The FastAPI application instance.

    Yields:
        Control to the application.
    """
    services = app.state.services
    logger.info("fastapi_application_starting")
    yield
    oracle = services.get("oracle")
    if oracle is not None:
        await oracle.aclose()
    db_conn = services.get("db_conn")
    if db_conn is not None:
        close_market_db(db_conn)
        logger.info("market_database_closed")


def create_app(services: dict[str, Any]) -> FastAPI:
    """Create the FastAPI app with lifespan, API routes, probes, and metrics.

    Args:
        services: The initialized services dict from ``initialize_services``.

    Returns:
        The configured FastAPI application.
    """
    fastapi_app = FastAPI(title="Haggle Marketplace", lifespan=lifespan)
    fastapi_app.state.services = services
    fastapi_app.state.settings = services.get("_settings") or get_settings()
    fastapi_app.add_middleware(RequestIdMiddleware)
    fastapi_app.include_router(router)
    register_error_handlers(fastapi_app)
    register_health_routes(fastapi_app)
    setup_metrics(fastapi_app)
    return fastapi_app


async def main() -> None:
    """Main entry point: configure, initialize, and serve.

    1. Initialize Sentry and configure logging
    2. Validate settings
    3. Initialize services and create the FastAPI app
    4. Run uvicorn until shutdown
    """
    settings = get_settings()
    sentry_enabled = init_sentry(settings.sentry_dsn, production=settings.production)
    configure_logging(production=settings.production, sentry_enabled=sentry_enabled)
    logger.info("application_starting", sentry_enabled=sentry_enabled)

    validate_settings(settings)

    services = initialize_services(settings)
    fastapi_app = create_app(services)

    config = uvicorn.Config(
        fastapi_app,
        host="0.0.0.0",
        port=settings.port,
        log_level="info",
    )
    server = uvicorn.Server(config)
    await server.serve()


def run() -> None:
    """Console-script entry point."""
    asyncio.run(main())


if __name__ == "__main__":
    run()
