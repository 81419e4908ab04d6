"""Tests for application entry point: structlog config, service initialization, and app creation."""

from __future__ import annotations

import sqlite3
from pathlib import Path

import pytest
import structlog
from fastapi import FastAPI
from fastapi.testclient import TestClient
from structlog_sentry import SentryProcessor

from haggle.app import configure_logging, create_app, initialize_services
from haggle.config import Settings
from haggle.ledger.market import MarketStore
from haggle.ledger.store import OfferLedger
from haggle.negotiation.orchestrator import NegotiationOrchestrator
from haggle.oracle.client import OracleClient


def _reset_structlog() -> None:
    """Reset structlog so cached loggers don't leak between tests."""
    structlog.reset_defaults()
    structlog.contextvars.clear_contextvars()


def _base_settings(tmp_path: Path, **overrides) -> Settings:
    """Build a Settings instance pointing the market DB to tmp_path."""
    defaults = {"db_path": tmp_path / "market" / "haggle.db"}
    defaults.update(overrides)
    return Settings(_env_file=None, **defaults)  # type: ignore[call-arg]


class TestConfigureLogging:
    """Tests for structlog configuration in dev and production modes."""

    def test_development_mode_uses_console_renderer(self) -> None:
        _reset_structlog()
        configure_logging(production=False)
        processors = structlog.get_config()["processors"]
        assert any(isinstance(p, structlog.dev.ConsoleRenderer) for p in processors)
        _reset_structlog()

    def test_production_mode_uses_json_renderer(self) -> None:
        _reset_structlog()
        configure_logging(production=True)
        processors = structlog.get_config()["processors"]
        assert any(isinstance(p, structlog.processors.JSONRenderer) for p in processors)
        _reset_structlog()

    def test_sentry_processor_only_when_enabled(self) -> None:
        _reset_structlog()
        configure_logging(production=True)
        processors = structlog.get_config()["processors"]
        assert not any(isinstance(p, SentryProcessor) for p in processors)

        configure_logging(production=True, sentry_enabled=True)
        processors = structlog.get_config()["processors"]
        sentry_index = next(i for i, p in enumerate(processors) if isinstance(p, SentryProcessor))
        assert isinstance(processors[-1], structlog.processors.JSONRenderer)
        assert sentry_index < len(processors) - 1
        _reset_structlog()

    def test_service_name_is_bound(self) -> None:
        _reset_structlog()
        configure_logging()
        assert structlog.contextvars.get_contextvars()["service"] == "haggle"
        _reset_structlog()


class TestInitializeServices:
    def test_without_oracle(self, tmp_path: Path) -> None:
        settings = _base_settings(tmp_path)

        services = initialize_services(settings)

        assert settings.db_path.exists()
        assert isinstance(services["market_store"], MarketStore)
        assert isinstance(services["offer_ledger"], OfferLedger)
        assert services["oracle"] is None
        assert services["orchestrator"] is None
        assert services["_settings"] is settings
        services["db_conn"].close()

    def test_with_oracle(self, tmp_path: Path) -> None:
        settings = _base_settings(tmp_path, oracle_base_url="https://oracle.test")

        services = initialize_services(settings)

        assert isinstance(services["oracle"], OracleClient)
        assert isinstance(services["orchestrator"], NegotiationOrchestrator)
        services["db_conn"].close()

    def test_in_memory_database(self, tmp_path: Path) -> None:
        settings = _base_settings(tmp_path, db_path=Path(":memory:"))

        services = initialize_services(settings)

        assert services["db_conn"].execute("SELECT 1").fetchone()[0] == 1
        services["db_conn"].close()


class TestCreateApp:
    def test_returns_fastapi_with_routes(self, tmp_path: Path) -> None:
        services = initialize_services(_base_settings(tmp_path))

        app = create_app(services)

        assert isinstance(app, FastAPI)
        paths = {route.path for route in app.routes}
        assert "/health" in paths
        assert "/ready" in paths
        assert "/metrics" in paths
        assert "/api/ai/auto-browse" in paths
        assert "/api/agent/products/{product_id}/negotiate" in paths
        assert "/api/offers/{offer_id}/confirm" in paths
        services["db_conn"].close()

    def test_lifespan_closes_database(self, tmp_path: Path) -> None:
        services = initialize_services(_base_settings(tmp_path))

        with TestClient(create_app(services)) as client:
            assert client.get("/health").status_code == 200

        with pytest.raises(sqlite3.ProgrammingError):
            services["db_conn"].execute("SELECT 1")
