"""Centralized, typed configuration using pydantic-settings.

Provides a single ``Settings`` class backed by ``.env`` file and environment
variables, a cached ``get_settings()`` accessor, and a ``validate_settings()``
startup gate that refuses to start in production without an oracle endpoint.

This module has no imports from the ``haggle`` package so that every other
module can depend on it freely.
"""

from __future__ import annotations

import sys
from functools import lru_cache
from pathlib import Path

import structlog
from pydantic import ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = structlog.get_logger()


class Settings(BaseSettings):
    """Application settings loaded from environment variables and ``.env`` file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # -- General ---------------------------------------------------------------
    production: bool = False
    port: int = 8000

    # -- Persistence -----------------------------------------------------------
    db_path: Path = Path("data/haggle.db")

    # -- Decision oracle -------------------------------------------------------
    oracle_base_url: str = ""
    oracle_timeout_seconds: float = 60.0
    oracle_connect_timeout_seconds: float = 10.0
    oracle_max_attempts: int = 3

    # -- Observability ---------------------------------------------------------
    sentry_dsn: str = ""


@lru_cache
def get_settings() -> Settings:
    """Return a cached ``Settings`` instance.

    Call ``get_settings.cache_clear()`` in tests to reset.
    """
    try:
        return Settings()
    except ValidationError as exc:
        logger.error("settings_validation_failed", errors=exc.errors())
        sys.exit(1)


def validate_settings(settings: Settings) -> None:
    """Enforce required settings at startup.

    In production mode a missing oracle endpoint stops the process; in
    development it is only logged, since routes that never reach the oracle
    (health, pending deals) still work.

    Args:
        settings: The loaded application settings.
    """
    errors: list[str] = []

    if not settings.oracle_base_url:
        errors.append("ORACLE_BASE_URL is empty or not set")

    if settings.oracle_max_attempts < 1:
        errors.append("ORACLE_MAX_ATTEMPTS must be at least 1")

    if not errors:
        logger.info("settings_validation_passed")
        return

    if settings.production:
        for err in errors:
            logger.error("setting_missing", detail=err)
        print("\n=== STARTUP FAILED ===", file=sys.stderr)
        for err in errors:
            print(f"  - {err}", file=sys.stderr)
        print("======================\n", file=sys.stderr)
        sys.exit(1)
    else:
        for err in errors:
            logger.warning("setting_missing_dev", detail=err)
