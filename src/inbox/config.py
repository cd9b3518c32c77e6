"""Centralized, typed configuration using pydantic-settings.

Provides a single ``Settings`` class backed by ``.env`` file and environment
variables and a cached ``get_settings()`` accessor.

IMPORTANT: This module has ZERO imports from the ``inbox`` package to
prevent circular imports.  Only stdlib, pydantic, pydantic_settings, and
structlog are used.
"""

from __future__ import annotations

import sys
from functools import lru_cache

import structlog
from pydantic import Field, ValidationError
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
    default_owner: str = ""

    # -- Record Source ---------------------------------------------------------
    record_source_url: str = "http://localhost:3001"
    request_timeout_seconds: float = Field(default=10.0, gt=0)
    fetch_attempts: int = Field(default=3, ge=1)

    # -- Refresh / batching ----------------------------------------------------
    refresh_interval_seconds: float = Field(default=5.0, gt=0)
    read_debounce_ms: int = Field(default=300, ge=0)
    merge_window_ms: int = Field(default=120_000, ge=0)


@lru_cache
def get_settings() -> Settings:
    """Return a cached ``Settings`` instance.

    The ``@lru_cache`` decorator ensures environment variables are parsed
    exactly once.  Call ``get_settings.cache_clear()`` in tests to reset.

    Returns:
        The application ``Settings``.
    """
    try:
        return Settings()
    except ValidationError as exc:
        logger.error("settings_validation_failed", errors=exc.errors())
        sys.exit(1)
