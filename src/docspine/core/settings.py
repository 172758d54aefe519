"""Settings for docspine services and the CLI.

The pipeline classes take their sizes as constructor arguments, so library
callers never need settings. The CLI and long-running jobs read them from
the environment (prefix ``DOCSPINE_``) or a ``.env`` file.

Manifesto:
    Configuration should be explicit, validated, and environment-driven.

    - **Pydantic validation:** Type-checked at startup, not at first query
    - **Environment-driven:** Reads from env vars and .env files
    - **Sensible defaults:** Local MongoDB, database ``test``, batches of 1000

Examples:
    >>> from docspine.core.settings import get_settings
    >>> settings = get_settings()
    >>> settings.batch_size
    1000

Tags:
    settings, configuration, pydantic, environment, docspine
"""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class DocSpineSettings(BaseSettings):
    """Settings shared by the CLI and pipeline jobs.

    Fields
    ──────
    store_type        : Adapter name (``mongodb`` or ``memory``)
    mongo_url         : MongoDB connection URL
    database          : Database name
    batch_size        : Documents per source batch
    output_chunk_size : Documents per enriched output batch
    log_level         : Structlog log level
    log_format        : ``console`` or ``json``
    """

    model_config = SettingsConfigDict(
        env_prefix="DOCSPINE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Store ────────────────────────────────────────────────────
    store_type: Literal["mongodb", "memory"] = "mongodb"
    mongo_url: str = "mongodb://localhost"
    database: str = Field(default="test", min_length=1)

    # ── Batching ─────────────────────────────────────────────────
    batch_size: int = Field(default=1000, ge=1)
    output_chunk_size: int = Field(default=1000, ge=1)

    # ── Observability ────────────────────────────────────────────
    log_level: str = "INFO"
    log_format: Literal["console", "json"] = "console"


@lru_cache(maxsize=1)
def get_settings() -> DocSpineSettings:
    """Return the process settings, loading them on first use."""
    return DocSpineSettings()


def reset_settings() -> None:
    """Drop cached settings so the next call re-reads the environment."""
    get_settings.cache_clear()


__all__ = ["DocSpineSettings", "get_settings", "reset_settings"]
