"""Unified configuration schema for codex-sync.

Defines Pydantic models for the YAML config file, with dedicated sections
for the HTTP service, object store, fragment index, GitHub and logging.
Includes an adapter that flattens the sections into the fallback dict
consumed by ``config.load_config()``.

Usage:
    from codex_sync.config_schema import build_config, yaml_fallbacks

    raw = load_hierarchical_config()
    unified = build_config(raw)
    config = load_config(yaml_fallbacks=yaml_fallbacks(unified))
"""

from __future__ import annotations

import logging
from typing import Any

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Section models
# ---------------------------------------------------------------------------


class ServerConfig(BaseModel):
    """HTTP service settings.

    All fields are optional to support zero-config: env vars and CLI args
    can supply them at runtime instead.
    """

    environment: str | None = Field(
        default=None, description="Deployment name reported by /health"
    )
    sync_secret: str | None = Field(
        default=None, description="Shared bearer secret"
    )
    max_parallel: int = Field(
        default=5,
        ge=1,
        le=100,
        description="Concurrent entries per /sync call (1-100)",
    )
    max_batch_size: int = Field(
        default=10000,
        ge=1,
        le=10000,
        description="Maximum entries per /sync call (1-10000)",
    )
    default_author: str | None = Field(
        default=None, description="Author for rows without one"
    )
    debug: bool = Field(default=False, description="Enable debug mode")

    model_config = {"frozen": True}


class StorageConfig(BaseModel):
    """Object store location.

    Attributes:
        url: ``s3://bucket[/prefix]``, ``file://`` URL or directory path.
        s3_endpoint_url: Endpoint for S3-compatible stores such as R2.
        s3_region: Region name passed to boto3.
    """

    url: str | None = Field(default=None, description="Object store URL")
    s3_endpoint_url: str | None = Field(
        default=None, description="S3-compatible endpoint"
    )
    s3_region: str | None = Field(default=None, description="S3 region")

    model_config = {"frozen": True}


class IndexConfig(BaseModel):
    """Relational fragment index location."""

    database: str | None = Field(
        default=None, description="SQLAlchemy URL or SQLite path"
    )

    model_config = {"frozen": True}


class GitHubConfig(BaseModel):
    """GitHub API settings used by reverse export."""

    token: str | None = Field(default=None, description="API token")
    repo: str | None = Field(
        default=None, description="Target repository (owner/repo)"
    )
    api_url: str | None = Field(default=None, description="API base URL")
    max_retries: int = Field(
        default=3,
        ge=0,
        le=10,
        description="Retries for idempotent calls (0-10)",
    )

    model_config = {"frozen": True}


class LoggingConfig(BaseModel):
    """Logging configuration.

    Attributes:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        file: Optional log file path.
        format: ``text`` or ``json``.
    """

    level: str = Field(default="INFO", description="Log level")
    file: str | None = Field(default=None, description="Log file path")
    format: str = Field(default="text", description="text or json")

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Top-level unified config
# ---------------------------------------------------------------------------


class UnifiedConfig(BaseModel):
    """Top-level unified configuration.

    Aggregates all config sections. Every section has sensible defaults,
    so ``UnifiedConfig()`` (zero-config) is always valid.
    """

    server: ServerConfig = Field(default_factory=ServerConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    index: IndexConfig = Field(default_factory=IndexConfig)
    github: GitHubConfig = Field(default_factory=GitHubConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Factory function
# ---------------------------------------------------------------------------


def build_config(raw_data: dict) -> UnifiedConfig:
    """Construct a ``UnifiedConfig`` from the raw dict returned by
    ``load_hierarchical_config()``.

    Handles missing sections gracefully -- anything absent gets defaults.
    """
    if not raw_data:
        return UnifiedConfig()

    return UnifiedConfig(**raw_data)


# ---------------------------------------------------------------------------
# Adapter: UnifiedConfig -> load_config() fallbacks
# ---------------------------------------------------------------------------


def yaml_fallbacks(unified: UnifiedConfig) -> dict[str, Any]:
    """Flatten a ``UnifiedConfig`` into ``Config`` field names.

    ``None`` values are dropped so they never shadow built-in defaults.

    Args:
        unified: The unified config produced by ``build_config()``.

    Returns:
        Dict suitable for ``load_config(yaml_fallbacks=...)``.
    """
    flat = {
        "environment": unified.server.environment,
        "sync_secret": unified.server.sync_secret,
        "max_parallel": unified.server.max_parallel,
        "max_batch_size": unified.server.max_batch_size,
        "default_author": unified.server.default_author,
        "debug": unified.server.debug,
        "store_url": unified.storage.url,
        "s3_endpoint_url": unified.storage.s3_endpoint_url,
        "s3_region": unified.storage.s3_region,
        "database_url": unified.index.database,
        "github_token": unified.github.token,
        "github_repo": unified.github.repo,
        "github_api_url": unified.github.api_url,
        "github_max_retries": unified.github.max_retries,
    }
    return {k: v for k, v in flat.items() if v is not None}
