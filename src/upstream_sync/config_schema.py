"""Unified configuration schema for upstream_sync.

Defines Pydantic models for the unified config structure with dedicated
sections for upstream checking and logging.  Includes an adapter that turns
the validated ``upstream`` section into the fallback dict consumed by
``config.load_config()``.

Usage:
    from upstream_sync.config_schema import build_config, to_fallbacks

    raw = load_hierarchical_config()
    unified = build_config(raw)
    config = load_config(yaml_fallbacks=to_fallbacks(unified))
"""

from __future__ import annotations

import logging

from pydantic import BaseModel, Field

from .config import (
    DEFAULT_API_URL,
    DEFAULT_CONTENT_ROOT,
    DEFAULT_MANIFEST_PATH,
    PIPELINE_VERSION,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Section models
# ---------------------------------------------------------------------------


class UpstreamConfig(BaseModel):
    """Upstream check settings.

    All fields have defaults so an empty section is valid; env vars and CLI
    args can supply the rest at runtime.
    """

    manifest_path: str = Field(
        default=DEFAULT_MANIFEST_PATH, description="Manifest JSON path"
    )
    source: str | None = Field(
        default=None,
        description="Source id to check (defaults to the only source)",
    )
    content_root: str = Field(
        default=DEFAULT_CONTENT_ROOT,
        description="Repository prefix under which definitions live",
    )
    pipeline_version: int = Field(
        default=PIPELINE_VERSION,
        ge=1,
        description="Current output-format version of the import pipeline",
    )
    api_url: str = Field(
        default=DEFAULT_API_URL, description="GitHub API base URL"
    )
    max_parallel_requests: int = Field(
        default=5,
        ge=1,
        le=32,
        description="Maximum concurrent blob fetches (1-32)",
    )
    max_attempts: int = Field(
        default=3, ge=1, le=10, description="Attempts per request (1-10)"
    )
    base_delay: float = Field(
        default=1.0, ge=0, description="Backoff delay after first failure"
    )
    max_delay: float = Field(
        default=10.0, ge=0, description="Upper bound for backoff delays"
    )
    connect_timeout: float = Field(default=10.0, gt=0)
    read_timeout: float = Field(default=60.0, gt=0)

    model_config = {"frozen": True}


class LoggingConfig(BaseModel):
    """Logging configuration.

    Attributes:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL), or
            ``None`` for the mode default (INFO for the CLI, WARNING for
            the MCP server).  LOG_LEVEL overrides it.
        file: Optional log file path.  --log-file overrides it, and so
            does LOG_FILE for the MCP server.
    """

    level: str | None = Field(default=None, description="Log level")
    file: str | None = Field(default=None, description="Log file path")

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Top-level unified config
# ---------------------------------------------------------------------------


class UnifiedConfig(BaseModel):
    """Top-level unified configuration.

    Every section has sensible defaults, so ``UnifiedConfig()``
    (zero-config) is always valid.
    """

    upstream: UpstreamConfig = Field(default_factory=UpstreamConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = {"frozen": True}


def build_config(raw_data: dict) -> UnifiedConfig:
    """Construct a ``UnifiedConfig`` from the raw dict returned by
    ``load_hierarchical_config()``.

    Handles missing sections gracefully; anything absent gets defaults.

    Args:
        raw_data: Merged configuration dictionary.

    Returns:
        Validated ``UnifiedConfig`` instance.
    """
    if not raw_data:
        return UnifiedConfig()

    return UnifiedConfig(**raw_data)


def to_fallbacks(unified: UnifiedConfig) -> dict:
    """Return the ``upstream`` section as a ``yaml_fallbacks`` dict.

    Unset optional values are dropped so that ``load_config()`` falls
    through to its built-in defaults.
    """
    return unified.upstream.model_dump(exclude_none=True)
