"""Lifespan management for MCP server startup and shutdown."""

import logging
import sys
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from dotenv import load_dotenv

from ..config import load_config
from ..config_loader import discover_config_files, load_hierarchical_config
from ..config_schema import LoggingConfig, build_config, to_fallbacks
from ..core.client import GitHubClient

logger = logging.getLogger(__name__)


def _stderr_print(msg: str) -> None:
    """Print message to stderr for user feedback (safe in MCP mode)."""
    print(msg, file=sys.stderr, flush=True)


def load_logging_config() -> LoggingConfig:
    """Return the ``logging`` section of the config files, or defaults.

    Runs before logging is configured.  A broken config file yields the
    defaults here; ``server_lifespan`` reports the error itself.
    """
    load_dotenv()
    if not discover_config_files():
        return LoggingConfig()
    try:
        return build_config(load_hierarchical_config()).logging
    except ValueError:
        return LoggingConfig()


@asynccontextmanager
async def server_lifespan(
    config_overrides: dict[str, Any] | None = None,
) -> AsyncIterator[dict[str, Any]]:
    """
    Manage server startup and shutdown lifecycle.

    On startup:
    - Load .env file (so values are available for env var lookups and YAML interpolation)
    - Load YAML config file if present (as fallback values)
    - Merge all sources via load_config(): CLI > env vars > .env > YAML > defaults
    - Create the GitHubClient

    No request is made at startup: a check run reports fetch failures itself.

    Args:
        config_overrides: Optional dict with config values from CLI
            (manifest_path, source, api_url, debug)

    Yields:
        Dict with 'client' (GitHubClient) and 'config' (Config) keys

    Raises:
        RuntimeError: If configuration is invalid.
    """
    logger.info("MCP server starting...")
    _stderr_print("Upstream Sync MCP Server starting...")

    try:
        # .env before YAML so ${VAR} interpolation sees .env values
        load_dotenv()

        yaml_fallbacks: dict[str, Any] | None = None
        sources = []
        config_files = discover_config_files()
        if config_files:
            unified = build_config(load_hierarchical_config())
            yaml_fallbacks = to_fallbacks(unified)
            sources.append(f"config file: {config_files[0]}")

        overrides = config_overrides or {}
        config = load_config(
            api_url=overrides.get("api_url"),
            manifest_path=overrides.get("manifest_path"),
            source=overrides.get("source"),
            debug=overrides.get("debug", False),
            yaml_fallbacks=yaml_fallbacks,
        )

        if overrides:
            sources.append("CLI arguments")
        sources.append("environment variables")
        source_desc = ", ".join(sources)
        logger.info("Configuration loaded from: %s", source_desc)
        _stderr_print(f"  Configuration loaded from: {source_desc}")
        _stderr_print(f"  Manifest: {config.manifest_path}")
    except ValueError as e:
        logger.error("Configuration error: %s", e)
        _stderr_print(f"ERROR: Configuration error: {e}")
        raise RuntimeError(f"Configuration error: {e}") from e

    client = GitHubClient(config)
    _stderr_print(f"  Parallel requests: {config.max_parallel_requests}")
    _stderr_print("Server ready. Waiting for MCP client connection...")

    yield {"client": client, "config": config}

    logger.info("MCP server shutting down")
    _stderr_print("Upstream Sync MCP Server shutting down.")
