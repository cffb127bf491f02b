"""MCP Server for upstream drift checks using stdio transport.

Exposes the read-only ``upstream_check`` tool so AI agents can find out
which imported definitions drifted from upstream and which upstream
changes collide with manual overrides.

Transport: stdio (for Claude Desktop/Code integration)
Protocol: JSON-RPC 2.0 over MCP
"""

import argparse
import asyncio
import logging
import sys

import mcp.server.stdio
import mcp.types as types
from mcp.server import NotificationOptions, Server
from mcp.server.models import InitializationOptions

from .. import __version__
from ..config import Config
from ..core.client import GitHubClient
from ..logger import DEFAULT_LOG_FILE, setup_logging
from .lifespan import load_logging_config, server_lifespan
from .tools import CHECK_TOOLS, build_error_response, handle_check_tool

logger = logging.getLogger(__name__)

server = Server("upstream-sync")

# Initialized in main() from the lifespan context
_client: GitHubClient | None = None
_config: Config | None = None


# ---------------------------------------------------------------------------
# Global accessors
# ---------------------------------------------------------------------------


def get_client() -> GitHubClient:
    """Get the global GitHubClient instance.

    Raises:
        RuntimeError: If client is not initialized
    """
    if _client is None:
        raise RuntimeError(
            "GitHubClient not initialized. Server lifespan not started."
        )
    return _client


def get_config() -> Config:
    if _config is None:
        raise RuntimeError("Config not initialized. Server lifespan not started.")
    return _config


def set_context(client: GitHubClient | None, config: Config | None) -> None:
    """Install (or clear, with ``None``) the global client and config."""
    global _client, _config
    _client = client
    _config = config


# ---------------------------------------------------------------------------
# MCP protocol handlers
# ---------------------------------------------------------------------------


@server.list_tools()
async def handle_list_tools() -> list[types.Tool]:
    """List available tools."""
    return list(CHECK_TOOLS)


@server.call_tool()
async def handle_call_tool(
    name: str, arguments: dict | None
) -> types.CallToolResult:
    """Handle tool execution.

    Args:
        name: The name of the tool to execute.
        arguments: Tool arguments (optional).

    Returns:
        CallToolResult with tool output content and optional isError flag.
    """
    if name not in {tool.name for tool in CHECK_TOOLS}:
        return build_error_response(
            "unknown_tool",
            f"Unknown tool: {name}",
            "Use list_tools to see available tools.",
        )
    return await handle_check_tool(name, arguments, get_client(), get_config())


# ---------------------------------------------------------------------------
# Server lifecycle
# ---------------------------------------------------------------------------


async def main(config_overrides: dict | None = None):
    """Run the MCP server with stdio transport.

    Args:
        config_overrides: Optional dict with config values to override
            (manifest_path, source, api_url, debug, log_file)
    """
    log_file = config_overrides.get("log_file") if config_overrides else None
    debug = bool(config_overrides and config_overrides.get("debug"))

    # Must run before stdio_server: stdout belongs to the protocol
    logging_config = load_logging_config()
    setup_logging(
        mode="mcp",
        debug=debug,
        log_file=log_file,
        level=logging_config.level,
        config_log_file=logging_config.file,
    )

    # set_context() is called here rather than in the lifespan so that
    # running via ``python -m`` installs globals on the right module copy.
    async with server_lifespan(config_overrides=config_overrides) as ctx:
        set_context(ctx["client"], ctx["config"])
        try:
            async with mcp.server.stdio.stdio_server() as (
                read_stream,
                write_stream,
            ):
                init_options = InitializationOptions(
                    server_name="upstream-sync",
                    server_version=__version__,
                    capabilities=server.get_capabilities(
                        notification_options=NotificationOptions(),
                        experimental_capabilities={},
                    ),
                )
                await server.run(read_stream, write_stream, init_options)
        finally:
            set_context(None, None)


def run() -> None:
    """Entry point that handles errors gracefully and parses CLI arguments."""
    parser = argparse.ArgumentParser(
        description="Upstream Sync MCP Server - upstream drift checks over MCP",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Run with default config (from .env or .upstream_sync/config.yml)
  upstream-sync-mcp

  # Check a specific manifest
  upstream-sync-mcp --manifest path/to/sync-manifest.json

Note: This server uses stdio transport for JSON-RPC communication with MCP clients.
All user-facing messages are written to stderr. Do not pipe stdin/stdout manually.
        """,
    )
    parser.add_argument(
        "--manifest",
        help="Manifest path (takes precedence over UPSTREAM_SYNC_MANIFEST and config files)",
    )
    parser.add_argument("--source", help="Default source id to check")
    parser.add_argument(
        "--api-url",
        help="GitHub API base URL (takes precedence over UPSTREAM_SYNC_API_URL)",
    )
    parser.add_argument(
        "--debug", action="store_true", help="Enable debug logging"
    )
    parser.add_argument(
        "--log-file",
        help=(
            "Log file path (default: LOG_FILE, the config file, or "
            f"{DEFAULT_LOG_FILE})"
        ),
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"upstream-sync version {__version__}",
    )

    args = parser.parse_args()

    config_overrides: dict = {}
    if args.manifest:
        config_overrides["manifest_path"] = args.manifest
    if args.source:
        config_overrides["source"] = args.source
    if args.api_url:
        config_overrides["api_url"] = args.api_url
    if args.debug:
        config_overrides["debug"] = True
    if args.log_file:
        config_overrides["log_file"] = args.log_file

    try:
        asyncio.run(main(config_overrides=config_overrides or None))
    except RuntimeError:
        # Already reported on stderr by the lifespan manager
        sys.exit(1)
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        sys.exit(0)


if __name__ == "__main__":
    run()
