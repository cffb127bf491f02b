"""MCP tool handler for upstream drift checks.

Defines one tool:

- ``upstream_check`` -- compare the manifest with its upstream source and
  reconcile changed definitions against their manual overrides.  Read-only:
  the manifest is never written.
"""

from __future__ import annotations

import logging
from typing import Any

import mcp.types as types

from ...config import Config
from ...core.async_utils import run_sync
from ...sync.engine import UpstreamChecker
from ...sync.fetcher import ContentSource
from ...sync.keys import DefinitionLayout
from ...sync.models import CheckStatus
from ...sync.reporter import format_check_report, report_to_json
from .errors import build_error_response, translate_fatal_error

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Tool definitions
# ---------------------------------------------------------------------------


CHECK_TOOLS: list[types.Tool] = [
    types.Tool(
        name="upstream_check",
        description=(
            "Check imported definitions against their upstream repository. "
            "Reports changed, new, deleted and locally owned definitions, "
            "and flags upstream changes that collide with manual overrides. "
            "Never modifies the manifest."
        ),
        annotations=types.ToolAnnotations(
            readOnlyHint=True,
            destructiveHint=False,
            idempotentHint=True,
            openWorldHint=True,
        ),
        inputSchema={
            "type": "object",
            "properties": {
                "manifest_path": {
                    "type": "string",
                    "description": (
                        "Manifest JSON path. Defaults to the configured "
                        "manifest."
                    ),
                },
                "source": {
                    "type": "string",
                    "description": (
                        "Source id to check. Defaults to the manifest's "
                        "only source."
                    ),
                },
                "reconcile": {
                    "type": "boolean",
                    "default": True,
                    "description": (
                        "Reconcile changed definitions against manual "
                        "overrides"
                    ),
                },
            },
            "required": [],
        },
    ),
]


# ---------------------------------------------------------------------------
# Dispatch
# ---------------------------------------------------------------------------


async def handle_check_tool(
    name: str,
    arguments: dict[str, Any] | None,
    client: ContentSource,
    config: Config,
) -> types.CallToolResult:
    """Dispatch and execute a check tool.

    Args:
        name: Tool name (``upstream_check``).
        arguments: Tool arguments dict.
        client: Content source used for all fetches.
        config: Runtime configuration supplying defaults.

    Returns:
        ``CallToolResult`` with tool output or error details.
    """
    args = arguments or {}

    try:
        match name:
            case "upstream_check":
                return await _handle_upstream_check(args, client, config)
            case _:
                raise ValueError(f"Unknown check tool: {name}")

    except ValueError as exc:
        return build_error_response(
            "validation_error",
            str(exc),
            "Check parameter values and retry.",
        )
    except Exception as exc:
        logger.exception("Check tool error: %s", exc)
        return build_error_response(
            "server_error",
            str(exc),
            "Check the manifest and GitHub connectivity, then retry.",
        )


# ---------------------------------------------------------------------------
# Individual handlers
# ---------------------------------------------------------------------------


async def _handle_upstream_check(
    args: dict[str, Any],
    client: ContentSource,
    config: Config,
) -> types.CallToolResult:
    """Handle the ``upstream_check`` tool."""
    reconcile = args.get("reconcile", True)
    if not isinstance(reconcile, bool):
        raise ValueError("reconcile must be a boolean")

    checker = UpstreamChecker(
        client=client,
        manifest_path=args.get("manifest_path") or config.manifest_path,
        source_id=args.get("source") or config.source,
        pipeline_version=config.pipeline_version,
        layout=DefinitionLayout(config.content_root),
        max_parallel=config.max_parallel_requests,
        reconcile=reconcile,
    )
    # run() drives its own event loop for blob fetches
    report = await run_sync(checker.run)

    if report.fatal_error is not None:
        return translate_fatal_error(report.fatal_error)

    return types.CallToolResult(
        content=[
            types.TextContent(type="text", text=format_check_report(report))
        ],
        structuredContent=report_to_json(report),
        isError=report.status == CheckStatus.ERROR,
    )
