"""Error response builders for MCP tool handlers.

Structured error responses carry a corrective action so AI agents can
recover from errors without human intervention.
"""

import mcp.types as types

from ...sync.models import DefinitionError


def build_error_response(
    error_type: str, message: str, corrective_action: str
) -> types.CallToolResult:
    """Build a structured error response with corrective action.

    Args:
        error_type: Error category (not_found, validation_error,
            manifest_error, fetch_error, server_error)
        message: Human-readable error description
        corrective_action: Specific action the agent can take to resolve the error

    Returns:
        CallToolResult with isError=True

    Examples:
        >>> build_error_response("not_found", "Unknown source 'x'", "Use a source id from the manifest.")
        CallToolResult(content=[TextContent(...)], isError=True)
    """
    error_text = f"Error ({error_type}): {message}\n\nAction: {corrective_action}"

    return types.CallToolResult(
        content=[types.TextContent(type="text", text=error_text)],
        isError=True,
    )


# ---------------------------------------------------------------------------
# Fatal check errors
# ---------------------------------------------------------------------------

_FATAL_ACTIONS: dict[str, tuple[str, str]] = {
    "manifest": (
        "manifest_error",
        "Verify the manifest path and fix its JSON or schema errors.",
    ),
    "source": (
        "not_found",
        "Pass a 'source' that is defined in the manifest's sources table.",
    ),
    "fetch": (
        "fetch_error",
        "Check GITHUB_TOKEN and the repository/branch, or retry later "
        "if rate limited.",
    ),
}


def translate_fatal_error(error: DefinitionError) -> types.CallToolResult:
    """Translate a run-aborting check error to a structured error response."""
    error_type, action = _FATAL_ACTIONS.get(
        error.kind, ("server_error", "Retry later.")
    )
    return build_error_response(error_type, error.message, action)
