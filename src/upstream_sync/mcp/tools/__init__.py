"""MCP tool handlers for upstream drift checks.

This package wraps the check engine with async handlers and structured
error responses.
"""

from .check import CHECK_TOOLS, handle_check_tool
from .errors import build_error_response, translate_fatal_error

__all__ = [
    "CHECK_TOOLS",
    "build_error_response",
    "handle_check_tool",
    "translate_fatal_error",
]
