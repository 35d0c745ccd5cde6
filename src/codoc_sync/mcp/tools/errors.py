"""Error response builders for MCP tool handlers.

Structured error responses carry a corrective action so an AI agent can
recover without human intervention.
"""

import mcp.types as types
from pydantic import ValidationError

from ...sync.mutator import ElementNotFoundError


def build_error_response(
    error_type: str, message: str, corrective_action: str
) -> types.CallToolResult:
    """Build a structured error response with corrective action.

    Args:
        error_type: Error category (not_found, permission_denied,
            validation_error, server_error)
        message: Human-readable error description
        corrective_action: Specific action the agent can take to resolve the error

    Returns:
        CallToolResult with isError=True

    Examples:
        >>> build_error_response("not_found", "No snapshot 42", "Use schema_sync_history.")
        CallToolResult(content=[TextContent(...)], isError=True)
    """
    error_text = f"Error ({error_type}): {message}\n\nAction: {corrective_action}"

    return types.CallToolResult(
        content=[types.TextContent(type="text", text=error_text)],
        isError=True,
    )


def translate_exception(error: Exception) -> types.CallToolResult:
    """Translate an exception raised by a tool handler into a response."""
    match error:
        case ValidationError():
            return build_error_response(
                "validation_error",
                str(error),
                "Check the diff, schema and dependency_graph payload shapes.",
            )
        case ElementNotFoundError():
            return build_error_response(
                "not_found",
                str(error),
                "Verify the element name and its owning file in the schema.",
            )
        case PermissionError():
            return build_error_response(
                "permission_denied",
                str(error),
                "Check file permissions inside the workspace.",
            )
        case FileNotFoundError():
            return build_error_response(
                "not_found",
                str(error),
                "Verify the path exists in the workspace.",
            )
        case ValueError():
            return build_error_response(
                "validation_error",
                str(error),
                "Check parameter values and retry.",
            )
        case _:
            return build_error_response(
                "server_error",
                str(error),
                "Inspect the server log and retry.",
            )
