"""Error response builders for MCP tool handlers.

Structured error responses carry a corrective action so an AI agent can
recover without human intervention.
"""

import logging

import mcp.types as types

from ...exceptions import (
    ConfigurationError,
    ConsistencyError,
    SyncBusyError,
    TransientAPIError,
)

logger = logging.getLogger(__name__)


def build_error_response(
    error_type: str, message: str, corrective_action: str
) -> types.CallToolResult:
    """Build a structured error response with corrective action.

    Args:
        error_type: Error category (busy, configuration_error,
            consistency_error, validation_error, server_error, unknown_tool)
        message: Human-readable error description
        corrective_action: Specific action the agent can take to resolve the error

    Returns:
        CallToolResult with isError=True

    Examples:
        >>> build_error_response("busy", "Sync is already in progress.", "Wait and retry.")
        CallToolResult(content=[TextContent(...)], isError=True)
    """
    error_text = f"Error ({error_type}): {message}\n\nAction: {corrective_action}"

    return types.CallToolResult(
        content=[types.TextContent(type="text", text=error_text)],
        isError=True,
    )


# ---------------------------------------------------------------------------
# Exception translation
# ---------------------------------------------------------------------------

_CORRECTIVE_ACTIONS: dict[str, str] = {
    "busy": (
        "A sync run is active. Wait for it to finish (see "
        "bookmark_sync_status), then retry."
    ),
    "configuration_error": (
        "Check LINKDING_URL, LINKDING_TOKEN and the bookmarks section of "
        "config.yml. Run bookmark_initial_sync before two-way sync."
    ),
    "consistency_error": (
        "The sync state file is unreadable. Run bookmark_initial_sync with "
        "mode 'merge' to rebuild it."
    ),
    "validation_error": "Check parameter values and retry.",
    "server_error": "Check linkding connectivity or retry later.",
}


def translate_sync_error(error: Exception) -> types.CallToolResult:
    """Translate a sync exception into a structured error response.

    Args:
        error: Exception raised by a sync run or tool handler.

    Returns:
        CallToolResult with isError=True and corrective action
    """
    match error:
        case SyncBusyError():
            error_type = "busy"
        case ConfigurationError():
            error_type = "configuration_error"
        case ConsistencyError():
            error_type = "consistency_error"
        case TransientAPIError():
            error_type = "server_error"
        case ValueError():
            error_type = "validation_error"
        case _:
            logger.error("Unexpected %s: %s", type(error).__name__, error)
            error_type = "server_error"
    return build_error_response(
        error_type, str(error), _CORRECTIVE_ACTIONS[error_type]
    )
