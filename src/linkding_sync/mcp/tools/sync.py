"""MCP tool handlers for bookmark sync.

Defines four tools:

- ``bookmark_sync`` -- run one two-way reconciliation now.
- ``bookmark_initial_sync`` -- bootstrap the mapping with push, pull or merge.
- ``bookmark_mirror`` -- rebuild the one-way tag-folder mirror.
- ``bookmark_sync_status`` -- show configuration, scheduler and last-run state.

All runs go through the server's ``SyncScheduler``, so a tool call made
while another run is active fails with a ``busy`` error instead of
overlapping it.
"""

from __future__ import annotations

import logging
from typing import Any

import mcp.types as types

from ...core.async_utils import run_sync
from ...sync.models import InitialSyncMode
from ...sync.reporter import (
    format_initial_report,
    format_mirror_report,
    format_reconcile_report,
    format_status,
    report_to_json,
)
from ...sync.scheduler import SyncScheduler
from .errors import build_error_response
from .registry import ToolSpec

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Tool definitions
# ---------------------------------------------------------------------------


SYNC_TOOLS: list[types.Tool] = [
    types.Tool(
        name="bookmark_sync",
        description=(
            "Run one two-way reconciliation between linkding and the local "
            "sync folder. Requires a completed initial sync. Fails with a "
            "'busy' error if another sync is running."
        ),
        annotations=types.ToolAnnotations(
            readOnlyHint=False,
            destructiveHint=True,
            idempotentHint=True,
            openWorldHint=True,
        ),
        inputSchema={"type": "object", "properties": {}},
    ),
    types.Tool(
        name="bookmark_initial_sync",
        description=(
            "Bootstrap two-way sync. 'push' uploads the local sync folder "
            "to linkding, 'pull' replaces the local sync folder with the "
            "tagged linkding bookmarks, 'merge' joins both sides by URL."
        ),
        annotations=types.ToolAnnotations(
            readOnlyHint=False,
            destructiveHint=True,
            idempotentHint=False,
            openWorldHint=True,
        ),
        inputSchema={
            "type": "object",
            "properties": {
                "mode": {
                    "type": "string",
                    "enum": [m.value for m in InitialSyncMode],
                    "description": "Initial sync strategy",
                },
            },
            "required": ["mode"],
        },
    ),
    types.Tool(
        name="bookmark_mirror",
        description=(
            "Replace the local mirror folder with one folder per linkding "
            "tag (plus 'Untagged'). One-way: local edits in the mirror are "
            "overwritten."
        ),
        annotations=types.ToolAnnotations(
            readOnlyHint=False,
            destructiveHint=True,
            idempotentHint=True,
            openWorldHint=True,
        ),
        inputSchema={"type": "object", "properties": {}},
    ),
    types.Tool(
        name="bookmark_sync_status",
        description=(
            "Show sync configuration, whether two-way sync is initialised, "
            "the number of mapped bookmarks, scheduler state and last runs."
        ),
        annotations=types.ToolAnnotations(
            readOnlyHint=True,
            destructiveHint=False,
            idempotentHint=True,
            openWorldHint=False,
        ),
        inputSchema={"type": "object", "properties": {}},
    ),
]


# ---------------------------------------------------------------------------
# Individual handlers
# ---------------------------------------------------------------------------


def _result(text: str, structured: dict[str, Any]) -> types.CallToolResult:
    return types.CallToolResult(
        content=[types.TextContent(type="text", text=text)],
        structuredContent=structured,
    )


async def _handle_bookmark_sync(
    scheduler: SyncScheduler, args: dict[str, Any]
) -> types.CallToolResult:
    report = await scheduler.run_reconciliation()
    return _result(format_reconcile_report(report), report_to_json(report))


async def _handle_initial_sync(
    scheduler: SyncScheduler, args: dict[str, Any]
) -> types.CallToolResult:
    mode = args.get("mode")
    if not mode:
        return build_error_response(
            "validation_error",
            "mode is required",
            "Provide 'mode' as one of: push, pull, merge.",
        )
    try:
        mode = InitialSyncMode(mode)
    except ValueError:
        return build_error_response(
            "validation_error",
            f"Unknown initial sync mode '{mode}'",
            "Provide 'mode' as one of: push, pull, merge.",
        )
    report = await scheduler.run_initial_sync(mode)
    return _result(format_initial_report(report), report_to_json(report))


async def _handle_mirror(
    scheduler: SyncScheduler, args: dict[str, Any]
) -> types.CallToolResult:
    report = await scheduler.run_mirror()
    return _result(format_mirror_report(report), report_to_json(report))


async def _handle_status(
    scheduler: SyncScheduler, args: dict[str, Any]
) -> types.CallToolResult:
    status = await run_sync(scheduler.service.status)
    status["scheduler"] = scheduler.status()
    return _result(format_status(status), status)


# ---------------------------------------------------------------------------
# Spec list for registry
# ---------------------------------------------------------------------------

_HANDLERS = {
    "bookmark_sync": _handle_bookmark_sync,
    "bookmark_initial_sync": _handle_initial_sync,
    "bookmark_mirror": _handle_mirror,
    "bookmark_sync_status": _handle_status,
}

SYNC_SPECS: list[ToolSpec] = [
    ToolSpec(tool=tool, handler=_HANDLERS[tool.name]) for tool in SYNC_TOOLS
]
