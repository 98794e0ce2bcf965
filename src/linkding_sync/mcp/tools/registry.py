"""ToolSpec and ToolRegistry for MCP tool dispatch.

This module provides a central registry for MCP tools that can hide every
tool able to change bookmarks, so operators can expose a status-only
server to AI agents.

Key concepts:
- ToolSpec: Immutable dataclass linking a Tool definition and an async
  handler with standardized signature (scheduler, args) -> CallToolResult.
- ToolRegistry: Filters specs at construction time (read-only mode keeps
  only tools annotated ``readOnlyHint``), then provides list_tools() and
  call_tool() dispatch with error translation.
"""

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

import mcp.types as types

from ...exceptions import LinkdingSyncError
from ...sync.scheduler import SyncScheduler
from .errors import translate_sync_error

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ToolSpec:
    """Immutable specification for a single MCP tool.

    Attributes:
        tool: The MCP Tool definition (name, description, inputSchema).
        handler: Async handler with signature (scheduler, args) -> CallToolResult.
    """

    tool: types.Tool
    handler: Callable[[SyncScheduler, dict], Awaitable[types.CallToolResult]]

    @property
    def read_only(self) -> bool:
        annotations = self.tool.annotations
        return bool(annotations and annotations.readOnlyHint)


class ToolRegistry:
    """Registry of ToolSpecs, optionally restricted to read-only tools."""

    def __init__(self, specs: list[ToolSpec], read_only: bool = False):
        self._specs: dict[str, ToolSpec] = {}
        for spec in specs:
            if not read_only or spec.read_only:
                self._specs[spec.tool.name] = spec

    def list_tools(self) -> list[types.Tool]:
        """Return list of types.Tool for all registered specs."""
        return [spec.tool for spec in self._specs.values()]

    def tool_count(self) -> int:
        """Return number of registered tools."""
        return len(self._specs)

    async def call_tool(
        self,
        name: str,
        arguments: dict | None,
        scheduler: SyncScheduler,
    ) -> types.CallToolResult:
        """Dispatch tool call to registered handler.

        Sync errors, validation errors and unexpected exceptions are turned
        into structured CallToolResult responses with corrective actions.

        Args:
            name: Tool name to invoke.
            arguments: Tool arguments (may be None).
            scheduler: The server's SyncScheduler.

        Returns:
            CallToolResult from the handler.

        Raises:
            ValueError: If tool name is not registered (unknown or filtered out).
        """
        spec = self._specs.get(name)
        if spec is None:
            raise ValueError(f"Unknown tool: {name}")
        args = arguments or {}
        try:
            return await spec.handler(scheduler, args)
        except (LinkdingSyncError, ValueError) as e:
            logger.warning("Tool %s failed: %s", name, e)
            return translate_sync_error(e)
        except Exception as e:
            logger.exception("Unexpected error in tool %s", name)
            return translate_sync_error(e)
