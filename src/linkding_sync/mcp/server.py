"""MCP Server for linkding bookmark sync using stdio transport.

This module implements the Model Context Protocol server that lets AI
agents trigger and inspect bookmark sync runs. While the server is up, the
sync scheduler also runs the periodic timer and change-driven two-way
reconciliation in the background.

Transport: stdio
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
from ..core.async_utils import run_sync
from ..exceptions import LinkdingSyncError
from ..logger import DEFAULT_MCP_LOG_FILE, setup_logging
from ..sync.scheduler import SyncScheduler
from .lifespan import server_lifespan
from .tools import ALL_SPECS, ToolRegistry, build_error_response
from .tools.registry import ToolSpec

logger = logging.getLogger(__name__)

# Initialize server instance
server = Server("linkding-sync")

# Global scheduler instance (initialized in lifespan)
_scheduler: SyncScheduler | None = None

# Global registry instance (initialized in main)
_registry: ToolRegistry | None = None


# ---------------------------------------------------------------------------
# Ping tool (always available, also in read-only mode)
# ---------------------------------------------------------------------------


async def _handle_ping(
    scheduler: SyncScheduler, args: dict
) -> types.CallToolResult:
    """Report the bookmark count, or why linkding could not be reached."""
    try:
        count = await run_sync(scheduler.service.client.validate_connection)
    except LinkdingSyncError as e:
        text = f"linkding connection failed: {e}. Check LINKDING_URL and LINKDING_TOKEN."
        return types.CallToolResult(
            content=[types.TextContent(type="text", text=text)], isError=True
        )
    text = f"linkding connected successfully. Bookmarks on server: {count}"
    return types.CallToolResult(content=[types.TextContent(type="text", text=text)])


PING_SPEC = ToolSpec(
    tool=types.Tool(
        name="ping",
        description="Test linkding connectivity and return the server's bookmark count",
        annotations=types.ToolAnnotations(
            readOnlyHint=True,
            openWorldHint=True,
        ),
        inputSchema={
            "type": "object",
            "properties": {},
            "required": [],
        },
    ),
    handler=_handle_ping,
)


# ---------------------------------------------------------------------------
# Global accessors
# ---------------------------------------------------------------------------


def get_scheduler() -> SyncScheduler:
    """Get the global SyncScheduler instance.

    Raises:
        RuntimeError: If the scheduler is not initialized
    """
    if _scheduler is None:
        raise RuntimeError(
            "SyncScheduler not initialized. Server lifespan not started."
        )
    return _scheduler


def set_scheduler(scheduler: SyncScheduler | None) -> None:
    global _scheduler
    _scheduler = scheduler


def get_registry() -> ToolRegistry:
    """Get the global ToolRegistry instance.

    Raises:
        RuntimeError: If registry is not initialized
    """
    if _registry is None:
        raise RuntimeError("ToolRegistry not initialized.")
    return _registry


def set_registry(registry: ToolRegistry | None) -> None:
    global _registry
    _registry = registry


# ---------------------------------------------------------------------------
# MCP protocol handlers
# ---------------------------------------------------------------------------


@server.list_tools()
async def handle_list_tools() -> list[types.Tool]:
    """List the registered sync tools."""
    return get_registry().list_tools()


@server.call_tool()
async def handle_call_tool(
    name: str, arguments: dict | None
) -> types.CallToolResult:
    """Handle tool execution via ToolRegistry dispatch.

    Args:
        name: The name of the tool to execute.
        arguments: Tool arguments (optional).

    Returns:
        CallToolResult with tool output content and optional isError flag.
    """
    scheduler = get_scheduler()
    try:
        return await get_registry().call_tool(name, arguments, scheduler)
    except ValueError as e:
        # Unknown or filtered-out tool name
        return build_error_response(
            "unknown_tool",
            str(e),
            "Use list_tools to see available tools.",
        )


# ---------------------------------------------------------------------------
# Server lifecycle
# ---------------------------------------------------------------------------


async def main(config_overrides: dict | None = None):
    """Run the MCP server with stdio transport.

    Logging goes to a file only, never stdout. The lifespan manager loads
    configuration, validates the linkding connection and starts the sync
    scheduler before the stdio transport opens.

    Args:
        config_overrides: Optional dict with config values to override
            (url, token, insecure, debug, log_file, read_only)
    """
    overrides = config_overrides or {}

    # Must run before stdio_server so nothing reaches stdout.
    setup_logging(
        mode="mcp",
        debug=overrides.get("debug", False),
        log_file=overrides.get("log_file"),
    )

    read_only = overrides.get("read_only", False)
    all_specs = [PING_SPEC] + ALL_SPECS
    registry = ToolRegistry(all_specs, read_only=read_only)
    logger.info(
        "Registered %d tools (of %d total)",
        registry.tool_count(),
        len(all_specs),
    )
    if read_only:
        print(
            f"Read-only mode: {registry.tool_count()} of {len(all_specs)} tools enabled",
            file=sys.stderr,
        )

    set_registry(registry)

    # Under `python -m` this module is __main__; set the global from here.
    async with server_lifespan(config_overrides=overrides) as ctx:
        set_scheduler(ctx["scheduler"])
        try:
            async with mcp.server.stdio.stdio_server() as (
                read_stream,
                write_stream,
            ):
                init_options = InitializationOptions(
                    server_name="linkding-sync",
                    server_version=__version__,
                    capabilities=server.get_capabilities(
                        notification_options=NotificationOptions(),
                        experimental_capabilities={},
                    ),
                )
                await server.run(read_stream, write_stream, init_options)
        finally:
            set_scheduler(None)
            set_registry(None)


def run() -> None:
    """Entry point that handles errors gracefully and parses CLI arguments."""
    parser = argparse.ArgumentParser(
        description="linkding sync MCP server - trigger and inspect bookmark sync from MCP clients",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Run with default config (from .env or .linkding_sync/config.yml)
  linkding-sync-mcp

  # Override the linkding URL
  linkding-sync-mcp --url https://links.example.com

  # Only expose ping and bookmark_sync_status
  linkding-sync-mcp --read-only

  # Custom log file location
  linkding-sync-mcp --log-file /var/log/linkding-sync.log

Note: This server uses stdio transport for JSON-RPC communication with MCP clients.
All user-facing messages are written to stderr. Do not pipe stdin/stdout manually.
        """,
    )

    parser.add_argument(
        "--url",
        help="Override linkding URL (takes precedence over LINKDING_URL env var and config files)",
    )
    parser.add_argument(
        "--token",
        help="Override linkding API token (visible in process list -- prefer LINKDING_TOKEN env var)",
    )
    parser.add_argument(
        "--insecure",
        action="store_true",
        help="Skip SSL certificate verification (use only for development)",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging",
    )
    parser.add_argument(
        "--log-file",
        default=DEFAULT_MCP_LOG_FILE,
        help=f"Log file path (default: {DEFAULT_MCP_LOG_FILE})",
    )
    parser.add_argument(
        "--read-only",
        action="store_true",
        help="Only register tools that do not change bookmarks",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"linkding-sync-mcp version {__version__}",
    )

    args = parser.parse_args()

    # Unset flags stay out so env and YAML values still apply.
    config_overrides = {key: value for key, value in vars(args).items() if value}
    shown = sorted(
        key for key in config_overrides if key not in ("token", "log_file")
    )
    if shown:
        print(f"Config overrides from CLI: {', '.join(shown)}", file=sys.stderr)

    try:
        asyncio.run(main(config_overrides=config_overrides or None))
    except RuntimeError:
        # Error already printed to stderr by lifespan manager
        sys.exit(1)
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        sys.exit(0)


if __name__ == "__main__":
    run()
