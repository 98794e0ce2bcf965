"""Startup and shutdown of the MCP server's sync machinery."""

import logging
import sys
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from dotenv import load_dotenv

from ..config import Config, load_config
from ..config_loader import discover_config_files, load_hierarchical_config
from ..config_schema import UnifiedConfig, build_config
from ..core.async_utils import run_sync
from ..exceptions import ConfigurationError, LinkdingSyncError
from ..sync.scheduler import SyncScheduler
from ..sync.service import BookmarkSyncService, build_service

logger = logging.getLogger(__name__)

_CLI_CONNECTION_KEYS = ("url", "token", "insecure", "debug")


def _stderr_print(msg: str) -> None:
    """stdout belongs to JSON-RPC; user-facing messages go to stderr."""
    print(msg, file=sys.stderr, flush=True)


def _resolve_settings(overrides: dict[str, Any]) -> tuple[Config, UnifiedConfig, list[str]]:
    load_dotenv()
    sources: list[str] = []
    config_files = discover_config_files()
    if config_files:
        unified = build_config(load_hierarchical_config())
        yaml_fallbacks = unified.linkding.model_dump(exclude_none=True)
        sources.append(f"config file: {config_files[0]}")
    else:
        unified = UnifiedConfig()
        yaml_fallbacks = None

    config = load_config(
        url=overrides.get("url"),
        token=overrides.get("token"),
        insecure=overrides.get("insecure", False),
        debug=overrides.get("debug", False),
        yaml_fallbacks=yaml_fallbacks,
    )
    if any(overrides.get(key) for key in _CLI_CONNECTION_KEYS):
        sources.append("CLI arguments")
    sources.append("environment variables")
    return config, unified, sources


async def _check_connection(service: BookmarkSyncService) -> None:
    logger.info("Validating linkding connection...")
    _stderr_print("  Validating linkding connection...")
    try:
        count = await run_sync(service.client.validate_connection)
    except LinkdingSyncError as e:
        logger.error("Failed to connect to linkding: %s", e)
        _stderr_print(f"ERROR: linkding connection failed.\n  {e}")
        _stderr_print("  Check LINKDING_URL and LINKDING_TOKEN.")
        raise RuntimeError(
            f"linkding connection failed: {e}. Check LINKDING_URL and LINKDING_TOKEN."
        ) from e
    logger.info("Connected to linkding (%d bookmarks)", count)
    _stderr_print(f"  Connected to linkding ({count} bookmarks)")


@asynccontextmanager
async def server_lifespan(
    config_overrides: dict[str, Any] | None = None,
) -> AsyncIterator[dict[str, Any]]:
    """
    Bring the sync service up for the lifetime of the MCP server.

    Startup resolves connection settings (CLI > env and .env > YAML), builds
    the service over the configured bookmarks file, checks that linkding
    answers and starts the scheduler's timer, debounce and file poller.
    Shutdown stops the scheduler after any active run has finished.

    Args:
        config_overrides: Values from the command line (url, token,
            insecure, debug).

    Yields:
        ``{"scheduler": SyncScheduler}``

    Raises:
        RuntimeError: If configuration is invalid or linkding is unreachable.
    """
    logger.info("MCP server starting...")
    _stderr_print("linkding sync MCP server starting...")

    try:
        config, unified, sources = _resolve_settings(config_overrides or {})
        source_desc = ", ".join(sources)
        logger.info("Configuration loaded from: %s", source_desc)
        logger.info("linkding URL: %s", config.linkding_url)
        _stderr_print(f"  Configuration loaded from: {source_desc}")
        _stderr_print(f"  linkding URL: {config.linkding_url}")
        service = build_service(config, unified)
        _stderr_print(f"  Bookmarks file: {unified.bookmarks.file}")
    except (ValueError, ConfigurationError) as e:
        logger.error("Configuration error: %s", e)
        _stderr_print(f"ERROR: Configuration error: {e}")
        _stderr_print(
            "  Ensure LINKDING_URL and LINKDING_TOKEN are set and "
            "bookmarks.file points at a bookmarks file."
        )
        raise RuntimeError(f"Configuration error: {e}") from e

    await _check_connection(service)

    scheduler = SyncScheduler(service)
    scheduler.start()
    auto = "on" if unified.sync.auto_sync else "off"
    ready = "yes" if service.is_two_way_ready() else "no"
    _stderr_print(f"  Auto sync: {auto}, two-way ready: {ready}")
    _stderr_print("Server ready. Waiting for MCP client connection...")

    try:
        yield {"scheduler": scheduler}
    finally:
        logger.info("MCP server shutting down")
        await scheduler.stop()
        _stderr_print("linkding sync MCP server shutting down.")
