"""Core linkding client functionality shared between CLI and MCP server."""

from .async_utils import run_sync
from .client import LinkdingClient

__all__ = ["LinkdingClient", "run_sync"]
