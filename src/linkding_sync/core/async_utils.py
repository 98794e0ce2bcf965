"""Async utilities for bridging blocking store calls to the event loop."""

import asyncio
import logging
from typing import Any, Callable, TypeVar

T = TypeVar("T")
logger = logging.getLogger(__name__)


async def run_sync(
    func: Callable[..., T], *args: Any, **kwargs: Any
) -> T:
    """Run a synchronous function in a thread pool without blocking the event loop.

    HTTP calls to linkding and writes to the bookmarks file are blocking;
    the scheduler and the MCP tool handlers route them through here.

    Args:
        func: Synchronous function to call
        *args: Positional arguments for func
        **kwargs: Keyword arguments for func

    Returns:
        Result of func(*args, **kwargs)

    Example:
        report = await run_sync(service.run_reconciliation)
    """
    return await asyncio.to_thread(func, *args, **kwargs)
