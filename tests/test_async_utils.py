"""
Tests for async_utils module.

Covers run_sync.
"""

import asyncio
import threading

import pytest

from linkding_sync.core.async_utils import run_sync


def _sync_add(a: int, b: int) -> int:
    return a + b


async def test_run_sync_calls_function():
    """run_sync forwards positional arguments and returns the result."""
    assert await run_sync(_sync_add, 3, 4) == 7


async def test_run_sync_passes_kwargs():
    def _kw_func(*, name: str) -> str:
        return f"hello {name}"

    assert await run_sync(_kw_func, name="world") == "hello world"


async def test_run_sync_uses_worker_thread():
    """The function runs off the event loop thread."""
    loop_thread = threading.get_ident()
    worker = await run_sync(threading.get_ident)
    assert worker != loop_thread


async def test_run_sync_propagates_exceptions():
    def _fail():
        raise KeyError("missing")

    with pytest.raises(KeyError):
        await run_sync(_fail)


async def test_loop_stays_responsive():
    """Other coroutines progress while a blocking call runs."""
    gate = threading.Event()
    task = asyncio.create_task(run_sync(gate.wait, 5))
    await asyncio.sleep(0)
    assert not task.done()
    gate.set()
    assert await task is True
