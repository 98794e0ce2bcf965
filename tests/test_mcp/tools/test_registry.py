"""Tests for ToolSpec and ToolRegistry.

Covers:
- ToolSpec creation, immutability and the read_only property
- ToolRegistry read-only filtering, list_tools, tool_count
- call_tool dispatch and error translation
"""

import asyncio
import unittest
from unittest.mock import MagicMock

import mcp.types as types

from linkding_sync.exceptions import ConfigurationError, SyncBusyError
from linkding_sync.mcp.tools.registry import ToolRegistry, ToolSpec


def _make_spec(name: str, read_only: bool = False, handler=None) -> ToolSpec:
    """Helper to create a ToolSpec for testing."""
    if handler is None:

        async def handler(scheduler, args):
            return types.CallToolResult(
                content=[types.TextContent(type="text", text=f"ok:{name}:{args}")]
            )

    return ToolSpec(
        tool=types.Tool(
            name=name,
            description=f"Test tool {name}",
            annotations=types.ToolAnnotations(readOnlyHint=read_only),
            inputSchema={"type": "object", "properties": {}},
        ),
        handler=handler,
    )


def _text(result: types.CallToolResult) -> str:
    content = result.content[0]
    assert isinstance(content, types.TextContent)
    return content.text


class TestToolSpec(unittest.TestCase):
    """Test ToolSpec dataclass."""

    def test_creation(self):
        spec = _make_spec("bookmark_sync")
        self.assertEqual(spec.tool.name, "bookmark_sync")
        self.assertFalse(spec.read_only)

    def test_read_only_from_annotations(self):
        self.assertTrue(_make_spec("status", read_only=True).read_only)

    def test_no_annotations_is_not_read_only(self):
        spec = ToolSpec(
            tool=types.Tool(name="x", inputSchema={"type": "object"}),
            handler=_make_spec("x").handler,
        )
        self.assertFalse(spec.read_only)

    def test_frozen(self):
        spec = _make_spec("bookmark_sync")
        with self.assertRaises(AttributeError):
            spec.handler = None


class TestToolRegistry(unittest.TestCase):
    """Test ToolRegistry class."""

    def setUp(self):
        self.specs = [
            _make_spec("ping", read_only=True),
            _make_spec("bookmark_sync"),
            _make_spec("bookmark_mirror"),
            _make_spec("bookmark_sync_status", read_only=True),
        ]
        self.scheduler = MagicMock()

    def test_all_tools_registered(self):
        registry = ToolRegistry(self.specs)
        self.assertEqual(registry.tool_count(), 4)

    def test_read_only_filter(self):
        registry = ToolRegistry(self.specs, read_only=True)
        names = [t.name for t in registry.list_tools()]
        self.assertEqual(names, ["ping", "bookmark_sync_status"])

    def test_call_tool_dispatches(self):
        registry = ToolRegistry(self.specs)
        result = asyncio.run(
            registry.call_tool("bookmark_sync", {"a": 1}, self.scheduler)
        )
        self.assertEqual(_text(result), "ok:bookmark_sync:{'a': 1}")

    def test_none_arguments_become_empty_dict(self):
        registry = ToolRegistry(self.specs)
        result = asyncio.run(registry.call_tool("ping", None, self.scheduler))
        self.assertEqual(_text(result), "ok:ping:{}")

    def test_unknown_tool_raises(self):
        registry = ToolRegistry(self.specs)
        with self.assertRaises(ValueError):
            asyncio.run(registry.call_tool("nope", {}, self.scheduler))

    def test_filtered_tool_is_unknown(self):
        registry = ToolRegistry(self.specs, read_only=True)
        with self.assertRaises(ValueError):
            asyncio.run(registry.call_tool("bookmark_sync", {}, self.scheduler))

    def test_handler_receives_scheduler(self):
        seen = []

        async def handler(scheduler, args):
            seen.append(scheduler)
            return types.CallToolResult(content=[])

        registry = ToolRegistry([_make_spec("t", handler=handler)])
        asyncio.run(registry.call_tool("t", {}, self.scheduler))
        self.assertEqual(seen, [self.scheduler])


class TestCallToolErrors(unittest.TestCase):
    """Exceptions raised by handlers become error results."""

    def _call(self, exc):
        async def handler(scheduler, args):
            raise exc

        registry = ToolRegistry([_make_spec("t", handler=handler)])
        return asyncio.run(registry.call_tool("t", {}, MagicMock()))

    def test_busy(self):
        result = self._call(SyncBusyError())
        self.assertTrue(result.isError)
        self.assertTrue(_text(result).startswith("Error (busy)"))

    def test_configuration_error(self):
        result = self._call(ConfigurationError("no sync folder"))
        self.assertIn("Error (configuration_error): no sync folder", _text(result))

    def test_handler_value_error(self):
        result = self._call(ValueError("bad"))
        self.assertIn("Error (validation_error)", _text(result))

    def test_unexpected_exception(self):
        result = self._call(KeyError("boom"))
        self.assertTrue(result.isError)
        self.assertIn("Error (server_error)", _text(result))
