"""Tests for logger.py - setup_logging(), resolve_level() and JsonFormatter.

Strategy: mock logging.basicConfig and inspect the handlers it receives,
since pytest's log capture plugin interferes with real basicConfig calls.
"""

import json
import logging
import sys
from unittest.mock import patch

import pytest

from linkding_sync.logger import (
    DEFAULT_MCP_LOG_FILE,
    JsonFormatter,
    resolve_level,
    setup_logging,
)


@pytest.fixture(autouse=True)
def no_log_env(monkeypatch):
    monkeypatch.delenv("LOG_LEVEL", raising=False)
    monkeypatch.delenv("LOG_FILE", raising=False)


def _handlers(mock_basic):
    mock_basic.assert_called_once()
    return mock_basic.call_args.kwargs["handlers"]


def _close(handlers):
    for handler in handlers:
        handler.close()


# ---------------------------------------------------------------------------
# resolve_level
# ---------------------------------------------------------------------------


class TestResolveLevel:
    def test_mode_defaults(self):
        assert resolve_level("mcp", False) == logging.WARNING
        assert resolve_level("cli", False) == logging.INFO

    def test_debug_wins(self, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "ERROR")
        assert resolve_level("cli", True, "WARNING") == logging.DEBUG

    def test_configured_level_beats_env(self, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "ERROR")
        assert resolve_level("cli", False, "debug") == logging.DEBUG

    def test_env_level(self, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "error")
        assert resolve_level("mcp", False) == logging.ERROR

    def test_unknown_name_falls_back_to_info(self):
        assert resolve_level("cli", False, "chatty") == logging.INFO


# ---------------------------------------------------------------------------
# setup_logging
# ---------------------------------------------------------------------------


class TestSetupLogging:
    @patch("linkding_sync.logger.logging.basicConfig")
    def test_cli_mode_logs_to_stderr(self, mock_basic):
        setup_logging(mode="cli")
        handlers = _handlers(mock_basic)
        assert len(handlers) == 1
        assert isinstance(handlers[0], logging.StreamHandler)
        assert handlers[0].stream is sys.stderr
        assert mock_basic.call_args.kwargs["level"] == logging.INFO

    @patch("linkding_sync.logger.logging.basicConfig")
    def test_cli_mode_with_log_file(self, mock_basic, tmp_path):
        log_file = tmp_path / "sync.log"
        setup_logging(mode="cli", log_file=str(log_file))
        handlers = _handlers(mock_basic)
        assert len(handlers) == 2
        assert isinstance(handlers[1], logging.FileHandler)
        assert handlers[1].baseFilename == str(log_file)
        _close(handlers)

    @patch("linkding_sync.logger.logging.basicConfig")
    def test_mcp_mode_logs_only_to_file(self, mock_basic, tmp_path):
        log_file = tmp_path / "mcp.log"
        setup_logging(mode="mcp", log_file=str(log_file))
        handlers = _handlers(mock_basic)
        assert [type(h) for h in handlers] == [logging.FileHandler]
        assert handlers[0].baseFilename == str(log_file)
        assert mock_basic.call_args.kwargs["level"] == logging.WARNING
        _close(handlers)

    @patch("linkding_sync.logger.logging.FileHandler")
    @patch("linkding_sync.logger.logging.basicConfig")
    def test_mcp_mode_default_log_file(self, mock_basic, mock_file_handler):
        setup_logging(mode="mcp")
        mock_file_handler.assert_called_once_with(DEFAULT_MCP_LOG_FILE, mode="a")

    @patch("linkding_sync.logger.logging.FileHandler")
    @patch("linkding_sync.logger.logging.basicConfig")
    def test_mcp_mode_env_log_file(self, mock_basic, mock_file_handler, monkeypatch):
        monkeypatch.setenv("LOG_FILE", "/var/tmp/custom.log")
        setup_logging(mode="mcp")
        mock_file_handler.assert_called_once_with("/var/tmp/custom.log", mode="a")

    @patch("linkding_sync.logger.logging.basicConfig")
    def test_json_format(self, mock_basic):
        setup_logging(mode="cli", debug_format="json")
        assert isinstance(_handlers(mock_basic)[0].formatter, JsonFormatter)

    @patch("linkding_sync.logger.logging.basicConfig")
    def test_http_loggers_quieted(self, _mock_basic):
        setup_logging(mode="cli")
        assert logging.getLogger("urllib3").level == logging.WARNING
        assert logging.getLogger("requests").level == logging.WARNING


# ---------------------------------------------------------------------------
# JsonFormatter
# ---------------------------------------------------------------------------


class TestJsonFormatter:
    def _record(self, msg="hello %s", args=("world",), exc_info=None):
        return logging.LogRecord(
            name="linkding_sync.sync.engine",
            level=logging.INFO,
            pathname=__file__,
            lineno=1,
            msg=msg,
            args=args,
            exc_info=exc_info,
        )

    def test_fields(self):
        data = json.loads(JsonFormatter().format(self._record()))
        assert data["level"] == "INFO"
        assert data["logger"] == "linkding_sync.sync.engine"
        assert data["msg"] == "hello world"
        assert "ts" in data
        assert "exc" not in data

    def test_exception_included(self):
        try:
            raise RuntimeError("boom")
        except RuntimeError:
            record = self._record(exc_info=sys.exc_info())
        data = json.loads(JsonFormatter().format(record))
        assert "RuntimeError: boom" in data["exc"]

    def test_single_line(self):
        output = JsonFormatter().format(self._record(msg="a\nb", args=()))
        assert "\n" not in output
