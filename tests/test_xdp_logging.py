import asyncio
import importlib
import logging
import sys
from unittest.mock import MagicMock, patch

from pythonjsonlogger import json as jsonlogger


def _setup_with_fake_basic_config():
    called = {}

    def fake_basicConfig(**kwargs):
        called.update(kwargs)

    with patch("logging.basicConfig", fake_basicConfig):
        import xdp_mcp._logging as logging_mod

        importlib.reload(logging_mod)
        logging_mod.setup_logging()
    return called


def test_setup_logging_sets_basic_config(monkeypatch):
    monkeypatch.delenv("PYTHONLOGLEVEL", raising=False)
    monkeypatch.delenv("XDP_MCP_LOG_FORMAT", raising=False)
    called = _setup_with_fake_basic_config()
    assert called["level"] == "INFO"
    assert called["force"] is True
    (handler,) = called["handlers"]
    assert handler.stream is sys.stderr
    assert not isinstance(handler.formatter, jsonlogger.JsonFormatter)


def test_setup_logging_respects_env(monkeypatch):
    monkeypatch.setenv("PYTHONLOGLEVEL", "DEBUG")
    called = _setup_with_fake_basic_config()
    assert called["level"] == "DEBUG"


def test_setup_logging_json_format(monkeypatch):
    monkeypatch.setenv("XDP_MCP_LOG_FORMAT", "json")
    called = _setup_with_fake_basic_config()
    (handler,) = called["handlers"]
    assert isinstance(handler.formatter, jsonlogger.JsonFormatter)


def test_setup_global_exception_logging_idempotent():
    import xdp_mcp._logging as logging_mod

    importlib.reload(logging_mod)
    mock_loop = MagicMock()
    with (
        patch.object(sys, "excepthook"),
        patch.object(asyncio, "new_event_loop"),
        patch.object(logging_mod.asyncio, "get_event_loop", return_value=mock_loop),
    ):
        logging_mod.setup_global_exception_logging()
        assert logging_mod._EXC_LOGGING_INSTALLED is True
        hook = sys.excepthook
        logging_mod.setup_global_exception_logging()
        assert sys.excepthook is hook
        mock_loop.set_exception_handler.assert_called_once()


def test_setup_global_exception_logging_logs_unhandled(caplog):
    import xdp_mcp._logging as logging_mod

    importlib.reload(logging_mod)
    with (
        patch.object(sys, "excepthook"),
        patch.object(asyncio, "new_event_loop"),
        patch.object(logging_mod.asyncio, "get_event_loop", side_effect=RuntimeError),
    ):
        logging_mod.setup_global_exception_logging()
        try:
            raise ValueError("unhandled!")
        except ValueError as e:
            with caplog.at_level(logging.ERROR):
                sys.excepthook(ValueError, e, e.__traceback__)
        # KeyboardInterrupt is ignored
        sys.excepthook(KeyboardInterrupt, KeyboardInterrupt(), None)
    assert [r.getMessage() for r in caplog.records] == ["UNHANDLED EXCEPTION"]


def test_new_event_loops_get_exception_handler():
    import xdp_mcp._logging as logging_mod

    importlib.reload(logging_mod)
    created = MagicMock()
    with (
        patch.object(sys, "excepthook"),
        patch.object(asyncio, "new_event_loop", return_value=created),
        patch.object(logging_mod.asyncio, "get_event_loop", side_effect=RuntimeError),
    ):
        logging_mod.setup_global_exception_logging()
        assert asyncio.new_event_loop() is created
    created.set_exception_handler.assert_called_once()
