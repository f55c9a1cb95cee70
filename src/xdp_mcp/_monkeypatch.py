"""
Monkeypatch utilities for XDP MCP servers.

Uvicorn does not reliably log exceptions that escape an ASGI application. This module wraps
Uvicorn's RequestResponseCycle so that every unhandled exception raised while serving an HTTP
request (the MCP streamable-http/sse transports and the WebSocket/HTTP bridge) is written out
as structured JSON together with the request method and path.

Logging Strategies:
    1. Direct stderr JSON: Bypasses Python logging so the record survives a broken logging setup
    2. Python JSON Logger: A dedicated 'json_asgi_errors' logger with a JsonFormatter

Usage:
    Call `monkeypatch_uvicorn_exception_handling()` once at process startup, before uvicorn
    starts serving requests.
"""

import json
import logging
import sys
import traceback
from datetime import datetime, timezone
from typing import Any

from pythonjsonlogger import json as jsonlogger
from uvicorn.protocols.http.httptools_impl import RequestResponseCycle

_LOGGER = logging.getLogger(__name__)


def _setup_json_logging() -> logging.Logger:
    """
    Configure Python JSON Logger for structured ASGI exception logging.

    Creates a logger named 'json_asgi_errors' that outputs JSON log entries to stderr using
    pythonjsonlogger's JsonFormatter.

    Returns:
        logging.Logger: Configured logger set to ERROR level with propagation disabled
            to prevent duplicate log entries.
    """
    json_logger = logging.getLogger("json_asgi_errors")

    if not json_logger.handlers:
        json_handler = logging.StreamHandler(sys.stderr)
        json_formatter = jsonlogger.JsonFormatter(
            fmt="%(asctime)s %(name)s %(levelname)s %(message)s",
            datefmt="%Y-%m-%dT%H:%M:%S%z",
        )
        json_handler.setFormatter(json_formatter)
        json_logger.addHandler(json_handler)
        json_logger.setLevel(logging.ERROR)
        json_logger.propagate = False
    return json_logger


_json_logger: logging.Logger | None = None


def _get_json_logger() -> logging.Logger:
    """Get or lazily create the JSON logger."""
    global _json_logger
    if _json_logger is None:
        _json_logger = _setup_json_logging()
    return _json_logger


def _request_info(cycle: Any) -> dict[str, str | None]:
    """Extract the HTTP method and path from a request cycle's ASGI scope, if available."""
    scope = getattr(cycle, "scope", None)
    if not isinstance(scope, dict):
        return {"method": None, "path": None}
    return {"method": scope.get("method"), "path": scope.get("path")}


def monkeypatch_uvicorn_exception_handling() -> None:
    """
    Monkey-patch Uvicorn's RequestResponseCycle so unhandled ASGI exceptions are logged.

    The original exception is always re-raised after logging so that Uvicorn's normal
    500 handling still takes place.

    Note:
        This function should be called exactly once at process startup.
    """
    _LOGGER.warning(
        "Monkey-patching Uvicorn's RequestResponseCycle to log unhandled ASGI exceptions."
    )
    orig_run_asgi = RequestResponseCycle.run_asgi

    async def my_run_asgi(self: RequestResponseCycle, app: Any) -> None:
        async def wrapped_app(*args: Any) -> Any:
            try:
                return await app(*args)
            except Exception as e:
                exc_type = type(e)
                full_traceback = "".join(
                    traceback.format_exception(exc_type, e, e.__traceback__)
                )
                request = _request_info(self)

                stderr_log = {
                    "timestamp": datetime.now(timezone.utc).isoformat(),
                    "severity": "ERROR",
                    "message": f"Unhandled exception in ASGI application: {exc_type.__name__}: {e}",
                    "request": request,
                    "exception": {
                        "type": exc_type.__name__,
                        "module": exc_type.__module__,
                        "args": str(getattr(e, "args", None)),
                        "traceback": full_traceback,
                    },
                }
                print(json.dumps(stderr_log), file=sys.stderr, flush=True)

                try:
                    _get_json_logger().error(
                        f"Unhandled exception in ASGI application: {exc_type.__name__}: {e}",
                        extra={
                            "exception_type": exc_type.__name__,
                            "exception_module": exc_type.__module__,
                            "exception_message": str(e),
                            "request_method": request["method"],
                            "request_path": request["path"],
                            "stack_trace": full_traceback,
                        },
                        exc_info=(exc_type, e, e.__traceback__),
                    )
                except Exception as json_err:
                    print(f"Python JSON Logger failed: {json_err}", file=sys.stderr)

                raise

        await orig_run_asgi(self, wrapped_app)

    RequestResponseCycle.run_asgi = my_run_asgi  # type: ignore[method-assign]
