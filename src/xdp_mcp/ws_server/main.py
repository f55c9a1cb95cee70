"""
CLI entrypoint for the XDP WebSocket/HTTP server.

This module sets up logging, global exception handling, and Uvicorn exception patching before starting the server.

Environment Variables:
    XDP_MCP_WS_HOST: The host to bind to. Defaults to 0.0.0.0.
    XDP_MCP_WS_PORT: The port to bind to. Falls back to PORT, then 9099.
"""

from .._logging import setup_global_exception_logging, setup_logging  # noqa: E402

# Ensure logging is set up before any other imports
setup_logging()
# Ensure global exception logging is set up before any server code runs
setup_global_exception_logging()

from .._monkeypatch import monkeypatch_uvicorn_exception_handling  # noqa: E402

# Ensure Uvicorn's exception handling is patched before any server code runs
monkeypatch_uvicorn_exception_handling()

import argparse  # noqa: E402
import logging  # noqa: E402
import os  # noqa: E402

import uvicorn  # noqa: E402

from ._app import create_app  # noqa: E402

_LOGGER = logging.getLogger(__name__)

DEFAULT_HOST = os.environ.get("XDP_MCP_WS_HOST", "0.0.0.0")
DEFAULT_PORT = int(os.environ.get("XDP_MCP_WS_PORT", os.environ.get("PORT", "9099")))


def run_server(host: str, port: int) -> None:
    """
    Start the WebSocket/HTTP server with uvicorn.

    Args:
        host (str): Interface to bind to.
        port (int): Port to listen on.
    """
    try:
        _LOGGER.warning(f"Starting XDP WebSocket/HTTP server (host={host}, port={port})")
        uvicorn.run(create_app(), host=host, port=port)
    finally:
        _LOGGER.info("XDP WebSocket/HTTP server stopped.")


def main() -> None:
    """
    Command-line entry point for the XDP WebSocket/HTTP server.

    Arguments:
        --host: Interface to bind to. Default: XDP_MCP_WS_HOST or 0.0.0.0.
        --port: Port to listen on. Default: XDP_MCP_WS_PORT, PORT, or 9099.
    """
    parser = argparse.ArgumentParser(description="Start the XDP WebSocket/HTTP server.")
    parser.add_argument("--host", default=DEFAULT_HOST, help="Host to bind to.")
    parser.add_argument("--port", type=int, default=DEFAULT_PORT, help="Port to listen on.")
    args = parser.parse_args()
    _LOGGER.info(f"CLI args: {vars(args)}")
    run_server(args.host, args.port)


if __name__ == "__main__":
    main()
