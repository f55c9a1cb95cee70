"""
CLI entrypoint for the XDP MCP server.

This module sets up logging, global exception handling, and Uvicorn exception patching before starting the MCP server.
It provides a command-line interface to launch the server with a specified transport (stdio, sse, or streamable-http).

Environment Variables:
    XDP_MCP_CONFIG_FILE: Path to the JSON configuration file (optional).
    XDP_ACCESS_KEY / XDP_SECRET_KEY: XDP API credentials, unless set in the configuration file.
    PYTHONLOGLEVEL: Log level (default INFO).
    XDP_MCP_LOG_FORMAT: 'text' (default) or 'json'.
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
from typing import Literal  # noqa: E402

from . import mcp_host, mcp_port, mcp_server  # noqa: E402

_LOGGER = logging.getLogger(__name__)


def run_server(
    transport: Literal["stdio", "sse", "streamable-http"],
) -> None:
    """
    Start the MCP server with the specified transport.

    Args:
        transport (str): The transport type ('stdio', 'sse', or 'streamable-http').
    """
    try:
        _LOGGER.warning(
            f"Starting MCP server '{mcp_server.name}' with transport={transport} (host={mcp_host}, port={mcp_port})"
        )
        mcp_server.run(transport=transport)
    finally:
        _LOGGER.info(f"MCP server '{mcp_server.name}' stopped.")


def main() -> None:
    """
    Command-line entry point for the XDP MCP server.

    Arguments:
        -t, --transport: Transport type for the MCP server ('stdio', 'sse', or 'streamable-http'). Default: 'stdio'.
    """
    parser = argparse.ArgumentParser(description="Start the XDP MCP server.")
    parser.add_argument(
        "-t",
        "--transport",
        choices=["stdio", "sse", "streamable-http"],
        default="stdio",
        help="Transport type for the MCP server (stdio, sse, or streamable-http). Default: stdio",
    )
    args = parser.parse_args()
    _LOGGER.info(f"CLI args: {vars(args)}")
    run_server(args.transport)


if __name__ == "__main__":
    main()
