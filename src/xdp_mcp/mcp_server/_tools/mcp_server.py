"""
MCP Server Infrastructure - FastMCP Server Instance and Lifespan.

Provides core MCP server infrastructure:
- mcp_server: The FastMCP server instance with registered tools
- app_lifespan: Application lifecycle manager that builds and closes the tool dispatcher
- health_check: GET /health route for liveness probes on the HTTP transports

Environment Variables:
    XDP_MCP_HOST: The host to bind the FastMCP server to. Defaults to 127.0.0.1.
    XDP_MCP_PORT: The port to bind the FastMCP server to. Defaults to 8000. Falls back to PORT.
"""

import logging
import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from mcp.server.fastmcp import FastMCP
from starlette.requests import Request
from starlette.responses import JSONResponse

from xdp_mcp._dispatcher import create_dispatcher
from xdp_mcp.config import ConfigManager

_LOGGER = logging.getLogger(__name__)

mcp_host: str = os.environ.get("XDP_MCP_HOST", "127.0.0.1")
"""
str: The host to bind the FastMCP server to. Defaults to 127.0.0.1 (localhost).
Set XDP_MCP_HOST to '0.0.0.0' for external access.
"""

mcp_port: int = int(os.environ.get("XDP_MCP_PORT", os.environ.get("PORT", "8000")))
"""
int: The port to bind the FastMCP server to. Defaults to 8000.
Uses XDP_MCP_PORT if set, otherwise falls back to PORT.
"""


@asynccontextmanager
async def app_lifespan(server: FastMCP) -> AsyncIterator[dict[str, object]]:
    """
    Async context manager for the FastMCP server application lifespan.

    Startup Process:
      - Creates a ConfigManager and loads and validates the configuration.
      - Builds the ToolDispatcher (XDP API client, job runner client, log collector,
        execution session store and execution governor).

    Shutdown Process:
      - Closes the execution session store and the HTTP clients.

    Args:
        server (FastMCP): The FastMCP server instance (required by the FastMCP lifespan API).

    Yields:
        dict[str, object]: A context dictionary for dependency injection into MCP tool requests:
            - 'config_manager' (ConfigManager): Instance for accessing configuration.
            - 'dispatcher' (ToolDispatcher): Implementation of every tool.
            - 'session_store' (ExecutionSessionStore): Per-session execution tracking state.

    Raises:
        McpConfigurationError: If the configuration is invalid or the XDP credentials are missing.
    """
    _LOGGER.info(f"[mcp_server:app_lifespan] Starting MCP server '{server.name}'")
    dispatcher = None

    try:
        config_manager = ConfigManager()

        _LOGGER.info("[mcp_server:app_lifespan] Loading configuration...")
        config = await config_manager.get_config()
        _LOGGER.info("[mcp_server:app_lifespan] Configuration loaded.")

        dispatcher = create_dispatcher(config)

        yield {
            "config_manager": config_manager,
            "dispatcher": dispatcher,
            "session_store": dispatcher.session_store,
        }
    finally:
        _LOGGER.info(f"[mcp_server:app_lifespan] Shutting down MCP server '{server.name}'")
        if dispatcher is not None:
            _LOGGER.info(
                "[mcp_server:app_lifespan] Closing execution session store and HTTP clients..."
            )
            await dispatcher.close()
        _LOGGER.info(f"[mcp_server:app_lifespan] MCP server '{server.name}' shut down.")


mcp_server = FastMCP("xdp-mcp", host=mcp_host, port=mcp_port, lifespan=app_lifespan)
"""
FastMCP Server Instance for the XDP MCP tools.

All functions decorated with @mcp_server.tool() are registered as MCP tools. Tool modules are
imported by the `_tools` package so that registration happens when the server package is imported.

Configuration:
- Server name: "xdp-mcp"
- Host: XDP_MCP_HOST (default: 127.0.0.1)
- Port: XDP_MCP_PORT (default: 8000, fallback: PORT)
"""


@mcp_server.custom_route("/health", methods=["GET"])  # type: ignore[misc]
async def health_check(request: Request) -> JSONResponse:
    """
    Health check endpoint for the HTTP transports.

    Returns:
        JSONResponse: HTTP 200 with body {"status": "ok"}.
    """
    _LOGGER.debug("[mcp_server:health_check] Health check requested")
    return JSONResponse({"status": "ok"})
