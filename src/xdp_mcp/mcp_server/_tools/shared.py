"""
Shared Utilities - Internal Helper Functions.

Provides internal helpers used across the MCP tool modules. Nothing here is an MCP tool.
"""

import logging

from mcp.server.fastmcp import Context

from xdp_mcp._dispatcher import ToolDispatcher

_LOGGER = logging.getLogger(__name__)


def _get_dispatcher(function_name: str, context: Context) -> ToolDispatcher:
    """
    Get the tool dispatcher from the MCP context.

    Args:
        function_name (str): Name of the calling tool, for logging.
        context (Context): The MCP context object containing the lifespan context.

    Returns:
        ToolDispatcher: The dispatcher created by `app_lifespan`.
    """
    _LOGGER.debug(f"[mcp_server:{function_name}] Accessing dispatcher from context")
    dispatcher: ToolDispatcher = context.request_context.lifespan_context["dispatcher"]
    return dispatcher


def _drop_none(**kwargs: object) -> dict[str, object]:
    """Return the keyword arguments whose value is not None."""
    return {k: v for k, v in kwargs.items() if v is not None}
