"""
MCP Server Tools Package.

This package contains the implementation of all XDP MCP tools organized by functional area.
Each module provides MCP tools decorated with @mcp_server.tool() that are registered with the
FastMCP server instance when the module is imported.

Modules:
    mcp_server: Server infrastructure (FastMCP instance, lifespan, health route)
    datastore: XDP data store listing
    trino: Trino query and table exploration
    execution: Governed job execution and manual execution registration
    shared: Internal utility functions (not MCP tools)

All MCP tools follow consistent patterns:
    - Return structured dict responses with a 'success' key
    - Delegate to the shared ToolDispatcher so every transport behaves the same
    - Include comprehensive docstrings for AI agent consumption
"""

from xdp_mcp.mcp_server._tools import datastore, execution, trino  # noqa: F401
from xdp_mcp.mcp_server._tools.mcp_server import mcp_host, mcp_port, mcp_server

__all__ = [
    "mcp_host",
    "mcp_port",
    "mcp_server",
]
