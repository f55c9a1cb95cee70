"""
xdp_mcp: MCP servers for the XDP data platform.

This package exposes XDP data stores, Trino queries and governed job execution as MCP tools.
Two entry points are provided:

    - `xdp_mcp.mcp_server`: A FastMCP server (stdio, sse or streamable-http transports).
    - `xdp_mcp.ws_server`: A Starlette application serving the same tools over WebSocket,
      JSON-RPC over HTTP and plain REST endpoints.

Both surfaces delegate to a single `ToolDispatcher` (see `xdp_mcp._dispatcher`), which in turn
uses one `ExecutionGovernor` to enforce the manual-first, retry-cap and cooldown rules for job
execution.
"""

from ._version import __version__

__all__ = ["__version__"]
