"""
XDP WebSocket/HTTP server.

Serves the XDP tools to clients that do not speak an MCP transport: JSON-RPC 2.0 over
`POST /api/mcp` and over the `/ws` WebSocket, plus REST endpoints for each tool and the
`/health` and `/ready` probes.
"""

from xdp_mcp.ws_server._app import create_app, handle_ws_message
from xdp_mcp.ws_server._jsonrpc import handle_jsonrpc, list_tools, to_call_tool_result

__all__ = [
    "create_app",
    "handle_jsonrpc",
    "handle_ws_message",
    "list_tools",
    "to_call_tool_result",
]
