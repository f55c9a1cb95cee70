"""
JSON-RPC 2.0 handling for the WebSocket/HTTP server.

Implements the subset of the MCP protocol needed by clients that speak plain JSON-RPC over HTTP
or WebSocket instead of an MCP transport: `initialize`, `tools/list`, `tools/call` and `ping`.
Tool schemas are taken from the FastMCP server so both servers advertise the same tools.
"""

import json
import logging
from typing import Any

from xdp_mcp import __version__
from xdp_mcp._dispatcher import ToolDispatcher
from xdp_mcp._exceptions import UnknownToolError
from xdp_mcp.mcp_server import mcp_server

_LOGGER = logging.getLogger(__name__)

PROTOCOL_VERSION = "2024-11-05"
SERVER_INFO = {"name": "xdp-mcp-server", "version": __version__}

INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
INTERNAL_ERROR = -32603


def error_response(request_id: Any, code: int, message: str) -> dict[str, Any]:
    """Build a JSON-RPC error response."""
    return {"jsonrpc": "2.0", "id": request_id, "error": {"code": code, "message": message}}


def _result_response(request_id: Any, result: Any) -> dict[str, Any]:
    return {"jsonrpc": "2.0", "id": request_id, "result": result}


async def list_tools() -> dict[str, Any]:
    """
    Describe every tool in MCP `tools/list` form.

    Returns:
        dict[str, Any]: `{"tools": [{"name", "description", "inputSchema"}, ...]}`.
    """
    tools = await mcp_server.list_tools()
    return {
        "tools": [
            {
                "name": tool.name,
                "description": tool.description,
                "inputSchema": tool.inputSchema,
            }
            for tool in tools
        ]
    }


def to_call_tool_result(result: dict[str, Any]) -> dict[str, Any]:
    """
    Wrap a tool result dict in the MCP `CallToolResult` shape.

    The text block carries the result's user-facing `message` when there is one, otherwise the
    JSON-encoded result. The full dict is also returned as `structuredContent`.
    """
    message = result.get("message")
    text = message if isinstance(message, str) and message else json.dumps(result, default=str)
    return {
        "content": [{"type": "text", "text": text}],
        "structuredContent": result,
        "isError": bool(result.get("isError", False)),
    }


async def handle_jsonrpc(
    message: Any,
    dispatcher: ToolDispatcher,
    default_session_id: str | None = None,
) -> dict[str, Any] | None:
    """
    Handle one JSON-RPC 2.0 request.

    Args:
        message (Any): The decoded request.
        dispatcher (ToolDispatcher): Dispatcher used for `tools/call`.
        default_session_id (str | None): Session key for execution tools called without one.

    Returns:
        dict[str, Any] | None: The response, or None for notifications, which get no response.
    """
    if not isinstance(message, dict) or message.get("jsonrpc") != "2.0":
        return error_response(
            message.get("id") if isinstance(message, dict) else None,
            INVALID_REQUEST,
            'Invalid Request: jsonrpc must be "2.0"',
        )

    request_id = message.get("id")
    method = message.get("method")
    if not method or not isinstance(method, str):
        return error_response(request_id, INVALID_REQUEST, "Invalid Request: method is required")

    if method.startswith("notifications/"):
        _LOGGER.debug(f"[jsonrpc:handle_jsonrpc] Notification received: {method}")
        return None

    params = message.get("params") or {}
    try:
        if method == "initialize":
            return _result_response(
                request_id,
                {
                    "protocolVersion": PROTOCOL_VERSION,
                    "capabilities": {"tools": {}},
                    "serverInfo": SERVER_INFO,
                },
            )
        if method == "ping":
            return _result_response(request_id, {})
        if method == "tools/list":
            return _result_response(request_id, await list_tools())
        if method == "tools/call":
            if not isinstance(params, dict) or not params.get("name"):
                return error_response(
                    request_id, INVALID_PARAMS, "Invalid params: tool name is required"
                )
            result = await dispatcher.call(
                params["name"],
                params.get("arguments") or {},
                default_session_id=default_session_id,
            )
            return _result_response(request_id, to_call_tool_result(result))
    except UnknownToolError as e:
        _LOGGER.warning(f"[jsonrpc:handle_jsonrpc] {e}")
        return error_response(request_id, INVALID_PARAMS, str(e))
    except Exception as e:
        _LOGGER.error(
            f"[jsonrpc:handle_jsonrpc] Method '{method}' failed: {e!r}", exc_info=True
        )
        return error_response(request_id, INTERNAL_ERROR, str(e) or "Internal error")

    return error_response(request_id, METHOD_NOT_FOUND, f"Method not found: {method}")
