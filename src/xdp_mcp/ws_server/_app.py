"""
Starlette application serving the XDP tools over WebSocket, JSON-RPC over HTTP, and REST.

Every route goes through the same `ToolDispatcher` as the FastMCP server, so execution policy
decisions are identical on all surfaces. The WebSocket connection id is used as the execution
session key when a client does not send one.
"""

import functools
import json
import logging
import uuid
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any

from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.routing import Route, WebSocketRoute
from starlette.websockets import WebSocket, WebSocketDisconnect

from xdp_mcp._dispatcher import ToolDispatcher, create_dispatcher
from xdp_mcp.config import ConfigManager
from xdp_mcp.ws_server._jsonrpc import (
    INVALID_REQUEST,
    handle_jsonrpc,
    list_tools,
)

_LOGGER = logging.getLogger(__name__)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _dispatcher(request: Request | WebSocket) -> ToolDispatcher:
    return request.app.state.dispatcher


async def _json_body(request: Request) -> dict[str, Any]:
    body = await request.json()
    if not isinstance(body, dict):
        raise ValueError("Request body must be a JSON object")
    return body


def _rest_endpoint(
    func: Callable[[Request], Awaitable[Any]],
) -> Callable[[Request], Awaitable[Response]]:
    """Turn a handler returning JSON data into an endpoint that answers 500 on any exception."""

    @functools.wraps(func)
    async def endpoint(request: Request) -> Response:
        try:
            return JSONResponse(await func(request))
        except Exception as e:
            _LOGGER.error(
                f"[ws_server:{func.__name__}] {request.method} {request.url.path} failed: {e!r}",
                exc_info=True,
            )
            return JSONResponse({"error": str(e) or "Unknown error"}, status_code=500)

    return endpoint


async def health(request: Request) -> Response:
    return JSONResponse(
        {
            "status": "healthy",
            "timestamp": _now(),
            "connections": len(request.app.state.connections),
        }
    )


async def ready(request: Request) -> Response:
    try:
        connected = await _dispatcher(request).xdp_client.test_connection()
    except Exception as e:
        _LOGGER.warning(f"[ws_server:ready] Readiness check failed: {e!r}")
        return JSONResponse({"status": "not ready", "error": str(e)}, status_code=503)
    if connected:
        return JSONResponse({"status": "ready", "xdp": "connected"})
    return JSONResponse({"status": "not ready", "xdp": "disconnected"}, status_code=503)


async def mcp_endpoint(request: Request) -> Response:
    """JSON-RPC 2.0 endpoint. Requests that are not valid JSON-RPC get HTTP 400."""
    try:
        message = await request.json()
    except json.JSONDecodeError:
        return JSONResponse(
            {"jsonrpc": "2.0", "id": None, "error": {"code": -32700, "message": "Parse error"}},
            status_code=400,
        )

    response = await handle_jsonrpc(message, _dispatcher(request))
    if response is None:
        return Response(status_code=202)
    if response.get("error", {}).get("code") == INVALID_REQUEST:
        return JSONResponse(response, status_code=400)
    return JSONResponse(response)


@_rest_endpoint
async def tools_list(request: Request) -> Any:
    return await list_tools()


@_rest_endpoint
async def tools_execute(request: Request) -> Any:
    body = await _json_body(request)
    return await _dispatcher(request).call(body.get("tool"), body.get("params") or {})


@_rest_endpoint
async def execute_monitor(request: Request) -> Any:
    body = await _json_body(request)
    return await _dispatcher(request).call("execute_and_monitor", body)


@_rest_endpoint
async def register_execution(request: Request) -> Any:
    body = await _json_body(request)
    return await _dispatcher(request).call("register_manual_execution", body)


@_rest_endpoint
async def xdp_datastores(request: Request) -> Any:
    query = request.query_params
    return await _dispatcher(request).call(
        "xdp_list_datastores",
        {
            "page": int(query.get("page", 0)),
            "size": int(query.get("size", 20)),
            "sort_by": query.get("sortBy", "updatedAt:asc"),
        },
    )


@_rest_endpoint
async def trino_query(request: Request) -> Any:
    body = await _json_body(request)
    return await _dispatcher(request).call("trino_execute_query", body)


@_rest_endpoint
async def trino_catalogs(request: Request) -> Any:
    return await _dispatcher(request).call(
        "trino_list_catalogs", {"dataplane": request.path_params["dataplane"]}
    )


@_rest_endpoint
async def trino_tables(request: Request) -> Any:
    query = request.query_params
    arguments = {
        "dataplane": request.path_params["dataplane"],
        "catalog": query.get("catalog"),
    }
    if query.get("schema"):
        arguments["schema"] = query["schema"]
    return await _dispatcher(request).call("trino_list_tables", arguments)


@_rest_endpoint
async def trino_table(request: Request) -> Any:
    query = request.query_params
    return await _dispatcher(request).call(
        "trino_describe_table",
        {
            "dataplane": request.path_params["dataplane"],
            "catalog": query.get("catalog"),
            "schema": query.get("schema"),
            "table": query.get("table"),
        },
    )


async def handle_ws_message(
    dispatcher: ToolDispatcher, connection_id: str, raw: str
) -> dict[str, Any] | None:
    """
    Handle one WebSocket text frame and build the reply.

    JSON-RPC 2.0 messages are answered with JSON-RPC responses. The custom message types are:
    - `ping`: replies `{"type": "pong", "timestamp"}`
    - `list_tools`: replies `{"type": "tools", "data"}`
    - `execute_tool` with `tool` and `params`: replies `{"type": "tool_result", "tool", "data"}`

    Anything else gets `{"type": "error", "error"}`.

    Args:
        dispatcher (ToolDispatcher): The tool dispatcher.
        connection_id (str): The connection id, used as the default execution session key.
        raw (str): The received frame.

    Returns:
        dict[str, Any] | None: The reply, or None when nothing should be sent.
    """
    try:
        message = json.loads(raw)
    except json.JSONDecodeError as e:
        return {"type": "error", "error": f"Invalid JSON: {e}"}
    if not isinstance(message, dict):
        return {"type": "error", "error": "Message must be a JSON object"}

    if message.get("jsonrpc") == "2.0":
        return await handle_jsonrpc(message, dispatcher, default_session_id=connection_id)

    message_type = message.get("type")
    try:
        if message_type == "ping":
            return {"type": "pong", "timestamp": _now()}
        if message_type == "list_tools":
            return {"type": "tools", "data": await list_tools()}
        if message_type == "execute_tool":
            result = await dispatcher.call(
                message.get("tool"),
                message.get("params") or {},
                default_session_id=connection_id,
            )
            return {"type": "tool_result", "tool": message.get("tool"), "data": result}
    except Exception as e:
        _LOGGER.error(
            f"[ws_server:handle_ws_message] '{message_type}' failed for connection {connection_id}: {e!r}",
            exc_info=True,
        )
        return {"type": "error", "error": str(e) or "Unknown error"}

    return {"type": "error", "error": f"Unknown message type: {message_type}"}


async def websocket_endpoint(websocket: WebSocket) -> None:
    await websocket.accept()
    connection_id = str(uuid.uuid4())
    connections: set[str] = websocket.app.state.connections
    connections.add(connection_id)
    _LOGGER.info(f"[ws_server:websocket_endpoint] WebSocket connected: {connection_id}")

    try:
        await websocket.send_json(
            {"type": "connection", "sessionId": connection_id, "timestamp": _now()}
        )
        while True:
            raw = await websocket.receive_text()
            reply = await handle_ws_message(_dispatcher(websocket), connection_id, raw)
            if reply is not None:
                await websocket.send_json(reply)
    except WebSocketDisconnect:
        _LOGGER.info(f"[ws_server:websocket_endpoint] WebSocket disconnected: {connection_id}")
    finally:
        connections.discard(connection_id)


def create_app(dispatcher: ToolDispatcher | None = None) -> Starlette:
    """
    Create the WebSocket/HTTP application.

    Args:
        dispatcher (ToolDispatcher | None): Dispatcher to serve. When None, the lifespan loads the
            configuration and builds one with `create_dispatcher`.

    Returns:
        Starlette: The application. The lifespan closes the dispatcher on shutdown.
    """

    @asynccontextmanager
    async def lifespan(app: Starlette) -> AsyncIterator[None]:
        _LOGGER.info("[ws_server:lifespan] Starting XDP WebSocket/HTTP server")
        active = dispatcher
        if active is None:
            config = await ConfigManager().get_config()
            active = create_dispatcher(config)
        app.state.dispatcher = active
        app.state.connections = set()
        try:
            yield
        finally:
            _LOGGER.info("[ws_server:lifespan] Closing execution session store and HTTP clients...")
            await active.close()
            _LOGGER.info("[ws_server:lifespan] XDP WebSocket/HTTP server shut down.")

    return Starlette(
        debug=False,
        lifespan=lifespan,
        routes=[
            Route("/health", health, methods=["GET"]),
            Route("/ready", ready, methods=["GET"]),
            Route("/api/mcp", mcp_endpoint, methods=["POST"]),
            Route("/api/tools/list", tools_list, methods=["POST"]),
            Route("/api/tools/execute", tools_execute, methods=["POST"]),
            Route("/api/execute-monitor", execute_monitor, methods=["POST"]),
            Route("/api/register-execution", register_execution, methods=["POST"]),
            Route("/api/xdp/datastores", xdp_datastores, methods=["GET"]),
            Route("/api/trino/query", trino_query, methods=["POST"]),
            Route("/api/trino/{dataplane}/catalogs", trino_catalogs, methods=["GET"]),
            Route("/api/trino/{dataplane}/tables", trino_tables, methods=["GET"]),
            Route("/api/trino/{dataplane}/table", trino_table, methods=["GET"]),
            WebSocketRoute("/ws", websocket_endpoint),
        ],
    )
