"""
Tool dispatcher shared by every transport.

`ToolDispatcher` implements each XDP MCP tool once. The FastMCP tool functions and the
WebSocket/HTTP server are thin adapters over it, so the execution policy and the response
shapes cannot drift between transports.

Every tool returns a dict. Data tools return `{"success": True, ...}` or
`{"success": False, "error": str, "isError": True}` and never raise. Execution tools return
`ExecutionResult.to_dict()`; the only exception they let through is `SessionStoreError`.
"""

import inspect
import logging
import re
from collections.abc import Awaitable, Callable
from typing import Any

from xdp_mcp._exceptions import UnknownToolError
from xdp_mcp.client import JobRunnerClient, XdpApiClient
from xdp_mcp.config import (
    build_execution_policy,
    get_log_completion_markers,
    get_session_idle_ttl,
    resolve_runner_settings,
    resolve_xdp_settings,
)
from xdp_mcp.execution import (
    ExecutionGovernor,
    ExecutionSessionStore,
    JobSpec,
    LogStreamCollector,
    marker_predicate,
)

_LOGGER = logging.getLogger(__name__)

TOOL_NAMES: tuple[str, ...] = (
    "xdp_list_datastores",
    "trino_execute_query",
    "trino_list_catalogs",
    "trino_list_tables",
    "trino_describe_table",
    "execute_and_monitor",
    "register_manual_execution",
)
"""Names of all tools, in listing order."""

SESSION_TOOLS = frozenset({"execute_and_monitor", "register_manual_execution"})
"""Tools whose `session_id` may default to the caller's connection id."""

_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")


def to_snake_case(name: str) -> str:
    """
    Convert a camelCase argument name to snake_case. snake_case names are returned unchanged.

    Example:
        >>> to_snake_case("isManualTrigger")
        'is_manual_trigger'
    """
    return _CAMEL_BOUNDARY.sub("_", name).lower()


def _error(message: str) -> dict[str, Any]:
    return {"success": False, "error": message, "isError": True}


def _invalid_session_arguments(session_id: Any, **flags: Any) -> str | None:
    """Return an error message if the session id is not a string or a flag is not a real bool."""
    if not isinstance(session_id, str):
        return f"session_id must be a string, got {type(session_id).__name__}"
    for flag, value in flags.items():
        # truthy strings such as "false" must not count as a user action
        if not isinstance(value, bool):
            return f"{flag} must be a boolean, got {type(value).__name__}"
    return None


class ToolDispatcher:
    """
    Implements and routes the XDP MCP tools.

    Args:
        xdp_client (XdpApiClient): Client for the data store and Trino tools.
        governor (ExecutionGovernor): Governor for the execution tools.
        runner_client (JobRunnerClient | None): Job runner client to close on shutdown.
    """

    def __init__(
        self,
        xdp_client: XdpApiClient,
        governor: ExecutionGovernor,
        runner_client: JobRunnerClient | None = None,
    ) -> None:
        self._xdp_client = xdp_client
        self._governor = governor
        self._runner_client = runner_client
        self._tools: dict[str, Callable[..., Awaitable[dict[str, Any]]]] = {
            name: getattr(self, name) for name in TOOL_NAMES
        }

    @property
    def xdp_client(self) -> XdpApiClient:
        return self._xdp_client

    @property
    def governor(self) -> ExecutionGovernor:
        return self._governor

    @property
    def session_store(self) -> ExecutionSessionStore:
        return self._governor.store

    async def close(self) -> None:
        """Close the session store and the HTTP clients."""
        await self._governor.store.close()
        await self._xdp_client.close()
        if self._runner_client is not None:
            await self._runner_client.close()

    async def call(
        self,
        name: str,
        arguments: dict[str, Any] | None = None,
        default_session_id: str | None = None,
    ) -> dict[str, Any]:
        """
        Invoke a tool by name.

        Argument names may be camelCase (`sessionId`, `dataplaneId`, ...); they are normalized to
        snake_case. For the execution tools, `default_session_id` is used when no `session_id`
        is given.

        Args:
            name (str): Tool name.
            arguments (dict[str, Any] | None): Tool arguments.
            default_session_id (str | None): Fallback session key, typically a connection id.

        Returns:
            dict[str, Any]: The tool result. Invalid arguments produce an error dict.

        Raises:
            UnknownToolError: If `name` is not a registered tool.
            SessionStoreError: If the execution session store is unavailable.
        """
        handler = self._tools.get(name)
        if handler is None:
            raise UnknownToolError(f"Unknown tool: {name}")

        args = {to_snake_case(k): v for k, v in (arguments or {}).items()}
        if name in SESSION_TOOLS and not args.get("session_id") and default_session_id:
            args["session_id"] = default_session_id

        try:
            inspect.signature(handler).bind(**args)
        except TypeError as e:
            _LOGGER.warning(f"[ToolDispatcher:call] Invalid arguments for tool '{name}': {e}")
            return _error(f"Invalid arguments for tool '{name}': {e}")

        _LOGGER.debug(f"[ToolDispatcher:call] Dispatching tool '{name}'")
        return await handler(**args)

    async def xdp_list_datastores(
        self, page: int = 0, size: int = 20, sort_by: str = "updatedAt:asc"
    ) -> dict[str, Any]:
        _LOGGER.info(
            f"[ToolDispatcher:xdp_list_datastores] Invoked: page={page}, size={size}, sort_by={sort_by!r}"
        )
        try:
            result = await self._xdp_client.list_datastores(
                page=int(page), size=int(size), sort_by=sort_by
            )
            return {
                "success": True,
                "datastores": result["datastores"],
                "count": len(result["datastores"]),
                "meta": result["meta"],
            }
        except Exception as e:
            _LOGGER.error(
                f"[ToolDispatcher:xdp_list_datastores] Failed: {e!r}", exc_info=True
            )
            return _error(str(e))

    async def trino_execute_query(self, dataplane: str, query: str) -> dict[str, Any]:
        _LOGGER.info(
            f"[ToolDispatcher:trino_execute_query] Invoked: dataplane={dataplane!r}"
        )
        try:
            if not query or not query.strip():
                raise ValueError("query must be a non-empty string")
            result = await self._xdp_client.execute_trino_query(dataplane, query)
            return {"success": True, "dataplane": dataplane, "query": query, "result": result}
        except Exception as e:
            _LOGGER.error(
                f"[ToolDispatcher:trino_execute_query] Failed: {e!r}", exc_info=True
            )
            return _error(str(e))

    async def trino_list_catalogs(self, dataplane: str) -> dict[str, Any]:
        _LOGGER.info(
            f"[ToolDispatcher:trino_list_catalogs] Invoked: dataplane={dataplane!r}"
        )
        try:
            result = await self._xdp_client.list_trino_catalogs(dataplane)
            return {"success": True, "dataplane": dataplane, "result": result}
        except Exception as e:
            _LOGGER.error(
                f"[ToolDispatcher:trino_list_catalogs] Failed: {e!r}", exc_info=True
            )
            return _error(str(e))

    async def trino_list_tables(
        self, dataplane: str, catalog: str, schema: str | None = None
    ) -> dict[str, Any]:
        _LOGGER.info(
            f"[ToolDispatcher:trino_list_tables] Invoked: dataplane={dataplane!r}, "
            f"catalog={catalog!r}, schema={schema!r}"
        )
        try:
            result = await self._xdp_client.list_trino_tables(dataplane, catalog, schema)
            response: dict[str, Any] = {
                "success": True,
                "dataplane": dataplane,
                "catalog": catalog,
                "result": result,
            }
            if schema:
                response["schema"] = schema
            return response
        except Exception as e:
            _LOGGER.error(
                f"[ToolDispatcher:trino_list_tables] Failed: {e!r}", exc_info=True
            )
            return _error(str(e))

    async def trino_describe_table(
        self, dataplane: str, catalog: str, schema: str, table: str
    ) -> dict[str, Any]:
        _LOGGER.info(
            f"[ToolDispatcher:trino_describe_table] Invoked: dataplane={dataplane!r}, "
            f"table={catalog}.{schema}.{table}"
        )
        try:
            result = await self._xdp_client.get_trino_table_columns(
                dataplane, catalog, schema, table
            )
            return {
                "success": True,
                "dataplane": dataplane,
                "table": f"{catalog}.{schema}.{table}",
                "result": result,
            }
        except Exception as e:
            _LOGGER.error(
                f"[ToolDispatcher:trino_describe_table] Failed: {e!r}", exc_info=True
            )
            return _error(str(e))

    async def execute_and_monitor(
        self,
        session_id: str,
        dataplane_id: str,
        is_manual_trigger: bool = False,
        **job_fields: Any,
    ) -> dict[str, Any]:
        _LOGGER.info(
            f"[ToolDispatcher:execute_and_monitor] Invoked: session_id={session_id!r}, "
            f"dataplane_id={dataplane_id!r}, is_manual_trigger={is_manual_trigger}"
        )
        invalid = _invalid_session_arguments(session_id, is_manual_trigger=is_manual_trigger)
        if invalid:
            _LOGGER.warning(f"[ToolDispatcher:execute_and_monitor] Invalid arguments: {invalid}")
            return _error(invalid)
        try:
            job_spec = JobSpec.from_arguments(dataplane_id=dataplane_id, **job_fields)
            result = await self._governor.execute_and_monitor(
                session_id, job_spec, is_manual_trigger=is_manual_trigger
            )
        except ValueError as e:
            _LOGGER.warning(f"[ToolDispatcher:execute_and_monitor] Invalid arguments: {e}")
            return _error(str(e))
        return result.to_dict()

    async def register_manual_execution(
        self, session_id: str, success: bool, run_id: str | None = None
    ) -> dict[str, Any]:
        _LOGGER.info(
            f"[ToolDispatcher:register_manual_execution] Invoked: session_id={session_id!r}, "
            f"run_id={run_id!r}, success={success}"
        )
        invalid = _invalid_session_arguments(session_id, success=success)
        if invalid is None and run_id is not None:
            if isinstance(run_id, int) and not isinstance(run_id, bool):
                run_id = str(run_id)
            elif not isinstance(run_id, str):
                invalid = f"run_id must be a string, got {type(run_id).__name__}"
        if invalid:
            _LOGGER.warning(
                f"[ToolDispatcher:register_manual_execution] Invalid arguments: {invalid}"
            )
            return _error(invalid)
        try:
            result = await self._governor.register_manual_execution(
                session_id, run_id, success=success
            )
        except ValueError as e:
            _LOGGER.warning(
                f"[ToolDispatcher:register_manual_execution] Invalid arguments: {e}"
            )
            return _error(str(e))
        return result.to_dict()


def create_dispatcher(config: dict[str, Any]) -> ToolDispatcher:
    """
    Build a `ToolDispatcher` and all of its collaborators from a validated configuration.

    Args:
        config (dict[str, Any]): Configuration returned by `ConfigManager.get_config()`.

    Returns:
        ToolDispatcher: A ready dispatcher. Close it with `await dispatcher.close()`.

    Raises:
        McpConfigurationError: If the XDP credentials are missing.
    """
    xdp_settings = resolve_xdp_settings(config)
    runner_settings = resolve_runner_settings(config)
    policy = build_execution_policy(config)

    xdp_client = XdpApiClient(
        xdp_settings["base_url"],
        xdp_settings["access_key"],
        xdp_settings["secret_key"],
        timeout_seconds=xdp_settings["timeout_seconds"],
    )
    runner_client = JobRunnerClient(
        runner_settings["base_url"],
        submit_timeout_seconds=runner_settings["submit_timeout_seconds"],
        log_tail_lines=runner_settings["log_tail_lines"],
    )
    log_collector = LogStreamCollector(
        runner_client.stream_logs,
        completion_predicate=marker_predicate(get_log_completion_markers(config)),
        timeout_seconds=policy.log_collection_timeout_seconds,
        max_chars=policy.max_log_chars,
    )
    store = ExecutionSessionStore(idle_ttl_seconds=get_session_idle_ttl(config))
    governor = ExecutionGovernor(runner_client, log_collector, store, policy)

    _LOGGER.info(
        f"[create_dispatcher] Dispatcher ready: xdp={xdp_client.redacted_config()}, "
        f"runner={runner_client.base_url}, policy={policy}"
    )
    return ToolDispatcher(xdp_client, governor, runner_client=runner_client)
