"""
Trino MCP Tools - Query and Explore Tables Through Trino.

Provides MCP tools for the Trino SQL engine of an XDP dataplane:
- trino_execute_query: Run an arbitrary SQL query
- trino_list_catalogs: List the catalogs available on a dataplane
- trino_list_tables: List the tables of a catalog, optionally restricted to one schema
- trino_describe_table: Describe the columns of a table

Catalog, schema and table names must be plain identifiers (letters, digits, '_', '$', '-').
"""

import logging

from mcp.server.fastmcp import Context

from xdp_mcp.mcp_server._tools.mcp_server import mcp_server
from xdp_mcp.mcp_server._tools.shared import _get_dispatcher

_LOGGER = logging.getLogger(__name__)


@mcp_server.tool()
async def trino_execute_query(context: Context, dataplane: str, query: str) -> dict:
    """
    MCP Tool: Execute a Trino SQL query on a dataplane.

    AI Agent Usage:
    - Use trino_list_catalogs, trino_list_tables and trino_describe_table first to learn the
      available tables and columns
    - Prefer bounded queries (LIMIT) when exploring data
    - Always check the 'success' field; SQL errors are reported in 'error'

    Args:
        context (Context): The MCP context object.
        dataplane (str): Dataplane to run the query on.
        query (str): SQL text. Must not be empty.

    Returns:
        dict: Structured result object with keys:
            - 'success' (bool): True if the query ran.
            - 'dataplane' (str, optional): The dataplane queried.
            - 'query' (str, optional): The executed SQL.
            - 'result' (dict, optional): Raw query response (columns, rows, status).
            - 'error' (str, optional): Error message if the query failed.
            - 'isError' (bool, optional): Present and True if this is an error response.

    Example Error Response:
        {'success': False, 'error': "Trino query error: line 1:8: Column 'x' cannot be resolved", 'isError': True}
    """
    dispatcher = _get_dispatcher("trino_execute_query", context)
    return await dispatcher.trino_execute_query(dataplane=dataplane, query=query)


@mcp_server.tool()
async def trino_list_catalogs(context: Context, dataplane: str) -> dict:
    """
    MCP Tool: List the Trino catalogs available on a dataplane.

    Args:
        context (Context): The MCP context object.
        dataplane (str): Dataplane to inspect.

    Returns:
        dict: {'success': True, 'dataplane': str, 'result': dict} with the SHOW CATALOGS result,
            or {'success': False, 'error': str, 'isError': True}.
    """
    dispatcher = _get_dispatcher("trino_list_catalogs", context)
    return await dispatcher.trino_list_catalogs(dataplane=dataplane)


@mcp_server.tool()
async def trino_list_tables(
    context: Context,
    dataplane: str,
    catalog: str,
    schema: str | None = None,
) -> dict:
    """
    MCP Tool: List the tables in a Trino catalog.

    When 'schema' is given, lists the tables of that schema. Otherwise lists every table of the
    catalog with its schema and table type.

    Args:
        context (Context): The MCP context object.
        dataplane (str): Dataplane to inspect.
        catalog (str): Catalog name.
        schema (str, optional): Schema name. Defaults to None (all schemas).

    Returns:
        dict: Structured result object with keys:
            - 'success' (bool): True if the tables were listed.
            - 'dataplane' (str, optional), 'catalog' (str, optional), 'schema' (str, optional)
            - 'result' (dict, optional): Raw query response.
            - 'error' (str, optional): Error message, e.g. for an invalid catalog name.
            - 'isError' (bool, optional): Present and True if this is an error response.
    """
    dispatcher = _get_dispatcher("trino_list_tables", context)
    return await dispatcher.trino_list_tables(
        dataplane=dataplane, catalog=catalog, schema=schema
    )


@mcp_server.tool()
async def trino_describe_table(
    context: Context,
    dataplane: str,
    catalog: str,
    schema: str,
    table: str,
) -> dict:
    """
    MCP Tool: Describe the columns of a Trino table.

    Returns one row per column with column_name, data_type, is_nullable, column_default and
    ordinal_position, in column order.

    Args:
        context (Context): The MCP context object.
        dataplane (str): Dataplane to inspect.
        catalog (str): Catalog name.
        schema (str): Schema name.
        table (str): Table name.

    Returns:
        dict: {'success': True, 'dataplane': str, 'table': 'catalog.schema.table', 'result': dict},
            or {'success': False, 'error': str, 'isError': True}.
    """
    dispatcher = _get_dispatcher("trino_describe_table", context)
    return await dispatcher.trino_describe_table(
        dataplane=dataplane, catalog=catalog, schema=schema, table=table
    )
