"""
Data Store MCP Tools - Browse XDP Data Stores.

Provides MCP tools for the XDP data catalog:
- xdp_list_datastores: List the data stores registered in XDP, one page at a time
"""

import logging

from mcp.server.fastmcp import Context

from xdp_mcp.mcp_server._tools.mcp_server import mcp_server
from xdp_mcp.mcp_server._tools.shared import _get_dispatcher

_LOGGER = logging.getLogger(__name__)


@mcp_server.tool()
async def xdp_list_datastores(
    context: Context,
    page: int = 0,
    size: int = 20,
    sort_by: str = "updatedAt:asc",
) -> dict:
    """
    MCP Tool: List data stores from the XDP platform.

    Returns one page of the data stores registered in XDP (databases, object stores, warehouses)
    together with the raw page metadata reported by the API.

    AI Agent Usage:
    - Start with the defaults to see the first 20 data stores
    - Use 'page' to move through the list; 'meta' reports the total count and page size
    - Use the returned data store ids in the 'data_store_ids' argument of execute_and_monitor
    - Always check the 'success' field before using the data

    Args:
        context (Context): The MCP context object.
        page (int, optional): Zero-based page number. Defaults to 0.
        size (int, optional): Page size. Defaults to 20.
        sort_by (str, optional): Sort expression '<field>:<asc|desc>'. Defaults to 'updatedAt:asc'.

    Returns:
        dict: Structured result object with keys:
            - 'success' (bool): True if the data stores were retrieved.
            - 'datastores' (list[dict], optional): Data store records as returned by XDP.
            - 'count' (int, optional): Number of data stores in this page.
            - 'meta' (dict, optional): Raw page metadata (page, size, count).
            - 'error' (str, optional): Error message if the call failed.
            - 'isError' (bool, optional): Present and True if this is an error response.

    Example Successful Response:
        {'success': True, 'datastores': [{'id': 7, 'name': 'sales-pg', ...}], 'count': 1,
         'meta': {'page': 0, 'size': 20, 'count': 1}}

    Example Error Response:
        {'success': False, 'error': 'Authentication failed. Please check your access key and secret key.', 'isError': True}
    """
    dispatcher = _get_dispatcher("xdp_list_datastores", context)
    return await dispatcher.xdp_list_datastores(page=page, size=size, sort_by=sort_by)
