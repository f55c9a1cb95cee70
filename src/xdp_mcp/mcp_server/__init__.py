"""
XDP MCP Server.

FastMCP server exposing the XDP tools over the stdio, SSE and streamable-HTTP transports.

Tools Provided:
    Data Store Operations:
    - xdp_list_datastores: List the data stores registered in XDP.

    Trino Operations:
    - trino_execute_query: Execute a SQL query on a dataplane.
    - trino_list_catalogs: List the catalogs of a dataplane.
    - trino_list_tables: List the tables of a catalog or schema.
    - trino_describe_table: Describe the columns of a table.

    Governed Execution:
    - execute_and_monitor: Submit an ad-hoc run under the per-session execution policy and collect its logs.
    - register_manual_execution: Record a manual run so that automatic retries become possible.

Return Types:
    - All tools return structured dict objects.
    - On success, 'success': True. Data tool errors carry 'success': False, 'error': str and 'isError': True.
    - Execution refusals carry an 'outcome' and a user-facing 'message'; only the retry limit refusal is an error.

See individual tool docstrings for full argument, return, and error details.
"""

from xdp_mcp.mcp_server._tools import mcp_host, mcp_port, mcp_server

__all__ = [
    "mcp_host",
    "mcp_port",
    "mcp_server",
]
