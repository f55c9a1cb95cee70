"""Custom exception types for XDP MCP.

Defines the exception hierarchy used across the XDP MCP server: API client failures,
session store failures, tool routing failures and configuration problems. These exceptions
provide fine-grained error reporting so that callers can decide between converting an error
into a structured tool response and letting it propagate as an infrastructure failure.

Execution policy refusals (manual execution required, retry limit reached, cooldown active)
and job submission failures are never raised; they are returned as structured results by the
execution governor. Only genuine infrastructure failures are exceptions.

Exception Hierarchy:
    - Base exceptions: McpError (base for all MCP exceptions), InternalError (extends McpError and RuntimeError)
    - Session store exceptions: SessionStoreError (extends InternalError)
    - XDP API exceptions: XdpApiError (extends McpError), AuthenticationError, AuthorizationError,
      RateLimitError, XdpConnectionError, QueryError (all extend XdpApiError)
    - Tool routing exceptions: UnknownToolError (extends McpError and KeyError)

Usage Example:
    ```python
    from xdp_mcp._exceptions import XdpApiError, XdpConnectionError

    async def fetch(client):
        try:
            return await client.list_datastores()
        except XdpConnectionError as e:
            # Network or connection problems
            logger.error(f"Connection failed: {e}")
            raise
        except XdpApiError as e:
            # Any other API problem
            logger.error(f"XDP API call failed: {e}")
            raise
    ```
"""

__all__ = [
    # Base exceptions
    "McpError",
    "InternalError",
    # Session store exceptions
    "SessionStoreError",
    # XDP API exceptions
    "XdpApiError",
    "AuthenticationError",
    "AuthorizationError",
    "RateLimitError",
    "XdpConnectionError",
    "QueryError",
    # Tool routing exceptions
    "UnknownToolError",
]


# Base Exceptions


class McpError(Exception):
    """Base exception for all XDP MCP errors.

    This serves as the common base class for all MCP-related exceptions,
    allowing callers to catch all MCP errors with a single except clause
    while still maintaining specific exception types for detailed error handling.

    Examples:
        ```python
        try:
            # MCP operations
            pass
        except McpError as e:
            # Handle any MCP-related error
            logger.error(f"MCP operation failed: {e}")
        ```
    """

    pass


class InternalError(McpError, RuntimeError):
    """Internal errors indicating a broken server invariant.

    This exception inherits from both McpError (for unified MCP error handling)
    and RuntimeError (to emphasize that this represents a server-side failure,
    not a user configuration or usage error).
    """

    pass


# Session Store Exceptions


class SessionStoreError(InternalError):
    """Exception raised when the execution session store cannot be used.

    The execution session store holds per-session attempt counters and manual
    execution flags. If it is unavailable (for example, it has already been closed
    during server shutdown), execution tracking cannot be enforced, so the governor
    does not attempt any execution and lets this error propagate to the transport,
    which reports it as a generic internal error.

    Usage:
        ```python
        try:
            result = await governor.execute_and_monitor("s1", job_spec)
        except SessionStoreError as e:
            logger.error(f"Execution tracking unavailable: {e}")
            raise
        ```
    """

    pass


# XDP API Exceptions


class XdpApiError(McpError):
    """Exception raised when a call to the XDP control-plane API fails.

    This is the base class for all XDP API failures. The message is suitable for
    display to users; the HTTP status, when known, is kept in `status`.

    Examples:
        - The API returned `success: false` with a message
        - The requested resource does not exist (HTTP 404)
        - The API returned an unexpected response body
    """

    def __init__(self, message: str, status: int | None = None):
        """Initialize the exception.

        Args:
            message (str): Human-readable error message.
            status (int | None): HTTP status code associated with the failure, if any.
        """
        super().__init__(message)
        self.status = status


class AuthenticationError(XdpApiError):
    """Exception raised when the XDP API rejects the configured access key / secret key (HTTP 401)."""

    pass


class AuthorizationError(XdpApiError):
    """Exception raised when the credentials lack permission for the requested resource (HTTP 403)."""

    pass


class RateLimitError(XdpApiError):
    """Exception raised when the XDP API rate limit has been exceeded (HTTP 429)."""

    pass


class XdpConnectionError(XdpApiError):
    """Exception raised when the XDP API cannot be reached.

    Wraps lower-level network errors (refused connections, DNS failures, timeouts)
    so that callers do not need to depend on the HTTP library's exception types.
    """

    pass


class QueryError(XdpApiError):
    """Exception raised when a Trino query submitted through the XDP API fails.

    Examples:
        - SQL syntax errors
        - Unknown catalog, schema or table
        - Query failures reported in the result payload
    """

    pass


# Tool Routing Exceptions


class UnknownToolError(McpError, KeyError):
    """Exception raised when a tool invocation names a tool that is not registered.

    Inherits from KeyError because the tool name is a lookup key into the dispatcher's
    tool table. Transports map this to a JSON-RPC "invalid params" error.
    """

    def __str__(self) -> str:
        # KeyError quotes its argument; keep the plain message
        return str(self.args[0]) if self.args else ""

