"""
Custom exceptions for XDP MCP configuration.
"""


class McpConfigurationError(Exception):
    """Base class for all XDP MCP configuration errors."""

    pass


class XdpConfigurationError(McpConfigurationError):
    """Raised when the `xdp` or `runner` configuration section is invalid or incomplete."""

    pass


class ExecutionConfigurationError(McpConfigurationError):
    """Raised when the `execution` configuration section is invalid."""

    pass


__all__ = [
    "McpConfigurationError",
    "XdpConfigurationError",
    "ExecutionConfigurationError",
]
