"""
Async XDP MCP configuration management.

This module provides async functions to load, validate, and manage configuration for XDP MCP from a JSON file.
Configuration is loaded from the file named by the XDP_MCP_CONFIG_FILE environment variable using native async
file I/O (aiofiles). The file is optional: when the variable is not set, an empty configuration is used and
every setting falls back to environment variables and defaults.

Features:
    - Coroutine-safe, cached loading of configuration using asyncio.Lock.
    - Strict validation of configuration structure and values.
    - Resolution of connection settings from the file, environment variables and defaults.
    - Redaction of credentials in logs.

Configuration Schema:
---------------------
The configuration file must be a JSON object. It may contain the following top-level keys:

  - `xdp` (dict, optional): XDP control-plane API connection.
        - `base_url` (str): API base URL. Falls back to XDP_BASE_URL, then the public playground URL.
        - `access_key` (str) / `access_key_env_var` (str): Access key, or the environment variable holding it.
          Falls back to XDP_ACCESS_KEY. Mutually exclusive.
        - `secret_key` (str) / `secret_key_env_var` (str): Secret key, or the environment variable holding it.
          Falls back to XDP_SECRET_KEY. Mutually exclusive.
        - `timeout_seconds` (number): Request timeout. Default 30.

  - `runner` (dict, optional): Job runner service used for ad-hoc runs and log streaming.
        - `base_url` (str): Falls back to BOLT_API_URL, then http://localhost:5173.
        - `submit_timeout_seconds` (number): Submission timeout. Default 60.
        - `log_tail_lines` (int): Number of trailing log lines requested from the log stream. Default 100.

  - `execution` (dict, optional): Execution governance limits. See `xdp_mcp.config._execution`.

Unknown top-level keys and unknown fields within a section cause validation to fail.

Example Valid Configuration:
----------------------------
```json
{
    "xdp": {
        "base_url": "https://xdp.example.com/xdp-cp-service/api",
        "access_key_env_var": "PROD_XDP_ACCESS_KEY",
        "secret_key_env_var": "PROD_XDP_SECRET_KEY"
    },
    "runner": {"base_url": "http://runner.internal:5173"},
    "execution": {"max_attempts": 3, "min_cooldown_seconds": 30, "session_idle_ttl_seconds": 86400}
}
```

Environment Variables:
---------------------
- `XDP_MCP_CONFIG_FILE`: Path to the XDP MCP configuration JSON file (optional).

Security:
---------
- The secret key is never logged; the access key is truncated in logs.
"""

__all__ = [
    # Errors and core config
    "McpConfigurationError",
    "XdpConfigurationError",
    "ExecutionConfigurationError",
    "ConfigManager",
    "CONFIG_ENV_VAR",
    "validate_config",
    "get_config_path",
    "load_and_validate_config",
    # XDP / runner API
    "validate_xdp_config",
    "validate_runner_config",
    "redact_xdp_config",
    "resolve_xdp_settings",
    "resolve_runner_settings",
    # Execution API
    "validate_execution_config",
    "build_execution_policy",
    "get_log_completion_markers",
    "get_session_idle_ttl",
]

import asyncio
import json
import logging
import os
from collections.abc import Callable
from typing import Any, cast

import aiofiles

from ._execution import (
    build_execution_policy,
    get_log_completion_markers,
    get_session_idle_ttl,
    validate_execution_config,
)
from ._xdp import (
    redact_xdp_config,
    resolve_runner_settings,
    resolve_xdp_settings,
    validate_runner_config,
    validate_xdp_config,
)
from .errors import (
    ExecutionConfigurationError,
    McpConfigurationError,
    XdpConfigurationError,
)

_LOGGER = logging.getLogger(__name__)

CONFIG_ENV_VAR = "XDP_MCP_CONFIG_FILE"
"""
str: Name of the environment variable specifying the path to the XDP MCP config file.
"""

_SECTION_VALIDATORS: dict[str, Callable[[Any], None]] = {
    "xdp": validate_xdp_config,
    "runner": validate_runner_config,
    "execution": validate_execution_config,
}
"""Validator for each allowed top-level key."""


class ConfigManager:
    """
    Async configuration manager for XDP MCP configuration.

    This class encapsulates all logic for loading, validating, and caching the configuration for XDP MCP.
    """

    def __init__(self) -> None:
        """
        Initialize a new ConfigManager instance.

        Sets up the internal configuration cache and an asyncio.Lock for coroutine safety.
        """
        self._cache: dict[str, Any] | None = None
        self._lock = asyncio.Lock()

    async def clear_config_cache(self) -> None:
        """
        Clear the cached configuration (coroutine-safe).

        The next configuration access reloads from disk.
        """
        _LOGGER.debug("Clearing XDP MCP configuration cache...")
        async with self._lock:
            self._cache = None

        _LOGGER.debug("Configuration cache cleared.")

    async def _set_config_cache(self, config: dict[str, Any]) -> None:
        """
        PRIVATE: Set the in-memory configuration cache (coroutine-safe, for testing/internal use only).

        The configuration is validated before caching.

        Raises:
            McpConfigurationError: If the provided configuration is invalid.
        """
        async with self._lock:
            self._cache = validate_config(config)

    async def get_config(self) -> dict[str, Any]:
        """
        Load and validate the XDP MCP configuration (coroutine-safe).

        Loads the file named by XDP_MCP_CONFIG_FILE on first use and caches the result. When the
        variable is not set, the empty configuration `{}` is used.

        Returns:
            dict[str, Any]: The loaded and validated configuration dictionary.

        Raises:
            McpConfigurationError: If the config file cannot be read, is not valid JSON, or fails validation.

        Example:
            >>> config_manager = ConfigManager()
            >>> config = await config_manager.get_config()
            >>> config.get("execution", {})
            {}
        """
        _LOGGER.debug("Loading XDP MCP configuration...")
        async with self._lock:
            if self._cache is not None:
                _LOGGER.debug("Using cached XDP MCP configuration.")
                return self._cache

            config_path = get_config_path()
            if config_path is None:
                validated = validate_config({})
            else:
                validated = await load_and_validate_config(config_path)
            self._cache = validated
            _log_config_summary(validated)
            return validated


async def _load_config_from_file(config_path: str) -> dict[str, Any]:
    """
    Load and parse the XDP MCP configuration from a JSON file asynchronously.

    Raises:
        McpConfigurationError: If the file is not found, cannot be read, or is not valid JSON.
    """
    try:
        async with aiofiles.open(config_path) as f:
            content = await f.read()
        return cast(dict[str, Any], json.loads(content))
    except FileNotFoundError:
        _LOGGER.error(f"Configuration file not found: {config_path}")
        raise McpConfigurationError(
            f"Configuration file not found: {config_path}"
        ) from None
    except PermissionError:
        _LOGGER.error(
            f"Permission denied when trying to read configuration file: {config_path}"
        )
        raise McpConfigurationError(
            f"Permission denied when trying to read configuration file: {config_path}"
        ) from None
    except json.JSONDecodeError as e:
        _LOGGER.error(f"Invalid JSON in configuration file {config_path}: {e}")
        raise McpConfigurationError(
            f"Invalid JSON in configuration file {config_path}: {e}"
        ) from e
    except Exception as e:
        _LOGGER.error(
            f"Unexpected error loading or parsing config file {config_path}: {e}"
        )
        raise McpConfigurationError(
            f"Unexpected error loading or parsing config file {config_path}: {e}"
        ) from e


def get_config_path() -> str | None:
    """
    Retrieve the configuration file path from the environment variable.

    Returns:
        str | None: The value of XDP_MCP_CONFIG_FILE, or None if it is not set.
    """
    config_path = os.environ.get(CONFIG_ENV_VAR)
    if config_path is None:
        _LOGGER.info(
            f"Environment variable {CONFIG_ENV_VAR} is not set; using environment variables and defaults."
        )
        return None
    _LOGGER.info(f"Environment variable {CONFIG_ENV_VAR} is set to: {config_path}")
    return config_path


async def load_and_validate_config(config_path: str) -> dict[str, Any]:
    """
    Load and validate the XDP MCP configuration from a JSON file.

    All failures are logged and re-raised as McpConfigurationError for unified error handling.

    Raises:
        McpConfigurationError: If the file cannot be read, is not valid JSON, or fails validation.
    """
    data = await _load_config_from_file(config_path)
    try:
        return validate_config(data)
    except McpConfigurationError as e:
        _LOGGER.error(f"Configuration validation failed for {config_path}: {e}")
        raise


def _log_config_summary(config: dict[str, Any]) -> None:
    """Log the configured sections, with credentials redacted."""
    if not config:
        _LOGGER.info("No configuration sections set; using environment variables and defaults.")
        return
    for section, values in config.items():
        if section == "xdp":
            values = redact_xdp_config(values)
        _LOGGER.info(f"  Section '{section}': {values}")


def validate_config(config: Any) -> dict[str, Any]:
    """
    Validate the XDP MCP configuration dictionary.

    Validation Rules:
        - The configuration must be a JSON object.
        - Only the top-level keys 'xdp', 'runner' and 'execution' are allowed.
        - Each present section is validated by its section validator.

    Args:
        config (Any): The configuration to validate.

    Returns:
        dict[str, Any]: The validated configuration dictionary.

    Raises:
        McpConfigurationError: If the configuration is not a dict or has unknown top-level keys.
        XdpConfigurationError: If the 'xdp' or 'runner' section is invalid.
        ExecutionConfigurationError: If the 'execution' section is invalid.

    Example:
        >>> validate_config({"execution": {"max_attempts": 5}})
        {'execution': {'max_attempts': 5}}
    """
    if not isinstance(config, dict):
        _LOGGER.error("XDP MCP config must be a JSON object.")
        raise McpConfigurationError("XDP MCP config must be a JSON object")

    unknown_keys = set(config.keys()) - set(_SECTION_VALIDATORS)
    if unknown_keys:
        _LOGGER.error(f"Unknown top-level keys in XDP MCP config: {unknown_keys}")
        raise McpConfigurationError(
            f"Unknown top-level keys in XDP MCP config: {unknown_keys}"
        )

    for section, validator in _SECTION_VALIDATORS.items():
        if section in config:
            validator(config[section])

    _LOGGER.info("Configuration validation passed.")
    return config
