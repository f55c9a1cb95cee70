"""
Configuration handling for governed execution (`execution` section).

All fields are optional; omitted fields take the `ExecutionPolicy` defaults.

Fields:
    - `max_attempts` (int, >= 1): Maximum governed attempts per session.
    - `min_cooldown_seconds` (number, >= 0): Minimum time between accepted attempts.
    - `settle_delay_seconds` (number, >= 0): Delay between submission and log collection.
    - `log_collection_timeout_seconds` (number, > 0): Upper bound on log collection.
    - `max_log_chars` (int, >= 1): Collected logs are truncated beyond this length.
    - `log_completion_markers` (list[str]): Substrings that mark the end of a log stream.
    - `session_idle_ttl_seconds` (number > 0 or null): Evict sessions idle for this long.
      Omitted or null disables eviction.

All validation errors raise `ExecutionConfigurationError`.
"""

__all__ = [
    "validate_execution_config",
    "build_execution_policy",
    "get_log_completion_markers",
    "get_session_idle_ttl",
]

import logging
from typing import Any

from xdp_mcp.execution import DEFAULT_COMPLETION_MARKERS, ExecutionPolicy

from .errors import ExecutionConfigurationError

_LOGGER = logging.getLogger(__name__)

_NUMBER = (int, float)

# field -> (expected types, minimum, minimum is exclusive)
_NUMERIC_FIELDS: dict[str, tuple[type | tuple[type, ...], float, bool]] = {
    "max_attempts": (int, 1, False),
    "min_cooldown_seconds": (_NUMBER, 0, False),
    "settle_delay_seconds": (_NUMBER, 0, False),
    "log_collection_timeout_seconds": (_NUMBER, 0, True),
    "max_log_chars": (int, 1, False),
}

_ALLOWED_FIELDS = set(_NUMERIC_FIELDS) | {
    "log_completion_markers",
    "session_idle_ttl_seconds",
}


def validate_execution_config(execution_config: Any) -> None:
    """
    Validate the `execution` configuration section.

    Args:
        execution_config (Any): The value of the `execution` key.

    Raises:
        ExecutionConfigurationError: If the section is not a dict, has unknown fields, or any
            field has the wrong type or is out of range.
    """
    if not isinstance(execution_config, dict):
        raise ExecutionConfigurationError(
            f"'execution' must be a dictionary, got {type(execution_config).__name__}"
        )

    unknown = set(execution_config) - _ALLOWED_FIELDS
    if unknown:
        raise ExecutionConfigurationError(
            f"Unknown field(s) in 'execution' config: {sorted(unknown)}"
        )

    for field, (expected, minimum, exclusive) in _NUMERIC_FIELDS.items():
        if field not in execution_config:
            continue
        value = execution_config[field]
        if isinstance(value, bool) or not isinstance(value, expected):
            kind = "an integer" if expected is int else "a number"
            raise ExecutionConfigurationError(
                f"Field '{field}' in 'execution' config must be {kind}, got {type(value).__name__}"
            )
        if value < minimum or (exclusive and value == minimum):
            bound = f"greater than {minimum}" if exclusive else f"at least {minimum}"
            raise ExecutionConfigurationError(
                f"Field '{field}' in 'execution' config must be {bound}, got {value}"
            )

    if "log_completion_markers" in execution_config:
        markers = execution_config["log_completion_markers"]
        if (
            not isinstance(markers, list)
            or not markers
            or not all(isinstance(m, str) and m for m in markers)
        ):
            raise ExecutionConfigurationError(
                "Field 'log_completion_markers' in 'execution' config must be a non-empty list "
                "of non-empty strings"
            )

    ttl = execution_config.get("session_idle_ttl_seconds")
    if ttl is not None and (isinstance(ttl, bool) or not isinstance(ttl, _NUMBER) or ttl <= 0):
        raise ExecutionConfigurationError(
            "Field 'session_idle_ttl_seconds' in 'execution' config must be a positive number or null"
        )


def build_execution_policy(config: dict[str, Any]) -> ExecutionPolicy:
    """
    Build the `ExecutionPolicy` from a validated configuration.

    Args:
        config (dict[str, Any]): The full, validated configuration.

    Returns:
        ExecutionPolicy: Policy with configured values, defaults elsewhere.
    """
    execution_config = config.get("execution", {})
    overrides = {k: execution_config[k] for k in _NUMERIC_FIELDS if k in execution_config}
    policy = ExecutionPolicy(**overrides)
    _LOGGER.debug(f"[config:build_execution_policy] Execution policy: {policy}")
    return policy


def get_log_completion_markers(config: dict[str, Any]) -> tuple[str, ...]:
    """Return the configured log completion markers, or the defaults."""
    markers = config.get("execution", {}).get("log_completion_markers")
    return tuple(markers) if markers else DEFAULT_COMPLETION_MARKERS


def get_session_idle_ttl(config: dict[str, Any]) -> float | None:
    """Return the configured session idle TTL in seconds, or None if eviction is disabled."""
    return config.get("execution", {}).get("session_idle_ttl_seconds")
