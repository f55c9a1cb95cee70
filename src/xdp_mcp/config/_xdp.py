"""
Configuration handling for the XDP control-plane API and the job runner service.

This module validates the `xdp` and `runner` configuration sections and resolves them into
concrete connection settings, merging file values with environment variables and defaults.

1. **XDP API** (`xdp`):
   - Base URL and credentials (access key / secret key) for the XDP control plane
   - Validated by `validate_xdp_config()`, resolved by `resolve_xdp_settings()`
   - Redacted by `redact_xdp_config()`

2. **Job runner** (`runner`):
   - Base URL of the service that accepts ad-hoc job runs and streams their logs
   - Validated by `validate_runner_config()`, resolved by `resolve_runner_settings()`

Credential precedence (highest first):
    1. Literal value in the config file (`access_key`, `secret_key`)
    2. Environment variable named by the config file (`access_key_env_var`, `secret_key_env_var`)
    3. The default environment variable (`XDP_ACCESS_KEY`, `XDP_SECRET_KEY`)

All validation errors raise `XdpConfigurationError` with descriptive messages.
"""

__all__ = [
    "DEFAULT_XDP_BASE_URL",
    "DEFAULT_RUNNER_BASE_URL",
    "validate_xdp_config",
    "validate_runner_config",
    "redact_xdp_config",
    "resolve_xdp_settings",
    "resolve_runner_settings",
]

import logging
import os
from typing import Any

from .errors import XdpConfigurationError

_LOGGER = logging.getLogger(__name__)

DEFAULT_XDP_BASE_URL = "https://demo.xdp-playground.acceldata.tech/xdp-cp-service/api"
"""str: XDP control-plane API base URL used when neither the config file nor XDP_BASE_URL set one."""

DEFAULT_RUNNER_BASE_URL = "http://localhost:5173"
"""str: Job runner base URL used when neither the config file nor BOLT_API_URL set one."""

_ALLOWED_XDP_FIELDS: dict[str, type | tuple[type, ...]] = {
    "base_url": str,
    "access_key": str,
    "access_key_env_var": str,
    "secret_key": str,
    "secret_key_env_var": str,
    "timeout_seconds": (int, float),
}
"""Allowed `xdp` fields and their expected types."""

_ALLOWED_RUNNER_FIELDS: dict[str, type | tuple[type, ...]] = {
    "base_url": str,
    "submit_timeout_seconds": (int, float),
    "log_tail_lines": int,
}
"""Allowed `runner` fields and their expected types."""

_MUTUALLY_EXCLUSIVE: list[tuple[str, str]] = [
    ("access_key", "access_key_env_var"),
    ("secret_key", "secret_key_env_var"),
]


def _check_fields(
    section: str,
    config: Any,
    allowed: dict[str, type | tuple[type, ...]],
) -> None:
    if not isinstance(config, dict):
        raise XdpConfigurationError(
            f"'{section}' must be a dictionary, got {type(config).__name__}"
        )

    for field, value in config.items():
        if field not in allowed:
            raise XdpConfigurationError(f"Unknown field '{field}' in '{section}' config")
        expected = allowed[field]
        # bool is an int subclass; never accept it for numeric fields
        if isinstance(value, bool) or not isinstance(value, expected):
            expected_name = (
                " | ".join(t.__name__ for t in expected)
                if isinstance(expected, tuple)
                else expected.__name__
            )
            raise XdpConfigurationError(
                f"Field '{field}' in '{section}' config must be of type {expected_name}, "
                f"got {type(value).__name__}"
            )


def validate_xdp_config(xdp_config: Any) -> None:
    """
    Validate the `xdp` configuration section.

    Args:
        xdp_config (Any): The value of the `xdp` key.

    Raises:
        XdpConfigurationError: If the section is not a dict, contains unknown fields, has fields
            of the wrong type, sets both a literal secret and its `*_env_var` counterpart, or has a
            non-positive timeout.
    """
    _check_fields("xdp", xdp_config, _ALLOWED_XDP_FIELDS)

    for literal, env_var in _MUTUALLY_EXCLUSIVE:
        if literal in xdp_config and env_var in xdp_config:
            raise XdpConfigurationError(
                f"'{literal}' and '{env_var}' are mutually exclusive in 'xdp' config"
            )

    if "timeout_seconds" in xdp_config and xdp_config["timeout_seconds"] <= 0:
        raise XdpConfigurationError("'xdp.timeout_seconds' must be positive")

    if "base_url" in xdp_config and not xdp_config["base_url"].strip():
        raise XdpConfigurationError("'xdp.base_url' must not be empty")


def validate_runner_config(runner_config: Any) -> None:
    """
    Validate the `runner` configuration section.

    Args:
        runner_config (Any): The value of the `runner` key.

    Raises:
        XdpConfigurationError: If the section is invalid.
    """
    _check_fields("runner", runner_config, _ALLOWED_RUNNER_FIELDS)

    if (
        "submit_timeout_seconds" in runner_config
        and runner_config["submit_timeout_seconds"] <= 0
    ):
        raise XdpConfigurationError("'runner.submit_timeout_seconds' must be positive")

    if "log_tail_lines" in runner_config and runner_config["log_tail_lines"] < 1:
        raise XdpConfigurationError("'runner.log_tail_lines' must be at least 1")

    if "base_url" in runner_config and not runner_config["base_url"].strip():
        raise XdpConfigurationError("'runner.base_url' must not be empty")


def redact_xdp_config(xdp_config: dict[str, Any]) -> dict[str, Any]:
    """
    Return a copy of an `xdp` section (or resolved settings) safe for logging.

    The secret key is replaced with "[REDACTED]" and the access key is truncated to its
    first four characters. The original dictionary is not modified.

    Example:
        >>> redact_xdp_config({"access_key": "AKIA123456", "secret_key": "s3cr3t"})
        {'access_key': 'AKIA...', 'secret_key': '[REDACTED]'}
    """
    redacted = dict(xdp_config)
    if redacted.get("secret_key"):
        redacted["secret_key"] = "[REDACTED]"
    access_key = redacted.get("access_key")
    if access_key:
        redacted["access_key"] = f"{access_key[:4]}..."
    return redacted


def _resolve_secret(xdp_config: dict[str, Any], field: str, default_env_var: str) -> str | None:
    if field in xdp_config:
        return xdp_config[field]

    env_var_field = f"{field}_env_var"
    if env_var_field in xdp_config:
        env_var = xdp_config[env_var_field]
        value = os.environ.get(env_var)
        if value is None:
            _LOGGER.warning(
                f"[config:resolve_xdp_settings] Environment variable '{env_var}' named by "
                f"'xdp.{env_var_field}' is not set"
            )
        return value

    return os.environ.get(default_env_var)


def resolve_xdp_settings(config: dict[str, Any]) -> dict[str, Any]:
    """
    Resolve the effective XDP API connection settings.

    Args:
        config (dict[str, Any]): The full, validated configuration.

    Returns:
        dict[str, Any]: A dict with keys `base_url`, `access_key`, `secret_key` and `timeout_seconds`.

    Raises:
        XdpConfigurationError: If no access key or secret key can be found.
    """
    xdp_config = config.get("xdp", {})

    base_url = xdp_config.get("base_url") or os.environ.get(
        "XDP_BASE_URL", DEFAULT_XDP_BASE_URL
    )
    access_key = _resolve_secret(xdp_config, "access_key", "XDP_ACCESS_KEY")
    secret_key = _resolve_secret(xdp_config, "secret_key", "XDP_SECRET_KEY")

    if not access_key or not secret_key:
        _LOGGER.error(
            "[config:resolve_xdp_settings] XDP credentials are missing: set XDP_ACCESS_KEY and "
            "XDP_SECRET_KEY or configure 'xdp.access_key' / 'xdp.secret_key'"
        )
        raise XdpConfigurationError(
            "Missing XDP credentials: set XDP_ACCESS_KEY and XDP_SECRET_KEY environment variables "
            "or configure them in the 'xdp' section"
        )

    settings = {
        "base_url": base_url.rstrip("/"),
        "access_key": access_key,
        "secret_key": secret_key,
        "timeout_seconds": xdp_config.get("timeout_seconds", 30),
    }
    _LOGGER.debug(
        f"[config:resolve_xdp_settings] Resolved XDP settings: {redact_xdp_config(settings)}"
    )
    return settings


def resolve_runner_settings(config: dict[str, Any]) -> dict[str, Any]:
    """
    Resolve the effective job runner settings.

    Args:
        config (dict[str, Any]): The full, validated configuration.

    Returns:
        dict[str, Any]: A dict with keys `base_url`, `submit_timeout_seconds` and `log_tail_lines`.
    """
    runner_config = config.get("runner", {})
    base_url = runner_config.get("base_url") or os.environ.get(
        "BOLT_API_URL", DEFAULT_RUNNER_BASE_URL
    )
    settings = {
        "base_url": base_url.rstrip("/"),
        "submit_timeout_seconds": runner_config.get("submit_timeout_seconds", 60),
        "log_tail_lines": runner_config.get("log_tail_lines", 100),
    }
    _LOGGER.debug(f"[config:resolve_runner_settings] Resolved runner settings: {settings}")
    return settings
