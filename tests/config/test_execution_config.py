"""
Tests for xdp_mcp.config._execution.
"""

import pytest

from xdp_mcp.config import (
    ExecutionConfigurationError,
    build_execution_policy,
    get_log_completion_markers,
    get_session_idle_ttl,
    validate_execution_config,
)
from xdp_mcp.execution import DEFAULT_COMPLETION_MARKERS, ExecutionPolicy


def test_valid_execution_config():
    validate_execution_config(
        {
            "max_attempts": 5,
            "min_cooldown_seconds": 0,
            "settle_delay_seconds": 1.5,
            "log_collection_timeout_seconds": 30,
            "max_log_chars": 1000,
            "log_completion_markers": ["DONE"],
            "session_idle_ttl_seconds": None,
        }
    )


@pytest.mark.parametrize(
    "section, match",
    [
        ([], "must be a dictionary"),
        ({"retries": 3}, "Unknown field"),
        ({"max_attempts": 0}, "at least 1"),
        ({"max_attempts": 2.5}, "an integer"),
        ({"max_attempts": True}, "an integer"),
        ({"min_cooldown_seconds": -1}, "at least 0"),
        ({"min_cooldown_seconds": "30"}, "a number"),
        ({"log_collection_timeout_seconds": 0}, "greater than 0"),
        ({"log_completion_markers": []}, "non-empty list"),
        ({"log_completion_markers": ["ok", ""]}, "non-empty list"),
        ({"session_idle_ttl_seconds": 0}, "positive number or null"),
    ],
)
def test_invalid_execution_config(section, match):
    with pytest.raises(ExecutionConfigurationError, match=match):
        validate_execution_config(section)


def test_build_execution_policy():
    assert build_execution_policy({}) == ExecutionPolicy()
    policy = build_execution_policy(
        {"execution": {"max_attempts": 5, "min_cooldown_seconds": 10, "session_idle_ttl_seconds": 60}}
    )
    assert policy.max_attempts == 5
    assert policy.min_cooldown_seconds == 10
    assert policy.settle_delay_seconds == ExecutionPolicy().settle_delay_seconds


def test_log_completion_markers():
    assert get_log_completion_markers({}) == DEFAULT_COMPLETION_MARKERS
    assert get_log_completion_markers({"execution": {"log_completion_markers": ["EOF"]}}) == ("EOF",)


def test_session_idle_ttl():
    assert get_session_idle_ttl({}) is None
    assert get_session_idle_ttl({"execution": {"session_idle_ttl_seconds": 3600}}) == 3600
