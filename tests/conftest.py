"""Shared test fixtures and helpers for the XDP MCP tests."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from xdp_mcp.execution import SubmissionResult


class MockRequestContext:
    """Mock MCP request context for testing."""

    def __init__(self, lifespan_context):
        self.lifespan_context = lifespan_context


class MockContext:
    """Mock MCP context for testing."""

    def __init__(self, lifespan_context):
        self.request_context = MockRequestContext(lifespan_context)


class FakeClock:
    """Controllable monotonic clock."""

    def __init__(self, start=1000.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture
def make_context():
    """Build a MockContext around a lifespan context dict."""
    return MockContext


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def fake_sleep():
    """Async sleep replacement that records requested delays without waiting."""
    return AsyncMock(return_value=None)


@pytest.fixture
def gateway():
    """Job submission gateway stub that succeeds with run id 'r1' unless reconfigured."""
    stub = MagicMock()
    stub.submit_job = AsyncMock(
        return_value=SubmissionResult(success=True, run_id="r1", status="STARTED")
    )
    return stub
