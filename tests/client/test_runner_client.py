"""
Tests for xdp_mcp.client._runner.
"""

from unittest.mock import AsyncMock, MagicMock, patch

import aiohttp
import pytest

from xdp_mcp._exceptions import XdpApiError
from xdp_mcp.client import JobRunnerClient, parse_sse_line
from xdp_mcp.execution import JobSpec


async def _aiter(items):
    for item in items:
        yield item


def _mock_session(method, status=200, json_body=None, lines=()):
    response = MagicMock()
    response.status = status
    response.json = AsyncMock(return_value=json_body)
    response.content = _aiter(lines)
    ctx = MagicMock()
    ctx.__aenter__ = AsyncMock(return_value=response)
    ctx.__aexit__ = AsyncMock(return_value=False)
    session = MagicMock()
    setattr(session, method, MagicMock(return_value=ctx))
    session.close = AsyncMock()
    return session


@pytest.fixture
def runner():
    return JobRunnerClient("http://runner:5173/", submit_timeout_seconds=60, log_tail_lines=50)


@pytest.mark.parametrize(
    "line, expected",
    [
        ("data: hello", "hello"),
        ("data:hello", "hello"),
        ("data:  two spaces", " two spaces"),
        ("data: [DONE]\r\n", "[DONE]"),
        ("", None),
        ("\n", None),
        (": keep-alive", None),
        ("event: log", None),
        ("id: 7", None),
        ("retry: 1000", None),
        ("plain text line", "plain text line"),
    ],
)
def test_parse_sse_line(line, expected):
    assert parse_sse_line(line) == expected


@pytest.mark.asyncio
async def test_submit_job_success(runner):
    body = {"success": True, "data": {"success": True, "data": {"id": 981}}}
    session = _mock_session("post", json_body=body)
    spec = JobSpec("42")
    with patch("aiohttp.ClientSession", return_value=session):
        result = await runner.submit_job(spec)
    assert result.success is True
    assert result.run_id == "981"
    assert result.status == "STARTED"
    args, kwargs = session.post.call_args
    assert args == ("http://runner:5173/api/adhoc-run",)
    assert kwargs["json"] == spec.to_payload()


@pytest.mark.asyncio
async def test_submit_job_reported_failure(runner):
    body = {"success": True, "data": {"success": False, "message": "quota exceeded"}}
    with patch("aiohttp.ClientSession", return_value=_mock_session("post", json_body=body)):
        result = await runner.submit_job(JobSpec("42"))
    assert result.success is False
    assert result.error == "quota exceeded"


@pytest.mark.asyncio
async def test_submit_job_failure_without_message(runner):
    with patch(
        "aiohttp.ClientSession",
        return_value=_mock_session("post", json_body={"success": False}),
    ):
        result = await runner.submit_job(JobSpec("42"))
    assert result.success is False
    assert result.error == "Execution failed"


@pytest.mark.asyncio
async def test_submit_job_http_error(runner):
    session = _mock_session("post", status=502, json_body={"message": "bad gateway"})
    with patch("aiohttp.ClientSession", return_value=session):
        result = await runner.submit_job(JobSpec("42"))
    assert result.success is False
    assert result.error == "bad gateway"


@pytest.mark.asyncio
async def test_submit_job_connection_error(runner):
    session = _mock_session("post")
    session.post.side_effect = aiohttp.ClientConnectionError("refused")
    with patch("aiohttp.ClientSession", return_value=session):
        result = await runner.submit_job(JobSpec("42"))
    assert result.success is False
    assert "refused" in result.error


@pytest.mark.asyncio
async def test_submit_job_timeout(runner):
    session = _mock_session("post")
    session.post.side_effect = TimeoutError()
    with patch("aiohttp.ClientSession", return_value=session):
        result = await runner.submit_job(JobSpec("42"))
    assert result.success is False
    assert "timeout" in result.error.lower()


@pytest.mark.asyncio
async def test_stream_logs(runner):
    lines = [b"event: log\n", b"data: starting\n", b"\n", b": ping\n", b"data: Stage main COMPLETED\n"]
    session = _mock_session("get", lines=lines)
    with patch("aiohttp.ClientSession", return_value=session):
        chunks = [chunk async for chunk in runner.stream_logs("981", "42")]
    assert chunks == ["starting", "Stage main COMPLETED"]
    kwargs = session.get.call_args.kwargs
    assert kwargs["params"] == {"runId": "981", "tailLines": "50", "dataplaneId": "42"}
    assert kwargs["headers"] == {"Accept": "text/event-stream"}


@pytest.mark.asyncio
async def test_stream_logs_http_error(runner):
    with patch("aiohttp.ClientSession", return_value=_mock_session("get", status=404)):
        with pytest.raises(XdpApiError, match="HTTP 404"):
            async for _ in runner.stream_logs("981"):
                pass


@pytest.mark.asyncio
async def test_close(runner):
    session = _mock_session("post", json_body={"success": False})
    with patch("aiohttp.ClientSession", return_value=session):
        await runner.submit_job(JobSpec("42"))
    await runner.close()
    await runner.close()
    session.close.assert_awaited_once()
    assert runner.base_url == "http://runner:5173"
