"""
Tests for xdp_mcp.client._xdp_client.
"""

from unittest.mock import AsyncMock, MagicMock, patch

import aiohttp
import pytest

from xdp_mcp._exceptions import (
    AuthenticationError,
    AuthorizationError,
    QueryError,
    RateLimitError,
    XdpApiError,
    XdpConnectionError,
)
from xdp_mcp.client import XdpApiClient, quote_literal, validate_identifier


def _mock_session(status=200, json_body=None, text=""):
    response = MagicMock()
    response.status = status
    response.json = AsyncMock(return_value=json_body)
    response.text = AsyncMock(return_value=text)
    request_ctx = MagicMock()
    request_ctx.__aenter__ = AsyncMock(return_value=response)
    request_ctx.__aexit__ = AsyncMock(return_value=False)
    session = MagicMock()
    session.request = MagicMock(return_value=request_ctx)
    session.close = AsyncMock()
    return session


@pytest.fixture
def client():
    return XdpApiClient("https://xdp.example.com/api/", "AKIA1234", "s3cret", timeout_seconds=5)


def test_validate_identifier():
    assert validate_identifier("hive_prod-1$", "catalog") == "hive_prod-1$"
    for bad in ["", "a.b", "x; DROP TABLE y", "name with space", None]:
        with pytest.raises(ValueError, match="catalog"):
            validate_identifier(bad, "catalog")


def test_quote_literal():
    assert quote_literal("o'brien") == "'o''brien'"


def test_redacted_config(client):
    assert client.redacted_config() == {
        "base_url": "https://xdp.example.com/api",
        "access_key": "AKIA***",
    }


@pytest.mark.asyncio
async def test_session_sends_auth_headers(client):
    session = _mock_session(json_body={"success": True, "data": {}})
    with patch("aiohttp.ClientSession", return_value=session) as session_cls:
        await client.list_datastores()
        await client.list_datastores()
    session_cls.assert_called_once()
    headers = session_cls.call_args.kwargs["headers"]
    assert headers["accessKey"] == "AKIA1234"
    assert headers["secretKey"] == "s3cret"


@pytest.mark.asyncio
async def test_list_datastores(client):
    body = {
        "success": True,
        "data": {
            "dataStores": [{"id": 1, "name": "pg"}, {"id": 2, "name": "s3"}],
            "meta": {"page": 0, "size": 20, "count": 2},
        },
    }
    session = _mock_session(json_body=body)
    with patch("aiohttp.ClientSession", return_value=session):
        result = await client.list_datastores(page=1, size=10, sort_by="name:desc")
    assert result["datastores"] == body["data"]["dataStores"]
    assert result["meta"] == {"page": 0, "size": 20, "count": 2}
    session.request.assert_called_once_with(
        "GET",
        "https://xdp.example.com/api/datastore",
        params={"page": 1, "size": 10, "sort_by": "name:desc"},
        json=None,
    )


@pytest.mark.asyncio
async def test_list_datastores_reports_api_failure(client):
    body = {"success": False, "message": "bad sort", "detailedMessage": "unknown field"}
    with patch("aiohttp.ClientSession", return_value=_mock_session(json_body=body)):
        with pytest.raises(XdpApiError, match="bad sort - unknown field"):
            await client.list_datastores()


@pytest.mark.parametrize(
    "status, error_type, text",
    [
        (401, AuthenticationError, "Authentication failed"),
        (403, AuthorizationError, "Access denied"),
        (404, XdpApiError, "Resource not found"),
        (429, RateLimitError, "Rate limit exceeded"),
        (500, XdpApiError, "HTTP 500: upstream exploded"),
    ],
)
@pytest.mark.asyncio
async def test_http_errors_are_mapped(client, status, error_type, text):
    session = _mock_session(status=status, text="upstream exploded")
    with patch("aiohttp.ClientSession", return_value=session):
        with pytest.raises(error_type, match=text) as exc_info:
            await client.list_datastores()
    assert exc_info.value.status == status


@pytest.mark.asyncio
async def test_connection_error_is_wrapped(client):
    session = _mock_session()
    session.request.side_effect = aiohttp.ClientConnectionError("refused")
    with patch("aiohttp.ClientSession", return_value=session):
        with pytest.raises(XdpConnectionError, match="Unable to connect"):
            await client.list_datastores()


@pytest.mark.asyncio
async def test_timeout_is_wrapped(client):
    session = _mock_session()
    session.request.side_effect = TimeoutError()
    with patch("aiohttp.ClientSession", return_value=session):
        with pytest.raises(XdpConnectionError, match="timeout"):
            await client.list_datastores()


@pytest.mark.asyncio
async def test_non_object_body_rejected(client):
    with patch("aiohttp.ClientSession", return_value=_mock_session(json_body=[1, 2])):
        with pytest.raises(XdpApiError, match="unexpected response body"):
            await client.list_dataplanes()


@pytest.mark.asyncio
async def test_execute_trino_query(client):
    body = {"status": "FINISHED", "result": {"columns": ["x"], "rows": [[1]]}}
    session = _mock_session(json_body=body)
    with patch("aiohttp.ClientSession", return_value=session):
        result = await client.execute_trino_query("dp1", "SELECT 1")
    assert result == body
    args, kwargs = session.request.call_args
    assert args == ("POST", "https://xdp.example.com/api/query/execute")
    assert kwargs["json"] == {"engine": "TRINO", "dataplane": "dp1", "query": "SELECT 1"}


@pytest.mark.parametrize(
    "body",
    [{"error": "syntax error"}, {"result": {"error": "syntax error"}}],
)
@pytest.mark.asyncio
async def test_execute_trino_query_error(client, body):
    with patch("aiohttp.ClientSession", return_value=_mock_session(json_body=body)):
        with pytest.raises(QueryError, match="Trino query error: syntax error"):
            await client.execute_trino_query("dp1", "SELEC 1")


@pytest.mark.asyncio
async def test_trino_helpers_build_queries(client):
    client.execute_trino_query = AsyncMock(return_value={"result": {}})

    await client.list_trino_catalogs("dp1")
    client.execute_trino_query.assert_awaited_with("dp1", "SHOW CATALOGS")

    await client.list_trino_tables("dp1", "hive", "sales")
    client.execute_trino_query.assert_awaited_with("dp1", "SHOW TABLES FROM hive.sales")

    await client.list_trino_tables("dp1", "hive")
    query = client.execute_trino_query.await_args.args[1]
    assert "FROM hive.information_schema.tables" in query

    await client.get_trino_table_columns("dp1", "hive", "sales", "orders")
    query = client.execute_trino_query.await_args.args[1]
    assert "FROM hive.information_schema.columns" in query
    assert "table_schema = 'sales' AND table_name = 'orders'" in query
    assert query.endswith("ORDER BY ordinal_position")


@pytest.mark.asyncio
async def test_trino_helpers_reject_bad_identifiers(client):
    client.execute_trino_query = AsyncMock()
    with pytest.raises(ValueError, match="schema"):
        await client.list_trino_tables("dp1", "hive", "sales; DROP")
    with pytest.raises(ValueError, match="table"):
        await client.get_trino_table_columns("dp1", "hive", "sales", "o'rders")
    client.execute_trino_query.assert_not_called()


@pytest.mark.asyncio
async def test_test_connection(client):
    client.list_datastores = AsyncMock(return_value={"datastores": [], "meta": {}})
    assert await client.test_connection() is True
    client.list_datastores.assert_awaited_once_with(page=0, size=1)

    client.list_datastores = AsyncMock(side_effect=XdpConnectionError("down"))
    assert await client.test_connection() is False


@pytest.mark.asyncio
async def test_close_is_idempotent(client):
    session = _mock_session(json_body={"success": True, "data": {}})
    with patch("aiohttp.ClientSession", return_value=session):
        await client.list_datastores()
    await client.close()
    await client.close()
    session.close.assert_awaited_once()
