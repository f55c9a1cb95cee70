"""
Async client for the XDP control-plane API.

Authenticates with an access key / secret key header pair and exposes the operations behind the
data store and Trino tools. HTTP and network failures are translated into the `XdpApiError`
hierarchy so that callers never depend on aiohttp exception types.
"""

import logging
import re
from typing import Any

import aiohttp

from xdp_mcp._exceptions import (
    AuthenticationError,
    AuthorizationError,
    QueryError,
    RateLimitError,
    XdpApiError,
    XdpConnectionError,
)

_LOGGER = logging.getLogger(__name__)

_IDENTIFIER_RE = re.compile(r"^[A-Za-z0-9_$-]+$")


def validate_identifier(value: str, kind: str) -> str:
    """
    Check that a catalog, schema or table name is a plain SQL identifier.

    Raises:
        ValueError: If `value` contains anything other than letters, digits, '_', '$' or '-'.
    """
    if not isinstance(value, str) or not _IDENTIFIER_RE.match(value):
        raise ValueError(
            f"Invalid {kind} name {value!r}: only letters, digits, '_', '$' and '-' are allowed"
        )
    return value


def quote_literal(value: str) -> str:
    """Quote `value` as a SQL string literal."""
    return "'" + value.replace("'", "''") + "'"


def _error_for_status(status: int, detail: str) -> XdpApiError:
    if status == 401:
        return AuthenticationError(
            "Authentication failed. Please check your access key and secret key.", status
        )
    if status == 403:
        return AuthorizationError(
            "Access denied. You may not have permission to access this resource.", status
        )
    if status == 404:
        return XdpApiError("Resource not found. The API endpoint may not exist.", status)
    if status == 429:
        return RateLimitError(
            "Rate limit exceeded. Please wait before making more requests.", status
        )
    return XdpApiError(f"XDP API error: HTTP {status}: {detail[:200]}", status)


class XdpApiClient:
    """
    Client for the XDP control-plane REST API.

    The underlying `aiohttp.ClientSession` is created on first use and released by `close()`.

    Example:
        >>> client = XdpApiClient("https://xdp.example.com/api", "AKIA...", "secret")
        >>> page = await client.list_datastores(size=5)
        >>> await client.close()
    """

    def __init__(
        self,
        base_url: str,
        access_key: str,
        secret_key: str,
        timeout_seconds: float = 30,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._access_key = access_key
        self._secret_key = secret_key
        self._timeout = aiohttp.ClientTimeout(total=timeout_seconds)
        self._session: aiohttp.ClientSession | None = None

    @property
    def base_url(self) -> str:
        return self._base_url

    def redacted_config(self) -> dict[str, str]:
        """Return the client configuration without sensitive data."""
        return {"base_url": self._base_url, "access_key": f"{self._access_key[:4]}***"}

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None:
            self._session = aiohttp.ClientSession(
                headers={
                    "Content-Type": "application/json",
                    "accessKey": self._access_key,
                    "secretKey": self._secret_key,
                },
                timeout=self._timeout,
            )
        return self._session

    async def close(self) -> None:
        """Close the underlying HTTP session. Safe to call more than once."""
        if self._session is not None:
            session, self._session = self._session, None
            await session.close()
            _LOGGER.debug("[XdpApiClient:close] HTTP session closed")

    async def _request(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
        json_body: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        url = f"{self._base_url}{path}"
        _LOGGER.debug(f"[XdpApiClient:_request] {method} {url}")
        try:
            async with self._get_session().request(
                method, url, params=params, json=json_body
            ) as response:
                if response.status >= 400:
                    detail = await response.text()
                    _LOGGER.warning(
                        f"[XdpApiClient:_request] {method} {url} returned HTTP {response.status}"
                    )
                    raise _error_for_status(response.status, detail)
                body = await response.json(content_type=None)
        except XdpApiError:
            raise
        except TimeoutError as e:
            _LOGGER.warning(f"[XdpApiClient:_request] {method} {url} timed out")
            raise XdpConnectionError(
                "Request timeout. The XDP API is taking too long to respond."
            ) from e
        except aiohttp.ClientError as e:
            _LOGGER.warning(f"[XdpApiClient:_request] {method} {url} failed: {e}")
            raise XdpConnectionError(
                f"Unable to connect to XDP API. Please check your network connection. ({e})"
            ) from e

        if not isinstance(body, dict):
            raise XdpApiError(f"XDP API error: unexpected response body from {path}")
        return body

    async def list_datastores(
        self, page: int = 0, size: int = 20, sort_by: str = "updatedAt:asc"
    ) -> dict[str, Any]:
        """
        List data stores.

        Returns:
            dict[str, Any]: `{"datastores": list, "meta": dict}` where `meta` is the API's raw
                page metadata.

        Raises:
            XdpApiError: If the API reports failure or the request fails.
        """
        body = await self._request(
            "GET", "/datastore", params={"page": page, "size": size, "sort_by": sort_by}
        )
        if not body.get("success"):
            message = body.get("message") or "request failed"
            detail = body.get("detailedMessage")
            raise XdpApiError(
                f"XDP API error: {message}" + (f" - {detail}" if detail else "")
            )
        data = body.get("data") or {}
        datastores = data.get("dataStores") or []
        _LOGGER.info(f"[XdpApiClient:list_datastores] Fetched {len(datastores)} datastore(s)")
        return {"datastores": datastores, "meta": data.get("meta") or {}}

    async def list_dataplanes(self) -> dict[str, Any]:
        """
        List dataplanes.

        Returns:
            dict[str, Any]: `{"dataplanes": list, "meta": dict}`.
        """
        body = await self._request("GET", "/dataplane")
        dataplanes = body.get("dataplanes") or []
        _LOGGER.info(f"[XdpApiClient:list_dataplanes] Fetched {len(dataplanes)} dataplane(s)")
        return {"dataplanes": dataplanes, "meta": body.get("meta") or {}}

    async def execute_trino_query(self, dataplane: str, query: str) -> dict[str, Any]:
        """
        Execute a SQL query with the Trino engine on a dataplane.

        Returns:
            dict[str, Any]: The raw query response.

        Raises:
            QueryError: If the response carries an error.
            XdpApiError: If the request fails.
        """
        _LOGGER.info(
            f"[XdpApiClient:execute_trino_query] Executing Trino query on dataplane "
            f"'{dataplane}': {query[:100]}"
        )
        body = await self._request(
            "POST",
            "/query/execute",
            json_body={"engine": "TRINO", "dataplane": dataplane, "query": query},
        )
        result = body.get("result")
        error = body.get("error") or (result.get("error") if isinstance(result, dict) else None)
        if error:
            raise QueryError(f"Trino query error: {error}")
        _LOGGER.debug(
            f"[XdpApiClient:execute_trino_query] Query finished with status {body.get('status')}"
        )
        return body

    async def list_trino_catalogs(self, dataplane: str) -> dict[str, Any]:
        return await self.execute_trino_query(dataplane, "SHOW CATALOGS")

    async def list_trino_tables(
        self, dataplane: str, catalog: str, schema: str | None = None
    ) -> dict[str, Any]:
        """List tables in `catalog.schema`, or every table of the catalog when no schema is given."""
        validate_identifier(catalog, "catalog")
        if schema:
            validate_identifier(schema, "schema")
            query = f"SHOW TABLES FROM {catalog}.{schema}"
        else:
            query = (
                "SELECT table_schema, table_name, table_type "
                f"FROM {catalog}.information_schema.tables"
            )
        return await self.execute_trino_query(dataplane, query)

    async def get_trino_table_columns(
        self, dataplane: str, catalog: str, schema: str, table: str
    ) -> dict[str, Any]:
        """Describe the columns of `catalog.schema.table`."""
        validate_identifier(catalog, "catalog")
        validate_identifier(schema, "schema")
        validate_identifier(table, "table")
        query = (
            "SELECT column_name, data_type, is_nullable, column_default, ordinal_position "
            f"FROM {catalog}.information_schema.columns "
            f"WHERE table_schema = {quote_literal(schema)} AND table_name = {quote_literal(table)} "
            "ORDER BY ordinal_position"
        )
        return await self.execute_trino_query(dataplane, query)

    async def test_connection(self) -> bool:
        """Return True if a minimal data store listing succeeds. Never raises."""
        try:
            await self.list_datastores(page=0, size=1)
            return True
        except Exception as e:
            _LOGGER.warning(f"[XdpApiClient:test_connection] Connection test failed: {e}")
            return False
