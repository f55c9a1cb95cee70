"""
Async client for the job runner service.

The job runner accepts ad-hoc runs (`POST /api/adhoc-run`) and streams the logs of a run as
server-sent events (`GET /api/log-stream`). `JobRunnerClient` is the job submission gateway of the
execution governor, and its `stream_logs` method is the log source of the `LogStreamCollector`.
"""

import logging
from collections.abc import AsyncIterator
from typing import Any

import aiohttp

from xdp_mcp._exceptions import XdpApiError
from xdp_mcp.execution import JobSpec, SubmissionResult

_LOGGER = logging.getLogger(__name__)

_SSE_IGNORED_FIELDS = ("event:", "id:", "retry:")


def parse_sse_line(line: str) -> str | None:
    """
    Extract the payload of one line of an event stream.

    Returns the text after `data:` for data lines, None for blank lines, comments and other SSE
    fields, and the line itself for anything that is not SSE framing.

    Example:
        >>> parse_sse_line("data: Stage main COMPLETED")
        'Stage main COMPLETED'
        >>> parse_sse_line("event: log") is None
        True
    """
    line = line.rstrip("\r\n")
    if not line or line.startswith(":") or line.startswith(_SSE_IGNORED_FIELDS):
        return None
    if line.startswith("data:"):
        payload = line[len("data:") :]
        return payload[1:] if payload.startswith(" ") else payload
    return line


def _extract_error(body: Any, default: str) -> str:
    if not isinstance(body, dict):
        return default
    data = body.get("data")
    if isinstance(data, dict) and data.get("message"):
        return str(data["message"])
    if body.get("message"):
        return str(body["message"])
    return default


def _extract_run_id(body: Any) -> str | None:
    if not isinstance(body, dict):
        return None
    data = body.get("data")
    inner = data.get("data") if isinstance(data, dict) else None
    run_id = inner.get("id") if isinstance(inner, dict) else None
    return None if run_id is None else str(run_id)


class JobRunnerClient:
    """Submits ad-hoc runs to the job runner and streams their logs."""

    def __init__(
        self,
        base_url: str,
        submit_timeout_seconds: float = 60,
        log_tail_lines: int = 100,
    ) -> None:
        """
        Args:
            base_url (str): Job runner base URL, e.g. "http://localhost:5173".
            submit_timeout_seconds (float): Total timeout of a submission request.
            log_tail_lines (int): Number of trailing log lines requested when streaming logs.
        """
        self._base_url = base_url.rstrip("/")
        self._submit_timeout = aiohttp.ClientTimeout(total=submit_timeout_seconds)
        # Streams are bounded by the log collector, not by the HTTP client
        self._stream_timeout = aiohttp.ClientTimeout(total=None, sock_connect=10)
        self._log_tail_lines = log_tail_lines
        self._session: aiohttp.ClientSession | None = None

    @property
    def base_url(self) -> str:
        return self._base_url

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None:
            self._session = aiohttp.ClientSession()
        return self._session

    async def close(self) -> None:
        """Close the underlying HTTP session. Safe to call more than once."""
        if self._session is not None:
            session, self._session = self._session, None
            await session.close()
            _LOGGER.debug("[JobRunnerClient:close] HTTP session closed")

    async def submit_job(self, job_spec: JobSpec) -> SubmissionResult:
        """
        Submit an ad-hoc run.

        Every failure (HTTP error, connection error, timeout, or a response reporting failure) is
        returned as `SubmissionResult(success=False, ...)`; this method does not raise for them.

        Args:
            job_spec (JobSpec): The run to submit.

        Returns:
            SubmissionResult: Success with the run id, or failure with an error message and the
                run id if the runner assigned one.
        """
        url = f"{self._base_url}/api/adhoc-run"
        _LOGGER.info(
            f"[JobRunnerClient:submit_job] Submitting ad-hoc run on dataplane '{job_spec.dataplane_id}'"
        )
        try:
            async with self._get_session().post(
                url,
                json=job_spec.to_payload(),
                headers={"Content-Type": "application/json"},
                timeout=self._submit_timeout,
            ) as response:
                body = await response.json(content_type=None)
                status = response.status
        except TimeoutError:
            _LOGGER.warning(f"[JobRunnerClient:submit_job] Submission to {url} timed out")
            return SubmissionResult(
                success=False, error="Request timeout. The job runner did not respond in time."
            )
        except (aiohttp.ClientError, ValueError) as e:
            _LOGGER.warning(f"[JobRunnerClient:submit_job] Submission to {url} failed: {e}")
            return SubmissionResult(success=False, error=f"{type(e).__name__}: {e}")

        run_id = _extract_run_id(body)
        if status >= 400:
            return SubmissionResult(
                success=False,
                run_id=run_id,
                error=_extract_error(body, f"Job runner returned HTTP {status}"),
            )

        data = body.get("data") if isinstance(body, dict) else None
        if not (isinstance(body, dict) and body.get("success")) or not (
            isinstance(data, dict) and data.get("success")
        ):
            return SubmissionResult(
                success=False, run_id=run_id, error=_extract_error(body, "Execution failed")
            )

        _LOGGER.info(f"[JobRunnerClient:submit_job] Ad-hoc run started with run_id={run_id}")
        return SubmissionResult(success=True, run_id=run_id, status="STARTED")

    async def stream_logs(
        self, run_id: str, dataplane_id: str | None = None
    ) -> AsyncIterator[str]:
        """
        Stream the logs of a run.

        Yields:
            str: The payload of each event-stream data line.

        Raises:
            XdpApiError: If the runner answers with an HTTP error.
            aiohttp.ClientError: On connection failures.
        """
        params: dict[str, str] = {"runId": run_id, "tailLines": str(self._log_tail_lines)}
        if dataplane_id is not None:
            params["dataplaneId"] = dataplane_id
        url = f"{self._base_url}/api/log-stream"
        _LOGGER.debug(f"[JobRunnerClient:stream_logs] Streaming logs for run '{run_id}'")

        async with self._get_session().get(
            url,
            params=params,
            headers={"Accept": "text/event-stream"},
            timeout=self._stream_timeout,
        ) as response:
            if response.status >= 400:
                raise XdpApiError(
                    f"Log stream for run '{run_id}' returned HTTP {response.status}",
                    response.status,
                )
            async for raw_line in response.content:
                payload = parse_sse_line(raw_line.decode("utf-8", errors="replace"))
                if payload is not None:
                    yield payload
