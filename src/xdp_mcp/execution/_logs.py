"""
Log collection for remote runs.

`LogStreamCollector` consumes a lazy stream of log chunks for a run until a completion
predicate matches, the stream ends, or a timeout expires. A timeout keeps whatever was
collected so far; any failure of the log source degrades to a placeholder text and is never
raised to the caller.
"""

import asyncio
import logging
from collections.abc import AsyncIterator, Callable, Iterable
from dataclasses import dataclass

_LOGGER = logging.getLogger(__name__)

DEFAULT_COMPLETION_MARKERS: tuple[str, ...] = ("[DONE]", "COMPLETED", "FINISHED")
"""Substrings that mark the end of a run's log stream."""

DEGRADED_LOGS_PLACEHOLDER = (
    "Logs are being generated. Check the job runner interface for real-time logs."
)
EMPTY_LOGS_PLACEHOLDER = "Execution started successfully. No log output has been received yet."

LogSource = Callable[[str, str | None], AsyncIterator[str]]
"""Callable returning an async iterator of log chunks for `(run_id, dataplane_id)`."""

CompletionPredicate = Callable[[str], bool]


def marker_predicate(markers: Iterable[str]) -> CompletionPredicate:
    """
    Build a completion predicate matching any of `markers` as a substring.

    Example:
        >>> done = marker_predicate(["[DONE]"])
        >>> done("data: [DONE]")
        True
    """
    markers = tuple(markers)

    def _matches(chunk: str) -> bool:
        return any(marker in chunk for marker in markers)

    return _matches


def truncate_logs(text: str, max_chars: int) -> tuple[str, bool]:
    """Truncate `text` to `max_chars`, appending a note. Returns the text and whether it was cut."""
    if len(text) <= max_chars:
        return text, False
    note = f"\n\n[... truncated, showing {max_chars:,} of {len(text):,} chars]"
    return text[:max_chars] + note, True


@dataclass(frozen=True)
class LogCollection:
    """
    Collected logs for one run.

    Attributes:
        text (str): Log text, or a placeholder if nothing usable was collected.
        completed (bool): The completion predicate matched.
        timed_out (bool): Collection stopped at the timeout; `text` holds partial logs.
        degraded (bool): The log source failed; `text` is a placeholder.
        truncated (bool): `text` was cut at the configured maximum length.
    """

    text: str
    completed: bool = False
    timed_out: bool = False
    degraded: bool = False
    truncated: bool = False


class LogStreamCollector:
    """Collects log text for a run from a streaming log source."""

    def __init__(
        self,
        source: LogSource,
        completion_predicate: CompletionPredicate | None = None,
        timeout_seconds: float = 60.0,
        max_chars: int = 80_000,
    ) -> None:
        """
        Args:
            source (LogSource): Produces log chunks for a run.
            completion_predicate (CompletionPredicate | None): Returns True for the chunk that ends
                the stream. Defaults to matching DEFAULT_COMPLETION_MARKERS.
            timeout_seconds (float): Default upper bound on a collection.
            max_chars (int): Maximum length of the returned text.
        """
        self._source = source
        self._completion_predicate = completion_predicate or marker_predicate(
            DEFAULT_COMPLETION_MARKERS
        )
        self._timeout_seconds = timeout_seconds
        self._max_chars = max_chars

    async def collect(
        self,
        run_id: str,
        dataplane_id: str | None = None,
        timeout_seconds: float | None = None,
    ) -> LogCollection:
        """
        Collect logs for `run_id`.

        Never raises for source failures: they produce a degraded result with a placeholder text.

        Args:
            run_id (str): Remote run identifier.
            dataplane_id (str | None): Dataplane the run executes on.
            timeout_seconds (float | None): Overrides the collector's default timeout.

        Returns:
            LogCollection: The collected text and how collection ended.
        """
        timeout = self._timeout_seconds if timeout_seconds is None else timeout_seconds
        chunks: list[str] = []
        completed = False

        async def _consume() -> None:
            nonlocal completed
            stream = self._source(run_id, dataplane_id)
            try:
                async for chunk in stream:
                    chunks.append(chunk)
                    if self._completion_predicate(chunk):
                        completed = True
                        return
            finally:
                aclose = getattr(stream, "aclose", None)
                if aclose is not None:
                    await aclose()

        timed_out = False
        try:
            await asyncio.wait_for(_consume(), timeout=timeout)
        except TimeoutError:
            timed_out = True
            _LOGGER.info(
                f"[LogStreamCollector:collect] Log collection for run '{run_id}' timed out after "
                f"{timeout}s with {len(chunks)} chunk(s) collected"
            )
        except Exception as e:
            _LOGGER.warning(
                f"[LogStreamCollector:collect] Could not collect logs for run '{run_id}': "
                f"{type(e).__name__}: {e}"
            )
            return LogCollection(text=DEGRADED_LOGS_PLACEHOLDER, degraded=True)

        text = "\n".join(chunks).strip()
        if not text:
            return LogCollection(
                text=EMPTY_LOGS_PLACEHOLDER, completed=completed, timed_out=timed_out
            )

        text, truncated = truncate_logs(text, self._max_chars)
        _LOGGER.debug(
            f"[LogStreamCollector:collect] Collected {len(chunks)} chunk(s) for run '{run_id}' "
            f"(completed={completed}, timed_out={timed_out}, truncated={truncated})"
        )
        return LogCollection(
            text=text, completed=completed, timed_out=timed_out, truncated=truncated
        )
