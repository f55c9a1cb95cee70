"""
In-memory store of execution sessions.

The store owns every `ExecutionSession` in the process. Sessions are created lazily on first
access and live until the store is closed, or until they have been idle for longer than the
optional idle TTL. A session whose lock is held is never evicted.
"""

import logging
import time
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager

from xdp_mcp._exceptions import SessionStoreError

from ._session import ExecutionSession

_LOGGER = logging.getLogger(__name__)


class ExecutionSessionStore:
    """
    Coroutine-safe owner of per-session execution state.

    Access to a session goes through `session()`, which yields the session with its lock held so
    that the caller's check-then-mutate sequence is atomic per key. Different keys never block
    each other.

    Example:
        >>> store = ExecutionSessionStore()
        >>> async with store.session("s1") as session:
        ...     session.attempt_count += 1
        >>> await store.close()
    """

    def __init__(
        self,
        idle_ttl_seconds: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """
        Initialize an empty store.

        Args:
            idle_ttl_seconds (float | None): Evict sessions not touched for this long. None disables eviction.
            clock (Callable[[], float]): Monotonic clock used for idle tracking.
        """
        self._sessions: dict[str, ExecutionSession] = {}
        self._idle_ttl_seconds = idle_ttl_seconds
        self._clock = clock
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def __len__(self) -> int:
        return len(self._sessions)

    def _check_open(self) -> None:
        if self._closed:
            raise SessionStoreError("Execution session store is closed")

    def _get_or_create(self, session_key: str) -> ExecutionSession:
        self._check_open()
        now = self._clock()
        if self._idle_ttl_seconds is not None:
            self._evict_idle(now)

        session = self._sessions.get(session_key)
        if session is None:
            _LOGGER.debug(
                f"[ExecutionSessionStore:session] Creating execution session '{session_key}'"
            )
            session = ExecutionSession(session_key=session_key)
            self._sessions[session_key] = session
        session.last_touched_at = now
        return session

    @asynccontextmanager
    async def session(self, session_key: str) -> AsyncIterator[ExecutionSession]:
        """
        Yield the session for `session_key` with its lock held, creating it if needed.

        Raises:
            SessionStoreError: If the store has been closed.
        """
        while True:
            session = self._get_or_create(session_key)
            await session.lock.acquire()
            # close() may have run while we waited for the lock
            if self._closed:
                session.lock.release()
                self._check_open()
            # the session may have been evicted while the lock changed hands
            if self._sessions.get(session_key) is session:
                break
            session.lock.release()
        try:
            yield session
            session.last_touched_at = self._clock()
        finally:
            session.lock.release()

    def get(self, session_key: str) -> ExecutionSession | None:
        """
        Return the session for `session_key` without creating or locking it.

        Intended for inspection and diagnostics; callers must not mutate the returned object.

        Raises:
            SessionStoreError: If the store has been closed.
        """
        self._check_open()
        return self._sessions.get(session_key)

    def _evict_idle(self, now: float) -> int:
        assert self._idle_ttl_seconds is not None
        expired = [
            key
            for key, session in self._sessions.items()
            if now - session.last_touched_at > self._idle_ttl_seconds
            and not session.lock.locked()
        ]
        for key in expired:
            del self._sessions[key]
        if expired:
            _LOGGER.info(
                f"[ExecutionSessionStore:evict_idle] Evicted {len(expired)} idle execution session(s)"
            )
        return len(expired)

    def evict_idle(self) -> int:
        """
        Evict idle sessions now.

        Returns:
            int: Number of sessions evicted. Always 0 when no idle TTL is configured.

        Raises:
            SessionStoreError: If the store has been closed.
        """
        self._check_open()
        if self._idle_ttl_seconds is None:
            return 0
        return self._evict_idle(self._clock())

    async def close(self) -> None:
        """
        Close the store and drop all sessions. Further use raises `SessionStoreError`.

        Closing an already closed store is a no-op.
        """
        if self._closed:
            return
        self._closed = True
        count = len(self._sessions)
        self._sessions.clear()
        _LOGGER.info(
            f"[ExecutionSessionStore:close] Execution session store closed ({count} session(s) dropped)"
        )
