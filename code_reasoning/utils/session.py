"""Per-client session registry.

Each MCP client session owns one reasoning chain. The registry maps client
session ids to that state behind a single re-entrant lock and drops chains
that have gone idle.
"""

from __future__ import annotations

import threading
from collections.abc import Generator
from contextlib import contextmanager
from datetime import datetime, timedelta
from typing import Generic, Protocol, TypeVar


class Timestamped(Protocol):
    updated_at: datetime


S = TypeVar("S", bound=Timestamped)


class SessionNotFoundError(Exception):
    """No chain is registered under the given client session id."""

    def __init__(self, session_id: str) -> None:
        self.session_id = session_id
        super().__init__(f"Session not found: {session_id}")


class SessionManager(Generic[S]):
    """Lock-guarded mapping of client session id to chain state.

    Subclasses create state with ``_register_session`` and read or mutate it
    inside ``with self.session(session_id) as state:`` so a whole submission
    runs under the lock.
    """

    def __init__(self) -> None:
        self._sessions: dict[str, S] = {}
        self._lock = threading.RLock()

    def _get_session(self, session_id: str) -> S:
        """Look up a chain; the caller holds the lock.

        Raises:
            SessionNotFoundError: If nothing is registered under session_id.

        """
        try:
            return self._sessions[session_id]
        except KeyError:
            raise SessionNotFoundError(session_id) from None

    @contextmanager
    def session(self, session_id: str) -> Generator[S, None, None]:
        """Hold the lock for the duration of the block and yield the chain."""
        with self._lock:
            yield self._get_session(session_id)

    def session_exists(self, session_id: str) -> bool:
        with self._lock:
            return session_id in self._sessions

    def session_count(self) -> int:
        with self._lock:
            return len(self._sessions)

    def session_ids(self) -> list[str]:
        """Copy of the registered ids, safe to iterate without the lock."""
        with self._lock:
            return list(self._sessions)

    def _register_session(self, session_id: str, state: S) -> None:
        with self._lock:
            self._sessions[session_id] = state

    def _remove_session(self, session_id: str) -> S | None:
        """Drop a chain, returning it, or None if it was not registered."""
        with self._lock:
            return self._sessions.pop(session_id, None)

    def cleanup_stale(self, max_age: timedelta, *, now: datetime | None = None) -> list[str]:
        """Drop chains whose last submission is older than max_age.

        Args:
            max_age: Idle time after which a chain is dropped.
            now: Reference time, defaults to the current local time.

        Returns:
            Ids of the dropped chains.

        """
        cutoff = (now or datetime.now()) - max_age
        with self._lock:
            stale = [sid for sid, state in self._sessions.items() if state.updated_at < cutoff]
            for session_id in stale:
                del self._sessions[session_id]
        return stale
