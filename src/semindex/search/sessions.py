"""Incremental search sessions addressed by opaque integer handles."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from semindex.errors import UnknownSessionError
from semindex.logger import get_logger

if TYPE_CHECKING:
    from collections.abc import Collection, Sequence

    from structlog.stdlib import BoundLogger

    from semindex.vectordb.protocols import SearchPage, VectorBackend


@dataclass
class SearchSession:
    """Backend cursor for one in-flight search."""

    handle: int
    cursor: Any
    completed: bool = False


class SessionManager:
    """Issue session handles and page through backend cursors.

    A session is released as soon as a page reports completion; paging it
    again raises :class:`UnknownSessionError`. Closing is always best effort.
    """

    def __init__(self, backend: VectorBackend, logger: BoundLogger | None = None) -> None:
        """Bind the manager to ``backend``."""
        self._backend = backend
        self._logger = logger if logger is not None else get_logger("sessions")
        self._next_handle = 0
        self._sessions: dict[int, SearchSession] = {}

    @property
    def next_handle(self) -> int:
        """Return the handle the next :meth:`begin` call will issue."""
        return self._next_handle

    def restore_counter(self, next_handle: int) -> None:
        """Move the handle counter forward to at least ``next_handle``."""
        self._next_handle = max(self._next_handle, next_handle)

    def begin(self, vector: Sequence[float], keys: Collection[int] | None) -> int:
        """Open a backend search and return its handle."""
        cursor = self._backend.begin_search(vector, keys)
        handle = self._next_handle
        self._next_handle += 1
        self._sessions[handle] = SearchSession(handle=handle, cursor=cursor)
        self._logger.debug("search-started", handle=handle, filtered=keys is not None)
        return handle

    def page(self, handle: int, k: int) -> SearchPage:
        """Return the next ``k`` ranked keys and distances of ``handle``."""
        if k <= 0:
            message = f"k must be positive, received {k}"
            raise ValueError(message)
        session = self._sessions.get(handle)
        if session is None:
            raise UnknownSessionError(handle)
        keys, distances, completed = self._backend.page(session.cursor, k)
        if completed:
            session.completed = True
            self._release(handle)
            self._logger.debug("search-completed", handle=handle)
        return keys, distances, completed

    def close(self, handle: int) -> None:
        """Terminate ``handle`` early; unknown or finished handles are ignored."""
        if handle in self._sessions:
            self._release(handle)

    def close_all(self) -> None:
        """Terminate every open session."""
        for handle in list(self._sessions):
            self._release(handle)

    def reset(self) -> None:
        """Close every session and restart handle allocation."""
        self.close_all()
        self._next_handle = 0

    def open_handles(self) -> list[int]:
        """Return the handles of sessions still open."""
        return sorted(self._sessions)

    def __contains__(self, handle: object) -> bool:
        """Return whether ``handle`` names an open session."""
        return handle in self._sessions

    def __len__(self) -> int:
        """Return the number of open sessions."""
        return len(self._sessions)

    def _release(self, handle: int) -> None:
        session = self._sessions.pop(handle)
        self._backend.end_search(session.cursor)
