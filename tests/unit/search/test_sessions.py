"""Tests for the incremental search session manager."""

from __future__ import annotations

from typing import Any

import pytest

from semindex.errors import BackendUnavailableError, UnknownSessionError
from semindex.search.sessions import SessionManager
from semindex.vectordb.numpy_store import NumpyBackend


class RecordingBackend(NumpyBackend):
    """Numpy backend recording which cursors were released."""

    def __init__(self, dim: int) -> None:
        """Initialise the backend and its release log."""
        super().__init__(dim)
        self.released: list[Any] = []
        self.fail_begin = False

    def begin_search(self, vector: Any, keys: Any) -> Any:
        """Optionally fail before delegating to the numpy backend."""
        if self.fail_begin:
            message = "backend offline"
            raise BackendUnavailableError(message)
        return super().begin_search(vector, keys)

    def end_search(self, cursor: Any) -> None:
        """Record the release before delegating."""
        self.released.append(cursor)
        super().end_search(cursor)


def _backend_with_ten_points() -> RecordingBackend:
    """Create a backend with ten candidates at increasing distance from the origin."""
    backend = RecordingBackend(1)
    for key in range(10):
        backend.index(key, [float(key)])
    return backend


def test_paging_ten_candidates_by_four() -> None:
    """Pages of four over ten candidates yield 4, 4, 2 and then the handle is gone."""
    backend = _backend_with_ten_points()
    sessions = SessionManager(backend)
    handle = sessions.begin([0.0], None)

    pages = [sessions.page(handle, 4) for _ in range(3)]

    assert [len(keys) for keys, _, _ in pages] == [4, 4, 2]
    assert [completed for _, _, completed in pages] == [False, False, True]
    assert [key for keys, _, _ in pages for key in keys] == list(range(10))
    for _, distances, _ in pages:
        assert distances == sorted(distances)
    with pytest.raises(UnknownSessionError) as excinfo:
        sessions.page(handle, 4)
    assert excinfo.value.handle == handle
    assert len(backend.released) == 1
    assert len(sessions) == 0


def test_handles_are_monotonic_and_independent() -> None:
    """Each session gets a fresh handle and pages independently."""
    backend = _backend_with_ten_points()
    sessions = SessionManager(backend)

    first = sessions.begin([0.0], None)
    second = sessions.begin([9.0], [8, 9])

    assert (first, second) == (0, 1)
    assert sessions.page(second, 1)[0] == [9]
    assert sessions.page(first, 1)[0] == [0]
    assert sessions.open_handles() == [0, 1]

    sessions.close(first)
    assert sessions.begin([0.0], None) == 2


def test_close_is_idempotent_and_ignores_unknown_handles() -> None:
    """Closing releases the backend cursor once; later closes are no-ops."""
    backend = _backend_with_ten_points()
    sessions = SessionManager(backend)
    handle = sessions.begin([0.0], None)

    sessions.close(handle)
    sessions.close(handle)
    sessions.close(12345)

    assert len(backend.released) == 1
    assert handle not in sessions
    with pytest.raises(UnknownSessionError):
        sessions.page(handle, 1)


def test_close_after_completion_is_a_no_op() -> None:
    """A session completed by paging needs no explicit close."""
    backend = _backend_with_ten_points()
    sessions = SessionManager(backend)
    handle = sessions.begin([0.0], [3])

    keys, _, completed = sessions.page(handle, 5)
    sessions.close(handle)

    assert keys == [3]
    assert completed is True
    assert len(backend.released) == 1


def test_backend_failure_allocates_no_handle() -> None:
    """A rejected search propagates and leaves the counter untouched."""
    backend = _backend_with_ten_points()
    backend.fail_begin = True
    sessions = SessionManager(backend)

    with pytest.raises(BackendUnavailableError):
        sessions.begin([0.0], None)

    assert sessions.next_handle == 0
    assert len(sessions) == 0


def test_page_rejects_non_positive_k() -> None:
    """Page sizes must be positive."""
    sessions = SessionManager(_backend_with_ten_points())
    handle = sessions.begin([0.0], None)

    with pytest.raises(ValueError, match="k must be positive"):
        sessions.page(handle, 0)


def test_reset_and_restore_counter() -> None:
    """Reset closes sessions and restarts handles; restore never moves backwards."""
    backend = _backend_with_ten_points()
    sessions = SessionManager(backend)
    sessions.begin([0.0], None)
    sessions.begin([0.0], None)

    sessions.restore_counter(1)
    assert sessions.next_handle == 2

    sessions.reset()
    assert sessions.next_handle == 0
    assert len(backend.released) == 2
    assert sessions.open_handles() == []
