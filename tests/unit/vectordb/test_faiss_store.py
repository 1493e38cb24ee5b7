"""Tests for the FAISS vector backend."""

from __future__ import annotations

from typing import Any

import pytest

from semindex import archive as codec
from semindex.errors import BackendUnavailableError, CorruptArchiveError
from semindex.vectordb.faiss_store import INDEX_BLOCK, FaissBackend


def _backend_with_points() -> FaissBackend:
    """Create a 4d backend holding a few well separated vectors."""
    backend = FaissBackend(4)
    backend.index(7, [0.9, 0.1, 0.0, 0.0])
    backend.index(8, [0.0, 0.8, 0.2, 0.0])
    backend.index(9, [0.1, 0.1, 0.7, 0.1])
    return backend


def test_faiss_pages_nearest_first() -> None:
    """Paging returns keys ordered by distance and flags completion."""
    backend = _backend_with_points()
    cursor = backend.begin_search([1.0, 0.0, 0.0, 0.0], None)

    keys, distances, completed = backend.page(cursor, 2)
    rest = backend.page(cursor, 2)

    assert keys == [7, 9]
    assert distances == sorted(distances)
    assert completed is False
    assert rest[0] == [8]
    assert rest[2] is True


def test_faiss_filter_and_remove() -> None:
    """Filtered searches only return allowed keys; removed keys disappear."""
    backend = _backend_with_points()
    backend.remove(7)
    backend.remove(7)

    keys, _, completed = backend.page(backend.begin_search([1.0, 0.0, 0.0, 0.0], {7, 8}), 5)

    assert keys == [8]
    assert completed is True
    assert backend.keys() == {8, 9}


def test_faiss_reindex_replaces_vector() -> None:
    """Indexing an existing key replaces its vector instead of duplicating it."""
    backend = _backend_with_points()
    backend.index(8, [1.0, 0.0, 0.0, 0.0])

    keys, distances, _ = backend.page(backend.begin_search([1.0, 0.0, 0.0, 0.0], None), 5)

    assert keys[0] == 8
    assert distances[0] == pytest.approx(0.0)
    assert sorted(keys) == [7, 8, 9]


def test_faiss_empty_index_completes_immediately() -> None:
    """Searching an empty index yields one empty completed page."""
    backend = FaissBackend(3)

    assert backend.page(backend.begin_search([0.0, 0.0, 1.0], None), 3) == ([], [], True)


def test_faiss_state_round_trips_and_clear() -> None:
    """Serialized state restores keys and search results."""
    backend = _backend_with_points()
    payload = codec.dump_bytes(backend.save_state)

    restored = FaissBackend(4)
    codec.load_bytes(payload, restored.load_state)

    assert restored.keys() == {7, 8, 9}
    query = [0.0, 1.0, 0.0, 0.0]
    assert restored.page(restored.begin_search(query, None), 3)[0] == backend.page(backend.begin_search(query, None), 3)[0]

    restored.clear()
    assert restored.keys() == set()


def test_faiss_load_rejects_other_dimension() -> None:
    """An index of another dimension is refused and the current state kept."""
    payload = codec.dump_bytes(_backend_with_points().save_state)
    backend = FaissBackend(2)
    backend.index(1, [0.0, 1.0])

    with pytest.raises(CorruptArchiveError, match="vector dimension mismatch"):
        codec.load_bytes(payload, backend.load_state)
    assert backend.keys() == {1}


def test_faiss_load_rejects_garbage_block() -> None:
    """Bytes that are not a serialized index are reported as corrupt."""
    payload = codec.dump_bytes(lambda archive: codec.write_block(archive, INDEX_BLOCK, b"garbage"))

    with pytest.raises(CorruptArchiveError):
        codec.load_bytes(payload, FaissBackend(4).load_state)


def test_faiss_rejects_wrong_dimension_queries() -> None:
    """Dimension mismatches surface as backend failures."""
    backend = FaissBackend(4)

    with pytest.raises(BackendUnavailableError, match="vector dimension mismatch"):
        backend.begin_search([1.0, 0.0], None)


class _RejectingIndex:
    """Index wrapper that removes ids but refuses new vectors."""

    def __init__(self, inner: Any) -> None:
        self.inner = inner

    def remove_ids(self, ids: Any) -> int:
        return self.inner.remove_ids(ids)

    def add_with_ids(self, vectors: Any, ids: Any) -> None:
        message = "add failed"
        raise RuntimeError(message)


def test_faiss_failed_replace_forgets_key() -> None:
    """A replacement rejected after removal no longer reports the key as stored."""
    backend = _backend_with_points()
    real_index = backend._index
    backend._index = _RejectingIndex(real_index)

    with pytest.raises(BackendUnavailableError, match="faiss rejected vector for key 8"):
        backend.index(8, [1.0, 0.0, 0.0, 0.0])

    backend._index = real_index
    assert backend.keys() == {7, 9}
    keys, _, _ = backend.page(backend.begin_search([0.0, 1.0, 0.0, 0.0], None), 5)
    assert sorted(keys) == [7, 9]
