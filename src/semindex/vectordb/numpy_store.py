"""Brute-force numpy backend for small corpora and environments without FAISS."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import numpy as np

from semindex import archive as codec
from semindex.errors import BackendUnavailableError, CorruptArchiveError
from semindex.vectordb.protocols import SearchPage, VectorBackend
from semindex.vectordb.ranking import RankedCursor, as_ranked

if TYPE_CHECKING:
    from collections.abc import Collection, Sequence

    from semindex.archive import Archive

KEYS_BLOCK = "backend/numpy/keys.npy"
VECTORS_BLOCK = "backend/numpy/vectors.npy"


class NumpyBackend(VectorBackend):
    """Exact squared-L2 search over an in-memory matrix."""

    def __init__(self, dim: int) -> None:
        """Initialise an empty matrix with ``dim`` columns."""
        if dim <= 0:
            message = f"dimension must be positive, received {dim}"
            raise ValueError(message)
        self.dim = dim
        self.name = "numpy:l2"
        self._keys: list[int] = []
        self._rows: dict[int, int] = {}
        self._matrix = np.zeros((0, dim), dtype="float32")

    def index(self, key: int, vector: Sequence[float]) -> None:
        """Store ``vector`` under ``key``, replacing an existing row."""
        row = self._prepare_vector(vector)
        position = self._rows.get(key)
        if position is not None:
            self._matrix[position] = row
            return
        self._rows[key] = len(self._keys)
        self._keys.append(key)
        self._matrix = np.vstack([self._matrix, row.reshape(1, -1)])

    def remove(self, key: int) -> None:
        """Drop the row stored under ``key`` if present."""
        position = self._rows.pop(key, None)
        if position is None:
            return
        self._matrix = np.delete(self._matrix, position, axis=0)
        del self._keys[position]
        self._rows = {stored: idx for idx, stored in enumerate(self._keys)}

    def clear(self) -> None:
        """Drop every stored vector."""
        self._keys = []
        self._rows = {}
        self._matrix = np.zeros((0, self.dim), dtype="float32")

    def keys(self) -> set[int]:
        """Return the keys currently stored."""
        return set(self._keys)

    def begin_search(self, vector: Sequence[float], keys: Collection[int] | None) -> RankedCursor:
        """Rank allowed rows by squared distance to ``vector``."""
        query = self._prepare_vector(vector)
        if keys is None:
            positions = np.arange(len(self._keys))
        else:
            positions = np.asarray(sorted(self._rows[key] for key in keys if key in self._rows), dtype="int64")
        if positions.size == 0:
            return RankedCursor()
        candidates = self._matrix[positions]
        distances = np.sum((candidates - query) ** 2, axis=1)
        candidate_keys = np.asarray(self._keys, dtype="int64")[positions]
        return RankedCursor.from_scores(candidate_keys, distances)

    def page(self, cursor: Any, k: int) -> SearchPage:
        """Return the next page of ``cursor``."""
        return as_ranked(cursor).take(k)

    def end_search(self, cursor: Any) -> None:
        """Release the ranking held by ``cursor``."""
        if isinstance(cursor, RankedCursor):
            cursor.release()

    def save_state(self, archive: Archive) -> None:
        """Write keys and vectors as separate array blocks."""
        codec.write_array(archive, KEYS_BLOCK, np.asarray(self._keys, dtype="int64"))
        codec.write_array(archive, VECTORS_BLOCK, self._matrix)

    def load_state(self, archive: Archive) -> None:
        """Restore keys and vectors from ``archive``."""
        keys = codec.read_array(archive, KEYS_BLOCK)
        matrix = codec.read_array(archive, VECTORS_BLOCK)
        expected_ndim = 2
        if keys.ndim != 1 or matrix.ndim != expected_ndim:
            message = f"unexpected array shapes: keys {keys.shape}, vectors {matrix.shape}"
            raise CorruptArchiveError(message)
        if matrix.shape[0] != keys.shape[0]:
            message = "identifier count does not match stored vectors"
            raise CorruptArchiveError(message)
        if matrix.shape[0] and matrix.shape[1] != self.dim:
            message = f"vector dimension mismatch: expected {self.dim}, archive holds {matrix.shape[1]}"
            raise CorruptArchiveError(message)
        if keys.dtype.kind not in "iu" or matrix.dtype.kind not in "fiu":
            message = f"unexpected array types: keys {keys.dtype}, vectors {matrix.dtype}"
            raise CorruptArchiveError(message)
        key_list = [int(value) for value in keys]
        if len(set(key_list)) != len(key_list):
            message = "duplicate keys in stored vectors"
            raise CorruptArchiveError(message)
        vectors = matrix.astype("float32").reshape(len(key_list), self.dim)
        self._keys = key_list
        self._rows = {key: idx for idx, key in enumerate(key_list)}
        self._matrix = vectors

    def _prepare_vector(self, vector: Sequence[float]) -> np.ndarray:
        array = np.asarray(vector, dtype="float32").reshape(-1)
        if array.shape[0] != self.dim:
            message = f"vector dimension mismatch: expected {self.dim}, received {array.shape[0]}"
            raise BackendUnavailableError(message)
        return array
