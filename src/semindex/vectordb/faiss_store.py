"""FAISS backend with keyed vectors and paged exact search."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import faiss
import numpy as np

from semindex import archive as codec
from semindex.errors import BackendUnavailableError, CorruptArchiveError
from semindex.vectordb.protocols import SearchPage, VectorBackend
from semindex.vectordb.ranking import RankedCursor, as_ranked

if TYPE_CHECKING:
    from collections.abc import Collection, Sequence

    from semindex.archive import Archive

INDEX_BLOCK = "backend/faiss/index.bin"


class FaissBackend(VectorBackend):
    """Squared-L2 FAISS flat index addressed by document key."""

    def __init__(self, dim: int) -> None:
        """Initialise an empty FAISS index of dimension ``dim``."""
        if dim <= 0:
            message = f"dimension must be positive, received {dim}"
            raise ValueError(message)
        self.dim = dim
        self.name = "faiss:l2"
        self._index = self._new_index()
        self._keys: set[int] = set()

    def index(self, key: int, vector: Sequence[float]) -> None:
        """Store ``vector`` under ``key``, replacing an existing entry."""
        matrix = self._prepare_matrix(vector)
        ids = np.asarray([key], dtype="int64")
        try:
            if key in self._keys:
                self._index.remove_ids(ids)
            self._index.add_with_ids(matrix, ids)
        except RuntimeError as exc:
            self._keys.discard(key)
            message = f"faiss rejected vector for key {key}: {exc}"
            raise BackendUnavailableError(message) from exc
        self._keys.add(key)

    def remove(self, key: int) -> None:
        """Remove the vector stored under ``key`` if present."""
        if key not in self._keys:
            return
        self._index.remove_ids(np.asarray([key], dtype="int64"))
        self._keys.discard(key)

    def clear(self) -> None:
        """Reset the index to an empty state."""
        self._index = self._new_index()
        self._keys.clear()

    def keys(self) -> set[int]:
        """Return the keys currently indexed."""
        return set(self._keys)

    def begin_search(self, vector: Sequence[float], keys: Collection[int] | None) -> RankedCursor:
        """Rank every allowed key by distance to ``vector``."""
        query = self._prepare_matrix(vector)
        total = int(self._index.ntotal)
        if total == 0:
            return RankedCursor()
        try:
            distances, labels = self._index.search(query, total)
        except RuntimeError as exc:
            message = f"faiss search failed: {exc}"
            raise BackendUnavailableError(message) from exc
        label_row = labels[0]
        distance_row = distances[0]
        mask = label_row != -1
        if keys is not None:
            allowed = np.fromiter(keys, dtype="int64")
            mask &= np.isin(label_row, allowed)
        return RankedCursor.from_scores(label_row[mask], distance_row[mask])

    def page(self, cursor: Any, k: int) -> SearchPage:
        """Return the next page of ``cursor``."""
        return as_ranked(cursor).take(k)

    def end_search(self, cursor: Any) -> None:
        """Release the ranking held by ``cursor``."""
        if isinstance(cursor, RankedCursor):
            cursor.release()

    def save_state(self, archive: Archive) -> None:
        """Serialize the FAISS index into ``archive``."""
        payload = faiss.serialize_index(self._index)
        codec.write_block(archive, INDEX_BLOCK, np.asarray(payload, dtype="uint8").tobytes())

    def load_state(self, archive: Archive) -> None:
        """Restore the FAISS index from ``archive``."""
        raw = codec.read_block(archive, INDEX_BLOCK)
        try:
            restored = faiss.deserialize_index(np.frombuffer(raw, dtype="uint8").copy())
        except RuntimeError as exc:
            message = f"archive block corrupt: {INDEX_BLOCK}"
            raise CorruptArchiveError(message) from exc
        if restored.d != self.dim:
            message = f"vector dimension mismatch: expected {self.dim}, archive holds {restored.d}"
            raise CorruptArchiveError(message)
        if not hasattr(restored, "id_map"):
            message = f"archive block does not hold a keyed index: {INDEX_BLOCK}"
            raise CorruptArchiveError(message)
        self._index = restored
        self._keys = {int(value) for value in faiss.vector_to_array(restored.id_map)}

    def _new_index(self) -> Any:
        return faiss.IndexIDMap(faiss.IndexFlatL2(self.dim))

    def _prepare_matrix(self, vector: Sequence[float]) -> np.ndarray:
        array = np.asarray(vector, dtype="float32").reshape(1, -1)
        if array.shape[1] != self.dim:
            message = f"vector dimension mismatch: expected {self.dim}, received {array.shape[1]}"
            raise BackendUnavailableError(message)
        return array
