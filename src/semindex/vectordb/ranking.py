"""Cursor over a precomputed nearest-first ranking."""

from __future__ import annotations

from dataclasses import dataclass, field

import numpy as np

from semindex.errors import BackendUnavailableError
from semindex.vectordb.protocols import SearchPage


@dataclass
class RankedCursor:
    """Ranked candidate keys and distances consumed page by page."""

    keys: np.ndarray = field(default_factory=lambda: np.zeros(0, dtype="int64"))
    distances: np.ndarray = field(default_factory=lambda: np.zeros(0, dtype="float32"))
    offset: int = 0
    closed: bool = False

    @classmethod
    def from_scores(cls, keys: np.ndarray, distances: np.ndarray) -> RankedCursor:
        """Sort ``keys`` by ascending ``distances`` keeping input order among ties."""
        order = np.argsort(distances, kind="stable")
        return cls(keys=np.asarray(keys, dtype="int64")[order], distances=np.asarray(distances, dtype="float32")[order])

    @property
    def remaining(self) -> int:
        """Return the number of results not yet handed out."""
        return int(self.keys.shape[0]) - self.offset

    def take(self, k: int) -> SearchPage:
        """Return the next ``k`` results and whether the ranking is exhausted."""
        if k <= 0:
            message = f"k must be positive, received {k}"
            raise ValueError(message)
        stop = min(self.offset + k, int(self.keys.shape[0]))
        keys = [int(value) for value in self.keys[self.offset : stop]]
        distances = [float(value) for value in self.distances[self.offset : stop]]
        self.offset = stop
        return keys, distances, self.remaining == 0

    def release(self) -> None:
        """Drop the ranking arrays."""
        self.keys = np.zeros(0, dtype="int64")
        self.distances = np.zeros(0, dtype="float32")
        self.offset = 0
        self.closed = True


def as_ranked(cursor: object) -> RankedCursor:
    """Return ``cursor`` as an open :class:`RankedCursor` or fail."""
    if not isinstance(cursor, RankedCursor) or cursor.closed:
        message = "search cursor is closed or was not issued by this backend"
        raise BackendUnavailableError(message)
    return cursor
