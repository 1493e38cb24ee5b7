"""Protocols for vector backend implementations."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from collections.abc import Collection, Sequence

    from semindex.archive import Archive

SearchPage = tuple[list[int], list[float], bool]


class VectorBackend(Protocol):
    """Protocol describing a keyed vector index with paged ranked search.

    Cursors returned by :meth:`begin_search` are opaque to callers and only
    ever passed back to :meth:`page` and :meth:`end_search`.
    """

    name: str
    dim: int

    def index(self, key: int, vector: Sequence[float]) -> None:
        """Store ``vector`` under ``key``."""
        ...

    def remove(self, key: int) -> None:
        """Forget the vector stored under ``key``; unknown keys are ignored."""
        ...

    def clear(self) -> None:
        """Drop every stored vector."""
        ...

    def keys(self) -> set[int]:
        """Return the keys that currently hold a vector."""
        ...

    def begin_search(self, vector: Sequence[float], keys: Collection[int] | None) -> Any:
        """Start a ranked search restricted to ``keys`` (or everything when ``None``)."""
        ...

    def page(self, cursor: Any, k: int) -> SearchPage:
        """Return up to ``k`` further results nearest first, and whether the cursor is exhausted."""
        ...

    def end_search(self, cursor: Any) -> None:
        """Release resources held by ``cursor``."""
        ...

    def save_state(self, archive: Archive) -> None:
        """Write the backend blocks into ``archive``."""
        ...

    def load_state(self, archive: Archive) -> None:
        """Replace the backend state with the blocks stored in ``archive``."""
        ...
