"""The contract shared by search indexes and the plugins wrapping them."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

from semindex import archive as codec

if TYPE_CHECKING:
    from pathlib import Path

    from semindex.archive import Archive
    from semindex.vectordb.protocols import SearchPage

TextPage = tuple[list[str], list[float], bool]


class Searchable(ABC):
    """Text search operations exposed to the host application.

    Split ids partition the corpus; ``None`` as a split id searches or counts
    across every document.
    """

    @abstractmethod
    def get(self, key: int) -> str | None:
        """Return the text stored under ``key`` or ``None`` when unknown."""

    @abstractmethod
    async def add(self, text: str, split_id: int = 0) -> int:
        """Embed and store ``text`` in ``split_id`` and return its key."""

    @abstractmethod
    def remove(self, key: int) -> None:
        """Remove the document stored under ``key``; unknown keys are ignored."""

    @abstractmethod
    def remove_text(self, text: str, split_id: int = 0) -> int:
        """Remove documents of ``split_id`` whose text equals ``text`` and return how many."""

    @abstractmethod
    def count(self, split_id: int | None = None) -> int:
        """Return the number of documents, optionally within one split."""

    @abstractmethod
    def clear(self) -> None:
        """Remove every document and reset key allocation."""

    @abstractmethod
    async def incremental_search(self, query: str, split_id: int | None = 0) -> int:
        """Start a paged search for ``query`` and return its session handle."""

    @abstractmethod
    def incremental_fetch_keys(self, handle: int, k: int) -> SearchPage:
        """Return the next ``k`` result keys and distances of a session."""

    @abstractmethod
    def incremental_search_complete(self, handle: int) -> None:
        """Close a session early; unknown handles are ignored."""

    @abstractmethod
    def save(self, archive: Archive) -> None:
        """Write the full index state into ``archive``."""

    @abstractmethod
    def load(self, archive: Archive) -> None:
        """Replace the full index state with the one stored in ``archive``."""

    def incremental_fetch(self, handle: int, k: int) -> TextPage:
        """Return the next ``k`` result texts and distances of a session.

        Keys removed after ranking resolve to an empty string.
        """
        keys, distances, completed = self.incremental_fetch_keys(handle, k)
        texts = [self.get(key) or "" for key in keys]
        return texts, distances, completed

    async def search(self, query: str, k: int, split_id: int | None = 0) -> tuple[list[str], list[float]]:
        """Return the ``k`` nearest texts to ``query`` and their distances."""
        handle = await self.incremental_search(query, split_id)
        completed = False
        try:
            texts, distances, completed = self.incremental_fetch(handle, k)
        finally:
            if not completed:
                self.incremental_search_complete(handle)
        return texts, distances

    def save_file(self, path: str | Path) -> None:
        """Write the index state to a new archive at ``path``."""
        codec.save_file(path, self.save)

    def load_file(self, path: str | Path) -> None:
        """Replace the index state with the archive stored at ``path``."""
        codec.load_file(path, self.load)
