"""Document text and split membership keyed by monotonically allocated integers."""

from __future__ import annotations

from typing import TYPE_CHECKING

from semindex.models import CorpusSnapshot, SplitSnapshot

if TYPE_CHECKING:
    from collections.abc import Callable


class CorpusStore:
    """Own document text and the splits that partition it.

    Keys come from a counter that only moves forward until :meth:`clear_all`.
    A split exists only while it has members.
    """

    def __init__(self) -> None:
        """Initialise an empty corpus."""
        self._next_key = 0
        self._documents: dict[int, str] = {}
        self._splits: dict[int, list[int]] = {}

    @property
    def next_key(self) -> int:
        """Return the key the next :meth:`allocate` call will hand out."""
        return self._next_key

    def allocate(self) -> int:
        """Reserve and return a fresh document key."""
        key = self._next_key
        self._next_key += 1
        return key

    def insert(self, key: int, text: str) -> None:
        """Record ``text`` under ``key``, replacing any previous text."""
        self._documents[key] = text

    def resolve(self, key: int) -> str | None:
        """Return the text stored under ``key`` or ``None`` when unknown."""
        return self._documents.get(key)

    def delete(self, key: int) -> bool:
        """Remove ``key`` from the corpus and from every split."""
        if self._documents.pop(key, None) is None:
            return False
        for split_id in list(self._splits):
            self._discard_member(split_id, key)
        return True

    def delete_where(self, split_id: int, predicate: Callable[[str], bool]) -> list[int]:
        """Delete every member of ``split_id`` whose text satisfies ``predicate``."""
        matches = [
            key
            for key in self._splits.get(split_id, [])
            if (text := self._documents.get(key)) is not None and predicate(text)
        ]
        return [key for key in matches if self.delete(key)]

    def add_to_split(self, split_id: int, key: int) -> None:
        """Add ``key`` to ``split_id``, creating the split on first use."""
        members = self._splits.setdefault(split_id, [])
        if key not in members:
            members.append(key)

    def count_all(self) -> int:
        """Return the number of stored documents."""
        return len(self._documents)

    def count_in_split(self, split_id: int) -> int:
        """Return the number of documents in ``split_id`` (zero when absent)."""
        return len(self._splits.get(split_id, ()))

    def split_keys(self, split_id: int) -> list[int]:
        """Return a copy of the ordered members of ``split_id``."""
        return list(self._splits.get(split_id, ()))

    def split_ids(self) -> list[int]:
        """Return the ids of all non-empty splits in ascending order."""
        return sorted(self._splits)

    def keys(self) -> list[int]:
        """Return every stored document key in ascending order."""
        return sorted(self._documents)

    def clear_all(self) -> None:
        """Drop all documents and splits and restart key allocation."""
        self._documents.clear()
        self._splits.clear()
        self._next_key = 0

    def snapshot(self) -> tuple[CorpusSnapshot, SplitSnapshot]:
        """Return persistable copies of the document and split maps."""
        documents = {key: self._documents[key] for key in sorted(self._documents)}
        splits = {split_id: list(self._splits[split_id]) for split_id in sorted(self._splits)}
        return CorpusSnapshot(documents=documents), SplitSnapshot(splits=splits)

    def restore(self, corpus: CorpusSnapshot, splits: SplitSnapshot, next_key: int) -> None:
        """Replace the whole corpus with previously snapshotted state."""
        self._documents = dict(corpus.documents)
        self._splits = {split_id: list(members) for split_id, members in splits.splits.items() if members}
        self._next_key = next_key

    def __contains__(self, key: object) -> bool:
        """Return whether ``key`` names a stored document."""
        return key in self._documents

    def __len__(self) -> int:
        """Return the number of stored documents."""
        return len(self._documents)

    def _discard_member(self, split_id: int, key: int) -> None:
        members = self._splits[split_id]
        try:
            members.remove(key)
        except ValueError:
            return
        if not members:
            del self._splits[split_id]
