"""Plugin indexing long texts as sentence chunks while exposing whole phrases."""

from __future__ import annotations

from typing import TYPE_CHECKING, ClassVar

from semindex import archive as codec
from semindex.errors import CorruptArchiveError, UnknownSessionError
from semindex.models import ChunkingConfig, ChunkingState, CorpusSnapshot, SplitSnapshot
from semindex.search.index import DATA_BLOCK, SPLITS_BLOCK
from semindex.search.plugin import SearchPlugin

if TYPE_CHECKING:
    from semindex.archive import Archive
    from semindex.search.protocols import Searchable, TextPage
    from semindex.vectordb.protocols import SearchPage


def split_sentences(text: str, delimiters: str) -> list[str]:
    """Split ``text`` after each run of delimiters and trailing whitespace.

    Joining the returned chunks reproduces ``text`` exactly. A chunk only ends
    once it holds a non-whitespace, non-delimiter character.
    """
    chunks: list[str] = []
    start = 0
    seen_char = False
    length = len(text)
    i = 0
    while i < length:
        is_delimiter = text[i] in delimiters
        if is_delimiter:
            while i < length - 1 and (text[i + 1] in delimiters or text[i + 1].isspace()):
                i += 1
        elif not seen_char:
            seen_char = not text[i].isspace()
        if i == length - 1 or (is_delimiter and seen_char):
            chunks.append(text[start : i + 1])
            start = i + 1
            seen_char = False
        i += 1
    return chunks


class ChunkingPlugin(SearchPlugin):
    """Store each sentence of a phrase as its own document in the wrapped index.

    Keys handed out by this plugin are phrase keys; the wrapped index only
    ever sees chunk keys. Search results are mapped back to phrases, each
    phrase reported once per session at the distance of its nearest chunk.
    """

    name: ClassVar[str] = "chunking"
    config: ChunkingConfig

    def __init__(self, search: Searchable, config: ChunkingConfig | None = None) -> None:
        """Wrap ``search`` with sentence chunking."""
        super().__init__(search, config if config is not None else ChunkingConfig())
        self._next_key = 0
        self._phrases: dict[int, list[int]] = {}
        self._splits: dict[int, list[int]] = {}
        self._chunk_to_phrase: dict[int, int] = {}
        self._seen: dict[int, set[int]] = {}

    @property
    def data_block(self) -> str:
        """Return the archive block holding phrase bookkeeping."""
        return f"plugin/{self.name}/data.json"

    def split(self, text: str) -> list[str]:
        """Return the chunks ``text`` is indexed as."""
        return split_sentences(text, "".join(self.config.delimiters)) or [text]

    def chunk_keys(self, key: int) -> list[int]:
        """Return the wrapped-index keys holding the chunks of ``key``."""
        return list(self._phrases.get(key, ()))

    def get(self, key: int) -> str | None:
        """Rebuild the phrase stored under ``key`` from its chunks."""
        chunks = self._phrases.get(key)
        if chunks is None:
            return None
        return "".join(self.wrapped.get(chunk) or "" for chunk in chunks)

    async def add(self, text: str, split_id: int = 0) -> int:
        """Index every chunk of ``text`` and return the phrase key."""
        key = self._next_key
        self._next_key += 1
        chunk_keys: list[int] = []
        try:
            for chunk in self.split(text):
                chunk_keys.append(await self.wrapped.add(chunk, split_id))
        except Exception:
            for chunk_key in chunk_keys:
                self.wrapped.remove(chunk_key)
            raise
        self._phrases[key] = chunk_keys
        self._splits.setdefault(split_id, []).append(key)
        for chunk_key in chunk_keys:
            self._chunk_to_phrase[chunk_key] = key
        return key

    def remove(self, key: int) -> None:
        """Remove the phrase ``key`` and all of its chunks."""
        chunks = self._phrases.pop(key, None)
        if chunks is None:
            return
        for split_id in list(self._splits):
            members = self._splits[split_id]
            if key in members:
                members.remove(key)
                if not members:
                    del self._splits[split_id]
        for chunk_key in chunks:
            self._chunk_to_phrase.pop(chunk_key, None)
            self.wrapped.remove(chunk_key)

    def remove_text(self, text: str, split_id: int = 0) -> int:
        """Remove phrases of ``split_id`` equal to ``text``."""
        matches = [key for key in self._splits.get(split_id, []) if self.get(key) == text]
        for key in matches:
            self.remove(key)
        return len(matches)

    def count(self, split_id: int | None = None) -> int:
        """Return the number of phrases, optionally within ``split_id``."""
        if split_id is None:
            return len(self._phrases)
        return len(self._splits.get(split_id, ()))

    def clear(self) -> None:
        """Clear the wrapped index and all phrase bookkeeping."""
        self.wrapped.clear()
        self._reset(ChunkingState())

    async def incremental_search(self, query: str, split_id: int | None = 0) -> int:
        """Open a session on the wrapped index and track the phrases it reports."""
        handle = await self.wrapped.incremental_search(query, split_id)
        self._seen[handle] = set()
        return handle

    def incremental_fetch_keys(self, handle: int, k: int) -> SearchPage:
        """Return up to ``k`` phrase keys not yet reported by this session."""
        if k <= 0:
            message = f"k must be positive, received {k}"
            raise ValueError(message)
        seen = self._seen.get(handle)
        if seen is None:
            raise UnknownSessionError(handle)
        keys: list[int] = []
        distances: list[float] = []
        completed = False
        while len(keys) < k and not completed:
            chunk_keys, chunk_distances, completed = self.wrapped.incremental_fetch_keys(handle, k - len(keys))
            for chunk_key, distance in zip(chunk_keys, chunk_distances, strict=True):
                phrase = self._chunk_to_phrase.get(chunk_key)
                if phrase is None or phrase in seen:
                    continue
                seen.add(phrase)
                keys.append(phrase)
                distances.append(distance)
        if completed:
            del self._seen[handle]
        return keys, distances, completed

    def incremental_fetch(self, handle: int, k: int) -> TextPage:
        """Return phrase texts, or raw chunk texts when ``return_chunks`` is set."""
        if not self.config.return_chunks:
            return super().incremental_fetch(handle, k)
        if handle not in self._seen:
            raise UnknownSessionError(handle)
        texts, distances, completed = self.wrapped.incremental_fetch(handle, k)
        if completed:
            del self._seen[handle]
        return texts, distances, completed

    def incremental_search_complete(self, handle: int) -> None:
        """Close ``handle`` on the wrapped index."""
        self._seen.pop(handle, None)
        self.wrapped.incremental_search_complete(handle)

    def save_internal(self, archive: Archive) -> None:
        """Write phrase bookkeeping."""
        state = ChunkingState(next_key=self._next_key, phrases=self._phrases, splits=self._splits)
        codec.write_model(archive, self.data_block, state)

    def read_internal(self, archive: Archive) -> ChunkingState:
        """Decode and check phrase bookkeeping."""
        state = codec.read_model(archive, self.data_block, ChunkingState)
        members = [key for keys in state.splits.values() for key in keys]
        if sorted(members) != sorted(state.phrases):
            message = f"{self.data_block}: every phrase must belong to exactly one split"
            raise CorruptArchiveError(message)
        chunks = [chunk for keys in state.phrases.values() for chunk in keys]
        if len(set(chunks)) != len(chunks):
            message = f"{self.data_block}: a chunk is shared by several phrases"
            raise CorruptArchiveError(message)
        self._check_chunks_stored(archive, state)
        return state

    def _check_chunks_stored(self, archive: Archive, state: ChunkingState) -> None:
        """Require every chunk to be a stored document of its phrase's split."""
        corpus = codec.read_model(archive, DATA_BLOCK, CorpusSnapshot)
        splits = codec.read_model(archive, SPLITS_BLOCK, SplitSnapshot)
        for split_id, phrases in state.splits.items():
            members = set(splits.splits.get(split_id, ()))
            for phrase in phrases:
                for chunk in state.phrases[phrase]:
                    if chunk not in corpus.documents:
                        message = f"{self.data_block}: phrase {phrase} references missing chunk {chunk}"
                        raise CorruptArchiveError(message)
                    if chunk not in members:
                        message = f"{self.data_block}: chunk {chunk} of phrase {phrase} is not in split {split_id}"
                        raise CorruptArchiveError(message)

    def load_internal(self, state: object) -> None:
        """Apply decoded phrase bookkeeping."""
        if not isinstance(state, ChunkingState):
            message = f"{self.data_block}: unexpected plugin state"
            raise CorruptArchiveError(message)
        self._reset(state)

    def _reset(self, state: ChunkingState) -> None:
        self._phrases = {key: list(chunks) for key, chunks in state.phrases.items()}
        self._splits = {split_id: list(keys) for split_id, keys in state.splits.items() if keys}
        self._chunk_to_phrase = {chunk: key for key, chunks in self._phrases.items() for chunk in chunks}
        self._next_key = max([state.next_key, *(key + 1 for key in self._phrases)])
        self._seen.clear()
