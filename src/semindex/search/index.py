"""Semantic search index composing corpus, embeddings, vector backend, and sessions."""

from __future__ import annotations

from typing import TYPE_CHECKING

from semindex import archive as codec
from semindex.errors import CorruptArchiveError
from semindex.logger import get_logger
from semindex.models import FORMAT_VERSION, CorpusSnapshot, IndexMetadata, SplitSnapshot
from semindex.search.corpus import CorpusStore
from semindex.search.protocols import Searchable
from semindex.search.sessions import SessionManager

if TYPE_CHECKING:
    from collections.abc import Sequence

    from structlog.stdlib import BoundLogger

    from semindex.archive import Archive
    from semindex.embeddings.protocols import EmbeddingProvider
    from semindex.vectordb.protocols import SearchPage, VectorBackend

META_BLOCK = "search/meta.json"
DATA_BLOCK = "search/data.json"
SPLITS_BLOCK = "search/splits.json"


class SearchIndex(Searchable):
    """Store texts with their embeddings and serve paged nearest-neighbour search.

    Every stored key has a vector in the backend and every split member is a
    stored key. The backend is only reached through its protocol methods.
    Calls on one instance must be serialised by the caller.
    """

    def __init__(
        self,
        embedder: EmbeddingProvider,
        backend: VectorBackend,
        *,
        logger: BoundLogger | None = None,
    ) -> None:
        """Initialise an empty index over ``backend``."""
        if embedder.dimension != backend.dim:
            message = (
                "embedding dimension mismatch: "
                f"provider {embedder.name} yields {embedder.dimension}, backend expects {backend.dim}"
            )
            raise ValueError(message)
        self._embedder = embedder
        self._backend = backend
        self._logger = logger if logger is not None else get_logger("index")
        self._corpus = CorpusStore()
        self._sessions = SessionManager(backend, logger=self._logger)

    @property
    def backend(self) -> VectorBackend:
        """Return the vector backend."""
        return self._backend

    @property
    def embedder(self) -> EmbeddingProvider:
        """Return the embedding provider."""
        return self._embedder

    @property
    def sessions(self) -> SessionManager:
        """Return the session manager."""
        return self._sessions

    def get(self, key: int) -> str | None:
        """Return the text stored under ``key`` or ``None`` when unknown."""
        return self._corpus.resolve(key)

    def keys(self) -> list[int]:
        """Return every stored key in ascending order."""
        return self._corpus.keys()

    def split_ids(self) -> list[int]:
        """Return the ids of all non-empty splits."""
        return self._corpus.split_ids()

    async def add(self, text: str, split_id: int = 0) -> int:
        """Embed ``text``, index it, and record it in ``split_id``."""
        key = self._corpus.allocate()
        vector = await self._embedder.embed(text)
        self._backend.index(key, vector)
        self._corpus.insert(key, text)
        self._corpus.add_to_split(split_id, key)
        self._logger.debug("document-added", key=key, split_id=split_id)
        return key

    def remove(self, key: int) -> None:
        """Remove ``key`` from the corpus, its splits, and the backend."""
        if self._corpus.delete(key):
            self._backend.remove(key)
            self._logger.debug("document-removed", key=key)

    def remove_text(self, text: str, split_id: int = 0) -> int:
        """Remove documents of ``split_id`` whose text equals ``text``."""
        removed = self._corpus.delete_where(split_id, lambda stored: stored == text)
        for key in removed:
            self._backend.remove(key)
            self._logger.debug("document-removed", key=key, split_id=split_id)
        return len(removed)

    def count(self, split_id: int | None = None) -> int:
        """Return the number of documents, optionally within ``split_id``."""
        if split_id is None:
            return self._corpus.count_all()
        return self._corpus.count_in_split(split_id)

    def clear(self) -> None:
        """Remove every document, vector, and open session."""
        self._corpus.clear_all()
        self._backend.clear()
        self._sessions.reset()
        self._logger.info("index-cleared")

    async def incremental_search(self, query: str, split_id: int | None = 0) -> int:
        """Embed ``query`` and open a search session scoped to ``split_id``."""
        vector = await self._embedder.embed(query)
        return self.incremental_search_vector(vector, split_id)

    def incremental_search_vector(self, vector: Sequence[float], split_id: int | None = 0) -> int:
        """Open a search session for an already computed query ``vector``."""
        keys = None if split_id is None else self._corpus.split_keys(split_id)
        return self._sessions.begin(vector, keys)

    def incremental_fetch_keys(self, handle: int, k: int) -> SearchPage:
        """Return the next ``k`` ranked keys and distances of ``handle``."""
        return self._sessions.page(handle, k)

    def incremental_search_complete(self, handle: int) -> None:
        """Close ``handle`` if it is still open."""
        self._sessions.close(handle)

    def save(self, archive: Archive) -> None:
        """Write counters, corpus, splits, and backend state into ``archive``.

        Open sessions are not persisted and stay open.
        """
        corpus, splits = self._corpus.snapshot()
        metadata = IndexMetadata(
            next_key=self._corpus.next_key,
            next_session=self._sessions.next_handle,
            backend=self._backend.name,
            dim=self._backend.dim,
            document_count=len(corpus.documents),
        )
        codec.write_model(archive, META_BLOCK, metadata)
        codec.write_model(archive, DATA_BLOCK, corpus)
        codec.write_model(archive, SPLITS_BLOCK, splits)
        self._backend.save_state(archive)
        self._logger.info("index-saved", documents=metadata.document_count, splits=len(splits.splits))

    def load(self, archive: Archive) -> None:
        """Replace the index state with the one stored in ``archive``.

        Nothing is modified unless the whole archive is valid.
        """
        metadata = codec.read_model(archive, META_BLOCK, IndexMetadata)
        corpus = codec.read_model(archive, DATA_BLOCK, CorpusSnapshot)
        splits = codec.read_model(archive, SPLITS_BLOCK, SplitSnapshot)
        self._validate_snapshot(metadata, corpus, splits)

        previous = codec.dump_bytes(self._backend.save_state)
        try:
            self._backend.load_state(archive)
            backend_keys = self._backend.keys()
            if backend_keys != set(corpus.documents):
                message = (
                    "backend keys do not match stored documents: "
                    f"{len(backend_keys)} vectors for {len(corpus.documents)} documents"
                )
                raise CorruptArchiveError(message)
        except CorruptArchiveError as exc:
            codec.load_bytes(previous, self._backend.load_state)
            self._logger.warning("index-load-failed", error=str(exc))
            raise
        except Exception as exc:
            codec.load_bytes(previous, self._backend.load_state)
            self._logger.warning("index-load-failed", error=str(exc))
            message = f"backend state could not be restored: {exc}"
            raise CorruptArchiveError(message) from exc

        next_key = max([metadata.next_key, *(key + 1 for key in corpus.documents)])
        self._sessions.close_all()
        self._corpus.restore(corpus, splits, next_key)
        self._sessions.restore_counter(metadata.next_session)
        self._logger.info("index-loaded", documents=len(corpus.documents), splits=len(splits.splits))

    def _validate_snapshot(self, metadata: IndexMetadata, corpus: CorpusSnapshot, splits: SplitSnapshot) -> None:
        if metadata.format_version != FORMAT_VERSION:
            message = f"unsupported archive format version: {metadata.format_version}, expected {FORMAT_VERSION}"
            raise CorruptArchiveError(message)
        if metadata.dim != self._backend.dim:
            message = f"vector dimension mismatch: expected {self._backend.dim}, archive holds {metadata.dim}"
            raise CorruptArchiveError(message)
        if metadata.document_count != len(corpus.documents):
            message = (
                "document count mismatch: "
                f"metadata records {metadata.document_count}, corpus holds {len(corpus.documents)}"
            )
            raise CorruptArchiveError(message)
        for split_id, members in splits.splits.items():
            unknown = [key for key in members if key not in corpus.documents]
            if unknown:
                message = f"split {split_id} references unknown documents: {unknown}"
                raise CorruptArchiveError(message)
            if len(set(members)) != len(members):
                message = f"split {split_id} lists a document more than once"
                raise CorruptArchiveError(message)
