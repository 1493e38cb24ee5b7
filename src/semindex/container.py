"""Dependency injection container for semindex."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, cast

from semindex.embeddings.hash_embed import HashEmbedding
from semindex.embeddings.openai_embed import OpenAIEmbedding
from semindex.logger import configure
from semindex.search.chunking import ChunkingPlugin
from semindex.search.index import SearchIndex
from semindex.settings import Settings
from semindex.vectordb.factory import create_backend

if TYPE_CHECKING:  # pragma: no cover - typing only
    from structlog.stdlib import BoundLogger
    from semindex.embeddings.protocols import EmbeddingProvider
    from semindex.search.protocols import Searchable
    from semindex.vectordb.protocols import VectorBackend
else:  # pragma: no cover - runtime placeholder
    BoundLogger = object
    EmbeddingProvider = object
    Searchable = object
    VectorBackend = object


@dataclass
class Container:
    """Aggregates configured application services."""

    settings: Settings
    logger: BoundLogger
    embedder: EmbeddingProvider
    backend: VectorBackend
    index: SearchIndex
    searchable: Searchable


def build_container(settings: Settings | None = None) -> Container:
    """Build the dependency container using default settings."""
    resolved_settings = settings or Settings()
    logger = cast("BoundLogger", configure(resolved_settings.log_level, resolved_settings.log_json))

    embedder = create_embedding_provider(resolved_settings)
    backend = create_backend(resolved_settings.vector_backend, dim=embedder.dimension)
    index = SearchIndex(embedder, backend, logger=logger)
    searchable: Searchable = ChunkingPlugin(index) if resolved_settings.chunking else index

    logger.info(
        "boot",
        embed_backend=embedder.name,
        vector_backend=backend.name,
        chunking=resolved_settings.chunking,
    )
    return Container(
        settings=resolved_settings,
        logger=logger,
        embedder=embedder,
        backend=backend,
        index=index,
        searchable=searchable,
    )


def create_embedding_provider(settings: Settings) -> EmbeddingProvider:
    """Instantiate the embedding provider according to configuration."""
    backend = settings.embed_backend
    if backend == "openai":
        if not settings.openai_api_key:
            message = "the openai embedding backend requires SEMINDEX_OPENAI_API_KEY"
            raise ValueError(message)
        return OpenAIEmbedding(
            api_key=settings.openai_api_key,
            base_url=settings.openai_base_url,
            model=settings.openai_embedding_model,
        )
    if backend == "hash":
        return HashEmbedding(settings.hash_dimension)
    message = f"unsupported embedding backend: {backend}"
    raise ValueError(message)
