"""Protocols for embedding providers."""

from __future__ import annotations

from typing import Protocol


class EmbeddingProvider(Protocol):
    """Protocol describing an asynchronous text embedding provider."""

    name: str
    dimension: int

    async def embed(self, text: str) -> list[float]:
        """Embed ``text`` into a dense vector of length ``dimension``."""
        ...
