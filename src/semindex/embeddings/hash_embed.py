"""Deterministic offline embedding provider based on token hashing."""

from __future__ import annotations

import hashlib
import re

import numpy as np

from semindex.embeddings.protocols import EmbeddingProvider

_TOKEN_PATTERN = re.compile(r"\w+", re.UNICODE)


class HashEmbedding(EmbeddingProvider):
    """Bag-of-words embedding where each token hashes into a signed bucket.

    Texts sharing vocabulary land close to each other, which is enough for
    tests and offline experiments without a model server.
    """

    def __init__(self, dimension: int = 256) -> None:
        """Initialise the provider with ``dimension`` buckets."""
        if dimension <= 0:
            message = f"dimension must be positive, received {dimension}"
            raise ValueError(message)
        self.dimension = dimension
        self.name = f"hash:{dimension}"

    async def embed(self, text: str) -> list[float]:
        """Return the normalised bucket counts of ``text``."""
        vector = np.zeros(self.dimension, dtype="float32")
        for token in _TOKEN_PATTERN.findall(text.lower()):
            digest = hashlib.blake2b(token.encode("utf-8"), digest_size=8).digest()
            value = int.from_bytes(digest, "little")
            sign = 1.0 if value & 1 else -1.0
            vector[(value >> 1) % self.dimension] += sign
        norm = float(np.linalg.norm(vector))
        if norm > 0.0:
            vector /= norm
        return [float(value) for value in vector]
