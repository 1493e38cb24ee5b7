"""OpenAI embedding provider implementation."""

from __future__ import annotations


from typing import TYPE_CHECKING

from openai import AsyncOpenAI, OpenAIError

from semindex.embeddings.protocols import EmbeddingProvider
from semindex.errors import EmbeddingUnavailableError

if TYPE_CHECKING:
    from collections.abc import Sequence


MODEL_DIMENSIONS: dict[str, int] = {
    "text-embedding-3-large": 3072,
    "text-embedding-3-small": 1536,
    "text-embedding-ada-002": 1536,
}


class OpenAIEmbedding(EmbeddingProvider):
    """Wrapper around the asynchronous OpenAI embeddings API."""

    def __init__(
        self,
        api_key: str | None,
        base_url: str | None,
        model: str,
        client: AsyncOpenAI | None = None,
    ) -> None:
        """Initialise the embedding provider."""
        if api_key is None or not api_key.strip():
            message = "api_key must be provided for the OpenAI embedding provider"
            raise ValueError(message)
        try:
            self.dimension = MODEL_DIMENSIONS[model]
        except KeyError as error:
            message = f"unsupported embedding model: {model}"
            raise ValueError(message) from error
        self.client = client if client is not None else AsyncOpenAI(api_key=api_key, base_url=base_url)
        self.model = model
        self.name = f"openai:{model}"

    async def embed(self, text: str) -> list[float]:
        """Return the embedding for ``text``."""
        try:
            response = await self.client.embeddings.create(model=self.model, input=[text])
        except OpenAIError as exc:
            message = f"OpenAI embedding request failed: {exc}"
            raise EmbeddingUnavailableError(message) from exc
        if not response.data:
            message = "OpenAI embedding response contained no vectors"
            raise EmbeddingUnavailableError(message)
        vector = _to_float_list(response.data[0].embedding)
        if len(vector) != self.dimension:
            message = (
                "embedding dimension mismatch: "
                f"expected {self.dimension}, received {len(vector)}"
            )
            raise EmbeddingUnavailableError(message)
        return vector


def _to_float_list(values: Sequence[float]) -> list[float]:
    """Convert a sequence of floats to a list of built-in floats."""
    return [float(value) for value in values]
