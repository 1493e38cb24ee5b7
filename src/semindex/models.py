"""Data models for persisted index state and plugin configuration."""

from __future__ import annotations

from pydantic import BaseModel, Field

FORMAT_VERSION = 1


def _default_delimiters() -> list[str]:
    """Return the default sentence delimiters."""
    return [".", "!", "?", ":", ";", "\n", "\r"]


class IndexMetadata(BaseModel):
    """Counters and configuration written alongside a saved index."""

    format_version: int = FORMAT_VERSION
    next_key: int = Field(ge=0)
    next_session: int = Field(ge=0)
    backend: str
    dim: int = Field(ge=1)
    document_count: int = Field(ge=0)


class CorpusSnapshot(BaseModel):
    """Document text keyed by document key."""

    documents: dict[int, str] = Field(default_factory=dict)


class SplitSnapshot(BaseModel):
    """Ordered split membership keyed by split id."""

    splits: dict[int, list[int]] = Field(default_factory=dict)


class PluginConfig(BaseModel):
    """Base class for persisted plugin configuration."""


class ChunkingConfig(PluginConfig):
    """Configuration of the sentence chunking plugin."""

    delimiters: list[str] = Field(default_factory=_default_delimiters, min_length=1)
    return_chunks: bool = False


class ChunkingState(BaseModel):
    """Phrase bookkeeping persisted by the chunking plugin."""

    next_key: int = Field(default=0, ge=0)
    phrases: dict[int, list[int]] = Field(default_factory=dict)
    splits: dict[int, list[int]] = Field(default_factory=dict)
