"""Exception taxonomy for the semantic index."""

from __future__ import annotations


class SemIndexError(Exception):
    """Base class for all errors raised by semindex."""


class UnknownSessionError(SemIndexError):
    """Raised when paging a search session that is closed, completed, or was never opened."""

    def __init__(self, handle: int) -> None:
        """Record the offending session handle."""
        super().__init__(f"unknown search session: {handle}")
        self.handle = handle


class EmbeddingUnavailableError(SemIndexError):
    """Raised when the embedding provider cannot produce a vector."""


class BackendUnavailableError(SemIndexError):
    """Raised when the vector backend rejects a request."""


class CorruptArchiveError(SemIndexError):
    """Raised when a persisted archive is missing blocks or holds malformed data."""
