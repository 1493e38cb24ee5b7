"""Factory helpers for vector backends."""

from __future__ import annotations

from typing import TYPE_CHECKING

from semindex.vectordb.numpy_store import NumpyBackend

if TYPE_CHECKING:
    from semindex.vectordb.faiss_store import FaissBackend
    from semindex.vectordb.protocols import VectorBackend


def create_backend(backend: str, dim: int) -> VectorBackend:
    """Create a vector backend for the requested name."""
    if backend == "faiss":
        try:
            from semindex.vectordb.faiss_store import FaissBackend
        except ImportError as exc:
            message = (
                "FAISS backend requires optional dependencies. Install the faiss-cpu package "
                "or select the numpy backend."
            )
            raise ValueError(message) from exc
        index: FaissBackend = FaissBackend(dim)
        return index
    if backend == "numpy":
        return NumpyBackend(dim)
    message = f"unknown vector backend: {backend}"
    raise ValueError(message)
