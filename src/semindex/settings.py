"""Application settings loaded from environment variables."""

from __future__ import annotations

from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Configuration object for the semantic index runtime."""

    model_config = SettingsConfigDict(env_prefix="SEMINDEX_", env_file=".env", extra="allow")

    # Logging
    log_level: str = "INFO"
    log_json: bool = True

    # Backends (Factory keys)
    embed_backend: str = "openai"
    vector_backend: str = "faiss"
    hash_dimension: int = 256

    # OpenAI
    openai_api_key: str | None = None
    openai_base_url: str | None = None
    openai_embedding_model: str = "text-embedding-3-small"

    # Storage
    index_path: Path = Path(".semindex/index.zip")

    # Search
    chunking: bool = False
    default_split: int = 0
