"""Application settings loaded from environment variables via pydantic-settings.

Values are read from (highest priority first):

  1. Environment variables, e.g. ``OPENAI_API_KEY=sk-abc123``
  2. The ``.env`` file in the project root (local development)
  3. The defaults declared below

Field ``chunk_max_tokens`` maps to env var ``CHUNK_MAX_TOKENS``; the mapping
is automatic.  Cross-field constraints (token thresholds, window overlap)
are checked once at construction and raise :class:`ConfigurationError`.
"""

from __future__ import annotations

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from src.utils.errors import ConfigurationError


class Settings(BaseSettings):
    """Knowledge ingestion service settings."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    # === OpenAI (chunking + embeddings) ===
    openai_api_key: str = ""
    openai_base_url: str = ""  # OpenAI-compatible endpoint override
    chunking_model: str = "gpt-4o"
    embedding_model: str = "text-embedding-3-small"

    # === LLM chunking ===
    chunking_timeout: float = 60.0
    chunking_max_retries: int = 2
    chunking_max_content_length: int = 30000  # chars per LLM window
    chunking_window_overlap: int = 500
    chunking_concurrency: int = 3
    chunk_target_tokens: int = 300
    chunk_max_tokens: int = 700
    chunk_min_tokens: int = 50
    tagging_enabled: bool = True  # LLM tags per chunk at publish

    # === Embeddings ===
    embedding_timeout: float = 30.0
    embedding_max_retries: int = 2
    embedding_batch_size: int = 100
    retry_backoff_base: float = 0.5

    # === Vector store ===
    vector_store_dir: str = "./data/chromadb"
    vector_store_timeout: float = 30.0
    vector_store_max_retries: int = 2
    collection_prefix: str = "kb_"

    # === Draft sessions ===
    session_backend: str = "memory"  # "memory" | "sqlite"
    session_db_path: str = "data/draft_sessions.db"
    session_ttl: int = 86400
    session_max_sessions: int = 10000
    session_update_retries: int = 5

    # === Ingestion strategies ===
    manual_min_content_length: int = 1
    manual_max_content_length: int = 1_000_000
    web_fetch_timeout: float = 15.0
    web_user_agent: str = "kms-ingest/0.1 (+https://example.invalid/bot)"
    web_max_content_length: int = 5 * 1024 * 1024
    wiki_base_url: str = ""
    wiki_user_email: str = ""
    wiki_api_token: str = ""

    # === App Config ===
    app_host: str = "0.0.0.0"
    app_port: int = 8000
    app_env: str = "development"
    log_level: str = "INFO"

    @model_validator(mode="after")
    def _check_bounds(self) -> Settings:
        if not (0 < self.chunk_min_tokens <= self.chunk_target_tokens <= self.chunk_max_tokens):
            raise ConfigurationError(
                "chunk token bounds must satisfy 0 < min <= target <= max "
                f"(got {self.chunk_min_tokens}/{self.chunk_target_tokens}/{self.chunk_max_tokens})"
            )
        if self.chunking_max_content_length <= 0:
            raise ConfigurationError("chunking_max_content_length must be positive")
        if not 0 <= self.chunking_window_overlap < self.chunking_max_content_length // 2 + 1:
            raise ConfigurationError(
                "chunking_window_overlap must be at most half of chunking_max_content_length"
            )
        if self.embedding_batch_size <= 0:
            raise ConfigurationError("embedding_batch_size must be positive")
        if self.vector_store_max_retries < 0:
            raise ConfigurationError("vector_store_max_retries must not be negative")
        if self.session_backend not in ("memory", "sqlite"):
            raise ConfigurationError(
                f"Unknown session_backend '{self.session_backend}' (expected memory or sqlite)"
            )
        return self

    def wiki_configured(self) -> bool:
        """Return ``True`` when every wiki credential is present."""
        return bool(self.wiki_base_url and self.wiki_user_email and self.wiki_api_token)
