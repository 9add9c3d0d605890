"""Utility modules for the knowledge ingestion service.

- **errors** -- exception hierarchy rooted at KMSError; ``retryable`` and
  ``kind`` drive the local retry loop and HTTP status mapping.
- **concurrency** -- bounded fan-out and retry with exponential backoff.
- **logging** -- structlog setup: coloured console output in development,
  JSON in production.
- **text_normalizer** -- hashing normalization, URL canonicalization,
  source ids, language detection and tag cleanup.
"""

from src.utils.concurrency import retry_async, throttled_gather
from src.utils.errors import (
    ConfigurationError,
    InputValidationError,
    KMSError,
    NotFoundError,
    StateConflictError,
    UpstreamPermanentError,
    UpstreamTransientError,
)
from src.utils.logging import configure_logging, get_logger
from src.utils.text_normalizer import compute_content_hash, derive_source_id

__all__ = [
    "ConfigurationError",
    "InputValidationError",
    "KMSError",
    "NotFoundError",
    "StateConflictError",
    "UpstreamPermanentError",
    "UpstreamTransientError",
    "compute_content_hash",
    "configure_logging",
    "derive_source_id",
    "get_logger",
    "retry_async",
    "throttled_gather",
]
