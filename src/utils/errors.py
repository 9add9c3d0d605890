"""Custom exception hierarchy for the knowledge ingestion service.

All application exceptions inherit from :class:`KMSError`, which carries an
optional ``provider_name`` so error handlers can identify which external
service (e.g. "openai", "chromadb", "wiki") caused the failure, plus a
coarse ``kind`` and a ``retryable`` flag that drive HTTP mapping and the
local retry loop.

The hierarchy is organized by failure class:

    KMSError  (base -- catch-all for any service error)
    +-- InputValidationError       (empty/invalid input, bad split/merge args)
    +-- NotFoundError              (session, chunk or collection absent)
    |   +-- SessionNotFoundError
    |   +-- ChunkNotFoundError
    |   +-- CollectionNotFoundError
    +-- StateConflictError         (mutation outside DRAFT)
    |   +-- ConcurrentModificationError (optimistic write retries exhausted)
    +-- ForbiddenError             (role-gated operation)
    +-- UpstreamTransientError     (timeout, rate limit, 5xx, network)
    |   +-- RateLimitError
    |   +-- UpstreamTimeoutError
    |   +-- RAGError               (vector-store I/O failure)
    +-- UpstreamPermanentError     (auth failure, refusal, malformed output)
    |   +-- AuthenticationError
    |   +-- ChunkingParseError
    +-- IngestionError             (fetch/extract strategy failure)
    +-- ConfigurationError         (startup / missing config)

Callers branch on ``retryable`` rather than on concrete classes wherever
possible -- the retry helper in :mod:`src.utils.concurrency` only re-runs
operations whose error says it is safe to.
"""

from __future__ import annotations

from typing import Any


class KMSError(Exception):
    """Base exception for all service errors.

    Every subclass carries a human-readable ``message``, an optional
    ``provider_name`` and a ``context`` dict (model name, attempts, last
    upstream error) that is surfaced to API callers.  The ``__str__`` method
    prefixes the provider name in brackets, e.g. ``[openai] Rate limit exceeded``.
    """

    kind: str = "internal"
    default_retryable: bool = False

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        provider_name: str | None = None,
        retryable: bool | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        self._message = message
        self._provider_name = provider_name
        self._retryable = self.default_retryable if retryable is None else retryable
        self._context: dict[str, Any] = dict(context or {})
        super().__init__(self._message)

    @property
    def message(self) -> str:
        return self._message

    @property
    def provider_name(self) -> str | None:
        return self._provider_name

    @property
    def retryable(self) -> bool:
        return self._retryable

    @property
    def context(self) -> dict[str, Any]:
        return self._context

    def with_context(self, **values: Any) -> KMSError:
        """Attach extra context (attempts, last_error, ...) and return self."""
        self._context.update({k: v for k, v in values.items() if v is not None})
        return self

    def __str__(self) -> str:
        if self._provider_name:
            return f"[{self._provider_name}] {self._message}"
        return self._message


# ---------------------------------------------------------------------------
# Caller errors -- surfaced immediately, never retried
# ---------------------------------------------------------------------------

class InputValidationError(KMSError):
    """Raised for empty or malformed input before any external call is made."""

    kind = "validation"

    def __init__(
        self,
        message: str = "Invalid input",
        provider_name: str | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name, context=context)


class NotFoundError(KMSError):
    """Raised when an addressed resource does not exist."""

    kind = "not_found"

    def __init__(
        self,
        message: str = "Resource not found",
        provider_name: str | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name, context=context)


class SessionNotFoundError(NotFoundError):
    def __init__(self, session_id: str) -> None:
        super().__init__(
            message=f"Session {session_id} not found",
            context={"session_id": session_id},
        )


class ChunkNotFoundError(NotFoundError):
    def __init__(self, chunk_id: str, session_id: str | None = None) -> None:
        super().__init__(
            message=f"Chunk {chunk_id} not found",
            context={"chunk_id": chunk_id, "session_id": session_id},
        )


class CollectionNotFoundError(NotFoundError):
    def __init__(self, collection_id: str) -> None:
        super().__init__(
            message=f"Collection {collection_id} not found",
            context={"collection_id": collection_id},
        )


class StateConflictError(KMSError):
    """Raised when an operation is illegal in the session's current status."""

    kind = "state_conflict"

    def __init__(
        self,
        message: str = "Operation not allowed in the current state",
        provider_name: str | None = None,
        retryable: bool | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message=message,
            provider_name=provider_name,
            retryable=retryable,
            context=context,
        )


class ConcurrentModificationError(StateConflictError):
    """Raised when a compare-and-swap session write keeps losing the race."""

    default_retryable = True

    def __init__(self, session_id: str, attempts: int) -> None:
        super().__init__(
            message=f"Session {session_id} was modified concurrently; gave up after {attempts} attempts",
            context={"session_id": session_id, "attempts": attempts},
        )


class ForbiddenError(KMSError):
    """Raised when the caller's role does not permit the operation."""

    kind = "forbidden"

    def __init__(
        self,
        message: str = "Operation not permitted for this role",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Upstream errors -- LLM, embedding and vector-store calls
# ---------------------------------------------------------------------------

class UpstreamTransientError(KMSError):
    """Raised for failures that may succeed on retry (timeout, 5xx, network)."""

    kind = "upstream_transient"
    default_retryable = True

    def __init__(
        self,
        message: str = "Upstream service temporarily unavailable",
        provider_name: str | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name, context=context)


class RateLimitError(UpstreamTransientError):
    """Raised when an API rate limit is exceeded.

    ``retry_after`` carries the provider's hint in seconds when one was sent.
    """

    def __init__(
        self,
        message: str = "Rate limit exceeded",
        provider_name: str | None = None,
        retry_after: float | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name, context=context)
        self.retry_after = retry_after


class UpstreamTimeoutError(UpstreamTransientError):
    """Raised when an upstream call exceeds its own timeout."""

    def __init__(
        self,
        message: str = "Upstream call timed out",
        provider_name: str | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name, context=context)


class RAGError(UpstreamTransientError):
    """Raised when a vector-store operation fails."""

    def __init__(
        self,
        message: str = "Vector store operation failed",
        provider_name: str | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name, context=context)


class UpstreamPermanentError(KMSError):
    """Raised for upstream failures that retrying cannot fix."""

    kind = "upstream_permanent"

    def __init__(
        self,
        message: str = "Upstream service rejected the request",
        provider_name: str | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name, context=context)


class AuthenticationError(UpstreamPermanentError):
    """Raised when the upstream rejects our credentials."""


class ChunkingParseError(UpstreamPermanentError):
    """Raised when the model output is refused, truncated or fails the schema.

    ``raw_response`` keeps the offending payload for logging only.  The
    chunker marks it ``retryable`` while its local attempts last and
    re-raises it as permanent once they are exhausted.
    """

    def __init__(
        self,
        message: str = "Failed to parse chunking response",
        provider_name: str | None = None,
        raw_response: str | None = None,
        retryable: bool = False,
        context: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name, context=context)
        self._retryable = retryable
        self.raw_response = raw_response


# ---------------------------------------------------------------------------
# Ingestion / configuration errors
# ---------------------------------------------------------------------------

class IngestionError(KMSError):
    """Raised when a fetch/extract strategy fails.

    Strategies decide retryability themselves (a 503 from a wiki is
    retryable, a 404 is not); the flag propagates unchanged to the caller.
    """

    kind = "ingestion"

    def __init__(
        self,
        message: str = "Ingestion failed",
        provider_name: str | None = None,
        retryable: bool = False,
        context: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message=message,
            provider_name=provider_name,
            retryable=retryable,
            context=context,
        )


class ConfigurationError(KMSError):
    """Raised when configuration is invalid or missing at startup."""

    kind = "configuration"

    def __init__(
        self,
        message: str = "Invalid or missing configuration",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)
