"""Embedding batcher -- validated, batched, retried embedding calls.

Texts are checked before any remote call (an empty or whitespace-only text
is a caller error), split into batches of ``batch_size`` and embedded one
batch at a time.  Each batch call is wrapped in
:func:`~src.utils.concurrency.retry_async`; the surfaced error carries the
model name, batch index, attempt count and last upstream error.
"""

from __future__ import annotations

import time

import structlog

from src.interfaces.embedding_provider import IEmbeddingProvider
from src.utils.concurrency import retry_async
from src.utils.errors import InputValidationError, KMSError, UpstreamPermanentError

logger = structlog.get_logger(logger_name=__name__)


class EmbeddingBatcher:
    """Turn chunk texts into vectors, order preserved.

    Parameters
    ----------
    provider:
        Remote embedding provider.
    batch_size:
        Maximum texts per provider call.
    max_retries:
        Retries per batch for retryable failures.
    timeout:
        Per-call timeout passed to the provider.
    backoff_base:
        Base for exponential retry backoff.
    """

    def __init__(
        self,
        provider: IEmbeddingProvider,
        batch_size: int = 100,
        max_retries: int = 2,
        timeout: float = 30.0,
        backoff_base: float = 0.5,
    ) -> None:
        if batch_size <= 0:
            raise ValueError("batch_size must be positive")
        self._provider = provider
        self._batch_size = batch_size
        self._max_retries = max_retries
        self._timeout = timeout
        self._backoff_base = backoff_base

    async def embed(self, texts: list[str]) -> list[list[float]]:
        """Return one vector per text, in input order.

        Raises
        ------
        InputValidationError
            If any text is empty or whitespace-only (before any call).
        src.utils.errors.UpstreamTransientError
            If a batch keeps failing transiently after retries.
        src.utils.errors.UpstreamPermanentError
            On authentication failure, a rejected request, or a provider
            returning the wrong number of vectors.
        """
        if not texts:
            return []
        for index, text in enumerate(texts):
            if not text or not text.strip():
                raise InputValidationError(f"Text at index {index} cannot be empty or whitespace-only")

        model = self._provider.get_model_name()
        started = time.monotonic()
        vectors: list[list[float]] = []

        for batch_index, start in enumerate(range(0, len(texts), self._batch_size)):
            batch = texts[start : start + self._batch_size]
            try:
                batch_vectors = await retry_async(
                    lambda batch=batch: self._provider.embed(batch, timeout=self._timeout),
                    max_retries=self._max_retries,
                    backoff_base=self._backoff_base,
                    operation_name="embedding_batch",
                    logger=logger,
                    batch=batch_index,
                    model=model,
                )
            except KMSError as exc:
                exc.with_context(model=model, batch=batch_index)
                logger.error(
                    "embedding_failure",
                    model=model,
                    batch=batch_index,
                    error_type=type(exc).__name__,
                    error=exc.message,
                    retryable=exc.retryable,
                )
                raise

            if len(batch_vectors) != len(batch):
                raise UpstreamPermanentError(
                    f"Embedding provider returned {len(batch_vectors)} vectors for {len(batch)} texts",
                    provider_name=self._provider.get_provider_name(),
                    context={"model": model, "batch": batch_index},
                )
            vectors.extend(batch_vectors)

        logger.info(
            "embedding_success",
            model=model,
            texts=len(texts),
            batches=-(-len(texts) // self._batch_size),
            duration_ms=int((time.monotonic() - started) * 1000),
        )
        return vectors
