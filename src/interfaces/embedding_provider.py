"""Abstract base class for text-embedding service providers.

Defines the contract for turning chunk texts into vectors.  Providers make
one remote call per :meth:`IEmbeddingProvider.embed` invocation; batching,
input validation and retries live in
:class:`~src.services.embedding_batcher.EmbeddingBatcher`.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


# Concrete implementation: OpenAIEmbeddingProvider (src/providers/embedding/)
class IEmbeddingProvider(ABC):
    """Contract for text-embedding services used at publish time."""

    @abstractmethod
    async def embed(self, texts: list[str], timeout: float | None = None) -> list[list[float]]:
        """Generate embedding vectors for one batch of texts.

        Parameters
        ----------
        texts:
            Non-empty strings, already sized to the provider's batch limit.
        timeout:
            Per-call timeout in seconds; provider default when ``None``.

        Returns
        -------
        list[list[float]]
            Vectors in the same order as *texts*.

        Raises
        ------
        src.utils.errors.UpstreamTransientError
            Timeout, rate limit, 5xx or connection failure.
        src.utils.errors.UpstreamPermanentError
            Authentication failure or a rejected request.
        """

    async def embed_single(self, text: str) -> list[float]:
        """Embed one string (e.g. a search query)."""
        result = await self.embed([text])
        return result[0]

    @abstractmethod
    def get_dimension(self) -> int:
        """Return the dimensionality of the embedding vectors.

        Example values: ``1536`` (``text-embedding-3-small``), ``3072``
        (``text-embedding-3-large``).
        """

    @abstractmethod
    def get_model_name(self) -> str:
        """Return the embedding model identifier."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier for this embedding provider."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the provider is configured."""
