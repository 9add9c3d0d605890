"""Embedding provider implementations.

OpenAIEmbeddingProvider (text-embedding-3-small, 1536 dims) implements
IEmbeddingProvider.  Batching and retries are handled by
src/services/embedding_batcher.py.
"""

from src.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider

__all__ = ["OpenAIEmbeddingProvider"]
