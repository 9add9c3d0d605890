"""Vector store provider implementations.

ChromaDB is the sole vector store implementation.  Each knowledge-base
collection is a persistent Chroma collection with cosine distance; vectors
are computed by the embedding provider, never by Chroma itself.
"""

from src.providers.vector_store.chromadb_provider import ChromaDBProvider

__all__ = ["ChromaDBProvider"]
