"""Public interface definitions for all external service providers.

Business logic talks to external systems only through the abstract base
classes defined here.  Concrete adapters live in ``src/providers/`` and are
wired together in ``src/main.py``; tests inject fakes instead.

CONCRETE PROVIDER MAP:
    Interface              ->  Concrete implementations (in src/providers/)
    ILLMProvider           ->  OpenAILLMProvider
    IEmbeddingProvider     ->  OpenAIEmbeddingProvider
    IVectorStoreProvider   ->  ChromaDBProvider
    ISessionStore          ->  MemorySessionStore, SQLiteSessionStore
    IIngestStrategy        ->  ManualStrategy, WebStrategy, WikiStrategy
    IChunkClassifier       ->  KeywordChunkClassifier (src/services/chunking)
"""

from src.interfaces.chunk_classifier import IChunkClassifier
from src.interfaces.embedding_provider import IEmbeddingProvider
from src.interfaces.ingest_strategy import IIngestStrategy, IngestResult
from src.interfaces.llm_provider import ILLMProvider, LLMCompletion
from src.interfaces.session_store import ISessionStore
from src.interfaces.vector_store_provider import IVectorStoreProvider

__all__ = [
    "IChunkClassifier",
    "IEmbeddingProvider",
    "IIngestStrategy",
    "ILLMProvider",
    "ISessionStore",
    "IVectorStoreProvider",
    "IngestResult",
    "LLMCompletion",
]
