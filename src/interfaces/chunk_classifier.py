"""Abstract base class for chunk-type classifiers.

The semantic chunker calls :meth:`IChunkClassifier.classify` once per prose
chunk and never inspects how the decision is made, so a model-based
classifier can replace the keyword heuristic without touching chunker
control flow.  Implementations must be pure: same text, same answer.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from src.models.chunk import ChunkType


# Concrete implementation: KeywordChunkClassifier (src/services/chunking/)
class IChunkClassifier(ABC):
    @abstractmethod
    def classify(self, text: str) -> ChunkType:
        """Return the coarse semantic type of *text*."""
