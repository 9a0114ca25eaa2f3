"""Abstract interfaces (contracts) for ragcore's external collaborators.

Provider map::

    IEmbeddingProvider       -> providers/embedding/   (OpenAI)
    ILLMProvider             -> providers/llm/         (OpenAI)
    IChunkStore              -> providers/chunk_store/ (ChromaDB)
    IDocumentStatusProvider  -> providers/status/      (SQLite)
    IObjectStore             -> providers/object_store/ (HTTP, filesystem)

Services depend only on these ABCs; ``ragcore.main`` picks the concrete
adapters and injects them.
"""

from ragcore.interfaces.chunk_store import IChunkStore
from ragcore.interfaces.document_status_provider import IDocumentStatusProvider
from ragcore.interfaces.embedding_provider import IEmbeddingProvider
from ragcore.interfaces.llm_provider import ILLMProvider
from ragcore.interfaces.object_store import IObjectStore

__all__ = [
    "IChunkStore",
    "IDocumentStatusProvider",
    "IEmbeddingProvider",
    "ILLMProvider",
    "IObjectStore",
]
