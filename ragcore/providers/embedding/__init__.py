"""Embedding provider implementations.

Embeddings convert chunk text into fixed-dimension vectors stored next to
the chunk in the chunk store and compared at query time.

    OpenAIEmbeddingProvider -- text-embedding-ada-002 (1536 dims) by default;
    any OpenAI-compatible endpoint via OPENAI_BASE_URL.
"""

from ragcore.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider

__all__ = ["OpenAIEmbeddingProvider"]
