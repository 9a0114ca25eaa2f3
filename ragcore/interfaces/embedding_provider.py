"""Abstract base class for text-embedding service providers.

Defines the "given text, return a vector" capability.  Providers are
raw adapters: they translate the backend's failures into
:class:`~ragcore.utils.errors.ProviderTransientError` (rate limit, timeout)
or :class:`~ragcore.utils.errors.ProviderError` and never retry on their
own.  Retrying and ordering guarantees live one level up in
:class:`~ragcore.services.embedding_client.EmbeddingClient`.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


# Concrete implementations:
#   OpenAIEmbeddingProvider -- text-embedding-ada-002 / text-embedding-3-*
# Located in: ragcore/providers/embedding/
class IEmbeddingProvider(ABC):
    """Contract for text-embedding services used by ingestion and retrieval."""

    @abstractmethod
    async def embed(self, texts: list[str]) -> list[list[float]]:
        """Generate embedding vectors for a batch of texts.

        Parameters
        ----------
        texts:
            Text strings to embed.  Implementations split the list
            internally if the backend has a per-call limit.

        Returns
        -------
        list[list[float]]
            Embedding vectors corresponding positionally to *texts*.  Each
            inner list has length equal to :meth:`get_dimension`.

        Raises
        ------
        ragcore.utils.errors.ProviderTransientError
            Rate limit or timeout; safe to retry.
        ragcore.utils.errors.ProviderError
            Any other backend failure.
        """

    @abstractmethod
    def get_dimension(self) -> int:
        """Return the dimensionality of the embedding vectors.

        Must stay constant for the lifetime of the instance and match the
        dimension the chunk store was created with.
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier, e.g. ``"openai-text-embedding-ada-002"``."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the provider is configured (credentials present)."""
