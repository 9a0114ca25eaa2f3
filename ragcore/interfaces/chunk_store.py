"""Abstract base class for chunk persistence and search.

The chunk store keeps every :class:`~ragcore.models.chunk.Chunk` of every
project and answers the two queries hybrid retrieval needs: nearest
neighbours over embeddings and lexical relevance over text.

Identity rules every implementation must honour:

- ``unique_chunk_id`` is the natural key.  ``insert_many`` upserts on it,
  so resubmitting a batch after a partial failure never duplicates records.
- Chunks without an embedding are invisible to :meth:`vector_search` but
  remain visible to :meth:`text_search`.
- Writes to the same record may race; last write wins.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from ragcore.models.chunk import Chunk


# Concrete implementations:
#   ChromaDBChunkStore -- persistent ChromaDB collection, BM25 text ranking
# Located in: ragcore/providers/chunk_store/
class IChunkStore(ABC):
    """Contract for the storage collaborator behind ingestion and retrieval."""

    @abstractmethod
    async def insert_many(self, project_id: str, chunks: list[Chunk]) -> int:
        """Upsert *chunks* under *project_id*, keyed by ``unique_chunk_id``.

        Any ``embedding`` already on the chunk objects is ignored; vectors
        arrive separately through :meth:`update_embedding`.

        Returns
        -------
        int
            Number of chunks written.
        """

    @abstractmethod
    async def update_embedding(self, unique_chunk_id: str, vector: list[float]) -> None:
        """Attach *vector* to the chunk with id *unique_chunk_id*.

        Raises
        ------
        ragcore.utils.errors.ChunkNotFoundError
            No chunk with that id exists.
        ragcore.utils.errors.EmbeddingDimensionError
            ``len(vector)`` differs from the store's dimension.
        """

    @abstractmethod
    async def vector_search(
        self, project_id: str, query_vector: list[float], top_k: int
    ) -> list[str]:
        """Return up to *top_k* chunk ids of *project_id*, by ascending distance."""

    @abstractmethod
    async def text_search(self, project_id: str, query_text: str, top_k: int) -> list[Chunk]:
        """Return up to *top_k* chunks of *project_id*, by descending lexical relevance.

        Only chunks containing at least one query term are returned.
        """

    @abstractmethod
    async def get_chunks(self, unique_chunk_ids: list[str]) -> list[Chunk]:
        """Fetch chunks by id, in the order requested.  Unknown ids are skipped."""

    @abstractmethod
    async def delete_document_chunks(self, project_id: str, document_id: str) -> int:
        """Remove every chunk of one document.  Returns the number deleted."""

    @abstractmethod
    async def count_chunks(self, project_id: str) -> int:
        """Return the number of stored chunks for *project_id*."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier, e.g. ``"chromadb"``."""
