"""Hybrid (vector + lexical) chunk retrieval.

Merge rule, kept deliberately simple so results are predictable:

    1. embed the query
    2. vector search and text search, concurrently
    3. vector hits first, then text hits
    4. drop repeated chunk ids, keeping the first occurrence
    5. truncate to top_k

No re-ranking happens beyond this.  A chunk found by both searches keeps
its vector-search position.
"""

from __future__ import annotations

import asyncio

import structlog

from ragcore.interfaces.chunk_store import IChunkStore
from ragcore.models.chunk import Chunk, SearchHit, SearchSource
from ragcore.services.embedding_client import EmbeddingClient

logger = structlog.get_logger(logger_name=__name__)


def merge_hits(
    vector_hits: list[SearchHit],
    text_hits: list[SearchHit],
    top_k: int,
) -> list[SearchHit]:
    """Concatenate vector then text hits, dedupe by chunk id, truncate to *top_k*."""
    merged: list[SearchHit] = []
    seen: set[str] = set()
    for hit in [*vector_hits, *text_hits]:
        chunk_id = hit.chunk.unique_chunk_id
        if chunk_id in seen:
            continue
        seen.add(chunk_id)
        merged.append(hit)
    return merged[: max(top_k, 0)]


class HybridRetriever:
    """Retrieves the chunks of a project most relevant to a query.

    Parameters
    ----------
    chunk_store:
        Store providing vector search, text search and chunk lookup.
    embedding_client:
        Embeds the query text; must be the same model that embedded the
        stored chunks.
    default_top_k:
        Used when a caller passes ``top_k=None``.
    """

    def __init__(
        self,
        chunk_store: IChunkStore,
        embedding_client: EmbeddingClient,
        default_top_k: int = 5,
    ) -> None:
        self._chunk_store = chunk_store
        self._embedding_client = embedding_client
        self._default_top_k = default_top_k

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def retrieve(
        self, project_id: str, query_text: str, top_k: int | None = None
    ) -> list[Chunk]:
        """Return at most *top_k* chunks, vector matches first."""
        hits = await self.retrieve_hits(project_id, query_text, top_k)
        return [hit.chunk for hit in hits]

    async def retrieve_hits(
        self, project_id: str, query_text: str, top_k: int | None = None
    ) -> list[SearchHit]:
        """Like :meth:`retrieve` but keeps which search produced each chunk.

        Returns
        -------
        list[SearchHit]
            Merged hits; ``rank`` is the position within the originating
            search's own result list.
        """
        top_k = self._default_top_k if top_k is None else top_k
        if top_k <= 0 or not query_text.strip():
            return []

        query_vector = await self._embedding_client.embed_query(query_text)
        vector_ids, text_chunks = await asyncio.gather(
            self._chunk_store.vector_search(project_id, query_vector, top_k),
            self._chunk_store.text_search(project_id, query_text, top_k),
        )
        vector_chunks = await self._chunk_store.get_chunks(vector_ids)

        vector_hits = [
            SearchHit(source=SearchSource.VECTOR, chunk=chunk, rank=rank)
            for rank, chunk in enumerate(vector_chunks)
        ]
        text_hits = [
            SearchHit(source=SearchSource.TEXT, chunk=chunk, rank=rank)
            for rank, chunk in enumerate(text_chunks)
        ]
        merged = merge_hits(vector_hits, text_hits, top_k)

        logger.info(
            "hybrid_retrieve_complete",
            project_id=project_id,
            vector_hits=len(vector_hits),
            text_hits=len(text_hits),
            returned=len(merged),
            top_k=top_k,
        )
        return merged
