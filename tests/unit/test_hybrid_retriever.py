"""Unit tests for HybridRetriever and the merge rule."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from ragcore.interfaces.chunk_store import IChunkStore
from ragcore.models.chunk import Chunk, SearchHit, SearchSource
from ragcore.services.embedding_client import EmbeddingClient
from ragcore.services.retrieval.hybrid_retriever import HybridRetriever, merge_hits
from tests.conftest import InMemoryChunkStore, hash_to_vector, make_chunk


def _chunks(*names: str) -> dict[str, Chunk]:
    return {
        name: make_chunk(i + 1, f"text of {name}", unique_chunk_id=name)
        for i, name in enumerate(names)
    }


def _store(vector_ids: list[str], text_ids: list[str], by_id: dict[str, Chunk]) -> MagicMock:
    store = MagicMock(spec=IChunkStore)
    store.vector_search = AsyncMock(return_value=vector_ids)
    store.text_search = AsyncMock(return_value=[by_id[i] for i in text_ids])
    store.get_chunks = AsyncMock(side_effect=lambda ids: [by_id[i] for i in ids if i in by_id])
    return store


@pytest.fixture()
def overlapping() -> tuple[MagicMock, dict[str, Chunk]]:
    """3 vector hits and 4 text hits sharing the id ``common``."""
    by_id = _chunks("v1", "v2", "common", "t1", "t2", "t3")
    return _store(["v1", "v2", "common"], ["t1", "common", "t2", "t3"], by_id), by_id


class TestHybridRetriever:
    @pytest.mark.asyncio
    async def test_overlap_returns_each_chunk_once(
        self, overlapping, embedding_client: EmbeddingClient
    ) -> None:
        store, _ = overlapping
        retriever = HybridRetriever(store, embedding_client)

        chunks = await retriever.retrieve("proj-1", "foxes", top_k=10)

        ids = [c.unique_chunk_id for c in chunks]
        assert ids == ["v1", "v2", "common", "t1", "t2", "t3"]
        assert ids.count("common") == 1

    @pytest.mark.asyncio
    async def test_truncates_to_top_k(self, overlapping, embedding_client: EmbeddingClient) -> None:
        store, _ = overlapping
        chunks = await HybridRetriever(store, embedding_client).retrieve("proj-1", "foxes", top_k=5)
        assert [c.unique_chunk_id for c in chunks] == ["v1", "v2", "common", "t1", "t2"]

    @pytest.mark.asyncio
    async def test_shared_chunk_keeps_vector_position_and_source(
        self, overlapping, embedding_client: EmbeddingClient
    ) -> None:
        store, _ = overlapping
        hits = await HybridRetriever(store, embedding_client).retrieve_hits(
            "proj-1", "foxes", top_k=10
        )
        common = next(h for h in hits if h.chunk.unique_chunk_id == "common")
        assert hits.index(common) == 2
        assert common.source is SearchSource.VECTOR
        assert common.rank == 2
        assert [h.source for h in hits[3:]] == [SearchSource.TEXT] * 3

    @pytest.mark.asyncio
    async def test_searches_use_query_embedding_and_top_k(
        self, overlapping, embedding_client: EmbeddingClient
    ) -> None:
        store, _ = overlapping
        await HybridRetriever(store, embedding_client).retrieve("proj-1", "foxes", top_k=3)

        store.vector_search.assert_awaited_once_with("proj-1", hash_to_vector("foxes"), 3)
        store.text_search.assert_awaited_once_with("proj-1", "foxes", 3)
        store.get_chunks.assert_awaited_once_with(["v1", "v2", "common"])

    @pytest.mark.asyncio
    async def test_default_top_k(self, overlapping, embedding_client: EmbeddingClient) -> None:
        store, _ = overlapping
        retriever = HybridRetriever(store, embedding_client, default_top_k=2)
        assert len(await retriever.retrieve("proj-1", "foxes")) == 2

    @pytest.mark.asyncio
    async def test_blank_query_or_zero_top_k(
        self, overlapping, embedding_client: EmbeddingClient
    ) -> None:
        store, _ = overlapping
        retriever = HybridRetriever(store, embedding_client)
        assert await retriever.retrieve("proj-1", "   ", top_k=5) == []
        assert await retriever.retrieve("proj-1", "foxes", top_k=0) == []
        store.vector_search.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_vector_id_missing_from_store_is_skipped(
        self, embedding_client: EmbeddingClient
    ) -> None:
        by_id = _chunks("v1", "t1")
        store = _store(["gone", "v1"], ["t1"], by_id)
        chunks = await HybridRetriever(store, embedding_client).retrieve("proj-1", "q", top_k=5)
        assert [c.unique_chunk_id for c in chunks] == ["v1", "t1"]

    @pytest.mark.asyncio
    async def test_against_in_memory_store(
        self, chunk_store: InMemoryChunkStore, embedding_client: EmbeddingClient
    ) -> None:
        fox = make_chunk(1, "Foxes are quick.")
        owl = make_chunk(2, "Owls hoot at night.")
        await chunk_store.insert_many("proj-1", [fox, owl])
        await chunk_store.update_embedding(owl.unique_chunk_id, hash_to_vector("foxes"))

        chunks = await HybridRetriever(chunk_store, embedding_client).retrieve(
            "proj-1", "foxes", top_k=5
        )

        assert [c.unique_chunk_id for c in chunks] == [owl.unique_chunk_id, fox.unique_chunk_id]


class TestMergeHits:
    def test_first_occurrence_wins(self) -> None:
        a, b = make_chunk(1, unique_chunk_id="a"), make_chunk(2, unique_chunk_id="b")
        vector = [SearchHit(source=SearchSource.VECTOR, chunk=a, rank=0)]
        text = [
            SearchHit(source=SearchSource.TEXT, chunk=b, rank=0),
            SearchHit(source=SearchSource.TEXT, chunk=a, rank=1),
        ]
        merged = merge_hits(vector, text, top_k=5)
        assert [(h.chunk.unique_chunk_id, h.source) for h in merged] == [
            ("a", SearchSource.VECTOR),
            ("b", SearchSource.TEXT),
        ]

    def test_empty_inputs(self) -> None:
        assert merge_hits([], [], top_k=5) == []
