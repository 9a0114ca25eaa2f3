"""Shared pytest fixtures for the ragcore test suite."""

from __future__ import annotations

import hashlib
import math
from datetime import datetime
from unittest.mock import AsyncMock, MagicMock

import pytest

from ragcore.interfaces.chunk_store import IChunkStore
from ragcore.interfaces.document_status_provider import IDocumentStatusProvider
from ragcore.interfaces.embedding_provider import IEmbeddingProvider
from ragcore.interfaces.llm_provider import ILLMProvider
from ragcore.interfaces.object_store import IObjectStore
from ragcore.models.chunk import Chunk, ChunkMetadata
from ragcore.models.document import ProcessingStatus
from ragcore.services.embedding_client import EmbeddingClient
from ragcore.services.retrieval.lexical import rank_lexical
from ragcore.utils.errors import ChunkNotFoundError, DocumentNotFoundError
from ragcore.utils.retry import RetryPolicy

EMBEDDING_DIM = 8


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def hash_to_vector(text: str, dim: int = EMBEDDING_DIM) -> list[float]:
    """Deterministic unit vector derived from the SHA-256 of *text*."""
    raw = hashlib.sha256(text.encode("utf-8")).digest()
    while len(raw) < dim:
        raw += hashlib.sha256(raw).digest()
    values = [b / 255.0 - 0.5 for b in raw[:dim]]
    magnitude = max(math.sqrt(sum(v * v for v in values)), 1e-10)
    return [v / magnitude for v in values]


def make_chunk(
    number: int = 1,
    text: str = "Foxes are quick.",
    project_id: str = "proj-1",
    document_id: str = "doc-1",
    unique_chunk_id: str | None = None,
    page_number: int | None = 1,
    headings: list[str] | None = None,
    embedding: list[float] | None = None,
) -> Chunk:
    return Chunk(
        project_id=project_id,
        document_id=document_id,
        unique_chunk_id=unique_chunk_id or f"{document_id}-chunk-{number}",
        chunk_number=number,
        page_content=text,
        metadata=ChunkMetadata(
            doc_title="Field Guide",
            doc_author="A. Naturalist",
            page_number=page_number,
            headings=headings or [],
        ),
        embedding=embedding,
    )


# ---------------------------------------------------------------------------
# In-memory providers
# ---------------------------------------------------------------------------


class MockEmbeddingProvider(IEmbeddingProvider):
    """Deterministic hash-based embeddings; counts provider calls."""

    def __init__(self, dim: int = EMBEDDING_DIM) -> None:
        self._dim = dim
        self.calls = 0

    async def embed(self, texts: list[str]) -> list[list[float]]:
        self.calls += 1
        return [hash_to_vector(t, self._dim) for t in texts]

    def get_dimension(self) -> int:
        return self._dim

    def get_provider_name(self) -> str:
        return "mock-embedding"

    def is_available(self) -> bool:
        return True


class InMemoryChunkStore(IChunkStore):
    """Dict-backed chunk store with cosine vector search and BM25 text search."""

    def __init__(self) -> None:
        self.chunks: dict[str, Chunk] = {}
        self.insert_calls = 0
        self.update_calls = 0

    async def insert_many(self, project_id: str, chunks: list[Chunk]) -> int:
        self.insert_calls += 1
        for chunk in chunks:
            self.chunks[chunk.unique_chunk_id] = chunk.model_copy(
                update={"project_id": project_id, "embedding": None}
            )
        return len(chunks)

    async def update_embedding(self, unique_chunk_id: str, vector: list[float]) -> None:
        self.update_calls += 1
        if unique_chunk_id not in self.chunks:
            raise ChunkNotFoundError(unique_chunk_id, provider_name="memory")
        self.chunks[unique_chunk_id] = self.chunks[unique_chunk_id].model_copy(
            update={"embedding": list(vector)}
        )

    async def vector_search(
        self, project_id: str, query_vector: list[float], top_k: int
    ) -> list[str]:
        scored = [
            (sum(a * b for a, b in zip(query_vector, c.embedding)), c.unique_chunk_id)
            for c in self.chunks.values()
            if c.project_id == project_id and c.embedding is not None
        ]
        scored.sort(key=lambda item: (-item[0], item[1]))
        return [chunk_id for _, chunk_id in scored[:top_k]]

    async def text_search(self, project_id: str, query_text: str, top_k: int) -> list[Chunk]:
        candidates = [c for c in self.chunks.values() if c.project_id == project_id]
        return rank_lexical(query_text, candidates, top_k)

    async def get_chunks(self, unique_chunk_ids: list[str]) -> list[Chunk]:
        return [self.chunks[cid] for cid in unique_chunk_ids if cid in self.chunks]

    async def delete_document_chunks(self, project_id: str, document_id: str) -> int:
        doomed = [
            cid
            for cid, c in self.chunks.items()
            if c.project_id == project_id and c.document_id == document_id
        ]
        for cid in doomed:
            del self.chunks[cid]
        return len(doomed)

    async def count_chunks(self, project_id: str) -> int:
        return sum(1 for c in self.chunks.values() if c.project_id == project_id)

    def get_provider_name(self) -> str:
        return "memory"


class InMemoryStatusProvider(IDocumentStatusProvider):
    """Keeps the latest status per document plus every progress value written."""

    def __init__(self) -> None:
        self.statuses: dict[str, ProcessingStatus] = {}
        self.progress_history: dict[str, list[int]] = {}

    async def initialize(self) -> None:
        return None

    async def update_document_status(
        self,
        document_id: str,
        *,
        progress: int | None = None,
        is_processing: bool | None = None,
        is_processed: bool | None = None,
        processed_at: datetime | None = None,
        error: str | None = None,
        chunks_expected: int | None = None,
        chunks_inserted: int | None = None,
        chunks_embedded: int | None = None,
    ) -> ProcessingStatus:
        current = self.statuses.get(document_id, ProcessingStatus(document_id=document_id))
        updates: dict = {
            name: value
            for name, value in (
                ("is_processing", is_processing),
                ("is_processed", is_processed),
                ("processed_at", processed_at),
                ("chunks_expected", chunks_expected),
                ("chunks_inserted", chunks_inserted),
                ("chunks_embedded", chunks_embedded),
            )
            if value is not None
        }
        if progress is not None:
            updates["progress"] = progress
            self.progress_history.setdefault(document_id, []).append(progress)
        if error is not None:
            updates["error"] = error or None
        status = current.model_copy(update=updates)
        self.statuses[document_id] = status
        return status

    async def reset_document_status(self, document_id: str) -> ProcessingStatus:
        status = ProcessingStatus(document_id=document_id, is_processing=True)
        self.statuses[document_id] = status
        self.progress_history.setdefault(document_id, []).append(0)
        return status

    async def get_document_status(self, document_id: str) -> ProcessingStatus | None:
        return self.statuses.get(document_id)

    def get_provider_name(self) -> str:
        return "memory"


class InMemoryObjectStore(IObjectStore):
    def __init__(self, files: dict[str, bytes] | None = None) -> None:
        self.files = dict(files or {})

    async def get_document_bytes(self, file_id: str) -> bytes:
        if file_id not in self.files:
            raise DocumentNotFoundError(file_id, provider_name="memory")
        return self.files[file_id]

    def get_provider_name(self) -> str:
        return "memory"


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def fast_retry() -> RetryPolicy:
    """Two retries with no base delay (jitter only)."""
    return RetryPolicy(retries=2, initial_delay=0.0)


@pytest.fixture
def mock_embedding_provider() -> MockEmbeddingProvider:
    return MockEmbeddingProvider()


@pytest.fixture
def embedding_client(
    mock_embedding_provider: MockEmbeddingProvider, fast_retry: RetryPolicy
) -> EmbeddingClient:
    return EmbeddingClient(mock_embedding_provider, retry_policy=fast_retry)


@pytest.fixture
def chunk_store() -> InMemoryChunkStore:
    return InMemoryChunkStore()


@pytest.fixture
def status_provider() -> InMemoryStatusProvider:
    return InMemoryStatusProvider()


@pytest.fixture
def object_store() -> InMemoryObjectStore:
    return InMemoryObjectStore()


@pytest.fixture
def mock_llm_provider() -> ILLMProvider:
    """Mock ILLMProvider; override ``complete`` per test."""
    mock = MagicMock(spec=ILLMProvider)
    mock.get_provider_name.return_value = "mock-llm"
    mock.is_available.return_value = True
    mock.complete = AsyncMock(return_value="A short summary.")
    return mock


@pytest.fixture
def sample_document_text() -> str:
    """Two-section plain-text document used by ingestion tests."""
    return (
        "Field notes collected over one summer in the northern forest.\n\n"
        "SECTION 1: ANIMALS\n"
        "Foxes are quick and clever hunters. They hunt voles in the meadow at dusk.\n\n"
        "Owls nest in the old oak trees near the river.\n\n"
        "SECTION 2: PLANTS\n"
        "Ferns cover the forest floor. Moss grows on the north side of the rocks.\n"
    )
