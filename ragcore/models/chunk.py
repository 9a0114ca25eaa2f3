"""Chunk data models.

Defines Pydantic v2 models for the retrievable unit of the system, its
metadata, and the tagged search hit used while merging vector and lexical
results.  All models are frozen: a chunk's text never changes after
segmentation, and the one late-bound field (``embedding``) is applied by
building a new instance via ``model_copy(update={...})``.

Lifecycle of a chunk:

    1. SEGMENT   -- TextSegmenter emits the text with heading/snippet prefix.
    2. ENRICH    -- MetadataEnricher derives headings, tokens, keywords ...
    3. INSERT    -- IChunkStore.insert_many persists it without an embedding.
    4. EMBED     -- IChunkStore.update_embedding attaches the vector by id.
    5. RETRIEVE  -- HybridRetriever returns it from vector or text search.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class ChunkMetadata(BaseModel):
    """Structural and heuristic metadata attached to one chunk."""

    model_config = ConfigDict(frozen=True)

    doc_title: str | None = Field(default=None, description="Title of the source document.")
    doc_author: str | None = Field(default=None, description="Author of the source document.")
    page_number: int | None = Field(default=None, ge=1, description="1-based source page.")
    headings: list[str] = Field(default_factory=list, description="Heading-like lines found in the chunk.")
    snippet: str | None = Field(
        default=None, description="First line of the section body, <=50 chars plus '...' if cut."
    )
    num_tokens: int = Field(default=0, ge=0, description="Token count under the configured tokenizer.")
    keywords: list[str] = Field(default_factory=list)
    entities: list[str] = Field(default_factory=list)
    topics: list[str] = Field(default_factory=list)


class Chunk(BaseModel):
    """A bounded-size, independently retrievable unit of document text.

    ``unique_chunk_id`` is the identity; ``chunk_number`` is only an ordinal
    for ordering and debugging.  ``embedding`` is ``None`` until the
    embedding phase has written it.
    """

    model_config = ConfigDict(frozen=True)

    project_id: str = Field(description="Owning project (collection) identity.")
    document_id: str = Field(description="Document the chunk was cut from.")
    unique_chunk_id: str = Field(description="Stable, globally unique chunk identity.")
    chunk_number: int = Field(ge=1, description="1-based ordinal within the document.")
    page_content: str = Field(description="Chunk text including the heading/snippet prefix.")
    metadata: ChunkMetadata = Field(default_factory=ChunkMetadata)
    embedding: list[float] | None = Field(default=None, description="Vector, once computed.")

    @property
    def has_embedding(self) -> bool:
        return self.embedding is not None


class ChunkSizing(BaseModel):
    """Segmentation parameters chosen once per document."""

    model_config = ConfigDict(frozen=True)

    chunk_size: int = Field(gt=0, description="Maximum characters per chunk body.")
    chunk_overlap: int = Field(ge=0, description="Characters carried over between split chunks.")


# ---------------------------------------------------------------------------
# Retrieval-side tagged result
# ---------------------------------------------------------------------------
class SearchSource(str, Enum):  # noqa: UP042 — StrEnum requires Python 3.11+
    """Which index produced a search hit."""

    VECTOR = "vector"
    TEXT = "text"


class SearchHit(BaseModel):
    """A chunk tagged with the index that found it and its rank there (0-based)."""

    model_config = ConfigDict(frozen=True)

    source: SearchSource
    chunk: Chunk
    rank: int = Field(ge=0)
