"""Pydantic models shared across ragcore."""

from ragcore.models.chunk import Chunk, ChunkMetadata, ChunkSizing, SearchHit, SearchSource
from ragcore.models.document import (
    PHASE_PROGRESS,
    BatchFailure,
    IngestionPhase,
    IngestionResult,
    PageText,
    ProcessingStatus,
)

__all__ = [
    "PHASE_PROGRESS",
    "BatchFailure",
    "Chunk",
    "ChunkMetadata",
    "ChunkSizing",
    "IngestionPhase",
    "IngestionResult",
    "PageText",
    "ProcessingStatus",
    "SearchHit",
    "SearchSource",
]
