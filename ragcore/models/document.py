"""Document-side models: processing status, extracted pages, ingestion results.

The Document itself is owned by an external collaborator; ragcore only
reads its bytes and mutates its :class:`ProcessingStatus`.  Status
transitions are driven exclusively by the IngestionOrchestrator through
:class:`~ragcore.pipeline.progress_tracker.ProgressTracker`.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class IngestionPhase(str, Enum):  # noqa: UP042 — StrEnum requires Python 3.11+
    """States of the per-document ingestion state machine.

    FETCHING → SEGMENTING → PERSISTING_CHUNKS → EMBEDDING →
    PERSISTING_EMBEDDINGS → COMPLETE, with FAILED reachable from any
    non-terminal state.
    """

    PENDING = "PENDING"
    FETCHING = "FETCHING"
    SEGMENTING = "SEGMENTING"
    PERSISTING_CHUNKS = "PERSISTING_CHUNKS"
    EMBEDDING = "EMBEDDING"
    PERSISTING_EMBEDDINGS = "PERSISTING_EMBEDDINGS"
    COMPLETE = "COMPLETE"
    FAILED = "FAILED"


# Progress written to the document status when each phase has finished.
PHASE_PROGRESS: dict[IngestionPhase, int] = {
    IngestionPhase.PENDING: 0,
    IngestionPhase.FETCHING: 10,
    IngestionPhase.SEGMENTING: 50,
    IngestionPhase.PERSISTING_CHUNKS: 70,
    IngestionPhase.EMBEDDING: 90,
    IngestionPhase.PERSISTING_EMBEDDINGS: 95,
    IngestionPhase.COMPLETE: 100,
}


class ProcessingStatus(BaseModel):
    """Processing status of one document as seen by external pollers."""

    model_config = ConfigDict(frozen=True)

    document_id: str
    progress: int = Field(default=0, ge=0, le=100)
    is_processing: bool = False
    is_processed: bool = False
    processed_at: datetime | None = None
    error: str | None = Field(default=None, description="Failure reason when a run aborted.")
    chunks_expected: int = Field(default=0, ge=0)
    chunks_inserted: int = Field(default=0, ge=0)
    chunks_embedded: int = Field(default=0, ge=0)

    @property
    def is_degraded(self) -> bool:
        """True when a finished run stored or embedded fewer chunks than it produced."""
        return self.is_processed and (
            self.chunks_inserted < self.chunks_expected
            or self.chunks_embedded < self.chunks_inserted
        )


class PageText(BaseModel):
    """Text of one source page plus the document-level metadata it inherits."""

    model_config = ConfigDict(frozen=True)

    page_number: int = Field(ge=1)
    text: str
    doc_title: str = "Untitled"
    doc_author: str = "Unknown"


class BatchFailure(BaseModel):
    """A batch that exhausted its retries during one ingestion run."""

    model_config = ConfigDict(frozen=True)

    phase: IngestionPhase
    batch_index: int = Field(ge=0)
    chunk_count: int = Field(ge=0)
    error: str


class IngestionResult(BaseModel):
    """Summary of one ingestion run.

    ``chunks_inserted < chunks_expected`` or ``chunks_embedded <
    chunks_inserted`` means the document was ingested in degraded form.
    """

    model_config = ConfigDict(frozen=True)

    document_id: str
    project_id: str
    chunks_expected: int = Field(ge=0)
    chunks_inserted: int = Field(ge=0)
    chunks_embedded: int = Field(ge=0)
    failed_batches: list[BatchFailure] = Field(default_factory=list)
    failed_chunk_ids: list[str] = Field(
        default_factory=list, description="Chunks whose embedding update raised NotFound."
    )
    chunk_size: int = 0
    chunk_overlap: int = 0
    ingestion_time_ms: int = 0

    @property
    def is_degraded(self) -> bool:
        return (
            self.chunks_inserted < self.chunks_expected
            or self.chunks_embedded < self.chunks_inserted
        )
