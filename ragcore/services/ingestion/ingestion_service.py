"""Orchestrator for the per-document ingestion pipeline.

Pipeline stages: **fetch -> segment -> persist chunks -> embed -> persist embeddings**.

The :class:`IngestionOrchestrator` coordinates its collaborators (object
store, document loader, segmenter, metadata enricher, embedding client,
chunk store, progress tracker) without any of them knowing about each
other.  All dependencies are injected via the constructor.

Failure policy:

- errors that prevent the pipeline from starting (fetch, extraction, a
  document that segments into zero chunks) abort the run, mark the
  document's status as failed and propagate to the caller;
- errors local to one batch are retried with backoff, then recorded as a
  :class:`~ragcore.models.document.BatchFailure` while sibling batches
  carry on.  The document is still marked processed; callers detect
  degraded ingestion through :attr:`IngestionResult.is_degraded`.
"""

from __future__ import annotations

import hashlib
import time

import structlog

from ragcore.interfaces.chunk_store import IChunkStore
from ragcore.interfaces.object_store import IObjectStore
from ragcore.models.chunk import Chunk, ChunkSizing
from ragcore.models.document import BatchFailure, IngestionPhase, IngestionResult, PageText
from ragcore.pipeline.progress_tracker import ProgressTracker
from ragcore.services.embedding_client import EmbeddingClient
from ragcore.services.ingestion.document_loader import DocumentLoader
from ragcore.services.ingestion.metadata_enricher import MetadataEnricher
from ragcore.services.ingestion.segmenter import (
    DEFAULT_SIZING_THRESHOLDS,
    TextSegmenter,
    get_adaptive_chunk_params,
)
from ragcore.utils.concurrency import clamp_concurrency, throttled_gather
from ragcore.utils.errors import (
    BatchFailedError,
    ChunkNotFoundError,
    FetchError,
    PipelineError,
    ProviderError,
    ProviderTransientError,
    RagCoreError,
    SegmentationError,
)
from ragcore.utils.logging import ingestion_context
from ragcore.utils.retry import RetryPolicy, retry_with_policy

logger = structlog.get_logger(logger_name=__name__)

DEFAULT_BATCH_SIZE = 250

_ALLOWED_TRANSITIONS: dict[IngestionPhase, frozenset[IngestionPhase]] = {
    IngestionPhase.PENDING: frozenset({IngestionPhase.FETCHING}),
    IngestionPhase.FETCHING: frozenset({IngestionPhase.SEGMENTING}),
    IngestionPhase.SEGMENTING: frozenset({IngestionPhase.PERSISTING_CHUNKS}),
    IngestionPhase.PERSISTING_CHUNKS: frozenset({IngestionPhase.EMBEDDING}),
    IngestionPhase.EMBEDDING: frozenset({IngestionPhase.PERSISTING_EMBEDDINGS}),
    IngestionPhase.PERSISTING_EMBEDDINGS: frozenset({IngestionPhase.COMPLETE}),
    IngestionPhase.COMPLETE: frozenset(),
    IngestionPhase.FAILED: frozenset(),
}


def make_unique_chunk_id(document_id: str, chunk_number: int, page_content: str) -> str:
    """Derive a chunk id from ``(document_id, chunk_number, content hash)``.

    Re-ingesting unchanged content yields the same ids, so the store
    upserts instead of duplicating.
    """
    digest = hashlib.sha256(page_content.encode("utf-8")).hexdigest()[:12]
    return f"{document_id}-chunk-{chunk_number}-{digest}"


class IngestionOrchestrator:
    """Drives one document through the ingestion state machine.

    Parameters
    ----------
    object_store:
        Source of raw document bytes.
    chunk_store:
        Persistence for chunks and their embeddings.
    embedding_client:
        Retrying embedding wrapper.
    progress_tracker:
        Writes progress to the document's processing status.
    segmenter:
        Text splitter.  Defaults to :class:`TextSegmenter`.
    enricher:
        Per-chunk metadata builder.  Defaults to :class:`MetadataEnricher`.
    loader:
        Bytes-to-pages extractor.  Defaults to :class:`DocumentLoader`.
    retry_policy:
        Backoff policy for the fetch and for chunk-store writes.
    batch_size:
        Chunks per insert / embed / embedding-update batch.
    concurrency:
        Batches in flight at once, clamped to ``1..5``.
    sizing_thresholds:
        Adaptive chunk-sizing table, see
        :func:`~ragcore.services.ingestion.segmenter.get_adaptive_chunk_params`.
    """

    def __init__(
        self,
        object_store: IObjectStore,
        chunk_store: IChunkStore,
        embedding_client: EmbeddingClient,
        progress_tracker: ProgressTracker,
        segmenter: TextSegmenter | None = None,
        enricher: MetadataEnricher | None = None,
        loader: DocumentLoader | None = None,
        retry_policy: RetryPolicy | None = None,
        batch_size: int = DEFAULT_BATCH_SIZE,
        concurrency: int = 1,
        sizing_thresholds: tuple[tuple[int | None, ChunkSizing], ...] = DEFAULT_SIZING_THRESHOLDS,
    ) -> None:
        if batch_size < 1:
            raise ValueError(f"batch_size must be positive, got {batch_size}")
        self._object_store = object_store
        self._chunk_store = chunk_store
        self._embedding_client = embedding_client
        self._progress = progress_tracker
        self._segmenter = segmenter or TextSegmenter()
        self._enricher = enricher or MetadataEnricher()
        self._loader = loader or DocumentLoader()
        self._retry_policy = retry_policy or RetryPolicy()
        self._batch_size = batch_size
        self._concurrency = clamp_concurrency(concurrency)
        self._sizing_thresholds = sizing_thresholds

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def ingest_document(
        self,
        project_id: str,
        document_id: str,
        file_id: str | None = None,
    ) -> IngestionResult:
        """Fetch, segment, embed and persist one document.

        Parameters
        ----------
        project_id:
            Project the chunks belong to.
        document_id:
            Document whose processing status is updated.
        file_id:
            Object-store key of the raw bytes.  Defaults to *document_id*.

        Returns
        -------
        IngestionResult
            Counts of expected, inserted and embedded chunks plus every
            batch that exhausted its retries.

        Raises
        ------
        DocumentNotFoundError
            The object store has no file under *file_id*.  Never retried.
        FetchError
            The bytes could not be fetched, either because the object store
            kept failing past the retry policy or because it refused the
            request outright, or they contain no extractable text
            (:class:`~ragcore.utils.errors.ExtractionError`).
        SegmentationError
            The document produced zero chunks.
        """
        start = time.monotonic()
        file_id = file_id or document_id
        phase = IngestionPhase.PENDING
        with ingestion_context(document_id=document_id, project_id=project_id):
            try:
                await self._progress.start(document_id)
                logger.info("ingestion_started", file_id=file_id)

                # Fetching
                phase = self._transition(phase, IngestionPhase.FETCHING)
                pages = await self._fetch_pages(file_id)
                await self._progress.advance(document_id, phase)

                # Segmenting
                phase = self._transition(phase, IngestionPhase.SEGMENTING)
                chunks, sizing = self.build_chunks(project_id, document_id, pages)
                if not chunks:
                    raise SegmentationError(f"Document {document_id} produced no chunks")
                await self._progress.advance(document_id, phase)

                # Persisting chunks
                phase = self._transition(phase, IngestionPhase.PERSISTING_CHUNKS)
                inserted, failures = await self._persist_chunks(project_id, chunks)
                await self._progress.advance(
                    document_id,
                    phase,
                    chunks_expected=len(chunks),
                    chunks_inserted=len(inserted),
                )

                # Embedding
                phase = self._transition(phase, IngestionPhase.EMBEDDING)
                embedded_batches, embed_failures = await self._embed_chunks(inserted)
                failures.extend(embed_failures)
                await self._progress.advance(document_id, phase)

                # Persisting embeddings
                phase = self._transition(phase, IngestionPhase.PERSISTING_EMBEDDINGS)
                updated, missing, update_failures = await self._persist_embeddings(embedded_batches)
                failures.extend(update_failures)
                await self._progress.advance(document_id, phase, chunks_embedded=updated)

                phase = self._transition(phase, IngestionPhase.COMPLETE)
                await self._progress.advance(document_id, phase)
            except Exception as exc:
                logger.error("ingestion_failed", phase=phase.value, error=str(exc))
                await self._progress.fail(document_id, str(exc))
                raise

        result = IngestionResult(
            document_id=document_id,
            project_id=project_id,
            chunks_expected=len(chunks),
            chunks_inserted=len(inserted),
            chunks_embedded=updated,
            failed_batches=failures,
            failed_chunk_ids=missing,
            chunk_size=sizing.chunk_size,
            chunk_overlap=sizing.chunk_overlap,
            ingestion_time_ms=int((time.monotonic() - start) * 1000),
        )
        log = logger.warning if result.is_degraded else logger.info
        log(
            "ingestion_complete",
            document_id=document_id,
            project_id=project_id,
            chunks_expected=result.chunks_expected,
            chunks_inserted=result.chunks_inserted,
            chunks_embedded=result.chunks_embedded,
            failed_batches=len(failures),
            degraded=result.is_degraded,
            time_ms=result.ingestion_time_ms,
        )
        return result

    def build_chunks(
        self,
        project_id: str,
        document_id: str,
        pages: list[PageText],
    ) -> tuple[list[Chunk], ChunkSizing]:
        """Segment *pages* into numbered, enriched chunks.

        Chunk size is chosen once from the character count of the whole
        document; each page is then segmented on its own so every chunk
        keeps its page number.  Chunk numbers run from 1 across pages.
        """
        sizing = get_adaptive_chunk_params(
            sum(len(page.text) for page in pages), self._sizing_thresholds
        )
        chunks: list[Chunk] = []
        for page in pages:
            texts = self._segmenter.segment(page.text, sizing.chunk_size, sizing.chunk_overlap)
            for text in texts:
                chunk_number = len(chunks) + 1
                metadata = self._enricher.enrich(text).model_copy(
                    update={
                        "page_number": page.page_number,
                        "doc_title": page.doc_title,
                        "doc_author": page.doc_author,
                    }
                )
                chunks.append(
                    Chunk(
                        project_id=project_id,
                        document_id=document_id,
                        unique_chunk_id=make_unique_chunk_id(document_id, chunk_number, text),
                        chunk_number=chunk_number,
                        page_content=text,
                        metadata=metadata,
                    )
                )

        logger.info(
            "document_segmented",
            pages=len(pages),
            chunks=len(chunks),
            chunk_size=sizing.chunk_size,
            chunk_overlap=sizing.chunk_overlap,
        )
        return chunks, sizing

    # ------------------------------------------------------------------
    # Phases
    # ------------------------------------------------------------------

    async def _fetch_pages(self, file_id: str) -> list[PageText]:
        try:
            data = await retry_with_policy(
                lambda: self._object_store.get_document_bytes(file_id),
                self._retry_policy,
                operation="fetch_document",
            )
        except (ProviderError, ProviderTransientError) as exc:
            # ProviderError arrives on the first attempt; transient errors once retries run out.
            raise FetchError(
                message=f"Could not fetch {file_id}: {exc.message}",
                provider_name=exc.provider_name,
            ) from exc
        return self._loader.load(data, file_id=file_id)

    async def _persist_chunks(
        self, project_id: str, chunks: list[Chunk]
    ) -> tuple[list[Chunk], list[BatchFailure]]:
        """Insert *chunks* batch by batch; return the inserted chunks and failed batches."""
        batches = self._batches(chunks)

        async def _insert(batch: list[Chunk]) -> int:
            return await retry_with_policy(
                lambda: self._chunk_store.insert_many(project_id, batch),
                self._retry_policy,
                operation="insert_many",
            )

        results = await throttled_gather(
            [_insert(batch) for batch in batches], limit=self._concurrency
        )

        inserted: list[Chunk] = []
        failures: list[BatchFailure] = []
        for index, (batch, outcome) in enumerate(zip(batches, results)):
            if isinstance(outcome, BaseException):
                failures.append(
                    self._record_failure(IngestionPhase.PERSISTING_CHUNKS, index, batch, outcome)
                )
            else:
                inserted.extend(batch)
        return inserted, failures

    async def _embed_chunks(
        self, chunks: list[Chunk]
    ) -> tuple[list[tuple[list[Chunk], list[list[float]]]], list[BatchFailure]]:
        """Embed *chunks* batch by batch; return (batch, vectors) pairs and failed batches."""
        batches = self._batches(chunks)
        results = await throttled_gather(
            [self._embedding_client.embed([c.page_content for c in batch]) for batch in batches],
            limit=self._concurrency,
        )

        embedded: list[tuple[list[Chunk], list[list[float]]]] = []
        failures: list[BatchFailure] = []
        for index, (batch, outcome) in enumerate(zip(batches, results)):
            if isinstance(outcome, BaseException):
                failures.append(
                    self._record_failure(IngestionPhase.EMBEDDING, index, batch, outcome)
                )
            else:
                embedded.append((batch, outcome))
        return embedded, failures

    async def _persist_embeddings(
        self, embedded_batches: list[tuple[list[Chunk], list[list[float]]]]
    ) -> tuple[int, list[str], list[BatchFailure]]:
        """Write vectors to the store.

        Returns the number of chunks updated, the ids the store reported
        as missing, and the batches that failed for any other reason.
        """
        updated: list[str] = []
        missing: list[str] = []

        async def _update_batch(index: int, batch: list[Chunk], vectors: list[list[float]]) -> None:
            for chunk, vector in zip(batch, vectors):
                try:
                    await retry_with_policy(
                        lambda: self._chunk_store.update_embedding(chunk.unique_chunk_id, vector),
                        self._retry_policy,
                        operation="update_embedding",
                    )
                except ChunkNotFoundError as exc:
                    logger.error(
                        "embedding_target_missing",
                        unique_chunk_id=chunk.unique_chunk_id,
                        error=str(exc),
                    )
                    missing.append(chunk.unique_chunk_id)
                    continue
                except RagCoreError as exc:
                    raise BatchFailedError(
                        message=f"Embedding update failed at {chunk.unique_chunk_id}: {exc}",
                        provider_name=exc.provider_name,
                        phase=IngestionPhase.PERSISTING_EMBEDDINGS.value,
                        batch_index=index,
                    ) from exc
                updated.append(chunk.unique_chunk_id)

        results = await throttled_gather(
            [
                _update_batch(index, batch, vectors)
                for index, (batch, vectors) in enumerate(embedded_batches)
            ],
            limit=self._concurrency,
        )

        failures = [
            self._record_failure(
                IngestionPhase.PERSISTING_EMBEDDINGS, index, embedded_batches[index][0], outcome
            )
            for index, outcome in enumerate(results)
            if isinstance(outcome, BaseException)
        ]
        return len(updated), missing, failures

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _batches(self, chunks: list[Chunk]) -> list[list[Chunk]]:
        size = self._batch_size
        return [chunks[i : i + size] for i in range(0, len(chunks), size)]

    @staticmethod
    def _transition(current: IngestionPhase, target: IngestionPhase) -> IngestionPhase:
        if target not in _ALLOWED_TRANSITIONS[current]:
            raise PipelineError(f"Illegal ingestion transition {current.value} -> {target.value}")
        logger.debug("ingestion_phase", phase=target.value)
        return target

    @staticmethod
    def _record_failure(
        phase: IngestionPhase,
        index: int,
        batch: list[Chunk],
        error: BaseException,
    ) -> BatchFailure:
        """Log a batch that exhausted its retries and describe it for the result.

        Anything other than a package error is a programming bug and is
        re-raised instead of being contained.
        """
        if not isinstance(error, RagCoreError):
            raise error
        logger.error(
            "batch_failed",
            phase=phase.value,
            batch_index=index,
            chunk_count=len(batch),
            error=str(error),
        )
        return BatchFailure(
            phase=phase,
            batch_index=index,
            chunk_count=len(batch),
            error=str(error),
        )
