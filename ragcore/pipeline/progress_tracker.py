"""Document ingestion progress tracking with callback-based listener notification.

Tracks the current phase and progress percentage of each document being
ingested, writes every change to the document's processing status, and
broadcasts updates to registered listener callbacks.  Listeners are keyed
by document ID so several documents can be ingested concurrently without
cross-talk.

# ─── HOW PROGRESS TRACKING WORKS ───────────────────────────────────────
#
#   Orchestrator ──advance()──→ ProgressTracker ──update_document_status()──→ status store
#                                               ──callback()──────────────→ listeners
#
#   - Progress never goes backwards: a lower value than the one already
#     reported is raised to the previous value.
#   - The status store is the source of truth.  A failed status write
#     propagates to the orchestrator; a failed listener is only logged.
# ──────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone

import structlog

from ragcore.interfaces.document_status_provider import IDocumentStatusProvider
from ragcore.models.document import PHASE_PROGRESS, IngestionPhase, ProcessingStatus
from ragcore.utils.logging import get_logger


@dataclass
class _DocumentProgress:
    """Internal snapshot of one document's progress."""

    phase: IngestionPhase = IngestionPhase.PENDING
    progress: int = 0


class ProgressTracker:
    """Tracks, persists and broadcasts ingestion progress per document.

    Parameters
    ----------
    status_provider:
        Where every progress change is written.  External pollers read
        the document's status from here.
    """

    def __init__(self, status_provider: IDocumentStatusProvider) -> None:
        self._status_provider = status_provider
        self._progress: dict[str, _DocumentProgress] = {}
        self._listeners: dict[str, list[Callable]] = {}
        self._logger: structlog.BoundLogger = get_logger(__name__)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def start(self, document_id: str) -> ProcessingStatus:
        """Mark *document_id* as processing from 0%.

        Clears the previous run's error, ``processed_at`` and chunk counts.
        """
        self._progress[document_id] = _DocumentProgress()
        status = await self._status_provider.reset_document_status(document_id)
        await self._notify_listeners(document_id, IngestionPhase.PENDING, 0)
        return status

    async def advance(
        self,
        document_id: str,
        phase: IngestionPhase,
        *,
        chunks_expected: int | None = None,
        chunks_inserted: int | None = None,
        chunks_embedded: int | None = None,
    ) -> ProcessingStatus:
        """Record that *phase* finished and persist its progress value.

        Parameters
        ----------
        document_id:
            Document being ingested.
        phase:
            The phase that just completed.  ``COMPLETE`` also marks the
            document processed and stamps ``processed_at``.
        chunks_expected, chunks_inserted, chunks_embedded:
            Chunk counts known at this point of the run.  Persisted with
            the progress so a degraded run stays visible after it ends.

        Returns
        -------
        ProcessingStatus
            The stored status after the update.
        """
        snapshot = self._progress.setdefault(document_id, _DocumentProgress())
        progress = max(snapshot.progress, PHASE_PROGRESS.get(phase, snapshot.progress))
        snapshot.phase = phase
        snapshot.progress = progress

        counts = {
            "chunks_expected": chunks_expected,
            "chunks_inserted": chunks_inserted,
            "chunks_embedded": chunks_embedded,
        }
        if phase is IngestionPhase.COMPLETE:
            status = await self._status_provider.update_document_status(
                document_id,
                progress=progress,
                is_processing=False,
                is_processed=True,
                processed_at=datetime.now(timezone.utc),
                **counts,
            )
        else:
            status = await self._status_provider.update_document_status(
                document_id, progress=progress, **counts
            )

        self._logger.debug(
            "progress_update",
            document_id=document_id,
            phase=phase.value,
            progress=progress,
        )
        await self._notify_listeners(document_id, phase, progress)
        if phase is IngestionPhase.COMPLETE:
            self._forget(document_id)
        return status

    async def fail(self, document_id: str, error: str) -> ProcessingStatus:
        """Mark the run as aborted, keeping the progress reached so far."""
        snapshot = self._progress.setdefault(document_id, _DocumentProgress())
        snapshot.phase = IngestionPhase.FAILED
        status = await self._status_provider.update_document_status(
            document_id,
            is_processing=False,
            is_processed=False,
            error=error,
        )
        self._logger.warning("progress_failed", document_id=document_id, error=error)
        await self._notify_listeners(document_id, IngestionPhase.FAILED, snapshot.progress)
        self._forget(document_id)
        return status

    def register_listener(self, document_id: str, callback: Callable) -> None:
        """Register a callback to receive progress updates for a document.

        Parameters
        ----------
        document_id:
            The document to listen to.
        callback:
            An async or sync callable accepting
            ``(document_id, phase, progress)``.
        """
        listeners = self._listeners.setdefault(document_id, [])
        if callback not in listeners:
            listeners.append(callback)
            self._logger.debug(
                "listener_registered",
                document_id=document_id,
                total_listeners=len(listeners),
            )

    def unregister_listener(self, document_id: str, callback: Callable) -> None:
        """Remove a previously registered callback for a document."""
        listeners = self._listeners.get(document_id, [])
        if callback in listeners:
            listeners.remove(callback)

    def get_status(self, document_id: str) -> dict:
        """Return the in-memory phase and progress for a document.

        Returns
        -------
        dict
            Keys: ``phase`` (:class:`str`) and ``progress`` (:class:`int`).
            Zeroed defaults when the document is not being ingested.  Finished
            and failed runs are dropped from memory; read their outcome from
            the status provider.
        """
        snapshot = self._progress.get(document_id, _DocumentProgress())
        return {"phase": snapshot.phase.value, "progress": snapshot.progress}

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _forget(self, document_id: str) -> None:
        self._progress.pop(document_id, None)
        self._listeners.pop(document_id, None)

    async def _notify_listeners(
        self, document_id: str, phase: IngestionPhase, progress: int
    ) -> None:
        """Invoke every listener for *document_id*; listener errors are logged and skipped."""
        for callback in list(self._listeners.get(document_id, [])):
            try:
                result = callback(document_id, phase, progress)
                if asyncio.iscoroutine(result):
                    await result
            except Exception as exc:
                self._logger.warning(
                    "listener_callback_error",
                    document_id=document_id,
                    error=str(exc),
                    callback=getattr(callback, "__name__", repr(callback)),
                )
