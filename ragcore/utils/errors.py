"""Custom exception hierarchy for ragcore.

All package exceptions inherit from :class:`RagCoreError`, which carries an
optional ``provider_name`` so error handlers can identify which external
service (e.g. "openai", "chromadb", "object-store") caused the failure.

The hierarchy is organized by where in the ingestion/retrieval flow the
failure happens:

    RagCoreError  (base -- catch-all for any ragcore error)
    +-- FetchError                 (document bytes unavailable)
    |   +-- ExtractionError        (bytes fetched, no text extractable)
    +-- SegmentationError          (document produced zero chunks)
    +-- ProviderTransientError     (retryable provider failure)
    |   +-- RateLimitError
    |   +-- ProviderTimeoutError
    +-- ProviderError              (non-retryable provider failure)
    +-- BatchFailedError           (one batch exhausted its retries)
    +-- NotFoundError
    |   +-- ChunkNotFoundError     (updateEmbedding on an unknown chunk id)
    |   +-- DocumentNotFoundError  (object store has no such file)
    +-- EmbeddingDimensionError    (vector length != store dimension)
    +-- PipelineError              (invalid orchestrator state transition)
    +-- ConfigurationError         (startup / missing config)

Only :class:`ProviderTransientError` subclasses are retried by
:func:`ragcore.utils.retry.retry_with_backoff` by default.  Everything
else propagates on the first failure.
"""

from __future__ import annotations


class RagCoreError(Exception):
    """Base exception for all ragcore errors.

    Every subclass carries a human-readable ``message`` and an optional
    ``provider_name`` identifying which external service triggered the
    error.  ``__str__`` prefixes the provider name in brackets for
    structured log output, e.g. ``[openai] Rate limit exceeded``.
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        provider_name: str | None = None,
    ) -> None:
        self._message = message
        self._provider_name = provider_name
        super().__init__(self._message)

    @property
    def message(self) -> str:
        return self._message

    @property
    def provider_name(self) -> str | None:
        return self._provider_name

    def __str__(self) -> str:
        if self._provider_name:
            return f"[{self._provider_name}] {self._message}"
        return self._message


# ---------------------------------------------------------------------------
# Document-level errors (abort the whole ingestion run)
# ---------------------------------------------------------------------------

class FetchError(RagCoreError):
    """Raised when the raw document bytes cannot be obtained."""

    def __init__(
        self,
        message: str = "Document bytes unavailable",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class ExtractionError(FetchError):
    """Raised when fetched bytes contain no extractable text (corrupt or empty PDF)."""

    def __init__(
        self,
        message: str = "No text could be extracted from the document",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class SegmentationError(RagCoreError):
    """Raised by the orchestrator when a document yields zero chunks.

    The segmenter itself never raises this; it degrades to an empty list.
    """

    def __init__(
        self,
        message: str = "Document produced no chunks",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# External service / provider errors
# ---------------------------------------------------------------------------

class ProviderTransientError(RagCoreError):
    """A provider failure that is expected to clear on retry."""

    def __init__(
        self,
        message: str = "Transient provider failure",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class RateLimitError(ProviderTransientError):
    """Raised when an API rate limit is exceeded."""

    def __init__(
        self,
        message: str = "Rate limit exceeded",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class ProviderTimeoutError(ProviderTransientError):
    """Raised when a provider call times out."""

    def __init__(
        self,
        message: str = "Provider call timed out",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class ProviderError(RagCoreError):
    """Raised when a provider call fails in a way retrying will not fix."""

    def __init__(
        self,
        message: str = "Provider call failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Batch / record level errors (contained, reported in aggregate)
# ---------------------------------------------------------------------------

class BatchFailedError(RagCoreError):
    """One insert, embed or embedding-update batch could not complete.

    Carries the pipeline ``phase`` and ``batch_index`` so the orchestrator
    can report which slice of the document was lost.
    """

    def __init__(
        self,
        message: str = "Batch failed",
        provider_name: str | None = None,
        phase: str = "",
        batch_index: int = -1,
    ) -> None:
        self._phase = phase
        self._batch_index = batch_index
        super().__init__(message=message, provider_name=provider_name)

    @property
    def phase(self) -> str:
        return self._phase

    @property
    def batch_index(self) -> int:
        return self._batch_index


class NotFoundError(RagCoreError):
    """Base class for lookups of records that do not exist."""

    def __init__(
        self,
        message: str = "Record not found",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class ChunkNotFoundError(NotFoundError):
    """Raised when an embedding update references an unknown chunk id."""

    def __init__(
        self,
        unique_chunk_id: str,
        provider_name: str | None = None,
    ) -> None:
        self._unique_chunk_id = unique_chunk_id
        super().__init__(
            message=f"Chunk with unique ID {unique_chunk_id} not found.",
            provider_name=provider_name,
        )

    @property
    def unique_chunk_id(self) -> str:
        return self._unique_chunk_id


class DocumentNotFoundError(NotFoundError):
    """Raised when the object store has no file for the requested id."""

    def __init__(
        self,
        file_id: str,
        provider_name: str | None = None,
    ) -> None:
        self._file_id = file_id
        super().__init__(
            message=f"No document stored under file id {file_id}",
            provider_name=provider_name,
        )

    @property
    def file_id(self) -> str:
        return self._file_id


class EmbeddingDimensionError(RagCoreError):
    """Raised when a vector's length differs from the configured dimension."""

    def __init__(
        self,
        message: str = "Embedding dimension mismatch",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Orchestration / configuration errors
# ---------------------------------------------------------------------------

class PipelineError(RagCoreError):
    """Raised when the ingestion state machine is driven out of order."""

    def __init__(
        self,
        message: str = "Pipeline orchestration failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class ConfigurationError(RagCoreError):
    """Raised when configuration is invalid or missing at startup."""

    def __init__(
        self,
        message: str = "Invalid or missing configuration",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)
