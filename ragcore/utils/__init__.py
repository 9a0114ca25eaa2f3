"""Utility modules for ragcore.

- **errors** -- Exception hierarchy rooted at RagCoreError; each stage of
  ingestion raises its own subclass so callers can tell a dead document
  (FetchError) from a lost batch (BatchFailedError).
- **concurrency** -- semaphore-bounded fan-out that keeps batch writes and
  embedding calls under provider rate limits.
- **retry** -- exponential backoff with jitter for transient provider errors.
- **logging** -- structlog setup with a dual-renderer pattern: coloured
  console output in development, structured JSON in production.
"""

from ragcore.utils.concurrency import clamp_concurrency, throttled_gather
from ragcore.utils.errors import (
    BatchFailedError,
    ChunkNotFoundError,
    ConfigurationError,
    DocumentNotFoundError,
    EmbeddingDimensionError,
    ExtractionError,
    FetchError,
    NotFoundError,
    PipelineError,
    ProviderError,
    ProviderTimeoutError,
    ProviderTransientError,
    RagCoreError,
    RateLimitError,
    SegmentationError,
)
from ragcore.utils.logging import configure_logging, get_logger
from ragcore.utils.retry import RetryPolicy, retry_with_backoff, retry_with_policy

__all__ = [
    "BatchFailedError",
    "ChunkNotFoundError",
    "ConfigurationError",
    "DocumentNotFoundError",
    "EmbeddingDimensionError",
    "ExtractionError",
    "FetchError",
    "NotFoundError",
    "PipelineError",
    "ProviderError",
    "ProviderTimeoutError",
    "ProviderTransientError",
    "RagCoreError",
    "RateLimitError",
    "RetryPolicy",
    "SegmentationError",
    "clamp_concurrency",
    "configure_logging",
    "get_logger",
    "retry_with_backoff",
    "retry_with_policy",
    "throttled_gather",
]
