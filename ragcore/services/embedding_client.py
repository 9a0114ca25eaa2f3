"""Retrying, order-preserving wrapper around an embedding provider.

The client is constructed explicitly and injected into both the ingestion
orchestrator and the hybrid retriever; there is no module-level provider
singleton.  It adds two guarantees on top of
:class:`~ragcore.interfaces.embedding_provider.IEmbeddingProvider`:

- **retry with backoff** -- transient failures (rate limit, timeout) are
  retried via :func:`~ragcore.utils.retry.retry_with_backoff`; once the
  budget is spent the last error propagates to the caller, which treats it
  as fatal for the batch in progress;
- **shape checking** -- the result must have exactly one vector per input
  text, in input order, each of the provider's dimension.

Splitting work into provider-sized batches is the caller's job.
"""

from __future__ import annotations

import structlog

from ragcore.interfaces.embedding_provider import IEmbeddingProvider
from ragcore.utils.errors import EmbeddingDimensionError, ProviderError
from ragcore.utils.retry import RetryPolicy, retry_with_policy

logger = structlog.get_logger(logger_name=__name__)


class EmbeddingClient:
    """Embeds ordered lists of texts with retry.

    Parameters
    ----------
    provider:
        The raw embedding capability.
    retry_policy:
        Retry budget and initial delay (defaults: 5 retries, 1 s).
    """

    def __init__(
        self,
        provider: IEmbeddingProvider,
        retry_policy: RetryPolicy | None = None,
    ) -> None:
        self._provider = provider
        self._retry_policy = retry_policy or RetryPolicy()

    @property
    def dimension(self) -> int:
        return self._provider.get_dimension()

    @property
    def provider_name(self) -> str:
        return self._provider.get_provider_name()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def embed(self, texts: list[str]) -> list[list[float]]:
        """Return one vector per text, positionally aligned with *texts*.

        Raises
        ------
        ragcore.utils.errors.ProviderTransientError
            The retry budget was exhausted.
        ragcore.utils.errors.ProviderError
            Non-retryable provider failure, or a result of the wrong shape.
        """
        if not texts:
            return []

        vectors = await retry_with_policy(
            lambda: self._provider.embed(texts),
            self._retry_policy,
            operation="embed",
        )
        self._check_shape(texts, vectors)

        logger.debug(
            "embedding_batch_complete",
            provider=self.provider_name,
            count=len(vectors),
        )
        return vectors

    async def embed_query(self, text: str) -> list[float]:
        """Embed a single query string."""
        vectors = await self.embed([text])
        return vectors[0]

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _check_shape(self, texts: list[str], vectors: list[list[float]]) -> None:
        if len(vectors) != len(texts):
            raise ProviderError(
                message=f"Provider returned {len(vectors)} vectors for {len(texts)} texts",
                provider_name=self.provider_name,
            )
        expected = self.dimension
        for idx, vector in enumerate(vectors):
            if len(vector) != expected:
                raise EmbeddingDimensionError(
                    message=f"Vector {idx} has dimension {len(vector)}, expected {expected}",
                    provider_name=self.provider_name,
                )
