"""Bounded fan-out helpers for batch persistence and embedding calls.

Both the embedding provider and the chunk store impose per-second rate
limits, so every fan-out in ragcore goes through :func:`throttled_gather`
instead of a bare ``asyncio.gather``.  The semaphore is created per call
site (one per ingestion phase); the limit is a per-run setting.
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, TypeVar

_T = TypeVar("_T")

# Upper bound on batch concurrency.  Above this both OpenAI and the
# store start returning 429s for a single document.
MAX_CONCURRENCY = 5


def clamp_concurrency(value: int) -> int:
    """Clamp a configured concurrency to the supported 1..MAX_CONCURRENCY range."""
    return max(1, min(MAX_CONCURRENCY, value))


async def throttled_gather(
    coros: list[Awaitable[_T]],
    semaphore: asyncio.Semaphore | None = None,
    limit: int = 1,
    return_exceptions: bool = True,
) -> list[_T | BaseException]:
    """Run awaitables concurrently with semaphore throttling.

    Each coroutine is wrapped so it acquires the semaphore before executing
    and releases it afterward.

    Parameters
    ----------
    coros:
        Awaitable objects to execute concurrently.
    semaphore:
        Semaphore for concurrency control.  When omitted a fresh one is
        created with ``limit`` slots.
    limit:
        Number of slots for the semaphore created when ``semaphore`` is
        ``None``.  Clamped to ``1..MAX_CONCURRENCY``.
    return_exceptions:
        If ``True``, exceptions are returned in the results list rather
        than being raised.  Mirrors ``asyncio.gather`` semantics.

    Returns
    -------
    list[_T | BaseException]
        Results in the same order as the input coroutines.
    """
    if semaphore is None:
        semaphore = asyncio.Semaphore(clamp_concurrency(limit))

    async def _wrapped(coro: Awaitable[_T]) -> _T:
        async with semaphore:
            return await coro

    tasks = [_wrapped(c) for c in coros]
    return await asyncio.gather(*tasks, return_exceptions=return_exceptions)
