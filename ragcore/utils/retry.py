"""Exponential backoff with jitter for transient provider failures.

Used by the embedding client, the orchestrator's batch writes, and the
object-store fetch.  Retries are in-process only; nothing about an
in-flight retry sequence survives a crash.

Timing for the default policy (5 retries, 1 s initial delay)::

    attempt 1 fails -> sleep 1.0 s + jitter
    attempt 2 fails -> sleep 2.0 s + jitter
    ...
    attempt 6 fails -> re-raise

Jitter is ``random.uniform(0, 0.1)`` seconds so concurrent batches that
failed together do not retry in lock-step.
"""

from __future__ import annotations

import asyncio
import random
from typing import Awaitable, Callable, TypeVar

from pydantic import BaseModel, ConfigDict, Field

from ragcore.utils.errors import ProviderTransientError
from ragcore.utils.logging import get_logger

_T = TypeVar("_T")

_MAX_JITTER_S = 0.1

_logger = get_logger(__name__)


class RetryPolicy(BaseModel):
    """Retry budget and starting delay shared by every retried call site."""

    model_config = ConfigDict(frozen=True)

    retries: int = Field(default=5, ge=0, description="Extra attempts after the first failure.")
    initial_delay: float = Field(
        default=1.0, ge=0.0, description="Seconds to wait before the first retry; doubles each time."
    )


async def retry_with_backoff(
    fn: Callable[[], Awaitable[_T]],
    retries: int = 5,
    initial_delay: float = 1.0,
    retry_on: tuple[type[BaseException], ...] = (ProviderTransientError,),
    operation: str = "operation",
) -> _T:
    """Await ``fn()`` and retry it on ``retry_on`` errors with exponential backoff.

    Parameters
    ----------
    fn:
        Zero-argument callable returning a fresh awaitable on every call.
    retries:
        Number of retries after the first attempt.  ``fn`` is called at
        most ``retries + 1`` times.
    initial_delay:
        Seconds before the first retry.  Doubles after every failure.
    retry_on:
        Exception types considered transient.  Anything else propagates
        immediately without consuming the budget.
    operation:
        Short label used in log events.

    Returns
    -------
    The value returned by the first successful call.

    Raises
    ------
    BaseException
        The last error raised by ``fn`` once the budget is exhausted, or
        the first non-retryable error.
    """
    delay = initial_delay
    attempt = 0
    while True:
        attempt += 1
        try:
            return await fn()
        except retry_on as exc:
            if attempt > retries:
                _logger.error(
                    "retry_budget_exhausted",
                    operation=operation,
                    attempts=attempt,
                    error=str(exc),
                )
                raise
            wait = delay + random.uniform(0, _MAX_JITTER_S)
            _logger.warning(
                "retry_scheduled",
                operation=operation,
                attempt=attempt,
                retries_left=retries - attempt + 1,
                wait_s=round(wait, 3),
                error=str(exc),
            )
            await asyncio.sleep(wait)
            delay *= 2


async def retry_with_policy(
    fn: Callable[[], Awaitable[_T]],
    policy: RetryPolicy,
    retry_on: tuple[type[BaseException], ...] = (ProviderTransientError,),
    operation: str = "operation",
) -> _T:
    """Shorthand for :func:`retry_with_backoff` driven by a :class:`RetryPolicy`."""
    return await retry_with_backoff(
        fn,
        retries=policy.retries,
        initial_delay=policy.initial_delay,
        retry_on=retry_on,
        operation=operation,
    )
