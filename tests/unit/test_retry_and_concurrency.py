"""Unit tests for retry-with-backoff and bounded fan-out helpers."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, patch

import pytest

from ragcore.utils.concurrency import MAX_CONCURRENCY, clamp_concurrency, throttled_gather
from ragcore.utils.errors import ProviderError, ProviderTimeoutError, RateLimitError
from ragcore.utils.retry import RetryPolicy, retry_with_backoff, retry_with_policy


def _flaky(failures: list[BaseException], result: str = "ok") -> AsyncMock:
    """AsyncMock raising each of *failures* once, then returning *result*."""
    return AsyncMock(side_effect=[*failures, result])


# ======================================================================
# retry_with_backoff
# ======================================================================


class TestRetryWithBackoff:
    @pytest.mark.asyncio
    async def test_first_success_does_not_sleep(self) -> None:
        fn = AsyncMock(return_value=7)
        with patch("ragcore.utils.retry.asyncio.sleep", new_callable=AsyncMock) as sleep:
            assert await retry_with_backoff(fn) == 7
        fn.assert_awaited_once()
        sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_delay_doubles_with_jitter(self) -> None:
        fn = _flaky([RateLimitError(), ProviderTimeoutError()])
        with (
            patch("ragcore.utils.retry.asyncio.sleep", new_callable=AsyncMock) as sleep,
            patch("ragcore.utils.retry.random.uniform", return_value=0.05) as uniform,
        ):
            result = await retry_with_backoff(fn, retries=5, initial_delay=1.0)

        assert result == "ok"
        assert fn.await_count == 3
        waits = [call.args[0] for call in sleep.await_args_list]
        assert waits == [pytest.approx(1.05), pytest.approx(2.05)]
        uniform.assert_called_with(0, 0.1)

    @pytest.mark.asyncio
    async def test_budget_exhaustion_reraises_last_error(self) -> None:
        last = RateLimitError(message="still limited")
        fn = AsyncMock(side_effect=[RateLimitError(), RateLimitError(), last])
        with patch("ragcore.utils.retry.asyncio.sleep", new_callable=AsyncMock) as sleep:
            with pytest.raises(RateLimitError) as exc_info:
                await retry_with_backoff(fn, retries=2, initial_delay=0.5)

        assert exc_info.value is last
        assert fn.await_count == 3
        assert sleep.await_count == 2

    @pytest.mark.asyncio
    async def test_non_retryable_error_propagates_immediately(self) -> None:
        fn = AsyncMock(side_effect=ProviderError(message="bad request"))
        with patch("ragcore.utils.retry.asyncio.sleep", new_callable=AsyncMock) as sleep:
            with pytest.raises(ProviderError):
                await retry_with_backoff(fn, retries=5)
        fn.assert_awaited_once()
        sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_custom_retry_on(self) -> None:
        fn = _flaky([KeyError("transient")])
        with patch("ragcore.utils.retry.asyncio.sleep", new_callable=AsyncMock):
            assert await retry_with_backoff(fn, retry_on=(KeyError,)) == "ok"
        assert fn.await_count == 2

    @pytest.mark.asyncio
    async def test_zero_retries_means_single_attempt(self) -> None:
        fn = AsyncMock(side_effect=RateLimitError())
        with patch("ragcore.utils.retry.asyncio.sleep", new_callable=AsyncMock):
            with pytest.raises(RateLimitError):
                await retry_with_backoff(fn, retries=0)
        fn.assert_awaited_once()


class TestRetryWithPolicy:
    @pytest.mark.asyncio
    async def test_policy_budget_applies(self) -> None:
        fn = AsyncMock(side_effect=RateLimitError())
        policy = RetryPolicy(retries=1, initial_delay=0.25)
        with patch("ragcore.utils.retry.asyncio.sleep", new_callable=AsyncMock) as sleep:
            with pytest.raises(RateLimitError):
                await retry_with_policy(fn, policy)
        assert fn.await_count == 2
        assert sleep.await_count == 1

    def test_policy_defaults(self) -> None:
        policy = RetryPolicy()
        assert policy.retries == 5
        assert policy.initial_delay == 1.0


# ======================================================================
# throttled_gather
# ======================================================================


class TestThrottledGather:
    def test_clamp_concurrency(self) -> None:
        assert clamp_concurrency(0) == 1
        assert clamp_concurrency(3) == 3
        assert clamp_concurrency(50) == MAX_CONCURRENCY

    @pytest.mark.asyncio
    async def test_preserves_order_and_limits_in_flight(self) -> None:
        active = 0
        peak = 0

        async def work(value: int) -> int:
            nonlocal active, peak
            active += 1
            peak = max(peak, active)
            await asyncio.sleep(0.01 * (5 - value))
            active -= 1
            return value * 10

        results = await throttled_gather([work(i) for i in range(5)], limit=2)

        assert results == [0, 10, 20, 30, 40]
        assert peak <= 2

    @pytest.mark.asyncio
    async def test_exceptions_returned_in_place(self) -> None:
        async def ok() -> str:
            return "fine"

        async def bad() -> str:
            raise ProviderError(message="nope")

        results = await throttled_gather([ok(), bad(), ok()], limit=1)
        assert results[0] == "fine"
        assert isinstance(results[1], ProviderError)
        assert results[2] == "fine"

    @pytest.mark.asyncio
    async def test_shared_semaphore(self) -> None:
        semaphore = asyncio.Semaphore(1)

        async def value() -> int:
            return 1

        assert await throttled_gather([value(), value()], semaphore=semaphore) == [1, 1]
