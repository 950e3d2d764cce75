"""Unit tests for the retry utility."""
from __future__ import annotations

import pytest

from outbox_service.utils.retry import RetryError, RetryStrategy, retry


@pytest.mark.unit
class TestRetryDecorator:
    """Test suite for retry decorator."""

    @pytest.mark.asyncio
    async def test_retry_succeeds_first_attempt(self):
        """Test that retry decorator doesn't retry on success."""
        call_count = 0

        @retry(max_attempts=3)
        async def successful_func():
            nonlocal call_count
            call_count += 1
            return "success"

        assert await successful_func() == "success"
        assert call_count == 1

    @pytest.mark.asyncio
    async def test_retry_succeeds_after_retries(self):
        """Test that retry decorator retries until success."""
        call_count = 0

        @retry(max_attempts=3, initial_delay=0.01, jitter=False)
        async def eventually_successful():
            nonlocal call_count
            call_count += 1
            if call_count < 3:
                raise ValueError("Not yet")
            return "success"

        assert await eventually_successful() == "success"
        assert call_count == 3

    @pytest.mark.asyncio
    async def test_retry_fails_after_max_attempts(self):
        """Test that retry raises RetryError after max attempts."""
        call_count = 0

        @retry(max_attempts=3, initial_delay=0.01)
        async def always_fails():
            nonlocal call_count
            call_count += 1
            raise ValueError("Always fails")

        with pytest.raises(RetryError) as exc_info:
            await always_fails()

        assert call_count == 3
        assert exc_info.value.attempts == 3
        assert isinstance(exc_info.value.last_exception, ValueError)
        assert "after 3 attempts" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_reraise_returns_original_exception(self):
        """Test that reraise surfaces the last exception itself."""

        @retry(max_attempts=2, initial_delay=0.01, reraise=True)
        async def always_fails():
            raise ValueError("boom")

        with pytest.raises(ValueError, match="boom"):
            await always_fails()

    @pytest.mark.asyncio
    async def test_retry_only_retries_specified_exceptions(self):
        """Test that retry only retries specified exception types."""
        call_count = 0

        @retry(max_attempts=3, initial_delay=0.01, exceptions=(ValueError,))
        async def raises_type_error():
            nonlocal call_count
            call_count += 1
            raise TypeError("Not retryable")

        with pytest.raises(TypeError):
            await raises_type_error()

        assert call_count == 1

    @pytest.mark.asyncio
    async def test_retry_if_predicate_overrides_exceptions(self):
        """Test that retry_if decides retryability."""
        call_count = 0

        @retry(max_attempts=3, initial_delay=0.01, retry_if=lambda e: "transient" in str(e))
        async def flaky():
            nonlocal call_count
            call_count += 1
            raise RuntimeError("permanent")

        with pytest.raises(RuntimeError):
            await flaky()

        assert call_count == 1

    @pytest.mark.asyncio
    async def test_on_retry_callback(self):
        """Test that on_retry is called before each retry."""
        seen: list[int] = []

        @retry(max_attempts=3, initial_delay=0.01, on_retry=lambda _e, attempt: seen.append(attempt))
        async def always_fails():
            raise ValueError("Fail")

        with pytest.raises(RetryError):
            await always_fails()

        assert seen == [1, 2]


@pytest.mark.unit
class TestRetryStrategy:
    """Test suite for RetryStrategy."""

    def test_exponential_delay_without_jitter(self):
        strategy = RetryStrategy(initial_delay=1.0, exponential_base=2.0, max_delay=5.0, jitter=False)

        assert [strategy.calculate_delay(n) for n in range(4)] == [1.0, 2.0, 4.0, 5.0]

    def test_jitter_stays_in_range(self):
        strategy = RetryStrategy(initial_delay=1.0, jitter=True, jitter_range=(0.5, 1.5))

        for _ in range(20):
            assert 0.5 <= strategy.calculate_delay(0) <= 1.5

    def test_rejects_zero_attempts(self):
        with pytest.raises(ValueError):
            RetryStrategy(max_attempts=0)

    def test_time_budget_exhausts_before_attempts(self):
        strategy = RetryStrategy(max_attempts=10, stop_after_delay=2.0)

        assert strategy.is_exhausted(0, elapsed=1.0) is False
        assert strategy.is_exhausted(0, elapsed=2.5) is True
        assert strategy.is_exhausted(9, elapsed=0.0) is True
