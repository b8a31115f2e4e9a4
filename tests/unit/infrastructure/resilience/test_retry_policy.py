# tests/unit/infrastructure/resilience/test_retry_policy.py
import asyncio

import pytest
from unittest.mock import AsyncMock, MagicMock

from domain.exceptions import LedgerError, RetryExhaustedError
from infrastructure.resilience.retry_policy import RetryPolicy, RetryPolicyConfig

@pytest.fixture
def sleep():
    return AsyncMock()

@pytest.fixture
def policy_config():
    """Default retry configuration for testing"""
    return RetryPolicyConfig(
        max_retries=3,
        backoff_base_ms=1000,
        timeout_seconds=1.0
    )

class TestRetryPolicy:
    """Test retry policy behaviour"""

    def test_attempt_budget(self, policy_config):
        """max_retries bounds the number of attempts"""
        policy = RetryPolicy(policy_config)

        assert policy.max_attempts == 4
        assert policy.should_retry(3)
        assert not policy.should_retry(4)

    def test_linear_backoff(self, policy_config):
        """Backoff grows with the failure count"""
        policy = RetryPolicy(policy_config)

        assert policy.backoff_seconds(1) == 1.0
        assert policy.backoff_seconds(2) == 2.0
        assert policy.backoff_seconds(3) == 3.0

    @pytest.mark.asyncio
    async def test_successful_call(self, policy_config, sleep):
        """First-try success returns immediately without sleeping"""
        policy = RetryPolicy(policy_config, sleep=sleep)

        async def success_func(value):
            return value

        assert await policy.call(success_func, "success") == "success"
        sleep.assert_not_called()

    @pytest.mark.asyncio
    async def test_retries_until_success(self, policy_config, sleep):
        """Failures are retried with backoff between attempts"""
        policy = RetryPolicy(policy_config, sleep=sleep)
        func = AsyncMock(side_effect=[Exception("one"), Exception("two"), "ok"])
        on_failure = MagicMock()

        result = await policy.call(func, on_failure=on_failure)

        assert result == "ok"
        assert func.call_count == 3
        assert [c.args[0] for c in sleep.call_args_list] == [1.0, 2.0]
        assert [c.args[0] for c in on_failure.call_args_list] == [1, 2]

    @pytest.mark.asyncio
    async def test_exhaustion(self, policy_config, sleep):
        """After max_retries + 1 failures the last error is surfaced"""
        policy = RetryPolicy(policy_config, sleep=sleep)
        last = Exception("always")
        func = AsyncMock(side_effect=last)

        with pytest.raises(RetryExhaustedError) as exc_info:
            await policy.call(func)

        assert func.call_count == 4
        assert sleep.call_count == 3
        assert exc_info.value.attempts == 4
        assert exc_info.value.last_error is last

    @pytest.mark.asyncio
    async def test_zero_retries(self, sleep):
        """max_retries=0 means exactly one attempt"""
        policy = RetryPolicy(RetryPolicyConfig(max_retries=0), sleep=sleep)
        func = AsyncMock(side_effect=Exception("fail"))

        with pytest.raises(RetryExhaustedError):
            await policy.call(func)

        assert func.call_count == 1
        sleep.assert_not_called()

    @pytest.mark.asyncio
    async def test_fatal_errors_propagate(self, policy_config, sleep):
        """Fatal exception types are raised on first occurrence"""
        policy = RetryPolicy(policy_config, sleep=sleep)
        func = AsyncMock(side_effect=LedgerError("disk"))

        with pytest.raises(LedgerError):
            await policy.call(func, fatal=(LedgerError,))

        assert func.call_count == 1

    @pytest.mark.asyncio
    async def test_timeout(self, sleep):
        """An attempt that overruns the timeout is a failure"""
        policy = RetryPolicy(RetryPolicyConfig(max_retries=0, timeout_seconds=0.01), sleep=sleep)

        async def slow_func():
            await asyncio.sleep(1)

        with pytest.raises(RetryExhaustedError) as exc_info:
            await policy.call(slow_func)

        assert isinstance(exc_info.value.last_error, asyncio.TimeoutError)

    @pytest.mark.asyncio
    async def test_no_timeout(self, sleep):
        """timeout_seconds=None leaves attempts unbounded"""
        policy = RetryPolicy(RetryPolicyConfig(timeout_seconds=None), sleep=sleep)

        async def quick():
            return 42

        assert await policy.run_with_timeout(quick) == 42
