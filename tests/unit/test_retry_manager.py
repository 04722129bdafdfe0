"""
Unit tests for RetryManager and CircuitBreaker.
"""

from unittest.mock import AsyncMock

import pytest

from epub2zh.core.adapters import (
    BackendError,
    BackendErrorKind,
    CircuitBreaker,
    RetryConfig,
    RetryExhaustedError,
    RetryManager,
)
from tests.fixtures.fakes import backend_error


class RecordingSleep:
    def __init__(self):
        self.delays = []

    async def __call__(self, delay):
        self.delays.append(delay)


def make_manager(sleep, **overrides):
    configs = {
        BackendErrorKind.NETWORK: RetryConfig(max_attempts=3, initial_delay=1.0, jitter=0.0),
        BackendErrorKind.RATE_LIMITED: RetryConfig(max_attempts=3, initial_delay=2.0, jitter=0.0, max_delay=30.0),
    }
    configs.update(overrides)
    return RetryManager(custom_configs=configs, enable_circuit_breaker=False, sleep=sleep)


class TestRetryManager:
    """Test retry decisions per error kind."""

    @pytest.mark.asyncio
    async def test_network_error_then_success(self):
        sleep = RecordingSleep()
        func = AsyncMock(side_effect=[backend_error(BackendErrorKind.NETWORK), "ok"])

        result = await make_manager(sleep).execute_with_retry(func, "text")

        assert result == "ok"
        assert func.await_count == 2
        func.assert_awaited_with("text")
        assert sleep.delays == [1.0]

    @pytest.mark.asyncio
    async def test_exponential_backoff(self):
        sleep = RecordingSleep()
        func = AsyncMock(side_effect=[
            backend_error(BackendErrorKind.NETWORK),
            backend_error(BackendErrorKind.NETWORK),
            "ok",
        ])

        assert await make_manager(sleep).execute_with_retry(func) == "ok"
        assert sleep.delays == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_rate_limit_honours_retry_after(self):
        sleep = RecordingSleep()
        func = AsyncMock(side_effect=[backend_error(BackendErrorKind.RATE_LIMITED, retry_after=7), "ok"])

        assert await make_manager(sleep).execute_with_retry(func) == "ok"
        assert sleep.delays == [7.0]

    @pytest.mark.asyncio
    async def test_retry_after_is_capped_by_max_delay(self):
        sleep = RecordingSleep()
        func = AsyncMock(side_effect=[backend_error(BackendErrorKind.RATE_LIMITED, retry_after=600), "ok"])

        await make_manager(sleep).execute_with_retry(func)
        assert sleep.delays == [30.0]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("kind", [
        BackendErrorKind.AUTH_MISSING,
        BackendErrorKind.QUOTA_EXHAUSTED,
        BackendErrorKind.MALFORMED_RESPONSE,
    ])
    async def test_permanent_kinds_are_not_retried(self, kind):
        sleep = RecordingSleep()
        func = AsyncMock(side_effect=backend_error(kind))

        with pytest.raises(BackendError) as exc_info:
            await make_manager(sleep).execute_with_retry(func)

        assert exc_info.value.kind == kind
        assert func.await_count == 1
        assert sleep.delays == []

    @pytest.mark.asyncio
    async def test_exhaustion_wraps_last_error(self):
        sleep = RecordingSleep()
        func = AsyncMock(side_effect=backend_error(BackendErrorKind.NETWORK))

        with pytest.raises(RetryExhaustedError) as exc_info:
            await make_manager(sleep).execute_with_retry(func)

        assert exc_info.value.attempts == 3
        assert exc_info.value.original_error.kind == BackendErrorKind.NETWORK
        assert func.await_count == 3
        assert len(sleep.delays) == 2

    @pytest.mark.asyncio
    async def test_log_callback_and_on_retry(self):
        sleep = RecordingSleep()
        logs = []
        retries = []
        manager = RetryManager(
            custom_configs={BackendErrorKind.NETWORK: RetryConfig(max_attempts=2, initial_delay=0.5, jitter=0.0)},
            enable_circuit_breaker=False,
            log_callback=lambda log_type, message: logs.append(log_type),
            sleep=sleep
        )
        func = AsyncMock(side_effect=[backend_error(BackendErrorKind.NETWORK), "ok"])

        await manager.execute_with_retry(func, on_retry=lambda error, attempt: retries.append(attempt))

        assert retries == [1]
        assert logs == ["warning", "info"]

    @pytest.mark.asyncio
    async def test_open_circuit_fails_fast(self):
        manager = RetryManager(sleep=RecordingSleep())
        for _ in range(manager._circuit_breaker.failure_threshold):
            manager._circuit_breaker.record_failure()
        func = AsyncMock(return_value="ok")

        with pytest.raises(RetryExhaustedError):
            await manager.execute_with_retry(func)

        func.assert_not_awaited()
        assert manager.get_circuit_state() == "open"
        manager.reset()
        assert manager.get_circuit_state() == "closed"


class TestCircuitBreaker:
    """Test circuit state transitions."""

    def test_opens_after_threshold(self):
        breaker = CircuitBreaker(failure_threshold=2, timeout=60)
        breaker.record_failure()
        assert breaker.can_attempt()
        breaker.record_failure()
        assert breaker.state == "open"
        assert not breaker.can_attempt()

    def test_half_open_after_timeout_then_closes(self):
        breaker = CircuitBreaker(failure_threshold=1, timeout=0, success_threshold=2)
        breaker.record_failure()
        assert breaker.can_attempt()
        assert breaker.state == "half_open"

        breaker.record_success()
        assert breaker.state == "half_open"
        breaker.record_success()
        assert breaker.state == "closed"

    def test_failure_in_half_open_reopens(self):
        breaker = CircuitBreaker(failure_threshold=1, timeout=0)
        breaker.record_failure()
        breaker.can_attempt()
        breaker.record_failure()
        assert breaker.state == "open"
