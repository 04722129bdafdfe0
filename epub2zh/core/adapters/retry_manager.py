"""
Retry manager with exponential backoff and error recovery strategies.

This module provides retry logic with:
- Exponential backoff with jitter
- Per-kind strategies for backend errors (only transient kinds are retried)
- Circuit breaker pattern for a backend that keeps failing
"""

import asyncio
import time
import random
from typing import Optional, Callable, Any, Dict
from dataclasses import dataclass
from enum import Enum

from epub2zh.config import MAX_RETRY_ATTEMPTS, RETRY_DELAY_BASE, RETRY_MAX_DELAY
from .exceptions import (
    TranslationError,
    BackendError,
    BackendErrorKind,
    RetryExhaustedError,
)


class RetryStrategy(Enum):
    """Retry strategies for different error kinds."""
    EXPONENTIAL = "exponential"  # Standard exponential backoff
    LINEAR = "linear"  # Linear backoff
    IMMEDIATE = "immediate"  # No delay, retry immediately
    NONE = "none"  # Don't retry


@dataclass
class RetryConfig:
    """Configuration for retry behavior.

    Attributes:
        max_attempts: Maximum number of attempts (first call included)
        initial_delay: Initial delay in seconds
        max_delay: Maximum delay in seconds
        backoff_factor: Multiplier for exponential backoff
        jitter: Add random jitter to delays (0.0-1.0)
        strategy: Retry strategy to use
    """
    max_attempts: int = 3
    initial_delay: float = 1.0
    max_delay: float = 60.0
    backoff_factor: float = 2.0
    jitter: float = 0.1
    strategy: RetryStrategy = RetryStrategy.EXPONENTIAL


NO_RETRY = RetryConfig(max_attempts=1, strategy=RetryStrategy.NONE)


def default_retry_configs() -> Dict[BackendErrorKind, RetryConfig]:
    """Retry configuration per backend error kind."""
    return {
        # Connection reset / timeout / 5xx
        BackendErrorKind.NETWORK: RetryConfig(
            max_attempts=MAX_RETRY_ATTEMPTS,
            initial_delay=RETRY_DELAY_BASE,
            max_delay=RETRY_MAX_DELAY,
            backoff_factor=2.0,
            strategy=RetryStrategy.EXPONENTIAL
        ),
        # Rate limit - wait longer
        BackendErrorKind.RATE_LIMITED: RetryConfig(
            max_attempts=MAX_RETRY_ATTEMPTS,
            initial_delay=RETRY_DELAY_BASE * 2,
            max_delay=RETRY_MAX_DELAY,
            backoff_factor=2.0,
            strategy=RetryStrategy.EXPONENTIAL
        ),
        # Waiting does not fix these - next backend instead
        BackendErrorKind.AUTH_MISSING: NO_RETRY,
        BackendErrorKind.QUOTA_EXHAUSTED: NO_RETRY,
        BackendErrorKind.MALFORMED_RESPONSE: NO_RETRY,
    }


class CircuitBreaker:
    """Circuit breaker pattern to prevent cascading failures.

    After a threshold of failures, the circuit opens and fails fast
    for a timeout period before allowing retries again.
    """

    def __init__(
        self,
        failure_threshold: int = 5,
        timeout: float = 60.0,
        success_threshold: int = 2
    ):
        """
        Args:
            failure_threshold: Number of failures before opening circuit
            timeout: Seconds to wait before allowing retries
            success_threshold: Successes needed to close circuit
        """
        self.failure_threshold = failure_threshold
        self.timeout = timeout
        self.success_threshold = success_threshold

        self._failure_count = 0
        self._success_count = 0
        self._last_failure_time: Optional[float] = None
        self._state = "closed"  # closed, open, half_open

    def record_success(self):
        """Record a successful operation."""
        if self._state == "half_open":
            self._success_count += 1
            if self._success_count >= self.success_threshold:
                self._state = "closed"
                self._failure_count = 0
                self._success_count = 0
        elif self._state == "closed":
            self._failure_count = max(0, self._failure_count - 1)

    def record_failure(self):
        """Record a failed operation."""
        self._failure_count += 1
        self._last_failure_time = time.time()

        if self._state == "half_open" or self._failure_count >= self.failure_threshold:
            self._state = "open"
            self._success_count = 0

    def can_attempt(self) -> bool:
        """Check if an attempt is allowed."""
        if self._state == "closed":
            return True

        if self._state == "open":
            if self._last_failure_time and (time.time() - self._last_failure_time) >= self.timeout:
                self._state = "half_open"
                self._success_count = 0
                return True
            return False

        # half_open state
        return True

    def reset(self):
        self._failure_count = 0
        self._success_count = 0
        self._last_failure_time = None
        self._state = "closed"

    @property
    def state(self) -> str:
        """Current circuit state."""
        return self._state


class RetryManager:
    """Manages retry logic with exponential backoff and circuit breaking."""

    def __init__(
        self,
        default_config: Optional[RetryConfig] = None,
        custom_configs: Optional[Dict[BackendErrorKind, RetryConfig]] = None,
        enable_circuit_breaker: bool = True,
        log_callback: Optional[Callable[[str, str], None]] = None,
        sleep: Optional[Callable[[float], Any]] = None
    ):
        """
        Args:
            default_config: Config for errors that are not BackendErrors
            custom_configs: Overrides for specific backend error kinds
            enable_circuit_breaker: Enable circuit breaker pattern
            log_callback: Callback for logging (log_type, message)
            sleep: Awaitable sleep function (asyncio.sleep by default)
        """
        self.default_config = default_config or NO_RETRY
        self.configs = {**default_retry_configs(), **(custom_configs or {})}
        self.enable_circuit_breaker = enable_circuit_breaker
        self.log_callback = log_callback
        self._sleep = sleep or asyncio.sleep

        self._circuit_breaker = CircuitBreaker() if enable_circuit_breaker else None

    def _get_config(self, error: Exception) -> RetryConfig:
        """Get retry configuration for an error."""
        if isinstance(error, BackendError):
            return self.configs.get(error.kind, NO_RETRY)
        return self.default_config

    def _calculate_delay(self, attempt: int, config: RetryConfig) -> float:
        """Calculate delay for the given attempt."""
        if config.strategy in (RetryStrategy.IMMEDIATE, RetryStrategy.NONE):
            return 0.0

        if config.strategy == RetryStrategy.LINEAR:
            delay = config.initial_delay * attempt
        else:  # EXPONENTIAL
            delay = config.initial_delay * (config.backoff_factor ** (attempt - 1))

        delay = min(delay, config.max_delay)

        if config.jitter > 0:
            delay += delay * config.jitter * random.random()

        return delay

    def _log(self, log_type: str, message: str):
        """Internal logging helper."""
        if self.log_callback:
            self.log_callback(log_type, message)

    async def execute_with_retry(
        self,
        func: Callable[..., Any],
        *args,
        operation_id: Optional[str] = None,
        on_retry: Optional[Callable[[Exception, int], None]] = None,
        **kwargs
    ) -> Any:
        """Execute an async function with retry logic.

        Args:
            func: Async function to execute
            *args: Positional arguments for func
            operation_id: Identifier used in log messages
            on_retry: Callback called before each retry (error, attempt_number)
            **kwargs: Keyword arguments for func

        Returns:
            Result of func

        Raises:
            RetryExhaustedError: If transient failures outlast the attempts,
                or the circuit is open
            BackendError: Immediately, for kinds that are not retried
        """
        last_error: Optional[Exception] = None
        attempt = 0
        op_id = operation_id or f"op_{id(func)}"

        while True:
            attempt += 1

            if self._circuit_breaker and not self._circuit_breaker.can_attempt():
                self._log("error", f"Circuit breaker open for {op_id}, failing fast")
                raise RetryExhaustedError(
                    "Circuit breaker is open, operation blocked",
                    original_error=last_error,
                    attempts=attempt - 1
                )

            try:
                result = await func(*args, **kwargs)

                if self._circuit_breaker:
                    self._circuit_breaker.record_success()

                if attempt > 1:
                    self._log("info", f"Operation {op_id} succeeded after {attempt} attempts")

                return result

            except TranslationError as error:
                last_error = error
                config = self._get_config(error)

                if not error.recoverable or config.strategy == RetryStrategy.NONE:
                    if self._circuit_breaker:
                        self._circuit_breaker.record_failure()
                    self._log("error", f"Not retrying {op_id}: {error}")
                    raise

                if attempt >= config.max_attempts:
                    if self._circuit_breaker:
                        self._circuit_breaker.record_failure()

                    self._log(
                        "error",
                        f"Retry exhausted for {op_id} after {attempt} attempts: {error}"
                    )
                    raise RetryExhaustedError(
                        f"Maximum retry attempts ({config.max_attempts}) exceeded",
                        original_error=error,
                        attempts=attempt
                    ) from error

                delay = self._calculate_delay(attempt, config)
                retry_after = getattr(error, 'retry_after', None)
                if retry_after:
                    delay = max(delay, min(retry_after, config.max_delay))

                self._log(
                    "warning",
                    f"Attempt {attempt}/{config.max_attempts} failed for {op_id}: "
                    f"{error}. Retrying in {delay:.2f}s..."
                )

                if on_retry:
                    try:
                        on_retry(error, attempt)
                    except Exception as callback_error:
                        self._log("warning", f"Error in on_retry callback: {callback_error}")

                if delay > 0:
                    await self._sleep(delay)

    def reset(self):
        """Close the circuit and forget past failures."""
        if self._circuit_breaker:
            self._circuit_breaker.reset()

    def get_circuit_state(self) -> Optional[str]:
        """Get current circuit breaker state."""
        return self._circuit_breaker.state if self._circuit_breaker else None
