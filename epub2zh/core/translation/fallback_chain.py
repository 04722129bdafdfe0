"""
Ordered backend fallback.

A FallbackChain tries its strategies in order and returns the first success.
Each network strategy runs under its own RetryManager, so transient failures
(rate limits, connection resets) are retried on the same backend before the
chain moves on. The offline simulator always closes the chain, which makes
FallbackChain.translate total.
"""

import logging
from dataclasses import dataclass
from typing import Callable, List, Optional, Set, Union

from epub2zh.config import TRANSLATOR_API
from epub2zh.core.adapters import (
    TranslationError,
    BackendError,
    BackendErrorKind,
    ConfigurationError,
    RetryManager,
)
from epub2zh.core.backends import (
    TranslationBackend,
    SimulatorBackend,
    BackendKind,
    create_backend,
)

logger = logging.getLogger(__name__)

# A backend failing with one of these will fail the same way on every block
PERMANENT_FAILURES = (BackendErrorKind.AUTH_MISSING, BackendErrorKind.QUOTA_EXHAUSTED)


@dataclass
class TranslationStrategy:
    """One backend plus the retry policy it runs under."""
    backend: TranslationBackend
    retry_manager: Optional[RetryManager] = None

    @property
    def name(self) -> str:
        return self.backend.name

    @property
    def is_offline(self) -> bool:
        return getattr(self.backend, 'is_offline', False)

    async def translate(self, text: str) -> str:
        if self.retry_manager is None:
            return await self.backend.translate(text)
        return await self.retry_manager.execute_with_retry(
            self.backend.translate,
            text,
            operation_id=f"{self.backend.name} ({len(text)} chars)"
        )


@dataclass
class TranslationOutcome:
    """Result of a chain call.

    Attributes:
        text: Translated text
        backend_name: Backend that produced it
        degraded: The offline simulator answered instead of the configured primary
        fallback_used: Any backend other than the primary answered
    """
    text: str
    backend_name: str
    degraded: bool = False
    fallback_used: bool = False


class FallbackChain:
    """Tries each strategy in order; the first success wins."""

    def __init__(
        self,
        strategies: List[TranslationStrategy],
        log_callback: Optional[Callable[[str, str], None]] = None
    ):
        if not strategies:
            raise ConfigurationError("A fallback chain needs at least one backend")

        self.strategies = list(strategies)
        if not self.strategies[-1].is_offline:
            self.strategies.append(TranslationStrategy(SimulatorBackend()))

        self.primary_name = self.strategies[0].name
        self.log_callback = log_callback
        self._disabled: Set[str] = set()
        self.degraded_count = 0

    @property
    def backend_names(self) -> List[str]:
        return [s.name for s in self.strategies]

    def _log(self, log_type: str, message: str):
        if self.log_callback:
            self.log_callback(log_type, message)

    async def translate(self, text: str) -> TranslationOutcome:
        """
        Translate text with the first backend that succeeds.

        Never raises for backend failures: the simulator is the last strategy.
        """
        for index, strategy in enumerate(self.strategies):
            if strategy.name in self._disabled:
                continue

            try:
                result = await strategy.translate(text)
            except TranslationError as e:
                logger.warning(f"Backend '{strategy.name}' failed: {e}")
                self._log("warning", f"Backend '{strategy.name}' failed, trying next: {e.message}")
                self._maybe_disable(strategy, e)
                continue

            degraded = strategy.is_offline and index > 0
            if degraded:
                self.degraded_count += 1
                self._log("warning", "Offline simulation used: translation quality is degraded")

            return TranslationOutcome(
                text=result,
                backend_name=strategy.name,
                degraded=degraded,
                fallback_used=index > 0
            )

        # Every strategy failed (a custom offline backend can raise)
        simulator = SimulatorBackend()
        self.degraded_count += 1
        return TranslationOutcome(
            text=await simulator.translate(text),
            backend_name=simulator.name,
            degraded=self.primary_name != simulator.name,
            fallback_used=True
        )

    def _maybe_disable(self, strategy: TranslationStrategy, error: TranslationError):
        cause = getattr(error, 'original_error', None) or error
        if isinstance(cause, BackendError) and cause.kind in PERMANENT_FAILURES:
            self._disabled.add(strategy.name)
            self._log(
                "error",
                f"Backend '{strategy.name}' disabled for this job ({cause.kind.value})"
            )

    async def close(self):
        for strategy in self.strategies:
            await strategy.backend.close()


def build_default_chain(
    primary: Union[str, BackendKind, None] = None,
    backend_options: Optional[dict] = None,
    log_callback: Optional[Callable[[str, str], None]] = None,
    sleep=None,
    client=None
) -> FallbackChain:
    """
    Build [primary, google, simulator] with duplicates removed.

    Args:
        primary: Configured backend (TRANSLATOR_API when None)
        backend_options: Constructor overrides for the primary backend
        log_callback: Receives (log_type, message) from retries and fallbacks
        sleep: Awaitable sleep used between retries (tests pass a no-op)
        client: Shared httpx.AsyncClient for the network backends
    """
    primary_kind = BackendKind.parse(primary or TRANSLATOR_API)

    kinds = [primary_kind]
    if primary_kind != BackendKind.SIMULATE:
        kinds.append(BackendKind.GOOGLE)
    kinds.append(BackendKind.SIMULATE)

    strategies = []
    for kind in dict.fromkeys(kinds):
        options = dict(backend_options or {}) if kind == primary_kind else {}
        if kind == BackendKind.SIMULATE:
            max_length = options.get('max_length')
            strategies.append(TranslationStrategy(create_backend(kind, max_length=max_length)))
            continue

        options.setdefault('client', client)
        backend = create_backend(kind, **options)
        retry_manager = RetryManager(log_callback=log_callback, sleep=sleep)
        strategies.append(TranslationStrategy(backend, retry_manager))

    logger.info(f"Translation chain: {' -> '.join(s.name for s in strategies)}")
    return FallbackChain(strategies, log_callback=log_callback)
