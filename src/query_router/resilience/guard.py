from __future__ import annotations

import time
from typing import Callable, TypeVar

from query_router.config import Settings
from query_router.config import settings as default_settings
from query_router.exceptions import CircuitOpenError

from .breaker import BreakerRegistry
from .retry import RetryPolicy, call_with_timeout, retry_with_backoff

T = TypeVar("T")


class ResilienceGuard:
    """Timeout + retry + circuit breaker around the LLM and the database.

    The breaker sees one outcome per guarded call, however many retries
    the call used.
    """

    def __init__(
        self,
        registry: BreakerRegistry | None = None,
        settings: Settings | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.settings = settings or default_settings
        self.registry = registry or BreakerRegistry.from_settings(self.settings)
        self.policy = RetryPolicy.from_settings(self.settings)
        self._sleep = sleep

    def _call(self, fn: Callable[[], T], operation: str, breaker: str, timeout: float) -> T:
        circuit = self.registry.get(breaker)
        if not circuit.allow_call():
            raise CircuitOpenError(circuit.name, circuit.retry_after())

        try:
            result = retry_with_backoff(
                lambda: call_with_timeout(fn, timeout, operation),
                self.policy,
                operation,
                sleep=self._sleep,
            )
        except Exception:
            circuit.record_failure()
            raise
        circuit.record_success()
        return result

    def call_llm(self, fn: Callable[[], T], operation: str = "llm_call") -> T:
        return self._call(fn, operation, "llm", self.settings.LLM_TIMEOUT_S)

    def call_database(self, fn: Callable[[], T], operation: str = "database_query") -> T:
        return self._call(fn, operation, "database", self.settings.DB_TIMEOUT_S)
