import time

import pytest

from query_router.config import Settings
from query_router.exceptions import CircuitOpenError, ContextualError, OperationTimeoutError
from query_router.resilience.breaker import CLOSED, OPEN, BreakerRegistry
from query_router.resilience.guard import ResilienceGuard


class Counting:
    def __init__(self, error: Exception | None = None):
        self.error = error
        self.calls = 0

    def __call__(self):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return "ok"


def test_guard_passes_results_through(guard) -> None:
    assert guard.call_llm(lambda: ("text", {})) == ("text", {})
    assert guard.call_database(lambda: [1, 2]) == [1, 2]


def test_breaker_counts_one_failure_per_call(guard) -> None:
    fn = Counting(ConnectionError("connection reset"))

    errors = []
    for _ in range(2):
        with pytest.raises(ContextualError) as exc_info:
            guard.call_llm(fn)
        errors.append(type(exc_info.value).__name__)

    assert errors == ["ContextualError", "ContextualError"]
    # Three attempts per call, one breaker failure per call
    assert fn.calls == 6
    assert guard.registry.get("llm").failures == 2
    assert guard.registry.get("llm").state == CLOSED


def test_llm_failures_open_only_the_llm_breaker(guard) -> None:
    fn = Counting(ConnectionError("connection reset"))
    for _ in range(5):
        with pytest.raises(ContextualError):
            guard.call_llm(fn)
    assert guard.registry.get("llm").state == OPEN

    calls_before = fn.calls
    with pytest.raises(CircuitOpenError) as exc_info:
        guard.call_llm(fn)
    assert fn.calls == calls_before
    assert "Try again in 60s" in str(exc_info.value)

    assert guard.registry.get("database").state == CLOSED
    assert guard.call_database(lambda: "rows") == "rows"


def test_success_after_retries_resets_the_breaker(guard) -> None:
    with pytest.raises(ContextualError):
        guard.call_llm(Counting(ConnectionError("network down")))
    assert guard.registry.get("llm").failures == 1

    attempts = iter([ConnectionError("network down"), None])

    def flaky():
        error = next(attempts)
        if error is not None:
            raise error
        return "recovered"

    assert guard.call_llm(flaky) == "recovered"
    assert guard.registry.get("llm").failures == 0


def test_half_open_trial_decides_the_state(guard, clock) -> None:
    failing = Counting(ConnectionError("connection reset"))
    for _ in range(5):
        with pytest.raises(ContextualError):
            guard.call_llm(failing)

    clock.advance(61)
    with pytest.raises(ContextualError):
        guard.call_llm(failing)
    assert guard.registry.get("llm").state == OPEN

    clock.advance(61)
    assert guard.call_llm(lambda: "back") == "back"
    assert guard.registry.get("llm").state == CLOSED


def test_guard_applies_timeouts(clock) -> None:
    settings = Settings(_env_file=None, LLM_TIMEOUT_S=0.05, RETRY_MAX_ATTEMPTS=2)
    guard = ResilienceGuard(
        registry=BreakerRegistry.from_settings(settings, clock=clock),
        settings=settings,
        sleep=lambda _: None,
    )

    with pytest.raises(ContextualError) as exc_info:
        guard.call_llm(lambda: time.sleep(0.3), operation="llm_route")

    assert isinstance(exc_info.value.cause, OperationTimeoutError)
    assert exc_info.value.attempts == 2
    assert guard.registry.get("llm").failures == 1
