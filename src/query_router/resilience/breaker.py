"""Circuit breakers for the guarded dependencies.

States:
- CLOSED: normal operation, failures are counted
- OPEN: calls are rejected until the cooldown elapses
- HALF_OPEN: exactly one trial call is allowed through
"""

from __future__ import annotations

import threading
import time
from typing import Any, Callable

from query_router.logging import get_logger

logger = get_logger(__name__)

CLOSED = "CLOSED"
OPEN = "OPEN"
HALF_OPEN = "HALF_OPEN"


class CircuitBreaker:
    def __init__(
        self,
        name: str,
        threshold: int,
        window: float,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.name = name
        self.threshold = threshold
        self.window = window  # failure window and open-state cooldown, seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._state = CLOSED
        self._failures = 0
        self._last_failure: float | None = None
        self._opened_at: float | None = None
        self._trial_in_flight = False

    @property
    def state(self) -> str:
        with self._lock:
            return self._state

    @property
    def failures(self) -> int:
        with self._lock:
            return self._failures

    def allow_call(self) -> bool:
        with self._lock:
            if self._state == CLOSED:
                return True
            if self._state == OPEN:
                if self._clock() - (self._opened_at or 0.0) < self.window:
                    return False
                self._state = HALF_OPEN
                self._trial_in_flight = True
                logger.info(f"Circuit breaker '{self.name}' HALF_OPEN (testing recovery)")
                return True
            # HALF_OPEN: only the single trial call may run
            if self._trial_in_flight:
                return False
            self._trial_in_flight = True
            return True

    def record_success(self) -> None:
        with self._lock:
            recovered = self._state != CLOSED
            self._state = CLOSED
            self._failures = 0
            self._last_failure = None
            self._opened_at = None
            self._trial_in_flight = False
        if recovered:
            logger.info(f"Circuit breaker '{self.name}' CLOSED (service recovered)")

    def record_failure(self) -> None:
        opened = False
        with self._lock:
            now = self._clock()
            if self._state == HALF_OPEN:
                self._state = OPEN
                self._opened_at = now
                self._last_failure = now
                self._trial_in_flight = False
                opened = True
            else:
                if self._last_failure is not None and now - self._last_failure > self.window:
                    self._failures = 0
                self._failures += 1
                self._last_failure = now
                if self._state == CLOSED and self._failures >= self.threshold:
                    self._state = OPEN
                    self._opened_at = now
                    opened = True
            failures = self._failures
        if opened:
            logger.warning(
                f"Circuit breaker '{self.name}' OPEN after {failures} failure(s); "
                f"cooling down for {self.window:g}s"
            )

    def retry_after(self) -> float:
        with self._lock:
            if self._state != OPEN or self._opened_at is None:
                return 0.0
            return max(0.0, self.window - (self._clock() - self._opened_at))

    def reset(self) -> None:
        with self._lock:
            self._state = CLOSED
            self._failures = 0
            self._last_failure = None
            self._opened_at = None
            self._trial_in_flight = False

    def snapshot(self) -> dict[str, Any]:
        retry_after = self.retry_after()
        with self._lock:
            return {
                "name": self.name,
                "state": self._state,
                "failures": self._failures,
                "threshold": self.threshold,
                "window_s": self.window,
                "retry_after_s": round(retry_after, 1),
            }


class BreakerRegistry:
    """Owns one breaker per guarded dependency; pass it to every call site."""

    def __init__(self, breakers: dict[str, CircuitBreaker] | None = None):
        self._breakers: dict[str, CircuitBreaker] = dict(breakers or {})
        self._lock = threading.Lock()

    @classmethod
    def from_settings(cls, settings, clock: Callable[[], float] = time.monotonic) -> "BreakerRegistry":
        return cls(
            {
                "llm": CircuitBreaker(
                    "llm", settings.LLM_BREAKER_THRESHOLD, settings.LLM_BREAKER_WINDOW_S, clock
                ),
                "database": CircuitBreaker(
                    "database", settings.DB_BREAKER_THRESHOLD, settings.DB_BREAKER_WINDOW_S, clock
                ),
            }
        )

    def get(self, name: str) -> CircuitBreaker:
        with self._lock:
            try:
                return self._breakers[name]
            except KeyError:
                raise KeyError(f"No circuit breaker registered for '{name}'") from None

    def register(self, breaker: CircuitBreaker) -> None:
        with self._lock:
            self._breakers[breaker.name] = breaker

    def reset(self) -> None:
        with self._lock:
            breakers = list(self._breakers.values())
        for breaker in breakers:
            breaker.reset()

    def snapshot(self) -> dict[str, dict[str, Any]]:
        with self._lock:
            breakers = dict(self._breakers)
        return {name: b.snapshot() for name, b in breakers.items()}
