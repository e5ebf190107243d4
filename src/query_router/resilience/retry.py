from __future__ import annotations

import threading
import time
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FuturesTimeoutError
from dataclasses import dataclass
from typing import Callable, TypeVar

import openai

from query_router.exceptions import (
    CircuitOpenError,
    ContextualError,
    LLMResponseError,
    OperationTimeoutError,
)
from query_router.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

RETRYABLE_TYPES: tuple[type[BaseException], ...] = (
    OperationTimeoutError,
    TimeoutError,
    ConnectionError,
    openai.APIConnectionError,
    openai.APITimeoutError,
    openai.RateLimitError,
    openai.InternalServerError,
)

RETRYABLE_SIGNATURES: tuple[str, ...] = (
    "timeout",
    "timed out",
    "network",
    "connection",
    "econnreset",
    "econnrefused",
    "socket hang up",
    "rate limit",
    "429",
    "500",
    "502",
    "503",
    "504",
)

NON_RETRYABLE_SIGNATURES: tuple[str, ...] = (
    "400",
    "401",
    "403",
    "404",
    "invalid",
    "validation",
    "malformed",
    "unauthorized",
    "forbidden",
)


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 3
    initial_delay: float = 1.0
    multiplier: float = 2.0
    max_delay: float = 10.0

    @classmethod
    def from_settings(cls, settings) -> "RetryPolicy":
        return cls(
            max_attempts=settings.RETRY_MAX_ATTEMPTS,
            initial_delay=settings.RETRY_INITIAL_DELAY_S,
            multiplier=settings.RETRY_MULTIPLIER,
            max_delay=settings.RETRY_MAX_DELAY_S,
        )

    def delay_for(self, retry_index: int) -> float:
        """Backoff before retry ``retry_index`` (0 for the first retry)."""
        return min(self.initial_delay * (self.multiplier**retry_index), self.max_delay)


def is_retryable(error: BaseException) -> bool:
    """Classify an error as transient (retry) or permanent (surface now)."""
    if isinstance(error, (LLMResponseError, CircuitOpenError)):
        return False
    if isinstance(error, RETRYABLE_TYPES):
        return True

    status = getattr(error, "status_code", None)
    if isinstance(status, int):
        if status == 429 or status >= 500:
            return True
        if 400 <= status < 500:
            return False

    message = str(error).lower()
    if any(sig in message for sig in RETRYABLE_SIGNATURES):
        return True
    if any(sig in message for sig in NON_RETRYABLE_SIGNATURES):
        return False
    return False


_executor: ThreadPoolExecutor | None = None
_executor_lock = threading.Lock()


def _shared_executor() -> ThreadPoolExecutor:
    global _executor
    with _executor_lock:
        if _executor is None:
            _executor = ThreadPoolExecutor(max_workers=8, thread_name_prefix="query-router-guard")
        return _executor


def call_with_timeout(fn: Callable[[], T], timeout: float | None, operation: str) -> T:
    """Run ``fn`` and stop waiting after ``timeout`` seconds.

    The underlying call is not cancelled; it keeps running on the pool.
    """
    if not timeout or timeout <= 0:
        return fn()
    future = _shared_executor().submit(fn)
    try:
        return future.result(timeout=timeout)
    except FuturesTimeoutError:
        if future.done():
            # fn itself raised a TimeoutError
            raise
        raise OperationTimeoutError(operation, timeout) from None


def retry_with_backoff(
    fn: Callable[[], T],
    policy: RetryPolicy,
    operation: str,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Call ``fn`` until it succeeds, fails permanently or runs out of attempts.

    Every failure that escapes is wrapped in a ``ContextualError``.
    """
    attempts = max(policy.max_attempts, 1)
    for attempt in range(1, attempts + 1):
        try:
            result = fn()
        except Exception as exc:
            if not is_retryable(exc):
                logger.error(f"{operation}: non-retryable {type(exc).__name__}: {exc}")
                raise ContextualError(operation, attempt, exc) from exc

            if attempt == attempts:
                logger.error(f"{operation}: all {attempts} attempt(s) failed")
                raise ContextualError(operation, attempts, exc) from exc

            delay = policy.delay_for(attempt - 1)
            logger.warning(
                f"{operation}: attempt {attempt}/{attempts} failed "
                f"({type(exc).__name__}: {exc}). Retrying in {delay:g}s..."
            )
            sleep(delay)
            continue

        if attempt > 1:
            logger.info(f"{operation}: succeeded on attempt {attempt}")
        return result
