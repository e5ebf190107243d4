"""Custom exceptions for query_router."""

from __future__ import annotations


class QueryRouterError(Exception):
    """Base exception for all query_router exceptions."""


class ContextualError(QueryRouterError):
    """Raised when a guarded call fails for good.

    Carries the operation name, how many attempts were made and the
    underlying error so the caller can log it without reproducing the request.
    """

    def __init__(self, operation: str, attempts: int, cause: BaseException):
        self.operation = operation
        self.attempts = attempts
        self.cause = cause
        super().__init__(
            f"{operation} failed after {attempts} attempt(s): "
            f"{type(cause).__name__}: {cause}"
        )


class CircuitOpenError(QueryRouterError):
    """Raised when a circuit breaker rejects a call."""

    def __init__(self, service: str, retry_after: float):
        self.service = service
        self.retry_after = retry_after
        super().__init__(
            f"Circuit breaker '{service}' is open. "
            f"Try again in {max(0, round(retry_after))}s."
        )


class OperationTimeoutError(QueryRouterError, TimeoutError):
    """Raised when a guarded operation times out."""

    def __init__(self, operation: str, timeout: float):
        self.operation = operation
        self.timeout = timeout
        super().__init__(f"{operation} timed out after {timeout:g}s")


class LLMResponseError(QueryRouterError):
    """Raised when an LLM reply is malformed or fails schema validation."""


class UnsafeSQLError(LLMResponseError):
    """Raised when SQL fails the read-only safety validation."""
