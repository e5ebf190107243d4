"""Request pipeline: extract, classify, route, then build or delegate.

Deterministic rules always win. The LLM is consulted only when no rule
fired and a client is available; otherwise the heuristic fallback answers.
Failures on the LLM path are logged and re-raised, never papered over.
"""

from __future__ import annotations

import threading
from datetime import date
from typing import Any, Iterable

from query_router.config import Settings
from query_router.config import settings as default_settings
from query_router.exceptions import CircuitOpenError, ContextualError, LLMResponseError
from query_router.extract.parameters import extract_parameters
from query_router.intent.classifier import classify
from query_router.intent.types import IntentResult
from query_router.llm import router as llm_router
from query_router.logging import get_logger
from query_router.models.adapter import ChatAdapter
from query_router.resilience.guard import ResilienceGuard
from query_router.routing import rules
from query_router.routing.fallback import fallback_route
from query_router.routing.types import RouterDecision
from query_router.sql.builder import build_sql

logger = get_logger(__name__)

_default_guard: ResilienceGuard | None = None
_guard_lock = threading.Lock()


def default_guard() -> ResilienceGuard:
    """Process-wide guard so breaker state survives across requests."""
    global _default_guard
    with _guard_lock:
        if _default_guard is None:
            _default_guard = ResilienceGuard()
        return _default_guard


def _attach_sql(decision: RouterDecision, question: str) -> RouterDecision:
    if decision.task == "sql":
        decision.sql = build_sql(decision.intent, decision.parameters, question)
        if decision.sql is None:
            logger.debug(f"No deterministic SQL for intent={decision.intent}")
    return decision


def route(
    question: str,
    schema: dict[str, Any] | None = None,
    settings: Settings | None = None,
    history: Iterable[Any] | None = None,
    *,
    guard: ResilienceGuard | None = None,
    adapter: ChatAdapter | None = None,
    today: date | None = None,
) -> RouterDecision:
    cfg = settings or default_settings
    params = extract_parameters(question, today=today)
    result = classify(question, params)

    decision = rules.route(question, result)
    if decision is not None:
        return _attach_sql(decision, question)

    if adapter is None and not cfg.OPENAI_API_KEY:
        logger.info("No LLM configured; using heuristic fallback router")
        # The intent fell short of every rule, so its parameters are not trusted for SQL
        return fallback_route(question, result)

    try:
        decision = llm_router.llm_route(
            question,
            result,
            guard or default_guard(),
            adapter=adapter,
            schema=schema,
            history=history,
            settings=cfg,
        )
    except (ContextualError, CircuitOpenError, LLMResponseError) as e:
        logger.error(
            f"LLM routing failed for {question!r} (intent={result.intent}, "
            f"confidence={result.confidence:.2f}): {type(e).__name__}: {e}"
        )
        raise
    return _attach_sql(decision, question)


def generate_sql_for(
    decision: RouterDecision,
    *,
    guard: ResilienceGuard | None = None,
    adapter: ChatAdapter | None = None,
    schema: dict[str, Any] | None = None,
    settings: Settings | None = None,
) -> str:
    """SQL for an ``sql`` decision: the builder's output, else the LLM's."""
    if decision.task != "sql":
        raise ValueError(f"Decision task is {decision.task!r}, not 'sql'")
    if decision.sql:
        return decision.sql

    result = IntentResult(
        intent=decision.intent or "UNKNOWN",
        confidence=decision.raw_confidence or 0.0,
        parameters=decision.parameters,
        matched_keywords=list(decision.matched_keywords),
    )
    try:
        sql = llm_router.generate_sql(
            decision.original_question,
            result,
            guard or default_guard(),
            adapter=adapter,
            schema=schema,
            settings=settings,
        )
    except (ContextualError, CircuitOpenError, LLMResponseError) as e:
        logger.error(f"LLM SQL generation failed for {decision.original_question!r}: {e}")
        raise
    decision.sql = sql
    return sql
