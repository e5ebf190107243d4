from __future__ import annotations

from query_router.extract import patterns
from query_router.extract.types import ParameterBag
from query_router.intent.types import IntentResult
from query_router.logging import get_logger

from .types import RouterDecision

logger = get_logger(__name__)


def _decision(
    question: str,
    task: str,
    confidence: float,
    reason: str,
    template: str,
    result: IntentResult | None,
) -> RouterDecision:
    return RouterDecision(
        task=task,
        confidence=confidence,
        raw_confidence=result.confidence if result else None,
        reason=reason,
        route_source="deterministic",
        intent=result.intent if result else None,
        parameters=result.parameters if result else ParameterBag(),
        template_used=template,
        rule=f"fallback:{template}",
        matched_keywords=list(result.matched_keywords) if result else [],
        original_question=question,
    )


def fallback_route(question: str, result: IntentResult | None = None) -> RouterDecision:
    """Heuristic catch-all used when no rule fired and no LLM is configured."""
    trimmed = (question or "").strip()
    words = trimmed.split()

    if len(trimmed) < 2 or (len(words) == 1 and not patterns.MEANINGFUL_WORDS.search(trimmed)):
        logger.info(f"Fallback rejected meaningless query: {trimmed!r}")
        return _decision(
            question,
            "rag",
            0.3,
            "Query too short or lacks meaningful content. Ask a complete question about "
            "mining operations, production data or equipment.",
            "rejected_query_template",
            result,
        )

    if patterns.ADVISORY.search(trimmed):
        return _decision(
            question,
            "rag",
            0.75,
            "Detected advisory/procedural pattern (catch-all)",
            "advisory_rule_template",
            result,
        )

    if patterns.OPTIMIZATION.search(trimmed):
        return _decision(
            question,
            "optimize",
            0.75,
            "Detected optimization/forecasting pattern (catch-all)",
            "optimize_rule_template",
            result,
        )

    if patterns.SQL_DATA.search(trimmed):
        return _decision(
            question,
            "sql",
            0.8,
            "Detected strong SQL/data indicators (catch-all)",
            "data_retrieval_rule_template",
            result,
        )

    logger.info(f"Fallback could not determine intent for: {trimmed!r}")
    return _decision(
        question,
        "rag",
        0.5,
        "Query unclear - could not determine intent. Defaulting to document search.",
        "unclear_query_template",
        result,
    )
