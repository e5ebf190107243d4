"""Priority-ordered deterministic routing rules.

Each rule is a plain data value. ``route`` walks ``RULES`` in order and the
first rule whose intent, confidence and parameter guards all pass produces the
decision; no match returns ``None`` so the caller can fall back.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

from query_router.intent.types import IntentResult
from query_router.logging import get_logger

from .types import RouterDecision

logger = get_logger(__name__)

Guard = Callable[[IntentResult], bool]
ReasonBuilder = Callable[[IntentResult], str]


@dataclass(frozen=True)
class RouterRule:
    name: str
    task: str
    intents: tuple[str, ...] = ()
    min_confidence: float = 0.0
    floor: float = 0.0
    template_used: str | None = None
    guard: Guard | None = None
    reason: ReasonBuilder | str = ""
    decision_intent: str | None = None  # intent to report when the guard, not the intent, matched

    def check(self, result: IntentResult) -> tuple[bool, str]:
        """Return whether the rule fires, with the first failing condition."""
        if self.intents and result.intent not in self.intents:
            return False, "intent"
        if result.confidence < self.min_confidence:
            return False, f"confidence {result.confidence:.2f} < {self.min_confidence:.2f}"
        if self.guard is not None and not self.guard(result):
            return False, "parameters"
        return True, ""

    def describe(self, result: IntentResult) -> str:
        if callable(self.reason):
            return self.reason(result)
        return self.reason

    def decide(self, question: str, result: IntentResult) -> RouterDecision:
        return RouterDecision(
            task=self.task,
            confidence=max(self.floor, result.confidence),
            raw_confidence=result.confidence,
            reason=self.describe(result),
            route_source="deterministic",
            intent=self.decision_intent or result.intent,
            parameters=result.parameters,
            template_used=self.template_used,
            rule=self.name,
            matched_keywords=list(result.matched_keywords),
            original_question=question,
        )


def _has_row_number(result: IntentResult) -> bool:
    return result.parameters.row_number is not None


def _has_equipment(result: IntentResult) -> bool:
    return result.parameters.has_equipment


def _no_equipment(result: IntentResult) -> bool:
    return not result.parameters.has_equipment


def _is_combination(result: IntentResult) -> bool:
    params = result.parameters
    return len(params.equipment_ids or []) >= 2 or len(params.machine_types or []) >= 2


def _equipment_reason(result: IntentResult) -> str:
    return "Equipment-specific query for: " + ", ".join(result.parameters.equipment_ids or [])


def _row_reason(result: IntentResult) -> str:
    return f"Ordinal row request ({result.parameters.row_number}) - direct database access"


def _time_reason(result: IntentResult) -> str:
    params = result.parameters
    if params.month_name and params.year:
        scope = f"{params.month_name} {params.year}"
    elif params.quarter and params.year:
        scope = f"Q{params.quarter} {params.year}"
    elif params.date_range:
        scope = params.date_range
    elif params.year:
        scope = f"year {params.year}"
    else:
        scope = "the requested period"
    return f"Time-based summary for {scope}"


SPECIFIC_AGGREGATION_INTENTS: tuple[str, ...] = (
    "TOTAL_TONNAGE",
    "TOTAL_TRIPS",
    "AVERAGE_PRODUCTION",
    "PRODUCTION_SUMMARY",
    "SHIFT_SPECIFIC",
    "TRIP_ANALYSIS",
    "MATERIAL_VOLUME",
    "RECLAIM_ANALYSIS",
    "DAILY_PRODUCTION",
    "EQUIPMENT_BREAKDOWN",
    "EQUIPMENT_UTILIZATION",
    "TARGET_ACHIEVEMENT",
)

TIME_SUMMARY_INTENTS: tuple[str, ...] = (
    "MONTHLY_SUMMARY",
    "WEEKLY_SUMMARY",
    "QUARTERLY_SUMMARY",
    "DATE_RANGE_QUERY",
    "YEAR_OVER_YEAR",
    "PRODUCTION_TREND",
)

RULES: tuple[RouterRule, ...] = (
    RouterRule(
        name="statistical",
        task="sql",
        intents=("STATISTICAL_QUERY",),
        min_confidence=0.6,
        floor=0.9,
        template_used="statistical_rule_template",
        reason="Statistical query (mean, median, mode, stddev) detected",
    ),
    RouterRule(
        name="target_optimization",
        task="optimize",
        intents=("TARGET_OPTIMIZATION",),
        min_confidence=0.7,
        floor=0.9,
        template_used="target_optimize_rule_template",
        reason="Target optimization - planning equipment allocation for a production goal",
    ),
    RouterRule(
        name="equipment_optimization",
        task="optimize",
        intents=("EQUIPMENT_OPTIMIZATION",),
        min_confidence=0.7,
        floor=0.9,
        template_used="optimize_rule_template",
        reason="Equipment optimization query - requires the optimizer",
    ),
    RouterRule(
        name="forecasting",
        task="optimize",
        intents=("FORECASTING",),
        min_confidence=0.7,
        floor=0.9,
        template_used="optimize_rule_template",
        reason="Forecasting query - requires the optimizer",
    ),
    RouterRule(
        name="equipment_replacement",
        task="optimize",
        intents=("EQUIPMENT_REPLACEMENT",),
        min_confidence=0.7,
        floor=0.9,
        template_used="replacement_rule_template",
        reason="Equipment replacement - selecting an alternative unit",
    ),
    RouterRule(
        name="ordinal_row",
        task="sql",
        guard=_has_row_number,
        floor=0.95,
        template_used="ordinal_row_override",
        reason=_row_reason,
        decision_intent="ORDINAL_ROW_QUERY",
    ),
    RouterRule(
        name="equipment_combination",
        task="sql",
        intents=("EQUIPMENT_COMBINATION",),
        min_confidence=0.6,
        floor=0.9,
        template_used="equipment_combination_override",
        guard=_is_combination,
        reason="Equipment combination query - analyzing equipment pairings",
    ),
    RouterRule(
        name="equipment_specific",
        task="sql",
        intents=("EQUIPMENT_SPECIFIC_PRODUCTION",),
        min_confidence=0.6,
        floor=0.95,
        template_used="equipment_specific_production_override",
        guard=_has_equipment,
        reason=_equipment_reason,
    ),
    RouterRule(
        name="shift_month_comparison",
        task="sql",
        intents=("COMPARISON_QUERY", "SHIFT_COMPARISON", "MONTH_COMPARISON"),
        min_confidence=0.6,
        floor=0.8,
        template_used="comparison_query_override",
        guard=_no_equipment,
        reason="Comparison query - comparing shifts or months",
    ),
    RouterRule(
        name="advisory",
        task="rag",
        intents=("ADVISORY_QUERY",),
        min_confidence=0.6,
        floor=0.9,
        template_used="advisory_rule_template",
        reason="Advisory/procedural query - retrieving guidelines from documents",
    ),
    RouterRule(
        name="visualization",
        task="sql",
        intents=("CHART_VISUALIZATION",),
        min_confidence=0.6,
        floor=0.9,
        template_used="visualization_rule_template",
        reason="Visualization query - needs SQL for data aggregation",
    ),
    RouterRule(
        name="routes_faces",
        task="sql",
        intents=("ROUTES_FACES_ANALYSIS",),
        min_confidence=0.6,
        floor=0.9,
        template_used="routes_faces_rule_template",
        reason="Route/face analysis - requires trip_summary_by_date",
    ),
    RouterRule(
        name="ranking",
        task="sql",
        intents=("TOP_N_RANKING", "SHIFT_RANKING", "EQUIPMENT_RANKING"),
        min_confidence=0.6,
        floor=0.9,
        template_used="ranking_rule_template",
        reason="Ranking query - ordering by the requested metric",
    ),
    RouterRule(
        name="specific_aggregation",
        task="sql",
        intents=SPECIFIC_AGGREGATION_INTENTS,
        min_confidence=0.6,
        floor=0.8,
        template_used="aggregation_rule_template",
        reason="Calculation/aggregation query - needs SQL aggregation",
    ),
    RouterRule(
        name="time_summary",
        task="sql",
        intents=TIME_SUMMARY_INTENTS,
        min_confidence=0.6,
        floor=0.8,
        template_used="time_summary_rule_template",
        reason=_time_reason,
    ),
    RouterRule(
        name="generic_aggregation",
        task="sql",
        intents=("AGGREGATION_QUERY",),
        min_confidence=0.6,
        floor=0.8,
        template_used="aggregation_rule_template",
        reason="Generic aggregation - needs SQL for database operations",
    ),
    RouterRule(
        name="data_retrieval",
        task="sql",
        intents=("DATA_RETRIEVAL", "RECORD_LOOKUP", "TABLE_LISTING", "SCHEMA_LOOKUP"),
        min_confidence=0.5,
        floor=0.8,
        template_used="data_retrieval_rule_template",
        reason="Data retrieval from the database",
    ),
)


def route(
    question: str, result: IntentResult, rules: tuple[RouterRule, ...] = RULES
) -> RouterDecision | None:
    """Return the decision of the first rule that fires, or None."""
    fields = result.parameters.present_fields()
    for rule in rules:
        fired, why_not = rule.check(result)
        if not fired:
            if why_not != "intent":
                logger.debug(
                    f"Rule {rule.name} skipped for {result.intent}: {why_not} | params={fields}"
                )
            continue
        decision = rule.decide(question, result)
        logger.info(
            f"Rule {rule.name} fired: intent={decision.intent} task={decision.task} "
            f"confidence={decision.confidence:.2f} (raw {result.confidence:.2f}) "
            f"params={fields} reason={decision.reason}"
        )
        return decision

    logger.info(
        f"No deterministic rule matched intent={result.intent} "
        f"confidence={result.confidence:.2f} params={fields}"
    )
    return None
