import pytest

from query_router.extract.types import ParameterBag
from query_router.intent.types import IntentResult
from query_router.routing.rules import RULES, RouterRule, route
from query_router.routing.types import TASKS, RouterDecision


def _result(intent: str, confidence: float, **params) -> IntentResult:
    return IntentResult(intent=intent, confidence=confidence, parameters=ParameterBag(**params))


def test_rule_names_are_unique() -> None:
    names = [rule.name for rule in RULES]
    assert len(names) == len(set(names))


def test_statistical_rule_boosts_confidence() -> None:
    decision = route("median tonnage", _result("STATISTICAL_QUERY", 0.65))
    assert decision is not None
    assert decision.task == "sql"
    assert decision.rule == "statistical"
    assert decision.confidence == 0.9
    assert decision.raw_confidence == 0.65
    assert decision.route_source == "deterministic"
    assert decision.original_question == "median tonnage"


def test_below_minimum_confidence_does_not_fire() -> None:
    assert route("median?", _result("STATISTICAL_QUERY", 0.5)) is None


def test_row_number_overrides_intent() -> None:
    decision = route("3rd row", _result("TOTAL_TONNAGE", 0.9, row_number=3))
    assert decision is not None
    assert decision.rule == "ordinal_row"
    assert decision.intent == "ORDINAL_ROW_QUERY"
    assert decision.confidence == 0.95
    assert decision.template_used == "ordinal_row_override"


def test_optimization_rules_run_before_row_override() -> None:
    decision = route("forecast", _result("FORECASTING", 0.8, row_number=2))
    assert decision is not None
    assert decision.task == "optimize"
    assert decision.rule == "forecasting"


def test_equipment_specific_requires_ids() -> None:
    decision = route(
        "BB-001 trips", _result("EQUIPMENT_SPECIFIC_PRODUCTION", 0.89, equipment_ids=["BB-001"])
    )
    assert decision is not None
    assert decision.confidence == 0.95
    assert decision.raw_confidence == 0.89
    assert decision.reason == "Equipment-specific query for: BB-001"

    assert route("trips", _result("EQUIPMENT_SPECIFIC_PRODUCTION", 0.89)) is None


def test_comparison_rule_rejects_equipment() -> None:
    assert route("x", _result("SHIFT_COMPARISON", 0.8, shift=["A", "B"])) is not None
    assert route("x", _result("SHIFT_COMPARISON", 0.8, equipment_ids=["BB-001"])) is None


def test_combination_needs_two_entities() -> None:
    paired = _result("EQUIPMENT_COMBINATION", 0.9, machine_types=["tipper", "excavator"])
    decision = route("which tippers worked with excavators", paired)
    assert decision is not None and decision.rule == "equipment_combination"

    assert route("x", _result("EQUIPMENT_COMBINATION", 0.9, machine_types=["tipper"])) is None


def test_advisory_goes_to_rag() -> None:
    decision = route("how to improve safety", _result("ADVISORY_QUERY", 0.94))
    assert decision is not None
    assert (decision.task, decision.confidence) == ("rag", 0.94)


def test_time_summary_reason_names_the_period() -> None:
    decision = route(
        "monthly summary",
        _result("MONTHLY_SUMMARY", 0.7, month_name="january", year=2024),
    )
    assert decision is not None
    assert decision.reason == "Time-based summary for january 2024"
    assert decision.confidence == 0.8


def test_data_retrieval_has_lower_threshold() -> None:
    decision = route("data for 2024-03-15", _result("DATA_RETRIEVAL", 0.5))
    assert decision is not None
    assert (decision.rule, decision.confidence) == ("data_retrieval", 0.8)


def test_unknown_intent_matches_nothing() -> None:
    assert route("???", _result("UNKNOWN", 0.0)) is None


def test_custom_rule_table() -> None:
    rules = (RouterRule(name="everything", task="rag", reason="catch all"),)
    decision = route("anything", _result("TOTAL_TRIPS", 0.1), rules=rules)
    assert decision is not None
    assert (decision.rule, decision.reason, decision.confidence) == ("everything", "catch all", 0.1)


def test_decisions_only_carry_known_tasks() -> None:
    assert {rule.task for rule in RULES} <= set(TASKS)
    with pytest.raises(ValueError):
        RouterDecision(task="chart", confidence=0.5, reason="unsupported task")
