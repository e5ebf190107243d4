"""End-to-end routing through the orchestrator."""

import json

import pytest

from query_router import orchestrator
from query_router.config import Settings
from query_router.exceptions import LLMResponseError
from query_router.llm import router as llm_router
from query_router.extract.types import ParameterBag
from query_router.routing import rules
from query_router.routing.types import RouterDecision
from query_router.sql.builder import build_sql

E2E_QUESTION = (
    "Compare BB-001 and TIP-45 between April 2024 and June 2024 "
    "for shifts A and B with tonnage above 800 tons"
)


@pytest.mark.e2e
def test_equipment_comparison_routes_to_sql(offline_settings) -> None:
    decision = orchestrator.route(E2E_QUESTION, settings=offline_settings)

    assert decision.task == "sql"
    assert decision.route_source == "deterministic"
    assert decision.intent == "EQUIPMENT_SPECIFIC_PRODUCTION"
    assert decision.confidence >= 0.7
    assert decision.raw_confidence is not None and decision.raw_confidence <= decision.confidence

    params = decision.parameters
    assert params.equipment_ids == ["BB-001", "TIP-45"]
    assert (params.date_start, params.date_end) == ("2024-04-01", "2024-06-30")
    assert params.shift == ["A", "B"]
    assert params.numeric_filter is not None
    assert (params.numeric_filter.operator, params.numeric_filter.value) == (">", 800.0)

    # Tonnage is not recorded per tipper, so the builder declines rather than drop "> 800"
    assert decision.sql is None


def test_rules_win_even_when_an_llm_is_available(offline_settings, guard, make_adapter) -> None:
    adapter = make_adapter(json.dumps({"task": "rag", "confidence": 0.9, "reason": "x"}))
    decision = orchestrator.route(
        E2E_QUESTION, settings=offline_settings, guard=guard, adapter=adapter
    )
    assert decision.route_source == "deterministic"
    assert adapter.calls == []


def test_heuristic_fallback_without_llm(offline_settings) -> None:
    decision = orchestrator.route("hi", settings=offline_settings)
    assert decision.route_source == "deterministic"
    assert decision.template_used == "rejected_query_template"
    assert decision.confidence == 0.3


def test_heuristic_sql_fallback_leaves_sql_to_the_llm(offline_settings, monkeypatch) -> None:
    monkeypatch.setattr(rules, "route", lambda question, result: None)

    decision = orchestrator.route("total tonnage for March 2024", settings=offline_settings)

    assert decision.task == "sql"
    assert decision.rule == "fallback:data_retrieval_rule_template"
    assert decision.intent == "TOTAL_TONNAGE"
    assert build_sql(decision.intent, decision.parameters, decision.original_question)
    assert decision.sql is None


def test_statistical_question_with_shift_routes_to_statistics(offline_settings) -> None:
    decision = orchestrator.route(
        "what is the median tonnage for shift A", settings=offline_settings
    )

    assert decision.intent == "STATISTICAL_QUERY"
    assert decision.task == "sql"
    assert decision.sql == (
        "SELECT PERCENTILE_CONT(0.5) WITHIN GROUP (ORDER BY qty_ton) AS median_value "
        "FROM production_summary WHERE shift = 'A'"
    )


def test_pairing_advice_routes_to_the_optimizer(offline_settings) -> None:
    decision = orchestrator.route(
        "which excavator and tipper combination should I pick for tomorrow",
        settings=offline_settings,
    )

    assert decision.intent == "EQUIPMENT_OPTIMIZATION"
    assert decision.task == "optimize"
    assert decision.sql is None


def test_month_list_borrows_the_stated_year(offline_settings) -> None:
    decision = orchestrator.route(
        "total tonnage for January and February 2024", settings=offline_settings
    )

    assert decision.parameters.months == [1, 2]
    assert decision.parameters.year == 2024
    assert decision.sql is not None
    assert "EXTRACT(YEAR FROM date) = 2024" in decision.sql


def test_per_request_key_reaches_the_llm_client(guard, make_adapter, monkeypatch) -> None:
    adapter = make_adapter(json.dumps({"task": "rag", "confidence": 0.6, "reason": "Greeting"}))
    seen: list[dict] = []

    def fake_get_openai(**kwargs):
        seen.append(kwargs)
        return adapter

    monkeypatch.setattr(llm_router, "get_openai", fake_get_openai)
    request_settings = Settings(
        OPENAI_API_KEY="sk-per-request",
        OPENAI_BASE_URL="http://llm.internal/v1",
        RETRY_INITIAL_DELAY_S=0.0,
    )

    decision = orchestrator.route("hi", settings=request_settings, guard=guard)

    assert decision.route_source == "llm"
    assert seen == [{"api_key": "sk-per-request", "base_url": "http://llm.internal/v1"}]


def test_llm_fallback_when_no_rule_matches(offline_settings, guard, make_adapter) -> None:
    adapter = make_adapter(json.dumps({"task": "rag", "confidence": 0.6, "reason": "Greeting"}))
    decision = orchestrator.route("hi", settings=offline_settings, guard=guard, adapter=adapter)

    assert decision.route_source == "llm"
    assert decision.task == "rag"
    assert decision.reason == "Greeting"
    assert len(adapter.calls) == 1


def test_llm_errors_propagate(offline_settings, guard, make_adapter) -> None:
    adapter = make_adapter("I think this is a rag question")
    with pytest.raises(LLMResponseError):
        orchestrator.route("hi", settings=offline_settings, guard=guard, adapter=adapter)


def test_generate_sql_for_prefers_builder_output(guard, make_adapter) -> None:
    adapter = make_adapter("SELECT 1 FROM equipment")
    decision = RouterDecision(task="sql", confidence=0.9, reason="r", sql="SELECT * FROM equipment")
    assert orchestrator.generate_sql_for(decision, guard=guard, adapter=adapter) == (
        "SELECT * FROM equipment"
    )
    assert adapter.calls == []


def test_generate_sql_for_asks_llm_when_builder_declined(offline_settings, guard, make_adapter) -> None:
    adapter = make_adapter("SELECT * FROM uploaded_files")
    decision = RouterDecision(
        task="sql",
        confidence=0.8,
        reason="r",
        intent="TABLE_LISTING",
        parameters=ParameterBag(),
        original_question="which files were uploaded?",
    )
    sql = orchestrator.generate_sql_for(
        decision, guard=guard, adapter=adapter, settings=offline_settings
    )
    assert sql == "SELECT * FROM uploaded_files"
    assert decision.sql == sql


def test_generate_sql_for_rejects_non_sql_decisions(guard) -> None:
    decision = RouterDecision(task="rag", confidence=0.9, reason="r")
    with pytest.raises(ValueError):
        orchestrator.generate_sql_for(decision, guard=guard)
