import json

import pytest

from query_router.exceptions import ContextualError, LLMResponseError, UnsafeSQLError
from query_router.extract.types import ParameterBag
from query_router.intent.types import IntentResult
from query_router.llm.router import generate_sql, llm_route, parse_decision_payload


def _intent() -> IntentResult:
    return IntentResult(intent="UNKNOWN", confidence=0.1, parameters=ParameterBag(year=2024))


def _reply(**overrides) -> str:
    payload = {"task": "rag", "confidence": 0.72, "reason": "Procedural question"}
    payload.update(overrides)
    return json.dumps(payload)


def test_llm_route_builds_decision(guard, offline_settings, make_adapter) -> None:
    adapter = make_adapter(_reply())
    history = [{"role": "user", "content": "earlier question"}]

    decision = llm_route(
        "what should we check before the shift?",
        _intent(),
        guard,
        adapter=adapter,
        history=history,
        settings=offline_settings,
    )

    assert decision.task == "rag"
    assert decision.confidence == 0.72
    assert decision.route_source == "llm"
    assert decision.template_used == "llm_router_template"
    assert decision.intent == "UNKNOWN"
    assert decision.parameters.year == 2024

    messages = adapter.calls[0]["messages"]
    assert messages[0].role == "system"
    assert messages[1].content == "earlier question"
    assert "what should we check before the shift?" in messages[-1].content
    assert adapter.calls[0]["temperature"] == 0.0


def test_schema_is_sent_to_the_model(guard, offline_settings, make_adapter) -> None:
    adapter = make_adapter(_reply(task="sql"))
    schema = {"shift_log": ["date", "notes"]}
    llm_route("anything", _intent(), guard, adapter=adapter, schema=schema, settings=offline_settings)
    assert "shift_log" in adapter.calls[0]["messages"][-1].content


@pytest.mark.parametrize(
    "raw",
    [
        "not json",
        "```json\n{}\n```",
        "[1, 2]",
        _reply(task="delete"),
        _reply(confidence=1.5),
        _reply(reason="   "),
        json.dumps({"task": "sql", "confidence": 0.5}),
    ],
)
def test_invalid_replies_are_rejected_without_retry(guard, offline_settings, make_adapter, raw) -> None:
    adapter = make_adapter(raw)
    with pytest.raises(LLMResponseError):
        llm_route("question", _intent(), guard, adapter=adapter, settings=offline_settings)
    assert len(adapter.calls) == 1


def test_transport_errors_are_retried_then_wrapped(guard, offline_settings, make_adapter) -> None:
    adapter = make_adapter(ConnectionError("connection refused"))
    with pytest.raises(ContextualError) as exc_info:
        llm_route("question", _intent(), guard, adapter=adapter, settings=offline_settings)
    assert len(adapter.calls) == 3
    assert exc_info.value.operation == "llm_route"


def test_parse_decision_payload_strips_reason() -> None:
    payload = parse_decision_payload('  {"task": "optimize", "confidence": 1, "reason": " plan "}  ')
    assert (payload.task, payload.confidence, payload.reason) == ("optimize", 1.0, "plan")


def test_generate_sql_validates_reply(guard, offline_settings, make_adapter) -> None:
    adapter = make_adapter("  SELECT * FROM production_summary WHERE shift = 'A'\n")
    sql = generate_sql("shift A data", _intent(), guard, adapter=adapter, settings=offline_settings)
    assert sql == "SELECT * FROM production_summary WHERE shift = 'A'"


@pytest.mark.parametrize(
    "raw",
    ["```sql\nSELECT * FROM production_summary\n```", "DROP TABLE production_summary"],
)
def test_generate_sql_rejects_unsafe_replies(guard, offline_settings, make_adapter, raw) -> None:
    adapter = make_adapter(raw)
    with pytest.raises(UnsafeSQLError):
        generate_sql("question", _intent(), guard, adapter=adapter, settings=offline_settings)
