"""LLM fallback: routing decisions and SQL generation.

Only reached when no deterministic rule fired. Every call goes through the
ResilienceGuard; replies are validated here and rejected with
LLMResponseError, which is never retried.
"""

from __future__ import annotations

import json
from typing import Any, Iterable, Literal

import openai
from pydantic import BaseModel, Field, ValidationError, field_validator

from query_router.config import Settings
from query_router.config import settings as default_settings
from query_router.exceptions import LLMResponseError
from query_router.intent.types import IntentResult
from query_router.logging import get_logger
from query_router.models.adapter import ChatAdapter, ChatMessage, get_openai
from query_router.resilience.guard import ResilienceGuard
from query_router.routing.types import RouterDecision
from query_router.sql.validate import validate_sql

logger = get_logger(__name__)

LLM_ROUTER_TEMPLATE = "llm_router_template"

DEFAULT_SCHEMA: dict[str, list[str]] = {
    "production_summary": [
        "date",
        "shift",
        "qty_ton",
        "qty_m3",
        "target_ton",
        "target_m3",
        "total_trips",
        "trip_count_for_mining",
        "trip_count_for_reclaim",
    ],
    "trip_summary_by_date": [
        "trip_date",
        "shift",
        "tipper_id",
        "excavator",
        "route_or_face",
        "trip_count",
    ],
}

_ROUTER_SYSTEM_PROMPT = (
    "You are a mining operations query router. Decide whether a question is answered by a "
    "SQL query over the production database (sql), by searching operating documents (rag), "
    "or by the equipment optimizer/forecaster (optimize). Output strict JSON only (no prose)."
)

_ROUTER_TEMPLATE = (
    "{\n"
    '  "task": "sql|rag|optimize",\n'
    '  "confidence": 0.0,\n'
    '  "reason": "..."\n'
    "}"
)

_ROUTER_RULES = (
    "Rules:\n"
    "- optimize: equipment selection, best combinations, forecasting, production targets.\n"
    "- rag: procedures, safety, best practices, guidelines, how-to questions.\n"
    "- sql: totals, averages, rankings, comparisons, charts and any lookup of recorded data.\n"
    "- production_summary holds daily/shift production without equipment detail; "
    "trip_summary_by_date holds trips per tipper, excavator and route/face."
)

_SQL_SYSTEM_PROMPT = (
    "You write a single read-only PostgreSQL SELECT statement for a mining production "
    "database. Return only the SQL, with no markdown fences, comments or explanation."
)


class LLMDecisionPayload(BaseModel):
    task: Literal["sql", "rag", "optimize"]
    confidence: float = Field(ge=0.0, le=1.0)
    reason: str

    @field_validator("reason")
    @classmethod
    def _reason_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("reason must be a non-empty string")
        return value


def _history_messages(history: Iterable[Any] | None) -> list[ChatMessage]:
    messages: list[ChatMessage] = []
    for item in history or []:
        if isinstance(item, ChatMessage):
            messages.append(item)
        elif isinstance(item, dict) and item.get("role") and item.get("content"):
            messages.append(ChatMessage(role=str(item["role"]), content=str(item["content"])))
    return messages


def _build_route_messages(
    question: str,
    intent_result: IntentResult,
    schema: dict[str, Any] | None,
    history: Iterable[Any] | None,
) -> list[ChatMessage]:
    hint = {
        "intent": intent_result.intent,
        "confidence": intent_result.confidence,
        "parameters": intent_result.parameters.to_dict(),
    }
    user_prompt = (
        f'Question: "{question}"\n'
        f"Database schema:\n{json.dumps(schema or DEFAULT_SCHEMA, indent=2)}\n"
        f"Rule-based hints:\n{json.dumps(hint, default=str)}\n"
        f"{_ROUTER_RULES}\n"
        "Return JSON exactly:\n"
        f"{_ROUTER_TEMPLATE}"
    )
    return [
        ChatMessage(role="system", content=_ROUTER_SYSTEM_PROMPT),
        *_history_messages(history),
        ChatMessage(role="user", content=user_prompt),
    ]


def parse_decision_payload(raw: str) -> LLMDecisionPayload:
    text = (raw or "").strip()
    try:
        payload = json.loads(text)
    except json.JSONDecodeError as exc:
        raise LLMResponseError(f"LLM router reply is not valid JSON: {text[:200]!r}") from exc
    if not isinstance(payload, dict):
        raise LLMResponseError("LLM router reply must be a JSON object")
    try:
        return LLMDecisionPayload.model_validate(payload)
    except ValidationError as exc:
        raise LLMResponseError(f"LLM router reply failed validation: {exc}") from exc


def _default_adapter(cfg: Settings) -> ChatAdapter:
    try:
        return get_openai(api_key=cfg.OPENAI_API_KEY, base_url=cfg.OPENAI_BASE_URL)
    except openai.OpenAIError as exc:
        raise LLMResponseError(f"LLM client could not be created: {exc}") from exc


def llm_route(
    question: str,
    intent_result: IntentResult,
    guard: ResilienceGuard,
    adapter: ChatAdapter | None = None,
    schema: dict[str, Any] | None = None,
    history: Iterable[Any] | None = None,
    settings: Settings | None = None,
) -> RouterDecision:
    cfg = settings or default_settings
    chat = adapter or _default_adapter(cfg)
    messages = _build_route_messages(question, intent_result, schema, history)

    raw, usage = guard.call_llm(
        lambda: chat.chat(
            messages=messages,
            model=cfg.LLM_MODEL,
            max_tokens=min(256, cfg.MAX_OUTPUT_TOKENS),
            temperature=cfg.TEMPERATURE,
        ),
        operation="llm_route",
    )
    payload = parse_decision_payload(raw)
    logger.info(
        f"LLM routed to {payload.task} ({payload.confidence:.2f}) tokens={usage.get('total_tokens')}"
    )
    return RouterDecision(
        task=payload.task,
        confidence=payload.confidence,
        raw_confidence=intent_result.confidence,
        reason=payload.reason,
        route_source="llm",
        intent=intent_result.intent,
        parameters=intent_result.parameters,
        template_used=LLM_ROUTER_TEMPLATE,
        rule=None,
        matched_keywords=list(intent_result.matched_keywords),
        original_question=question,
    )


def generate_sql(
    question: str,
    intent_result: IntentResult,
    guard: ResilienceGuard,
    adapter: ChatAdapter | None = None,
    schema: dict[str, Any] | None = None,
    settings: Settings | None = None,
) -> str:
    cfg = settings or default_settings
    chat = adapter or _default_adapter(cfg)
    user_prompt = (
        f'Question: "{question}"\n'
        f"Detected intent: {intent_result.intent}\n"
        f"Extracted parameters: {json.dumps(intent_result.parameters.to_dict(), default=str)}\n"
        f"Database schema:\n{json.dumps(schema or DEFAULT_SCHEMA, indent=2)}\n"
        "Use trip_date for trip_summary_by_date and date for production_summary."
    )
    messages = [
        ChatMessage(role="system", content=_SQL_SYSTEM_PROMPT),
        ChatMessage(role="user", content=user_prompt),
    ]
    raw, _ = guard.call_llm(
        lambda: chat.chat(
            messages=messages,
            model=cfg.LLM_MODEL,
            max_tokens=cfg.MAX_OUTPUT_TOKENS,
            temperature=cfg.TEMPERATURE,
        ),
        operation="llm_generate_sql",
    )
    sql = validate_sql((raw or "").strip())
    logger.info(f"LLM generated SQL: {sql}")
    return sql
