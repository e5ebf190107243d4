from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from query_router.extract.types import ParameterBag

TASKS: tuple[str, ...] = ("sql", "rag", "optimize")


@dataclass
class RouterDecision:
    task: str  # "sql"|"rag"|"optimize"
    confidence: float  # boosted, 0..1
    reason: str
    route_source: str = "deterministic"  # "deterministic"|"llm"
    raw_confidence: float | None = None  # classifier confidence before any floor
    intent: str | None = None
    parameters: ParameterBag = field(default_factory=ParameterBag)
    template_used: str | None = None
    rule: str | None = None
    sql: str | None = None
    matched_keywords: list[str] = field(default_factory=list)
    original_question: str = ""

    def __post_init__(self) -> None:
        if self.task not in TASKS:
            raise ValueError(f"Unknown task {self.task!r}; expected one of {TASKS}")

    def to_dict(self) -> dict[str, Any]:
        return {
            "task": self.task,
            "confidence": self.confidence,
            "raw_confidence": self.raw_confidence,
            "reason": self.reason,
            "route_source": self.route_source,
            "intent": self.intent,
            "parameters": self.parameters.to_dict(),
            "template_used": self.template_used,
            "rule": self.rule,
            "sql": self.sql,
            "matched_keywords": list(self.matched_keywords),
            "original_question": self.original_question,
        }
