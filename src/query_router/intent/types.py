from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from query_router.extract.types import ParameterBag


@dataclass(frozen=True)
class IntentDefinition:
    name: str
    tier: int  # 1 specific, 2 moderate, 3 generic fallback
    keywords: tuple[str, ...]


@dataclass
class Candidate:
    intent: str
    tier: int
    score: float = 0.0
    matched_keywords: list[str] = field(default_factory=list)
    fuzzy_keywords: list[str] = field(default_factory=list)

    @property
    def matched_count(self) -> int:
        return len(self.matched_keywords)

    @property
    def matched_length(self) -> int:
        return len(" ".join(self.matched_keywords))


@dataclass
class IntentResult:
    intent: str
    confidence: float = 0.0  # 0..1
    parameters: ParameterBag = field(default_factory=ParameterBag)
    matched_keywords: list[str] = field(default_factory=list)
    fuzzy_matches: list[str] = field(default_factory=list)
    tier: int | None = None
    score: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "intent": self.intent,
            "confidence": self.confidence,
            "parameters": self.parameters.to_dict(),
            "matched_keywords": list(self.matched_keywords),
            "fuzzy_matches": list(self.fuzzy_matches),
            "tier": self.tier,
            "score": self.score,
        }
