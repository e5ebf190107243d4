"""Typo-tolerant keyword matching.

Edit distances come from rapidfuzz; everything else here is the domain
layer on top of it: a misspelling dictionary for mining vocabulary, length
dependent thresholds and the word-level matching rules used by the extractor
and the intent classifier.
"""

from __future__ import annotations

import re
from functools import lru_cache
from types import MappingProxyType
from typing import Iterable, Mapping

from rapidfuzz.distance import Levenshtein

# Short domain terms that are still worth fuzzy matching
FUZZY_SHORT_TERMS: frozenset[str] = frozenset(
    {
        "tipper",
        "chart",
        "route",
        "best",
        "which",
        "show",
        "list",
        "trip",
        "face",
        "haul",
        "pit",
        "mine",
        "shift",
        "plan",
        "data",
        "view",
        "get",
        "find",
    }
)

MULTI_WORD_THRESHOLD = 0.85
BEST_MATCH_THRESHOLD = 0.75

_COMMON_MISSPELLINGS: dict[str, tuple[str, ...]] = {
    "excavator": ("excevator", "exavator", "excavater", "excevater", "excaveter"),
    "tipper": ("tiper", "typer", "tipr", "tippr"),
    "which": ("wich", "whic", "whch"),
    "chart": ("chrt", "cahrt"),
    "route": ("rout", "roote", "rute", "roue"),
    "display": ("displya", "disply", "diplay"),
    "performance": ("performace", "preformance", "perfomance", "performnce"),
    "forecast": ("forcast", "forcaste", "forecat", "forecst"),
    "maintenance": ("maintenence", "maintanance", "maintenace", "maintennance"),
    "production": ("producton", "produktion", "productoin", "prodction"),
    "tonnage": ("tonnege", "tonage", "tonnaje", "tonnnage"),
    "recommend": ("recomend", "reccomend", "rekommend", "recomned"),
    "equipment": (
        "equipement",
        "equiptment",
        "equipmant",
        "equipent",
        "equipmnt",
        "equpment",
    ),
    "efficiency": ("eficiency", "efficency", "efficiancy", "effeciency"),
    "optimal": ("optmal", "optimel", "optiaml", "optiml"),
    "predict": ("predit", "prdict", "predickt"),
    "visualization": (
        "visualizaton",
        "visulaization",
        "visulization",
        "vizualization",
    ),
    "procedure": ("proceedure", "proceduer", "proceedur", "procedre", "procedue"),
    "analyze": ("analize", "analyz"),
    "combination": ("combinaton", "conbination", "combintion", "combnation"),
    "utilization": ("utilizaton", "utilzation", "utlization"),
}

MISSPELLING_CORRECTIONS: Mapping[str, str] = MappingProxyType(
    {
        wrong: correct
        for correct, variants in _COMMON_MISSPELLINGS.items()
        for wrong in variants
    }
)

_WORD_RE = re.compile(r"[a-z0-9]+")
_SPLIT_RE = re.compile(r"(\W+)")


def keyword_pattern(keyword: str) -> re.Pattern[str]:
    """Compile a case-insensitive pattern matching ``keyword`` as whole words.

    Word boundaries are only asserted on edges that are word characters, so
    keywords such as ``bb-`` or ``vs.`` still match inside ``BB-001`` and
    ``a vs. b``.
    """
    kw = keyword.lower().strip()
    lead = r"\b" if re.match(r"\w", kw[:1]) else ""
    tail = r"\b" if re.match(r"\w", kw[-1:]) else ""
    body = r"\s+".join(re.escape(part) for part in kw.split())
    return re.compile(f"{lead}{body}{tail}", re.IGNORECASE)


@lru_cache(maxsize=4096)
def _cached_pattern(keyword: str) -> re.Pattern[str]:
    return keyword_pattern(keyword)


def similarity_ratio(left: str, right: str) -> float:
    """1 - edit_distance / longest_length, case-insensitive."""
    return Levenshtein.normalized_similarity(left.lower(), right.lower())


def dynamic_threshold(term: str) -> float:
    """Longer terms tolerate proportionally more edits."""
    length = len(term)
    if length >= 10:
        return 0.70
    if length >= 7:
        return 0.78
    if length >= 5:
        return 0.82
    return 0.85


def correct_known_misspellings(text: str) -> str:
    parts = _SPLIT_RE.split(text.lower())
    return "".join(MISSPELLING_CORRECTIONS.get(part, part) for part in parts)


def should_fuzzy(keyword: str) -> bool:
    kw = keyword.lower().strip()
    return len(kw.split()) > 1 or len(kw) > 5 or kw in FUZZY_SHORT_TERMS


def exact_keyword_match(text: str, keyword: str) -> bool:
    return _cached_pattern(keyword).search(text) is not None


def fuzzy_keyword_match(text: str, keyword: str) -> bool:
    pattern = _cached_pattern(keyword)
    if pattern.search(text):
        return True

    corrected = correct_known_misspellings(text)
    if pattern.search(corrected):
        return True

    text_words = _WORD_RE.findall(text.lower())
    keyword_words = keyword.lower().split()

    if len(keyword_words) > 1:
        return all(
            any(similarity_ratio(word, kw) >= MULTI_WORD_THRESHOLD for word in text_words)
            for kw in keyword_words
        )

    target = keyword_words[0] if keyword_words else ""
    if not target:
        return False
    threshold = dynamic_threshold(target)
    for word in text_words:
        if len(word) < 3:
            continue
        if similarity_ratio(word, target) >= threshold:
            return True
    return False


def best_fuzzy_match(text: str, keywords: Iterable[str]) -> tuple[str, float] | None:
    """Return the keyword that best covers ``text`` with its blended score."""
    text_words = [w for w in _WORD_RE.findall(text.lower()) if len(w) >= 3]
    best: tuple[str, float] | None = None

    for keyword in keywords:
        if exact_keyword_match(text, keyword):
            return keyword, 1.0
        keyword_words = keyword.lower().split()
        if not keyword_words or not text_words:
            continue

        total = 0.0
        covered = 0
        for kw in keyword_words:
            word_best = max(similarity_ratio(word, kw) for word in text_words)
            total += word_best
            if word_best >= MULTI_WORD_THRESHOLD:
                covered += 1
        score = (total / len(keyword_words)) * 0.7 + (covered / len(keyword_words)) * 0.3
        if best is None or score > best[1]:
            best = (keyword, score)

    if best is not None and best[1] >= BEST_MATCH_THRESHOLD:
        return best
    return None
