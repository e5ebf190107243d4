"""Compiled regex and keyword catalogs shared by extraction and routing.

Everything here is built once at import time and treated as read-only.
"""

from __future__ import annotations

import re

from query_router.dates.parser import MONTH_ALT, MONTH_LOOKUP

_NUMBER = r"(\d+(?:,\d{3})*(?:\.\d+)?)"

# Equipment IDs: 2-4 letters, optional hyphen, 1-4 digits (BB-001, ex189, TIP-45)
EQUIPMENT_ID = re.compile(r"\b([A-Z]{2,4})-?(\d{1,4})\b", re.IGNORECASE)
EQUIPMENT_ID_EXACT = re.compile(r"^[A-Z]{2,4}-\d{1,4}$", re.IGNORECASE)

# Prefixes that look like IDs but are ordinary tokens ("top10", "last30", "fy2024")
RESERVED_ID_PREFIXES: frozenset[str] = frozenset(
    {"TOP", "LAST", "NEXT", "PAST", "FY", "ROW", "DAY", "WEEK", "YEAR", "SHIFT", "COVID"}
)

TIPPER_PREFIXES: frozenset[str] = frozenset({"BB", "DT", "TIP", "TP", "DMP"})
EXCAVATOR_PREFIXES: frozenset[str] = frozenset({"EX", "EXC", "EXV"})

MACHINE_TYPE = re.compile(
    r"\b(tippers?|trucks?|excavators?|dozers?|vehicles?|dumpers?)\b", re.IGNORECASE
)
MACHINE_WORDS: tuple[str, ...] = ("tipper", "truck", "excavator", "dozer", "vehicle", "dumper")
REPLACEMENT_CUE = re.compile(
    r"\b(replace|replacement|alternative|substitute|went down|broke down|broken|"
    r"unavailable|not available|backup|instead of)\b",
    re.IGNORECASE,
)

ROUTE_OR_FACE_CUE = re.compile(r"\b(route|face|haul|pit|bench)\b", re.IGNORECASE)
ROUTE_OR_FACE_ID = re.compile(
    r"\b(?:route|face|pit|bench)\s*([a-z0-9]+(?:-[a-z0-9]+)?)\b", re.IGNORECASE
)
ROUTE_OR_FACE_STOPWORDS: frozenset[str] = frozenset(
    {
        "made",
        "did",
        "was",
        "is",
        "has",
        "have",
        "had",
        "and",
        "or",
        "the",
        "with",
        "for",
        "performed",
        "produced",
        "yielded",
        "generated",
        "analysis",
        "performance",
        "utilization",
        "efficiency",
        "summary",
        "report",
        "check",
        "list",
        "show",
        "most",
    }
)

# Shifts: "shift A", "shifts 1", "shifts A, B and C"
SHIFT_TOKEN = re.compile(r"\bshifts?\s*([abc123])\b", re.IGNORECASE)
SHIFT_LIST = re.compile(
    r"\bshifts?\s+([abc123])\b(?:\s*,\s*([abc123])\b)?"
    r"(?:\s*,?\s*(?:and\s+|or\s+)?([abc123])\b)?",
    re.IGNORECASE,
)
BY_SHIFT = re.compile(r"\b(?:by|per|each)\s+shifts?\b", re.IGNORECASE)
SHIFT_NUMBER_TO_LETTER: dict[str, str] = {"1": "A", "2": "B", "3": "C"}

TOP_BOTTOM_N = re.compile(r"\b(top|bottom)\s*(\d+)\b", re.IGNORECASE)
ORDINAL_ROW = re.compile(r"\b(\d+)(?:st|nd|rd|th)\s+row\b", re.IGNORECASE)
HIGHEST_LOWEST = re.compile(
    r"\b(highest|lowest|maximum|minimum|top\s+\d*\s*(?:tipper|excavator|equipment|day)|"
    r"had\s+the\s+(?:highest|lowest|most|least))\b",
    re.IGNORECASE,
)

BY_MONTH = re.compile(r"\bby\s+month\b", re.IGNORECASE)
WHICH_MONTH = re.compile(r"\b(?:which|what)\s+months?\b", re.IGNORECASE)
ALL_MONTHS = re.compile(r"\ball\s+months?\b", re.IGNORECASE)
MONTH_MENTION = re.compile(rf"\b({MONTH_ALT})\b", re.IGNORECASE)
MONTH_NUMBERS = MONTH_LOOKUP

QUARTER_MENTION = re.compile(r"\bq([1-4])\b", re.IGNORECASE)

# Ordered: the first matching comparison wins
NUMERIC_COMPARISONS: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(rf"(?:>=|≥)\s*{_NUMBER}"), ">="),
    (re.compile(rf"(?:<=|≤)\s*{_NUMBER}"), "<="),
    (re.compile(rf"(?<![<>=!])>\s*{_NUMBER}"), ">"),
    (re.compile(rf"<(?![=])\s*{_NUMBER}"), "<"),
    (
        re.compile(
            rf"\b(?:greater than|more than|higher than|above|over|exceeds?|exceeding)"
            rf"\s+{_NUMBER}",
            re.IGNORECASE,
        ),
        ">",
    ),
    (
        re.compile(
            rf"\b(?:less than|fewer than|lower than|below|under)\s+{_NUMBER}",
            re.IGNORECASE,
        ),
        "<",
    ),
    (re.compile(rf"\b(?:at least|minimum of|minimum)\s+{_NUMBER}", re.IGNORECASE), ">="),
    (re.compile(rf"\b(?:at most|maximum of|maximum)\s+{_NUMBER}", re.IGNORECASE), "<="),
    (
        re.compile(
            rf"(?:\b(?:equals?|equal to|exactly)\s+|(?<![<>=!])=\s*){_NUMBER}",
            re.IGNORECASE,
        ),
        "=",
    ),
)
NUMERIC_BETWEEN = re.compile(
    rf"\bbetween\s+{_NUMBER}\s+and\s+{_NUMBER}(?![\d-])", re.IGNORECASE
)

MEASUREMENT = re.compile(
    rf"\b{_NUMBER}\s*(tonnes?|tons?|trips?|cubic met(?:er|re)s?|m3|bcm|"
    r"met(?:er|re)s?|kilomet(?:er|re)s?|km|hours?|hrs?)\b",
    re.IGNORECASE,
)
UNIT_CANONICAL: dict[str, str] = {
    "ton": "ton",
    "tons": "ton",
    "tonne": "ton",
    "tonnes": "ton",
    "trip": "trip",
    "trips": "trip",
    "m3": "m3",
    "bcm": "m3",
    "cubic meter": "m3",
    "cubic meters": "m3",
    "cubic metre": "m3",
    "cubic metres": "m3",
    "meter": "meter",
    "meters": "meter",
    "metre": "meter",
    "metres": "meter",
    "kilometer": "km",
    "kilometers": "km",
    "kilometre": "km",
    "kilometres": "km",
    "km": "km",
    "hour": "hour",
    "hours": "hour",
    "hr": "hour",
    "hrs": "hour",
}

RELATIVE_WINDOW = re.compile(
    r"\b(?:last|past|previous)\s+(\d+)\s+(day|week|month|year)s?\b", re.IGNORECASE
)

ENTITY_COMPARISONS: tuple[re.Pattern[str], ...] = (
    re.compile(
        r"\bdid\s+([a-z]{2,4}-\d+)\s+\w+\s+(?:higher|lower|more|less|better|worse)"
        r"\s+\w+\s+or\s+([a-z]{2,4}-\d+)",
        re.IGNORECASE,
    ),
    re.compile(r"\b([a-z]{2,4}-\d+)\s+(?:vs\.?|versus)\s+([a-z]{2,4}-\d+)", re.IGNORECASE),
    re.compile(
        r"\bcompare\s+([\w-]+(?:\s+\d{4})?)\s+(?:and|to|with|vs\.?|versus)\s+"
        r"([\w-]+(?:\s+\d{4})?)",
        re.IGNORECASE,
    ),
    re.compile(r"\bshift\s+([abc])\s+(?:vs\.?|versus|or|and)\s+(?:shift\s+)?([abc])\b", re.IGNORECASE),
    re.compile(rf"\b({MONTH_ALT})\s+(?:vs\.?|versus|or)\s+({MONTH_ALT})\b", re.IGNORECASE),
)

STATISTICAL_WORDS = re.compile(
    r"\b(mean|median|mode|standard deviation|stddev|std dev|deviation|variance|percentile)\b",
    re.IGNORECASE,
)

# Metric columns keyed by the words that select them
METRIC_KEYWORDS: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"\b(m3|cubic|volume|bcm)\b", re.IGNORECASE), "qty_m3"),
    (re.compile(r"\b(reclaim\w*)\b", re.IGNORECASE), "trip_count_for_reclaim"),
    (re.compile(r"\btrips?\b", re.IGNORECASE), "total_trips"),
    (re.compile(r"\b(tons?|tonnes?|tonnage|production|qty)\b", re.IGNORECASE), "qty_ton"),
)

ADVISORY = re.compile(
    r"\b(how to|how do i|how can i|how should i|best practices?|best way|guidelines?|"
    r"procedures?|safety|polic(?:y|ies)|standard operating procedure|sop|"
    r"recommendations?)\b",
    re.IGNORECASE,
)
OPTIMIZATION = re.compile(
    r"\b(optimi[sz]e|optimi[sz]ation|optimal|best combination|recommend equipment|"
    r"which excavator should|what equipment should|forecast|predict|projection|"
    r"production target|need to mine)\b",
    re.IGNORECASE,
)
SQL_DATA = re.compile(
    r"\b(show|display|list|get|fetch|retrieve|find|table|column|rows?|records?|data|"
    r"count|sum|total|average|production|tonnage|trips?|shifts?|equipment|excavators?|"
    r"tippers?|today|yesterday|month|week|compare)\b",
    re.IGNORECASE,
)
MEANINGFUL_WORDS = re.compile(
    r"\b(show|what|how|when|where|why|which|list|get|find|calculate|production|tonnage|"
    r"trips?|shift|equipment|excavator|tipper|today|yesterday|month|week|compare|"
    r"total|average|best|optimi[sz]e|forecast|predict)\b",
    re.IGNORECASE,
)


def parse_number(text: str) -> float:
    return float(text.replace(",", ""))


def metric_column(text: str, default: str = "qty_ton") -> str:
    for pattern, column in METRIC_KEYWORDS:
        if pattern.search(text or ""):
            return column
    return default
