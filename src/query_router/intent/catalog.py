"""Fixed intent catalog.

Tier 1 intents are specific, tier 2 moderately specific and tier 3 is the
generic fallback that only wins when nothing more specific matched. Keyword
regexes are compiled once here and shared read-only by every request.
"""

from __future__ import annotations

import re
from types import MappingProxyType
from typing import Mapping

from query_router.dates.parser import MONTH_ALT
from query_router.text.fuzzy import keyword_pattern

from .types import IntentDefinition

UNKNOWN = "UNKNOWN"

_CATALOG: tuple[tuple[str, int, tuple[str, ...]], ...] = (
    # Tier 1
    (
        "STATISTICAL_QUERY",
        1,
        (
            "mean",
            "median",
            "mode",
            "standard deviation",
            "stddev",
            "std dev",
            "deviation",
            "variance",
            "percentile",
            "statistical analysis",
            "statistical",
            "calculate mean",
            "calculate median",
            "find the mean",
            "find the median",
        ),
    ),
    (
        "TARGET_OPTIMIZATION",
        1,
        (
            "mine",
            "production target",
            "need to mine",
            "want to mine",
            "plan to mine",
            "how to mine",
            "goal of",
            "need to produce",
            "reach target",
            "plan for target",
            "target of",
        ),
    ),
    (
        "EQUIPMENT_OPTIMIZATION",
        1,
        (
            "best combination",
            "optimal combination",
            "recommend equipment",
            "equipment selection",
            "choose equipment",
            "select equipment",
            "should i pick",
            "should i take",
            "help me pick",
            "help me select",
            "help me choose",
            "optimal",
            "optimal equipment",
            "best equipment",
            "best setup",
            "optimization",
            "optimisation",
            "optimize",
            "optimise",
            "optimize equipment",
        ),
    ),
    (
        "FORECASTING",
        1,
        (
            "forecast",
            "predict",
            "predict next",
            "forecast next",
            "future production",
            "next month",
            "next quarter",
            "next year",
            "expected production",
            "anticipated production",
            "forecast production",
            "predict production",
            "projection",
        ),
    ),
    (
        "EQUIPMENT_REPLACEMENT",
        1,
        (
            "replace",
            "replacement",
            "alternative",
            "substitute",
            "broke down",
            "went down",
            "not available",
            "unavailable",
            "backup",
            "instead of",
        ),
    ),
    (
        "EQUIPMENT_COMBINATION",
        1,
        (
            "combination",
            "combinations",
            "pairing",
            "pairs",
            "tipper and excavator",
            "excavator and tipper",
            "working together",
            "paired with",
            "worked with",
            "work with",
            "which tippers",
            "which excavators",
            "equipment combination",
            "equipment combinations",
        ),
    ),
    (
        "EQUIPMENT_SPECIFIC_PRODUCTION",
        1,
        (
            "performance of",
            "data for tipper",
            "data for excavator",
            "data for equipment",
            "show for tipper",
            "show for excavator",
            "bb-",
            "ex-",
            "tip-",
            "doz-",
            "dt-",
            "excavator ex-",
            "tipper bb-",
        ),
    ),
    (
        "ROUTES_FACES_ANALYSIS",
        1,
        (
            "route",
            "routes",
            "haul route",
            "haulage route",
            "most used route",
            "face",
            "faces",
            "mining face",
            "working face",
            "pit face",
            "bench face",
            "route analysis",
            "face analysis",
            "route performance",
            "face performance",
            "which route",
            "which face",
            "top route",
            "top face",
            "by route",
            "by face",
        ),
    ),
    (
        "ADVISORY_QUERY",
        1,
        (
            "how to",
            "how do",
            "how can",
            "how should",
            "best practice",
            "best practices",
            "guideline",
            "guidelines",
            "procedure",
            "procedures",
            "safety",
            "policy",
            "policies",
            "recommendation",
            "recommendations",
            "what are the best",
            "what is the best",
            "improve",
            "reduce",
            "standard operating procedure",
            "sop",
        ),
    ),
    (
        "CHART_VISUALIZATION",
        1,
        (
            "chart",
            "graph",
            "plot",
            "visualize",
            "visualise",
            "line chart",
            "bar chart",
            "pie chart",
            "histogram",
            "visualisation",
            "visualization",
            "draw",
            "overlay",
            "heatmap",
            "heat map",
            "pareto",
            "scatter",
            "area chart",
        ),
    ),
    (
        "COMPARISON_QUERY",
        1,
        (
            "compare",
            "comparison",
            "versus",
            "vs",
            "vs.",
            "compared to",
            "higher than",
            "lower than",
            "better than",
            "worse than",
            "more productive",
            "less productive",
            "which is higher",
            "which is lower",
            "which is better",
            "which had higher",
            "which had lower",
            "which had more",
            "difference between",
        ),
    ),
    (
        "MONTH_COMPARISON",
        1,
        (
            "which month",
            "what month",
            "which months",
            "what months",
            "month with the highest",
            "month with the lowest",
            "month with the most",
            "month had the highest",
            "month had the lowest",
            "month over month",
        ),
    ),
    (
        "SHIFT_COMPARISON",
        1,
        (
            "compare shifts",
            "shift comparison",
            "which shift",
            "best shift",
            "worst shift",
            "shift performed better",
            "shift vs shift",
        ),
    ),
    (
        "ORDINAL_ROW_QUERY",
        1,
        (
            "row",
            "nth row",
            "first row",
            "last row",
            "1st row",
            "2nd row",
            "3rd row",
            "select row",
            "row from",
            "row in",
            "row number",
        ),
    ),
    (
        "TOP_N_RANKING",
        1,
        (
            "top 3",
            "top 5",
            "top 10",
            "top n",
            "select top",
            "bottom 5",
            "bottom 10",
            "top days",
            "bottom days",
            "best days",
            "worst days",
            "highest tonnage",
            "lowest tonnage",
            "highest production",
            "lowest production",
            "highest trips",
            "lowest trips",
        ),
    ),
    (
        "SHIFT_RANKING",
        1,
        (
            "shift rank",
            "shift ranking",
            "rank shifts",
            "rank the shifts",
            "shifts ranked",
            "top shift",
            "best performing shift",
            "most productive shift",
        ),
    ),
    (
        "EQUIPMENT_RANKING",
        1,
        (
            "which tipper",
            "which excavator",
            "top tippers",
            "top excavators",
            "best tipper",
            "best excavator",
            "worst tipper",
            "worst excavator",
            "most trips",
            "rank tippers",
            "rank excavators",
            "tipper ranking",
            "excavator ranking",
            "equipment ranking",
        ),
    ),
    (
        "EQUIPMENT_BREAKDOWN",
        1,
        (
            "equipment breakdown",
            "breakdown by equipment",
            "by equipment",
            "per equipment",
            "by tipper",
            "by excavator",
            "per tipper",
            "per excavator",
            "each tipper",
            "each excavator",
        ),
    ),
    (
        "EQUIPMENT_UTILIZATION",
        1,
        (
            "utilization",
            "utilisation",
            "utilization rate",
            "equipment usage",
            "usage of",
            "idle",
            "downtime",
            "availability",
        ),
    ),
    (
        "TRIP_ANALYSIS",
        1,
        (
            "trip analysis",
            "trip count",
            "number of trips",
            "how many trips",
            "trips per",
            "trips by",
            "trip distribution",
            "trip summary",
        ),
    ),
    (
        "TARGET_ACHIEVEMENT",
        1,
        (
            "target achievement",
            "achieved target",
            "target achieved",
            "met target",
            "meet the target",
            "against target",
            "target vs actual",
            "actual vs target",
            "plan vs actual",
            "percent of target",
        ),
    ),
    (
        "DAILY_PRODUCTION",
        1,
        (
            "daily production",
            "daily",
            "daily tonnage",
            "daily trips",
            "per day",
            "each day",
            "day wise",
            "day by day",
            "by day",
        ),
    ),
    (
        "MATERIAL_VOLUME",
        1,
        (
            "volume",
            "material volume",
            "total volume",
            "cubic meters",
            "cubic metres",
            "m3",
            "bcm",
            "qty_m3",
        ),
    ),
    (
        "RECLAIM_ANALYSIS",
        1,
        (
            "reclaim",
            "reclaimed",
            "reclaiming",
            "reclaim trips",
            "reclaim tonnage",
            "trips for reclaim",
        ),
    ),
    # Tier 2
    (
        "MONTHLY_SUMMARY",
        2,
        (
            "monthly",
            "month summary",
            "month report",
            "monthly report",
            "monthly breakdown",
            "month breakdown",
            "monthly overview",
            "summary for the month",
            "report for the month",
            "by month",
            "month wise",
            "yearly",
            "annual",
            "yearly summary",
            "annual summary",
        ),
    ),
    (
        "PRODUCTION_SUMMARY",
        2,
        (
            "production summary",
            "production report",
            "production overview",
            "production",
            "summary",
            "overview",
            "summarize",
            "summarise",
            "complete summary",
        ),
    ),
    (
        "TOTAL_TONNAGE",
        2,
        (
            "total tonnage",
            "tonnage",
            "total tons",
            "total production",
            "sum of tonnage",
            "how many tons",
            "overall tonnage",
            "qty_ton",
        ),
    ),
    (
        "TOTAL_TRIPS",
        2,
        (
            "total trips",
            "total trip count",
            "sum of trips",
            "overall trips",
            "trips in total",
        ),
    ),
    (
        "AVERAGE_PRODUCTION",
        2,
        (
            "average production",
            "average",
            "avg",
            "average tonnage",
            "average trips",
            "mean production",
            "daily average",
        ),
    ),
    (
        "SHIFT_SPECIFIC",
        2,
        (
            "shift",
            "shifts",
            "by shift",
            "per shift",
            "each shift",
            "night shift",
            "day shift",
            "shift a",
            "shift b",
            "shift c",
            "shift wise",
            "shift-wise",
        ),
    ),
    (
        "WEEKLY_SUMMARY",
        2,
        (
            "weekly",
            "this week",
            "last week",
            "week summary",
            "weekly report",
            "weekly summary",
            "per week",
            "by week",
        ),
    ),
    (
        "QUARTERLY_SUMMARY",
        2,
        (
            "quarterly",
            "quarter",
            "q1",
            "q2",
            "q3",
            "q4",
            "quarterly report",
            "quarterly summary",
            "first quarter",
            "second quarter",
            "third quarter",
            "fourth quarter",
        ),
    ),
    (
        "DATE_RANGE_QUERY",
        2,
        (
            "between",
            "from",
            "date range",
            "period",
            "through",
            "until",
        ),
    ),
    (
        "YEAR_OVER_YEAR",
        2,
        (
            "year over year",
            "year on year",
            "yoy",
            "compared to last year",
            "vs last year",
            "previous year",
            "annual comparison",
        ),
    ),
    (
        "PRODUCTION_TREND",
        2,
        (
            "trend",
            "trends",
            "trending",
            "over time",
            "growth",
            "decline",
            "increase",
            "decrease",
            "progression",
        ),
    ),
    # Tier 3
    (
        "AGGREGATION_QUERY",
        3,
        (
            "sum",
            "total",
            "count",
            "aggregate",
            "aggregation",
            "summary of",
            "overall",
            "entire",
            "how many",
            "how much",
        ),
    ),
    (
        "DATA_RETRIEVAL",
        3,
        (
            "show",
            "list",
            "display",
            "find",
            "get",
            "fetch",
            "view",
            "see",
            "look up",
            "retrieve",
            "data",
            "give me",
            "production data",
        ),
    ),
    (
        "RECORD_LOOKUP",
        3,
        (
            "record",
            "records",
            "entry",
            "entries",
            "row for",
            "lookup",
            "details of",
            "details for",
        ),
    ),
    (
        "TABLE_LISTING",
        3,
        (
            "tables",
            "list tables",
            "which tables",
            "available tables",
            "uploaded files",
            "datasets",
        ),
    ),
    (
        "SCHEMA_LOOKUP",
        3,
        (
            "schema",
            "columns",
            "column names",
            "table structure",
            "fields",
            "describe table",
        ),
    ),
)

INTENTS: tuple[IntentDefinition, ...] = tuple(
    IntentDefinition(name=name, tier=tier, keywords=keywords) for name, tier, keywords in _CATALOG
)

INTENTS_BY_NAME: Mapping[str, IntentDefinition] = MappingProxyType({i.name: i for i in INTENTS})

KEYWORD_PATTERNS: Mapping[str, re.Pattern[str]] = MappingProxyType(
    {kw: keyword_pattern(kw) for intent in INTENTS for kw in intent.keywords}
)

GENERIC_WORDS: frozenset[str] = frozenset(
    {"show", "list", "display", "find", "get", "fetch", "view", "see", "data"}
)

DISCRIMINATORS: frozenset[str] = frozenset(
    {
        "total tonnage",
        "total trips",
        "average production",
        "monthly report",
        "shift rank",
        "equipment breakdown",
        "production summary",
    }
)

TIER_NORMALIZERS: Mapping[int, float] = MappingProxyType({1: 18.0, 2: 20.0, 3: 25.0})

# Any of these beats the generic aggregation intent
SPECIFIC_AGGREGATIONS: frozenset[str] = frozenset(
    {
        "TOTAL_TONNAGE",
        "TOTAL_TRIPS",
        "AVERAGE_PRODUCTION",
        "MONTHLY_SUMMARY",
        "STATISTICAL_QUERY",
        "PRODUCTION_SUMMARY",
        "WEEKLY_SUMMARY",
        "QUARTERLY_SUMMARY",
    }
)

EXACT_PHRASE_BONUS = 5.0
DISCRIMINATOR_BONUS = 4.0
FUZZY_DISCOUNT = 0.95

EQUIPMENT_ID_EVIDENCE = 5.0
EQUIPMENT_ID_EVIDENCE_MAX = 2
ROW_NUMBER_EVIDENCE = 10.0
TOP_N_EVIDENCE = 6.0

# Statistical words always hand the question to STATISTICAL_QUERY
STATISTICAL_BOOST = 2.5
STATISTICAL_FORCED_SCORE = 100.0

MATCH_RATIO_BOOST = 1.2
MATCH_RATIO_MIN_HITS = 2
MATCH_RATIO_MIN = 0.3

FACE_INFERRED_SCORE = 10.0

# Context cues used to disambiguate close candidates
SPECIFIC_DAY_CUE = re.compile(rf"\b(?:{MONTH_ALT})\s+\d{{1,2}}(?:st|nd|rd|th)?\b", re.IGNORECASE)
SUMMARY_CUE = re.compile(
    r"\b(monthly|month summary|month report|monthly report|summary of|report for|"
    r"overview of|breakdown by month)\b",
    re.IGNORECASE,
)
EQUIPMENT_FOCUS_CUES: tuple[re.Pattern[str], ...] = (
    re.compile(
        r"\b(which|what)\s+\w*\s*(tippers?|trucks?|excavators?|equipment|vehicles?|machines?)\b",
        re.IGNORECASE,
    ),
    re.compile(
        r"\b(top|best|worst)\s+\d*\s*(tippers?|trucks?|excavators?|equipment|vehicles?)\b",
        re.IGNORECASE,
    ),
    re.compile(
        r"\b(tippers?|trucks?|excavators?|equipment|vehicles?)\s+(made|performed|worked|did)\b",
        re.IGNORECASE,
    ),
)

FORECAST_SUMMARY_CUE = re.compile(
    r"\b(complete summary|total|sum|aggregate|aggregation|overall|entire|summary of|"
    r"summary including)\b",
    re.IGNORECASE,
)
FORECAST_WORDS = re.compile(
    r"\b(forecast|predict|future|next month|next quarter|next year)\b", re.IGNORECASE
)
FORECAST_WORDS_WIDE = re.compile(
    r"\b(forecast|predict|future|next|expected|anticipated)\b", re.IGNORECASE
)
FORECAST_WORDS_FACE = re.compile(r"\b(forecast|predict|future|next)\b", re.IGNORECASE)
FORECAST_SIGNALS = re.compile(
    r"\b(forecast|predict|future|next|expected|projection|anticipated)\b", re.IGNORECASE
)
RETRIEVAL_OPENER = re.compile(
    r"^(show|list|display|get|fetch|give|provide|view|see)\b", re.IGNORECASE
)
PERIOD_CUE = re.compile(rf"\b({MONTH_ALT}|q[1-4]|last week|yesterday|today)\b", re.IGNORECASE)
FACE_CUE = re.compile(
    r"\b(face|faces|mining face|pit face|bench face|by face|for face|production by face)\b",
    re.IGNORECASE,
)

OPTIMIZATION_CUE = re.compile(
    r"\b(best|optimal|should i|recommend|choose|pick|select|which.*should|help me choose|"
    r"help me pick|help me select)\b",
    re.IGNORECASE,
)
OPTIMIZATION_TYPO_CUE = re.compile(
    r"\b(bst|bset|bet|optmal|optiml|shoud i|recomend|choos|pik|slect)\b", re.IGNORECASE
)
PAIRING_ACTION_CUE = re.compile(r"\b(worked|paired|contributed|used|working)\b", re.IGNORECASE)
VISUALIZATION_CUE = re.compile(
    r"\b(chart|graph|plot|visuali[sz]\w*|histogram|line|bar|pie|draw)\b", re.IGNORECASE
)
VISUALIZATION_MIN_SHARE = 0.3
