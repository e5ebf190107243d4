"""Deterministic SQL construction for well-understood intents.

``build_sql`` either returns a complete statement or ``None``; it never
guesses. Filters are taken from the ParameterBag; the question text is only
consulted for which metric to report and in which order. A numeric threshold
that the target table cannot express makes the builder decline.
"""

from __future__ import annotations

import re
from typing import Callable

from query_router.dates.parser import MONTH_LOOKUP, parse_year
from query_router.extract.patterns import metric_column
from query_router.extract.types import ParameterBag
from query_router.logging import get_logger

from .filters import (
    PRODUCTION_UNIT_COLUMNS,
    combine_where,
    date_filter,
    equipment_column,
    equipment_filter,
    numeric_having,
    numeric_predicate,
    quote,
    shift_filter,
)

logger = get_logger(__name__)

PRODUCTION_TABLE = "production_summary"
TRIP_TABLE = "trip_summary_by_date"

DEFAULT_LIMIT = 10

_LOWEST_RE = re.compile(r"\b(lowest|least|worst|minimum|min|bottom|ascending|asc)\b", re.IGNORECASE)
_SUPERLATIVE_RE = re.compile(
    r"\b(highest|lowest|most|least|best|worst|maximum|minimum|top|bottom)\b", re.IGNORECASE
)
_TONNAGE_RE = re.compile(r"\b(production|tonnage|cubic|qty_ton|qty_m3|tons?|m3)\b", re.IGNORECASE)

_UNIT_BY_COLUMN: dict[str, str] = {
    "qty_ton": "ton",
    "qty_m3": "m3",
    "total_trips": "trip",
    "trip_count_for_reclaim": "trip",
}

Builder = Callable[[ParameterBag, str], "str | None"]


def _direction(params: ParameterBag, question: str) -> str:
    if params.rank_type == "bottom" or _LOWEST_RE.search(question):
        return "ASC"
    return "DESC"


def _threshold_unit(params: ParameterBag, question: str) -> str:
    if params.measurement is not None:
        return params.measurement.unit
    return _UNIT_BY_COLUMN[metric_column(question)]


def _threshold_column(params: ParameterBag, question: str) -> str | None:
    return PRODUCTION_UNIT_COLUMNS.get(_threshold_unit(params, question))


def _production_where(params: ParameterBag, question: str, threshold: bool = True) -> str | None:
    """WHERE clause for production_summary; None when a threshold has no column.

    A numeric threshold filters individual production_summary rows.
    """
    predicate = ""
    if threshold and params.numeric_filter is not None:
        column = _threshold_column(params, question)
        if column is None:
            return None
        predicate = numeric_predicate(params.numeric_filter, column)
    return combine_where(date_filter(params, "date"), shift_filter(params.shift), predicate)


def _trip_having(params: ParameterBag, question: str) -> str | None:
    # trip_summary_by_date only carries trip counts
    if params.numeric_filter is None:
        return ""
    if _threshold_unit(params, question) != "trip":
        return None
    return numeric_having(params.numeric_filter, "SUM(trip_count)")


def _statistical(params: ParameterBag, question: str) -> str | None:
    column = metric_column(question)
    text = question.lower()
    selects: list[str] = []
    if re.search(r"\b(mean|average|avg)\b", text):
        selects.append(f"AVG({column}) AS mean_value")
    if "median" in text:
        selects.append(f"PERCENTILE_CONT(0.5) WITHIN GROUP (ORDER BY {column}) AS median_value")
    if re.search(r"\bmode\b", text):
        selects.append(f"MODE() WITHIN GROUP (ORDER BY {column}) AS mode_value")
    if re.search(r"\b(standard deviation|stddev|std dev|deviation)\b", text):
        selects.append(f"STDDEV_POP({column}) AS stddev_value")
    if "variance" in text:
        selects.append(f"VAR_POP({column}) AS variance_value")
    if not selects:
        selects = [
            f"AVG({column}) AS mean_value",
            f"PERCENTILE_CONT(0.5) WITHIN GROUP (ORDER BY {column}) AS median_value",
            f"MODE() WITHIN GROUP (ORDER BY {column}) AS mode_value",
            f"STDDEV_POP({column}) AS stddev_value",
        ]

    where = _production_where(params, question)
    if where is None:
        return None
    by_month = params.month_ranking or params.group_by_month or params.is_multi_month
    if not by_month:
        parts = [f"SELECT {', '.join(selects)}", f"FROM {PRODUCTION_TABLE}", where]
        return " ".join(p for p in parts if p)

    order = "month"
    limit = ""
    if params.month_ranking and _SUPERLATIVE_RE.search(question):
        order = f"{selects[0].rsplit(' AS ', 1)[1]} {_direction(params, question)}"
        limit = "LIMIT 1"
    parts = [
        f"SELECT EXTRACT(MONTH FROM date) AS month, {', '.join(selects)}",
        f"FROM {PRODUCTION_TABLE}",
        where,
        "GROUP BY month",
        f"ORDER BY {order}",
        limit,
    ]
    return " ".join(p for p in parts if p)


def _ordinal_row(params: ParameterBag, question: str) -> str | None:
    if not params.row_number or params.row_number < 1:
        return None
    where = _production_where(params, question)
    if where is None:
        return None
    parts = [
        f"SELECT * FROM {PRODUCTION_TABLE}",
        where,
        f"ORDER BY date ASC LIMIT 1 OFFSET {params.row_number - 1}",
    ]
    return " ".join(p for p in parts if p)


def _equipment_specific(params: ParameterBag, question: str) -> str | None:
    ids = params.equipment_ids or []
    if not ids:
        return None
    having = _trip_having(params, question)
    if having is None:
        return None
    columns: list[str] = []
    for equipment_id in ids:
        column = equipment_column(equipment_id)
        if column not in columns:
            columns.append(column)
    group = ", ".join(sorted(columns, key=lambda c: c != "tipper_id"))
    where = combine_where(
        date_filter(params, "trip_date"),
        shift_filter(params.shift),
        equipment_filter(ids),
    )
    parts = [
        f"SELECT {group}, SUM(trip_count) AS total_trips, COUNT(DISTINCT trip_date) AS active_days",
        f"FROM {TRIP_TABLE}",
        where,
        f"GROUP BY {group}",
        having,
        "ORDER BY total_trips DESC",
    ]
    return " ".join(p for p in parts if p)


def _equipment_combination(params: ParameterBag, question: str) -> str | None:
    if _TONNAGE_RE.search(question) and not re.search(r"\bproductive\b", question, re.IGNORECASE):
        return None
    having = _trip_having(params, question)
    if having is None:
        return None
    where = combine_where(
        date_filter(params, "trip_date"),
        shift_filter(params.shift),
        equipment_filter(params.equipment_ids),
    )
    parts = [
        "SELECT tipper_id, excavator, SUM(trip_count) AS total_trips",
        f"FROM {TRIP_TABLE}",
        where,
        "GROUP BY tipper_id, excavator",
        having,
        "ORDER BY total_trips DESC",
        f"LIMIT {params.n or DEFAULT_LIMIT}",
    ]
    return " ".join(p for p in parts if p)


def _grouped_total(params: ParameterBag, question: str, select: str) -> str | None:
    where = _production_where(params, question)
    if where is None:
        return None
    if params.group_by_shift:
        parts = [
            f"SELECT shift, {select}",
            f"FROM {PRODUCTION_TABLE}",
            where,
            "GROUP BY shift",
            "ORDER BY shift",
        ]
    elif params.group_by_month or params.is_multi_month:
        parts = [
            f"SELECT EXTRACT(MONTH FROM date) AS month, {select}",
            f"FROM {PRODUCTION_TABLE}",
            where,
            "GROUP BY month",
            "ORDER BY month",
        ]
    else:
        parts = [f"SELECT {select}", f"FROM {PRODUCTION_TABLE}", where]
    return " ".join(p for p in parts if p)


def _total_tonnage(params: ParameterBag, question: str) -> str | None:
    return _grouped_total(params, question, "SUM(qty_ton) AS total_tonnage")


def _total_trips(params: ParameterBag, question: str) -> str | None:
    return _grouped_total(params, question, "SUM(total_trips) AS total_trips")


def _average_production(params: ParameterBag, question: str) -> str | None:
    column = metric_column(question)
    return _grouped_total(params, question, f"AVG({column}) AS average_{column}")


def _shift_specific(params: ParameterBag, question: str) -> str | None:
    where = _production_where(params, question)
    if where is None:
        return None
    parts = [
        "SELECT shift, SUM(qty_ton) AS total_tonnage, SUM(qty_m3) AS total_m3, "
        "SUM(total_trips) AS total_trips",
        f"FROM {PRODUCTION_TABLE}",
        where,
        "GROUP BY shift",
        "ORDER BY shift",
    ]
    return " ".join(p for p in parts if p)


def _shift_ranking(params: ParameterBag, question: str) -> str | None:
    column = metric_column(question)
    where = _production_where(params, question)
    if where is None:
        return None
    parts = [
        f"SELECT shift, SUM({column}) AS total",
        f"FROM {PRODUCTION_TABLE}",
        where,
        "GROUP BY shift",
        f"ORDER BY total {_direction(params, question)}",
    ]
    return " ".join(p for p in parts if p)


def _monthly_summary(params: ParameterBag, question: str) -> str | None:
    where = _production_where(params, question)
    if where is None:
        return None
    parts = [
        "SELECT EXTRACT(YEAR FROM date) AS year, EXTRACT(MONTH FROM date) AS month, "
        "SUM(qty_ton) AS total_tonnage, SUM(qty_m3) AS total_m3, SUM(total_trips) AS total_trips",
        f"FROM {PRODUCTION_TABLE}",
        where,
        "GROUP BY year, month",
        "ORDER BY year, month",
    ]
    return " ".join(p for p in parts if p)


def _top_n(params: ParameterBag, question: str) -> str | None:
    column = metric_column(question)
    having = ""
    if params.numeric_filter is not None:
        # Thresholds apply to the daily total being ranked
        threshold_column = _threshold_column(params, question)
        if threshold_column is None:
            return None
        having = numeric_having(params.numeric_filter, f"SUM({threshold_column})")
    parts = [
        f"SELECT date, SUM({column}) AS total",
        f"FROM {PRODUCTION_TABLE}",
        _production_where(params, question, threshold=False),
        "GROUP BY date",
        having,
        f"ORDER BY total {_direction(params, question)}",
        f"LIMIT {params.n or DEFAULT_LIMIT}",
    ]
    return " ".join(p for p in parts if p)


def _routes_faces(params: ParameterBag, question: str) -> str | None:
    having = _trip_having(params, question)
    if having is None:
        return None
    route = f"route_or_face = {quote(params.route_or_face)}" if params.route_or_face else ""
    where = combine_where(
        date_filter(params, "trip_date"),
        shift_filter(params.shift),
        equipment_filter(params.equipment_ids),
        route,
    )
    parts = [
        "SELECT route_or_face, SUM(trip_count) AS total_trips",
        f"FROM {TRIP_TABLE}",
        where,
        "GROUP BY route_or_face",
        having,
        f"ORDER BY total_trips {_direction(params, question)}",
        f"LIMIT {params.n}" if params.n else "",
    ]
    return " ".join(p for p in parts if p)


def _month_comparison(params: ParameterBag, question: str) -> str | None:
    column = metric_column(question)
    where = _production_where(params, question)
    if where is None:
        return None
    limit = "LIMIT 1" if params.month_ranking and _SUPERLATIVE_RE.search(question) else ""
    parts = [
        f"SELECT EXTRACT(MONTH FROM date) AS month, SUM({column}) AS total",
        f"FROM {PRODUCTION_TABLE}",
        where,
        "GROUP BY month",
        f"ORDER BY total {_direction(params, question)}",
        limit,
    ]
    return " ".join(p for p in parts if p)


def _entity_month(entity: str) -> tuple[int | None, int | None]:
    words = entity.lower().split()
    if not words or words[0] not in MONTH_LOOKUP:
        return None, None
    return MONTH_LOOKUP[words[0]], parse_year(entity)


def _comparison(params: ParameterBag, question: str) -> str | None:
    comparison = params.comparison
    if comparison is None or params.comparison_type not in ("shift", "month"):
        return None
    column = metric_column(question)
    threshold = ""
    if params.numeric_filter is not None:
        threshold_column = _threshold_column(params, question)
        if threshold_column is None:
            return None
        threshold = numeric_predicate(params.numeric_filter, threshold_column)

    if params.comparison_type == "shift":
        shifts = shift_filter([comparison.entity1, comparison.entity2])
        if not shifts:
            return None
        where = combine_where(date_filter(params, "date"), shifts, threshold)
        parts = [
            f"SELECT shift, SUM({column}) AS total",
            f"FROM {PRODUCTION_TABLE}",
            where,
            "GROUP BY shift",
            "ORDER BY shift",
        ]
        return " ".join(p for p in parts if p)

    first_month, first_year = _entity_month(comparison.entity1)
    second_month, second_year = _entity_month(comparison.entity2)
    if first_month is None or second_month is None:
        return None
    year = first_year or second_year or params.year
    clauses = [f"EXTRACT(MONTH FROM date) IN ({first_month}, {second_month})"]
    if year:
        clauses.append(f"EXTRACT(YEAR FROM date) = {year}")
    where = combine_where(*clauses, shift_filter(params.shift), threshold)
    parts = [
        f"SELECT EXTRACT(MONTH FROM date) AS month, SUM({column}) AS total",
        f"FROM {PRODUCTION_TABLE}",
        where,
        "GROUP BY month",
        "ORDER BY month",
    ]
    return " ".join(parts)


def _data_retrieval(params: ParameterBag, question: str) -> str | None:
    where = _production_where(params, question)
    if not where:
        return None
    return f"SELECT * FROM {PRODUCTION_TABLE} {where} ORDER BY date, shift"


BUILDERS: dict[str, Builder] = {
    "STATISTICAL_QUERY": _statistical,
    "ORDINAL_ROW_QUERY": _ordinal_row,
    "EQUIPMENT_SPECIFIC_PRODUCTION": _equipment_specific,
    "EQUIPMENT_COMBINATION": _equipment_combination,
    "TOTAL_TONNAGE": _total_tonnage,
    "TOTAL_TRIPS": _total_trips,
    "AVERAGE_PRODUCTION": _average_production,
    "SHIFT_SPECIFIC": _shift_specific,
    "SHIFT_RANKING": _shift_ranking,
    "MONTHLY_SUMMARY": _monthly_summary,
    "TOP_N_RANKING": _top_n,
    "ROUTES_FACES_ANALYSIS": _routes_faces,
    "MONTH_COMPARISON": _month_comparison,
    "COMPARISON_QUERY": _comparison,
    "DATA_RETRIEVAL": _data_retrieval,
}


def build_sql(intent: str | None, parameters: ParameterBag, question: str = "") -> str | None:
    """Build a SELECT for ``intent`` from ``parameters``, or return None."""
    builder = BUILDERS.get(intent or "")
    if builder is None:
        logger.debug(f"No SQL builder for intent {intent}")
        return None
    sql = builder(parameters, question or "")
    if sql is None:
        logger.debug(f"SQL builder for {intent} declined: missing parameters")
    return sql
