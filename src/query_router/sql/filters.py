"""WHERE/HAVING fragments shared by the SQL builders.

Every helper returns either a complete fragment or an empty string.
"""

from __future__ import annotations

from typing import Iterable

from query_router.dates.parser import date_to_sql_filter
from query_router.extract.patterns import EXCAVATOR_PREFIXES, SHIFT_NUMBER_TO_LETTER
from query_router.extract.types import NumericFilter, ParameterBag

VALID_SHIFTS: tuple[str, ...] = ("A", "B", "C")

# production_summary columns a numeric threshold can apply to, by measurement unit
PRODUCTION_UNIT_COLUMNS: dict[str, str] = {"ton": "qty_ton", "m3": "qty_m3", "trip": "total_trips"}


def quote(value: str) -> str:
    return "'" + str(value).replace("'", "''") + "'"


def _number(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else str(value)


def date_filter(params: ParameterBag, column: str = "date") -> str:
    parsed = params.parsed_date
    multi_month = bool(params.is_multi_month and params.months)

    if multi_month and (parsed is None or parsed.type in ("month", "year")):
        months = ", ".join(str(m) for m in params.months or [])
        clause = f"EXTRACT(MONTH FROM {column}) IN ({months})"
        if params.year:
            clause += f" AND EXTRACT(YEAR FROM {column}) = {params.year}"
        return clause

    if parsed is not None:
        return date_to_sql_filter(parsed, column)

    if params.date:
        return f"{column} = {quote(params.date)}"
    if params.date_start and params.date_end:
        return f"{column} BETWEEN {quote(params.date_start)} AND {quote(params.date_end)}"
    if params.year:
        return f"EXTRACT(YEAR FROM {column}) = {params.year}"
    return ""


def normalize_shift(token: str) -> str | None:
    """Map ``A``/``b``/``1``/``Shift 2`` to a canonical letter, or None."""
    text = str(token).strip().upper()
    if text.startswith("SHIFT"):
        text = text[len("SHIFT"):].strip()
    text = SHIFT_NUMBER_TO_LETTER.get(text, text)
    return text if text in VALID_SHIFTS else None


def shift_filter(shifts: Iterable[str] | None, column: str = "shift") -> str:
    letters: list[str] = []
    for token in shifts or []:
        letter = normalize_shift(token)
        if letter and letter not in letters:
            letters.append(letter)
    if not letters:
        return ""
    if len(letters) == 1:
        return f"{column} = {quote(letters[0])}"
    return f"{column} IN ({', '.join(quote(s) for s in letters)})"


def equipment_column(equipment_id: str) -> str:
    prefix = equipment_id.split("-", 1)[0].upper()
    return "excavator" if prefix in EXCAVATOR_PREFIXES else "tipper_id"


def _in_or_equal(column: str, values: list[str]) -> str:
    if len(values) == 1:
        return f"{column} = {quote(values[0])}"
    return f"{column} IN ({', '.join(quote(v) for v in values)})"


def equipment_filter(equipment_ids: Iterable[str] | None) -> str:
    by_column: dict[str, list[str]] = {}
    for equipment_id in equipment_ids or []:
        by_column.setdefault(equipment_column(equipment_id), []).append(equipment_id)
    if not by_column:
        return ""
    parts = [_in_or_equal(column, ids) for column, ids in by_column.items()]
    if len(parts) == 1:
        return parts[0]
    return "(" + " OR ".join(parts) + ")"


def numeric_predicate(numeric: NumericFilter | None, expression: str) -> str:
    if numeric is None:
        return ""
    if numeric.operator == "between":
        if numeric.min is None or numeric.max is None:
            return ""
        return f"{expression} BETWEEN {_number(numeric.min)} AND {_number(numeric.max)}"
    if numeric.value is None:
        return ""
    return f"{expression} {numeric.operator} {_number(numeric.value)}"


def numeric_having(numeric: NumericFilter | None, expression: str) -> str:
    predicate = numeric_predicate(numeric, expression)
    return f"HAVING {predicate}" if predicate else ""


def combine_where(*clauses: str) -> str:
    parts = [c for c in clauses if c]
    return "WHERE " + " AND ".join(parts) if parts else ""
