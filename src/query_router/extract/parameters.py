from __future__ import annotations

import re
from datetime import date
from typing import Iterable

from query_router.dates.parser import parse_date
from query_router.logging import get_logger
from query_router.text.fuzzy import best_fuzzy_match, correct_known_misspellings

from . import patterns
from .types import Comparison, Measurement, NumericFilter, ParameterBag

logger = get_logger(__name__)


def _dedup(seq: Iterable[str]) -> list[str]:
    seen: set[str] = set()
    out: list[str] = []
    for item in seq:
        if item in seen:
            continue
        seen.add(item)
        out.append(item)
    return out


def normalize_shift_token(token: str) -> str:
    text = str(token).strip().upper()
    return patterns.SHIFT_NUMBER_TO_LETTER.get(text, text)


def _extract_equipment(bag: ParameterBag, text: str, lower: str) -> None:
    ids: list[str] = []
    for match in patterns.EQUIPMENT_ID.finditer(text):
        prefix = match.group(1).upper()
        if prefix in patterns.RESERVED_ID_PREFIXES:
            continue
        ids.append(f"{prefix}-{match.group(2)}")
    ids = _dedup(ids)
    if not bag.set_once("equipment_ids", ids or None):
        return

    if patterns.REPLACEMENT_CUE.search(lower):
        first = ids[0]
        bag.set_once("equipment_replacement", True)
        bag.set_once("exclude_equipment", first)
        prefix = first.split("-", 1)[0]
        if prefix in patterns.TIPPER_PREFIXES:
            bag.set_once("replacement_type", "tipper")
        elif prefix in patterns.EXCAVATOR_PREFIXES:
            bag.set_once("replacement_type", "excavator")


def _extract_dates(bag: ParameterBag, text: str, today: date | None) -> None:
    parsed = parse_date(text, today)
    if parsed is None:
        return
    bag.set_once("parsed_date", parsed)
    bag.set_once("year", parsed.year)
    bag.set_once("quarter", parsed.quarter)
    if parsed.month:
        bag.set_once("month", parsed.month)
        bag.set_once("month_name", parsed.month_name)
    bag.set_once("date_start", parsed.start_date)
    bag.set_once("date_end", parsed.end_date)
    if parsed.type == "single":
        bag.set_once("date", parsed.start_date)
    bag.set_once("date_range", parsed.relative_period)
    if parsed.type == "range":
        bag.set_once("date_range_start", parsed.start_date)
        bag.set_once("date_range_end", parsed.end_date)


def _extract_months(bag: ParameterBag, lower: str) -> None:
    mentions = [m.group(1) for m in patterns.MONTH_MENTION.finditer(lower)]
    # "may" only counts when a year follows it
    mentions = [
        m
        for m in mentions
        if m != "may" or re.search(r"\bmay\s*,?\s*\d{4}\b", lower)
    ]
    numbers: list[int] = []
    for name in mentions:
        number = patterns.MONTH_NUMBERS[name]
        if number not in numbers:
            numbers.append(number)
    if len(numbers) > 1:
        bag.set_once("months", numbers)
        bag.set_once("is_multi_month", True)

    if patterns.BY_MONTH.search(lower):
        bag.set_once("group_by_month", True)
    if patterns.WHICH_MONTH.search(lower):
        bag.set_once("month_ranking", True)
    if patterns.ALL_MONTHS.search(lower):
        bag.set_once("all_months", True)
        bag.set_once("group_by_month", True)


def _extract_shifts(bag: ParameterBag, lower: str) -> None:
    if "shift" not in lower:
        return
    if patterns.BY_SHIFT.search(lower):
        bag.set_once("group_by_shift", True)
        return

    shifts = [normalize_shift_token(m.group(1)) for m in patterns.SHIFT_TOKEN.finditer(lower)]
    if not shifts:
        return
    listed = patterns.SHIFT_LIST.search(lower)
    if listed:
        shifts.extend(normalize_shift_token(g) for g in listed.groups() if g)
    bag.set_once("shift", _dedup(shifts))


def _extract_numeric_filter(bag: ParameterBag, lower: str) -> None:
    between = patterns.NUMERIC_BETWEEN.search(lower)
    if between:
        low = patterns.parse_number(between.group(1))
        high = patterns.parse_number(between.group(2))
        looks_like_years = all(2000 <= v <= 2100 for v in (low, high))
        if not looks_like_years:
            bag.set_once(
                "numeric_filter",
                NumericFilter(operator="between", min=min(low, high), max=max(low, high)),
            )
            return

    for pattern, operator in patterns.NUMERIC_COMPARISONS:
        match = pattern.search(lower)
        if match:
            value = patterns.parse_number(match.group(1))
            bag.set_once("numeric_filter", NumericFilter(operator=operator, value=value))
            return


def _extract_relative_window(bag: ParameterBag, lower: str) -> None:
    match = patterns.RELATIVE_WINDOW.search(lower)
    if match and int(match.group(1)) > 0:
        bag.set_once(
            "relative_window",
            Measurement(value=float(match.group(1)), unit=match.group(2).lower()),
        )


def _extract_quarter(bag: ParameterBag, lower: str) -> None:
    match = patterns.QUARTER_MENTION.search(lower)
    if match:
        bag.set_once("quarter", int(match.group(1)))


def _extract_measurement(bag: ParameterBag, lower: str) -> None:
    match = patterns.MEASUREMENT.search(lower)
    if not match:
        return
    unit = re.sub(r"\s+", " ", match.group(2).lower())
    canonical = patterns.UNIT_CANONICAL.get(unit)
    if canonical:
        bag.set_once(
            "measurement",
            Measurement(value=patterns.parse_number(match.group(1)), unit=canonical),
        )


def _extract_ranking(bag: ParameterBag, lower: str) -> None:
    top = patterns.TOP_BOTTOM_N.search(lower)
    if top:
        bag.set_once("n", int(top.group(2)))
        bag.set_once("rank_type", top.group(1).lower())
    row = patterns.ORDINAL_ROW.search(lower)
    if row and int(row.group(1)) > 0:
        bag.set_once("row_number", int(row.group(1)))


def _extract_route_and_machines(bag: ParameterBag, lower: str) -> None:
    if patterns.ROUTE_OR_FACE_CUE.search(lower):
        match = patterns.ROUTE_OR_FACE_ID.search(lower)
        if match and match.group(1).lower() not in patterns.ROUTE_OR_FACE_STOPWORDS:
            bag.set_once("route_or_face", match.group(1).upper())

    corrected = correct_known_misspellings(lower)
    machines = [
        re.sub(r"s$", "", m.group(1).lower())
        for m in patterns.MACHINE_TYPE.finditer(corrected)
    ]
    if not machines:
        # Typos the misspelling table does not know, e.g. "excavtor"
        for word in re.findall(r"[a-z]{5,}", corrected):
            hit = best_fuzzy_match(word, patterns.MACHINE_WORDS)
            if hit is not None:
                machines.append(hit[0])
    bag.set_once("machine_types", _dedup(machines) or None)


def _comparison_type(left: str, right: str) -> str | None:
    def first_word(value: str) -> str:
        return value.split()[0].lower() if value.split() else ""

    if patterns.EQUIPMENT_ID_EXACT.match(left) or patterns.EQUIPMENT_ID_EXACT.match(right):
        return "equipment"
    if first_word(left) in patterns.MONTH_NUMBERS or first_word(right) in patterns.MONTH_NUMBERS:
        return "month"
    if re.fullmatch(r"[abc]", left, re.IGNORECASE) or re.fullmatch(r"[abc]", right, re.IGNORECASE):
        return "shift"
    if re.fullmatch(r"\d{4}-\d{2}-\d{2}", left) or re.fullmatch(r"\d{4}-\d{2}-\d{2}", right):
        return "date"
    return None


def _extract_comparison(bag: ParameterBag, text: str) -> None:
    for pattern in patterns.ENTITY_COMPARISONS:
        match = pattern.search(text)
        if not match:
            continue
        left, right = match.group(1).strip(), match.group(2).strip()
        ctype = _comparison_type(left, right)
        if ctype == "equipment":
            left, right = left.upper(), right.upper()
        elif ctype == "shift":
            left, right = left.upper(), right.upper()
        bag.set_once("comparison", Comparison(entity1=left, entity2=right))
        bag.set_once("comparison_type", ctype)
        return


def extract_parameters(text: str, today: date | None = None) -> ParameterBag:
    """Build a ParameterBag from raw question text.

    Extractions run in a fixed order and only ever add fields, so an earlier
    and more specific pattern is never overwritten by a later one.
    """
    raw = text or ""
    lower = raw.lower()
    bag = ParameterBag()

    _extract_equipment(bag, raw, lower)
    _extract_dates(bag, raw, today)
    _extract_months(bag, lower)
    _extract_shifts(bag, lower)
    _extract_numeric_filter(bag, lower)
    _extract_relative_window(bag, lower)
    _extract_quarter(bag, lower)
    _extract_measurement(bag, lower)
    _extract_ranking(bag, lower)
    _extract_route_and_machines(bag, lower)
    _extract_comparison(bag, raw)

    logger.debug(f"Extracted parameters {bag.present_fields()} from: {raw!r}")
    return bag
