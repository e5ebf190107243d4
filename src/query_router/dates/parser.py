"""Natural-language date parsing.

Turns quarter, range, single-day, relative, month and year expressions into a
canonical :class:`ParsedDate` and renders those as SQL predicates.

Every public parser accepts an optional ``today`` so callers and tests can pin
the reference date; the default is the process date.
"""

from __future__ import annotations

import calendar
import re
from dataclasses import dataclass
from datetime import date, timedelta

MONTH_NAMES: tuple[str, ...] = (
    "january",
    "february",
    "march",
    "april",
    "may",
    "june",
    "july",
    "august",
    "september",
    "october",
    "november",
    "december",
)

MONTH_LOOKUP: dict[str, int] = {name: i + 1 for i, name in enumerate(MONTH_NAMES)}
MONTH_LOOKUP.update({name[:3]: i + 1 for i, name in enumerate(MONTH_NAMES)})
MONTH_LOOKUP["sept"] = 9

# Longest alternatives first so "march" wins over "mar"
MONTH_ALT = "|".join(sorted(MONTH_LOOKUP, key=len, reverse=True))

_ORDINAL = r"(?:st|nd|rd|th)?"
_SIDE = (
    r"(?:\d{4}-\d{2}-\d{2}"
    rf"|(?:\d{{1,2}}{_ORDINAL}\s+)?(?:{MONTH_ALT})\b"
    rf"(?:\s+\d{{1,2}}{_ORDINAL}\b)?(?:\s*,?\s*\d{{4}}\b)?)"
)

_QUARTER_NUM_RE = re.compile(r"\bq([1-4])(?:\s*(?:of\s+)?(\d{4}))?\b", re.IGNORECASE)
_QUARTER_YEAR_FIRST_RE = re.compile(r"\b(\d{4})\s*-?\s*q([1-4])\b", re.IGNORECASE)
_QUARTER_WORD_RE = re.compile(
    r"\b(first|second|third|fourth|1st|2nd|3rd|4th)\s+quarter"
    r"(?:\s+(?:of\s+)?(\d{4}))?\b",
    re.IGNORECASE,
)
_QUARTER_WORDS = {
    "first": 1,
    "1st": 1,
    "second": 2,
    "2nd": 2,
    "third": 3,
    "3rd": 3,
    "fourth": 4,
    "4th": 4,
}

_RANGE_RE = re.compile(
    rf"\b(?:from|between)\s+({_SIDE})\s+(?:to|and|through|until|till|-)\s+({_SIDE})",
    re.IGNORECASE,
)
_BARE_RANGE_RE = re.compile(
    rf"({_SIDE})\s+(?:to|through|until|till|-)\s+({_SIDE})", re.IGNORECASE
)
_DAY_SPAN_RE = re.compile(
    rf"\b({MONTH_ALT})\s+(\d{{1,2}}){_ORDINAL}\s+(?:to|through|until|till|-)\s+"
    rf"(\d{{1,2}}){_ORDINAL}\b(?:\s*,?\s*(\d{{4}})\b)?",
    re.IGNORECASE,
)
_SIDE_PARTS_RE = re.compile(
    rf"^(?:(\d{{1,2}}){_ORDINAL}\s+)?({MONTH_ALT})\b"
    rf"(?:\s+(\d{{1,2}}){_ORDINAL}\b)?(?:\s*,?\s*(\d{{4}}))?$",
    re.IGNORECASE,
)
_ISO_RE = re.compile(r"\b(\d{4})-(\d{2})-(\d{2})\b")

_MDY_RE = re.compile(
    rf"\b({MONTH_ALT})\s+(\d{{1,2}}){_ORDINAL}\b(?:\s*,?\s*(\d{{4}})\b)?",
    re.IGNORECASE,
)
_DMY_RE = re.compile(
    rf"\b(\d{{1,2}}){_ORDINAL}\s+(?:of\s+)?({MONTH_ALT})\b(?:\s*,?\s*(\d{{4}})\b)?",
    re.IGNORECASE,
)
_MONTH_RE = re.compile(rf"\b({MONTH_ALT})\b(?:\s*,?\s*(\d{{4}})\b)?", re.IGNORECASE)

_LAST_N_RE = re.compile(
    r"\b(?:last|past|previous)\s+(\d+)\s+(day|week|month|year)s?\b", re.IGNORECASE
)
_YEAR_RE = re.compile(r"(?<![\w-])(20\d{2}|2100)(?![\w-])")


@dataclass
class ParsedDate:
    type: str  # "single"|"range"|"quarter"|"month"|"year"|"relative"
    start_date: str | None = None  # ISO YYYY-MM-DD
    end_date: str | None = None
    year: int | None = None
    quarter: int | None = None
    month: int | None = None
    month_name: str | None = None
    relative_period: str | None = None
    raw_text: str | None = None


def get_current_date() -> date:
    return date.today()


def _today(today: date | None) -> date:
    return today if today is not None else get_current_date()


def last_day_of_month(year: int, month: int) -> int:
    return calendar.monthrange(year, month)[1]


def month_bounds(year: int, month: int) -> tuple[str, str]:
    last = last_day_of_month(year, month)
    return date(year, month, 1).isoformat(), date(year, month, last).isoformat()


def quarter_date_range(quarter: int, year: int) -> tuple[str, str]:
    first_month = (quarter - 1) * 3 + 1
    last_month = first_month + 2
    start, _ = month_bounds(year, first_month)
    _, end = month_bounds(year, last_month)
    return start, end


def _shift_months(day: date, months: int) -> date:
    index = day.year * 12 + (day.month - 1) - months
    year, month = divmod(index, 12)
    month += 1
    return date(year, month, min(day.day, last_day_of_month(year, month)))


def parse_year(text: str) -> int | None:
    match = _YEAR_RE.search(text or "")
    if match:
        return int(match.group(1))
    return None


def parse_quarter(text: str, today: date | None = None) -> ParsedDate | None:
    text = text or ""
    quarter: int | None = None
    year_text: str | None = None
    raw = ""

    match = _QUARTER_NUM_RE.search(text)
    if match:
        quarter, year_text, raw = int(match.group(1)), match.group(2), match.group(0)
    else:
        match = _QUARTER_YEAR_FIRST_RE.search(text)
        if match:
            quarter, year_text, raw = int(match.group(2)), match.group(1), match.group(0)
        else:
            match = _QUARTER_WORD_RE.search(text)
            if match:
                quarter = _QUARTER_WORDS[match.group(1).lower()]
                year_text, raw = match.group(2), match.group(0)

    if quarter is None:
        return None

    year = int(year_text) if year_text else _today(today).year
    start, end = quarter_date_range(quarter, year)
    return ParsedDate(
        type="quarter",
        start_date=start,
        end_date=end,
        year=year,
        quarter=quarter,
        raw_text=raw,
    )


def _side_parts(side: str) -> tuple[int | None, int, int | None] | None:
    """(year, month, day) for one side of a range; ISO sides are fully specified."""
    side = side.strip()
    iso = _ISO_RE.fullmatch(side)
    if iso:
        return int(iso.group(1)), int(iso.group(2)), int(iso.group(3))
    match = _SIDE_PARTS_RE.match(side)
    if not match:
        return None
    day_text = match.group(1) or match.group(3)
    month = MONTH_LOOKUP[match.group(2).lower()]
    year = int(match.group(4)) if match.group(4) else None
    return year, month, int(day_text) if day_text else None


def _resolve_side(year: int, month: int, day: int | None, *, is_end: bool) -> date:
    if day is not None:
        return date(year, month, day)
    if is_end:
        return date(year, month, last_day_of_month(year, month))
    return date(year, month, 1)


def _build_range(
    start_parts: tuple[int | None, int, int | None],
    end_parts: tuple[int | None, int, int | None],
    text: str,
    today: date | None,
    raw: str,
) -> ParsedDate | None:
    start_year, start_month, start_day = start_parts
    end_year, end_month, end_day = end_parts
    fallback_year = parse_year(text) or _today(today).year

    resolved_start_year = start_year or end_year or fallback_year
    resolved_end_year = end_year or start_year or fallback_year

    try:
        start = _resolve_side(resolved_start_year, start_month, start_day, is_end=False)
        end = _resolve_side(resolved_end_year, end_month, end_day, is_end=True)
        if start > end and start_year is None:
            start = _resolve_side(
                resolved_start_year - 1, start_month, start_day, is_end=False
            )
        elif start > end and end_year is None:
            end = _resolve_side(resolved_end_year + 1, end_month, end_day, is_end=True)
    except ValueError:
        return None

    if start > end:
        return None

    return ParsedDate(
        type="range",
        start_date=start.isoformat(),
        end_date=end.isoformat(),
        year=start.year if start.year == end.year else None,
        raw_text=raw,
    )


def parse_date_range(text: str, today: date | None = None) -> ParsedDate | None:
    text = text or ""

    span = _DAY_SPAN_RE.search(text)
    if span:
        month = MONTH_LOOKUP[span.group(1).lower()]
        year = int(span.group(4)) if span.group(4) else None
        parsed = _build_range(
            (year, month, int(span.group(2))),
            (year, month, int(span.group(3))),
            text,
            today,
            span.group(0),
        )
        if parsed:
            return parsed

    match = _RANGE_RE.search(text)
    if match:
        start_parts = _side_parts(match.group(1))
        end_parts = _side_parts(match.group(2))
        if start_parts and end_parts:
            parsed = _build_range(start_parts, end_parts, text, today, match.group(0))
            if parsed:
                return parsed

    # Without from/between both sides must name a day
    for match in _BARE_RANGE_RE.finditer(text):
        start_parts = _side_parts(match.group(1))
        end_parts = _side_parts(match.group(2))
        if not start_parts or not end_parts:
            continue
        if start_parts[2] is None or end_parts[2] is None:
            continue
        parsed = _build_range(start_parts, end_parts, text, today, match.group(0))
        if parsed:
            return parsed
    return None


def _single(day: date, raw: str, with_month: bool = True) -> ParsedDate:
    iso = day.isoformat()
    return ParsedDate(
        type="single",
        start_date=iso,
        end_date=iso,
        year=day.year,
        month=day.month if with_month else None,
        month_name=MONTH_NAMES[day.month - 1] if with_month else None,
        raw_text=raw,
    )


def parse_specific_date(text: str, today: date | None = None) -> ParsedDate | None:
    text = text or ""

    iso = _ISO_RE.search(text)
    if iso:
        try:
            day = date(int(iso.group(1)), int(iso.group(2)), int(iso.group(3)))
        except ValueError:
            day = None
        if day:
            return _single(day, iso.group(0))

    for regex, month_group, day_group in ((_MDY_RE, 1, 2), (_DMY_RE, 2, 1)):
        for match in regex.finditer(text):
            month = MONTH_LOOKUP[match.group(month_group).lower()]
            year = int(match.group(3)) if match.group(3) else _today(today).year
            try:
                day = date(year, month, int(match.group(day_group)))
            except ValueError:
                continue
            return _single(day, match.group(0))
    return None


def parse_relative_date(text: str, today: date | None = None) -> ParsedDate | None:
    lower = (text or "").lower()
    now = _today(today)

    if re.search(r"\btoday\b", lower):
        parsed = _single(now, "today", with_month=False)
        parsed.relative_period = "today"
        return parsed

    if re.search(r"\byesterday\b", lower):
        parsed = _single(now - timedelta(days=1), "yesterday", with_month=False)
        parsed.relative_period = "yesterday"
        return parsed

    # Weeks start on Sunday
    week_start = now - timedelta(days=(now.weekday() + 1) % 7)

    if re.search(r"\bthis\s+week\b", lower):
        return ParsedDate(
            type="relative",
            start_date=week_start.isoformat(),
            end_date=(week_start + timedelta(days=6)).isoformat(),
            relative_period="this_week",
            raw_text="this week",
        )

    if re.search(r"\b(?:last|past|previous)\s+week\b", lower):
        start = week_start - timedelta(days=7)
        return ParsedDate(
            type="relative",
            start_date=start.isoformat(),
            end_date=(start + timedelta(days=6)).isoformat(),
            relative_period="last_week",
            raw_text="last week",
        )

    for label, months_back in (("this", 0), ("last", 1)):
        if re.search(rf"\b{label}\s+month\b", lower):
            anchor = _shift_months(now.replace(day=1), months_back)
            start, end = month_bounds(anchor.year, anchor.month)
            return ParsedDate(
                type="month",
                start_date=start,
                end_date=end,
                year=anchor.year,
                month=anchor.month,
                month_name=MONTH_NAMES[anchor.month - 1],
                relative_period=f"{label}_month",
                raw_text=f"{label} month",
            )

    for label, years_back in (("this", 0), ("last", 1)):
        if re.search(rf"\b{label}\s+year\b", lower):
            year = now.year - years_back
            return ParsedDate(
                type="year",
                start_date=f"{year}-01-01",
                end_date=f"{year}-12-31",
                year=year,
                relative_period=f"{label}_year",
                raw_text=f"{label} year",
            )

    match = _LAST_N_RE.search(lower)
    if match:
        count = int(match.group(1))
        unit = match.group(2)
        if count < 1:
            return None
        if unit == "day":
            start = now - timedelta(days=count)
        elif unit == "week":
            start = now - timedelta(weeks=count)
        elif unit == "month":
            start = _shift_months(now, count)
        else:
            start = _shift_months(now, count * 12)
        return ParsedDate(
            type="relative",
            start_date=start.isoformat(),
            end_date=now.isoformat(),
            relative_period=f"last_{count}_{unit}s",
            raw_text=match.group(0),
        )

    return None


def parse_month(text: str, today: date | None = None) -> ParsedDate | None:
    for match in _MONTH_RE.finditer(text or ""):
        token = match.group(1).lower()
        # "may" is usually a verb unless a year follows it
        if token == "may" and not match.group(2):
            continue
        month = MONTH_LOOKUP[token]
        # "January and February 2024": a bare month takes the year stated elsewhere
        year = int(match.group(2)) if match.group(2) else parse_year(text) or _today(today).year
        start, end = month_bounds(year, month)
        return ParsedDate(
            type="month",
            start_date=start,
            end_date=end,
            year=year,
            month=month,
            month_name=MONTH_NAMES[month - 1],
            raw_text=match.group(0),
        )
    return None


def parse_date(text: str, today: date | None = None) -> ParsedDate | None:
    """Parse the first date expression in ``text``; most specific rule wins."""
    for parser in (
        parse_quarter,
        parse_date_range,
        parse_specific_date,
        parse_relative_date,
        parse_month,
    ):
        parsed = parser(text, today)
        if parsed is not None:
            return parsed

    year = parse_year(text)
    if year is not None:
        return ParsedDate(
            type="year",
            start_date=f"{year}-01-01",
            end_date=f"{year}-12-31",
            year=year,
            raw_text=str(year),
        )
    return None


def date_to_sql_filter(parsed: ParsedDate | None, column: str = "date") -> str:
    if parsed is None or (not parsed.start_date and not parsed.end_date):
        return ""

    if parsed.type == "single" and parsed.start_date:
        return f"{column} = '{parsed.start_date}'"

    if parsed.start_date and parsed.end_date:
        if parsed.start_date == parsed.end_date:
            return f"{column} = '{parsed.start_date}'"
        return f"{column} BETWEEN '{parsed.start_date}' AND '{parsed.end_date}'"

    if parsed.start_date:
        return f"{column} >= '{parsed.start_date}'"
    return f"{column} <= '{parsed.end_date}'"


def format_parsed_date(parsed: ParsedDate) -> str:
    if parsed.type == "quarter":
        return f"Q{parsed.quarter} {parsed.year}"
    if parsed.type == "month":
        return f"{parsed.month_name} {parsed.year}"
    if parsed.type == "year":
        return str(parsed.year)
    if parsed.type == "single":
        return parsed.start_date or ""
    if parsed.type == "range":
        return f"{parsed.start_date} to {parsed.end_date}"
    if parsed.relative_period:
        return parsed.relative_period.replace("_", " ")
    return ""
