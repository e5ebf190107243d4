from __future__ import annotations

import re

from query_router.exceptions import UnsafeSQLError

ALLOWED_TABLES: frozenset[str] = frozenset(
    {"production_summary", "trip_summary_by_date", "uploaded_files", "equipment"}
)

_FORBIDDEN_RE = re.compile(
    r"\b(DROP|TRUNCATE|DELETE|UPDATE|INSERT|ALTER|CREATE|GRANT|REVOKE)\b", re.IGNORECASE
)
_STARTS_RE = re.compile(r"^\s*(SELECT|WITH)\b", re.IGNORECASE)
_FROM_RE = re.compile(r"\bFROM\b", re.IGNORECASE)
_TABLE_RE = re.compile(r"\b(?:FROM|JOIN)\s+([A-Za-z_][\w.]*)", re.IGNORECASE)
_CTE_RE = re.compile(r"(?:\bWITH|,)\s*([A-Za-z_]\w*)\s+AS\s*\(", re.IGNORECASE)
_EXTRACT_RE = re.compile(r"\bEXTRACT\s*\(\s*\w+\s+FROM\b", re.IGNORECASE)
_TAUTOLOGY_RES: tuple[re.Pattern[str], ...] = (
    re.compile(r"'\s*OR\s*'[^']*'\s*=\s*'", re.IGNORECASE),
    re.compile(r"\bOR\s+(\d+)\s*=\s*\1\b", re.IGNORECASE),
)


def validate_sql(sql: str) -> str:
    """Return the stripped statement or raise UnsafeSQLError."""
    if not sql or not sql.strip():
        raise UnsafeSQLError("Empty SQL statement")
    statement = sql.strip()

    if "```" in statement:
        raise UnsafeSQLError("SQL contains markdown fencing")
    if not _STARTS_RE.match(statement):
        raise UnsafeSQLError("SQL must start with SELECT or WITH")
    if statement.upper().startswith("WITH") and not re.search(r"\bSELECT\b", statement, re.IGNORECASE):
        raise UnsafeSQLError("WITH statement has no SELECT")
    if not _FROM_RE.search(statement):
        raise UnsafeSQLError("SQL must contain FROM")

    forbidden = _FORBIDDEN_RE.search(statement)
    if forbidden:
        raise UnsafeSQLError(f"SQL contains forbidden keyword: {forbidden.group(1).upper()}")

    body = statement[:-1].rstrip() if statement.endswith(";") else statement
    if ";" in body:
        raise UnsafeSQLError("SQL contains stacked statements")
    if "--" in statement or "/*" in statement:
        raise UnsafeSQLError("SQL contains comment markers")
    for pattern in _TAUTOLOGY_RES:
        if pattern.search(statement):
            raise UnsafeSQLError("SQL contains a tautology injection pattern")

    unknown = referenced_tables(statement) - ALLOWED_TABLES
    if unknown:
        raise UnsafeSQLError(f"SQL references unknown table(s): {', '.join(sorted(unknown))}")
    return statement


def referenced_tables(sql: str) -> set[str]:
    """Table names after FROM/JOIN, excluding CTE names and EXTRACT(... FROM col)."""
    scrubbed = _EXTRACT_RE.sub("EXTRACT(", sql)
    ctes = {name.lower() for name in _CTE_RE.findall(scrubbed)}
    tables = {name.lower().split(".")[-1] for name in _TABLE_RE.findall(scrubbed)}
    return tables - ctes
