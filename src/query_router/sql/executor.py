from __future__ import annotations

from typing import Any, Callable

from query_router.logging import get_logger
from query_router.resilience.guard import ResilienceGuard

from .validate import validate_sql

logger = get_logger(__name__)

# Caller-supplied database access: takes a validated SELECT, returns rows
Runner = Callable[[str], Any]


def execute_select(sql: str, runner: Runner, guard: ResilienceGuard) -> Any:
    """Validate ``sql`` and run it through the database guard."""
    safe_sql = validate_sql(sql)
    logger.debug(f"Executing SQL: {safe_sql}")
    return guard.call_database(lambda: runner(safe_sql), operation="execute_select")
