from __future__ import annotations

import json
from datetime import date
from typing import Optional

import httpx
import typer
from rich.console import Console
from rich.table import Table

from query_router import orchestrator
from query_router.dates.parser import format_parsed_date
from query_router.exceptions import QueryRouterError
from query_router.extract.parameters import extract_parameters
from query_router.intent.classifier import classify

app = typer.Typer(help="Route operational questions to sql, rag or optimize.")
console = Console()

_today_option = typer.Option(
    None, "--today", help="Reference date (YYYY-MM-DD) for relative expressions."
)
_BREAKER_COLUMNS = ("name", "state", "failures", "threshold", "window_s", "retry_after_s")

_explain_option = typer.Option(
    False, "--explain", help="Also show the intent classification and extracted parameters."
)
_url_option = typer.Option(
    "http://127.0.0.1:8000", "--url", help="Base URL of a running query-router API."
)


def _parse_today(value: Optional[str]) -> Optional[date]:
    if value is None:
        return None
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise typer.BadParameter(f"Invalid date: {value!r}", param_hint="--today") from None


@app.command()
def route(
    question: str = typer.Argument(..., help="The question to route."),
    today: Optional[str] = _today_option,
    explain: bool = _explain_option,
):
    """Route a question and print the decision as JSON."""
    ref = _parse_today(today)
    try:
        decision = orchestrator.route(question, today=ref)
    except QueryRouterError as e:
        console.print(f"[bold red]Routing failed:[/bold red] {e}")
        raise typer.Exit(1) from e

    if explain:
        result = classify(question, extract_parameters(question, today=ref))
        console.print(
            f"[bold]intent[/bold] {result.intent} "
            f"(confidence {result.confidence:.2f}, tier {result.tier}, score {result.score:g})"
        )
        if result.parameters.parsed_date is not None:
            period = format_parsed_date(result.parameters.parsed_date)
            console.print(f"[bold]period[/bold] {period}")
    console.print_json(json.dumps(decision.to_dict(), default=str))


@app.command()
def breakers(url: str = _url_option):
    """Show the circuit breaker states of a running API server.

    Breaker state lives in the serving process, so it is read over HTTP.
    """
    try:
        response = httpx.get(f"{url.rstrip('/')}/breakers", timeout=5.0)
        response.raise_for_status()
    except httpx.HTTPError as e:
        console.print(f"[bold red]Could not read breakers from {url}:[/bold red] {e}")
        raise typer.Exit(1) from e

    table = Table(title=f"Circuit breakers ({url})")
    for column in _BREAKER_COLUMNS:
        table.add_column(column)
    for snap in response.json()["breakers"].values():
        table.add_row(*(str(snap[c]) for c in _BREAKER_COLUMNS))
    console.print(table)


if __name__ == "__main__":
    app()
