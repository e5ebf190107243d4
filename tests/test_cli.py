"""Tests for the command line interface."""

import json

import httpx
from typer.testing import CliRunner

from query_router import cli
from query_router.cli import app
from query_router.config import settings

runner = CliRunner()


def test_route_prints_decision_json(monkeypatch) -> None:
    monkeypatch.setattr(settings, "OPENAI_API_KEY", None)
    result = runner.invoke(app, ["route", "total tonnage for January 2024"])

    assert result.exit_code == 0, result.output
    decision = json.loads(result.output)
    assert decision["task"] == "sql"
    assert decision["intent"] == "TOTAL_TONNAGE"
    assert decision["sql"].startswith("SELECT SUM(qty_ton)")


def test_route_with_reference_date(monkeypatch) -> None:
    monkeypatch.setattr(settings, "OPENAI_API_KEY", None)
    result = runner.invoke(app, ["route", "total tonnage last month", "--today", "2024-05-15"])

    assert result.exit_code == 0, result.output
    decision = json.loads(result.output)
    assert decision["parameters"]["date_start"] == "2024-04-01"


def test_invalid_reference_date() -> None:
    result = runner.invoke(app, ["route", "anything", "--today", "yesterday"])
    assert result.exit_code != 0


def test_breakers_table_reads_the_server(monkeypatch) -> None:
    snapshot = {
        "llm": {
            "name": "llm",
            "state": "OPEN",
            "failures": 5,
            "threshold": 5,
            "window_s": 60.0,
            "retry_after_s": 42.0,
        },
        "database": {
            "name": "database",
            "state": "CLOSED",
            "failures": 0,
            "threshold": 10,
            "window_s": 30.0,
            "retry_after_s": 0.0,
        },
    }
    requested: list[str] = []

    def fake_get(url, timeout):
        requested.append(url)
        return httpx.Response(
            200, json={"breakers": snapshot}, request=httpx.Request("GET", url)
        )

    monkeypatch.setattr(cli.httpx, "get", fake_get)
    result = runner.invoke(app, ["breakers", "--url", "http://router.local:9000/"])

    assert result.exit_code == 0, result.output
    assert requested == ["http://router.local:9000/breakers"]
    assert "OPEN" in result.output
    assert "database" in result.output


def test_breakers_reports_unreachable_server(monkeypatch) -> None:
    def refuse(url, timeout):
        raise httpx.ConnectError("connection refused")

    monkeypatch.setattr(cli.httpx, "get", refuse)
    result = runner.invoke(app, ["breakers"])

    assert result.exit_code == 1
    assert "Could not read breakers" in result.output


def test_explain_shows_classification_and_period(monkeypatch) -> None:
    monkeypatch.setattr(settings, "OPENAI_API_KEY", None)
    result = runner.invoke(app, ["route", "total tonnage for March 2024", "--explain"])

    assert result.exit_code == 0, result.output
    assert "intent TOTAL_TONNAGE" in result.output
    assert "period march 2024" in result.output
