"""Pytest configuration file."""

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from query_router.api.main import create_app
from query_router.config import Settings
from query_router.resilience.breaker import BreakerRegistry
from query_router.resilience.guard import ResilienceGuard


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeAdapter:
    """Chat adapter returning canned replies in order."""

    def __init__(self, *replies):
        self.replies = list(replies)
        self.calls: list[dict] = []

    def chat(self, messages, model, max_tokens, temperature):
        self.calls.append(
            {"messages": messages, "model": model, "max_tokens": max_tokens, "temperature": temperature}
        )
        reply = self.replies.pop(0) if len(self.replies) > 1 else self.replies[0]
        if isinstance(reply, BaseException):
            raise reply
        return reply, {"total_tokens": 42}


@pytest.fixture
def offline_settings() -> Settings:
    """Settings with no LLM key and instant retries."""
    return Settings(OPENAI_API_KEY=None, RETRY_INITIAL_DELAY_S=0.0, RETRY_MAX_DELAY_S=0.0)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def guard(offline_settings: Settings, clock: FakeClock) -> ResilienceGuard:
    registry = BreakerRegistry.from_settings(offline_settings, clock=clock)
    return ResilienceGuard(registry=registry, settings=offline_settings, sleep=lambda _: None)


@pytest.fixture
def app(offline_settings: Settings, guard: ResilienceGuard) -> FastAPI:
    """Create a test FastAPI application."""
    return create_app(settings=offline_settings, guard=guard)


@pytest.fixture
def client(app: FastAPI) -> TestClient:
    """Create a test client."""
    return TestClient(app)


@pytest.fixture
def make_adapter():
    """Factory for FakeAdapter instances."""
    return FakeAdapter
