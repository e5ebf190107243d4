from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol

from openai import OpenAI

from query_router.config import settings


@dataclass
class ChatMessage:
    role: str  # "system"|"user"|"assistant"
    content: str


class ChatAdapter(Protocol):
    def chat(
        self,
        messages: list[ChatMessage],
        model: str,
        max_tokens: int,
        temperature: float,
    ) -> tuple[str, dict[str, Any]]: ...


class OpenAIAdapter:
    """Thin wrapper over the openai chat completions client."""

    def __init__(self, client: OpenAI):
        self.client = client

    def chat(
        self,
        messages: list[ChatMessage],
        model: str,
        max_tokens: int,
        temperature: float,
    ) -> tuple[str, dict[str, Any]]:
        response = self.client.chat.completions.create(
            model=model,
            messages=[{"role": m.role, "content": m.content} for m in messages],
            max_tokens=max_tokens,
            temperature=temperature,
        )
        text = response.choices[0].message.content or ""
        usage: dict[str, Any] = {}
        if response.usage is not None:
            usage = {
                "prompt_tokens": response.usage.prompt_tokens,
                "completion_tokens": response.usage.completion_tokens,
                "total_tokens": response.usage.total_tokens,
            }
        return text, usage


def get_openai(api_key: str | None = None, base_url: str | None = None) -> OpenAIAdapter:
    # The guard owns retries and timeouts
    client = OpenAI(
        api_key=api_key or settings.OPENAI_API_KEY,
        base_url=base_url or settings.OPENAI_BASE_URL,
        organization=settings.OPENAI_ORG,
        max_retries=0,
    )
    return OpenAIAdapter(client)
