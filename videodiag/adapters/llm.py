from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from openai import AsyncOpenAI

from ..config import Settings


@dataclass
class ChatClientConfig:
    base_url: str | None
    api_key: str | None
    model: str
    timeout_seconds: int
    temperature: float
    max_tokens: int

    @classmethod
    def from_settings(cls, settings: Settings) -> ChatClientConfig:
        return cls(
            base_url=settings.openai_base_url,
            api_key=settings.openai_api_key,
            model=settings.chat_model,
            timeout_seconds=settings.chat_timeout_seconds,
            temperature=settings.chat_temperature,
            max_tokens=settings.chat_max_tokens,
        )


class ChatClient:
    """Minimal async OpenAI chat-completions helper, built once per request."""

    def __init__(self, cfg: ChatClientConfig):
        self.cfg = cfg
        self._client: AsyncOpenAI | None = None

    @property
    def configured(self) -> bool:
        return bool(self.cfg.api_key)

    def client(self) -> AsyncOpenAI:
        if not self.configured:
            raise RuntimeError('LLM client is not configured')
        if self._client is None:
            self._client = AsyncOpenAI(
                api_key=self.cfg.api_key,
                base_url=self.cfg.base_url,
                timeout=max(30, int(self.cfg.timeout_seconds)),
            )
        return self._client

    async def complete(self, messages: list[dict[str, Any]]):
        return await self.client().chat.completions.create(
            model=self.cfg.model,
            messages=messages,
            max_tokens=self.cfg.max_tokens,
            temperature=self.cfg.temperature,
        )

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.close()
            self._client = None
