"""Abstract LLM provider with OpenAI and Anthropic adapters."""

from __future__ import annotations

from abc import ABC, abstractmethod

from helpr.config import get_settings


class LLMProvider(ABC):
    """Abstract interface for text completion calls."""

    @abstractmethod
    async def chat(self, prompt: str, system: str = "") -> str:
        """Text-only chat completion."""
        ...


class OpenAIProvider(LLMProvider):
    def __init__(self, api_key: str, model: str = "gpt-4o-mini"):
        from openai import AsyncOpenAI
        self.client = AsyncOpenAI(api_key=api_key)
        self.model = model

    async def chat(self, prompt: str, system: str = "") -> str:
        messages = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": prompt})
        resp = await self.client.chat.completions.create(
            model=self.model,
            messages=messages,
            max_tokens=512,
            response_format={"type": "json_object"},
        )
        return resp.choices[0].message.content


class AnthropicProvider(LLMProvider):
    def __init__(self, api_key: str, model: str = "claude-sonnet-4-20250514"):
        from anthropic import AsyncAnthropic
        self.client = AsyncAnthropic(api_key=api_key)
        self.model = model

    async def chat(self, prompt: str, system: str = "") -> str:
        kwargs = {"system": system} if system else {}
        resp = await self.client.messages.create(
            model=self.model,
            max_tokens=512,
            messages=[{"role": "user", "content": [{"type": "text", "text": prompt}]}],
            **kwargs,
        )
        return resp.content[0].text


def get_llm_provider() -> LLMProvider:
    """Factory: returns OpenAI provider if key available, else Anthropic."""
    settings = get_settings()
    model = settings.pricing.model
    if settings.openai_api_key:
        return OpenAIProvider(settings.openai_api_key, **({"model": model} if model else {}))
    if settings.anthropic_api_key:
        return AnthropicProvider(settings.anthropic_api_key, **({"model": model} if model else {}))
    raise RuntimeError("No LLM API key configured. Set OPENAI_API_KEY or ANTHROPIC_API_KEY.")
