"""AI Provider abstraction layer.

Supports OpenAI and Google Gemini with a unified interface.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

import httpx

from helpdesk.core.config import settings

logger = logging.getLogger(__name__)


class AIProviderError(Exception):
    """Upstream model call failed (network, HTTP status, or malformed body)."""


class AIProviderNotConfigured(AIProviderError):
    """No API key configured for the AI provider."""


@dataclass
class ChatMessage:
    """A single message in a conversation."""

    role: str  # 'system', 'user', 'assistant'
    content: str


@dataclass
class ChatResponse:
    """Response from an AI provider."""

    content: str
    prompt_tokens: int
    completion_tokens: int
    total_tokens: int
    model: str


class AIProvider(ABC):
    """Abstract base class for AI providers."""

    @abstractmethod
    async def chat(
        self,
        messages: list[ChatMessage],
        model: str | None = None,
        temperature: float = 0.2,
        max_tokens: int = 2000,
        json_output: bool = False,
    ) -> ChatResponse:
        """Send a chat completion request."""
        pass


class OpenAIProvider(AIProvider):
    """OpenAI API provider."""

    def __init__(self, api_key: str, default_model: str = "gpt-4o-mini", timeout: float = 60.0):
        self.api_key = api_key
        self.default_model = default_model
        self.timeout = timeout
        self.base_url = "https://api.openai.com/v1"

    async def chat(
        self,
        messages: list[ChatMessage],
        model: str | None = None,
        temperature: float = 0.2,
        max_tokens: int = 2000,
        json_output: bool = False,
    ) -> ChatResponse:
        model = model or self.default_model

        body: dict[str, Any] = {
            "model": model,
            "messages": [{"role": m.role, "content": m.content} for m in messages],
            "temperature": temperature,
            "max_tokens": max_tokens,
        }
        if json_output:
            body["response_format"] = {"type": "json_object"}

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(
                    f"{self.base_url}/chat/completions",
                    headers={
                        "Authorization": f"Bearer {self.api_key}",
                        "Content-Type": "application/json",
                    },
                    json=body,
                )
                response.raise_for_status()
                data = response.json()
            content = data["choices"][0]["message"]["content"]
        except httpx.HTTPStatusError as e:
            raise AIProviderError(f"OpenAI returned HTTP {e.response.status_code}") from e
        except httpx.HTTPError as e:
            raise AIProviderError(f"OpenAI request failed: {e.__class__.__name__}") from e
        except (KeyError, IndexError, TypeError, ValueError) as e:
            raise AIProviderError("OpenAI returned an unexpected response shape") from e

        usage = data.get("usage", {})
        return ChatResponse(
            content=content or "",
            prompt_tokens=usage.get("prompt_tokens", 0),
            completion_tokens=usage.get("completion_tokens", 0),
            total_tokens=usage.get("total_tokens", 0),
            model=model,
        )


class GeminiProvider(AIProvider):
    """Google Gemini API provider."""

    def __init__(self, api_key: str, default_model: str = "gemini-2.0-flash", timeout: float = 60.0):
        self.api_key = api_key
        self.default_model = default_model
        self.timeout = timeout
        self.base_url = "https://generativelanguage.googleapis.com/v1beta"

    async def chat(
        self,
        messages: list[ChatMessage],
        model: str | None = None,
        temperature: float = 0.2,
        max_tokens: int = 2000,
        json_output: bool = False,
    ) -> ChatResponse:
        model = model or self.default_model

        # Gemini uses 'user' and 'model' roles, system goes in systemInstruction
        system_instruction = None
        contents = []

        for msg in messages:
            if msg.role == "system":
                system_instruction = msg.content
            else:
                role = "model" if msg.role == "assistant" else "user"
                contents.append({"role": role, "parts": [{"text": msg.content}]})

        generation_config: dict[str, Any] = {
            "temperature": temperature,
            "maxOutputTokens": max_tokens,
        }
        if json_output:
            generation_config["responseMimeType"] = "application/json"

        request_body: dict[str, Any] = {
            "contents": contents,
            "generationConfig": generation_config,
        }
        if system_instruction:
            request_body["systemInstruction"] = {
                "parts": [{"text": system_instruction}]
            }

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(
                    f"{self.base_url}/models/{model}:generateContent",
                    params={"key": self.api_key},
                    headers={"Content-Type": "application/json"},
                    json=request_body,
                )
                response.raise_for_status()
                data = response.json()
            content = data["candidates"][0]["content"]["parts"][0]["text"]
        except httpx.HTTPStatusError as e:
            raise AIProviderError(f"Gemini returned HTTP {e.response.status_code}") from e
        except httpx.HTTPError as e:
            raise AIProviderError(f"Gemini request failed: {e.__class__.__name__}") from e
        except (KeyError, IndexError, TypeError, ValueError) as e:
            raise AIProviderError("Gemini returned an unexpected response shape") from e

        usage = data.get("usageMetadata", {})
        prompt_tokens = usage.get("promptTokenCount", 0)
        completion_tokens = usage.get("candidatesTokenCount", 0)

        return ChatResponse(
            content=content,
            prompt_tokens=prompt_tokens,
            completion_tokens=completion_tokens,
            total_tokens=prompt_tokens + completion_tokens,
            model=model,
        )


def get_provider(
    provider_name: str,
    api_key: str,
    model: str | None = None,
    timeout: float = 60.0,
) -> AIProvider:
    """Factory function to get the appropriate AI provider."""
    if provider_name == "openai":
        return OpenAIProvider(api_key, default_model=model or "gpt-4o-mini", timeout=timeout)
    elif provider_name == "gemini":
        return GeminiProvider(api_key, default_model=model or "gemini-2.0-flash", timeout=timeout)
    else:
        raise ValueError(f"Unknown provider: {provider_name}")


def get_configured_provider() -> AIProvider:
    """
    Provider built from settings.

    Raises:
        AIProviderNotConfigured: AI_API_KEY is empty
    """
    if not settings.ai_enabled:
        raise AIProviderNotConfigured("AI provider is not configured")
    return get_provider(
        settings.AI_PROVIDER,
        settings.AI_API_KEY,
        model=settings.AI_MODEL or None,
        timeout=settings.AI_TIMEOUT_SECONDS,
    )
