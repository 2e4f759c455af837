from __future__ import annotations

import logging
import os
from abc import ABC, abstractmethod
from typing import Any

import httpx

from selector_healing.config.schema import AIConfig, ProviderSettings
from selector_healing.core.exceptions import ProviderError
from selector_healing.providers.parser import parse_selector_response
from selector_healing.providers.prompts import SYSTEM_PROMPT, build_user_prompt

logger = logging.getLogger(__name__)


class SuggestionProvider(ABC):
    """Provider-neutral interface for asynchronous selector suggestions."""

    name = "unknown"

    @abstractmethod
    async def generate_selector(self, html_context: str, original_selector: str) -> str | None:
        raise NotImplementedError


class HttpSuggestionProvider(SuggestionProvider):
    """Shared plumbing for providers reached over HTTP."""

    def __init__(
        self,
        settings: ProviderSettings,
        transport: httpx.AsyncBaseTransport | None = None,
        request_timeout: float = 30.0,
    ) -> None:
        self.settings = settings
        self.transport = transport
        self.request_timeout = request_timeout

    async def _post_json(self, url: str, payload: dict[str, Any], headers: dict[str, str]) -> dict[str, Any]:
        async with httpx.AsyncClient(transport=self.transport, timeout=self.request_timeout) as client:
            try:
                response = await client.post(url, json=payload, headers=headers)
                response.raise_for_status()
            except httpx.HTTPStatusError as exc:
                raise ProviderError(
                    f"{self.name} request failed with status {exc.response.status_code}: {exc.response.text}"
                ) from exc
            except httpx.RequestError as exc:
                raise ProviderError(f"{self.name} request could not be completed: {exc}") from exc
        try:
            return response.json()
        except ValueError as exc:
            raise ProviderError(f"{self.name} returned invalid JSON") from exc


class OpenAISuggestionProvider(HttpSuggestionProvider):
    name = "openai"
    endpoint = "https://api.openai.com/v1/chat/completions"

    @property
    def model(self) -> str:
        return self.settings.model or os.getenv("OPENAI_MODEL", "gpt-4o-mini")

    async def generate_selector(self, html_context: str, original_selector: str) -> str | None:
        body = {
            "model": self.model,
            "temperature": self.settings.temperature,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": build_user_prompt(html_context, original_selector)},
            ],
        }
        response = await self._post_json(
            self.settings.endpoint or self.endpoint,
            body,
            headers={"Authorization": f"Bearer {self.settings.api_key}"},
        )
        try:
            content = response["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as exc:
            raise ProviderError("OpenAI returned an unexpected response shape") from exc
        return parse_selector_response(content)


class AnthropicSuggestionProvider(HttpSuggestionProvider):
    name = "anthropic"
    endpoint = "https://api.anthropic.com/v1/messages"

    @property
    def model(self) -> str:
        return self.settings.model or os.getenv("ANTHROPIC_MODEL", "claude-3-5-sonnet-latest")

    async def generate_selector(self, html_context: str, original_selector: str) -> str | None:
        body = {
            "model": self.model,
            "max_tokens": 128,
            "temperature": self.settings.temperature,
            "system": SYSTEM_PROMPT,
            "messages": [
                {"role": "user", "content": build_user_prompt(html_context, original_selector)},
            ],
        }
        response = await self._post_json(
            self.settings.endpoint or self.endpoint,
            body,
            headers={
                "x-api-key": self.settings.api_key or "",
                "anthropic-version": "2023-06-01",
            },
        )
        try:
            content = response["content"][0]["text"]
        except (KeyError, IndexError, TypeError) as exc:
            raise ProviderError("Anthropic returned an unexpected response shape") from exc
        return parse_selector_response(content)


class GeminiSuggestionProvider(HttpSuggestionProvider):
    name = "gemini"
    endpoint_template = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"

    @property
    def model(self) -> str:
        return self.settings.model or os.getenv("GEMINI_MODEL", "gemini-2.5-flash")

    async def generate_selector(self, html_context: str, original_selector: str) -> str | None:
        body = {
            "system_instruction": {
                "parts": [
                    {"text": SYSTEM_PROMPT},
                ]
            },
            "contents": [
                {
                    "role": "user",
                    "parts": [
                        {"text": build_user_prompt(html_context, original_selector)},
                    ],
                }
            ],
            "generationConfig": {
                "temperature": self.settings.temperature,
            },
        }
        response = await self._post_json(
            self.settings.endpoint or self.endpoint_template.format(model=self.model),
            body,
            headers={"x-goog-api-key": self.settings.api_key or ""},
        )
        candidates = response.get("candidates", [])
        if not candidates:
            raise ProviderError("Gemini returned no candidates")
        parts = candidates[0].get("content", {}).get("parts", [])
        text_parts = [part.get("text", "") for part in parts if isinstance(part, dict)]
        return parse_selector_response("".join(text_parts))


class EndpointSuggestionProvider(HttpSuggestionProvider):
    """Assistant reached through a user-configured JSON endpoint.

    The endpoint receives ``{"html", "selector", "model"}`` and answers with
    ``{"selector": "..."}`` or ``{"selector": null}``.
    """

    def __init__(
        self,
        name: str,
        settings: ProviderSettings,
        transport: httpx.AsyncBaseTransport | None = None,
        request_timeout: float = 30.0,
    ) -> None:
        super().__init__(settings, transport=transport, request_timeout=request_timeout)
        self.name = name

    async def generate_selector(self, html_context: str, original_selector: str) -> str | None:
        headers = {}
        if self.settings.api_key:
            headers["Authorization"] = f"Bearer {self.settings.api_key}"
        response = await self._post_json(
            self.settings.endpoint or "",
            {"html": html_context, "selector": original_selector, "model": self.settings.model},
            headers=headers,
        )
        if not isinstance(response, dict):
            raise ProviderError(f"{self.name} returned an unexpected response shape")
        return parse_selector_response(response.get("selector"))


API_KEY_PROVIDERS: dict[str, type[HttpSuggestionProvider]] = {
    "openai": OpenAISuggestionProvider,
    "anthropic": AnthropicSuggestionProvider,
    "gemini": GeminiSuggestionProvider,
}

ENDPOINT_PROVIDERS = {"copilot", "cursor", "warp"}


class ProviderRegistry:
    """Suggestion providers available to the engine, by name."""

    def __init__(self, providers: list[SuggestionProvider] | None = None) -> None:
        self._providers: dict[str, SuggestionProvider] = {}
        for provider in providers or []:
            self.register(provider)

    def __contains__(self, name: str) -> bool:
        return name in self._providers

    def register(self, provider: SuggestionProvider) -> None:
        self._providers[provider.name] = provider

    def get(self, name: str) -> SuggestionProvider | None:
        return self._providers.get(name)

    def names(self) -> list[str]:
        return list(self._providers)


def build_provider_registry(
    ai_config: AIConfig,
    transport: httpx.AsyncBaseTransport | None = None,
) -> ProviderRegistry:
    """Registers every configured provider whose credentials are present.

    A vendor's key comes from its ``apiKey`` setting, or from the
    ``<NAME>_API_KEY`` environment variable when the setting is empty.
    """

    registry = ProviderRegistry()
    for raw_name, settings in ai_config.providers.items():
        name = raw_name.lower()
        if name in API_KEY_PROVIDERS:
            api_key = settings.api_key or os.getenv(f"{name.upper()}_API_KEY")
            if not api_key:
                logger.debug("Skipping %s provider: no apiKey configured", name)
                continue
            settings = settings.model_copy(update={"api_key": api_key})
            registry.register(API_KEY_PROVIDERS[name](settings, transport=transport))
        elif name in ENDPOINT_PROVIDERS:
            if not settings.endpoint:
                logger.debug("Skipping %s provider: no endpoint configured", name)
                continue
            registry.register(EndpointSuggestionProvider(name, settings, transport=transport))
        else:
            logger.debug("Skipping unsupported provider: %s", name)
    return registry
