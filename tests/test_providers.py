from __future__ import annotations

import asyncio
import json

import httpx
import pytest

from selector_healing.config.schema import AIConfig, ProviderSettings
from selector_healing.core.exceptions import ProviderError, SelectorValidationError
from selector_healing.providers.client import (
    AnthropicSuggestionProvider,
    EndpointSuggestionProvider,
    GeminiSuggestionProvider,
    OpenAISuggestionProvider,
    build_provider_registry,
)
from selector_healing.providers.parser import parse_selector_response


def _transport(reply, status_code: int = 200, seen: list | None = None) -> httpx.MockTransport:
    def handler(request: httpx.Request) -> httpx.Response:
        if seen is not None:
            seen.append(request)
        return httpx.Response(status_code, json=reply)

    return httpx.MockTransport(handler)


def test_registry_only_registers_configured_credentials(monkeypatch):
    for variable in ("OPENAI_API_KEY", "GEMINI_API_KEY", "ANTHROPIC_API_KEY"):
        monkeypatch.delenv(variable, raising=False)
    ai_config = AIConfig(
        providers={
            "openai": ProviderSettings(api_key="sk-test"),
            "gemini": ProviderSettings(),
            "anthropic": ProviderSettings(api_key=""),
            "cursor": ProviderSettings(endpoint="http://localhost:9000/suggest"),
            "warp": ProviderSettings(),
            "mystery": ProviderSettings(api_key="x"),
        }
    )
    registry = build_provider_registry(ai_config)
    assert sorted(registry.names()) == ["cursor", "openai"]
    assert isinstance(registry.get("openai"), OpenAISuggestionProvider)
    assert "gemini" not in registry
    assert registry.get("warp") is None


def test_registry_reads_api_keys_from_environment(monkeypatch):
    monkeypatch.setenv("OPENAI_API_KEY", "sk-env")
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)
    seen: list[httpx.Request] = []
    reply = {"choices": [{"message": {"content": "#login"}}]}
    ai_config = AIConfig(providers={"openai": ProviderSettings(), "gemini": ProviderSettings()})
    registry = build_provider_registry(ai_config, transport=_transport(reply, seen=seen))
    assert registry.names() == ["openai"]
    assert asyncio.run(registry.get("openai").generate_selector("<html></html>", ".old")) == "#login"
    assert seen[0].headers["Authorization"] == "Bearer sk-env"


def test_configured_api_key_takes_precedence_over_environment(monkeypatch):
    monkeypatch.setenv("ANTHROPIC_API_KEY", "from-env")
    seen: list[httpx.Request] = []
    reply = {"content": [{"type": "text", "text": "#save"}]}
    ai_config = AIConfig(providers={"anthropic": ProviderSettings(api_key="from-config")})
    registry = build_provider_registry(ai_config, transport=_transport(reply, seen=seen))
    asyncio.run(registry.get("anthropic").generate_selector("<html></html>", ".old"))
    assert seen[0].headers["x-api-key"] == "from-config"
    assert ai_config.providers["anthropic"].api_key == "from-config"


def test_openai_provider_sends_prompt_and_parses_reply():
    seen: list[httpx.Request] = []
    reply = {"choices": [{"message": {"content": " #login \n"}}]}
    provider = OpenAISuggestionProvider(
        ProviderSettings(api_key="sk-test", model="gpt-test"),
        transport=_transport(reply, seen=seen),
    )
    selector = asyncio.run(provider.generate_selector("<html></html>", ".old"))
    assert selector == "#login"
    request = seen[0]
    assert request.headers["Authorization"] == "Bearer sk-test"
    body = json.loads(request.content)
    assert body["model"] == "gpt-test"
    assert ".old" in body["messages"][1]["content"]


def test_anthropic_provider_reads_first_text_block():
    reply = {"content": [{"type": "text", "text": "[data-cy=\"save\"]"}]}
    provider = AnthropicSuggestionProvider(ProviderSettings(api_key="k"), transport=_transport(reply))
    assert asyncio.run(provider.generate_selector("<html></html>", ".old")) == '[data-cy="save"]'


def test_gemini_provider_joins_parts_and_uses_model_in_url():
    seen: list[httpx.Request] = []
    reply = {"candidates": [{"content": {"parts": [{"text": "#a"}, {"text": "bc"}]}}]}
    provider = GeminiSuggestionProvider(
        ProviderSettings(api_key="k", model="gemini-test"),
        transport=_transport(reply, seen=seen),
    )
    assert asyncio.run(provider.generate_selector("<html></html>", ".old")) == "#abc"
    assert "gemini-test:generateContent" in str(seen[0].url)
    assert seen[0].headers["x-goog-api-key"] == "k"


def test_gemini_provider_without_candidates_raises():
    provider = GeminiSuggestionProvider(ProviderSettings(api_key="k"), transport=_transport({"candidates": []}))
    with pytest.raises(ProviderError):
        asyncio.run(provider.generate_selector("<html></html>", ".old"))


def test_endpoint_provider_posts_html_and_selector():
    seen: list[httpx.Request] = []
    provider = EndpointSuggestionProvider(
        "cursor",
        ProviderSettings(endpoint="http://assistant.local/suggest"),
        transport=_transport({"selector": "#found"}, seen=seen),
    )
    assert asyncio.run(provider.generate_selector("<p>hi</p>", ".old")) == "#found"
    assert json.loads(seen[0].content)["selector"] == ".old"
    assert provider.name == "cursor"


def test_endpoint_provider_null_selector_means_no_suggestion():
    provider = EndpointSuggestionProvider(
        "warp",
        ProviderSettings(endpoint="http://assistant.local/suggest"),
        transport=_transport({"selector": None}),
    )
    assert asyncio.run(provider.generate_selector("<p>hi</p>", ".old")) is None


def test_http_errors_become_provider_errors():
    provider = OpenAISuggestionProvider(
        ProviderSettings(api_key="k"),
        transport=_transport({"error": "quota"}, status_code=429),
    )
    with pytest.raises(ProviderError, match="429"):
        asyncio.run(provider.generate_selector("<html></html>", ".old"))


def test_parser_rejects_unusable_replies():
    assert parse_selector_response("  #ok ") == "#ok"
    assert parse_selector_response("NOT_FOUND: nothing similar") is None
    assert parse_selector_response(None) is None
    with pytest.raises(SelectorValidationError):
        parse_selector_response("")
    with pytest.raises(SelectorValidationError):
        parse_selector_response("#a\n#b")
    with pytest.raises(SelectorValidationError):
        parse_selector_response("```css #a```")
