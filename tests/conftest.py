from __future__ import annotations

import asyncio
import json

import pytest

from selector_healing.config.schema import HealingConfig, HeuristicOptions
from selector_healing.core.engine import HealingEngine
from selector_healing.core.heuristics import HeuristicResolver
from selector_healing.core.snapshot import DocumentSnapshot
from selector_healing.providers.client import ProviderRegistry, SuggestionProvider
from selector_healing.storage.cache import HealingCache, InMemoryCacheStore
from selector_healing.storage.overrides import ManualOverrideTable


class StubProvider(SuggestionProvider):
    """Suggestion provider that replays a canned answer."""

    def __init__(self, name: str = "openai", answer: str | None = None, error: Exception | None = None, delay: float = 0.0):
        self.name = name
        self.answer = answer
        self.error = error
        self.delay = delay
        self.calls: list[tuple[str, str]] = []

    async def generate_selector(self, html_context: str, original_selector: str) -> str | None:
        self.calls.append((html_context, original_selector))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.answer


@pytest.fixture()
def make_provider():
    return StubProvider


@pytest.fixture()
def make_document():
    def _make(body: str) -> DocumentSnapshot:
        return DocumentSnapshot.from_html(f"<html><head></head><body>{body}</body></html>")

    return _make


@pytest.fixture()
def options():
    return HeuristicOptions()


@pytest.fixture()
def manual_path(tmp_path):
    return tmp_path / "manual_healing.json"


@pytest.fixture()
def write_manual(manual_path):
    def _write(entries) -> None:
        manual_path.write_text(json.dumps(entries), encoding="utf-8")

    return _write


@pytest.fixture()
def attempts():
    return []


@pytest.fixture()
def make_engine(manual_path, attempts):
    def _make(
        config: HealingConfig | None = None,
        providers: list[SuggestionProvider] | None = None,
        store: InMemoryCacheStore | None = None,
    ) -> HealingEngine:
        return HealingEngine(
            config=config or HealingConfig(),
            cache=HealingCache(store if store is not None else InMemoryCacheStore()),
            providers=ProviderRegistry(providers),
            overrides=ManualOverrideTable(manual_path),
            resolver=HeuristicResolver(on_attempt=attempts.append),
        )

    return _make
