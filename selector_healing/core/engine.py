from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any, Iterable

import httpx
from bs4 import Tag

from selector_healing.config.loader import DEFAULT_CONFIG_PATH, ConfigLoader
from selector_healing.config.schema import HealingConfig, HeuristicOptions
from selector_healing.core.heuristics import HeuristicResolver, generate_selector_for
from selector_healing.core.metadata import HealingMethod, HealingResult
from selector_healing.core.snapshot import DocumentSnapshot
from selector_healing.providers.client import ProviderRegistry, build_provider_registry
from selector_healing.storage.cache import HealingCache, JsonFileCacheStore
from selector_healing.storage.overrides import ManualOverrideTable

logger = logging.getLogger(__name__)


class HealingEngine:
    """Coordinates cache lookup, heuristics, provider fallback and manual overrides."""

    def __init__(
        self,
        config: HealingConfig,
        cache: HealingCache,
        providers: ProviderRegistry,
        overrides: ManualOverrideTable,
        resolver: HeuristicResolver | None = None,
    ) -> None:
        self.config = config
        self.cache = cache
        self.providers = providers
        self.overrides = overrides
        self.resolver = resolver or HeuristicResolver()

    @classmethod
    def from_config_file(
        cls,
        path: str | Path = DEFAULT_CONFIG_PATH,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> HealingEngine:
        config = ConfigLoader.load_or_default(path)
        return cls.from_config(config, transport=transport)

    @classmethod
    def from_config(
        cls,
        config: HealingConfig,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> HealingEngine:
        cache = HealingCache(
            JsonFileCacheStore(config.healing.healed_selectors_file),
            persist=config.healing.save_healed,
        )
        return cls(
            config=config,
            cache=cache,
            providers=build_provider_registry(config.ai, transport=transport),
            overrides=ManualOverrideTable(config.healing.manual_healing_file),
        )

    async def heal(
        self,
        original_selector: str,
        document: DocumentSnapshot,
        options: dict[str, Any] | None = None,
    ) -> HealingResult:
        """Resolves a broken selector into a working one.

        Never raises for healing failures; an unresolved selector yields a
        result with ``healed=None`` and ``method=failed`` that is not cached.
        """

        effective = self.config.heuristics.merged(options)
        async with self.cache.lock(original_selector):
            cached = self.cache.get(original_selector)
            if cached is not None and cached.healed:
                if effective.logging:
                    logger.info("Using cached healed selector for %s", original_selector)
                return cached

            if self.config.healing.auto_heal:
                healed = self.resolver.resolve(original_selector, document, effective)
                if healed:
                    return self._remember(original_selector, healed, HealingMethod.HEURISTIC, effective)

            healed = await self._heal_with_provider(original_selector, document)
            if healed:
                return self._remember(original_selector, healed, HealingMethod.AI, effective)

            healed = self.overrides.lookup(original_selector)
            if healed:
                return self._remember(original_selector, healed, HealingMethod.MANUAL, effective)

        if effective.logging:
            logger.warning("Failed to heal selector: %s", original_selector)
        return HealingResult.failed(original_selector)

    async def heal_many(
        self,
        selectors: Iterable[str],
        document: DocumentSnapshot,
        options: dict[str, Any] | None = None,
    ) -> dict[str, HealingResult]:
        results: dict[str, HealingResult] = {}
        for selector in selectors:
            results[selector] = await self.heal(selector, document, options)
        return results

    def get_cached_results(self) -> dict[str, HealingResult]:
        return self.cache.entries()

    def clear_cache(self) -> None:
        self.cache.clear()

    def generate_selector_for(self, element: Tag, options: dict[str, Any] | None = None) -> str | None:
        return generate_selector_for(element, self.config.heuristics.merged(options))

    async def _heal_with_provider(self, original_selector: str, document: DocumentSnapshot) -> str | None:
        ai_config = self.config.ai
        if not ai_config.enabled:
            return None
        provider = self.providers.get(ai_config.provider)
        if provider is None:
            logger.debug("Active provider %s is not registered", ai_config.provider)
            return None
        html_context = document.root_html(ai_config.max_context_chars)
        try:
            return await asyncio.wait_for(
                provider.generate_selector(html_context, original_selector),
                timeout=ai_config.timeout,
            )
        except TimeoutError:
            logger.warning("Provider %s timed out after %ss", provider.name, ai_config.timeout)
        except Exception as exc:  # noqa: BLE001 - provider failures only mean "no suggestion".
            logger.error("Provider %s healing failed: %s", provider.name, exc)
        return None

    def _remember(
        self,
        original_selector: str,
        healed: str,
        method: HealingMethod,
        options: HeuristicOptions,
    ) -> HealingResult:
        result = HealingResult(original=original_selector, healed=healed, method=method)
        self.cache.put(result)
        if options.logging:
            logger.info("Healed via %s: %s -> %s", method.value, original_selector, healed)
        return result
