from __future__ import annotations

import asyncio
import json
import logging
import threading
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator

from selector_healing.core.exceptions import CachePersistenceError
from selector_healing.core.metadata import HealingResult

logger = logging.getLogger(__name__)


class CacheStore(ABC):
    """Durable backing for the healed selector cache."""

    @abstractmethod
    def load(self) -> dict[str, HealingResult]:
        raise NotImplementedError

    @abstractmethod
    def save(self, entries: dict[str, HealingResult]) -> None:
        raise NotImplementedError


class InMemoryCacheStore(CacheStore):
    def __init__(self, entries: dict[str, HealingResult] | None = None) -> None:
        self._entries = dict(entries or {})
        self.save_count = 0

    def load(self) -> dict[str, HealingResult]:
        return dict(self._entries)

    def save(self, entries: dict[str, HealingResult]) -> None:
        self._entries = dict(entries)
        self.save_count += 1


class JsonFileCacheStore(CacheStore):
    """Keeps the whole cache in one JSON object, rewritten on every save."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def load(self) -> dict[str, HealingResult]:
        if not self.path.exists():
            return {}
        try:
            payload = json.loads(self.path.read_text(encoding="utf-8"))
            return {key: HealingResult.from_dict(value) for key, value in payload.items()}
        except (OSError, ValueError, KeyError, TypeError, AttributeError) as exc:
            raise CachePersistenceError(f"Could not read healed selectors from {self.path}: {exc}") from exc

    def save(self, entries: dict[str, HealingResult]) -> None:
        payload = {key: result.to_dict() for key, result in entries.items()}
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(json.dumps(payload, indent=2, sort_keys=True), encoding="utf-8")
        except OSError as exc:
            raise CachePersistenceError(f"Could not write healed selectors to {self.path}: {exc}") from exc


class HealingCache:
    """Write-through cache of healing results keyed by the original selector."""

    def __init__(self, store: CacheStore, persist: bool = True) -> None:
        self.store = store
        self.persist = persist
        self._entries: dict[str, HealingResult] = {}
        self._write_lock = threading.Lock()
        self._key_locks: dict[str, asyncio.Lock] = {}
        self._key_lock_users: dict[str, int] = {}
        try:
            self._entries = store.load()
        except CachePersistenceError as exc:
            logger.warning("Failed to load healed selectors: %s", exc)

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, key: str) -> HealingResult | None:
        return self._entries.get(key)

    def entries(self) -> dict[str, HealingResult]:
        return dict(self._entries)

    def put(self, result: HealingResult) -> None:
        with self._write_lock:
            self._entries[result.original] = result
            self._flush()

    def clear(self) -> None:
        with self._write_lock:
            self._entries.clear()
            self._flush()

    @asynccontextmanager
    async def lock(self, key: str) -> AsyncIterator[None]:
        """Serializes resolutions of the same original selector."""

        key_lock = self._key_locks.get(key)
        if key_lock is None:
            key_lock = self._key_locks[key] = asyncio.Lock()
        self._key_lock_users[key] = self._key_lock_users.get(key, 0) + 1
        try:
            async with key_lock:
                yield
        finally:
            self._key_lock_users[key] -= 1
            if not self._key_lock_users[key]:
                del self._key_lock_users[key]
                del self._key_locks[key]

    def _flush(self) -> None:
        if not self.persist:
            return
        try:
            self.store.save(dict(self._entries))
        except CachePersistenceError as exc:
            logger.error("Failed to save healed selectors: %s", exc)
