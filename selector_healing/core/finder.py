from __future__ import annotations

import asyncio
import re
from time import monotonic, sleep

from selenium.common.exceptions import InvalidSelectorException, NoSuchElementException
from selenium.webdriver.common.by import By

from selector_healing.core.engine import HealingEngine
from selector_healing.core.heuristics import is_contains_selector
from selector_healing.core.snapshot import DocumentSnapshot

_CONTAINS_PATTERN = re.compile(r'^(?P<prefix>.*?):contains\("(?P<text>(?:[^"\\]|\\.)*)"\)$', re.DOTALL)
_ROLE_PREFIX = re.compile(r'^\[role="(?P<role>(?:[^"\\]|\\.)*)"\]$')
_TEXT_ESCAPES = {"n": "\n", "r": "\r", "t": "\t"}


class HealingFinder:
    """Selenium element lookup that falls back to the healing engine.

    The finder is synchronous and single-threaded, like the WebDriver it
    wraps. Healing runs on an event loop owned by the finder, so every heal
    it starts shares one loop with the engine's per-key locks. Do not call
    ``find`` from inside a running event loop; await ``HealingEngine.heal``
    there instead. Call ``close`` when done with the finder.
    """

    def __init__(self, driver, engine: HealingEngine, timeout: float = 2.0) -> None:
        self.driver = driver
        self.engine = engine
        self.timeout = timeout
        self._loop = asyncio.new_event_loop()

    def find(self, selector: str, options: dict | None = None):
        try:
            return self._wait_for_first_match(By.CSS_SELECTOR, selector, self.timeout)
        except NoSuchElementException:
            pass
        document = DocumentSnapshot.from_driver(self.driver)
        result = self._run(self.engine.heal(selector, document, options))
        if not result.healed:
            raise NoSuchElementException(f"Element not found and could not be healed: {selector}")
        return self.find_by_selector(result.healed)

    def find_by_selector(self, selector: str):
        if is_contains_selector(selector):
            return self._wait_for_first_match(By.XPATH, contains_selector_to_xpath(selector), self.timeout)
        return self._wait_for_first_match(By.CSS_SELECTOR, selector, self.timeout)

    def close(self) -> None:
        if not self._loop.is_closed():
            self._loop.close()

    def _run(self, coroutine):
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            return self._loop.run_until_complete(coroutine)
        coroutine.close()
        raise RuntimeError("HealingFinder.find cannot run inside an event loop; await HealingEngine.heal instead")

    def _wait_for_first_match(self, by: str, selector: str, timeout: float):
        deadline = monotonic() + timeout
        while True:
            try:
                matches = self.driver.find_elements(by, selector)
            except InvalidSelectorException as exc:
                raise NoSuchElementException(str(exc)) from exc
            if matches:
                return matches[0]
            if monotonic() >= deadline:
                raise NoSuchElementException(f"Timed out waiting for element: {selector}")
            sleep(0.2)


def contains_selector_to_xpath(selector: str) -> str:
    """Translates a ``prefix:contains("text")`` selector into XPath.

    Supported prefixes are empty, a bare tag name and ``[role="..."]``.
    """

    match = _CONTAINS_PATTERN.match(selector.strip())
    if match is None:
        raise ValueError(f"Not a contains-text selector: {selector}")
    text = _unescape_text(match.group("text"))
    prefix = match.group("prefix")
    condition = f"contains(normalize-space(.), {xpath_literal(' '.join(text.split()))})"
    if not prefix:
        # Innermost element only, so the whole ancestor chain is not matched.
        return f"//*[{condition} and not(*[{condition}])]"
    role_match = _ROLE_PREFIX.match(prefix)
    if role_match is not None:
        role = _unescape_text(role_match.group("role"))
        return f"//*[@role={xpath_literal(role)} and {condition}]"
    if re.fullmatch(r"[A-Za-z][A-Za-z0-9-]*", prefix):
        return f"//{prefix}[{condition}]"
    raise ValueError(f"Unsupported contains-text prefix: {prefix}")


def xpath_literal(value: str) -> str:
    if '"' not in value:
        return f'"{value}"'
    if "'" not in value:
        return f"'{value}'"
    parts = value.split('"')
    return "concat(" + ", '\"', ".join(f'"{part}"' for part in parts) + ")"


def _unescape_text(value: str) -> str:
    return re.sub(r"\\(.)", lambda match: _TEXT_ESCAPES.get(match.group(1), match.group(1)), value, flags=re.DOTALL)
