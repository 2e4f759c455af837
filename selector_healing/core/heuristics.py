from __future__ import annotations

import logging
from typing import Callable, Iterable

from bs4 import Tag

from selector_healing.config.schema import HeuristicOptions, RuleName
from selector_healing.core.snapshot import DocumentSnapshot
from selector_healing.utils.escaping import escape_attribute_value, escape_identifier, escape_text
from selector_healing.utils.exclusion import contains_excluded, is_excluded

logger = logging.getLogger(__name__)

Matcher = Callable[[DocumentSnapshot, HeuristicOptions], str | None]

CONTAINS_MARKER = ":contains("
TEXT_ELEMENT_SELECTOR = "button, a, span, h1, h2, h3, h4, h5, h6, p, div"
TEXT_QUALIFIED_TAGS = {"button", "a"}


def by_data_attribute(document: DocumentSnapshot, options: HeuristicOptions) -> str | None:
    for attribute in ("data-cy", "data-testid"):
        element = document.select_one(f"[{attribute}]")
        if element is None:
            continue
        value = element.get(attribute)
        if value:
            return f'[{attribute}="{escape_attribute_value(value)}"]'
    return None


def by_aria_label(document: DocumentSnapshot, options: HeuristicOptions) -> str | None:
    for element in document.select("[aria-label]"):
        value = element.get("aria-label")
        if value and not is_excluded(value, options.exclude_patterns):
            return f'[aria-label="{escape_attribute_value(value)}"]'
    return None


def by_role(document: DocumentSnapshot, options: HeuristicOptions) -> str | None:
    for element in document.select("[role]"):
        role = element.get("role")
        if not role or is_excluded(role, options.exclude_patterns):
            continue
        selector = f'[role="{escape_attribute_value(role)}"]'
        if role in ("button", "link"):
            text = element_text(element)
            if text and is_valid_text_length(text, options):
                return f'{selector}:contains("{escape_text(text)}")'
        return selector
    return None


def by_label(document: DocumentSnapshot, options: HeuristicOptions) -> str | None:
    for label in document.select("label[for]"):
        target = label.get("for")
        if target and not is_excluded(target, options.exclude_patterns):
            return f"#{escape_identifier(target)}"
    return None


def by_text(document: DocumentSnapshot, options: HeuristicOptions) -> str | None:
    for element in document.select(TEXT_ELEMENT_SELECTOR):
        text = element_text(element)
        if not text or not is_valid_text_length(text, options):
            continue
        if contains_excluded(text, options.exclude_patterns):
            continue
        if element.name in TEXT_QUALIFIED_TAGS:
            return f'{element.name}:contains("{escape_text(text)}")'
        return f':contains("{escape_text(text)}")'
    return None


def by_class(document: DocumentSnapshot, options: HeuristicOptions) -> str | None:
    for element in document.select("[class]"):
        stable_class = _first_stable_class(element, options)
        if stable_class is None:
            continue
        escaped = escape_identifier(stable_class)
        if document.count(f".{escaped}") == 1:
            return f".{escaped}"
        return f"{element.name}.{escaped}"
    return None


def by_id(document: DocumentSnapshot, options: HeuristicOptions) -> str | None:
    for element in document.select("[id]"):
        value = element.get("id")
        if value and not is_excluded(value, options.exclude_patterns):
            return f"#{escape_identifier(value)}"
    return None


DEFAULT_MATCHERS: dict[str, Matcher] = {
    RuleName.DATA_CY.value: by_data_attribute,
    RuleName.DATA_TESTID.value: by_data_attribute,
    RuleName.ARIA_LABEL.value: by_aria_label,
    RuleName.ROLE.value: by_role,
    RuleName.LABEL.value: by_label,
    RuleName.TEXT.value: by_text,
    RuleName.CLASS.value: by_class,
    RuleName.ID.value: by_id,
}


class HeuristicResolver:
    """Runs the DOM matchers in priority order and validates their output."""

    def __init__(
        self,
        matchers: dict[str, Matcher] | None = None,
        on_attempt: Callable[[str], None] | None = None,
    ) -> None:
        self.matchers = dict(DEFAULT_MATCHERS if matchers is None else matchers)
        self.on_attempt = on_attempt

    def resolve(
        self,
        original_selector: str,
        document: DocumentSnapshot,
        options: HeuristicOptions,
    ) -> str | None:
        for rule in options.priority:
            matcher = self.matchers.get(rule)
            if matcher is None:
                if options.logging:
                    logger.warning("Unknown heuristic rule: %s", rule)
                continue
            if self.on_attempt is not None:
                self.on_attempt(rule)
            try:
                candidate = matcher(document, options)
                if candidate and self._is_valid(document, candidate):
                    if options.logging:
                        logger.info("Healed %s -> %s (using %s)", original_selector, candidate, rule)
                    return candidate
            except Exception as exc:  # noqa: BLE001 - a broken rule must not stop the chain.
                logger.warning("Error in %s heuristic: %s", rule, exc)
        if options.logging:
            logger.info("No heuristic worked for: %s", original_selector)
        return None

    def resolve_many(
        self,
        selectors: Iterable[str],
        document: DocumentSnapshot,
        options: HeuristicOptions,
    ) -> dict[str, str | None]:
        return {selector: self.resolve(selector, document, options) for selector in selectors}

    @staticmethod
    def _is_valid(document: DocumentSnapshot, candidate: str) -> bool:
        # Contains-text forms are not part of the CSS grammar and are trusted as is.
        if is_contains_selector(candidate):
            return True
        return document.select_one(candidate) is not None


def generate_selector_for(element: Tag, options: HeuristicOptions) -> str | None:
    """Builds the most stable selector for an element that is already known."""

    for attribute in ("data-cy", "data-testid"):
        value = element.get(attribute)
        if value:
            return f'[{attribute}="{escape_attribute_value(value)}"]'

    aria_label = element.get("aria-label")
    if aria_label and not is_excluded(aria_label, options.exclude_patterns):
        return f'[aria-label="{escape_attribute_value(aria_label)}"]'

    role = element.get("role")
    if role and not is_excluded(role, options.exclude_patterns):
        return f'[role="{escape_attribute_value(role)}"]'

    element_id = element.get("id")
    if element_id and not is_excluded(element_id, options.exclude_patterns):
        return f"#{escape_identifier(element_id)}"

    stable_class = _first_stable_class(element, options)
    if stable_class is not None:
        return f".{escape_identifier(stable_class)}"

    if element.name in TEXT_QUALIFIED_TAGS:
        text = element_text(element)
        if text and is_valid_text_length(text, options):
            return f'{element.name}:contains("{escape_text(text)}")'
    return None


def is_contains_selector(selector: str) -> bool:
    return CONTAINS_MARKER in selector


def element_text(element: Tag) -> str:
    return element.get_text().strip()


def is_valid_text_length(text: str, options: HeuristicOptions) -> bool:
    return options.min_text_length <= len(text) <= options.max_text_length


def _first_stable_class(element: Tag, options: HeuristicOptions) -> str | None:
    classes = element.get("class") or []
    if isinstance(classes, str):
        classes = classes.split()
    for name in classes:
        if name and not is_excluded(name, options.exclude_patterns):
            return name
    return None
