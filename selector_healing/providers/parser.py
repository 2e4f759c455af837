from __future__ import annotations

from selector_healing.core.exceptions import SelectorValidationError

NO_SELECTOR_REPLIES = {"not_found", "null", "none"}


def parse_selector_response(response: str | None) -> str | None:
    """Validates a provider reply; returns ``None`` when it declined to answer."""

    if response is None:
        return None
    selector = response.strip()
    if not selector:
        raise SelectorValidationError("Provider returned an empty selector")
    if selector.lower() in NO_SELECTOR_REPLIES or selector.upper().startswith("NOT_FOUND"):
        return None
    if "\n" in selector or "\r" in selector:
        raise SelectorValidationError("Provider returned a multiline selector")
    if "```" in selector:
        raise SelectorValidationError("Provider returned markdown instead of a selector")
    return selector
