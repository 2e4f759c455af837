from __future__ import annotations

import json

SYSTEM_PROMPT = """You repair broken CSS selectors for UI tests. Return exactly one selector string and nothing else.
Rules:
1. Use only elements present in the provided HTML.
2. Do not invent tags, attributes, text, or hierarchy.
3. Prefer data-cy, data-testid, aria-label and id attributes over classes and structure.
4. Output must be a single line with no explanation, no quotes around it, no markdown, and no code fence.
5. If no element in the HTML plausibly replaces the broken selector, return NOT_FOUND."""


def build_user_prompt(html_context: str, original_selector: str) -> str:
    """Formats a deterministic user payload for the model."""

    return json.dumps(
        {"broken_selector": original_selector, "html": html_context},
        indent=2,
        sort_keys=True,
    )
