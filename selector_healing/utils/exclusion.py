"""Filters for unstable, generated attribute and text values.

Two predicates share one pattern list but are deliberately different:
``is_excluded`` runs each pattern as a regular expression against an
attribute value, while ``contains_excluded`` strips ``^``, ``$`` and ``-``
from each pattern and does a plain substring test against text content.
"""

from __future__ import annotations

import re
from typing import Iterable


def is_excluded(value: str, patterns: Iterable[str] | None) -> bool:
    if not patterns:
        return False
    return any(re.search(pattern, value) for pattern in patterns)


def contains_excluded(value: str, patterns: Iterable[str] | None) -> bool:
    if not patterns:
        return False
    return any(_strip_pattern(pattern) in value for pattern in patterns)


def _strip_pattern(pattern: str) -> str:
    return pattern.replace("^", "").replace("$", "").replace("-", "")
