"""Escapers that turn raw DOM values into safe selector fragments."""

from __future__ import annotations

import re

_IDENTIFIER_SPECIALS = re.compile(r"""([!"#$%&'()*+,./:;<=>?@\[\\\]^`{|}~])""")


def escape_attribute_value(value: str) -> str:
    """Escapes a value for use inside ``[name="..."]``.

    Backslashes go first so the escapes added for quotes are not doubled.
    """

    return value.replace("\\", "\\\\").replace('"', '\\"')


def escape_identifier(value: str) -> str:
    """Backslash-escapes CSS punctuation in an id or class name."""

    return _IDENTIFIER_SPECIALS.sub(r"\\\1", value)


def escape_text(value: str) -> str:
    """Escapes text embedded in a quoted ``:contains("...")`` matcher."""

    return (
        value.replace("\\", "\\\\")
        .replace('"', '\\"')
        .replace("'", "\\'")
        .replace("\n", "\\n")
        .replace("\r", "\\r")
        .replace("\t", "\\t")
    )
