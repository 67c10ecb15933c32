# src/sinkhub/core/text.py
"""Deterministic normalization of messages and context values.

Substitutions run before markup stripping, so ``a <= b`` survives as
``a ≤ b`` instead of being eaten as a tag.
"""

import re
from collections.abc import Mapping
from typing import Any

_SUBSTITUTIONS: tuple[tuple[str, str], ...] = (
    ('"', "“"),
    ("'", "`"),
    (">=", "≥"),
    ("<=", "≤"),
)

_SCRIPT_OR_STYLE = re.compile(r"<(script|style)[^>]*?>.*?</\1>", re.IGNORECASE | re.DOTALL)
_TAG = re.compile(r"<[^>]*>")


def normalize_string(value: str) -> str:
    """Apply quote/comparison substitutions then strip markup."""
    for needle, replacement in _SUBSTITUTIONS:
        value = value.replace(needle, replacement)
    value = _SCRIPT_OR_STYLE.sub("", value)
    return _TAG.sub("", value).strip()


def normalize_value(value: Any) -> Any:
    """Normalize every string inside value, recursing into mappings and sequences.

    Non-string scalars are returned untouched. Mapping keys are left as-is.
    """
    if isinstance(value, str):
        return normalize_string(value)
    if isinstance(value, Mapping):
        return {k: normalize_value(v) for k, v in value.items()}
    if isinstance(value, list | tuple):
        return [normalize_value(item) for item in value]
    return value
