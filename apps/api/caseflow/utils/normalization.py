"""Normalization helpers for rule criteria and case attributes."""

from __future__ import annotations

from typing import Any


def normalize_token(value: Any) -> Any:
    """Casefold and strip strings; leave other values untouched."""
    if isinstance(value, str):
        return value.strip().casefold()
    return value


def normalize_tags(value: Any) -> set[Any]:
    """Normalize a scalar or list of tags into a set of comparable tokens."""
    if value is None:
        return set()
    if isinstance(value, (list, tuple, set, frozenset)):
        return {normalize_token(v) for v in value if v is not None}
    return {normalize_token(value)}
