"""URL query string normalization."""

from __future__ import annotations

from urllib.parse import parse_qsl


def parse_query(raw: str | None) -> dict[str, str | list[str]]:
    """Parse ``a=1&b=2&a=3`` into ``{"a": ["1", "3"], "b": "2"}``.

    Repeated keys collapse into a list in first-occurrence order. Empty or
    missing input yields an empty mapping.
    """
    params: dict[str, str | list[str]] = {}
    if not raw:
        return params

    text = raw[1:] if raw.startswith("?") else raw
    for key, value in parse_qsl(text, keep_blank_values=True):
        existing = params.get(key)
        if existing is None:
            params[key] = value
        elif isinstance(existing, list):
            existing.append(value)
        else:
            params[key] = [existing, value]
    return params


def first_value(value: str | list[str] | None) -> str | None:
    """Scalar view of a normalized parameter: the first occurrence wins."""
    if isinstance(value, list):
        return value[0] if value else None
    return value


def all_values(value: str | list[str] | None) -> list[str]:
    if value is None:
        return []
    if isinstance(value, list):
        return list(value)
    return [value]
