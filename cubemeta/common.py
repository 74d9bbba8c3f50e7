"""Utility functions shared by the metadata and storage modules."""

from __future__ import annotations

from collections.abc import Iterable, Mapping

from .errors import MalformedMetadataError

__all__ = [
    "split_list",
    "join_list",
    "required_property",
]


def split_list(value: str | None) -> list[str]:
    """Split a comma separated property value. Empty items are ignored and
    whitespace around items is stripped."""
    if not value:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


def join_list(values: Iterable[str]) -> str:
    """Render `values` as a comma separated property value, sorted so the
    persisted form is stable."""
    return ",".join(sorted(values))


def required_property(properties: Mapping[str, str], key: str, name: str) -> str:
    """Return property `key` of table `name` or raise
    `MalformedMetadataError` when it is missing."""
    try:
        return properties[key]
    except KeyError:
        raise MalformedMetadataError(
            f"Table '{name}' is missing required property '{key}'",
            name=name,
            key=key,
        ) from None
