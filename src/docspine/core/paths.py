"""Dot-path access into nested documents.

``get_path(doc, "customer.address.city")`` walks mappings by key and
sequences by integer index. A missing segment yields the default instead
of raising, so callers can treat "absent" and "None" the same way.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

_MISSING = object()


def split_path(path: str) -> list[str]:
    """Split a dot-path into its segments."""
    return path.split(".") if path else []


def get_path(document: Any, path: str, default: Any = None) -> Any:
    """Return the value at ``path`` in ``document`` or ``default``."""
    value = _walk(document, split_path(path))
    return default if value is _MISSING else value


def has_path(document: Any, path: str) -> bool:
    """Whether ``path`` resolves to a value (``None`` included)."""
    return _walk(document, split_path(path)) is not _MISSING


def _walk(value: Any, segments: list[str]) -> Any:
    for segment in segments:
        if isinstance(value, Mapping):
            if segment not in value:
                return _MISSING
            value = value[segment]
        elif isinstance(value, Sequence) and not isinstance(value, (str, bytes)):
            try:
                value = value[int(segment)]
            except (ValueError, IndexError):
                return _MISSING
        else:
            return _MISSING
    return value


def hashable_key(value: Any) -> Any:
    """Turn a lookup value into something usable as a dict key.

    Lists become tuples and mappings become sorted item tuples, so array or
    sub-document join keys can still be indexed.
    """
    if isinstance(value, Mapping):
        return tuple(sorted((k, hashable_key(v)) for k, v in value.items()))
    if isinstance(value, (list, tuple)):
        return tuple(hashable_key(v) for v in value)
    return value


__all__ = ["get_path", "has_path", "split_path", "hashable_key"]
