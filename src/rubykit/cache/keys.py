"""Deterministic cache key derivation.

A key is the operation name, optionally followed by ``?`` and the canonical
JSON form of the operation's parameters (keys sorted at every level,
compact separators). Two calls with the same operation and the same
parameter set always produce the same key, whatever order the parameters
were inserted in::

    >>> generate_key("search", {"query": "rails", "limit": 5})
    'search?{"limit":5,"query":"rails"}'
    >>> generate_key("search", {})
    'search'
"""

from __future__ import annotations

import json
from typing import Any, Mapping, Optional

from rubykit.exceptions import CacheKeyError

KEY_DELIMITER = "?"


def generate_key(operation: str, params: Optional[Mapping[str, Any]] = None) -> str:
    """Derive the cache key for *operation* called with *params*.

    Args:
        operation: Operation name, e.g. ``"search"`` or ``"versions"``.
            Must not contain :data:`KEY_DELIMITER`.
        params: Parameters of the call.  ``None`` and an empty mapping both
            yield a key equal to *operation*.  Tuples serialise as JSON
            arrays, so a tuple and a list with the same items share a key.

    Returns:
        The cache key string.

    Raises:
        CacheKeyError: If *operation* contains the delimiter, or *params*
            cannot be serialised canonically (circular references, values
            that are not JSON types, non-string mapping keys, NaN).
    """
    if KEY_DELIMITER in operation:
        raise CacheKeyError(
            f"Operation name must not contain {KEY_DELIMITER!r}: {operation!r}"
        )
    if not params:
        return operation

    try:
        serialised = json.dumps(
            dict(params),
            sort_keys=True,
            separators=(",", ":"),
            ensure_ascii=False,
            allow_nan=False,
        )
    except (TypeError, ValueError) as exc:
        raise CacheKeyError(f"Cannot derive cache key for {operation!r}: {exc}") from exc

    # json.dumps silently turns 1 into "1"; reject so the two never collide.
    _check_string_keys(params, operation)
    return f"{operation}{KEY_DELIMITER}{serialised}"


def _check_string_keys(value: Any, operation: str) -> None:
    if isinstance(value, Mapping):
        for key, item in value.items():
            if not isinstance(key, str):
                raise CacheKeyError(
                    f"Cannot derive cache key for {operation!r}: "
                    f"parameter names must be strings, got {key!r}"
                )
            _check_string_keys(item, operation)
    elif isinstance(value, (list, tuple)):
        for item in value:
            _check_string_keys(item, operation)
