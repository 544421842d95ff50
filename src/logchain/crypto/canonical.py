"""Canonical serialization of structured log records.

Two records that carry the same logical content must hash identically,
no matter how the producing pipeline ordered their fields. The canonical
form is:

1. Mappings become a list of ``[key, value]`` pairs sorted by key.
2. Sequences keep their element order.
3. ``None`` becomes the empty string, so a nulled field is still present.
4. Scalars stay as they are.

The resulting tree is written as compact JSON (no whitespace, Unicode
preserved) and encoded as UTF-8.
"""

from __future__ import annotations

import json
import math
from typing import Any


class CanonicalizationError(ValueError):
    """Raised when a value tree cannot be put into canonical form."""


def canonical_tree(value: Any) -> Any:
    """Return the order-normalized tree for *value*."""
    if isinstance(value, dict):
        pairs = []
        for key, item in value.items():
            if not isinstance(key, str):
                raise CanonicalizationError(
                    f"Mapping keys must be strings, got {type(key).__name__}: {key!r}"
                )
            pairs.append([key, canonical_tree(item)])
        pairs.sort(key=lambda pair: pair[0])
        return pairs
    if isinstance(value, (list, tuple)):
        return [canonical_tree(item) for item in value]
    if value is None:
        return ""
    if isinstance(value, float) and not math.isfinite(value):
        raise CanonicalizationError(f"Non-finite float has no canonical form: {value!r}")
    if isinstance(value, (str, int, float, bool)):
        return value
    raise CanonicalizationError(f"Unsupported value type: {type(value).__name__}")


def canonicalize(value: Any) -> str:
    """Serialize *value* into its canonical compact JSON text."""
    try:
        return json.dumps(
            canonical_tree(value),
            ensure_ascii=False,
            separators=(",", ":"),
            allow_nan=False,
        )
    except RecursionError:
        # Self-referencing or pathologically deep value
        raise CanonicalizationError("Value tree is cyclic or nested too deeply") from None


def canonical_bytes(value: Any) -> bytes:
    """Canonical form of *value* as UTF-8 bytes."""
    return canonicalize(value).encode("utf-8")
