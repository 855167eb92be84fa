"""Canonical Codec — deterministic signing input for capability payloads.

The signer and the verifier build the payload independently, so the
encoding must not depend on key insertion order or on float formatting:

    canonicalize({"b": 2, "a": 1}) == canonicalize({"a": 1, "b": 2}) == '{"a":1,"b":2}'

Numeric rule (applied identically on both sides): ints as-is, floats
with an integral value as ints (``5.0 -> 5``), other finite floats in
their shortest round-trip form, NaN/Infinity as ``null``.
"""

from __future__ import annotations

import json
import math
from collections.abc import Mapping
from typing import Any


def _scalar(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        if not math.isfinite(value):
            return "null"
        if value.is_integer():
            return str(int(value))
        return repr(value)
    return json.dumps(value, ensure_ascii=False)


def canonicalize(value: Any) -> str:
    """Encode *value* with sorted keys, no whitespace, order-preserving lists."""
    if value is None:
        return "null"
    if hasattr(value, "model_dump"):
        value = value.model_dump(by_alias=True, mode="json")
    if isinstance(value, Mapping):
        parts = [
            f"{json.dumps(str(k), ensure_ascii=False)}:{canonicalize(value[k])}"
            for k in sorted(value, key=str)
        ]
        return "{" + ",".join(parts) + "}"
    if isinstance(value, (list, tuple)):
        return "[" + ",".join(canonicalize(v) for v in value) + "]"
    return _scalar(value)


def canonical_bytes(value: Any) -> bytes:
    return canonicalize(value).encode("utf-8")
