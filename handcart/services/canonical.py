"""Canonical JSON form used both to sign vendor requests and to check vendor signatures.

Rules (both sides must apply the same ones):
- map keys sorted lexicographically, at every depth
- keys whose value is None are dropped from maps
- sequence order is preserved, None elements inside sequences are kept
- compact separators, no whitespace, non-ASCII left unescaped
- integral floats are written as integers (85.0 -> 85), as a JavaScript peer would
"""
import json
import math


def _sort(value):
    if isinstance(value, dict):
        return {str(k): _sort(value[k]) for k in sorted(value, key=str) if value[k] is not None}
    if isinstance(value, (list, tuple)):
        return [_sort(v) for v in value]
    if isinstance(value, float):
        if not math.isfinite(value):
            raise ValueError("non-finite numbers have no canonical form")
        if value.is_integer():
            return int(value)
    return value


def canonicalize(value) -> dict | list:
    """Return the sorted, None-free copy of ``value``."""
    return _sort(value)


def canonical_json(value) -> str:
    return json.dumps(_sort(value), separators=(",", ":"), ensure_ascii=False, allow_nan=False)


def canonical_bytes(value) -> bytes:
    return canonical_json(value).encode("utf-8")
