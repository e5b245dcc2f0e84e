"""
Deterministic JSON serialization helpers for hashing and wire payloads.
"""

from __future__ import annotations

import json
from datetime import date, datetime
from enum import Enum
from typing import Any


def canonicalize(obj: Any) -> Any:
    """
    Convert complex objects into JSON-friendly, deterministic structures.
    """
    if isinstance(obj, dict):
        return {str(k): canonicalize(obj[k]) for k in sorted(obj, key=str)}
    if isinstance(obj, (list, tuple)):
        return [canonicalize(v) for v in obj]
    if isinstance(obj, (set, frozenset)):
        return sorted(canonicalize(v) for v in obj)
    return to_jsonable(obj)


def to_jsonable(value: Any) -> Any:
    """Convert a single value into something `json.dumps` accepts."""
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, dict):
        return {k: to_jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_jsonable(v) for v in value]
    if hasattr(value, "to_dict") and callable(value.to_dict):
        return to_jsonable(value.to_dict())
    return value


def stable_json_dumps(obj: Any) -> str:
    """Dump an object to JSON with stable ordering for hashing."""
    return json.dumps(
        canonicalize(obj),
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=True,
    )


__all__ = ["canonicalize", "to_jsonable", "stable_json_dumps"]
