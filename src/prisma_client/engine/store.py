"""
In-memory record storage.

Records are kept per model, keyed by id, holding scalar and enum values
only. Relations are kept apart as ordered sets of `(a_id, b_id)` links per
relation, where `a` and `b` are the two sides of the `Relation`.
"""

from __future__ import annotations

import copy
import uuid
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Any

from ..schema.types import Field, ScalarType
from ..serialization import to_jsonable


@dataclass
class StoreSnapshot:
    tables: dict[str, dict[Any, dict[str, Any]]]
    links: dict[str, dict[tuple[Any, Any], None]]
    sequences: dict[str, int]


class MemoryStore:
    """Tables and relation links for the local engine."""

    def __init__(self) -> None:
        self._tables: dict[str, dict[Any, dict[str, Any]]] = {}
        self._links: dict[str, dict[tuple[Any, Any], None]] = {}
        self._sequences: dict[str, int] = {}

    # Records

    def records(self, model: str) -> list[dict[str, Any]]:
        """Stored records of a model in insertion order. Do not mutate."""
        return list(self._tables.get(model, {}).values())

    def ids(self, model: str) -> list[Any]:
        return list(self._tables.get(model, {}))

    def get(self, model: str, record_id: Any) -> dict[str, Any] | None:
        return self._tables.get(model, {}).get(record_id)

    def insert(self, model: str, record_id: Any, record: dict[str, Any]) -> None:
        self._tables.setdefault(model, {})[record_id] = record

    def update(self, model: str, record_id: Any, values: dict[str, Any]) -> dict[str, Any]:
        record = self._tables[model][record_id]
        record.update(values)
        return record

    def remove(self, model: str, record_id: Any) -> dict[str, Any] | None:
        return self._tables.get(model, {}).pop(record_id, None)

    def count(self, model: str) -> int:
        return len(self._tables.get(model, {}))

    def next_id(self, model: str, f: Field) -> Any:
        """A fresh id: a cuid-style string for `ID`, a sequence for `Int`."""
        if f.type_name == ScalarType.INT.value:
            current = self._sequences.get(model, 0) + 1
            self._sequences[model] = current
            return current
        return f"c{uuid.uuid4().hex[:24]}"

    # Links

    def linked(self, relation: str, side: str, record_id: Any) -> list[Any]:
        """Ids linked to `record_id`, which sits on `side` ("a" or "b")."""
        links = self._links.get(relation, {})
        if side == "a":
            return [b for a, b in links if a == record_id]
        return [a for a, b in links if b == record_id]

    def link(self, relation: str, side: str, record_id: Any, other_id: Any) -> bool:
        pair = (record_id, other_id) if side == "a" else (other_id, record_id)
        links = self._links.setdefault(relation, {})
        if pair in links:
            return False
        links[pair] = None
        return True

    def unlink(self, relation: str, side: str, record_id: Any, other_id: Any) -> bool:
        pair = (record_id, other_id) if side == "a" else (other_id, record_id)
        links = self._links.get(relation, {})
        if pair not in links:
            return False
        del links[pair]
        return True

    def link_count(self, relation: str) -> int:
        return len(self._links.get(relation, {}))

    # Snapshots

    def snapshot(self) -> StoreSnapshot:
        return StoreSnapshot(
            tables=copy.deepcopy(self._tables),
            links={name: dict(links) for name, links in self._links.items()},
            sequences=dict(self._sequences),
        )

    def restore(self, snapshot: StoreSnapshot) -> None:
        self._tables = copy.deepcopy(snapshot.tables)
        self._links = {name: dict(links) for name, links in snapshot.links.items()}
        self._sequences = dict(snapshot.sequences)


# =============================================================================
# Values
# =============================================================================


def format_datetime(value: datetime) -> str:
    """Render a datetime the way the service does: UTC, milliseconds, `Z`."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    value = value.astimezone(timezone.utc)
    return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"


def utc_now() -> str:
    return format_datetime(datetime.now(timezone.utc))


def normalize_value(f: Field, value: Any) -> Any:
    """Bring a scalar value into its stored form."""
    if value is None:
        return None
    if f.type_name == ScalarType.DATETIME.value:
        if isinstance(value, str):
            value = datetime.fromisoformat(value.replace("Z", "+00:00"))
        elif isinstance(value, date) and not isinstance(value, datetime):
            value = datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
        return format_datetime(value)
    if f.type_name == ScalarType.FLOAT.value and isinstance(value, int) and not isinstance(value, bool):
        return float(value)
    if f.type_name == ScalarType.JSON.value:
        return copy.deepcopy(value)
    return to_jsonable(value)


__all__ = ["MemoryStore", "StoreSnapshot", "format_datetime", "utc_now", "normalize_value"]
