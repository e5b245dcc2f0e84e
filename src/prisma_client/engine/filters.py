"""
Evaluation of where filters against stored records.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from ..errors import UnknownFieldError
from ..schema.types import Datamodel, Field, Model
from ..where import parse_filter_key
from .store import MemoryStore, normalize_value


def _as_list(value: Any) -> list[Any]:
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return list(value)
    return [value]


def matches(
    datamodel: Datamodel,
    store: MemoryStore,
    model: Model,
    record: Mapping[str, Any],
    where: Mapping[str, Any] | None,
) -> bool:
    """True when `record` satisfies every condition in `where`."""
    if not where:
        return True

    for key, value in where.items():
        if key == "AND":
            if not all(matches(datamodel, store, model, record, w) for w in _as_list(value)):
                return False
        elif key == "OR":
            items = _as_list(value)
            if items and not any(matches(datamodel, store, model, record, w) for w in items):
                return False
        elif key == "NOT":
            # NOT negates its filters combined by AND
            if matches(datamodel, store, model, record, {"AND": _as_list(value)}):
                return False
        else:
            parsed = parse_filter_key(model, key)
            if parsed is None:
                raise UnknownFieldError(f"{model.name} does not accept filter {key}")
            if parsed.field.is_relation:
                if not _relation_matches(datamodel, store, model, record, parsed.field, parsed.operator, value):
                    return False
            elif not scalar_matches(parsed.field, parsed.operator, record.get(parsed.field.name), value):
                return False
    return True


def _relation_matches(
    datamodel: Datamodel,
    store: MemoryStore,
    model: Model,
    record: Mapping[str, Any],
    f: Field,
    operator: str | None,
    value: Any,
) -> bool:
    relation = datamodel.relation_for(model.name, f.name)
    side = relation.side_of(model.name, f.name)
    related = datamodel.model(f.type_name)
    linked = [store.get(related.name, i) for i in store.linked(relation.name, side, record[model.id_field.name])]
    linked = [r for r in linked if r is not None]

    def check(r: Mapping[str, Any]) -> bool:
        return matches(datamodel, store, related, r, value)

    if operator is None:
        if value is None:
            return not linked
        return any(check(r) for r in linked)
    if operator == "every":
        return all(check(r) for r in linked)
    if operator == "some":
        return any(check(r) for r in linked)
    return not any(check(r) for r in linked)


def scalar_matches(f: Field, operator: str | None, actual: Any, expected: Any) -> bool:
    """Apply one scalar filter operator."""
    if operator in ("in", "not_in"):
        candidates = [normalize_value(f, v) for v in _as_list(expected)]
        found = actual in candidates
        return found if operator == "in" else not found

    expected = normalize_value(f, expected)

    if operator is None:
        return actual == expected
    if operator == "not":
        return actual != expected

    if actual is None or expected is None:
        return False

    if operator == "lt":
        return actual < expected
    if operator == "lte":
        return actual <= expected
    if operator == "gt":
        return actual > expected
    if operator == "gte":
        return actual >= expected

    if not isinstance(actual, str):
        return False
    if operator == "contains":
        return expected in actual
    if operator == "not_contains":
        return expected not in actual
    if operator == "starts_with":
        return actual.startswith(expected)
    if operator == "not_starts_with":
        return not actual.startswith(expected)
    if operator == "ends_with":
        return actual.endswith(expected)
    if operator == "not_ends_with":
        return not actual.endswith(expected)
    raise UnknownFieldError(f"Unsupported filter operator {operator} on {f.name}")


__all__ = ["matches", "scalar_matches"]
