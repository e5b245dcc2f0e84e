"""
Where-filter grammar for many-record operations.

Filter keys are either a field name (equality), a field name plus an
operator suffix (`age_gte`, `email_ends_with`), a relation filter
(`author`, `posts_some`) or one of the logical keys `AND`, `OR`, `NOT`.
"""

from __future__ import annotations

from dataclasses import dataclass

from .schema.types import Field, Model, ScalarType

LOGICAL_KEYS = ("AND", "OR", "NOT")

_COMMON = ("not", "in", "not_in")
_ORDERED = ("lt", "lte", "gt", "gte")
_TEXT = (
    "contains",
    "not_contains",
    "starts_with",
    "not_starts_with",
    "ends_with",
    "not_ends_with",
)

SCALAR_OPERATORS: dict[str, tuple[str, ...]] = {
    ScalarType.ID.value: _COMMON + _ORDERED + _TEXT,
    ScalarType.STRING.value: _COMMON + _ORDERED + _TEXT,
    ScalarType.INT.value: _COMMON + _ORDERED,
    ScalarType.FLOAT.value: _COMMON + _ORDERED,
    ScalarType.DATETIME.value: _COMMON + _ORDERED,
    ScalarType.BOOLEAN.value: ("not",),
    ScalarType.JSON.value: (),
}
ENUM_OPERATORS = _COMMON
LIST_RELATION_OPERATORS = ("every", "some", "none")

_ALL_SUFFIXES = sorted(
    {*_COMMON, *_ORDERED, *_TEXT, *LIST_RELATION_OPERATORS},
    key=len,
    reverse=True,
)


def operators_for(f: Field) -> tuple[str, ...]:
    """Operator suffixes a field accepts in a where filter."""
    if f.is_relation:
        return LIST_RELATION_OPERATORS if f.is_list else ()
    if f.is_enum:
        return ENUM_OPERATORS
    return SCALAR_OPERATORS.get(f.type_name, ())


@dataclass(frozen=True)
class FilterKey:
    """A parsed filter key: the field it targets and the operator (None for equality)."""

    field: Field
    operator: str | None = None


def parse_filter_key(model: Model, key: str) -> FilterKey | None:
    """
    Resolve a filter key against a model.

    Returns None when the key does not name a field/operator pair the
    model accepts. Logical keys are not handled here.
    """
    direct = model.field(key)
    if direct is not None and not (direct.is_relation and direct.is_list):
        return FilterKey(direct)

    for suffix in _ALL_SUFFIXES:
        marker = f"_{suffix}"
        if not key.endswith(marker):
            continue
        f = model.field(key[: -len(marker)])
        if f is not None and suffix in operators_for(f):
            return FilterKey(f, suffix)
    return None


__all__ = [
    "LOGICAL_KEYS",
    "SCALAR_OPERATORS",
    "ENUM_OPERATORS",
    "LIST_RELATION_OPERATORS",
    "FilterKey",
    "operators_for",
    "parse_filter_key",
]
