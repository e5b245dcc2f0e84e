"""
Nested-write directives.

A relation field inside `data` carries one or more directives describing
how related records are affected when the parent is written:

    await client.user.create({
        "email": "alice@example.com",
        "posts": [Create([{"title": "Hello"}]), Connect([{"id": "cjld0001"}])],
    })

The raw mapping form used on the wire is accepted too:

    {"posts": {"create": [{"title": "Hello"}], "connect": [{"id": "cjld0001"}]}}
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Union

from .errors import InvalidNestedWriteError

Where = dict[str, Any]
Data = dict[str, Any]


def _as_list(value: Any) -> list[Any]:
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return list(value)
    return [value]


@dataclass
class Create:
    """Create related record(s) and link them to the parent."""

    data: Data | list[Data]

    kind = "create"

    def entries(self) -> list[Data]:
        return _as_list(self.data)


@dataclass
class Connect:
    """Link existing record(s), selected by unique field, to the parent."""

    where: Where | list[Where]

    kind = "connect"

    def entries(self) -> list[Where]:
        return _as_list(self.where)


@dataclass
class Update:
    """
    Update a related record.

    `where` selects the record among the parent's related records and is
    required on list relations; to-one relations update the linked record.
    """

    data: Data
    where: Where | None = None

    kind = "update"

    def entries(self) -> list[Update]:
        return [self]


@dataclass
class Upsert:
    """Update the related record if it exists, otherwise create and link it."""

    create: Data
    update: Data
    where: Where | None = None

    kind = "upsert"

    def entries(self) -> list[Upsert]:
        return [self]


@dataclass
class Delete:
    """Delete related record(s). To-one relations take no selector."""

    where: Where | list[Where] | None = None

    kind = "delete"

    def entries(self) -> list[Where]:
        return _as_list(self.where)


@dataclass
class Disconnect:
    """Unlink related record(s) without deleting them."""

    where: Where | list[Where] | None = None

    kind = "disconnect"

    def entries(self) -> list[Where]:
        return _as_list(self.where)


@dataclass
class Set:
    """
    Replace the whole list of related records.

    Equivalent to disconnecting every currently linked record and then
    connecting the given ones. Only valid on list relations.
    """

    where: list[Where]

    kind = "set"

    def entries(self) -> list[Where]:
        return _as_list(self.where)


Directive = Union[Create, Connect, Update, Upsert, Delete, Disconnect, Set]

DIRECTIVE_TYPES: tuple[type, ...] = (Create, Connect, Update, Upsert, Delete, Disconnect, Set)

# Order in which directives on one relation field are applied.
DIRECTIVE_ORDER = ("set", "disconnect", "delete", "update", "upsert", "create", "connect")


def is_relation_input(value: Any) -> bool:
    """True when `value` looks like a nested write rather than a scalar."""
    if isinstance(value, DIRECTIVE_TYPES):
        return True
    if isinstance(value, (list, tuple)):
        return bool(value) and all(isinstance(v, DIRECTIVE_TYPES) for v in value)
    if isinstance(value, Mapping):
        return bool(value) and set(value) <= set(DIRECTIVE_ORDER)
    return False


def normalize_relation_input(value: Any, *, is_list: bool, field_name: str = "") -> list[Directive]:
    """
    Turn any accepted relation input into an ordered list of directives.

    Raises:
        InvalidNestedWriteError: The input is not a nested write, or uses a
            shape the relation cardinality does not allow
    """
    label = field_name or "relation"
    if isinstance(value, DIRECTIVE_TYPES):
        directives: list[Directive] = [value]
    elif isinstance(value, (list, tuple)) and all(isinstance(v, DIRECTIVE_TYPES) for v in value):
        directives = list(value)
    elif isinstance(value, Mapping):
        directives = _from_mapping(value, is_list=is_list, label=label)
    else:
        raise InvalidNestedWriteError(f"{label}: expected nested-write directives, got {type(value).__name__}")

    if not is_list:
        if len(directives) != 1:
            raise InvalidNestedWriteError(f"{label}: a to-one relation takes exactly one directive")
        directive = directives[0]
        if isinstance(directive, Set):
            raise InvalidNestedWriteError(f"{label}: set is only valid on list relations")
        if isinstance(directive, (Create, Connect)) and len(directive.entries()) != 1:
            raise InvalidNestedWriteError(f"{label}: {directive.kind} on a to-one relation takes a single value")
        if isinstance(directive, (Delete, Disconnect)) and directive.where is not None:
            raise InvalidNestedWriteError(f"{label}: {directive.kind} on a to-one relation takes no selector")
    else:
        for directive in directives:
            if isinstance(directive, (Update, Upsert)) and directive.where is None:
                raise InvalidNestedWriteError(f"{label}: {directive.kind} on a list relation needs `where`")
            if isinstance(directive, (Delete, Disconnect)) and directive.where is None:
                raise InvalidNestedWriteError(f"{label}: {directive.kind} on a list relation needs `where`")

    return sorted(directives, key=lambda d: DIRECTIVE_ORDER.index(d.kind))


def _from_mapping(value: Mapping[str, Any], *, is_list: bool, label: str) -> list[Directive]:
    unknown = set(value) - set(DIRECTIVE_ORDER)
    if unknown:
        raise InvalidNestedWriteError(f"{label}: unknown nested-write keys {sorted(unknown)}")

    directives: list[Directive] = []
    for kind in DIRECTIVE_ORDER:
        if kind not in value:
            continue
        raw = value[kind]
        if kind == "create":
            directives.append(Create(raw))
        elif kind == "connect":
            directives.append(Connect(raw))
        elif kind == "set":
            directives.append(Set(_as_list(raw)))
        elif kind in ("delete", "disconnect"):
            cls = Delete if kind == "delete" else Disconnect
            if is_list:
                directives.append(cls(raw))
            elif raw is True:
                directives.append(cls())
            elif raw is False or raw is None:
                continue
            else:
                raise InvalidNestedWriteError(f"{label}: {kind} on a to-one relation must be true")
        elif kind == "update":
            if is_list:
                for item in _as_list(raw):
                    directives.append(Update(data=item.get("data", {}), where=item.get("where")))
            else:
                directives.append(Update(data=raw))
        elif kind == "upsert":
            for item in _as_list(raw) if is_list else [raw]:
                directives.append(
                    Upsert(create=item.get("create", {}), update=item.get("update", {}), where=item.get("where"))
                )
    return directives


__all__ = [
    "Where",
    "Data",
    "Create",
    "Connect",
    "Update",
    "Upsert",
    "Delete",
    "Disconnect",
    "Set",
    "Directive",
    "DIRECTIVE_TYPES",
    "DIRECTIVE_ORDER",
    "is_relation_input",
    "normalize_relation_input",
]
