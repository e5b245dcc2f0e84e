"""
Operation model shared by the client, the GraphQL renderer and the engine.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from .schema.naming import lower_first, pluralize


class OperationKind(str, Enum):
    """The operations every model exposes."""

    FIND_UNIQUE = "find_unique"
    FIND_MANY = "find_many"
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    UPSERT = "upsert"
    UPDATE_MANY = "update_many"
    DELETE_MANY = "delete_many"

    @property
    def is_mutation(self) -> bool:
        return self not in (OperationKind.FIND_UNIQUE, OperationKind.FIND_MANY)

    @property
    def is_batch(self) -> bool:
        """Batch operations report a count instead of records."""
        return self in (OperationKind.UPDATE_MANY, OperationKind.DELETE_MANY)

    @property
    def needs_unique_where(self) -> bool:
        return self in (
            OperationKind.FIND_UNIQUE,
            OperationKind.UPDATE,
            OperationKind.DELETE,
            OperationKind.UPSERT,
        )


@dataclass
class Operation:
    """A single call against one model."""

    kind: OperationKind
    model: str
    where: dict[str, Any] | None = None
    data: dict[str, Any] | None = None
    create: dict[str, Any] | None = None
    update: dict[str, Any] | None = None
    select: list[str] | None = None
    order_by: str | None = None
    skip: int | None = None
    first: int | None = None

    @property
    def field_name(self) -> str:
        """Name of the root field on the service API."""
        kind = self.kind
        if kind is OperationKind.FIND_UNIQUE:
            return lower_first(self.model)
        if kind is OperationKind.FIND_MANY:
            return lower_first(pluralize(self.model))
        if kind is OperationKind.UPDATE_MANY:
            return f"updateMany{pluralize(self.model)}"
        if kind is OperationKind.DELETE_MANY:
            return f"deleteMany{pluralize(self.model)}"
        return f"{kind.value}{self.model}"

    def arguments(self) -> dict[str, Any]:
        """Arguments sent with the root field, skipping unset ones."""
        args: dict[str, Any] = {}
        if self.kind is OperationKind.FIND_MANY:
            candidates = {"where": self.where, "orderBy": self.order_by, "skip": self.skip, "first": self.first}
        elif self.kind is OperationKind.UPSERT:
            candidates = {"where": self.where, "create": self.create, "update": self.update}
        else:
            candidates = {"data": self.data, "where": self.where}
        for name, value in candidates.items():
            if value is not None:
                args[name] = value
        return args


@dataclass(frozen=True)
class BatchPayload:
    """Result of a many-record mutation: only the number of affected records."""

    count: int


__all__ = ["OperationKind", "Operation", "BatchPayload"]
