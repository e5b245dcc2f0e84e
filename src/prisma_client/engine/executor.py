"""
Operation execution against the in-memory store.

Nested writes are resolved recursively relative to the parent record. On
each relation field the directives run in a fixed order (set, disconnect,
delete, update, upsert, create, connect) and every applied change is
journaled as a `WriteStep`.

With a transactional connector a failing operation leaves the store as it
was. Without transactions the steps applied before the failure stay
applied and the failure surfaces as `NestedWriteError` listing them.
"""

from __future__ import annotations

import copy
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from ..errors import (
    InvalidNestedWriteError,
    InvalidSelectorError,
    InvalidValueError,
    MissingRequiredFieldError,
    NestedWriteError,
    RecordNotFoundError,
    RelationViolationError,
    UniqueConstraintError,
    UnknownFieldError,
)
from ..inputs import Connect, Create, Delete, Disconnect, Set, Update, Upsert, normalize_relation_input
from ..logging import StructuredLogger, WriteLog
from ..operations import BatchPayload, Operation, OperationKind
from ..schema.types import Datamodel, Field, Model, OnDelete
from .connectors import ConnectorCapabilities, get_connector
from .filters import matches
from .store import MemoryStore, normalize_value, utc_now

logger = logging.getLogger(__name__)


@dataclass
class WriteStep:
    """
    One applied change.

    For nested writes `parent_*` name the record and relation field the
    change was made through.
    """

    action: str
    model: str
    record_id: Any
    parent_model: str | None = None
    parent_id: Any = None
    relation_field: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "action": self.action,
            "model": self.model,
            "record_id": self.record_id,
            "parent_model": self.parent_model,
            "parent_id": self.parent_id,
            "relation_field": self.relation_field,
        }


@dataclass
class _Parent:
    model: Model
    record_id: Any
    field: Field


class MutationExecutor:
    """
    Runs operations against a `MemoryStore`.

    Args:
        datamodel: The datamodel records follow
        store: Store to use; a new empty one by default
        connector: Connector name or capabilities deciding transactional behavior
        structured_logger: When set, every write step is logged through it
    """

    def __init__(
        self,
        datamodel: Datamodel,
        store: MemoryStore | None = None,
        connector: str | ConnectorCapabilities = "postgres",
        *,
        structured_logger: StructuredLogger | None = None,
    ) -> None:
        self.datamodel = datamodel
        self.store = store or MemoryStore()
        self.connector = get_connector(connector)
        self.structured_logger = structured_logger
        self.journal: list[WriteStep] = []
        self._deleting: set[tuple[str, Any]] = set()

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    def execute(self, operation: Operation) -> Any:
        """
        Run one operation and return its result.

        Raises:
            RecordNotFoundError: update/delete selector matched nothing
            UniqueConstraintError, RelationViolationError: the write is not allowed
            NestedWriteError: a non-transactional write failed after applying steps
        """
        model = self.datamodel.model(operation.model)
        kind = operation.kind
        if not kind.is_mutation:
            return self._read(model, operation)

        self.journal = []
        self._deleting = set()
        snapshot = self.store.snapshot() if self.connector.supports_transactions else None

        handlers = {
            OperationKind.CREATE: self._create_op,
            OperationKind.UPDATE: self._update_op,
            OperationKind.DELETE: self._delete_op,
            OperationKind.UPSERT: self._upsert_op,
            OperationKind.UPDATE_MANY: self._update_many_op,
            OperationKind.DELETE_MANY: self._delete_many_op,
        }

        try:
            return handlers[kind](model, operation)
        except BaseException as exc:
            if snapshot is not None:
                self.store.restore(snapshot)
                if self.journal:
                    logger.debug("Rolled back %d write(s) of %s on %s", len(self.journal), kind.value, model.name)
                raise
            if not self.journal or not isinstance(exc, Exception):
                raise
            applied = list(self.journal)
            logger.warning(
                "%s on %s failed after %d applied write(s); connector %s has no transactions, nothing was rolled back",
                kind.value,
                model.name,
                len(applied),
                self.connector.name,
            )
            reason = getattr(exc, "message", str(exc))
            raise NestedWriteError(
                f"{kind.value} {model.name} failed after {len(applied)} applied write(s): {reason}",
                applied_steps=applied,
                cause=exc,
            ) from exc

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def _create_op(self, model: Model, op: Operation) -> dict[str, Any]:
        record_id = self._create(model, op.data or {})
        return self._project(model, record_id, op.select)

    def _update_op(self, model: Model, op: Operation) -> dict[str, Any]:
        record_id = self._find_unique_or_raise(model, op.where)
        self._update(model, record_id, op.data or {})
        return self._project(model, record_id, op.select)

    def _delete_op(self, model: Model, op: Operation) -> dict[str, Any]:
        record_id = self._find_unique_or_raise(model, op.where)
        before = self._project(model, record_id, op.select)
        self._delete(model, record_id)
        return before

    def _upsert_op(self, model: Model, op: Operation) -> dict[str, Any]:
        record_id = self._find_unique(model, op.where)
        if record_id is None:
            record_id = self._create(model, op.create or {})
        else:
            self._update(model, record_id, op.update or {})
        return self._project(model, record_id, op.select)

    def _update_many_op(self, model: Model, op: Operation) -> BatchPayload:
        data = op.data or {}
        for key in data:
            f = model.field(key)
            if f is not None and f.is_relation:
                raise InvalidNestedWriteError(f"{model.name}.{key}: nested writes are not allowed in update_many")
        ids = self._matching_ids(model, op.where)
        for record_id in ids:
            self._update(model, record_id, data)
        return BatchPayload(count=len(ids))

    def _delete_many_op(self, model: Model, op: Operation) -> BatchPayload:
        ids = self._matching_ids(model, op.where)
        for record_id in ids:
            # an earlier cascade may already have removed it
            if self.store.get(model.name, record_id) is not None:
                self._delete(model, record_id)
        return BatchPayload(count=len(ids))

    def _read(self, model: Model, op: Operation) -> Any:
        if op.kind is OperationKind.FIND_UNIQUE:
            record_id = self._find_unique(model, op.where)
            return None if record_id is None else self._project(model, record_id, op.select)

        records = [self.store.get(model.name, i) for i in self._matching_ids(model, op.where)]
        if op.order_by:
            name, _, direction = op.order_by.rpartition("_")
            records.sort(
                key=lambda r: (r.get(name) is not None, r.get(name)),
                reverse=direction == "DESC",
            )
        if op.skip:
            records = records[op.skip :]
        if op.first is not None:
            records = records[: op.first]
        id_name = model.id_field.name
        return [self._project(model, r[id_name], op.select) for r in records]

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def _matching_ids(self, model: Model, where: Mapping[str, Any] | None) -> list[Any]:
        id_name = model.id_field.name
        return [
            r[id_name]
            for r in self.store.records(model.name)
            if matches(self.datamodel, self.store, model, r, where)
        ]

    def _find_unique(self, model: Model, where: Mapping[str, Any] | None) -> Any:
        if not where:
            raise InvalidSelectorError(f"{model.name}: a unique selector is required")
        ids = self._matching_ids(model, where)
        return ids[0] if ids else None

    def _find_unique_or_raise(self, model: Model, where: Mapping[str, Any] | None) -> Any:
        record_id = self._find_unique(model, where)
        if record_id is None:
            raise RecordNotFoundError(model=model.name, where=dict(where or {}))
        return record_id

    def _project(self, model: Model, record_id: Any, select: list[str] | None) -> dict[str, Any]:
        record = self.store.get(model.name, record_id) or {}
        names = select or [f.name for f in model.scalar_fields]
        return {name: copy.deepcopy(record.get(name)) for name in names}

    def _relation(self, model: Model, f: Field) -> tuple[str, str, str]:
        relation = self.datamodel.relation_for(model.name, f.name)
        side = relation.side_of(model.name, f.name)
        return relation.name, side, "b" if side == "a" else "a"

    def _linked(self, here: _Parent) -> list[Any]:
        name, side, _ = self._relation(here.model, here.field)
        return self.store.linked(name, side, here.record_id)

    def _linked_match(self, here: _Parent, related: Model, where: Mapping[str, Any] | None) -> Any:
        linked = self._linked(here)
        if not here.field.is_list:
            return linked[0] if linked else None
        for other_id in linked:
            record = self.store.get(related.name, other_id)
            if record is not None and matches(self.datamodel, self.store, related, record, where):
                return other_id
        return None

    def _targets(self, here: _Parent, related: Model, wheres: list[Any]) -> list[Any]:
        """Ids of the linked records a delete/disconnect/update directive addresses."""
        if not here.field.is_list:
            linked = self._linked(here)
            if not linked:
                raise RecordNotFoundError(f"No {related.name} is connected to {here.model.name}.{here.field.name}")
            return linked[:1]
        ids = []
        for where in wheres:
            other_id = self._linked_match(here, related, where)
            if other_id is None:
                raise RecordNotFoundError(
                    f"No {related.name} matching {dict(where or {})} is connected to "
                    f"{here.model.name}.{here.field.name}"
                )
            ids.append(other_id)
        return ids

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def _split(self, model: Model, data: Mapping[str, Any]) -> tuple[dict[str, Any], list[tuple[Field, Any]]]:
        scalars: dict[str, Any] = {}
        relations: list[tuple[Field, Any]] = []
        for key, value in data.items():
            f = model.field(key)
            if f is None:
                raise UnknownFieldError(f"{model.name} has no field {key}")
            if f.is_read_only:
                raise InvalidValueError(f"{model.name}.{key} is managed by the service and cannot be written")
            if f.is_relation:
                relations.append((f, value))
            else:
                scalars[f.name] = normalize_value(f, value)
        return scalars, relations

    def _check_unique(self, model: Model, record: Mapping[str, Any], exclude: Any = None) -> None:
        id_name = model.id_field.name
        for f in model.unique_fields:
            value = record.get(f.name)
            if value is None:
                continue
            for other in self.store.records(model.name):
                if other[id_name] != exclude and other.get(f.name) == value:
                    raise UniqueConstraintError(model=model.name, field_name=f.name)

    def _create(self, model: Model, data: Mapping[str, Any], parent: _Parent | None = None) -> Any:
        scalars, relations = self._split(model, data)
        implicit = self.datamodel.opposite_field(parent.model.name, parent.field.name) if parent else None
        for f in model.relation_fields:
            if f.is_required and not f.is_list and f.name not in data and f is not implicit:
                raise RelationViolationError(self._violation_message(model, f))

        id_field = model.id_field
        record_id = self.store.next_id(model.name, id_field)
        now = utc_now()

        record: dict[str, Any] = {}
        for f in model.scalar_fields:
            if f.is_id:
                value = record_id
            elif f.is_created_at or f.is_updated_at:
                value = now
            elif f.name in scalars:
                value = scalars[f.name]
            elif f.has_default:
                value = normalize_value(f, f.default)
            else:
                value = None
            if value is None and f.is_required:
                raise MissingRequiredFieldError(f"Missing required field {model.name}.{f.name}")
            record[f.name] = value

        self._check_unique(model, record)
        self.store.insert(model.name, record_id, record)
        self._record_step("create", model.name, record_id, parent)

        if parent is not None:
            self._link(parent.model, parent.record_id, parent.field, record_id)
        for f, value in relations:
            self._apply_relation(model, record_id, f, value)

        self._check_required_relations(model, record_id)
        return record_id

    def _update(self, model: Model, record_id: Any, data: Mapping[str, Any], parent: _Parent | None = None) -> None:
        scalars, relations = self._split(model, data)
        for name, value in scalars.items():
            if value is None and model.field(name).is_required:
                raise InvalidValueError(f"{model.name}.{name} is required and cannot be set to null")

        values = dict(scalars)
        for f in model.scalar_fields:
            if f.is_updated_at:
                values[f.name] = utc_now()

        current = self.store.get(model.name, record_id)
        self._check_unique(model, {**current, **values}, exclude=record_id)
        self.store.update(model.name, record_id, values)
        self._record_step("update", model.name, record_id, parent)

        for f, value in relations:
            self._apply_relation(model, record_id, f, value)

    def _delete(self, model: Model, record_id: Any, parent: _Parent | None = None) -> None:
        if self.store.get(model.name, record_id) is None:
            return
        self._deleting.add((model.name, record_id))

        # check before touching anything
        for f in model.relation_fields:
            if f.on_delete is OnDelete.CASCADE:
                continue
            back = self.datamodel.opposite_field(model.name, f.name)
            if back is None or not back.is_required or back.is_list:
                continue
            related = self.datamodel.model(f.type_name)
            here = _Parent(model, record_id, f)
            if any((related.name, i) not in self._deleting for i in self._linked(here)):
                raise RelationViolationError(self._violation_message(model, f))

        for f in model.relation_fields:
            name, side, _ = self._relation(model, f)
            related = self.datamodel.model(f.type_name)
            for other_id in list(self.store.linked(name, side, record_id)):
                self.store.unlink(name, side, record_id, other_id)
                if f.on_delete is OnDelete.CASCADE and (related.name, other_id) not in self._deleting:
                    self._delete(related, other_id, _Parent(model, record_id, f))

        self.store.remove(model.name, record_id)
        self._record_step("delete", model.name, record_id, parent)

    # ------------------------------------------------------------------
    # Relations
    # ------------------------------------------------------------------

    def _apply_relation(self, model: Model, record_id: Any, f: Field, value: Any) -> None:
        related = self.datamodel.model(f.type_name)
        here = _Parent(model, record_id, f)
        directives = normalize_relation_input(value, is_list=f.is_list, field_name=f"{model.name}.{f.name}")

        for directive in directives:
            if isinstance(directive, Set):
                self._set(here, related, directive.entries())
            elif isinstance(directive, Disconnect):
                for other_id in self._targets(here, related, directive.entries()):
                    self._unlink(model, record_id, f, other_id)
            elif isinstance(directive, Delete):
                for other_id in self._targets(here, related, directive.entries()):
                    self._delete(related, other_id, here)
            elif isinstance(directive, Update):
                for other_id in self._targets(here, related, [directive.where]):
                    self._update(related, other_id, directive.data, here)
            elif isinstance(directive, Upsert):
                other_id = self._linked_match(here, related, directive.where)
                if other_id is None:
                    self._create(related, directive.create, here)
                else:
                    self._update(related, other_id, directive.update, here)
            elif isinstance(directive, Create):
                for item in directive.entries():
                    self._create(related, item, here)
            elif isinstance(directive, Connect):
                for where in directive.entries():
                    self._link(model, record_id, f, self._find_unique_or_raise(related, where))

    def _set(self, here: _Parent, related: Model, wheres: list[Any]) -> None:
        """Disconnect every linked record, then connect the given ones."""
        new_ids = [self._find_unique_or_raise(related, where) for where in wheres]
        for other_id in self._linked(here):
            if other_id not in new_ids:
                self._unlink(here.model, here.record_id, here.field, other_id)
        for other_id in new_ids:
            self._link(here.model, here.record_id, here.field, other_id)

    def _link(self, model: Model, record_id: Any, f: Field, other_id: Any) -> None:
        name, side, other_side = self._relation(model, f)
        related = self.datamodel.model(f.type_name)
        back = self.datamodel.opposite_field(model.name, f.name)

        # to-one sides hold a single link; replace what is there
        if not f.is_list:
            for existing in self.store.linked(name, side, record_id):
                if existing != other_id:
                    self._unlink(model, record_id, f, existing, replacing=True)
        if back is not None and not back.is_list:
            for existing in self.store.linked(name, other_side, other_id):
                if existing != record_id:
                    self._unlink(related, other_id, back, existing, replacing=True)

        if self.store.link(name, side, record_id, other_id):
            self._record_step("connect", related.name, other_id, _Parent(model, record_id, f))

    def _unlink(self, model: Model, record_id: Any, f: Field, other_id: Any, *, replacing: bool = False) -> None:
        """
        Remove one link.

        `replacing` means `record_id` is about to be linked again through
        `f`, so only the other side's required relation is checked.
        """
        name, side, _ = self._relation(model, f)
        related = self.datamodel.model(f.type_name)
        back = self.datamodel.opposite_field(model.name, f.name)

        if not replacing and f.is_required and not f.is_list:
            raise RelationViolationError(self._violation_message(model, f))
        if back is not None and back.is_required and not back.is_list:
            raise RelationViolationError(self._violation_message(related, back))

        if self.store.unlink(name, side, record_id, other_id):
            self._record_step("disconnect", related.name, other_id, _Parent(model, record_id, f))

    def _check_required_relations(self, model: Model, record_id: Any) -> None:
        for f in model.relation_fields:
            if f.is_required and not f.is_list and not self._linked(_Parent(model, record_id, f)):
                raise RelationViolationError(self._violation_message(model, f))

    def _violation_message(self, model: Model, f: Field) -> str:
        relation = self.datamodel.relation_for(model.name, f.name)
        return (
            f"The change you are trying to make would violate the required relation "
            f"'{relation.name}' between {model.name} and {f.type_name}"
        )

    # ------------------------------------------------------------------
    # Journal
    # ------------------------------------------------------------------

    def _record_step(self, action: str, model: str, record_id: Any, parent: _Parent | None) -> None:
        step = WriteStep(
            action=action,
            model=model,
            record_id=record_id,
            parent_model=parent.model.name if parent else None,
            parent_id=parent.record_id if parent else None,
            relation_field=parent.field.name if parent else None,
        )
        self.journal.append(step)
        if self.structured_logger is not None:
            self.structured_logger.log_write(
                WriteLog(
                    action=action,
                    model=model,
                    record_id=str(record_id),
                    parent_model=step.parent_model,
                    relation_field=step.relation_field,
                )
            )


__all__ = ["MutationExecutor", "WriteStep"]
