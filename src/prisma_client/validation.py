"""
Validation of operations against the datamodel.

Checks run before anything is sent, so malformed selectors, unknown
fields and misplaced nested writes fail fast with a typed error.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any

from .errors import (
    InvalidNestedWriteError,
    InvalidSelectorError,
    InvalidValueError,
    MissingRequiredFieldError,
    UnknownFieldError,
    ValidationError,
)
from .inputs import Connect, Create, Delete, Disconnect, Set, Update, Upsert, is_relation_input, normalize_relation_input
from .operations import Operation, OperationKind
from .schema.types import Datamodel, Field, Model, ScalarType
from .where import LOGICAL_KEYS, parse_filter_key

logger = logging.getLogger(__name__)


@dataclass
class ValidationResult:
    valid: bool
    errors: list[str] = field(default_factory=list)
    issues: list[ValidationError] = field(default_factory=list)

    @classmethod
    def ok(cls) -> ValidationResult:
        return cls(valid=True)

    @classmethod
    def error(cls, error: ValidationError) -> ValidationResult:
        return cls(valid=False, errors=[error.message], issues=[error])

    @classmethod
    def merge(cls, *results: ValidationResult) -> ValidationResult:
        valid = all(r.valid for r in results)
        errors: list[str] = []
        issues: list[ValidationError] = []
        for r in results:
            errors.extend(r.errors)
            issues.extend(r.issues)
        return cls(valid=valid, errors=errors, issues=issues)

    def __bool__(self) -> bool:
        return self.valid

    def raise_if_invalid(self) -> None:
        """Raise the first issue's error type, carrying every message."""
        if self.valid:
            return
        first = self.issues[0] if self.issues else ValidationError()
        raise type(first)(f"Validation failed: {'; '.join(self.errors)}", errors=list(self.errors))


# =============================================================================
# Values
# =============================================================================


def check_scalar_value(f: Field, value: Any, *, datamodel: Datamodel) -> str | None:
    """Return an error message if `value` is not valid for the scalar/enum field."""
    if value is None:
        return None
    label = f"{f.name}: expected {f.type_name}, got {type(value).__name__}"
    if f.is_enum:
        values = datamodel.enums[f.type_name].values
        if not isinstance(value, str) or value not in values:
            return f"{f.name}: {value!r} is not one of {values}"
        return None

    type_name = f.type_name
    if type_name == ScalarType.ID.value:
        ok = isinstance(value, (str, int)) and not isinstance(value, bool)
    elif type_name == ScalarType.STRING.value:
        ok = isinstance(value, str)
    elif type_name == ScalarType.INT.value:
        ok = isinstance(value, int) and not isinstance(value, bool)
    elif type_name == ScalarType.FLOAT.value:
        ok = isinstance(value, (int, float)) and not isinstance(value, bool)
    elif type_name == ScalarType.BOOLEAN.value:
        ok = isinstance(value, bool)
    elif type_name == ScalarType.DATETIME.value:
        ok = isinstance(value, (datetime, date)) or (isinstance(value, str) and _is_iso_datetime(value))
    elif type_name == ScalarType.JSON.value:
        try:
            json.dumps(value)
            ok = True
        except (TypeError, ValueError):
            ok = False
    else:
        ok = True
    return None if ok else label


def _is_iso_datetime(value: str) -> bool:
    try:
        datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return False
    return True


# =============================================================================
# Validator
# =============================================================================


class _Validator:
    def __init__(self, datamodel: Datamodel) -> None:
        self.datamodel = datamodel
        self.errors: list[ValidationError] = []

    def fail(self, error_cls: type[ValidationError], message: str) -> None:
        self.errors.append(error_cls(message))

    def result(self) -> ValidationResult:
        if not self.errors:
            return ValidationResult.ok()
        return ValidationResult(valid=False, errors=[e.message for e in self.errors], issues=list(self.errors))

    # Selectors

    def unique_where(self, model: Model, where: Any, path: str) -> None:
        if not isinstance(where, Mapping):
            self.fail(InvalidSelectorError, f"{path}: unique selector must be a mapping")
            return
        given = [key for key, value in where.items() if value is not None]
        if len(given) != 1 or len(where) != 1:
            names = [f.name for f in model.unique_fields]
            self.fail(
                InvalidSelectorError,
                f"{path}: select {model.name} by exactly one unique field ({', '.join(names)}), got {sorted(where)}",
            )
            return
        key = given[0]
        f = model.field(key)
        if f is None:
            self.fail(UnknownFieldError, f"{path}: {model.name} has no field {key}")
            return
        if f.is_relation or not (f.is_unique or f.is_id):
            self.fail(InvalidSelectorError, f"{path}: {model.name}.{key} is not a unique field")
            return
        if message := check_scalar_value(f, where[key], datamodel=self.datamodel):
            self.fail(InvalidValueError, f"{path}.{message}")

    def filter_where(self, model: Model, where: Any, path: str) -> None:
        if where is None:
            return
        if not isinstance(where, Mapping):
            self.fail(ValidationError, f"{path}: where filter must be a mapping")
            return
        for key, value in where.items():
            if key in LOGICAL_KEYS:
                items = value if isinstance(value, (list, tuple)) else [value]
                if key != "NOT" and not isinstance(value, (list, tuple)):
                    self.fail(ValidationError, f"{path}.{key}: expected a list of filters")
                    continue
                for i, item in enumerate(items):
                    self.filter_where(model, item, f"{path}.{key}[{i}]")
                continue

            parsed = parse_filter_key(model, key)
            if parsed is None:
                self.fail(UnknownFieldError, f"{path}: {model.name} does not accept filter {key}")
                continue
            f, operator = parsed.field, parsed.operator
            if f.is_relation:
                related = self.datamodel.model(f.type_name)
                if value is not None:
                    self.filter_where(related, value, f"{path}.{key}")
                continue
            if operator in ("in", "not_in"):
                if not isinstance(value, (list, tuple)):
                    self.fail(InvalidValueError, f"{path}.{key}: expected a list")
                    continue
                for item in value:
                    if message := check_scalar_value(f, item, datamodel=self.datamodel):
                        self.fail(InvalidValueError, f"{path}.{message}")
                continue
            if message := check_scalar_value(f, value, datamodel=self.datamodel):
                self.fail(InvalidValueError, f"{path}.{message}")

    # Data

    def data(
        self,
        model: Model,
        data: Any,
        path: str,
        *,
        mode: str,
        implicit: Field | None = None,
    ) -> None:
        """
        Validate a write payload.

        Args:
            mode: "create", "update" or "update_many"
            implicit: Back-relation field filled in by the parent of a
                nested write; it must not appear in `data`
        """
        if not isinstance(data, Mapping):
            self.fail(ValidationError, f"{path}: data must be a mapping")
            return

        for key, value in data.items():
            f = model.field(key)
            if f is None:
                self.fail(UnknownFieldError, f"{path}: {model.name} has no field {key}")
                continue
            if f.is_read_only:
                self.fail(InvalidValueError, f"{path}.{key}: field is managed by the service and cannot be written")
                continue
            if implicit is not None and f.name == implicit.name:
                self.fail(InvalidNestedWriteError, f"{path}.{key}: set implicitly by the parent nested write")
                continue
            if f.is_relation:
                if mode == "update_many":
                    self.fail(InvalidNestedWriteError, f"{path}.{key}: nested writes are not allowed in update_many")
                    continue
                self.relation(model, f, value, f"{path}.{key}", mode=mode)
                continue
            if is_relation_input(value):
                self.fail(InvalidNestedWriteError, f"{path}.{key}: nested writes are only valid on relation fields")
                continue
            if value is None and f.is_required:
                self.fail(InvalidValueError, f"{path}.{key}: required field cannot be null")
                continue
            if message := check_scalar_value(f, value, datamodel=self.datamodel):
                self.fail(InvalidValueError, f"{path}.{message}")

        if mode == "create":
            for f in model.fields:
                if implicit is not None and f.name == implicit.name:
                    continue
                if f.name in data:
                    continue
                if f.is_required_on_create:
                    self.fail(MissingRequiredFieldError, f"{path}: missing required field {model.name}.{f.name}")

    def relation(self, model: Model, f: Field, value: Any, path: str, *, mode: str) -> None:
        try:
            directives = normalize_relation_input(value, is_list=f.is_list, field_name=path)
        except InvalidNestedWriteError as exc:
            self.errors.append(exc)
            return

        related = self.datamodel.model(f.type_name)
        back = self.datamodel.opposite_field(model.name, f.name)

        for directive in directives:
            if mode == "create" and not isinstance(directive, (Create, Connect)):
                self.fail(
                    InvalidNestedWriteError,
                    f"{path}: only create and connect are allowed when creating {model.name}",
                )
                continue
            if isinstance(directive, Create):
                for i, item in enumerate(directive.entries()):
                    self.data(related, item, f"{path}.create[{i}]", mode="create", implicit=back)
            elif isinstance(directive, (Connect, Set)):
                for i, item in enumerate(directive.entries()):
                    self.unique_where(related, item, f"{path}.{directive.kind}[{i}]")
            elif isinstance(directive, (Delete, Disconnect)):
                if not f.is_list and not f.is_required:
                    continue
                if not f.is_list:
                    self.fail(
                        InvalidNestedWriteError,
                        f"{path}: cannot {directive.kind} a required relation",
                    )
                    continue
                for i, item in enumerate(directive.entries()):
                    self.unique_where(related, item, f"{path}.{directive.kind}[{i}]")
            elif isinstance(directive, Update):
                if f.is_list:
                    self.unique_where(related, directive.where, f"{path}.update.where")
                self.data(related, directive.data, f"{path}.update.data", mode="update", implicit=back)
            elif isinstance(directive, Upsert):
                if f.is_list:
                    self.unique_where(related, directive.where, f"{path}.upsert.where")
                self.data(related, directive.create, f"{path}.upsert.create", mode="create", implicit=back)
                self.data(related, directive.update, f"{path}.upsert.update", mode="update", implicit=back)

    # Shape

    def select(self, model: Model, select: Any, path: str) -> None:
        if select is None:
            return
        if not isinstance(select, (list, tuple)) or not select:
            self.fail(ValidationError, f"{path}: select must be a non-empty list of field names")
            return
        for name in select:
            f = model.field(name)
            if f is None:
                self.fail(UnknownFieldError, f"{path}: {model.name} has no field {name}")
            elif f.is_relation:
                self.fail(ValidationError, f"{path}: {name} is a relation; only scalar fields can be selected")

    def order_by(self, model: Model, order_by: Any, path: str) -> None:
        if order_by is None:
            return
        name, _, direction = str(order_by).rpartition("_")
        f = model.field(name)
        if direction not in ("ASC", "DESC") or f is None or f.is_relation:
            self.fail(ValidationError, f"{path}: invalid order {order_by!r}, expected <scalarField>_ASC|_DESC")

    def window(self, skip: Any, first: Any) -> None:
        for name, value in (("skip", skip), ("first", first)):
            if value is None:
                continue
            if not isinstance(value, int) or isinstance(value, bool) or value < 0:
                self.fail(InvalidValueError, f"{name}: expected a non-negative integer")


def validate_operation(datamodel: Datamodel, operation: Operation) -> ValidationResult:
    """
    Validate an operation against the datamodel.

    Raises:
        UnknownModelError: The operation names an undeclared model

    Returns:
        ValidationResult listing every problem found
    """
    model = datamodel.model(operation.model)
    v = _Validator(datamodel)
    kind = operation.kind

    if kind.needs_unique_where:
        v.unique_where(model, operation.where, "where")
    else:
        v.filter_where(model, operation.where, "where")

    if kind is OperationKind.CREATE:
        v.data(model, operation.data, "data", mode="create")
    elif kind is OperationKind.UPDATE:
        v.data(model, operation.data, "data", mode="update")
    elif kind is OperationKind.UPDATE_MANY:
        v.data(model, operation.data, "data", mode="update_many")
    elif kind is OperationKind.UPSERT:
        v.data(model, operation.create, "create", mode="create")
        v.data(model, operation.update, "update", mode="update")

    if kind.is_batch and operation.select is not None:
        v.fail(ValidationError, "select: batch operations only return a count")
    else:
        v.select(model, operation.select, "select")

    if kind is OperationKind.FIND_MANY:
        v.order_by(model, operation.order_by, "order_by")
        v.window(operation.skip, operation.first)

    result = v.result()
    if not result.valid:
        logger.debug("Rejected %s on %s: %s", kind.value, model.name, result.errors)
    return result


__all__ = [
    "ValidationResult",
    "validate_operation",
    "check_scalar_value",
]
