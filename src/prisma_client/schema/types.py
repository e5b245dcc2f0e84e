"""
Datamodel types.

A `Datamodel` is the resolved form of the SDL: every field knows whether it
is a scalar, an enum or a relation, and relation fields are paired with
their opposite side.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import Enum as _Enum
from typing import Any

from ..errors import SchemaError, UnknownModelError
from ..hashing import content_hash
from .naming import pluralize

logger = logging.getLogger(__name__)


class ScalarType(str, _Enum):
    """Scalar types understood by the service."""

    ID = "ID"
    STRING = "String"
    INT = "Int"
    FLOAT = "Float"
    BOOLEAN = "Boolean"
    DATETIME = "DateTime"
    JSON = "Json"


SCALAR_TYPE_NAMES = frozenset(t.value for t in ScalarType)


class FieldKind(str, _Enum):
    SCALAR = "scalar"
    ENUM = "enum"
    RELATION = "relation"


class OnDelete(str, _Enum):
    """What happens to related records when a record is deleted."""

    SET_NULL = "SET_NULL"
    CASCADE = "CASCADE"


@dataclass
class Field:
    """A field declared on a model."""

    name: str
    type_name: str
    is_list: bool = False
    is_required: bool = False
    is_unique: bool = False
    is_id: bool = False
    default: Any = None
    has_default: bool = False
    relation_name: str | None = None
    on_delete: OnDelete = OnDelete.SET_NULL
    is_created_at: bool = False
    is_updated_at: bool = False
    kind: FieldKind = FieldKind.SCALAR

    @property
    def is_scalar(self) -> bool:
        return self.kind is FieldKind.SCALAR

    @property
    def is_enum(self) -> bool:
        return self.kind is FieldKind.ENUM

    @property
    def is_relation(self) -> bool:
        return self.kind is FieldKind.RELATION

    @property
    def is_read_only(self) -> bool:
        """Fields the service fills in on its own."""
        return self.is_id or self.is_created_at or self.is_updated_at

    @property
    def is_required_on_create(self) -> bool:
        return self.is_required and not self.is_list and not self.has_default and not self.is_read_only

    @property
    def graphql_type(self) -> str:
        if self.is_list:
            return f"[{self.type_name}!]!"
        return f"{self.type_name}!" if self.is_required else self.type_name

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "type": self.type_name,
            "list": self.is_list,
            "required": self.is_required,
            "unique": self.is_unique,
            "id": self.is_id,
            "default": self.default if self.has_default else None,
            "relation": self.relation_name,
            "on_delete": self.on_delete.value,
            "created_at": self.is_created_at,
            "updated_at": self.is_updated_at,
        }


@dataclass
class Enum:
    """An enum declared in the datamodel."""

    name: str
    values: list[str] = field(default_factory=list)


@dataclass
class Model:
    """A model (named entity type) with scalar and relation fields."""

    name: str
    fields: list[Field] = field(default_factory=list)

    def __post_init__(self) -> None:
        self._by_name = {f.name: f for f in self.fields}

    def field(self, name: str) -> Field | None:
        return self._by_name.get(name)

    def has_field(self, name: str) -> bool:
        return name in self._by_name

    @property
    def id_field(self) -> Field:
        for f in self.fields:
            if f.is_id:
                return f
        raise SchemaError(f"Model {self.name} has no id field")

    @property
    def unique_fields(self) -> list[Field]:
        """Fields usable to address a single record, id first."""
        return [f for f in self.fields if (f.is_id or f.is_unique) and not f.is_relation]

    @property
    def scalar_fields(self) -> list[Field]:
        """Scalar and enum fields, in declaration order."""
        return [f for f in self.fields if not f.is_relation]

    @property
    def relation_fields(self) -> list[Field]:
        return [f for f in self.fields if f.is_relation]

    @property
    def plural(self) -> str:
        return pluralize(self.name)


@dataclass(frozen=True)
class Relation:
    """
    A relation between two models.

    Links are stored as (a, b) pairs; `field_b` is None for relations that
    are only visible from one side.
    """

    name: str
    model_a: str
    field_a: str
    model_b: str
    field_b: str | None = None

    def side_of(self, model: str, field_name: str) -> str:
        if self.model_a == model and self.field_a == field_name:
            return "a"
        if self.model_b == model and self.field_b == field_name:
            return "b"
        raise SchemaError(f"{model}.{field_name} is not part of relation {self.name}")


class Datamodel:
    """
    The resolved datamodel: models, enums and relations.

    Args:
        models: Declared models, in declaration order
        enums: Declared enums
        source: The SDL text the datamodel was parsed from, if any
    """

    def __init__(
        self,
        models: Iterable[Model],
        enums: Iterable[Enum] = (),
        *,
        source: str | None = None,
    ) -> None:
        self.models: dict[str, Model] = {}
        self.enums: dict[str, Enum] = {}
        self.source = source

        for enum in enums:
            if enum.name in self.enums or enum.name in SCALAR_TYPE_NAMES:
                raise SchemaError(f"Duplicate type name: {enum.name}")
            if not enum.values:
                raise SchemaError(f"Enum {enum.name} declares no values")
            self.enums[enum.name] = enum

        for model in models:
            if model.name in self.models or model.name in self.enums or model.name in SCALAR_TYPE_NAMES:
                raise SchemaError(f"Duplicate type name: {model.name}")
            self.models[model.name] = model

        for model in self.models.values():
            self._resolve_fields(model)

        self._relations: dict[tuple[str, str], Relation] = {}
        self._pair_relations()

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    def _resolve_fields(self, model: Model) -> None:
        seen: set[str] = set()
        for f in model.fields:
            if f.name in seen:
                raise SchemaError(f"Duplicate field {model.name}.{f.name}")
            seen.add(f.name)

            if f.type_name in SCALAR_TYPE_NAMES:
                f.kind = FieldKind.SCALAR
            elif f.type_name in self.enums:
                f.kind = FieldKind.ENUM
            elif f.type_name in self.models:
                f.kind = FieldKind.RELATION
            else:
                raise SchemaError(f"Unknown type {f.type_name} on {model.name}.{f.name}")

            if f.is_list and not f.is_relation:
                raise SchemaError(f"Scalar list fields are not supported: {model.name}.{f.name}")
            if f.is_relation and (f.is_unique or f.is_id or f.has_default):
                raise SchemaError(f"Relation field {model.name}.{f.name} cannot be @id, @unique or @default")
            if (f.is_created_at or f.is_updated_at) and f.type_name != ScalarType.DATETIME.value:
                raise SchemaError(f"{model.name}.{f.name}: @createdAt/@updatedAt require DateTime")
            if f.has_default:
                f.default = self._coerce_default(model, f)

        explicit = [f for f in model.fields if f.is_id]
        if len(explicit) > 1:
            raise SchemaError(f"Model {model.name} declares more than one @id field")
        if not explicit:
            legacy = model.field("id")
            if legacy is None or legacy.type_name != ScalarType.ID.value:
                raise SchemaError(f"Model {model.name} needs an id field (`id: ID! @id`)")
            legacy.is_id = True
        id_field = model.id_field
        if id_field.is_relation or id_field.type_name not in (ScalarType.ID.value, ScalarType.INT.value):
            raise SchemaError(f"Id field {model.name}.{id_field.name} must be of type ID or Int")
        id_field.is_required = True
        id_field.is_unique = True

    def _coerce_default(self, model: Model, f: Field) -> Any:
        value = f.default
        where = f"{model.name}.{f.name}"
        if f.is_enum:
            if value not in self.enums[f.type_name].values:
                raise SchemaError(f"Default {value!r} is not a value of enum {f.type_name} ({where})")
            return value
        expected: dict[str, tuple[type, ...]] = {
            ScalarType.ID.value: (str,),
            ScalarType.STRING.value: (str,),
            ScalarType.INT.value: (int,),
            ScalarType.FLOAT.value: (int, float),
            ScalarType.BOOLEAN.value: (bool,),
            ScalarType.DATETIME.value: (str,),
        }
        types = expected.get(f.type_name)
        if types is None:
            return value
        if isinstance(value, bool) and bool not in types:
            raise SchemaError(f"Invalid default {value!r} for {f.type_name} ({where})")
        if not isinstance(value, types):
            raise SchemaError(f"Invalid default {value!r} for {f.type_name} ({where})")
        if f.type_name == ScalarType.FLOAT.value:
            return float(value)
        return value

    def _pair_relations(self) -> None:
        named: dict[str, list[tuple[Model, Field]]] = {}
        unnamed: list[tuple[Model, Field]] = []
        for model in self.models.values():
            for f in model.relation_fields:
                if f.relation_name:
                    named.setdefault(f.relation_name, []).append((model, f))
                else:
                    unnamed.append((model, f))

        for name, sides in named.items():
            if len(sides) > 2:
                raise SchemaError(f"Relation {name} is used by more than two fields")
            (model_a, field_a), *rest = sides
            if rest:
                model_b, field_b = rest[0]
                if field_a.type_name != model_b.name or field_b.type_name != model_a.name:
                    raise SchemaError(f"Fields of relation {name} do not point at each other")
                self._register(Relation(name, model_a.name, field_a.name, model_b.name, field_b.name))
            else:
                self._register(Relation(name, model_a.name, field_a.name, field_a.type_name))

        claimed: set[tuple[str, str]] = set()
        for model, f in unnamed:
            if (model.name, f.name) in claimed:
                continue
            same_target = [g for g in model.relation_fields if not g.relation_name and g.type_name == f.type_name]
            if len(same_target) > 1:
                raise SchemaError(
                    f"Ambiguous relations from {model.name} to {f.type_name}; name them with @relation(name: ...)"
                )
            other = self.models[f.type_name]
            back = [
                g
                for g in other.relation_fields
                if not g.relation_name and g.type_name == model.name and (other.name, g.name) != (model.name, f.name)
            ]
            name = "To".join(sorted([model.name, other.name]))
            if len(back) == 1 and other.name != model.name:
                claimed.add((other.name, back[0].name))
                model_a, field_a, model_b, field_b = model.name, f.name, other.name, back[0].name
                if model_b < model_a:
                    model_a, field_a, model_b, field_b = model_b, field_b, model_a, field_a
                self._register(Relation(name, model_a, field_a, model_b, field_b))
            else:
                self._register(Relation(name, model.name, f.name, other.name))
            claimed.add((model.name, f.name))

        for model in self.models.values():
            for f in model.relation_fields:
                if f.relation_name is None:
                    f.relation_name = self._relations[(model.name, f.name)].name

    def _register(self, relation: Relation) -> None:
        self._relations[(relation.model_a, relation.field_a)] = relation
        if relation.field_b is not None:
            self._relations[(relation.model_b, relation.field_b)] = relation
        logger.debug("Registered relation %s", relation.name)

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def model(self, name: str) -> Model:
        try:
            return self.models[name]
        except KeyError:
            raise UnknownModelError(model=name) from None

    def relation_for(self, model: str, field_name: str) -> Relation:
        try:
            return self._relations[(model, field_name)]
        except KeyError:
            raise SchemaError(f"{model}.{field_name} is not a relation field") from None

    @property
    def relations(self) -> list[Relation]:
        return list(dict.fromkeys(self._relations.values()))

    def opposite_field(self, model: str, field_name: str) -> Field | None:
        """The field on the other side of a relation, if it is visible there."""
        relation = self.relation_for(model, field_name)
        if relation.side_of(model, field_name) == "a":
            if relation.field_b is None:
                return None
            return self.models[relation.model_b].field(relation.field_b)
        return self.models[relation.model_a].field(relation.field_a)

    def to_dict(self) -> dict[str, Any]:
        return {
            "models": [{"name": m.name, "fields": [f.to_dict() for f in m.fields]} for m in self.models.values()],
            "enums": [{"name": e.name, "values": list(e.values)} for e in self.enums.values()],
        }

    @property
    def fingerprint(self) -> str:
        return content_hash(self.to_dict())


__all__ = [
    "ScalarType",
    "SCALAR_TYPE_NAMES",
    "FieldKind",
    "OnDelete",
    "Field",
    "Enum",
    "Model",
    "Relation",
    "Datamodel",
]
