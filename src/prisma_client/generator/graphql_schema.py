"""
The `graphql-schema` generator: the service's API schema for a datamodel.

The schema follows the service's naming: `UserWhereUniqueInput`,
`UserCreateInput`, nested inputs such as `PostCreateManyWithoutAuthorInput`
and one query and six mutations per model.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from ..operations import Operation, OperationKind
from ..schema.naming import upper_first
from ..schema.types import Datamodel, Field, Model
from ..where import operators_for

# Scalars the API declares beyond the GraphQL built-ins.
CUSTOM_SCALARS = ("DateTime", "Json", "Long")


@dataclass
class SdlField:
    name: str
    type: str
    args: str = ""


@dataclass
class SdlType:
    name: str
    fields: list[SdlField] = field(default_factory=list)


@dataclass
class SdlEnum:
    name: str
    values: list[str] = field(default_factory=list)


class ApiSchemaBuilder:
    """Collects the object, input and enum types of the API schema."""

    def __init__(self, datamodel: Datamodel) -> None:
        self.datamodel = datamodel
        self.inputs: dict[str, SdlType] = {}

    def build(self) -> dict[str, Any]:
        dm = self.datamodel
        models = list(dm.models.values())

        for model in models:
            self.where_unique_input(model)
            self.where_input(model)
            self.create_input(model)
            self.update_input(model, top=True)
            self.update_many_mutation_input(model)

        enums = [SdlEnum(e.name, list(e.values)) for e in dm.enums.values()]
        enums += [self.order_by_enum(m) for m in models]

        return {
            "query": self.query_fields(models),
            "mutation": self.mutation_fields(models),
            "scalars": list(CUSTOM_SCALARS),
            "enums": sorted(enums, key=lambda e: e.name),
            "types": sorted((self.object_type(m) for m in models), key=lambda t: t.name),
            "inputs": sorted(self.inputs.values(), key=lambda t: t.name),
        }

    # Root types

    def query_fields(self, models: list[Model]) -> list[SdlField]:
        fields = []
        for m in models:
            unique = Operation(OperationKind.FIND_UNIQUE, m.name)
            many = Operation(OperationKind.FIND_MANY, m.name)
            fields.append(SdlField(unique.field_name, m.name, f"(where: {m.name}WhereUniqueInput!)"))
            fields.append(SdlField(many.field_name, f"[{m.name}]!", self._list_args(m)))
        return fields

    def mutation_fields(self, models: list[Model]) -> list[SdlField]:
        fields = []
        for m in models:
            n = m.name

            def name(kind: OperationKind) -> str:
                return Operation(kind, n).field_name

            fields += [
                SdlField(name(OperationKind.CREATE), f"{n}!", f"(data: {n}CreateInput!)"),
                SdlField(name(OperationKind.UPDATE), n, f"(data: {n}UpdateInput!, where: {n}WhereUniqueInput!)"),
                SdlField(
                    name(OperationKind.UPDATE_MANY),
                    "BatchPayload!",
                    f"(data: {n}UpdateManyMutationInput!, where: {n}WhereInput)",
                ),
                SdlField(
                    name(OperationKind.UPSERT),
                    f"{n}!",
                    f"(where: {n}WhereUniqueInput!, create: {n}CreateInput!, update: {n}UpdateInput!)",
                ),
                SdlField(name(OperationKind.DELETE), n, f"(where: {n}WhereUniqueInput!)"),
                SdlField(name(OperationKind.DELETE_MANY), "BatchPayload!", f"(where: {n}WhereInput)"),
            ]
        return fields

    def object_type(self, model: Model) -> SdlType:
        fields = []
        for f in model.fields:
            if f.is_relation and f.is_list:
                related = self.datamodel.model(f.type_name)
                fields.append(SdlField(f.name, f"[{f.type_name}!]", self._list_args(related)))
            elif f.is_relation:
                fields.append(SdlField(f.name, f"{f.type_name}!" if f.is_required else f.type_name))
            else:
                fields.append(SdlField(f.name, f.graphql_type))
        return SdlType(model.name, fields)

    def order_by_enum(self, model: Model) -> SdlEnum:
        values = []
        for f in model.scalar_fields:
            values += [f"{f.name}_ASC", f"{f.name}_DESC"]
        return SdlEnum(f"{model.name}OrderByInput", values)

    @staticmethod
    def _list_args(model: Model) -> str:
        n = model.name
        return f"(where: {n}WhereInput, orderBy: {n}OrderByInput, skip: Int, first: Int)"

    # Filters

    def where_unique_input(self, model: Model) -> str:
        name = f"{model.name}WhereUniqueInput"
        if name not in self.inputs:
            self.inputs[name] = SdlType(name, [SdlField(f.name, f.type_name) for f in model.unique_fields])
        return name

    def where_input(self, model: Model) -> str:
        name = f"{model.name}WhereInput"
        if name in self.inputs:
            return name
        t = self.inputs[name] = SdlType(name)
        for f in model.fields:
            if f.is_relation:
                related = self.where_input(self.datamodel.model(f.type_name))
                if f.is_list:
                    t.fields += [SdlField(f"{f.name}_{op}", related) for op in operators_for(f)]
                else:
                    t.fields.append(SdlField(f.name, related))
                continue
            t.fields.append(SdlField(f.name, f.type_name))
            for op in operators_for(f):
                value_type = f"[{f.type_name}!]" if op in ("in", "not_in") else f.type_name
                t.fields.append(SdlField(f"{f.name}_{op}", value_type))
        t.fields += [SdlField(key, f"[{name}!]") for key in ("AND", "OR", "NOT")]
        return name

    # Create inputs

    def create_input(self, model: Model, without: Field | None = None) -> str:
        if without is None:
            name = f"{model.name}CreateInput"
        else:
            name = f"{model.name}CreateWithout{upper_first(without.name)}Input"
        if name in self.inputs:
            return name
        t = self.inputs[name] = SdlType(name)
        for f in model.fields:
            if f.is_read_only or f is without:
                continue
            if f.is_relation:
                nested = self.create_relation_input(model, f)
                required = f.is_required and not f.is_list
                t.fields.append(SdlField(f.name, f"{nested}!" if required else nested))
            else:
                t.fields.append(SdlField(f.name, f"{f.type_name}!" if f.is_required_on_create else f.type_name))
        return name

    def create_relation_input(self, model: Model, f: Field) -> str:
        related = self.datamodel.model(f.type_name)
        back = self.datamodel.opposite_field(model.name, f.name)
        many = "Many" if f.is_list else "One"
        name = self._nested_name(related, f"Create{many}", back, "Input")
        if name in self.inputs:
            return name
        t = self.inputs[name] = SdlType(name)
        item = self.create_input(related, back)
        unique = self.where_unique_input(related)
        if f.is_list:
            t.fields = [SdlField("create", f"[{item}!]"), SdlField("connect", f"[{unique}!]")]
        else:
            t.fields = [SdlField("create", item), SdlField("connect", unique)]
        return name

    # Update inputs

    def update_input(self, model: Model, without: Field | None = None, *, top: bool = False) -> str:
        if top:
            name = f"{model.name}UpdateInput"
        else:
            name = self._nested_name(model, "Update", without, "DataInput")
        if name in self.inputs:
            return name
        t = self.inputs[name] = SdlType(name)
        for f in model.fields:
            if f.is_read_only or f is without:
                continue
            if f.is_relation:
                t.fields.append(SdlField(f.name, self.update_relation_input(model, f)))
            else:
                t.fields.append(SdlField(f.name, f.type_name))
        return name

    def update_many_mutation_input(self, model: Model) -> str:
        name = f"{model.name}UpdateManyMutationInput"
        if name not in self.inputs:
            fields = [SdlField(f.name, f.type_name) for f in model.scalar_fields if not f.is_read_only]
            self.inputs[name] = SdlType(name, fields)
        return name

    def update_relation_input(self, model: Model, f: Field) -> str:
        related = self.datamodel.model(f.type_name)
        back = self.datamodel.opposite_field(model.name, f.name)
        if f.is_list:
            name = self._nested_name(related, "UpdateMany", back, "Input")
        else:
            kind = "UpdateOneRequired" if f.is_required else "UpdateOne"
            name = self._nested_name(related, kind, back, "Input")
        if name in self.inputs:
            return name
        t = self.inputs[name] = SdlType(name)

        create = self.create_input(related, back)
        data = self.update_input(related, back)
        unique = self.where_unique_input(related)

        if f.is_list:
            update_item = self._nested_name(related, "UpdateWithWhereUnique", back, "Input", nested="Nested")
            upsert_item = self._nested_name(related, "UpsertWithWhereUnique", back, "Input", nested="Nested")
            if update_item not in self.inputs:
                self.inputs[update_item] = SdlType(
                    update_item, [SdlField("where", f"{unique}!"), SdlField("data", f"{data}!")]
                )
            if upsert_item not in self.inputs:
                self.inputs[upsert_item] = SdlType(
                    upsert_item,
                    [SdlField("where", f"{unique}!"), SdlField("update", f"{data}!"), SdlField("create", f"{create}!")],
                )
            t.fields = [
                SdlField("create", f"[{create}!]"),
                SdlField("delete", f"[{unique}!]"),
                SdlField("connect", f"[{unique}!]"),
                SdlField("set", f"[{unique}!]"),
                SdlField("disconnect", f"[{unique}!]"),
                SdlField("update", f"[{update_item}!]"),
                SdlField("upsert", f"[{upsert_item}!]"),
            ]
        else:
            upsert = self._nested_name(related, "Upsert", back, "Input", nested="Nested")
            if upsert not in self.inputs:
                self.inputs[upsert] = SdlType(upsert, [SdlField("update", f"{data}!"), SdlField("create", f"{create}!")])
            t.fields = [
                SdlField("create", create),
                SdlField("update", data),
                SdlField("upsert", upsert),
            ]
            if not f.is_required:
                t.fields += [SdlField("delete", "Boolean"), SdlField("disconnect", "Boolean")]
            t.fields.append(SdlField("connect", unique))
        return name

    @staticmethod
    def _nested_name(model: Model, action: str, back: Field | None, suffix: str, *, nested: str = "") -> str:
        """
        Name of a nested input type.

        Relations visible from both sides name the back field
        (`PostCreateManyWithoutAuthorInput`); one-sided relations do not
        (`PostCreateManyInput`, `PostUpsertNestedInput`).
        """
        if back is not None:
            return f"{model.name}{action}Without{upper_first(back.name)}{suffix}"
        return f"{model.name}{action}{nested}{suffix}"


def build_api_schema(datamodel: Datamodel) -> dict[str, Any]:
    """Template context describing the full API schema."""
    return ApiSchemaBuilder(datamodel).build()


__all__ = ["ApiSchemaBuilder", "SdlEnum", "SdlField", "SdlType", "build_api_schema", "CUSTOM_SCALARS"]
