"""
Rendering of operations into GraphQL requests and decoding of responses.

Arguments always travel as typed variables, so values never need to be
escaped into the document:

    mutation CreateUser($data: UserCreateInput!) {
      createUser(data: $data) {
        id
        email
      }
    }
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from .errors import InvalidResponseError, RecordNotFoundError
from .hashing import compute_hash
from .inputs import Connect, Create, Delete, Directive, Disconnect, Set, Update, Upsert, normalize_relation_input
from .operations import BatchPayload, Operation, OperationKind
from .schema.naming import upper_first
from .schema.types import Datamodel, Model
from .serialization import to_jsonable


@dataclass
class GraphQLRequest:
    """A GraphQL document with its variables."""

    query: str
    variables: dict[str, Any] = field(default_factory=dict)
    operation_name: str | None = None

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"query": self.query, "variables": self.variables}
        if self.operation_name:
            payload["operationName"] = self.operation_name
        return payload


def argument_types(operation: Operation) -> dict[str, str]:
    """GraphQL input type of every argument the operation's root field takes."""
    m = operation.model
    kind = operation.kind
    if kind is OperationKind.FIND_UNIQUE:
        return {"where": f"{m}WhereUniqueInput!"}
    if kind is OperationKind.FIND_MANY:
        return {"where": f"{m}WhereInput", "orderBy": f"{m}OrderByInput", "skip": "Int", "first": "Int"}
    if kind is OperationKind.CREATE:
        return {"data": f"{m}CreateInput!"}
    if kind is OperationKind.UPDATE:
        return {"data": f"{m}UpdateInput!", "where": f"{m}WhereUniqueInput!"}
    if kind is OperationKind.DELETE:
        return {"where": f"{m}WhereUniqueInput!"}
    if kind is OperationKind.UPSERT:
        return {"where": f"{m}WhereUniqueInput!", "create": f"{m}CreateInput!", "update": f"{m}UpdateInput!"}
    if kind is OperationKind.UPDATE_MANY:
        return {"data": f"{m}UpdateManyMutationInput!", "where": f"{m}WhereInput"}
    return {"where": f"{m}WhereInput"}


def selection_fields(model: Model, operation: Operation) -> list[str]:
    if operation.kind.is_batch:
        return ["count"]
    if operation.select:
        return list(operation.select)
    return [f.name for f in model.scalar_fields]


def render_operation(datamodel: Datamodel, operation: Operation) -> GraphQLRequest:
    """Render an operation as a GraphQL query or mutation with variables."""
    model = datamodel.model(operation.model)
    types = argument_types(operation)
    arguments = operation.arguments()

    variables: dict[str, Any] = {}
    for name, value in arguments.items():
        if name in ("data", "create", "update"):
            variables[name] = serialize_data(datamodel, model, value)
        elif name == "where":
            variables[name] = to_jsonable(value)
        else:
            variables[name] = value

    root = operation.field_name
    operation_name = upper_first(root)
    keyword = "mutation" if operation.kind.is_mutation else "query"

    declarations = ", ".join(f"${name}: {types[name]}" for name in arguments)
    call_args = ", ".join(f"{name}: ${name}" for name in arguments)
    header = f"{keyword} {operation_name}({declarations})" if declarations else f"{keyword} {operation_name}"
    call = f"{root}({call_args})" if call_args else root
    selection = "\n".join(f"    {name}" for name in selection_fields(model, operation))

    query = f"{header} {{\n  {call} {{\n{selection}\n  }}\n}}"
    return GraphQLRequest(query=query, variables=variables, operation_name=operation_name)


# =============================================================================
# Input serialization
# =============================================================================


def serialize_data(datamodel: Datamodel, model: Model, data: Mapping[str, Any]) -> dict[str, Any]:
    """Convert a write payload, nested directives included, into its wire shape."""
    out: dict[str, Any] = {}
    for key, value in data.items():
        f = model.field(key)
        if f is not None and f.is_relation:
            related = datamodel.model(f.type_name)
            directives = normalize_relation_input(value, is_list=f.is_list, field_name=key)
            out[key] = serialize_relation(datamodel, related, directives, is_list=f.is_list)
        else:
            out[key] = to_jsonable(value)
    return out


def serialize_relation(
    datamodel: Datamodel,
    related: Model,
    directives: list[Directive],
    *,
    is_list: bool,
) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for directive in directives:
        if isinstance(directive, Create):
            items = [serialize_data(datamodel, related, d) for d in directive.entries()]
            value: Any = items if is_list else items[0]
        elif isinstance(directive, (Connect, Set)):
            wheres = [to_jsonable(w) for w in directive.entries()]
            value = wheres if is_list else wheres[0]
        elif isinstance(directive, (Delete, Disconnect)):
            value = [to_jsonable(w) for w in directive.entries()] if is_list else True
        elif isinstance(directive, Update):
            data = serialize_data(datamodel, related, directive.data)
            value = [{"where": to_jsonable(directive.where), "data": data}] if is_list else data
        elif isinstance(directive, Upsert):
            item = {
                "create": serialize_data(datamodel, related, directive.create),
                "update": serialize_data(datamodel, related, directive.update),
            }
            if is_list:
                item = {"where": to_jsonable(directive.where), **item}
                value = [item]
            else:
                value = item
        else:  # pragma: no cover
            continue

        if is_list and directive.kind in out:
            out[directive.kind].extend(value)
        else:
            out[directive.kind] = value
    return out


# =============================================================================
# Responses
# =============================================================================


def extract_result(operation: Operation, data: Any) -> Any:
    """
    Pull the root field out of a response `data` object.

    Returns a record dict, a list of records, None (find_unique miss) or
    a BatchPayload.
    """
    if not isinstance(data, Mapping) or operation.field_name not in data:
        raise InvalidResponseError(f"Response has no field {operation.field_name}")
    value = data[operation.field_name]

    kind = operation.kind
    if kind.is_batch:
        if not isinstance(value, Mapping) or not isinstance(value.get("count"), int):
            raise InvalidResponseError(f"{operation.field_name} did not return a count")
        return BatchPayload(count=value["count"])
    if kind is OperationKind.FIND_MANY:
        if not isinstance(value, list):
            raise InvalidResponseError(f"{operation.field_name} did not return a list")
        return [dict(item) for item in value]
    if value is None:
        if kind is OperationKind.FIND_UNIQUE:
            return None
        raise RecordNotFoundError(model=operation.model, where=operation.where)
    if not isinstance(value, Mapping):
        raise InvalidResponseError(f"{operation.field_name} did not return an object")
    return dict(value)


def query_hash(request: GraphQLRequest) -> str:
    """Short fingerprint of the document, for log correlation."""
    return compute_hash(request.query, truncate=16)


__all__ = [
    "GraphQLRequest",
    "argument_types",
    "selection_fields",
    "render_operation",
    "serialize_data",
    "serialize_relation",
    "extract_result",
    "query_hash",
]
