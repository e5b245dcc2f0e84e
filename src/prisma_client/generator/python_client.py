"""
The `python-client` generator: a typed client module for a datamodel.
"""

from __future__ import annotations

import keyword
from typing import Any

from ..client import PrismaClient
from ..schema.naming import lower_first
from ..schema.types import Datamodel, Field, Model, ScalarType

_PY_TYPES = {
    ScalarType.ID.value: "str",
    ScalarType.STRING.value: "str",
    ScalarType.INT.value: "int",
    ScalarType.FLOAT.value: "float",
    ScalarType.BOOLEAN.value: "bool",
    ScalarType.DATETIME.value: "str",
    ScalarType.JSON.value: "Any",
}


def python_name(name: str) -> str:
    return f"{name}_" if keyword.iskeyword(name) else name


def python_type(f: Field) -> str:
    if f.is_enum:
        return f.type_name
    if f.is_id and f.type_name == ScalarType.INT.value:
        return "int"
    return _PY_TYPES[f.type_name]


def delegate_attribute(model: Model) -> str | None:
    """Attribute the client exposes the model's delegate under, if any."""
    attr = lower_first(model.name)
    if keyword.iskeyword(attr) or hasattr(PrismaClient, attr):
        return None
    return attr


def _field_context(f: Field) -> dict[str, Any]:
    py_type = python_type(f)
    required = f.is_required and py_type != "Any"
    if f.is_enum:
        convert = f"{f.type_name}(data[{f.name!r}]) if data.get({f.name!r}) is not None else None"
    else:
        convert = f"data.get({f.name!r})"
    return {
        "name": f.name,
        "py_name": python_name(f.name),
        "py_type": py_type,
        "annotation": py_type if required else f"{py_type} | None",
        "required": required,
        "convert": convert,
    }


def _model_context(model: Model) -> dict[str, Any]:
    fields = [_field_context(f) for f in model.scalar_fields]
    # dataclass fields without defaults come first
    fields.sort(key=lambda f: not f["required"])
    return {
        "name": model.name,
        "attr": delegate_attribute(model),
        "fields": fields,
        "unique_fields": [_field_context(f) for f in model.unique_fields],
    }


def build_client_context(datamodel: Datamodel, *, source: str, endpoint: str | None) -> dict[str, Any]:
    return {
        "datamodel_source": source,
        "endpoint": endpoint,
        "fingerprint": datamodel.fingerprint,
        "enums": [{"name": e.name, "values": list(e.values)} for e in datamodel.enums.values()],
        "models": [_model_context(m) for m in datamodel.models.values()],
    }


__all__ = ["build_client_context", "python_name", "python_type", "delegate_attribute"]
