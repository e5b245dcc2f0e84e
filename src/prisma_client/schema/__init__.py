"""
Datamodel parsing and resolution.
"""

from .naming import camel_case, lower_first, pluralize, snake_case, upper_first
from .parser import load_datamodel, parse_datamodel
from .types import (
    SCALAR_TYPE_NAMES,
    Datamodel,
    Enum,
    Field,
    FieldKind,
    Model,
    OnDelete,
    Relation,
    ScalarType,
)

__all__ = [
    "Datamodel",
    "Enum",
    "Field",
    "FieldKind",
    "Model",
    "OnDelete",
    "Relation",
    "ScalarType",
    "SCALAR_TYPE_NAMES",
    "parse_datamodel",
    "load_datamodel",
    "pluralize",
    "lower_first",
    "upper_first",
    "snake_case",
    "camel_case",
]
