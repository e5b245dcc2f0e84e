"""
Code generators for the project file's `generate` entries.
"""

from .generator import (
    GENERATORS,
    GeneratedFile,
    Generator,
    GraphQLSchemaGenerator,
    PythonClientGenerator,
    generate,
    get_generator,
    resolve_output,
)
from .graphql_schema import build_api_schema
from .templates import TemplateLoader

__all__ = [
    "GENERATORS",
    "GeneratedFile",
    "Generator",
    "GraphQLSchemaGenerator",
    "PythonClientGenerator",
    "TemplateLoader",
    "build_api_schema",
    "generate",
    "get_generator",
    "resolve_output",
]
