"""
Top-level package for prisma-client.

An async Python client for Prisma data services: typed nested-write
directives, one delegate per model, GraphQL over aiohttp, a local
in-memory engine and code generation from `prisma.yml`.
"""

from .client import ModelDelegate, PrismaClient
from .config import Settings, configure, get_settings, load_env, load_project
from .errors import (
    GraphQLError,
    NestedWriteError,
    PrismaClientError,
    RecordNotFoundError,
    RelationViolationError,
    TransportError,
    UniqueConstraintError,
    ValidationError,
)
from .hooks import HookManager, InMemoryMetricsHook
from .inputs import Connect, Create, Delete, Disconnect, Set, Update, Upsert
from .operations import BatchPayload, Operation, OperationKind
from .schema import Datamodel, load_datamodel, parse_datamodel
from .transport import HttpTransport, MemoryTransport

__version__ = "0.1.0"

__all__ = [
    "PrismaClient",
    "ModelDelegate",
    "Operation",
    "OperationKind",
    "BatchPayload",
    # Nested writes
    "Create",
    "Connect",
    "Update",
    "Upsert",
    "Delete",
    "Disconnect",
    "Set",
    # Datamodel
    "Datamodel",
    "parse_datamodel",
    "load_datamodel",
    # Transports
    "HttpTransport",
    "MemoryTransport",
    # Config
    "Settings",
    "configure",
    "get_settings",
    "load_env",
    "load_project",
    # Hooks
    "HookManager",
    "InMemoryMetricsHook",
    # Errors
    "PrismaClientError",
    "TransportError",
    "GraphQLError",
    "ValidationError",
    "RecordNotFoundError",
    "UniqueConstraintError",
    "RelationViolationError",
    "NestedWriteError",
]
