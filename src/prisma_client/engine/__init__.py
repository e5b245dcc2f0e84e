"""
Local execution engine.

Runs operations against in-memory tables with the same contract as the
data service, imitating a chosen connector's transaction support.
"""

from .connectors import CONNECTORS, MONGO, MYSQL, POSTGRES, ConnectorCapabilities, get_connector
from .executor import MutationExecutor, WriteStep
from .filters import matches, scalar_matches
from .store import MemoryStore, StoreSnapshot, normalize_value

__all__ = [
    "ConnectorCapabilities",
    "CONNECTORS",
    "POSTGRES",
    "MYSQL",
    "MONGO",
    "get_connector",
    "MemoryStore",
    "StoreSnapshot",
    "normalize_value",
    "matches",
    "scalar_matches",
    "MutationExecutor",
    "WriteStep",
]
