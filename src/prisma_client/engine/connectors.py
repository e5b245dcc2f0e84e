"""
Connector capabilities.

The local engine imitates one of the service's database connectors. The
only behavior that differs between them is whether a nested write runs
inside a transaction.
"""

from __future__ import annotations

from dataclasses import dataclass

from ..errors import InvalidConfigError


@dataclass(frozen=True)
class ConnectorCapabilities:
    name: str
    supports_transactions: bool


POSTGRES = ConnectorCapabilities("postgres", supports_transactions=True)
MYSQL = ConnectorCapabilities("mysql", supports_transactions=True)
MONGO = ConnectorCapabilities("mongo", supports_transactions=False)

CONNECTORS: dict[str, ConnectorCapabilities] = {c.name: c for c in (POSTGRES, MYSQL, MONGO)}


def get_connector(name: str | ConnectorCapabilities) -> ConnectorCapabilities:
    if isinstance(name, ConnectorCapabilities):
        return name
    try:
        return CONNECTORS[name]
    except KeyError:
        raise InvalidConfigError(f"Unknown connector: {name}. Must be one of {sorted(CONNECTORS)}") from None


__all__ = ["ConnectorCapabilities", "CONNECTORS", "POSTGRES", "MYSQL", "MONGO", "get_connector"]
