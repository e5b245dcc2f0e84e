"""
Configuration of the local in-memory engine.
"""

from __future__ import annotations

from dataclasses import dataclass

from .base import ConnectorName


@dataclass
class EngineConfig:
    """Which connector the in-memory engine imitates."""

    connector: ConnectorName = "postgres"

    def __post_init__(self):
        valid = ("postgres", "mysql", "mongo")
        if self.connector not in valid:
            raise ValueError(f"Invalid connector: {self.connector}. Must be one of {valid}")


__all__ = ["EngineConfig"]
