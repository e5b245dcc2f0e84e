"""
Base types for configuration.
"""

from __future__ import annotations

from typing import Literal

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
LogFormat = Literal["text", "json"]
ConnectorName = Literal["postgres", "mysql", "mongo"]


__all__ = ["LogLevel", "LogFormat", "ConnectorName"]
