"""
Configuration system for prisma-client.

This package provides typed configuration classes with:
- Dataclass-based settings with validation
- Environment variable loading
- YAML/TOML file loading
- Project file (`prisma.yml`) loading with `${env:NAME}` interpolation
"""

from .base import ConnectorName, LogFormat, LogLevel
from .client import ClientConfig
from .engine import EngineConfig
from .logging import LoggingConfig
from .project import DEFAULT_PROJECT_FILE, GeneratorEntry, ProjectConfig, find_project_file, interpolate_env, load_project
from .settings import Settings, configure, get_settings, load_env, reset_settings

__all__ = [
    # Types
    "ConnectorName",
    "LogLevel",
    "LogFormat",
    # Section configs
    "ClientConfig",
    "EngineConfig",
    "LoggingConfig",
    # Master config
    "Settings",
    # Project file
    "DEFAULT_PROJECT_FILE",
    "GeneratorEntry",
    "ProjectConfig",
    "find_project_file",
    "interpolate_env",
    "load_project",
    # Global functions
    "get_settings",
    "configure",
    "reset_settings",
    "load_env",
]
