"""
Settings master configuration and global helpers.
"""

from __future__ import annotations

import dataclasses
import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import jsonschema
import yaml
from dotenv import find_dotenv, load_dotenv

from ..config_schema import CONFIG_SCHEMA
from ..errors import InvalidConfigError
from .client import ClientConfig
from .engine import EngineConfig
from .logging import LoggingConfig


@dataclass
class Settings:
    """
    Master configuration for the client.

    This aggregates all configuration sections into a single object
    that can be loaded from environment variables, files, or constructed
    programmatically.
    """

    # Service connection
    client: ClientConfig = field(default_factory=ClientConfig)

    # Local engine
    engine: EngineConfig = field(default_factory=EngineConfig)

    # Logging configuration
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def from_env(cls, prefix: str = "PRISMA_") -> Settings:
        """
        Load settings from environment variables.

        Environment variables are prefixed (default: PRISMA_).

        Example:
            PRISMA_ENDPOINT=http://localhost:4466/blog/dev
            PRISMA_SECRET=my-secret
            PRISMA_TIMEOUT=10
            PRISMA_LOG_LEVEL=DEBUG
        """
        client: dict[str, Any] = {}
        engine: dict[str, Any] = {}
        log: dict[str, Any] = {}

        try:
            # Client settings
            if endpoint := os.getenv(f"{prefix}ENDPOINT"):
                client["endpoint"] = endpoint
            if secret := os.getenv(f"{prefix}SECRET"):
                client["secret"] = secret
            if token := os.getenv(f"{prefix}TOKEN"):
                client["token"] = token
            if timeout := os.getenv(f"{prefix}TIMEOUT"):
                client["timeout"] = float(timeout)
            if max_retries := os.getenv(f"{prefix}MAX_RETRIES"):
                client["max_retries"] = int(max_retries)
            if retry_mutations := os.getenv(f"{prefix}RETRY_MUTATIONS"):
                client["retry_mutations"] = retry_mutations.lower() == "true"

            # Engine settings
            if connector := os.getenv(f"{prefix}CONNECTOR"):
                engine["connector"] = connector.lower()

            # Logging settings
            if level := os.getenv(f"{prefix}LOG_LEVEL"):
                log["level"] = level.upper()
            if log_format := os.getenv(f"{prefix}LOG_FORMAT"):
                log["format"] = log_format.lower()

            return cls(client=ClientConfig(**client), engine=EngineConfig(**engine), logging=LoggingConfig(**log))
        except ValueError as e:
            raise InvalidConfigError(f"Invalid {prefix}* environment: {e}", cause=e) from e

    @classmethod
    def from_file(cls, path: str | Path) -> Settings:
        """
        Load settings from a YAML or TOML file.

        Args:
            path: Path to configuration file (.yaml, .yml, or .toml)

        Returns:
            Settings object with values from file
        """
        path = Path(path)

        if not path.exists():
            raise FileNotFoundError(f"Configuration file not found: {path}")

        suffix = path.suffix.lower()

        if suffix in (".yaml", ".yml"):
            with open(path) as f:
                data = yaml.safe_load(f) or {}
        elif suffix == ".toml":
            with open(path, "rb") as f:
                data = tomllib.load(f)
        else:
            raise ValueError(f"Unsupported config file format: {suffix}")

        return cls._from_dict(data)

    @classmethod
    def _from_dict(cls, data: dict[str, Any]) -> Settings:
        """
        Create Settings from a dictionary.

        The dictionary is validated against the configuration schema
        before the Settings object is built.
        """
        try:
            jsonschema.validate(instance=data, schema=CONFIG_SCHEMA)
        except jsonschema.ValidationError as e:
            raise InvalidConfigError(f"Configuration validation failed: {e.message}", cause=e) from e

        settings = cls()

        try:
            if "client" in data:
                settings.client = ClientConfig(**{**dataclasses.asdict(settings.client), **data["client"]})
            if "engine" in data:
                settings.engine = EngineConfig(**data["engine"])
            if "logging" in data:
                settings.logging = LoggingConfig(**{**dataclasses.asdict(settings.logging), **data["logging"]})
        except ValueError as e:
            raise InvalidConfigError(f"Configuration validation failed: {e}", cause=e) from e

        return settings

    def to_dict(self) -> dict[str, Any]:
        """Convert settings to dictionary."""

        def convert(obj):
            if dataclasses.is_dataclass(obj):
                return {k: convert(v) for k, v in dataclasses.asdict(obj).items()}
            elif isinstance(obj, Path):
                return str(obj)
            return obj

        return convert(self)


# =============================================================================
# Global Settings & Helpers
# =============================================================================

_global_settings: Settings | None = None


def get_settings() -> Settings:
    """Get the global settings instance, creating with defaults if needed."""
    global _global_settings
    if _global_settings is None:
        _global_settings = Settings.from_env()
    return _global_settings


def configure(settings: Settings | None = None, **kwargs) -> Settings:
    """
    Configure global settings.

    Args:
        settings: Settings object to use globally
        **kwargs: Override specific settings sections

    Returns:
        The configured Settings object
    """
    global _global_settings

    if settings is not None:
        _global_settings = settings
    elif _global_settings is None:
        _global_settings = Settings.from_env()

    for key, value in kwargs.items():
        if hasattr(_global_settings, key):
            setattr(_global_settings, key, value)

    return _global_settings


def reset_settings() -> None:
    """Drop the global settings so the next `get_settings()` reloads them."""
    global _global_settings
    _global_settings = None


def load_env(path: str | None = None, *, override: bool = False) -> bool:
    """
    Load environment variables from a .env file.

    Args:
        path: Optional path to a .env file. If not provided, uses find_dotenv().
        override: Whether to override existing environment variables.

    Returns:
        True if a .env file was found and loaded, False otherwise.
    """
    env_path = path or find_dotenv(usecwd=True)
    if not env_path:
        return False
    return load_dotenv(env_path, override=override)


__all__ = ["Settings", "get_settings", "configure", "reset_settings", "load_env"]
