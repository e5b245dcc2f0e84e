"""
Project file (`prisma.yml`) loading.

    endpoint: ${env:PRISMA_ENDPOINT}
    datamodel: datamodel.prisma
    secret: ${env:PRISMA_SECRET}
    generate:
      - generator: python-client
        output: ./generated/

`${env:NAME}` references are replaced by environment variables before the
file is validated; an unset variable is an error.
"""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import jsonschema
import yaml

from ..config_schema import PROJECT_SCHEMA
from ..errors import InvalidConfigError, MissingEnvVarError
from .settings import load_env

logger = logging.getLogger(__name__)

DEFAULT_PROJECT_FILE = "prisma.yml"

_ENV_PATTERN = re.compile(r"\$\{env:([A-Za-z_][A-Za-z0-9_]*)\}")


def interpolate_env(value: Any, environ: dict[str, str] | None = None) -> Any:
    """
    Replace `${env:NAME}` references in strings, recursively.

    Raises:
        MissingEnvVarError: A referenced variable is not set
    """
    env = os.environ if environ is None else environ

    if isinstance(value, str):

        def substitute(match: re.Match) -> str:
            name = match.group(1)
            if name not in env:
                raise MissingEnvVarError(env_var=name)
            return env[name]

        return _ENV_PATTERN.sub(substitute, value)
    if isinstance(value, dict):
        return {k: interpolate_env(v, env) for k, v in value.items()}
    if isinstance(value, list):
        return [interpolate_env(v, env) for v in value]
    return value


@dataclass
class GeneratorEntry:
    """One `generate` entry: which generator to run and where it writes."""

    generator: str
    output: str


@dataclass
class ProjectConfig:
    """A parsed project file."""

    datamodel: list[str]
    endpoint: str | None = None
    secret: str | None = None
    database_type: str | None = None
    generate: list[GeneratorEntry] = field(default_factory=list)
    root: Path = field(default_factory=Path.cwd)

    @property
    def datamodel_paths(self) -> list[Path]:
        """Datamodel files, resolved relative to the project directory."""
        return [self.resolve(p) for p in self.datamodel]

    def resolve(self, path: str | Path) -> Path:
        p = Path(path)
        return p if p.is_absolute() else self.root / p

    @classmethod
    def from_dict(
        cls,
        data: dict[str, Any],
        *,
        root: Path | None = None,
        environ: dict[str, str] | None = None,
    ) -> ProjectConfig:
        data = interpolate_env(data, environ)
        try:
            jsonschema.validate(instance=data, schema=PROJECT_SCHEMA)
        except jsonschema.ValidationError as e:
            raise InvalidConfigError(f"Invalid project file: {e.message}", cause=e) from e

        datamodel = data["datamodel"]
        if isinstance(datamodel, str):
            datamodel = [datamodel]

        for key in ("hooks", "seed"):
            if key in data:
                logger.debug("Ignoring project file section %r", key)

        return cls(
            datamodel=list(datamodel),
            endpoint=data.get("endpoint"),
            secret=data.get("secret"),
            database_type=data.get("databaseType"),
            generate=[GeneratorEntry(**entry) for entry in data.get("generate", [])],
            root=root or Path.cwd(),
        )


def find_project_file(start: str | Path | None = None) -> Path | None:
    """Search `start` and its parents for a project file."""
    current = Path(start or Path.cwd()).resolve()
    for directory in (current, *current.parents):
        candidate = directory / DEFAULT_PROJECT_FILE
        if candidate.is_file():
            return candidate
    return None


def load_project(
    path: str | Path | None = None,
    *,
    env_file: str | None = None,
    environ: dict[str, str] | None = None,
) -> ProjectConfig:
    """
    Load and validate a project file.

    Args:
        path: Project file, or a directory containing `prisma.yml`. When
            omitted the current directory and its parents are searched.
        env_file: A .env file to load before interpolation. Without it,
            a `.env` next to the project file is loaded if present.
        environ: Mapping used for `${env:NAME}` instead of `os.environ`

    Raises:
        ConfigError: The file is missing or invalid
        MissingEnvVarError: A `${env:NAME}` reference is not set
    """
    if path is None:
        found = find_project_file()
        if found is None:
            raise InvalidConfigError(f"No {DEFAULT_PROJECT_FILE} found in {Path.cwd()} or its parents")
        project_path = found
    else:
        project_path = Path(path)
        if project_path.is_dir():
            project_path = project_path / DEFAULT_PROJECT_FILE

    if not project_path.is_file():
        raise InvalidConfigError(f"Project file not found: {project_path}")

    if env_file:
        load_env(env_file)
    elif (project_path.parent / ".env").is_file():
        load_env(str(project_path.parent / ".env"))

    try:
        with open(project_path) as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise InvalidConfigError(f"Could not parse {project_path}: {e}", cause=e) from e
    if not isinstance(data, dict):
        raise InvalidConfigError(f"{project_path} must contain a mapping")

    logger.debug("Loaded project file %s", project_path)
    return ProjectConfig.from_dict(data, root=project_path.parent.resolve(), environ=environ)


__all__ = [
    "DEFAULT_PROJECT_FILE",
    "GeneratorEntry",
    "ProjectConfig",
    "interpolate_env",
    "find_project_file",
    "load_project",
]
