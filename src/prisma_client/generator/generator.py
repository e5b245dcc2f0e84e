"""
Code generation driven by the project file's `generate` entries.

    generate:
      - generator: python-client
        output: ./generated/prisma_client.py
      - generator: graphql-schema
        output: ./generated/

An output ending in `/`, or naming an existing directory, receives the
generator's default file name.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path

from ..config.project import GeneratorEntry, ProjectConfig
from ..errors import GeneratorError, UnsupportedGeneratorError
from ..schema.parser import load_datamodel
from ..schema.types import Datamodel
from .graphql_schema import build_api_schema
from .python_client import build_client_context
from .templates import TemplateLoader

logger = logging.getLogger(__name__)


@dataclass
class GeneratedFile:
    generator: str
    path: Path
    content: str
    fingerprint: str


class Generator(ABC):
    """Renders one kind of output for a datamodel."""

    name: str = "base"
    default_filename: str = ""
    template_id: str = ""

    def __init__(self, loader: TemplateLoader | None = None) -> None:
        self.loader = loader or TemplateLoader()

    def header(self, datamodel: Datamodel) -> str:
        return (
            f"# Code generated by prisma-client ({self.name}). DO NOT EDIT.\n"
            f"# datamodel fingerprint: {datamodel.fingerprint}"
        )

    @abstractmethod
    def context(self, datamodel: Datamodel, project: ProjectConfig) -> dict:
        ...

    def render(self, datamodel: Datamodel, project: ProjectConfig) -> str:
        context = {"header": self.header(datamodel), **self.context(datamodel, project)}
        return self.loader.render(self.template_id, context).text


class PythonClientGenerator(Generator):
    name = "python-client"
    default_filename = "prisma_client.py"
    template_id = "python_client.py"

    def context(self, datamodel: Datamodel, project: ProjectConfig) -> dict:
        if datamodel.source is None:
            raise GeneratorError("python-client needs the datamodel source text")
        return build_client_context(datamodel, source=datamodel.source, endpoint=project.endpoint)


class GraphQLSchemaGenerator(Generator):
    name = "graphql-schema"
    default_filename = "prisma.graphql"
    template_id = "prisma.graphql"

    def context(self, datamodel: Datamodel, project: ProjectConfig) -> dict:
        return build_api_schema(datamodel)


GENERATORS: dict[str, type[Generator]] = {
    PythonClientGenerator.name: PythonClientGenerator,
    GraphQLSchemaGenerator.name: GraphQLSchemaGenerator,
}


def get_generator(name: str, loader: TemplateLoader | None = None) -> Generator:
    try:
        return GENERATORS[name](loader)
    except KeyError:
        raise UnsupportedGeneratorError(generator=name) from None


def resolve_output(project: ProjectConfig, entry: GeneratorEntry, default_filename: str) -> Path:
    path = project.resolve(entry.output)
    if entry.output.endswith(("/", "\\")) or path.is_dir():
        return path / default_filename
    return path


def generate(
    project: ProjectConfig,
    *,
    datamodel: Datamodel | None = None,
    write: bool = True,
) -> list[GeneratedFile]:
    """
    Run every `generate` entry of a project.

    Args:
        project: The loaded project file
        datamodel: Datamodel to use instead of loading the project's files
        write: Write outputs to disk (parent directories are created)

    Raises:
        UnsupportedGeneratorError: An entry names an unknown generator
        SchemaError: The datamodel is invalid
    """
    if not project.generate:
        logger.info("Project has no generate entries; nothing to do")
        return []

    # resolve every generator before writing anything
    generators = [(entry, get_generator(entry.generator)) for entry in project.generate]
    datamodel = datamodel or load_datamodel(*project.datamodel_paths)

    files = []
    for entry, generator in generators:
        path = resolve_output(project, entry, generator.default_filename)
        content = generator.render(datamodel, project)
        files.append(GeneratedFile(generator.name, path, content, datamodel.fingerprint))
        if write:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(content, encoding="utf-8")
            logger.info("Generated %s at %s", generator.name, path)
    return files


__all__ = [
    "GeneratedFile",
    "Generator",
    "PythonClientGenerator",
    "GraphQLSchemaGenerator",
    "GENERATORS",
    "get_generator",
    "resolve_output",
    "generate",
]
