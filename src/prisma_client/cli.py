"""
Command line entry point.

    prisma-client generate [-p prisma.yml] [--env-file .env]
    prisma-client validate [-p prisma.yml]
"""

from __future__ import annotations

import argparse
import sys

from .config.project import load_project
from .errors import PrismaClientError
from .generator import generate
from .schema.parser import load_datamodel


def _cmd_generate(args: argparse.Namespace) -> int:
    project = load_project(args.project, env_file=args.env_file)
    files = generate(project)
    if not files:
        print("No generate entries in project file")
    for f in files:
        print(f"Generated {f.generator} -> {f.path}")
    return 0


def _cmd_validate(args: argparse.Namespace) -> int:
    project = load_project(args.project, env_file=args.env_file)
    datamodel = load_datamodel(*project.datamodel_paths)
    for model in datamodel.models.values():
        unique = ", ".join(f.name for f in model.unique_fields)
        print(
            f"{model.name}: {len(model.scalar_fields)} scalar, "
            f"{len(model.relation_fields)} relation field(s); unique: {unique}"
        )
    for enum in datamodel.enums.values():
        print(f"enum {enum.name}: {', '.join(enum.values)}")
    print(f"Datamodel OK ({datamodel.fingerprint[:12]})")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="prisma-client",
        description="Generate and validate clients for a Prisma data service",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    for name, handler, help_text in (
        ("generate", _cmd_generate, "Run the project's generate entries"),
        ("validate", _cmd_validate, "Check the project file and datamodel"),
    ):
        sub = subparsers.add_parser(name, help=help_text)
        sub.add_argument(
            "-p",
            "--project",
            type=str,
            default=None,
            help="Path to prisma.yml or its directory (default: search upwards from the current directory)",
        )
        sub.add_argument(
            "--env-file",
            type=str,
            default=None,
            help="Load environment variables from this .env file first",
        )
        sub.set_defaults(handler=handler)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        return args.handler(args)
    except PrismaClientError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
