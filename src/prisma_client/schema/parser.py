"""
Parser for the datamodel SDL.

Supported subset:

    enum Role { ADMIN USER }

    type User {
      id: ID! @id
      email: String! @unique
      role: Role! @default(value: USER)
      posts: [Post!]! @relation(name: "UserPosts", onDelete: CASCADE)
      createdAt: DateTime! @createdAt
    }

A legacy `id: ID! @unique` field is taken as the id field when no `@id`
is declared.
"""

from __future__ import annotations

import json
import re
from collections.abc import Iterator
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from ..errors import DatamodelSyntaxError, SchemaError
from .types import Datamodel, Enum, Field, Model, OnDelete

_TOKEN_RE = re.compile(
    r"""
    (?P<ws>[ \t\r\n,]+)
  | (?P<comment>\#[^\n]*)
  | (?P<string>"(?:[^"\\\n]|\\.)*")
  | (?P<number>-?\d+(?:\.\d+)?(?:[eE][+-]?\d+)?)
  | (?P<name>[_A-Za-z][_0-9A-Za-z]*)
  | (?P<punct>[{}()\[\]:!@=])
    """,
    re.VERBOSE,
)

_FIELD_DIRECTIVES = {"id", "unique", "default", "relation", "createdAt", "updatedAt", "db"}
_TYPE_DIRECTIVES = {"db"}


@dataclass
class Token:
    kind: str
    value: str
    line: int
    column: int


def tokenize(text: str) -> Iterator[Token]:
    """Split SDL text into tokens, dropping whitespace, commas and comments."""
    pos = 0
    line = 1
    line_start = 0
    while pos < len(text):
        match = _TOKEN_RE.match(text, pos)
        if match is None:
            raise DatamodelSyntaxError(
                f"Unexpected character {text[pos]!r}", line=line, column=pos - line_start + 1
            )
        kind = match.lastgroup or ""
        value = match.group()
        if kind not in ("ws", "comment"):
            yield Token(kind, value, line, pos - line_start + 1)
        newlines = value.count("\n")
        if newlines:
            line += newlines
            line_start = pos + value.rfind("\n") + 1
        pos = match.end()
    yield Token("eof", "", line, pos - line_start + 1)


class _Parser:
    def __init__(self, text: str) -> None:
        self._tokens = list(tokenize(text))
        self._pos = 0

    # Token helpers

    @property
    def _current(self) -> Token:
        return self._tokens[self._pos]

    def _advance(self) -> Token:
        token = self._current
        if token.kind != "eof":
            self._pos += 1
        return token

    def _error(self, message: str, token: Token | None = None) -> DatamodelSyntaxError:
        token = token or self._current
        return DatamodelSyntaxError(message, line=token.line, column=token.column)

    def _expect(self, value: str) -> Token:
        token = self._current
        if token.value != value or token.kind not in ("punct", "name"):
            shown = token.value or "end of input"
            raise self._error(f"Expected '{value}' but found '{shown}'")
        return self._advance()

    def _expect_name(self) -> str:
        token = self._current
        if token.kind != "name":
            shown = token.value or "end of input"
            raise self._error(f"Expected a name but found '{shown}'")
        return self._advance().value

    def _peek(self, value: str) -> bool:
        return self._current.value == value and self._current.kind in ("punct", "name")

    # Grammar

    def parse(self) -> tuple[list[Model], list[Enum]]:
        models: list[Model] = []
        enums: list[Enum] = []
        while self._current.kind != "eof":
            keyword = self._current
            if self._peek("type"):
                models.append(self._parse_type())
            elif self._peek("enum"):
                enums.append(self._parse_enum())
            else:
                raise self._error(f"Expected 'type' or 'enum' but found '{keyword.value}'")
        return models, enums

    def _parse_enum(self) -> Enum:
        self._expect("enum")
        name = self._expect_name()
        self._expect("{")
        values: list[str] = []
        while not self._peek("}"):
            token = self._current
            value = self._expect_name()
            if value in values:
                raise self._error(f"Duplicate enum value {value}", token)
            values.append(value)
        self._expect("}")
        return Enum(name=name, values=values)

    def _parse_type(self) -> Model:
        self._expect("type")
        name = self._expect_name()
        for directive, _args, token in self._parse_directives():
            if directive == "embedded":
                raise SchemaError(f"Embedded types are not supported: {name}")
            if directive not in _TYPE_DIRECTIVES:
                raise self._error(f"Unknown type directive @{directive}", token)
        self._expect("{")
        fields: list[Field] = []
        while not self._peek("}"):
            fields.append(self._parse_field())
        self._expect("}")
        return Model(name=name, fields=fields)

    def _parse_field(self) -> Field:
        name = self._expect_name()
        self._expect(":")
        type_name, is_list, is_required = self._parse_type_ref()
        f = Field(name=name, type_name=type_name, is_list=is_list, is_required=is_required)

        for directive, args, token in self._parse_directives():
            if directive not in _FIELD_DIRECTIVES:
                raise self._error(f"Unknown field directive @{directive}", token)
            if directive == "id":
                f.is_id = True
            elif directive == "unique":
                f.is_unique = True
            elif directive == "default":
                if "value" not in args:
                    raise self._error("@default requires a value argument", token)
                f.default = args["value"]
                f.has_default = True
            elif directive == "relation":
                if "name" in args:
                    f.relation_name = str(args["name"])
                if "onDelete" in args:
                    try:
                        f.on_delete = OnDelete(str(args["onDelete"]))
                    except ValueError:
                        raise self._error(f"Invalid onDelete value {args['onDelete']!r}", token) from None
            elif directive == "createdAt":
                f.is_created_at = True
            elif directive == "updatedAt":
                f.is_updated_at = True
        return f

    def _parse_type_ref(self) -> tuple[str, bool, bool]:
        if self._peek("["):
            self._advance()
            if self._peek("["):
                raise self._error("Nested list types are not supported")
            type_name = self._expect_name()
            if self._peek("!"):
                self._advance()
            self._expect("]")
            is_required = False
            if self._peek("!"):
                self._advance()
                is_required = True
            return type_name, True, is_required
        type_name = self._expect_name()
        is_required = False
        if self._peek("!"):
            self._advance()
            is_required = True
        return type_name, False, is_required

    def _parse_directives(self) -> list[tuple[str, dict[str, Any], Token]]:
        directives = []
        while self._peek("@"):
            token = self._advance()
            name = self._expect_name()
            args: dict[str, Any] = {}
            if self._peek("("):
                self._advance()
                while not self._peek(")"):
                    arg_name = self._expect_name()
                    self._expect(":")
                    args[arg_name] = self._parse_value()
                self._expect(")")
            directives.append((name, args, token))
        return directives

    def _parse_value(self) -> Any:
        token = self._current
        if token.kind == "string":
            self._advance()
            return json.loads(token.value)
        if token.kind == "number":
            self._advance()
            if re.fullmatch(r"-?\d+", token.value):
                return int(token.value)
            return float(token.value)
        if token.kind == "name":
            self._advance()
            if token.value == "true":
                return True
            if token.value == "false":
                return False
            if token.value == "null":
                return None
            return token.value
        if self._peek("["):
            self._advance()
            values = []
            while not self._peek("]"):
                values.append(self._parse_value())
            self._expect("]")
            return values
        shown = token.value or "end of input"
        raise self._error(f"Expected a value but found '{shown}'")


def parse_datamodel(text: str) -> Datamodel:
    """
    Parse SDL text into a resolved `Datamodel`.

    Raises:
        DatamodelSyntaxError: The text is not valid SDL
        SchemaError: The datamodel is semantically invalid
    """
    models, enums = _Parser(text).parse()
    return Datamodel(models, enums, source=text)


def load_datamodel(*paths: str | Path) -> Datamodel:
    """Read and parse one or more datamodel files as a single datamodel."""
    if not paths:
        raise SchemaError("No datamodel files given")
    chunks = []
    for path in paths:
        path = Path(path)
        if not path.exists():
            raise SchemaError(f"Datamodel file not found: {path}")
        chunks.append(path.read_text(encoding="utf-8"))
    return parse_datamodel("\n".join(chunks))


__all__ = ["Token", "tokenize", "parse_datamodel", "load_datamodel"]
