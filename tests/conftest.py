"""
Shared test fixtures and fakes for prisma-client tests.

This module provides:
- A sample blog datamodel (users, posts, profiles, tags)
- In-memory clients for transactional and non-transactional connectors
- A fake aiohttp session for HTTP transport tests
- A recording transport for client tests
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any

import pytest

from prisma_client.client import PrismaClient
from prisma_client.config import ClientConfig, EngineConfig, LoggingConfig, Settings, reset_settings
from prisma_client.errors import ErrorContext
from prisma_client.operations import Operation
from prisma_client.schema import parse_datamodel

# =============================================================================
# Datamodel
# =============================================================================

SAMPLE_DATAMODEL = """
enum Role {
  ADMIN
  EDITOR
  READER
}

type User {
  id: ID! @id
  email: String! @unique
  name: String
  role: Role! @default(value: READER)
  karma: Int! @default(value: 0)
  posts: [Post!]! @relation(name: "UserPosts", onDelete: CASCADE)
  profile: Profile @relation(name: "UserProfile", onDelete: CASCADE)
  createdAt: DateTime! @createdAt
  updatedAt: DateTime! @updatedAt
}

type Post {
  id: ID! @id
  slug: String! @unique
  title: String!
  published: Boolean! @default(value: false)
  author: User! @relation(name: "UserPosts")
  tags: [Tag!]!
  createdAt: DateTime! @createdAt
}

type Profile {
  id: ID! @id
  bio: String
  user: User! @relation(name: "UserProfile")
}

type Tag {
  id: ID! @id
  label: String! @unique
  posts: [Post!]!
}
"""


@pytest.fixture
def datamodel():
    """The sample datamodel, parsed."""
    return parse_datamodel(SAMPLE_DATAMODEL)


def make_settings(
    connector: str = "postgres",
    *,
    validate_operations: bool = True,
    log_writes: bool = False,
) -> Settings:
    """Settings that never depend on the environment."""
    return Settings(
        client=ClientConfig(endpoint=None, secret=None, validate_operations=validate_operations),
        engine=EngineConfig(connector=connector),
        logging=LoggingConfig(level="WARNING", log_writes=log_writes),
    )


@pytest.fixture
def settings():
    return make_settings()


@pytest.fixture
def client(datamodel):
    """Client backed by the local engine with a transactional connector."""
    return PrismaClient.in_memory(datamodel, settings=make_settings("postgres"))


@pytest.fixture
def mongo_client(datamodel):
    """Client backed by the local engine with a connector without transactions."""
    return PrismaClient.in_memory(datamodel, settings=make_settings("mongo"))


@pytest.fixture(autouse=True)
def _reset_global_settings():
    reset_settings()
    yield
    reset_settings()


# =============================================================================
# Fake aiohttp session
# =============================================================================


@dataclass
class FakeResponse:
    """Minimal stand-in for aiohttp.ClientResponse."""

    status: int = 200
    body: Any = None
    headers: dict[str, str] = field(default_factory=dict)
    raw_text: str | None = None

    async def text(self) -> str:
        if self.raw_text is not None:
            return self.raw_text
        return "" if self.body is None else json.dumps(self.body)

    async def __aenter__(self) -> FakeResponse:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        return None


class FakeSession:
    """
    Records POSTs and replays queued responses.

    Queue entries may be FakeResponse objects or exceptions to raise.
    """

    def __init__(self, *responses: FakeResponse | Exception) -> None:
        self.responses = list(responses)
        self.requests: list[dict[str, Any]] = []
        self.closed = False

    def post(self, url: str, *, json: Any = None, headers: dict[str, str] | None = None) -> FakeResponse:
        self.requests.append({"url": url, "json": json, "headers": dict(headers or {})})
        if not self.responses:
            raise AssertionError("FakeSession has no queued response")
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    async def close(self) -> None:
        self.closed = True


def make_data_response(data: dict[str, Any], status: int = 200) -> FakeResponse:
    return FakeResponse(status=status, body={"data": data})


def make_error_response(message: str, status: int = 200) -> FakeResponse:
    return FakeResponse(status=status, body={"data": None, "errors": [{"message": message}]})


# =============================================================================
# Recording transport
# =============================================================================


class RecordingTransport:
    """Transport that records operations and returns canned results."""

    def __init__(self, *results: Any) -> None:
        self.results = list(results)
        self.operations: list[Operation] = []
        self.contexts: list[ErrorContext | None] = []
        self.closed = False

    async def execute(self, operation: Operation, *, context: ErrorContext | None = None) -> Any:
        self.operations.append(operation)
        self.contexts.append(context)
        result = self.results.pop(0) if self.results else None
        if isinstance(result, Exception):
            raise result
        return result

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def recording_transport():
    return RecordingTransport()
