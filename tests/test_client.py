"""
Tests for PrismaClient and its model delegates.
"""
import asyncio

import pytest

from prisma_client import HookManager, InMemoryMetricsHook, PrismaClient
from prisma_client.client import count_nested_writes
from prisma_client.errors import (
    InvalidConfigError,
    InvalidSelectorError,
    MissingRequiredFieldError,
    RecordNotFoundError,
    UnknownModelError,
)
from prisma_client.inputs import Connect, Create, Update, Upsert
from prisma_client.logging import StructuredLogger
from prisma_client.operations import BatchPayload, OperationKind
from prisma_client.transport import HttpTransport, MemoryTransport

from conftest import RecordingTransport, make_settings


def make_client(datamodel, *results, **kwargs):
    transport = RecordingTransport(*results)
    client = PrismaClient(datamodel, transport=transport, settings=kwargs.pop("settings", make_settings()), **kwargs)
    return client, transport


class TestConstruction:
    """Test client construction."""

    def test_delegates_per_model(self, datamodel):
        client, _ = make_client(datamodel)

        assert client.user.name == "User"
        assert client.post.name == "Post"
        assert client.model("Tag") is client.tag
        assert repr(client.profile) == "<ModelDelegate Profile>"

    def test_accepts_sdl_text(self, datamodel):
        client = PrismaClient(datamodel.source, transport=RecordingTransport(), settings=make_settings())
        assert set(client.datamodel.models) == {"User", "Post", "Profile", "Tag"}

    def test_unknown_model(self, datamodel):
        client, _ = make_client(datamodel)

        with pytest.raises(UnknownModelError):
            client.model("Comment")

    def test_clashing_model_name_only_reachable_by_name(self):
        client = PrismaClient(
            "type Model { id: ID! @id } type Class { id: ID! @id }",
            transport=RecordingTransport(),
            settings=make_settings(),
        )

        assert client.model("Model").name == "Model"
        assert callable(client.model)
        assert client.model("Class").name == "Class"
        assert not hasattr(client, "class")

    def test_default_transport_is_http(self, datamodel):
        client = PrismaClient(datamodel, endpoint="http://localhost:4466/blog/dev", settings=make_settings())

        assert isinstance(client.transport, HttpTransport)
        assert client.endpoint == "http://localhost:4466/blog/dev"

    def test_http_transport_needs_endpoint(self, datamodel):
        with pytest.raises(InvalidConfigError):
            PrismaClient(datamodel, settings=make_settings())

    def test_in_memory(self, datamodel):
        client = PrismaClient.in_memory(datamodel, connector="mongo", settings=make_settings())

        assert isinstance(client.transport, MemoryTransport)
        assert not client.transport.executor.connector.supports_transactions
        assert client.endpoint is None

    def test_in_memory_uses_configured_connector(self, datamodel):
        client = PrismaClient.in_memory(datamodel, settings=make_settings("mysql"))
        assert client.transport.executor.connector.name == "mysql"


class TestDelegateCalls:
    """Each delegate method issues exactly one operation."""

    @pytest.mark.asyncio
    async def test_create(self, datamodel):
        client, transport = make_client(datamodel, {"id": "u1", "email": "a@b.c"})

        result = await client.user.create({"email": "a@b.c"}, select=["id", "email"])

        assert result == {"id": "u1", "email": "a@b.c"}
        [op] = transport.operations
        assert op.kind is OperationKind.CREATE
        assert op.model == "User"
        assert op.data == {"email": "a@b.c"}
        assert op.select == ["id", "email"]

    @pytest.mark.asyncio
    async def test_update_and_delete(self, datamodel):
        client, transport = make_client(datamodel, {"id": "u1"}, {"id": "u1"})

        await client.user.update({"email": "a@b.c"}, {"name": "A"})
        await client.user.delete({"id": "u1"})

        assert [op.kind for op in transport.operations] == [OperationKind.UPDATE, OperationKind.DELETE]
        assert transport.operations[0].where == {"email": "a@b.c"}
        assert transport.operations[1].where == {"id": "u1"}

    @pytest.mark.asyncio
    async def test_upsert(self, datamodel):
        client, transport = make_client(datamodel, {"id": "u1"})

        await client.user.upsert({"email": "a@b.c"}, create={"email": "a@b.c"}, update={"name": "A"})

        [op] = transport.operations
        assert op.create == {"email": "a@b.c"}
        assert op.update == {"name": "A"}

    @pytest.mark.asyncio
    async def test_batch_operations(self, datamodel):
        client, transport = make_client(datamodel, BatchPayload(3), BatchPayload(0))

        updated = await client.post.update_many({"published": True}, {"title_contains": "draft"})
        deleted = await client.post.delete_many()

        assert updated.count == 3
        assert deleted.count == 0
        assert transport.operations[1].where is None

    @pytest.mark.asyncio
    async def test_reads(self, datamodel):
        client, transport = make_client(datamodel, None, [])

        assert await client.user.find_unique({"id": "u1"}) is None
        assert await client.user.find_many(order_by="email_ASC", skip=1, first=2) == []
        op = transport.operations[1]
        assert (op.order_by, op.skip, op.first) == ("email_ASC", 1, 2)

    @pytest.mark.asyncio
    async def test_context_passed_to_transport(self, datamodel):
        client, transport = make_client(datamodel, {"id": "u1"})

        await client.user.delete({"id": "u1"})

        ctx = transport.contexts[0]
        assert ctx.request_id.startswith("req_")
        assert ctx.model == "User"
        assert ctx.operation == "delete"


class TestValidation:
    """Invalid operations never reach the transport."""

    @pytest.mark.asyncio
    async def test_invalid_selector(self, datamodel):
        client, transport = make_client(datamodel)

        with pytest.raises(InvalidSelectorError):
            await client.user.update({"name": "Alice"}, {"name": "B"})
        assert transport.operations == []

    @pytest.mark.asyncio
    async def test_missing_required_field(self, datamodel):
        client, transport = make_client(datamodel)

        with pytest.raises(MissingRequiredFieldError):
            await client.post.create({"slug": "a"})
        assert transport.operations == []

    @pytest.mark.asyncio
    async def test_validation_can_be_disabled(self, datamodel):
        client, transport = make_client(
            datamodel, {"id": "p"}, settings=make_settings(validate_operations=False)
        )

        await client.post.create({"slug": "a"})
        assert len(transport.operations) == 1


class TestHooks:
    """Test operation events."""

    @pytest.mark.asyncio
    async def test_start_and_end(self, datamodel):
        metrics = InMemoryMetricsHook()
        client, _ = make_client(datamodel, {"id": "u1"}, hooks=[metrics])

        await client.user.create({"email": "a@b.c"})

        snapshot = metrics.snapshot()
        assert snapshot["counters"] == {"operation.start": 1, "operation.end": 1}
        assert snapshot["operations"] == {"User.create": 1}
        assert len(snapshot["latencies_ms"]) == 1

    @pytest.mark.asyncio
    async def test_error_event(self, datamodel):
        metrics = InMemoryMetricsHook()
        client, _ = make_client(datamodel, RecordNotFoundError(model="User", where={"id": "x"}), hooks=HookManager([metrics]))

        with pytest.raises(RecordNotFoundError):
            await client.user.delete({"id": "x"})

        [error] = metrics.errors
        assert error["event"] == "operation.error"
        assert error["payload"]["error"]["error_type"] == "RecordNotFoundError"
        assert "operation.end" not in metrics.counters

    @pytest.mark.asyncio
    async def test_validation_errors_are_reported(self, datamodel):
        metrics = InMemoryMetricsHook()
        client, _ = make_client(datamodel, hooks=[metrics])

        with pytest.raises(InvalidSelectorError):
            await client.user.delete({"name": "x"})
        assert metrics.counters["operation.error"] == 1

    @pytest.mark.asyncio
    async def test_unexpected_errors_are_reported(self, datamodel, caplog):
        metrics = InMemoryMetricsHook()
        logger = StructuredLogger("prisma_client.tests.unexpected", level="DEBUG")
        client, _ = make_client(datamodel, RuntimeError("socket closed"), hooks=[metrics], logger=logger)

        with caplog.at_level("DEBUG", logger="prisma_client.tests.unexpected"):
            with pytest.raises(RuntimeError):
                await client.user.create({"email": "a@b.c"})

        [error] = metrics.errors
        assert error["payload"]["error"]["error_type"] == "RuntimeError"
        assert error["payload"]["error"]["message"] == "socket closed"
        assert any("create User failed" in r.getMessage() for r in caplog.records if r.levelname == "WARNING")


class PausingTransport(RecordingTransport):
    """Sleeps per email so that concurrent calls interleave."""

    def __init__(self, delays: dict[str, float]) -> None:
        super().__init__()
        self.delays = delays
        self.logger: StructuredLogger | None = None
        self.seen: list[tuple[str, str | None]] = []

    async def execute(self, operation, *, context=None):
        await asyncio.sleep(self.delays[operation.where["email"]])
        self.seen.append((context.request_id, self.logger.context.request_id))
        return await super().execute(operation, context=context)


class TestConcurrency:
    """Concurrent operations on one client keep separate log contexts."""

    @pytest.mark.asyncio
    async def test_log_context_does_not_leak(self, datamodel):
        transport = PausingTransport({"a@b.c": 0, "b@b.c": 0.01})
        client = PrismaClient(datamodel, transport=transport, settings=make_settings())
        transport.logger = client.logger

        await asyncio.gather(
            client.user.find_unique({"email": "a@b.c"}),
            client.user.find_unique({"email": "b@b.c"}),
        )

        assert len({request_id for request_id, _ in transport.seen}) == 2
        assert all(request_id == current for request_id, current in transport.seen)
        assert client.logger.context.request_id is None
        assert client.logger.context.model is None
        assert client.logger.context.trace_id is None


class TestInMemoryRoundTrip:
    """Test the client against the local engine."""

    @pytest.mark.asyncio
    async def test_blog_flow(self, client):
        alice = await client.user.create(
            {
                "email": "alice@example.com",
                "posts": Create([{"slug": "hello", "title": "Hello"}, {"slug": "draft", "title": "Draft"}]),
            }
        )
        await client.post.update({"slug": "hello"}, {"published": True})

        published = await client.post.find_many({"published": True, "author": {"id": alice["id"]}})
        assert [p["slug"] for p in published] == ["hello"]

        removed = await client.post.delete_many({"published": False})
        assert removed.count == 1

    @pytest.mark.asyncio
    async def test_context_manager_closes_transport(self, datamodel):
        transport = RecordingTransport()

        async with PrismaClient(datamodel, transport=transport, settings=make_settings()):
            pass

        assert transport.closed

    @pytest.mark.asyncio
    async def test_write_steps_are_logged(self, datamodel, caplog):
        logger = StructuredLogger("prisma_client.tests.writes", level="DEBUG", json_output=True)
        client = PrismaClient.in_memory(datamodel, settings=make_settings(log_writes=True), logger=logger)

        with caplog.at_level("DEBUG", logger="prisma_client.tests.writes"):
            await client.user.create({"email": "a@b.c", "profile": Create({"bio": "hi"})})

        writes = [r for r in caplog.records if '"event_type": "write"' in r.getMessage()]
        assert len(writes) == 3


class TestCountNestedWrites:
    """Test nested-write counting used in request logs."""

    def test_counts_every_depth(self, datamodel):
        user = datamodel.model("User")
        data = {
            "email": "a@b.c",
            "posts": [
                Create({"slug": "a", "title": "A", "tags": Connect([{"label": "x"}])}),
                Update(where={"slug": "b"}, data={"tags": Create({"label": "y"})}),
            ],
            "profile": Upsert(create={"bio": "a"}, update={"bio": "b"}),
        }

        assert count_nested_writes(datamodel, user, data) == 5

    def test_scalars_only(self, datamodel):
        assert count_nested_writes(datamodel, datamodel.model("User"), {"email": "a@b.c"}) == 0
