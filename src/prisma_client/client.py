"""
Async client for a Prisma data service.

Example:
    ```python
    datamodel = load_datamodel("datamodel.prisma")

    async with PrismaClient(datamodel, endpoint="http://localhost:4466/blog/dev") as prisma:
        user = await prisma.user.create({"email": "alice@example.com", "name": "Alice"})
        await prisma.user.update({"email": "alice@example.com"}, {"name": "Alice B."})
        batch = await prisma.post.delete_many({"published": False})
        print(batch.count)
    ```

Every delegate method issues exactly one call to the transport and
returns once it has answered.
"""

from __future__ import annotations

import dataclasses
import keyword
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from .config.project import load_project
from .config.settings import Settings, get_settings
from .errors import ErrorContext, PrismaClientError
from .graphql import query_hash, render_operation
from .hooks import Hook, HookManager
from .inputs import Create, Update, Upsert, is_relation_input, normalize_relation_input
from .logging import RequestLog, ResponseLog, StructuredLogger, timed, truncate_for_log
from .operations import BatchPayload, Operation, OperationKind
from .schema.naming import lower_first
from .schema.parser import load_datamodel, parse_datamodel
from .schema.types import Datamodel, Model
from .transport.base import Transport
from .transport.http import HttpTransport
from .transport.memory import MemoryTransport
from .validation import validate_operation


class ModelDelegate:
    """The operations of one model, bound to a client."""

    def __init__(self, client: PrismaClient, model: Model) -> None:
        self._client = client
        self.model = model

    @property
    def name(self) -> str:
        return self.model.name

    def __repr__(self) -> str:
        return f"<ModelDelegate {self.model.name}>"

    async def _run(self, kind: OperationKind, **kwargs: Any) -> Any:
        return await self._client.execute(Operation(kind=kind, model=self.model.name, **kwargs))

    # Mutations

    async def create(self, data: Mapping[str, Any], *, select: list[str] | None = None) -> dict[str, Any]:
        """Create a record, applying any nested writes in `data`. Returns its scalar fields."""
        return await self._run(OperationKind.CREATE, data=dict(data), select=select)

    async def update(
        self,
        where: Mapping[str, Any],
        data: Mapping[str, Any],
        *,
        select: list[str] | None = None,
    ) -> dict[str, Any]:
        """
        Update the record selected by one unique field.

        Raises:
            RecordNotFoundError: No record matches `where`
        """
        return await self._run(OperationKind.UPDATE, where=dict(where), data=dict(data), select=select)

    async def delete(self, where: Mapping[str, Any], *, select: list[str] | None = None) -> dict[str, Any]:
        """
        Delete the record selected by one unique field.

        Returns the record as it was before deletion.

        Raises:
            RecordNotFoundError: No record matches `where`
        """
        return await self._run(OperationKind.DELETE, where=dict(where), select=select)

    async def upsert(
        self,
        where: Mapping[str, Any],
        *,
        create: Mapping[str, Any],
        update: Mapping[str, Any],
        select: list[str] | None = None,
    ) -> dict[str, Any]:
        """Update the record matching `where` or, if there is none, create one."""
        return await self._run(
            OperationKind.UPSERT,
            where=dict(where),
            create=dict(create),
            update=dict(update),
            select=select,
        )

    async def update_many(self, data: Mapping[str, Any], where: Mapping[str, Any] | None = None) -> BatchPayload:
        """Update every record matching `where`. Zero matches is a count of 0."""
        return await self._run(
            OperationKind.UPDATE_MANY,
            data=dict(data),
            where=dict(where) if where is not None else None,
        )

    async def delete_many(self, where: Mapping[str, Any] | None = None) -> BatchPayload:
        """Delete every record matching `where`. Zero matches is a count of 0."""
        return await self._run(OperationKind.DELETE_MANY, where=dict(where) if where is not None else None)

    # Reads

    async def find_unique(self, where: Mapping[str, Any], *, select: list[str] | None = None) -> dict[str, Any] | None:
        return await self._run(OperationKind.FIND_UNIQUE, where=dict(where), select=select)

    async def find_many(
        self,
        where: Mapping[str, Any] | None = None,
        *,
        order_by: str | None = None,
        skip: int | None = None,
        first: int | None = None,
        select: list[str] | None = None,
    ) -> list[dict[str, Any]]:
        return await self._run(
            OperationKind.FIND_MANY,
            where=dict(where) if where is not None else None,
            order_by=order_by,
            skip=skip,
            first=first,
            select=select,
        )


class PrismaClient:
    """
    Client exposing one delegate per model (`client.user`, `client.post`).

    Args:
        datamodel: Parsed datamodel, or datamodel SDL text
        transport: Transport to send operations through. Defaults to an
            `HttpTransport` for `endpoint`
        endpoint: Service URL; defaults to `settings.client.endpoint`
        settings: Settings to use; defaults to the global settings
        logger: Structured logger for request/response records
        hooks: Hooks (or a HookManager) receiving operation events
    """

    def __init__(
        self,
        datamodel: Datamodel | str,
        *,
        transport: Transport | None = None,
        endpoint: str | None = None,
        settings: Settings | None = None,
        logger: StructuredLogger | None = None,
        hooks: HookManager | list[Hook] | None = None,
    ) -> None:
        self.datamodel = parse_datamodel(datamodel) if isinstance(datamodel, str) else datamodel
        self.settings = settings or get_settings()
        self.logger = logger or _default_logger(self.settings)
        self.hooks = hooks if isinstance(hooks, HookManager) else HookManager(hooks)
        self.transport: Transport = transport or HttpTransport(self.datamodel, endpoint, config=self.settings.client)

        self._delegates: dict[str, ModelDelegate] = {}
        for model in self.datamodel.models.values():
            delegate = ModelDelegate(self, model)
            self._delegates[model.name] = delegate
            attr = lower_first(model.name)
            if hasattr(type(self), attr) or keyword.iskeyword(attr):
                self.logger.warning(f"Model {model.name} is only reachable as client.model({model.name!r})")
                continue
            setattr(self, attr, delegate)

    @classmethod
    def in_memory(
        cls,
        datamodel: Datamodel | str,
        *,
        connector: str | None = None,
        settings: Settings | None = None,
        logger: StructuredLogger | None = None,
        **kwargs: Any,
    ) -> PrismaClient:
        """A client backed by the local engine instead of a service."""
        settings = settings or get_settings()
        dm = parse_datamodel(datamodel) if isinstance(datamodel, str) else datamodel
        logger = logger or _default_logger(settings)
        transport = MemoryTransport(
            dm,
            connector=connector or settings.engine.connector,
            structured_logger=logger if settings.logging.log_writes else None,
        )
        return cls(dm, transport=transport, settings=settings, logger=logger, **kwargs)

    @classmethod
    def from_project(
        cls,
        path: str | Path | None = None,
        *,
        env_file: str | None = None,
        settings: Settings | None = None,
        **kwargs: Any,
    ) -> PrismaClient:
        """
        Build a client from a project file.

        The project's `endpoint` and `secret` override those of `settings`.
        """
        project = load_project(path, env_file=env_file)
        datamodel = load_datamodel(*project.datamodel_paths)
        base = settings or get_settings()
        client_config = dataclasses.replace(
            base.client,
            endpoint=project.endpoint or base.client.endpoint,
            secret=project.secret or base.client.secret,
        )
        merged = Settings(client=client_config, engine=base.engine, logging=base.logging)
        return cls(datamodel, settings=merged, **kwargs)

    @property
    def endpoint(self) -> str | None:
        return getattr(self.transport, "endpoint", None)

    def model(self, name: str) -> ModelDelegate:
        """Delegate for a model by name."""
        self.datamodel.model(name)
        return self._delegates[name]

    async def __aenter__(self) -> PrismaClient:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def close(self) -> None:
        await self.transport.close()

    async def execute(self, operation: Operation) -> Any:
        """
        Validate, log and send one operation.

        Emits `operation.start`, then `operation.end` or `operation.error`.
        """
        kind = operation.kind.value
        with self.logger.request_context(model=operation.model, operation=kind, endpoint=self.endpoint) as request_id:
            ctx = ErrorContext(
                request_id=request_id,
                trace_id=self.logger.context.trace_id,
                endpoint=self.endpoint,
                model=operation.model,
                operation=kind,
            )
            event = {"model": operation.model, "operation": kind, "request_id": request_id}
            await self.hooks.emit("operation.start", dict(event), ctx)

            with timed() as timer:
                try:
                    if self.settings.client.validate_operations:
                        validate_operation(self.datamodel, operation).raise_if_invalid()
                    if self.settings.logging.log_requests:
                        self._log_request(request_id, operation)
                    result = await self.transport.execute(operation, context=ctx)
                except Exception as e:
                    timer.stop()
                    self.logger.log_response(
                        ResponseLog(
                            request_id=request_id,
                            model=operation.model,
                            operation=kind,
                            success=False,
                            status_code=getattr(e, "http_status", None),
                            error=truncate_for_log(str(e)),
                            duration_ms=timer.elapsed_ms,
                        )
                    )
                    await self.hooks.emit(
                        "operation.error",
                        {**event, "error": _error_payload(e), "latency_ms": timer.elapsed_ms},
                        ctx,
                    )
                    raise

            if self.settings.logging.log_requests:
                self.logger.log_response(
                    ResponseLog(
                        request_id=request_id,
                        model=operation.model,
                        operation=kind,
                        duration_ms=timer.elapsed_ms,
                        record_count=_record_count(result),
                        batch_count=result.count if isinstance(result, BatchPayload) else None,
                    )
                )
            await self.hooks.emit("operation.end", {**event, "latency_ms": timer.elapsed_ms}, ctx)
            return result

    def _log_request(self, request_id: str, operation: Operation) -> None:
        request = render_operation(self.datamodel, operation)
        model = self.datamodel.model(operation.model)
        nested = 0
        for name in ("data", "create", "update"):
            payload = getattr(operation, name)
            if payload:
                nested += count_nested_writes(self.datamodel, model, payload)
        self.logger.log_request(
            RequestLog(
                request_id=request_id,
                model=operation.model,
                operation=operation.kind.value,
                field_name=operation.field_name,
                query_hash=query_hash(request),
                variable_names=sorted(request.variables),
                nested_writes=nested,
            )
        )


def count_nested_writes(datamodel: Datamodel, model: Model, data: Mapping[str, Any]) -> int:
    """Number of nested-write directives in a write payload, at any depth."""
    total = 0
    for key, value in data.items():
        f = model.field(key)
        if f is None or not f.is_relation or not is_relation_input(value):
            continue
        related = datamodel.model(f.type_name)
        for directive in normalize_relation_input(value, is_list=f.is_list, field_name=key):
            total += 1
            if isinstance(directive, Create):
                total += sum(count_nested_writes(datamodel, related, d) for d in directive.entries())
            elif isinstance(directive, Update):
                total += count_nested_writes(datamodel, related, directive.data)
            elif isinstance(directive, Upsert):
                total += count_nested_writes(datamodel, related, directive.create)
                total += count_nested_writes(datamodel, related, directive.update)
    return total


def _error_payload(error: Exception) -> dict[str, Any]:
    if isinstance(error, PrismaClientError):
        return error.to_dict()
    return {"error_type": type(error).__name__, "message": str(error), "retryable": False}


def _record_count(result: Any) -> int | None:
    if isinstance(result, list):
        return len(result)
    if isinstance(result, dict):
        return 1
    if result is None:
        return 0
    return None


def _default_logger(settings: Settings) -> StructuredLogger:
    return StructuredLogger(
        "prisma_client",
        level=settings.logging.level,
        json_output=settings.logging.format == "json",
        redact_secrets=settings.logging.redact_secrets,
    )


__all__ = ["PrismaClient", "ModelDelegate", "count_nested_writes"]
