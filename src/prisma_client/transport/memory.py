"""
In-process transport backed by the local engine.
"""

from __future__ import annotations

import asyncio
from dataclasses import replace
from typing import Any

from ..engine.connectors import ConnectorCapabilities
from ..engine.executor import MutationExecutor
from ..engine.store import MemoryStore
from ..errors import ErrorContext, PrismaClientError
from ..logging import StructuredLogger
from ..operations import Operation
from ..schema.types import Datamodel
from .base import BaseTransport


class MemoryTransport(BaseTransport):
    """
    Executes operations against a `MemoryStore` without any network.

    Operations run one at a time, so each one sees the store as the
    previous one left it.
    """

    name = "memory"

    def __init__(
        self,
        datamodel: Datamodel,
        *,
        store: MemoryStore | None = None,
        connector: str | ConnectorCapabilities = "postgres",
        structured_logger: StructuredLogger | None = None,
    ) -> None:
        self.executor = MutationExecutor(datamodel, store, connector, structured_logger=structured_logger)
        self._lock = asyncio.Lock()

    @property
    def datamodel(self) -> Datamodel:
        return self.executor.datamodel

    @property
    def store(self) -> MemoryStore:
        return self.executor.store

    async def execute(self, operation: Operation, *, context: ErrorContext | None = None) -> Any:
        async with self._lock:
            try:
                return self.executor.execute(operation)
            except PrismaClientError as e:
                if context is not None and e.context.request_id is None:
                    e.context = replace(context, model=operation.model, operation=operation.kind.value)
                raise


__all__ = ["MemoryTransport"]
