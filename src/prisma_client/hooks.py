"""
Lightweight hooks for observability and integration.

The client emits `operation.start`, `operation.end` and `operation.error`
for every call; `InMemoryMetricsHook` collects them for tests and local
inspection.
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterable
from typing import Any, Protocol


class Hook(Protocol):
    """Protocol for observability hooks."""

    async def emit(self, event: str, payload: dict, context: Any) -> None:
        """Emit an event with payload and request context."""
        ...


class HookManager:
    """Manages multiple hooks and broadcasts events to all of them."""

    def __init__(self, hooks: Iterable[Hook] | None = None) -> None:
        self._hooks = list(hooks or [])

    def add(self, hook: Hook) -> None:
        """Add a hook to the manager."""
        self._hooks.append(hook)

    def __len__(self) -> int:
        return len(self._hooks)

    async def emit(self, event: str, payload: dict, context: Any) -> None:
        """Emit an event to all registered hooks."""
        for hook in self._hooks:
            result = hook.emit(event, payload, context)
            if asyncio.iscoroutine(result):
                await result


class InMemoryMetricsHook:
    """
    Simple metrics accumulator.

    Counts events, keeps operation latencies and counts per model and
    operation kind, and records errors.
    """

    def __init__(self) -> None:
        self.counters: dict[str, int] = {}
        self.latencies_ms: list[float] = []
        self.operations: dict[str, int] = {}
        self.errors: list[dict[str, Any]] = []

    async def emit(self, event: str, payload: dict, context: Any) -> None:
        self.counters[event] = self.counters.get(event, 0) + 1

        if event == "operation.start":
            key = f"{payload.get('model', 'unknown')}.{payload.get('operation', 'unknown')}"
            self.operations[key] = self.operations.get(key, 0) + 1

        elif event == "operation.end" and "latency_ms" in payload:
            self.latencies_ms.append(float(payload["latency_ms"]))

        elif event.endswith(".error"):
            self.errors.append({"event": event, "payload": payload})

    def snapshot(self) -> dict[str, Any]:
        """Return a snapshot of all collected metrics."""
        return {
            "counters": dict(self.counters),
            "latencies_ms": list(self.latencies_ms),
            "operations": dict(self.operations),
            "errors": list(self.errors),
        }

    def reset(self) -> dict[str, Any]:
        """Reset metrics and return the previous snapshot."""
        snapshot = self.snapshot()
        self.counters.clear()
        self.latencies_ms.clear()
        self.operations.clear()
        self.errors.clear()
        return snapshot


__all__ = ["Hook", "HookManager", "InMemoryMetricsHook"]
