"""
Transport protocol and base classes.

A transport takes one `Operation` and returns its decoded result: a record
dict, a list of records, None or a `BatchPayload`. The client does not care
whether that happens over HTTP or against the in-memory engine.
"""

from __future__ import annotations

import asyncio
import logging
import random
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from typing import Any, Protocol, TypeVar, runtime_checkable

from ..errors import ErrorContext, RateLimitError, is_retryable
from ..operations import Operation

T = TypeVar("T")

logger = logging.getLogger(__name__)


@runtime_checkable
class Transport(Protocol):
    """Interface every transport implements."""

    async def execute(self, operation: Operation, *, context: ErrorContext | None = None) -> Any:
        """
        Run one operation.

        Args:
            operation: The operation to run
            context: Request context attached to raised errors

        Returns:
            Record dict, list of record dicts, None or BatchPayload
        """
        ...

    async def close(self) -> None:
        """Release any held resources."""
        ...


class BaseTransport(ABC):
    """
    Shared behavior for transports: async context management and retries.
    """

    name: str = "base"

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    @abstractmethod
    async def execute(self, operation: Operation, *, context: ErrorContext | None = None) -> Any:
        ...

    async def close(self) -> None:
        return

    @staticmethod
    async def _with_retry(
        operation: Callable[[int], Awaitable[T]],
        *,
        attempts: int = 3,
        backoff: float = 0.5,
    ) -> T:
        """
        Execute an operation with retry and exponential backoff.

        Args:
            operation: Async callable taking the 1-based attempt number
            attempts: Maximum number of attempts
            backoff: Initial backoff delay in seconds (doubles each retry)

        Only retryable errors are retried. A `RateLimitError` carrying
        `retry_after` waits that long instead of the backoff.
        """
        current_backoff = backoff

        for attempt in range(1, attempts + 1):
            try:
                return await operation(attempt)
            except Exception as e:
                if attempt >= attempts or not is_retryable(e):
                    raise

                if isinstance(e, RateLimitError) and e.retry_after is not None:
                    wait_time = e.retry_after
                else:
                    wait_time = current_backoff * random.uniform(0.8, 1.2)
                    current_backoff *= 2

                logger.debug("Attempt %d failed (%s), retrying in %.2fs", attempt, type(e).__name__, wait_time)
                await asyncio.sleep(wait_time)

        raise RuntimeError("Retry logic failed unexpectedly")


__all__ = ["Transport", "BaseTransport"]
