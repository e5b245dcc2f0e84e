"""
HTTP transport: operations rendered as GraphQL and POSTed with aiohttp.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from typing import Any
from urllib.parse import urlparse

import aiohttp
import jwt

from ..config.client import ClientConfig
from ..errors import (
    ErrorContext,
    InvalidConfigError,
    InvalidResponseError,
    RateLimitError,
    RequestTimeoutError,
    ServiceUnavailableError,
    error_from_graphql,
    error_from_status,
)
from ..graphql import GraphQLRequest, extract_result, render_operation
from ..logging import redact_secret
from ..operations import Operation
from ..schema.types import Datamodel
from .base import BaseTransport

logger = logging.getLogger(__name__)

# Re-sign service tokens this long before they expire.
_TOKEN_REFRESH_MARGIN = 60


def service_from_endpoint(endpoint: str) -> str:
    """
    Service identifier (`name@stage`) encoded in an endpoint URL.

    `http://localhost:4466/blog/dev` is `blog@dev`; an endpoint without a
    path addresses `default@default`.
    """
    parts = [p for p in urlparse(endpoint).path.split("/") if p]
    if len(parts) >= 2:
        return f"{parts[-2]}@{parts[-1]}"
    if len(parts) == 1:
        return f"{parts[0]}@default"
    return "default@default"


def sign_service_token(secret: str, service: str, *, ttl_seconds: int = 3600) -> str:
    """Sign an HS256 service token granting the admin role on `service`."""
    now = datetime.now(timezone.utc)
    payload = {
        "data": {"service": service, "roles": ["admin"]},
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(seconds=ttl_seconds)).timestamp()),
    }
    return jwt.encode(payload, secret, algorithm="HS256")


class HttpTransport(BaseTransport):
    """
    Sends each operation as one GraphQL POST to the service endpoint.

    Args:
        datamodel: Datamodel used to render operations
        endpoint: Service URL; defaults to `config.endpoint`
        config: Timeout, retry and authentication settings
        session: Existing aiohttp session to use. The transport only
            closes sessions it created itself.
        headers: Extra headers sent with every request
    """

    name = "http"

    def __init__(
        self,
        datamodel: Datamodel,
        endpoint: str | None = None,
        *,
        config: ClientConfig | None = None,
        session: aiohttp.ClientSession | None = None,
        headers: dict[str, str] | None = None,
    ) -> None:
        self.datamodel = datamodel
        self.config = config or ClientConfig()
        self.endpoint = endpoint or self.config.endpoint
        if not self.endpoint:
            raise InvalidConfigError("No endpoint configured. Set PRISMA_ENDPOINT or pass endpoint=")
        self.extra_headers = dict(headers or {})
        self._session = session
        self._owns_session = session is None
        self._token: str | None = None
        self._token_expires_at = 0.0

    # Authentication

    def auth_token(self) -> str | None:
        """The bearer token for the next request, signing a new one when needed."""
        if self.config.token:
            return self.config.token
        if not self.config.secret:
            return None
        now = time.time()
        if self._token is None or now >= self._token_expires_at - _TOKEN_REFRESH_MARGIN:
            service = service_from_endpoint(self.endpoint)
            self._token = sign_service_token(self.config.secret, service, ttl_seconds=self.config.token_ttl_seconds)
            self._token_expires_at = now + self.config.token_ttl_seconds
            logger.debug("Signed service token for %s (secret %s)", service, redact_secret(self.config.secret))
        return self._token

    def _headers(self) -> dict[str, str]:
        h = {"Content-Type": "application/json", **self.extra_headers}
        if token := self.auth_token():
            h["Authorization"] = f"Bearer {token}"
        return h

    # Session

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=self.config.timeout))
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        if self._session is not None and self._owns_session and not self._session.closed:
            await self._session.close()
        self._session = None

    # Execution

    async def execute(self, operation: Operation, *, context: ErrorContext | None = None) -> Any:
        request = render_operation(self.datamodel, operation)
        ctx = context or ErrorContext()
        ctx = replace(ctx, endpoint=self.endpoint, model=operation.model, operation=operation.kind.value)

        retry = not operation.kind.is_mutation or self.config.retry_mutations
        attempts = self.config.max_retries + 1 if retry else 1

        async def attempt(n: int) -> Any:
            return await self.send(request, context=replace(ctx, attempt=n))

        data = await self._with_retry(attempt, attempts=attempts, backoff=self.config.retry_backoff)
        return extract_result(operation, data)

    async def send(self, request: GraphQLRequest, *, context: ErrorContext | None = None) -> dict[str, Any]:
        """
        POST one GraphQL request and return its `data` object.

        Raises:
            TransportError: HTTP failure, timeout or unreadable response
            RecordNotFoundError, UniqueConstraintError, GraphQLError: The
                service answered with `errors`
        """
        ctx = context or ErrorContext(endpoint=self.endpoint)
        session = await self._get_session()

        try:
            async with session.post(self.endpoint, json=request.to_payload(), headers=self._headers()) as r:
                status = r.status
                retry_after = r.headers.get("Retry-After")
                text = await r.text()
        except asyncio.TimeoutError as e:
            raise RequestTimeoutError(
                f"Request to {self.endpoint} timed out after {self.config.timeout}s",
                timeout=self.config.timeout,
                context=ctx,
                cause=e,
            ) from e
        except aiohttp.ClientError as e:
            raise ServiceUnavailableError(f"Could not reach {self.endpoint}: {e}", context=ctx, cause=e) from e

        body: Any = None
        if text:
            try:
                body = json.loads(text)
            except ValueError:
                body = None

        if status >= 400:
            message = _error_message(body) or text or f"HTTP {status}"
            if status == 429:
                raise RateLimitError(message, retry_after=_parse_retry_after(retry_after), context=ctx)
            raise error_from_status(status, message, context=ctx)

        if not isinstance(body, dict):
            raise InvalidResponseError(f"Service returned a non-JSON response (HTTP {status})", context=ctx)
        if body.get("errors"):
            raise error_from_graphql(body["errors"], context=ctx)
        if "data" not in body:
            raise InvalidResponseError("Response has neither data nor errors", context=ctx)
        return body["data"]


def _error_message(body: Any) -> str | None:
    if isinstance(body, dict):
        errors = body.get("errors")
        if isinstance(errors, list) and errors and isinstance(errors[0], dict):
            return str(errors[0].get("message", ""))
        if "error" in body:
            return str(body["error"])
    return None


def _parse_retry_after(value: str | None) -> float | None:
    if not value:
        return None
    try:
        return float(value)
    except ValueError:
        return None


__all__ = ["HttpTransport", "service_from_endpoint", "sign_service_token"]
