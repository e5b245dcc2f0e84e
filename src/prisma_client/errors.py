"""
Error taxonomy for prisma-client.

This module provides a hierarchical exception system with:
- Error codes for programmatic handling
- Retryable vs non-retryable classification
- Structured context for debugging
- Mapping of HTTP statuses and GraphQL error messages to typed errors
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """Standardized error codes for the client."""

    # Transport errors (1xxx)
    TRANSPORT_ERROR = "ERR_1000"
    RATE_LIMIT = "ERR_1001"
    AUTHENTICATION = "ERR_1002"
    SERVICE_UNAVAILABLE = "ERR_1003"
    REQUEST_TIMEOUT = "ERR_1004"
    INVALID_RESPONSE = "ERR_1005"
    GRAPHQL_ERROR = "ERR_1006"

    # Validation errors (2xxx)
    VALIDATION_ERROR = "ERR_2000"
    UNKNOWN_FIELD = "ERR_2001"
    INVALID_SELECTOR = "ERR_2002"
    MISSING_REQUIRED_FIELD = "ERR_2003"
    INVALID_VALUE = "ERR_2004"
    INVALID_NESTED_WRITE = "ERR_2005"

    # Record errors (3xxx)
    RECORD_ERROR = "ERR_3000"
    RECORD_NOT_FOUND = "ERR_3001"
    UNIQUE_CONSTRAINT = "ERR_3002"
    RELATION_VIOLATION = "ERR_3003"
    NESTED_WRITE_FAILED = "ERR_3004"

    # Schema errors (4xxx)
    SCHEMA_ERROR = "ERR_4000"
    DATAMODEL_SYNTAX = "ERR_4001"
    UNKNOWN_MODEL = "ERR_4002"

    # Generator errors (5xxx)
    GENERATOR_ERROR = "ERR_5000"
    UNSUPPORTED_GENERATOR = "ERR_5001"

    # Configuration errors (6xxx)
    CONFIG_ERROR = "ERR_6000"
    MISSING_ENV_VAR = "ERR_6001"
    INVALID_CONFIG = "ERR_6002"

    # Internal errors (9xxx)
    INTERNAL_ERROR = "ERR_9000"


@dataclass
class ErrorContext:
    """Structured context for error debugging."""

    request_id: str | None = None
    trace_id: str | None = None
    endpoint: str | None = None
    model: str | None = None
    operation: str | None = None
    attempt: int = 1
    extra: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "request_id": self.request_id,
            "trace_id": self.trace_id,
            "endpoint": self.endpoint,
            "model": self.model,
            "operation": self.operation,
            "attempt": self.attempt,
            **self.extra,
        }


class PrismaClientError(Exception):
    """
    Base exception for all client errors.

    Attributes:
        code: Standardized error code for programmatic handling
        message: Human-readable error message
        retryable: Whether the operation can be retried
        context: Structured debugging context
        cause: Original exception that caused this error
    """

    code: ErrorCode = ErrorCode.INTERNAL_ERROR
    retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        code: ErrorCode | None = None,
        retryable: bool | None = None,
        context: ErrorContext | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        if retryable is not None:
            self.retryable = retryable
        self.context = context or ErrorContext()
        self.cause = cause

    def __str__(self) -> str:
        parts = [f"[{self.code.value}] {self.message}"]
        if self.context.request_id:
            parts.append(f"(request_id={self.context.request_id})")
        return " ".join(parts)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "code": self.code.value,
            "message": self.message,
            "retryable": self.retryable,
            "context": self.context.to_dict(),
            "cause": str(self.cause) if self.cause else None,
        }


# =============================================================================
# Transport Errors
# =============================================================================


class TransportError(PrismaClientError):
    """Base class for errors talking to the data service."""

    code = ErrorCode.TRANSPORT_ERROR
    retryable = False
    http_status: int | None = None

    def __init__(
        self,
        message: str,
        *,
        http_status: int | None = None,
        **kwargs,
    ):
        super().__init__(message, **kwargs)
        self.http_status = http_status


class RateLimitError(TransportError):
    """Too many requests. Operation can be retried after a delay."""

    code = ErrorCode.RATE_LIMIT
    retryable = True

    def __init__(
        self,
        message: str = "Rate limit exceeded",
        *,
        retry_after: float | None = None,
        **kwargs,
    ):
        super().__init__(message, http_status=429, **kwargs)
        self.retry_after = retry_after


class AuthenticationError(TransportError):
    """Missing or invalid service token. Not retryable."""

    code = ErrorCode.AUTHENTICATION
    retryable = False

    def __init__(
        self,
        message: str = "Authentication failed. Check the service secret or token.",
        **kwargs,
    ):
        kwargs.setdefault("http_status", 401)
        super().__init__(message, **kwargs)


class ServiceUnavailableError(TransportError):
    """Service is temporarily unavailable. Retryable."""

    code = ErrorCode.SERVICE_UNAVAILABLE
    retryable = True

    def __init__(
        self,
        message: str = "Service unavailable",
        **kwargs,
    ):
        kwargs.setdefault("http_status", 503)
        super().__init__(message, **kwargs)


class RequestTimeoutError(TransportError):
    """Request to the service timed out. Retryable."""

    code = ErrorCode.REQUEST_TIMEOUT
    retryable = True

    def __init__(
        self,
        message: str = "Request timed out",
        *,
        timeout: float | None = None,
        **kwargs,
    ):
        kwargs.setdefault("http_status", 504)
        super().__init__(message, **kwargs)
        self.timeout = timeout


class InvalidResponseError(TransportError):
    """Service returned an invalid or unexpected response."""

    code = ErrorCode.INVALID_RESPONSE
    retryable = False

    def __init__(
        self,
        message: str = "Invalid response from service",
        **kwargs,
    ):
        super().__init__(message, **kwargs)


class GraphQLError(TransportError):
    """The service answered with a GraphQL `errors` array."""

    code = ErrorCode.GRAPHQL_ERROR
    retryable = False

    def __init__(
        self,
        message: str = "GraphQL error",
        *,
        errors: list[dict[str, Any]] | None = None,
        **kwargs,
    ):
        super().__init__(message, **kwargs)
        self.errors = errors or []


# =============================================================================
# Validation Errors
# =============================================================================


class ValidationError(PrismaClientError):
    """Base class for invalid operation arguments."""

    code = ErrorCode.VALIDATION_ERROR
    retryable = False

    def __init__(self, message: str = "Validation failed", *, errors: list[str] | None = None, **kwargs):
        super().__init__(message, **kwargs)
        self.errors = errors or [message]


class UnknownFieldError(ValidationError):
    """A field name does not exist on the model."""

    code = ErrorCode.UNKNOWN_FIELD


class InvalidSelectorError(ValidationError):
    """A unique selector does not address exactly one unique field."""

    code = ErrorCode.INVALID_SELECTOR


class MissingRequiredFieldError(ValidationError):
    """A create payload lacks a required field."""

    code = ErrorCode.MISSING_REQUIRED_FIELD


class InvalidValueError(ValidationError):
    """A value does not match the field type."""

    code = ErrorCode.INVALID_VALUE


class InvalidNestedWriteError(ValidationError):
    """A nested-write directive is not valid for its relation field."""

    code = ErrorCode.INVALID_NESTED_WRITE


# =============================================================================
# Record Errors
# =============================================================================


class RecordError(PrismaClientError):
    """Base class for errors about stored records."""

    code = ErrorCode.RECORD_ERROR
    retryable = False


class RecordNotFoundError(RecordError):
    """A unique selector matched no record."""

    code = ErrorCode.RECORD_NOT_FOUND

    def __init__(
        self,
        message: str = "Record not found",
        *,
        model: str | None = None,
        where: dict[str, Any] | None = None,
        **kwargs,
    ):
        if model and where:
            message = f"No Node for the model {model} with value {_format_where(where)} found"
        super().__init__(message, **kwargs)
        self.model = model
        self.where = where


class UniqueConstraintError(RecordError):
    """A write would duplicate a unique field value."""

    code = ErrorCode.UNIQUE_CONSTRAINT

    def __init__(
        self,
        message: str = "Unique constraint violated",
        *,
        model: str | None = None,
        field_name: str | None = None,
        **kwargs,
    ):
        if model and field_name:
            message = f"A unique constraint would be violated on {model}. Details: Field name = {field_name}"
        super().__init__(message, **kwargs)
        self.model = model
        self.field_name = field_name


class RelationViolationError(RecordError):
    """A write would leave a required relation unset."""

    code = ErrorCode.RELATION_VIOLATION


class NestedWriteError(RecordError):
    """
    A nested write failed part way on a connector without transactions.

    Steps listed in `applied_steps` were not rolled back.
    """

    code = ErrorCode.NESTED_WRITE_FAILED

    def __init__(
        self,
        message: str = "Nested write failed",
        *,
        applied_steps: list[Any] | None = None,
        **kwargs,
    ):
        super().__init__(message, **kwargs)
        self.applied_steps = applied_steps or []


# =============================================================================
# Schema Errors
# =============================================================================


class SchemaError(PrismaClientError):
    """The datamodel is semantically invalid."""

    code = ErrorCode.SCHEMA_ERROR
    retryable = False


class DatamodelSyntaxError(SchemaError):
    """The datamodel text could not be parsed."""

    code = ErrorCode.DATAMODEL_SYNTAX

    def __init__(
        self,
        message: str = "Invalid datamodel syntax",
        *,
        line: int | None = None,
        column: int | None = None,
        **kwargs,
    ):
        if line is not None:
            message = f"{message} (line {line}, column {column})"
        super().__init__(message, **kwargs)
        self.line = line
        self.column = column


class UnknownModelError(SchemaError):
    """The requested model is not declared in the datamodel."""

    code = ErrorCode.UNKNOWN_MODEL

    def __init__(self, message: str = "Unknown model", *, model: str | None = None, **kwargs):
        if model:
            message = f"Unknown model: {model}"
        super().__init__(message, **kwargs)
        self.model = model


# =============================================================================
# Generator Errors
# =============================================================================


class GeneratorError(PrismaClientError):
    """Base class for code generation errors."""

    code = ErrorCode.GENERATOR_ERROR
    retryable = False


class UnsupportedGeneratorError(GeneratorError):
    """The configured generator target is not available."""

    code = ErrorCode.UNSUPPORTED_GENERATOR

    def __init__(self, message: str = "Unsupported generator", *, generator: str | None = None, **kwargs):
        if generator:
            message = f"Unsupported generator: {generator}"
        super().__init__(message, **kwargs)
        self.generator = generator


# =============================================================================
# Configuration Errors
# =============================================================================


class ConfigError(PrismaClientError):
    """Base class for configuration errors."""

    code = ErrorCode.CONFIG_ERROR
    retryable = False


class MissingEnvVarError(ConfigError):
    """A `${env:NAME}` reference names an unset variable."""

    code = ErrorCode.MISSING_ENV_VAR

    def __init__(self, message: str = "Environment variable not set", *, env_var: str | None = None, **kwargs):
        if env_var:
            message = f"Environment variable not set: {env_var}"
        super().__init__(message, **kwargs)
        self.env_var = env_var


class InvalidConfigError(ConfigError):
    """Configuration is invalid."""

    code = ErrorCode.INVALID_CONFIG


# =============================================================================
# Error Mapping
# =============================================================================


def _format_where(where: dict[str, Any]) -> str:
    return ", ".join(f"{key}: '{value}'" for key, value in where.items())


_NOT_FOUND_PATTERN = re.compile(r"No Node for the model (?P<model>\w+)")
_UNIQUE_PATTERN = re.compile(r"unique constraint would be violated on (?P<model>\w+)", re.IGNORECASE)


def error_from_status(
    status: int,
    message: str,
    *,
    context: ErrorContext | None = None,
) -> TransportError:
    """
    Create an appropriate TransportError from an HTTP status code.

    Args:
        status: HTTP status code
        message: Error message from the service
        context: Additional error context

    Returns:
        Appropriate TransportError subclass
    """
    ctx = context or ErrorContext()

    error_map: dict[int, type[TransportError]] = {
        401: AuthenticationError,
        403: AuthenticationError,
        429: RateLimitError,
        502: ServiceUnavailableError,
        503: ServiceUnavailableError,
        504: RequestTimeoutError,
    }

    error_class = error_map.get(status)
    if error_class is None:
        retryable = status >= 500
        return TransportError(message, http_status=status, retryable=retryable, context=ctx)
    if error_class is RateLimitError:
        return RateLimitError(message, context=ctx)
    return error_class(message, http_status=status, context=ctx)


def error_from_graphql(
    errors: list[dict[str, Any]],
    *,
    context: ErrorContext | None = None,
) -> PrismaClientError:
    """
    Map a GraphQL `errors` array onto the error taxonomy.

    Only the first error decides the type; all of them are kept on
    `GraphQLError.errors`.
    """
    ctx = context or ErrorContext()
    first = errors[0] if errors else {}
    message = str(first.get("message", "GraphQL error"))

    if match := _NOT_FOUND_PATTERN.search(message):
        return RecordNotFoundError(message, model=match["model"], context=replace(ctx, model=match["model"]))
    if match := _UNIQUE_PATTERN.search(message):
        return UniqueConstraintError(message, model=match["model"], context=replace(ctx, model=match["model"]))
    return GraphQLError(message, errors=errors, context=ctx)


def is_retryable(error: Exception) -> bool:
    """
    Check if an error is retryable.

    Args:
        error: Exception to check

    Returns:
        True if the error is retryable
    """
    if isinstance(error, PrismaClientError):
        return error.retryable

    import asyncio

    retryable_types = (
        asyncio.TimeoutError,
        ConnectionError,
        TimeoutError,
    )
    return isinstance(error, retryable_types)


__all__ = [
    # Base
    "ErrorCode",
    "ErrorContext",
    "PrismaClientError",
    # Transport errors
    "TransportError",
    "RateLimitError",
    "AuthenticationError",
    "ServiceUnavailableError",
    "RequestTimeoutError",
    "InvalidResponseError",
    "GraphQLError",
    # Validation errors
    "ValidationError",
    "UnknownFieldError",
    "InvalidSelectorError",
    "MissingRequiredFieldError",
    "InvalidValueError",
    "InvalidNestedWriteError",
    # Record errors
    "RecordError",
    "RecordNotFoundError",
    "UniqueConstraintError",
    "RelationViolationError",
    "NestedWriteError",
    # Schema errors
    "SchemaError",
    "DatamodelSyntaxError",
    "UnknownModelError",
    # Generator errors
    "GeneratorError",
    "UnsupportedGeneratorError",
    # Config errors
    "ConfigError",
    "MissingEnvVarError",
    "InvalidConfigError",
    # Utilities
    "error_from_status",
    "error_from_graphql",
    "is_retryable",
]
