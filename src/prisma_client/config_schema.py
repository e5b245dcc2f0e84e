"""
JSON schemas for configuration validation.
"""

CLIENT_SCHEMA = {
    "type": "object",
    "properties": {
        "endpoint": {"type": ["string", "null"]},
        "secret": {"type": ["string", "null"]},
        "token": {"type": ["string", "null"]},
        "token_ttl_seconds": {"type": "integer", "minimum": 1},
        "timeout": {"type": "number", "minimum": 0.1},
        "max_retries": {"type": "integer", "minimum": 0},
        "retry_backoff": {"type": "number", "minimum": 0.0},
        "retry_mutations": {"type": "boolean"},
        "validate_operations": {"type": "boolean"},
    },
    "additionalProperties": False,
}

ENGINE_SCHEMA = {
    "type": "object",
    "properties": {
        "connector": {"type": "string", "enum": ["postgres", "mysql", "mongo"]},
    },
    "additionalProperties": False,
}

LOGGING_SCHEMA = {
    "type": "object",
    "properties": {
        "level": {"type": "string", "enum": ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]},
        "format": {"type": "string", "enum": ["text", "json"]},
        "log_requests": {"type": "boolean"},
        "log_writes": {"type": "boolean"},
        "redact_secrets": {"type": "boolean"},
    },
    "additionalProperties": False,
}

CONFIG_SCHEMA = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "title": "prisma-client configuration",
    "type": "object",
    "properties": {
        "client": CLIENT_SCHEMA,
        "engine": ENGINE_SCHEMA,
        "logging": LOGGING_SCHEMA,
    },
    "additionalProperties": False,
}

GENERATE_ENTRY_SCHEMA = {
    "type": "object",
    "properties": {
        "generator": {"type": "string", "minLength": 1},
        "output": {"type": "string", "minLength": 1},
    },
    "required": ["generator", "output"],
    "additionalProperties": False,
}

PROJECT_SCHEMA = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "title": "prisma project file",
    "type": "object",
    "properties": {
        "endpoint": {"type": "string"},
        "datamodel": {
            "anyOf": [
                {"type": "string", "minLength": 1},
                {"type": "array", "items": {"type": "string", "minLength": 1}, "minItems": 1},
            ]
        },
        "secret": {"type": "string"},
        "databaseType": {"type": "string", "enum": ["relational", "document"]},
        "generate": {"type": "array", "items": GENERATE_ENTRY_SCHEMA},
        "hooks": {"type": "object"},
        "seed": {"type": "object"},
    },
    "required": ["datamodel"],
    "additionalProperties": False,
}

__all__ = ["CONFIG_SCHEMA", "PROJECT_SCHEMA"]
