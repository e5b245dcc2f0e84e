"""
Client configuration.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field


@dataclass
class ClientConfig:
    """Configuration for talking to the data service."""

    # Service settings
    endpoint: str | None = field(default_factory=lambda: os.getenv("PRISMA_ENDPOINT"))
    secret: str | None = field(default_factory=lambda: os.getenv("PRISMA_SECRET"))
    token: str | None = None
    token_ttl_seconds: int = 3600

    # Request settings
    timeout: float = 30.0
    max_retries: int = 2
    retry_backoff: float = 0.5
    retry_mutations: bool = False

    # Behavior
    validate_operations: bool = True

    def __post_init__(self):
        """Validate configuration after initialization."""
        if self.timeout <= 0:
            raise ValueError("timeout must be positive")
        if self.max_retries < 0:
            raise ValueError("max_retries cannot be negative")
        if self.retry_backoff < 0:
            raise ValueError("retry_backoff cannot be negative")
        if self.token_ttl_seconds <= 0:
            raise ValueError("token_ttl_seconds must be positive")
        if self.endpoint and not self.endpoint.startswith(("http://", "https://")):
            raise ValueError("endpoint must be a valid HTTP(S) URL")


__all__ = ["ClientConfig"]
