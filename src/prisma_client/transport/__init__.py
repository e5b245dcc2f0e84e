"""
Transports carry operations to where they are executed.
"""

from .base import BaseTransport, Transport
from .http import HttpTransport, service_from_endpoint, sign_service_token
from .memory import MemoryTransport

__all__ = [
    "Transport",
    "BaseTransport",
    "HttpTransport",
    "MemoryTransport",
    "service_from_endpoint",
    "sign_service_token",
]
