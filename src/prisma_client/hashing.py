"""
Hashing utilities for prisma-client.

Datamodel fingerprints and query hashes are blake3 digests of a stable
serialization, so they do not depend on dict ordering.
"""

from __future__ import annotations

import hashlib
from typing import Any, Literal

from blake3 import blake3

from .serialization import stable_json_dumps

HashAlgorithm = Literal["blake3", "sha256"]


def compute_hash(
    data: str | bytes,
    algorithm: HashAlgorithm = "blake3",
    truncate: int | None = None,
) -> str:
    """
    Compute a hash using the specified algorithm.

    Args:
        data: Input data to hash (string or bytes)
        algorithm: "blake3" (default) or "sha256"
        truncate: Truncate output to N characters (for shorter keys)

    Returns:
        Hexadecimal hash string
    """
    if isinstance(data, str):
        data = data.encode("utf-8")

    if algorithm == "blake3":
        result = blake3(data).hexdigest()
    elif algorithm == "sha256":
        result = hashlib.sha256(data).hexdigest()
    else:
        raise ValueError(f"Unknown algorithm: {algorithm}")

    return result[:truncate] if truncate else result


def content_hash(obj: Any, truncate: int | None = None) -> str:
    """
    Generate a deterministic content hash for any JSON-serializable object.

    Args:
        obj: Any JSON-serializable object
        truncate: Truncate output to N characters

    Returns:
        Hexadecimal hash
    """
    return compute_hash(stable_json_dumps(obj), truncate=truncate)


__all__ = ["HashAlgorithm", "compute_hash", "content_hash"]
