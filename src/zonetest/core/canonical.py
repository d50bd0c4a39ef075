# src/zonetest/core/canonical.py
"""
Canonical JSON serialization for deterministic job identities.

Canonical parameters are serialized per RFC 8785/JCS (rfc8785 package):
sorted keys, no whitespace, fixed number formatting. The same parameters
therefore hash identically on every process and every storage backend.
"""

from __future__ import annotations

import hashlib
from typing import TYPE_CHECKING, Any

import rfc8785

if TYPE_CHECKING:
    from zonetest.contracts.params import CanonicalParameters

# Version string stored with every job for hash verification
CANONICAL_VERSION = "sha256-rfc8785-v1"

# Job identities are the leading hex characters of the parameter hash
IDENTITY_LENGTH = 16


def canonical_json(obj: Any) -> str:
    """Produce canonical JSON for hashing.

    Args:
        obj: JSON-shaped data (dict, list, str, int, bool, None)

    Returns:
        Canonical JSON string (no whitespace, sorted keys)

    Raises:
        rfc8785.CanonicalizationError: If data holds a value RFC 8785 cannot
            represent (non-finite float, integer beyond 2**53)
    """
    result: bytes = rfc8785.dumps(obj)
    return result.decode("utf-8")


def stable_hash(obj: Any) -> str:
    """SHA-256 hex digest of the canonical JSON of obj."""
    canonical = canonical_json(obj)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def job_identity(params: CanonicalParameters) -> str:
    """Compute the deduplication key for a canonical parameter set.

    The same canonical parameters always yield the same identity, on any
    process and any storage backend.

    Returns:
        IDENTITY_LENGTH lowercase hex characters
    """
    return stable_hash(params.to_dict())[:IDENTITY_LENGTH]
