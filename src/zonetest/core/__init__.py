"""Core infrastructure: canonical hashing, parameters, configuration, job store, logging."""

from zonetest.core.canonical import (
    CANONICAL_VERSION,
    IDENTITY_LENGTH,
    canonical_json,
    job_identity,
    stable_hash,
)
from zonetest.core.config import (
    DatabaseSettings,
    JobSettings,
    LoggingSettings,
    ZonetestSettings,
    load_settings,
)
from zonetest.core.logging import (
    configure_logging,
    get_logger,
)
from zonetest.core.params import canonicalize, classify

__all__ = [
    "CANONICAL_VERSION",
    "IDENTITY_LENGTH",
    "DatabaseSettings",
    "JobSettings",
    "LoggingSettings",
    "ZonetestSettings",
    "canonical_json",
    "canonicalize",
    "classify",
    "configure_logging",
    "get_logger",
    "job_identity",
    "load_settings",
    "stable_hash",
]
