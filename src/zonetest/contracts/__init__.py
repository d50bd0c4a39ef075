"""Shared contracts for cross-boundary data types.

This package is a LEAF MODULE with no outbound dependencies to core.
Settings classes are NOT re-exported here - import them from
zonetest.core.config.

Import patterns:
    from zonetest.contracts import JobState, Job, InvalidInputError
    from zonetest.core.config import ZonetestSettings
"""

from zonetest.contracts.enums import ALLOWED_TRANSITIONS, DelegationClass, JobState
from zonetest.contracts.errors import (
    InvalidInputError,
    InvalidTransitionError,
    NotFoundError,
    NotReadyError,
    StorageUnavailableError,
    StoreIntegrityError,
    ZonetestError,
)
from zonetest.contracts.jobs import (
    BatchJob,
    BatchStatus,
    HistoryPage,
    HistorySnapshot,
    Job,
    JobSummary,
    SubmitResult,
    TestResults,
)
from zonetest.contracts.params import CanonicalParameters, DSOverride, NameserverOverride

__all__ = [
    "ALLOWED_TRANSITIONS",
    "BatchJob",
    "BatchStatus",
    "CanonicalParameters",
    "DSOverride",
    "DelegationClass",
    "HistoryPage",
    "HistorySnapshot",
    "InvalidInputError",
    "InvalidTransitionError",
    "Job",
    "JobState",
    "JobSummary",
    "NameserverOverride",
    "NotFoundError",
    "NotReadyError",
    "StorageUnavailableError",
    "StoreIntegrityError",
    "SubmitResult",
    "TestResults",
    "ZonetestError",
]
