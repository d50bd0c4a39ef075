"""Repository layer for job store records.

Handles the seam between SQLAlchemy rows (strings, JSON text) and domain
objects (strict enum types, decoded payloads). This is NOT a trust
boundary - the database is our data, so bad data crashes here.
"""

import json
from typing import Any

from sqlalchemy.engine import Row as SARow

from zonetest.contracts.enums import DelegationClass, JobState
from zonetest.contracts.jobs import Job, JobSummary
from zonetest.core.jobs._helpers import ensure_utc


def _delegation_class(value: str | None) -> DelegationClass | None:
    # Use explicit is not None check - empty string should raise, not become None
    return DelegationClass(value) if value is not None else None


class JobRepository:
    """Repository for Job records."""

    def load(self, row: SARow[Any]) -> Job:
        """Load Job from database row.

        Converts state and delegation_class strings to enums and decodes
        the JSON columns. Crashes on invalid data.
        """
        return Job(
            job_id=row.job_id,
            identity=row.identity,
            domain=row.domain,
            params=json.loads(row.params_json),
            raw_params=json.loads(row.raw_params_json),
            delegation_class=_delegation_class(row.delegation_class),
            state=JobState(row.state),  # Convert HERE
            submitted_at=ensure_utc(row.submitted_at),
            canonical_version=row.canonical_version,
            progress=row.progress,
            started_at=ensure_utc(row.started_at) if row.started_at is not None else None,
            finished_at=ensure_utc(row.finished_at) if row.finished_at is not None else None,
            result=json.loads(row.result_json) if row.result_json is not None else None,
            batch_id=row.batch_id,
        )


class JobSummaryRepository:
    """Repository for history entries."""

    def load(self, row: SARow[Any]) -> JobSummary:
        return JobSummary(
            job_id=row.job_id,
            identity=row.identity,
            domain=row.domain,
            delegation_class=_delegation_class(row.delegation_class),
            state=JobState(row.state),
            submitted_at=ensure_utc(row.submitted_at),
        )
