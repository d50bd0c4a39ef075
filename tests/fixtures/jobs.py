# tests/fixtures/jobs.py
"""Job store test data and doubles."""

import json
import uuid
from datetime import UTC, datetime, timedelta
from typing import Any

from zonetest.contracts.params import CanonicalParameters
from zonetest.core.canonical import CANONICAL_VERSION
from zonetest.core.jobs import JobDB, jobs_table

# A syntactically valid SHA-256 DS digest
DS_DIGEST = "0b9e6b0f8e3c6b1e5bd1f2a07a4de1c1b1a9c6a2e1f4d3c2b1a0f9e8d7c6b5a4"

# Submitted exactly as the service documentation writes it, truncated digest included
SCENARIO_A: dict[str, Any] = {
    "domain": "afnic.fr",
    "nameservers": [{"ns": "ns1.nic.fr"}, {"ns": "ns2.nic.fr", "ip": "192.134.4.1"}],
    "ds_info": [{"keytag": 11627, "algorithm": 8, "digtype": 2, "digest": "a6cca9e6..."}],
}

UNDELEGATED_XA: dict[str, Any] = {
    "domain": "xa",
    "nameservers": [{"ns": "ns1.xa", "ip": "192.0.2.53"}],
}


class SteppingClock:
    """Stand-in for the store's now(): advances one second per call."""

    def __init__(self, start: datetime | None = None) -> None:
        self.current = start or datetime(2026, 1, 1, tzinfo=UTC)

    def __call__(self) -> datetime:
        self.current += timedelta(seconds=1)
        return self.current


class RecordingExecutor:
    """JobExecutor that records every handoff instead of running it."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, CanonicalParameters]] = []

    def execute(self, identity: str, params: CanonicalParameters) -> None:
        self.calls.append((identity, params))

    @property
    def identities(self) -> list[str]:
        return [identity for identity, _ in self.calls]


class FailingExecutor:
    """JobExecutor whose worker trigger is unreachable."""

    def execute(self, identity: str, params: CanonicalParameters) -> None:
        raise ConnectionError("worker queue unreachable")


def insert_legacy_job(
    db: JobDB,
    raw_params_json: str,
    *,
    domain: str = "legacy.example",
    delegation_class: str | None = None,
    state: str = "completed",
    result_json: str | None = '{"messages": []}',
) -> tuple[int, str]:
    """Insert a row the way the pre-classification schema left it.

    raw_params_json is stored as given so tests can plant undecodable rows.

    Returns:
        (job_id, identity)
    """
    identity = uuid.uuid4().hex[:16]
    timestamp = datetime(2024, 1, 1, tzinfo=UTC)
    with db.connection() as conn:
        result = conn.execute(
            jobs_table.insert().values(
                identity=identity,
                domain=domain,
                params_json=json.dumps({"domain": domain}),
                raw_params_json=raw_params_json,
                delegation_class=delegation_class,
                state=state,
                progress=100 if state in ("completed", "failed") else None,
                submitted_at=timestamp,
                finished_at=timestamp if state in ("completed", "failed") else None,
                result_json=result_json,
                canonical_version=CANONICAL_VERSION,
            )
        )
        job_id = int(result.inserted_primary_key[0])
    return job_id, identity
