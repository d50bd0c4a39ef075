# src/zonetest/core/jobs/_submission.py
"""Submission methods for JobStore: lookup-or-create with reuse."""

from __future__ import annotations

import json
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import Connection, select
from sqlalchemy.exc import IntegrityError

from zonetest.contracts.enums import DelegationClass, JobState
from zonetest.contracts.errors import InvalidInputError
from zonetest.contracts.jobs import BatchJob, SubmitResult
from zonetest.contracts.params import CanonicalParameters
from zonetest.core.canonical import CANONICAL_VERSION, canonical_json, job_identity
from zonetest.core.jobs._helpers import ensure_utc, generate_id, now
from zonetest.core.jobs.schema import batch_members_table, batches_table, jobs_table
from zonetest.core.logging import get_logger, job_context
from zonetest.core.params import canonicalize, classify, merge_template

if TYPE_CHECKING:
    from zonetest.core.config import ZonetestSettings
    from zonetest.core.jobs.database import JobDB
    from zonetest.core.jobs.executor import JobExecutor
    from zonetest.core.jobs.reuse import ReusePolicy

logger = get_logger(__name__)

# A unique-constraint collision means another caller registered the same
# identity between our lookup and insert; the retry then takes the reuse path.
_MAX_REGISTER_ATTEMPTS = 3


@dataclass(frozen=True)
class PreparedJob:
    """Everything derived from one submission before touching storage."""

    identity: str
    params: CanonicalParameters
    delegation_class: DelegationClass
    params_json: str
    raw_params_json: str


def _dump_raw(raw: Mapping[str, Any], field: str) -> str:
    try:
        return json.dumps(raw, allow_nan=False)
    except (TypeError, ValueError) as e:
        raise InvalidInputError(field, f"is not JSON-serializable: {e}") from e


class SubmissionMixin:
    """Submission methods. Mixed into JobStore."""

    # Shared state annotations (set by JobStore.__init__)
    _db: JobDB
    _settings: ZonetestSettings
    _executor: JobExecutor
    _reuse_policy: ReusePolicy

    def prepare(self, raw: Any) -> PreparedJob:
        """Canonicalize, classify and hash a raw submission. Writes nothing.

        Raises:
            InvalidInputError: If the parameters are malformed
        """
        params = canonicalize(raw, self._settings.jobs)
        return PreparedJob(
            identity=job_identity(params),
            params=params,
            delegation_class=classify(params),
            params_json=canonical_json(params.to_dict()),
            raw_params_json=_dump_raw(raw, "params"),
        )

    def submit(self, raw: Any) -> SubmitResult:
        """Submit a test request, reusing an equivalent job when policy allows.

        The identity lookup and the insert run in one transaction; a
        concurrent submission of the same parameters that wins the insert
        is detected by the unique identity constraint and reused.

        Args:
            raw: Client-supplied test parameters

        Returns:
            SubmitResult with the job identity and whether new work was queued

        Raises:
            InvalidInputError: If the parameters are malformed (nothing is written)
            StorageUnavailableError: If the database cannot be reached
        """
        prepared = self.prepare(raw)

        with job_context(prepared.identity):
            for attempt in range(1, _MAX_REGISTER_ATTEMPTS + 1):
                timestamp = now()
                try:
                    with self._db.connection() as conn:
                        _, created = self._register(conn, prepared, timestamp, batch_id=None)
                    break
                except IntegrityError:
                    if attempt == _MAX_REGISTER_ATTEMPTS:
                        raise
                    logger.debug("identity registered concurrently, retrying", attempt=attempt)

            if created:
                self._handoff(prepared)
            logger.info(
                "job submitted",
                domain=prepared.params.domain,
                delegation_class=prepared.delegation_class.value,
                created=created,
            )
        return SubmitResult(identity=prepared.identity, created=created)

    def submit_batch(self, domains: Sequence[Any], template: Mapping[str, Any]) -> BatchJob:
        """Register one job per domain from a shared parameter template.

        Every member follows the same identity, classification and reuse
        rules as submit(). Jobs that already exist (including ones created
        by submit()) are reused and linked into the batch. The batch row,
        member jobs and membership rows commit together or not at all.

        Args:
            domains: Domains to test, in the order identities are returned
            template: Parameters shared by all members (must not contain "domain")

        Returns:
            BatchJob grouping the member identities

        Raises:
            InvalidInputError: If domains is empty or any member is malformed
                (raised before anything is written)
            StorageUnavailableError: If the database cannot be reached
        """
        if isinstance(domains, str) or not isinstance(domains, Sequence):
            raise InvalidInputError("domains", "must be a list of domain names", value=domains)
        if not domains:
            raise InvalidInputError("domains", "must contain at least one domain")
        if not isinstance(template, Mapping):
            raise InvalidInputError("template", "must be an object", value=template)

        prepared: list[PreparedJob] = []
        for i, domain in enumerate(domains):
            try:
                prepared.append(self.prepare(merge_template(template, domain)))
            except InvalidInputError as e:
                raise InvalidInputError(f"domains[{i}]", str(e), value=domain) from e
        template_json = _dump_raw(template, "template")

        batch_id = generate_id()
        for attempt in range(1, _MAX_REGISTER_ATTEMPTS + 1):
            timestamp = now()
            job_ids: dict[str, int] = {}
            created: list[PreparedJob] = []
            try:
                with self._db.connection() as conn:
                    conn.execute(
                        batches_table.insert().values(
                            batch_id=batch_id,
                            template_json=template_json,
                            created_at=timestamp,
                        )
                    )
                    for ordinal, job in enumerate(prepared):
                        if job.identity not in job_ids:
                            job_id, was_created = self._register(conn, job, timestamp, batch_id=batch_id)
                            job_ids[job.identity] = job_id
                            if was_created:
                                created.append(job)
                        conn.execute(
                            batch_members_table.insert().values(
                                batch_id=batch_id,
                                job_id=job_ids[job.identity],
                                ordinal=ordinal,
                            )
                        )
                break
            except IntegrityError:
                if attempt == _MAX_REGISTER_ATTEMPTS:
                    raise
                logger.debug("batch member registered concurrently, retrying", batch_id=batch_id, attempt=attempt)

        for job in created:
            with job_context(job.identity, batch_id=batch_id):
                self._handoff(job)

        created_identities = frozenset(job.identity for job in created)
        logger.info(
            "batch submitted",
            batch_id=batch_id,
            members=len(prepared),
            created=len(created_identities),
            reused=len(job_ids) - len(created_identities),
        )
        return BatchJob(
            batch_id=batch_id,
            template=dict(template),
            identities=[job.identity for job in prepared],
            created_at=timestamp,
            created=created_identities,
            reused=frozenset(job_ids) - created_identities,
        )

    def _register(self, conn: Connection, job: PreparedJob, timestamp: datetime, *, batch_id: str | None) -> tuple[int, bool]:
        """Lookup-or-create inside the caller's transaction.

        Returns:
            (job_id, created) - created is True when new work was queued,
            either as a fresh row or by re-queueing an expired finished job

        Raises:
            IntegrityError: If a concurrent transaction inserted the same identity
        """
        row = conn.execute(
            select(jobs_table.c.job_id, jobs_table.c.state, jobs_table.c.submitted_at)
            .where(jobs_table.c.identity == job.identity)
            .with_for_update()
        ).fetchone()

        values = {
            "domain": job.params.domain,
            "params_json": job.params_json,
            "raw_params_json": job.raw_params_json,
            "delegation_class": job.delegation_class.value,
            "state": JobState.QUEUED.value,
            "progress": None,
            "submitted_at": timestamp,
            "started_at": None,
            "finished_at": None,
            "result_json": None,
            "batch_id": batch_id,
            "canonical_version": CANONICAL_VERSION,
        }

        if row is None:
            result = conn.execute(jobs_table.insert().values(identity=job.identity, **values))
            return int(result.inserted_primary_key[0]), True

        state = JobState(row.state)
        if self._reuse_policy.is_reusable(state, ensure_utc(row.submitted_at), now=timestamp):
            return int(row.job_id), False

        # Expired finished job: the identity is unique, so the row is re-queued
        # in place. Conditioned on the observed state so only one concurrent
        # submitter performs the refresh.
        refreshed = conn.execute(
            jobs_table.update().where(jobs_table.c.job_id == row.job_id, jobs_table.c.state == state.value).values(**values)
        ).rowcount
        if refreshed == 0:
            return int(row.job_id), False
        logger.info("expired job re-queued", identity=job.identity, previous_state=state.value)
        return int(row.job_id), True

    def _handoff(self, job: PreparedJob) -> None:
        """Trigger the worker for a committed job without waiting for it."""
        try:
            self._executor.execute(job.identity, job.params)
        except Exception as e:
            # The job is durably queued; polling workers (claim_next) still pick it up.
            logger.error(
                "job handoff failed, left queued",
                error_type=type(e).__name__,
                error=str(e),
            )
