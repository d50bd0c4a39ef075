# src/zonetest/core/jobs/_query_methods.py
"""Read-side methods for JobStore: lookups, progress, results and history."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

from sqlalchemy import ColumnElement, Connection, func, select

from zonetest.contracts.enums import DelegationClass, JobState
from zonetest.contracts.errors import InvalidInputError, NotFoundError, NotReadyError
from zonetest.contracts.jobs import BatchJob, BatchStatus, HistoryPage, HistorySnapshot, Job, TestResults
from zonetest.core.jobs._helpers import coerce_enum, ensure_utc
from zonetest.core.jobs.schema import batch_members_table, batches_table, jobs_table
from zonetest.core.params import normalize_domain

if TYPE_CHECKING:
    from zonetest.core.config import ZonetestSettings
    from zonetest.core.jobs._database_ops import DatabaseOps
    from zonetest.core.jobs.database import JobDB
    from zonetest.core.jobs.repositories import JobRepository, JobSummaryRepository
    from zonetest.core.jobs.translation import ResultTranslator

# Reported for running jobs whose worker has not sent a progress value yet
RUNNING_PROGRESS_FALLBACK = 50


def progress_for(state: JobState, reported: int | None) -> int:
    """Map a job's state and last reported progress to 0-100."""
    if state is JobState.QUEUED:
        return 0
    if state.is_terminal:
        return 100
    return reported if reported is not None else RUNNING_PROGRESS_FALLBACK


def _take_snapshot(conn: Connection) -> HistorySnapshot:
    row = conn.execute(select(func.max(jobs_table.c.job_id), func.max(jobs_table.c.submitted_at))).one()
    if row[0] is None:
        return HistorySnapshot(job_id=0, submitted_at=None)
    return HistorySnapshot(job_id=int(row[0]), submitted_at=ensure_utc(row[1]))


def _snapshot_conditions(snapshot: HistorySnapshot) -> list[ColumnElement[bool]]:
    conditions = [jobs_table.c.job_id <= snapshot.job_id]
    if snapshot.submitted_at is not None:
        conditions.append(jobs_table.c.submitted_at <= snapshot.submitted_at)
    return conditions


class QueryMethodsMixin:
    """Query methods. Mixed into JobStore."""

    # Shared state annotations (set by JobStore.__init__)
    _db: JobDB
    _ops: DatabaseOps
    _settings: ZonetestSettings
    _job_repo: JobRepository
    _summary_repo: JobSummaryRepository
    _translator: ResultTranslator

    def get(self, identity: str) -> Job:
        """Get a job by identity.

        Raises:
            NotFoundError: If no job has this identity
        """
        row = self._ops.execute_fetchone(select(jobs_table).where(jobs_table.c.identity == identity))
        if row is None:
            raise NotFoundError("job", identity)
        return self._job_repo.load(row)

    def get_params(self, identity: str) -> dict[str, Any]:
        """Get the parameters exactly as the client submitted them.

        Raises:
            NotFoundError: If no job has this identity
        """
        raw = self._ops.execute_scalar(select(jobs_table.c.raw_params_json).where(jobs_table.c.identity == identity))
        if raw is None:
            raise NotFoundError("job", identity)
        params: dict[str, Any] = json.loads(raw)
        return params

    def progress(self, identity: str) -> int:
        """Get job progress as a percentage.

        Raises:
            NotFoundError: If no job has this identity
        """
        row = self._ops.execute_fetchone(
            select(jobs_table.c.state, jobs_table.c.progress).where(jobs_table.c.identity == identity)
        )
        if row is None:
            raise NotFoundError("job", identity)
        return progress_for(JobState(row.state), row.progress)

    def results(self, identity: str, language: str | None = None, *, require_terminal: bool = True) -> TestResults:
        """Get a job's original parameters, classification and result.

        Args:
            identity: Job identity
            language: Language to render the result in (default from settings)
            require_terminal: Raise NotReadyError instead of returning a
                result-less view for a job still in flight

        Raises:
            NotFoundError: If no job has this identity
            NotReadyError: If require_terminal and the job has not finished
            InvalidInputError: If the language is not configured
        """
        job = self.get(identity)
        language = language or self._settings.jobs.default_language
        if language not in self._settings.jobs.languages:
            raise InvalidInputError("language", f"unsupported, expected one of {self._settings.jobs.languages}", value=language)

        if not job.state.is_terminal:
            if require_terminal:
                raise NotReadyError(identity, job.state.value)
            result = None
        else:
            result = self._translator.translate(job.result, language) if job.result is not None else None

        return TestResults(
            identity=job.identity,
            params=job.raw_params,
            delegation_class=job.delegation_class,
            state=job.state,
            language=language,
            result=result,
        )

    def history(
        self,
        *,
        domain: str | None = None,
        delegation_class: DelegationClass | str | None = None,
        offset: int = 0,
        limit: int | None = None,
        as_of: HistorySnapshot | str | None = None,
    ) -> HistoryPage:
        """List jobs, most recently submitted first.

        Args:
            domain: Only jobs for this domain (normalized like submissions)
            delegation_class: Only jobs stored with exactly this class
            offset: Rows to skip
            limit: Page size (default and maximum: jobs.history_max_limit)
            as_of: Snapshot returned by a previous page (or its string
                form); omit for the first page

        Returns:
            HistoryPage ordered by submission time descending, ties by job_id

        Raises:
            InvalidInputError: If a filter or paging argument is invalid
        """
        max_limit = self._settings.jobs.history_max_limit
        if limit is None:
            limit = max_limit
        if isinstance(offset, bool) or not isinstance(offset, int) or offset < 0:
            raise InvalidInputError("offset", "must be a non-negative integer", value=offset)
        if isinstance(limit, bool) or not isinstance(limit, int) or not 1 <= limit <= max_limit:
            raise InvalidInputError("limit", f"must be between 1 and {max_limit}", value=limit)

        conditions = []
        if domain is not None:
            conditions.append(jobs_table.c.domain == normalize_domain(domain))
        if delegation_class is not None:
            try:
                wanted = coerce_enum(delegation_class, DelegationClass)
            except ValueError as e:
                raise InvalidInputError("delegation_class", "unknown delegation class", value=delegation_class) from e
            conditions.append(jobs_table.c.delegation_class == wanted.value)
        if isinstance(as_of, str):
            try:
                as_of = HistorySnapshot.parse(as_of)
            except ValueError as e:
                raise InvalidInputError("as_of", "not a history snapshot", value=as_of) from e

        with self._db.connection() as conn:
            if as_of is None:
                as_of = _take_snapshot(conn)
            rows = conn.execute(
                select(
                    jobs_table.c.job_id,
                    jobs_table.c.identity,
                    jobs_table.c.domain,
                    jobs_table.c.delegation_class,
                    jobs_table.c.state,
                    jobs_table.c.submitted_at,
                )
                .where(*_snapshot_conditions(as_of), *conditions)
                .order_by(jobs_table.c.submitted_at.desc(), jobs_table.c.job_id.asc())
                .offset(offset)
                .limit(limit)
            ).fetchall()

        return HistoryPage(
            items=[self._summary_repo.load(row) for row in rows],
            as_of=as_of,
            offset=offset,
            limit=limit,
        )

    def get_batch(self, batch_id: str) -> BatchJob:
        """Get a batch and its member identities in submission order.

        Raises:
            NotFoundError: If the batch does not exist
        """
        with self._db.connection() as conn:
            batch = conn.execute(select(batches_table).where(batches_table.c.batch_id == batch_id)).fetchone()
            if batch is None:
                raise NotFoundError("batch", batch_id)
            members = conn.execute(
                select(jobs_table.c.identity)
                .select_from(batch_members_table.join(jobs_table, batch_members_table.c.job_id == jobs_table.c.job_id))
                .where(batch_members_table.c.batch_id == batch_id)
                .order_by(batch_members_table.c.ordinal.asc())
            ).fetchall()

        return BatchJob(
            batch_id=batch.batch_id,
            template=json.loads(batch.template_json),
            identities=[row.identity for row in members],
            created_at=ensure_utc(batch.created_at),
        )

    def batch_status(self, batch_id: str) -> BatchStatus:
        """Summarize member progress for a batch.

        Raises:
            NotFoundError: If the batch does not exist
        """
        with self._db.connection() as conn:
            exists = conn.execute(select(batches_table.c.batch_id).where(batches_table.c.batch_id == batch_id)).fetchone()
            if exists is None:
                raise NotFoundError("batch", batch_id)
            rows = conn.execute(
                select(jobs_table.c.identity, jobs_table.c.state, jobs_table.c.progress)
                .distinct()
                .select_from(batch_members_table.join(jobs_table, batch_members_table.c.job_id == jobs_table.c.job_id))
                .where(batch_members_table.c.batch_id == batch_id)
                .order_by(jobs_table.c.identity.asc())
            ).fetchall()

        counts = dict.fromkeys(JobState, 0)
        finished: list[str] = []
        total_progress = 0
        for row in rows:
            state = JobState(row.state)
            counts[state] += 1
            total_progress += progress_for(state, row.progress)
            if state.is_terminal:
                finished.append(row.identity)

        return BatchStatus(
            batch_id=batch_id,
            total=len(rows),
            counts=counts,
            finished=finished,
            progress=total_progress // len(rows) if rows else 0,
        )
