# src/zonetest/core/jobs/_lifecycle.py
"""Worker-facing lifecycle methods for JobStore."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any, NoReturn

from sqlalchemy import Connection, select

from zonetest.contracts.enums import ALLOWED_TRANSITIONS, JobState
from zonetest.contracts.errors import InvalidInputError, InvalidTransitionError, NotFoundError, StoreIntegrityError
from zonetest.contracts.jobs import Job
from zonetest.core.jobs._helpers import coerce_enum, now
from zonetest.core.jobs.schema import jobs_table
from zonetest.core.logging import get_logger, job_context

if TYPE_CHECKING:
    from sqlalchemy.engine import Row

    from zonetest.core.jobs.database import JobDB
    from zonetest.core.jobs.repositories import JobRepository

logger = get_logger(__name__)

# Racing workers may grab the same queued row; a lost race just moves on
_MAX_CLAIM_ATTEMPTS = 5


def _validate_progress(progress: Any) -> int | None:
    if progress is None:
        return None
    if isinstance(progress, bool) or not isinstance(progress, int):
        raise InvalidInputError("progress", "must be an integer", value=progress)
    # 100 is reserved for terminal states
    if not 0 <= progress <= 99:
        raise InvalidInputError("progress", "must be between 0 and 99 while running", value=progress)
    return progress


def _dump_result(result: Any) -> str | None:
    if result is None:
        return None
    try:
        return json.dumps(result, allow_nan=False)
    except (TypeError, ValueError) as e:
        raise InvalidInputError("result", f"is not JSON-serializable: {e}") from e


class LifecycleMixin:
    """State transitions driven by workers. Mixed into JobStore."""

    # Shared state annotations (set by JobStore.__init__)
    _db: JobDB
    _job_repo: JobRepository

    def advance(
        self,
        identity: str,
        state: JobState | str,
        result: Any = None,
        *,
        progress: int | None = None,
    ) -> Job:
        """Move a job along its state machine.

        Allowed: queued -> running, running -> running (progress update),
        running -> completed, running -> failed. The update is conditioned
        on the state and progress that were read, so a retried or racing
        call cannot apply the same transition twice or overwrite a terminal
        state.

        Args:
            identity: Job identity
            state: Requested state
            result: Result payload (JSON-serializable); terminal states only
            progress: In-flight progress 0-99; running state only

        Returns:
            The job after the transition

        Raises:
            NotFoundError: If no job has this identity
            InvalidTransitionError: If the state machine forbids the move
            InvalidInputError: If progress or result are malformed
        """
        try:
            target = coerce_enum(state, JobState)
        except ValueError as e:
            raise InvalidInputError("state", "unknown job state", value=state) from e

        progress = _validate_progress(progress)
        if progress is not None and target is not JobState.RUNNING:
            raise InvalidInputError("progress", "only running jobs report progress", value=progress)
        if result is not None and not target.is_terminal:
            raise InvalidInputError("result", "only completed or failed jobs carry a result")
        result_json = _dump_result(result)

        with job_context(identity):
            with self._db.connection() as conn:
                row = self._fetch_for_update(conn, identity)
                if row is None:
                    raise NotFoundError("job", identity)
                current = JobState(row.state)

                if target not in ALLOWED_TRANSITIONS[current]:
                    self._reject(identity, current, target, "transition not allowed")
                if (
                    current is JobState.RUNNING
                    and target is JobState.RUNNING
                    and progress is not None
                    and row.progress is not None
                    and progress < row.progress
                ):
                    self._reject(identity, current, target, f"progress cannot decrease from {row.progress} to {progress}")

                timestamp = now()
                values: dict[str, Any] = {"state": target.value}
                if current is JobState.QUEUED:
                    values["started_at"] = timestamp
                if target is JobState.RUNNING:
                    if progress is not None:
                        values["progress"] = progress
                else:
                    values["progress"] = 100
                    values["finished_at"] = timestamp
                    values["result_json"] = result_json

                updated = conn.execute(
                    jobs_table.update()
                    .where(
                        jobs_table.c.job_id == row.job_id,
                        jobs_table.c.state == current.value,
                        jobs_table.c.progress.is_not_distinct_from(row.progress),
                    )
                    .values(**values)
                ).rowcount
                if updated == 0:
                    self._reject(identity, current, target, "job changed concurrently")

                job_row = conn.execute(select(jobs_table).where(jobs_table.c.job_id == row.job_id)).fetchone()

            if job_row is None:
                raise StoreIntegrityError(f"Job {identity} not found after update - database corruption or transaction failure")
            if current is not target:
                logger.info("job advanced", from_state=current.value, to_state=target.value)
            return self._job_repo.load(job_row)

    def claim_next(self) -> Job | None:
        """Atomically move the oldest queued job to running.

        For workers that poll instead of receiving handoffs.

        Returns:
            The claimed job, or None when nothing is queued
        """
        for _ in range(_MAX_CLAIM_ATTEMPTS):
            with self._db.connection() as conn:
                candidate = conn.execute(
                    select(jobs_table.c.job_id, jobs_table.c.identity)
                    .where(jobs_table.c.state == JobState.QUEUED.value)
                    .order_by(jobs_table.c.submitted_at.asc(), jobs_table.c.job_id.asc())
                    .limit(1)
                    .with_for_update(skip_locked=True)
                ).fetchone()
                if candidate is None:
                    return None

                claimed = conn.execute(
                    jobs_table.update()
                    .where(jobs_table.c.job_id == candidate.job_id, jobs_table.c.state == JobState.QUEUED.value)
                    .values(state=JobState.RUNNING.value, started_at=now())
                ).rowcount
                if claimed == 0:
                    continue

                job_row = conn.execute(select(jobs_table).where(jobs_table.c.job_id == candidate.job_id)).fetchone()

            if job_row is None:
                raise StoreIntegrityError(f"Job {candidate.identity} not found after claim - database corruption or transaction failure")
            logger.info("job claimed", identity=candidate.identity)
            return self._job_repo.load(job_row)
        return None

    @staticmethod
    def _fetch_for_update(conn: Connection, identity: str) -> Row[Any] | None:
        return conn.execute(
            select(jobs_table.c.job_id, jobs_table.c.state, jobs_table.c.progress)
            .where(jobs_table.c.identity == identity)
            .with_for_update()
        ).fetchone()

    @staticmethod
    def _reject(identity: str, current: JobState, target: JobState, reason: str) -> NoReturn:
        logger.warning(
            "invalid job transition rejected",
            from_state=current.value,
            to_state=target.value,
            reason=reason,
        )
        raise InvalidTransitionError(identity, current.value, target.value, reason)
