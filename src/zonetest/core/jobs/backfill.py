# src/zonetest/core/jobs/backfill.py
"""Back-fill of the delegation class for historical jobs.

Jobs stored before the delegation_class column existed only carry their
raw parameters. This routine re-derives the class from those parameters
through the same canonicalize()/classify() path live submissions use, so
historical and new rows can never disagree.

Only the delegation_class column is written. Raw parameters, results and
identities are left untouched.
"""

import json
from collections.abc import Callable
from contextlib import AbstractContextManager
from dataclasses import dataclass, field
from time import perf_counter
from typing import TYPE_CHECKING

from sqlalchemy import Connection, select

from zonetest.contracts.errors import InvalidInputError
from zonetest.core.jobs.schema import jobs_table
from zonetest.core.logging import get_logger
from zonetest.core.params import canonicalize, classify

if TYPE_CHECKING:
    from zonetest.core.config import JobSettings
    from zonetest.core.jobs.database import JobDB

logger = get_logger(__name__)

ConnectionFactory = Callable[[], AbstractContextManager[Connection]]


@dataclass
class BackfillFailure:
    """A row whose stored parameters could not be classified."""

    job_id: int
    identity: str
    reason: str


@dataclass
class BackfillReport:
    """Result of a back-fill run."""

    scanned: int = 0
    updated: int = 0
    unchanged: int = 0
    failures: list[BackfillFailure] = field(default_factory=list)
    duration_seconds: float = 0.0

    @property
    def ok(self) -> bool:
        return not self.failures


def backfill_delegation_class(
    db: "JobDB",
    settings: "JobSettings",
    *,
    reclassify_all: bool = False,
    chunk_size: int | None = None,
) -> BackfillReport:
    """Derive and store the delegation class for historical jobs.

    Each chunk commits in its own transaction, so an interrupted run keeps
    its progress and a re-run resumes with the rows still missing a class.

    Args:
        db: Job store database
        settings: Job settings (default profile for parameter reconstruction)
        reclassify_all: Re-derive every row, not only rows without a class
        chunk_size: Rows per transaction (default: settings.backfill_chunk_size)

    Returns:
        BackfillReport with counts and per-row failures
    """
    return run_backfill(db.connection, settings, reclassify_all=reclassify_all, chunk_size=chunk_size)


def run_backfill(
    connect: ConnectionFactory,
    settings: "JobSettings",
    *,
    reclassify_all: bool = False,
    chunk_size: int | None = None,
) -> BackfillReport:
    """Back-fill over connections produced by connect().

    Used directly by the schema migration, which already holds a connection.

    Rows are walked by ascending job_id (keyset pagination), so every row
    that exists when the walk reaches its id is visited exactly once, even
    when failed rows stay unclassified or new jobs arrive meanwhile.
    """
    chunk_size = chunk_size or settings.backfill_chunk_size
    if chunk_size <= 0:
        raise ValueError(f"chunk_size must be > 0, got {chunk_size}")

    start_time = perf_counter()
    report = BackfillReport()
    last_job_id = 0

    while True:
        with connect() as conn:
            query = (
                select(
                    jobs_table.c.job_id,
                    jobs_table.c.identity,
                    jobs_table.c.raw_params_json,
                    jobs_table.c.delegation_class,
                )
                .where(jobs_table.c.job_id > last_job_id)
                .order_by(jobs_table.c.job_id.asc())
                .limit(chunk_size)
            )
            if not reclassify_all:
                query = query.where(jobs_table.c.delegation_class.is_(None))
            rows = conn.execute(query).fetchall()
            if not rows:
                break

            for row in rows:
                report.scanned += 1
                try:
                    raw = json.loads(row.raw_params_json)
                    derived = classify(canonicalize(raw, settings, strict=False))
                except (ValueError, InvalidInputError) as e:
                    # json.JSONDecodeError is a ValueError
                    report.failures.append(BackfillFailure(job_id=row.job_id, identity=row.identity, reason=str(e)))
                    logger.warning("backfill skipped job", job_id=row.job_id, identity=row.identity, reason=str(e))
                    continue

                if row.delegation_class == derived.value:
                    report.unchanged += 1
                    continue

                conn.execute(jobs_table.update().where(jobs_table.c.job_id == row.job_id).values(delegation_class=derived.value))
                report.updated += 1

            last_job_id = rows[-1].job_id

    report.duration_seconds = perf_counter() - start_time
    logger.info(
        "delegation class backfill finished",
        scanned=report.scanned,
        updated=report.updated,
        unchanged=report.unchanged,
        failed=len(report.failures),
        duration_seconds=round(report.duration_seconds, 3),
    )
    return report
