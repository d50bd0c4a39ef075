"""Job store: persistence and lifecycle of DNS delegation test jobs.

Primary API:
    JobStore - Submission, worker lifecycle, progress, results and history
    JobDB - Database connection management

Supporting pieces:
    ReusePolicy - When an existing job satisfies an identical submission
    JobExecutor, NullExecutor, ThreadPoolJobExecutor - Worker handoff
    backfill_delegation_class - Historical classification back-fill
"""

from zonetest.core.jobs.backfill import BackfillFailure, BackfillReport, backfill_delegation_class, run_backfill
from zonetest.core.jobs.database import JobDB, SchemaCompatibilityError
from zonetest.core.jobs.executor import JobExecutor, NullExecutor, ThreadPoolJobExecutor
from zonetest.core.jobs.reuse import ReusePolicy
from zonetest.core.jobs.schema import batch_members_table, batches_table, jobs_table, metadata
from zonetest.core.jobs.store import JobStore
from zonetest.core.jobs.translation import PassthroughTranslator, ResultTranslator

__all__ = [
    "BackfillFailure",
    "BackfillReport",
    "JobDB",
    "JobExecutor",
    "JobStore",
    "NullExecutor",
    "PassthroughTranslator",
    "ResultTranslator",
    "ReusePolicy",
    "SchemaCompatibilityError",
    "ThreadPoolJobExecutor",
    "backfill_delegation_class",
    "batch_members_table",
    "batches_table",
    "jobs_table",
    "metadata",
    "run_backfill",
]
