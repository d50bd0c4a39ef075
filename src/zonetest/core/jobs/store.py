# src/zonetest/core/jobs/store.py
"""JobStore: the API surface for test jobs.

Callers submit tests and query progress, results and history; workers
advance jobs through their lifecycle. All coordination between API
processes and worker processes goes through the database.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from zonetest.core.jobs._database_ops import DatabaseOps
from zonetest.core.jobs._lifecycle import LifecycleMixin
from zonetest.core.jobs._query_methods import QueryMethodsMixin
from zonetest.core.jobs._submission import SubmissionMixin
from zonetest.core.jobs.executor import NullExecutor
from zonetest.core.jobs.repositories import JobRepository, JobSummaryRepository
from zonetest.core.jobs.reuse import ReusePolicy
from zonetest.core.jobs.translation import PassthroughTranslator

if TYPE_CHECKING:
    from zonetest.core.config import ZonetestSettings
    from zonetest.core.jobs.database import JobDB
    from zonetest.core.jobs.executor import JobExecutor
    from zonetest.core.jobs.translation import ResultTranslator


class JobStore(SubmissionMixin, LifecycleMixin, QueryMethodsMixin):
    """High-level API for DNS delegation test jobs.

    Example:
        db = JobDB.in_memory()
        store = JobStore(db, ZonetestSettings())

        submitted = store.submit({"domain": "afnic.fr"})
        store.advance(submitted.identity, JobState.RUNNING)
        store.advance(submitted.identity, JobState.COMPLETED, result=[...])
        store.results(submitted.identity)
    """

    def __init__(
        self,
        db: JobDB,
        settings: ZonetestSettings,
        *,
        executor: JobExecutor | None = None,
        reuse_policy: ReusePolicy | None = None,
        translator: ResultTranslator | None = None,
    ) -> None:
        """Initialize the store.

        Args:
            db: JobDB instance for storage
            settings: Validated settings (profiles, reuse window, languages)
            executor: Worker handoff for newly queued jobs (default: leave
                queued for polling workers)
            reuse_policy: Reuse decision (default: window from settings)
            translator: Result localization (default: passthrough)
        """
        self._db = db
        self._settings = settings
        self._executor = executor if executor is not None else NullExecutor()
        self._reuse_policy = reuse_policy if reuse_policy is not None else ReusePolicy.from_settings(settings.jobs)
        self._translator = translator if translator is not None else PassthroughTranslator()

        # Database operations helper for reduced boilerplate
        self._ops = DatabaseOps(db)

        # Repository instances for row-to-object conversions
        self._job_repo = JobRepository()
        self._summary_repo = JobSummaryRepository()
