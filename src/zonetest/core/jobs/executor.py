"""Handoff of newly queued jobs to the DNS-probing worker.

The store calls JobExecutor.execute() after the job is durably committed
and never waits for the outcome. Workers report back through
JobStore.advance(); they are the only writers of state and results.
"""

from __future__ import annotations

from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Protocol, Self, runtime_checkable

from zonetest.contracts.params import CanonicalParameters
from zonetest.core.logging import get_logger

logger = get_logger(__name__)

JobHandler = Callable[[str, CanonicalParameters], None]


@runtime_checkable
class JobExecutor(Protocol):
    """Fire-and-forget trigger for the external worker."""

    def execute(self, identity: str, params: CanonicalParameters) -> None:
        """Start work on a queued job. Must not block on its completion."""
        ...


class NullExecutor:
    """Executor for deployments where workers poll with JobStore.claim_next()."""

    def execute(self, identity: str, params: CanonicalParameters) -> None:
        logger.debug("job left for polling worker", identity=identity)


class ThreadPoolJobExecutor:
    """Runs a handler for each queued job on a background thread pool.

    The handler owns the job from here on: it is expected to move the job
    to running and then to a terminal state through JobStore.advance().
    Exceptions escaping the handler are logged with the job identity; the
    job stays in whatever state the handler last recorded.

    Usage:
        with ThreadPoolJobExecutor(run_engine, max_workers=4) as executor:
            store = JobStore(db, settings, executor=executor)
            store.submit({"domain": "example.org"})
    """

    def __init__(self, handler: JobHandler, *, max_workers: int = 4) -> None:
        self._handler = handler
        self._pool = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="zonetest-job")

    def execute(self, identity: str, params: CanonicalParameters) -> None:
        future = self._pool.submit(self._handler, identity, params)
        future.add_done_callback(lambda f: self._report(identity, f))

    @staticmethod
    def _report(identity: str, future: Future[None]) -> None:
        if future.cancelled():
            logger.warning("job handoff cancelled", identity=identity)
            return
        exc = future.exception()
        if exc is not None:
            logger.error(
                "job handler raised",
                identity=identity,
                error_type=type(exc).__name__,
                error=str(exc),
                exc_info=exc,
            )

    def shutdown(self, *, wait: bool = True) -> None:
        self._pool.shutdown(wait=wait)

    def __enter__(self) -> Self:
        return self

    def __exit__(self, exc_type: object, exc_val: object, exc_tb: object) -> None:
        self.shutdown()
