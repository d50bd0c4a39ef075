"""All status codes and classes used across subsystem boundaries.

Every value here is stored in the database as its string form.
Repositories convert back to the enum on read and crash on unknown values.
"""

from enum import StrEnum


class JobState(StrEnum):
    """Lifecycle state of a test job.

    Stored in the database (jobs.state).

    Transitions: QUEUED -> RUNNING -> {COMPLETED, FAILED}.
    """

    QUEUED = "queued"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        """Whether no further worker transition is allowed."""
        return self in (JobState.COMPLETED, JobState.FAILED)


class DelegationClass(StrEnum):
    """Whether a test uses live delegation or caller-supplied overrides.

    Stored in the database (jobs.delegation_class). NULL only for
    historical rows that have not been back-filled yet.
    """

    DELEGATED = "delegated"
    UNDELEGATED = "undelegated"


# Worker-driven transitions. RUNNING -> RUNNING is a progress update.
ALLOWED_TRANSITIONS: dict[JobState, frozenset[JobState]] = {
    JobState.QUEUED: frozenset({JobState.RUNNING}),
    JobState.RUNNING: frozenset({JobState.RUNNING, JobState.COMPLETED, JobState.FAILED}),
    JobState.COMPLETED: frozenset(),
    JobState.FAILED: frozenset(),
}
