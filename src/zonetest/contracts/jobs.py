"""Job store record contracts.

These are strict contracts - enum fields use proper enum types.
The repository layer handles string -> enum conversion for DB reads.
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from zonetest.contracts.enums import DelegationClass, JobState


def _validate_enum(value: object, enum_type: type, field_name: str) -> None:
    """Validate that value is an instance of the expected enum type.

    Rows come from our own database; a wrong type means a bug upstream,
    so crash instead of coercing.
    """
    if value is not None and not isinstance(value, enum_type):
        raise TypeError(f"{field_name} must be {enum_type.__name__}, got {type(value).__name__}: {value!r}")


@dataclass
class Job:
    """One requested-and-tracked test.

    Strict contract - state must be JobState, delegation_class must be
    DelegationClass or None (historical row not back-filled yet).
    """

    job_id: int
    identity: str
    domain: str
    params: dict[str, Any]  # canonical form
    raw_params: dict[str, Any]  # verbatim submission
    delegation_class: DelegationClass | None
    state: JobState
    submitted_at: datetime
    canonical_version: str
    progress: int | None = None
    started_at: datetime | None = None
    finished_at: datetime | None = None
    result: Any = None
    batch_id: str | None = None

    def __post_init__(self) -> None:
        _validate_enum(self.state, JobState, "state")
        _validate_enum(self.delegation_class, DelegationClass, "delegation_class")


@dataclass
class JobSummary:
    """A history entry."""

    job_id: int
    identity: str
    domain: str
    delegation_class: DelegationClass | None
    state: JobState
    submitted_at: datetime

    def __post_init__(self) -> None:
        _validate_enum(self.state, JobState, "state")
        _validate_enum(self.delegation_class, DelegationClass, "delegation_class")


@dataclass(frozen=True)
class HistorySnapshot:
    """Upper bound of a history listing.

    A job belongs to the snapshot when both its job_id and its submitted_at
    are at or below the bound. New jobs fail the job_id test; an expired job
    re-queued in place keeps its job_id but fails the submitted_at test.

    The string form ("0" for an empty store, else "<job_id>@<iso timestamp>")
    is what clients pass back for the next page.
    """

    job_id: int
    submitted_at: datetime | None

    def __str__(self) -> str:
        if self.submitted_at is None:
            return str(self.job_id)
        return f"{self.job_id}@{self.submitted_at.isoformat()}"

    @classmethod
    def parse(cls, token: str) -> "HistorySnapshot":
        """Parse the string form.

        Raises:
            ValueError: If token is not a snapshot string
        """
        job_id, sep, stamp = token.strip().partition("@")
        if not sep:
            if int(job_id) != 0:
                raise ValueError(f"snapshot without timestamp must be 0, got {token!r}")
            return cls(job_id=0, submitted_at=None)
        submitted_at = datetime.fromisoformat(stamp)
        if submitted_at.tzinfo is None:
            raise ValueError(f"snapshot timestamp must carry a UTC offset, got {token!r}")
        return cls(job_id=int(job_id), submitted_at=submitted_at.astimezone(UTC))


@dataclass
class HistoryPage:
    """One page of history.

    Pass as_of back when fetching the next page so jobs submitted or
    re-queued in between cannot shift into rows already returned.
    """

    items: list[JobSummary]
    as_of: HistorySnapshot
    offset: int
    limit: int


@dataclass(frozen=True)
class SubmitResult:
    """Outcome of a single submission."""

    identity: str
    created: bool  # False when an existing job was reused


@dataclass
class BatchJob:
    """A set of jobs registered together from one parameter template.

    identities follows the order of the submitted domains. created and
    reused partition the distinct identities by what the submission did.
    """

    batch_id: str
    template: dict[str, Any]
    identities: list[str]
    created_at: datetime
    created: frozenset[str] = field(default_factory=frozenset)
    reused: frozenset[str] = field(default_factory=frozenset)


@dataclass
class BatchStatus:
    """Aggregate progress of a batch."""

    batch_id: str
    total: int
    counts: dict[JobState, int]
    finished: list[str]
    progress: int

    @property
    def is_finished(self) -> bool:
        return len(self.finished) == self.total


@dataclass
class TestResults:
    """Result view returned to API callers.

    result is None whenever the job is not terminal; a result is never
    invented for a job that has not produced one.
    """

    __test__ = False  # not a pytest test class

    identity: str
    params: dict[str, Any]
    delegation_class: DelegationClass | None
    state: JobState
    language: str
    result: Any = None
