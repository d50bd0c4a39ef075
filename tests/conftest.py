# tests/conftest.py
"""Shared test fixtures and helpers.

Fixtures:
- zonetest_settings: ZonetestSettings with two profiles and two languages
- job_db: In-memory SQLite JobDB (fresh per test)
- executor: RecordingExecutor capturing worker handoffs
- store: JobStore wired to the three fixtures above
- clock: SteppingClock patched in as the submission timestamp source

Hypothesis Configuration:
- "ci" profile: Fast tests for CI (100 examples) - default
- "nightly" profile: Thorough tests (1000 examples)
- "debug" profile: Minimal tests with verbose output (10 examples)

Set profile via environment variable:
    HYPOTHESIS_PROFILE=nightly pytest tests/property/
"""

import os
from collections.abc import Iterator

import pytest
from hypothesis import Phase, Verbosity, settings

from tests.fixtures.jobs import RecordingExecutor, SteppingClock
from zonetest.core.config import JobSettings, ZonetestSettings
from zonetest.core.jobs import JobDB, JobStore


@pytest.fixture
def zonetest_settings() -> ZonetestSettings:
    return ZonetestSettings(
        jobs=JobSettings(
            default_profile="default",
            profiles=["default", "strict"],
            languages=["en", "fr"],
            history_max_limit=50,
        )
    )


@pytest.fixture
def job_db() -> Iterator[JobDB]:
    db = JobDB.in_memory()
    yield db
    db.close()


@pytest.fixture
def executor() -> RecordingExecutor:
    return RecordingExecutor()


@pytest.fixture
def store(job_db: JobDB, zonetest_settings: ZonetestSettings, executor: RecordingExecutor) -> JobStore:
    return JobStore(job_db, zonetest_settings, executor=executor)


@pytest.fixture
def clock(monkeypatch: pytest.MonkeyPatch) -> SteppingClock:
    """Submission timestamps one second apart, so ordering never depends on timer resolution."""
    stepping = SteppingClock()
    monkeypatch.setattr("zonetest.core.jobs._submission.now", stepping)
    return stepping


# =============================================================================
# Hypothesis Configuration
# =============================================================================

# CI profile: Fast tests for continuous integration
settings.register_profile(
    "ci",
    max_examples=100,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,  # Disable deadline for CI (timing varies)
)

# Nightly profile: Thorough testing for scheduled runs
settings.register_profile(
    "nightly",
    max_examples=1000,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,
)

# Debug profile: Minimal examples with verbose output for debugging
settings.register_profile(
    "debug",
    max_examples=10,
    verbosity=Verbosity.verbose,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,
)

# Load profile from environment, default to "ci"
settings.load_profile(os.getenv("HYPOTHESIS_PROFILE", "ci"))
