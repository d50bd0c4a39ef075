"""Reuse policy: when an existing job satisfies an identical submission.

This is the single place the reuse window is decided. Identity and
classification logic never look at time; swapping the policy changes
reuse behaviour without touching them.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import TYPE_CHECKING

from zonetest.contracts.enums import JobState

if TYPE_CHECKING:
    from zonetest.core.config import JobSettings


class ReusePolicy:
    """Window-based reuse.

    A job that is still queued or running is always reused - re-running it
    would duplicate in-flight work. A finished job is reused while it is
    younger than the window, measured from its submission.
    """

    def __init__(self, window_seconds: int) -> None:
        if window_seconds < 0:
            raise ValueError(f"window_seconds must be >= 0, got {window_seconds}")
        self._window = timedelta(seconds=window_seconds)

    @classmethod
    def from_settings(cls, settings: JobSettings) -> ReusePolicy:
        return cls(settings.reuse_window_seconds)

    @property
    def window(self) -> timedelta:
        return self._window

    def is_reusable(self, state: JobState, submitted_at: datetime, *, now: datetime) -> bool:
        """Decide whether the job may stand in for a new identical submission.

        Args:
            state: Current state of the existing job
            submitted_at: When the existing job was (last) submitted, UTC
            now: Time of the new submission, UTC
        """
        if not state.is_terminal:
            return True
        return now - submitted_at < self._window
