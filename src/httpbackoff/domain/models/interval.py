"""BackOffInterval model - one point in a call's retry progression"""

import time
from dataclasses import dataclass, field


@dataclass(frozen=True)
class BackOffInterval:
    """Immutable back off state for a single call.

    Policies derive a new interval from the previous one with
    ``dataclasses.replace``; ``start_time`` is never changed by a copy, so
    elapsed time is always measured from the first interval of the call.
    """

    attempts: int = 0  # Retries taken so far; policies increment it
    current_interval_midpoint_millis: int = 0  # Non-jittered midpoint
    backoff_millis: int = 0  # Jittered wait chosen for the last retry
    start_time: int = field(default_factory=time.monotonic_ns)  # Nanoseconds, monotonic

    def __post_init__(self):
        """Validate interval data"""
        if self.attempts < 0:
            raise ValueError("attempts must be >= 0")
        if self.current_interval_midpoint_millis < 0:
            raise ValueError("current_interval_midpoint_millis must be >= 0")
        if self.backoff_millis < 0:
            raise ValueError("backoff_millis must be >= 0")

    def elapsed_time_millis(self) -> int:
        """Milliseconds since this call's first interval was created"""
        return (time.monotonic_ns() - self.start_time) // 1_000_000

    @property
    def backoff_seconds(self) -> float:
        """Back off duration in seconds, suitable for sleeping"""
        return self.backoff_millis / 1000.0
