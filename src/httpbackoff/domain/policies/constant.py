"""Constant back off policy - every retry waits around the same midpoint"""

from __future__ import annotations

from dataclasses import replace
from random import Random

from httpbackoff.domain.models.interval import BackOffInterval
from httpbackoff.domain.policies.base import Outcome, Policy, is_retryable_outcome


class ConstantBackOffPolicy(Policy):
    """Fixed interval back off with optional jitter"""

    def __init__(
        self,
        max_attempts: int = 5,
        max_elapsed_time_millis: int = 900_000,
        interval_millis: int = 1000,
        randomization_factor: float = 0.0,
    ):
        super().__init__(max_attempts=max_attempts, max_elapsed_time_millis=max_elapsed_time_millis)
        if interval_millis < 0:
            raise ValueError("interval_millis must be >= 0")
        if not 0.0 <= randomization_factor <= 1.0:
            raise ValueError("randomization_factor must be between 0.0 and 1.0")
        self.interval_millis = interval_millis
        self.randomization_factor = randomization_factor

    def retry_required_impl(self, outcome: Outcome, interval: BackOffInterval) -> bool:
        return is_retryable_outcome(outcome)

    def backoff_required(self, outcome: Outcome, interval: BackOffInterval) -> bool:
        # Always advance the interval so attempts are counted, even with a zero wait
        return True

    def next_backoff_interval(self, last_interval: BackOffInterval, rand: Random) -> BackOffInterval:
        delta = self.randomization_factor * self.interval_millis
        backoff_millis = int(self.interval_millis - delta + rand.random() * 2 * delta)
        return replace(
            last_interval,
            attempts=last_interval.attempts + 1,
            current_interval_midpoint_millis=self.interval_millis,
            backoff_millis=backoff_millis,
        )
