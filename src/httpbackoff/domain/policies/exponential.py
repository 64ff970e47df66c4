"""Default exponential back off policy.

Forked from the ExponentialBackOff of the Google HTTP Client Library for Java.
With the defaults, retry midpoints and their randomized ranges are::

    retry#   midpoint (s)   randomized interval (s)
    1         0.5            [0.25,   0.75]
    2         0.75           [0.375,  1.125]
    3         1.125          [0.562,  1.687]
    4         1.687          [0.843,  2.53]
    5         2.53           [1.265,  3.795]
    6         3.795          [1.897,  5.692]
    7         5.692          [2.846,  8.538]
    8         8.538          [4.269, 12.807]
    9        12.807          [6.403, 19.210]

Midpoints stop growing at ``max_interval_midpoint_millis``.
"""

from __future__ import annotations

from dataclasses import replace
from random import Random

from httpbackoff.domain.models.interval import BackOffInterval
from httpbackoff.domain.policies.base import Outcome, Policy, is_retryable_outcome


class DefaultExponentialBackOffPolicy(Policy):
    """Exponential back off with multiplicative jitter"""

    def __init__(
        self,
        max_attempts: int = 5,  # Reached well before max elapsed time
        max_elapsed_time_millis: int = 900_000,  # 15 minutes
        multiplier: float = 1.5,  # Midpoints grow by 50%
        initial_interval_midpoint_millis: int = 500,
        randomization_factor: float = 0.5,  # Range from 50% below to 50% above the midpoint
        max_interval_midpoint_millis: int = 60_000,  # 1 minute
    ):
        super().__init__(max_attempts=max_attempts, max_elapsed_time_millis=max_elapsed_time_millis)
        if multiplier < 1.0:
            raise ValueError("multiplier must be >= 1.0")
        if not 0.0 <= randomization_factor <= 1.0:
            raise ValueError("randomization_factor must be between 0.0 and 1.0")
        if initial_interval_midpoint_millis < 0:
            raise ValueError("initial_interval_midpoint_millis must be >= 0")
        if max_interval_midpoint_millis < initial_interval_midpoint_millis:
            raise ValueError("max_interval_midpoint_millis must be >= initial_interval_midpoint_millis")

        self.multiplier = multiplier
        self.initial_interval_midpoint_millis = initial_interval_midpoint_millis
        self.randomization_factor = randomization_factor
        self.max_interval_midpoint_millis = max_interval_midpoint_millis

    def retry_required_impl(self, outcome: Outcome, interval: BackOffInterval) -> bool:
        return is_retryable_outcome(outcome)

    def backoff_required(self, outcome: Outcome, interval: BackOffInterval) -> bool:
        return True

    def next_midpoint_millis(self, last_interval: BackOffInterval) -> int:
        """Deterministic midpoint for the retry following ``last_interval``"""
        if last_interval.attempts == 0:
            # First retry is special cased
            return self.initial_interval_midpoint_millis
        if last_interval.current_interval_midpoint_millis >= self.max_interval_midpoint_millis / self.multiplier:
            return self.max_interval_midpoint_millis
        return int(last_interval.current_interval_midpoint_millis * self.multiplier)

    def next_backoff_interval(self, last_interval: BackOffInterval, rand: Random) -> BackOffInterval:
        midpoint = self.next_midpoint_millis(last_interval)

        delta = self.randomization_factor * midpoint
        min_bound = midpoint - delta
        max_bound = midpoint + delta
        backoff_millis = int(rand.random() * (max_bound - min_bound) + min_bound)

        return replace(
            last_interval,
            attempts=last_interval.attempts + 1,
            current_interval_midpoint_millis=midpoint,
            backoff_millis=backoff_millis,
        )
