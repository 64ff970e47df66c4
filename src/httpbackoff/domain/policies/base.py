"""Base back off policy interface"""

from __future__ import annotations

from abc import ABC, abstractmethod
from random import Random
from typing import Tuple, Union

import requests

from httpbackoff.domain.models.interval import BackOffInterval

# What a single attempt produced: a response, or the transport error raised instead.
Outcome = Union[requests.Response, requests.exceptions.RequestException]

REDIRECT_STATUSES = (300, 301, 302, 303, 307, 308)


class Policy(ABC):
    """Abstract base class for retry and back off policies

    A policy only holds read-only configuration. All per-call state lives in
    the ``BackOffInterval`` threaded through the retry loop, so one policy
    instance can be shared by any number of concurrent calls.

    Retries cease when either ``max_attempts`` or ``max_elapsed_time_millis``
    is reached, whatever ``retry_required_impl`` says.
    """

    def __init__(self, max_attempts: int, max_elapsed_time_millis: int):
        """Initialize policy ceilings

        Args:
            max_attempts: Maximum number of retry attempts (0 disables retries)
            max_elapsed_time_millis: Maximum time since the call started

        Raises:
            ValueError: If a ceiling is negative
        """
        if max_attempts < 0:
            raise ValueError("max_attempts must be >= 0")
        if max_elapsed_time_millis < 0:
            raise ValueError("max_elapsed_time_millis must be >= 0")
        self.max_attempts = max_attempts
        self.max_elapsed_time_millis = max_elapsed_time_millis

    def retry_required(self, outcome: Outcome, interval: BackOffInterval) -> bool:
        """Check ceilings, then delegate to ``retry_required_impl``"""
        return (
            interval.attempts < self.max_attempts
            and interval.elapsed_time_millis() < self.max_elapsed_time_millis
            and self.retry_required_impl(outcome, interval)
        )

    @abstractmethod
    def retry_required_impl(self, outcome: Outcome, interval: BackOffInterval) -> bool:
        """Decide whether this outcome should be retried"""
        pass

    @abstractmethod
    def backoff_required(self, outcome: Outcome, interval: BackOffInterval) -> bool:
        """Decide whether to sleep before the next attempt"""
        pass

    @abstractmethod
    def next_backoff_interval(self, last_interval: BackOffInterval, rand: Random) -> BackOffInterval:
        """Compute the interval for the next retry

        Args:
            last_interval: Interval of the previous attempt
            rand: Random source owned by the calling retry loop

        Returns:
            A new interval; ``last_interval`` is left untouched
        """
        pass

    def parse_request_for_override(
        self, request: requests.PreparedRequest
    ) -> Tuple["Policy", requests.PreparedRequest]:
        """Select a call specific policy from request metadata

        Implementations should copy the request and strip any headers they
        consume. The default returns this policy and the request unchanged.
        """
        return self, request


def is_successful(response: requests.Response) -> bool:
    """Check if response has a 2xx status"""
    return 200 <= response.status_code < 300


def is_redirect(response: requests.Response) -> bool:
    """Check if response is a redirect (following it is the transport's job)"""
    return response.status_code in REDIRECT_STATUSES


def is_retryable_outcome(outcome: Outcome) -> bool:
    """True for transport errors and for responses that are neither 2xx nor a redirect"""
    if isinstance(outcome, requests.exceptions.RequestException):
        return True
    return not (is_successful(outcome) or is_redirect(outcome))
