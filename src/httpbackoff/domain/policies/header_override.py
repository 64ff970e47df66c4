"""Per-request policy overrides driven by request headers"""

from __future__ import annotations

import copy
import logging
from random import Random
from typing import Dict, Optional, Tuple

import requests

from httpbackoff.domain.models.interval import BackOffInterval
from httpbackoff.domain.policies.base import Outcome, Policy

logger = logging.getLogger(__name__)

MAX_ATTEMPTS_HEADER = "X-Backoff-Max-Attempts"
MAX_ELAPSED_TIME_HEADER = "X-Backoff-Max-Elapsed-Time"
DISABLE_HEADER = "X-Backoff-Disable"

OVERRIDE_HEADERS = (MAX_ATTEMPTS_HEADER, MAX_ELAPSED_TIME_HEADER, DISABLE_HEADER)

_TRUTHY = {"1", "true", "yes", "on"}


class HeaderOverridePolicy(Policy):
    """Wraps a policy and lets individual requests adjust its ceilings

    Recognized headers are removed from the request before it is sent:

    - ``X-Backoff-Max-Attempts``: retry attempt ceiling for this call
    - ``X-Backoff-Max-Elapsed-Time``: elapsed time ceiling in milliseconds
    - ``X-Backoff-Disable``: ``true`` disables retries for this call

    Values that cannot be parsed are logged and ignored.
    """

    def __init__(self, base: Policy):
        super().__init__(
            max_attempts=base.max_attempts,
            max_elapsed_time_millis=base.max_elapsed_time_millis,
        )
        self.base = base

    def retry_required_impl(self, outcome: Outcome, interval: BackOffInterval) -> bool:
        return self.base.retry_required_impl(outcome, interval)

    def backoff_required(self, outcome: Outcome, interval: BackOffInterval) -> bool:
        return self.base.backoff_required(outcome, interval)

    def next_backoff_interval(self, last_interval: BackOffInterval, rand: Random) -> BackOffInterval:
        return self.base.next_backoff_interval(last_interval, rand)

    def parse_request_for_override(
        self, request: requests.PreparedRequest
    ) -> Tuple[Policy, requests.PreparedRequest]:
        present = [name for name in OVERRIDE_HEADERS if name in request.headers]
        if not present:
            return self.base.parse_request_for_override(request)

        stripped = request.copy()
        values = {name: stripped.headers.pop(name) for name in present}
        overrides = _parse_overrides(values)

        policy, stripped = self.base.parse_request_for_override(stripped)
        if not overrides:
            return policy, stripped

        # Shallow copy: policies only carry scalar configuration
        overridden = copy.copy(policy)
        for attr, value in overrides.items():
            setattr(overridden, attr, value)
        logger.debug(f"Request {request.method} {request.url} overrides back off policy: {overrides}")
        return overridden, stripped


def _parse_overrides(values: Dict[str, str]) -> Dict[str, int]:
    overrides: Dict[str, int] = {}

    max_attempts = _parse_non_negative_int(values, MAX_ATTEMPTS_HEADER)
    if max_attempts is not None:
        overrides["max_attempts"] = max_attempts

    max_elapsed = _parse_non_negative_int(values, MAX_ELAPSED_TIME_HEADER)
    if max_elapsed is not None:
        overrides["max_elapsed_time_millis"] = max_elapsed

    disable = values.get(DISABLE_HEADER)
    if disable is not None and disable.strip().lower() in _TRUTHY:
        overrides["max_attempts"] = 0

    return overrides


def _parse_non_negative_int(values: Dict[str, str], name: str) -> Optional[int]:
    raw = values.get(name)
    if raw is None:
        return None
    try:
        value = int(raw.strip())
    except ValueError:
        logger.warning(f"Ignoring invalid {name} header: {raw!r}")
        return None
    if value < 0:
        logger.warning(f"Ignoring negative {name} header: {raw!r}")
        return None
    return value
