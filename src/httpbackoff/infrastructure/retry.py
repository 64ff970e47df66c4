"""Retry loop driven by a back off policy, built on tenacity.

tenacity runs the attempt/sleep cycle; every decision in it is delegated to
a ``Policy``. Stop conditions live in the policy ceilings, so the controller
itself never stops on its own.
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from random import Random
from typing import Callable, Iterator, Optional, Tuple, TypeVar

import requests
from tenacity import RetryCallState, Retrying, stop_never

from httpbackoff.domain.models.interval import BackOffInterval
from httpbackoff.domain.policies.base import Outcome, Policy
from httpbackoff.domain.policies.exponential import DefaultExponentialBackOffPolicy

logger = logging.getLogger(__name__)

RequestT = TypeVar("RequestT")

_local = threading.local()


class HttpBackOffError(Exception):
    """Base error for httpbackoff."""


class BackOffCancelledError(HttpBackOffError):
    """The calling thread cancelled a call while it was backing off."""

    def __init__(self, message: str, interval: BackOffInterval) -> None:
        super().__init__(message)
        self.interval = interval


@contextmanager
def cancel_on(event: threading.Event) -> Iterator[threading.Event]:
    """Abort back off sleeps of calls made by this thread once ``event`` is set

    Useful when calls go through a ``requests.Session``, where there is no
    way to hand a cancel event to the adapter directly.
    """
    previous = getattr(_local, "cancel_event", None)
    _local.cancel_event = event
    try:
        yield event
    finally:
        _local.cancel_event = previous


class _CallState:
    """Mutable holder for the interval of a single call; never shared."""

    def __init__(self) -> None:
        self.interval = BackOffInterval()


def _outcome_of(retry_state: RetryCallState) -> Outcome:
    if retry_state.outcome.failed:
        return retry_state.outcome.exception()
    return retry_state.outcome.result()


def _describe(outcome: Outcome) -> str:
    if isinstance(outcome, BaseException):
        return f"{type(outcome).__name__}: {outcome}"
    return f"HTTP {outcome.status_code}"


class BackOffRetrier:
    """Issues a request until its policy says stop

    One retrier (and its policy) can be shared by any number of threads.
    Each ``call`` builds its own interval, random source and tenacity
    controller.
    """

    def __init__(
        self,
        policy: Optional[Policy] = None,
        sleep: Optional[Callable[[float], None]] = None,
    ):
        """Initialize retrier

        Args:
            policy: Default policy (DefaultExponentialBackOffPolicy if None)
            sleep: Replacement for the blocking wait, mostly for tests.
                Cancellation is still checked after it returns.
        """
        self.policy = policy or DefaultExponentialBackOffPolicy()
        self._sleep = sleep

    def execute(
        self,
        send: Callable[[RequestT], requests.Response],
        request: RequestT,
        cancel_event: Optional[threading.Event] = None,
    ) -> requests.Response:
        """Run ``send`` with retries and return the final response"""
        response, _ = self.call(send, request, cancel_event=cancel_event)
        return response

    def call(
        self,
        send: Callable[[RequestT], requests.Response],
        request: RequestT,
        cancel_event: Optional[threading.Event] = None,
    ) -> Tuple[requests.Response, BackOffInterval]:
        """Run ``send`` with retries

        Args:
            send: Issues one attempt of the request
            request: Request passed to ``send`` on every attempt
            cancel_event: Setting it aborts the call during a back off sleep

        Returns:
            The last response and the interval the call ended with

        Raises:
            requests.exceptions.RequestException: Last transport error once
                retries are exhausted (re-raised unchanged)
            BackOffCancelledError: If cancelled while backing off
        """
        policy, request = self.policy.parse_request_for_override(request)
        if cancel_event is None:
            cancel_event = getattr(_local, "cancel_event", None) or threading.Event()

        # One random source per call rather than a shared, locked generator
        rand = Random()
        state = _CallState()
        target = getattr(request, "url", request)

        def _retry(retry_state: RetryCallState) -> bool:
            outcome = _outcome_of(retry_state)
            if isinstance(outcome, BaseException) and not isinstance(
                outcome, requests.exceptions.RequestException
            ):
                # Not a transport failure: let it propagate
                return False
            return policy.retry_required(outcome, state.interval)

        def _wait(retry_state: RetryCallState) -> float:
            if not policy.backoff_required(_outcome_of(retry_state), state.interval):
                return 0.0
            state.interval = policy.next_backoff_interval(state.interval, rand)
            return state.interval.backoff_seconds

        def _before(retry_state: RetryCallState) -> None:
            logger.debug(f"Attempt {retry_state.attempt_number} for {target}")

        def _before_sleep(retry_state: RetryCallState) -> None:
            outcome = _outcome_of(retry_state)
            logger.warning(
                f"{_describe(outcome)} for {target} "
                f"(retry {state.interval.attempts}/{policy.max_attempts}). "
                f"Backing off {state.interval.backoff_millis} ms..."
            )
            if isinstance(outcome, requests.Response):
                # Release the connection of the response being discarded
                outcome.close()

        def _sleep(seconds: float) -> None:
            if seconds <= 0:
                cancelled = cancel_event.is_set()
            elif self._sleep is None:
                cancelled = cancel_event.wait(seconds)
            else:
                self._sleep(seconds)
                cancelled = cancel_event.is_set()
            if cancelled:
                raise BackOffCancelledError(
                    f"Call to {target} cancelled during back off "
                    f"after {state.interval.attempts} retries",
                    state.interval,
                )

        retrying = Retrying(
            sleep=_sleep,
            stop=stop_never,
            wait=_wait,
            retry=_retry,
            before=_before,
            before_sleep=_before_sleep,
            reraise=True,
        )
        response = retrying(send, request)

        if state.interval.attempts:
            logger.info(
                f"HTTP {response.status_code} for {target} "
                f"after {state.interval.attempts} retries "
                f"in {state.interval.elapsed_time_millis()} ms"
            )
        return response, state.interval
