"""requests integration: a transport adapter that retries with back off.

Mount ``BackOffAdapter`` on a ``requests.Session`` (or use
``create_session``) and every call made through that session runs the
retry loop. Redirects are still followed by the session, not retried.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Mapping, Optional, Union

import requests
from requests.adapters import HTTPAdapter

from httpbackoff.domain.config import AppConfig
from httpbackoff.domain.policies.base import Policy
from httpbackoff.domain.policies.factory import PolicyFactory
from httpbackoff.domain.policies.header_override import HeaderOverridePolicy
from httpbackoff.infrastructure.retry import BackOffRetrier

logger = logging.getLogger(__name__)


class BackOffAdapter(HTTPAdapter):
    """HTTPAdapter that reissues requests as directed by a ``Policy``

    Arguments given to ``send`` (timeout, verify, proxies...) are forwarded
    to every attempt.
    """

    # Kept across pickling, together with HTTPAdapter's own attributes
    __attrs__ = HTTPAdapter.__attrs__ + ["retrier", "timeout"]

    def __init__(
        self,
        policy: Optional[Policy] = None,
        *,
        timeout: Optional[float] = None,
        sleep: Optional[Callable[[float], None]] = None,
        **kwargs: Any,
    ):
        """Initialize adapter

        Args:
            policy: Back off policy shared by all calls through this adapter
            timeout: Per-attempt timeout used when the caller gives none
            sleep: Replacement for the blocking back off wait
            **kwargs: Passed to ``HTTPAdapter`` (pool sizes etc.)
        """
        self.retrier = BackOffRetrier(policy, sleep=sleep)
        self.timeout = timeout
        super().__init__(**kwargs)

    @property
    def policy(self) -> Policy:
        return self.retrier.policy

    def send(
        self,
        request: requests.PreparedRequest,
        stream: bool = False,
        timeout: Any = None,
        verify: Union[bool, str] = True,
        cert: Any = None,
        proxies: Optional[Mapping[str, str]] = None,
        *,
        cancel_event: Optional[threading.Event] = None,
    ) -> requests.Response:
        if timeout is None:
            timeout = self.timeout

        def _send_once(prepared: requests.PreparedRequest) -> requests.Response:
            return super(BackOffAdapter, self).send(
                prepared, stream=stream, timeout=timeout, verify=verify, cert=cert, proxies=proxies
            )

        return self.retrier.execute(_send_once, request, cancel_event=cancel_event)


def create_session(
    policy: Optional[Policy] = None,
    config: Optional[AppConfig] = None,
    sleep: Optional[Callable[[float], None]] = None,
) -> requests.Session:
    """Create a session with ``BackOffAdapter`` mounted for http and https

    Args:
        policy: Policy to use (built from ``config.backoff`` if None)
        config: Application configuration (defaults if None)
        sleep: Replacement for the blocking back off wait

    Returns:
        Configured requests session
    """
    if config is None:
        config = AppConfig()
    if policy is None:
        policy = PolicyFactory.from_config(config.backoff)
    if config.http.override_headers and not isinstance(policy, HeaderOverridePolicy):
        policy = HeaderOverridePolicy(policy)

    adapter = BackOffAdapter(
        policy,
        timeout=config.http.timeout,
        sleep=sleep,
        pool_maxsize=config.http.pool_maxsize,
    )
    session = requests.Session()
    session.mount("http://", adapter)
    session.mount("https://", adapter)
    logger.debug(
        f"Created session with {type(policy).__name__} "
        f"(max_attempts={policy.max_attempts}, max_elapsed_time_millis={policy.max_elapsed_time_millis})"
    )
    return session


def get_with_backoff(
    url: str,
    *,
    policy: Optional[Policy] = None,
    config: Optional[AppConfig] = None,
    **kwargs: Any,
) -> requests.Response:
    """GET ``url`` through a one-off back off session"""
    with create_session(policy=policy, config=config) as session:
        return session.get(url, **kwargs)
