from __future__ import annotations

import io
import pickle
import threading
from concurrent.futures import ThreadPoolExecutor
from urllib.parse import urlparse

import pytest
import requests
from requests.adapters import HTTPAdapter

from httpbackoff.domain.config import AppConfig, BackOffConfig, HttpConfig
from httpbackoff.domain.policies.exponential import DefaultExponentialBackOffPolicy
from httpbackoff.domain.policies.header_override import HeaderOverridePolicy
from httpbackoff.infrastructure.http_client import BackOffAdapter, create_session, get_with_backoff


def _make_response(request: requests.PreparedRequest, status_code: int, body: str = "") -> requests.Response:
    r = requests.Response()
    r.status_code = status_code
    r.reason = "OK" if status_code < 400 else "Server Error"
    r.url = request.url
    r.request = request
    r.raw = io.BytesIO(body.encode("utf-8"))
    r.encoding = "utf-8"
    return r


def _no_sleep(seconds):
    pass


class FakeServer:
    """Stands in for HTTPAdapter.send; fails each path a set number of times"""

    def __init__(self, failures: dict[str, int]):
        self.failures = dict(failures)
        self.requests: list[requests.PreparedRequest] = []
        self.kwargs: list[dict] = []
        self._lock = threading.Lock()

    def send(self, adapter, request, **kwargs):
        path = urlparse(request.url).path
        with self._lock:
            self.requests.append(request)
            self.kwargs.append(kwargs)
            remaining = self.failures.get(path, 0)
            self.failures[path] = remaining - 1
        if remaining > 0:
            return _make_response(request, 500, "boom")
        return _make_response(request, 200, "success!" if path == "/" else path.strip("/"))

    def count(self, path: str) -> int:
        return sum(1 for r in self.requests if urlparse(r.url).path == path)


@pytest.fixture
def server(monkeypatch):
    fake = FakeServer({"/": 1})
    monkeypatch.setattr(HTTPAdapter, "send", lambda self, request, **kwargs: fake.send(self, request, **kwargs))
    return fake


def test_retries_then_succeeds(server):
    session = requests.Session()
    session.mount("http://", BackOffAdapter(DefaultExponentialBackOffPolicy(max_attempts=1), sleep=_no_sleep))

    resp = session.get("http://example.test/")

    assert resp.status_code == 200
    assert resp.text == "success!"
    assert server.count("/") == 2


def test_no_retries_with_zero_attempts(server):
    session = requests.Session()
    session.mount("http://", BackOffAdapter(DefaultExponentialBackOffPolicy(max_attempts=0), sleep=_no_sleep))

    resp = session.get("http://example.test/")

    assert resp.status_code == 500
    assert server.count("/") == 1


def test_many_concurrent_backoffs(server):
    """Three calls back off concurrently; only the one failing 7 times gives up"""
    server.failures = {"/a": 3, "/b": 5, "/c": 7}
    adapter = BackOffAdapter(sleep=_no_sleep)

    def fetch(path):
        session = requests.Session()
        session.mount("http://", adapter)
        return session.get(f"http://example.test{path}")

    with ThreadPoolExecutor(max_workers=3) as pool:
        results = dict(zip(["/a", "/b", "/c"], pool.map(fetch, ["/a", "/b", "/c"])))

    assert results["/a"].status_code == 200
    assert results["/a"].text == "a"
    assert results["/b"].status_code == 200
    assert results["/b"].text == "b"
    assert results["/c"].status_code == 500
    assert server.count("/a") == 4
    assert server.count("/b") == 6
    assert server.count("/c") == 6


def test_forwards_send_kwargs_and_default_timeout(server):
    server.failures = {"/": 1}
    session = requests.Session()
    session.mount("http://", BackOffAdapter(timeout=2.5, sleep=_no_sleep))

    session.get("http://example.test/", verify=False)

    assert len(server.kwargs) == 2
    assert all(kw["timeout"] == 2.5 for kw in server.kwargs)
    assert all(kw["verify"] is False for kw in server.kwargs)


def test_caller_timeout_wins(server):
    server.failures = {}
    session = requests.Session()
    session.mount("http://", BackOffAdapter(timeout=2.5, sleep=_no_sleep))

    session.get("http://example.test/", timeout=7)

    assert server.kwargs[0]["timeout"] == 7


def test_connection_errors_are_retried(monkeypatch):
    calls = {"n": 0}

    def fake_send(self, request, **kwargs):
        calls["n"] += 1
        if calls["n"] < 3:
            raise requests.exceptions.ConnectionError("connection refused")
        return _make_response(request, 200, "up")

    monkeypatch.setattr(HTTPAdapter, "send", fake_send)
    session = create_session(sleep=_no_sleep)

    resp = session.get("http://example.test/")

    assert resp.status_code == 200
    assert calls["n"] == 3


def test_connection_error_propagates_when_exhausted(monkeypatch):
    def fake_send(self, request, **kwargs):
        raise requests.exceptions.ConnectionError("connection refused")

    monkeypatch.setattr(HTTPAdapter, "send", fake_send)
    config = AppConfig(backoff=BackOffConfig(max_attempts=2))
    session = create_session(config=config, sleep=_no_sleep)

    with pytest.raises(requests.exceptions.ConnectionError, match="connection refused"):
        session.get("http://example.test/")


def test_backoff_sleep_durations(server, monkeypatch):
    server.failures = {"/": 2}
    sleep_calls = []
    policy = DefaultExponentialBackOffPolicy(randomization_factor=0.0)
    session = requests.Session()
    session.mount("http://", BackOffAdapter(policy, sleep=sleep_calls.append))

    resp = session.get("http://example.test/")

    assert resp.status_code == 200
    assert sleep_calls == [pytest.approx(0.5), pytest.approx(0.75)]


class TestCreateSession:
    """Tests for create_session"""

    def test_mounts_backoff_adapter(self):
        """Test both schemes use the back off adapter"""
        session = create_session()
        assert isinstance(session.get_adapter("http://example.test"), BackOffAdapter)
        assert isinstance(session.get_adapter("https://example.test"), BackOffAdapter)

    def test_policy_from_config(self):
        """Test the policy is built from configuration and wrapped for overrides"""
        config = AppConfig(backoff=BackOffConfig(max_attempts=2), http=HttpConfig(timeout=3.0))
        adapter = create_session(config=config).get_adapter("https://example.test")
        assert isinstance(adapter.policy, HeaderOverridePolicy)
        assert adapter.policy.max_attempts == 2
        assert adapter.timeout == 3.0

    def test_override_headers_disabled(self):
        """Test header overrides can be turned off"""
        config = AppConfig(http=HttpConfig(override_headers=False))
        adapter = create_session(config=config).get_adapter("https://example.test")
        assert isinstance(adapter.policy, DefaultExponentialBackOffPolicy)

    def test_header_override_end_to_end(self, server):
        """Test override headers change the call and never reach the server"""
        server.failures = {"/": 3}
        session = create_session(sleep=_no_sleep)

        resp = session.get("http://example.test/", headers={"X-Backoff-Max-Attempts": "1"})

        assert resp.status_code == 500
        assert server.count("/") == 2
        assert all("X-Backoff-Max-Attempts" not in r.headers for r in server.requests)

    def test_get_with_backoff(self, server):
        """Test the one-off helper retries like a session"""
        resp = get_with_backoff(
            "http://example.test/",
            policy=DefaultExponentialBackOffPolicy(max_attempts=1, initial_interval_midpoint_millis=0, randomization_factor=0.0),
        )
        assert resp.status_code == 200
        assert resp.text == "success!"


class TestAdapterCompatibility:
    """Tests for behaving like a plain HTTPAdapter"""

    def test_pickled_session_keeps_backoff(self, server):
        """Test an unpickled session still retries with its policy and timeout"""
        server.failures = {"/": 2}
        config = AppConfig(backoff=BackOffConfig(max_attempts=3), http=HttpConfig(timeout=4.0))
        session = pickle.loads(pickle.dumps(create_session(config=config, sleep=_no_sleep)))

        resp = session.get("http://example.test/")

        adapter = session.get_adapter("http://example.test/")
        assert isinstance(adapter, BackOffAdapter)
        assert adapter.policy.max_attempts == 3
        assert resp.status_code == 200
        assert resp.text == "success!"
        assert server.count("/") == 3
        assert all(kw["timeout"] == 4.0 for kw in server.kwargs)

    def test_send_accepts_positional_arguments(self, server):
        """Test stream, timeout and verify may be passed positionally"""
        adapter = BackOffAdapter(DefaultExponentialBackOffPolicy(max_attempts=1), sleep=_no_sleep)
        request = requests.Request("GET", "http://example.test/").prepare()

        resp = adapter.send(request, False, 5, False)

        assert resp.status_code == 200
        assert server.count("/") == 2
        assert all(kw["timeout"] == 5 and kw["verify"] is False for kw in server.kwargs)
