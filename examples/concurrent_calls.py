"""Fetch several URLs concurrently, each backing off independently.

Usage: python examples/concurrent_calls.py URL [URL ...]
"""

import logging
import sys
from concurrent.futures import ThreadPoolExecutor

import requests

from httpbackoff.domain.policies import DefaultExponentialBackOffPolicy
from httpbackoff.infrastructure.http_client import BackOffAdapter

logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")

# One adapter and policy shared by every thread; per-call state stays in each call
adapter = BackOffAdapter(DefaultExponentialBackOffPolicy(max_attempts=3), timeout=10)


def fetch(url: str) -> str:
    session = requests.Session()
    session.mount("http://", adapter)
    session.mount("https://", adapter)
    try:
        response = session.get(url)
    except requests.exceptions.RequestException as e:
        return f"{url}: failed ({e})"
    return f"{url}: HTTP {response.status_code}"


if __name__ == "__main__":
    with ThreadPoolExecutor(max_workers=8) as pool:
        for line in pool.map(fetch, sys.argv[1:]):
            print(line)
