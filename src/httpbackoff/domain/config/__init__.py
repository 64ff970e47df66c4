"""Configuration models with Pydantic validation."""

from httpbackoff.domain.config.app import AppConfig
from httpbackoff.domain.config.backoff import BackOffConfig
from httpbackoff.domain.config.http import HttpConfig

__all__ = [
    "AppConfig",
    "BackOffConfig",
    "HttpConfig",
]
