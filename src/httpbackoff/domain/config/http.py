"""HTTP session configuration model."""

from typing import Optional

from pydantic import BaseModel, Field


class HttpConfig(BaseModel):
    """Configuration for the HTTP session.

    Attributes:
        timeout: Per-attempt timeout in seconds (None = no timeout)
        override_headers: Honor X-Backoff-* request headers
        pool_maxsize: Connections kept per host by the adapter
    """

    timeout: Optional[float] = Field(30.0, gt=0)
    override_headers: bool = True
    pool_maxsize: int = Field(10, gt=0)
