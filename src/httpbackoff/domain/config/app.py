"""Main application configuration model."""

from pydantic import BaseModel, ConfigDict, Field

from httpbackoff.domain.config.backoff import BackOffConfig
from httpbackoff.domain.config.http import HttpConfig


class AppConfig(BaseModel):
    """Main application configuration.

    Root model aggregating all configuration sections. Validation happens at
    load time to fail fast on configuration errors.

    Attributes:
        backoff: Retry and back off configuration
        http: HTTP session configuration
    """

    backoff: BackOffConfig = Field(default_factory=BackOffConfig)
    http: HttpConfig = Field(default_factory=HttpConfig)

    model_config = ConfigDict(
        validate_assignment=True,
        extra="forbid",  # Reject unknown fields
        json_schema_extra={
            "example": {
                "backoff": {
                    "policy": "exponential",
                    "max_attempts": 5,
                    "max_elapsed_time_millis": 900000,
                    "multiplier": 1.5,
                    "initial_interval_midpoint_millis": 500,
                    "randomization_factor": 0.5,
                    "max_interval_midpoint_millis": 60000,
                },
                "http": {
                    "timeout": 30.0,
                    "override_headers": True,
                },
            }
        },
    )
