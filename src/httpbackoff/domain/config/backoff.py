"""Back off policy configuration model."""

from typing import Literal

from pydantic import BaseModel, Field, model_validator


class BackOffConfig(BaseModel):
    """Configuration for retry and back off.

    Attributes:
        policy: Back off algorithm (exponential or constant)
        max_attempts: Maximum number of retry attempts (0 disables retries)
        max_elapsed_time_millis: Stop retrying once this much time has passed
        multiplier: Exponential growth factor of the interval midpoint
        initial_interval_midpoint_millis: Midpoint of the first retry interval
        randomization_factor: Jitter range around the midpoint (0.0-1.0)
        max_interval_midpoint_millis: Midpoint stops growing at this value
        constant_interval_millis: Midpoint used by the constant policy
    """

    policy: Literal["exponential", "constant"] = "exponential"
    max_attempts: int = Field(5, ge=0)
    max_elapsed_time_millis: int = Field(900_000, ge=0)
    multiplier: float = Field(1.5, ge=1.0)
    initial_interval_midpoint_millis: int = Field(500, ge=0)
    randomization_factor: float = Field(0.5, ge=0.0, le=1.0)
    max_interval_midpoint_millis: int = Field(60_000, ge=0)
    constant_interval_millis: int = Field(1000, ge=0)

    @model_validator(mode="after")
    def _check_midpoint_bounds(self) -> "BackOffConfig":
        if self.max_interval_midpoint_millis < self.initial_interval_midpoint_millis:
            raise ValueError(
                "max_interval_midpoint_millis must be >= initial_interval_midpoint_millis"
            )
        return self
