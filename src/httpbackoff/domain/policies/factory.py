"""Factory for creating back off policies"""

import logging
from random import Random
from typing import Dict, List, Optional, Type

from httpbackoff.domain.config.backoff import BackOffConfig
from httpbackoff.domain.models.interval import BackOffInterval
from httpbackoff.domain.policies.base import Policy
from httpbackoff.domain.policies.constant import ConstantBackOffPolicy
from httpbackoff.domain.policies.exponential import DefaultExponentialBackOffPolicy

logger = logging.getLogger(__name__)


class PolicyFactory:
    """Factory for creating policy instances from configuration"""

    POLICIES: Dict[str, Type[Policy]] = {
        "exponential": DefaultExponentialBackOffPolicy,
        "constant": ConstantBackOffPolicy,
    }

    @classmethod
    def create(cls, policy_type: str, config: Optional[BackOffConfig] = None) -> Policy:
        """Create policy instance

        Args:
            policy_type: Type of policy (exponential, constant)
            config: Back off configuration (defaults if None)

        Returns:
            Policy instance

        Raises:
            ValueError: If policy type is not supported
        """
        if config is None:
            config = BackOffConfig()

        policy_type_lower = policy_type.lower()
        if policy_type_lower not in cls.POLICIES:
            available = ", ".join(cls.POLICIES.keys())
            raise ValueError(
                f"Unknown back off policy: {policy_type}. "
                f"Available policies: {available}"
            )

        logger.debug(f"Creating {policy_type_lower} back off policy")
        if policy_type_lower == "constant":
            return ConstantBackOffPolicy(
                max_attempts=config.max_attempts,
                max_elapsed_time_millis=config.max_elapsed_time_millis,
                interval_millis=config.constant_interval_millis,
                randomization_factor=config.randomization_factor,
            )
        return DefaultExponentialBackOffPolicy(
            max_attempts=config.max_attempts,
            max_elapsed_time_millis=config.max_elapsed_time_millis,
            multiplier=config.multiplier,
            initial_interval_midpoint_millis=config.initial_interval_midpoint_millis,
            randomization_factor=config.randomization_factor,
            max_interval_midpoint_millis=config.max_interval_midpoint_millis,
        )

    @classmethod
    def from_config(cls, config: BackOffConfig) -> Policy:
        """Create the policy named by ``config.policy``"""
        return cls.create(config.policy, config)


def preview_schedule(policy: Policy, attempts: int, seed: Optional[int] = None) -> List[BackOffInterval]:
    """Intervals a policy would produce for ``attempts`` successive retries

    Ceilings are not consulted; this only walks ``next_backoff_interval``.
    """
    rand = Random(seed)
    interval = BackOffInterval()
    schedule = []
    for _ in range(attempts):
        interval = policy.next_backoff_interval(interval, rand)
        schedule.append(interval)
    return schedule
