"""Retry and back off policies"""

from httpbackoff.domain.policies.base import Outcome, Policy, is_retryable_outcome
from httpbackoff.domain.policies.constant import ConstantBackOffPolicy
from httpbackoff.domain.policies.exponential import DefaultExponentialBackOffPolicy
from httpbackoff.domain.policies.factory import PolicyFactory, preview_schedule
from httpbackoff.domain.policies.header_override import HeaderOverridePolicy

__all__ = [
    "Outcome",
    "Policy",
    "is_retryable_outcome",
    "ConstantBackOffPolicy",
    "DefaultExponentialBackOffPolicy",
    "HeaderOverridePolicy",
    "PolicyFactory",
    "preview_schedule",
]
