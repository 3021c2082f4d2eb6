"""
Core managers for the policy models.
"""
from .policy import (
    LegacyPolicyManager,
    LegacyPolicyQuerySet,
    PolicyInstanceManager,
    PolicyInstanceQuerySet,
    PolicyTemplateManager,
    PolicyTemplateQuerySet,
)

__all__ = [
    'PolicyTemplateQuerySet',
    'PolicyTemplateManager',
    'PolicyInstanceQuerySet',
    'PolicyInstanceManager',
    'LegacyPolicyQuerySet',
    'LegacyPolicyManager',
]
