"""
Factory Boy Factories for PolicyDesk Models

Import all factories here for easy access in tests.
"""
from tests.factories.core import (
    ClientFactory,
    LeadFactory,
)
from tests.factories.policies import (
    LegacyPolicyFactory,
    PolicyInstanceFactory,
    PolicyTemplateFactory,
)

__all__ = [
    # Core
    'LeadFactory',
    'ClientFactory',
    # Policies
    'PolicyTemplateFactory',
    'PolicyInstanceFactory',
    'LegacyPolicyFactory',
]
