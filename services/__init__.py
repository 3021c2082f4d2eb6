"""
Django Service Layer

Service classes providing the policy statistics and compatibility logic
on top of the Django ORM.

Service Organization:
- BaseService: Injected cache and clock
- StatsCache: Best-effort cache of policy statistics
- StatsService: Dashboard, client and policy page statistics
- PolicyTemplateStatsService: Template, expiry, system and performance metrics
- ExpiryTrackingService: Graded expiry warnings and revenue at risk
- PolicyCompatibilityService: Unified access to legacy and normalized policies
"""

from .base import BaseService
from .cache_service import StatsCache
from .expiry_tracking_service import ExpiryThresholds, ExpiryTrackingService
from .policy_compatibility_service import CompatibilityMode, PolicyCompatibilityService
from .policy_template_stats_service import PolicyTemplateFilter, PolicyTemplateStatsService
from .stats_service import StatsService

__all__ = [
    'BaseService',
    'StatsCache',
    'StatsService',
    'PolicyTemplateStatsService',
    'PolicyTemplateFilter',
    'ExpiryTrackingService',
    'ExpiryThresholds',
    'PolicyCompatibilityService',
    'CompatibilityMode',
]
