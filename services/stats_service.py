"""
Stats Service

Dashboard, client and policy-page statistics. Counts are taken from the
normalized policy instances; leads and clients from their own tables.

Like the template statistics, these methods never raise: database failures
are logged and surface as zero values.
"""
from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import Decimal
from uuid import UUID

from django.db.models import Count, Q, Sum

from apps.core.constants import EXPIRY_WINDOWS, TOP_PROVIDERS_LIMIT
from apps.core.models import Client, Lead, PolicyInstance, PolicyStatus

from .base import BaseService
from .metrics import month_bounds, percentage_change, safe_average, to_float
from .policy_template_stats_service import (
    ExpiryTrackingStats,
    PolicyTemplateStats,
    PolicyTemplateStatsService,
    PolicyTypePerformanceMetrics,
    ProviderPerformanceMetrics,
    SystemLevelMetrics,
)

logger = logging.getLogger(__name__)


# ============================================================================
# Data Transfer Objects (DTOs)
# ============================================================================

@dataclass
class DashboardStats:
    """Headline dashboard numbers with month-over-month changes."""
    total_leads: int = 0
    total_clients: int = 0
    active_policies: int = 0
    commission_this_month: float = 0.0
    leads_change: int = 0
    clients_change: int = 0
    policies_change: int = 0
    commission_change: int = 0


@dataclass
class ExpiryWarnings:
    expiring_this_week: int = 0
    expiring_this_month: int = 0
    expired_last_month: int = 0


@dataclass
class EnhancedDashboardStats(DashboardStats):
    """Dashboard stats plus template overview and expiry warnings."""
    policy_template_stats: PolicyTemplateStats = field(default_factory=PolicyTemplateStats)
    expiry_warnings: ExpiryWarnings = field(default_factory=ExpiryWarnings)


@dataclass
class ExpiringPolicy:
    id: str
    policy_number: str
    policy_type: str
    expiry_date: datetime


@dataclass
class ClientPolicyStats:
    total_policies: int = 0
    active_policies: int = 0
    total_premium: float = 0.0
    total_commission: float = 0.0
    expiring_policies: list[ExpiringPolicy] = field(default_factory=list)


@dataclass
class ProviderSummary:
    provider: str
    count: int
    total_premium: float


@dataclass
class TypeSummary:
    type: str
    count: int


@dataclass
class PolicyPageStats:
    total_policies: int = 0
    active_policies: int = 0
    expired_policies: int = 0
    expiring_policies: int = 0
    total_premium: float = 0.0
    total_commission: float = 0.0
    commission_this_month: float = 0.0
    average_premium: float = 0.0
    average_commission: float = 0.0
    top_providers: list[ProviderSummary] = field(default_factory=list)
    policy_type_distribution: list[TypeSummary] = field(default_factory=list)


@dataclass
class PolicyTemplateSystemStats:
    overview: PolicyTemplateStats = field(default_factory=PolicyTemplateStats)
    system_metrics: SystemLevelMetrics = field(default_factory=SystemLevelMetrics)
    expiry_tracking: ExpiryTrackingStats = field(default_factory=ExpiryTrackingStats)
    provider_performance: list[ProviderPerformanceMetrics] = field(default_factory=list)
    policy_type_performance: list[PolicyTypePerformanceMetrics] = field(default_factory=list)


# ============================================================================
# Stats Service Implementation
# ============================================================================

class StatsService(BaseService):
    """
    Service for dashboard and policy page statistics.

    Handles:
    - Dashboard totals and month-over-month changes
    - Per-client policy stats
    - Policy page stats
    - Combined template-system bundles
    """

    def __init__(self, cache=None, clock=None):
        super().__init__(cache=cache, clock=clock)
        self.template_stats = PolicyTemplateStatsService(cache=self.cache, clock=self._clock)

    # ========================================================================
    # Dashboard
    # ========================================================================

    def get_dashboard_stats(self) -> DashboardStats:
        """
        Dashboard totals for the current calendar month.

        Leads and clients compare "created this month" with everything
        created before the month started. Policies compare instances created
        this month with the previous month. Commission counts instances
        created in a month, or renewed in it having been created earlier.
        """
        try:
            now = self.now()
            current_start, previous_start = month_bounds(now)

            total_leads = self._guarded('total leads', self._count_leads)
            leads_before = self._guarded(
                'leads before month', lambda: self._count_leads(created_before=current_start)
            )
            total_clients = self._guarded('total clients', self._count_clients)
            clients_before = self._guarded(
                'clients before month', lambda: self._count_clients(created_before=current_start)
            )
            active_policies = self._guarded('active policies', lambda: self._count_active_policies(now))
            policies_this_month = self._guarded(
                'policies this month', lambda: self._count_policies_created(current_start)
            )
            policies_last_month = self._guarded(
                'policies last month', lambda: self._count_policies_created(previous_start, current_start)
            )
            commission_this_month = self._guarded(
                'commission this month', lambda: self._sum_commission(current_start)
            )
            commission_last_month = self._guarded(
                'commission last month', lambda: self._sum_commission(previous_start, current_start)
            )

            return DashboardStats(
                total_leads=total_leads,
                total_clients=total_clients,
                active_policies=active_policies,
                commission_this_month=to_float(commission_this_month),
                leads_change=percentage_change(total_leads - leads_before, leads_before),
                clients_change=percentage_change(total_clients - clients_before, clients_before),
                policies_change=percentage_change(policies_this_month, policies_last_month),
                commission_change=percentage_change(commission_this_month, commission_last_month),
            )
        except Exception as e:
            logger.error(f'Error calculating dashboard stats: {e}')
            return DashboardStats()

    @staticmethod
    def _guarded(label: str, query: Callable[[], int | Decimal]) -> int | Decimal:
        """Run one dashboard sub-query; a failure counts as 0."""
        try:
            return query()
        except Exception as e:
            logger.warning(f'Dashboard stat "{label}" failed, using 0: {e}')
            return 0

    def _count_leads(self, created_before: datetime | None = None) -> int:
        qs = Lead.objects.all()
        if created_before is not None:
            qs = qs.filter(created_at__lt=created_before)
        return qs.count()

    def _count_clients(self, created_before: datetime | None = None) -> int:
        qs = Client.objects.all()
        if created_before is not None:
            qs = qs.filter(created_at__lt=created_before)
        return qs.count()

    def _count_active_policies(self, now: datetime) -> int:
        return PolicyInstance.objects.in_force(now).count()

    def _count_policies_created(self, start: datetime, end: datetime | None = None) -> int:
        return PolicyInstance.objects.created_between(start, end).count()

    def _sum_commission(self, start: datetime, end: datetime | None = None) -> Decimal:
        total = PolicyInstance.objects.modified_in_period(start, end).aggregate(
            total=Sum('commission_amount')
        )['total']
        return total or Decimal('0')

    def get_enhanced_dashboard_stats(self) -> DashboardStats:
        """Dashboard stats with template overview and expiry warnings."""
        try:
            dashboard = self.get_dashboard_stats()
            template_stats = self.template_stats.calculate_policy_template_stats()
            expiry = self.template_stats.get_expiry_tracking_stats()

            return EnhancedDashboardStats(
                **{name: getattr(dashboard, name) for name in DashboardStats.__dataclass_fields__},
                policy_template_stats=template_stats,
                expiry_warnings=ExpiryWarnings(
                    expiring_this_week=expiry.expiring_this_week,
                    expiring_this_month=expiry.expiring_this_month,
                    expired_last_month=expiry.expired_last_month,
                ),
            )
        except Exception as e:
            logger.error(f'Error getting enhanced dashboard stats: {e}')
            return self.get_dashboard_stats()

    def refresh_dashboard_stats(self) -> DashboardStats:
        """Drop cached policy statistics and recompute the dashboard."""
        self.cache.invalidate_policy_stats()
        logger.info('Dashboard stats refreshed')
        return self.get_dashboard_stats()

    # ========================================================================
    # Client and policy page
    # ========================================================================

    def get_client_policy_stats(self, client_id: UUID) -> ClientPolicyStats:
        """Policy totals for one client plus active policies expiring in 30 days."""
        try:
            now = self.now()
            instances = PolicyInstance.objects.for_client(client_id)
            totals = instances.aggregate(
                total_premium=Sum('premium_amount'),
                total_commission=Sum('commission_amount'),
            )
            expiring = (
                instances.with_relations()
                .with_status(PolicyStatus.ACTIVE)
                .expiring_between(now, now + timedelta(days=EXPIRY_WINDOWS['month']))
                .order_by('expiry_date')
            )

            return ClientPolicyStats(
                total_policies=instances.count(),
                active_policies=instances.in_force(now).count(),
                total_premium=to_float(totals['total_premium']),
                total_commission=to_float(totals['total_commission']),
                expiring_policies=[
                    ExpiringPolicy(
                        id=str(instance.id),
                        policy_number=instance.policy_template.policy_number,
                        policy_type=instance.policy_template.policy_type,
                        expiry_date=instance.expiry_date,
                    )
                    for instance in expiring
                ],
            )
        except Exception as e:
            logger.error(f'Error getting client policy stats for {client_id}: {e}')
            return ClientPolicyStats()

    def get_policy_page_stats(self) -> PolicyPageStats:
        """
        Policy page statistics.

        Expired counts stored status Expired or an expiry date already
        reached. Expiring counts Active instances expiring in the next 30 days.
        """
        try:
            now = self.now()
            current_start, _ = month_bounds(now)
            instances = PolicyInstance.objects.all()

            total_policies = instances.count()
            totals = instances.aggregate(
                total_premium=Sum('premium_amount'),
                total_commission=Sum('commission_amount'),
            )
            total_premium = to_float(totals['total_premium'])
            total_commission = to_float(totals['total_commission'])

            expiring = (
                instances.with_status(PolicyStatus.ACTIVE)
                .filter(expiry_date__gt=now, expiry_date__lte=now + timedelta(days=EXPIRY_WINDOWS['month']))
            )

            providers = (
                instances.values('policy_template__provider')
                .annotate(count=Count('id'), total_premium=Sum('premium_amount'))
                .order_by('-count', 'policy_template__provider')[:TOP_PROVIDERS_LIMIT]
            )
            types = (
                instances.values('policy_template__policy_type')
                .annotate(count=Count('id'))
                .order_by('-count', 'policy_template__policy_type')
            )

            return PolicyPageStats(
                total_policies=total_policies,
                active_policies=instances.in_force(now).count(),
                expired_policies=instances.filter(
                    Q(status=PolicyStatus.EXPIRED) | Q(expiry_date__lte=now)
                ).count(),
                expiring_policies=expiring.count(),
                total_premium=total_premium,
                total_commission=total_commission,
                commission_this_month=to_float(self._sum_commission(current_start)),
                average_premium=safe_average(total_premium, total_policies),
                average_commission=safe_average(total_commission, total_policies),
                top_providers=[
                    ProviderSummary(
                        provider=row['policy_template__provider'],
                        count=row['count'],
                        total_premium=to_float(row['total_premium']),
                    )
                    for row in providers
                ],
                policy_type_distribution=[
                    TypeSummary(type=row['policy_template__policy_type'], count=row['count'])
                    for row in types
                ],
            )
        except Exception as e:
            logger.error(f'Error getting policy page stats: {e}')
            return PolicyPageStats()

    def get_policy_template_system_stats(self) -> PolicyTemplateSystemStats:
        """Every template-system statistic in one bundle."""
        try:
            return PolicyTemplateSystemStats(
                overview=self.template_stats.calculate_policy_template_stats(),
                system_metrics=self.template_stats.get_system_level_metrics(),
                expiry_tracking=self.template_stats.get_expiry_tracking_stats(),
                provider_performance=self.template_stats.get_provider_performance_metrics(),
                policy_type_performance=self.template_stats.get_policy_type_performance_metrics(),
            )
        except Exception as e:
            logger.error(f'Error getting policy template system stats: {e}')
            return PolicyTemplateSystemStats()
