"""
Policy Template Statistics Service

Derived statistics over policy templates and their instances: template
overview, per-template detail, expiry tracking, system-level financial and
retention metrics, provider and policy-type performance.

Every public method absorbs database failures: the error is logged and a
zero-valued result of the declared shape is returned.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from uuid import UUID

from django.db.models import Avg, Count, Q, Sum

from apps.core.constants import (
    CACHE_KEYS,
    EXPIRING_DETAILS_LIMIT,
    EXPIRY_WINDOWS,
    RECENT_GROWTH_DAYS,
    RENEWAL_LOOKBACK_DAYS,
    RETENTION_LOOKBACK_DAYS,
    TOP_PROVIDERS_LIMIT,
    TOP_TEMPLATES_LIMIT,
)
from apps.core.models import PolicyInstance, PolicyStatus, PolicyTemplate

from .base import BaseService
from .metrics import days_until, growth_rate, month_bounds, safe_average, safe_ratio, to_float

logger = logging.getLogger(__name__)


# ============================================================================
# Data Transfer Objects (DTOs)
# ============================================================================

@dataclass
class PolicyTemplateFilter:
    """Template-level filter for the overview statistics."""
    search: str | None = None
    policy_types: list[str] = field(default_factory=list)
    providers: list[str] = field(default_factory=list)
    has_instances: bool | None = None

    @property
    def is_empty(self) -> bool:
        return (
            not self.search
            and not self.policy_types
            and not self.providers
            and self.has_instances is None
        )


@dataclass
class ProviderCount:
    provider: str
    template_count: int
    instance_count: int


@dataclass
class PolicyTypeCount:
    type: str
    template_count: int
    instance_count: int


@dataclass
class PolicyTemplateStats:
    """Overview of templates and instances."""
    total_templates: int = 0
    total_instances: int = 0
    active_instances: int = 0
    total_clients: int = 0
    top_providers: list[ProviderCount] = field(default_factory=list)
    policy_type_distribution: list[PolicyTypeCount] = field(default_factory=list)


@dataclass
class PolicyDetailStats:
    """Statistics for a single template."""
    total_clients: int = 0
    active_instances: int = 0
    expired_instances: int = 0
    total_premium: float = 0.0
    total_commission: float = 0.0
    average_premium: float = 0.0
    expiring_this_month: int = 0


@dataclass
class ExpiringInstance:
    id: str
    client_name: str
    policy_number: str
    expiry_date: datetime
    days_until_expiry: int


@dataclass
class ExpiryTrackingStats:
    expiring_this_week: int = 0
    expiring_this_month: int = 0
    expiring_next_month: int = 0
    expired_last_month: int = 0
    expiring_instances: list[ExpiringInstance] = field(default_factory=list)


@dataclass
class TopTemplate:
    id: str
    policy_number: str
    instance_count: int
    total_revenue: float
    average_value: float


@dataclass
class SystemLevelMetrics:
    total_revenue: float = 0.0
    total_commission: float = 0.0
    average_instance_value: float = 0.0
    client_retention_rate: float = 0.0
    policy_renewal_rate: float = 0.0
    monthly_growth_rate: float = 0.0
    top_performing_templates: list[TopTemplate] = field(default_factory=list)


@dataclass
class ProviderPerformanceMetrics:
    provider: str
    template_count: int
    instance_count: int
    total_revenue: float
    average_instance_value: float
    active_instances_ratio: float
    expiry_rate: float


@dataclass
class PolicyTypePerformanceMetrics:
    policy_type: str
    template_count: int
    instance_count: int
    total_revenue: float
    average_instance_value: float
    popularity_rank: int
    growth_rate: float


# ============================================================================
# Policy Template Stats Service Implementation
# ============================================================================

class PolicyTemplateStatsService(BaseService):
    """
    Service for policy template and instance statistics.

    Only the unfiltered overview and per-template detail stats are cached;
    write paths invalidate them through StatsCache.invalidate_policy_stats.
    """

    def calculate_policy_template_stats(
        self,
        filters: PolicyTemplateFilter | None = None,
    ) -> PolicyTemplateStats:
        """
        Overview statistics, optionally restricted to matching templates.

        Active instances are those not yet past their expiry date.
        """
        filters = filters or PolicyTemplateFilter()
        cache_key = CACHE_KEYS['template_stats']

        if filters.is_empty:
            cached = self.cache.get(cache_key)
            if cached is not None:
                return cached

        try:
            stats = self._compute_template_stats(filters)
        except Exception as e:
            logger.error(f'Error calculating policy template stats: {e}')
            return PolicyTemplateStats()

        if filters.is_empty:
            self.cache.set(cache_key, stats, self.cache.template_stats_timeout)
        return stats

    def _compute_template_stats(self, filters: PolicyTemplateFilter) -> PolicyTemplateStats:
        now = self.now()
        templates = PolicyTemplate.objects.matching(
            search=filters.search,
            policy_types=filters.policy_types,
            providers=filters.providers,
            has_instances=filters.has_instances,
        )
        instances = PolicyInstance.objects.for_templates(templates)

        provider_rows = list(
            templates.values('provider')
            .annotate(template_count=Count('id'))
            .order_by('-template_count', 'provider')[:TOP_PROVIDERS_LIMIT]
        )
        provider_instances = dict(
            instances.values_list('policy_template__provider')
            .annotate(count=Count('id'))
            .order_by()
        )

        type_rows = list(
            templates.values('policy_type')
            .annotate(template_count=Count('id'))
            .order_by('-template_count', 'policy_type')
        )
        type_instances = dict(
            instances.values_list('policy_template__policy_type')
            .annotate(count=Count('id'))
            .order_by()
        )

        return PolicyTemplateStats(
            total_templates=templates.count(),
            total_instances=instances.count(),
            active_instances=instances.unexpired(now).count(),
            total_clients=instances.distinct_client_count(),
            top_providers=[
                ProviderCount(
                    provider=row['provider'],
                    template_count=row['template_count'],
                    instance_count=provider_instances.get(row['provider'], 0),
                )
                for row in provider_rows
            ],
            policy_type_distribution=[
                PolicyTypeCount(
                    type=row['policy_type'],
                    template_count=row['template_count'],
                    instance_count=type_instances.get(row['policy_type'], 0),
                )
                for row in type_rows
            ],
        )

    def calculate_policy_detail_stats(self, template_id: UUID) -> PolicyDetailStats:
        """Per-template statistics, cached per template id."""
        cache_key = self.cache.detail_key(template_id)
        cached = self.cache.get(cache_key)
        if cached is not None:
            return cached

        try:
            now = self.now()
            instances = PolicyInstance.objects.for_template(template_id)
            totals = instances.aggregate(
                total_premium=Sum('premium_amount'),
                average_premium=Avg('premium_amount'),
                total_commission=Sum('commission_amount'),
            )
            stats = PolicyDetailStats(
                total_clients=instances.distinct_client_count(),
                active_instances=instances.unexpired(now).count(),
                expired_instances=instances.expired_before(now).count(),
                total_premium=to_float(totals['total_premium']),
                total_commission=to_float(totals['total_commission']),
                average_premium=to_float(totals['average_premium']),
                expiring_this_month=instances.expiring_between(
                    now, now + timedelta(days=EXPIRY_WINDOWS['month'])
                ).count(),
            )
        except Exception as e:
            logger.error(f'Error calculating policy detail stats for {template_id}: {e}')
            return PolicyDetailStats()

        self.cache.set(cache_key, stats, self.cache.detail_stats_timeout)
        return stats

    def get_expiry_tracking_stats(self) -> ExpiryTrackingStats:
        """
        Expiry buckets relative to now:

        - this week: expiry within [now, now + 7d]
        - this month: expiry within [now, now + 30d]
        - next month: expiry within [now + 30d, now + 60d]
        - expired last month: expiry within [now - 30d, now]
        """
        try:
            now = self.now()
            week = now + timedelta(days=EXPIRY_WINDOWS['week'])
            month = now + timedelta(days=EXPIRY_WINDOWS['month'])
            next_month = now + timedelta(days=EXPIRY_WINDOWS['next_month'])
            last_month = now - timedelta(days=EXPIRY_WINDOWS['month'])

            instances = PolicyInstance.objects.all()
            soonest = (
                instances.with_relations()
                .with_status(PolicyStatus.ACTIVE)
                .expiring_between(now, month)
                .order_by('expiry_date')[:EXPIRING_DETAILS_LIMIT]
            )

            return ExpiryTrackingStats(
                expiring_this_week=instances.expiring_between(now, week).count(),
                expiring_this_month=instances.expiring_between(now, month).count(),
                expiring_next_month=instances.expiring_between(month, next_month).count(),
                expired_last_month=instances.expiring_between(last_month, now).count(),
                expiring_instances=[
                    ExpiringInstance(
                        id=str(instance.id),
                        client_name=instance.client.full_name,
                        policy_number=instance.policy_template.policy_number,
                        expiry_date=instance.expiry_date,
                        days_until_expiry=days_until(instance.expiry_date, now),
                    )
                    for instance in soonest
                ],
            )
        except Exception as e:
            logger.error(f'Error calculating expiry tracking stats: {e}')
            return ExpiryTrackingStats()

    def get_system_level_metrics(self) -> SystemLevelMetrics:
        """
        System-wide financial and retention metrics.

        Retention: share of clients holding an instance created at least a
        year ago that still have an Active one.
        Renewal: instances created in the trailing 180 days over instances
        that expired in that window, capped at 100.
        """
        try:
            now = self.now()
            instances = PolicyInstance.objects.all()

            totals = instances.aggregate(
                total_revenue=Sum('premium_amount'),
                total_commission=Sum('commission_amount'),
                average_instance_value=Avg('premium_amount'),
            )

            retention_cutoff = now - timedelta(days=RETENTION_LOOKBACK_DAYS)
            long_standing = instances.filter(created_at__lte=retention_cutoff)
            retained_clients = long_standing.with_status(PolicyStatus.ACTIVE).distinct_client_count()
            long_standing_clients = long_standing.distinct_client_count()

            renewal_start = now - timedelta(days=RENEWAL_LOOKBACK_DAYS)
            recent_created = instances.created_between(start=renewal_start).count()
            recent_expired = instances.expiring_between(renewal_start, now).count()
            renewal_rate = min(safe_ratio(recent_created, recent_expired), 100.0)

            current_month_start, previous_month_start = month_bounds(now)
            this_month = instances.created_between(start=current_month_start).count()
            last_month = instances.created_between(previous_month_start, current_month_start).count()

            top_templates = (
                PolicyTemplate.objects
                .annotate(
                    instance_count=Count('instances'),
                    total_revenue=Sum('instances__premium_amount'),
                )
                .order_by('-instance_count', 'policy_number')[:TOP_TEMPLATES_LIMIT]
            )

            return SystemLevelMetrics(
                total_revenue=to_float(totals['total_revenue']),
                total_commission=to_float(totals['total_commission']),
                average_instance_value=to_float(totals['average_instance_value']),
                client_retention_rate=safe_ratio(retained_clients, long_standing_clients),
                policy_renewal_rate=renewal_rate,
                monthly_growth_rate=growth_rate(this_month, last_month),
                top_performing_templates=[
                    TopTemplate(
                        id=str(template.id),
                        policy_number=template.policy_number,
                        instance_count=template.instance_count,
                        total_revenue=to_float(template.total_revenue),
                        average_value=safe_average(to_float(template.total_revenue), template.instance_count),
                    )
                    for template in top_templates
                ],
            )
        except Exception as e:
            logger.error(f'Error calculating system level metrics: {e}')
            return SystemLevelMetrics()

    def get_provider_performance_metrics(self) -> list[ProviderPerformanceMetrics]:
        """Per-provider performance, highest total revenue first."""
        try:
            template_counts = (
                PolicyTemplate.objects.values('provider')
                .annotate(template_count=Count('id'))
                .order_by('provider')
            )
            instance_rows = {
                row['policy_template__provider']: row
                for row in PolicyInstance.objects.values('policy_template__provider')
                .annotate(
                    instance_count=Count('id'),
                    total_revenue=Sum('premium_amount'),
                    active_count=Count('id', filter=Q(status=PolicyStatus.ACTIVE)),
                    expired_count=Count('id', filter=Q(status=PolicyStatus.EXPIRED)),
                )
                .order_by()
            }

            metrics = []
            for row in template_counts:
                provider = row['provider']
                stats = instance_rows.get(provider, {})
                instance_count = stats.get('instance_count', 0)
                total_revenue = to_float(stats.get('total_revenue'))
                metrics.append(ProviderPerformanceMetrics(
                    provider=provider,
                    template_count=row['template_count'],
                    instance_count=instance_count,
                    total_revenue=total_revenue,
                    average_instance_value=safe_average(total_revenue, instance_count),
                    active_instances_ratio=safe_ratio(stats.get('active_count', 0), instance_count),
                    expiry_rate=safe_ratio(stats.get('expired_count', 0), instance_count),
                ))

            metrics.sort(key=lambda m: m.total_revenue, reverse=True)
            return metrics
        except Exception as e:
            logger.error(f'Error calculating provider performance metrics: {e}')
            return []

    def get_policy_type_performance_metrics(self) -> list[PolicyTypePerformanceMetrics]:
        """
        Per-policy-type performance ranked by template count.

        Growth is the share of a type's instances created in the trailing
        90 days, not a period-over-period rate.
        """
        try:
            recent_cutoff = self.now() - timedelta(days=RECENT_GROWTH_DAYS)
            type_rows = (
                PolicyTemplate.objects.values('policy_type')
                .annotate(template_count=Count('id'))
                .order_by('-template_count', 'policy_type')
            )
            instance_rows = {
                row['policy_template__policy_type']: row
                for row in PolicyInstance.objects.values('policy_template__policy_type')
                .annotate(
                    instance_count=Count('id'),
                    total_revenue=Sum('premium_amount'),
                    recent_count=Count('id', filter=Q(created_at__gte=recent_cutoff)),
                )
                .order_by()
            }

            metrics = []
            for rank, row in enumerate(type_rows, start=1):
                policy_type = row['policy_type']
                stats = instance_rows.get(policy_type, {})
                instance_count = stats.get('instance_count', 0)
                total_revenue = to_float(stats.get('total_revenue'))
                metrics.append(PolicyTypePerformanceMetrics(
                    policy_type=policy_type,
                    template_count=row['template_count'],
                    instance_count=instance_count,
                    total_revenue=total_revenue,
                    average_instance_value=safe_average(total_revenue, instance_count),
                    popularity_rank=rank,
                    growth_rate=safe_ratio(stats.get('recent_count', 0), instance_count),
                ))
            return metrics
        except Exception as e:
            logger.error(f'Error calculating policy type performance metrics: {e}')
            return []
