"""
Expiry Tracking Service

Warnings for Active policy instances approaching their expiry date,
graded by how close the date is:

- critical: expires within `critical_days` (default 7)
- warning: within `warning_days` (default 30)
- info: within `info_days` (default 60)

Like the statistics services, failures are logged and an empty result is
returned.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from uuid import UUID

from django.db.models import Sum

from apps.core.constants import EXPIRY_SUMMARY_HORIZON_DAYS, EXPIRY_WARNING_DAYS, EXPIRY_WINDOWS
from apps.core.models import PolicyInstance, PolicyStatus

from .base import BaseService
from .metrics import days_until, safe_ratio, to_float

logger = logging.getLogger(__name__)

WARNING_LEVELS = ('critical', 'warning', 'info')


# ============================================================================
# Data Transfer Objects (DTOs)
# ============================================================================

@dataclass
class ExpiryThresholds:
    critical_days: int = EXPIRY_WARNING_DAYS['critical']
    warning_days: int = EXPIRY_WARNING_DAYS['warning']
    info_days: int = EXPIRY_WARNING_DAYS['info']

    @property
    def horizon_days(self) -> int:
        return max(self.critical_days, self.warning_days, self.info_days)

    def level_for(self, days: int) -> str:
        if days <= self.critical_days:
            return 'critical'
        if days <= self.warning_days:
            return 'warning'
        return 'info'


@dataclass
class ExpiryWarning:
    id: str
    client_id: str
    client_name: str
    policy_template_id: str
    policy_number: str
    policy_type: str
    provider: str
    expiry_date: datetime
    days_until_expiry: int
    premium_amount: float
    commission_amount: float
    warning_level: str


@dataclass
class WarningCounts:
    critical: int = 0
    warning: int = 0
    info: int = 0
    total: int = 0


@dataclass
class ExpiryWarningsByLevel:
    critical: list[ExpiryWarning] = field(default_factory=list)
    warning: list[ExpiryWarning] = field(default_factory=list)
    info: list[ExpiryWarning] = field(default_factory=list)
    counts: WarningCounts = field(default_factory=WarningCounts)

    def only(self, level: str) -> ExpiryWarningsByLevel:
        """Keep the warnings of one level; counts stay unfiltered."""
        return ExpiryWarningsByLevel(
            critical=self.critical if level == 'critical' else [],
            warning=self.warning if level == 'warning' else [],
            info=self.info if level == 'info' else [],
            counts=self.counts,
        )


@dataclass
class RevenueAtRisk:
    premium: float = 0.0
    commission: float = 0.0
    total: float = 0.0


@dataclass
class ExpirySummary:
    expiring_this_week: int = 0
    expiring_this_month: int = 0
    expiring_next_three_months: int = 0
    total_active_instances: int = 0
    expiry_rate_this_week: float = 0.0
    expiry_rate_this_month: float = 0.0
    revenue_at_risk: RevenueAtRisk = field(default_factory=RevenueAtRisk)


# ============================================================================
# Expiry Tracking Service Implementation
# ============================================================================

class ExpiryTrackingService(BaseService):
    """
    Service for expiry warnings over Active policy instances.

    Usage:
        service = ExpiryTrackingService()
        grouped = service.get_expiring_policies_by_level(ExpiryThresholds(critical_days=3))
    """

    def get_expiring_policies(
        self,
        thresholds: ExpiryThresholds | None = None,
        template_id: UUID | None = None,
    ) -> list[ExpiryWarning]:
        """Active instances expiring within the widest threshold, soonest first."""
        thresholds = thresholds or ExpiryThresholds()
        try:
            now = self.now()
            instances = (
                PolicyInstance.objects.with_relations()
                .with_status(PolicyStatus.ACTIVE)
                .expiring_between(now, now + timedelta(days=thresholds.horizon_days))
            )
            if template_id is not None:
                instances = instances.for_template(template_id)

            return [
                self._to_warning(instance, now, thresholds)
                for instance in instances.order_by('expiry_date')
            ]
        except Exception as e:
            logger.error(f'Error getting expiring policies: {e}')
            return []

    def get_expiring_policies_by_level(
        self,
        thresholds: ExpiryThresholds | None = None,
    ) -> ExpiryWarningsByLevel:
        warnings = self.get_expiring_policies(thresholds)
        grouped = ExpiryWarningsByLevel(
            critical=[w for w in warnings if w.warning_level == 'critical'],
            warning=[w for w in warnings if w.warning_level == 'warning'],
            info=[w for w in warnings if w.warning_level == 'info'],
        )
        grouped.counts = WarningCounts(
            critical=len(grouped.critical),
            warning=len(grouped.warning),
            info=len(grouped.info),
            total=len(warnings),
        )
        return grouped

    def get_template_expiring_policies(
        self,
        template_id: UUID,
        thresholds: ExpiryThresholds | None = None,
    ) -> list[ExpiryWarning]:
        return self.get_expiring_policies(thresholds, template_id=template_id)

    def get_expiry_summary(self) -> ExpirySummary:
        """
        Counts of Active instances expiring within a week, a month and
        three months, their share of all Active instances, and the premium
        and commission of the three-month window (revenue at risk).
        """
        try:
            now = self.now()
            active = PolicyInstance.objects.with_status(PolicyStatus.ACTIVE)
            week = active.expiring_between(now, now + timedelta(days=EXPIRY_WINDOWS['week']))
            month = active.expiring_between(now, now + timedelta(days=EXPIRY_WINDOWS['month']))
            quarter = active.expiring_between(now, now + timedelta(days=EXPIRY_SUMMARY_HORIZON_DAYS))

            total_active = active.count()
            expiring_this_week = week.count()
            expiring_this_month = month.count()
            at_risk = quarter.aggregate(premium=Sum('premium_amount'), commission=Sum('commission_amount'))
            premium = to_float(at_risk['premium'])
            commission = to_float(at_risk['commission'])

            return ExpirySummary(
                expiring_this_week=expiring_this_week,
                expiring_this_month=expiring_this_month,
                expiring_next_three_months=quarter.count(),
                total_active_instances=total_active,
                expiry_rate_this_week=safe_ratio(expiring_this_week, total_active),
                expiry_rate_this_month=safe_ratio(expiring_this_month, total_active),
                revenue_at_risk=RevenueAtRisk(
                    premium=premium,
                    commission=commission,
                    total=premium + commission,
                ),
            )
        except Exception as e:
            logger.error(f'Error getting expiry summary: {e}')
            return ExpirySummary()

    # ========================================================================
    # Helpers
    # ========================================================================

    def _to_warning(self, instance: PolicyInstance, now: datetime, thresholds: ExpiryThresholds) -> ExpiryWarning:
        days = days_until(instance.expiry_date, now)
        template = instance.policy_template
        return ExpiryWarning(
            id=str(instance.id),
            client_id=str(instance.client_id),
            client_name=instance.client.full_name,
            policy_template_id=str(template.id),
            policy_number=template.policy_number,
            policy_type=template.policy_type,
            provider=template.provider,
            expiry_date=instance.expiry_date,
            days_until_expiry=days,
            premium_amount=to_float(instance.premium_amount),
            commission_amount=to_float(instance.commission_amount),
            warning_level=thresholds.level_for(days),
        )
