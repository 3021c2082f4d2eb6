"""
Integration tests for PolicyTemplateStatsService.

Runs against real database records built from the `portfolio` fixture.
"""
from datetime import timedelta
from decimal import Decimal

import pytest
from django.db import DatabaseError

from apps.core.constants import CACHE_KEYS
from apps.core.models import PolicyInstance
from services.policy_template_stats_service import (
    PolicyDetailStats,
    PolicyTemplateFilter,
    PolicyTemplateStats,
    PolicyTemplateStatsService,
    PolicyTypeCount,
    ProviderCount,
    SystemLevelMetrics,
)
from tests.factories import PolicyTemplateFactory


@pytest.mark.django_db
class TestPolicyTemplateOverview:
    """Tests for calculate_policy_template_stats."""

    def test_unfiltered_overview(self, portfolio, template_stats_service):
        stats = template_stats_service.calculate_policy_template_stats()

        assert stats.total_templates == 4
        assert stats.total_instances == 4
        assert stats.active_instances == 3
        assert stats.total_clients == 3
        assert stats.top_providers == [
            ProviderCount(provider='Allstate', template_count=2, instance_count=1),
            ProviderCount(provider='State Farm', template_count=2, instance_count=3),
        ]
        assert stats.policy_type_distribution == [
            PolicyTypeCount(type='Auto', template_count=1, instance_count=2),
            PolicyTypeCount(type='Business', template_count=1, instance_count=0),
            PolicyTypeCount(type='Home', template_count=1, instance_count=1),
            PolicyTypeCount(type='Life', template_count=1, instance_count=1),
        ]

    def test_second_unfiltered_call_is_served_from_cache(self, portfolio, template_stats_service, stats_cache):
        first = template_stats_service.calculate_policy_template_stats(PolicyTemplateFilter())
        hits_before = stats_cache.hits

        second = template_stats_service.calculate_policy_template_stats(PolicyTemplateFilter())

        assert second == first
        assert stats_cache.hits == hits_before + 1

    def test_cached_result_survives_until_invalidated(self, portfolio, template_stats_service, stats_cache):
        template_stats_service.calculate_policy_template_stats()
        PolicyTemplateFactory(policy_number='NEW-1', policy_type='Auto', provider='Progressive')

        assert template_stats_service.calculate_policy_template_stats().total_templates == 4

        stats_cache.invalidate_policy_stats()
        assert template_stats_service.calculate_policy_template_stats().total_templates == 5

    def test_filtered_calls_bypass_cache(self, portfolio, template_stats_service, stats_cache):
        filters = PolicyTemplateFilter(providers=['State Farm'])

        template_stats_service.calculate_policy_template_stats(filters)
        template_stats_service.calculate_policy_template_stats(filters)

        assert stats_cache.hits == 0
        assert stats_cache.get(CACHE_KEYS['template_stats']) is None

    def test_provider_filter(self, portfolio, template_stats_service):
        stats = template_stats_service.calculate_policy_template_stats(
            PolicyTemplateFilter(providers=['State Farm'])
        )

        assert stats.total_templates == 2
        assert stats.total_instances == 3
        assert stats.active_instances == 2
        assert stats.total_clients == 2

    def test_search_matches_policy_type(self, portfolio, template_stats_service):
        stats = template_stats_service.calculate_policy_template_stats(
            PolicyTemplateFilter(search='life')
        )

        assert stats.total_templates == 1
        assert stats.total_instances == 1

    def test_has_instances_false(self, portfolio, template_stats_service):
        stats = template_stats_service.calculate_policy_template_stats(
            PolicyTemplateFilter(has_instances=False)
        )

        assert stats.total_templates == 1
        assert stats.total_instances == 0
        assert stats.top_providers == [
            ProviderCount(provider='Allstate', template_count=1, instance_count=0),
        ]

    def test_has_instances_true_keeps_template_counts_exact(self, portfolio, template_stats_service):
        stats = template_stats_service.calculate_policy_template_stats(
            PolicyTemplateFilter(has_instances=True)
        )

        assert stats.total_templates == 3
        assert stats.total_instances == 4

    def test_database_failure_returns_zero_stats(self, portfolio, stats_cache, clock, mocker):
        service = PolicyTemplateStatsService(cache=stats_cache, clock=clock)
        mocker.patch.object(service, '_compute_template_stats', side_effect=DatabaseError('down'))

        assert service.calculate_policy_template_stats() == PolicyTemplateStats()
        assert stats_cache.get(CACHE_KEYS['template_stats']) is None


@pytest.mark.django_db
class TestPolicyDetailStats:
    """Tests for calculate_policy_detail_stats."""

    def test_detail_stats(self, portfolio, template_stats_service):
        stats = template_stats_service.calculate_policy_detail_stats(portfolio.sf_auto.id)

        assert stats == PolicyDetailStats(
            total_clients=2,
            active_instances=2,
            expired_instances=0,
            total_premium=3000.0,
            total_commission=300.0,
            average_premium=1500.0,
            expiring_this_month=1,
        )

    def test_expired_by_date(self, portfolio, template_stats_service):
        stats = template_stats_service.calculate_policy_detail_stats(portfolio.sf_home.id)

        assert stats.active_instances == 0
        assert stats.expired_instances == 1

    def test_template_without_instances(self, portfolio, template_stats_service):
        assert template_stats_service.calculate_policy_detail_stats(portfolio.al_biz.id) == PolicyDetailStats()

    def test_detail_stats_are_cached_per_template(self, portfolio, template_stats_service, stats_cache):
        template_stats_service.calculate_policy_detail_stats(portfolio.sf_auto.id)
        PolicyInstance.objects.filter(policy_template=portfolio.sf_auto).update(premium_amount=Decimal('1.00'))

        cached = template_stats_service.calculate_policy_detail_stats(portfolio.sf_auto.id)
        assert cached.total_premium == 3000.0

        stats_cache.invalidate_policy_stats(portfolio.sf_auto.id)
        fresh = template_stats_service.calculate_policy_detail_stats(portfolio.sf_auto.id)
        assert fresh.total_premium == 2.0


@pytest.mark.django_db
class TestExpiryTracking:
    """Tests for get_expiry_tracking_stats."""

    def test_buckets(self, portfolio, template_stats_service):
        stats = template_stats_service.get_expiry_tracking_stats()

        assert stats.expiring_this_week == 1
        assert stats.expiring_this_month == 1
        assert stats.expiring_next_month == 1
        assert stats.expired_last_month == 1

    def test_five_days_out_is_this_week_and_month_only(self, db, now, make_instance, template_stats_service):
        template = PolicyTemplateFactory()
        make_instance(template, premium='100.00', start=-30, expiry=5)

        stats = template_stats_service.get_expiry_tracking_stats()

        assert stats.expiring_this_week == 1
        assert stats.expiring_this_month == 1
        assert stats.expiring_next_month == 0
        assert stats.expired_last_month == 0

    def test_ten_days_ago_is_expired_last_month_only(self, db, now, make_instance, template_stats_service):
        template = PolicyTemplateFactory()
        make_instance(template, premium='100.00', start=-300, expiry=-10)

        stats = template_stats_service.get_expiry_tracking_stats()

        assert stats.expiring_this_week == 0
        assert stats.expiring_this_month == 0
        assert stats.expiring_next_month == 0
        assert stats.expired_last_month == 1

    def test_expiring_instances_detail(self, portfolio, template_stats_service, now):
        stats = template_stats_service.get_expiry_tracking_stats()

        assert len(stats.expiring_instances) == 1
        expiring = stats.expiring_instances[0]
        assert expiring.id == str(portfolio.expiring_soon.id)
        assert expiring.client_name == 'Alice Adams'
        assert expiring.policy_number == 'SF-AUTO-1'
        assert expiring.expiry_date == now + timedelta(days=3)
        assert expiring.days_until_expiry == 3


@pytest.mark.django_db
class TestSystemLevelMetrics:
    """Tests for get_system_level_metrics."""

    def test_zero_instances(self, template_stats_service):
        PolicyTemplateFactory()

        metrics = template_stats_service.get_system_level_metrics()

        assert metrics.total_revenue == 0
        assert metrics.average_instance_value == 0
        assert metrics.client_retention_rate == 0
        assert metrics.policy_renewal_rate == 0
        assert metrics.monthly_growth_rate == 0

    def test_totals_and_rates(self, portfolio, template_stats_service):
        metrics = template_stats_service.get_system_level_metrics()

        assert metrics.total_revenue == 9500.0
        assert metrics.total_commission == 950.0
        assert metrics.average_instance_value == 2375.0
        # The only year-old instance belongs to a client whose policy lapsed
        assert metrics.client_retention_rate == 0.0
        # Three created in the trailing 180 days against one expiry, capped
        assert metrics.policy_renewal_rate == 100.0
        # One instance created in June, one in May
        assert metrics.monthly_growth_rate == 0.0

    def test_retention_counts_active_long_standing_clients(self, db, make_instance, template_stats_service):
        template = PolicyTemplateFactory()
        make_instance(template, premium='100.00', start=-500, expiry=100)
        make_instance(template, premium='100.00', start=-500, expiry=-20, status='Expired')

        metrics = template_stats_service.get_system_level_metrics()

        assert metrics.client_retention_rate == 50.0

    def test_top_performing_templates(self, portfolio, template_stats_service):
        top = template_stats_service.get_system_level_metrics().top_performing_templates

        assert [t.policy_number for t in top] == ['SF-AUTO-1', 'AL-LIFE-1', 'SF-HOME-1', 'AL-BIZ-1']
        assert top[0].instance_count == 2
        assert top[0].total_revenue == 3000.0
        assert top[0].average_value == 1500.0
        assert top[-1].average_value == 0.0

    def test_database_failure_returns_zero_metrics(self, template_stats_service, mocker):
        mocker.patch.object(PolicyInstance.objects, 'all', side_effect=DatabaseError('down'))

        assert template_stats_service.get_system_level_metrics() == SystemLevelMetrics()


@pytest.mark.django_db
class TestProviderPerformance:
    """Tests for get_provider_performance_metrics."""

    def test_ranked_by_revenue(self, db, make_instance, template_stats_service):
        auto = PolicyTemplateFactory(policy_number='AUTO-001', policy_type='Auto', provider='State Farm')
        home = PolicyTemplateFactory(policy_number='HOME-001', policy_type='Home', provider='Allstate')
        for _ in range(3):
            make_instance(auto, premium='1200.00', start=-30, expiry=300)
        for _ in range(2):
            make_instance(home, premium='900.00', start=-30, expiry=300)

        metrics = template_stats_service.get_provider_performance_metrics()

        assert [m.provider for m in metrics] == ['State Farm', 'Allstate']
        assert metrics[0].total_revenue == 3600.0
        assert metrics[0].instance_count == 3
        assert metrics[1].total_revenue == 1800.0
        assert metrics[1].average_instance_value == 900.0

    def test_ratios_use_stored_status(self, portfolio, template_stats_service):
        metrics = {m.provider: m for m in template_stats_service.get_provider_performance_metrics()}

        state_farm = metrics['State Farm']
        assert state_farm.template_count == 2
        assert state_farm.instance_count == 3
        assert state_farm.active_instances_ratio == pytest.approx(200 / 3)
        assert state_farm.expiry_rate == pytest.approx(100 / 3)

        allstate = metrics['Allstate']
        assert allstate.template_count == 2
        assert allstate.active_instances_ratio == 100.0
        assert allstate.expiry_rate == 0.0

    def test_empty_database(self, db, template_stats_service):
        assert template_stats_service.get_provider_performance_metrics() == []


@pytest.mark.django_db
class TestPolicyTypePerformance:
    """Tests for get_policy_type_performance_metrics."""

    def test_rank_and_recent_share(self, portfolio, template_stats_service):
        metrics = template_stats_service.get_policy_type_performance_metrics()

        assert [(m.policy_type, m.popularity_rank) for m in metrics] == [
            ('Auto', 1), ('Business', 2), ('Home', 3), ('Life', 4),
        ]
        by_type = {m.policy_type: m for m in metrics}
        assert by_type['Auto'].growth_rate == 50.0
        assert by_type['Auto'].average_instance_value == 1500.0
        assert by_type['Business'].instance_count == 0
        assert by_type['Business'].growth_rate == 0.0
        assert by_type['Home'].growth_rate == 0.0
        assert by_type['Life'].growth_rate == 100.0

    def test_more_templates_rank_higher(self, portfolio, template_stats_service):
        PolicyTemplateFactory(policy_type='Life', provider='Allstate')

        metrics = template_stats_service.get_policy_type_performance_metrics()

        assert metrics[0].policy_type == 'Life'
        assert metrics[0].template_count == 2
        assert metrics[0].popularity_rank == 1

