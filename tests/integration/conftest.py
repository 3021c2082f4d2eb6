"""
Integration Test Fixtures

Provides real database fixtures using Factory Boy.
These fixtures create actual database records for true integration testing.

Dates are expressed relative to the fixed `now` fixture (2024-06-15 12:00 UTC)
so services built with the `clock` fixture see a stable calendar.
"""
from datetime import timedelta
from decimal import Decimal
from types import SimpleNamespace

import pytest

from apps.core.models import PolicyStatus
from services.expiry_tracking_service import ExpiryTrackingService
from services.policy_compatibility_service import CompatibilityMode, PolicyCompatibilityService
from services.policy_template_stats_service import PolicyTemplateStatsService
from services.stats_service import StatsService
from tests.factories import (
    ClientFactory,
    PolicyInstanceFactory,
    PolicyTemplateFactory,
)

# =============================================================================
# Service Fixtures
# =============================================================================


@pytest.fixture
def template_stats_service(stats_cache, clock):
    return PolicyTemplateStatsService(cache=stats_cache, clock=clock)


@pytest.fixture
def stats_service(stats_cache, clock):
    return StatsService(cache=stats_cache, clock=clock)


@pytest.fixture
def expiry_service(stats_cache, clock):
    return ExpiryTrackingService(cache=stats_cache, clock=clock)


@pytest.fixture
def compatibility_service_factory(stats_cache, clock):
    """Build a compatibility service for a given operating mode."""
    def build(use_template_system=True, allow_fallback=True, migrate_on_read=False):
        mode = CompatibilityMode(
            use_template_system=use_template_system,
            allow_fallback=allow_fallback,
            migrate_on_read=migrate_on_read,
        )
        return PolicyCompatibilityService(mode=mode, cache=stats_cache, clock=clock)
    return build


# =============================================================================
# Data Fixtures
# =============================================================================


@pytest.fixture
def make_instance(now):
    """Create an instance with dates given as day offsets from `now`."""
    def make(template, client=None, *, premium, start, expiry, created=None,
             status=PolicyStatus.ACTIVE):
        created_at = now + timedelta(days=start if created is None else created)
        return PolicyInstanceFactory(
            policy_template=template,
            client=client or ClientFactory(created_at=now - timedelta(days=60)),
            premium_amount=Decimal(premium),
            commission_amount=(Decimal(premium) / 10).quantize(Decimal('0.01')),
            status=status,
            start_date=now + timedelta(days=start),
            expiry_date=now + timedelta(days=expiry),
            created_at=created_at,
            updated_at=created_at,
        )
    return make


@pytest.fixture
def portfolio(db, now, make_instance):
    """
    A small book of business:

    - SF-AUTO-1 (State Farm, Auto): two Active instances, one expiring in 3 days
    - SF-HOME-1 (State Farm, Home): one Expired instance, expired 10 days ago
    - AL-LIFE-1 (Allstate, Life): one Active instance expiring in 45 days
    - AL-BIZ-1 (Allstate, Business): no instances
    """
    alice = ClientFactory(first_name='Alice', last_name='Adams', created_at=now - timedelta(days=60))
    bob = ClientFactory(first_name='Bob', last_name='Brown', created_at=now - timedelta(days=60))
    carol = ClientFactory(first_name='Carol', last_name='Clark', created_at=now - timedelta(days=60))

    sf_auto = PolicyTemplateFactory(policy_number='SF-AUTO-1', policy_type='Auto', provider='State Farm')
    sf_home = PolicyTemplateFactory(policy_number='SF-HOME-1', policy_type='Home', provider='State Farm')
    al_life = PolicyTemplateFactory(policy_number='AL-LIFE-1', policy_type='Life', provider='Allstate')
    al_biz = PolicyTemplateFactory(policy_number='AL-BIZ-1', policy_type='Business', provider='Allstate')

    return SimpleNamespace(
        alice=alice,
        bob=bob,
        carol=carol,
        sf_auto=sf_auto,
        sf_home=sf_home,
        al_life=al_life,
        al_biz=al_biz,
        expiring_soon=make_instance(sf_auto, alice, premium='1000.00', start=-100, expiry=3),
        fresh=make_instance(sf_auto, bob, premium='2000.00', start=-10, expiry=200),
        lapsed=make_instance(
            sf_home, alice, premium='1500.00', start=-400, expiry=-10, status=PolicyStatus.EXPIRED
        ),
        life=make_instance(al_life, carol, premium='5000.00', start=-20, expiry=45),
    )
