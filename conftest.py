"""
Pytest Configuration for PolicyDesk Backend Tests

Key Features:
- Enables managed=True for unmanaged models during tests
- Clears the stats cache between tests
- Provides a fixed clock for the statistics services
"""
from datetime import datetime, timezone as dt_timezone

import pytest
from django.apps import apps
from django.core.cache import cache

from services.cache_service import StatsCache


# =============================================================================
# Database Setup - Enable managed=True for unmanaged models
# =============================================================================

@pytest.fixture(scope='session')
def django_db_setup(django_db_setup, django_db_blocker):
    """
    Create tables for models that normally point to existing
    back-office tables (managed=False).
    """
    with django_db_blocker.unblock():
        for model in apps.get_models():
            if not model._meta.managed:
                model._meta.managed = True

        from django.core.management import call_command

        call_command('migrate', '--run-syncdb', verbosity=0)


# =============================================================================
# Cache
# =============================================================================

@pytest.fixture(autouse=True)
def clear_cache():
    """Every test starts with an empty stats cache."""
    cache.clear()
    yield
    cache.clear()


@pytest.fixture
def stats_cache():
    """Stats cache over the default test cache, with hit/miss counters."""
    return StatsCache()


# =============================================================================
# Clock
# =============================================================================

FIXED_NOW = datetime(2024, 6, 15, 12, 0, 0, tzinfo=dt_timezone.utc)


@pytest.fixture
def now():
    """A fixed reference time in the middle of a month."""
    return FIXED_NOW


@pytest.fixture
def clock(now):
    return lambda: now

