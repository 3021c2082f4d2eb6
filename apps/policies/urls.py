"""
Policies URL Configuration

All routes are relative to /api/policies/
"""
from django.urls import path

from .views import (
    CompatibilityStatusView,
    ExpirePoliciesView,
    MigrationCleanupView,
    MigrationValidateView,
    MigrationVerifyView,
    MigrationView,
    PoliciesListView,
    PolicyDetailView,
    PolicyStatsView,
)

urlpatterns = [
    path('', PoliciesListView.as_view(), name='policies-list'),
    # Fixed routes must come before <uuid:policy_id>
    path('stats', PolicyStatsView.as_view(), name='policies-stats'),
    path('compatibility-status', CompatibilityStatusView.as_view(), name='policies-compatibility-status'),
    path('expire', ExpirePoliciesView.as_view(), name='policies-expire'),
    path('migration', MigrationView.as_view(), name='policies-migration'),
    path('migration/validate', MigrationValidateView.as_view(), name='policies-migration-validate'),
    path('migration/verify', MigrationVerifyView.as_view(), name='policies-migration-verify'),
    path('migration/cleanup', MigrationCleanupView.as_view(), name='policies-migration-cleanup'),
    path('<uuid:policy_id>', PolicyDetailView.as_view(), name='policy-detail'),
]
