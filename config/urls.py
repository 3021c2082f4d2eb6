"""
URL Configuration for PolicyDesk Backend API

All routes are prefixed with /api/.
"""
from django.urls import include, path

from apps.core.views import health_check
from apps.dashboard.urls import policy_template_urlpatterns

urlpatterns = [
    # Health check endpoint (public)
    path('api/health', health_check, name='health_check'),

    # Dashboard endpoints
    path('api/dashboard/', include('apps.dashboard.urls')),

    # Policy template statistics endpoints
    path('api/policy-templates/', include(policy_template_urlpatterns)),

    # Unified policy endpoints
    path('api/policies/', include('apps.policies.urls')),

    # Client policy endpoints
    path('api/clients/', include('apps.clients.urls')),
]
