"""
Dashboard API URLs

Routes in `urlpatterns` are relative to /api/dashboard/,
routes in `policy_template_urlpatterns` to /api/policy-templates/
"""
from django.urls import path

from . import views

urlpatterns = [
    path('stats', views.DashboardStatsView.as_view(), name='dashboard_stats'),
    path('enhanced-stats', views.EnhancedDashboardStatsView.as_view(), name='dashboard_enhanced_stats'),
    path('refresh', views.DashboardRefreshView.as_view(), name='dashboard_refresh'),
]

policy_template_urlpatterns = [
    path('stats', views.PolicyTemplateStatsView.as_view(), name='policy_template_stats'),
    path('system-stats', views.PolicyTemplateSystemStatsView.as_view(), name='policy_template_system_stats'),
    path('expiry-tracking', views.ExpiryTrackingView.as_view(), name='policy_template_expiry_tracking'),
    path('expiry/warnings', views.ExpiryWarningsView.as_view(), name='policy_template_expiry_warnings'),
    path('expiry/summary', views.ExpirySummaryView.as_view(), name='policy_template_expiry_summary'),
    path('system-metrics', views.SystemMetricsView.as_view(), name='policy_template_system_metrics'),
    path('provider-performance', views.ProviderPerformanceView.as_view(), name='policy_template_provider_performance'),
    path('type-performance', views.PolicyTypePerformanceView.as_view(), name='policy_template_type_performance'),
    path('<uuid:template_id>/stats', views.PolicyTemplateDetailStatsView.as_view(), name='policy_template_detail_stats'),
    path(
        '<uuid:template_id>/expiry/warnings',
        views.PolicyTemplateExpiryWarningsView.as_view(),
        name='policy_template_expiry_warnings_detail',
    ),
]
