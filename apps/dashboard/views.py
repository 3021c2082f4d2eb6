"""
Dashboard API Views

Provides statistics endpoints:
- /api/dashboard/stats -> StatsService.get_dashboard_stats
- /api/dashboard/enhanced-stats -> StatsService.get_enhanced_dashboard_stats
- /api/dashboard/refresh -> StatsService.refresh_dashboard_stats
- /api/policy-templates/... -> PolicyTemplateStatsService
- /api/policy-templates/expiry/... -> ExpiryTrackingService
"""
import logging

from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import APIView

from apps.core.models import PolicyTemplate
from apps.core.serializers import ExpiryWarningsQuerySerializer, PolicyTemplateStatsQuerySerializer
from apps.core.utils import camelize
from services.expiry_tracking_service import ExpiryThresholds, ExpiryTrackingService
from services.policy_template_stats_service import PolicyTemplateFilter, PolicyTemplateStatsService
from services.stats_service import StatsService

logger = logging.getLogger(__name__)


class DashboardStatsView(APIView):
    """
    GET /api/dashboard/stats

    Dashboard totals with month-over-month changes.

    Response (200):
        {
            "totalLeads": 120,
            "totalClients": 85,
            "activePolicies": 64,
            "commissionThisMonth": 4250.0,
            "leadsChange": 12,
            "clientsChange": 5,
            "policiesChange": -20,
            "commissionChange": 100
        }
    """

    def get(self, request):
        try:
            data = StatsService().get_dashboard_stats()
            return Response(camelize(data))
        except Exception as e:
            logger.error(f'Dashboard stats failed: {e}')
            return Response(
                {'error': 'ServerError', 'message': 'Failed to get dashboard stats'},
                status=status.HTTP_500_INTERNAL_SERVER_ERROR
            )


class EnhancedDashboardStatsView(APIView):
    """
    GET /api/dashboard/enhanced-stats

    Dashboard stats plus `policyTemplateStats` and `expiryWarnings`.
    """

    def get(self, request):
        try:
            data = StatsService().get_enhanced_dashboard_stats()
            return Response(camelize(data))
        except Exception as e:
            logger.error(f'Enhanced dashboard stats failed: {e}')
            return Response(
                {'error': 'ServerError', 'message': 'Failed to get dashboard stats'},
                status=status.HTTP_500_INTERNAL_SERVER_ERROR
            )


class DashboardRefreshView(APIView):
    """
    POST /api/dashboard/refresh

    Drop cached policy statistics and return freshly computed dashboard stats.
    """

    def post(self, request):
        try:
            data = StatsService().refresh_dashboard_stats()
            return Response(camelize(data))
        except Exception as e:
            logger.error(f'Dashboard refresh failed: {e}')
            return Response(
                {'error': 'ServerError', 'message': 'Failed to refresh dashboard stats'},
                status=status.HTTP_500_INTERNAL_SERVER_ERROR
            )


class PolicyTemplateStatsView(APIView):
    """
    GET /api/policy-templates/stats

    Template overview statistics.

    Query params:
        search: Substring over policy number, provider and policy type
        policy_types: Comma-separated or repeated policy types
        providers: Comma-separated or repeated providers
        has_instances: true/false

    Response (200):
        {
            "totalTemplates": 12,
            "totalInstances": 40,
            "activeInstances": 31,
            "totalClients": 25,
            "topProviders": [{"provider": "State Farm", "templateCount": 4, "instanceCount": 15}],
            "policyTypeDistribution": [{"type": "Auto", "templateCount": 5, "instanceCount": 18}]
        }
    """

    def get(self, request):
        serializer = PolicyTemplateStatsQuerySerializer(data=request.query_params)
        if not serializer.is_valid():
            return Response(
                {'error': 'ValidationError', 'message': 'Invalid filters', 'details': serializer.errors},
                status=status.HTTP_400_BAD_REQUEST
            )

        filters = PolicyTemplateFilter(**serializer.validated_data)

        try:
            data = PolicyTemplateStatsService().calculate_policy_template_stats(filters)
            return Response(camelize(data))
        except Exception as e:
            logger.error(f'Policy template stats failed: {e}')
            return Response(
                {'error': 'ServerError', 'message': 'Failed to get policy template stats'},
                status=status.HTTP_500_INTERNAL_SERVER_ERROR
            )


class PolicyTemplateDetailStatsView(APIView):
    """
    GET /api/policy-templates/{id}/stats

    Statistics for a single template.
    """

    def get(self, request, template_id):
        if not PolicyTemplate.objects.filter(pk=template_id).exists():
            return Response(
                {'error': 'NotFound', 'message': f'Policy template {template_id} not found'},
                status=status.HTTP_404_NOT_FOUND
            )

        try:
            data = PolicyTemplateStatsService().calculate_policy_detail_stats(template_id)
            return Response(camelize(data))
        except Exception as e:
            logger.error(f'Policy detail stats failed for {template_id}: {e}')
            return Response(
                {'error': 'ServerError', 'message': 'Failed to get policy detail stats'},
                status=status.HTTP_500_INTERNAL_SERVER_ERROR
            )


class PolicyTemplateSystemStatsView(APIView):
    """
    GET /api/policy-templates/system-stats

    Overview, system metrics, expiry tracking, provider and policy-type
    performance in one response.
    """

    def get(self, request):
        try:
            data = StatsService().get_policy_template_system_stats()
            return Response(camelize(data))
        except Exception as e:
            logger.error(f'Policy template system stats failed: {e}')
            return Response(
                {'error': 'ServerError', 'message': 'Failed to get system stats'},
                status=status.HTTP_500_INTERNAL_SERVER_ERROR
            )


class ExpiryTrackingView(APIView):
    """
    GET /api/policy-templates/expiry-tracking

    Response (200):
        {
            "expiringThisWeek": 2,
            "expiringThisMonth": 6,
            "expiringNextMonth": 3,
            "expiredLastMonth": 1,
            "expiringInstances": [
                {"id": "uuid", "clientName": "Jane Doe", "policyNumber": "AUTO-001",
                 "expiryDate": "2024-02-01T00:00:00Z", "daysUntilExpiry": 4}
            ]
        }
    """

    def get(self, request):
        try:
            data = PolicyTemplateStatsService().get_expiry_tracking_stats()
            return Response(camelize(data))
        except Exception as e:
            logger.error(f'Expiry tracking failed: {e}')
            return Response(
                {'error': 'ServerError', 'message': 'Failed to get expiry tracking stats'},
                status=status.HTTP_500_INTERNAL_SERVER_ERROR
            )


class SystemMetricsView(APIView):
    """GET /api/policy-templates/system-metrics"""

    def get(self, request):
        try:
            data = PolicyTemplateStatsService().get_system_level_metrics()
            return Response(camelize(data))
        except Exception as e:
            logger.error(f'System metrics failed: {e}')
            return Response(
                {'error': 'ServerError', 'message': 'Failed to get system metrics'},
                status=status.HTTP_500_INTERNAL_SERVER_ERROR
            )


class ProviderPerformanceView(APIView):
    """GET /api/policy-templates/provider-performance"""

    def get(self, request):
        try:
            data = PolicyTemplateStatsService().get_provider_performance_metrics()
            return Response(camelize(data))
        except Exception as e:
            logger.error(f'Provider performance failed: {e}')
            return Response(
                {'error': 'ServerError', 'message': 'Failed to get provider performance'},
                status=status.HTTP_500_INTERNAL_SERVER_ERROR
            )


class PolicyTypePerformanceView(APIView):
    """GET /api/policy-templates/type-performance"""

    def get(self, request):
        try:
            data = PolicyTemplateStatsService().get_policy_type_performance_metrics()
            return Response(camelize(data))
        except Exception as e:
            logger.error(f'Policy type performance failed: {e}')
            return Response(
                {'error': 'ServerError', 'message': 'Failed to get policy type performance'},
                status=status.HTTP_500_INTERNAL_SERVER_ERROR
            )


def _expiry_thresholds(request):
    """Validated thresholds and level filter, or a 400 response."""
    serializer = ExpiryWarningsQuerySerializer(data=request.query_params)
    if not serializer.is_valid():
        response = Response(
            {'error': 'ValidationError', 'message': 'Invalid expiry thresholds', 'details': serializer.errors},
            status=status.HTTP_400_BAD_REQUEST
        )
        return None, None, response
    data = dict(serializer.validated_data)
    level = data.pop('level', None)
    return ExpiryThresholds(**data), level, None


class ExpiryWarningsView(APIView):
    """
    GET /api/policy-templates/expiry/warnings

    Active instances expiring soon, grouped by warning level.

    Query params:
        critical_days: Days for critical warnings (default: 7)
        warning_days: Days for warnings (default: 30)
        info_days: Days for info warnings (default: 60)
        level: Only return critical, warning or info (counts are unfiltered)

    Response (200):
        {
            "critical": [{"id": "uuid", "clientName": "Jane Doe", "policyNumber": "AUTO-001",
                          "daysUntilExpiry": 3, "warningLevel": "critical", ...}],
            "warning": [],
            "info": [],
            "counts": {"critical": 1, "warning": 0, "info": 0, "total": 1}
        }
    """

    def get(self, request):
        thresholds, level, error = _expiry_thresholds(request)
        if error is not None:
            return error

        try:
            grouped = ExpiryTrackingService().get_expiring_policies_by_level(thresholds)
            if level:
                grouped = grouped.only(level)
            return Response(camelize(grouped))
        except Exception as e:
            logger.error(f'Expiry warnings failed: {e}')
            return Response(
                {'error': 'ServerError', 'message': 'Failed to get expiry warnings'},
                status=status.HTTP_500_INTERNAL_SERVER_ERROR
            )


class ExpirySummaryView(APIView):
    """
    GET /api/policy-templates/expiry/summary

    Response (200):
        {
            "expiringThisWeek": 2,
            "expiringThisMonth": 5,
            "expiringNextThreeMonths": 9,
            "totalActiveInstances": 40,
            "expiryRateThisWeek": 5.0,
            "expiryRateThisMonth": 12.5,
            "revenueAtRisk": {"premium": 18000.0, "commission": 1800.0, "total": 19800.0}
        }
    """

    def get(self, request):
        try:
            data = ExpiryTrackingService().get_expiry_summary()
            return Response(camelize(data))
        except Exception as e:
            logger.error(f'Expiry summary failed: {e}')
            return Response(
                {'error': 'ServerError', 'message': 'Failed to get expiry summary'},
                status=status.HTTP_500_INTERNAL_SERVER_ERROR
            )


class PolicyTemplateExpiryWarningsView(APIView):
    """
    GET /api/policy-templates/{id}/expiry/warnings

    Expiry warnings for the instances of one template, soonest first.
    Accepts the same threshold params as /expiry/warnings.
    """

    def get(self, request, template_id):
        if not PolicyTemplate.objects.filter(pk=template_id).exists():
            return Response(
                {'error': 'NotFound', 'message': f'Policy template {template_id} not found'},
                status=status.HTTP_404_NOT_FOUND
            )

        thresholds, _, error = _expiry_thresholds(request)
        if error is not None:
            return error

        try:
            warnings = ExpiryTrackingService().get_template_expiring_policies(template_id, thresholds)
            return Response(camelize(warnings))
        except Exception as e:
            logger.error(f'Template expiry warnings failed for {template_id}: {e}')
            return Response(
                {'error': 'ServerError', 'message': 'Failed to get template expiry warnings'},
                status=status.HTTP_500_INTERNAL_SERVER_ERROR
            )
