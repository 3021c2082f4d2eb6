"""
Clients API Views

Provides client policy endpoints:
- GET /api/clients/{id}/policies - Unified policies of a client
- GET /api/clients/{id}/policy-stats - Policy totals for a client
"""
import logging

from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import APIView

from apps.core.models import Client
from apps.core.utils import camelize
from services.policy_compatibility_service import PolicyCompatibilityService
from services.stats_service import StatsService

logger = logging.getLogger(__name__)


def _client_not_found(client_id):
    return Response(
        {'error': 'NotFound', 'message': f'Client {client_id} not found'},
        status=status.HTTP_404_NOT_FOUND
    )


class ClientPoliciesView(APIView):
    """
    GET /api/clients/{id}/policies

    Normalized policies first; legacy policies when the client has none
    (and fallback is enabled). With migrate-on-read the legacy policies are
    migrated before being returned.
    """

    def get(self, request, client_id):
        if not Client.objects.filter(pk=client_id).exists():
            return _client_not_found(client_id)

        try:
            policies = PolicyCompatibilityService().get_client_policies(client_id)
            return Response({'policies': camelize(policies)})
        except Exception as e:
            logger.error(f'Client policies failed for {client_id}: {e}')
            return Response(
                {'error': 'ServerError', 'message': 'Failed to fetch client policies'},
                status=status.HTTP_500_INTERNAL_SERVER_ERROR
            )


class ClientPolicyStatsView(APIView):
    """
    GET /api/clients/{id}/policy-stats

    Response (200):
        {
            "totalPolicies": 3,
            "activePolicies": 2,
            "totalPremium": 4200.0,
            "totalCommission": 420.0,
            "expiringPolicies": [
                {"id": "uuid", "policyNumber": "AUTO-001", "policyType": "Auto", "expiryDate": "..."}
            ]
        }
    """

    def get(self, request, client_id):
        if not Client.objects.filter(pk=client_id).exists():
            return _client_not_found(client_id)

        try:
            data = StatsService().get_client_policy_stats(client_id)
            return Response(camelize(data))
        except Exception as e:
            logger.error(f'Client policy stats failed for {client_id}: {e}')
            return Response(
                {'error': 'ServerError', 'message': 'Failed to get client policy stats'},
                status=status.HTTP_500_INTERNAL_SERVER_ERROR
            )
