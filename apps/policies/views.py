"""
Policies API Views

Provides unified policy endpoints over legacy and normalized policies:
- GET/POST /api/policies/ - List or create policies
- GET /api/policies/stats - Policy page statistics
- GET /api/policies/compatibility-status - Current compatibility mode
- POST /api/policies/expire - Flip expired Active instances to Expired
- GET /api/policies/migration/validate - Pre-migration checks
- POST /api/policies/migration - Batch migration of legacy policies
- GET /api/policies/migration/verify - Post-migration integrity checks
- POST /api/policies/migration/cleanup - Delete migrated legacy rows
- PATCH/DELETE /api/policies/{id} - Update or delete a policy
"""
import logging

from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import APIView

from apps.core.exceptions import APIException
from apps.core.serializers import (
    MigrationRequestSerializer,
    PolicyCreateSerializer,
    PolicyListQuerySerializer,
    PolicyUpdateSerializer,
)
from apps.core.utils import camelize
from services.policy_compatibility_service import PolicyCompatibilityService
from services.stats_service import StatsService

from .services import (
    cleanup_old_policies,
    migrate_legacy_policies,
    update_expired_policy_statuses,
    validate_legacy_policy_data,
    verify_migration_integrity,
)

logger = logging.getLogger(__name__)


def _validation_error(serializer):
    return Response(
        {'error': 'ValidationError', 'message': 'Invalid request', 'details': serializer.errors},
        status=status.HTTP_400_BAD_REQUEST
    )


class PoliciesListView(APIView):
    """
    GET /api/policies/

    Paginated unified policy list.

    Query params:
        page: Page number (default: 1)
        limit: Page size (default: 10, max: 100)
        search: Substring over policy number and provider
        status: Active or Expired
        policy_type: Life, Health, Auto, Home or Business
        provider: Exact provider name

    Response (200):
        {
            "policies": [{ "id": "uuid", "policyNumber": "AUTO-001", "isFromTemplate": true, ... }],
            "total": 42,
            "hasMore": true,
            "page": 1,
            "limit": 10
        }

    POST /api/policies/

    Create a policy in the active representation. Returns the unified policy (201).
    """

    def get(self, request):
        serializer = PolicyListQuerySerializer(data=request.query_params.dict())
        if not serializer.is_valid():
            return _validation_error(serializer)

        try:
            result = PolicyCompatibilityService().get_all_policies(**serializer.validated_data)
            return Response({
                'policies': camelize(result.items),
                'total': result.total_count,
                'hasMore': result.has_more,
                'page': result.page,
                'limit': result.limit,
            })
        except Exception as e:
            logger.error(f'Policies list failed: {e}')
            return Response(
                {'error': 'ServerError', 'message': 'Failed to fetch policies'},
                status=status.HTTP_500_INTERNAL_SERVER_ERROR
            )

    def post(self, request):
        serializer = PolicyCreateSerializer(data=request.data)
        if not serializer.is_valid():
            return _validation_error(serializer)

        try:
            policy = PolicyCompatibilityService().create_policy(serializer.validated_data)
            return Response(camelize(policy), status=status.HTTP_201_CREATED)
        except APIException:
            raise
        except Exception as e:
            logger.error(f'Policy create failed: {e}')
            return Response(
                {'error': 'ServerError', 'message': 'Failed to create policy'},
                status=status.HTTP_500_INTERNAL_SERVER_ERROR
            )


class PolicyDetailView(APIView):
    """
    PATCH /api/policies/{id}

    Update amounts, dates or status of a policy (normalized or legacy).

    DELETE /api/policies/{id}

    Delete a policy (normalized or legacy). Returns 204.
    """

    def patch(self, request, policy_id):
        serializer = PolicyUpdateSerializer(data=request.data)
        if not serializer.is_valid():
            return _validation_error(serializer)

        try:
            policy = PolicyCompatibilityService().update_policy(policy_id, serializer.validated_data)
            return Response(camelize(policy))
        except APIException:
            raise
        except Exception as e:
            logger.error(f'Policy update failed for {policy_id}: {e}')
            return Response(
                {'error': 'ServerError', 'message': 'Failed to update policy'},
                status=status.HTTP_500_INTERNAL_SERVER_ERROR
            )

    def delete(self, request, policy_id):
        try:
            PolicyCompatibilityService().delete_policy(policy_id)
            return Response(status=status.HTTP_204_NO_CONTENT)
        except APIException:
            raise
        except Exception as e:
            logger.error(f'Policy delete failed for {policy_id}: {e}')
            return Response(
                {'error': 'ServerError', 'message': 'Failed to delete policy'},
                status=status.HTTP_500_INTERNAL_SERVER_ERROR
            )


class PolicyStatsView(APIView):
    """GET /api/policies/stats"""

    def get(self, request):
        try:
            data = StatsService().get_policy_page_stats()
            return Response(camelize(data))
        except Exception as e:
            logger.error(f'Policy page stats failed: {e}')
            return Response(
                {'error': 'ServerError', 'message': 'Failed to get policy stats'},
                status=status.HTTP_500_INTERNAL_SERVER_ERROR
            )


class CompatibilityStatusView(APIView):
    """
    GET /api/policies/compatibility-status

    Response (200):
        {
            "mode": {"useTemplateSystem": true, "allowFallback": true, "migrateOnRead": false},
            "description": "Hybrid mode: Using template system with old system fallback"
        }
    """

    def get(self, request):
        return Response(camelize(PolicyCompatibilityService().get_system_status()))


class ExpirePoliciesView(APIView):
    """
    POST /api/policies/expire

    Response (200):
        {
            "updatedCount": 2,
            "updatedPolicies": [{"id": "uuid", "policyNumber": "AUTO-001", "clientName": "Jane Doe"}]
        }
    """

    def post(self, request):
        try:
            result = update_expired_policy_statuses()
            return Response(camelize(result))
        except Exception as e:
            logger.error(f'Expiry sweep failed: {e}')
            return Response(
                {'error': 'ServerError', 'message': 'Failed to update expired policies'},
                status=status.HTTP_500_INTERNAL_SERVER_ERROR
            )


class MigrationValidateView(APIView):
    """GET /api/policies/migration/validate"""

    def get(self, request):
        try:
            report = validate_legacy_policy_data()
            return Response(camelize(report))
        except Exception as e:
            logger.error(f'Migration validation failed: {e}')
            return Response(
                {'error': 'ServerError', 'message': 'Failed to validate legacy policies'},
                status=status.HTTP_500_INTERNAL_SERVER_ERROR
            )


class MigrationView(APIView):
    """
    POST /api/policies/migration

    Request body:
        {
            "batch_size": 100,       // optional
            "dry_run": false,
            "skip_duplicates": true
        }

    Returns the migration counters; 200 on success, 422 when nothing could
    be migrated.
    """

    def post(self, request):
        serializer = MigrationRequestSerializer(data=request.data)
        if not serializer.is_valid():
            return _validation_error(serializer)

        try:
            result = migrate_legacy_policies(**serializer.validated_data)
            return Response(
                camelize(result),
                status=status.HTTP_200_OK if result.success else status.HTTP_422_UNPROCESSABLE_ENTITY
            )
        except Exception as e:
            logger.error(f'Policy migration failed: {e}')
            return Response(
                {'error': 'ServerError', 'message': 'Failed to migrate policies'},
                status=status.HTTP_500_INTERNAL_SERVER_ERROR
            )


class MigrationVerifyView(APIView):
    """
    GET /api/policies/migration/verify

    Response (200):
        {
            "success": true,
            "checks": [{"name": "Template Uniqueness", "passed": true, "details": "Duplicate templates: 0"}]
        }
    """

    def get(self, request):
        try:
            report = verify_migration_integrity()
            return Response(camelize(report))
        except Exception as e:
            logger.error(f'Migration verification failed: {e}')
            return Response(
                {'error': 'ServerError', 'message': 'Failed to verify migration'},
                status=status.HTTP_500_INTERNAL_SERVER_ERROR
            )


class MigrationCleanupView(APIView):
    """
    POST /api/policies/migration/cleanup

    Deletes legacy rows already reproduced by an instance. Refused with 409
    while the integrity checks fail.
    """

    def post(self, request):
        try:
            report = verify_migration_integrity()
            if not report.success:
                return Response(
                    {
                        'error': 'ConflictError',
                        'message': 'Migration integrity checks failed',
                        'details': camelize(report.checks),
                    },
                    status=status.HTTP_409_CONFLICT
                )
            result = cleanup_old_policies()
            return Response(camelize(result))
        except Exception as e:
            logger.error(f'Legacy policy cleanup failed: {e}')
            return Response(
                {'error': 'ServerError', 'message': 'Failed to clean up legacy policies'},
                status=status.HTTP_500_INTERNAL_SERVER_ERROR
            )
