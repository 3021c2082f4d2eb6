"""
Integration Tests for the Policies API

Tests the unified policy endpoints including:
1. Paginated listing and query validation
2. Create, update and delete across both policy tables
3. Error responses (400, 404, 409)
4. Policy page stats and compatibility status
5. Expiry sweep and legacy migration endpoints
"""
import uuid
from datetime import timedelta

import pytest
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APIClient

from apps.core.models import Policy, PolicyInstance, PolicyStatus, PolicyTemplate
from tests.factories import (
    ClientFactory,
    LegacyPolicyFactory,
    PolicyInstanceFactory,
    PolicyTemplateFactory,
)


@pytest.mark.django_db
class TestPoliciesListAPI:
    """
    Integration tests for GET /api/policies/.
    """

    def setup_method(self):
        """Set up test fixtures."""
        self.client = APIClient()

    def test_list_returns_paginated_data(self):
        """Test that the listing returns camelCase unified policies."""
        PolicyInstanceFactory.create_batch(3)

        response = self.client.get('/api/policies/', {'limit': 2})

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data['total'] == 3
        assert data['hasMore'] is True
        assert data['page'] == 1
        assert data['limit'] == 2
        assert len(data['policies']) == 2
        policy = data['policies'][0]
        assert policy['isFromTemplate'] is True
        for key in ('policyNumber', 'policyType', 'premiumAmount', 'clientName', 'templateId', 'instanceId'):
            assert key in policy

    def test_list_last_page(self):
        PolicyInstanceFactory.create_batch(3)

        response = self.client.get('/api/policies/', {'page': 2, 'limit': 2})

        data = response.json()
        assert len(data['policies']) == 1
        assert data['hasMore'] is False

    def test_list_filters_by_provider(self):
        PolicyInstanceFactory(policy_template=PolicyTemplateFactory(provider='State Farm'))
        PolicyInstanceFactory(policy_template=PolicyTemplateFactory(provider='Allstate'))

        response = self.client.get('/api/policies/', {'provider': 'Allstate'})

        data = response.json()
        assert data['total'] == 1
        assert data['policies'][0]['provider'] == 'Allstate'

    def test_list_falls_back_to_legacy_policies(self):
        LegacyPolicyFactory()

        response = self.client.get('/api/policies/')

        data = response.json()
        assert data['total'] == 1
        assert data['policies'][0]['isFromTemplate'] is False

    def test_list_rejects_oversized_limit(self):
        response = self.client.get('/api/policies/', {'limit': 500})

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()['error'] == 'ValidationError'
        assert 'limit' in response.json()['details']

    def test_list_rejects_unknown_status(self):
        response = self.client.get('/api/policies/', {'status': 'Pending'})

        assert response.status_code == status.HTTP_400_BAD_REQUEST


@pytest.mark.django_db
class TestPolicyWriteAPI:
    """
    Integration tests for POST /api/policies/ and PATCH/DELETE /api/policies/{id}.
    """

    def setup_method(self):
        """Set up test fixtures."""
        self.client = APIClient()
        self.start = timezone.now()

    def _payload(self, holder, **overrides):
        payload = {
            'policy_number': 'AUTO-001',
            'policy_type': 'Auto',
            'provider': 'State Farm',
            'premium_amount': '1200.00',
            'commission_amount': '120.00',
            'start_date': self.start.isoformat(),
            'expiry_date': (self.start + timedelta(days=365)).isoformat(),
            'client_id': str(holder.id),
        }
        payload.update(overrides)
        return payload

    def test_create_policy(self):
        holder = ClientFactory()

        response = self.client.post('/api/policies/', self._payload(holder), format='json')

        assert response.status_code == status.HTTP_201_CREATED
        data = response.json()
        assert data['isFromTemplate'] is True
        assert data['policyNumber'] == 'AUTO-001'
        assert data['premiumAmount'] == 1200.0
        assert data['status'] == 'Active'
        assert data['clientId'] == str(holder.id)
        assert PolicyTemplate.objects.filter(policy_number='AUTO-001').exists()

    def test_create_rejects_expiry_before_start(self):
        holder = ClientFactory()
        payload = self._payload(holder, expiry_date=(self.start - timedelta(days=1)).isoformat())

        response = self.client.post('/api/policies/', payload, format='json')

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert 'expiry_date' in response.json()['details']

    def test_create_rejects_unknown_client(self):
        payload = self._payload(ClientFactory.build())

        response = self.client.post('/api/policies/', payload, format='json')

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert 'client_id' in response.json()['details']

    def test_create_rejects_negative_premium(self):
        response = self.client.post(
            '/api/policies/', self._payload(ClientFactory(), premium_amount='-1.00'), format='json'
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_create_conflicting_policy_number(self):
        PolicyTemplateFactory(policy_number='AUTO-001', policy_type='Home', provider='Allstate')

        response = self.client.post('/api/policies/', self._payload(ClientFactory()), format='json')

        assert response.status_code == status.HTTP_409_CONFLICT
        assert response.json()['error'] == 'ConflictError'

    def test_update_policy(self):
        instance = PolicyInstanceFactory()

        response = self.client.patch(
            f'/api/policies/{instance.id}',
            {'premium_amount': '999.99', 'status': 'Expired'},
            format='json',
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.json()['premiumAmount'] == 999.99
        instance.refresh_from_db()
        assert instance.status == PolicyStatus.EXPIRED

    def test_update_legacy_policy(self):
        legacy = LegacyPolicyFactory()

        response = self.client.patch(f'/api/policies/{legacy.id}', {'status': 'Expired'}, format='json')

        assert response.status_code == status.HTTP_200_OK
        assert response.json()['isFromTemplate'] is False

    def test_update_rejects_expiry_before_stored_start(self):
        instance = PolicyInstanceFactory()
        expiry = (instance.start_date - timedelta(days=5)).isoformat()

        response = self.client.patch(f'/api/policies/{instance.id}', {'expiry_date': expiry}, format='json')

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()['error'] == 'ValidationError'
        assert 'expiry_date' in response.json()['details']
        instance.refresh_from_db()
        assert instance.expiry_date > instance.start_date

    def test_update_requires_a_field(self):
        instance = PolicyInstanceFactory()

        response = self.client.patch(f'/api/policies/{instance.id}', {}, format='json')

        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_update_unknown_policy(self):
        policy_id = uuid.uuid4()

        response = self.client.patch(f'/api/policies/{policy_id}', {'status': 'Expired'}, format='json')

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.json() == {
            'error': 'NotFoundError',
            'message': f'Policy with id {policy_id} not found',
        }

    def test_delete_policy(self):
        instance = PolicyInstanceFactory()

        response = self.client.delete(f'/api/policies/{instance.id}')

        assert response.status_code == status.HTTP_204_NO_CONTENT
        assert not PolicyInstance.objects.exists()

    def test_delete_unknown_policy(self):
        response = self.client.delete(f'/api/policies/{uuid.uuid4()}')

        assert response.status_code == status.HTTP_404_NOT_FOUND


@pytest.mark.django_db
class TestPolicyInfoAPI:
    """
    Integration tests for stats and compatibility-status endpoints.
    """

    def setup_method(self):
        """Set up test fixtures."""
        self.client = APIClient()

    def test_policy_page_stats(self):
        PolicyInstanceFactory.create_batch(2)
        PolicyInstanceFactory(expired=True)

        response = self.client.get('/api/policies/stats')

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data['totalPolicies'] == 3
        assert data['activePolicies'] == 2
        assert data['expiredPolicies'] == 1
        assert 'topProviders' in data
        assert 'policyTypeDistribution' in data

    def test_compatibility_status(self):
        response = self.client.get('/api/policies/compatibility-status')

        assert response.status_code == status.HTTP_200_OK
        assert response.json() == {
            'mode': {'useTemplateSystem': True, 'allowFallback': True, 'migrateOnRead': False},
            'description': 'Hybrid mode: Using template system with old system fallback',
        }


@pytest.mark.django_db
class TestPolicyMaintenanceAPI:
    """
    Integration tests for the expiry sweep and migration endpoints.
    """

    def setup_method(self):
        """Set up test fixtures."""
        self.client = APIClient()

    def test_expire_policies(self):
        now = timezone.now()
        overdue = PolicyInstanceFactory(start_date=now - timedelta(days=400), expiry_date=now - timedelta(days=1))
        PolicyInstanceFactory()

        response = self.client.post('/api/policies/expire')

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data['updatedCount'] == 1
        assert data['updatedPolicies'][0]['id'] == str(overdue.id)

    def test_validate_migration(self):
        LegacyPolicyFactory.create_batch(2)

        response = self.client.get('/api/policies/migration/validate')

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data['isValid'] is True
        assert data['totalPolicies'] == 2

    def test_migration_dry_run(self):
        LegacyPolicyFactory.create_batch(2)

        response = self.client.post('/api/policies/migration', {'dry_run': True}, format='json')

        assert response.status_code == status.HTTP_200_OK
        assert response.json()['policiesMigrated'] == 2
        assert Policy.objects.count() == 2

    def test_migration(self):
        LegacyPolicyFactory.create_batch(2)

        response = self.client.post('/api/policies/migration', {'batch_size': 1}, format='json')

        assert response.status_code == status.HTTP_200_OK
        assert response.json()['instancesCreated'] == 2
        assert Policy.objects.count() == 2

    def test_verify_and_cleanup(self):
        LegacyPolicyFactory.create_batch(2)
        self.client.post('/api/policies/migration', {}, format='json')

        response = self.client.get('/api/policies/migration/verify')
        assert response.status_code == status.HTTP_200_OK
        assert response.json()['success'] is True
        assert set(response.json()['checks'][0]) == {'name', 'passed', 'details'}

        response = self.client.post('/api/policies/migration/cleanup')
        assert response.status_code == status.HTTP_200_OK
        assert response.json()['deletedCount'] == 2
        assert not Policy.objects.exists()

    def test_cleanup_refused_before_migration(self):
        LegacyPolicyFactory()

        response = self.client.post('/api/policies/migration/cleanup')

        assert response.status_code == status.HTTP_409_CONFLICT
        assert response.json()['error'] == 'ConflictError'
        assert Policy.objects.count() == 1

    def test_migration_with_invalid_data(self):
        LegacyPolicyFactory(provider='')

        response = self.client.post('/api/policies/migration', {}, format='json')

        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY
        assert response.json()['success'] is False

    def test_migration_rejects_bad_batch_size(self):
        response = self.client.post('/api/policies/migration', {'batch_size': 0}, format='json')

        assert response.status_code == status.HTTP_400_BAD_REQUEST
