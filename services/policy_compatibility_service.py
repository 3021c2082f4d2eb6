"""
Policy Compatibility Service

One policy interface over the two coexisting representations:
- legacy flat `policies` rows (Policy)
- normalized `policy_templates` + `policy_instances` rows

Reads consult the normalized tables first and fall back to legacy rows.
Legacy rows can be migrated when read (explicit migrate step, then one
re-read). Unlike the statistics services, errors here are logged and
re-raised.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any
from uuid import UUID

from django.conf import settings
from django.db import IntegrityError, transaction

from apps.core.constants import COMPATIBILITY_MODE_DESCRIPTIONS, MIGRATE_ON_READ_SUFFIX
from apps.core.exceptions import ConflictError, NotFoundError, ValidationError
from apps.core.models import Policy, PolicyInstance, PolicyStatus, PolicyTemplate

from .base import BaseService, PaginationResult
from .metrics import to_float

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = ('premium_amount', 'commission_amount', 'start_date', 'expiry_date', 'status')


# ============================================================================
# Data Transfer Objects (DTOs)
# ============================================================================

@dataclass
class CompatibilityMode:
    """Which policy representation(s) reads and writes go through."""
    use_template_system: bool = True
    allow_fallback: bool = True
    migrate_on_read: bool = False

    @classmethod
    def from_settings(cls) -> CompatibilityMode:
        return cls(**settings.POLICY_COMPATIBILITY)

    @property
    def mode_name(self) -> str:
        if self.use_template_system and self.allow_fallback:
            return 'hybrid'
        if self.use_template_system:
            return 'template'
        return 'legacy'

    @property
    def description(self) -> str:
        description = COMPATIBILITY_MODE_DESCRIPTIONS[self.mode_name]
        if self.migrate_on_read:
            description += MIGRATE_ON_READ_SUFFIX
        return description


@dataclass
class UnifiedPolicyData:
    """A policy in one shape, whichever table it came from."""
    id: str
    policy_number: str
    policy_type: str
    provider: str
    description: str | None
    premium_amount: float
    status: str
    start_date: datetime
    expiry_date: datetime
    commission_amount: float
    client_id: str
    client_name: str
    client_email: str | None
    created_at: datetime
    updated_at: datetime
    is_from_template: bool
    template_id: str | None = None
    instance_id: str | None = None


@dataclass
class LegacyPolicyRecord:
    """A row of the legacy policies table."""
    policy: Policy

    def to_unified(self) -> UnifiedPolicyData:
        policy = self.policy
        return UnifiedPolicyData(
            id=str(policy.id),
            policy_number=policy.policy_number,
            policy_type=policy.policy_type,
            provider=policy.provider,
            description=None,
            premium_amount=to_float(policy.premium_amount),
            status=policy.status,
            start_date=policy.start_date,
            expiry_date=policy.expiry_date,
            commission_amount=to_float(policy.commission_amount),
            client_id=str(policy.client_id),
            client_name=policy.client.full_name,
            client_email=policy.client.email,
            created_at=policy.created_at,
            updated_at=policy.updated_at,
            is_from_template=False,
        )


@dataclass
class NormalizedPolicyRecord:
    """A policy instance together with its template."""
    instance: PolicyInstance

    def to_unified(self) -> UnifiedPolicyData:
        instance = self.instance
        template = instance.policy_template
        return UnifiedPolicyData(
            id=str(instance.id),
            policy_number=template.policy_number,
            policy_type=template.policy_type,
            provider=template.provider,
            description=template.description or None,
            premium_amount=to_float(instance.premium_amount),
            status=instance.status,
            start_date=instance.start_date,
            expiry_date=instance.expiry_date,
            commission_amount=to_float(instance.commission_amount),
            client_id=str(instance.client_id),
            client_name=instance.client.full_name,
            client_email=instance.client.email,
            created_at=instance.created_at,
            updated_at=instance.updated_at,
            is_from_template=True,
            template_id=str(instance.policy_template_id),
            instance_id=str(instance.id),
        )


PolicyRecord = LegacyPolicyRecord | NormalizedPolicyRecord


# ============================================================================
# Migration helpers
# ============================================================================

def find_or_create_template(
    *,
    policy_number: str,
    policy_type: str,
    provider: str,
    description: str | None = None,
    created_at: datetime | None = None,
    updated_at: datetime | None = None,
) -> tuple[PolicyTemplate, bool]:
    """
    Find the template with this number, type and provider or create it.

    A policy number already used by a template of a different type or
    provider violates the unique constraint and raises IntegrityError.
    """
    template = PolicyTemplate.objects.find_by_identity(policy_number, policy_type, provider)
    if template is not None:
        return template, False

    extra = {}
    if created_at is not None:
        extra['created_at'] = created_at
    if updated_at is not None:
        extra['updated_at'] = updated_at

    template = PolicyTemplate.objects.create(
        policy_number=policy_number,
        policy_type=policy_type,
        provider=provider,
        description=description,
        **extra,
    )
    return template, True


def migrate_legacy_policy(policy: Policy) -> tuple[PolicyInstance, bool]:
    """
    Move one legacy row to the normalized tables and delete it.

    Status, dates, amounts and timestamps are copied verbatim. Returns the
    new instance and whether a template had to be created. Callers own the
    transaction.
    """
    template, template_created = find_or_create_template(
        policy_number=policy.policy_number,
        policy_type=policy.policy_type,
        provider=policy.provider,
        description=f'Migrated from policy {policy.policy_number}',
        created_at=policy.created_at,
        updated_at=policy.updated_at,
    )
    instance = PolicyInstance.objects.create(
        policy_template=template,
        client_id=policy.client_id,
        premium_amount=policy.premium_amount,
        commission_amount=policy.commission_amount,
        status=policy.status,
        start_date=policy.start_date,
        expiry_date=policy.expiry_date,
        created_at=policy.created_at,
        updated_at=policy.updated_at,
    )
    policy.delete()
    return instance, template_created


# ============================================================================
# Policy Compatibility Service Implementation
# ============================================================================

class PolicyCompatibilityService(BaseService):
    """
    Unified read/write access over legacy and normalized policies.

    Every write invalidates the cached policy statistics.
    """

    def __init__(self, mode: CompatibilityMode | None = None, cache=None, clock=None):
        super().__init__(cache=cache, clock=clock)
        self.mode = mode or CompatibilityMode.from_settings()

    # ========================================================================
    # Record loading
    # ========================================================================

    def _normalized_records(self, queryset) -> list[PolicyRecord]:
        return [NormalizedPolicyRecord(instance) for instance in queryset]

    def _legacy_records(self, queryset) -> list[PolicyRecord]:
        return [LegacyPolicyRecord(policy) for policy in queryset]

    def _should_read_legacy(self, normalized_found: int) -> bool:
        return self.mode.allow_fallback and (
            normalized_found == 0 or not self.mode.use_template_system
        )

    def _load_client_records(self, client_id: UUID) -> list[PolicyRecord]:
        records: list[PolicyRecord] = []
        if self.mode.use_template_system:
            records.extend(self._normalized_records(
                PolicyInstance.objects.for_client(client_id)
                .with_relations()
                .order_by('-created_at')
            ))
        if self._should_read_legacy(len(records)):
            records.extend(self._legacy_records(
                Policy.objects.for_client(client_id)
                .with_relations()
                .order_by('-created_at')
            ))
        return records

    # ========================================================================
    # Reads
    # ========================================================================

    def get_client_policies(self, client_id: UUID) -> list[UnifiedPolicyData]:
        """
        All policies of one client, normalized first.

        With migrate-on-read, legacy rows found by the fallback are migrated
        first and the normalized rows are read once more.
        """
        try:
            records = self._load_client_records(client_id)

            has_legacy = any(isinstance(record, LegacyPolicyRecord) for record in records)
            if has_legacy and self.mode.migrate_on_read and self.mode.use_template_system:
                self.migrate_client_policies(client_id)
                records = self._load_client_records(client_id)

            return [record.to_unified() for record in records]
        except Exception as e:
            logger.error(f'Error getting client policies for {client_id}: {e}')
            raise

    def get_all_policies(
        self,
        page: int = 1,
        limit: int = 50,
        search: str | None = None,
        status: str | None = None,
        policy_type: str | None = None,
        provider: str | None = None,
    ) -> PaginationResult[UnifiedPolicyData]:
        """
        Paginated listing over both sources.

        Each source is paginated on its own with the same offset; when both
        are read the normalized page comes first and the totals are summed.
        """
        offset = (page - 1) * limit
        filters = {
            'search': search,
            'status': status,
            'policy_type': policy_type,
            'provider': provider,
        }

        try:
            records: list[PolicyRecord] = []
            total = 0

            if self.mode.use_template_system:
                instances = PolicyInstance.objects.filter_listing(**filters)
                records.extend(self._normalized_records(
                    instances.with_relations().order_by('-created_at')[offset:offset + limit]
                ))
                total = instances.count()

            if self._should_read_legacy(len(records)):
                legacy = Policy.objects.filter_listing(**filters)
                records.extend(self._legacy_records(
                    legacy.with_relations().order_by('-created_at')[offset:offset + limit]
                ))
                total += legacy.count()

            policies = [record.to_unified() for record in records]
            return PaginationResult(
                items=policies,
                total_count=total,
                has_more=offset + len(policies) < total,
                page=page,
                limit=limit,
            )
        except Exception as e:
            logger.error(f'Error getting all policies: {e}')
            raise

    def get_system_status(self) -> dict[str, Any]:
        return {
            'mode': self.mode,
            'description': self.mode.description,
        }

    # ========================================================================
    # Writes
    # ========================================================================

    @transaction.atomic
    def migrate_client_policies(self, client_id: UUID) -> int:
        """Migrate every legacy policy of a client; returns the number moved."""
        policies = list(Policy.objects.for_client(client_id).order_by('created_at'))
        logger.info(f'Migrating {len(policies)} policies for client {client_id} on read')

        try:
            for policy in policies:
                migrate_legacy_policy(policy)
        except Exception as e:
            logger.error(f'Error migrating client policies on read: {e}')
            raise

        self.cache.invalidate_policy_stats()
        logger.info(f'Successfully migrated {len(policies)} policies for client {client_id}')
        return len(policies)

    def create_policy(self, data: dict[str, Any]) -> UnifiedPolicyData:
        """
        Create a policy in the active representation.

        Through the template system, the template is found or created and
        a new Active instance is attached to it.
        """
        try:
            if self.mode.use_template_system:
                record = self._create_normalized(data)
            else:
                record = LegacyPolicyRecord(Policy.objects.create(
                    policy_number=data['policy_number'],
                    policy_type=data['policy_type'],
                    provider=data['provider'],
                    premium_amount=data['premium_amount'],
                    commission_amount=data['commission_amount'],
                    start_date=data['start_date'],
                    expiry_date=data['expiry_date'],
                    client_id=data['client_id'],
                    status=PolicyStatus.ACTIVE,
                ))
        except IntegrityError as e:
            logger.error(f'Error creating policy: {e}')
            raise ConflictError(
                f"Policy {data.get('policy_number')} conflicts with an existing policy"
            ) from e
        except Exception as e:
            logger.error(f'Error creating policy: {e}')
            raise

        self.cache.invalidate_policy_stats()
        return record.to_unified()

    @transaction.atomic
    def _create_normalized(self, data: dict[str, Any]) -> NormalizedPolicyRecord:
        template, _ = find_or_create_template(
            policy_number=data['policy_number'],
            policy_type=data['policy_type'],
            provider=data['provider'],
            description=data.get('description'),
        )
        instance = PolicyInstance.objects.create(
            policy_template=template,
            client_id=data['client_id'],
            premium_amount=data['premium_amount'],
            commission_amount=data['commission_amount'],
            start_date=data['start_date'],
            expiry_date=data['expiry_date'],
            status=PolicyStatus.ACTIVE,
        )
        return NormalizedPolicyRecord(
            PolicyInstance.objects.with_relations().get(pk=instance.pk)
        )

    def _find_record(self, policy_id: UUID) -> PolicyRecord:
        """Probe the normalized table, then (with fallback) the legacy one."""
        instance = PolicyInstance.objects.with_relations().filter(pk=policy_id).first()
        if instance is not None:
            return NormalizedPolicyRecord(instance)

        if self.mode.allow_fallback:
            policy = Policy.objects.with_relations().filter(pk=policy_id).first()
            if policy is not None:
                return LegacyPolicyRecord(policy)

        raise NotFoundError(f'Policy with id {policy_id} not found')

    def update_policy(self, policy_id: UUID, data: dict[str, Any]) -> UnifiedPolicyData:
        """Apply a partial update of amounts, dates or status."""
        try:
            record = self._find_record(policy_id)
            row = record.instance if isinstance(record, NormalizedPolicyRecord) else record.policy

            changes = {name: value for name, value in data.items() if name in UPDATABLE_FIELDS}
            start_date = changes.get('start_date', row.start_date)
            expiry_date = changes.get('expiry_date', row.expiry_date)
            if start_date >= expiry_date:
                raise ValidationError(
                    'Expiry date must be after start date',
                    details={'expiry_date': ['Expiry date must be after start date']},
                )

            for name, value in changes.items():
                setattr(row, name, value)
            row.updated_at = self.now()
            row.save(update_fields=[*changes, 'updated_at'])
        except ValidationError:
            raise
        except Exception as e:
            logger.error(f'Error updating policy {policy_id}: {e}')
            raise

        template_id = getattr(row, 'policy_template_id', None)
        self.cache.invalidate_policy_stats(template_id)
        return record.to_unified()

    def delete_policy(self, policy_id: UUID) -> None:
        try:
            record = self._find_record(policy_id)
            if isinstance(record, NormalizedPolicyRecord):
                template_id = record.instance.policy_template_id
                record.instance.delete()
            else:
                template_id = None
                record.policy.delete()
        except Exception as e:
            logger.error(f'Error deleting policy {policy_id}: {e}')
            raise

        self.cache.invalidate_policy_stats(template_id)

