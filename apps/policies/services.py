"""
Policy Maintenance Services

Expiry sweep and the legacy `policies` table migration into
`policy_templates` + `policy_instances`: validate, migrate, verify, clean up.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime

from django.conf import settings
from django.db import transaction
from django.db.models import Count, F, Q
from django.utils import timezone

from apps.core.models import Client, Policy, PolicyInstance, PolicyStatus, PolicyTemplate
from services.cache_service import StatsCache
from services.policy_compatibility_service import find_or_create_template

logger = logging.getLogger(__name__)


@dataclass
class ExpiredPolicy:
    id: str
    policy_number: str
    client_name: str


@dataclass
class ExpirySweepResult:
    updated_count: int = 0
    updated_policies: list[ExpiredPolicy] = field(default_factory=list)


@dataclass
class ValidationReport:
    """Pre-migration checks over the legacy table."""
    is_valid: bool = True
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    total_policies: int = 0
    unique_templates: int = 0


@dataclass
class MigrationResult:
    success: bool = False
    templates_created: int = 0
    instances_created: int = 0
    policies_migrated: int = 0
    duplicate_templates: int = 0
    skipped_policies: int = 0
    errors: list[str] = field(default_factory=list)


@dataclass
class IntegrityCheck:
    name: str
    passed: bool
    details: str


@dataclass
class IntegrityReport:
    success: bool = True
    checks: list[IntegrityCheck] = field(default_factory=list)


@dataclass
class CleanupResult:
    success: bool = True
    deleted_count: int = 0
    retained_count: int = 0
    errors: list[str] = field(default_factory=list)


# =============================================================================
# Expiry sweep
# =============================================================================

@transaction.atomic
def update_expired_policy_statuses(
    *,
    now: datetime | None = None,
    cache: StatsCache | None = None,
) -> ExpirySweepResult:
    """
    Flip Active instances whose expiry date has passed to Expired.

    Args:
        now: Reference time (default: timezone.now())
        cache: Stats cache to invalidate (default: StatsCache())

    Returns:
        ExpirySweepResult listing every instance that changed
    """
    now = now or timezone.now()
    expired = list(
        PolicyInstance.objects.with_status(PolicyStatus.ACTIVE)
        .filter(expiry_date__lt=now)
        .with_relations()
    )

    if not expired:
        return ExpirySweepResult()

    PolicyInstance.objects.filter(pk__in=[instance.pk for instance in expired]).update(
        status=PolicyStatus.EXPIRED,
        updated_at=now,
    )
    (cache or StatsCache()).invalidate_policy_stats()

    logger.info(f'Automatically updated {len(expired)} expired policies')

    return ExpirySweepResult(
        updated_count=len(expired),
        updated_policies=[
            ExpiredPolicy(
                id=str(instance.id),
                policy_number=instance.policy_template.policy_number,
                client_name=instance.client.full_name,
            )
            for instance in expired
        ],
    )


# =============================================================================
# Legacy migration
# =============================================================================

def validate_legacy_policy_data(*, now: datetime | None = None) -> ValidationReport:
    """
    Check the legacy table before migrating it.

    Missing required data and references to deleted clients are errors.
    Conflicting duplicate policy numbers, future start dates, start dates
    after expiry and negative amounts are warnings.
    """
    now = now or timezone.now()
    report = ValidationReport(total_policies=Policy.objects.count())

    if report.total_policies == 0:
        report.warnings.append('No policies found to migrate')
        return report

    missing = Policy.objects.filter(
        Q(policy_number='') | Q(policy_type='') | Q(provider='')
    ).count()
    if missing:
        report.errors.append(f'{missing} policies have missing required data')
        report.is_valid = False

    orphaned = Policy.objects.exclude(client_id__in=Client.objects.values('id')).count()
    if orphaned:
        report.errors.append(f'{orphaned} policies reference non-existent clients')
        report.is_valid = False

    report.unique_templates = (
        Policy.objects.values('policy_number', 'policy_type', 'provider').distinct().count()
    )

    conflicting_numbers = _conflicting_policy_numbers()
    if conflicting_numbers:
        report.warnings.append(
            f'{len(conflicting_numbers)} policy numbers are used with different types or providers'
        )

    future_start = Policy.objects.filter(start_date__gt=now).count()
    if future_start:
        report.warnings.append(f'{future_start} policies have future start dates')

    wrong_order = Policy.objects.filter(start_date__gte=F('expiry_date')).count()
    if wrong_order:
        report.warnings.append(f'{wrong_order} policies start on or after their expiry date')

    negative = Policy.objects.filter(Q(premium_amount__lt=0) | Q(commission_amount__lt=0)).count()
    if negative:
        report.warnings.append(f'{negative} policies have negative amounts')

    return report


def _conflicting_policy_numbers() -> list[str]:
    """Policy numbers that appear with more than one type/provider pair."""
    identities = (
        Policy.objects.values('policy_number')
        .annotate(types=Count('policy_type', distinct=True), providers=Count('provider', distinct=True))
        .filter(Q(types__gt=1) | Q(providers__gt=1))
        .order_by('policy_number')
    )
    return [row['policy_number'] for row in identities]


def _batched_policy_ids(batch_size: int) -> list[list]:
    ids = list(Policy.objects.order_by('created_at', 'id').values_list('id', flat=True))
    return [ids[start:start + batch_size] for start in range(0, len(ids), batch_size)]


def migrate_legacy_policies(
    *,
    batch_size: int | None = None,
    dry_run: bool = False,
    skip_duplicates: bool = True,
    cache: StatsCache | None = None,
) -> MigrationResult:
    """
    Migrate every legacy policy to a template + instance.

    Policies are processed oldest first in batches; each policy migrates in
    its own transaction so one failure does not undo the others. Legacy
    rows are left in place; cleanup_old_policies removes them once verified.
    With skip_duplicates an existing template (or an
    existing instance for the same client) is reused and counted as a
    duplicate; without it the policy is skipped and reported.

    Args:
        batch_size: Policies per batch (default: POLICY_MIGRATION_BATCH_SIZE)
        dry_run: Count what would happen without writing
        skip_duplicates: Reuse existing templates/instances instead of skipping
        cache: Stats cache to invalidate (default: StatsCache())

    Returns:
        MigrationResult with counters and per-policy errors
    """
    batch_size = batch_size or settings.POLICY_MIGRATION_BATCH_SIZE
    result = MigrationResult()

    logger.info(f'Starting policy migration (dry_run: {dry_run})')

    validation = validate_legacy_policy_data()
    if not validation.is_valid:
        result.errors.extend(validation.errors)
        return result

    seen_templates: set[tuple[str, str, str]] = set()
    processed = 0

    for batch in _batched_policy_ids(batch_size):
        policies = list(Policy.objects.filter(pk__in=batch).order_by('created_at', 'id'))
        known_clients = set(
            Client.objects.filter(pk__in=[p.client_id for p in policies]).values_list('id', flat=True)
        )

        for policy in policies:
            if policy.client_id not in known_clients:
                result.skipped_policies += 1
                result.errors.append(f'Skipped policy {policy.policy_number}: Client not found')
                continue

            try:
                if dry_run:
                    _simulate_policy_migration(policy, result, seen_templates, skip_duplicates)
                else:
                    with transaction.atomic():
                        _migrate_policy(policy, result, seen_templates, skip_duplicates)
            except Exception as e:
                result.errors.append(f'Failed to migrate policy {policy.policy_number}: {e}')
                logger.error(f'Migration error for policy {policy.policy_number}: {e}')

        processed += len(policies)
        logger.info(f'Processed {processed} policies...')

    result.success = not result.errors or result.policies_migrated > 0

    if not dry_run and result.policies_migrated:
        (cache or StatsCache()).invalidate_policy_stats()

    logger.info(
        f'Migration completed. Templates: {result.templates_created}, '
        f'Instances: {result.instances_created}, Errors: {len(result.errors)}'
    )
    return result


def _simulate_policy_migration(
    policy: Policy,
    result: MigrationResult,
    seen_templates: set[tuple[str, str, str]],
    skip_duplicates: bool,
) -> None:
    key = (policy.policy_number, policy.policy_type, policy.provider)
    if key not in seen_templates:
        existing = PolicyTemplate.objects.find_by_identity(*key)
        if existing is not None:
            if not skip_duplicates:
                result.skipped_policies += 1
                result.errors.append(f'Template already exists for policy {policy.policy_number}')
                return
            result.duplicate_templates += 1
        else:
            result.templates_created += 1
        seen_templates.add(key)

    result.instances_created += 1
    result.policies_migrated += 1


def _migrate_policy(
    policy: Policy,
    result: MigrationResult,
    seen_templates: set[tuple[str, str, str]],
    skip_duplicates: bool,
) -> None:
    key = (policy.policy_number, policy.policy_type, policy.provider)
    if key not in seen_templates:
        existing = PolicyTemplate.objects.find_by_identity(*key)
        if existing is not None:
            if not skip_duplicates:
                result.skipped_policies += 1
                result.errors.append(f'Template already exists for policy {policy.policy_number}')
                return
            result.duplicate_templates += 1

    template, created = find_or_create_template(
        policy_number=policy.policy_number,
        policy_type=policy.policy_type,
        provider=policy.provider,
        description=f'Migrated from policy {policy.policy_number}',
        created_at=policy.created_at,
        updated_at=policy.updated_at,
    )
    if created:
        result.templates_created += 1
    seen_templates.add(key)

    if PolicyInstance.objects.filter(policy_template=template, client_id=policy.client_id).exists():
        if not skip_duplicates:
            result.skipped_policies += 1
            result.errors.append(
                f'Instance already exists for client {policy.client.full_name} '
                f'and policy {policy.policy_number}'
            )
            return
        result.duplicate_templates += 1
    else:
        PolicyInstance.objects.create(
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
        result.instances_created += 1

    result.policies_migrated += 1


def verify_migration_integrity(*, now: datetime | None = None) -> IntegrityReport:
    """
    Check the normalized tables after a migration.

    Every legacy row must be reproduced by an instance, instances must point
    at existing templates and clients, template identities and
    (template, client) pairs must be unique, and no instance may carry a
    negative amount or a future start date.
    """
    now = now or timezone.now()
    report = IntegrityReport()

    policy_count = Policy.objects.count()
    unmigrated = Policy.objects.unmigrated().count()
    report.checks.append(IntegrityCheck(
        name='Policy to Instance Count Match',
        passed=unmigrated == 0,
        details=(
            f'Policies: {policy_count}, Instances: {PolicyInstance.objects.count()}, '
            f'Unmigrated: {unmigrated}'
        ),
    ))

    orphaned = PolicyInstance.objects.exclude(
        policy_template_id__in=PolicyTemplate.objects.values('id'),
        client_id__in=Client.objects.values('id'),
    ).count()
    report.checks.append(IntegrityCheck(
        name='No Orphaned Instances',
        passed=orphaned == 0,
        details=f'Orphaned instances: {orphaned}',
    ))

    duplicate_templates = (
        PolicyTemplate.objects.values('policy_number', 'policy_type', 'provider')
        .annotate(total=Count('id'))
        .filter(total__gt=1)
        .count()
    )
    report.checks.append(IntegrityCheck(
        name='Template Uniqueness',
        passed=duplicate_templates == 0,
        details=f'Duplicate templates: {duplicate_templates}',
    ))

    duplicate_instances = (
        PolicyInstance.objects.values('policy_template_id', 'client_id')
        .annotate(total=Count('id'))
        .filter(total__gt=1)
        .count()
    )
    report.checks.append(IntegrityCheck(
        name='Instance Uniqueness',
        passed=duplicate_instances == 0,
        details=f'Duplicate instances: {duplicate_instances}',
    ))

    invalid = PolicyInstance.objects.filter(
        Q(premium_amount__lt=0) | Q(commission_amount__lt=0) | Q(start_date__gt=now)
    ).count()
    report.checks.append(IntegrityCheck(
        name='Data Consistency',
        passed=invalid == 0,
        details=f'Invalid instances: {invalid}',
    ))

    report.success = all(check.passed for check in report.checks)
    return report


@transaction.atomic
def cleanup_old_policies(*, cache: StatsCache | None = None) -> CleanupResult:
    """
    Delete legacy rows that an instance reproduces field for field.

    Rows with no matching instance (never migrated, or shadowed by an
    instance holding different amounts or dates) are kept and counted.
    """
    migrated = Policy.objects.migrated()
    deleted_count = migrated.count()
    migrated.delete()

    result = CleanupResult(
        deleted_count=deleted_count,
        retained_count=Policy.objects.count(),
    )
    if result.retained_count:
        result.errors.append(f'{result.retained_count} policies have no matching instance and were kept')

    if deleted_count:
        (cache or StatsCache()).invalidate_policy_stats()

    logger.info(f'Cleaned up {deleted_count} old policy records, kept {result.retained_count}')
    return result
