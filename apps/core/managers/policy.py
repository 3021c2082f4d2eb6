"""
Policy QuerySets and Managers.

Every date/status predicate the statistics and compatibility layers rely on
lives here so that each notion of "active" is defined exactly once:

- in_force(now): stored status Active, started, not yet expired (dashboard)
- unexpired(now): expiry_date >= now, status ignored (template statistics)
- with_status(...): stored status only (provider performance, retention)
"""
from datetime import datetime
from typing import Iterable

from django.apps import apps
from django.db import models
from django.db.models import Exists, OuterRef, Q


def _search_q(query: str, prefix: str = '') -> Q:
    """Case-insensitive substring match on policy number and provider."""
    return (
        Q(**{f'{prefix}policy_number__icontains': query}) |
        Q(**{f'{prefix}provider__icontains': query})
    )


class PolicyTemplateQuerySet(models.QuerySet):
    """QuerySet for PolicyTemplate with filter support."""

    def search(self, query: str | None):
        """Substring search over policy number, provider and policy type."""
        if not query:
            return self
        return self.filter(_search_q(query) | Q(policy_type__icontains=query))

    def of_types(self, policy_types: Iterable[str] | None):
        if not policy_types:
            return self
        return self.filter(policy_type__in=list(policy_types))

    def from_providers(self, providers: Iterable[str] | None):
        if not providers:
            return self
        return self.filter(provider__in=list(providers))

    def with_instances(self, has_instances: bool | None):
        """
        Filter on whether a template has any instance.

        Uses EXISTS rather than a join so group-by counts stay correct.
        """
        if has_instances is None:
            return self
        instance_model = self.model.instances.field.model
        has_any = Exists(instance_model.objects.filter(policy_template=OuterRef('pk')))
        return self.filter(has_any) if has_instances else self.filter(~has_any)

    def matching(
        self,
        search: str | None = None,
        policy_types: Iterable[str] | None = None,
        providers: Iterable[str] | None = None,
        has_instances: bool | None = None,
    ):
        """Apply every template-level filter at once."""
        return (
            self.search(search)
            .of_types(policy_types)
            .from_providers(providers)
            .with_instances(has_instances)
        )

    def find_by_identity(self, policy_number: str, policy_type: str, provider: str):
        """Find the template matching number, type and provider, or None."""
        return self.filter(
            policy_number=policy_number,
            policy_type=policy_type,
            provider=provider,
        ).first()


class PolicyTemplateManager(models.Manager):
    """
    Manager for PolicyTemplate.
    """

    def get_queryset(self):
        return PolicyTemplateQuerySet(self.model, using=self._db)

    def search(self, query):
        return self.get_queryset().search(query)

    def matching(self, search=None, policy_types=None, providers=None, has_instances=None):
        return self.get_queryset().matching(search, policy_types, providers, has_instances)

    def find_by_identity(self, policy_number, policy_type, provider):
        return self.get_queryset().find_by_identity(policy_number, policy_type, provider)


class PolicyInstanceQuerySet(models.QuerySet):
    """QuerySet for PolicyInstance with date-window predicates."""

    def in_force(self, now: datetime):
        """Stored status Active, already started and not yet expired."""
        return self.filter(status='Active', start_date__lte=now, expiry_date__gt=now)

    def unexpired(self, now: datetime):
        """Not expired by date (expiry_date >= now), regardless of status."""
        return self.filter(expiry_date__gte=now)

    def expired_before(self, now: datetime):
        """Expired by date (expiry_date < now), regardless of status."""
        return self.filter(expiry_date__lt=now)

    def with_status(self, status: str):
        return self.filter(status=status)

    def expiring_between(self, start: datetime, end: datetime):
        """Expiry date within [start, end] inclusive."""
        return self.filter(expiry_date__gte=start, expiry_date__lte=end)

    def created_between(self, start: datetime | None = None, end: datetime | None = None):
        """Created within [start, end); either bound may be omitted."""
        qs = self
        if start is not None:
            qs = qs.filter(created_at__gte=start)
        if end is not None:
            qs = qs.filter(created_at__lt=end)
        return qs

    def modified_in_period(self, start: datetime, end: datetime | None = None):
        """
        Created in the period, or renewed (updated) in the period having been
        created before it. `end` is exclusive and optional.
        """
        created = Q(created_at__gte=start)
        updated = Q(updated_at__gte=start, created_at__lt=start)
        if end is not None:
            created &= Q(created_at__lt=end)
            updated &= Q(updated_at__lt=end)
        return self.filter(created | updated)

    def for_template(self, template_id):
        return self.filter(policy_template_id=template_id)

    def for_templates(self, templates):
        """Restrict to instances of the given template queryset."""
        return self.filter(policy_template__in=templates)

    def for_client(self, client_id):
        return self.filter(client_id=client_id)

    def with_relations(self):
        return self.select_related('policy_template', 'client')

    def search(self, query: str | None):
        if not query:
            return self
        return self.filter(_search_q(query, prefix='policy_template__'))

    def filter_listing(
        self,
        search: str | None = None,
        status: str | None = None,
        policy_type: str | None = None,
        provider: str | None = None,
    ):
        """Filters used by the unified policy listing."""
        qs = self.search(search)
        if status:
            qs = qs.filter(status=status)
        if policy_type:
            qs = qs.filter(policy_template__policy_type=policy_type)
        if provider:
            qs = qs.filter(policy_template__provider=provider)
        return qs

    def distinct_client_count(self) -> int:
        return self.values('client_id').distinct().count()


class PolicyInstanceManager(models.Manager):
    """
    Manager for PolicyInstance with the date-window shortcuts.
    """

    def get_queryset(self):
        return PolicyInstanceQuerySet(self.model, using=self._db)

    def in_force(self, now):
        return self.get_queryset().in_force(now)

    def unexpired(self, now):
        return self.get_queryset().unexpired(now)

    def expired_before(self, now):
        return self.get_queryset().expired_before(now)

    def with_status(self, status):
        return self.get_queryset().with_status(status)

    def expiring_between(self, start, end):
        return self.get_queryset().expiring_between(start, end)

    def created_between(self, start=None, end=None):
        return self.get_queryset().created_between(start, end)

    def modified_in_period(self, start, end=None):
        return self.get_queryset().modified_in_period(start, end)

    def for_template(self, template_id):
        return self.get_queryset().for_template(template_id)

    def for_templates(self, templates):
        return self.get_queryset().for_templates(templates)

    def for_client(self, client_id):
        return self.get_queryset().for_client(client_id)

    def with_relations(self):
        return self.get_queryset().with_relations()

    def filter_listing(self, search=None, status=None, policy_type=None, provider=None):
        return self.get_queryset().filter_listing(search, status, policy_type, provider)


class LegacyPolicyQuerySet(models.QuerySet):
    """QuerySet for the legacy flat Policy table."""

    def for_client(self, client_id):
        return self.filter(client_id=client_id)

    def _counterpart(self):
        """Instances that reproduce a legacy row field for field."""
        instance_model = apps.get_model('core', 'PolicyInstance')
        return instance_model.objects.filter(
            client_id=OuterRef('client_id'),
            policy_template__policy_number=OuterRef('policy_number'),
            policy_template__policy_type=OuterRef('policy_type'),
            policy_template__provider=OuterRef('provider'),
            premium_amount=OuterRef('premium_amount'),
            commission_amount=OuterRef('commission_amount'),
            start_date=OuterRef('start_date'),
            expiry_date=OuterRef('expiry_date'),
        )

    def migrated(self):
        """Rows whose data already lives in an instance."""
        return self.filter(Exists(self._counterpart()))

    def unmigrated(self):
        return self.filter(~Exists(self._counterpart()))

    def with_relations(self):
        return self.select_related('client')

    def filter_listing(
        self,
        search: str | None = None,
        status: str | None = None,
        policy_type: str | None = None,
        provider: str | None = None,
    ):
        qs = self
        if search:
            qs = qs.filter(_search_q(search))
        if status:
            qs = qs.filter(status=status)
        if policy_type:
            qs = qs.filter(policy_type=policy_type)
        if provider:
            qs = qs.filter(provider=provider)
        return qs


class LegacyPolicyManager(models.Manager):
    """
    Manager for the legacy Policy table.
    """

    def get_queryset(self):
        return LegacyPolicyQuerySet(self.model, using=self._db)

    def migrated(self):
        return self.get_queryset().migrated()

    def unmigrated(self):
        return self.get_queryset().unmigrated()

    def for_client(self, client_id):
        return self.get_queryset().for_client(client_id)

    def with_relations(self):
        return self.get_queryset().with_relations()

    def filter_listing(self, search=None, status=None, policy_type=None, provider=None):
        return self.get_queryset().filter_listing(search, status, policy_type, provider)
