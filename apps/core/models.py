"""
Core Models for PolicyDesk Django Backend

These are UNMANAGED models that map to existing back-office PostgreSQL tables.
They do NOT create migrations - Django reads from existing tables.

Two policy representations coexist while the migration runs:
- Policy: legacy flat table, one row per client subscription
- PolicyTemplate + PolicyInstance: normalized catalog entry + per-client instance
"""
import uuid

from django.db import models
from django.utils import timezone

from .managers import (
    LegacyPolicyManager,
    PolicyInstanceManager,
    PolicyTemplateManager,
)
from .utils import format_full_name


class PolicyType(models.TextChoices):
    LIFE = 'Life', 'Life'
    HEALTH = 'Health', 'Health'
    AUTO = 'Auto', 'Auto'
    HOME = 'Home', 'Home'
    BUSINESS = 'Business', 'Business'


class PolicyStatus(models.TextChoices):
    ACTIVE = 'Active', 'Active'
    EXPIRED = 'Expired', 'Expired'


class Lead(models.Model):
    """
    A prospective client.
    Maps to: public.leads
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4)
    first_name = models.CharField(max_length=255, null=True, blank=True)
    last_name = models.CharField(max_length=255, null=True, blank=True)
    email = models.CharField(max_length=255, null=True, blank=True)
    phone = models.CharField(max_length=50, null=True, blank=True)
    status = models.CharField(max_length=50, default='New')
    created_at = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(default=timezone.now)

    class Meta:
        managed = False
        db_table = 'leads'

    def __str__(self):
        return f"{format_full_name(self.first_name, self.last_name)} ({self.status})"


class Client(models.Model):
    """
    Represents a client/customer.
    Maps to: public.clients
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4)
    first_name = models.CharField(max_length=255, null=True, blank=True)
    last_name = models.CharField(max_length=255, null=True, blank=True)
    email = models.CharField(max_length=255, null=True, blank=True)
    phone = models.CharField(max_length=50, null=True, blank=True)
    created_at = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(default=timezone.now)

    class Meta:
        managed = False
        db_table = 'clients'

    def __str__(self):
        return f"{self.full_name} ({self.email or 'No email'})"

    @property
    def full_name(self):
        return format_full_name(self.first_name, self.last_name)


class PolicyTemplate(models.Model):
    """
    Catalog entry for a policy product (number, type, provider).
    Maps to: public.policy_templates

    Deleting a template cascades to its instances.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4)
    policy_number = models.CharField(max_length=255, unique=True)
    policy_type = models.CharField(max_length=50, choices=PolicyType.choices)
    provider = models.CharField(max_length=255)
    description = models.TextField(null=True, blank=True)
    created_at = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(default=timezone.now)

    objects = PolicyTemplateManager()

    class Meta:
        managed = False
        db_table = 'policy_templates'

    def __str__(self):
        return f"{self.policy_number} - {self.provider} ({self.policy_type})"


class PolicyInstance(models.Model):
    """
    A client's concrete subscription to a PolicyTemplate.
    Maps to: public.policy_instances

    `status` is maintained by the expiry sweep; statistics also derive
    active/expired from `expiry_date` directly.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4)
    policy_template = models.ForeignKey(
        PolicyTemplate,
        on_delete=models.CASCADE,
        related_name='instances'
    )
    client = models.ForeignKey(
        Client,
        on_delete=models.CASCADE,
        related_name='policy_instances'
    )
    premium_amount = models.DecimalField(max_digits=15, decimal_places=2)
    commission_amount = models.DecimalField(max_digits=15, decimal_places=2)
    status = models.CharField(
        max_length=50,
        choices=PolicyStatus.choices,
        default=PolicyStatus.ACTIVE
    )
    start_date = models.DateTimeField()
    expiry_date = models.DateTimeField()
    created_at = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(default=timezone.now)

    objects = PolicyInstanceManager()

    class Meta:
        managed = False
        db_table = 'policy_instances'
        constraints = [
            models.UniqueConstraint(
                fields=['policy_template', 'client'],
                name='policy_instance_template_client_key',
            ),
        ]

    def __str__(self):
        return f"{self.policy_template.policy_number} - {self.client.full_name}"


class Policy(models.Model):
    """
    Legacy flat policy row (template + instance merged), scoped to one client.
    Maps to: public.policies

    Being phased out in favour of PolicyTemplate/PolicyInstance.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4)
    policy_number = models.CharField(max_length=255)
    policy_type = models.CharField(max_length=50, choices=PolicyType.choices)
    provider = models.CharField(max_length=255)
    premium_amount = models.DecimalField(max_digits=15, decimal_places=2)
    commission_amount = models.DecimalField(max_digits=15, decimal_places=2)
    status = models.CharField(
        max_length=50,
        choices=PolicyStatus.choices,
        default=PolicyStatus.ACTIVE
    )
    start_date = models.DateTimeField()
    expiry_date = models.DateTimeField()
    client = models.ForeignKey(
        Client,
        on_delete=models.CASCADE,
        related_name='legacy_policies'
    )
    created_at = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(default=timezone.now)

    objects = LegacyPolicyManager()

    class Meta:
        managed = False
        db_table = 'policies'
        verbose_name_plural = 'Policies'

    def __str__(self):
        return f"{self.policy_number} - {self.client.full_name}"
