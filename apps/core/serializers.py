"""
Core Serializers for PolicyDesk Django Backend

DRF serializers validating request payloads and query parameters:
- Write serializers for the unified policy endpoints
- Query serializers for listing and statistics filters
"""
from rest_framework import serializers

from .constants import EXPIRY_WARNING_DAYS, PAGINATION
from .models import Client, PolicyStatus, PolicyType


class CommaSeparatedListField(serializers.ListField):
    """List field that also accepts a single comma-separated string."""

    def to_internal_value(self, data):
        if isinstance(data, str):
            data = [data]
        items = []
        for chunk in data:
            items.extend(part.strip() for part in str(chunk).split(',') if part.strip())
        return super().to_internal_value(items)


# Policy Serializers

class PolicyCreateSerializer(serializers.Serializer):
    """Write serializer for creating a policy."""
    policy_number = serializers.CharField(max_length=255)
    policy_type = serializers.ChoiceField(choices=PolicyType.choices)
    provider = serializers.CharField(max_length=255)
    description = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    premium_amount = serializers.DecimalField(max_digits=15, decimal_places=2, min_value=0)
    commission_amount = serializers.DecimalField(max_digits=15, decimal_places=2, min_value=0)
    start_date = serializers.DateTimeField()
    expiry_date = serializers.DateTimeField()
    client_id = serializers.UUIDField()

    def validate_client_id(self, value):
        if not Client.objects.filter(pk=value).exists():
            raise serializers.ValidationError('Client not found')
        return value

    def validate(self, attrs):
        if attrs['start_date'] >= attrs['expiry_date']:
            raise serializers.ValidationError({'expiry_date': 'Expiry date must be after start date'})
        return attrs


class PolicyUpdateSerializer(serializers.Serializer):
    """Write serializer for partially updating a policy."""
    premium_amount = serializers.DecimalField(max_digits=15, decimal_places=2, min_value=0, required=False)
    commission_amount = serializers.DecimalField(max_digits=15, decimal_places=2, min_value=0, required=False)
    start_date = serializers.DateTimeField(required=False)
    expiry_date = serializers.DateTimeField(required=False)
    status = serializers.ChoiceField(choices=PolicyStatus.choices, required=False)

    def validate(self, attrs):
        if not attrs:
            raise serializers.ValidationError('At least one field must be provided')
        start_date = attrs.get('start_date')
        expiry_date = attrs.get('expiry_date')
        if start_date and expiry_date and start_date >= expiry_date:
            raise serializers.ValidationError({'expiry_date': 'Expiry date must be after start date'})
        return attrs


# Query Serializers

class PolicyListQuerySerializer(serializers.Serializer):
    """Query parameters for the unified policy listing."""
    page = serializers.IntegerField(min_value=1, default=1)
    limit = serializers.IntegerField(
        min_value=1,
        max_value=PAGINATION['max_limit'],
        default=PAGINATION['default_limit'],
    )
    search = serializers.CharField(required=False, allow_blank=True)
    status = serializers.ChoiceField(choices=PolicyStatus.choices, required=False)
    policy_type = serializers.ChoiceField(choices=PolicyType.choices, required=False)
    provider = serializers.CharField(required=False, allow_blank=True)


class PolicyTemplateStatsQuerySerializer(serializers.Serializer):
    """Template-level filters for the statistics overview."""
    search = serializers.CharField(required=False, allow_blank=True)
    policy_types = CommaSeparatedListField(
        child=serializers.ChoiceField(choices=PolicyType.choices),
        required=False,
    )
    providers = CommaSeparatedListField(child=serializers.CharField(), required=False)
    has_instances = serializers.BooleanField(required=False, allow_null=True, default=None)


class MigrationRequestSerializer(serializers.Serializer):
    """Options for the batch legacy migration."""
    batch_size = serializers.IntegerField(min_value=1, max_value=1000, required=False)
    dry_run = serializers.BooleanField(default=False)
    skip_duplicates = serializers.BooleanField(default=True)


class ExpiryWarningsQuerySerializer(serializers.Serializer):
    """Warning thresholds (days before expiry) and an optional level filter."""
    critical_days = serializers.IntegerField(min_value=0, max_value=365, default=EXPIRY_WARNING_DAYS['critical'])
    warning_days = serializers.IntegerField(min_value=0, max_value=365, default=EXPIRY_WARNING_DAYS['warning'])
    info_days = serializers.IntegerField(min_value=0, max_value=365, default=EXPIRY_WARNING_DAYS['info'])
    level = serializers.ChoiceField(choices=['critical', 'warning', 'info'], required=False)
