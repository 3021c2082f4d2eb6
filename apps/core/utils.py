"""
Utility functions for PolicyDesk Backend

Common helpers used across services and views.
"""
from dataclasses import asdict, is_dataclass
from typing import Any


def format_full_name(first_name: str | None, last_name: str | None) -> str:
    """
    Format first and last name into a full name string.

    Args:
        first_name: The first name (can be None)
        last_name: The last name (can be None)

    Returns:
        Formatted full name with whitespace trimmed
    """
    return f"{first_name or ''} {last_name or ''}".strip()


def to_camel_case(name: str) -> str:
    """Convert a snake_case identifier to camelCase."""
    head, *tail = name.split('_')
    return head + ''.join(part[:1].upper() + part[1:] for part in tail)


def camelize(value: Any) -> Any:
    """
    Recursively convert dataclasses and dict keys to camelCase.

    The dashboard UI depends on exact camelCase field names
    (activeInstances, expiringThisWeek, isFromTemplate, ...).
    """
    if is_dataclass(value) and not isinstance(value, type):
        value = asdict(value)
    if isinstance(value, dict):
        return {to_camel_case(str(k)): camelize(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [camelize(v) for v in value]
    return value
