"""
Numeric helpers shared by the statistics services.

All helpers special-case a zero denominator.
"""
import math
from datetime import datetime, timedelta
from decimal import Decimal

from django.utils import timezone

from apps.core.constants import PERCENTAGE_CHANGE_MAX, PERCENTAGE_CHANGE_MIN

MS_PER_DAY = 24 * 60 * 60 * 1000


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves towards +infinity."""
    return math.floor(value + 0.5)


def percentage_change(current: float, previous: float) -> int:
    """
    Month-over-month percentage change, clamped to [-100, 1000].

    Examples:
        percentage_change(0, 0) -> 0
        percentage_change(5, 0) -> 100
        percentage_change(15, 10) -> 50
        percentage_change(0, 10) -> -100
    """
    current = float(current or 0)
    previous = float(previous or 0)

    if previous == 0:
        return 100 if current > 0 else 0

    change = round_half_up(((current - previous) / abs(previous)) * 100)
    return max(PERCENTAGE_CHANGE_MIN, min(PERCENTAGE_CHANGE_MAX, change))


def growth_rate(current: float, previous: float) -> float:
    """Unrounded growth percentage; 0 when there is no previous value."""
    if not previous:
        return 0.0
    return ((float(current) - float(previous)) / float(previous)) * 100


def safe_ratio(part, whole, scale: float = 100) -> float:
    if not whole:
        return 0.0
    return (float(part) / float(whole)) * scale


def safe_average(total, count) -> float:
    if not count:
        return 0.0
    return float(total) / count


def to_float(value: Decimal | float | int | None) -> float:
    if value is None:
        return 0.0
    return float(value)


def days_until(moment: datetime, now: datetime) -> int:
    """Whole days until `moment`, rounding partial days up."""
    delta_ms = (moment - now) / timedelta(milliseconds=1)
    return math.ceil(delta_ms / MS_PER_DAY)


def month_bounds(now: datetime) -> tuple[datetime, datetime]:
    """
    Return (start of current month, start of previous month) in the
    active local timezone.
    """
    if timezone.is_aware(now):
        now = timezone.localtime(now)
    current_start = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    if current_start.month == 1:
        previous_start = current_start.replace(year=current_start.year - 1, month=12)
    else:
        previous_start = current_start.replace(month=current_start.month - 1)
    return current_start, previous_start
