"""
Base Service Class

Provides common utilities and patterns for all service classes.
"""
from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Generic, TypeVar

from django.utils import timezone

if TYPE_CHECKING:
    from .cache_service import StatsCache


T = TypeVar('T')


@dataclass
class PaginationResult(Generic[T]):
    """Standard pagination result container."""
    items: list[T]
    total_count: int
    has_more: bool
    page: int = 1
    limit: int = 10


class BaseService:
    """
    Base class for all service classes.

    Provides common utilities for:
    - Stats cache access (injected, defaults to the Django cache)
    - Clock access (injected, defaults to timezone.now)
    """

    def __init__(
        self,
        cache: StatsCache | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        """
        Initialize service with its collaborators.

        Args:
            cache: Stats cache port (a StatsCache over the default cache if omitted)
            clock: Callable returning the current aware datetime
        """
        if cache is None:
            from .cache_service import StatsCache
            cache = StatsCache()
        self.cache = cache
        self._clock = clock or timezone.now

    def now(self) -> datetime:
        """Current time according to the injected clock."""
        return self._clock()
