"""
Stats Cache

Best-effort memoization of policy statistics over Django's cache framework.
Cache failures are logged and behave like a miss; statistics are always
recomputable from the database.
"""
import logging
from typing import Any

from django.conf import settings
from django.core.cache import cache as default_cache

from apps.core.constants import CACHE_KEYS

logger = logging.getLogger(__name__)

_MISSING = object()


class StatsCache:
    """
    Cache port used by the statistics services.

    Per-template detail keys embed a generation number, so a full
    invalidation only has to bump the generation to drop every entry.
    """

    def __init__(self, backend=None):
        self.backend = backend if backend is not None else default_cache
        self.hits = 0
        self.misses = 0

    @property
    def template_stats_timeout(self) -> int:
        return settings.POLICY_TEMPLATE_STATS_CACHE_TIMEOUT

    @property
    def detail_stats_timeout(self) -> int:
        return settings.POLICY_DETAIL_STATS_CACHE_TIMEOUT

    def get(self, key: str) -> Any | None:
        """Return the cached value or None when absent or on cache failure."""
        try:
            value = self.backend.get(key, _MISSING)
        except Exception as e:
            logger.warning(f'Stats cache read failed for {key}: {e}')
            value = _MISSING

        if value is _MISSING:
            self.misses += 1
            return None
        self.hits += 1
        return value

    def set(self, key: str, value: Any, timeout: int | None = None) -> None:
        try:
            self.backend.set(key, value, timeout)
        except Exception as e:
            logger.warning(f'Stats cache write failed for {key}: {e}')

    def invalidate(self, key: str) -> None:
        try:
            self.backend.delete(key)
        except Exception as e:
            logger.warning(f'Stats cache delete failed for {key}: {e}')

    def _detail_generation(self) -> int:
        try:
            return self.backend.get(CACHE_KEYS['detail_generation'], 0)
        except Exception as e:
            logger.warning(f'Stats cache generation read failed: {e}')
            return 0

    def detail_key(self, template_id) -> str:
        return f"{CACHE_KEYS['detail_stats']}:{self._detail_generation()}:{template_id}"

    def invalidate_policy_stats(self, template_id=None) -> None:
        """
        Drop cached policy statistics after a write.

        The unfiltered template stats are always dropped. With a template id
        only that template's detail entry goes; without one, every detail
        entry is dropped.
        """
        self.invalidate(CACHE_KEYS['template_stats'])
        if template_id is not None:
            self.invalidate(self.detail_key(template_id))
            return

        key = CACHE_KEYS['detail_generation']
        try:
            self.backend.set(key, self._detail_generation() + 1, None)
        except Exception as e:
            logger.warning(f'Stats cache generation bump failed: {e}')
