"""Caching policy for resource series.

Keys are derived from the site and window only:

    renewables:<lat:.4f>:<lon:.4f>:<YYYY-MM-DD>:<YYYY-MM-DD>

with a fixed 6 hour TTL. The policy sits between the planner and any
backend; a backend that raises, or an entry that no longer decodes,
degrades to a cache miss.
"""

import logging
from datetime import date
from typing import Optional

from dc_transition_planner.cache.backends import CacheBackend, NullCache
from dc_transition_planner.resources.series import ResourceSeries

logger = logging.getLogger(__name__)

RESOURCE_CACHE_PREFIX = "renewables"
RESOURCE_CACHE_TTL_S = 6 * 60 * 60


def resource_cache_key(latitude: float, longitude: float,
                       start: date, end: date) -> str:
    return (f"{RESOURCE_CACHE_PREFIX}:{latitude:.4f}:{longitude:.4f}:"
            f"{start.isoformat()}:{end.isoformat()}")


class ResourceCache:
    """Read-through cache for ResourceSeries over any CacheBackend."""

    def __init__(self, backend: Optional[CacheBackend] = None,
                 ttl_s: int = RESOURCE_CACHE_TTL_S):
        self.backend = backend if backend is not None else NullCache()
        self.ttl_s = ttl_s

    def load(self, key: str) -> Optional[ResourceSeries]:
        """Return the cached series for key, or None on miss or failure."""
        try:
            payload = self.backend.get(key)
        except Exception as exc:
            logger.warning(f"Cache unavailable on get({key}): {exc}")
            return None
        if payload is None:
            logger.debug(f"Cache miss {key}")
            return None
        try:
            series = ResourceSeries.from_dict(payload)
        except (KeyError, TypeError, ValueError) as exc:
            logger.warning(f"Ignoring malformed cache entry {key}: {exc}")
            return None
        logger.info(f"Cache hit {key}")
        return series

    def store(self, key: str, series: ResourceSeries) -> bool:
        """Write series under key; returns False if the backend failed."""
        try:
            self.backend.set(key, series.to_dict(), self.ttl_s)
        except Exception as exc:
            logger.warning(f"Cache unavailable on set({key}): {exc}")
            return False
        return True
