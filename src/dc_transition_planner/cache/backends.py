"""Key/value cache backends.

Every backend implements the same two calls:

    get(key)               -> JSON-compatible dict, or None on miss
    set(key, value, ttl_s) -> store value for ttl_s seconds

Backends never raise for transport or decode problems; they log a
warning and behave as an empty cache. NullCache is the backend used
when no store is configured.
"""

import copy
import json
import logging
import time
from typing import Any, Callable, Dict, Optional, Protocol, Tuple

import redis

logger = logging.getLogger(__name__)


class CacheBackend(Protocol):
    """Minimal cache interface injected into the resource planner."""

    def get(self, key: str) -> Optional[Dict[str, Any]]:
        ...

    def set(self, key: str, value: Dict[str, Any], ttl_s: int) -> None:
        ...


class NullCache:
    """Backend for deployments without a cache: always misses."""

    def get(self, key: str) -> Optional[Dict[str, Any]]:
        return None

    def set(self, key: str, value: Dict[str, Any], ttl_s: int) -> None:
        return None


class InMemoryCache:
    """Process-local TTL cache.

    Values are deep-copied on the way in and out so callers cannot
    mutate a cached entry.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._entries: Dict[str, Tuple[float, Dict[str, Any]]] = {}

    def get(self, key: str) -> Optional[Dict[str, Any]]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        expires_at, value = entry
        if self._clock() >= expires_at:
            del self._entries[key]
            return None
        return copy.deepcopy(value)

    def set(self, key: str, value: Dict[str, Any], ttl_s: int) -> None:
        self._entries[key] = (self._clock() + ttl_s, copy.deepcopy(value))

    def __len__(self) -> int:
        return len(self._entries)


class RedisCache:
    """Redis-backed cache storing JSON documents with SETEX."""

    def __init__(self, client: "redis.Redis"):
        self._client = client

    @classmethod
    def from_url(cls, url: str, socket_timeout_s: float = 2.0) -> "RedisCache":
        """Connect lazily to a Redis URL (redis://host:port/db)."""
        client = redis.Redis.from_url(url, socket_timeout=socket_timeout_s,
                                      socket_connect_timeout=socket_timeout_s)
        return cls(client)

    def get(self, key: str) -> Optional[Dict[str, Any]]:
        try:
            raw = self._client.get(key)
        except redis.RedisError as exc:
            logger.warning(f"Redis get failed for {key}: {exc}")
            return None
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except ValueError as exc:
            logger.warning(f"Discarding undecodable cache entry {key}: {exc}")
            return None

    def set(self, key: str, value: Dict[str, Any], ttl_s: int) -> None:
        try:
            self._client.setex(key, int(ttl_s), json.dumps(value))
        except (TypeError, ValueError) as exc:
            logger.warning(f"Cache value for {key} is not JSON serializable: {exc}")
        except redis.RedisError as exc:
            logger.warning(f"Redis set failed for {key}: {exc}")
