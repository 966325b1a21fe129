"""Key/value cache backends injected into the resource planner."""

from .backends import CacheBackend, NullCache, InMemoryCache, RedisCache

__all__ = [
    "CacheBackend",
    "NullCache",
    "InMemoryCache",
    "RedisCache",
]
