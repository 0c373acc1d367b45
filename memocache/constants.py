from __future__ import annotations

from typing import TypeVar

# type for cache keys
KeyT = TypeVar('KeyT')

CACHE_MISS = '<memocache_cache_miss>'  # Sentinel value for cache misses


class CacheError(Exception):
    """Base class for errors raised by memocache.

    Each error carries a short `category` string (e.g. 'invalid-expire-after') so callers can
    branch on the kind of problem without parsing the message.
    """
    category = 'cache-error'

    def __init__(self, message: str, category: str|None = None):
        super().__init__(message)
        self.message = message
        if category is not None:
            self.category = category


class InvalidExpireAfter(CacheError, ValueError):
    """Raised at cache creation when `expire_after_ms` is not an int >= 1000."""
    category = 'invalid-expire-after'


class InvalidEventKey(CacheError, ValueError):
    """Raised when subscribing to an event type we don't know about."""
    category = 'invalid-event-key'


class CacheNotFound(CacheError, KeyError):
    """Raised when a named cache doesn't exist in a manager."""
    category = 'cache-not-found'

    def __init__(self, name: str):
        super().__init__(f"Cache '{name}' not found")
        self.name = name

    def __str__(self) -> str:
        return self.message
