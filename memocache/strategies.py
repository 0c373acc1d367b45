"""Cache strategies: hooks that modify how a backend stores and returns entries.

Expiry is implemented as a strategy: the backend asks each strategy before reading an entry, and
an expiry policy can veto the read (and have the entry evicted) once it has gone stale.
"""

from __future__ import annotations

import time

from typing import Any, Callable, Generic

from memocache.constants import KeyT

class CacheStrategy(Generic[KeyT]):
    """Base class for cache strategies.

    Strategies can hook into different stages of cache operations:
    - pre_get: Before retrieving a value (or checking whether it exists)
    - post_set: After setting a value
    - post_delete: After deleting a value
    - post_clear: After clearing all entries
    """
    def __init__(self, backend=None):
        self._backend = backend
        if backend is not None:
            self.initialize()

    def bind(self, backend) -> None:
        """Attaches this strategy to `backend` and initializes it."""
        self._backend = backend
        self.initialize()

    def initialize(self) -> None:
        """Initialize strategy with existing items from backend.

        Called when backend is set, allowing strategies to scan existing items.
        Override this in subclasses that need to track existing items.
        """
        pass

    def pre_get(self, key: KeyT) -> bool:
        """Called before retrieving a value.

        Returns:
            False to treat the key as missing, True to proceed
        """
        return True

    def post_set(self, key: KeyT, value: Any) -> None:
        """Called after setting a value."""
        pass

    def post_delete(self, key: KeyT) -> None:
        """Called after deleting a value."""
        pass

    def post_clear(self) -> None:
        """Called after clearing all entries."""
        pass


class ExpiryPolicy(CacheStrategy[KeyT]):
    """Base class for expiry policies.

    Subclasses implement `is_expired()`. When a read finds an expired entry, the policy asks the
    backend to expire it (delete it and notify expired-entry listeners) and reports a miss.
    """
    def is_expired(self, key: KeyT) -> bool:
        return False

    def pre_get(self, key: KeyT) -> bool:
        if self.is_expired(key):
            self._backend._expire(key)
            return False
        return True


class EternalExpiryPolicy(ExpiryPolicy[KeyT]):
    """Entries never expire."""
    pass


class ModifiedExpiryPolicy(ExpiryPolicy[KeyT]):
    """Entries expire a fixed duration after they were last written.

    Reads don't extend the lifetime of an entry; only `put` does.
    """
    def __init__(self, duration_ms: int, *, clock: Callable[[], float] = time.time):
        """Initialize with expiry duration.

        Args:
        - duration_ms: How long (in milliseconds) an entry lives after its last write
        - clock: Function returning the current time in seconds (mostly for testing)
        """
        super().__init__()
        self.duration_ms = duration_ms
        self.clock = clock
        self.timestamps: dict[Any, float] = {}

    def initialize(self) -> None:
        """Initialize timestamps for existing items in backend."""
        now = self.clock()
        for key in self._backend.iter_keys():
            self.timestamps[key] = now

    def is_expired(self, key: KeyT) -> bool:
        if key not in self.timestamps:
            return False
        age_ms = (self.clock() - self.timestamps[key]) * 1000.0
        return age_ms >= self.duration_ms

    def post_set(self, key: KeyT, value: Any) -> None:
        self.timestamps[key] = self.clock()

    def post_delete(self, key: KeyT) -> None:
        self.timestamps.pop(key, None)

    def post_clear(self) -> None:
        self.timestamps.clear()

    def __repr__(self) -> str:
        return f'ModifiedExpiryPolicy({self.duration_ms}ms)'
