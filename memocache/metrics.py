"""Thread-safe, wrapping counters for cache hits, misses, errors and manual accesses."""

from __future__ import annotations

import threading

METRIC_NAMES = ('hits', 'misses', 'errors', 'manual_puts', 'manual_gets')

# largest value a counter can hold (a signed 64-bit long); incrementing past it wraps to 0
MAX_COUNTER = 2**63 - 1


class Metrics:
    """A fixed set of named counters that can be incremented concurrently.

    Counters are cyclical: incrementing one that is already at `max_value` sets it to 0 instead of
    growing past the limit.
    """
    def __init__(self, names: tuple[str, ...] = METRIC_NAMES, max_value: int = MAX_COUNTER):
        self.names = tuple(names)
        self.max_value = max_value
        self._lock = threading.Lock()
        self._counters: dict[str, int] = dict.fromkeys(self.names, 0)

    def increment(self, name: str) -> int:
        """Increments counter `name` and returns its new value."""
        with self._lock:
            current = self._counters[name]
            self._counters[name] = 0 if current >= self.max_value else current + 1
            return self._counters[name]

    def get(self, name: str) -> int:
        return self._counters[name]

    def snapshot(self) -> dict[str, int]:
        """Returns a consistent copy of all counters."""
        with self._lock:
            return dict(self._counters)

    def reset(self) -> None:
        """Sets all counters back to 0."""
        with self._lock:
            for name in self.names:
                self._counters[name] = 0

    def __repr__(self) -> str:
        return f'Metrics({self.snapshot()})'
