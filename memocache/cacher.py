"""Memoizing decorator and manual access on top of a pluggable cache backend.

Typical usage:

    cache = create_cache('greetings', expire_after_ms=5000)

    @cached(cache, fallback=lambda err, name: f'Hi {name} (offline)')
    def greet(name):
        return call_slow_service(name)

    greet('World')          # miss: calls the service and stores the result
    greet('World')          # hit: returned from the cache
    cache.get_metrics()     # {'hits': 1, 'misses': 1, 'errors': 0, ...}

Each call of a decorated function goes through these states:

- key = fingerprint(fn, args, kwargs)
- if the backend has the key: count a hit, fire HIT, return the stored value
- otherwise call the function:
  - on success: store the value, count a miss, fire MISSED, return the value
  - on failure (of the call, or of storing its value): count an error, fire ERROR (with the
    exception as `cause`), then either call the fallback with `({'cause': exc}, *args, **kwargs)`
    or re-raise the original exception

There is no locking around a miss: concurrent calls with the same arguments may each call the
function, and the last one to finish wins.

Values can also be read and written directly with `put()`, `get()` and `contains()`. These use
their own key namespace (`MANUAL_FN_NAME`), and treat a non-sequence argument the same as a
one-element sequence, so `put(cache, 'foo', v)` and `get(cache, ['foo'])` refer to the same entry.
"""

from __future__ import annotations

import logging

from dataclasses import dataclass
from functools import wraps
from typing import Any, Callable

from memocache.backends import CacheBackend
from memocache.config import CacheConfig, CacheOptions, resolve_config
from memocache.constants import CACHE_MISS
from memocache.events import Event, EventBus, EventType, Handler, parse_event_type
from memocache.keyers import MANUAL_FN_NAME, Keyer, HashStringKeyer, get_fn_name, normalize_args
from memocache.metrics import Metrics


logger = logging.getLogger(__name__)

@dataclass(frozen=True)
class CallResult:
    """Outcome of calling the wrapped function: either a `value` or an `error`."""
    value: Any = None
    error: Exception|None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def _invoke(fn: Callable, args: tuple, kwargs: dict, store: Callable[[Any], Any]|None = None) -> CallResult:
    """Calls `fn`, then `store(value)` if given. A failure in either becomes the `error`."""
    try:
        value = fn(*args, **kwargs)
        if store is not None:
            store(value)
        return CallResult(value=value)
    except Exception as e:
        return CallResult(error=e)


class Cache:
    """A named cache: a backend plus the metrics, listeners and config that go with it.

    Create these with `create_cache()` rather than directly.
    """
    def __init__(self,
                 name: str,
                 backend: CacheBackend,
                 config: CacheConfig,
                 *,
                 keyer: Keyer|None = None):
        self.name = name
        self.backend = backend
        self.config = config
        self.keyer = keyer or HashStringKeyer()
        self.metrics = Metrics()
        self.events = EventBus()

    def _fire(self, event_type: EventType, fn_name: str|None, key: str, cause: Exception|None = None) -> None:
        self.events.dispatch(Event(
            event_type=event_type,
            cache_name=self.name,
            key=key,
            fn_name=fn_name,
            cause=cause,
        ))

    def _manual_key(self, args: Any) -> str:
        return self.keyer.make_key(MANUAL_FN_NAME, normalize_args(args))

    def decorate(self, fn: Callable, fallback: Callable|None = None) -> Callable:
        """Returns a wrapped version of `fn` whose results are cached in this cache.

        If `fallback` is given, it's called as `fallback({'cause': exc}, *args, **kwargs)` when
        `fn` raises, and its result is returned instead. Without a fallback, the exception from
        `fn` is re-raised unchanged.
        """
        fn_name = get_fn_name(fn)

        @wraps(fn)
        def wrapper(*args, **kwargs):
            key = self.keyer.make_key(fn_name, args, kwargs)
            # a single read, so an entry can't expire between the check and the fetch
            value = self.backend.get(key)
            if value is not CACHE_MISS:
                self.metrics.increment('hits')
                self._fire(EventType.HIT, fn_name, key)
                logger.debug(f'Cache {self.name} hit for {fn_name} [{key}]')
                return value
            result = _invoke(fn, args, kwargs, store=lambda value: self.backend.put(key, value))
            if result.ok:
                self.metrics.increment('misses')
                self._fire(EventType.MISSED, fn_name, key)
                logger.debug(f'Cache {self.name} miss for {fn_name} [{key}]')
                return result.value
            self.metrics.increment('errors')
            self._fire(EventType.ERROR, fn_name, key, cause=result.error)
            if fallback is None:
                raise result.error
            logger.warning(f'Call to {fn_name} failed ({result.error!r}), using fallback')
            return fallback({'cause': result.error}, *args, **kwargs)

        wrapper.cache = self
        return wrapper

    def put(self, args: Any, value: Any) -> Any:
        """Stores `value` in the manual namespace under `args`, and returns it."""
        self.metrics.increment('manual_puts')
        key = self._manual_key(args)
        self.backend.put(key, value)
        self._fire(EventType.MANUAL_PUT, MANUAL_FN_NAME, key)
        logger.debug(f'Cache {self.name} manual put [{key}]')
        return value

    def get(self, args: Any) -> Any:
        """Returns the value stored under `args` in the manual namespace, or None."""
        self.metrics.increment('manual_gets')
        key = self._manual_key(args)
        self._fire(EventType.MANUAL_GET, MANUAL_FN_NAME, key)
        value = self.backend.get(key)
        return None if value is CACHE_MISS else value

    def contains(self, args: Any) -> bool:
        """Whether there's a value stored under `args` in the manual namespace."""
        return self.backend.contains_key(self._manual_key(args))

    def invalidate(self) -> None:
        """Removes all entries (decorated and manual). Metrics and listeners are kept."""
        self.backend.remove_all()
        logger.info(f'Invalidated cache {self.name}')

    def get_metrics(self) -> dict[str, int]:
        return self.metrics.snapshot()

    def reset(self) -> Cache:
        """Sets all metrics back to 0."""
        self.metrics.reset()
        return self

    def listen_event(self, event_type: EventType|str, handler: Handler) -> None:
        """Calls `handler(event)` whenever an event of `event_type` happens.

        EXPIRED events come from the backend, so those handlers are registered with it directly.
        If the backend doesn't allow registering listeners, the subscription is ignored.
        """
        event_type = parse_event_type(event_type)
        if event_type is not EventType.EXPIRED:
            self.events.subscribe(event_type, handler)
            return
        if not self.backend.supports_listener_registration:
            logger.warning(f'Cache {self.name} backend does not support expiry listeners, ignoring EXPIRED subscription')
            return

        def on_expired(cache_name: str, key: Any) -> None:
            handler(Event(event_type=EventType.EXPIRED, cache_name=cache_name, key=key))

        self.backend.register_expired_listener(on_expired)

    def __repr__(self) -> str:
        return f'Cache({self.name!r}, {self.backend!r})'


def create_cache(name: str, options: CacheOptions|None = None, **kwargs) -> Cache:
    """Creates a new cache called `name`, replacing any existing cache with that name.

    Options can be given either as a `CacheOptions` or as keyword arguments (`eternal`,
    `expire_after_ms`, `provider_fn`, `manager_fn`, `config_fn`).
    """
    if options is None:
        options = CacheOptions(**kwargs)
    elif kwargs:
        raise TypeError('Pass either a CacheOptions or keyword options, not both')
    config = resolve_config(options)
    provider = config.provider_fn(options)
    manager = config.manager_fn(provider, options)
    backend_config = config.config_fn(options)
    manager.destroy_cache(name)
    backend = manager.create_cache(name, backend_config)
    return Cache(name, backend, config)


def decorate(fn: Callable, cache: Cache, fallback: Callable|None = None) -> Callable:
    """Returns `fn` wrapped so that its results are cached in `cache`. See `Cache.decorate()`."""
    return cache.decorate(fn, fallback=fallback)


def cached(cache: Cache, fallback: Callable|None = None) -> Callable[[Callable], Callable]:
    """Returns a decorator that caches the decorated function's results in `cache`.

        @cached(cache)
        def expensive_function(x, y):
            return x + y
    """
    def decorator(fn: Callable) -> Callable:
        return cache.decorate(fn, fallback=fallback)
    return decorator


def put(cache: Cache, args: Any, value: Any) -> Any:
    return cache.put(args, value)


def get(cache: Cache, args: Any) -> Any:
    return cache.get(args)


def contains(cache: Cache, args: Any) -> bool:
    return cache.contains(args)


def invalidate(cache: Cache) -> None:
    cache.invalidate()


def metrics(cache: Cache) -> dict[str, int]:
    return cache.get_metrics()


def reset(cache: Cache) -> Cache:
    return cache.reset()


def listen_event(cache: Cache, event_type: EventType|str, handler: Handler) -> None:
    cache.listen_event(event_type, handler)
