"""Cache configuration: validating options and resolving them into an expiry policy.

Caches are configured with a `CacheOptions`. In the simple case you either leave everything at
the defaults (an eternal cache), or set `expire_after_ms` to have entries expire that long after
they were last written.

For full control you can instead supply any of three factory functions, which replace the
corresponding default step of backend acquisition:

- `provider_fn(options)` returns the `CachingProvider` to use (default: `get_provider`)
- `manager_fn(provider, options)` returns the `CacheManager` (default: `get_manager`)
- `config_fn(options)` returns the `BackendConfig` (default: `get_config`)

Since we can't look inside custom factories, if any of them is given the resolved `eternal` and
`expire_after_ms` are both `UNKNOWN`.
"""

from __future__ import annotations

from dataclasses import dataclass
from functools import partial
from typing import Any, Callable

from memocache.backends import BackendConfig, CacheManager, CachingProvider, default_provider
from memocache.constants import InvalidExpireAfter
from memocache.strategies import EternalExpiryPolicy, ExpiryPolicy, ModifiedExpiryPolicy

MIN_EXPIRE_AFTER_MS = 1000


class _Unknown:
    """Sentinel for config values we can't determine because custom factories were supplied."""
    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return 'UNKNOWN'

    def __reduce__(self):
        return (_Unknown, ())


UNKNOWN = _Unknown()


BackendProvider = Callable[['CacheOptions'], CachingProvider]
BackendManager = Callable[[CachingProvider, 'CacheOptions'], CacheManager]
BackendConfigBuilder = Callable[['CacheOptions'], BackendConfig]


@dataclass(frozen=True)
class CacheOptions:
    """The options a cache is created with, as given by the caller.

    `eternal` is accepted for compatibility but never changes the result: a cache is eternal
    exactly when no `expire_after_ms` is given (see `is_eternal()`).
    """
    eternal: bool = True
    expire_after_ms: int|None = None
    provider_fn: BackendProvider|None = None
    manager_fn: BackendManager|None = None
    config_fn: BackendConfigBuilder|None = None

    @property
    def has_custom_factories(self) -> bool:
        return any(fn is not None for fn in (self.provider_fn, self.manager_fn, self.config_fn))


@dataclass(frozen=True)
class CacheConfig:
    """The resolved configuration of a cache.

    `expiry_policy` is the factory for the backend's expiry policy, or `UNKNOWN` (like `eternal`
    and `expire_after_ms`) when custom factories were supplied.
    """
    eternal: bool|_Unknown
    expire_after_ms: int|None|_Unknown
    provider_fn: BackendProvider
    manager_fn: BackendManager
    config_fn: BackendConfigBuilder
    expiry_policy: Callable[[], ExpiryPolicy]|_Unknown


def validate_expire_after(expire_after_ms: Any) -> int:
    """Checks that `expire_after_ms` is an int >= 1000, raising `InvalidExpireAfter` otherwise."""
    if isinstance(expire_after_ms, bool) or not isinstance(expire_after_ms, int):
        raise InvalidExpireAfter(f'expire_after_ms must be an int, not {expire_after_ms!r}')
    if expire_after_ms < MIN_EXPIRE_AFTER_MS:
        raise InvalidExpireAfter(f'expire_after_ms must be at least {MIN_EXPIRE_AFTER_MS}, not {expire_after_ms}')
    return expire_after_ms


def is_eternal(options: CacheOptions) -> bool|_Unknown:
    """Whether entries never expire. An explicit `expire_after_ms` always turns this off."""
    if options.has_custom_factories:
        return UNKNOWN
    return options.expire_after_ms is None


def get_expire_after(options: CacheOptions) -> int|None|_Unknown:
    if options.has_custom_factories:
        return UNKNOWN
    if options.expire_after_ms is None:
        return None
    return validate_expire_after(options.expire_after_ms)


def get_expiry_policy(options: CacheOptions) -> Callable[[], ExpiryPolicy]:
    """Returns a factory for the expiry policy described by (non-custom) `options`."""
    expire_after_ms = get_expire_after(options)
    if expire_after_ms is None or expire_after_ms is UNKNOWN:
        return EternalExpiryPolicy
    return partial(ModifiedExpiryPolicy, expire_after_ms)


def get_provider(options: CacheOptions) -> CachingProvider:
    """Default provider strategy: the process-wide provider."""
    return default_provider()


def get_manager(provider: CachingProvider, options: CacheOptions) -> CacheManager:
    """Default manager strategy: the provider's own manager."""
    return provider.get_cache_manager()


def get_config(options: CacheOptions) -> BackendConfig:
    """Default config strategy: string keys, any values, expiry from `options`."""
    return BackendConfig().set_types(str, object).set_expiry_policy_factory(get_expiry_policy(options))


def resolve_config(options: CacheOptions) -> CacheConfig:
    """Validates `options` and resolves them into a `CacheConfig`.

    Raises `InvalidExpireAfter` if `expire_after_ms` is given (and no custom factories are) but
    isn't an int >= 1000.
    """
    custom = options.has_custom_factories
    return CacheConfig(
        eternal=is_eternal(options),
        expire_after_ms=get_expire_after(options),
        provider_fn=options.provider_fn or get_provider,
        manager_fn=options.manager_fn or get_manager,
        config_fn=options.config_fn or get_config,
        expiry_policy=UNKNOWN if custom else get_expiry_policy(options),
    )
