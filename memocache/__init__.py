from .backends import (
    BackendConfig,
    CacheBackend,
    CacheManager,
    CachingProvider,
    MemoryBackend,
    MemoryCacheManager,
    SQLBackend,
    SQLCacheManager,
    default_provider,
)
from .cacher import (
    Cache,
    CallResult,
    cached,
    contains,
    create_cache,
    decorate,
    get,
    invalidate,
    listen_event,
    metrics,
    put,
    reset,
)
from .config import CacheConfig, CacheOptions, UNKNOWN, resolve_config
from .constants import CACHE_MISS, CacheError, CacheNotFound, InvalidEventKey, InvalidExpireAfter
from .events import Event, EventBus, EventType
from .formatters import CacheFormatter, JsonFormatter, PickleFormatter
from .keyers import MANUAL_FN_NAME, HashStringKeyer, Keyer, StringKeyer, fingerprint, normalize_args
from .metrics import MAX_COUNTER, Metrics
from .strategies import CacheStrategy, EternalExpiryPolicy, ExpiryPolicy, ModifiedExpiryPolicy

__all__ = [
    'BackendConfig',
    'CacheBackend',
    'CacheManager',
    'CachingProvider',
    'MemoryBackend',
    'MemoryCacheManager',
    'SQLBackend',
    'SQLCacheManager',
    'default_provider',
    'Cache',
    'CallResult',
    'cached',
    'contains',
    'create_cache',
    'decorate',
    'get',
    'invalidate',
    'listen_event',
    'metrics',
    'put',
    'reset',
    'CacheConfig',
    'CacheOptions',
    'UNKNOWN',
    'resolve_config',
    'CACHE_MISS',
    'CacheError',
    'CacheNotFound',
    'InvalidEventKey',
    'InvalidExpireAfter',
    'Event',
    'EventBus',
    'EventType',
    'CacheFormatter',
    'JsonFormatter',
    'PickleFormatter',
    'MANUAL_FN_NAME',
    'HashStringKeyer',
    'Keyer',
    'StringKeyer',
    'fingerprint',
    'normalize_args',
    'MAX_COUNTER',
    'Metrics',
    'CacheStrategy',
    'EternalExpiryPolicy',
    'ExpiryPolicy',
    'ModifiedExpiryPolicy',
]
