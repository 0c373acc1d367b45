import threading

from abc import ABC, abstractmethod
from functools import partial

import pytest

from memocache.backends import (
    CACHE_MISS,
    BackendConfig,
    CacheBackend,
    CachingProvider,
    MemoryBackend,
    MemoryCacheManager,
    SQLBackend,
    SQLCacheManager,
)
from memocache.constants import CacheError, CacheNotFound
from memocache.formatters import JsonFormatter, PickleFormatter
from memocache.strategies import CacheStrategy, ModifiedExpiryPolicy

from .test_functions import FakeClock

@pytest.fixture
def clock():
    return FakeClock()

@pytest.fixture
def expiring_config(clock):
    """Config for a backend whose entries expire 2s after being written."""
    return BackendConfig(expiry_policy_factory=partial(ModifiedExpiryPolicy, 2000, clock=clock))


class TestCacheBackend(ABC):
    """Base test class for all cache backends."""

    @pytest.fixture
    @abstractmethod
    def manager(self):
        """Manager fixture that should be overridden by subclasses."""
        raise NotImplementedError("Subclasses must provide a manager fixture")

    @pytest.fixture
    def backend(self, manager):
        return manager.create_cache('test-cache')

    def test_basic_get_put(self, backend: CacheBackend):
        backend.put('key1', 'value1')
        assert backend.get('key1') == 'value1'

        # Test overwrite
        backend.put('key1', {'a': [1, 2]})
        assert backend.get('key1') == {'a': [1, 2]}

        # Test missing key
        assert backend.get('nonexistent') is CACHE_MISS

    def test_none_value(self, backend: CacheBackend):
        backend.put('key1', None)
        assert backend.contains_key('key1')
        assert backend.get('key1') is None

    def test_contains_key(self, backend: CacheBackend):
        assert not backend.contains_key('key1')
        backend.put('key1', 1)
        assert backend.contains_key('key1')

    def test_remove(self, backend: CacheBackend):
        backend.put('key1', 'value1')
        backend.remove('key1')
        assert not backend.contains_key('key1')
        # Removing a nonexistent key should not raise
        backend.remove('nonexistent')

    def test_remove_all(self, backend: CacheBackend):
        backend.put('key1', 'value1')
        backend.put('key2', 'value2')
        backend.remove_all()
        assert backend.get('key1') is CACHE_MISS
        assert backend.get('key2') is CACHE_MISS
        assert list(backend.iter_keys()) == []

    def test_iter_keys(self, backend: CacheBackend):
        backend.put('a', 1)
        backend.put('b', 2)
        assert sorted(backend.iter_keys()) == ['a', 'b']

    def test_key_type_checked(self, backend: CacheBackend):
        with pytest.raises(TypeError):
            backend.put(1, 'value')
        with pytest.raises(TypeError):
            backend.get(('a',))

    def test_value_type_checked(self, manager):
        backend = manager.create_cache('typed', BackendConfig(value_type=int))
        backend.put('a', 1)
        with pytest.raises(TypeError):
            backend.put('b', 'not an int')

    def test_caches_are_separate(self, manager):
        one = manager.create_cache('one')
        two = manager.create_cache('two')
        one.put('key', 1)
        assert not two.contains_key('key')
        two.remove_all()
        assert one.get('key') == 1

    def test_expiry(self, manager, expiring_config, clock):
        backend = manager.create_cache('expiring', expiring_config)
        expired = []
        backend.register_expired_listener(lambda name, key: expired.append((name, key)))
        backend.put('key1', 'value1')
        clock.advance(1.5)
        assert backend.get('key1') == 'value1'
        clock.advance(1.0)
        assert not backend.contains_key('key1')
        assert backend.get('key1') is CACHE_MISS
        assert expired == [('expiring', 'key1')]

    def test_expiry_reset_by_put(self, manager, expiring_config, clock):
        backend = manager.create_cache('expiring', expiring_config)
        backend.put('key1', 'value1')
        clock.advance(1.5)
        backend.put('key1', 'value2')
        clock.advance(1.5)
        assert backend.get('key1') == 'value2'

    def test_purge_expired(self, manager, expiring_config, clock):
        backend = manager.create_cache('expiring', expiring_config)
        backend.put('old', 1)
        clock.advance(1.5)
        backend.put('new', 2)
        clock.advance(1.0)
        assert backend.purge_expired() == 1
        assert list(backend.iter_keys()) == ['new']

    def test_eternal_by_default(self, backend: CacheBackend):
        backend.put('key1', 'value1')
        assert backend.purge_expired() == 0
        assert backend.get('key1') == 'value1'

    def test_listener_registration_disabled(self, manager):
        backend = manager.create_cache('fixed', BackendConfig(listeners_mutable=False))
        assert not backend.supports_listener_registration
        with pytest.raises(CacheError):
            backend.register_expired_listener(print)

    def test_config_listeners(self, manager, clock):
        expired = []
        config = BackendConfig(expiry_policy_factory=partial(ModifiedExpiryPolicy, 1000, clock=clock))
        config.add_expired_listener(lambda name, key: expired.append(key))
        backend = manager.create_cache('listened', config)
        backend.put('key1', 1)
        clock.advance(5)
        backend.purge_expired()
        assert expired == ['key1']

    def test_failing_expired_listener(self, manager, expiring_config, clock):
        backend = manager.create_cache('expiring', expiring_config)
        expired = []
        def bad(name, key):
            raise RuntimeError('boom')
        backend.register_expired_listener(bad)
        backend.register_expired_listener(lambda name, key: expired.append(key))
        backend.put('key1', 1)
        clock.advance(3)
        assert backend.get('key1') is CACHE_MISS
        assert expired == ['key1']

    def test_create_existing(self, manager):
        manager.create_cache('dup')
        with pytest.raises(CacheError):
            manager.create_cache('dup')

    def test_destroy_cache(self, manager):
        backend = manager.create_cache('doomed')
        backend.put('key1', 1)
        manager.destroy_cache('doomed')
        assert 'doomed' not in manager.cache_names()
        with pytest.raises(CacheNotFound):
            manager.get_cache('doomed')
        # destroying again is a no-op
        manager.destroy_cache('doomed')
        # the name can be reused, and starts empty
        assert not manager.create_cache('doomed').contains_key('key1')

    def test_get_cache(self, manager, backend):
        assert manager.get_cache('test-cache') is backend
        assert 'test-cache' in manager.cache_names()

    def test_concurrent_puts(self, backend: CacheBackend):
        def work(i):
            for j in range(50):
                backend.put(f'{i}-{j}', j)
        threads = [threading.Thread(target=work, args=(i,)) for i in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert len(list(backend.iter_keys())) == 200


class TestMemoryBackend(TestCacheBackend):
    """Test MemoryBackend specific functionality."""

    @pytest.fixture
    def manager(self):
        return MemoryCacheManager()

    def test_backend_type(self, backend):
        assert isinstance(backend, MemoryBackend)

    def test_values_not_copied(self, backend):
        value = {'a': 1}
        backend.put('key1', value)
        assert backend.get('key1') is value


class TestSQLBackend(TestCacheBackend):
    """Test SQLBackend, on an in-memory sqlite database."""

    @pytest.fixture
    def manager(self):
        return SQLCacheManager('sqlite://')

    def test_backend_type(self, backend):
        assert isinstance(backend, SQLBackend)
        assert isinstance(backend.formatter, PickleFormatter)

    def test_arbitrary_values(self, backend):
        backend.put('key1', {'a': (1, 2), 'b': {3}})
        assert backend.get('key1') == {'a': (1, 2), 'b': {3}}

    def test_file_database(self, tmp_path):
        url = f'sqlite:///{tmp_path}/sub/cache.sqlite'
        manager = SQLCacheManager(url, formatter=JsonFormatter())
        backend = manager.create_cache('persisted')
        backend.put('key1', [1, 2])
        assert (tmp_path / 'sub' / 'cache.sqlite').exists()

        # a second manager on the same file sees the data
        other = SQLCacheManager(url, formatter=JsonFormatter()).create_cache('persisted')
        assert other.get('key1') == [1, 2]


def test_provider_reuses_manager():
    provider = CachingProvider(MemoryCacheManager)
    assert provider.get_cache_manager() is provider.get_cache_manager()

def test_provider_manager_kwargs():
    provider = CachingProvider(SQLCacheManager, url='sqlite://', table_name='other')
    manager = provider.get_cache_manager()
    assert isinstance(manager, SQLCacheManager)
    assert manager.table.name == 'other'

def test_default_provider_from_env(monkeypatch):
    import memocache.backends as backends
    monkeypatch.setattr(backends, '_default_provider', None)
    monkeypatch.setenv(backends.URL_ENV_VAR, 'sqlite://')
    provider = backends.default_provider()
    assert provider.manager_cls is SQLCacheManager
    assert backends.default_provider() is provider

def test_default_provider_memory(monkeypatch):
    import memocache.backends as backends
    monkeypatch.setattr(backends, '_default_provider', None)
    monkeypatch.delenv(backends.URL_ENV_VAR, raising=False)
    assert backends.default_provider().manager_cls is MemoryCacheManager

def test_extra_strategies():
    """Strategies can veto reads and see writes, after the expiry policy has run."""
    class BlockKey(CacheStrategy):
        def __init__(self, blocked):
            super().__init__()
            self.blocked = blocked
            self.written = []

        def pre_get(self, key):
            return key != self.blocked

        def post_set(self, key, value):
            self.written.append(key)

    strategy = BlockKey('secret')
    backend = MemoryBackend('with-strategy', strategies=[strategy])
    assert backend.strategies[0] is backend.expiry_policy
    backend.put('secret', 1)
    backend.put('public', 2)
    assert backend.get('secret') is CACHE_MISS
    assert not backend.contains_key('secret')
    assert backend.get('public') == 2
    assert strategy.written == ['secret', 'public']
