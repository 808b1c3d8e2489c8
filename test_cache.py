from conftest import FakeClock
from legal_research.services.cache import ResponseCache, make_cache_key


def test_cache_key_is_independent_of_param_order():
    a = make_cache_key("/search/", {"formInput": "bail", "pagenum": "0"})
    b = make_cache_key("/search/", {"pagenum": "0", "formInput": "bail"})
    assert a == b
    assert a != make_cache_key("/search/", {"formInput": "bail", "pagenum": "1"})
    assert a != make_cache_key("/doc/1/", {"formInput": "bail", "pagenum": "0"})


def test_entry_expires_on_read():
    clock = FakeClock()
    cache = ResponseCache(timeout_seconds=60, clock=clock)
    cache.set("k", {"docs": []})

    clock.advance(60)
    assert cache.get("k") == {"docs": []}
    clock.advance(1)
    assert cache.get("k") is None
    assert len(cache) == 0


def test_set_overwrites_and_restarts_the_clock():
    clock = FakeClock()
    cache = ResponseCache(timeout_seconds=10, clock=clock)
    cache.set("k", 1)
    clock.advance(8)
    cache.set("k", 2)
    clock.advance(8)
    assert cache.get("k") == 2


def test_disabled_cache_stores_nothing():
    cache = ResponseCache(timeout_seconds=10, enabled=False)
    cache.set("k", 1)
    assert cache.get("k") is None
    assert len(cache) == 0


def test_clear():
    cache = ResponseCache(timeout_seconds=10)
    cache.set("a", 1)
    cache.set("b", 2)
    cache.clear()
    assert len(cache) == 0
