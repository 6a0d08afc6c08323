"""Tests for newsdesk.services.request_cache."""

from unittest.mock import MagicMock, patch

from newsdesk.services.request_cache import RequestCache, make_cache_key, normalize_params


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


def test_normalize_params_sorts_lowers_and_drops_none():
    assert normalize_params({"page": 1, "category": "  AI ", "x": None}) == {"category": "ai", "page": 1}


def test_key_ignores_param_order_and_case():
    a = make_cache_key("/v1/news", {"category": "AI", "page": 1}, "ctx")
    b = make_cache_key("/v1/news", {"page": 1, "category": "ai"}, "ctx")
    assert a == b


def test_same_entry_for_equivalent_requests():
    cache = RequestCache(ttl_seconds=60)
    cache.set("/v1/news", {"category": "AI", "page": 1}, {"articles": [1]}, context="c1")
    assert cache.get("/v1/news", {"page": 1, "category": "ai"}, "c1") == {"articles": [1]}


def test_context_isolates_entries():
    cache = RequestCache(ttl_seconds=60)
    cache.set("/v1/news", {"category": "ai"}, "alice's", context="alice")
    assert cache.get("/v1/news", {"category": "ai"}, "bob") is None
    assert cache.get("/v1/news", {"category": "ai"}, "alice") == "alice's"


def test_missing_context_means_anonymous():
    cache = RequestCache(ttl_seconds=60)
    cache.set("/v1/news", {"category": "ai"}, "v")
    assert cache.get("/v1/news", {"category": "ai"}, "anonymous") == "v"


def test_endpoint_is_part_of_key():
    cache = RequestCache(ttl_seconds=60)
    cache.set("/v1/news", {"category": "ai"}, "v")
    assert cache.get("/v1/other", {"category": "ai"}) is None


def test_entry_expires_after_ttl():
    clock = FakeClock()
    cache = RequestCache(ttl_seconds=30, clock=clock)
    cache.set("/v1/news", {"page": 1}, "v")
    clock.now += 29
    assert cache.get("/v1/news", {"page": 1}) == "v"
    clock.now += 1
    assert cache.get("/v1/news", {"page": 1}) is None
    assert cache.keys() == []


def test_custom_ttl_overrides_default():
    clock = FakeClock()
    cache = RequestCache(ttl_seconds=60, clock=clock)
    cache.set("/v1/news", {"page": 1}, "v", ttl=5)
    clock.now += 6
    assert not cache.has("/v1/news", {"page": 1})


def test_sweep_reclaims_expired_entries():
    clock = FakeClock()
    cache = RequestCache(ttl_seconds=10, clock=clock)
    cache.set("/a", {}, 1)
    cache.set("/b", {}, 2, ttl=100)
    clock.now += 11
    assert cache.sweep() == 1
    assert len(cache.keys()) == 1


def test_delete_and_clear():
    cache = RequestCache()
    cache.set("/a", {"p": 1}, 1)
    cache.set("/b", {"p": 1}, 2)
    cache.delete("/a", {"p": 1})
    assert cache.get("/a", {"p": 1}) is None
    cache.clear()
    assert cache.keys() == []


def test_stats_count_hits_and_misses():
    cache = RequestCache()
    cache.get("/a", {})
    cache.set("/a", {}, 1)
    cache.get("/a", {})
    stats = cache.stats()
    assert stats["hits"] == 1
    assert stats["misses"] == 1
    assert stats["keys"] == 1


def test_read_failure_is_a_miss():
    cache = RequestCache()
    with patch("newsdesk.services.request_cache.make_cache_key", side_effect=TypeError("boom")):
        assert cache.get("/a", {"p": 1}) is None


def test_write_failure_is_swallowed():
    cache = RequestCache()
    with patch("newsdesk.services.request_cache.make_cache_key", side_effect=TypeError("boom")):
        cache.set("/a", {"p": 1}, "v")
    assert cache.keys() == []


def test_cache_is_bounded_by_maxsize():
    cache = RequestCache(ttl_seconds=60, maxsize=3)
    for page in range(10):
        cache.set("/v1/news", {"category": "ai", "page": page}, page, context="10.0.0.1")
    assert len(cache.keys()) == 3
    assert cache.stats()["maxsize"] == 3


def test_zero_ttl_is_not_replaced_by_default():
    clock = FakeClock()
    cache = RequestCache(ttl_seconds=60, clock=clock)
    cache.set("/a", {"p": 1}, "old")
    cache.set("/a", {"p": 1}, "new", ttl=0)
    assert cache.get("/a", {"p": 1}) is None
    assert cache.keys() == []


def test_delete_reports_whether_entry_existed():
    cache = RequestCache()
    cache.set("/a", {"p": 1}, 1)
    assert cache.has("/a", {"p": 1})
    assert cache.delete("/a", {"p": 1}) is True
    assert cache.delete("/a", {"p": 1}) is False


def test_clear_returns_count():
    cache = RequestCache()
    cache.set("/a", {}, 1)
    cache.set("/b", {}, 2)
    assert cache.clear() == 2


def test_maintenance_operations_fail_open():
    cache = RequestCache()
    broken = MagicMock()
    broken.clear.side_effect = RuntimeError("boom")
    broken.expire.side_effect = RuntimeError("boom")
    cache._entries = broken

    assert cache.clear() == 0
    assert cache.sweep() == 0
    assert cache.keys() == []
    assert cache.stats()["keys"] == 0
