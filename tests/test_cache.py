import datetime as dt

from farmbot.utils import cache as cache_mod
from farmbot.utils.cache import (
    IST, SimpleTTLCache, market_cache_key, seconds_until_end_of_day,
)


class TestSimpleTTLCache:
    def test_expiry(self, monkeypatch):
        c = SimpleTTLCache(default_ttl=10)
        now = [1000.0]
        monkeypatch.setattr(c, "_now", lambda: now[0])
        c.set("k", "v")
        assert c.get("k") == "v"
        now[0] += 11
        assert c.get("k") is None
        assert len(c) == 0

    def test_per_key_ttl_and_sweep(self, monkeypatch):
        c = SimpleTTLCache(default_ttl=100)
        now = [0.0]
        monkeypatch.setattr(c, "_now", lambda: now[0])
        c.set("short", 1, ttl=5)
        c.set("long", 2)
        now[0] = 6
        assert c.sweep() == 1
        assert list(c.keys()) == ["long"]

    def test_no_ttl_never_expires(self, monkeypatch):
        c = SimpleTTLCache(default_ttl=None)
        now = [0.0]
        monkeypatch.setattr(c, "_now", lambda: now[0])
        c.set("k", "v")
        now[0] = 10 ** 9
        assert c.get("k") == "v"

    def test_rewrite_is_idempotent(self):
        c = SimpleTTLCache()
        c.set("k", [1])
        c.set("k", [1])
        assert len(c) == 1

    def test_stats(self):
        c = SimpleTTLCache()
        c.set("k", 0)
        assert c.get("k") == 0
        assert c.get("nope") is None
        assert c.stats() == {"keys": 1, "hits": 1, "misses": 1}


class TestMarketKeys:
    def test_key_ignores_commodity_order(self):
        d = dt.date(2024, 1, 1)
        assert market_cache_key("mh|pune", ["wheat", "onion"], d) == market_cache_key("mh|pune", ["onion", "wheat"], d)

    def test_key_all_and_day(self):
        key = market_cache_key("anywhere", [], dt.date(2024, 1, 1))
        assert key == "market:anywhere:all:2024-01-01"

    def test_seconds_until_end_of_day(self):
        now = dt.datetime(2024, 1, 1, 23, 0, 0, tzinfo=IST)
        assert seconds_until_end_of_day(now) == 3600
        assert seconds_until_end_of_day(dt.datetime(2024, 1, 1, 23, 59, 59, 999999, tzinfo=IST)) == 1


def test_flush_prefix(monkeypatch):
    c = SimpleTTLCache()
    monkeypatch.setattr(cache_mod, "cache", c)
    c.set("market:a", 1)
    c.set("market:b", 2)
    c.set("geo:pune", 3)
    assert cache_mod.flush_prefix("market:") == 2
    assert cache_mod.flush_all() == 1
