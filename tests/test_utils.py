import pytest

from app.utils.feed import ChangeFeed
from app.utils.rate_limit import SlidingWindowLimiter
from app.utils.ttl_cache import TTLCache


class FakeClock:
    def __init__(self, t=1000.0):
        self.t = t

    def __call__(self):
        return self.t


def test_limiter_window():
    clock = FakeClock()
    lim = SlidingWindowLimiter(2, 60, clock=clock)
    assert lim.allow("a") and lim.allow("a")
    assert not lim.allow("a")
    # otra clave no comparte cupo
    assert lim.allow("b")
    assert lim.remaining("a") == 0
    assert lim.retry_after("a") == 60

    clock.t += 30
    assert lim.retry_after("a") == 30
    clock.t += 30
    assert lim.allow("a")
    assert lim.remaining("a") == 1


def test_limiter_bad_args():
    with pytest.raises(ValueError):
        SlidingWindowLimiter(0, 60)
    with pytest.raises(ValueError):
        SlidingWindowLimiter(5, 0)


def test_ttl_cache_expiry_and_invalidate():
    clock = FakeClock()
    cache = TTLCache(ttl=10, clock=clock)
    calls = []

    def loader():
        calls.append(1)
        return len(calls)

    assert cache.get_or_load("k", loader) == 1
    assert cache.get_or_load("k", loader) == 1
    clock.t += 10
    assert cache.get_or_load("k", loader) == 2
    cache.invalidate("k")
    assert cache.get("k") is None
    assert cache.get_or_load("k", loader) == 3


def test_ttl_cache_max_entries():
    cache = TTLCache(ttl=10, max_entries=2, clock=FakeClock())
    cache.set("a", 1)
    cache.set("b", 2)
    cache.set("c", 3)
    assert len(cache) == 2
    assert cache.get("a") is None and cache.get("c") == 3


def test_feed_subscribe_unsubscribe():
    feed = ChangeFeed()
    seen = []
    sub = feed.subscribe("products", seen.append)
    feed.publish("products", "created", key=1)
    feed.publish("sales", "created", key=9)
    assert [(e.topic, e.action, e.key) for e in seen] == [("products", "created", 1)]

    sub.unsubscribe()
    sub.unsubscribe()
    feed.publish("products", "deleted", key=1)
    assert len(seen) == 1
    assert feed.subscriber_count("products") == 0


def test_feed_broken_subscriber_does_not_stop_others():
    feed = ChangeFeed()
    seen = []

    def boom(_ev):
        raise RuntimeError("x")

    feed.subscribe("register", boom)
    feed.subscribe("register", seen.append)
    ev = feed.publish("register", "opened", key="op-1-2025-03-10", operator_id="op-1")
    assert seen == [ev]
    assert ev.data == {"operator_id": "op-1"}


def test_limiter_hit_and_key_cleanup():
    clock = FakeClock()
    lim = SlidingWindowLimiter(1, 10, clock=clock)
    assert lim.remaining("a") == 1
    # consultar no crea claves
    assert len(lim) == 0
    lim.hit("a")
    assert lim.remaining("a") == 0 and not lim.allow("a")
    clock.t += 10
    assert lim.remaining("a") == 1
    assert len(lim) == 0


def test_ttl_cache_serves_stale_on_loader_error():
    clock = FakeClock()
    cache = TTLCache(ttl=10, clock=clock)
    cache.set("k", "viejo")
    clock.t += 10

    def failing():
        raise RuntimeError("caída")

    assert cache.get("k") is None
    assert cache.get_or_load("k", failing, fallback_on=(RuntimeError,)) == "viejo"
    with pytest.raises(RuntimeError):
        cache.get_or_load("k", failing)
    cache.invalidate("k")
    with pytest.raises(RuntimeError):
        cache.get_or_load("k", failing, fallback_on=(RuntimeError,))
