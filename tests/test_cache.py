"""
TTL cache, rate limiter and runtime flag override store
"""

import uuid

import pytest

from retail_api.core.cache import TTLCache
from retail_api.core.state import ChangeRateLimiter, FlagOverrideStore


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


# Fixtures
@pytest.fixture
def clock():
    return FakeClock()


def test_cache_entry_expires_after_ttl(clock):
    cache = TTLCache(60, clock=clock)
    cache.set("key", "value")

    clock.advance(59)
    assert cache.get("key") == "value"

    clock.advance(1)
    assert cache.get("key") is None
    assert len(cache) == 0


def test_cache_evicts_least_recently_used(clock):
    cache = TTLCache(60, max_entries=2, clock=clock)
    cache.set("a", 1)
    cache.set("b", 2)
    cache.get("a")

    cache.set("c", 3)

    assert cache.get("a") == 1
    assert cache.get("b") is None
    assert cache.get("c") == 3


def test_zero_ttl_disables_caching(clock):
    cache = TTLCache(0, clock=clock)
    cache.set("key", "value")

    assert cache.get("key") is None


def test_cache_requires_positive_capacity():
    with pytest.raises(ValueError):
        TTLCache(60, max_entries=0)


def test_cache_clear(clock):
    cache = TTLCache(60, clock=clock)
    cache.set("key", "value")
    cache.clear()

    assert len(cache) == 0


def test_rate_limiter_quota_per_key():
    limiter = ChangeRateLimiter(per_hour=2)

    assert limiter.record("tenant") is True
    assert limiter.allowed("tenant") is True
    assert limiter.record("tenant") is True
    assert limiter.allowed("tenant") is False
    assert limiter.record("tenant") is False
    assert limiter.record("other") is True


def test_rate_limiter_allowed_does_not_consume():
    limiter = ChangeRateLimiter(per_hour=1)

    for _ in range(3):
        assert limiter.allowed("tenant") is True

    assert limiter.record("tenant") is True


def test_rate_limiter_reset():
    limiter = ChangeRateLimiter(per_hour=1)
    limiter.record("tenant")
    limiter.record("other")

    limiter.reset("tenant")
    assert limiter.allowed("tenant") is True
    assert limiter.allowed("other") is False

    limiter.reset()
    assert limiter.allowed("other") is True


def test_flag_override_store_scopes():
    store = FlagOverrideStore()
    tenant_id = uuid.uuid4()

    store.set("beta", True)
    store.set("beta", False, tenant_id)

    assert store.get("beta") is True
    assert store.get("beta", tenant_id) is False
    assert store.get("other") is None
    assert [(o["flag"], o["tenant_id"], o["value"]) for o in store.items()] == [
        ("beta", None, True),
        ("beta", tenant_id, False),
    ]

    store.set("beta", None, tenant_id)
    assert store.get("beta", tenant_id) is None
    store.clear()
    assert store.items() == []
