import asyncio

import pytest

from app.services.cache import DEFAULT_TTL, CacheService, DataType


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache(clock):
    return CacheService(clock=clock)


def test_set_and_get(cache):
    cache.set("a", {"x": 1})
    assert cache.get("a") == {"x": 1}
    assert "a" in cache
    assert len(cache) == 1


def test_entry_expires_after_ttl(cache, clock):
    cache.set("a", 1, 10)
    clock.now += 9
    assert cache.get("a") == 1
    clock.now += 2
    assert cache.get("a") is None
    assert len(cache) == 0


def test_ttl_by_data_type(cache, clock):
    cache.set("search", [], DataType.SEARCH_RESULTS)
    cache.set("history", [], DataType.HISTORICAL_DATA)
    clock.now += DEFAULT_TTL[DataType.SEARCH_RESULTS] + 1
    assert cache.get("search") is None
    assert cache.get("history") == []


def test_zero_ttl_never_expires(cache, clock):
    cache.set("forever", "v", 0)
    clock.now += 10 ** 9
    assert cache.get("forever") == "v"


def test_delete_and_clear(cache):
    cache.set("a", 1)
    cache.set("b", 2)
    assert cache.delete("a") is True
    assert cache.delete("a") is False
    cache.clear()
    assert len(cache) == 0


def test_cleanup_removes_expired_entries(cache, clock):
    cache.set("short", 1, 5)
    cache.set("long", 2, 500)
    clock.now += 10
    assert cache.cleanup() == 1
    assert "long" in cache
    assert "short" not in cache


def test_stats_hit_rate(cache):
    assert cache.get_stats()["hit_rate"] == "0%"
    cache.set("a", 1)
    cache.get("a")
    cache.get("missing")
    stats = cache.get_stats()
    assert stats["hits"] == 1
    assert stats["misses"] == 1
    assert stats["sets"] == 1
    assert stats["hit_rate"] == "50.00%"


def test_get_or_set_caches_loader_result(cache):
    calls = []

    async def loader():
        calls.append(1)
        return {"price": 100}

    async def run():
        first = await cache.get_or_set("k", loader, 60)
        second = await cache.get_or_set("k", loader, 60)
        return first, second

    assert asyncio.run(run()) == ({"price": 100}, {"price": 100})
    assert len(calls) == 1


def test_get_or_set_coalesces_concurrent_misses(cache):
    calls = []

    async def loader():
        calls.append(1)
        await asyncio.sleep(0.01)
        return "value"

    async def run():
        return await asyncio.gather(*(cache.get_or_set("k", loader) for _ in range(5)))

    assert asyncio.run(run()) == ["value"] * 5
    assert len(calls) == 1
    assert cache.get_stats()["inflight"] == 0


def test_get_or_set_propagates_errors_to_all_waiters(cache):
    calls = []

    async def loader():
        calls.append(1)
        await asyncio.sleep(0.01)
        raise RuntimeError("upstream down")

    async def run():
        return await asyncio.gather(
            *(cache.get_or_set("k", loader) for _ in range(3)),
            return_exceptions=True,
        )

    results = asyncio.run(run())
    assert len(calls) == 1
    assert all(isinstance(r, RuntimeError) for r in results)
    assert "k" not in cache


def test_get_or_set_waiter_retries_when_leader_cancelled(cache):
    calls = []

    async def loader():
        calls.append(1)
        await asyncio.sleep(0.01)
        return "value"

    async def run():
        leader = asyncio.ensure_future(cache.get_or_set("k", loader))
        await asyncio.sleep(0)
        waiter = asyncio.ensure_future(cache.get_or_set("k", loader))
        await asyncio.sleep(0)

        leader.cancel()
        with pytest.raises(asyncio.CancelledError):
            await leader
        return await waiter

    assert asyncio.run(run()) == "value"
    assert len(calls) == 2
    assert cache.get("k") == "value"
    assert cache.get_stats()["inflight"] == 0


def test_get_or_set_does_not_cache_none(cache):
    async def loader():
        return None

    assert asyncio.run(cache.get_or_set("k", loader)) is None
    assert "k" not in cache


def test_cleanup_task_starts_and_stops():
    cache = CacheService()

    async def run():
        cache.set("gone", 1, 1)
        cache._store["gone"].expires_at = 0
        cache.start_cleanup(interval=0.01)
        await asyncio.sleep(0.05)
        await cache.stop_cleanup()

    asyncio.run(run())
    assert "gone" not in cache._store
    assert cache.get_stats()["cleanups"] >= 1
