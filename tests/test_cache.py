import asyncio

import pytest

from arena.services.cache import TTLCache


class CountingLoader:
    def __init__(self, value='loaded', fail_times=0, delay=0.0):
        self.calls = 0
        self.value = value
        self.fail_times = fail_times
        self.delay = delay

    async def __call__(self):
        self.calls += 1
        await asyncio.sleep(self.delay)
        if self.calls <= self.fail_times:
            raise RuntimeError('backing store down')
        return f"{self.value}-{self.calls}"


@pytest.mark.asyncio
async def test_hit_within_ttl_reuses_value():
    cache = TTLCache(default_ttl=60)
    loader = CountingLoader()

    assert await cache.cached('players', loader) == 'loaded-1'
    assert await cache.cached('players', loader) == 'loaded-1'
    assert loader.calls == 1
    assert 'players' in cache


@pytest.mark.asyncio
async def test_concurrent_misses_share_one_load():
    cache = TTLCache(default_ttl=60)
    loader = CountingLoader(delay=0.01)

    results = await asyncio.gather(*(cache.cached('rankings', loader) for _ in range(10)))

    assert loader.calls == 1
    assert set(results) == {'loaded-1'}


@pytest.mark.asyncio
async def test_failed_load_is_evicted():
    cache = TTLCache(default_ttl=60)
    loader = CountingLoader(fail_times=1)

    with pytest.raises(RuntimeError):
        await cache.cached('players', loader)
    assert 'players' not in cache

    assert await cache.cached('players', loader) == 'loaded-2'


@pytest.mark.asyncio
async def test_expired_entry_reloads():
    cache = TTLCache(default_ttl=60)
    loader = CountingLoader()

    await cache.cached('tournaments', loader, ttl=0)
    assert await cache.cached('tournaments', loader) == 'loaded-2'


@pytest.mark.asyncio
async def test_invalidate_and_invalidate_all():
    cache = TTLCache(default_ttl=60)
    loader = CountingLoader()

    await cache.cached('players', loader)
    await cache.cached('rankings', loader)

    cache.invalidate('players')
    assert 'players' not in cache
    assert 'rankings' in cache

    cache.invalidate_all()
    assert len(cache) == 0
