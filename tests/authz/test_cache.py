import pytest

from src.campus.authz import BranchHierarchy, PermissionCatalog, ReferenceData, ReferenceDataCache


class FakeClock:
    def __init__(self):
        self.now = 100.0

    def __call__(self):
        return self.now


def make_data():
    return ReferenceData(hierarchy=BranchHierarchy([]), catalog=PermissionCatalog([], [], [], []))


def test_entry_expires_after_ttl():
    clock = FakeClock()
    cache = ReferenceDataCache(ttl_seconds=5, clock=clock)
    data = make_data()
    cache.store(data)
    assert cache.peek() is data
    clock.now += 5.1
    assert cache.peek() is None


def test_invalidate_drops_entry_and_bumps_generation():
    cache = ReferenceDataCache(ttl_seconds=60, clock=FakeClock())
    cache.store(make_data())
    generation = cache.generation
    cache.invalidate()
    assert cache.peek() is None
    assert cache.generation == generation + 1


def test_stale_load_is_discarded():
    cache = ReferenceDataCache(ttl_seconds=60, clock=FakeClock())
    generation = cache.generation
    cache.invalidate()
    cache.store(make_data(), generation)
    assert cache.peek() is None


@pytest.mark.asyncio
async def test_get_or_load_reuses_fresh_entry():
    cache = ReferenceDataCache(ttl_seconds=60, clock=FakeClock())
    calls = []

    async def loader():
        calls.append(1)
        return make_data()

    first = await cache.get_or_load(loader)
    second = await cache.get_or_load(loader)
    assert first is second
    assert len(calls) == 1

    cache.invalidate()
    await cache.get_or_load(loader)
    assert len(calls) == 2
