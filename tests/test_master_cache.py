"""Tests for the master item cache"""

import asyncio

import pytest

from qollect.engine.models import MasterDimension
from qollect.engine.provider import SnapshotEngineClient
from qollect.usage.master_cache import MasterItemCache


class CountingClient(SnapshotEngineClient):
    """Snapshot client counting master item property requests."""

    def __init__(self, snapshot):
        super().__init__(snapshot)
        self.dimension_requests = 0
        self.measure_requests = 0

    async def get_dimension_properties(self, dimension_id):
        self.dimension_requests += 1
        await asyncio.sleep(0)
        return await super().get_dimension_properties(dimension_id)

    async def get_measure_properties(self, measure_id):
        self.measure_requests += 1
        await asyncio.sleep(0)
        return await super().get_measure_properties(measure_id)


class TestMasterItemCache:
    """Test MasterItemCache"""

    @pytest.mark.asyncio
    async def test_resolves_and_caches(self, app_snapshot):
        client = CountingClient(app_snapshot)
        cache = MasterItemCache(client)
        first = await cache.resolve_dimension("dim-geo")
        second = await cache.resolve_dimension("dim-geo")
        assert first is second
        assert first.title == "Geography"
        assert first.levels == ["Region", "Country"]
        assert client.dimension_requests == 1

    @pytest.mark.asyncio
    async def test_concurrent_resolutions_share_one_request(self, app_snapshot):
        client = CountingClient(app_snapshot)
        cache = MasterItemCache(client)
        results = await asyncio.gather(*(cache.resolve_measure("msr-sales") for _ in range(5)))
        assert all(r is results[0] for r in results)
        assert results[0].expression == "Sum(Sales)"
        assert client.measure_requests == 1

    @pytest.mark.asyncio
    async def test_failed_resolution_cached_as_none(self, app_snapshot):
        client = CountingClient(app_snapshot)
        cache = MasterItemCache(client)
        assert await cache.resolve_dimension("nope") is None
        assert await cache.resolve_dimension("nope") is None
        assert client.dimension_requests == 1

    @pytest.mark.asyncio
    async def test_prime_avoids_requests(self, app_snapshot):
        client = CountingClient(app_snapshot)
        cache = MasterItemCache(client)
        primed = MasterDimension(id="dim-region", title="Primed")
        cache.prime([primed], [])
        assert await cache.resolve_dimension("dim-region") is primed
        assert client.dimension_requests == 0
        assert len(cache) == 1

    @pytest.mark.asyncio
    async def test_warm_fetches_all(self, app_snapshot):
        cache = MasterItemCache(SnapshotEngineClient(app_snapshot))
        await cache.warm()
        assert len(cache) == 4
        assert (await cache.resolve_measure("msr-margin")).expression == "Sum([Margin])"

    @pytest.mark.asyncio
    async def test_empty_id(self, client):
        cache = MasterItemCache(client)
        assert await cache.resolve_dimension("") is None
        assert await cache.resolve_measure("") is None
