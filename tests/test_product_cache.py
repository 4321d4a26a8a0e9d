"""
商品缓存测试
"""
from datetime import datetime, timezone
from decimal import Decimal

import pytest
import redis.asyncio as redis

from sf_core.cache import ProductCache, RedisCacheBackend
from sf_core.schemas.products import ProductWithVariants, VariantOut
from sf_core.utils.errors import CacheError


def make_product(product_id: int) -> ProductWithVariants:
    return ProductWithVariants(
        id=product_id,
        title=f"Product {product_id}",
        description="",
        image=None,
        created_at=datetime(2026, 1, 1, tzinfo=timezone.utc),
        variants=[VariantOut(id=product_id * 10, size=Decimal("9.5"), price=Decimal("49.90"), quantity=2)],
    )


@pytest.mark.asyncio
async def test_list_cache_round_trips_products(cache):
    assert await cache.products.get() is None

    await cache.products.set([make_product(2), make_product(1)])
    cached = await cache.products.get()

    assert [p.id for p in cached] == [2, 1]
    assert cached[0].variants[0].size == Decimal("9.5")
    assert cached[0].variants[0].price == Decimal("49.90")


@pytest.mark.asyncio
async def test_list_cache_is_replaced_wholesale(cache):
    await cache.products.set([make_product(1), make_product(2)])
    await cache.products.set([make_product(3)])

    assert [p.id for p in await cache.products.get()] == [3]

    await cache.products.clear()
    assert await cache.products.get() is None


@pytest.mark.asyncio
async def test_count_cache_incr_and_decr_return_new_value(cache):
    assert await cache.count.get() is None

    await cache.count.set(5)
    assert await cache.count.incr() == 6
    assert await cache.count.decr() == 5
    assert await cache.count.get() == 5


@pytest.mark.asyncio
async def test_cache_keys_use_configured_prefix(cache_backend):
    cache = ProductCache(cache_backend, "shop-a:")
    await cache.count.set(1)
    await cache.products.set([])

    assert set(cache_backend.store) == {"shop-a:products:count", "shop-a:products:list"}


class _UnavailableRedis:
    async def get(self, key):
        raise redis.ConnectionError("connection refused")

    async def incr(self, key):
        raise redis.TimeoutError("timed out")


@pytest.mark.asyncio
async def test_redis_backend_wraps_redis_errors():
    backend = RedisCacheBackend(_UnavailableRedis())

    with pytest.raises(CacheError):
        await backend.get("sf:products:list")

    with pytest.raises(CacheError) as exc_info:
        await backend.incr("sf:products:count")
    assert exc_info.value.status == 503
