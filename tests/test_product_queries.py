"""
商品查询服务测试：缓存优先列表、分页、模糊搜索、收银选品、销售汇总
"""
from datetime import datetime, timezone
from decimal import Decimal

import pytest

from sf_core.schemas.products import ProductWithVariants


async def seed_many(seed_product, count):
    return [await seed_product(f"Product {i:02d}") for i in range(1, count + 1)]


@pytest.mark.asyncio
async def test_default_first_page_is_served_from_cache(query_service, cache, seed_product):
    await seed_product("Stored product")
    cached_product = ProductWithVariants(
        id=999,
        title="Cached only",
        description="",
        created_at=datetime(2026, 1, 1, tzinfo=timezone.utc),
    )
    await cache.products.set([cached_product])
    await cache.count.set(1)

    result = await query_service.list_products("")

    assert result.success
    assert [p.id for p in result.data.data] == [999]
    assert result.data.total == 1


@pytest.mark.asyncio
async def test_first_page_cache_miss_populates_from_store(query_service, cache, seed_product):
    ids = await seed_many(seed_product, 12)

    result = await query_service.list_products()

    expected = list(reversed(ids))[:10]
    assert [p.id for p in result.data.data] == expected
    assert result.data.total == 12
    assert [p.id for p in await cache.products.get()] == expected
    assert await cache.count.get() == 12


@pytest.mark.asyncio
async def test_other_pages_bypass_cache(query_service, cache, cache_backend, seed_product):
    ids = await seed_many(seed_product, 35)
    await query_service.list_products("")  # 填充首页缓存
    cache_backend.calls.clear()

    result = await query_service.list_products("", offset=2, limit=10)

    # 按ID倒序的第 21-30 行
    assert [p.id for p in result.data.data] == list(reversed(ids))[20:30]
    assert ("get", cache.products.key) not in cache_backend.calls
    assert ("set", cache.products.key) not in cache_backend.calls


@pytest.mark.asyncio
async def test_non_default_limit_bypasses_cache(query_service, cache, seed_product):
    ids = await seed_many(seed_product, 5)
    await cache.products.set([])

    result = await query_service.list_products(None, offset=0, limit=3)

    assert [p.id for p in result.data.data] == list(reversed(ids))[:3]
    assert await cache.products.get() == []


@pytest.mark.asyncio
async def test_listing_excludes_deleted_products_and_variants(query_service, seed_product):
    live = await seed_product("Live", variants=[(9, "10.00", 1), (10, "10.00", 1)], deleted_sizes=[10])
    await seed_product("Deleted", deleted=True)
    await seed_product("No active variants", variants=[(9, "10.00", 1)], deleted_sizes=[9])

    result = await query_service.list_products()

    assert [p.id for p in result.data.data] == [live]
    assert [v.size for v in result.data.data[0].variants] == [Decimal("9")]


@pytest.mark.asyncio
async def test_listing_falls_back_to_store_when_cache_is_down(query_service, cache_backend, seed_product):
    ids = await seed_many(seed_product, 3)
    cache_backend.fail = True

    result = await query_service.list_products()

    assert result.success
    assert [p.id for p in result.data.data] == list(reversed(ids))
    assert result.data.total == 3


@pytest.mark.asyncio
async def test_search_threshold_is_strict(query_service, cache_backend, seed_product, similarity_scores):
    at_boundary = await seed_product("Boundary Boot")
    above = await seed_product("Above Boot")
    below = await seed_product("Below Boot")
    strong = await seed_product("Strong Boot")
    similarity_scores.update({
        "Boundary Boot": 0.3,
        "Above Boot": 0.31,
        "Below Boot": 0.25,
        "Strong Boot": 0.9,
    })

    result = await query_service.list_products("boot")

    ids = [p.id for p in result.data.data]
    assert ids == [strong, above]
    assert at_boundary not in ids and below not in ids
    assert result.data.total == 2
    # 模糊搜索不读写缓存
    assert cache_backend.calls == []


@pytest.mark.asyncio
async def test_search_total_counts_all_matches_across_pages(query_service, seed_product, similarity_scores):
    for i in range(5):
        title = f"Match {i}"
        await seed_product(title)
        similarity_scores[title] = 0.5 + i / 100
    await seed_product("Unrelated")
    similarity_scores["Unrelated"] = 0.0

    result = await query_service.list_products("match", offset=1, limit=2)

    assert [p.title for p in result.data.data] == ["Match 2", "Match 1"]
    assert result.data.total == 5


@pytest.mark.asyncio
async def test_search_uses_trigram_similarity(query_service, seed_product):
    sneaker = await seed_product("Canvas Sneaker")
    await seed_product("Leather Wallet")

    result = await query_service.list_products("sneaker")

    assert [p.id for p in result.data.data] == [sneaker]
    assert result.data.total == 1


@pytest.mark.asyncio
async def test_search_with_no_matches(query_service, seed_product):
    await seed_product("Leather Wallet")

    result = await query_service.list_products("zzz")

    assert result.success
    assert result.data.data == []
    assert result.data.total == 0


@pytest.mark.asyncio
async def test_get_product_returns_active_variants(query_service, seed_product):
    product_id = await seed_product(
        "Derby",
        variants=[(11, "70.00", 1), (9, "70.00", 2), (10, "70.00", 3)],
        deleted_sizes=[10],
    )

    result = await query_service.get_product(product_id)

    assert result.success
    assert result.data.id == product_id
    assert [v.size for v in result.data.variants] == [Decimal("9"), Decimal("11")]


@pytest.mark.asyncio
async def test_get_missing_product_is_empty_result(query_service):
    result = await query_service.get_product(12345)

    assert result.success
    assert result.data is None


@pytest.mark.asyncio
async def test_products_for_sale(query_service, seed_product, similarity_scores):
    match = await seed_product("Sandal", variants=[(8, "25.00", 3), (9, "25.00", 0)], deleted_sizes=[9])
    await seed_product("Sandal Deleted", deleted=True)
    await seed_product("Sandal Weak")
    similarity_scores.update({"Sandal": 0.25, "Sandal Deleted": 0.9, "Sandal Weak": 0.2})

    result = await query_service.get_products_for_sale("sandal")

    assert result.success
    assert [p.id for p in result.data] == [match]
    assert [(v.size, v.quantity) for v in result.data[0].variants] == [(Decimal("8"), 3)]


@pytest.mark.asyncio
async def test_products_for_sale_empty_query_short_circuits(query_service, seed_product):
    await seed_product("Sandal")

    result = await query_service.get_products_for_sale("   ")

    assert result.success
    assert result.data == []


@pytest.mark.asyncio
async def test_variant_sales_include_variants_without_sales(query_service, db_manager, seed_product, seed_purchase):
    product_id = await seed_product(
        "Runner",
        variants=[(10, "40.00", 5), (9, "40.00", 2), (12, "40.00", 1)],
        deleted_sizes=[12],
    )
    variants = (await query_service.get_product(product_id)).data.variants
    size_nine = next(v for v in variants if v.size == Decimal("9"))
    await seed_purchase(size_nine.id, 2, "40.00")
    await seed_purchase(size_nine.id, 1, "32.50")

    result = await query_service.get_variant_sales(product_id)

    assert result.success
    assert [s.size for s in result.data] == [Decimal("9"), Decimal("10")]
    nine, ten = result.data
    assert nine.sold == 3
    assert nine.revenue == Decimal("112.50")
    assert nine.stock == 2
    assert ten.sold == 0
    assert ten.revenue == Decimal("0")


@pytest.mark.asyncio
async def test_variant_total_sold(query_service, seed_product, seed_purchase):
    product_id = await seed_product("Clog", variants=[(7, "30.00", 4), (8, "30.00", 4)])
    variants = (await query_service.get_product(product_id)).data.variants
    size_seven = next(v for v in variants if v.size == Decimal("7"))
    await seed_purchase(size_seven.id, 2, "30.00")
    await seed_purchase(size_seven.id, 3, "28.00")

    assert (await query_service.get_variant_total_sold(product_id, "7")).data == 5
    assert (await query_service.get_variant_total_sold(product_id, 8)).data == 0


@pytest.mark.asyncio
async def test_count_active_products(query_service, seed_product):
    await seed_product("A")
    await seed_product("B")
    await seed_product("C", deleted=True)

    assert await query_service.count_active_products() == 2
