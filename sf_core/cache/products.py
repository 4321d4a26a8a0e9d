"""
商品缓存
- ProductListCache: 首页（无搜索、默认排序）商品快照
- ProductCountCache: 有效商品总数
"""
from typing import List, Optional

from sf_core.config import get_settings
from sf_core.schemas.products import ProductWithVariants
from .backend import CacheBackend


class ProductListCache:
    """首页商品列表缓存（整体覆盖，不做增量修补）"""

    def __init__(self, backend: CacheBackend, prefix: Optional[str] = None):
        self.backend = backend
        self.key = f"{prefix or get_settings().cache_key_prefix}products:list"

    async def get(self) -> Optional[List[ProductWithVariants]]:
        data = await self.backend.get(self.key)
        if data is None:
            return None
        return [ProductWithVariants.model_validate(item) for item in data]

    async def set(self, products: List[ProductWithVariants]) -> None:
        await self.backend.set(
            self.key,
            [product.model_dump(mode="json") for product in products]
        )

    async def clear(self) -> None:
        await self.backend.delete(self.key)


class ProductCountCache:
    """有效商品总数缓存"""

    def __init__(self, backend: CacheBackend, prefix: Optional[str] = None):
        self.backend = backend
        self.key = f"{prefix or get_settings().cache_key_prefix}products:count"

    async def get(self) -> Optional[int]:
        value = await self.backend.get(self.key)
        return None if value is None else int(value)

    async def set(self, total: int) -> None:
        await self.backend.set(self.key, int(total))

    async def incr(self) -> int:
        return await self.backend.incr(self.key)

    async def decr(self) -> int:
        return await self.backend.decr(self.key)


class ProductCache:
    """商品相关缓存的组合，由启动流程创建并注入服务"""

    def __init__(self, backend: CacheBackend, prefix: Optional[str] = None):
        self.products = ProductListCache(backend, prefix)
        self.count = ProductCountCache(backend, prefix)
