"""
StockFlow 缓存层
"""
from .backend import CacheBackend, RedisCacheBackend
from .products import ProductCache, ProductListCache, ProductCountCache

__all__ = [
    "CacheBackend",
    "RedisCacheBackend",
    "ProductCache",
    "ProductListCache",
    "ProductCountCache",
]
