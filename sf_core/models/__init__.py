"""
StockFlow 数据模型包
"""
from .base import Base
from .products import Product, Variant
from .sales import PurchaseItem

__all__ = [
    "Base",
    "Product",
    "Variant",
    "PurchaseItem",
]
