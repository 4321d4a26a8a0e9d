"""
StockFlow 核心服务模块
"""
from .base import BaseService, ServiceResult
from .variant_reconciler import VariantDiff, VariantUpdate, reconcile_variants
from .product_query_service import ProductQueryService
from .product_service import ProductService

__all__ = [
    "BaseService",
    "ServiceResult",
    "VariantDiff",
    "VariantUpdate",
    "reconcile_variants",
    "ProductQueryService",
    "ProductService",
]
