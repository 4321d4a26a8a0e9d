"""
StockFlow 输入输出模型
"""
from .products import (
    VariantInput,
    ProductCreate,
    ProductUpdate,
    VariantOut,
    ProductWithVariants,
    ProductPage,
    VariantForSale,
    ProductForSale,
    VariantSale,
    validate_input,
)

__all__ = [
    "VariantInput",
    "ProductCreate",
    "ProductUpdate",
    "VariantOut",
    "ProductWithVariants",
    "ProductPage",
    "VariantForSale",
    "ProductForSale",
    "VariantSale",
    "validate_input",
]
