"""
商品输入校验与输出模型
"""
from datetime import datetime
from decimal import Decimal
from typing import Any, List, Optional, Type, TypeVar, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from sf_core.utils.errors import ValidationError

M = TypeVar("M", bound=BaseModel)


# 输入模型
class VariantInput(BaseModel):
    """规格输入（以尺码为键，无ID）"""
    size: Decimal = Field(ge=0, max_digits=10, decimal_places=2, description="尺码")
    price: Decimal = Field(ge=0, max_digits=18, decimal_places=2, description="售价")
    quantity: int = Field(ge=0, description="库存数量")


def _ensure_unique_sizes(variants: Optional[List[VariantInput]]) -> Optional[List[VariantInput]]:
    if variants is None:
        return variants
    seen = set()
    for variant in variants:
        # Decimal 按数值比较：10 与 10.00 为同一尺码
        if variant.size in seen:
            raise ValueError(f"Duplicate variant size: {variant.size}")
        seen.add(variant.size)
    return variants


class ProductCreate(BaseModel):
    """创建商品输入"""
    model_config = ConfigDict(str_strip_whitespace=True)

    title: str = Field(min_length=1, description="商品标题")
    description: str = Field(default="", description="商品描述")
    image_id: Optional[str] = Field(default=None, description="图片引用")
    variants: List[VariantInput] = Field(min_length=1, description="规格列表")

    @field_validator("variants")
    @classmethod
    def validate_unique_sizes(cls, v):
        return _ensure_unique_sizes(v)


class ProductUpdate(BaseModel):
    """更新商品输入（稀疏补丁：只应用调用方提供的字段）"""
    model_config = ConfigDict(str_strip_whitespace=True)

    title: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    image_id: Optional[str] = None
    variants: Optional[List[VariantInput]] = None

    @field_validator("variants")
    @classmethod
    def validate_unique_sizes(cls, v):
        return _ensure_unique_sizes(v)

    def product_fields(self) -> dict:
        """返回需要写入 products 表的字段"""
        column_map = {"title": "title", "description": "description", "image_id": "image"}
        return {
            column: getattr(self, field)
            for field, column in column_map.items()
            if field in self.model_fields_set and getattr(self, field) is not None
        }


def validate_input(model_cls: Type[M], data: Union[M, dict, Any], code: str) -> M:
    """校验调用方输入，失败时抛出带字段路径的 ValidationError"""
    if isinstance(data, model_cls):
        return data
    try:
        return model_cls.model_validate(data)
    except PydanticValidationError as e:
        errors = e.errors()
        fields = [".".join(str(part) for part in err["loc"]) or "__root__" for err in errors]
        detail = "; ".join(
            f"{field}: {err['msg']}" for field, err in zip(fields, errors)
        )
        raise ValidationError(code=code, detail=detail, fields=fields) from e


# 输出模型
class VariantOut(BaseModel):
    """规格"""
    model_config = ConfigDict(from_attributes=True)

    id: int
    size: Decimal
    price: Decimal
    quantity: int
    deleted_at: Optional[datetime] = None


class ProductWithVariants(BaseModel):
    """商品及其有效规格"""
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    description: str
    image: Optional[str] = None
    created_at: datetime
    deleted_at: Optional[datetime] = None
    variants: List[VariantOut] = Field(default_factory=list)


class ProductPage(BaseModel):
    """商品分页结果"""
    data: List[ProductWithVariants]
    total: int


class VariantForSale(BaseModel):
    """收银选品用的精简规格"""
    model_config = ConfigDict(from_attributes=True)

    id: int
    size: Decimal
    price: Decimal
    quantity: int


class ProductForSale(BaseModel):
    """收银选品用的精简商品"""
    id: int
    title: str
    image: Optional[str] = None
    variants: List[VariantForSale] = Field(default_factory=list)


class VariantSale(BaseModel):
    """规格销售汇总"""
    id: int
    size: Decimal
    stock: int
    price: Decimal
    sold: int = 0
    revenue: Decimal = Decimal("0")
