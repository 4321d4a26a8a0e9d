"""
商品与规格数据模型
商品一对多规格，规格以尺码区分；两者均为软删除
"""
from datetime import datetime, timezone
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import (
    Integer, Text, Numeric, DateTime, ForeignKey,
    CheckConstraint, UniqueConstraint, Index, func
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Product(Base):
    """商品表"""
    __tablename__ = "products"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)

    title: Mapped[str] = mapped_column(Text, nullable=False, comment="商品标题")
    description: Mapped[str] = mapped_column(Text, nullable=False, default="", comment="商品描述")
    image: Mapped[Optional[str]] = mapped_column(Text, nullable=True, comment="图片引用")

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        server_default=func.now(),
        comment="创建时间"
    )
    # 非空即视为已删除
    deleted_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        comment="软删除时间"
    )

    variants: Mapped[List["Variant"]] = relationship(
        back_populates="product",
        lazy="raise",
    )

    __table_args__ = (
        Index("ix_products_deleted_at", "deleted_at"),
        # 标题模糊搜索（pg_trgm）
        Index(
            "ix_products_title_trgm",
            "title",
            postgresql_using="gin",
            postgresql_ops={"title": "gin_trgm_ops"},
        ),
    )


class Variant(Base):
    """商品规格表（尺码/价格/库存）"""
    __tablename__ = "variants"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    product_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("products.id"),
        nullable=False,
        comment="商品ID"
    )

    # 尺码是商品内的业务键
    size: Mapped[Decimal] = mapped_column(
        Numeric(10, 2),
        CheckConstraint("size >= 0"),
        nullable=False,
        comment="尺码"
    )
    price: Mapped[Decimal] = mapped_column(
        Numeric(18, 2),
        CheckConstraint("price >= 0"),
        nullable=False,
        comment="售价"
    )
    quantity: Mapped[int] = mapped_column(
        Integer,
        CheckConstraint("quantity >= 0"),
        nullable=False,
        default=0,
        comment="库存数量"
    )

    deleted_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        comment="软删除时间"
    )

    product: Mapped["Product"] = relationship(back_populates="variants", lazy="raise")

    __table_args__ = (
        # 同一商品同一尺码只有一行，删除后重新上架复用该行
        UniqueConstraint("product_id", "size", name="uq_variants_product_size"),
        Index("ix_variants_product", "product_id"),
    )
