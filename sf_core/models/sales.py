"""
销售明细数据模型
由销售子系统写入，本模块只读用于统计
"""
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import Integer, Numeric, DateTime, ForeignKey, CheckConstraint, Index, func
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PurchaseItem(Base):
    """销售明细表"""
    __tablename__ = "purchase_items"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    variant_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("variants.id"),
        nullable=False,
        comment="规格ID"
    )

    quantity: Mapped[int] = mapped_column(
        Integer,
        CheckConstraint("quantity > 0"),
        nullable=False,
        comment="售出数量"
    )
    # 成交时的单价快照，不随规格调价变化
    price: Mapped[Decimal] = mapped_column(
        Numeric(18, 2),
        CheckConstraint("price >= 0"),
        nullable=False,
        comment="成交单价"
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        server_default=func.now(),
        comment="销售时间"
    )

    __table_args__ = (
        Index("ix_purchase_items_variant", "variant_id"),
    )
