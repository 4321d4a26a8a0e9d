"""
规格对账
比较已持久化的规格与调用方提交的目标规格（以尺码为键），得出新增/更新/删除/不变四组。
纯计算，无 I/O。
"""
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional, Protocol, Sequence, Union

from sf_core.schemas.products import VariantInput

Number = Union[Decimal, int, float, str]

# 与 variants.size / variants.price 列的小数位一致
COLUMN_SCALE = Decimal("0.01")


class PersistedVariant(Protocol):
    """已持久化规格（ORM Variant 或同形对象）"""
    id: int
    size: Decimal
    price: Decimal
    quantity: int
    deleted_at: Optional[datetime]


@dataclass(frozen=True)
class VariantUpdate:
    """待覆盖的规格行，应用时同时清空 deleted_at"""
    id: int
    size: Decimal
    price: Decimal
    quantity: int
    restored: bool = False  # 原行为软删除状态


@dataclass
class VariantDiff:
    """对账结果"""
    added: List[VariantInput] = field(default_factory=list)
    updated: List[VariantUpdate] = field(default_factory=list)
    removed: List[PersistedVariant] = field(default_factory=list)
    unchanged: List[PersistedVariant] = field(default_factory=list)

    @property
    def has_changes(self) -> bool:
        return bool(self.added or self.updated or self.removed)

    def summary(self) -> Dict[str, int]:
        return {
            "added": len(self.added),
            "updated": len(self.updated),
            "removed": len(self.removed),
            "unchanged": len(self.unchanged),
        }


def _scaled(value: Number) -> Decimal:
    return Decimal(str(value)).quantize(COLUMN_SCALE)


def size_key(size: Number) -> Decimal:
    """尺码按列精度的数值比较：10、"10"、10.0、10.00 视为同一尺码"""
    return _scaled(size)


def reconcile_variants(
    previous: Sequence[PersistedVariant],
    desired: Sequence[VariantInput]
) -> VariantDiff:
    """计算目标规格相对已持久化规格的差异

    - 已删除状态的旧行若重新出现在目标中，无论价格库存是否变化都归入 updated（恢复上架）；
      恢复本身要写 deleted_at = NULL，归入 unchanged 会漏掉这次写入
    - desired 中的尺码须唯一（由输入校验保证）
    """
    previous_by_size = {size_key(v.size): v for v in previous}
    desired_sizes = {size_key(v.size) for v in desired}

    diff = VariantDiff()

    for variant in desired:
        prev = previous_by_size.get(size_key(variant.size))
        if prev is None:
            diff.added.append(variant)
            continue

        price_changed = _scaled(prev.price) != _scaled(variant.price)
        quantity_changed = int(prev.quantity) != int(variant.quantity)
        restored = prev.deleted_at is not None

        if price_changed or quantity_changed or restored:
            diff.updated.append(VariantUpdate(
                id=prev.id,
                size=size_key(prev.size),
                price=_scaled(variant.price),
                quantity=int(variant.quantity),
                restored=restored,
            ))
        else:
            diff.unchanged.append(prev)

    diff.removed = [v for v in previous if size_key(v.size) not in desired_sizes]

    return diff
