"""
StockFlow 数据库基础模型
"""
from datetime import datetime

from sqlalchemy import DateTime
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """数据库模型基类，所有时间列都是 timezone-aware（UTC）"""

    type_annotation_map = {
        datetime: DateTime(timezone=True),
    }
