"""
StockFlow 实用工具模块
"""

from .logger import get_logger, LogContext, setup_logging
from .errors import (
    StockFlowException, ValidationError, NotFoundError, TransactionError, CacheError
)

__all__ = [
    "get_logger",
    "LogContext",
    "setup_logging",
    "StockFlowException",
    "ValidationError",
    "NotFoundError",
    "TransactionError",
    "CacheError",
]
