"""
基础服务类
"""
from typing import TypeVar, Generic, Optional, Dict, Any
from dataclasses import dataclass

from sf_core.utils.logger import get_logger
from sf_core.utils.errors import StockFlowException, TransactionError
from sf_core.database import DatabaseManager, get_db_manager

T = TypeVar('T')


@dataclass
class ServiceResult(Generic[T]):
    """服务执行结果

    error 只包含面向调用方的通用信息，底层原因只写日志。
    """
    success: bool
    data: Optional[T] = None
    error: Optional[str] = None
    error_code: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None

    @classmethod
    def ok(cls, data: T, metadata: Optional[Dict[str, Any]] = None) -> "ServiceResult[T]":
        """成功结果"""
        return cls(success=True, data=data, metadata=metadata)

    @classmethod
    def error(cls, error: str, error_code: Optional[str] = None) -> "ServiceResult[T]":
        """失败结果"""
        return cls(success=False, error=error, error_code=error_code)


class BaseService:
    """基础服务类"""

    def __init__(self, db_manager: Optional[DatabaseManager] = None):
        self.db_manager = db_manager or get_db_manager()
        self.logger = get_logger(self.__class__.__name__)

    async def execute_with_transaction(
        self,
        operation,
        *args,
        **kwargs
    ) -> Any:
        """在事务中执行操作

        operation 正常返回后提交；任何异常都会整体回滚。
        业务异常原样抛出，其余异常记录日志后包装为 TransactionError。
        """
        try:
            async with self.db_manager.get_transaction() as session:
                return await operation(session, *args, **kwargs)
        except StockFlowException:
            raise
        except Exception as e:
            self.logger.error(
                "Transaction operation failed",
                operation=getattr(operation, "__name__", repr(operation)),
                exc_info=True
            )
            raise TransactionError(
                code="TRANSACTION_FAILED",
                detail=f"Database transaction failed: {type(e).__name__}"
            ) from e

    async def execute_with_session(
        self,
        operation,
        *args,
        **kwargs
    ) -> Any:
        """使用数据库会话执行只读操作"""
        try:
            async with self.db_manager.get_session() as session:
                return await operation(session, *args, **kwargs)
        except StockFlowException:
            raise
        except Exception as e:
            self.logger.error(
                "Session operation failed",
                operation=getattr(operation, "__name__", repr(operation)),
                exc_info=True
            )
            raise TransactionError(
                code="SESSION_OPERATION_FAILED",
                detail=f"Database operation failed: {type(e).__name__}"
            ) from e
