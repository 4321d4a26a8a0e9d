"""
StockFlow 错误处理系统
遵循 RFC7807 Problem Details 标准
"""
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field


class ProblemDetail(BaseModel):
    """RFC7807 Problem Details 模型"""
    model_config = ConfigDict(
        extra="allow",
        json_schema_extra={
            "example": {
                "type": "about:blank",
                "title": "Validation Failed",
                "status": 422,
                "detail": "variants.0.price: Input should be greater than or equal to 0",
                "code": "PRODUCT_VALIDATION_FAILED",
                "fields": ["variants.0.price"]
            }
        }
    )

    type: str = Field(default="about:blank")
    title: str
    status: int
    detail: Optional[str] = None
    instance: Optional[str] = None
    code: Optional[str] = None  # 业务错误码


class StockFlowException(Exception):
    """StockFlow 基础异常类"""

    def __init__(
        self,
        status: int,
        code: str,
        title: str,
        detail: Optional[str] = None,
        **kwargs
    ):
        self.status = status
        self.code = code
        self.title = title
        self.detail = detail
        self.extra = kwargs
        super().__init__(detail or title)

    def to_problem_detail(self, instance: Optional[str] = None) -> ProblemDetail:
        """转换为 Problem Details 格式"""
        return ProblemDetail(
            type="about:blank",
            title=self.title,
            status=self.status,
            detail=self.detail,
            instance=instance,
            code=self.code,
            **self.extra
        )


class NotFoundError(StockFlowException):
    """404 未找到"""
    def __init__(self, code: str, resource: str):
        super().__init__(
            status=404,
            code=code,
            title="Not Found",
            detail=f"{resource} not found"
        )


class ValidationError(StockFlowException):
    """422 验证失败

    fields 列出未通过校验的字段路径（如 ``variants.0.price``）。
    """
    def __init__(self, code: str, detail: str, fields: Optional[List[str]] = None):
        super().__init__(
            status=422,
            code=code,
            title="Validation Failed",
            detail=detail,
            fields=fields or []
        )
        self.fields = fields or []


class TransactionError(StockFlowException):
    """500 事务失败（已回滚）"""
    def __init__(self, code: str = "TRANSACTION_FAILED", detail: str = "Database transaction failed"):
        super().__init__(
            status=500,
            code=code,
            title="Internal Server Error",
            detail=detail
        )


class CacheError(StockFlowException):
    """503 缓存不可用（调用方应降级到数据库）"""
    def __init__(self, code: str = "CACHE_UNAVAILABLE", detail: str = "Cache temporarily unavailable"):
        super().__init__(
            status=503,
            code=code,
            title="Service Unavailable",
            detail=detail
        )
