"""
StockFlow Configuration Management
遵循约束：环境变量前缀 SF__
"""
from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, field_validator
from functools import lru_cache


class Settings(BaseSettings):
    """全局配置类"""
    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="SF__",
        case_sensitive=False
    )

    # Database
    db_host: str = Field(default="localhost")
    db_port: int = Field(default=5432)
    db_name: str = Field(default="stockflow")
    db_user: str = Field(default="stockflow")
    db_password: str = Field(default="")
    db_pool_size: int = Field(default=20)
    db_max_overflow: int = Field(default=40)
    db_echo: bool = Field(default=False)

    # Redis
    redis_host: str = Field(default="localhost")
    redis_port: int = Field(default=6379)
    redis_db: int = Field(default=0)
    redis_password: Optional[str] = Field(default=None)
    redis_max_connections: int = Field(default=50, ge=1)
    redis_socket_timeout: float = Field(default=5.0, gt=0)

    # Cache
    cache_key_prefix: str = Field(default="sf:")

    # 商品列表 / 搜索
    product_page_size: int = Field(default=10, ge=1)
    product_search_threshold: float = Field(default=0.3, ge=0, le=1)
    product_sale_search_threshold: float = Field(default=0.2, ge=0, le=1)

    # 事件
    event_stream_prefix: str = Field(default="sf:events")
    listing_path: str = Field(default="/products")

    # Monitoring
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="json")  # json or text

    @field_validator("cache_key_prefix")
    @classmethod
    def validate_cache_key_prefix(cls, v):
        """确保缓存前缀以冒号结尾"""
        if not v.endswith(":"):
            raise ValueError("Cache key prefix must end with ':'")
        return v

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v):
        if v not in ("json", "text"):
            raise ValueError("Log format must be 'json' or 'text'")
        return v

    @property
    def database_url(self) -> str:
        """构建数据库连接字符串"""
        return f"postgresql+asyncpg://{self.db_user}:{self.db_password}@{self.db_host}:{self.db_port}/{self.db_name}"

    @property
    def sync_database_url(self) -> str:
        """构建同步数据库连接字符串（用于 Alembic）"""
        return f"postgresql://{self.db_user}:{self.db_password}@{self.db_host}:{self.db_port}/{self.db_name}"

    @property
    def redis_url(self) -> str:
        """构建 Redis 连接字符串"""
        password = f":{self.redis_password}@" if self.redis_password else ""
        return f"redis://{password}{self.redis_host}:{self.redis_port}/{self.redis_db}"


@lru_cache()
def get_settings() -> Settings:
    """获取配置单例"""
    return Settings()
