"""
Redis 连接

进程内共享一个连接池：缓存读写与事件流发布使用同一个客户端，
由 sf_core.app.lifespan 在启动时创建、退出时关闭。
"""
import redis.asyncio as redis
from typing import Optional

from sf_core.config import Settings, get_settings
from sf_core.utils.logger import get_logger

logger = get_logger(__name__)

_redis_client: Optional[redis.Redis] = None


async def get_redis(settings: Optional[Settings] = None) -> redis.Redis:
    """返回共享客户端，首次调用时按配置建立连接池"""
    global _redis_client

    if _redis_client is None:
        settings = settings or get_settings()
        pool = redis.ConnectionPool.from_url(
            settings.redis_url,
            max_connections=settings.redis_max_connections,
            socket_timeout=settings.redis_socket_timeout,
            encoding="utf-8",
            decode_responses=True,
        )
        _redis_client = redis.Redis(connection_pool=pool)
        logger.info("Redis connection pool created",
                    host=settings.redis_host,
                    db=settings.redis_db,
                    max_connections=settings.redis_max_connections)

    return _redis_client


async def close_redis() -> None:
    global _redis_client

    if _redis_client is None:
        return
    # 客户端持有连接池，aclose 会一并断开池内连接
    await _redis_client.aclose(close_connection_pool=True)
    _redis_client = None
    logger.info("Redis connection pool closed")
