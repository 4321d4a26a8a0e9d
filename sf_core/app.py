"""
StockFlow 进程启动与生命周期管理
创建数据库、Redis、事件总线与缓存，并注入到服务
"""
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncGenerator, Optional

from sf_core.cache import ProductCache, RedisCacheBackend
from sf_core.config import Settings, get_settings
from sf_core.database import DatabaseManager
from sf_core.event_bus import EventBus
from sf_core.services import ProductQueryService, ProductService
from sf_core.utils.logger import setup_logging, get_logger
from sf_core.utils.redis import get_redis, close_redis

logger = get_logger(__name__)


@dataclass
class StockFlowServices:
    """进程内共享的服务实例"""
    settings: Settings
    db_manager: DatabaseManager
    event_bus: EventBus
    cache: ProductCache
    products: ProductService
    queries: ProductQueryService


@asynccontextmanager
async def lifespan(settings: Optional[Settings] = None) -> AsyncGenerator[StockFlowServices, None]:
    """应用生命周期管理"""
    settings = settings or get_settings()
    setup_logging(settings.log_level, settings.log_format)

    logger.info("Starting StockFlow")

    db_manager = DatabaseManager(settings)
    if not await db_manager.check_connection():
        raise RuntimeError("Database connection failed")

    redis_client = await get_redis(settings)
    event_bus = EventBus(redis_client)
    await event_bus.initialize()

    cache = ProductCache(RedisCacheBackend(redis_client), settings.cache_key_prefix)
    services = StockFlowServices(
        settings=settings,
        db_manager=db_manager,
        event_bus=event_bus,
        cache=cache,
        products=ProductService(cache, db_manager=db_manager, event_bus=event_bus, settings=settings),
        queries=ProductQueryService(cache, db_manager=db_manager, settings=settings),
    )

    logger.info("StockFlow started")
    try:
        yield services
    finally:
        logger.info("Shutting down StockFlow")
        # 事件总线与缓存共用同一个连接池，由 close_redis 统一关闭
        event_bus.redis_client = None
        await event_bus.shutdown()
        await close_redis()
        await db_manager.close()
        logger.info("StockFlow shutdown complete")
