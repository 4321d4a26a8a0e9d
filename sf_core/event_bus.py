"""
StockFlow 事件总线
基于 Redis Streams，用于向展示层发送“列表页已过期”等单向通知。
展示层自行消费 stream；进程内可另外注册处理器，在发布时直接调用。
"""
import json
import uuid
from datetime import datetime, timezone
from typing import Dict, Any, List, Optional, Callable, Awaitable

import redis.asyncio as redis
from sf_core.config import get_settings
from sf_core.utils.logger import get_logger

logger = get_logger(__name__)

# 商品列表页缓存失效通知
PRODUCT_LISTING_STALE = "sf.products.listing_stale"

# 单个 stream 保留的近似最大消息数
STREAM_MAXLEN = 10000

EventHandler = Callable[[Dict[str, Any]], Awaitable[None]]


class EventPayload:
    """事件载荷"""

    def __init__(self, topic: str, payload: Optional[Dict[str, Any]] = None):
        self.event_id = str(uuid.uuid4())
        self.topic = topic
        self.payload = payload or {}
        self.timestamp = datetime.now(timezone.utc).isoformat()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event_id": self.event_id,
            "ts": self.timestamp,
            "topic": self.topic,
            "payload": self.payload
        }


class EventBus:
    """事件总线实现（只发布，不消费 stream）"""

    def __init__(self, redis_client: Optional[redis.Redis] = None):
        self.settings = get_settings()
        self.redis_client = redis_client
        self.subscriptions: Dict[str, List[EventHandler]] = {}

    def _get_redis(self) -> redis.Redis:
        if self.redis_client is None:
            self.redis_client = redis.from_url(
                self.settings.redis_url,
                encoding="utf-8",
                decode_responses=True
            )
        return self.redis_client

    async def initialize(self) -> None:
        """检查 Redis 可用"""
        logger.info("Initializing event bus")
        await self._get_redis().ping()
        logger.info("Event bus initialized")

    async def shutdown(self) -> None:
        logger.info("Shutting down event bus")
        self.subscriptions.clear()
        if self.redis_client:
            await self.redis_client.aclose()
            self.redis_client = None
        logger.info("Event bus shutdown complete")

    def _get_stream_name(self, topic: str) -> str:
        return f"{self.settings.event_stream_prefix}:{topic}"

    @staticmethod
    def _check_topic(topic: str) -> None:
        if not topic.startswith("sf."):
            raise ValueError(f"Invalid topic format: {topic}")

    async def publish(
        self,
        topic: str,
        payload: Dict[str, Any],
        key: Optional[str] = None
    ) -> str:
        """发布事件到指定主题，返回事件ID"""
        self._check_topic(topic)

        event = EventPayload(topic=topic, payload=payload)

        event_data = {
            "data": json.dumps(event.to_dict(), default=str)
        }
        if key:
            event_data["key"] = key

        message_id = await self._get_redis().xadd(
            self._get_stream_name(topic),
            event_data,
            maxlen=STREAM_MAXLEN,
            approximate=True,
        )

        logger.debug(f"Published event to {topic}",
                     event_id=event.event_id,
                     message_id=message_id)

        await self._trigger_handlers(topic, event)

        return event.event_id

    def subscribe(self, topic: str, handler: EventHandler) -> None:
        """注册进程内处理器"""
        self._check_topic(topic)
        self.subscriptions.setdefault(topic, []).append(handler)

    async def _trigger_handlers(self, topic: str, event: EventPayload) -> None:
        # 单个处理器失败不影响其他处理器，也不影响发布结果
        for handler in self.subscriptions.get(topic, []):
            try:
                await handler(event.payload)
            except Exception:
                logger.error(f"Handler error for topic {topic}",
                             handler=getattr(handler, "__name__", repr(handler)),
                             exc_info=True)
