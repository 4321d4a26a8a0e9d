"""
缓存后端
值统一以 JSON 序列化存储，不设置过期时间，由业务方显式覆盖
"""
import json
from typing import Any, Optional, Protocol

import redis.asyncio as redis

from sf_core.utils.errors import CacheError
from sf_core.utils.logger import get_logger

logger = get_logger(__name__)


class CacheBackend(Protocol):
    """缓存后端接口"""

    async def get(self, key: str) -> Optional[Any]:
        ...

    async def set(self, key: str, value: Any) -> None:
        ...

    async def incr(self, key: str) -> int:
        ...

    async def decr(self, key: str) -> int:
        ...

    async def delete(self, key: str) -> None:
        ...


class RedisCacheBackend:
    """基于 Redis 的缓存后端

    客户端由启动流程创建并注入，需使用 decode_responses=True。
    """

    def __init__(self, client: redis.Redis):
        self.client = client

    async def get(self, key: str) -> Optional[Any]:
        try:
            raw = await self.client.get(key)
        except redis.RedisError as e:
            raise CacheError(detail=f"GET {key} failed: {e}") from e
        if raw is None:
            return None
        return json.loads(raw)

    async def set(self, key: str, value: Any) -> None:
        try:
            await self.client.set(key, json.dumps(value, ensure_ascii=False))
        except redis.RedisError as e:
            raise CacheError(detail=f"SET {key} failed: {e}") from e

    async def incr(self, key: str) -> int:
        try:
            return int(await self.client.incr(key))
        except redis.RedisError as e:
            raise CacheError(detail=f"INCR {key} failed: {e}") from e

    async def decr(self, key: str) -> int:
        try:
            return int(await self.client.decr(key))
        except redis.RedisError as e:
            raise CacheError(detail=f"DECR {key} failed: {e}") from e

    async def delete(self, key: str) -> None:
        try:
            await self.client.delete(key)
        except redis.RedisError as e:
            raise CacheError(detail=f"DEL {key} failed: {e}") from e
