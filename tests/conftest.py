"""
Pytest 配置和 fixtures
测试数据库使用 SQLite（aiosqlite），并在每个连接上注册 similarity() 以模拟 pg_trgm
"""
import json
from datetime import datetime, timezone
import re
from decimal import Decimal
from typing import Any, Dict, List, Optional, Sequence, Tuple

import pytest
import pytest_asyncio
from sqlalchemy import event

from sf_core.cache import ProductCache
from sf_core.config import Settings
from sf_core.database import DatabaseManager
from sf_core.models import Product, Variant, PurchaseItem
from sf_core.services import ProductQueryService, ProductService
from sf_core.utils.errors import CacheError

# 测试可按标题指定 similarity 得分，未指定的走三元组计算
SIMILARITY_SCORES: Dict[str, float] = {}


def _trigrams(text: str) -> set:
    grams = set()
    for word in re.findall(r"[0-9a-z]+", text.lower()):
        padded = f"  {word} "
        for i in range(len(padded) - 2):
            grams.add(padded[i:i + 3])
    return grams


def trigram_similarity(left: Optional[str], right: Optional[str]) -> float:
    """与 pg_trgm similarity() 相同的算法：三元组交集 / 并集"""
    if left is None or right is None:
        return 0.0
    if left in SIMILARITY_SCORES:
        return SIMILARITY_SCORES[left]
    a, b = _trigrams(left), _trigrams(right)
    if not a or not b:
        return 0.0
    return len(a & b) / len(a | b)


class InMemoryCacheBackend:
    """内存缓存后端，值经 JSON 往返以贴近 Redis 行为"""

    def __init__(self):
        self.store: Dict[str, str] = {}
        self.fail = False
        self.calls: List[Tuple[str, str]] = []

    def _check(self, op: str, key: str) -> None:
        self.calls.append((op, key))
        if self.fail:
            raise CacheError(detail=f"{op} {key} failed")

    async def get(self, key: str) -> Optional[Any]:
        self._check("get", key)
        raw = self.store.get(key)
        return None if raw is None else json.loads(raw)

    async def set(self, key: str, value: Any) -> None:
        self._check("set", key)
        self.store[key] = json.dumps(value)

    async def incr(self, key: str) -> int:
        self._check("incr", key)
        value = int(json.loads(self.store.get(key, "0"))) + 1
        self.store[key] = json.dumps(value)
        return value

    async def decr(self, key: str) -> int:
        self._check("decr", key)
        value = int(json.loads(self.store.get(key, "0"))) - 1
        self.store[key] = json.dumps(value)
        return value

    async def delete(self, key: str) -> None:
        self._check("delete", key)
        self.store.pop(key, None)


class RecordingEventBus:
    """记录发布的事件"""

    def __init__(self):
        self.published: List[Dict[str, Any]] = []

    async def publish(self, topic: str, payload: Dict[str, Any], key: Optional[str] = None) -> str:
        self.published.append({"topic": topic, "payload": payload, "key": key})
        return str(len(self.published))


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        product_page_size=10,
        product_search_threshold=0.3,
        product_sale_search_threshold=0.2,
        cache_key_prefix="sf-test:",
    )


@pytest.fixture
def similarity_scores():
    """按标题固定 similarity 得分"""
    SIMILARITY_SCORES.clear()
    yield SIMILARITY_SCORES
    SIMILARITY_SCORES.clear()


@pytest_asyncio.fixture
async def db_manager(tmp_path, settings):
    """数据库管理器 fixture（每个测试一个独立的 SQLite 文件）"""
    manager = DatabaseManager(settings, database_url=f"sqlite+aiosqlite:///{tmp_path / 'stockflow.db'}")
    engine = manager.create_async_engine()

    @event.listens_for(engine.sync_engine, "connect")
    def _register_functions(dbapi_connection, connection_record):
        dbapi_connection.create_function("similarity", 2, trigram_similarity)

    await manager.create_tables()

    yield manager

    await manager.drop_tables()
    await manager.close()


@pytest.fixture
def cache_backend() -> InMemoryCacheBackend:
    return InMemoryCacheBackend()


@pytest.fixture
def cache(cache_backend, settings) -> ProductCache:
    return ProductCache(cache_backend, settings.cache_key_prefix)


@pytest.fixture
def event_bus() -> RecordingEventBus:
    return RecordingEventBus()


@pytest.fixture
def product_service(cache, db_manager, event_bus, settings) -> ProductService:
    return ProductService(cache, db_manager=db_manager, event_bus=event_bus, settings=settings)


@pytest.fixture
def query_service(cache, db_manager, settings) -> ProductQueryService:
    return ProductQueryService(cache, db_manager=db_manager, settings=settings)


VariantSeed = Tuple[Any, Any, int]  # (size, price, quantity)


@pytest.fixture
def seed_product(db_manager):
    """直接写库创建商品，绕过服务与缓存"""

    async def _seed(
        title: str,
        variants: Sequence[VariantSeed] = ((10, "19.99", 5),),
        deleted: bool = False,
        deleted_sizes: Sequence[Any] = (),
    ) -> int:
        now = datetime.now(timezone.utc)
        deleted_keys = {Decimal(str(s)) for s in deleted_sizes}
        async with db_manager.get_transaction() as session:
            product = Product(
                title=title,
                description=f"{title} description",
                deleted_at=now if deleted else None,
            )
            session.add(product)
            await session.flush()
            session.add_all([
                Variant(
                    product_id=product.id,
                    size=Decimal(str(size)),
                    price=Decimal(str(price)),
                    quantity=quantity,
                    deleted_at=now if Decimal(str(size)) in deleted_keys else None,
                )
                for size, price, quantity in variants
            ])
            return product.id

    return _seed


@pytest.fixture
def seed_purchase(db_manager):
    """写入销售明细"""

    async def _seed(variant_id: int, quantity: int, price: Any) -> None:
        async with db_manager.get_transaction() as session:
            session.add(PurchaseItem(variant_id=variant_id, quantity=quantity, price=Decimal(str(price))))

    return _seed
