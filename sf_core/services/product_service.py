"""
商品写服务
创建 / 更新 / 删除商品，事务提交后刷新缓存并发出列表页失效通知
"""
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from sf_core.cache.products import ProductCache
from sf_core.config import Settings, get_settings
from sf_core.database import DatabaseManager
from sf_core.event_bus import EventBus, PRODUCT_LISTING_STALE
from sf_core.models import Product, Variant
from sf_core.schemas.products import (
    ProductCreate, ProductUpdate, ProductWithVariants, VariantOut, validate_input
)
from sf_core.utils.errors import CacheError, NotFoundError, TransactionError
from sf_core.utils.logger import LogContext
from .base import BaseService, ServiceResult
from .product_query_service import ProductQueryService
from .variant_reconciler import VariantDiff, reconcile_variants


class ProductService(BaseService):
    """商品服务"""

    def __init__(
        self,
        cache: ProductCache,
        db_manager: Optional[DatabaseManager] = None,
        event_bus: Optional[EventBus] = None,
        settings: Optional[Settings] = None
    ):
        super().__init__(db_manager)
        self.cache = cache
        self.event_bus = event_bus
        self.settings = settings or get_settings()
        self.queries = ProductQueryService(cache, db_manager=self.db_manager, settings=self.settings)

    async def create_product(
        self,
        data: Union[ProductCreate, Dict[str, Any]]
    ) -> ServiceResult[Dict[str, Any]]:
        """创建商品及其规格

        校验失败直接抛出 ValidationError（不访问数据库）；
        商品与全部规格在同一事务内写入。
        """
        product_in = validate_input(ProductCreate, data, code="PRODUCT_VALIDATION_FAILED")

        with LogContext(operation="product.create"):
            try:
                product = await self.execute_with_transaction(self._create_product_tx, product_in)
            except TransactionError:
                return ServiceResult.error(
                    error="Error creating product",
                    error_code="PRODUCT_CREATE_FAILED"
                )

            self.logger.info("Product created",
                             product_id=product.id,
                             variants=len(product.variants))

            await self._refresh_listing_cache()
            total = await self._increment_product_count()
            await self._notify_listing_stale(product.id, "created")

        return ServiceResult.ok({"data": product, "total": total})

    async def update_product(
        self,
        product_id: int,
        data: Union[ProductUpdate, Dict[str, Any]]
    ) -> ServiceResult[Dict[str, Any]]:
        """更新商品

        只写入调用方提供的字段；提供 variants 时按尺码对账，
        未提供 variants 时规格保持不变。
        """
        patch = validate_input(ProductUpdate, data, code="PRODUCT_VALIDATION_FAILED")

        with LogContext(operation="product.update"):
            try:
                diff = await self.execute_with_transaction(self._update_product_tx, product_id, patch)
            except NotFoundError:
                return ServiceResult.error(
                    error="Product not found",
                    error_code="PRODUCT_NOT_FOUND"
                )
            except TransactionError:
                return ServiceResult.error(
                    error="Error updating product",
                    error_code="PRODUCT_UPDATE_FAILED"
                )

            self.logger.info("Product updated", product_id=product_id, **diff.summary())

            await self._refresh_listing_cache()
            await self._notify_listing_stale(product_id, "updated")

        return ServiceResult.ok(
            {"message": "Product updated successfully"},
            metadata=diff.summary()
        )

    async def delete_product(self, product_id: int) -> ServiceResult[Dict[str, Any]]:
        """软删除商品（不修改其规格行）

        只有实际从有效变为删除时才递减商品总数缓存并发出通知，
        重复删除保留原删除时间；商品不存在时返回 PRODUCT_NOT_FOUND。
        """
        with LogContext(operation="product.delete"):
            try:
                deleted = await self.execute_with_transaction(self._delete_product_tx, product_id)
            except NotFoundError:
                return ServiceResult.error(
                    error="Product not found",
                    error_code="PRODUCT_NOT_FOUND"
                )
            except TransactionError:
                return ServiceResult.error(
                    error="Error deleting product",
                    error_code="PRODUCT_DELETE_FAILED"
                )

            await self._refresh_listing_cache()
            if deleted:
                self.logger.info("Product deleted", product_id=product_id)
                await self._decrement_product_count()
                await self._notify_listing_stale(product_id, "deleted")
            else:
                self.logger.warning(
                    "Product already deleted, count cache left unchanged",
                    product_id=product_id
                )

        return ServiceResult.ok({"message": "Product deleted successfully"})

    async def resync_product_count(self) -> ServiceResult[int]:
        """用数据库真值覆盖商品总数缓存，修正累计漂移"""
        try:
            total = await self.queries.count_active_products()
        except TransactionError:
            return ServiceResult.error(
                error="Error counting products",
                error_code="PRODUCT_COUNT_FAILED"
            )

        try:
            previous = await self.cache.count.get()
            await self.cache.count.set(total)
        except CacheError:
            self.logger.warning("Failed to resync product count cache", exc_info=True)
            return ServiceResult.error(
                error="Product count cache unavailable",
                error_code="CACHE_UNAVAILABLE"
            )

        if previous is not None and previous != total:
            self.logger.warning("Product count cache drift corrected", cached=previous, actual=total)
        return ServiceResult.ok(total, metadata={"previous": previous})

    # 事务内操作

    async def _create_product_tx(self, session: AsyncSession, product_in: ProductCreate) -> ProductWithVariants:
        product = Product(
            title=product_in.title,
            description=product_in.description,
            image=product_in.image_id,
            deleted_at=None,
        )
        session.add(product)
        await session.flush()  # 获取生成的ID

        variants = [
            Variant(
                product_id=product.id,
                size=v.size,
                price=v.price,
                quantity=v.quantity,
                deleted_at=None,
            )
            for v in product_in.variants
        ]
        session.add_all(variants)
        await session.flush()

        return ProductWithVariants(
            id=product.id,
            title=product.title,
            description=product.description,
            image=product.image,
            created_at=product.created_at,
            deleted_at=None,
            variants=[VariantOut.model_validate(v) for v in variants],
        )

    async def _update_product_tx(
        self,
        session: AsyncSession,
        product_id: int,
        patch: ProductUpdate
    ) -> VariantDiff:
        exists = await session.scalar(select(Product.id).where(Product.id == product_id))
        if exists is None:
            raise NotFoundError(code="PRODUCT_NOT_FOUND", resource=f"Product {product_id}")

        fields = patch.product_fields()
        if fields:
            await session.execute(
                update(Product).where(Product.id == product_id).values(**fields)
            )

        if patch.variants is None:
            return VariantDiff()

        # 包含已软删除的行，重新出现的尺码复用原行
        result = await session.execute(select(Variant).where(Variant.product_id == product_id))
        previous: List[Variant] = list(result.scalars().all())

        diff = reconcile_variants(previous, patch.variants)

        if diff.added:
            session.add_all([
                Variant(
                    product_id=product_id,
                    size=v.size,
                    price=v.price,
                    quantity=v.quantity,
                    deleted_at=None,
                )
                for v in diff.added
            ])
            await session.flush()

        if diff.updated:
            await session.execute(
                update(Variant),
                [
                    {"id": v.id, "price": v.price, "quantity": v.quantity, "deleted_at": None}
                    for v in diff.updated
                ],
            )

        if diff.removed:
            # 已删除的行保留原删除时间
            await session.execute(
                update(Variant)
                .where(
                    Variant.id.in_([v.id for v in diff.removed]),
                    Variant.deleted_at.is_(None),
                )
                .values(deleted_at=datetime.now(timezone.utc))
                .execution_options(synchronize_session=False)
            )

        return diff

    async def _delete_product_tx(self, session: AsyncSession, product_id: int) -> bool:
        exists = await session.scalar(select(Product.id).where(Product.id == product_id))
        if exists is None:
            raise NotFoundError(code="PRODUCT_NOT_FOUND", resource=f"Product {product_id}")

        result = await session.execute(
            update(Product)
            .where(Product.id == product_id, Product.deleted_at.is_(None))
            .values(deleted_at=datetime.now(timezone.utc))
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    # 提交后的缓存与通知（失败不影响业务结果）

    async def _refresh_listing_cache(self) -> None:
        """用数据库首页快照整体覆盖列表缓存"""
        try:
            snapshot = await self.queries.fetch_first_page()
        except TransactionError:
            self.logger.warning("Failed to load product listing snapshot, clearing list cache")
            try:
                await self.cache.products.clear()
            except CacheError:
                self.logger.warning("Failed to clear product list cache", exc_info=True)
            return

        try:
            await self.cache.products.set(snapshot)
        except CacheError:
            self.logger.warning("Failed to refresh product list cache", exc_info=True)

    async def _increment_product_count(self) -> Optional[int]:
        """商品总数 +1；缓存未初始化时直接用数据库值初始化"""
        try:
            total = await self.cache.count.get()
            if total is None:
                total = await self.queries.count_active_products()
                await self.cache.count.set(total)
                return total
            return await self.cache.count.incr()
        except CacheError:
            self.logger.warning("Product count cache unavailable", exc_info=True)
        except TransactionError:
            self.logger.warning("Failed to count products for cache initialisation")
            return None

        try:
            return await self.queries.count_active_products()
        except TransactionError:
            return None

    async def _decrement_product_count(self) -> None:
        try:
            # 未初始化时不递减，下次读取会用数据库值初始化
            if await self.cache.count.get() is None:
                return
            await self.cache.count.decr()
        except CacheError:
            self.logger.warning("Failed to decrement product count cache", exc_info=True)

    async def _notify_listing_stale(self, product_id: int, action: str) -> None:
        """通知展示层列表页已过期（单向，不等待确认）"""
        if self.event_bus is None:
            return
        try:
            await self.event_bus.publish(
                PRODUCT_LISTING_STALE,
                {
                    "path": self.settings.listing_path,
                    "product_id": product_id,
                    "action": action,
                },
                key=str(product_id)
            )
        except Exception:
            self.logger.warning("Failed to publish listing invalidation",
                                product_id=product_id,
                                exc_info=True)
