"""
商品查询服务
- 首页列表优先读缓存，其他分页直接查库
- 标题模糊搜索（pg_trgm similarity）绕过缓存
- 规格销售汇总
"""
from collections import defaultdict
from decimal import Decimal
from typing import Dict, List, Optional, Sequence, Union

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from sf_core.cache.products import ProductCache
from sf_core.config import Settings, get_settings
from sf_core.database import DatabaseManager
from sf_core.models import Product, Variant, PurchaseItem
from sf_core.schemas.products import (
    ProductWithVariants, ProductPage, ProductForSale, VariantForSale,
    VariantOut, VariantSale
)
from sf_core.utils.errors import CacheError, TransactionError
from .base import BaseService, ServiceResult
from .variant_reconciler import size_key


class ProductQueryService(BaseService):
    """商品查询服务"""

    def __init__(
        self,
        cache: ProductCache,
        db_manager: Optional[DatabaseManager] = None,
        settings: Optional[Settings] = None
    ):
        super().__init__(db_manager)
        self.cache = cache
        self.settings = settings or get_settings()

    @property
    def page_size(self) -> int:
        return self.settings.product_page_size

    # 列表 / 搜索

    async def list_products(
        self,
        query: Optional[str] = None,
        offset: int = 0,
        limit: Optional[int] = None
    ) -> ServiceResult[ProductPage]:
        """分页获取商品

        offset 为页码（第 offset 页，每页 limit 条）。
        无搜索词且为默认首页时读缓存；其余无搜索词分页直接查库；
        有搜索词时做模糊搜索，total 为匹配总数。
        """
        if limit is None:
            limit = self.page_size

        try:
            if query is None or query.strip() == "":
                total = await self._get_total()
                if offset != 0 or limit != self.page_size:
                    data = await self.fetch_products_page(offset, limit)
                else:
                    data = await self._get_first_page()
                return ServiceResult.ok(ProductPage(data=data, total=total))

            page = await self.execute_with_session(
                self._search_products_query, query.strip(), offset, limit
            )
            return ServiceResult.ok(page)

        except TransactionError:
            return ServiceResult.error(
                error="Error getting products",
                error_code="PRODUCT_LIST_FAILED"
            )

    async def fetch_products_page(self, offset: int = 0, limit: Optional[int] = None) -> List[ProductWithVariants]:
        """从数据库读取一页有效商品（按ID倒序）"""
        return await self.execute_with_session(
            self._products_page_query, offset, self.page_size if limit is None else limit
        )

    async def fetch_first_page(self) -> List[ProductWithVariants]:
        """首页快照，用于刷新列表缓存"""
        return await self.fetch_products_page(0, self.page_size)

    async def count_active_products(self) -> int:
        """有效商品总数（数据库真值）"""
        return await self.execute_with_session(self._count_active_products_query)

    async def _get_total(self) -> int:
        """读取缓存的商品总数，未命中时用数据库值初始化"""
        try:
            total = await self.cache.count.get()
        except CacheError:
            self.logger.warning("Product count cache unavailable, falling back to database", exc_info=True)
            return await self.count_active_products()

        if total is not None:
            return total

        total = await self.count_active_products()
        try:
            await self.cache.count.set(total)
        except CacheError:
            self.logger.warning("Failed to populate product count cache", exc_info=True)
        return total

    async def _get_first_page(self) -> List[ProductWithVariants]:
        """读穿缓存：命中直接返回，未命中或为空时查库并回填"""
        cache_available = True
        try:
            cached = await self.cache.products.get()
        except CacheError:
            self.logger.warning("Product list cache unavailable, falling back to database", exc_info=True)
            cached = None
            cache_available = False

        if cached:
            return cached

        products = await self.fetch_first_page()
        if cache_available:
            try:
                await self.cache.products.set(products)
            except CacheError:
                self.logger.warning("Failed to populate product list cache", exc_info=True)
        return products

    # 单个商品

    async def get_product(self, product_id: int) -> ServiceResult[Optional[ProductWithVariants]]:
        """获取商品详情及有效规格（不走缓存），不存在时 data 为 None"""
        try:
            product = await self.execute_with_session(self._get_product_query, product_id)
            return ServiceResult.ok(product)
        except TransactionError:
            return ServiceResult.error(
                error="Error getting product",
                error_code="PRODUCT_GET_FAILED"
            )

    # 收银选品

    async def get_products_for_sale(
        self,
        query: str,
        offset: int = 0,
        limit: int = 10
    ) -> ServiceResult[List[ProductForSale]]:
        """收银台选品搜索

        阈值低于主搜索，只返回售卖所需字段；空搜索词直接返回空列表。
        此处 offset 为行偏移。
        """
        if query is None or query.strip() == "":
            return ServiceResult.ok([])

        try:
            products = await self.execute_with_session(
                self._products_for_sale_query, query.strip(), offset, limit
            )
            return ServiceResult.ok(products)
        except TransactionError:
            return ServiceResult.error(
                error="Error getting products",
                error_code="PRODUCT_SALE_SEARCH_FAILED"
            )

    # 销售统计

    async def get_variant_sales(self, product_id: int) -> ServiceResult[List[VariantSale]]:
        """每个有效规格的售出数量与销售额，按尺码升序；无销售记录的规格为 0"""
        try:
            sales = await self.execute_with_session(self._variant_sales_query, product_id)
            return ServiceResult.ok(sales)
        except TransactionError:
            return ServiceResult.error(
                error="Error getting product sale details",
                error_code="VARIANT_SALES_FAILED"
            )

    async def get_variant_total_sold(
        self,
        product_id: int,
        size: Union[Decimal, int, float, str]
    ) -> ServiceResult[int]:
        """某商品某尺码的累计售出数量"""
        try:
            total = await self.execute_with_session(
                self._variant_total_sold_query, product_id, size_key(size)
            )
            return ServiceResult.ok(total)
        except TransactionError:
            return ServiceResult.error(
                error="Error getting total sold",
                error_code="VARIANT_TOTAL_SOLD_FAILED"
            )

    # 查询实现

    @staticmethod
    def _has_active_variants():
        return (
            select(Variant.id)
            .where(Variant.product_id == Product.id, Variant.deleted_at.is_(None))
            .exists()
        )

    @staticmethod
    async def _load_active_variants(
        session: AsyncSession,
        product_ids: Sequence[int]
    ) -> Dict[int, List[Variant]]:
        if not product_ids:
            return {}
        stmt = (
            select(Variant)
            .where(Variant.product_id.in_(product_ids), Variant.deleted_at.is_(None))
            .order_by(Variant.product_id, Variant.size)
        )
        result = await session.execute(stmt)
        grouped: Dict[int, List[Variant]] = defaultdict(list)
        for variant in result.scalars().all():
            grouped[variant.product_id].append(variant)
        return grouped

    @staticmethod
    def _compose(product: Product, variants: Sequence[Variant]) -> ProductWithVariants:
        return ProductWithVariants(
            id=product.id,
            title=product.title,
            description=product.description,
            image=product.image,
            created_at=product.created_at,
            deleted_at=product.deleted_at,
            variants=[VariantOut.model_validate(v) for v in variants],
        )

    async def _with_variants(self, session: AsyncSession, products: Sequence[Product]) -> List[ProductWithVariants]:
        variants = await self._load_active_variants(session, [p.id for p in products])
        return [self._compose(p, variants.get(p.id, [])) for p in products]

    async def _products_page_query(self, session: AsyncSession, offset: int, limit: int) -> List[ProductWithVariants]:
        stmt = (
            select(Product)
            .where(Product.deleted_at.is_(None), self._has_active_variants())
            .order_by(Product.id.desc())
            .limit(limit)
            .offset(offset * limit)
        )
        result = await session.execute(stmt)
        return await self._with_variants(session, list(result.scalars().all()))

    async def _search_products_query(
        self,
        session: AsyncSession,
        query: str,
        offset: int,
        limit: int
    ) -> ProductPage:
        score = func.similarity(Product.title, query)
        stmt = (
            select(Product, func.count().over().label("total"))
            .where(
                score > self.settings.product_search_threshold,
                Product.deleted_at.is_(None),
                self._has_active_variants(),
            )
            .order_by(score.desc(), Product.id.desc())
            .limit(limit)
            .offset(offset * limit)
        )
        rows = (await session.execute(stmt)).all()

        products = [row[0] for row in rows]
        total = int(rows[0].total) if rows else 0

        self.logger.debug("Product search", query=query, matched=total)
        return ProductPage(data=await self._with_variants(session, products), total=total)

    async def _count_active_products_query(self, session: AsyncSession) -> int:
        stmt = select(func.count(Product.id)).where(Product.deleted_at.is_(None))
        return int(await session.scalar(stmt) or 0)

    async def _get_product_query(self, session: AsyncSession, product_id: int) -> Optional[ProductWithVariants]:
        product = await session.get(Product, product_id)
        if product is None:
            return None
        variants = await self._load_active_variants(session, [product.id])
        return self._compose(product, variants.get(product.id, []))

    async def _products_for_sale_query(
        self,
        session: AsyncSession,
        query: str,
        offset: int,
        limit: int
    ) -> List[ProductForSale]:
        score = func.similarity(Product.title, query)
        stmt = (
            select(Product.id, Product.title, Product.image)
            .where(
                score > self.settings.product_sale_search_threshold,
                Product.deleted_at.is_(None),
                self._has_active_variants(),
            )
            .order_by(score.desc(), Product.id.desc())
            .limit(limit)
            .offset(offset)
        )
        rows = (await session.execute(stmt)).all()
        variants = await self._load_active_variants(session, [row.id for row in rows])

        return [
            ProductForSale(
                id=row.id,
                title=row.title,
                image=row.image,
                variants=[VariantForSale.model_validate(v) for v in variants.get(row.id, [])],
            )
            for row in rows
        ]

    async def _variant_sales_query(self, session: AsyncSession, product_id: int) -> List[VariantSale]:
        sold = func.coalesce(func.sum(PurchaseItem.quantity), 0)
        revenue = func.coalesce(func.sum(PurchaseItem.quantity * PurchaseItem.price), 0)
        stmt = (
            select(
                Variant.id,
                Variant.size,
                Variant.quantity.label("stock"),
                Variant.price,
                sold.label("sold"),
                revenue.label("revenue"),
            )
            .select_from(Variant)
            .outerjoin(PurchaseItem, PurchaseItem.variant_id == Variant.id)
            .where(Variant.product_id == product_id, Variant.deleted_at.is_(None))
            .group_by(Variant.id, Variant.size, Variant.quantity, Variant.price)
            .order_by(Variant.size.asc())
        )
        rows = (await session.execute(stmt)).all()
        return [
            VariantSale(
                id=row.id,
                size=row.size,
                stock=row.stock,
                price=row.price,
                sold=int(row.sold or 0),
                revenue=Decimal(str(row.revenue or 0)),
            )
            for row in rows
        ]

    async def _variant_total_sold_query(self, session: AsyncSession, product_id: int, size: Decimal) -> int:
        stmt = (
            select(func.coalesce(func.sum(PurchaseItem.quantity), 0))
            .select_from(PurchaseItem)
            .join(Variant, Variant.id == PurchaseItem.variant_id)
            .where(Variant.product_id == product_id, Variant.size == size)
        )
        return int(await session.scalar(stmt) or 0)
