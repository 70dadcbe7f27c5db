"""
Product repository: the durable tier of the layered cache.
Every operation opens its own session so concurrent resolution tasks never
share one.
"""

import math
from datetime import datetime
from typing import Optional, List, Dict, Any

import structlog
from sqlalchemy import select, func, desc
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker

from transpareneats.core.clock import utcnow
from transpareneats.db.models.product import Product
from transpareneats.models.product import ProductSource, ProductStatus

logger = structlog.get_logger(__name__)


class PersistenceError(Exception):
    """Durable store read or write failure."""

    def __init__(self, message: str, barcode: str = "", original_error: Exception = None):
        super().__init__(message)
        self.barcode = barcode
        self.original_error = original_error


class ProductNotFoundError(Exception):
    """No durable record exists for the barcode."""

    def __init__(self, barcode: str):
        super().__init__(f"Product {barcode} not found")
        self.barcode = barcode


class ProductRepository:
    """Repository for product records."""

    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory

    async def find_by_barcode(self, barcode: str) -> Optional[Product]:
        """Find a product by barcode."""
        try:
            async with self.session_factory() as session:
                result = await session.execute(select(Product).where(Product.barcode == barcode))
                return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.error("Product lookup failed", barcode=barcode, error=str(e))
            raise PersistenceError("Product lookup failed", barcode=barcode, original_error=e) from e

    async def create(self, values: Dict[str, Any]) -> Product:
        """Insert a new product record."""
        barcode = values.get("barcode", "")
        try:
            async with self.session_factory() as session:
                product = Product(**values)
                session.add(product)
                await session.commit()
                await session.refresh(product)
                logger.info("Product created", barcode=barcode, status=product.status.value)
                return product
        except IntegrityError:
            raise
        except SQLAlchemyError as e:
            logger.error("Product create failed", barcode=barcode, error=str(e))
            raise PersistenceError("Product create failed", barcode=barcode, original_error=e) from e

    async def update(
        self,
        barcode: str,
        updates: Dict[str, Any],
        skip_curated: bool = False
    ) -> Optional[Product]:
        """
        Overwrite the given fields of an existing record.

        Returns None when no record exists for the barcode. `created_at` is
        never touched. With `skip_curated`, a curated record is returned
        unchanged; the check runs on the row locked for this write.
        """
        updates = {k: v for k, v in updates.items() if k not in ("id", "barcode", "created_at")}
        try:
            async with self.session_factory() as session:
                result = await session.execute(
                    select(Product).where(Product.barcode == barcode).with_for_update()
                )
                product = result.scalar_one_or_none()
                if product is None:
                    return None

                if skip_curated and product.source == ProductSource.CURATED:
                    logger.info("Skipping automatic overwrite of curated product", barcode=barcode)
                    return product

                for field, value in updates.items():
                    setattr(product, field, value)
                product.updated_at = utcnow()

                await session.commit()
                await session.refresh(product)
                logger.info("Product updated", barcode=barcode, fields=sorted(updates))
                return product
        except SQLAlchemyError as e:
            logger.error("Product update failed", barcode=barcode, error=str(e))
            raise PersistenceError("Product update failed", barcode=barcode, original_error=e) from e

    async def upsert(
        self,
        barcode: str,
        updates: Dict[str, Any],
        defaults: Dict[str, Any] = None,
        skip_curated: bool = False
    ) -> Product:
        """
        Update the record in place, or insert it with `defaults` + `updates`.

        A concurrent insert of the same barcode is resolved as an update
        (last writer wins, curated records still honour `skip_curated`).
        """
        product = await self.update(barcode, updates, skip_curated=skip_curated)
        if product is not None:
            return product

        values = dict(defaults or {})
        values.update(updates)
        values["barcode"] = barcode
        try:
            return await self.create(values)
        except IntegrityError:
            logger.info("Concurrent insert detected, updating instead", barcode=barcode)
            product = await self.update(barcode, updates, skip_curated=skip_curated)
            if product is None:
                raise PersistenceError("Product upsert failed", barcode=barcode)
            return product

    async def log_failed_search(self, barcode: str, searched_at: datetime = None) -> Product:
        """Record a failed external resolution (negative cache entry)."""
        searched_at = searched_at or utcnow()
        try:
            async with self.session_factory() as session:
                result = await session.execute(select(Product).where(Product.barcode == barcode))
                product = result.scalar_one_or_none()

                if product is None:
                    product = Product(
                        barcode=barcode,
                        status=ProductStatus.NOT_FOUND,
                        search_attempts=1,
                        last_searched=searched_at,
                    )
                    session.add(product)
                else:
                    product.status = ProductStatus.NOT_FOUND
                    product.search_attempts = (product.search_attempts or 0) + 1
                    product.last_searched = searched_at
                    product.updated_at = utcnow()

                await session.commit()
                await session.refresh(product)
                logger.info(
                    "Failed search recorded",
                    barcode=barcode,
                    search_attempts=product.search_attempts
                )
                return product
        except SQLAlchemyError as e:
            logger.error("Failed search logging failed", barcode=barcode, error=str(e))
            raise PersistenceError("Failed search logging failed", barcode=barcode, original_error=e) from e

    async def list_products(
        self,
        filters: Dict[str, Any] = None,
        page: int = 1,
        limit: int = 20
    ) -> Dict[str, Any]:
        """Get products with filters and pagination, most recently updated first."""
        filters = filters or {}
        page = max(1, page)
        limit = max(1, limit)

        query = select(Product)
        if filters.get("status"):
            query = query.where(Product.status == ProductStatus(filters["status"]))
        if filters.get("unverified") is True:
            query = query.where(Product.is_verified.is_(False))
        if filters.get("source"):
            query = query.where(Product.source == ProductSource(filters["source"]))

        try:
            async with self.session_factory() as session:
                total = await session.scalar(select(func.count()).select_from(query.subquery()))
                result = await session.execute(
                    query.order_by(desc(Product.updated_at))
                    .limit(limit)
                    .offset((page - 1) * limit)
                )
                data = list(result.scalars().all())
        except SQLAlchemyError as e:
            logger.error("Product listing failed", filters=filters, error=str(e))
            raise PersistenceError("Product listing failed", original_error=e) from e

        total = int(total or 0)
        return {
            "data": data,
            "pagination": {
                "total": total,
                "page": page,
                "limit": limit,
                "pages": math.ceil(total / limit)
            }
        }

    async def get_popular_not_found(self, limit: int = 20) -> List[Product]:
        """Get the most frequently searched barcodes that were never found."""
        try:
            async with self.session_factory() as session:
                result = await session.execute(
                    select(Product)
                    .where(Product.status == ProductStatus.NOT_FOUND)
                    .order_by(desc(Product.search_attempts))
                    .limit(limit)
                )
                return list(result.scalars().all())
        except SQLAlchemyError as e:
            logger.error("Failed search listing failed", error=str(e))
            raise PersistenceError("Failed search listing failed", original_error=e) from e
