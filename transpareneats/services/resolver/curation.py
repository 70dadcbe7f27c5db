"""
Manual curation, user contributions and admin queries over the product store.
Every write here invalidates the fast-cache mirror of the barcode.
"""

from typing import Any, Dict, List, Optional, Union

import structlog

from transpareneats.cache.layered import LayeredCache
from transpareneats.models.product import (
    ProductFields,
    ProductSnapshot,
    ProductSource,
    ProductStatus,
)
from transpareneats.repositories.product_repository import ProductNotFoundError
from transpareneats.services.additives.analyzer import AdditiveAnalyzer, default_analyzer
from transpareneats.services.resolver.barcode import clean_barcode

logger = structlog.get_logger(__name__)

FieldsInput = Union[ProductFields, Dict[str, Any]]


class CurationService:
    """Write paths other than automatic resolution, plus read-only admin views."""

    def __init__(
        self,
        cache: LayeredCache,
        analyzer: Optional[AdditiveAnalyzer] = None,
        contribution_threshold: int = 3
    ):
        self.cache = cache
        self.repository = cache.repository
        self.analyzer = analyzer or default_analyzer
        self.contribution_threshold = contribution_threshold

    def _field_updates(self, fields: FieldsInput) -> Dict[str, Any]:
        if not isinstance(fields, ProductFields):
            fields = ProductFields.model_validate(fields)

        updates = fields.model_dump(exclude_unset=True)
        updates = {key: value for key, value in updates.items() if value is not None}

        if "ingredients_raw" in updates:
            updates["flagged_additives"] = self.analyzer.analyze(updates["ingredients_raw"]).model_dump()
        return updates

    async def curate(self, barcode: str, fields: FieldsInput) -> ProductSnapshot:
        """
        Admin overwrite of an existing record.

        Forces source=curated and is_verified=True. Status becomes active
        unless given explicitly or the record is deleted.
        """
        barcode = clean_barcode(barcode)
        existing = await self.repository.find_by_barcode(barcode)
        if existing is None:
            raise ProductNotFoundError(barcode)

        updates = self._field_updates(fields)
        updates["source"] = ProductSource.CURATED
        updates["is_verified"] = True
        if "status" not in updates and existing.status != ProductStatus.DELETED:
            updates["status"] = ProductStatus.ACTIVE

        product = await self.repository.update(barcode, updates)
        if product is None:
            raise ProductNotFoundError(barcode)

        await self.cache.invalidate_product(barcode)
        logger.info("Product curated", barcode=barcode, fields=sorted(updates))
        return ProductSnapshot.model_validate(product)

    async def contribute(self, barcode: str, fields: FieldsInput) -> ProductSnapshot:
        """
        Crowd-sourced create or update, queued for review.

        Curated records are returned unchanged.
        """
        barcode = clean_barcode(barcode)
        existing = await self.repository.find_by_barcode(barcode)
        if existing is not None and existing.source == ProductSource.CURATED:
            logger.info("Ignoring contribution for curated product", barcode=barcode)
            return ProductSnapshot.model_validate(existing)

        updates = self._field_updates(fields)
        updates.pop("status", None)
        updates.update(
            source=ProductSource.USER,
            status=ProductStatus.PENDING_REVIEW,
            user_contributed=True,
        )

        product = await self.repository.upsert(
            barcode, updates, defaults={"search_attempts": 0}, skip_curated=True
        )
        await self.cache.invalidate_product(barcode)
        logger.info("Product contributed", barcode=barcode, created=existing is None)
        return ProductSnapshot.model_validate(product)

    async def soft_delete(self, barcode: str) -> ProductSnapshot:
        """Mark a record deleted; it stays in the store."""
        barcode = clean_barcode(barcode)
        product = await self.repository.update(barcode, {"status": ProductStatus.DELETED})
        if product is None:
            raise ProductNotFoundError(barcode)

        await self.cache.invalidate_product(barcode)
        logger.info("Product deleted", barcode=barcode)
        return ProductSnapshot.model_validate(product)

    async def get_product(self, barcode: str) -> ProductSnapshot:
        """Durable record, bypassing the fast cache."""
        barcode = clean_barcode(barcode)
        product = await self.repository.find_by_barcode(barcode)
        if product is None:
            raise ProductNotFoundError(barcode)
        return ProductSnapshot.model_validate(product)

    async def list_products(
        self,
        status: Optional[Union[ProductStatus, str]] = None,
        unverified: bool = False,
        source: Optional[Union[ProductSource, str]] = None,
        page: int = 1,
        limit: int = 20
    ) -> Dict[str, Any]:
        filters = {"status": status, "unverified": unverified, "source": source}
        listing = await self.repository.list_products(filters, page=page, limit=limit)
        listing["data"] = [ProductSnapshot.model_validate(product) for product in listing["data"]]
        return listing

    async def failed_searches(self, limit: int = 20) -> List[ProductSnapshot]:
        products = await self.repository.get_popular_not_found(limit)
        return [ProductSnapshot.model_validate(product) for product in products]

    async def contributions_needed(self) -> List[Dict[str, Any]]:
        """Most searched unknown barcodes worth asking users about."""
        products = await self.repository.get_popular_not_found(10)
        return [
            {"barcode": product.barcode, "search_attempts": product.search_attempts}
            for product in products
            if product.search_attempts >= self.contribution_threshold
        ]
