"""
Persistence normalizer.
Maps a provider payload onto the canonical product shape, runs the additive
analyzer and writes the result through the durable store.
"""

from typing import Any, Callable, Dict, Optional, Union
from datetime import datetime

import structlog

from transpareneats.core.clock import utcnow
from transpareneats.db.models.product import Product
from transpareneats.models.product import (
    NutritionData,
    ProductSnapshot,
    ProductSource,
    ProductStatus,
)
from transpareneats.repositories.product_repository import ProductRepository
from transpareneats.services.additives.analyzer import AdditiveAnalyzer, default_analyzer
from transpareneats.services.sources.interfaces import RawPayload

logger = structlog.get_logger(__name__)

_DISPLAY_FIELDS = ("name", "brand", "category", "ingredients_raw", "image_url")
_NUTRITION_FIELDS = ("nutrients", "serving_size", "nutrition_grade")


def _text(value: Any) -> str:
    """Display text for a provider scalar; providers send some labels as numbers."""
    if value is None:
        return ""
    return value if isinstance(value, str) else str(value)


class ProductNormalizer:
    """
    Canonical mapping plus write policy for externally resolved products.

    Write policy: an existing record is updated in place, overwriting only the
    fields the payload actually carries; `created_at` is preserved. A record
    whose source is curated is never overwritten.
    """

    def __init__(
        self,
        repository: ProductRepository,
        analyzer: Optional[AdditiveAnalyzer] = None,
        clock: Callable[[], datetime] = utcnow
    ):
        self.repository = repository
        self.analyzer = analyzer or default_analyzer
        self.clock = clock

    def normalize(self, raw: RawPayload, source: Union[ProductSource, str]) -> ProductSnapshot:
        """Canonical product for a payload; absent fields become empty values."""
        source = ProductSource(source)
        nutrition = NutritionData(
            nutrients=raw.nutrients or {},
            serving_size=_text(raw.serving_size),
            nutrition_grade=_text(raw.nutrition_grade),
        )

        return ProductSnapshot(
            barcode=raw.barcode,
            name=_text(raw.name),
            brand=_text(raw.brand),
            category=_text(raw.category),
            ingredients_raw=_text(raw.ingredients_raw),
            ingredients_list=raw.ingredients_list or [],
            nutrition_data=nutrition,
            flagged_additives=self.analyzer.analyze(_text(raw.ingredients_raw)),
            image_url=_text(raw.image_url),
            source=source,
            status=ProductStatus.ACTIVE,
            is_verified=False,
            last_searched=self.clock(),
        )

    def merge_updates(self, raw: RawPayload, snapshot: ProductSnapshot) -> Dict[str, Any]:
        """Column updates limited to the fields present in the payload."""
        updates: Dict[str, Any] = {
            "source": snapshot.source,
            "status": ProductStatus.ACTIVE,
            "is_verified": False,
            "last_searched": snapshot.last_searched,
        }

        for field in _DISPLAY_FIELDS:
            if getattr(raw, field) is not None:
                updates[field] = getattr(snapshot, field)

        if raw.ingredients_raw is not None:
            updates["flagged_additives"] = snapshot.flagged_additives.model_dump()
        if raw.ingredients_list is not None:
            updates["ingredients_list"] = snapshot.ingredients_list
        if any(getattr(raw, field) is not None for field in _NUTRITION_FIELDS):
            updates["nutrition_data"] = snapshot.nutrition_data.model_dump()

        return updates

    @staticmethod
    def insert_values(snapshot: ProductSnapshot) -> Dict[str, Any]:
        """Column values for a brand new record."""
        values = snapshot.model_dump(
            exclude={"barcode", "search_attempts", "created_at", "updated_at"}
        )
        values["search_attempts"] = 0
        return values

    async def persist(
        self,
        raw: RawPayload,
        source: Union[ProductSource, str],
        snapshot: Optional[ProductSnapshot] = None
    ) -> Product:
        """
        Normalize and write a payload.

        Returns the stored record, which is the untouched curated record when
        one already exists for the barcode. The curated check is part of the
        write itself, so a curation committed mid-resolution is never lost.
        """
        snapshot = snapshot or self.normalize(raw, source)
        product = await self.repository.upsert(
            raw.barcode,
            self.merge_updates(raw, snapshot),
            defaults=self.insert_values(snapshot),
            skip_curated=True,
        )
        if product.source == ProductSource.CURATED:
            return product

        logger.info(
            "Product normalized",
            barcode=raw.barcode,
            source=snapshot.source.value,
            additives=len(snapshot.flagged_additives.additives)
        )
        return product
