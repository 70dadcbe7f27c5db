"""
Adapter OpenFoodFacts : provider primaire, gratuit et sans credentials.

API Documentation : https://openfoodfacts.github.io/openfoodfacts-server/api/
"""

from typing import Optional, Dict, Any

import structlog

from .base import HTTPSourceAdapter
from .interfaces import RawPayload, SourceProvider

logger = structlog.get_logger(__name__)


class OpenFoodFactsAdapter(HTTPSourceAdapter):
    """Lookup de produits via l'API OpenFoodFacts."""

    BASE_URL = "https://world.openfoodfacts.org/api/v0"

    @property
    def provider_name(self) -> str:
        return SourceProvider.OPENFOODFACTS.value

    async def _lookup_payload(self, barcode: str) -> Optional[RawPayload]:
        url = f"{self.BASE_URL}/product/{barcode}.json"
        logger.debug("Looking up product on OpenFoodFacts", barcode=barcode, url=url)

        data = await self._fetch_json(url, barcode)
        if data is None:
            return None

        if data.get("status") != 1 or not data.get("product"):
            return None

        return self.parse_product(barcode, data["product"])

    @staticmethod
    def parse_product(barcode: str, product: Dict[str, Any]) -> RawPayload:
        """Parse la réponse OpenFoodFacts en RawPayload."""
        categories = product.get("categories_tags") or []

        return RawPayload(
            barcode=barcode,
            name=product.get("product_name"),
            brand=product.get("brands"),
            category=categories[0] if categories else None,
            ingredients_raw=product.get("ingredients_text"),
            ingredients_list=product.get("ingredients"),
            nutrients=product.get("nutriments"),
            serving_size=product.get("serving_size"),
            nutrition_grade=product.get("nutrition_grades"),
            image_url=product.get("image_url"),
            raw_data=product,
        )
