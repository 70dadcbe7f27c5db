"""
Adapter USDA FoodData Central : provider secondaire (produits de marque US).
Recherche par code-barres puis lecture de la fiche détaillée.

API Documentation : https://fdc.nal.usda.gov/api-guide.html
"""

import re
from typing import Optional, Dict, Any, List

from .base import HTTPSourceAdapter
from .interfaces import RawPayload, SourceProvider, MissingCredentialsError


# Mapping des nutriments USDA vers les clés standard
USDA_NUTRIENT_MAPPING = {
    "Energy": "energy",
    "Protein": "proteins",
    "Total lipid (fat)": "fat",
    "Carbohydrate, by difference": "carbohydrates",
    "Fiber, total dietary": "fiber",
    "Sugars, total including NLEA": "sugars",
    "Sodium, Na": "sodium",
    "Calcium, Ca": "calcium",
    "Iron, Fe": "iron",
    "Potassium, K": "potassium",
    "Vitamin A, RAE": "vitamin_a",
    "Vitamin C, total ascorbic acid": "vitamin_c",
    "Vitamin D (D2 + D3)": "vitamin_d",
    "Saturated Fatty Acids": "saturated_fat",
    "Trans Fatty Acids": "trans_fat",
}


def transform_usda_nutrients(food_nutrients: Optional[List[Dict[str, Any]]]) -> Dict[str, Any]:
    """Normalise la liste foodNutrients de USDA en dictionnaire clé -> valeur."""
    if not food_nutrients or not isinstance(food_nutrients, list):
        return {}

    nutrients = {}
    for item in food_nutrients:
        name = (item.get("nutrient") or {}).get("name") or ""
        if not name:
            continue
        key = USDA_NUTRIENT_MAPPING.get(name) or re.sub(r"[^a-z0-9]", "_", name.lower())
        nutrients[key] = item.get("amount") or 0
    return nutrients


class USDAAdapter(HTTPSourceAdapter):
    """Lookup de produits via l'API USDA FoodData Central."""

    BASE_URL = "https://api.nal.usda.gov/fdc/v1"

    def __init__(self, api_key: Optional[str] = None, **kwargs):
        super().__init__(**kwargs)
        self.api_key = api_key

    @property
    def provider_name(self) -> str:
        return SourceProvider.USDA.value

    async def _lookup_payload(self, barcode: str) -> Optional[RawPayload]:
        if not self.api_key:
            raise MissingCredentialsError(
                "USDA API key not configured",
                provider=self.provider_name,
                barcode=barcode
            )

        search = await self._fetch_json(
            f"{self.BASE_URL}/foods/search",
            barcode,
            params={"api_key": self.api_key, "query": barcode, "dataType": "Branded"}
        )
        foods = (search or {}).get("foods") or []
        if not foods:
            return None

        food_item = self._select_food(barcode, foods)

        detail = await self._fetch_json(
            f"{self.BASE_URL}/food/{food_item['fdcId']}",
            barcode,
            params={"api_key": self.api_key}
        )
        if detail is None:
            return None

        return self.parse_food(barcode, food_item, detail)

    @staticmethod
    def _select_food(barcode: str, foods: List[Dict[str, Any]]) -> Dict[str, Any]:
        """Prefer the food whose GTIN/UPC equals the barcode, else the first hit."""
        for food in foods:
            if str(food.get("gtinUpc") or "").lstrip("0") == barcode.lstrip("0"):
                return food
        return foods[0]

    @staticmethod
    def parse_food(barcode: str, food_item: Dict[str, Any], detail: Dict[str, Any]) -> RawPayload:
        """Parse la fiche détaillée USDA en RawPayload."""
        serving_size = None
        if detail.get("servingSize"):
            serving_size = f"{detail['servingSize']}{detail.get('servingSizeUnit') or ''}"

        category = detail.get("foodCategory")
        if isinstance(category, dict):
            category = category.get("description")

        return RawPayload(
            barcode=barcode,
            name=detail.get("description") or food_item.get("description"),
            brand=detail.get("brandOwner") or detail.get("brandName"),
            category=category or detail.get("brandedFoodCategory"),
            ingredients_raw=detail.get("ingredients"),
            # USDA does not provide structured ingredients or images
            ingredients_list=[],
            nutrients=transform_usda_nutrients(detail.get("foodNutrients")),
            serving_size=serving_size,
            raw_data=detail,
        )
