"""
Adapter Nutritionix : provider tertiaire, lookup par UPC.
Requiert un app id et une app key.
"""

from typing import Optional, Dict, Any, List

from .base import HTTPSourceAdapter
from .interfaces import RawPayload, SourceProvider, MissingCredentialsError


def split_ingredient_statement(statement: Optional[str]) -> List[Dict[str, Any]]:
    """Découpe la déclaration d'ingrédients en entrées classées par rang."""
    if not statement:
        return []

    entries = []
    for ingredient in statement.split(","):
        text = ingredient.strip()
        if text:
            entries.append({"text": text, "rank": len(entries) + 1})
    return entries


class NutritionixAdapter(HTTPSourceAdapter):
    """Lookup de produits via l'API Nutritionix."""

    BASE_URL = "https://trackapi.nutritionix.com/v2"

    def __init__(self, app_id: Optional[str] = None, app_key: Optional[str] = None, **kwargs):
        super().__init__(**kwargs)
        self.app_id = app_id
        self.app_key = app_key

    @property
    def provider_name(self) -> str:
        return SourceProvider.NUTRITIONIX.value

    async def _lookup_payload(self, barcode: str) -> Optional[RawPayload]:
        if not self.app_id or not self.app_key:
            raise MissingCredentialsError(
                "Nutritionix API credentials not configured",
                provider=self.provider_name,
                barcode=barcode
            )

        data = await self._fetch_json(
            f"{self.BASE_URL}/search/item",
            barcode,
            params={"upc": barcode},
            headers={
                "x-app-id": self.app_id,
                "x-app-key": self.app_key,
                "Content-Type": "application/json",
            }
        )
        foods = (data or {}).get("foods") or []
        if not foods:
            return None

        return self.parse_food(barcode, foods[0])

    @staticmethod
    def parse_food(barcode: str, food_item: Dict[str, Any]) -> RawPayload:
        """Parse un item Nutritionix en RawPayload."""
        statement = food_item.get("nf_ingredient_statement")

        food_group = (food_item.get("tags") or {}).get("food_group")

        serving_size = None
        if food_item.get("serving_weight_grams"):
            serving_size = f"{food_item['serving_weight_grams']}g"

        return RawPayload(
            barcode=barcode,
            name=food_item.get("food_name"),
            brand=food_item.get("brand_name"),
            category=str(food_group) if food_group is not None else None,
            ingredients_raw=statement,
            ingredients_list=split_ingredient_statement(statement),
            nutrients={
                "energy": food_item.get("nf_calories") or 0,
                "proteins": food_item.get("nf_protein") or 0,
                "fat": food_item.get("nf_total_fat") or 0,
                "carbohydrates": food_item.get("nf_total_carbohydrate") or 0,
                "fiber": food_item.get("nf_dietary_fiber") or 0,
                "sugars": food_item.get("nf_sugars") or 0,
                "sodium": food_item.get("nf_sodium") or 0,
                "saturated_fat": food_item.get("nf_saturated_fat") or 0,
                "cholesterol": food_item.get("nf_cholesterol") or 0,
                "potassium": food_item.get("nf_potassium") or 0,
            },
            serving_size=serving_size,
            image_url=(food_item.get("photo") or {}).get("thumb"),
            raw_data=food_item,
        )
